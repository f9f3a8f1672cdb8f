from datetime import datetime

import httpx
import pytest
import respx

from app.adapters.base import lock_time_for, race_slug, schedule_status
from app.adapters.odds_api import (
    OddsApiProvider,
    classify_market,
    is_acceptable_price,
    selection_key_for_outcome,
)
from app.adapters.openf1 import (
    OpenF1Lap,
    OpenF1Provider,
    OpenF1Session,
    find_fastest_lap_driver,
    is_session_finalized,
    session_to_race_row,
)
from app.adapters.thesportsdb import SportsDbEvent, TheSportsDbProvider, event_to_race_row, parse_event_start
from app.core.exceptions import ProviderConfigError, ProviderError
from app.models.market import MarketType

NOW = datetime(2026, 5, 20, 12, 0, 0)


# --- Regras comuns ---

def test_lock_time_is_two_hours_before_start():
    assert lock_time_for(datetime(2026, 5, 24, 13, 0)) == datetime(2026, 5, 24, 11, 0)


def test_schedule_status_never_downgrades():
    lock = datetime(2026, 5, 24, 11, 0)
    assert schedule_status(lock, NOW) == "scheduled"
    assert schedule_status(lock, datetime(2026, 5, 24, 11, 0)) == "locked"
    assert schedule_status(lock, NOW, previous_status="settled") == "settled"
    assert schedule_status(lock, NOW, previous_status="settling") == "settling"


def test_race_slug():
    assert race_slug(2026, "Monaco Grand Prix", 8) == "2026-monaco-grand-prix"
    assert race_slug(2026, "Grand Prix", 3) == "2026-round-3-grand-prix"


# --- TheSportsDB ---

def test_parse_event_start_variants():
    assert parse_event_start(SportsDbEvent(strTimestamp="2026-05-24T13:00:00+00:00")) == datetime(2026, 5, 24, 13, 0)
    assert parse_event_start(SportsDbEvent(dateEvent="2026-05-24", strTime="15:00:00")) == datetime(2026, 5, 24, 15, 0)
    assert parse_event_start(SportsDbEvent(dateEvent="2026-05-24")) == datetime(2026, 5, 24, 12, 0)
    assert parse_event_start(SportsDbEvent(strTime="15:00:00")) is None


def test_event_to_race_row_enriches_metadata():
    event = SportsDbEvent.model_validate({
        "idEvent": 2201,
        "strEvent": "Monaco Grand Prix",
        "intRound": 8,
        "strTimestamp": "2026-05-24T13:00:00",
        "strCountry": "Monaco",
        "strVenue": "Circuit de Monaco",
        "strCity": "Monte Carlo",
        "strThumb": "https://img/thumb.jpg",
    })

    row = event_to_race_row(2026, 99, event, NOW, previous_result_revision=2)

    assert row.round == 8
    assert row.slug == "2026-monaco-grand-prix"
    assert row.sportsdb_event_id == "2201"
    assert row.circuit == "Circuit de Monaco"
    assert row.city == "Monte Carlo"
    assert row.lock_time == datetime(2026, 5, 24, 11, 0)
    assert row.status.value == "scheduled"
    assert row.result_revision == 2


def test_event_without_name_uses_round():
    row = event_to_race_row(2026, 4, SportsDbEvent(dateEvent="2026-04-12"), NOW)
    assert row.name == "Round 4 Grand Prix"
    assert row.round == 4


@respx.mock
def test_sportsdb_fetch_season_events():
    route = respx.get("https://www.thesportsdb.com/api/v1/json/123/eventsseason.php").mock(
        return_value=httpx.Response(200, json={"events": [
            {"idEvent": "1", "strEvent": "Bahrain Grand Prix", "intRound": "1", "dateEvent": "2026-03-01"},
            "garbage",
        ]})
    )

    with TheSportsDbProvider(api_key="123", league_id="4370") as provider:
        events = provider.fetch_season_events(2026)

    assert route.called
    assert route.calls.last.request.url.params["s"] == "2026"
    assert [e.strEvent for e in events] == ["Bahrain Grand Prix"]


@respx.mock
def test_sportsdb_null_events():
    respx.get("https://www.thesportsdb.com/api/v1/json/123/eventsseason.php").mock(
        return_value=httpx.Response(200, json={"events": None})
    )
    with TheSportsDbProvider(api_key="123", league_id="4370") as provider:
        assert provider.fetch_season_events(2026) == []


@respx.mock
def test_http_error_becomes_provider_error():
    respx.get("https://www.thesportsdb.com/api/v1/json/123/eventsseason.php").mock(
        return_value=httpx.Response(503)
    )
    with TheSportsDbProvider(api_key="123", league_id="4370", max_attempts=1) as provider:
        with pytest.raises(ProviderError) as exc:
            provider.fetch_season_events(2026)

    assert exc.value.status_code == 503
    assert exc.value.provider == "thesportsdb"
    assert exc.value.http_status == 502


@respx.mock
def test_transport_error_is_retried_then_raised(monkeypatch):
    route = respx.get("https://api.openf1.org/v1/sessions").mock(side_effect=httpx.ConnectError("boom"))
    # Sem espera entre tentativas
    monkeypatch.setattr("tenacity.nap.time.sleep", lambda _: None)

    with OpenF1Provider(max_attempts=2) as provider:
        with pytest.raises(ProviderError) as exc:
            provider.list_race_sessions(2026)

    assert route.call_count == 2
    assert exc.value.status_code == 503


# --- OpenF1 ---

def test_session_finalized_only_after_end():
    session = OpenF1Session(session_key=1, date_end="2026-05-24T15:00:00+00:00")
    assert not is_session_finalized(session, datetime(2026, 5, 24, 14, 59))
    assert is_session_finalized(session, datetime(2026, 5, 24, 15, 0))
    assert not is_session_finalized(OpenF1Session(session_key=2), NOW)


def test_fastest_lap_ignores_missing_durations():
    laps = [
        OpenF1Lap(driver_number=1, lap_duration=None),
        OpenF1Lap(driver_number=16, lap_duration=74.2),
        OpenF1Lap(driver_number=4, lap_duration=73.9),
        OpenF1Lap(driver_number=44, lap_duration=0),
    ]
    assert find_fastest_lap_driver(laps) == 4
    assert find_fastest_lap_driver([]) is None


def test_session_to_race_row_names_meeting():
    session = OpenF1Session(session_key=7, meeting_name="Monaco", country_name="Monaco",
                            location="Monte Carlo", date_start="2026-05-24T13:00:00+00:00")
    row = session_to_race_row(2026, 8, session, NOW)
    assert row.name == "Monaco Grand Prix"
    assert row.circuit == "Monte Carlo"
    assert row.start_time == datetime(2026, 5, 24, 13, 0)


@respx.mock
def test_openf1_schedule_dedupes_and_sorts():
    respx.get("https://api.openf1.org/v1/sessions").mock(return_value=httpx.Response(200, json=[
        {"session_key": 2, "meeting_name": "Monaco Grand Prix", "country_name": "Monaco",
         "date_start": "2026-05-24T13:00:00+00:00"},
        {"session_key": 1, "meeting_name": "Bahrain Grand Prix", "country_name": "Bahrain",
         "date_start": "2026-03-01T15:00:00+00:00"},
        {"session_key": 3, "meeting_name": "Monaco Grand Prix", "country_name": "Monaco",
         "date_start": "2026-05-24T13:00:00+00:00"},
        {"meeting_name": "missing key"},
    ]))

    with OpenF1Provider() as provider:
        sessions = provider.season_schedule(2026)

    assert [s.session_key for s in sessions] == [1, 2]


@respx.mock
def test_openf1_session_results_parse_flags():
    route = respx.get("https://api.openf1.org/v1/session_result").mock(return_value=httpx.Response(200, json=[
        {"driver_number": 1, "position": 1, "dnf": False, "dns": False, "dsq": False},
        {"driver_number": 44, "position": None, "dnf": True, "dns": None, "dsq": None},
    ]))

    with OpenF1Provider() as provider:
        rows = provider.get_session_results(9158)

    assert route.calls.last.request.url.params["session_key"] == "9158"
    assert rows[1].dnf and rows[1].position is None


# --- The Odds API ---

@pytest.mark.parametrize("key, market_type, suffix", [
    ("outrights", MarketType.RACE_WINNER, "_win"),
    ("driver_podium", MarketType.PODIUM_FINISH, "_podium"),
    ("fastest_lap", MarketType.FASTEST_LAP, "_fastest_lap"),
    ("top_6_finish", MarketType.TOP_6_FINISH, "_top6"),
    ("Top10", MarketType.TOP_10_FINISH, "_top10"),
])
def test_classify_market(key, market_type, suffix):
    assert classify_market(key) == (market_type, suffix)


def test_selection_key_for_outcome():
    assert selection_key_for_outcome("Max Verstappen", "outrights") == "max_verstappen_win"
    assert selection_key_for_outcome("Sergio Pérez", "podium") == "sergio_p_rez_podium"


def test_acceptable_price():
    assert is_acceptable_price(1.01)
    assert not is_acceptable_price(1.0)
    assert not is_acceptable_price(None)
    assert not is_acceptable_price(float("inf"))


def test_odds_provider_requires_key():
    with pytest.raises(ProviderConfigError):
        OddsApiProvider(None)


@respx.mock
def test_odds_provider_fetches_event_odds():
    route = respx.get("https://api.the-odds-api.com/v4/sports/motorsport_f1/events/evt-1/odds").mock(
        return_value=httpx.Response(200, json={
            "id": "evt-1",
            "commence_time": "2026-05-24T13:00:00Z",
            "bookmakers": [{
                "key": "fanduel",
                "markets": [{"key": "outrights", "outcomes": [{"name": "Max Verstappen", "price": 2.75}]}],
            }],
        })
    )

    with OddsApiProvider("secret") as provider:
        odds = provider.fetch_event_odds("motorsport_f1", "evt-1", regions="us", markets="outrights")

    params = route.calls.last.request.url.params
    assert params["apiKey"] == "secret"
    assert params["oddsFormat"] == "decimal"
    assert "bookmakers" not in params
    assert odds.bookmakers[0].markets[0].outcomes[0].price == 2.75
