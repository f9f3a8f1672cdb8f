import pytest

from app.core.exceptions import ConflictError, NotFoundError
from app.models.bet import Bet
from app.models.league import LeagueMember, RaceLeagueWinner
from app.models.race import Race, RaceStatus
from app.services.settlement import (
    RaceOutcome,
    SettledBet,
    aggregate_by_league_user,
    choose_league_winners,
    compute_bet_settlement,
    extract_race_outcome,
    parse_selection_list,
    settle_race,
)
from tests.conftest import (
    make_bet,
    make_league,
    make_market,
    make_member,
    make_race,
    make_result,
    make_user,
)

USER_A = "00000000-0000-4000-8000-00000000000a"
USER_B = "00000000-0000-4000-8000-00000000000b"


@pytest.fixture
def paddock(db):
    """Uma liga com um usuário, uma corrida travada e dois mercados."""
    user = make_user(db, user_id=USER_A, handle="max_fan")
    league = make_league(db, user)
    member = make_member(db, league, user, season_points=10.0)
    race = make_race(db, status=RaceStatus.LOCKED.value)
    winner_market = make_market(db, race, "max_verstappen_win", "Max Verstappen", decimal_odds=3.0)
    podium_market = make_market(
        db, race, "lewis_hamilton_podium", "Lewis Hamilton",
        market_type="podium_finish", decimal_odds=1.5,
        provider_market_id="evt-1:fanduel:podium",
    )
    db.commit()
    return {
        "user": user,
        "league": league,
        "member": member,
        "race": race,
        "winner_market": winner_market,
        "podium_market": podium_market,
    }


class FakeRow:
    def __init__(self, key, value):
        self.result_key = key
        self.result_value = value


# --- Extração dos fatos ---

def test_extract_outcome_reads_all_encodings():
    outcome = extract_race_outcome([
        FakeRow("winning_selection_key", "max_verstappen_win"),
        FakeRow("winning_selection_keys", '["lando_norris_podium", "oscar_piastri_podium"]'),
        FakeRow("void_selection_keys", "carlos_sainz_top6, alex_albon_top10"),
        FakeRow("selection:charles_leclerc_podium", "WIN"),
        FakeRow("selection:george_russell_fastest_lap", "void"),
        FakeRow("selection:lewis_hamilton_podium", "lost"),
    ])

    assert outcome.winning == {
        "max_verstappen_win",
        "lando_norris_podium",
        "oscar_piastri_podium",
        "charles_leclerc_podium",
    }
    assert outcome.void == {"carlos_sainz_top6", "alex_albon_top10", "george_russell_fastest_lap"}


def test_parse_selection_list_falls_back_to_commas_on_bad_json():
    assert parse_selection_list('["a", "b"') == ['["a"', '"b"']
    assert parse_selection_list("  ") == []
    assert parse_selection_list('["x", " y "]') == ["x", "y"]


def test_compute_bet_settlement_formulas():
    outcome = RaceOutcome(winning={"w"}, void={"v"})

    assert compute_bet_settlement("w", 40, 3.0, outcome) == ("won", 120.0, 80.0)
    assert compute_bet_settlement("v", 25, 9.0, outcome) == ("void", 25.0, 0.0)
    assert compute_bet_settlement("x", 60, 1.5, outcome) == ("lost", 0.0, -60.0)


def test_void_takes_precedence_over_win():
    outcome = RaceOutcome(winning={"k"}, void={"k"})
    status, gross, net = compute_bet_settlement("k", 10, 2.0, outcome)
    assert (status, gross, net) == ("void", 10.0, 0.0)


def test_choose_league_winners_tie_breaks_on_smaller_user_id():
    winners = choose_league_winners({
        ("league-1", USER_B): 15.0,
        ("league-1", USER_A): 15.0,
        ("league-2", USER_B): -5.0,
    })
    assert winners["league-1"] == (USER_A, 15.0)
    assert winners["league-2"] == (USER_B, -5.0)


# --- Liquidação completa ---

def test_settle_race_example_scenario(db, clock, paddock):
    race = paddock["race"]
    bet_win = make_bet(db, paddock["user"], paddock["league"], race, paddock["winner_market"], 40, odds=3.0)
    bet_lost = make_bet(db, paddock["user"], paddock["league"], race, paddock["podium_market"], 60, odds=1.5)
    make_result(db, race, "winning_selection_key", "max_verstappen_win", revision=1)
    db.commit()

    report = settle_race(db, race.id, clock)

    assert report.settled_bets == 2
    assert report.winning_selection_keys == ["max_verstappen_win"]
    assert report.result_revision == 1
    assert report.league_winners_written == 1

    won = db.query(Bet).filter(Bet.id == bet_win.id).one()
    lost = db.query(Bet).filter(Bet.id == bet_lost.id).one()
    assert (won.status, won.gross_return, won.net_profit) == ("won", 120.0, 80.0)
    assert (lost.status, lost.gross_return, lost.net_profit) == ("lost", 0.0, -60.0)
    assert won.settled_at == clock.now()

    member = db.query(LeagueMember).filter(LeagueMember.id == paddock["member"].id).one()
    assert member.season_points == pytest.approx(30.0)

    winner = db.query(RaceLeagueWinner).filter(RaceLeagueWinner.race_id == race.id).one()
    assert winner.winner_user_id == USER_A
    assert winner.race_points == pytest.approx(20.0)

    assert db.query(Race).filter(Race.id == race.id).one().status == RaceStatus.SETTLED.value


def test_void_selection_returns_stake(db, clock, paddock):
    race = paddock["race"]
    bet = make_bet(db, paddock["user"], paddock["league"], race, paddock["winner_market"], 35, odds=3.0)
    make_result(db, race, "void_selection_key", "max_verstappen_win", revision=1)
    db.commit()

    settle_race(db, race.id, clock)

    settled = db.query(Bet).filter(Bet.id == bet.id).one()
    assert (settled.status, settled.gross_return, settled.net_profit) == ("void", 35.0, 0.0)
    member = db.query(LeagueMember).filter(LeagueMember.id == paddock["member"].id).one()
    assert member.season_points == pytest.approx(10.0)


def test_settling_twice_is_a_noop(db, clock, paddock):
    race = paddock["race"]
    make_bet(db, paddock["user"], paddock["league"], race, paddock["winner_market"], 40, odds=3.0)
    make_result(db, race, "selection:max_verstappen_win", "won", revision=1)
    db.commit()

    first = settle_race(db, race.id, clock)
    points_after_first = db.query(LeagueMember).filter(LeagueMember.id == paddock["member"].id).one().season_points
    statuses_after_first = [b.status for b in db.query(Bet).order_by(Bet.id).all()]

    second = settle_race(db, race.id, clock)

    assert first.settled_bets == 1
    assert second.settled_bets == 0
    assert second.message == "Race already settled."
    assert db.query(LeagueMember).filter(LeagueMember.id == paddock["member"].id).one().season_points == points_after_first
    assert [b.status for b in db.query(Bet).order_by(Bet.id).all()] == statuses_after_first


def test_only_latest_revision_counts(db, clock, paddock):
    race = paddock["race"]
    bet = make_bet(db, paddock["user"], paddock["league"], race, paddock["winner_market"], 40, odds=3.0)
    make_result(db, race, "winning_selection_key", "max_verstappen_win", revision=1)
    make_result(db, race, "void_selection_key", "max_verstappen_win", revision=2)
    db.commit()

    report = settle_race(db, race.id, clock)

    assert report.result_revision == 2
    assert db.query(Bet).filter(Bet.id == bet.id).one().status == "void"
    assert db.query(Race).filter(Race.id == race.id).one().result_revision == 2


def test_no_results_conflict_leaves_race_settling(db, clock, paddock):
    race = paddock["race"]
    make_bet(db, paddock["user"], paddock["league"], race, paddock["winner_market"], 40)
    db.commit()

    with pytest.raises(ConflictError) as exc:
        settle_race(db, race.id, clock)

    assert exc.value.code == "NO_RESULTS"
    assert db.query(Race).filter(Race.id == race.id).one().status == RaceStatus.SETTLING.value
    assert db.query(Bet).one().status == "pending"


def test_unrecognized_facts_raise_no_outcomes(db, clock, paddock):
    race = paddock["race"]
    make_result(db, race, "winner_driver", "VER", revision=3)
    db.commit()

    with pytest.raises(ConflictError) as exc:
        settle_race(db, race.id, clock)

    assert exc.value.code == "NO_OUTCOMES"
    assert exc.value.extra["revision"] == 3


def test_resume_from_settling_state(db, clock, paddock):
    race = paddock["race"]
    make_bet(db, paddock["user"], paddock["league"], race, paddock["winner_market"], 40, odds=3.0)
    db.commit()

    with pytest.raises(ConflictError):
        settle_race(db, race.id, clock)

    make_result(db, race, "winning_selection_key", "max_verstappen_win", revision=1)
    db.commit()

    report = settle_race(db, race.id, clock)
    assert report.settled_bets == 1
    assert db.query(Race).filter(Race.id == race.id).one().status == RaceStatus.SETTLED.value


def test_league_winner_tie_break_on_settlement(db, clock, paddock):
    race = paddock["race"]
    other = make_user(db, user_id=USER_B, handle="lewis_fan")
    make_member(db, paddock["league"], other)
    # Mesmo lucro (+20) para os dois
    make_bet(db, other, paddock["league"], race, paddock["winner_market"], 10, odds=3.0)
    make_bet(db, paddock["user"], paddock["league"], race, paddock["winner_market"], 10, odds=3.0)
    make_result(db, race, "winning_selection_key", "max_verstappen_win")
    db.commit()

    settle_race(db, race.id, clock)

    winner = db.query(RaceLeagueWinner).filter(RaceLeagueWinner.league_id == paddock["league"].id).one()
    assert winner.winner_user_id == USER_A


def test_tie_on_summed_cent_stakes(db, clock, paddock):
    race = paddock["race"]
    other = make_user(db, user_id=USER_B, handle="lewis_fan")
    make_member(db, paddock["league"], other)
    # -0.1 + -0.2 e -0.3: mesmo prejuízo em fichas
    make_bet(db, paddock["user"], paddock["league"], race, paddock["podium_market"], 0.1)
    make_bet(db, paddock["user"], paddock["league"], race, paddock["podium_market"], 0.2)
    make_bet(db, other, paddock["league"], race, paddock["podium_market"], 0.3)
    make_result(db, race, "winning_selection_key", "max_verstappen_win")
    db.commit()

    settle_race(db, race.id, clock)

    winner = db.query(RaceLeagueWinner).filter(RaceLeagueWinner.league_id == paddock["league"].id).one()
    assert winner.winner_user_id == USER_A
    assert winner.race_points == -0.3


def test_aggregate_rounds_totals():
    totals = aggregate_by_league_user([
        SettledBet(league_id="l1", user_id="a", net_profit=-0.1),
        SettledBet(league_id="l1", user_id="a", net_profit=-0.2),
    ])
    assert totals[("l1", "a")] == -0.3


def test_settle_unknown_race(db, clock):
    with pytest.raises(NotFoundError):
        settle_race(db, "missing", clock)
