import logging
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from app.adapters.odds_api import (
    OddsApiEvent,
    OddsApiProvider,
    classify_market,
    is_acceptable_price,
    selection_key_for_outcome,
)
from app.adapters.openf1 import (
    OpenF1Provider,
    find_fastest_lap_driver,
    is_session_finalized,
    session_to_race_row,
)
from app.adapters.thesportsdb import TheSportsDbProvider, event_to_race_row, parse_round
from app.core.clock import Clock, system_clock, to_naive_utc
from app.core.config import settings
from app.core.exceptions import NotFoundError, ProviderConfigError, ProviderError
from app.models.market import Market
from app.models.race import Race, RaceResult, RaceStatus
from app.schemas.race import RaceRow
from app.schemas.settlement import IngestResultsOutcome, RaceMatchDiagnostic, ScheduleIngestSummary
from app.services.matcher import match_odds_event, match_result_session
from app.services.outcomes import build_driver_alias_map, evaluate_outcome, selection_to_driver_number

logger = logging.getLogger(__name__)

ODDS_PROVIDER = "the-odds-api"
ODDS_CANDIDATE_STATUSES = (RaceStatus.SCHEDULED.value, RaceStatus.LOCKED.value)


# ==========================================
# CALENDÁRIO
# ==========================================

def _schedule_from_sportsdb(provider: TheSportsDbProvider, season: int, existing: Dict[int, Race], now) -> List[RaceRow]:
    rows = []
    for index, event in enumerate(provider.fetch_season_events(season)):
        round_number = parse_round(event.intRound, index + 1)
        previous = existing.get(round_number)
        row = event_to_race_row(
            season,
            round_number,
            event,
            now,
            previous_status=previous.status if previous else None,
            previous_result_revision=previous.result_revision if previous else None,
        )
        if row:
            rows.append(row)
    return rows


def _schedule_from_openf1(provider: OpenF1Provider, season: int, existing: Dict[int, Race], now) -> List[RaceRow]:
    rows = []
    # Sem rodada no feed: a ordem cronológica define a rodada
    for index, session in enumerate(provider.season_schedule(season)):
        round_number = index + 1
        previous = existing.get(round_number)
        row = session_to_race_row(
            season,
            round_number,
            session,
            now,
            previous_status=previous.status if previous else None,
            previous_result_revision=previous.result_revision if previous else None,
        )
        if row:
            rows.append(row)
    return rows


def upsert_races(db: Session, rows: List[RaceRow], existing: Dict[int, Race]) -> int:
    """Upsert por (season, round). Status e revisão já vêm preservados na linha."""
    for row in rows:
        data = row.model_dump()
        data["status"] = row.status.value
        race = existing.get(row.round)
        if race:
            for field, value in data.items():
                setattr(race, field, value)
        else:
            race = Race(**data)
            db.add(race)
            existing[row.round] = race
    db.flush()
    return len(rows)


def ingest_schedule_and_odds(
    db: Session,
    season: int,
    clock: Clock = system_clock,
    sportsdb: Optional[TheSportsDbProvider] = None,
    openf1: Optional[OpenF1Provider] = None,
    odds: Optional[OddsApiProvider] = None,
) -> ScheduleIngestSummary:
    """
    Sincroniza o calendário da temporada (TheSportsDB, com OpenF1 de reserva)
    e, se houver chave da The Odds API, as cotações das corridas abertas.
    """
    now = clock.now()
    logger.info(f"--- 📅 Sincronizando calendário {season} ---")

    existing = {race.round: race for race in db.query(Race).filter(Race.season == season).all()}

    schedule_provider = "thesportsdb"
    sportsdb = sportsdb or TheSportsDbProvider()
    try:
        rows = _schedule_from_sportsdb(sportsdb, season, existing, now)
    except ProviderError as e:
        logger.warning(f"TheSportsDB indisponível, tentando OpenF1: {e}")
        rows = []

    if not rows:
        schedule_provider = "openf1"
        rows = _schedule_from_openf1(openf1 or OpenF1Provider(), season, existing, now)

    try:
        schedule_upserted = upsert_races(db, rows, existing)
        db.commit()
    except Exception:
        db.rollback()
        logger.error(f"❌ Falha ao gravar calendário {season}", exc_info=True)
        raise

    logger.info(f"✅ {schedule_upserted} corridas sincronizadas via {schedule_provider}")

    summary = ScheduleIngestSummary(
        season=season,
        schedule_provider=schedule_provider,
        schedule_upserted=schedule_upserted,
        odds_ingested=False,
    )

    if odds is None:
        if not settings.ODDS_API_KEY:
            summary.message = "ODDS_API_KEY not configured. Schedule synced only."
            return summary
        odds = OddsApiProvider(settings.ODDS_API_KEY)

    return ingest_odds(db, season, summary, odds, now)


# ==========================================
# COTAÇÕES
# ==========================================

def ingest_odds(db: Session, season: int, summary: ScheduleIngestSummary, odds: OddsApiProvider, now) -> ScheduleIngestSummary:
    sport_key = settings.ODDS_API_SPORT_KEY
    preferred_bookmaker = settings.ODDS_API_BOOKMAKER

    try:
        events = odds.fetch_events(sport_key)
    except ProviderError as e:
        logger.warning(f"Lista de eventos de odds indisponível: {e}")
        summary.message = f"Failed to list odds events: {e}"
        return summary

    candidate_races = db.query(Race).filter(
        Race.season == season,
        Race.status.in_(ODDS_CANDIDATE_STATUSES)
    ).order_by(Race.start_time.asc()).all()

    matches: List[RaceMatchDiagnostic] = []
    rows_by_race: Dict[str, List[dict]] = {}

    for race in candidate_races:
        diagnostic, rows = _odds_rows_for_race(odds, race, events, sport_key, preferred_bookmaker, now)
        matches.append(diagnostic)
        if rows:
            rows_by_race[race.id] = rows

    try:
        # Uma única geração ativa por provedor e corrida
        if rows_by_race:
            db.query(Market).filter(
                Market.race_id.in_(list(rows_by_race.keys())),
                Market.provider == ODDS_PROVIDER
            ).update({Market.is_active: False}, synchronize_session=False)

        upserted = 0
        for rows in rows_by_race.values():
            for row in rows:
                upsert_market(db, row)
                upserted += 1
        db.commit()
    except Exception:
        db.rollback()
        logger.error(f"❌ Falha ao gravar cotações {season}", exc_info=True)
        raise

    logger.info(f"✅ {upserted} cotações gravadas para {len(rows_by_race)} corridas")

    summary.odds_ingested = True
    summary.odds_rows_upserted = upserted
    summary.races_considered_for_odds = len(candidate_races)
    summary.race_matches = matches
    return summary


def _odds_rows_for_race(odds: OddsApiProvider, race: Race, events: List[OddsApiEvent], sport_key, preferred_bookmaker, now):
    match = match_odds_event(race, events)
    if not match:
        return RaceMatchDiagnostic(race_id=race.id, skipped_reason="No matching odds event found"), []

    event = match.candidate
    try:
        event_odds = odds.fetch_event_odds(
            sport_key,
            event.id,
            regions=settings.ODDS_API_REGIONS,
            markets=settings.ODDS_API_MARKETS,
            bookmaker=preferred_bookmaker,
        )
    except ProviderError as e:
        logger.warning(f"Odds do evento {event.id} indisponíveis (Race {race.id}): {e}")
        return RaceMatchDiagnostic(race_id=race.id, event_id=event.id, skipped_reason=str(e)), []

    if preferred_bookmaker:
        bookmaker = next((b for b in event_odds.bookmakers if b.key == preferred_bookmaker), None)
    else:
        bookmaker = event_odds.bookmakers[0] if event_odds.bookmakers else None

    if not bookmaker:
        return RaceMatchDiagnostic(race_id=race.id, event_id=event.id, skipped_reason="No bookmaker in response"), []

    rows = []
    for market in bookmaker.markets:
        market_type, _ = classify_market(market.key)
        fetched_at = to_naive_utc(market.last_update) if market.last_update else now

        for outcome in market.outcomes:
            if not is_acceptable_price(outcome.price):
                continue
            rows.append({
                "race_id": race.id,
                "provider": ODDS_PROVIDER,
                "provider_market_id": f"{event.id}:{bookmaker.key}:{market.key}",
                "market_type": market_type.value,
                "selection_key": selection_key_for_outcome(outcome.name, market.key),
                "selection_label": outcome.name,
                "decimal_odds": round(outcome.price, 4),
                "american_odds": None,
                "is_active": True,
                "fetched_at": fetched_at,
            })

    return RaceMatchDiagnostic(race_id=race.id, event_id=event.id, markets_added=len(rows)), rows


def upsert_market(db: Session, row: dict) -> Market:
    market = db.query(Market).filter(
        Market.provider == row["provider"],
        Market.provider_market_id == row["provider_market_id"],
        Market.selection_key == row["selection_key"]
    ).first()

    if market:
        for field, value in row.items():
            setattr(market, field, value)
    else:
        market = Market(**row)
        db.add(market)
    db.flush()
    return market


# ==========================================
# RESULTADOS
# ==========================================

def ingest_results(
    db: Session,
    race_id: str,
    clock: Clock = system_clock,
    openf1: Optional[OpenF1Provider] = None,
) -> IngestResultsOutcome:
    """
    Casa a corrida com a sessão do OpenF1, avalia cada mercado e grava os
    fatos `selection:<key>` numa nova revisão. Sessão ainda não finalizada
    devolve finalized=False (não é erro).
    """
    provider_name = (settings.F1_RESULTS_PROVIDER or "openf1").lower()
    if provider_name != "openf1":
        raise ProviderConfigError(provider_name, f"Unsupported F1_RESULTS_PROVIDER: {provider_name}")

    race = db.query(Race).filter(Race.id == race_id).first()
    if not race:
        raise NotFoundError("Race", race_id)

    openf1 = openf1 or OpenF1Provider()
    now = clock.now()

    sessions = _candidate_sessions(openf1, race)
    match = match_result_session(race, sessions)
    if not match:
        raise NotFoundError("OpenF1 session", race_id)

    session = match.candidate
    if not is_session_finalized(session, now):
        logger.info(f"⏳ Sessão {session.session_key} ainda não finalizada (Race {race_id})")
        return IngestResultsOutcome(
            race_id=race_id,
            ingested=False,
            finalized=False,
            session_key=session.session_key,
            message="OpenF1 race session is not finalized yet.",
        )

    session_results = openf1.get_session_results(session.session_key)
    if not session_results:
        logger.info(f"⏳ Sessão {session.session_key} sem classificação ainda (Race {race_id})")
        return IngestResultsOutcome(
            race_id=race_id,
            ingested=False,
            finalized=False,
            session_key=session.session_key,
            message="OpenF1 has no session_result rows yet.",
        )

    drivers = openf1.get_session_drivers(session.session_key)
    try:
        laps = openf1.get_session_laps(session.session_key)
    except ProviderError as e:
        # Sem voltas, mercados de volta mais rápida ficam void
        logger.warning(f"Voltas indisponíveis (sessão {session.session_key}): {e}")
        laps = []

    markets = db.query(Market).filter(Market.race_id == race_id).all()
    if not markets:
        return IngestResultsOutcome(
            race_id=race_id,
            ingested=True,
            finalized=True,
            session_key=session.session_key,
            revision=race.result_revision,
            message="Race has no markets; nothing to record.",
        )

    results_by_driver = {row.driver_number: row for row in session_results}
    alias_map = build_driver_alias_map(drivers)
    fastest_lap_driver = find_fastest_lap_driver(laps)
    next_revision = (race.result_revision or 0) + 1
    source = f"openf1:session_result:{session.session_key}"

    try:
        for market in markets:
            driver_number = selection_to_driver_number(market.selection_key, alias_map)
            outcome = evaluate_outcome(
                market.selection_key,
                market.market_type,
                driver_number,
                results_by_driver,
                fastest_lap_driver,
            )
            db.add(RaceResult(
                race_id=race_id,
                result_key=f"selection:{market.selection_key}",
                result_value=outcome.value,
                source=source,
                revision=next_revision,
            ))

        race.result_revision = next_revision
        db.commit()
    except Exception:
        db.rollback()
        logger.error(f"❌ Falha ao gravar resultados (Race {race_id})", exc_info=True)
        raise

    logger.info(f"✅ Resultados da corrida {race_id} gravados (rev {next_revision}, {len(markets)} linhas)")

    return IngestResultsOutcome(
        race_id=race_id,
        ingested=True,
        finalized=True,
        session_key=session.session_key,
        revision=next_revision,
        inserted_rows=len(markets),
    )


def _candidate_sessions(openf1: OpenF1Provider, race: Race):
    """Sessões do país da corrida; se vier vazio, todas as corridas da temporada."""
    try:
        sessions = []
        if race.country:
            sessions = openf1.list_race_sessions(race.season, race.country)
        if not sessions:
            sessions = openf1.list_race_sessions(race.season)
        return sessions
    except ProviderError as e:
        logger.warning(f"Sessões do OpenF1 indisponíveis (Race {race.id}): {e}")
        return []
