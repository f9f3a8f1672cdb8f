import json
import logging
from collections import OrderedDict
from dataclasses import dataclass
from typing import Dict, Iterable, List, Set, Tuple

from sqlalchemy.orm import Session

from app.core.clock import Clock, system_clock
from app.core.exceptions import ConflictError, NotFoundError
from app.models.bet import Bet, BetStatus
from app.models.league import LeagueMember, RaceLeagueWinner
from app.models.race import Race, RaceResult, RaceStatus
from app.schemas.settlement import SettlementReport

logger = logging.getLogger(__name__)

WINNING_VALUES = {"won", "win", "true", "1"}


@dataclass
class RaceOutcome:
    winning: Set[str]
    void: Set[str]

    @property
    def is_empty(self) -> bool:
        return not self.winning and not self.void


@dataclass
class SettledBet:
    league_id: str
    user_id: str
    net_profit: float


def parse_selection_list(raw: str) -> List[str]:
    """Aceita lista JSON ("[\"a\", \"b\"]") ou separada por vírgula ("a, b")."""
    trimmed = raw.strip()
    if not trimmed:
        return []

    if trimmed.startswith("[") and trimmed.endswith("]"):
        try:
            parsed = json.loads(trimmed)
        except ValueError:
            parsed = None
        if isinstance(parsed, list):
            return [str(item).strip() for item in parsed if str(item).strip()]

    return [item.strip() for item in trimmed.split(",") if item.strip()]


def extract_race_outcome(rows: Iterable[RaceResult]) -> RaceOutcome:
    """
    Lê as três codificações históricas dos fatos de resultado:
    winning_selection_key(s), void_selection_key(s) e selection:<key> = won/void.
    """
    winning: Set[str] = set()
    void: Set[str] = set()

    for row in rows:
        key = row.result_key.strip().lower()
        raw_value = (row.result_value or "").strip()
        value = raw_value.lower()

        if key == "winning_selection_key":
            if raw_value:
                winning.add(raw_value)
        elif key == "winning_selection_keys":
            winning.update(parse_selection_list(raw_value))
        elif key == "void_selection_key":
            if raw_value:
                void.add(raw_value)
        elif key == "void_selection_keys":
            void.update(parse_selection_list(raw_value))
        elif key.startswith("selection:"):
            selection_key = row.result_key.strip()[len("selection:"):]
            if not selection_key:
                continue
            if value in WINNING_VALUES:
                winning.add(selection_key)
            elif value == "void":
                void.add(selection_key)

    return RaceOutcome(winning=winning, void=void)


def compute_bet_settlement(selection_key: str, stake: float, odds: float, outcome: RaceOutcome) -> Tuple[str, float, float]:
    """(status, gross_return, net_profit). Void tem prioridade sobre vitória."""
    stake = float(stake)
    if selection_key in outcome.void:
        return BetStatus.VOID.value, stake, 0.0
    if selection_key in outcome.winning:
        gross_return = round(stake * float(odds), 4)
        return BetStatus.WON.value, gross_return, round(gross_return - stake, 4)
    return BetStatus.LOST.value, 0.0, -stake


def aggregate_by_league_user(rows: Iterable[SettledBet]) -> "OrderedDict[Tuple[str, str], float]":
    totals: "OrderedDict[Tuple[str, str], float]" = OrderedDict()
    for row in rows:
        key = (row.league_id, row.user_id)
        # 4 casas, como net_profit: somas iguais em fichas empatam de verdade
        totals[key] = round(totals.get(key, 0.0) + row.net_profit, 4)
    return totals


def choose_league_winners(totals: Dict[Tuple[str, str], float]) -> Dict[str, Tuple[str, float]]:
    """Maior lucro líquido na corrida por liga; empate fica com o menor user_id."""
    winners: Dict[str, Tuple[str, float]] = {}
    for (league_id, user_id), net_profit in totals.items():
        current = winners.get(league_id)
        if current is None:
            winners[league_id] = (user_id, net_profit)
            continue
        current_user, current_points = current
        if net_profit > current_points or (net_profit == current_points and user_id < current_user):
            winners[league_id] = (user_id, net_profit)
    return winners


def settle_race(db: Session, race_id: str, clock: Clock = system_clock) -> SettlementReport:
    """
    Liquida todas as apostas pendentes da corrida, atualiza a pontuação das
    ligas e grava o vencedor de cada liga.

    Idempotente: corrida já liquidada retorna 0 apostas. Se algo falhar depois
    da troca para "settling", a transação é desfeita e a corrida continua em
    "settling" para a próxima tentativa.
    """
    race = db.query(Race).filter(Race.id == race_id).first()
    if not race:
        raise NotFoundError("Race", race_id)

    if race.status == RaceStatus.SETTLED.value:
        return _already_settled(race_id)

    # --- FASE 1: TRAVA (scheduled/locked/settling -> settling) ---
    flipped = db.query(Race).filter(
        Race.id == race_id,
        Race.status != RaceStatus.SETTLED.value
    ).update({Race.status: RaceStatus.SETTLING.value}, synchronize_session=False)
    db.commit()

    if not flipped:
        # Outra execução terminou entre a leitura e a trava
        return _already_settled(race_id)

    logger.info(f"--- 🏁 Liquidando corrida {race_id} ---")

    try:
        report = _settle_locked_race(db, race_id, clock)
        db.commit()
    except Exception:
        db.rollback()
        logger.error(f"--- ❌ Liquidação interrompida (Race {race_id}), corrida segue em 'settling' ---", exc_info=True)
        raise

    logger.info(
        f"--- ✅ Corrida {race_id} liquidada: {report.settled_bets} apostas, "
        f"{report.league_winners_written} vencedores de liga (rev {report.result_revision}) ---"
    )
    return report


def _already_settled(race_id: str) -> SettlementReport:
    return SettlementReport(
        race_id=race_id,
        status=RaceStatus.SETTLED.value,
        settled_bets=0,
        message="Race already settled.",
    )


def _settle_locked_race(db: Session, race_id: str, clock: Clock) -> SettlementReport:
    # --- FASE 2: FATOS DA ÚLTIMA REVISÃO ---
    result_rows = db.query(RaceResult).filter(RaceResult.race_id == race_id).all()
    if not result_rows:
        raise ConflictError("NO_RESULTS", "No race results found. Cannot settle without outcomes.")

    latest_revision = max(row.revision for row in result_rows)
    outcome = extract_race_outcome(row for row in result_rows if row.revision == latest_revision)

    if outcome.is_empty:
        raise ConflictError(
            "NO_OUTCOMES",
            "No winning/void selections could be inferred from race_results.",
            revision=latest_revision,
            hint="Insert race_results rows using winning_selection_key(s), void_selection_key(s), or selection:<key> = won/void",
        )

    # --- FASE 3: APOSTAS PENDENTES ---
    pending_bets = db.query(Bet).filter(
        Bet.race_id == race_id,
        Bet.status == BetStatus.PENDING.value
    ).all()

    settled_at = clock.now()
    settled_rows: List[SettledBet] = []

    for bet in pending_bets:
        status, gross_return, net_profit = compute_bet_settlement(
            bet.selection_key, bet.stake, bet.decimal_odds_snapshot, outcome
        )

        # Só atualiza se ainda estiver pendente (outra liquidação pode ter passado antes)
        updated = db.query(Bet).filter(
            Bet.id == bet.id,
            Bet.status == BetStatus.PENDING.value
        ).update({
            Bet.status: status,
            Bet.gross_return: gross_return,
            Bet.net_profit: net_profit,
            Bet.settled_at: settled_at,
        }, synchronize_session=False)

        if not updated:
            logger.warning(f"Aposta {bet.id} já não estava pendente, ignorada.")
            continue

        settled_rows.append(SettledBet(league_id=bet.league_id, user_id=bet.user_id, net_profit=net_profit))

    # --- FASE 4: PONTOS DAS LIGAS (incremental) ---
    totals = aggregate_by_league_user(settled_rows)

    for (league_id, user_id), net_profit in totals.items():
        member = db.query(LeagueMember).filter(
            LeagueMember.league_id == league_id,
            LeagueMember.user_id == user_id
        ).first()
        if not member:
            raise NotFoundError("LeagueMember", f"{league_id}:{user_id}")

        member.season_points = round(float(member.season_points or 0) + net_profit, 4)
    db.flush()

    # --- FASE 5: VENCEDORES DA CORRIDA POR LIGA ---
    winners = choose_league_winners(totals)

    for league_id, (winner_user_id, race_points) in winners.items():
        existing = db.query(RaceLeagueWinner).filter(
            RaceLeagueWinner.race_id == race_id,
            RaceLeagueWinner.league_id == league_id
        ).first()

        if existing:
            existing.winner_user_id = winner_user_id
            existing.race_points = round(race_points, 4)
        else:
            db.add(RaceLeagueWinner(
                race_id=race_id,
                league_id=league_id,
                winner_user_id=winner_user_id,
                race_points=round(race_points, 4),
            ))
    db.flush()

    # --- FASE 6: FECHA A CORRIDA ---
    db.query(Race).filter(Race.id == race_id).update({
        Race.status: RaceStatus.SETTLED.value,
        Race.result_revision: latest_revision,
    }, synchronize_session=False)

    return SettlementReport(
        race_id=race_id,
        status=RaceStatus.SETTLED.value,
        settled_bets=len(settled_rows),
        winning_selection_keys=sorted(outcome.winning),
        void_selection_keys=sorted(outcome.void),
        result_revision=latest_revision,
        league_winners_written=len(winners),
    )
