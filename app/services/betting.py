import logging
from typing import List

from sqlalchemy.orm import Session

from app.core.clock import Clock, system_clock
from app.core.config import settings
from app.core.exceptions import ConflictError, NotFoundError
from app.core.security import ensure_league_member
from app.models.bet import Bet, BetStatus
from app.models.market import Market
from app.models.race import Race, RaceStatus
from app.schemas.bet import AcceptedBet, BetResponse, BetSlipItem, MyBetsResponse, PlaceBetsResponse

logger = logging.getLogger(__name__)


def pending_stake(db: Session, user_id: str, league_id: str, race_id: str) -> float:
    bets = db.query(Bet.stake).filter(
        Bet.user_id == user_id,
        Bet.league_id == league_id,
        Bet.race_id == race_id,
        Bet.status == BetStatus.PENDING.value
    ).all()
    return round(sum(float(stake) for (stake,) in bets), 2)


def place_bets(
    db: Session,
    user_id: str,
    race_id: str,
    league_id: str,
    items: List[BetSlipItem],
    clock: Clock = system_clock,
) -> PlaceBetsResponse:
    """
    Registra um boletim de apostas. Tudo ou nada: qualquer regra violada
    rejeita o boletim inteiro sem inserir nada.
    """
    max_stake = settings.MAX_STAKE_PER_RACE

    if not items or len(items) > settings.MAX_BETS_PER_REQUEST:
        raise ConflictError(
            "INVALID_BET_COUNT",
            f"Between 1 and {settings.MAX_BETS_PER_REQUEST} bets per request.",
        )

    market_ids = [item.market_id for item in items]
    if len(set(market_ids)) != len(market_ids):
        raise ConflictError("DUPLICATE_MARKET", "Duplicate market selections are not allowed.")

    # 1. Corrida aberta?
    race = db.query(Race).filter(Race.id == race_id).first()
    if not race:
        raise NotFoundError("Race", race_id)

    now = clock.now()
    if race.status != RaceStatus.SCHEDULED.value or race.lock_time <= now:
        raise ConflictError("RACE_LOCKED", "Betting is closed for this race.")

    try:
        # 2. Participação travada: serializa boletins do mesmo usuário na liga
        ensure_league_member(db, league_id, user_id, lock=True)

        # 3. Mercados da corrida e ativos
        markets = db.query(Market).filter(
            Market.race_id == race_id,
            Market.id.in_(market_ids)
        ).all()
        market_map = {market.id: market for market in markets}

        for item in items:
            market = market_map.get(item.market_id)
            if not market or not market.is_active:
                raise ConflictError("MARKET_NOT_FOUND", "Market not found or inactive.", market_id=item.market_id)

        # 4. Limite de fichas por corrida
        existing = pending_stake(db, user_id, league_id, race_id)
        requested = round(sum(item.stake for item in items), 2)

        if round(existing + requested, 2) > max_stake:
            raise ConflictError(
                "STAKE_LIMIT_EXCEEDED",
                "Stake limit per race exceeded.",
                existing_stake=existing,
                requested_stake=requested,
                max_stake=max_stake,
            )

        # 5. Inserção com snapshot da cotação
        new_bets = []
        for item in items:
            market = market_map[item.market_id]
            bet = Bet(
                user_id=user_id,
                league_id=league_id,
                race_id=race_id,
                market_id=market.id,
                selection_key=market.selection_key,
                stake=round(item.stake, 2),
                decimal_odds_snapshot=float(market.decimal_odds),
                status=BetStatus.PENDING.value,
                placed_at=now,
            )
            db.add(bet)
            new_bets.append(bet)

        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"🎟️ {len(new_bets)} apostas de {user_id} na corrida {race_id} (liga {league_id})")

    return PlaceBetsResponse(
        race_id=race_id,
        league_id=league_id,
        accepted_bets=[
            AcceptedBet(
                bet_id=bet.id,
                market_id=bet.market_id,
                selection_key=bet.selection_key,
                stake=bet.stake,
                decimal_odds_snapshot=bet.decimal_odds_snapshot,
                status=bet.status,
            )
            for bet in new_bets
        ],
        remaining_points=round(max_stake - (existing + requested), 2),
    )


def my_bets(db: Session, user_id: str, race_id: str, league_id: str) -> MyBetsResponse:
    ensure_league_member(db, league_id, user_id)

    bets = db.query(Bet).filter(
        Bet.user_id == user_id,
        Bet.league_id == league_id,
        Bet.race_id == race_id
    ).order_by(Bet.placed_at.desc()).all()

    rows = []
    for bet in bets:
        row = BetResponse.model_validate(bet)
        if bet.market:
            row.selection_label = bet.market.selection_label
            row.market_type = bet.market.market_type
        rows.append(row)

    bankroll = settings.MAX_STAKE_PER_RACE
    pending = round(sum(row.stake for row in rows if row.status == BetStatus.PENDING.value), 2)

    return MyBetsResponse(
        league_id=league_id,
        race_id=race_id,
        bankroll=bankroll,
        pending_stake=pending,
        remaining_tokens=round(bankroll - pending, 2),
        bets=rows,
    )
