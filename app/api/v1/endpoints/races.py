from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api import deps
from app.core.exceptions import NotFoundError
from app.models.market import Market
from app.models.race import Race
from app.schemas.race import RaceListResponse, RaceMarketsResponse, RaceStatus

router = APIRouter()

@router.get("/", response_model=RaceListResponse)
def list_races(
    status: Optional[RaceStatus] = Query(None),
    season: Optional[int] = Query(None, ge=2000, le=2100),
    limit: int = Query(25, ge=1, le=100),
    db: Session = Depends(deps.get_db)
):
    query = db.query(Race)
    if status:
        query = query.filter(Race.status == status.value)
    if season:
        query = query.filter(Race.season == season)

    races = query.order_by(Race.start_time.asc()).limit(limit).all()
    return {"races": races}

@router.get("/{race_id}/markets", response_model=RaceMarketsResponse)
def get_race_markets(
    race_id: str,
    include_inactive: bool = Query(False),
    db: Session = Depends(deps.get_db)
):
    """Detalhe da corrida + mercados (só os ativos, a menos que include_inactive)."""
    race = db.query(Race).filter(Race.id == race_id).first()
    if not race:
        raise NotFoundError("Race", race_id)

    query = db.query(Market).filter(Market.race_id == race_id)
    if not include_inactive:
        query = query.filter(Market.is_active == True)

    markets = query.order_by(Market.market_type.asc(), Market.selection_label.asc()).all()
    return {"race": race, "markets": markets}
