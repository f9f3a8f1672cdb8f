from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api import deps
from app.core.clock import Clock
from app.models.user import User
from app.schemas.bet import BetSlip, MyBetsResponse, PlaceBetsResponse
from app.services import betting

router = APIRouter()

@router.post("/{race_id}/bets", response_model=PlaceBetsResponse, status_code=status.HTTP_201_CREATED)
def place_bets(
    race_id: str,
    slip: BetSlip,
    db: Session = Depends(deps.get_db),
    clock: Clock = Depends(deps.get_clock),
    current_user: User = Depends(deps.get_current_user)
):
    """
    Boletim de apostas da corrida para uma liga. As cotações são
    congeladas no momento da aposta.
    """
    return betting.place_bets(db, current_user.id, race_id, slip.league_id, slip.bets, clock=clock)

@router.get("/{race_id}/bets/me", response_model=MyBetsResponse)
def read_my_bets(
    race_id: str,
    league_id: str = Query(...),
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user)
):
    return betting.my_bets(db, current_user.id, race_id, league_id)
