from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api import deps
from app.models.user import User
from app.schemas.league import StandingsResponse, TrophyCaseResponse
from app.services.leaderboard import leaderboard_service

router = APIRouter()

@router.get("/{league_id}/standings", response_model=StandingsResponse)
def get_standings(
    league_id: str,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user)
):
    return leaderboard_service.league_standings(db, league_id, current_user.id)

@router.get("/{league_id}/trophy-case", response_model=TrophyCaseResponse)
def get_trophy_case(
    league_id: str,
    db: Session = Depends(deps.get_db),
    current_user: User = Depends(deps.get_current_user)
):
    """Vencedores de cada corrida na liga, em ordem de largada."""
    return leaderboard_service.trophy_case(db, league_id, current_user.id)
