from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api import deps
from app.core.clock import Clock
from app.schemas.league import LeaderboardResponse
from app.services.leaderboard import leaderboard_service

router = APIRouter()

@router.get("/leaderboard", response_model=LeaderboardResponse)
def get_leaderboard(
    season: Optional[int] = Query(None, ge=2000, le=2100),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(deps.get_db),
    clock: Clock = Depends(deps.get_clock)
):
    """Ranking global da temporada (soma de todas as ligas)."""
    target_season = season or clock.now().year
    return leaderboard_service.global_leaderboard(db, target_season, limit)
