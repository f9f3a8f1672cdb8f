from fastapi import APIRouter
from app.api.v1.endpoints import bets, internal, leagues, races, ranking

api_router = APIRouter()

api_router.include_router(races.router, prefix="/races", tags=["races"])
api_router.include_router(bets.router, prefix="/races", tags=["bets"])
api_router.include_router(leagues.router, prefix="/leagues", tags=["leagues"])
api_router.include_router(ranking.router, prefix="/ranking", tags=["ranking"])
api_router.include_router(internal.router, prefix="/internal", tags=["internal"])
