from typing import Optional
from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.api import deps
from app.core.clock import Clock
from app.schemas.settlement import (
    IngestResultsOutcome,
    ScheduleIngestSummary,
    SettlementHealth,
    SettlementReport,
    SweepSummary,
)
from app.services.ingestion import ingest_results, ingest_schedule_and_odds
from app.services.leaderboard import leaderboard_service
from app.services.scheduler import run_settlement_sweep
from app.services.settlement import settle_race

# Todas as rotas daqui exigem o segredo interno
router = APIRouter(dependencies=[Depends(deps.require_internal_secret)])

# --- CRON ---

@router.get("/cron/ingest-races-odds", response_model=ScheduleIngestSummary)
def cron_ingest_races_odds(
    season: Optional[int] = Query(None, ge=2000, le=2100),
    db: Session = Depends(deps.get_db),
    clock: Clock = Depends(deps.get_clock)
):
    target_season = season or clock.now().year
    return ingest_schedule_and_odds(db, target_season, clock=clock)

@router.get("/cron/settle-races", response_model=SweepSummary)
def cron_settle_races(
    db: Session = Depends(deps.get_db),
    clock: Clock = Depends(deps.get_clock)
):
    return run_settlement_sweep(db, clock=clock)

@router.get("/cron/settle-races/health", response_model=SettlementHealth)
def cron_settle_races_health(
    db: Session = Depends(deps.get_db),
    clock: Clock = Depends(deps.get_clock)
):
    return leaderboard_service.settlement_health(db, clock.now())

# --- POR CORRIDA ---

@router.post("/races/{race_id}/ingest-results", response_model=IngestResultsOutcome)
def race_ingest_results(
    race_id: str,
    db: Session = Depends(deps.get_db),
    clock: Clock = Depends(deps.get_clock)
):
    """202 enquanto a sessão não estiver finalizada (tente de novo depois)."""
    outcome = ingest_results(db, race_id, clock=clock)
    if not outcome.finalized:
        return JSONResponse(status_code=202, content=outcome.model_dump(mode="json"))
    return outcome

@router.post("/races/{race_id}/settle", response_model=SettlementReport)
def race_settle(
    race_id: str,
    db: Session = Depends(deps.get_db),
    clock: Clock = Depends(deps.get_clock)
):
    return settle_race(db, race_id, clock=clock)
