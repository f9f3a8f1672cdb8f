from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy.orm import Session
from typing import Optional
import logging
import pytz
import time

from app.adapters.openf1 import OpenF1Provider
from app.core.clock import Clock, system_clock
from app.core.config import settings
from app.core.exceptions import PaddockError
from app.db.session import SessionLocal
from app.models.race import Race, RaceStatus
from app.schemas.settlement import SweepRaceSummary, SweepSummary
from app.services.ingestion import ingest_results
from app.services.settlement import settle_race

# Configuração de Logs
logger = logging.getLogger(__name__)

# Inicializa o agendador (UTC, mesmo formato das datas do banco)
scheduler = BackgroundScheduler(timezone=pytz.utc)

SWEEP_JOB_ID = "settlement_sweep"


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


def run_settlement_sweep(
    db: Session,
    clock: Clock = system_clock,
    limit: Optional[int] = None,
    openf1: Optional[OpenF1Provider] = None,
) -> SweepSummary:
    """
    Varre corridas travadas/em liquidação que já largaram (mais antigas
    primeiro): ingere o resultado e, se finalizado, liquida na sequência.

    Erros de domínio (provedor fora, corrida sem fatos...) ficam no resumo da
    corrida e a varredura segue; qualquer outra exceção sobe.
    """
    sweep_started = time.perf_counter()
    now = clock.now()
    limit = limit or settings.SETTLEMENT_SWEEP_LIMIT
    openf1 = openf1 or OpenF1Provider()

    candidates = db.query(Race.id).filter(
        Race.status.in_([RaceStatus.LOCKED.value, RaceStatus.SETTLING.value]),
        Race.start_time <= now
    ).order_by(Race.start_time.asc()).limit(limit).all()

    logger.info(f"⏱️ [Sweep] {len(candidates)} corridas candidatas")

    summary = []
    for (race_id,) in candidates:
        summary.append(_sweep_race(db, race_id, clock, openf1))

    result = SweepSummary(
        ran_at=now,
        candidate_count=len(candidates),
        settled_count=sum(1 for row in summary if row.settled),
        pending_finalization_count=sum(1 for row in summary if row.finalized is False),
        failures=sum(1 for row in summary if row.error),
        duration_ms=_elapsed_ms(sweep_started),
        summary=summary,
    )

    logger.info(
        f"--- ✅ [Sweep] liquidadas={result.settled_count} "
        f"aguardando={result.pending_finalization_count} falhas={result.failures} "
        f"({result.duration_ms} ms) ---"
    )
    return result


def _sweep_race(db: Session, race_id: str, clock: Clock, openf1: OpenF1Provider) -> SweepRaceSummary:
    started = time.perf_counter()

    # --- 1. INGESTÃO ---
    try:
        outcome = ingest_results(db, race_id, clock=clock, openf1=openf1)
    except PaddockError as e:
        logger.warning(f"[Sweep] ingestão falhou (Race {race_id}): {e}")
        return SweepRaceSummary(
            race_id=race_id,
            ingest_status=e.http_status,
            error=str(e),
            duration_ms=_elapsed_ms(started),
        )

    if not outcome.finalized:
        return SweepRaceSummary(
            race_id=race_id,
            ingest_status=202,
            finalized=False,
            duration_ms=_elapsed_ms(started),
        )

    # --- 2. LIQUIDAÇÃO ---
    try:
        report = settle_race(db, race_id, clock=clock)
    except PaddockError as e:
        logger.warning(f"[Sweep] liquidação falhou (Race {race_id}): {e}")
        return SweepRaceSummary(
            race_id=race_id,
            ingest_status=200,
            settle_status=e.http_status,
            finalized=True,
            error=str(e),
            duration_ms=_elapsed_ms(started),
        )

    return SweepRaceSummary(
        race_id=race_id,
        ingest_status=200,
        settle_status=200,
        finalized=True,
        settled=True,
        settled_bets=report.settled_bets,
        duration_ms=_elapsed_ms(started),
    )


def settlement_sweep_job():
    """Job do agendador: abre a própria sessão e nunca derruba o scheduler."""
    db = SessionLocal()
    try:
        run_settlement_sweep(db)
    except Exception as e:
        logger.error(f"❌ Erro Scheduler: {e}", exc_info=True)
        db.rollback()
    finally:
        db.close()


def start_scheduler():
    if not scheduler.running:
        scheduler.add_job(
            settlement_sweep_job,
            'interval',
            minutes=settings.SETTLEMENT_SWEEP_MINUTES,
            id=SWEEP_JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True,
        )
        scheduler.start()
        logger.info(f"--- 🕒 Scheduler Iniciado ({settings.SETTLEMENT_SWEEP_MINUTES} min) ---")


def stop_scheduler():
    if scheduler.running:
        scheduler.shutdown()
