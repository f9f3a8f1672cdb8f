from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging

from app.core.config import settings
from app.core.exceptions import PaddockError
from app.api.v1.router import api_router
from app.services.scheduler import start_scheduler, stop_scheduler

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Varredura de liquidação em background
    if settings.SCHEDULER_ENABLED:
        start_scheduler()
    else:
        logger.info("--- ⏸️ Scheduler desativado (SCHEDULER_ENABLED=false) ---")

    yield
    # Para o agendador ao desligar
    stop_scheduler()

app = FastAPI(
    title=settings.PROJECT_NAME,
    lifespan=lifespan
)

origins = [
    "http://localhost:3000",
    settings.FRONTEND_URL,
]
origins = list(set(origins))

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(PaddockError)
async def paddock_error_handler(request: Request, exc: PaddockError):
    """Exceções de domínio viram {"detail": {"error": ..., ...}} com o status da exceção."""
    if exc.http_status >= 500:
        logger.error(f"❌ {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=exc.http_status, content={"detail": exc.to_detail()})

app.include_router(api_router, prefix=settings.API_V1_STR)

@app.get("/")
def root():
    return {"message": f"API do {settings.PROJECT_NAME} está rodando!"}
