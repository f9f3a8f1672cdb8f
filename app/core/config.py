from pydantic_settings import BaseSettings
from typing import Optional

class Settings(BaseSettings):
    # --- GERAIS ---
    API_V1_STR: str = "/api/v1"
    PROJECT_NAME: str = "Paddock Bets"
    SECRET_KEY: str = "change-me"
    LOG_LEVEL: str = "INFO"

    # --- BANCO DE DADOS ---
    SQLALCHEMY_DATABASE_URI: str = "sqlite:///./paddock.db"

    # --- URLs ---
    FRONTEND_URL: str = "http://localhost:3000"

    # --- ROTAS INTERNAS (CRON) ---
    # O primeiro segredo configurado vence.
    SETTLEMENT_CRON_SECRET: Optional[str] = None
    CRON_SECRET: Optional[str] = None

    # --- PROVEDORES ---
    F1_RESULTS_PROVIDER: str = "openf1"
    THESPORTSDB_API_KEY: str = "123"
    THESPORTSDB_LEAGUE_ID: str = "4370"
    ODDS_API_KEY: Optional[str] = None
    ODDS_API_SPORT_KEY: str = "motorsport_f1"
    ODDS_API_REGIONS: str = "us"
    ODDS_API_MARKETS: str = "outrights"
    ODDS_API_BOOKMAKER: Optional[str] = None
    PROVIDER_TIMEOUT_SECONDS: float = 15.0

    # --- REGRAS DO JOGO ---
    LOCK_OFFSET_HOURS: int = 2
    MAX_STAKE_PER_RACE: float = 100.0
    MAX_BETS_PER_REQUEST: int = 20

    # --- AGENDADOR ---
    SCHEDULER_ENABLED: bool = True
    SETTLEMENT_SWEEP_MINUTES: int = 15
    SETTLEMENT_SWEEP_LIMIT: int = 20

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def internal_secret(self) -> Optional[str]:
        return self.SETTLEMENT_CRON_SECRET or self.CRON_SECRET

settings = Settings()
