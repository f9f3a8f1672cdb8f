import logging
from datetime import datetime, timedelta
from typing import Any, Optional

import httpx
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from app.core.config import settings
from app.core.exceptions import ProviderError
from app.models.race import NON_DOWNGRADABLE_STATUSES, RaceStatus
from app.utils.text import slugify

logger = logging.getLogger(__name__)


class BaseProvider:
    """
    Cliente HTTP de um provedor externo. Subclasses só montam caminhos e
    validam o payload; rede, timeout e retry ficam aqui.
    """

    PROVIDER_NAME = "provider"
    BASE_URL = ""

    def __init__(
        self,
        http_client: Optional[httpx.Client] = None,
        timeout: Optional[float] = None,
        max_attempts: int = 3,
    ):
        self.timeout = timeout or settings.PROVIDER_TIMEOUT_SECONDS
        self.max_attempts = max_attempts
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.Client(timeout=self.timeout)

    def close(self) -> None:
        if self._owns_client:
            self.http_client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    def build_url(self, path: str) -> str:
        return f"{self.BASE_URL.rstrip('/')}/{path.lstrip('/')}"

    def get_json(self, path: str, params: Optional[dict] = None) -> Any:
        """
        GET com retry apenas para falhas de transporte (timeout, conexão).
        Respostas não-2xx viram ProviderError na hora.
        """
        url = self.build_url(path)
        # Parâmetros vazios são omitidos da query string
        query = {k: str(v) for k, v in (params or {}).items() if v is not None and v != ""}

        try:
            for attempt in Retrying(
                wait=wait_exponential(multiplier=1, min=1, max=8),
                stop=stop_after_attempt(self.max_attempts),
                retry=retry_if_exception_type(httpx.TransportError),
                reraise=True,
            ):
                with attempt:
                    logger.info(f"🌐 [{self.PROVIDER_NAME}] GET {url}")
                    response = self.http_client.get(url, params=query, timeout=self.timeout)
                    response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.warning(f"[{self.PROVIDER_NAME}] HTTP {e.response.status_code} em {url}")
            raise ProviderError(self.PROVIDER_NAME, e.response.status_code, url) from e
        except httpx.RequestError as e:
            logger.warning(f"[{self.PROVIDER_NAME}] falha de rede em {url}: {e}")
            raise ProviderError(self.PROVIDER_NAME, 503, url, detail=str(e)) from e

        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(self.PROVIDER_NAME, 502, url, detail="invalid JSON body") from e


# --- Regras comuns de calendário ---

def lock_time_for(start_time: datetime) -> datetime:
    return start_time - timedelta(hours=settings.LOCK_OFFSET_HOURS)


def schedule_status(lock_time: datetime, now: datetime, previous_status: Optional[str] = None) -> str:
    """Nunca rebaixa uma corrida que já está em liquidação ou liquidada."""
    if previous_status in NON_DOWNGRADABLE_STATUSES:
        return previous_status
    return RaceStatus.LOCKED.value if lock_time <= now else RaceStatus.SCHEDULED.value


def race_slug(season: int, name: str, round_number: int) -> str:
    base = slugify(name.lower().replace("grand prix", "").strip() or f"round-{round_number}")
    if not base:
        base = f"round-{round_number}"
    return f"{season}-{base}-grand-prix"
