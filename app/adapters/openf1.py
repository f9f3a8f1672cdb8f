import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, ValidationError

from app.adapters.base import BaseProvider, lock_time_for, race_slug, schedule_status
from app.core.clock import to_naive_utc
from app.schemas.race import RaceRow
from app.utils.text import clean

logger = logging.getLogger(__name__)


class OpenF1Session(BaseModel):
    model_config = ConfigDict(extra="ignore")

    session_key: int
    session_name: Optional[str] = None
    country_name: Optional[str] = None
    date_start: Optional[datetime] = None
    date_end: Optional[datetime] = None
    location: Optional[str] = None
    meeting_name: Optional[str] = None

    @property
    def start(self) -> Optional[datetime]:
        return _naive(self.date_start)

    @property
    def end(self) -> Optional[datetime]:
        return _naive(self.date_end)

    @property
    def label(self) -> str:
        return " ".join(part for part in (self.meeting_name, self.location, self.country_name) if part)


class OpenF1SessionResult(BaseModel):
    model_config = ConfigDict(extra="ignore")

    driver_number: int
    position: Optional[int] = None
    dnf: Optional[bool] = None
    dns: Optional[bool] = None
    dsq: Optional[bool] = None


class OpenF1Driver(BaseModel):
    model_config = ConfigDict(extra="ignore")

    driver_number: int
    full_name: Optional[str] = None
    last_name: Optional[str] = None
    name_acronym: Optional[str] = None


class OpenF1Lap(BaseModel):
    model_config = ConfigDict(extra="ignore")

    driver_number: int
    lap_duration: Optional[float] = None


def _naive(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return to_naive_utc(value)


def _validate_rows(model, rows, provider: str) -> list:
    parsed = []
    for raw in rows if isinstance(rows, list) else []:
        try:
            parsed.append(model.model_validate(raw))
        except ValidationError:
            logger.warning(f"[{provider}] linha ignorada ({model.__name__}): {raw!r:.200}")
    return parsed


def is_session_finalized(session: OpenF1Session, now: datetime) -> bool:
    """Uma sessão só está finalizada quando o horário de término já passou."""
    end = session.end
    return end is not None and end <= now


def find_fastest_lap_driver(laps: List[OpenF1Lap]) -> Optional[int]:
    fastest_driver = None
    best_duration = float("inf")
    for lap in laps:
        if not lap.lap_duration or lap.lap_duration <= 0:
            continue
        if lap.lap_duration < best_duration:
            best_duration = lap.lap_duration
            fastest_driver = lap.driver_number
    return fastest_driver


def session_to_race_row(
    season: int,
    round_number: int,
    session: OpenF1Session,
    now: datetime,
    previous_status: Optional[str] = None,
    previous_result_revision: Optional[int] = None,
) -> Optional[RaceRow]:
    start = session.start
    if not start:
        return None

    meeting = clean(session.meeting_name)
    country = clean(session.country_name)
    if meeting and "grand prix" in meeting.lower():
        name = meeting
    else:
        name = " ".join(f"{meeting or country or f'Round {round_number}'} Grand Prix".split())

    lock_time = lock_time_for(start)
    return RaceRow(
        season=season,
        round=round_number,
        slug=race_slug(season, name, round_number),
        name=name,
        country=country,
        circuit=clean(session.location),
        start_time=start,
        lock_time=lock_time,
        status=schedule_status(lock_time, now, previous_status),
        result_revision=previous_result_revision or 0,
    )


class OpenF1Provider(BaseProvider):
    """Sessões, classificação final, pilotos e voltas (também é o calendário reserva)."""

    PROVIDER_NAME = "openf1"
    BASE_URL = "https://api.openf1.org/v1"

    def list_race_sessions(self, season: int, country: Optional[str] = None) -> List[OpenF1Session]:
        rows = self.get_json("/sessions", {"session_name": "Race", "year": season, "country_name": country})
        return _validate_rows(OpenF1Session, rows, self.PROVIDER_NAME)

    def season_schedule(self, season: int) -> List[OpenF1Session]:
        """Sessões de corrida da temporada, sem duplicatas e em ordem cronológica."""
        deduped: Dict[str, OpenF1Session] = {}
        for session in self.list_race_sessions(season):
            key = f"{session.meeting_name or ''}:{session.date_start or ''}:{session.country_name or ''}"
            deduped.setdefault(key, session)
        return sorted(deduped.values(), key=lambda s: s.start or datetime.max)

    def get_session_results(self, session_key: int) -> List[OpenF1SessionResult]:
        rows = self.get_json("/session_result", {"session_key": session_key})
        return _validate_rows(OpenF1SessionResult, rows, self.PROVIDER_NAME)

    def get_session_drivers(self, session_key: int) -> List[OpenF1Driver]:
        rows = self.get_json("/drivers", {"session_key": session_key})
        return _validate_rows(OpenF1Driver, rows, self.PROVIDER_NAME)

    def get_session_laps(self, session_key: int) -> List[OpenF1Lap]:
        rows = self.get_json("/laps", {"session_key": session_key})
        return _validate_rows(OpenF1Lap, rows, self.PROVIDER_NAME)
