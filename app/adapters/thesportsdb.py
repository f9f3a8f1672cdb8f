import logging
from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from app.adapters.base import BaseProvider, lock_time_for, race_slug, schedule_status
from app.core.clock import to_naive_utc
from app.core.config import settings
from app.schemas.race import RaceRow
from app.utils.text import clean

logger = logging.getLogger(__name__)

DEFAULT_EVENT_TIME = "12:00:00"


class SportsDbEvent(BaseModel):
    """Evento de temporada do TheSportsDB. Todos os campos chegam como texto opcional."""
    model_config = ConfigDict(extra="ignore")

    idEvent: Optional[str] = None
    strEvent: Optional[str] = None
    strEventAlternate: Optional[str] = None
    dateEvent: Optional[str] = None
    strTime: Optional[str] = None
    strTimestamp: Optional[str] = None
    intRound: Optional[str] = None
    strCountry: Optional[str] = None
    strVenue: Optional[str] = None
    strCircuit: Optional[str] = None
    strCity: Optional[str] = None
    strDescriptionEN: Optional[str] = None
    strThumb: Optional[str] = None
    strBanner: Optional[str] = None
    strPoster: Optional[str] = None
    strVideo: Optional[str] = None

    @field_validator("*", mode="before")
    @classmethod
    def _as_text(cls, v):
        # O feed mistura números e strings (ex.: intRound)
        if v is None or isinstance(v, str):
            return v
        return str(v)


def _parse_iso(value: str) -> Optional[datetime]:
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return to_naive_utc(parsed)


def parse_event_start(event: SportsDbEvent) -> Optional[datetime]:
    """Prefere strTimestamp; senão combina dateEvent + strTime, assumindo UTC."""
    timestamp = clean(event.strTimestamp)
    if timestamp:
        parsed = _parse_iso(timestamp)
        if parsed:
            return parsed

    date = clean(event.dateEvent)
    if not date:
        return None

    time = clean(event.strTime) or DEFAULT_EVENT_TIME
    # strTime às vezes vem com sufixo de fuso ("14:00:00+00:00")
    return _parse_iso(f"{date}T{time}")


def parse_round(raw: Optional[str], fallback_round: int) -> int:
    try:
        parsed = int(str(raw).strip())
    except (TypeError, ValueError):
        return fallback_round
    return parsed if parsed > 0 else fallback_round


def event_to_race_row(
    season: int,
    fallback_round: int,
    event: SportsDbEvent,
    now: datetime,
    previous_status: Optional[str] = None,
    previous_result_revision: Optional[int] = None,
) -> Optional[RaceRow]:
    start = parse_event_start(event)
    if not start:
        return None

    round_number = parse_round(event.intRound, fallback_round)
    name = clean(event.strEvent) or clean(event.strEventAlternate) or f"Round {round_number} Grand Prix"
    lock_time = lock_time_for(start)

    return RaceRow(
        season=season,
        round=round_number,
        slug=race_slug(season, name, round_number),
        name=name,
        country=clean(event.strCountry),
        circuit=clean(event.strCircuit) or clean(event.strVenue),
        start_time=start,
        lock_time=lock_time,
        status=schedule_status(lock_time, now, previous_status),
        result_revision=previous_result_revision or 0,
        sportsdb_event_id=clean(event.idEvent),
        venue_name=clean(event.strVenue),
        city=clean(event.strCity),
        timezone="UTC",
        race_description=clean(event.strDescriptionEN),
        image_url=clean(event.strThumb),
        banner_url=clean(event.strBanner),
        poster_url=clean(event.strPoster),
        highlights_url=clean(event.strVideo),
    )


class TheSportsDbProvider(BaseProvider):
    """Calendário principal (com rodadas e metadados do circuito)."""

    PROVIDER_NAME = "thesportsdb"
    BASE_URL = "https://www.thesportsdb.com/api/v1/json"

    def __init__(self, api_key: Optional[str] = None, league_id: Optional[str] = None, **kwargs):
        super().__init__(**kwargs)
        self.api_key = api_key or settings.THESPORTSDB_API_KEY
        self.league_id = league_id or settings.THESPORTSDB_LEAGUE_ID

    def fetch_season_events(self, season: int) -> List[SportsDbEvent]:
        payload = self.get_json(f"{self.api_key}/eventsseason.php", {"id": self.league_id, "s": season})
        raw_events = (payload.get("events") if isinstance(payload, dict) else None) or []

        events = []
        for raw in raw_events:
            try:
                events.append(SportsDbEvent.model_validate(raw))
            except ValidationError:
                logger.warning(f"[thesportsdb] evento ignorado (payload inválido): {raw!r:.200}")
        return events
