from pydantic import BaseModel
from datetime import datetime
from typing import List, Optional
from enum import Enum

class RaceStatus(str, Enum):
    SCHEDULED = "scheduled"
    LOCKED = "locked"
    SETTLING = "settling"
    SETTLED = "settled"

class RaceRow(BaseModel):
    """Linha normalizada vinda de um provedor de calendário, pronta para upsert por (season, round)."""
    season: int
    round: int
    slug: str
    name: str
    country: Optional[str] = None
    circuit: Optional[str] = None
    start_time: datetime
    lock_time: datetime
    status: RaceStatus
    result_revision: int = 0
    sportsdb_event_id: Optional[str] = None
    venue_name: Optional[str] = None
    city: Optional[str] = None
    timezone: str = "UTC"
    race_description: Optional[str] = None
    image_url: Optional[str] = None
    banner_url: Optional[str] = None
    poster_url: Optional[str] = None
    highlights_url: Optional[str] = None

class RaceResponse(BaseModel):
    id: str
    season: int
    round: int
    slug: str
    name: str
    country: Optional[str] = None
    circuit: Optional[str] = None
    start_time: datetime
    lock_time: datetime
    status: RaceStatus

    class Config:
        from_attributes = True

class RaceDetailResponse(RaceResponse):
    venue_name: Optional[str] = None
    city: Optional[str] = None
    timezone: Optional[str] = None
    race_description: Optional[str] = None
    image_url: Optional[str] = None
    banner_url: Optional[str] = None
    poster_url: Optional[str] = None
    highlights_url: Optional[str] = None

class MarketResponse(BaseModel):
    id: str
    race_id: str
    provider: str
    provider_market_id: str
    market_type: str
    selection_key: str
    selection_label: str
    decimal_odds: float
    american_odds: Optional[float] = None
    is_active: bool
    fetched_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class RaceMarketsResponse(BaseModel):
    race: RaceDetailResponse
    markets: List[MarketResponse]

class RaceListResponse(BaseModel):
    races: List[RaceResponse]
