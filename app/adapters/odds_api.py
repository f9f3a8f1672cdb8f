import logging
import math
from datetime import datetime
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, ValidationError

from app.adapters.base import BaseProvider
from app.core.exceptions import ProviderConfigError, ProviderError
from app.models.market import MarketType
from app.utils.text import slugify

logger = logging.getLogger(__name__)


class OddsApiEvent(BaseModel):
    """Evento "grosso" da The Odds API: só times/horário, sem vínculo direto com a corrida."""
    model_config = ConfigDict(extra="ignore")

    id: str
    sport_key: Optional[str] = None
    sport_title: Optional[str] = None
    commence_time: datetime
    home_team: Optional[str] = None
    away_team: Optional[str] = None

    @property
    def label(self) -> str:
        return " ".join(part for part in (self.home_team, self.away_team) if part)


class OddsApiOutcome(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    price: Optional[float] = None


class OddsApiMarket(BaseModel):
    model_config = ConfigDict(extra="ignore")

    key: str
    last_update: Optional[datetime] = None
    outcomes: List[OddsApiOutcome] = []


class OddsApiBookmaker(BaseModel):
    model_config = ConfigDict(extra="ignore")

    key: str
    title: Optional[str] = None
    markets: List[OddsApiMarket] = []


class OddsApiEventOdds(OddsApiEvent):
    bookmakers: List[OddsApiBookmaker] = []


# (motivo no key do mercado, tipo interno, sufixo da selection_key)
_MARKET_MOTIFS = (
    (("podium",), MarketType.PODIUM_FINISH, "_podium"),
    (("fastest",), MarketType.FASTEST_LAP, "_fastest_lap"),
    (("top_6", "top6"), MarketType.TOP_6_FINISH, "_top6"),
    (("top_10", "top10"), MarketType.TOP_10_FINISH, "_top10"),
)


def classify_market(market_key: str) -> Tuple[MarketType, str]:
    key = market_key.lower()
    for motifs, market_type, suffix in _MARKET_MOTIFS:
        if any(motif in key for motif in motifs):
            return market_type, suffix
    return MarketType.RACE_WINNER, "_win"


def selection_key_for_outcome(outcome_name: str, market_key: str) -> str:
    _, suffix = classify_market(market_key)
    return f"{slugify(outcome_name, '_')}{suffix}"


def is_acceptable_price(price: Optional[float]) -> bool:
    # Cotação <= 1 só aparece em feed quebrado
    return price is not None and math.isfinite(price) and price > 1


class OddsApiProvider(BaseProvider):
    PROVIDER_NAME = "the-odds-api"
    BASE_URL = "https://api.the-odds-api.com/v4"

    def __init__(self, api_key: Optional[str], **kwargs):
        if not api_key:
            raise ProviderConfigError(self.PROVIDER_NAME, "ODDS_API_KEY is not configured.")
        super().__init__(**kwargs)
        self.api_key = api_key

    def fetch_events(self, sport_key: str) -> List[OddsApiEvent]:
        rows = self.get_json(f"/sports/{sport_key}/events", {"apiKey": self.api_key})
        events = []
        for raw in rows if isinstance(rows, list) else []:
            try:
                events.append(OddsApiEvent.model_validate(raw))
            except ValidationError:
                logger.warning(f"[the-odds-api] evento ignorado: {raw!r:.200}")
        return events

    def fetch_event_odds(
        self,
        sport_key: str,
        event_id: str,
        regions: str,
        markets: str,
        bookmaker: Optional[str] = None,
    ) -> OddsApiEventOdds:
        url_path = f"/sports/{sport_key}/events/{event_id}/odds"
        payload = self.get_json(
            url_path,
            {
                "apiKey": self.api_key,
                "regions": regions,
                "markets": markets,
                "oddsFormat": "decimal",
                "bookmakers": bookmaker,
            },
        )
        try:
            return OddsApiEventOdds.model_validate(payload)
        except ValidationError as e:
            raise ProviderError(self.PROVIDER_NAME, 502, self.build_url(url_path), detail="malformed odds payload") from e
