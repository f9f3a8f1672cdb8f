from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
from datetime import datetime

class BetSlipItem(BaseModel):
    market_id: str
    stake: float = Field(gt=0, le=100)

    @field_validator('stake', mode='before')
    def round_stake(cls, v):
        # Fichas com no máximo 2 casas, arredondadas antes do gt=0
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return round(v, 2)
        return v

class BetSlip(BaseModel):
    league_id: str
    bets: List[BetSlipItem] = Field(min_length=1, max_length=20)

class AcceptedBet(BaseModel):
    bet_id: str
    market_id: str
    selection_key: str
    stake: float
    decimal_odds_snapshot: float
    status: str

class PlaceBetsResponse(BaseModel):
    race_id: str
    league_id: str
    accepted_bets: List[AcceptedBet]
    remaining_points: float

class BetResponse(BaseModel):
    id: str
    league_id: str
    race_id: str
    market_id: str
    selection_key: str
    stake: float
    decimal_odds_snapshot: float
    status: str
    gross_return: Optional[float] = None
    net_profit: Optional[float] = None
    placed_at: datetime
    settled_at: Optional[datetime] = None
    selection_label: Optional[str] = None
    market_type: Optional[str] = None

    class Config:
        from_attributes = True

class MyBetsResponse(BaseModel):
    league_id: str
    race_id: str
    bankroll: float
    pending_stake: float
    remaining_tokens: float
    bets: List[BetResponse]
