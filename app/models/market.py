from sqlalchemy import Boolean, Column, String, DateTime, ForeignKey, Numeric, UniqueConstraint
from sqlalchemy.orm import relationship
from app.db.base import Base, new_id
import enum

class MarketType(str, enum.Enum):
    RACE_WINNER = "race_winner"
    PODIUM_FINISH = "podium_finish"
    TOP_6_FINISH = "top_6_finish"
    TOP_10_FINISH = "top_10_finish"
    FASTEST_LAP = "fastest_lap"

class Market(Base):
    """Uma seleção apostável (ex.: Verstappen vence) com a cotação do provedor."""
    __tablename__ = "markets"
    __table_args__ = (
        UniqueConstraint("provider", "provider_market_id", "selection_key", name="uq_markets_provider_selection"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    race_id = Column(String(36), ForeignKey("races.id"), nullable=False, index=True)

    provider = Column(String(50), nullable=False)
    provider_market_id = Column(String(255), nullable=False)
    market_type = Column(String(30), nullable=False)
    selection_key = Column(String(150), nullable=False)
    selection_label = Column(String(150), nullable=False)

    decimal_odds = Column(Numeric(10, 4, asdecimal=False), nullable=False)
    american_odds = Column(Numeric(10, 2, asdecimal=False), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    fetched_at = Column(DateTime, nullable=True)

    race = relationship("Race", back_populates="markets")
