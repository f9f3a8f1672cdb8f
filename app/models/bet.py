from sqlalchemy import Column, String, ForeignKey, DateTime, Numeric
from sqlalchemy.orm import relationship
from app.db.base import Base, new_id
import enum

class BetStatus(str, enum.Enum):
    PENDING = "pending"
    WON = "won"
    LOST = "lost"
    VOID = "void"

class Bet(Base):
    """Aposta de um usuário em um mercado, dentro de uma liga, para uma corrida."""
    __tablename__ = "bets"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    league_id = Column(String(36), ForeignKey("leagues.id"), nullable=False, index=True)
    race_id = Column(String(36), ForeignKey("races.id"), nullable=False, index=True)
    market_id = Column(String(36), ForeignKey("markets.id"), nullable=False)

    selection_key = Column(String(150), nullable=False)
    stake = Column(Numeric(10, 2, asdecimal=False), nullable=False)

    # Snapshot da cotação no momento da aposta (imutável)
    decimal_odds_snapshot = Column(Numeric(10, 4, asdecimal=False), nullable=False)

    status = Column(String(20), default=BetStatus.PENDING.value, nullable=False, index=True)
    gross_return = Column(Numeric(12, 4, asdecimal=False), nullable=True)
    net_profit = Column(Numeric(12, 4, asdecimal=False), nullable=True)

    placed_at = Column(DateTime, nullable=False)
    settled_at = Column(DateTime, nullable=True)

    market = relationship("Market")
