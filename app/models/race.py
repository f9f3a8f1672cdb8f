from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Text, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from app.db.base import Base, new_id
import enum

class RaceStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    LOCKED = "locked"
    SETTLING = "settling"
    SETTLED = "settled"

# Estados que uma nova leitura do calendário nunca pode rebaixar
NON_DOWNGRADABLE_STATUSES = (RaceStatus.SETTLING.value, RaceStatus.SETTLED.value)

class Race(Base):
    """Um fim de semana de Grande Prêmio."""
    __tablename__ = "races"
    __table_args__ = (
        UniqueConstraint("season", "round", name="uq_races_season_round"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    season = Column(Integer, nullable=False, index=True)
    round = Column(Integer, nullable=False)
    slug = Column(String(150), unique=True, nullable=False)
    name = Column(String(150), nullable=False)

    country = Column(String(100), nullable=True)
    circuit = Column(String(150), nullable=True)
    venue_name = Column(String(150), nullable=True)
    city = Column(String(100), nullable=True)
    timezone = Column(String(50), default="UTC")
    race_description = Column(Text, nullable=True)
    image_url = Column(String(500), nullable=True)
    banner_url = Column(String(500), nullable=True)
    poster_url = Column(String(500), nullable=True)
    highlights_url = Column(String(500), nullable=True)
    sportsdb_event_id = Column(String(50), nullable=True)

    # Datas em UTC sem fuso
    start_time = Column(DateTime, nullable=False, index=True)
    lock_time = Column(DateTime, nullable=False)

    status = Column(String(20), default=RaceStatus.SCHEDULED.value, nullable=False, index=True)
    result_revision = Column(Integer, default=0, nullable=False)

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    markets = relationship("Market", back_populates="race")

class RaceResult(Base):
    """
    Log de fatos do resultado (somente inserção). Só a maior revisão
    de uma corrida vale; correções entram como linhas novas.
    """
    __tablename__ = "race_results"

    id = Column(String(36), primary_key=True, default=new_id)
    race_id = Column(String(36), ForeignKey("races.id"), nullable=False, index=True)

    result_key = Column(String(255), nullable=False)
    result_value = Column(Text, nullable=False)
    source = Column(String(255), nullable=True)
    revision = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
