from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Numeric, UniqueConstraint
from sqlalchemy.orm import relationship
from app.db.base import Base, new_id
import enum

class LeagueRole(str, enum.Enum):
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"

class League(Base):
    __tablename__ = "leagues"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(100), nullable=False)
    season = Column(Integer, nullable=False, index=True)
    visibility = Column(String(20), default="private") # public | private
    owner_id = Column(String(36), ForeignKey("users.id"), nullable=False)

    members = relationship("LeagueMember", back_populates="league")

class LeagueMember(Base):
    """Participação + pontuação acumulada na temporada."""
    __tablename__ = "league_members"
    __table_args__ = (
        UniqueConstraint("league_id", "user_id", name="uq_league_members_league_user"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    league_id = Column(String(36), ForeignKey("leagues.id"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    role = Column(String(20), default=LeagueRole.MEMBER.value)

    # Soma incremental do lucro líquido de cada aposta liquidada
    season_points = Column(Numeric(12, 4, asdecimal=False), default=0, nullable=False)
    joined_at = Column(DateTime, nullable=False)

    league = relationship("League", back_populates="members")
    user = relationship("User")

class RaceLeagueWinner(Base):
    """Vencedor de uma liga em uma corrida (sobrescrito se a corrida for reliquidada)."""
    __tablename__ = "race_league_winners"
    __table_args__ = (
        UniqueConstraint("race_id", "league_id", name="uq_race_league_winners_race_league"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    race_id = Column(String(36), ForeignKey("races.id"), nullable=False)
    league_id = Column(String(36), ForeignKey("leagues.id"), nullable=False, index=True)
    winner_user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    race_points = Column(Numeric(12, 4, asdecimal=False), nullable=False)

    race = relationship("Race")
