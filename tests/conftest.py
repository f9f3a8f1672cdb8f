from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.clock import FixedClock
from app.core.config import settings
from app.db.base import Base
from app.models.bet import Bet, BetStatus
from app.models.league import League, LeagueMember, RaceLeagueWinner
from app.models.market import Market, MarketType
from app.models.race import Race, RaceResult, RaceStatus
from app.models.user import User

NOW = datetime(2026, 5, 24, 18, 0, 0)
INTERNAL_SECRET = "test-cron-secret"


# =============================================================================
# BANCO EM MEMÓRIA
# =============================================================================

@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = Session()
    yield session
    session.close()


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def internal_secret(monkeypatch):
    monkeypatch.setattr(settings, "SETTLEMENT_CRON_SECRET", INTERNAL_SECRET)
    monkeypatch.setattr(settings, "CRON_SECRET", None)
    return INTERNAL_SECRET


@pytest.fixture
def client(db, clock):
    from app.api import deps
    from app.main import app

    def override_get_db():
        yield db

    app.dependency_overrides[deps.get_db] = override_get_db
    app.dependency_overrides[deps.get_clock] = lambda: clock
    yield TestClient(app)
    app.dependency_overrides.clear()


# =============================================================================
# FÁBRICAS
# =============================================================================

def make_user(db, user_id=None, handle=None):
    user = User(handle=handle)
    if user_id:
        user.id = user_id
    db.add(user)
    db.flush()
    return user


def make_league(db, owner, name="Paddock Club", season=2026, visibility="private"):
    league = League(name=name, season=season, visibility=visibility, owner_id=owner.id)
    db.add(league)
    db.flush()
    return league


def make_member(db, league, user, season_points=0.0, joined_at=None, role="member"):
    member = LeagueMember(
        league_id=league.id,
        user_id=user.id,
        role=role,
        season_points=season_points,
        joined_at=joined_at or NOW - timedelta(days=30),
    )
    db.add(member)
    db.flush()
    return member


def make_race(db, season=2026, round_number=7, name="Monaco Grand Prix", country="Monaco",
              start_time=None, status=RaceStatus.SCHEDULED.value, result_revision=0):
    start_time = start_time or NOW + timedelta(days=2)
    race = Race(
        season=season,
        round=round_number,
        slug=f"{season}-{name.lower().replace(' ', '-')}-{round_number}",
        name=name,
        country=country,
        start_time=start_time,
        lock_time=start_time - timedelta(hours=2),
        status=status,
        result_revision=result_revision,
    )
    db.add(race)
    db.flush()
    return race


def make_market(db, race, selection_key="max_verstappen_win", selection_label="Max Verstappen",
                market_type=MarketType.RACE_WINNER.value, decimal_odds=3.0, is_active=True,
                provider="the-odds-api", provider_market_id="evt-1:fanduel:outrights"):
    market = Market(
        race_id=race.id,
        provider=provider,
        provider_market_id=provider_market_id,
        market_type=market_type,
        selection_key=selection_key,
        selection_label=selection_label,
        decimal_odds=decimal_odds,
        is_active=is_active,
        fetched_at=NOW,
    )
    db.add(market)
    db.flush()
    return market


def make_bet(db, user, league, race, market, stake, odds=None, status=BetStatus.PENDING.value):
    bet = Bet(
        user_id=user.id,
        league_id=league.id,
        race_id=race.id,
        market_id=market.id,
        selection_key=market.selection_key,
        stake=stake,
        decimal_odds_snapshot=odds if odds is not None else market.decimal_odds,
        status=status,
        placed_at=NOW - timedelta(days=1),
    )
    db.add(bet)
    db.flush()
    return bet


def make_result(db, race, key, value, revision=1, source="manual"):
    row = RaceResult(race_id=race.id, result_key=key, result_value=value, revision=revision, source=source)
    db.add(row)
    db.flush()
    return row


def auth_headers(user):
    from app.core.security import create_access_token
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}
