from pydantic import BaseModel
from datetime import datetime
from typing import List, Optional

class StandingEntry(BaseModel):
    user_id: str
    role: str
    season_points: float
    handle: Optional[str] = None
    avatar_url: Optional[str] = None
    rank: int
    points_from_leader: float

class StandingsResponse(BaseModel):
    league_id: str
    standings: List[StandingEntry]

class TrophyEntry(BaseModel):
    race_id: str
    race_name: str
    round: int
    season: int
    race_start_time: datetime
    winner_user_id: str
    winner_handle: Optional[str] = None
    winner_avatar_url: Optional[str] = None
    race_points: float

class TrophyCaseResponse(BaseModel):
    league_id: str
    trophies: List[TrophyEntry]

class LeaderboardUser(BaseModel):
    rank: int
    user_id: str
    handle: Optional[str] = None
    avatar_url: Optional[str] = None
    leagues_count: int
    total_points: float

class LeaderboardLeague(BaseModel):
    rank: int
    league_id: str
    league_name: str
    visibility: str
    member_count: int
    total_points: float
    average_points_per_user: float

class LeaderboardResponse(BaseModel):
    season: int
    top_users: List[LeaderboardUser]
    top_leagues: List[LeaderboardLeague]
