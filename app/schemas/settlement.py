from pydantic import BaseModel
from datetime import datetime
from typing import List, Optional

class RaceMatchDiagnostic(BaseModel):
    race_id: str
    event_id: Optional[str] = None
    markets_added: int = 0
    skipped_reason: Optional[str] = None

class ScheduleIngestSummary(BaseModel):
    season: int
    schedule_provider: str
    schedule_upserted: int
    odds_ingested: bool
    odds_rows_upserted: int = 0
    races_considered_for_odds: int = 0
    race_matches: List[RaceMatchDiagnostic] = []
    message: Optional[str] = None

class IngestResultsOutcome(BaseModel):
    race_id: str
    ingested: bool
    finalized: bool
    session_key: Optional[int] = None
    revision: Optional[int] = None
    inserted_rows: int = 0
    message: Optional[str] = None

class SettlementReport(BaseModel):
    race_id: str
    status: str
    settled_bets: int
    winning_selection_keys: List[str] = []
    void_selection_keys: List[str] = []
    result_revision: Optional[int] = None
    league_winners_written: int = 0
    message: Optional[str] = None

class SweepRaceSummary(BaseModel):
    race_id: str
    ingest_status: int
    settle_status: Optional[int] = None
    finalized: Optional[bool] = None
    settled: Optional[bool] = None
    settled_bets: Optional[int] = None
    duration_ms: float = 0
    error: Optional[str] = None

class SweepSummary(BaseModel):
    ran_at: datetime
    candidate_count: int
    settled_count: int
    pending_finalization_count: int
    failures: int
    duration_ms: float = 0
    summary: List[SweepRaceSummary]

class RaceStatusCounts(BaseModel):
    scheduled: int = 0
    locked: int = 0
    settling: int = 0
    settled: int = 0

class LatestSettledRace(BaseModel):
    id: str
    name: str
    start_time: datetime
    updated_at: Optional[datetime] = None
    result_revision: int

    class Config:
        from_attributes = True

class SettlementHealth(BaseModel):
    observed_at: datetime
    race_status_counts: RaceStatusCounts
    overdue_race_count: int
    overdue_race_ids: List[str]
    pending_bets_in_overdue_races: int
    latest_settled_race: Optional[LatestSettledRace] = None
