import logging
from datetime import datetime
from typing import Dict, List

from sqlalchemy import desc, func
from sqlalchemy.orm import Session, joinedload

from app.core.security import ensure_league_member
from app.models.bet import Bet, BetStatus
from app.models.league import League, LeagueMember, RaceLeagueWinner
from app.models.race import Race, RaceStatus
from app.models.user import User
from app.schemas.league import (
    LeaderboardLeague,
    LeaderboardResponse,
    LeaderboardUser,
    StandingEntry,
    StandingsResponse,
    TrophyCaseResponse,
    TrophyEntry,
)
from app.schemas.settlement import LatestSettledRace, RaceStatusCounts, SettlementHealth

logger = logging.getLogger(__name__)

OVERDUE_RACE_LIMIT = 200


class LeaderboardService:
    """Leituras de classificação: liga, sala de troféus, ranking global e saúde da liquidação."""

    def league_standings(self, db: Session, league_id: str, user_id: str) -> StandingsResponse:
        """
        Classificação da liga. Pontos iguais dividem a posição anterior
        (ex.: 1, 2, 2, 4) e `points_from_leader` é a distância para o 1º.
        """
        ensure_league_member(db, league_id, user_id)

        members = db.query(LeagueMember).options(
            joinedload(LeagueMember.user)
        ).filter(
            LeagueMember.league_id == league_id
        ).order_by(desc(LeagueMember.season_points), LeagueMember.joined_at).all()

        standings: List[StandingEntry] = []
        leader_points = float(members[0].season_points or 0) if members else 0.0

        for index, member in enumerate(members):
            points = float(member.season_points or 0)
            previous = standings[-1] if standings else None
            if previous and previous.season_points == points:
                rank = previous.rank
            else:
                rank = index + 1

            standings.append(StandingEntry(
                user_id=member.user_id,
                role=member.role,
                season_points=points,
                handle=member.user.handle if member.user else None,
                avatar_url=member.user.avatar_url if member.user else None,
                rank=rank,
                points_from_leader=round(leader_points - points, 2),
            ))

        return StandingsResponse(league_id=league_id, standings=standings)

    def trophy_case(self, db: Session, league_id: str, user_id: str) -> TrophyCaseResponse:
        ensure_league_member(db, league_id, user_id)

        rows = db.query(RaceLeagueWinner, Race, User).join(
            Race, Race.id == RaceLeagueWinner.race_id
        ).outerjoin(
            User, User.id == RaceLeagueWinner.winner_user_id
        ).filter(
            RaceLeagueWinner.league_id == league_id
        ).order_by(Race.start_time).all()

        trophies = [
            TrophyEntry(
                race_id=race.id,
                race_name=race.name,
                round=race.round,
                season=race.season,
                race_start_time=race.start_time,
                winner_user_id=winner.winner_user_id,
                winner_handle=user.handle if user else None,
                winner_avatar_url=user.avatar_url if user else None,
                race_points=round(float(winner.race_points), 2),
            )
            for winner, race, user in rows
        ]
        return TrophyCaseResponse(league_id=league_id, trophies=trophies)

    def global_leaderboard(self, db: Session, season: int, limit: int = 50) -> LeaderboardResponse:
        """Soma season_points de todas as ligas da temporada, por usuário e por liga."""
        rows = db.query(LeagueMember, League, User).join(
            League, League.id == LeagueMember.league_id
        ).outerjoin(
            User, User.id == LeagueMember.user_id
        ).filter(League.season == season).all()

        users: Dict[str, dict] = {}
        leagues: Dict[str, dict] = {}

        for member, league, user in rows:
            points = float(member.season_points or 0)

            user_row = users.setdefault(member.user_id, {
                "user_id": member.user_id,
                "handle": user.handle if user else None,
                "avatar_url": user.avatar_url if user else None,
                "leagues_count": 0,
                "total_points": 0.0,
            })
            user_row["leagues_count"] += 1
            user_row["total_points"] += points

            league_row = leagues.setdefault(league.id, {
                "league_id": league.id,
                "league_name": league.name,
                "visibility": league.visibility,
                "member_count": 0,
                "total_points": 0.0,
            })
            league_row["member_count"] += 1
            league_row["total_points"] += points

        top_users = sorted(users.values(), key=lambda row: -row["total_points"])[:limit]

        for row in leagues.values():
            row["average_points_per_user"] = round(row["total_points"] / row["member_count"], 2) if row["member_count"] else 0.0
        top_leagues = sorted(
            leagues.values(),
            key=lambda row: (-row["average_points_per_user"], -row["total_points"])
        )[:limit]

        return LeaderboardResponse(
            season=season,
            top_users=[
                LeaderboardUser(rank=i + 1, **{**row, "total_points": round(row["total_points"], 2)})
                for i, row in enumerate(top_users)
            ],
            top_leagues=[
                LeaderboardLeague(rank=i + 1, **{**row, "total_points": round(row["total_points"], 2)})
                for i, row in enumerate(top_leagues)
            ],
        )

    def settlement_health(self, db: Session, now: datetime) -> SettlementHealth:
        """Retrato da fila de liquidação para operação (corridas travadas em 'settling' etc.)."""
        counts = dict(
            db.query(Race.status, func.count(Race.id)).group_by(Race.status).all()
        )

        overdue = db.query(Race.id).filter(
            Race.status.in_([RaceStatus.LOCKED.value, RaceStatus.SETTLING.value]),
            Race.start_time <= now
        ).order_by(Race.start_time.asc()).limit(OVERDUE_RACE_LIMIT).all()
        overdue_ids = [race_id for (race_id,) in overdue]

        pending_bets = 0
        if overdue_ids:
            pending_bets = db.query(func.count(Bet.id)).filter(
                Bet.race_id.in_(overdue_ids),
                Bet.status == BetStatus.PENDING.value
            ).scalar() or 0

        latest = db.query(Race).filter(
            Race.status == RaceStatus.SETTLED.value
        ).order_by(desc(Race.updated_at), desc(Race.start_time)).first()

        return SettlementHealth(
            observed_at=now,
            race_status_counts=RaceStatusCounts(**{
                status.value: counts.get(status.value, 0) for status in RaceStatus
            }),
            overdue_race_count=len(overdue_ids),
            overdue_race_ids=overdue_ids,
            pending_bets_in_overdue_races=pending_bets,
            latest_settled_race=LatestSettledRace.model_validate(latest) if latest else None,
        )


leaderboard_service = LeaderboardService()
