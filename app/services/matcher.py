"""
Casamento aproximado entre corridas internas e eventos/sessões dos provedores.

Nenhum provedor compartilha um ID estável com o nosso calendário, então cada
candidato recebe uma nota = |início do candidato - início da corrida| em ms,
com um bônus (subtraído) quando os nomes se sobrepõem. Vence a menor nota;
se a distância real passar da tolerância do provedor, não há casamento.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Generic, Iterable, Optional, TypeVar

from app.core.clock import to_naive_utc
from app.utils.text import normalize_label

T = TypeVar("T")

HOUR_MS = 60 * 60 * 1000

# The Odds API: bônus de 6h, rejeita acima de 72h
ODDS_NAME_BONUS_MS = 6 * HOUR_MS
ODDS_MAX_DISTANCE = timedelta(hours=72)

# OpenF1: a consulta já vem filtrada por temporada, sem tolerância
SESSION_NAME_BONUS_MS = 1_000_000


@dataclass
class MatchResult(Generic[T]):
    candidate: T
    score: float
    distance: Optional[timedelta]
    name_overlap: bool


def labels_overlap(left: str, right: str) -> bool:
    a = normalize_label(left or "")
    b = normalize_label(right or "")
    if not a or not b:
        return False
    return a in b or b in a


def best_match(
    race_start: datetime,
    race_label: str,
    candidates: Iterable[T],
    start_of: Callable[[T], Optional[datetime]],
    label_of: Callable[[T], str],
    name_bonus_ms: float,
    max_distance: Optional[timedelta] = None,
) -> Optional[MatchResult[T]]:
    best: Optional[MatchResult[T]] = None

    for candidate in candidates:
        start = start_of(candidate)
        overlap = labels_overlap(race_label, label_of(candidate))
        if start is None:
            # Sem horário: só vence se nenhum outro candidato tiver
            distance = None
            score = float("inf")
        else:
            distance = abs(start - race_start)
            score = distance.total_seconds() * 1000 - (name_bonus_ms if overlap else 0)

        # Empate mantém o primeiro candidato (ordem do provedor)
        if best is None or score < best.score:
            best = MatchResult(candidate=candidate, score=score, distance=distance, name_overlap=overlap)

    if best is None:
        return None
    if max_distance is not None and (best.distance is None or best.distance > max_distance):
        return None
    return best


def match_odds_event(race, events):
    """Evento de odds para a corrida (nome + país contra os "times" do evento)."""
    return best_match(
        race_start=race.start_time,
        race_label=f"{race.name} {race.country or ''}",
        candidates=events,
        start_of=lambda event: _naive(event.commence_time),
        label_of=lambda event: event.label,
        name_bonus_ms=ODDS_NAME_BONUS_MS,
        max_distance=ODDS_MAX_DISTANCE,
    )


def match_result_session(race, sessions):
    """Sessão de corrida do OpenF1 (nome sem "Grand Prix" contra reunião/local/país)."""
    race_label = race.name.lower().replace(" grand prix", "")
    return best_match(
        race_start=race.start_time,
        race_label=race_label,
        candidates=sessions,
        start_of=lambda session: session.start,
        label_of=lambda session: session.label,
        name_bonus_ms=SESSION_NAME_BONUS_MS,
    )


def _naive(value: Optional[datetime]) -> Optional[datetime]:
    return to_naive_utc(value) if value is not None else None
