"""
Avaliação de uma seleção (mercado + selection_key) contra a classificação final.
"""
import enum
from typing import Dict, Iterable, Mapping, Optional

from app.models.market import MarketType
from app.utils.text import slugify

# Removidos em sequência, como o provedor de odds os gera (ver odds_api.classify_market)
SELECTION_SUFFIXES = ("_win", "_podium", "_top6", "_top_6", "_top10", "_top_10", "_fastest_lap")

POSITION_CUTOFFS = {
    MarketType.RACE_WINNER.value: 1,
    MarketType.PODIUM_FINISH.value: 3,
    MarketType.TOP_6_FINISH.value: 6,
    MarketType.TOP_10_FINISH.value: 10,
}


class Outcome(str, enum.Enum):
    WON = "won"
    LOST = "lost"
    VOID = "void"


def normalize_key(value: str) -> str:
    return slugify(value, "_")


def build_driver_alias_map(drivers: Iterable) -> Dict[str, int]:
    """
    Nome completo, sobrenome, sigla e cada token do nome -> número do piloto.
    Aceita qualquer objeto com driver_number/full_name/last_name/name_acronym.
    """
    alias_map: Dict[str, int] = {}
    for driver in drivers:
        aliases = set()
        full = normalize_key(driver.full_name or "")
        if full:
            aliases.add(full)
        if driver.last_name:
            aliases.add(normalize_key(driver.last_name))
        if driver.name_acronym:
            aliases.add(normalize_key(driver.name_acronym))
        if "_" in full:
            aliases.update(token for token in full.split("_") if token)

        for alias in aliases:
            if alias:
                alias_map[alias] = driver.driver_number
    return alias_map


def strip_selection_suffix(selection_key: str) -> str:
    key = normalize_key(selection_key)
    for suffix in SELECTION_SUFFIXES:
        if key.endswith(suffix):
            key = key[: -len(suffix)]
    return key


def selection_to_driver_number(selection_key: str, alias_map: Mapping[str, int]) -> Optional[int]:
    """
    Tenta prefixos cada vez menores do slug ("max_verstappen", "max") e só
    depois cada token isolado, tolerando nomes inconsistentes entre provedores.
    """
    tokens = [token for token in strip_selection_suffix(selection_key).split("_") if token]

    for size in range(len(tokens), 0, -1):
        driver_number = alias_map.get("_".join(tokens[:size]))
        if driver_number is not None:
            return driver_number

    for token in tokens:
        driver_number = alias_map.get(token)
        if driver_number is not None:
            return driver_number

    return None


def resolve_market_type(market_type: str, selection_key: str) -> Optional[str]:
    """Tipo declarado do mercado; se vier desconhecido, deduz pelo sufixo da seleção."""
    normalized_type = (market_type or "").lower()
    if normalized_type in POSITION_CUTOFFS or normalized_type == MarketType.FASTEST_LAP.value:
        return normalized_type

    key = (selection_key or "").lower()
    if key.endswith("_win"):
        return MarketType.RACE_WINNER.value
    if key.endswith("_podium"):
        return MarketType.PODIUM_FINISH.value
    if key.endswith(("_top6", "_top_6")):
        return MarketType.TOP_6_FINISH.value
    if key.endswith(("_top10", "_top_10")):
        return MarketType.TOP_10_FINISH.value
    if key.endswith("_fastest_lap"):
        return MarketType.FASTEST_LAP.value
    return None


def evaluate_outcome(
    selection_key: str,
    market_type: str,
    driver_number: Optional[int],
    results_by_driver: Mapping[int, object],
    fastest_lap_driver: Optional[int],
) -> Outcome:
    if driver_number is None:
        return Outcome.VOID

    result = results_by_driver.get(driver_number)
    if result is None:
        return Outcome.VOID

    # Não largou / desclassificado perde em qualquer mercado
    if result.dns or result.dsq:
        return Outcome.LOST

    if result.position is None:
        return Outcome.VOID

    resolved_type = resolve_market_type(market_type, selection_key)

    if resolved_type in POSITION_CUTOFFS:
        return Outcome.WON if result.position <= POSITION_CUTOFFS[resolved_type] else Outcome.LOST

    if resolved_type == MarketType.FASTEST_LAP.value:
        if fastest_lap_driver is None:
            return Outcome.VOID
        return Outcome.WON if fastest_lap_driver == driver_number else Outcome.LOST

    return Outcome.VOID
