"""
Bibstat MCP Server - Statistik
Beskrivande statistik, gruppering och trender över numeriska observationsvärden.
"""

import math
import statistics
from collections import Counter
from dataclasses import dataclass
from typing import Any, Dict, Hashable, Iterable, List, Optional, Sequence, Tuple

from bibstat.models import Observation


class EmptyDataError(ValueError):
    """Statistik kan inte beräknas på en tom värdemängd."""


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass(frozen=True)
class Statistics:
    count: int
    sum: float
    mean: float
    median: float
    mode: Optional[float]
    variance: float
    standard_deviation: float
    min: float
    max: float
    range: float
    percentile_25: float
    percentile_75: float


@dataclass(frozen=True)
class GroupSummary:
    count: int
    sum: float
    average: float
    min: float
    max: float


@dataclass(frozen=True)
class YearStatistics:
    year: int
    summary: GroupSummary


@dataclass(frozen=True)
class Trend:
    term_id: str
    start_year: int
    end_year: int
    per_year: List[YearStatistics]

    @property
    def years(self) -> List[int]:
        return [entry.year for entry in self.per_year]


@dataclass(frozen=True)
class YearComparison:
    year1_value: Any = None
    year2_value: Any = None
    absolute_change: Optional[float] = None
    percent_change: Optional[float] = None


def _percentile(sorted_values: Sequence[float], p: float) -> float:
    # Närmaste rang utan interpolation
    return sorted_values[math.floor(len(sorted_values) * p)]


def _mode(sorted_values: Sequence[float]) -> Optional[float]:
    counts = Counter(sorted_values)
    top = max(counts.values())
    modes = sorted(value for value, n in counts.items() if n == top)
    if len(modes) == len(sorted_values):
        return None
    return modes[0]


def describe(values: Iterable[float]) -> Statistics:
    """
    Beskrivande statistik för en icke-tom värdemängd.

    Varians är populationsvarians (division med N). Kvartilerna använder
    sorted[floor(N * p)].

    Raises:
        EmptyDataError: om värdemängden är tom
    """
    ordered = sorted(values)
    count = len(ordered)
    if count == 0:
        raise EmptyDataError("Kan inte beräkna statistik för en tom värdemängd")

    total = sum(ordered)
    mean = total / count

    variance = statistics.pvariance(ordered)

    return Statistics(
        count=count,
        sum=total,
        mean=mean,
        median=statistics.median(ordered),
        mode=_mode(ordered),
        variance=variance,
        standard_deviation=math.sqrt(variance),
        min=ordered[0],
        max=ordered[-1],
        range=ordered[-1] - ordered[0],
        percentile_25=_percentile(ordered, 0.25),
        percentile_75=_percentile(ordered, 0.75),
    )


def summarize(values: Sequence[float]) -> GroupSummary:
    if not values:
        raise EmptyDataError("Kan inte sammanfatta en tom grupp")
    total = sum(values)
    return GroupSummary(
        count=len(values),
        sum=total,
        average=total / len(values),
        min=min(values),
        max=max(values),
    )


def group_summaries(pairs: Iterable[Tuple[Hashable, Any]]) -> Dict[Hashable, GroupSummary]:
    """Grupperar (nyckel, värde)-par och sammanfattar numeriska värden per nyckel."""
    groups: Dict[Hashable, List[float]] = {}
    for key, value in pairs:
        if is_number(value):
            groups.setdefault(key, []).append(value)
    return {key: summarize(values) for key, values in groups.items()}


def numeric_values(observations: Iterable[Observation]) -> List[float]:
    return [obs.value for obs in observations if obs.is_numeric]


def trend(
    observations: Iterable[Observation],
    term_id: str,
    start_year: int,
    end_year: int
) -> Trend:
    """Årsvis sammanfattning inom [start_year, end_year]; år utan numeriska värden utelämnas."""
    in_range = (
        (obs.sample_year, obs.value)
        for obs in observations
        if obs.sample_year is not None and start_year <= obs.sample_year <= end_year
    )
    grouped = group_summaries(in_range)
    per_year = [YearStatistics(year, grouped[year]) for year in sorted(grouped)]
    return Trend(term_id=term_id, start_year=start_year, end_year=end_year, per_year=per_year)


def year_change(year1_value: Any, year2_value: Any) -> YearComparison:
    """Absolut förändring när båda värdena är numeriska; procent bara om år 1 inte är 0."""
    absolute = None
    percent = None
    if is_number(year1_value) and is_number(year2_value):
        absolute = year2_value - year1_value
        if year1_value != 0:
            percent = absolute / year1_value * 100
    return YearComparison(
        year1_value=year1_value,
        year2_value=year2_value,
        absolute_change=absolute,
        percent_change=percent,
    )


def top_observations(observations: Iterable[Observation], n: int = 10) -> List[Observation]:
    """De n högsta numeriska observationerna; lika värden behåller hämtordningen."""
    numeric = [obs for obs in observations if obs.is_numeric]
    return sorted(numeric, key=lambda obs: obs.value, reverse=True)[:n]
