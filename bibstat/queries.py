"""
Bibstat MCP Server - Frågelager
Filtrering, join mot termlistan och aggregering ovanpå API-klienten.

API:t filtrerar endast på term, datum, limit och offset. Filter på bibliotek,
år och målgrupp görs här i klienten, inom det hämtade fönstret. Alla resultat
bär med sig fönstret så att verktygen kan tala om när resultatet kan vara
ofullständigt.
"""

import logging
from collections import Counter
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

from bibstat.api_client import BibstatApiClient, InvalidParamsError
from bibstat.formatting import observations_to_csv
from bibstat.models import (
    FilteredObservations,
    Library,
    Observation,
    ObservationWindow,
    Term,
    TermLookup,
)
from bibstat.stats import (
    GroupSummary,
    Statistics,
    Trend,
    YearComparison,
    describe,
    group_summaries,
    numeric_values,
    top_observations,
    trend,
    year_change,
)
from bibstat.term_dictionary import DictionaryStatus, TermDictionary

logger = logging.getLogger("bibstat_mcp")

ObservationFilter = Callable[[Observation], bool]


# ============================================================================
# RESULTATTYPER
# ============================================================================

@dataclass(frozen=True)
class LibraryYearComparison:
    library_id: str
    year1: int
    year2: int
    comparison: Dict[str, YearComparison]
    truncated: bool = False


@dataclass(frozen=True)
class TrendResult:
    trend: Trend
    truncated: bool = False


@dataclass(frozen=True)
class TargetGroupAggregation:
    term_id: str
    year: Optional[int]
    groups: Dict[str, GroupSummary]
    truncated: bool = False


@dataclass(frozen=True)
class TermReport:
    term_id: str
    year: int
    lookup: TermLookup
    observation_count: int
    statistics: Optional[Statistics]
    by_target_group: Dict[str, GroupSummary]
    top: List[Observation]
    truncated: bool = False


@dataclass(frozen=True)
class LibraryListing:
    libraries: List[Library]
    truncated: bool = False


@dataclass(frozen=True)
class TargetGroupCount:
    name: str
    count: int


@dataclass(frozen=True)
class CsvExport:
    csv: str
    row_count: int
    truncated: bool = False


# ============================================================================
# FILTER
# ============================================================================

def matches_library(library_id: str) -> ObservationFilter:
    """Skiftlägeskänslig delsträngsmatchning mot bibliotekets ID."""
    return lambda obs: library_id in obs.library_id


def matches_year(year: Optional[int]) -> ObservationFilter:
    return lambda obs: year is None or obs.sample_year == year


def matches_target_group(target_group: str) -> ObservationFilter:
    return lambda obs: obs.target_group == target_group


def apply_filters(window: ObservationWindow, *filters: ObservationFilter) -> FilteredObservations:
    selected = [obs for obs in window.observations if all(f(obs) for f in filters)]
    return FilteredObservations(observations=selected, window=window)


def unique_libraries(observations: Sequence[Observation]) -> List[Library]:
    """De-duplicerar bibliotek på ID; första förekomsten vinner."""
    seen: Dict[str, Library] = {}
    for obs in observations:
        if obs.library is not None and obs.library.id not in seen:
            seen[obs.library.id] = obs.library
    return list(seen.values())


def _require(value, name: str) -> None:
    if value is None or value == "" or value == []:
        raise InvalidParamsError(f'Parameter "{name}" är obligatorisk')


# ============================================================================
# FRÅGOR
# ============================================================================

class StatisticsQueries:
    """
    Frågor mot biblioteksstatistiken.

    Klient och termlista injiceras av den som komponerar servern, så att
    tester kan använda falska implementationer.
    """

    def __init__(self, client: BibstatApiClient, dictionary: TermDictionary):
        self.client = client
        self.dictionary = dictionary

    # --- Termer ---------------------------------------------------------------

    async def get_term_definitions(self) -> List[Term]:
        return await self.client.fetch_terms()

    def search_terms_by_category(self, category: str) -> List[Term]:
        _require(category, "category")
        return self.dictionary.search_by_category(category)

    def search_terms_by_keyword(self, keyword: str) -> List[Term]:
        _require(keyword, "keyword")
        return self.dictionary.search_by_keyword(keyword)

    def get_term_details(self, term_id: str) -> TermLookup:
        _require(term_id, "term_id")
        return self.dictionary.get_by_id(term_id)

    def list_term_categories(self) -> List[str]:
        return self.dictionary.list_categories()

    def dictionary_status(self) -> DictionaryStatus:
        return self.dictionary.status()

    # --- Observationer --------------------------------------------------------

    async def search_observations(
        self,
        term: Optional[str] = None,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        limit: Optional[int] = 100,
        offset: Optional[int] = 0
    ) -> ObservationWindow:
        return await self.client.fetch_observations(
            term=term, date_from=date_from, date_to=date_to, limit=limit, offset=offset
        )

    async def get_library_observations(
        self,
        library_id: str,
        year: Optional[int] = None,
        term: Optional[str] = None,
        limit: int = 1000
    ) -> FilteredObservations:
        _require(library_id, "library_id")
        window = await self.client.fetch_observations(term=term, limit=limit)
        return apply_filters(window, matches_library(library_id), matches_year(year))

    async def get_observations_by_year(
        self,
        year: int,
        term: Optional[str] = None,
        limit: int = 1000
    ) -> FilteredObservations:
        _require(year, "year")
        window = await self.client.fetch_observations(term=term, limit=limit)
        return apply_filters(window, matches_year(year))

    async def get_observations_by_target_group(
        self,
        target_group: str,
        year: Optional[int] = None,
        term: Optional[str] = None,
        limit: int = 1000
    ) -> FilteredObservations:
        _require(target_group, "target_group")
        window = await self.client.fetch_observations(term=term, limit=limit)
        return apply_filters(window, matches_target_group(target_group), matches_year(year))

    # --- Jämförelser och trender ----------------------------------------------

    async def compare_library_years(
        self,
        library_id: str,
        year1: int,
        year2: int,
        term: Optional[str] = None,
        limit: int = 1000
    ) -> LibraryYearComparison:
        _require(year1, "year1")
        _require(year2, "year2")
        selected = await self.get_library_observations(library_id, term=term, limit=limit)

        values: Dict[str, Dict[int, object]] = {}
        for obs in selected:
            if obs.term is None or obs.sample_year not in (year1, year2):
                continue
            values.setdefault(obs.term, {}).setdefault(obs.sample_year, obs.value)

        comparison = {
            term_id: year_change(by_year.get(year1), by_year.get(year2))
            for term_id, by_year in values.items()
        }
        return LibraryYearComparison(
            library_id=library_id,
            year1=year1,
            year2=year2,
            comparison=comparison,
            truncated=selected.truncated,
        )

    async def get_term_trend(
        self,
        term_id: str,
        start_year: int,
        end_year: int,
        limit: int = 5000
    ) -> TrendResult:
        _require(term_id, "term_id")
        if start_year > end_year:
            raise InvalidParamsError("start_year får inte vara större än end_year")
        window = await self.client.fetch_observations(term=term_id, limit=limit)
        return TrendResult(
            trend=trend(window.observations, term_id, start_year, end_year),
            truncated=window.truncated,
        )

    async def get_multiple_terms(
        self,
        term_ids: Sequence[str],
        year: Optional[int] = None,
        limit: int = 1000
    ) -> Dict[str, FilteredObservations]:
        """Ett anrop per term, i tur och ordning."""
        if not term_ids:
            raise InvalidParamsError('Parameter "term_ids" måste vara en icke-tom lista')
        logger.info(f"Hämtar {len(term_ids)} termer: {', '.join(term_ids)}")
        results: Dict[str, FilteredObservations] = {}
        for term_id in term_ids:
            window = await self.client.fetch_observations(term=term_id, limit=limit)
            results[term_id] = apply_filters(window, matches_year(year))
        return results

    async def compare_multiple_libraries(
        self,
        library_ids: Sequence[str],
        term_id: str,
        year: int,
        limit: int = 1000
    ) -> Dict[str, FilteredObservations]:
        """Ett anrop per bibliotek, i tur och ordning."""
        if not library_ids:
            raise InvalidParamsError('Parameter "library_ids" måste vara en icke-tom lista')
        _require(term_id, "term_id")
        logger.info(f"Jämför {len(library_ids)} bibliotek för {term_id} ({year})")
        results: Dict[str, FilteredObservations] = {}
        for library_id in library_ids:
            results[library_id] = await self.get_library_observations(
                library_id, year=year, term=term_id, limit=limit
            )
        return results

    async def aggregate_by_target_group(
        self,
        term_id: str,
        year: Optional[int] = None,
        limit: int = 5000
    ) -> TargetGroupAggregation:
        _require(term_id, "term_id")
        window = await self.client.fetch_observations(term=term_id, limit=limit)
        selected = apply_filters(window, matches_year(year))
        groups = group_summaries(
            (obs.target_group, obs.value) for obs in selected if obs.target_group
        )
        return TargetGroupAggregation(
            term_id=term_id,
            year=year,
            groups=dict(sorted(groups.items())),
            truncated=selected.truncated,
        )

    async def generate_term_report(
        self,
        term_id: str,
        year: int,
        limit: int = 5000
    ) -> TermReport:
        """Termmetadata, full statistik, målgruppsaggregering och topp 10."""
        _require(term_id, "term_id")
        _require(year, "year")
        lookup = self.dictionary.get_by_id(term_id)
        window = await self.client.fetch_observations(term=term_id, limit=limit)
        selected = apply_filters(window, matches_year(year))

        values = numeric_values(selected)
        statistics = describe(values) if values else None
        groups = group_summaries(
            (obs.target_group, obs.value) for obs in selected if obs.target_group
        )
        return TermReport(
            term_id=term_id,
            year=year,
            lookup=lookup,
            observation_count=len(selected),
            statistics=statistics,
            by_target_group=dict(sorted(groups.items())),
            top=top_observations(selected, 10),
            truncated=selected.truncated,
        )

    # --- Bibliotek, år och målgrupper ------------------------------------------

    async def list_libraries(self, limit: int = 1000) -> LibraryListing:
        window = await self.client.fetch_observations(limit=limit)
        return LibraryListing(
            libraries=unique_libraries(window.observations),
            truncated=window.truncated,
        )

    async def search_libraries(self, search_term: str, limit: int = 1000) -> LibraryListing:
        """Skiftlägesokänslig sökning på namn, sigel eller ID."""
        _require(search_term, "search_term")
        needle = search_term.lower()
        listing = await self.list_libraries(limit)
        matches = [
            lib for lib in listing.libraries
            if any(needle in (text or "").lower() for text in (lib.id, lib.name, lib.sigel))
        ]
        return LibraryListing(libraries=matches, truncated=listing.truncated)

    async def get_available_years(self, limit: int = 2000) -> List[int]:
        window = await self.client.fetch_observations(limit=limit)
        years = {obs.sample_year for obs in window.observations if obs.sample_year is not None}
        return sorted(years, reverse=True)

    async def list_target_groups(self, limit: int = 2000) -> List[TargetGroupCount]:
        window = await self.client.fetch_observations(limit=limit)
        counts = Counter(obs.target_group for obs in window.observations if obs.target_group)
        return [TargetGroupCount(name, counts[name]) for name in sorted(counts)]

    # --- Export ----------------------------------------------------------------

    async def export_csv(
        self,
        term: str,
        year: Optional[int] = None,
        limit: int = 5000
    ) -> CsvExport:
        _require(term, "term")
        window = await self.client.fetch_observations(term=term, limit=limit)
        selected = apply_filters(window, matches_year(year))
        return CsvExport(
            csv=observations_to_csv(selected.observations),
            row_count=len(selected),
            truncated=selected.truncated,
        )
