#!/usr/bin/env python3
"""
Bibstat MCP Server - KB:s öppna biblioteksstatistik
Model Context Protocol server för svensk biblioteksstatistik (bibstat.kb.se).

Stöder:
- Lokal installation (stdio) för Claude Desktop m.fl.
- Remote deployment (HTTP/SSE) från samma verktygsregister

Version: 2.0.0

Data finns från verksamhetsår 2014 och framåt. Licens: CC0.
"""

import json
import logging
import os
import sys
from typing import List, Optional

# MCP imports
from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError
from pydantic import Field

from bibstat import __version__
from bibstat.api_client import (
    Config,
    api_client,
    get_config,
    handle_api_error,
)
from bibstat.formatting import (
    as_json_rows,
    format_comparison,
    format_group_summaries,
    format_group_summary,
    format_library_listing,
    format_number,
    format_observation_list,
    format_statistics,
    format_term,
    format_term_detailed,
    format_term_list,
    format_truncation_note,
)
from bibstat.models import TermFound
from bibstat.queries import StatisticsQueries
from bibstat.term_dictionary import TermDictionary

# Konfigurera logging till stderr (stdout används av stdio-transporten)
logging.basicConfig(
    level=getattr(logging, Config.LOG_LEVEL, logging.INFO),
    format='%(asctime)s - %(levelname)s - %(message)s',
    stream=sys.stderr
)
logger = logging.getLogger("bibstat_mcp")

# ============================================================================
# MCP SERVER SETUP
# ============================================================================

mcp = FastMCP(
    "kb-biblioteksstatistik",
    instructions="KB:s öppna biblioteksstatistik - observationer för svenska folk-, forsknings- och skolbibliotek från 2014 och framåt. Börja med list_term_categories eller search_terms_by_keyword för att hitta rätt term."
)

# Termlistan och frågelagret ägs av servern och delas av alla verktyg
dictionary = TermDictionary()
queries = StatisticsQueries(api_client, dictionary)


def tool_error(e: Exception, context: str) -> ToolError:
    """Översätter ett fel till ett verktygsfel med svenskt meddelande."""
    return ToolError(handle_api_error(e, context))


# ============================================================================
# MCP RESOURCES
# ============================================================================

@mcp.resource("kb://terms")
async def resource_terms() -> str:
    """Alla termdefinitioner för svensk biblioteksstatistik."""
    try:
        terms = await queries.get_term_definitions()
    except Exception as e:
        raise RuntimeError(handle_api_error(e, "kb://terms")) from e

    lines = [
        "# Biblioteksstatistik Termdefinitioner",
        "",
        f"Totalt antal termer: {len(terms)}",
        "",
    ]
    for term in terms:
        lines.append(f"## {term.id or 'Okänd'}")
        lines.append(format_term(term))
        lines.append("")
    return "\n".join(lines)


# ============================================================================
# MCP PROMPTS - Fördefinierade promptmallar
# ============================================================================

@mcp.prompt(name="analyze-library-trends")
def analyze_library_trends(library_name: str, start_year: int, end_year: int, terms: str = "") -> str:
    """Analysera trender för ett bibliotek över flera år."""
    term_hint = (
        f"Fokusera på termerna: {terms}."
        if terms else
        "Välj själv 3-5 centrala termer, t.ex. besök (Folk54), aktiva låntagare (Aktiv01) och utlån (Lan101)."
    )
    return f"""Jag vill analysera hur {library_name} har utvecklats mellan {start_year} och {end_year}.

{term_hint}

Gör följande:
1. Använd `search_libraries` för att hitta rätt biblioteks-ID
2. Använd `get_library_data` per år, eller `compare_library_years` för {start_year} mot {end_year}
3. Använd `get_term_trend` för att sätta biblioteket i relation till riket
4. Sammanfatta de viktigaste förändringarna och möjliga förklaringar

Börja analysen nu."""


@mcp.prompt(name="compare-library-types")
def compare_library_types(term_id: str, year: int) -> str:
    """Jämför folk-, forsknings- och skolbibliotek för en specifik term."""
    return f"""Jämför olika typer av bibliotek för termen {term_id} år {year}.

1. Använd `get_term_details` för att förklara vad {term_id} mäter
2. Använd `aggregate_by_target_group` med term_id="{term_id}" och year={year}
3. Jämför medelvärde, min och max mellan målgrupperna
4. Kommentera skillnaderna och vad de kan bero på"""


@mcp.prompt(name="generate-annual-report")
def generate_annual_report(term_id: str, year: int) -> str:
    """Generera en årlig rapport för en term med fullständig statistik."""
    return f"""Skriv en årsrapport för termen {term_id} för år {year}.

1. Använd `generate_term_report` med term_id="{term_id}" och year={year}
2. Använd `get_term_trend` för de föregående fem åren som jämförelse
3. Presentera nyckeltal (medel, median, spridning), topp 10 och fördelning per målgrupp
4. Avsluta med en kort sammanfattning på svenska"""


@mcp.prompt(name="benchmark-libraries")
def benchmark_libraries(library_names: str, terms: str, year: int) -> str:
    """Benchmarka flera bibliotek mot varandra."""
    return f"""Benchmarka följande bibliotek mot varandra år {year}: {library_names}

Termer att jämföra: {terms}

1. Använd `search_libraries` för att hitta ID för varje bibliotek
2. Använd `compare_multiple_libraries` för varje term
3. Ställ upp resultaten i en tabell med ett bibliotek per rad
4. Lyft fram styrkor och svagheter för varje bibliotek"""


@mcp.prompt(name="discover-terms")
def discover_terms(topic: str) -> str:
    """Utforska och hitta relevanta termer för ett ämnesområde."""
    return f"""Jag vill hitta termer i biblioteksstatistiken som handlar om "{topic}".

1. Använd `search_terms_by_keyword` med nyckelordet "{topic}"
2. Använd `list_term_categories` och `search_terms_by_category` för närliggande kategorier
3. Använd `get_term_details` för de mest relevanta termerna
4. Föreslå vilka termer som passar bäst för olika typer av analyser"""


# ============================================================================
# 1. OBSERVATIONER
# ============================================================================

@mcp.tool()
async def search_library_statistics(
    term: Optional[str] = Field(default=None, description="Filtrera på specifik term, ex: Folk54 (antal besök). Om den utelämnas hämtas alla termer."),
    date_from: Optional[str] = Field(default=None, description="Endast observationer uppdaterade från och med detta datum (ISO-8601), ex: 2014-07-03T07:39:27"),
    date_to: Optional[str] = Field(default=None, description="Endast observationer uppdaterade före detta datum (ISO-8601)"),
    limit: int = Field(default=100, ge=1, le=10000, description="Max antal observationer (default 100)"),
    offset: int = Field(default=0, ge=0, description="Paginering: position för första observationen"),
    format: str = Field(default="markdown", description="Utdataformat: 'markdown' eller 'json'")
) -> str:
    """
    Söker i svensk biblioteksstatistik från Kungliga biblioteket.
    Returnerar observationer för bibliotek, mätår och termer. Data finns från 2014.
    """
    try:
        window = await queries.search_observations(term, date_from, date_to, limit, offset)
    except Exception as e:
        raise tool_error(e, "search_library_statistics") from e

    if format == "json":
        return json.dumps(as_json_rows(window.observations), indent=2, ensure_ascii=False)

    lines = [
        "# Biblioteksstatistik",
        f"**Antal observationer:** {len(window.observations)}",
    ]
    if term:
        lines.append(f"**Term:** {term}")
    if date_from:
        lines.append(f"**Datum från:** {date_from}")
    if date_to:
        lines.append(f"**Datum till:** {date_to}")
    lines.append(f"**Begränsning:** {limit} | **Offset:** {offset}")
    lines.append("\n## Observationer\n")
    lines.append(format_observation_list(
        window.observations,
        empty_message="Inga observationer hittades med de angivna parametrarna."
    ))
    lines.append(format_truncation_note(window.truncated, limit))
    return "\n".join(lines)


@mcp.tool()
async def get_library_data(
    library_id: str = Field(description="Biblioteks-ID eller del av ID (skiftlägeskänsligt)"),
    year: Optional[int] = Field(default=None, description="Filtrera på specifikt år (valfri)"),
    term: Optional[str] = Field(default=None, description="Filtrera på specifik term (valfri)"),
    limit: int = Field(default=1000, ge=1, le=10000, description="Antal observationer att söka igenom")
) -> str:
    """
    Hämtar statistik för ett specifikt bibliotek. Kan filtreras på år och term.
    Biblioteksfiltret tillämpas på de hämtade observationerna.
    """
    try:
        result = await queries.get_library_observations(library_id, year, term, limit)
    except Exception as e:
        raise tool_error(e, "get_library_data") from e

    lines = ["# Biblioteksdata", f"**Bibliotek:** {library_id}"]
    if year:
        lines.append(f"**År:** {year}")
    if term:
        lines.append(f"**Term:** {term}")
    lines.append(f"**Antal observationer:** {len(result)}\n")
    lines.append(format_observation_list(
        result.observations,
        empty_message="Inga observationer hittades för detta bibliotek."
    ))
    lines.append(format_truncation_note(result.truncated, limit))
    return "\n".join(lines)


@mcp.tool()
async def get_year_statistics(
    year: int = Field(description="Året att hämta statistik för"),
    term: Optional[str] = Field(default=None, description="Filtrera på specifik term (valfri)"),
    limit: int = Field(default=1000, ge=1, le=10000, description="Max antal observationer att söka igenom (default 1000)")
) -> str:
    """Hämtar observationer för ett specifikt år. Kan filtreras på term."""
    try:
        result = await queries.get_observations_by_year(year, term, limit)
    except Exception as e:
        raise tool_error(e, "get_year_statistics") from e

    lines = [f"# Statistik för år {year}"]
    if term:
        lines.append(f"**Term:** {term}")
    lines.append(f"**Antal observationer:** {len(result)}\n")
    lines.append(format_observation_list(
        result.observations,
        max_items=50,
        empty_message="Inga observationer hittades för detta år."
    ))
    lines.append(format_truncation_note(result.truncated, limit))
    return "\n".join(lines)


@mcp.tool()
async def get_observations_by_target_group(
    target_group: str = Field(description="Målgrupp, ex: 'folkbibliotek', 'forskbibliotek', 'skolbibliotek'"),
    year: Optional[int] = Field(default=None, description="Filtrera på specifikt år (valfri)"),
    term: Optional[str] = Field(default=None, description="Filtrera på specifik term (valfri)"),
    limit: int = Field(default=1000, ge=1, le=10000, description="Max antal observationer (default 1000)")
) -> str:
    """Hämtar observationer filtrerade på målgrupp (exakt matchning)."""
    try:
        result = await queries.get_observations_by_target_group(target_group, year, term, limit)
    except Exception as e:
        raise tool_error(e, "get_observations_by_target_group") from e

    lines = [f"# Observationer för målgrupp: {target_group}"]
    if year:
        lines.append(f"**År:** {year}")
    if term:
        lines.append(f"**Term:** {term}")
    lines.append(f"**Antal observationer:** {len(result)}\n")
    lines.append(format_observation_list(
        result.observations,
        max_items=50,
        empty_message=f'Inga observationer hittades för målgruppen "{target_group}". Använd list_target_groups för giltiga värden.'
    ))
    lines.append(format_truncation_note(result.truncated, limit))
    return "\n".join(lines)


@mcp.tool()
async def get_multiple_terms(
    term_ids: List[str] = Field(description="Lista med term-ID:n, ex: ['Folk54', 'Aktiv01', 'Lan101']"),
    year: Optional[int] = Field(default=None, description="Filtrera på specifikt år (valfri)"),
    limit: int = Field(default=1000, ge=1, le=10000, description="Max antal observationer per term (default 1000)")
) -> str:
    """
    Hämtar observationer för flera termer samtidigt.
    Användbart för att jämföra relaterade termer.
    """
    try:
        results = await queries.get_multiple_terms(term_ids, year, limit)
    except Exception as e:
        raise tool_error(e, "get_multiple_terms") from e

    lines = ["# Flera termer", f"**Antal termer:** {len(term_ids)}"]
    if year:
        lines.append(f"**År:** {year}")
    lines.append("")

    for term_id, result in results.items():
        lines.append(f"## {term_id}\n")
        lines.append(f"Antal observationer: {len(result)}\n")
        if len(result):
            lines.append(format_observation_list(result.observations, max_items=10))
        lines.append(format_truncation_note(result.truncated, limit))
        lines.append("")

    return "\n".join(lines)


# ============================================================================
# 2. TERMER
# ============================================================================

@mcp.tool()
async def get_term_definitions() -> str:
    """
    Hämtar alla termdefinitioner direkt från KB:s API.
    Visar vilka termer som finns (ex: Folk54 för besök, Skol24 för skolbibliotek).
    """
    try:
        terms = await queries.get_term_definitions()
    except Exception as e:
        raise tool_error(e, "get_term_definitions") from e

    lines = [
        "# Termdefinitioner för Biblioteksstatistik",
        f"**Totalt antal termer:** {len(terms)}",
        "",
        format_term_list(terms),
    ]
    return "\n".join(lines)


@mcp.tool()
async def search_terms_by_category(
    category: str = Field(description="Kategori/prefix, ex: 'Aktiv', 'Besok', 'Bestand', 'Arsverke', 'Folk', 'Forsk', 'Skol'")
) -> str:
    """
    Söker termer baserat på kategori/prefix (skiftlägesokänsligt).
    Ex: "Aktiv" för aktiva låntagare, "Besok" för besöksstatistik.
    """
    try:
        terms = queries.search_terms_by_category(category)
    except Exception as e:
        raise tool_error(e, "search_terms_by_category") from e

    lines = [f"# Termer i kategori: {category}", f"**Antal termer funna:** {len(terms)}", ""]
    if terms:
        lines.append("## Termer\n")
        lines.append(format_term_list(terms))
    else:
        lines.append(f'Inga termer hittades som börjar med "{category}".')
    return "\n".join(lines)


@mcp.tool()
async def search_terms_by_keyword(
    keyword: str = Field(description="Nyckelord att söka efter, ex: 'låntagare', 'besök', 'böcker', 'personal'")
) -> str:
    """
    Söker termer där ID, namn eller beskrivning innehåller nyckelordet.
    """
    try:
        terms = queries.search_terms_by_keyword(keyword)
    except Exception as e:
        raise tool_error(e, "search_terms_by_keyword") from e

    lines = [f'# Termer som matchar nyckelord: "{keyword}"', f"**Antal termer funna:** {len(terms)}", ""]
    if terms:
        lines.append("## Termer\n")
        lines.append(format_term_list(terms))
    else:
        lines.append(f'Inga termer hittades som matchar "{keyword}".')
    return "\n".join(lines)


@mcp.tool()
async def get_term_details(
    term_id: str = Field(description="Term-ID, ex: 'Folk54', 'Aktiv01', 'Bestand101'")
) -> str:
    """
    Hämtar detaljerad information om en term: beskrivning, datatyp,
    giltighetstid och eventuella ersättningar.
    """
    try:
        lookup = queries.get_term_details(term_id)
    except Exception as e:
        raise tool_error(e, "get_term_details") from e

    if isinstance(lookup, TermFound):
        return f"# Termdetaljer\n\n{format_term_detailed(lookup.term)}"
    return (
        "# Term hittades inte\n\n"
        f'Ingen term med ID "{term_id}" kunde hittas i biblioteksstatistiken. '
        "Använd search_terms_by_keyword för att hitta rätt term."
    )


@mcp.tool()
async def list_term_categories() -> str:
    """Listar alla termkategorier (prefix) i biblioteksstatistiken."""
    categories = queries.list_term_categories()

    lines = [
        "# Termkategorier i Biblioteksstatistiken",
        f"**Totalt antal kategorier:** {len(categories)}",
        "",
        "## Tillgängliga kategorier\n",
    ]
    for i, category in enumerate(categories, 1):
        lines.append(f'{i}. **{category}** - Använd "search_terms_by_category" för att se termerna')
    if not categories:
        lines.append("Termlistan är tom. Kontrollera bibstat_server_status.")
    return "\n".join(lines)


# ============================================================================
# 3. ANALYS
# ============================================================================

@mcp.tool()
async def compare_library_years(
    library_id: str = Field(description="Biblioteks-ID eller del av ID"),
    year1: int = Field(description="Första året att jämföra"),
    year2: int = Field(description="Andra året att jämföra"),
    term: Optional[str] = Field(default=None, description="Filtrera på specifik term (valfri)"),
    limit: int = Field(default=1000, ge=1, le=10000, description="Antal observationer att söka igenom")
) -> str:
    """Jämför ett biblioteks statistik mellan två år och beräknar förändringen."""
    try:
        result = await queries.compare_library_years(library_id, year1, year2, term, limit)
    except Exception as e:
        raise tool_error(e, "compare_library_years") from e

    lines = [f"# Jämförelse: {library_id}", f"Jämför år {year1} med år {year2}"]
    if term:
        lines.append(f"**Term:** {term}")
    lines.append("\n## Jämförelse\n")
    lines.append(format_comparison(result.comparison, year1, year2))
    lines.append(format_truncation_note(result.truncated, limit))
    return "\n".join(lines)


@mcp.tool()
async def get_term_trend(
    term_id: str = Field(description="Term-ID att analysera, ex: 'Folk54', 'Aktiv01'"),
    start_year: int = Field(description="Startår för analysen"),
    end_year: int = Field(description="Slutår för analysen"),
    limit: int = Field(default=5000, ge=1, le=20000, description="Antal observationer att hämta")
) -> str:
    """
    Analyserar en term över flera år.
    Visar antal, summa, medel, min och max per år.
    """
    try:
        result = await queries.get_term_trend(term_id, start_year, end_year, limit)
    except Exception as e:
        raise tool_error(e, "get_term_trend") from e

    trend = result.trend
    lines = [
        f"# Trendanalys: {term_id}",
        f"**Period:** {start_year} - {end_year}",
        f"**Antal år med data:** {len(trend.years)}",
        "",
        "## Statistik per år\n",
    ]
    for entry in trend.per_year:
        lines.append(f"- **{entry.year}**: {format_group_summary(entry.summary)}")
    if not trend.per_year:
        lines.append("Inga numeriska värden hittades inom perioden.")
    lines.append(format_truncation_note(result.truncated, limit))
    return "\n".join(lines)


@mcp.tool()
async def aggregate_by_target_group(
    term_id: str = Field(description="Term-ID att aggregera"),
    year: Optional[int] = Field(default=None, description="Filtrera på specifikt år (valfri)"),
    limit: int = Field(default=5000, ge=1, le=20000, description="Antal observationer att hämta")
) -> str:
    """Aggregerar statistik per målgrupp med antal, summa, medelvärde, min och max."""
    try:
        result = await queries.aggregate_by_target_group(term_id, year, limit)
    except Exception as e:
        raise tool_error(e, "aggregate_by_target_group") from e

    lines = [f"# Aggregering per målgrupp: {term_id}"]
    if year:
        lines.append(f"**År:** {year}")
    lines.append("")
    lines.append(format_group_summaries(result.groups))
    lines.append(format_truncation_note(result.truncated, limit))
    return "\n".join(lines)


@mcp.tool()
async def compare_multiple_libraries(
    library_ids: List[str] = Field(description="Lista med biblioteks-ID:n att jämföra"),
    term_id: str = Field(description="Term-ID att jämföra"),
    year: int = Field(description="År att jämföra"),
    limit: int = Field(default=1000, ge=1, le=10000, description="Antal observationer att söka igenom per bibliotek")
) -> str:
    """Jämför flera bibliotek för en specifik term och ett år."""
    try:
        results = await queries.compare_multiple_libraries(library_ids, term_id, year, limit)
    except Exception as e:
        raise tool_error(e, "compare_multiple_libraries") from e

    lines = [
        f"# Jämförelse av bibliotek: {term_id} ({year})",
        "",
        "| Bibliotek | Namn | Värde |",
        "| --- | --- | --- |",
    ]
    truncated = False
    for library_id, result in results.items():
        truncated = truncated or result.truncated
        if not len(result):
            lines.append(f"| {library_id} | – | Ingen data |")
            continue
        for obs in result:
            name = obs.library.display_name if obs.library else "–"
            lines.append(f"| {library_id} | {name} | {format_number(obs.value)} |")
    lines.append(format_truncation_note(truncated, limit))
    return "\n".join(lines)


@mcp.tool()
async def generate_term_report(
    term_id: str = Field(description="Term-ID att generera rapport för"),
    year: int = Field(description="År för rapporten"),
    limit: int = Field(default=5000, ge=1, le=20000, description="Antal observationer att hämta")
) -> str:
    """
    Genererar en rapport för en term: metadata, beskrivande statistik,
    fördelning per målgrupp och topp 10 observationer.
    """
    try:
        report = await queries.generate_term_report(term_id, year, limit)
    except Exception as e:
        raise tool_error(e, "generate_term_report") from e

    lines = [f"# Rapport: {term_id} ({year})", ""]
    if isinstance(report.lookup, TermFound):
        lines.append(format_term_detailed(report.lookup.term))
    else:
        lines.append(f"*Termen {term_id} finns inte i den lokala termlistan.*")

    lines.append(f"\n**Antal observationer:** {report.observation_count}")
    lines.append("\n## Beskrivande statistik\n")
    if report.statistics is not None:
        lines.append(format_statistics(report.statistics))
    else:
        lines.append("Inga numeriska värden att beräkna statistik på.")

    lines.append("\n## Per målgrupp\n")
    lines.append(format_group_summaries(report.by_target_group))

    lines.append("\n## Topp 10\n")
    if report.top:
        lines.append(format_observation_list(report.top))
    else:
        lines.append("Inga numeriska observationer.")

    lines.append(format_truncation_note(report.truncated, limit))
    return "\n".join(lines)


# ============================================================================
# 4. BIBLIOTEK, ÅR OCH MÅLGRUPPER
# ============================================================================

@mcp.tool()
async def list_libraries(
    limit: int = Field(default=1000, ge=1, le=10000, description="Max antal observationer att söka igenom (default 1000)")
) -> str:
    """Listar bibliotek som förekommer i statistiken."""
    try:
        listing = await queries.list_libraries(limit)
    except Exception as e:
        raise tool_error(e, "list_libraries") from e

    lines = [
        "# Bibliotek i statistiken",
        f"**Antal unika bibliotek:** {len(listing.libraries)}",
        "",
        format_library_listing(listing.libraries, max_items=100),
        format_truncation_note(listing.truncated, limit),
    ]
    return "\n".join(lines)


@mcp.tool()
async def search_libraries(
    search_term: str = Field(description="Sökterm (namn, sigel eller ID)"),
    limit: int = Field(default=1000, ge=1, le=10000, description="Max antal observationer att söka igenom")
) -> str:
    """Söker efter bibliotek baserat på namn, sigel eller ID."""
    try:
        listing = await queries.search_libraries(search_term, limit)
    except Exception as e:
        raise tool_error(e, "search_libraries") from e

    lines = [f'# Bibliotekssökning: "{search_term}"', f"**Antal träffar:** {len(listing.libraries)}", ""]
    if listing.libraries:
        lines.append(format_library_listing(listing.libraries))
    else:
        lines.append(f'Inga bibliotek hittades som matchar "{search_term}".')
    lines.append(format_truncation_note(listing.truncated, limit))
    return "\n".join(lines)


@mcp.tool()
async def get_available_years(
    limit: int = Field(default=2000, ge=1, le=20000, description="Max antal observationer att söka igenom (default 2000)")
) -> str:
    """Listar tillgängliga år i statistiken, nyast först."""
    try:
        years = await queries.get_available_years(limit)
    except Exception as e:
        raise tool_error(e, "get_available_years") from e

    lines = ["# Tillgängliga år i statistiken", f"**Antal år:** {len(years)}", "", "## År (nyast till äldst)\n"]
    lines.extend(f"{i}. {year}" for i, year in enumerate(years, 1))
    return "\n".join(lines)


@mcp.tool()
async def list_target_groups(
    limit: int = Field(default=2000, ge=1, le=20000, description="Max antal observationer att söka igenom (default 2000)")
) -> str:
    """Listar alla målgrupper i statistiken med antal observationer."""
    try:
        groups = await queries.list_target_groups(limit)
    except Exception as e:
        raise tool_error(e, "list_target_groups") from e

    lines = ["# Målgrupper i statistiken", f"**Antal målgrupper:** {len(groups)}", ""]
    lines.extend(f"{i}. **{group.name}** ({group.count} observationer)" for i, group in enumerate(groups, 1))
    return "\n".join(lines)


# ============================================================================
# 5. EXPORT OCH STATUS
# ============================================================================

@mcp.tool()
async def export_to_csv(
    term: str = Field(description="Term att exportera"),
    year: Optional[int] = Field(default=None, description="Filtrera på specifikt år (valfri)"),
    limit: int = Field(default=5000, ge=1, le=20000, description="Max antal observationer (default 5000)")
) -> str:
    """
    Exporterar observationer till CSV för Excel eller dataanalys.
    Kolumner: id, term, value, library, sampleYear, targetGroup, modified.
    """
    try:
        export = await queries.export_csv(term, year, limit)
    except Exception as e:
        raise tool_error(e, "export_to_csv") from e

    if not export.row_count:
        return f"Inga observationer att exportera för {term}."

    note = format_truncation_note(export.truncated, limit)
    return f"# CSV-export: {term} ({export.row_count} rader)\n\n```csv\n{export.csv}```{note}"


@mcp.tool()
async def bibstat_server_status() -> str:
    """
    Visar serverns status: den lokala termlistans hälsa och aktuell konfiguration.
    """
    status = queries.dictionary_status()
    if status.state == "not_loaded":
        dictionary.load()
        status = queries.dictionary_status()

    icon = "✅" if status.healthy else "❌"
    lines = [
        "## Serverstatus",
        f"{icon} **Termlista:** {status.state} ({status.term_count} termer)",
        f"- **Källa:** {status.source}",
    ]
    if status.error:
        lines.append(f"- **Fel:** {status.error}")
    lines.append("\n## Konfiguration\n")
    lines.extend(f"- **{key}:** {value}" for key, value in get_config().items())
    return "\n".join(lines)


# ============================================================================
# SERVER RUNNERS
# ============================================================================

def run_stdio():
    """Kör servern med stdio-transport (för Claude Desktop m.fl.)."""
    mcp.run(transport="stdio")


def create_http_app():
    """Starlette-app med /health, /info och FastMCP:s SSE-app monterad på /."""
    from starlette.applications import Starlette
    from starlette.routing import Route, Mount
    from starlette.responses import JSONResponse

    async def health(request):
        status = dictionary.status()
        if status.state == "not_loaded":
            dictionary.load()
            status = dictionary.status()
        return JSONResponse({
            "status": "healthy" if status.healthy else "degraded",
            "server": "kb-biblioteksstatistik",
            "version": __version__,
            "term_dictionary": {
                "state": status.state,
                "term_count": status.term_count,
                "error": status.error,
            },
        })

    async def info(request):
        tools = await mcp.list_tools()
        return JSONResponse({
            "name": "kb-biblioteksstatistik",
            "version": __version__,
            "description": "KB:s öppna biblioteksstatistik via MCP",
            "api": {"base": Config.BASE_URL, "license": "CC0"},
            "tools": len(tools),
            "endpoints": {"health": "/health", "sse": "/sse"},
        })

    # Hämta FastMCP:s SSE-app
    sse_app = mcp.sse_app()

    return Starlette(
        debug=False,
        routes=[
            Route("/health", health),
            Route("/info", info),
            Mount("/", app=sse_app),
        ]
    )


def run_http(host: str = "0.0.0.0", port: int = 8000):
    """Kör servern med HTTP/SSE-transport; samma verktyg som stdio."""
    import uvicorn

    app = create_http_app()

    dictionary.load()
    logger.info(f"Starting Bibstat MCP Server on http://{host}:{port}")
    logger.info(f"SSE endpoint: http://{host}:{port}/sse")
    uvicorn.run(app, host=host, port=port)


# ============================================================================
# MAIN
# ============================================================================

def main():
    import argparse

    parser = argparse.ArgumentParser(description="Bibstat MCP Server - KB:s biblioteksstatistik")
    parser.add_argument("--http", action="store_true", help="Kör med HTTP-transport (för remote access)")
    parser.add_argument("--host", default="0.0.0.0", help="HTTP host (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=int(os.environ.get("PORT", 8000)), help="HTTP port (default: 8000)")

    args = parser.parse_args()

    logger.info(f"KB Biblioteksstatistik MCP Server {__version__} - API: {Config.BASE_URL} - Licens: CC0")
    if args.http:
        run_http(args.host, args.port)
    else:
        run_stdio()


if __name__ == "__main__":
    main()
