"""
Bibstat MCP Server - Formatering
Rena renderingsfunktioner: observationer, termer och statistik till Markdown,
samt CSV-export.
"""

import csv
import io
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from bibstat.models import Library, Observation, Term

CSV_COLUMNS = ["id", "term", "value", "library", "sampleYear", "targetGroup", "modified"]


def format_number(value: Any, decimals: int = 2) -> str:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, int) or float(value).is_integer():
        return f"{int(value):,}".replace(",", " ")
    return f"{value:,.{decimals}f}".replace(",", " ")


def format_truncation_note(truncated: bool, limit: Optional[int] = None) -> str:
    """Upplysning om att fönstret var fullt och att fler träffar kan finnas."""
    if not truncated:
        return ""
    shown = f" ({limit} poster)" if limit else ""
    return (
        f"\n> ⚠️ Hämtningsfönstret är fullt{shown}. Resultaten kan vara ofullständiga; "
        "öka limit eller paginera med offset."
    )


# ============================================================================
# OBSERVATIONER
# ============================================================================

def format_observation(obs: Observation) -> str:
    """Formaterar en observation till en läsbar rad."""
    parts: List[str] = []

    if obs.term:
        parts.append(f"Term: {obs.term}")
    if obs.sample_year:
        parts.append(f"År: {obs.sample_year}")
    if obs.value is not None:
        parts.append(f"Värde: {obs.value}")
    if obs.library:
        parts.append(f"Bibliotek: {obs.library.display_name}")
    if obs.target_group:
        parts.append(f"Målgrupp: {obs.target_group}")
    if obs.modified:
        parts.append(f"Uppdaterad: {obs.modified}")

    return " | ".join(parts)


def format_observation_list(
    observations: Sequence[Observation],
    max_items: Optional[int] = None,
    empty_message: str = "Inga observationer hittades."
) -> str:
    if not observations:
        return empty_message

    shown = observations if max_items is None else observations[:max_items]
    lines = [f"{i}. {format_observation(obs)}" for i, obs in enumerate(shown, 1)]
    if len(observations) > len(shown):
        lines.append(f"\n*... och {len(observations) - len(shown)} observationer till*")
    return "\n".join(lines)


# ============================================================================
# TERMER
# ============================================================================

def format_term(term: Term) -> str:
    """Formaterar en term till en läsbar rad."""
    parts = [f"Nyckel: {term.id}"]

    if term.label:
        parts.append(f"Namn: {term.label}")
    if term.description:
        parts.append(f"Beskrivning: {term.description}")
    if term.category:
        parts.append(f"Kategori: {term.category}")

    return " | ".join(parts)


def format_term_detailed(term: Term) -> str:
    """Detaljerat block för en term."""
    lines = [f"## {term.id}"]

    if term.label:
        lines.append(f"**Namn:** {term.label}")
    if term.description:
        lines.append(f"**Beskrivning:** {term.description}")
    if term.category:
        lines.append(f"**Kategori:** {term.category}")
    if term.value_type:
        lines.append(f"**Datatyp:** {term.value_type}")
    if term.valid_from or term.valid_to:
        lines.append(f"**Giltig:** {term.valid_from or '?'} – {term.valid_to or 'tills vidare'}")
    if term.replaces:
        lines.append(f"**Ersätter:** {', '.join(term.replaces)}")
    if term.replaced_by:
        lines.append(f"**Ersatt av:** {', '.join(term.replaced_by)}")

    return "\n".join(lines)


def format_term_list(terms: Sequence[Term]) -> str:
    return "\n".join(f"{i}. {format_term(term)}" for i, term in enumerate(terms, 1))


# ============================================================================
# BIBLIOTEK
# ============================================================================

def format_library(lib: Library) -> str:
    parts = [f"ID: {lib.id}"]
    if lib.name:
        parts.append(f"Namn: {lib.name}")
    if lib.sigel:
        parts.append(f"Sigel: {lib.sigel}")
    if lib.municipality:
        parts.append(f"Kommun: {lib.municipality}")
    return " | ".join(parts)


# ============================================================================
# STATISTIK
# ============================================================================

def format_comparison(comparison: Mapping[str, Any], year1: int, year2: int) -> str:
    """Tabell över förändring per term mellan två år."""
    if not comparison:
        return "Inga jämförbara observationer hittades för dessa år."

    lines = [
        f"| Term | {year1} | {year2} | Förändring | Förändring (%) |",
        "| --- | --- | --- | --- | --- |",
    ]
    for term_id in sorted(comparison):
        row = comparison[term_id]
        v1 = "–" if row.year1_value is None else format_number(row.year1_value)
        v2 = "–" if row.year2_value is None else format_number(row.year2_value)
        change = "–" if row.absolute_change is None else format_number(row.absolute_change)
        if row.percent_change is None:
            percent = "–"
        else:
            percent = f"{row.percent_change:+.1f} %"
        lines.append(f"| {term_id} | {v1} | {v2} | {change} | {percent} |")

    return "\n".join(lines)


def format_statistics(stats) -> str:
    mode = "ingen" if stats.mode is None else format_number(stats.mode)
    return "\n".join([
        f"- **Antal:** {stats.count}",
        f"- **Summa:** {format_number(stats.sum)}",
        f"- **Medelvärde:** {format_number(stats.mean)}",
        f"- **Median:** {format_number(stats.median)}",
        f"- **Typvärde:** {mode}",
        f"- **Standardavvikelse:** {format_number(stats.standard_deviation)}",
        f"- **Varians:** {format_number(stats.variance)}",
        f"- **Min:** {format_number(stats.min)}",
        f"- **Max:** {format_number(stats.max)}",
        f"- **Variationsbredd:** {format_number(stats.range)}",
        f"- **25:e percentilen:** {format_number(stats.percentile_25)}",
        f"- **75:e percentilen:** {format_number(stats.percentile_75)}",
    ])


def format_group_summary(summary) -> str:
    return (
        f"Antal: {summary.count} | Summa: {format_number(summary.sum)} | "
        f"Medel: {format_number(summary.average)} | "
        f"Min: {format_number(summary.min)} | Max: {format_number(summary.max)}"
    )


def format_group_summaries(groups: Mapping[str, Any]) -> str:
    if not groups:
        return "Inga numeriska värden att aggregera."
    return "\n".join(f"- **{name}**: {format_group_summary(summary)}" for name, summary in groups.items())


# ============================================================================
# EXPORTFORMAT
# ============================================================================

def _csv_row(obs: Observation) -> List[Any]:
    return [
        obs.id,
        obs.term or "",
        obs.value if obs.value is not None else "",
        obs.library_id,
        obs.sample_year if obs.sample_year is not None else "",
        obs.target_group or "",
        obs.modified or "",
    ]


def observations_to_csv(observations: Iterable[Observation]) -> str:
    """
    Exporterar observationer till CSV med fast kolumnordning.

    Textfält citeras, tal skrivs utan citattecken. Noll observationer ger en
    tom sträng, inte bara en rubrikrad.
    """
    rows = [_csv_row(obs) for obs in observations]
    if not rows:
        return ""

    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_NONNUMERIC, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    writer.writerows(rows)
    return buffer.getvalue()


def format_library_listing(libraries: Sequence[Library], max_items: Optional[int] = None) -> str:
    shown = libraries if max_items is None else libraries[:max_items]
    lines = [f"{i}. {format_library(lib)}" for i, lib in enumerate(shown, 1)]
    if len(libraries) > len(shown):
        lines.append(f"\n*... och {len(libraries) - len(shown)} bibliotek till*")
    return "\n".join(lines)


def as_json_rows(observations: Iterable[Observation]) -> List[Dict[str, Any]]:
    return [obs.raw for obs in observations]
