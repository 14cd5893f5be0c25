"""
Bibstat MCP Server - Datamodeller
Observationer, bibliotek och termer från KB:s biblioteksstatistik (JSON-LD).
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

CATEGORY_PATTERN = re.compile(r"^[A-Za-z]+")


def localized_text(value: Any) -> Optional[str]:
    """Plockar ut svensk text ur ett lokaliserat JSON-LD-värde."""
    if value is None:
        return None
    if isinstance(value, dict):
        text = value.get("sv") or value.get("@value") or value.get("en")
        return str(text) if text is not None else None
    if isinstance(value, list):
        for item in value:
            text = localized_text(item)
            if text:
                return text
        return None
    return str(value)


def term_category(term_id: str) -> Optional[str]:
    """Kategori = inledande bokstäver före första siffran (Aktiv01 -> Aktiv)."""
    match = CATEGORY_PATTERN.match(term_id or "")
    return match.group(0) if match else None


def _last_segment(uri: str) -> str:
    return uri.rstrip("/").rsplit("/", 1)[-1]


# ============================================================================
# BIBLIOTEK
# ============================================================================

@dataclass(frozen=True)
class LibraryRef:
    """Biblioteksreferens på en observation."""
    id: str
    name: Optional[str] = None
    sigel: Optional[str] = None
    municipality: Optional[str] = None

    @classmethod
    def from_json(cls, value: Any) -> Optional["LibraryRef"]:
        if value is None:
            return None
        if isinstance(value, dict):
            lib_id = value.get("@id") or value.get("id") or ""
            municipality = value.get("municipality") or value.get("municipality_name")
            return cls(
                id=str(lib_id),
                name=value.get("name"),
                sigel=value.get("sigel"),
                municipality=localized_text(municipality),
            )
        return cls(id=str(value))

    @property
    def display_name(self) -> str:
        return self.name or self.id


# Bibliotek härleds från observationerna, samma form som referensen
Library = LibraryRef


# ============================================================================
# OBSERVATIONER
# ============================================================================

@dataclass(frozen=True)
class Observation:
    """En mätning: ett värde för en term, ett bibliotek och ett år."""
    id: str
    term: Optional[str] = None
    value: Any = None
    library: Optional[LibraryRef] = None
    sample_year: Optional[int] = None
    target_group: Optional[str] = None
    modified: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "Observation":
        sample_year = data.get("sampleYear")
        try:
            sample_year = int(sample_year) if sample_year is not None else None
        except (TypeError, ValueError):
            sample_year = None

        return cls(
            id=str(data.get("@id", "")),
            term=data.get("term"),
            value=data.get("value"),
            library=LibraryRef.from_json(data.get("library")),
            sample_year=sample_year,
            target_group=data.get("targetGroup") or data.get("target_group"),
            modified=data.get("modified"),
            raw=data,
        )

    @property
    def is_numeric(self) -> bool:
        return isinstance(self.value, (int, float)) and not isinstance(self.value, bool)

    @property
    def library_id(self) -> str:
        return self.library.id if self.library else ""


@dataclass(frozen=True)
class ObservationWindow:
    """
    Det hämtade fönstret av observationer.

    API:t filtrerar bara på term, datum, limit och offset. Bibliotek, år och
    målgrupp filtreras i klienten inom fönstret, så när fönstret är fullt
    (truncated) kan fler träffar finnas längre fram.
    """
    observations: List[Observation]
    limit: Optional[int] = None
    offset: int = 0

    @property
    def truncated(self) -> bool:
        return self.limit is not None and len(self.observations) >= self.limit


@dataclass(frozen=True)
class FilteredObservations:
    """Klientfiltrerad delmängd av ett hämtat fönster."""
    observations: List[Observation]
    window: ObservationWindow

    @property
    def truncated(self) -> bool:
        return self.window.truncated

    def __len__(self) -> int:
        return len(self.observations)

    def __iter__(self):
        return iter(self.observations)


# ============================================================================
# TERMER
# ============================================================================

@dataclass(frozen=True)
class Term:
    """En statistisk variabel, t.ex. Folk54 (antal besök)."""
    id: str
    label: Optional[str] = None
    description: Optional[str] = None
    value_type: Optional[str] = None
    valid_from: Optional[str] = None
    valid_to: Optional[str] = None
    replaces: List[str] = field(default_factory=list)
    replaced_by: List[str] = field(default_factory=list)

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "Term":
        """Tolkar både lokala termposter och JSON-LD-termer från /def/terms."""
        term_id = data.get("id") or data.get("key")
        if not term_id and data.get("@id"):
            term_id = _last_segment(str(data["@id"]))

        value_type = data.get("type") or data.get("range") or data.get("datatype")
        if isinstance(value_type, str) and ":" in value_type:
            value_type = value_type.split(":", 1)[1]

        return cls(
            id=str(term_id or ""),
            label=localized_text(data.get("label")),
            description=localized_text(
                data.get("description") or data.get("comment")
            ),
            value_type=value_type,
            valid_from=data.get("validFrom") or data.get("valid_from"),
            valid_to=data.get("validTo") or data.get("valid_to"),
            replaces=_as_list(data.get("replaces")),
            replaced_by=_as_list(data.get("replacedBy") or data.get("replaced_by")),
        )

    @property
    def category(self) -> Optional[str]:
        return term_category(self.id)


def _as_list(value: Any) -> List[str]:
    if not value:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    return [str(value)]


@dataclass(frozen=True)
class TermFound:
    term: Term


@dataclass(frozen=True)
class TermNotFound:
    term_id: str


TermLookup = Union[TermFound, TermNotFound]
