"""
Bibstat MCP Server - Lokal termlista
Statisk ögonblicksbild av termdefinitionerna för snabb sökning utan nätverk.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional

from bibstat.api_client import Config
from bibstat.models import Term, TermFound, TermLookup, TermNotFound

logger = logging.getLogger("bibstat_mcp")

TermReader = Callable[[], str]


def file_reader(path: Path) -> TermReader:
    """Läsare för en JSON-fil med en 'terms'-lista."""
    def read() -> str:
        return path.read_text(encoding="utf-8")
    return read


@dataclass(frozen=True)
class DictionaryStatus:
    """Hälsostatus för termlistan."""
    state: str  # not_loaded | loaded | failed
    source: str
    term_count: int = 0
    error: Optional[str] = None

    @property
    def healthy(self) -> bool:
        return self.state != "failed"


class TermDictionary:
    """
    Termlistan läses in en gång och cachas sedan för processens livstid.

    Vid läs- eller tolkningsfel loggas felet, status sätts till 'failed' och
    en tom lista returneras. En misslyckad inläsning görs om vid nästa anrop.
    """

    def __init__(self, reader: Optional[TermReader] = None, source: Optional[str] = None):
        if reader is None:
            reader = file_reader(Config.TERMS_FILE)
            source = source or str(Config.TERMS_FILE)
        self._reader = reader
        self._source = source or "custom"
        self._terms: Optional[List[Term]] = None
        self._index: Dict[str, Term] = {}
        self._error: Optional[str] = None

    def load(self) -> List[Term]:
        """Returnerar alla termer; läser källan endast tills en inläsning lyckats."""
        if self._terms is not None:
            return self._terms

        try:
            document = json.loads(self._reader())
            if not isinstance(document, dict):
                raise ValueError("termlistan måste vara ett JSON-objekt")
            entries = document.get("terms")
            if not isinstance(entries, list):
                raise ValueError("fältet 'terms' måste vara en lista")
            terms = [Term.from_json(entry) for entry in entries if isinstance(entry, dict)]
        except (OSError, ValueError, TypeError, AttributeError) as e:
            self._error = f"{type(e).__name__}: {e}"
            logger.error(f"Kunde inte läsa termlistan från {self._source}: {self._error}")
            return []

        self._terms = terms
        self._index = {term.id: term for term in terms}
        self._error = None
        logger.info(f"Läste in {len(terms)} termer från {self._source}")
        return terms

    def status(self) -> DictionaryStatus:
        if self._terms is not None:
            return DictionaryStatus("loaded", self._source, term_count=len(self._terms))
        if self._error is not None:
            return DictionaryStatus("failed", self._source, error=self._error)
        return DictionaryStatus("not_loaded", self._source)

    def search_by_category(self, prefix: str) -> List[Term]:
        """Termer vars ID börjar med prefixet (skiftlägesokänsligt)."""
        needle = prefix.lower()
        return [term for term in self.load() if term.id.lower().startswith(needle)]

    def search_by_keyword(self, keyword: str) -> List[Term]:
        """Termer där ID, namn eller beskrivning innehåller nyckelordet."""
        needle = keyword.lower()
        matches = []
        for term in self.load():
            fields = (term.id, term.label or "", term.description or "")
            if any(needle in text.lower() for text in fields):
                matches.append(term)
        return matches

    def get_by_id(self, term_id: str) -> TermLookup:
        self.load()
        term = self._index.get(term_id)
        return TermFound(term) if term is not None else TermNotFound(term_id)

    def list_categories(self) -> List[str]:
        categories = {term.category for term in self.load() if term.category}
        return sorted(categories)
