"""Gemensamma fixtures för Bibstat MCP-testerna."""

import json
from typing import Any, Dict, List, Optional

import pytest

from bibstat.models import Observation, ObservationWindow, Term
from bibstat.queries import StatisticsQueries
from bibstat.term_dictionary import TermDictionary


def make_observation(
    obs_id: str,
    term: str = "Folk54",
    value: Any = 100,
    library: Any = None,
    year: Optional[int] = 2020,
    target_group: Optional[str] = "folkbibliotek",
    modified: str = "2021-03-01T10:00:00",
) -> Dict[str, Any]:
    """En observation i samma form som @graph-posterna från /data."""
    return {
        "@id": f"https://bibstat.kb.se/data/{obs_id}",
        "@type": "qb:Observation",
        "term": term,
        "value": value,
        "library": library if library is not None else {
            "@id": "https://bibstat.kb.se/library/SE-UPP01",
            "name": "Uppsala stadsbibliotek",
            "sigel": "Upp",
            "municipality": "Uppsala",
        },
        "sampleYear": year,
        "targetGroup": target_group,
        "modified": modified,
    }


UPPSALA = {
    "@id": "https://bibstat.kb.se/library/SE-UPP01",
    "name": "Uppsala stadsbibliotek",
    "sigel": "Upp",
    "municipality": "Uppsala",
}
LUND = {
    "@id": "https://bibstat.kb.se/library/SE-LUN02",
    "name": "Lunds universitetsbibliotek",
    "sigel": "L",
    "municipality": "Lund",
}
KIRUNA = {
    "@id": "https://bibstat.kb.se/library/SE-KIR03",
    "name": "Kiruna skolbibliotek",
    "sigel": "Kir",
    "municipality": "Kiruna",
}


class FakeApiClient:
    """Falsk API-klient som filtrerar på term och tillämpar offset/limit som servern."""

    def __init__(self, records: List[Dict[str, Any]], terms: Optional[List[Dict[str, Any]]] = None):
        self.records = records
        self.terms = terms or []
        self.calls: List[Dict[str, Any]] = []

    async def fetch_observations(self, term=None, date_from=None, date_to=None, limit=None, offset=None):
        self.calls.append({
            "term": term, "date_from": date_from, "date_to": date_to,
            "limit": limit, "offset": offset,
        })
        selected = [r for r in self.records if term is None or r.get("term") == term]
        start = offset or 0
        end = start + limit if limit is not None else None
        return ObservationWindow(
            observations=[Observation.from_json(r) for r in selected[start:end]],
            limit=limit,
            offset=start,
        )

    async def fetch_terms(self):
        self.calls.append({"terms": True})
        return [Term.from_json(t) for t in self.terms]


TERMS_DOCUMENT = {
    "terms": [
        {"id": "Aktiv01", "label": "Aktiva låntagare totalt", "description": "Antal låntagare som lånat minst en gång.", "type": "integer"},
        {"id": "Aktiv02", "label": "Aktiva låntagare, kvinnor", "description": "Kvinnliga låntagare.", "type": "integer"},
        {"id": "Besok12", "label": "Digitala besök", "description": "Sessioner på webbplatsen.", "type": "integer", "replaces": ["Besok03"]},
        {"id": "Folk54", "label": "Antal besök", "description": "Fysiska besök på folkbiblioteket.", "type": "integer", "validFrom": "2014"},
        {"id": "Skol24", "label": {"sv": "Antal elever med tillgång", "en": "Pupils with access"}, "description": "Elever som har tillgång till skolbibliotek.", "type": "integer"},
    ]
}


class CountingReader:
    """Läsare för termlistan som räknar hur många gånger källan läses."""

    def __init__(self, document: Any = None, error: Optional[Exception] = None):
        self.document = TERMS_DOCUMENT if document is None else document
        self.error = error
        self.calls = 0

    def __call__(self) -> str:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return json.dumps(self.document)


@pytest.fixture
def sample_records() -> List[Dict[str, Any]]:
    return [
        make_observation("1", "Folk54", 1200, UPPSALA, 2019, "folkbibliotek"),
        make_observation("2", "Folk54", 1500, UPPSALA, 2020, "folkbibliotek"),
        make_observation("3", "Folk54", 800, LUND, 2020, "forskbibliotek"),
        make_observation("4", "Folk54", 300, KIRUNA, 2020, "skolbibliotek"),
        make_observation("5", "Folk54", "uppgift saknas", KIRUNA, 2019, "skolbibliotek"),
        make_observation("6", "Aktiv01", 0, UPPSALA, 2019, "folkbibliotek"),
        make_observation("7", "Aktiv01", 50, UPPSALA, 2020, "folkbibliotek"),
        make_observation("8", "Aktiv01", 400, LUND, 2020, "forskbibliotek"),
        make_observation("9", "Folk54", 1500, LUND, 2021, "forskbibliotek"),
    ]


@pytest.fixture
def fake_client(sample_records) -> FakeApiClient:
    return FakeApiClient(sample_records, terms=TERMS_DOCUMENT["terms"])


@pytest.fixture
def reader() -> CountingReader:
    return CountingReader()


@pytest.fixture
def dictionary(reader) -> TermDictionary:
    return TermDictionary(reader=reader, source="test")


@pytest.fixture
def queries(fake_client, dictionary) -> StatisticsQueries:
    return StatisticsQueries(fake_client, dictionary)
