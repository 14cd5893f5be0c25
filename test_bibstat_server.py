"""Tester för MCP-verktygen, resursen och promptarna."""

import httpx
import pytest
from mcp.server.fastmcp.exceptions import ToolError
from starlette.testclient import TestClient

import bibstat_mcp_server as server
from bibstat.queries import StatisticsQueries
from bibstat.term_dictionary import TermDictionary
from conftest import CountingReader

EXPECTED_TOOLS = {
    "search_library_statistics",
    "get_term_definitions",
    "search_terms_by_category",
    "search_terms_by_keyword",
    "get_term_details",
    "list_term_categories",
    "get_library_data",
    "get_year_statistics",
    "compare_library_years",
    "get_term_trend",
    "get_multiple_terms",
    "list_libraries",
    "search_libraries",
    "get_available_years",
    "get_observations_by_target_group",
    "aggregate_by_target_group",
    "compare_multiple_libraries",
    "generate_term_report",
    "export_to_csv",
    "list_target_groups",
    "bibstat_server_status",
}


@pytest.fixture
def wired(monkeypatch, queries, dictionary):
    """Kopplar serverns verktyg till den falska klienten och termlistan."""
    monkeypatch.setattr(server, "queries", queries)
    monkeypatch.setattr(server, "dictionary", dictionary)
    return queries


class FailingClient:
    async def fetch_observations(self, **kwargs):
        request = httpx.Request("GET", "https://bibstat.kb.se/data")
        response = httpx.Response(503, request=request)
        raise httpx.HTTPStatusError("unavailable", request=request, response=response)

    async def fetch_terms(self):
        raise httpx.ConnectError("nere")


async def test_all_tools_are_registered():
    tools = await server.mcp.list_tools()
    assert {tool.name for tool in tools} == EXPECTED_TOOLS


async def test_required_parameters_are_declared():
    tools = {tool.name: tool for tool in await server.mcp.list_tools()}
    assert tools["compare_library_years"].inputSchema["required"] == ["library_id", "year1", "year2"]
    assert tools["get_multiple_terms"].inputSchema["required"] == ["term_ids"]
    assert "required" not in tools["list_libraries"].inputSchema


async def test_prompts_and_resource_are_registered():
    prompts = {prompt.name for prompt in await server.mcp.list_prompts()}
    assert prompts == {
        "analyze-library-trends",
        "compare-library-types",
        "generate-annual-report",
        "benchmark-libraries",
        "discover-terms",
    }
    resources = await server.mcp.list_resources()
    assert [str(r.uri).startswith("kb://terms") for r in resources] == [True]


async def test_search_library_statistics_markdown(wired):
    text = await server.search_library_statistics(
        term="Aktiv01", date_from=None, date_to=None, limit=100, offset=0, format="markdown"
    )
    assert "**Antal observationer:** 3" in text
    assert "**Term:** Aktiv01" in text
    assert "Bibliotek: Lunds universitetsbibliotek" in text


async def test_search_library_statistics_json(wired):
    text = await server.search_library_statistics(
        term="Aktiv01", date_from=None, date_to=None, limit=100, offset=0, format="json"
    )
    assert '"term": "Aktiv01"' in text


async def test_truncated_window_is_reported(wired):
    text = await server.get_library_data(library_id="LUN02", year=None, term=None, limit=3)
    assert "Resultaten kan vara ofullständiga" in text


async def test_get_term_details_found_and_not_found(wired):
    found = await server.get_term_details(term_id="Folk54")
    assert found.startswith("# Termdetaljer")
    assert "Antal besök" in found

    missing = await server.get_term_details(term_id="Okand99")
    assert missing.startswith("# Term hittades inte")
    assert "Okand99" in missing


async def test_compare_library_years_table(wired):
    text = await server.compare_library_years(library_id="UPP01", year1=2019, year2=2020, term=None, limit=1000)
    assert "| Aktiv01 | 0 | 50 | 50 | – |" in text
    assert "| Folk54 | 1 200 | 1 500 | 300 | +25.0 % |" in text


async def test_term_trend_and_report(wired):
    trend = await server.get_term_trend(term_id="Folk54", start_year=2019, end_year=2021, limit=5000)
    assert "**Antal år med data:** 3" in trend

    report = await server.generate_term_report(term_id="Folk54", year=2020, limit=5000)
    assert "## Beskrivande statistik" in report
    assert "**Median:** 800" in report
    assert "**Typvärde:** ingen" in report


async def test_export_to_csv(wired):
    text = await server.export_to_csv(term="Aktiv01", year=2020, limit=5000)
    assert "```csv" in text
    assert '"id","term","value","library","sampleYear","targetGroup","modified"' in text

    empty = await server.export_to_csv(term="Aktiv01", year=1999, limit=5000)
    assert empty == "Inga observationer att exportera för Aktiv01."


async def test_invalid_parameters_become_tool_errors(wired):
    with pytest.raises(ToolError, match="Ogiltiga parametrar"):
        await server.get_multiple_terms(term_ids=[], year=None, limit=1000)

    with pytest.raises(ToolError, match="Ogiltiga parametrar"):
        await server.get_term_trend(term_id="Folk54", start_year=2022, end_year=2020, limit=5000)


async def test_upstream_failure_becomes_tool_error(monkeypatch, dictionary):
    monkeypatch.setattr(server, "queries", StatisticsQueries(FailingClient(), dictionary))

    with pytest.raises(ToolError, match="KB API error: 503"):
        await server.get_year_statistics(year=2020, term=None, limit=1000)

    with pytest.raises(RuntimeError, match="Kunde inte ansluta"):
        await server.resource_terms()


async def test_resource_lists_live_terms(wired):
    text = await server.resource_terms()
    assert "Totalt antal termer: 5" in text
    assert "## Folk54" in text


async def test_server_status_reports_failed_dictionary(monkeypatch, fake_client):
    broken = TermDictionary(reader=CountingReader(error=OSError("saknas")), source="terms.json")
    monkeypatch.setattr(server, "dictionary", broken)
    monkeypatch.setattr(server, "queries", StatisticsQueries(fake_client, broken))

    text = await server.bibstat_server_status()
    assert "❌ **Termlista:** failed" in text
    assert "saknas" in text

    categories = await server.list_term_categories()
    assert "Termlistan är tom" in categories


def test_prompt_mentions_tools():
    text = server.compare_library_types(term_id="Folk54", year=2020)
    assert "aggregate_by_target_group" in text
    assert 'term_id="Folk54"' in text


async def test_wrong_terms_file_shape_gives_empty_answers(monkeypatch, fake_client):
    broken = TermDictionary(reader=CountingReader(document={"terms": None}), source="terms.json")
    monkeypatch.setattr(server, "dictionary", broken)
    monkeypatch.setattr(server, "queries", StatisticsQueries(fake_client, broken))

    categories = await server.list_term_categories()
    assert "**Totalt antal kategorier:** 0" in categories

    keyword = await server.search_terms_by_keyword(keyword="besök")
    assert "**Antal termer funna:** 0" in keyword

    text = await server.bibstat_server_status()
    assert "❌ **Termlista:** failed" in text


def test_health_reports_degraded_dictionary(monkeypatch):
    broken = TermDictionary(reader=CountingReader(document=[]), source="terms.json")
    monkeypatch.setattr(server, "dictionary", broken)

    response = TestClient(server.create_http_app()).get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "degraded"
    assert body["term_dictionary"]["state"] == "failed"
    assert body["term_dictionary"]["term_count"] == 0


def test_health_and_info_when_dictionary_loads(monkeypatch, dictionary):
    monkeypatch.setattr(server, "dictionary", dictionary)
    client = TestClient(server.create_http_app())

    health = client.get("/health").json()
    assert health["status"] == "healthy"
    assert health["term_dictionary"] == {"state": "loaded", "term_count": 5, "error": None}

    info = client.get("/info").json()
    assert info["name"] == "kb-biblioteksstatistik"
    assert info["tools"] == len(EXPECTED_TOOLS)
