"""Tester för API-klienten mot en simulerad bibstat.kb.se."""

import httpx
import pytest

from bibstat.api_client import (
    BibstatApiClient,
    InvalidParamsError,
    get_config,
    handle_api_error,
    parse_observations,
)
from conftest import UPPSALA, make_observation


def mock_client(handler) -> BibstatApiClient:
    return BibstatApiClient(transport=httpx.MockTransport(handler))


async def test_fetch_observations_encodes_only_given_filters():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"@graph": [make_observation("1")]})

    client = mock_client(handler)
    window = await client.fetch_observations(term="Folk54", limit=10)
    await client.close()

    request = seen[0]
    assert request.url.path == "/data"
    assert dict(request.url.params) == {"term": "Folk54", "limit": "10"}
    assert request.headers["accept"] == "application/ld+json"
    assert len(window.observations) == 1
    assert window.observations[0].term == "Folk54"
    assert not window.truncated


async def test_fetch_observations_without_filters_has_no_query():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"@graph": []})

    client = mock_client(handler)
    window = await client.fetch_observations()
    await client.close()

    assert seen[0].url.query == b""
    assert window.observations == []


async def test_full_window_is_marked_truncated():
    def handler(request):
        return httpx.Response(200, json={"@graph": [make_observation(str(i)) for i in range(3)]})

    client = mock_client(handler)
    window = await client.fetch_observations(limit=3)
    await client.close()

    assert window.truncated


async def test_missing_graph_gives_empty_list():
    client = mock_client(lambda request: httpx.Response(200, json={"@context": {}}))
    window = await client.fetch_observations(term="Folk54")
    await client.close()

    assert window.observations == []


async def test_http_error_is_raised_after_single_attempt():
    attempts = []

    def handler(request):
        attempts.append(request)
        return httpx.Response(503)

    client = mock_client(handler)
    with pytest.raises(httpx.HTTPStatusError) as excinfo:
        await client.fetch_observations(term="Folk54")
    await client.close()

    assert len(attempts) == 1
    message = handle_api_error(excinfo.value, "search_library_statistics")
    assert message.startswith("[search_library_statistics] Fel: KB API error: 503")
    assert "Service Unavailable" in message


async def test_fetch_terms_parses_jsonld_graph():
    def handler(request):
        assert request.url.path == "/def/terms"
        return httpx.Response(200, json={"@graph": [
            {"@id": "https://bibstat.kb.se/def/term/Folk54", "key": "Folk54", "label": {"sv": "Antal besök"}},
        ]})

    client = mock_client(handler)
    terms = await client.fetch_terms()
    await client.close()

    assert [t.id for t in terms] == ["Folk54"]
    assert terms[0].label == "Antal besök"


async def test_connect_error_is_raised_after_single_attempt():
    attempts = []

    def handler(request):
        attempts.append(request)
        raise httpx.ConnectError("nere", request=request)

    client = mock_client(handler)
    with pytest.raises(httpx.ConnectError):
        await client.fetch_terms()
    await client.close()

    assert len(attempts) == 1
    assert not any("retr" in key for key in get_config())


def test_library_as_plain_string_or_object():
    observations = parse_observations({"@graph": [
        make_observation("1", library="SE-ABC"),
        make_observation("2", library=UPPSALA),
    ]})
    assert observations[0].library.id == "SE-ABC"
    assert observations[0].library.name is None
    assert observations[1].library.sigel == "Upp"
    assert observations[1].library.municipality == "Uppsala"


def test_numeric_detection_excludes_bool_and_strings():
    observations = parse_observations({"@graph": [
        make_observation("1", value=3),
        make_observation("2", value=2.5),
        make_observation("3", value=True),
        make_observation("4", value="12"),
        make_observation("5", value=None),
    ]})
    assert [obs.is_numeric for obs in observations] == [True, True, False, False, False]


def test_invalid_params_message():
    message = handle_api_error(InvalidParamsError('Parameter "term_ids" måste vara en icke-tom lista'), "get_multiple_terms")
    assert message == '[get_multiple_terms] Ogiltiga parametrar: Parameter "term_ids" måste vara en icke-tom lista'
