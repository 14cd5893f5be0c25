"""
Bibstat MCP Server - API-klient
HTTP-klient och hjälpfunktioner för KB:s öppna biblioteksstatistik.

API-dokumentation: https://bibstat.kb.se/
Format: JSON-LD
Licens: CC0

- Ett försök per anrop, fel propageras direkt
- Tidsgränser och connection pooling
- Miljövariabel-konfiguration
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx

from bibstat.models import Observation, ObservationWindow, Term

logger = logging.getLogger("bibstat_mcp")

# ============================================================================
# KONFIGURATION VIA MILJÖVARIABLER
# ============================================================================

DEFAULT_TERMS_FILE = Path(__file__).resolve().parent / "data" / "terms.json"


class Config:
    """Konfiguration som kan överskridas via miljövariabler."""

    BASE_URL: str = os.environ.get("BIBSTAT_BASE_URL", "https://bibstat.kb.se").rstrip("/")

    # Timeouts
    HTTP_TIMEOUT: float = float(os.environ.get("BIBSTAT_HTTP_TIMEOUT", "30.0"))
    CONNECT_TIMEOUT: float = float(os.environ.get("BIBSTAT_CONNECT_TIMEOUT", "10.0"))

    # Lokal termlista
    TERMS_FILE: Path = Path(os.environ.get("BIBSTAT_TERMS_FILE", str(DEFAULT_TERMS_FILE)))

    LOG_LEVEL: str = os.environ.get("BIBSTAT_LOG_LEVEL", "INFO").upper()

    # Identifikation
    USER_AGENT: str = os.environ.get(
        "BIBSTAT_USER_AGENT",
        "Bibstat-MCP-Server/2.0.0 (Model Context Protocol; KB library statistics)"
    )


JSONLD = "application/ld+json"


def api_url(path: str) -> str:
    return f"{Config.BASE_URL}{path}"


# ============================================================================
# FELTYPER
# ============================================================================

class InvalidParamsError(ValueError):
    """Ogiltiga eller saknade parametrar från anroparen."""


# ============================================================================
# JSON-LD-PARSNING
# ============================================================================

def graph_items(document: Any) -> List[Dict[str, Any]]:
    """Returnerar @graph-listan ur ett JSON-LD-dokument (tom om den saknas)."""
    if not isinstance(document, dict):
        return []
    graph = document.get("@graph") or []
    return [item for item in graph if isinstance(item, dict)]


def parse_observations(document: Any) -> List[Observation]:
    return [Observation.from_json(item) for item in graph_items(document)]


def parse_terms(document: Any) -> List[Term]:
    return [Term.from_json(item) for item in graph_items(document)]


# ============================================================================
# HTTP CLIENT
# ============================================================================

class BibstatApiClient:
    """
    HTTP-klient för bibstat.kb.se.

    Features:
    - Ett försök per anrop
    - Connection pooling
    - Konfigurerbar via miljövariabler
    """

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._client: Optional[httpx.AsyncClient] = None
        self._transport = transport

    async def get_client(self) -> httpx.AsyncClient:
        """Returnerar eller skapar HTTP-klient med connection pooling."""
        if self._client is None or self._client.is_closed:
            timeout = httpx.Timeout(
                Config.HTTP_TIMEOUT,
                connect=Config.CONNECT_TIMEOUT
            )
            limits = httpx.Limits(
                max_keepalive_connections=10,
                max_connections=20,
                keepalive_expiry=30.0
            )
            self._client = httpx.AsyncClient(
                timeout=timeout,
                limits=limits,
                follow_redirects=True,
                headers={"User-Agent": Config.USER_AGENT},
                transport=self._transport,
            )
        return self._client

    async def close(self):
        """Stänger HTTP-klienten."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def _do_get(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        accept: str = JSONLD
    ) -> httpx.Response:
        """Intern GET; kastar vid icke-2xx."""
        client = await self.get_client()
        response = await client.get(
            url,
            params=params,
            headers={"Accept": accept}
        )
        response.raise_for_status()
        return response

    async def get_json(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        accept: str = JSONLD
    ) -> Any:
        """GET som returnerar tolkad JSON. Kastar httpx.HTTPStatusError vid icke-2xx."""
        logger.debug(f"GET {url} {params or ''}")
        response = await self._do_get(url, params=params, accept=accept)
        return response.json()

    async def fetch_observations(
        self,
        term: Optional[str] = None,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None
    ) -> ObservationWindow:
        """
        Hämtar observationer från /data.

        Endast angivna filter skickas med. API:t stöder inte filtrering på
        bibliotek, år eller målgrupp.
        """
        params: Dict[str, Any] = {}
        if term:
            params["term"] = term
        if date_from:
            params["date_from"] = date_from
        if date_to:
            params["date_to"] = date_to
        if limit is not None:
            params["limit"] = limit
        if offset is not None:
            params["offset"] = offset

        document = await self.get_json(api_url("/data"), params=params or None)
        observations = parse_observations(document)
        logger.info(f"Hämtade {len(observations)} observationer ({params})")
        return ObservationWindow(observations=observations, limit=limit, offset=offset or 0)

    async def fetch_terms(self) -> List[Term]:
        """Hämtar alla termdefinitioner från /def/terms."""
        document = await self.get_json(api_url("/def/terms"))
        return parse_terms(document)


# Global klientinstans
api_client = BibstatApiClient()


# ============================================================================
# FELHANTERING
# ============================================================================

def handle_api_error(e: Exception, context: str = "") -> str:
    """
    Enhetlig felhantering för alla verktyg.

    Args:
        e: Exception som uppstod
        context: Kontext för felet (t.ex. verktygsnamn)

    Returns:
        Användarvänligt felmeddelande på svenska
    """
    prefix = f"[{context}] " if context else ""

    if isinstance(e, InvalidParamsError):
        return f"{prefix}Ogiltiga parametrar: {e}"

    if isinstance(e, httpx.HTTPStatusError):
        status = e.response.status_code
        reason = e.response.reason_phrase
        error_messages = {
            400: "Ogiltiga parametrar. Kontrollera filtren.",
            404: "Resursen hittades inte.",
            429: "För många anrop. Försök igen om en stund.",
            500: "Serverfel hos KB. Försök igen senare.",
            502: "Gateway-fel. KB:s server är tillfälligt otillgänglig.",
            503: "Tjänsten är tillfälligt otillgänglig.",
            504: "Timeout från servern. Försök med en mindre limit."
        }
        msg = error_messages.get(status, "Oväntat svar från KB API.")
        return f"{prefix}Fel: KB API error: {status} {reason}. {msg}"

    elif isinstance(e, httpx.TimeoutException):
        return f"{prefix}Fel: Tidsgräns överskriden. Försök med en mindre limit."

    elif isinstance(e, httpx.ConnectError):
        return f"{prefix}Fel: Kunde inte ansluta till bibstat.kb.se. Kontrollera nätverket."

    elif isinstance(e, json.JSONDecodeError):
        return f"{prefix}Fel: Kunde inte tolka JSON-svaret från servern."

    logger.error(f"Oväntat fel: {type(e).__name__}: {e}")
    return f"{prefix}Fel: {type(e).__name__} - {str(e)}"


# ============================================================================
# UTILITY FUNCTIONS
# ============================================================================

def get_config() -> Dict[str, Any]:
    """Returnerar aktuell konfiguration."""
    return {
        "base_url": Config.BASE_URL,
        "http_timeout": Config.HTTP_TIMEOUT,
        "connect_timeout": Config.CONNECT_TIMEOUT,
        "terms_file": str(Config.TERMS_FILE),
        "log_level": Config.LOG_LEVEL,
        "user_agent": Config.USER_AGENT
    }
