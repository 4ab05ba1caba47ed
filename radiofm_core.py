# radiofm_core.py
from __future__ import annotations
from typing import Any, Dict, List, Optional, Tuple
import logging
import os
import re

import certifi
import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

# ---- Constants ---------------------------------------------------------------

RADIOFM_API_BASE = os.getenv("RADIOFM_API_BASE", "https://devappradiofm.radiofm.co/rfm/api").rstrip("/")
RADIOFM_TIMEOUT = float(os.getenv("RADIOFM_TIMEOUT", "15"))
RADIOPLAY_BASE = "https://appradiofm.com/radioplay/"
UA = {"User-Agent": "radiofm-mcp-server/1.0.0"}

LINK_POLICIES = ("deeplink", "shorturl")
DESCRIPTION_LIMIT = 100
NO_FREQUENCY = "~"

logger = logging.getLogger(__name__)

def env_choice(name: str, default: str, choices: Tuple[str, ...]) -> str:
    value = os.getenv(name, default).strip().lower() or default
    if value not in choices:
        raise ValueError(f"{name} must be one of {', '.join(choices)}; got {value!r}")
    return value

LINK_POLICY = env_choice("RADIOFM_LINK_POLICY", "deeplink", LINK_POLICIES)

# ---- Errors ------------------------------------------------------------------

class RadioFMError(RuntimeError):
    """Base class for everything that can go wrong talking to Radio FM."""

class UpstreamError(RadioFMError):
    """Radio FM answered with a non-zero ErrorCode; the message is theirs."""

class MalformedUpstreamResponse(RadioFMError):
    pass

class UpstreamUnavailable(RadioFMError):
    pass

# ---- Upstream schema ---------------------------------------------------------

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")

def parse_count(value: Any) -> int:
    """Read a count the way the upstream clients do: leading integer, else 0."""
    if isinstance(value, int):
        return value
    m = _LEADING_INT.match(str(value or ""))
    return int(m.group(1)) if m else 0

class _Record(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", coerce_numbers_to_str=True)

    @model_validator(mode="before")
    @classmethod
    def drop_nulls(cls, data: Any) -> Any:
        # upstream sends null for blank columns; let the defaults apply
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data

class Station(_Record):
    st_id: str = ""
    st_name: str
    st_city: str = ""
    st_state: str = ""
    st_country: str = ""
    country_name_rs: str = ""
    language: str = ""
    st_lang: str = ""
    st_genre: str = ""
    st_bc_freq: str = NO_FREQUENCY
    stream_type: str = ""
    stream_bitrate: str = ""
    stream_link: str = ""
    st_play_cnt: int = 0
    st_fav_cnt: int = 0
    st_logo: str = ""
    st_shorturl: str = ""
    st_weburl: Optional[str] = None
    deeplink: str = ""

    @field_validator("st_play_cnt", "st_fav_cnt", mode="before")
    @classmethod
    def parse_counts(cls, v: Any) -> int:
        return parse_count(v)

class Podcast(_Record):
    p_id: str = ""
    p_name: str
    cat_name: str = ""
    p_lang: str = ""
    p_desc: Optional[str] = None
    p_image: str = ""
    cc_code: str = ""
    total_stream: int = 0
    deeplink: str = ""

    @field_validator("total_stream", mode="before")
    @classmethod
    def parse_counts(cls, v: Any) -> int:
        return parse_count(v)

class ResultGroup(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    type: str
    data: List[Dict[str, Any]] = Field(default_factory=list)

class SearchStatus(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", coerce_numbers_to_str=True)

    ErrorCode: int
    ErrorMessage: str = ""

    @field_validator("ErrorMessage", mode="before")
    @classmethod
    def blank_message(cls, v: Any) -> Any:
        return "" if v is None else v

class SearchPayload(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    Data: Optional[List[ResultGroup]] = None

class ApiResponse(BaseModel):
    """Envelope only; data is decoded in two steps by decode_result."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    data: Dict[str, Any]

class UpstreamResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    stations: Tuple[Station, ...] = ()
    podcasts: Tuple[Podcast, ...] = ()
    group_count: int = 0

    @property
    def empty(self) -> bool:
        return self.group_count == 0

# ---- HTTP client helper (HTTP/1.1, certifi for TLS) -------------------------

def _client(timeout: float = RADIOFM_TIMEOUT) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        headers=UA,
        timeout=timeout,
        verify=certifi.where(),
        http2=False,
    )

# ---- Radio FM search ---------------------------------------------------------

async def fetch_search(query: str) -> ApiResponse:
    """One GET against new_combo_search.php. No retries."""
    url = f"{RADIOFM_API_BASE}/new_combo_search.php"
    try:
        async with _client(RADIOFM_TIMEOUT) as s:
            r = await s.get(url, params={"srch": query})
            r.raise_for_status()
    except httpx.TimeoutException as exc:
        raise UpstreamUnavailable(f"Radio FM request timed out after {RADIOFM_TIMEOUT:g}s") from exc
    except httpx.HTTPStatusError as exc:
        raise UpstreamUnavailable(f"Radio FM returned HTTP {exc.response.status_code}") from exc
    except httpx.HTTPError as exc:
        raise UpstreamUnavailable(f"Radio FM request failed: {exc}") from exc

    try:
        body = r.json()
    except ValueError as exc:
        raise MalformedUpstreamResponse("Radio FM returned a non-JSON body") from exc
    try:
        return ApiResponse.model_validate(body)
    except ValidationError as exc:
        raise MalformedUpstreamResponse(
            f"Malformed Radio FM response: {exc.error_count()} invalid field(s)"
        ) from exc

def _first_group(groups: List[ResultGroup], tag: str) -> List[Dict[str, Any]]:
    for g in groups:
        if g.type == tag:
            return g.data
    return []

def decode_result(response: ApiResponse) -> UpstreamResult:
    # ErrorCode first: error payloads carry whatever Data the upstream likes
    try:
        status = SearchStatus.model_validate(response.data)
    except ValidationError as exc:
        raise MalformedUpstreamResponse("Malformed Radio FM response: no usable ErrorCode") from exc
    if status.ErrorCode != 0:
        raise UpstreamError(status.ErrorMessage)
    try:
        groups = SearchPayload.model_validate(response.data).Data or []
    except ValidationError as exc:
        raise MalformedUpstreamResponse(
            f"Malformed Radio FM response: {exc.error_count()} invalid field(s)"
        ) from exc
    try:
        stations = tuple(Station.model_validate(s) for s in _first_group(groups, "radio"))
        podcasts = tuple(Podcast.model_validate(p) for p in _first_group(groups, "podcast"))
    except ValidationError as exc:
        raise MalformedUpstreamResponse(
            f"Malformed Radio FM record: {exc.errors()[0]['loc']}"
        ) from exc
    return UpstreamResult(stations=stations, podcasts=podcasts, group_count=len(groups))

# ---- Text rendering ----------------------------------------------------------

def station_link(station: Station, policy: str = LINK_POLICY) -> str:
    if policy == "shorturl":
        return f"{RADIOPLAY_BASE}{station.st_shorturl}"
    return station.deeplink

def podcast_link(podcast: Podcast) -> str:
    return podcast.deeplink

def format_station(station: Station, index: int, link_policy: str = LINK_POLICY) -> str:
    lines = [
        f"{index}. {station.st_name}",
        f"Location: {station.st_city}, {station.st_state}, {station.country_name_rs}",
        f"Language: {station.language}",
        f"Genre: {station.st_genre}",
    ]
    if station.st_bc_freq != NO_FREQUENCY:
        lines.append(f"Frequency: {station.st_bc_freq}")
    lines += [
        f"Stream: {station.stream_type} {station.stream_bitrate}kbps",
        f"Plays: {station.st_play_cnt:,}",
        f"Listen: {station_link(station, link_policy)}",
    ]
    return "\n".join(lines)

def truncate_description(desc: str, limit: int = DESCRIPTION_LIMIT) -> str:
    return desc[:limit] + "..." if len(desc) > limit else desc

def format_podcast(podcast: Podcast, index: int) -> str:
    lines = [
        f"{index}. {podcast.p_name}",
        f"Category: {podcast.cat_name}",
        f"Language: {podcast.p_lang}",
    ]
    if podcast.p_desc:
        lines.append(f"Description: {truncate_description(podcast.p_desc)}")
    lines += [
        f"Streams: {podcast.total_stream:,}",
        f"Listen: {podcast_link(podcast)}",
    ]
    return "\n".join(lines)

def no_results_text(query: str) -> str:
    return (
        f'🔍 No results found for "{query}"\n\n'
        "Try searching with:\n"
        '- Station name (e.g., "BBC", "NPR")\n'
        '- Country (e.g., "UK", "USA", "India")\n'
        '- Language (e.g., "English", "Spanish")\n'
        '- Genre (e.g., "Jazz", "News", "Rock")'
    )

def render_results(query: str, result: UpstreamResult, link_policy: str = LINK_POLICY) -> str:
    if result.empty:
        return no_results_text(query)
    sections = [f'Search Results for "{query}"']
    if result.stations:
        sections.append(f"\nRADIO STATIONS ({len(result.stations)})")
        sections += [format_station(s, i, link_policy) for i, s in enumerate(result.stations, 1)]
    if result.podcasts:
        sections.append(f"\nPODCASTS ({len(result.podcasts)})")
        sections += [format_podcast(p, i) for i, p in enumerate(result.podcasts, 1)]
    sections.append('\nTap on any "Listen" link to play on radiofm.co')
    return "\n".join(sections)

# ---- Main search -------------------------------------------------------------

async def search_radio_core(query: str, link_policy: Optional[str] = None) -> str:
    """
    Stateless search. Returns the text block shown to the caller.
    - Exactly one upstream call; errors propagate as RadioFMError.
    - Only the first "radio" and first "podcast" group are rendered.
    """
    response = await fetch_search(query)
    result = decode_result(response)
    logger.info(
        "Radio FM search %r: %d station(s), %d podcast(s)",
        query, len(result.stations), len(result.podcasts),
    )
    return render_results(query, result, link_policy or LINK_POLICY)
