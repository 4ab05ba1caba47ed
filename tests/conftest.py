from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Callable, Dict, List

import httpx
import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

import radiofm_core


def station(**overrides: Any) -> Dict[str, Any]:
    record = {
        "st_id": "101",
        "st_name": "BBC Radio 1",
        "st_city": "London",
        "st_state": "England",
        "country_name_rs": "United Kingdom",
        "st_country": "GB",
        "language": "English",
        "st_lang": "en",
        "st_genre": "Pop",
        "st_bc_freq": "98.8 FM",
        "stream_type": "AAC",
        "stream_bitrate": "128",
        "st_play_cnt": "1234567",
        "st_fav_cnt": "890",
        "st_shorturl": "bbc-radio-1",
        "st_weburl": "https://www.bbc.co.uk/radio1",
        "deeplink": "https://radiofm.co/s/101",
    }
    record.update(overrides)
    return record


def podcast(**overrides: Any) -> Dict[str, Any]:
    record = {
        "p_id": "900",
        "p_name": "Jazz Stories",
        "cat_name": "Music",
        "p_lang": "English",
        "p_desc": "Tales from the bandstand.",
        "total_stream": "4521",
        "deeplink": "https://radiofm.co/p/900",
    }
    record.update(overrides)
    return record


def payload(groups: List[Dict[str, Any]] | None = None, code: int = 0, message: str = "") -> Dict[str, Any]:
    return {
        "http_response_code": 200,
        "http_response_message": "OK",
        "data": {"ErrorCode": code, "ErrorMessage": message, "Data": groups if groups is not None else []},
    }


class Upstream:
    """Records outbound requests and answers them from a handler."""

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.timeouts: List[float] = []
        self.handler: Callable[[httpx.Request], httpx.Response] = lambda r: httpx.Response(200, json=payload())

    def respond_json(self, body: Any, status: int = 200) -> None:
        self.handler = lambda r: httpx.Response(status, json=body)

    def _dispatch(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    def client(self, timeout: float = radiofm_core.RADIOFM_TIMEOUT) -> httpx.AsyncClient:
        self.timeouts.append(timeout)
        return httpx.AsyncClient(transport=httpx.MockTransport(self._dispatch), timeout=timeout)


@pytest.fixture
def upstream(monkeypatch) -> Upstream:
    fake = Upstream()
    monkeypatch.setattr(radiofm_core, "_client", fake.client)
    return fake
