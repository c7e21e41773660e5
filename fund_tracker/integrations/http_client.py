from __future__ import annotations

import json
from typing import Any, Dict, Optional

import requests

from fund_tracker.errors import NetworkError, ParseError

DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Referer": "http://fund.eastmoney.com/",
}


class SourceHttpClient:
    """Single-attempt GET with a fixed timeout for the upstream fund sources."""

    def __init__(
        self,
        *,
        session: Optional[Any] = None,
        timeout_sec: float = 5.0,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        self.session = session or requests
        self.timeout_sec = timeout_sec
        self.headers = dict(headers or DEFAULT_HEADERS)

    def get_text(self, url: str, *, params: Optional[Dict[str, Any]] = None, source: str | None = None) -> str:
        try:
            response = self.session.get(url, params=params, headers=self.headers, timeout=self.timeout_sec)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise NetworkError(f"request failed: {url}: {exc}", source=source) from exc
        return response.content.decode("utf-8", errors="replace")

    def get_json(self, url: str, *, params: Optional[Dict[str, Any]] = None, source: str | None = None) -> Any:
        text = self.get_text(url, params=params, source=source)
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise ParseError(f"invalid JSON from {url}", source=source) from exc
