from __future__ import annotations

import json
import time
from decimal import Decimal, InvalidOperation
from typing import Any, Dict

from fund_tracker.errors import NoDataError, ParseError
from fund_tracker.integrations.http_client import SourceHttpClient
from fund_tracker.schemas.quote import SourceQuote


def extract_callback_json(raw: str) -> Dict[str, Any]:
    """Parse the object wrapped in a JS callback, e.g. ``jsonpgz({...});``.

    Takes the text between the first ``{`` and the last ``}``.
    """
    start = raw.find("{")
    end = raw.rfind("}")
    if start == -1 or end == -1 or start >= end:
        raise ParseError("no JSON object in callback payload")

    try:
        decoded = json.loads(raw[start : end + 1])
    except json.JSONDecodeError as exc:
        raise ParseError("callback payload is not valid JSON") from exc
    if not isinstance(decoded, dict):
        raise ParseError("callback payload must be an object")
    return decoded


class EstimateQuoteSource:
    """Intraday NAV estimate feed."""

    name = "estimate"
    URL = "http://fundgz.1234567.com.cn/js/{code}.js"

    def __init__(self, http: SourceHttpClient) -> None:
        self.http = http

    def fetch(self, code: str) -> SourceQuote:
        raw = self.http.get_text(
            self.URL.format(code=code),
            params={"rt": int(time.time() * 1000)},
            source=self.name,
        )
        try:
            payload = extract_callback_json(raw)
        except ParseError as exc:
            raise ParseError(str(exc), source=self.name, code=code) from exc

        gsz = str(payload.get("gsz") or "").strip()
        if not gsz:
            raise NoDataError("missing estimate value", source=self.name, code=code)
        try:
            value = Decimal(gsz)
            change = Decimal(str(payload.get("gszzl") or "0").strip() or "0")
        except InvalidOperation as exc:
            raise ParseError(f"invalid estimate number: {gsz!r}", source=self.name, code=code) from exc
        if not (value.is_finite() and change.is_finite()):
            raise ParseError(f"non-finite estimate number: {gsz!r}", source=self.name, code=code)
        if value <= 0:
            raise NoDataError("estimate value is zero", source=self.name, code=code)

        return SourceQuote(
            code=str(payload.get("fundcode") or code),
            name=str(payload.get("name") or ""),
            value=value,
            change_percent=change,
            as_of=str(payload.get("gztime") or ""),
        )
