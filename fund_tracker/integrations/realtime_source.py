from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any

from fund_tracker.errors import NoDataError, ParseError
from fund_tracker.integrations.http_client import SourceHttpClient
from fund_tracker.schemas.quote import SourceQuote
from fund_tracker.services.instrument import exchange_market_id
from fund_tracker.services.market_hours import WallClock

PRICE_EPSILON = Decimal("0.0001")


def _to_decimal(value: Any) -> Decimal:
    """Lenient numeric read; eastmoney sends "-" for missing fields."""
    if value is None or value == "" or value == "-":
        return Decimal("0")
    try:
        number = Decimal(str(value))
    except InvalidOperation:
        return Decimal("0")
    return number if number.is_finite() else Decimal("0")


class RealtimeQuoteSource:
    """Live exchange tick for exchange-traded funds."""

    name = "realtime"
    URL = "http://push2.eastmoney.com/api/qt/stock/get"
    FIELDS = "f43,f57,f58,f169,f170,f46,f60"

    def __init__(self, http: SourceHttpClient, *, clock=None) -> None:
        self.http = http
        self.clock = clock or WallClock()

    def fetch(self, code: str) -> SourceQuote:
        payload = self.http.get_json(
            self.URL,
            params={
                "secid": f"{exchange_market_id(code)}.{code}",
                "fields": self.FIELDS,
                "fltt": 2,
            },
            source=self.name,
        )
        if not isinstance(payload, dict):
            raise ParseError("payload must be an object", source=self.name, code=code)

        data = payload.get("data")
        if not isinstance(data, dict):
            raise NoDataError("no market data", source=self.name, code=code)

        price = _to_decimal(data.get("f43"))
        if price <= PRICE_EPSILON:
            # suspended or pre-open: fall back to previous close
            price = _to_decimal(data.get("f60"))
        if price <= PRICE_EPSILON:
            raise NoDataError("price is zero", source=self.name, code=code)

        return SourceQuote(
            code=code,
            name=str(data.get("f58") or ""),
            value=price.quantize(Decimal("0.001")),
            change_percent=_to_decimal(data.get("f170")).quantize(Decimal("0.01")),
            as_of=self.clock.now().strftime("%Y-%m-%d %H:%M"),
        )
