from __future__ import annotations

from decimal import Decimal, InvalidOperation

from bs4 import BeautifulSoup

from fund_tracker.errors import NoDataError, ParseError
from fund_tracker.integrations.http_client import SourceHttpClient
from fund_tracker.schemas.quote import SourceQuote

_MIN_COLUMNS = 4


class ConfirmedQuoteSource:
    """Officially published end-of-day NAV (latest row of the NAV history table)."""

    name = "confirmed"
    URL = "http://fund.eastmoney.com/f10/F10DataApi.aspx"

    def __init__(self, http: SourceHttpClient) -> None:
        self.http = http

    def fetch(self, code: str) -> SourceQuote:
        body = self.http.get_text(
            self.URL,
            params={"type": "lsjz", "code": code, "page": 1, "per": 1},
            source=self.name,
        )
        soup = BeautifulSoup(body, "html.parser")
        tbody = soup.find("tbody")
        row = tbody.find("tr") if tbody else None
        if row is None:
            raise NoDataError("no NAV row", source=self.name, code=code)

        cells = [td.get_text(strip=True) for td in row.find_all("td")]
        if len(cells) < _MIN_COLUMNS:
            raise NoDataError("NAV row has too few columns", source=self.name, code=code)

        as_of, nav_text, change_text = cells[0], cells[1], cells[3].replace("%", "").strip()
        try:
            nav = Decimal(nav_text)
            change = Decimal(change_text) if change_text and change_text != "--" else Decimal("0")
        except InvalidOperation as exc:
            raise ParseError(f"invalid NAV row: {cells!r}", source=self.name, code=code) from exc
        if not (nav.is_finite() and change.is_finite()):
            raise ParseError(f"non-finite NAV row: {cells!r}", source=self.name, code=code)

        return SourceQuote(code=code, value=nav, change_percent=change, as_of=as_of)
