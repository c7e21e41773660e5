from __future__ import annotations

import threading
from decimal import Decimal

from fund_tracker.schemas.portfolio import Holding, WatchItem


class PortfolioStore:
    """In-memory holdings/watchlist keyed by owner id and fund code."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._holdings: dict[str, dict[str, Holding]] = {}
        self._watchlist: dict[str, dict[str, WatchItem]] = {}

    def upsert_holding(self, owner_id: str, code: str, amount: Decimal) -> Holding:
        with self._lock:
            rows = self._holdings.setdefault(owner_id, {})
            row = rows.get(code)
            if row is None:
                row = Holding(code=code, amount=amount)
                rows[code] = row
            else:
                row.amount = amount
            return row.model_copy()

    def add_watch(self, owner_id: str, code: str) -> WatchItem:
        with self._lock:
            rows = self._watchlist.setdefault(owner_id, {})
            return rows.setdefault(code, WatchItem(code=code)).model_copy()

    def remove_holding(self, owner_id: str, code: str) -> bool:
        with self._lock:
            return self._holdings.get(owner_id, {}).pop(code, None) is not None

    def remove_watch(self, owner_id: str, code: str) -> bool:
        with self._lock:
            return self._watchlist.get(owner_id, {}).pop(code, None) is not None

    def holdings(self, owner_id: str) -> list[Holding]:
        with self._lock:
            return [row.model_copy() for row in self._holdings.get(owner_id, {}).values()]

    def watchlist(self, owner_id: str) -> list[WatchItem]:
        with self._lock:
            return [row.model_copy() for row in self._watchlist.get(owner_id, {}).values()]

    def holding_codes(self, owner_id: str) -> list[str]:
        with self._lock:
            return list(self._holdings.get(owner_id, {}))

    def watch_codes(self, owner_id: str) -> list[str]:
        with self._lock:
            return list(self._watchlist.get(owner_id, {}))

    def update_cached_quote(
        self,
        owner_id: str,
        code: str,
        name: str,
        value: str,
        change_percent: str,
    ) -> bool:
        with self._lock:
            row = self._holdings.get(owner_id, {}).get(code)
            if row is None:
                return False
            row.fund_name = name
            row.last_price = value
            row.change = change_percent
            return True
