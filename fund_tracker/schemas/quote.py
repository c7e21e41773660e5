from __future__ import annotations

from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, computed_field


class Freshness(str, Enum):
    REALTIME = "Realtime"
    ESTIMATED = "Estimated"
    CONFIRMED = "Confirmed"

    @property
    def label(self) -> str:
        return _FRESHNESS_LABELS[self]


_FRESHNESS_LABELS = {
    Freshness.REALTIME: "实时",
    Freshness.ESTIMATED: "估",
    Freshness.CONFIRMED: "确",
}


class SourceQuote(BaseModel):
    """Partial quote as reported by one upstream source."""

    code: str
    name: str = ""
    value: Decimal
    change_percent: Decimal
    as_of: str


class Quote(BaseModel):
    code: str
    name: str = ""
    value: str
    change_percent: str
    as_of: str
    freshness: Freshness
    premium_rate: str | None = None
    session_note: str | None = None

    @computed_field
    @property
    def display_time(self) -> str:
        text = f"{self.as_of} ({self.freshness.label})"
        if self.session_note:
            text = f"{text} {self.session_note}"
        return text
