from __future__ import annotations

from datetime import datetime, time
from zoneinfo import ZoneInfo

CST = ZoneInfo("Asia/Shanghai")
US_SESSION_OPEN_TIME = time(21, 30)
US_SESSION_CLOSE_TIME = time(4, 0)

US_SESSION_TRADING = "[美股交易中]"
US_SESSION_WEEKEND = "[美股休市]"


class WallClock:
    """Injectable clock; reconciliation reads time only through ``now()``."""

    def __init__(self, tz: ZoneInfo | str = CST) -> None:
        self.tz = ZoneInfo(tz) if isinstance(tz, str) else tz

    def now(self) -> datetime:
        return datetime.now(self.tz)


def _to_cst(current: datetime) -> datetime:
    if current.tzinfo is None:
        return current.replace(tzinfo=CST)
    return current.astimezone(CST)


def in_us_session_window(now: datetime) -> bool:
    """Return whether the US regular session window is open in Asia/Shanghai time."""
    current_time = _to_cst(now).time()
    return current_time >= US_SESSION_OPEN_TIME or current_time < US_SESSION_CLOSE_TIME


def us_market_session(now: datetime) -> str:
    """Session note for international funds; empty outside the US window."""
    if not in_us_session_window(now):
        return ""
    if _to_cst(now).weekday() >= 5:
        return US_SESSION_WEEKEND
    return US_SESSION_TRADING
