from __future__ import annotations

from enum import Enum

EXCHANGE_TRADED_PREFIXES = ("15", "16", "51", "56", "58")
SHANGHAI_PREFIXES = ("5", "6")
INTERNATIONAL_KEYWORDS = ("标普", "纳斯达克", "美国", "海外", "QDII", "全球", "恒生", "港股")


class InstrumentClass(str, Enum):
    EXCHANGE_TRADED = "ExchangeTraded"
    OFF_EXCHANGE = "OffExchange"


def classify_instrument(code: str) -> InstrumentClass:
    if code.startswith(EXCHANGE_TRADED_PREFIXES):
        return InstrumentClass.EXCHANGE_TRADED
    return InstrumentClass.OFF_EXCHANGE


def exchange_market_id(code: str) -> str:
    """Eastmoney market id: 1 = Shanghai, 0 = Shenzhen."""
    return "1" if code.startswith(SHANGHAI_PREFIXES) else "0"


def stock_market_id(code: str) -> str:
    return "1" if code.startswith("6") else "0"


def is_international(name: str) -> bool:
    return any(keyword in name for keyword in INTERNATIONAL_KEYWORDS)
