from decimal import Decimal
from typing import Literal

from pydantic import BaseModel


class Holding(BaseModel):
    code: str
    amount: Decimal
    fund_name: str = ""
    last_price: str = ""
    change: str = ""


class WatchItem(BaseModel):
    code: str


class FundChangeRequest(BaseModel):
    code: str
    type: Literal["holding", "watch"] = "watch"
    amount: Decimal = Decimal("0")


class FundRemoveRequest(BaseModel):
    code: str
    type: Literal["holding", "watch"] = "watch"


class PortfolioView(BaseModel):
    holdings: list[Holding]
    watchlist: list[WatchItem]
