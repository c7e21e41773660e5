from pydantic import BaseModel


class FundSearchResult(BaseModel):
    code: str
    name: str
    type: str = ""


class StockInfo(BaseModel):
    name: str
    code: str
    price: str = "--"
    change: str = "--"


class FundDetail(BaseModel):
    fund_code: str
    stocks: list[str]
    stock_details: list[StockInfo]
    sectors: list[str]
