from __future__ import annotations

from typing import Any

from fund_tracker.errors import ParseError, QuoteSourceError
from fund_tracker.integrations.http_client import SourceHttpClient
from fund_tracker.schemas.catalog import FundDetail, FundSearchResult, StockInfo
from fund_tracker.services.instrument import stock_market_id


def _to_float(value: Any, default: float = 0.0) -> float:
    try:
        if value is None or value == "" or value == "-":
            return default
        return float(value)
    except (TypeError, ValueError):
        return default


class FundCatalogClient:
    """Fund keyword search and top-holdings detail."""

    SEARCH_URL = "http://fundsuggest.eastmoney.com/FundSearch/api/FundSearchAPI.ashx"
    DETAIL_URL = "https://fundmobapi.eastmoney.com/FundMNewApi/FundMNBasicInformation"
    STOCK_PRICES_URL = "http://push2.eastmoney.com/api/qt/ulist.np/get"

    def __init__(self, http: SourceHttpClient) -> None:
        self.http = http

    def search(self, keyword: str) -> list[FundSearchResult]:
        payload = self.http.get_json(self.SEARCH_URL, params={"m": 1, "key": keyword}, source="search")
        if not isinstance(payload, dict):
            raise ParseError("search payload must be an object", source="search")

        out: list[FundSearchResult] = []
        for item in payload.get("Datas") or []:
            if not isinstance(item, dict) or not item.get("CODE"):
                continue
            out.append(
                FundSearchResult(
                    code=str(item["CODE"]),
                    name=str(item.get("NAME") or ""),
                    type=str(item.get("CATEGORYDESC") or ""),
                )
            )
        return out

    def get_detail(self, code: str) -> FundDetail:
        payload = self.http.get_json(
            self.DETAIL_URL,
            params={
                "FCODE": code,
                "deviceid": "123",
                "plat": "Iphone",
                "product": "EFund",
                "version": "6.0.0",
            },
            source="detail",
        )
        datas = payload.get("Datas") if isinstance(payload, dict) else None
        positions = datas.get("InverstPositionList") if isinstance(datas, dict) else None

        stocks: list[StockInfo] = []
        for item in positions or []:
            if not isinstance(item, dict) or not item.get("GPDM"):
                continue
            stocks.append(StockInfo(name=str(item.get("GPNM") or ""), code=str(item["GPDM"])))

        if stocks:
            self._fill_stock_prices(stocks)

        return FundDetail(
            fund_code=code,
            stocks=[s.name for s in stocks],
            stock_details=stocks,
            sectors=["关联持仓行业"] if stocks else ["暂无持仓数据"],
        )

    def _fill_stock_prices(self, stocks: list[StockInfo]) -> None:
        secids = ",".join(f"{stock_market_id(s.code)}.{s.code}" for s in stocks)
        try:
            payload = self.http.get_json(
                self.STOCK_PRICES_URL,
                params={"secids": secids, "fields": "f12,f14,f2,f3", "fltt": 2},
                source="stock-prices",
            )
        except QuoteSourceError as exc:
            # prices stay "--"; holdings list is still useful
            print(f"[CATALOG][stock_price_skip] reason={exc}", flush=True)
            return

        data = payload.get("data") if isinstance(payload, dict) else None
        diff = data.get("diff") if isinstance(data, dict) else None
        rows = diff.values() if isinstance(diff, dict) else (diff or [])

        prices: dict[str, tuple[str, str]] = {}
        for row in rows:
            if not isinstance(row, dict):
                continue
            price = _to_float(row.get("f2"))
            if price == 0:
                prices[str(row.get("f12"))] = ("--", "--")
                continue
            prices[str(row.get("f12"))] = (f"{price:.2f}", f"{_to_float(row.get('f3')):+.2f}%")

        for stock in stocks:
            if stock.code in prices:
                stock.price, stock.change = prices[stock.code]
