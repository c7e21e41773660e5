import unittest
from decimal import Decimal
from unittest.mock import MagicMock

from fund_tracker.errors import NoDataError, ParseError
from fund_tracker.integrations.confirmed_source import ConfirmedQuoteSource
from fund_tracker.integrations.http_client import SourceHttpClient

_HEAD = (
    "<thead><tr><th class='first'>净值日期</th><th>单位净值</th><th>累计净值</th><th>日增长率</th>"
    "<th>申购状态</th><th>赎回状态</th><th class='tor last'>分红送配</th></tr></thead>"
)


def _apidata(rows: str) -> str:
    return (
        "var apidata={ content:\"<table class='w782 comm lsjz'>"
        + _HEAD
        + f"<tbody>{rows}</tbody></table>\",records:1,pages:1,curpage:1}};"
    )


def _source(body: str) -> ConfirmedQuoteSource:
    session = MagicMock()
    response = MagicMock()
    response.content = body.encode("utf-8")
    response.raise_for_status.return_value = None
    session.get.return_value = response
    return ConfirmedQuoteSource(SourceHttpClient(session=session))


class TestConfirmedQuoteSource(unittest.TestCase):
    def test_reads_first_row(self):
        body = _apidata(
            "<tr><td>2024-05-10</td><td class='tor bold'>1.0650</td><td class='tor bold'>3.2150</td>"
            "<td class='tor bold red'>1.23%</td><td>开放申购</td><td>开放赎回</td><td></td></tr>"
            "<tr><td>2024-05-09</td><td>1.0520</td><td>3.2020</td><td>-0.10%</td><td></td><td></td><td></td></tr>"
        )

        quote = _source(body).fetch("161725")

        self.assertEqual(quote.code, "161725")
        self.assertEqual(quote.name, "")
        self.assertEqual(quote.as_of, "2024-05-10")
        self.assertEqual(quote.value, Decimal("1.0650"))
        self.assertEqual(quote.change_percent, Decimal("1.23"))

    def test_empty_change_cell_reads_as_zero(self):
        body = _apidata("<tr><td>2024-05-10</td><td>1.0000</td><td>1.0000</td><td></td></tr>")

        quote = _source(body).fetch("000009")

        self.assertEqual(quote.change_percent, Decimal("0"))

    def test_no_data_row_is_no_data(self):
        body = _apidata("<tr><td colspan='7' align='center'>暂无数据!</td></tr>")

        with self.assertRaises(NoDataError):
            _source(body).fetch("999999")

    def test_missing_table_is_no_data(self):
        with self.assertRaises(NoDataError):
            _source("var apidata={ content:\"\",records:0};").fetch("999999")

    def test_non_numeric_nav_is_parse_error(self):
        body = _apidata("<tr><td>2024-05-10</td><td>--</td><td>--</td><td>0.10%</td></tr>")

        with self.assertRaises(ParseError):
            _source(body).fetch("161725")

    def test_non_finite_nav_is_parse_error(self):
        body = _apidata("<tr><td>2024-05-10</td><td>NaN</td><td>NaN</td><td>0.10%</td></tr>")

        with self.assertRaises(ParseError):
            _source(body).fetch("161725")


if __name__ == "__main__":
    unittest.main()
