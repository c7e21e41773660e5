import json
import unittest
from datetime import datetime
from unittest.mock import MagicMock

from fund_tracker.errors import NoDataError
from fund_tracker.integrations.http_client import SourceHttpClient
from fund_tracker.integrations.realtime_source import RealtimeQuoteSource
from fund_tracker.services.market_hours import CST


class FixedClock:
    def __init__(self, now: datetime) -> None:
        self._now = now

    def now(self) -> datetime:
        return self._now


def _session_returning(payload) -> MagicMock:
    session = MagicMock()
    response = MagicMock()
    response.content = json.dumps(payload, ensure_ascii=False).encode("utf-8")
    response.raise_for_status.return_value = None
    session.get.return_value = response
    return session


class TestRealtimeQuoteSource(unittest.TestCase):
    def setUp(self):
        self.clock = FixedClock(datetime(2024, 5, 10, 10, 30, tzinfo=CST))

    def _source(self, session) -> RealtimeQuoteSource:
        return RealtimeQuoteSource(SourceHttpClient(session=session), clock=self.clock)

    def test_maps_live_fields(self):
        session = _session_returning(
            {"rc": 0, "data": {"f43": 4.0, "f57": "510300", "f58": "沪深300ETF", "f60": 3.96, "f170": 1.0}}
        )

        quote = self._source(session).fetch("510300")

        self.assertEqual(quote.code, "510300")
        self.assertEqual(quote.name, "沪深300ETF")
        self.assertEqual(str(quote.value), "4.000")
        self.assertEqual(str(quote.change_percent), "1.00")
        self.assertEqual(quote.as_of, "2024-05-10 10:30")

    def test_builds_secid_from_market_prefix(self):
        session = _session_returning({"data": {"f43": 1.5, "f58": "x", "f60": 1.4, "f170": 0}})

        self._source(session).fetch("510300")
        self._source(session).fetch("159915")

        first, second = session.get.call_args_list
        self.assertEqual(first.kwargs["params"]["secid"], "1.510300")
        self.assertEqual(second.kwargs["params"]["secid"], "0.159915")
        self.assertEqual(first.kwargs["params"]["fltt"], 2)

    def test_zero_price_falls_back_to_previous_close(self):
        session = _session_returning({"data": {"f43": "-", "f58": "停牌ETF", "f60": 3.95, "f170": "-"}})

        quote = self._source(session).fetch("510300")

        self.assertEqual(str(quote.value), "3.950")
        self.assertEqual(str(quote.change_percent), "0.00")

    def test_zero_price_and_previous_close_is_no_data(self):
        session = _session_returning({"data": {"f43": 0, "f58": "x", "f60": 0, "f170": 0}})

        with self.assertRaises(NoDataError):
            self._source(session).fetch("510300")

    def test_missing_data_object_is_no_data(self):
        session = _session_returning({"rc": 0, "data": None})

        with self.assertRaises(NoDataError):
            self._source(session).fetch("510300")

    def test_non_finite_price_falls_back_to_previous_close(self):
        session = _session_returning({"data": {"f43": float("nan"), "f58": "x", "f60": 3.95, "f170": float("inf")}})

        quote = self._source(session).fetch("510300")

        self.assertEqual(str(quote.value), "3.950")
        self.assertEqual(str(quote.change_percent), "0.00")

    def test_non_finite_price_and_previous_close_is_no_data(self):
        session = _session_returning({"data": {"f43": float("nan"), "f58": "x", "f60": float("nan"), "f170": 0}})

        with self.assertRaises(NoDataError):
            self._source(session).fetch("510300")


if __name__ == "__main__":
    unittest.main()
