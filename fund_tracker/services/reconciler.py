from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from fund_tracker.errors import AggregateNoDataError, QuoteSourceError
from fund_tracker.schemas.quote import Freshness, Quote, SourceQuote
from fund_tracker.services.instrument import InstrumentClass, classify_instrument, is_international
from fund_tracker.services.market_hours import WallClock, us_market_session


@dataclass
class _Resolved:
    quote: SourceQuote
    freshness: Freshness
    premium_rate: Decimal | None = None


def format_decimal(value: Decimal) -> str:
    return format(value, "f")


def compute_premium_rate(price: Decimal, nav: Decimal) -> Decimal | None:
    if nav <= 0:
        return None
    return (price - nav) / nav * 100


def format_premium_rate(rate: Decimal) -> str:
    rounded = rate.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    if rounded == 0:
        rounded = Decimal("0.00")
    return f"{rounded:+.2f}%"


def _as_of_date(as_of: str) -> date | None:
    parts = as_of.split()
    if not parts:
        return None
    try:
        return date.fromisoformat(parts[0])
    except ValueError:
        return None


class QuoteReconciler:
    """Resolve one authoritative quote from the realtime, estimate and confirmed sources.

    Primary sources are tried in order (realtime for exchange-traded codes, then
    estimate); the confirmed NAV is always fetched as a reference and overrides
    an estimate once it is at least as recent.
    """

    def __init__(
        self,
        *,
        realtime_source,
        estimate_source,
        confirmed_source,
        clock=None,
    ) -> None:
        self.realtime_source = realtime_source
        self.estimate_source = estimate_source
        self.confirmed_source = confirmed_source
        self.clock = clock or WallClock()
        self._lock = threading.Lock()
        self._metrics = {
            "reconciled": 0,
            "no_data": 0,
            "realtime": 0,
            "estimated": 0,
            "confirmed": 0,
            "premium_computed": 0,
        }

    def _primary_chain(self, code: str) -> list[tuple[Freshness, object]]:
        chain: list[tuple[Freshness, object]] = []
        if classify_instrument(code) is InstrumentClass.EXCHANGE_TRADED:
            chain.append((Freshness.REALTIME, self.realtime_source))
        chain.append((Freshness.ESTIMATED, self.estimate_source))
        return chain

    @staticmethod
    def _attempt(source, code: str, failures: dict[str, QuoteSourceError]) -> SourceQuote | None:
        try:
            return source.fetch(code)
        except QuoteSourceError as exc:
            failures[source.name] = exc
            return None

    def _premium_rate(self, code: str, price: Decimal) -> Decimal | None:
        # best-effort: a missing estimate only drops the premium field
        estimate = self._attempt(self.estimate_source, code, {})
        if estimate is None:
            return None
        return compute_premium_rate(price, estimate.value)

    def _resolve_primary(self, code: str, failures: dict[str, QuoteSourceError]) -> _Resolved | None:
        for freshness, source in self._primary_chain(code):
            quote = self._attempt(source, code, failures)
            if quote is None:
                continue
            premium = self._premium_rate(code, quote.value) if freshness is Freshness.REALTIME else None
            return _Resolved(quote=quote, freshness=freshness, premium_rate=premium)
        return None

    @staticmethod
    def _apply_confirmed(primary: _Resolved, confirmed: SourceQuote | None) -> _Resolved:
        if primary.freshness is Freshness.REALTIME or confirmed is None:
            return primary

        confirmed_date = _as_of_date(confirmed.as_of)
        estimate_date = _as_of_date(primary.quote.as_of)
        # an undated estimate counts as older than any dated NAV
        if confirmed_date is None:
            return primary
        if estimate_date is not None and confirmed_date < estimate_date:
            return primary

        merged = primary.quote.model_copy(
            update={
                "value": confirmed.value,
                "change_percent": confirmed.change_percent,
                "as_of": confirmed.as_of,
            }
        )
        return _Resolved(quote=merged, freshness=Freshness.CONFIRMED, premium_rate=primary.premium_rate)

    def _build_quote(self, code: str, resolved: _Resolved) -> Quote:
        source = resolved.quote
        session_note = None
        if is_international(source.name):
            session_note = us_market_session(self.clock.now()) or None

        return Quote(
            code=code,
            name=source.name,
            value=format_decimal(source.value),
            change_percent=format_decimal(source.change_percent),
            as_of=source.as_of,
            freshness=resolved.freshness,
            premium_rate=(
                format_premium_rate(resolved.premium_rate) if resolved.premium_rate is not None else None
            ),
            session_note=session_note,
        )

    def _count(self, key: str) -> None:
        with self._lock:
            self._metrics[key] += 1

    def reconcile(self, code: str) -> Quote:
        code = str(code).strip()
        failures: dict[str, QuoteSourceError] = {}

        primary = self._resolve_primary(code, failures)
        confirmed = self._attempt(self.confirmed_source, code, failures)

        if primary is None:
            if confirmed is None:
                self._count("no_data")
                error = AggregateNoDataError(code, failures)
                print(f"[QUOTE][reconcile_no_data] {error}", flush=True)
                raise error
            resolved = _Resolved(quote=confirmed, freshness=Freshness.CONFIRMED)
        else:
            resolved = self._apply_confirmed(primary, confirmed)

        quote = self._build_quote(code, resolved)
        self._count("reconciled")
        self._count(quote.freshness.name.lower())
        if quote.premium_rate is not None:
            self._count("premium_computed")

        print(
            "[QUOTE][reconcile] "
            f"code={code} freshness={quote.freshness.value} value={quote.value} "
            f"premium_rate={quote.premium_rate or '-'}",
            flush=True,
        )
        return quote

    def metrics(self) -> dict[str, int]:
        with self._lock:
            return dict(self._metrics)
