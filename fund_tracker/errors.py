from __future__ import annotations


class QuoteSourceError(Exception):
    """Raised by a single upstream quote source."""

    def __init__(self, message: str, *, source: str | None = None, code: str | None = None) -> None:
        super().__init__(message)
        self.source = source
        self.code = code


class NetworkError(QuoteSourceError):
    pass


class ParseError(QuoteSourceError):
    pass


class NoDataError(QuoteSourceError):
    pass


class AggregateNoDataError(Exception):
    """Every source was exhausted for one code."""

    def __init__(self, code: str, failures: dict[str, QuoteSourceError] | None = None) -> None:
        self.code = code
        self.failures = dict(failures or {})
        reasons = ",".join(f"{name}:{type(exc).__name__}" for name, exc in self.failures.items())
        super().__init__(f"NO_DATA code={code} failures={reasons or '-'}")
