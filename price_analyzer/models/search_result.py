# price_analyzer/models/search_result.py

"""Tagged outcomes of a single price-search agent invocation."""

from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class Success:
    """The model reported a price."""

    min_price: float
    currency: str
    source_count: int = 0
    raw: dict[str, Any] = field(default_factory=dict, compare=False)


@dataclass(frozen=True)
class NotFound:
    """The model explicitly reported that nothing was found."""

    reason: str


@dataclass(frozen=True)
class ParseFailure:
    """The model's text could not be decoded into a valid record."""

    raw_text: str
    reason: str


@dataclass(frozen=True)
class TransportFailure:
    """The request never produced model text (HTTP or network error)."""

    reason: str
    status_code: int | None = None


SearchResult = Success | NotFound | ParseFailure | TransportFailure


def describe_result(product_name: str, result: SearchResult) -> str:
    """Human-readable one-liner separating "not found" from errors."""
    if isinstance(result, Success):
        return (
            f"{product_name}: {result.min_price:,.0f} {result.currency}"
            f" ({result.source_count} offers)"
        )
    if isinstance(result, NotFound):
        return f"{product_name}: not found — {result.reason}"
    if isinstance(result, ParseFailure):
        return (
            f"{product_name}: technical error — unreadable model"
            f" answer ({result.reason})"
        )
    status = (
        f"HTTP {result.status_code}: "
        if result.status_code is not None
        else ""
    )
    return f"{product_name}: technical error — {status}{result.reason}"
