# price_analyzer/parsing/response_parser.py

"""Turn free-form model output into a validated SearchResult.

Models wrap JSON in Markdown fences, add explanatory prose around
it, or answer in plain text.  The parser:

1. strips fence markers (```` ``` ```` with an optional language tag)
   wherever they appear,
2. slices out the first balanced ``{...}`` with a depth counter that
   ignores braces inside JSON strings,
3. decodes it and classifies the ``success`` flag.

Only the first balanced object is considered; later objects in the
same answer are ignored.
"""

import json
import logging
import math
import re
from typing import Any

from price_analyzer.models.search_result import (
    NotFound,
    ParseFailure,
    SearchResult,
    Success,
)

logger = logging.getLogger("price_analyzer.parser")

_FENCE_RE = re.compile(r"```[A-Za-z0-9_+-]*")

# Keys that may hold the list of offers/sources behind minPrice
_OFFER_KEYS: tuple[str, ...] = ("allOffers", "offers", "sources")


def strip_fences(text: str) -> str:
    """Remove Markdown code-fence markers and surrounding whitespace."""
    return _FENCE_RE.sub("", text.strip()).strip()


def find_json_object(text: str) -> str | None:
    """Return the first balanced ``{...}`` substring, or ``None``.

    Braces inside double-quoted strings (including escaped quotes)
    do not affect the depth count.
    """
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for idx in range(start, len(text)):
        ch = text[idx]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start:idx + 1]
    return None


def extract_json(text: str) -> dict[str, Any] | None:
    """Fence-strip *text* and decode its first JSON object.

    Returns ``None`` when there is no balanced object or it does not
    decode; use :func:`parse` when the failure reason matters.
    """
    blob = find_json_object(strip_fences(text or ""))
    if blob is None:
        return None
    try:
        data = json.loads(blob)
    except (ValueError, RecursionError):
        return None
    return data if isinstance(data, dict) else None


def _is_valid_price(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        return math.isfinite(value) and value >= 0
    except OverflowError:
        return False


def _count_sources(data: dict[str, Any]) -> int:
    """Best-effort number of offers backing the price."""
    for key in _OFFER_KEYS:
        offers = data.get(key)
        if isinstance(offers, list):
            return len(offers)
    return 0


def parse(raw_text: str) -> SearchResult:
    """Classify a model answer as Success, NotFound or ParseFailure.

    Never raises: every malformed input becomes a ParseFailure that
    keeps the original text for diagnostics.
    """
    text = raw_text or ""
    blob = find_json_object(strip_fences(text))
    if blob is None:
        logger.debug("No JSON object in model answer (%d chars)", len(text))
        return ParseFailure(raw_text=text, reason="no JSON object found")

    # ValueError also covers integer literals past the digit limit
    try:
        data = json.loads(blob)
    except (ValueError, RecursionError) as exc:
        logger.debug("Model JSON did not decode: %s", exc)
        return ParseFailure(raw_text=text, reason=str(exc))

    success = data.get("success")
    if success is False:
        message = data.get("message")
        return NotFound(reason=str(message) if message else "not found")
    if success is not True:
        return ParseFailure(
            raw_text=text, reason="missing or invalid success flag",
        )

    min_price = data.get("minPrice")
    if not _is_valid_price(min_price):
        return ParseFailure(
            raw_text=text, reason="missing or invalid minPrice",
        )
    currency = data.get("currency")
    if not isinstance(currency, str) or not currency.strip():
        return ParseFailure(
            raw_text=text, reason="missing or invalid currency",
        )

    return Success(
        min_price=min_price,
        currency=currency.strip(),
        source_count=_count_sources(data),
        raw=data,
    )
