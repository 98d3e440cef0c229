# tests/fakes.py

"""Test doubles shared by the service and UI tests."""

import json
from typing import Any
from unittest.mock import MagicMock

from price_analyzer.models.envelope import RequestEnvelope
from price_analyzer.models.product import Product


def make_product(name: str, **kwargs: Any) -> Product:
    """Create a Product with sensible defaults."""
    kwargs.setdefault("quantity", 1)
    kwargs.setdefault("purchase_price", 100.0)
    kwargs.setdefault("sale_price", 150.0)
    return Product(name=name, **kwargs)


def make_response(status_code: int = 200, body: Any = None) -> MagicMock:
    """Fake curl_cffi response; *body* is JSON-encoded unless a str."""
    resp = MagicMock()
    resp.status_code = status_code
    resp.text = body if isinstance(body, str) else json.dumps(body)
    return resp


def completion(content: str) -> dict[str, Any]:
    """Minimal chat-completion body carrying *content*."""
    return {
        "model": "gpt-4o",
        "choices": [{"message": {"role": "assistant", "content": content}}],
        "usage": {
            "total_tokens": 42,
            "prompt_tokens": 30,
            "completion_tokens": 12,
        },
    }


def price_answer(min_price: float, currency: str = "RUB") -> str:
    """A well-formed Success answer as the model would write it."""
    return json.dumps(
        {
            "success": True,
            "minPrice": min_price,
            "currency": currency,
            "allOffers": [{"siteName": "Ozon", "price": min_price}],
        }
    )


class ScriptedGateway:
    """Gateway stand-in answering per product name.

    *answers* maps a substring of the user prompt to either the text to
    return or an exception instance to raise.  Sent envelopes are kept
    in ``sent`` in call order.
    """

    def __init__(self, answers: dict[str, Any]) -> None:
        self.answers = answers
        self.sent: list[RequestEnvelope] = []
        self.on_send: Any = None

    def send(self, envelope: RequestEnvelope) -> str:
        self.sent.append(envelope)
        if self.on_send is not None:
            self.on_send(envelope)
        for needle, answer in self.answers.items():
            if needle in envelope.user_prompt:
                if isinstance(answer, Exception):
                    raise answer
                return str(answer)
        msg = f"No scripted answer for {envelope.user_prompt!r}"
        raise AssertionError(msg)

    def close(self) -> None:
        pass
