# price_analyzer/models/envelope.py

"""Chat-completion request envelope."""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class RequestEnvelope:
    """Everything needed for one chat-completion call.

    Built fresh per call and never mutated, so a retry can resend the
    same object unchanged.
    """

    system_prompt: str
    user_prompt: str
    model: str
    temperature: float
    max_tokens: int

    def messages(self) -> list[dict[str, str]]:
        """Messages in provider order: system first, then user."""
        return [
            {"role": "system", "content": self.system_prompt},
            {"role": "user", "content": self.user_prompt},
        ]

    def to_payload(self) -> dict[str, Any]:
        """Provider-standard chat payload."""
        return {
            "model": self.model,
            "messages": self.messages(),
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }

    def to_relay_payload(self, api_key: str) -> dict[str, Any]:
        """Body accepted by the CORS relay, which forwards it upstream."""
        return {
            "apiKey": api_key,
            "messages": self.messages(),
            "model": self.model,
            "temperature": self.temperature,
            "maxTokens": self.max_tokens,
        }
