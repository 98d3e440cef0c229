# price_analyzer/services/model_gateway.py

"""Single-shot chat-completion client, direct or through a CORS relay."""

import json
import logging
from typing import Any

from curl_cffi import CurlError
from curl_cffi import requests as curl_requests

from price_analyzer.config.settings import Settings
from price_analyzer.models.envelope import RequestEnvelope
from price_analyzer.services.errors import (
    AuthenticationError,
    BadRequestError,
    ConfigurationError,
    RateLimitError,
    TransportError,
    UpstreamError,
)

logger = logging.getLogger("price_analyzer.gateway")


def validate_api_key(api_key: str | None) -> str:
    """Return the stripped key or raise ConfigurationError.

    Runs before any request is built, so a malformed key never
    reaches the network.
    """
    key = (api_key or "").strip()
    if not key:
        msg = "OpenAI API key is not configured"
        raise ConfigurationError(msg)
    if not key.startswith(Settings.API_KEY_PREFIX):
        msg = (
            "Invalid API key format: expected prefix "
            f"'{Settings.API_KEY_PREFIX}'"
        )
        raise ConfigurationError(msg)
    return key


def _error_detail(body: Any, fallback: str) -> str:
    """Pull a readable message from a provider or relay error body."""
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if body.get("details"):
            return str(body["details"])
        if error:
            return str(error)
    return fallback


class ModelGateway:
    """Sends one RequestEnvelope and returns the first choice's text.

    No retries happen here; callers decide what a failure means.
    When *relay_url* is set the relay envelope (key in the body) is
    posted there instead of calling the provider with a bearer header.
    """

    def __init__(
        self,
        api_key: str | None,
        api_url: str | None = None,
        relay_url: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self.api_key = api_key
        self.api_url = api_url or Settings.OPENAI_API_URL
        self.relay_url = relay_url or Settings.RELAY_URL or None
        self._timeout = timeout or Settings.REQUEST_TIMEOUT
        self.session = curl_requests.Session(
            impersonate=Settings.IMPERSONATE_BROWSER
        )
        self.last_usage: dict[str, Any] = {}

    @property
    def via_relay(self) -> bool:
        return bool(self.relay_url)

    def _build_request(
        self, envelope: RequestEnvelope, key: str,
    ) -> tuple[str, dict[str, str], dict[str, Any]]:
        """Return (url, headers, body) for the configured route."""
        headers = {
            "Content-Type": "application/json",
            "User-Agent": Settings.USER_AGENT,
        }
        if self.relay_url:
            return (
                self.relay_url,
                headers,
                envelope.to_relay_payload(key),
            )
        headers["Authorization"] = f"Bearer {key}"
        return self.api_url, headers, envelope.to_payload()

    def send(self, envelope: RequestEnvelope) -> str:
        """POST *envelope* and return ``choices[0].message.content``.

        Raises:
            ConfigurationError: missing/malformed key or empty prompts.
            AuthenticationError: HTTP 401.
            RateLimitError: HTTP 429.
            BadRequestError: HTTP 400.
            UpstreamError: any other non-2xx status.
            TransportError: network failure or a non-JSON body.
        """
        key = validate_api_key(self.api_key)
        if not envelope.system_prompt.strip():
            msg = "System prompt is empty"
            raise ConfigurationError(msg)
        if not envelope.user_prompt.strip():
            msg = "User prompt is empty"
            raise ConfigurationError(msg)

        url, headers, body = self._build_request(envelope, key)
        logger.debug(
            "POST %s model=%s temperature=%s max_tokens=%d messages=%s",
            url,
            envelope.model,
            envelope.temperature,
            envelope.max_tokens,
            json.dumps(envelope.messages(), ensure_ascii=False),
        )

        try:
            resp = self.session.post(
                url,
                headers=headers,
                json=body,
                timeout=self._timeout,
            )
        except CurlError as exc:
            logger.warning(
                "Request to %s failed: %s", url, exc, exc_info=True,
            )
            msg = f"Failed to connect to model API: {exc}"
            raise TransportError(msg) from exc

        try:
            data: Any = json.loads(resp.text)
        except (json.JSONDecodeError, TypeError) as exc:
            if 200 <= resp.status_code < 300:
                msg = "Malformed upstream response: body is not JSON"
                raise TransportError(msg, resp.status_code) from exc
            data = None

        if not 200 <= resp.status_code < 300:
            self._raise_for_status(resp.status_code, data, resp.text)

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            msg = "Malformed upstream response: no choices[0].message.content"
            raise TransportError(msg, resp.status_code) from exc

        usage = data.get("usage") or {}
        self.last_usage = usage if isinstance(usage, dict) else {}
        logger.info(
            "Model %s answered: %s chars, tokens total=%s prompt=%s completion=%s",
            data.get("model", envelope.model),
            len(content or ""),
            self.last_usage.get("total_tokens", "n/a"),
            self.last_usage.get("prompt_tokens", "n/a"),
            self.last_usage.get("completion_tokens", "n/a"),
        )
        return str(content or "")

    def _raise_for_status(
        self, status: int, data: Any, text: str,
    ) -> None:
        """Map a non-2xx response to the gateway error taxonomy."""
        detail = _error_detail(data, text.strip() or f"HTTP {status}")
        logger.warning("Model API returned HTTP %d: %s", status, detail)
        if status == 401:
            raise AuthenticationError(f"Invalid API key: {detail}")
        if status == 429:
            raise RateLimitError(f"Rate limit exceeded: {detail}")
        if status == 400:
            raise BadRequestError(f"Bad request: {detail}")
        if self.via_relay and status == 502:
            raise TransportError(
                f"Relay could not reach the model API: {detail}", status,
            )
        raise UpstreamError(status, detail)

    def close(self) -> None:
        """Release the underlying HTTP session."""
        self.session.close()
