# price_analyzer/services/errors.py

"""Exception hierarchy for the price analyzer."""


class PriceAnalyzerError(Exception):
    """Base class for all application errors."""


class GatewayError(PriceAnalyzerError):
    """A model request failed before producing usable text."""

    status_code: int | None = None

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code

    @property
    def fatal(self) -> bool:
        """True when retrying with the same settings cannot succeed."""
        return False


class ConfigurationError(GatewayError):
    """API key missing or malformed, or the request envelope is empty."""

    @property
    def fatal(self) -> bool:
        return True


class AuthenticationError(GatewayError):
    """Upstream rejected the API key (HTTP 401)."""

    status_code = 401

    @property
    def fatal(self) -> bool:
        return True


class RateLimitError(GatewayError):
    """Upstream rate limit hit (HTTP 429); retrying later may succeed."""

    status_code = 429


class BadRequestError(GatewayError):
    """Upstream refused the payload (HTTP 400)."""

    status_code = 400


class UpstreamError(GatewayError):
    """Any other non-2xx upstream response."""

    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(f"HTTP {status_code}: {body}", status_code)
        self.body = body


class TransportError(GatewayError):
    """Network failure or an upstream body that is not valid JSON."""


class ProductNotFound(PriceAnalyzerError):
    """An edit command named a product that is not in the table."""

    def __init__(self, name_hint: str) -> None:
        super().__init__(f"No product matches '{name_hint}'")
        self.name_hint = name_hint


class InvalidEditError(PriceAnalyzerError):
    """The model proposed an edit that cannot be applied."""


class BatchInProgressError(PriceAnalyzerError):
    """A batch was started while another one is still running."""
