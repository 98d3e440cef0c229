# price_analyzer/services/app_state.py

"""Session-wide application state, built once at startup."""

import logging

from price_analyzer.agents.base_agent import BasePriceAgent
from price_analyzer.agents.competitor_agent import CompetitorPriceAgent
from price_analyzer.agents.edit_agent import EditCommandAgent
from price_analyzer.agents.used_market_agent import UsedMarketAgent
from price_analyzer.config.settings import Settings
from price_analyzer.models.product import Product, ProductCollection
from price_analyzer.services.batch_runner import BatchRunner
from price_analyzer.services.command_interpreter import CommandInterpreter
from price_analyzer.services.connection_check import (
    ConnectionResult,
    check_connection,
)
from price_analyzer.services.errors import (
    BatchInProgressError,
    GatewayError,
)
from price_analyzer.services.model_gateway import (
    ModelGateway,
    validate_api_key,
)
from price_analyzer.services.operation_log import OperationLog

logger = logging.getLogger("price_analyzer.state")


class AppState:
    """Owns the products, log, gateway and the components using them.

    Components receive the pieces they need from here instead of
    reading shared globals; :meth:`configure` rebuilds the gateway and
    agents when the key or model changes.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        products: ProductCollection | None = None,
        delay: float | None = None,
    ) -> None:
        self.api_key = (
            api_key if api_key is not None else Settings.OPENAI_API_KEY
        )
        self.model = model or Settings.DEFAULT_MODEL
        self.products = (
            products if products is not None else ProductCollection()
        )
        self.oplog = OperationLog()
        self._delay = delay
        self._build_services()
        self.oplog.record("SYSTEM", "Price analyzer initialised")

    def _build_services(self) -> None:
        self.gateway = ModelGateway(self.api_key)
        self.competitor_agent = CompetitorPriceAgent(
            self.gateway, self.model
        )
        self.used_agent = UsedMarketAgent(self.gateway, self.model)
        self.edit_agent = EditCommandAgent(self.gateway, self.model)
        self.agents: dict[str, BasePriceAgent] = {
            "competitor": self.competitor_agent,
            "used": self.used_agent,
        }
        self.runner = BatchRunner(
            self.products, self.agents, self.oplog, delay=self._delay,
        )
        self.interpreter = CommandInterpreter(
            self.products, self.runner, self.edit_agent, self.oplog,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key) and self.api_key.startswith(
            Settings.API_KEY_PREFIX
        )

    def configure(self, api_key: str, model: str | None = None) -> None:
        """Validate and install a new key/model.

        Raises:
            ConfigurationError: malformed key; nothing is changed.
            BatchInProgressError: a batch is running.
        """
        key = validate_api_key(api_key)
        if self.runner.is_running:
            msg = "Cannot change settings while a batch is running"
            raise BatchInProgressError(msg)
        custom_prompt = self.competitor_agent.custom_prompt
        logger.info("Reconfiguring services (model=%s)", model or self.model)
        self.gateway.close()
        self.api_key = key
        self.model = model or self.model
        self._build_services()
        if custom_prompt:
            self.competitor_agent.custom_prompt = custom_prompt
        self.oplog.record(
            "SETTINGS", f"API settings updated: model {self.model}",
        )

    def set_custom_prompt(self, template: str) -> None:
        """Install a competitor prompt template (``{PRODUCT_NAME}`` slot)."""
        self.competitor_agent.set_custom_prompt(template)
        self.oplog.record("PROMPT", "Custom competitor prompt saved")

    def reset_prompt(self) -> None:
        self.competitor_agent.reset_prompt()
        self.oplog.record("PROMPT", "Competitor prompt reset to default")

    async def test_connection(self) -> ConnectionResult:
        """Probe the model API and log the outcome.

        Raises:
            ConfigurationError: missing or malformed key.
            AuthenticationError: the key was rejected.
        """
        self.oplog.record("API", f"Testing connection to {self.model}")
        try:
            result = await check_connection(self.gateway, self.model)
        except GatewayError as exc:
            self.oplog.record("API", f"Connection failed: {exc}", "error")
            raise
        level = {"ok": "success", "slow": "warning"}.get(
            result.status, "error"
        )
        self.oplog.record(
            "API",
            f"Connection {result.status} ({result.latency_ms:.0f}ms): "
            f"{result.message}",
            level,
        )
        return result

    def load_demo_products(self) -> int:
        """Append the demo products; return how many were added."""
        added = self.products.extend(
            Product.from_record(record)
            for record in Settings.TEST_PRODUCTS
        )
        self.oplog.record(
            "PRODUCTS", f"Added {added} demo products", "success",
        )
        return added

    def close(self) -> None:
        logger.debug("Closing model gateway")
        self.gateway.close()
