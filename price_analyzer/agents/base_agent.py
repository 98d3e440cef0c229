# price_analyzer/agents/base_agent.py

"""Abstract base class for the price-search agents."""

import asyncio
import logging
from abc import ABC, abstractmethod

from price_analyzer.config.settings import Settings
from price_analyzer.models.envelope import RequestEnvelope
from price_analyzer.models.search_result import SearchResult
from price_analyzer.parsing import response_parser
from price_analyzer.services.model_gateway import ModelGateway


class BasePriceAgent(ABC):
    """One product name in, one model round trip, one SearchResult out.

    Agents never touch products; applying a price is the caller's job.
    Gateway exceptions propagate unchanged.
    """

    #: Short id used in log names and the batch ``kind``.
    kind: str = ""

    def __init__(
        self,
        gateway: ModelGateway,
        model: str | None = None,
    ) -> None:
        self.gateway = gateway
        self.model = model or Settings.DEFAULT_MODEL
        self.logger = logging.getLogger(
            f"price_analyzer.agents.{self.kind or 'base'}"
        )

    @abstractmethod
    def system_prompt(self, product_name: str) -> str:
        """Return the system prompt for *product_name*."""
        ...

    @abstractmethod
    def user_prompt(self, product_name: str) -> str:
        """Return the short user instruction restating the task."""
        ...

    def build_envelope(self, product_name: str) -> RequestEnvelope:
        """Assemble the request for *product_name*."""
        return RequestEnvelope(
            system_prompt=self.system_prompt(product_name),
            user_prompt=self.user_prompt(product_name),
            model=self.model,
            temperature=Settings.TEMPERATURE,
            max_tokens=Settings.MAX_TOKENS,
        )

    async def search(self, product_name: str) -> SearchResult:
        """Ask the model for *product_name*'s minimum price."""
        envelope = self.build_envelope(product_name)
        self.logger.info(
            "[%s] Searching price for '%s'", self.kind, product_name,
        )
        raw_text: str = await asyncio.to_thread(
            self.gateway.send, envelope
        )
        result = response_parser.parse(raw_text)
        self.logger.info(
            "[%s] '%s' -> %s",
            self.kind,
            product_name,
            type(result).__name__,
        )
        return result
