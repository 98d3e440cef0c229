# price_analyzer/services/batch_runner.py

"""Sequential per-product price searches with a fixed request delay."""

import asyncio
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from price_analyzer.agents.base_agent import BasePriceAgent
from price_analyzer.config.settings import Settings
from price_analyzer.models.product import Product, ProductCollection
from price_analyzer.models.search_result import (
    SearchResult,
    Success,
    TransportFailure,
)
from price_analyzer.services.errors import (
    BatchInProgressError,
    GatewayError,
)
from price_analyzer.services.operation_log import OperationLog

logger = logging.getLogger("price_analyzer.batch")

# Batch kind -> Product attribute receiving Success.min_price
PRICE_FIELD_BY_KIND: dict[str, str] = {
    "competitor": "competitor_new_price",
    "used": "competitor_used_price",
}

ProgressCallback = Callable[[int, int, str], None]
ResultCallback = Callable[[Product, SearchResult, str], None]


@dataclass
class BatchJob:
    """Mutable state of the running batch; owned by the runner."""

    product_ids: list[str]
    kind: str
    cancelled: bool = False
    completed_count: int = 0
    success_count: int = 0


@dataclass
class BatchSummary:
    """Final counts reported back to the UI."""

    kind: str
    total: int
    success_count: int = 0
    failure_count: int = 0
    cancelled: bool = False
    fatal_error: str | None = None
    results: list[tuple[str, SearchResult]] = field(
        default_factory=lambda: list[tuple[str, SearchResult]]()
    )

    @property
    def processed(self) -> int:
        return self.success_count + self.failure_count


def apply_result(
    product: Product, kind: str, result: SearchResult,
) -> bool:
    """Write a Success price into *product*; return whether it did.

    Repeating the same Success simply rewrites the same value and
    stamps ``last_updated`` again.
    """
    if not isinstance(result, Success):
        return False
    product.set_field(PRICE_FIELD_BY_KIND[kind], result.min_price)
    return True


class BatchRunner:
    """Runs one agent over an ordered list of products.

    Requests go out one at a time in submission order, with
    ``delay`` seconds between them.  :meth:`cancel` is checked at
    each iteration boundary; a request already in flight finishes
    and its result is still applied.  No error escapes :meth:`run`.
    """

    def __init__(
        self,
        products: ProductCollection,
        agents: dict[str, BasePriceAgent],
        oplog: OperationLog,
        delay: float | None = None,
    ) -> None:
        self.products = products
        self.agents = agents
        self.oplog = oplog
        self.delay = Settings.REQUEST_DELAY if delay is None else delay
        self._job: BatchJob | None = None

    @property
    def is_running(self) -> bool:
        return self._job is not None

    @property
    def job(self) -> BatchJob | None:
        return self._job

    def cancel(self) -> bool:
        """Request cancellation; returns False when nothing is running."""
        if self._job is None:
            return False
        self._job.cancelled = True
        logger.info("Cancellation requested for %s batch", self._job.kind)
        return True

    async def _search_one(
        self, agent: BasePriceAgent, product: Product,
    ) -> tuple[SearchResult, GatewayError | None]:
        """Run one agent call, converting raised errors to results."""
        try:
            return await agent.search(product.name), None
        except GatewayError as exc:
            logger.warning(
                "[%s] Gateway error for '%s': %s",
                agent.kind,
                product.name,
                exc,
            )
            self.oplog.record(
                "API", f"{agent.kind} request failed: {exc}", "error",
            )
            return (
                TransportFailure(
                    reason=str(exc), status_code=exc.status_code,
                ),
                exc,
            )
        except Exception as exc:
            logger.error(
                "[%s] Unexpected error for '%s': %s",
                agent.kind,
                product.name,
                exc,
                exc_info=True,
            )
            return TransportFailure(reason=str(exc)), None

    async def run(
        self,
        product_ids: Iterable[str],
        kind: str,
        on_progress: ProgressCallback | None = None,
        on_result: ResultCallback | None = None,
    ) -> BatchSummary:
        """Search every product in *product_ids* with the *kind* agent.

        Args:
            product_ids: Ids in the order they should be processed.
            kind: ``"competitor"`` or ``"used"``.
            on_progress: Called as ``(index, total, product_name)``
                before each request (index is 0-based).
            on_result: Called as ``(product, result, message)`` after
                each request.

        Raises:
            BatchInProgressError: another batch is still running.
            ValueError: unknown *kind*.
        """
        if self._job is not None:
            msg = "A batch is already running"
            raise BatchInProgressError(msg)
        agent = self.agents.get(kind)
        if agent is None or kind not in PRICE_FIELD_BY_KIND:
            msg = f"Unknown batch kind: {kind!r}"
            raise ValueError(msg)

        job = BatchJob(product_ids=list(product_ids), kind=kind)
        summary = BatchSummary(kind=kind, total=len(job.product_ids))
        self._job = job
        self.oplog.record(
            "SEARCH",
            f"Starting {kind} search for {summary.total} product(s)",
        )

        try:
            for index, product_id in enumerate(job.product_ids):
                if job.cancelled:
                    summary.cancelled = True
                    break

                product = self.products.get(product_id)
                if product is None:
                    logger.warning(
                        "Product %s vanished before its turn", product_id,
                    )
                    summary.failure_count += 1
                    job.completed_count += 1
                    continue

                if on_progress is not None:
                    on_progress(index, summary.total, product.name)

                result, error = await self._search_one(agent, product)
                if apply_result(product, kind, result):
                    summary.success_count += 1
                    job.success_count += 1
                else:
                    summary.failure_count += 1
                job.completed_count += 1
                summary.results.append((product_id, result))

                message = self.oplog.record_result(
                    product_id, product.name, kind, result,
                )
                if on_result is not None:
                    on_result(product, result, message)

                if error is not None and error.fatal:
                    summary.fatal_error = str(error)
                    self.oplog.record(
                        "SEARCH",
                        f"Batch stopped: {error}",
                        "error",
                    )
                    break

                if index < summary.total - 1:
                    await asyncio.sleep(self.delay)
            else:
                summary.cancelled = job.cancelled and (
                    job.completed_count < summary.total
                )
        finally:
            self._job = None

        self.oplog.record(
            "SEARCH",
            f"{kind} search finished: {summary.success_count} found, "
            f"{summary.failure_count} failed"
            + (" (cancelled)" if summary.cancelled else ""),
            "success" if summary.failure_count == 0 else "warning",
        )
        return summary
