# tests/test_batch_runner.py

"""Tests for sequential batch price searches."""

import asyncio
import unittest
from datetime import datetime
from typing import Any, cast
from unittest.mock import patch

from price_analyzer.agents.base_agent import BasePriceAgent
from price_analyzer.agents.competitor_agent import CompetitorPriceAgent
from price_analyzer.agents.used_market_agent import UsedMarketAgent
from price_analyzer.models.product import ProductCollection
from price_analyzer.models.search_result import (
    NotFound,
    ParseFailure,
    Success,
    TransportFailure,
)
from price_analyzer.services.batch_runner import BatchRunner, apply_result
from price_analyzer.services.errors import (
    AuthenticationError,
    BatchInProgressError,
    RateLimitError,
    TransportError,
)
from price_analyzer.services.operation_log import OperationLog

from fakes import ScriptedGateway, make_product, price_answer


def _runner(
    products: ProductCollection, gateway: ScriptedGateway,
) -> tuple[BatchRunner, OperationLog]:
    """Runner with both agents on *gateway* and no delay."""
    gw = cast(Any, gateway)
    agents: dict[str, BasePriceAgent] = {
        "competitor": CompetitorPriceAgent(gw, "gpt-4o"),
        "used": UsedMarketAgent(gw, "gpt-4o"),
    }
    oplog = OperationLog()
    return BatchRunner(products, agents, oplog, delay=0), oplog


class TestApplyResult(unittest.TestCase):
    """Writing results into products."""

    def test_success_sets_kind_field(self) -> None:
        """Competitor and used results land in different fields."""
        p = make_product("Widget")
        self.assertTrue(apply_result(p, "competitor", Success(10.0, "RUB")))
        self.assertTrue(apply_result(p, "used", Success(4.0, "RUB")))
        self.assertEqual(p.competitor_new_price, 10.0)
        self.assertEqual(p.competitor_used_price, 4.0)
        self.assertIsNotNone(p.last_updated)

    def test_failures_leave_product_untouched(self) -> None:
        """Non-success results change nothing."""
        p = make_product("Widget")
        for result in (
            NotFound("none"),
            ParseFailure("x", "bad"),
            TransportFailure("down"),
        ):
            with self.subTest(result=result):
                self.assertFalse(apply_result(p, "competitor", result))
        self.assertIsNone(p.competitor_new_price)
        self.assertIsNone(p.last_updated)


class TestBatchRunner(unittest.IsolatedAsyncioTestCase):
    """Ordering, error isolation, cancellation and the busy guard."""

    def setUp(self) -> None:
        """Products A, B, C."""
        self.a = make_product("Product A")
        self.b = make_product("Product B")
        self.c = make_product("Product C")
        self.products = ProductCollection([self.a, self.b, self.c])
        self.ids = [self.a.id, self.b.id, self.c.id]

    async def test_widget_end_to_end(self) -> None:
        """A fenced answer sets competitor_new_price."""
        widget = make_product("Widget X")
        products = ProductCollection([widget])
        gateway = ScriptedGateway(
            {
                "Widget X": (
                    "```json\n"
                    '{"success": true, "minPrice": 1500, "currency": "USD"}'
                    "\n```"
                )
            }
        )
        runner, _ = _runner(products, gateway)
        summary = await runner.run([widget.id], "competitor")
        self.assertEqual(widget.competitor_new_price, 1500)
        self.assertIsNotNone(widget.last_updated)
        self.assertEqual(summary.success_count, 1)
        self.assertEqual(summary.failure_count, 0)

    async def test_error_does_not_stop_batch(self) -> None:
        """B's transport error is recorded; A and C still succeed."""
        gateway = ScriptedGateway(
            {
                "Product A": price_answer(100),
                "Product B": TransportError("connection reset"),
                "Product C": price_answer(300),
            }
        )
        runner, oplog = _runner(self.products, gateway)
        before_b = self.b.last_updated

        summary = await runner.run(self.ids, "competitor")

        self.assertEqual(summary.success_count, 2)
        self.assertEqual(summary.failure_count, 1)
        self.assertFalse(summary.cancelled)
        self.assertEqual(self.a.competitor_new_price, 100)
        self.assertIsNone(self.b.competitor_new_price)
        self.assertEqual(self.b.last_updated, before_b)
        self.assertEqual(self.c.competitor_new_price, 300)
        self.assertIsInstance(summary.results[1][1], TransportFailure)
        self.assertEqual(len(oplog.filter("api")), 1)

    async def test_requests_are_sequential_in_order(self) -> None:
        """Requests go out in submission order, one at a time."""
        gateway = ScriptedGateway(
            {
                "Product A": price_answer(1),
                "Product B": price_answer(2),
                "Product C": price_answer(3),
            }
        )
        runner, _ = _runner(self.products, gateway)
        await runner.run([self.c.id, self.a.id, self.b.id], "used")
        names = [
            next(n for n in ("A", "B", "C") if f"Product {n}" in e.user_prompt)
            for e in gateway.sent
        ]
        self.assertEqual(names, ["C", "A", "B"])
        self.assertEqual(self.c.competitor_used_price, 3)
        self.assertIsNone(self.c.competitor_new_price)

    async def test_delay_between_requests_only(self) -> None:
        """The delay is awaited between items, not after the last."""
        gateway = ScriptedGateway(
            {
                "Product A": price_answer(1),
                "Product B": price_answer(2),
                "Product C": price_answer(3),
            }
        )
        runner, _ = _runner(self.products, gateway)
        runner.delay = 2.0
        with patch(
            "price_analyzer.services.batch_runner.asyncio.sleep"
        ) as mock_sleep:
            await runner.run(self.ids, "competitor")
        self.assertEqual(mock_sleep.await_count, 2)
        mock_sleep.assert_awaited_with(2.0)

    async def test_cancel_after_first(self) -> None:
        """Cancelling during A's request skips B and C."""
        gateway = ScriptedGateway(
            {
                "Product A": price_answer(100),
                "Product B": price_answer(200),
                "Product C": price_answer(300),
            }
        )
        runner, _ = _runner(self.products, gateway)
        gateway.on_send = lambda envelope: runner.cancel()

        summary = await runner.run(self.ids, "competitor")

        self.assertTrue(summary.cancelled)
        self.assertEqual(summary.success_count, 1)
        self.assertEqual(self.a.competitor_new_price, 100)
        self.assertIsNone(self.b.competitor_new_price)
        self.assertIsNone(self.c.competitor_new_price)
        self.assertEqual(len(gateway.sent), 1)
        self.assertFalse(runner.is_running)

    async def test_cancel_when_idle(self) -> None:
        """cancel() without a batch returns False."""
        runner, _ = _runner(self.products, ScriptedGateway({}))
        self.assertFalse(runner.cancel())

    async def test_rerun_is_idempotent(self) -> None:
        """Running twice with the same answers gives the same prices.

        The second run stamps last_updated again.
        """
        gateway = ScriptedGateway(
            {
                "Product A": price_answer(100),
                "Product B": price_answer(200),
                "Product C": price_answer(300),
            }
        )
        runner, _ = _runner(self.products, gateway)
        await runner.run(self.ids, "competitor")
        first = [p.competitor_new_price for p in self.products]
        first_stamps = [p.last_updated for p in self.products]
        await runner.run(self.ids, "competitor")
        second = [p.competitor_new_price for p in self.products]
        self.assertEqual(first, second)
        for product, stamp in zip(self.products, first_stamps):
            assert product.last_updated is not None and stamp is not None
            self.assertGreaterEqual(product.last_updated, stamp)

    async def test_restamp_on_rerun(self) -> None:
        """A repeated result still refreshes an older stamp."""
        gateway = ScriptedGateway({"Product A": price_answer(100)})
        runner, _ = _runner(self.products, gateway)
        await runner.run([self.a.id], "competitor")
        old = datetime(2000, 1, 1)
        self.a.last_updated = old
        await runner.run([self.a.id], "competitor")
        self.assertEqual(self.a.competitor_new_price, 100)
        assert self.a.last_updated is not None
        self.assertGreater(self.a.last_updated, old)

    async def test_rate_limit_does_not_stop_batch(self) -> None:
        """A rate-limited item fails and the batch moves on."""
        gateway = ScriptedGateway(
            {
                "Product A": price_answer(100),
                "Product B": RateLimitError("Too many requests"),
                "Product C": price_answer(300),
            }
        )
        runner, _ = _runner(self.products, gateway)
        summary = await runner.run(self.ids, "competitor")
        self.assertIsNone(summary.fatal_error)
        self.assertEqual(summary.success_count, 2)
        self.assertEqual(summary.failure_count, 1)
        self.assertEqual(len(gateway.sent), 3)
        self.assertIsNone(self.b.competitor_new_price)
        self.assertEqual(self.c.competitor_new_price, 300)
        self.assertIsInstance(summary.results[1][1], TransportFailure)

    async def test_plain_text_answer_is_failure(self) -> None:
        """A non-JSON answer is counted as a failure."""
        gateway = ScriptedGateway({"Product A": "No idea, sorry."})
        runner, oplog = _runner(self.products, gateway)
        summary = await runner.run([self.a.id], "competitor")
        self.assertEqual(summary.failure_count, 1)
        self.assertIsNone(self.a.competitor_new_price)
        self.assertIn("technical error", oplog.entries[1].message)

    async def test_fatal_error_stops_batch(self) -> None:
        """An authentication error ends the batch early."""
        gateway = ScriptedGateway(
            {
                "Product A": AuthenticationError("Invalid API key"),
                "Product B": price_answer(200),
                "Product C": price_answer(300),
            }
        )
        runner, _ = _runner(self.products, gateway)
        summary = await runner.run(self.ids, "competitor")
        self.assertEqual(summary.fatal_error, "Invalid API key")
        self.assertEqual(summary.processed, 1)
        self.assertEqual(len(gateway.sent), 1)
        self.assertIsNone(self.b.competitor_new_price)

    async def test_unexpected_exception_is_contained(self) -> None:
        """A bug-level exception becomes a TransportFailure."""
        gateway = ScriptedGateway(
            {
                "Product A": RuntimeError("boom"),
                "Product B": price_answer(200),
            }
        )
        runner, _ = _runner(self.products, gateway)
        summary = await runner.run([self.a.id, self.b.id], "competitor")
        self.assertEqual(summary.failure_count, 1)
        self.assertEqual(summary.success_count, 1)

    async def test_vanished_product_is_skipped(self) -> None:
        """Products deleted before their turn count as failures."""
        gateway = ScriptedGateway({"Product A": price_answer(1)})
        runner, _ = _runner(self.products, gateway)
        self.products.remove(self.b.id)
        summary = await runner.run([self.a.id, self.b.id], "competitor")
        self.assertEqual(summary.success_count, 1)
        self.assertEqual(summary.failure_count, 1)

    async def test_callbacks(self) -> None:
        """Progress is 0-based; every result is reported."""
        gateway = ScriptedGateway(
            {
                "Product A": price_answer(1),
                "Product B": '{"success": false, "message": "none"}',
            }
        )
        runner, _ = _runner(self.products, gateway)
        progress: list[tuple[int, int, str]] = []
        results: list[str] = []
        await runner.run(
            [self.a.id, self.b.id],
            "competitor",
            on_progress=lambda i, t, n: progress.append((i, t, n)),
            on_result=lambda p, r, m: results.append(m),
        )
        self.assertEqual(
            progress, [(0, 2, "Product A"), (1, 2, "Product B")]
        )
        self.assertEqual(len(results), 2)
        self.assertIn("not found", results[1])

    async def test_unknown_kind(self) -> None:
        """An unknown kind is rejected before anything runs."""
        runner, _ = _runner(self.products, ScriptedGateway({}))
        with self.assertRaises(ValueError):
            await runner.run(self.ids, "refurbished")
        self.assertFalse(runner.is_running)

    async def test_busy_guard(self) -> None:
        """A second batch cannot start while one is running."""
        release = asyncio.Event()
        started = asyncio.Event()

        class SlowAgent(CompetitorPriceAgent):
            async def search(self, product_name: str) -> Any:
                started.set()
                await release.wait()
                return Success(1.0, "RUB")

        oplog = OperationLog()
        runner = BatchRunner(
            self.products,
            {"competitor": SlowAgent(cast(Any, ScriptedGateway({})))},
            oplog,
            delay=0,
        )
        first = asyncio.create_task(runner.run([self.a.id], "competitor"))
        await started.wait()
        self.assertTrue(runner.is_running)
        with self.assertRaises(BatchInProgressError):
            await runner.run([self.b.id], "competitor")
        release.set()
        summary = await first
        self.assertEqual(summary.success_count, 1)
        self.assertFalse(runner.is_running)
