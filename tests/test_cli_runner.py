# tests/test_cli_runner.py

"""Tests for the headless CLI runner."""

import io
import json
import tempfile
import unittest
from contextlib import redirect_stdout
from pathlib import Path
from typing import Any
from unittest.mock import patch

from price_analyzer.cli.runner import (
    cli_batch,
    cli_command,
    run_connection_check,
)
from price_analyzer.config.settings import Settings
from price_analyzer.models.envelope import RequestEnvelope
from price_analyzer.services.app_state import AppState
from price_analyzer.services.errors import TransportError
from price_analyzer.services.model_gateway import ModelGateway

from fakes import price_answer


def _fake_send(self: ModelGateway, envelope: RequestEnvelope) -> str:
    """Answer every price request with 1000 RUB."""
    return price_answer(1000)


class TestCliRunner(unittest.IsolatedAsyncioTestCase):
    """Exit codes and output of the CLI entry points."""

    def setUp(self) -> None:
        """Valid key, temp dir and a stubbed gateway."""
        self.tmp_dir = Path(tempfile.mkdtemp())
        key_patch = patch.object(Settings, "OPENAI_API_KEY", "sk-test")
        key_patch.start()
        self.addCleanup(key_patch.stop)
        self.send_patch = patch.object(
            ModelGateway, "send", autospec=True, side_effect=_fake_send
        )
        self.mock_send = self.send_patch.start()
        self.addCleanup(self.send_patch.stop)

    async def _run(self, coro: Any) -> tuple[int, str]:
        out = io.StringIO()
        with redirect_stdout(out):
            code = await coro
        return code, out.getvalue()

    async def test_batch_demo_json(self) -> None:
        """Demo batch prints every product as JSON and exits 0."""
        code, out = await self._run(
            cli_batch(None, "competitor", "json", None, demo=True)
        )
        self.assertEqual(code, 0)
        data: list[dict[str, Any]] = json.loads(out)
        self.assertEqual(len(data), 4)
        self.assertTrue(all(d["competitorNewPrice"] == 1000 for d in data))
        self.assertEqual(self.mock_send.call_count, 4)

    async def test_batch_from_csv_writes_output(self) -> None:
        """Products are read from CSV and the result written back."""
        source = self.tmp_dir / "in.csv"
        source.write_text(
            "name,quantity,purchasePrice,salePrice\nWidget X,1,10,20\n",
            encoding="utf-8",
        )
        dest = self.tmp_dir / "out.csv"
        code, _ = await self._run(
            cli_batch(str(source), "used", "table", str(dest))
        )
        self.assertEqual(code, 0)
        self.assertIn("Widget X", dest.read_text(encoding="utf-8"))
        self.assertIn("1000", dest.read_text(encoding="utf-8"))

    async def test_batch_missing_file(self) -> None:
        """A missing products file exits 1 without requests."""
        code, _ = await self._run(
            cli_batch(str(self.tmp_dir / "nope.csv"), "competitor", "json", None)
        )
        self.assertEqual(code, 1)
        self.mock_send.assert_not_called()

    async def test_batch_without_key(self) -> None:
        """No configured key exits 1 before anything else."""
        with patch.object(Settings, "OPENAI_API_KEY", ""):
            code, _ = await self._run(
                cli_batch(None, "competitor", "json", None, demo=True)
            )
        self.assertEqual(code, 1)
        self.mock_send.assert_not_called()

    async def test_batch_custom_prompt(self) -> None:
        """--prompt-file replaces the competitor system prompt."""
        prompt = self.tmp_dir / "prompt.txt"
        prompt.write_text("Cheapest {PRODUCT_NAME}? JSON.", encoding="utf-8")
        await self._run(
            cli_batch(
                None, "competitor", "json", None,
                demo=True, prompt_file=str(prompt),
            )
        )
        envelope = self.mock_send.call_args.args[1]
        self.assertEqual(envelope.system_prompt, "Cheapest AirPods Pro 2? JSON.")

    async def test_command_with_hint(self) -> None:
        """A quoted hint limits the search to matching products."""
        code, out = await self._run(
            cli_command('avito "AirPods"', None, "json", None, demo=True)
        )
        self.assertEqual(code, 0)
        data = {d["name"]: d for d in json.loads(out)}
        self.assertEqual(data["AirPods Pro 2"]["competitorUsedPrice"], 1000)
        self.assertIsNone(data["MacBook Air M2"]["competitorUsedPrice"])

    async def test_command_unknown_product(self) -> None:
        """A hint that matches nothing exits 1."""
        code, _ = await self._run(
            cli_command('avito "Nokia"', None, "json", None, demo=True)
        )
        self.assertEqual(code, 1)

    async def test_connection_ok(self) -> None:
        """A working API exits 0."""
        self.mock_send.side_effect = lambda self, envelope: "OK"
        code, _ = await self._run(run_connection_check())
        self.assertEqual(code, 0)

    async def test_connection_down(self) -> None:
        """A transport failure exits 1."""
        self.mock_send.side_effect = TransportError("refused")
        code, _ = await self._run(run_connection_check())
        self.assertEqual(code, 1)

    async def test_unreadable_prompt_file(self) -> None:
        """A missing or empty prompt file exits 1 and closes the state."""
        empty = self.tmp_dir / "empty.txt"
        empty.write_text("   \n", encoding="utf-8")
        for prompt_file in (str(self.tmp_dir / "missing.txt"), str(empty)):
            with self.subTest(prompt_file=prompt_file):
                with patch.object(
                    AppState, "close", autospec=True
                ) as mock_close:
                    code, _ = await self._run(
                        cli_batch(
                            None, "competitor", "json", None,
                            demo=True, prompt_file=prompt_file,
                        )
                    )
                self.assertEqual(code, 1)
                mock_close.assert_called_once()
        self.mock_send.assert_not_called()

    async def test_early_exit_closes_state(self) -> None:
        """Every early return still closes the gateway."""
        with patch.object(AppState, "close", autospec=True) as mock_close:
            with patch.object(Settings, "OPENAI_API_KEY", ""):
                await self._run(
                    cli_batch(None, "competitor", "json", None, demo=True)
                )
                await self._run(
                    cli_command("avito", None, "json", None, demo=True)
                )
                await self._run(run_connection_check())
            await self._run(
                cli_batch(str(self.tmp_dir / "nope.csv"), "used", "json", None)
            )
        self.assertEqual(mock_close.call_count, 4)
