# price_analyzer/cli/runner.py

"""Headless CLI: batch price searches, single commands, connection test."""

import json
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.progress import Progress
from rich.table import Table

from price_analyzer.models.product import Product, format_price
from price_analyzer.models.search_result import (
    NotFound,
    SearchResult,
    Success,
)
from price_analyzer.services.app_state import AppState
from price_analyzer.services.batch_runner import BatchSummary
from price_analyzer.services.errors import (
    ConfigurationError,
    PriceAnalyzerError,
)
from price_analyzer.services.model_gateway import validate_api_key
from price_analyzer.storage.file_manager import FileManager

logger = logging.getLogger("price_analyzer.cli")

# Stderr console for status messages so stdout stays clean for JSON
_err = Console(stderr=True)


def _load_products(
    state: AppState,
    products_csv: str | None,
    demo: bool,
) -> bool:
    """Fill *state* from a CSV and/or the demo set; False if empty."""
    if products_csv:
        path = Path(products_csv)
        if not path.exists():
            _err.print(f"[red]Products file not found: {path}[/red]")
            return False
        products, skipped = FileManager().load_products_csv(path)
        state.products.extend(products)
        state.oplog.record(
            "PRODUCTS",
            f"Imported {len(products)} products from {path.name}",
        )
        if skipped:
            _err.print(f"[yellow]Skipped {skipped} invalid row(s)[/yellow]")
    if demo:
        state.load_demo_products()
    if not len(state.products):
        _err.print("[yellow]No products loaded.[/yellow]")
        return False
    return True


def _require_key(state: AppState) -> bool:
    """Validate the configured key before anything hits the network."""
    try:
        validate_api_key(state.api_key)
    except ConfigurationError as exc:
        _err.print(f"[red]{exc}[/red]")
        _err.print("[dim]Set OPENAI_API_KEY in the environment or .env[/dim]")
        return False
    return True


def _products_to_dicts(products: list[Product]) -> list[dict[str, object]]:
    return [p.to_record() for p in products]


def _print_table(products: list[Product]) -> None:
    """Render a Rich table of products to stdout."""
    table = Table(
        title="Products",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("#", style="dim", width=4)
    table.add_column("Name", max_width=40)
    table.add_column("Qty", justify="right")
    table.add_column("Purchase", justify="right")
    table.add_column("Sale", justify="right")
    table.add_column("Competitor (new)", justify="right", style="green")
    table.add_column("Used", justify="right", style="magenta")
    table.add_column("Updated", style="dim")

    for idx, p in enumerate(products, 1):
        table.add_row(
            str(idx),
            p.name[:40],
            str(p.quantity),
            format_price(p.purchase_price),
            format_price(p.sale_price),
            format_price(p.competitor_new_price),
            format_price(p.competitor_used_price),
            p.last_updated.strftime("%d.%m.%Y %H:%M")
            if p.last_updated
            else "—",
        )

    Console().print(table)


def _print_result(product: Product, result: SearchResult, message: str) -> None:
    if isinstance(result, Success):
        _err.print(f"[green]✓ {message}[/green]")
    elif isinstance(result, NotFound):
        _err.print(f"[yellow]∅ {message}[/yellow]")
    else:
        _err.print(f"[red]✗ {message}[/red]")


def _write_output(
    state: AppState, output_format: str, output: str | None,
) -> None:
    products = list(state.products)
    if output:
        path = FileManager().export_products_csv(products, Path(output))
        _err.print(f"[dim]Saved → {path}[/dim]")
    if output_format == "table":
        _print_table(products)
    else:
        json.dump(
            _products_to_dicts(products),
            sys.stdout,
            ensure_ascii=False,
            indent=2,
        )
        sys.stdout.write("\n")


def _apply_prompt_file(state: AppState, prompt_file: str) -> bool:
    """Install the competitor prompt from *prompt_file*; False on error."""
    try:
        state.set_custom_prompt(
            Path(prompt_file).read_text(encoding="utf-8")
        )
    except (OSError, ValueError) as exc:
        _err.print(f"[red]Cannot use prompt file {prompt_file}: {exc}[/red]")
        return False
    return True


async def _run_batch(state: AppState, kind: str) -> BatchSummary:
    ids = state.products.ids()
    _err.print(
        f"[bold]{kind} price search[/bold] for {len(ids)} product(s)  "
        f"[dim]model={state.model}[/dim]"
    )

    with Progress(console=_err) as progress:
        task = progress.add_task("Searching...", total=len(ids))

        def on_progress(index: int, total: int, name: str) -> None:
            progress.update(
                task,
                completed=index,
                description=f"[{index + 1}/{total}] {name[:30]}",
            )

        def on_result(
            product: Product, result: SearchResult, message: str,
        ) -> None:
            progress.advance(task)
            _print_result(product, result, message)

        return await state.runner.run(
            ids, kind, on_progress=on_progress, on_result=on_result,
        )


async def cli_batch(
    products_csv: str | None,
    kind: str,
    output_format: str,
    output: str | None,
    demo: bool = False,
    prompt_file: str | None = None,
) -> int:
    """Search prices for every loaded product; exit code 0=ok, 1=fail."""
    state = AppState()
    try:
        if not _require_key(state):
            return 1
        if not _load_products(state, products_csv, demo):
            return 1
        if prompt_file and not _apply_prompt_file(state, prompt_file):
            return 1

        summary = await _run_batch(state, kind)
        if summary.fatal_error:
            _err.print(f"[red]Stopped: {summary.fatal_error}[/red]")
        _err.print(
            f"[bold]{summary.success_count} found, "
            f"{summary.failure_count} failed[/bold]"
        )
        _write_output(state, output_format, output)
    finally:
        state.close()
    return 0 if summary.success_count and not summary.fatal_error else 1


async def cli_command(
    command: str,
    products_csv: str | None,
    output_format: str,
    output: str | None,
    demo: bool = False,
) -> int:
    """Run one free-text command over the loaded products.

    With no quoted product name, search commands apply to every
    loaded product.
    """
    state = AppState()
    try:
        if not _require_key(state):
            return 1
        if not _load_products(state, products_csv, demo):
            return 1
        state.products.select_all()

        try:
            outcome = await state.interpreter.execute(
                command, on_result=_print_result,
            )
        except PriceAnalyzerError as exc:
            logger.error("Command failed: %s", exc)
            _err.print(f"[red]{exc}[/red]")
            return 1

        _err.print(f"[bold]{outcome.message}[/bold]")
        _write_output(state, output_format, output)
    finally:
        state.close()
    return 0


async def run_connection_check() -> int:
    """Probe the model API with the configured key."""
    state = AppState()
    try:
        if not _require_key(state):
            return 1
        _err.print("[bold]Testing model API connection...[/bold]")
        result = await state.test_connection()
    except PriceAnalyzerError as exc:
        _err.print(f"[red]❌ {exc}[/red]")
        return 1
    finally:
        state.close()

    if result.status == "ok":
        status = "[green]✅ OK[/green]"
    elif result.status == "slow":
        status = "[yellow]⚠️  SLOW[/yellow]"
    else:
        status = "[red]❌ DOWN[/red]"
    _err.print(
        f"{status} {result.latency_ms:.0f}ms [dim]{result.message}[/dim]"
    )
    return 1 if result.status == "down" else 0
