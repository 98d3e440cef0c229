# price_analyzer/ui/app.py

"""Terminal UI for the AI price analyzer."""

import logging
from typing import cast

from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal
from textual.widgets import (
    Button,
    DataTable,
    Footer,
    Header,
    Input,
    Static,
)

from price_analyzer.models.product import Product, format_price
from price_analyzer.models.search_result import (
    NotFound,
    SearchResult,
    Success,
)
from price_analyzer.services.app_state import AppState
from price_analyzer.services.errors import (
    BatchInProgressError,
    PriceAnalyzerError,
)
from price_analyzer.storage.file_manager import FileManager

logger = logging.getLogger("price_analyzer.ui")

# Number of operation-log lines shown under the table
_LOG_LINES = 6


class PriceAnalyzerApp(App[object]):
    """Product table, free-text commands and batch price searches."""

    CSS_PATH = "styles.css"

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("e", "export", "Export CSV"),
        Binding("l", "export_log", "Export Log"),
        Binding("a", "select_all", "Select All"),
        Binding("n", "clear_selection", "Select None"),
        Binding("x", "delete_selected", "Delete"),
        Binding("y", "copy_table", "Copy"),
    ]

    def __init__(self, state: AppState | None = None) -> None:
        super().__init__()
        self.app_state = state or AppState()
        self.file_manager = FileManager()
        self.filter_text: str = ""

    def compose(self) -> ComposeResult:
        """Build the widget tree for the TUI."""
        yield Header()
        yield Container(
            Static(
                f"🤖 AI Price Analyzer ({self.app_state.model})", id="title"
            ),

            # API key
            Horizontal(
                Input(
                    placeholder="OpenAI API key (sk-...)",
                    password=True,
                    id="api_key_input",
                ),
                Button("Save key", id="save_key_btn"),
                id="key_bar",
            ),

            # Command bar
            Horizontal(
                Input(
                    placeholder=(
                        'Command, e.g. find competitor price for "iPhone"'
                    ),
                    id="command_input",
                ),
                Button("Run", variant="primary", id="run_btn"),
                id="command_bar",
            ),

            Horizontal(
                Button("Competitor", variant="success", id="competitor_btn"),
                Button("Used (Avito)", id="used_btn"),
                Button("Update all", id="update_all_btn"),
                Button("Cancel", variant="error", id="cancel_btn"),
                Button("Demo data", id="demo_btn"),
                Button("Test API", id="test_btn"),
                id="action_bar",
            ),

            Input(placeholder="Filter products...", id="filter_input"),
            Static("Ready", id="status"),
            cast(
                DataTable[str | Text],
                DataTable(
                    id="products_table",
                    zebra_stripes=True,
                    cursor_type="row",
                ),
            ),
            Static("", id="log_view"),
            id="main_container",
        )
        yield Footer()

    def on_mount(self) -> None:
        """Configure the product table columns on startup."""
        table = self._table()
        table.add_columns(
            "✓",
            "Name",
            "Qty",
            "Purchase",
            "Sale",
            "Competitor",
            "Used",
            "Updated",
        )
        self.populate_table()
        if not self.app_state.is_configured:
            self.notify(
                "Set an OpenAI API key to enable price searches",
                severity="warning",
            )

    # ── Helpers ───────────────────────────────────────

    def _table(self) -> DataTable[str | Text]:
        return cast(
            DataTable[str | Text],
            self.query_one("#products_table", DataTable),
        )

    def _set_status(self, message: str) -> None:
        self.query_one("#status", Static).update(message)

    def _visible_products(self) -> list[Product]:
        return self.app_state.products.filter(self.filter_text)

    def populate_table(self) -> None:
        """Fill the DataTable with the (filtered) product collection."""
        table = self._table()
        table.clear()
        selected = self.app_state.products.selected
        for p in self._visible_products():
            table.add_row(
                "●" if p.id in selected else "",
                p.name[:50],
                str(p.quantity),
                format_price(p.purchase_price),
                format_price(p.sale_price),
                Text(
                    format_price(p.competitor_new_price),
                    style="bold green" if p.competitor_new_price else "",
                ),
                Text(
                    format_price(p.competitor_used_price),
                    style="magenta" if p.competitor_used_price else "",
                ),
                p.last_updated.strftime("%d.%m %H:%M")
                if p.last_updated
                else "—",
                key=p.id,
            )
        self.refresh_log()

    def refresh_log(self) -> None:
        """Show the newest operation-log lines."""
        lines = [
            f"{e.timestamp[11:19]} [{e.category}] {e.message}"
            for e in self.app_state.oplog.entries[:_LOG_LINES]
        ]
        self.query_one("#log_view", Static).update("\n".join(lines))

    # ── Events ────────────────────────────────────────

    async def on_button_pressed(self, event: Button.Pressed) -> None:
        """Handle button click events."""
        button_id = event.button.id
        if button_id == "run_btn":
            self.submit_command()
        elif button_id == "competitor_btn":
            self.start_batch("competitor")
        elif button_id == "used_btn":
            self.start_batch("used")
        elif button_id == "update_all_btn":
            self.start_batch("competitor", self.app_state.products.ids())
        elif button_id == "cancel_btn":
            self.action_cancel()
        elif button_id == "demo_btn":
            self.action_demo()
        elif button_id == "test_btn":
            self.run_worker(self._test_connection(), group="api")
        elif button_id == "save_key_btn":
            self.save_api_key()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        """Handle Enter in the command and key inputs."""
        if event.input.id == "command_input":
            self.submit_command()
        elif event.input.id == "api_key_input":
            self.save_api_key()

    def on_input_changed(self, event: Input.Changed) -> None:
        """Re-filter the table as the filter text changes."""
        if event.input.id == "filter_input":
            self.filter_text = event.value
            self.populate_table()

    def on_data_table_row_selected(
        self, event: DataTable.RowSelected
    ) -> None:
        """Toggle selection of the chosen product."""
        product_id = event.row_key.value
        if product_id is None:
            return
        self.app_state.products.toggle(product_id)
        self.populate_table()

    # ── Commands and batches ──────────────────────────

    def save_api_key(self) -> None:
        key_input = self.query_one("#api_key_input", Input)
        try:
            self.app_state.configure(key_input.value)
        except PriceAnalyzerError as exc:
            self.notify(str(exc), severity="error")
            return
        key_input.value = ""
        self.notify("API key saved")
        self.refresh_log()

    def submit_command(self) -> None:
        command_input = self.query_one("#command_input", Input)
        text = command_input.value.strip()
        if not text:
            self.notify("Please enter a command", severity="warning")
            return
        command_input.value = ""
        self.run_worker(self._run_command(text), group="command")

    def start_batch(
        self, kind: str, product_ids: list[str] | None = None,
    ) -> None:
        """Start a batch over *product_ids* (default: the selection)."""
        if self.app_state.runner.is_running:
            self.notify("A price search is already running", severity="warning")
            return
        ids = (
            product_ids
            if product_ids is not None
            else self.app_state.products.selected_ids()
        )
        if not ids:
            self.notify("Select products to search first", severity="warning")
            return
        self.run_worker(self._run_batch(ids, kind), group="batch")

    def _on_progress(self, index: int, total: int, name: str) -> None:
        self._set_status(f"🔍 [{index + 1}/{total}] {name}")

    def _on_result(
        self, product: Product, result: SearchResult, message: str,
    ) -> None:
        if isinstance(result, Success):
            severity = "information"
        elif isinstance(result, NotFound):
            severity = "warning"
        else:
            severity = "error"
        self.notify(message, severity=severity)
        self.populate_table()

    async def _run_batch(self, ids: list[str], kind: str) -> None:
        try:
            summary = await self.app_state.runner.run(
                ids, kind, self._on_progress, self._on_result,
            )
        except BatchInProgressError as exc:
            self.notify(str(exc), severity="warning")
            return

        status = (
            f"✅ {kind}: {summary.success_count} found, "
            f"{summary.failure_count} failed"
        )
        if summary.cancelled:
            status += " (cancelled)"
        if summary.fatal_error:
            status = f"❌ {summary.fatal_error}"
            self.notify(summary.fatal_error, severity="error")
        self._set_status(status)
        self.populate_table()

    async def _run_command(self, text: str) -> None:
        self._set_status(f"⚙️ {text}")
        try:
            outcome = await self.app_state.interpreter.execute(
                text, self._on_progress, self._on_result,
            )
        except BatchInProgressError as exc:
            self.notify(str(exc), severity="warning")
            self._set_status("Ready")
            return
        except PriceAnalyzerError as exc:
            logger.error("Command failed: %s", exc)
            self.notify(str(exc), severity="error")
            self._set_status(f"❌ {exc}")
            self.refresh_log()
            return
        self.notify(outcome.message)
        self._set_status(outcome.message)
        self.populate_table()

    async def _test_connection(self) -> None:
        self._set_status("🔌 Testing API connection...")
        try:
            result = await self.app_state.test_connection()
        except PriceAnalyzerError as exc:
            self.notify(str(exc), severity="error")
            self._set_status(f"❌ {exc}")
            self.refresh_log()
            return
        severity = "information" if result.status == "ok" else "warning"
        if result.status == "down":
            severity = "error"
        message = f"API {result.status} ({result.latency_ms:.0f}ms)"
        self.notify(message, severity=severity)
        self._set_status(message)
        self.refresh_log()

    # ── Actions ───────────────────────────────────────

    def action_cancel(self) -> None:
        """Stop the running batch after the current product."""
        if self.app_state.runner.cancel():
            self.notify("Cancelling after the current product...")
        else:
            self.notify("Nothing to cancel", severity="warning")

    def action_demo(self) -> None:
        """Add the demo products."""
        added = self.app_state.load_demo_products()
        self.notify(f"Added {added} demo products")
        self.populate_table()

    def action_select_all(self) -> None:
        self.app_state.products.select_all()
        self.populate_table()

    def action_clear_selection(self) -> None:
        self.app_state.products.clear_selection()
        self.populate_table()

    def action_delete_selected(self) -> None:
        """Remove every selected product."""
        if self.app_state.runner.is_running:
            self.notify(
                "Cannot delete while a search is running",
                severity="warning",
            )
            return
        removed = self.app_state.products.remove_selected()
        if not removed:
            self.notify("No products selected", severity="warning")
            return
        self.app_state.oplog.record("PRODUCTS", f"Deleted {removed} product(s)")
        self.notify(f"Deleted {removed} product(s)")
        self.populate_table()

    def action_export(self) -> None:
        """Export the product table to a CSV file."""
        products = list(self.app_state.products)
        if not products:
            self.notify("No products to export", severity="warning")
            return
        try:
            path = self.file_manager.export_products_csv(products)
            self.notify(f"Exported to {path}")
        except OSError as e:
            logger.error("Failed to export products", exc_info=True)
            self.notify(f"Export failed: {e}", severity="error")

    def action_export_log(self) -> None:
        """Export the operation log to a JSON file."""
        try:
            path = self.file_manager.export_log(self.app_state.oplog)
            self.notify(f"Log exported to {path}")
        except OSError as e:
            logger.error("Failed to export log", exc_info=True)
            self.notify(f"Log export failed: {e}", severity="error")

    def action_copy_table(self) -> None:
        """Copy the product table to the clipboard as TSV."""
        self.copy_to_clipboard(
            self.file_manager.format_tsv(list(self.app_state.products))
        )
        self.notify("Table copied")

    def on_unmount(self) -> None:
        self.app_state.close()
