# price_analyzer/services/command_interpreter.py

"""Keyword classification and dispatch of free-text user commands.

Typed commands and speech transcripts go through the same entry
point; the interpreter only ever sees plain text.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any

from price_analyzer.agents.edit_agent import (
    EditCommandAgent,
    coerce_value,
)
from price_analyzer.config.settings import Settings
from price_analyzer.models.product import (
    EDITABLE_FIELDS,
    Product,
    ProductCollection,
)
from price_analyzer.services.batch_runner import (
    BatchRunner,
    BatchSummary,
    ProgressCallback,
    ResultCallback,
)
from price_analyzer.services.errors import (
    InvalidEditError,
    ProductNotFound,
)
from price_analyzer.services.operation_log import OperationLog

logger = logging.getLogger("price_analyzer.commands")

_QUOTED_RE = re.compile(r"[\"«“]([^\"»”]+)[\"»”]")


# ── Intents ──────────────────────────────────────────


@dataclass(frozen=True)
class SearchCompetitor:
    product_name_hint: str | None = None


@dataclass(frozen=True)
class SearchUsed:
    product_name_hint: str | None = None


@dataclass(frozen=True)
class EditField:
    raw_command: str


@dataclass(frozen=True)
class Unknown:
    raw_command: str = ""


Intent = SearchCompetitor | SearchUsed | EditField | Unknown


@dataclass(frozen=True)
class ResolvedEdit:
    """An edit bound to a concrete product, with a coerced value."""

    product_id: str
    product_name: str
    field: str
    value: Any

    @property
    def attribute(self) -> str:
        return EDITABLE_FIELDS[self.field]


@dataclass
class CommandOutcome:
    """What executing one command did, for UI reporting."""

    intent: Intent
    message: str
    summary: BatchSummary | None = None
    edit: ResolvedEdit | None = None


def _extract_hint(text: str) -> str | None:
    """Quoted product name inside the command, if any."""
    match = _QUOTED_RE.search(text)
    if match and match.group(1).strip():
        return match.group(1).strip()
    return None


def _keyword_pattern(keyword: str) -> re.Pattern[str]:
    # Russian keywords are stems, so only their start is anchored
    if keyword.isascii():
        return re.compile(rf"(?<!\w){re.escape(keyword)}s?(?!\w)")
    return re.compile(rf"(?<!\w){re.escape(keyword)}")


def _contains_any(text: str, keywords: list[str]) -> bool:
    return any(_keyword_pattern(kw).search(text) for kw in keywords)


def classify(command_text: str) -> Intent:
    """Map a command to an Intent by ordered keyword matching.

    Keywords match whole words outside the quoted product name.  Edit
    verbs win over search keywords; a used-market keyword wins over a
    competitor keyword.
    """
    text = command_text.strip()
    lowered = _QUOTED_RE.sub(" ", text).lower()
    if not text:
        return Unknown(raw_command=text)
    if _contains_any(lowered, Settings.EDIT_KEYWORDS):
        return EditField(raw_command=text)
    if _contains_any(lowered, Settings.USED_KEYWORDS):
        return SearchUsed(product_name_hint=_extract_hint(text))
    if _contains_any(lowered, Settings.COMPETITOR_KEYWORDS):
        return SearchCompetitor(product_name_hint=_extract_hint(text))
    return Unknown(raw_command=text)


class CommandInterpreter:
    """Classifies commands and routes them to the batch runner or edit agent."""

    def __init__(
        self,
        products: ProductCollection,
        runner: BatchRunner,
        edit_agent: EditCommandAgent,
        oplog: OperationLog,
    ) -> None:
        self.products = products
        self.runner = runner
        self.edit_agent = edit_agent
        self.oplog = oplog

    def interpret(self, command_text: str) -> Intent:
        return classify(command_text)

    def search_targets(self, hint: str | None) -> list[str]:
        """Products a search command applies to.

        With a hint: every product whose name contains it.  Without:
        the current selection.

        Raises:
            ProductNotFound: a hint matched nothing.
        """
        if hint is None:
            return self.products.selected_ids()
        needle = hint.lower()
        ids = [
            p.id for p in self.products if needle in p.name.lower()
        ]
        if not ids:
            raise ProductNotFound(hint)
        return ids

    async def resolve_edit(self, intent: EditField) -> ResolvedEdit:
        """Ask the model for the change and bind it to a product.

        Raises:
            ProductNotFound: the proposed product is not in the table.
            InvalidEditError: unusable proposal or value.
            GatewayError: the model request itself failed.
        """
        proposal = await self.edit_agent.propose(
            intent.raw_command, self.products.snapshot()
        )
        product = self.products.find_by_name(proposal.product_name)
        if product is None:
            raise ProductNotFound(proposal.product_name)
        value = coerce_value(proposal.field, proposal.value)
        return ResolvedEdit(
            product_id=product.id,
            product_name=product.name,
            field=proposal.field,
            value=value,
        )

    def apply_edit(self, edit: ResolvedEdit) -> Product:
        """Assign the edit to its product and stamp ``last_updated``."""
        product = self.products.get(edit.product_id)
        if product is None:
            raise ProductNotFound(edit.product_name)
        try:
            product.set_field(edit.attribute, edit.value)
        except ValueError as exc:
            raise InvalidEditError(str(exc)) from exc
        self.oplog.record(
            "PRODUCTS",
            f"{edit.product_name}: {edit.field} set to {edit.value!r}",
            "success",
        )
        return product

    async def execute(
        self,
        command_text: str,
        on_progress: ProgressCallback | None = None,
        on_result: ResultCallback | None = None,
    ) -> CommandOutcome:
        """Classify and carry out *command_text*.

        ProductNotFound, InvalidEditError and fatal gateway errors from
        the edit path propagate after being logged; batch failures are
        reported in the outcome's summary.
        """
        intent = classify(command_text)
        self.oplog.record("COMMAND", f"Executing: \"{command_text}\"")

        if isinstance(intent, Unknown):
            message = (
                "Unknown command. Try: competitor price search, used "
                "(Avito) price search, or change/set a product field."
            )
            self.oplog.record("COMMAND", message, "warning")
            return CommandOutcome(intent=intent, message=message)

        if isinstance(intent, (SearchCompetitor, SearchUsed)):
            kind = "used" if isinstance(intent, SearchUsed) else "competitor"
            try:
                targets = self.search_targets(intent.product_name_hint)
            except ProductNotFound as exc:
                self.oplog.record("COMMAND", str(exc), "error")
                raise
            if not targets:
                message = "Select products to search first"
                self.oplog.record("COMMAND", message, "warning")
                return CommandOutcome(intent=intent, message=message)
            summary = await self.runner.run(
                targets, kind, on_progress, on_result,
            )
            message = (
                f"{kind} search: {summary.success_count} found, "
                f"{summary.failure_count} failed"
            )
            if summary.fatal_error:
                message += f" — stopped: {summary.fatal_error}"
            return CommandOutcome(
                intent=intent, message=message, summary=summary,
            )

        try:
            edit = await self.resolve_edit(intent)
            self.apply_edit(edit)
        except Exception as exc:
            self.oplog.record("COMMAND", f"Edit failed: {exc}", "error")
            raise
        message = f"{edit.product_name}: {edit.field} = {edit.value}"
        return CommandOutcome(intent=intent, message=message, edit=edit)
