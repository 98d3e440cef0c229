# price_analyzer/agents/edit_agent.py

"""Agent turning a free-text edit command into a field mutation proposal."""

import asyncio
import json
import logging
import math
from dataclasses import dataclass
from typing import Any

from price_analyzer.config.settings import Settings
from price_analyzer.models.envelope import RequestEnvelope
from price_analyzer.models.product import EDITABLE_FIELDS
from price_analyzer.parsing.response_parser import extract_json
from price_analyzer.services.errors import InvalidEditError
from price_analyzer.services.model_gateway import ModelGateway

logger = logging.getLogger("price_analyzer.agents.edit")

_SYSTEM_PROMPT = """ROLE: Assistant that edits a product table on the user's command.

You receive the user's command and the current products (name and editable fields).
Decide which ONE product the command refers to and which field to change.

Editable fields: name, description, quantity, purchasePrice, salePrice.
- quantity is a whole number >= 0
- purchasePrice and salePrice are numbers >= 0
- name must not be empty

STRICT RESPONSE FORMAT (JSON ONLY):
{
  "success": true,
  "productName": "exact name of the product from the list",
  "field": "salePrice",
  "value": 99990
}

IF THE COMMAND CANNOT BE APPLIED:
{
  "success": false,
  "message": "why the command cannot be applied"
}"""


@dataclass(frozen=True)
class EditProposal:
    """A field change the model suggested, not yet resolved or applied."""

    product_name: str
    field: str
    value: Any


def coerce_value(field: str, value: Any) -> Any:
    """Convert a proposed value to the type the product field expects.

    Raises:
        InvalidEditError: unknown field or a value that does not fit.
    """
    if field not in EDITABLE_FIELDS:
        msg = f"Field '{field}' cannot be edited"
        raise InvalidEditError(msg)

    if field in ("name", "description"):
        if value is None:
            value = ""
        text = str(value).strip()
        if field == "name" and not text:
            msg = "Product name cannot be empty"
            raise InvalidEditError(msg)
        return text

    if isinstance(value, bool):
        msg = f"{field} needs a number, got {value!r}"
        raise InvalidEditError(msg)
    try:
        number = float(
            str(value).replace(" ", "").replace(",", ".")
            if isinstance(value, str)
            else value
        )
    except (TypeError, ValueError, OverflowError) as exc:
        msg = f"{field} needs a number, got {value!r}"
        raise InvalidEditError(msg) from exc
    if not math.isfinite(number) or number < 0:
        msg = f"{field} must be a non-negative number, got {value!r}"
        raise InvalidEditError(msg)

    if field == "quantity":
        if not number.is_integer():
            msg = f"quantity must be a whole number, got {value!r}"
            raise InvalidEditError(msg)
        return int(number)
    return number


class EditCommandAgent:
    """Asks the model which product field an edit command targets."""

    def __init__(
        self,
        gateway: ModelGateway,
        model: str | None = None,
    ) -> None:
        self.gateway = gateway
        self.model = model or Settings.DEFAULT_MODEL

    def build_envelope(
        self, command: str, snapshot: list[dict[str, Any]],
    ) -> RequestEnvelope:
        products_json = json.dumps(snapshot, ensure_ascii=False, indent=2)
        return RequestEnvelope(
            system_prompt=_SYSTEM_PROMPT,
            user_prompt=(
                f"Command: {command}\n\nCurrent products:\n{products_json}"
            ),
            model=self.model,
            temperature=Settings.TEMPERATURE,
            max_tokens=Settings.MAX_TOKENS,
        )

    async def propose(
        self, command: str, snapshot: list[dict[str, Any]],
    ) -> EditProposal:
        """Return the model's proposal for *command*.

        Raises:
            InvalidEditError: the answer is unreadable, incomplete, or
                the model declined the command.
        """
        envelope = self.build_envelope(command, snapshot)
        raw_text: str = await asyncio.to_thread(
            self.gateway.send, envelope
        )
        data = extract_json(raw_text)
        if data is None:
            logger.warning("Unreadable edit answer: %.200s", raw_text)
            msg = "Model answer contains no usable JSON"
            raise InvalidEditError(msg)
        if data.get("success") is False:
            msg = str(data.get("message") or "Model declined the command")
            raise InvalidEditError(msg)

        product_name = data.get("productName")
        field = data.get("field")
        if not isinstance(product_name, str) or not product_name.strip():
            msg = "Model answer names no product"
            raise InvalidEditError(msg)
        if not isinstance(field, str) or field not in EDITABLE_FIELDS:
            msg = f"Model proposed an unknown field: {field!r}"
            raise InvalidEditError(msg)
        if "value" not in data:
            msg = "Model answer has no value"
            raise InvalidEditError(msg)

        proposal = EditProposal(
            product_name=product_name.strip(),
            field=field,
            value=data["value"],
        )
        logger.info(
            "Edit proposal: %s.%s = %r",
            proposal.product_name,
            proposal.field,
            proposal.value,
        )
        return proposal
