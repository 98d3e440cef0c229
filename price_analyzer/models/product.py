# price_analyzer/models/product.py

"""Product data model and the session's in-memory product collection."""

import itertools
import logging
import math
import time
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

logger = logging.getLogger("price_analyzer.products")

_id_counter = itertools.count(1)

PRICE_FIELDS: frozenset[str] = frozenset(
    {
        "purchase_price",
        "sale_price",
        "competitor_new_price",
        "competitor_used_price",
    }
)

# Wire/UI names for the fields an edit command may change
EDITABLE_FIELDS: dict[str, str] = {
    "name": "name",
    "description": "description",
    "quantity": "quantity",
    "purchasePrice": "purchase_price",
    "salePrice": "sale_price",
}


def generate_product_id() -> str:
    """Return a unique id: epoch milliseconds plus a process-wide counter."""
    return f"{int(time.time() * 1000)}-{next(_id_counter)}"


def _check_price(name: str, value: Any, optional: bool) -> None:
    """Raise ValueError unless *value* is a finite non-negative number."""
    if value is None and optional:
        return
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        msg = f"{name} must be a number, got {value!r}"
        raise ValueError(msg)
    if not math.isfinite(value) or value < 0:
        msg = f"{name} must be a finite non-negative number, got {value!r}"
        raise ValueError(msg)


@dataclass
class Product:
    """A single row of the product table.

    ``id`` is fixed once assigned and price fields only ever hold a
    finite non-negative number (or ``None`` for the competitor prices).
    """

    name: str
    description: str = ""
    quantity: int = 0
    purchase_price: float = 0.0
    sale_price: float = 0.0
    competitor_new_price: float | None = None
    competitor_used_price: float | None = None
    last_updated: datetime | None = None
    id: str = field(default_factory=generate_product_id)

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "id" and "id" in self.__dict__:
            msg = "Product id cannot change after creation"
            raise AttributeError(msg)
        if name == "name" and (
            not isinstance(value, str) or not value.strip()
        ):
            msg = "Product name must be a non-empty string"
            raise ValueError(msg)
        if name == "quantity" and (
            isinstance(value, bool)
            or not isinstance(value, int)
            or value < 0
        ):
            msg = f"quantity must be an integer >= 0, got {value!r}"
            raise ValueError(msg)
        if name in PRICE_FIELDS:
            _check_price(
                name,
                value,
                optional=name.startswith("competitor_"),
            )
        super().__setattr__(name, value)

    def touch(self) -> None:
        """Stamp ``last_updated`` with the current time."""
        self.last_updated = datetime.now()

    def set_field(self, attr: str, value: Any) -> None:
        """Assign a field and stamp ``last_updated``."""
        setattr(self, attr, value)
        self.touch()

    def editable_snapshot(self) -> dict[str, Any]:
        """Compact view of the fields an edit command may target."""
        return {
            "name": self.name,
            "description": self.description,
            "quantity": self.quantity,
            "purchasePrice": self.purchase_price,
            "salePrice": self.sale_price,
        }

    def to_record(self) -> dict[str, Any]:
        """Flat record using the import/export column names."""
        return {
            "id": self.id,
            **self.editable_snapshot(),
            "competitorNewPrice": self.competitor_new_price,
            "competitorUsedPrice": self.competitor_used_price,
            "lastUpdated": (
                self.last_updated.isoformat()
                if self.last_updated
                else None
            ),
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Product":
        """Build a Product from a record with the export column names.

        Missing optional columns fall back to their defaults; a fresh id
        is always assigned.
        """
        last_updated = record.get("lastUpdated")
        return cls(
            name=str(record.get("name", "")).strip(),
            description=str(record.get("description") or ""),
            quantity=int(float(record.get("quantity") or 0)),
            purchase_price=float(record.get("purchasePrice") or 0),
            sale_price=float(record.get("salePrice") or 0),
            competitor_new_price=_optional_float(
                record.get("competitorNewPrice")
            ),
            competitor_used_price=_optional_float(
                record.get("competitorUsedPrice")
            ),
            last_updated=(
                datetime.fromisoformat(str(last_updated))
                if last_updated
                else None
            ),
        )


def _optional_float(value: Any) -> float | None:
    """Convert a possibly-empty cell to float or ``None``."""
    if value is None or value == "":
        return None
    return float(value)


class ProductCollection:
    """Ordered, id-indexed product table owned by the application state.

    Also tracks which rows are selected for batch operations.
    """

    def __init__(self, products: Iterable[Product] = ()) -> None:
        self._products: dict[str, Product] = {}
        self.selected: set[str] = set()
        for product in products:
            self.add(product)

    def __len__(self) -> int:
        return len(self._products)

    def __iter__(self) -> Iterator[Product]:
        return iter(list(self._products.values()))

    def __contains__(self, product_id: object) -> bool:
        return product_id in self._products

    def add(self, product: Product) -> Product:
        """Append a product; duplicate ids are rejected."""
        if product.id in self._products:
            msg = f"Duplicate product id {product.id}"
            raise ValueError(msg)
        if product.last_updated is None:
            product.touch()
        self._products[product.id] = product
        logger.debug("Added product %s (%s)", product.id, product.name)
        return product

    def extend(self, products: Iterable[Product]) -> int:
        """Add several products and return how many were added."""
        count = 0
        for product in products:
            self.add(product)
            count += 1
        return count

    def get(self, product_id: str) -> Product | None:
        """Return the product with *product_id*, if present."""
        return self._products.get(product_id)

    def remove(self, product_id: str) -> Product | None:
        """Remove a product (and its selection) by id."""
        self.selected.discard(product_id)
        return self._products.pop(product_id, None)

    def remove_selected(self) -> int:
        """Delete every selected product; return the count removed."""
        ids = [pid for pid in self._products if pid in self.selected]
        for pid in ids:
            self.remove(pid)
        return len(ids)

    def ids(self) -> list[str]:
        """All product ids in insertion order."""
        return list(self._products)

    # ── Selection ─────────────────────────────────────

    def select(self, product_id: str) -> None:
        if product_id in self._products:
            self.selected.add(product_id)

    def deselect(self, product_id: str) -> None:
        self.selected.discard(product_id)

    def toggle(self, product_id: str) -> bool:
        """Flip selection for one row; return the new state."""
        if product_id in self.selected:
            self.selected.discard(product_id)
            return False
        self.select(product_id)
        return product_id in self.selected

    def select_all(self) -> None:
        self.selected = set(self._products)

    def clear_selection(self) -> None:
        self.selected.clear()

    def selected_ids(self) -> list[str]:
        """Selected ids in table order."""
        return [pid for pid in self._products if pid in self.selected]

    # ── Lookup ────────────────────────────────────────

    def filter(self, text: str) -> list[Product]:
        """Products whose name or description contains *text*."""
        needle = text.strip().lower()
        if not needle:
            return list(self._products.values())
        return [
            p
            for p in self._products.values()
            if needle in p.name.lower()
            or needle in p.description.lower()
        ]

    def find_by_name(self, name_hint: str) -> Product | None:
        """First product whose name matches *name_hint* case-insensitively.

        An exact name match wins; otherwise the hint may be a substring
        of the product name or the product name a substring of the hint.
        """
        needle = name_hint.strip().lower()
        if not needle:
            return None
        products = list(self._products.values())
        for p in products:
            if p.name.lower() == needle:
                return p
        for p in products:
            if needle in p.name.lower():
                return p
        for p in products:
            if p.name.lower() in needle:
                return p
        return None

    def snapshot(self) -> list[dict[str, Any]]:
        """Compact name + editable-field view for edit prompts."""
        return [p.editable_snapshot() for p in self._products.values()]


def format_price(value: float | None, currency: str = "RUB") -> str:
    """Display form of a price; ``—`` when absent."""
    if value is None:
        return "—"
    return f"{value:,.0f} {currency}".replace(",", " ")
