# Overview: Tagged update commands accepted by the ledger engine.

"""
Explicit commands, one per stock operation.

Each command carries only the fields its operation needs and validates them
itself; `ledger_service.apply_command()` dispatches on the command type.
Callers never pass partial dicts of stock fields.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from ..errors import ValidationError
from ..validation import coerce_int, require_positive_quantity, require_text, MAX_QUANTITY


def _validate_key(store_id, product_sku) -> tuple[int, str]:
    store_id = coerce_int("store_id", store_id)
    if store_id <= 0:
        raise ValidationError("store_id must be > 0")
    return store_id, require_text("product_sku", product_sku, max_length=64)


@dataclass(frozen=True)
class ReserveCommand:
    store_id: int
    product_sku: str
    quantity: int
    notes: str | None = None

    def validate(self) -> "ReserveCommand":
        store_id, sku = _validate_key(self.store_id, self.product_sku)
        return ReserveCommand(store_id, sku, require_positive_quantity("quantity", self.quantity), self.notes)


@dataclass(frozen=True)
class ReleaseCommand:
    store_id: int
    product_sku: str
    quantity: int
    notes: str | None = None

    def validate(self) -> "ReleaseCommand":
        store_id, sku = _validate_key(self.store_id, self.product_sku)
        return ReleaseCommand(store_id, sku, require_positive_quantity("quantity", self.quantity), self.notes)


@dataclass(frozen=True)
class AdjustCommand:
    store_id: int
    product_sku: str
    delta: int
    reason: str

    def validate(self) -> "AdjustCommand":
        store_id, sku = _validate_key(self.store_id, self.product_sku)
        delta = coerce_int("delta", self.delta)
        if delta == 0:
            raise ValidationError("delta must be non-zero")
        if abs(delta) > MAX_QUANTITY:
            raise ValidationError(f"delta cannot exceed {MAX_QUANTITY} units")
        return AdjustCommand(store_id, sku, delta, require_text("reason", self.reason))


StockCommand = Union[ReserveCommand, ReleaseCommand, AdjustCommand]
