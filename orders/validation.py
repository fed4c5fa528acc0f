"""
Validation of order drafts prior to estimation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Sequence, Set

from orders.schemas import (
    ORDER_SIDES,
    ORDER_TYPES,
    TIME_IN_FORCE_VALUES,
    OrderDraft,
    ValidatedOrder,
)


class ValidationError(ValueError):
    """A single field-specific problem with a draft."""

    def __init__(self, field: str, reason: str) -> None:
        super().__init__(f"{field}: {reason}")
        self.field = field
        self.reason = reason


class DraftValidationError(ValueError):
    """Raised when a draft fails validation; carries every violation found."""

    def __init__(self, violations: Sequence[ValidationError]) -> None:
        super().__init__("; ".join(str(item) for item in violations))
        self.violations = list(violations)

    @property
    def fields(self) -> List[str]:
        return [item.field for item in self.violations]


@dataclass(slots=True)
class DraftValidator:
    """
    Syntactic checks on a draft. Passing drafts are converted into a
    ``ValidatedOrder`` whose quantity sign encodes the side.
    """

    allowed_sides: Set[str] = field(default_factory=lambda: set(ORDER_SIDES))
    allowed_types: Set[str] = field(default_factory=lambda: set(ORDER_TYPES))
    allowed_time_in_force: Set[str] = field(default_factory=lambda: set(TIME_IN_FORCE_VALUES))

    def validate(self, draft: OrderDraft) -> ValidatedOrder:
        violations: List[ValidationError] = []

        if draft.contract is None:
            violations.append(ValidationError("contract", f"Contract '{draft.contract_ref}' is not resolved."))

        if draft.side not in self.allowed_sides:
            violations.append(ValidationError("side", "Order side must be 'buy' or 'sell'."))

        quantities = draft.quantities()
        if not quantities:
            violations.append(ValidationError("quantity", "Quantity is required."))
        elif len(quantities) > 1:
            units = ", ".join(sorted(quantities))
            violations.append(ValidationError("quantity", f"Quantity must use exactly one unit, got {units}."))
        else:
            (magnitude,) = quantities.values()
            if not magnitude.is_finite() or magnitude <= 0:
                violations.append(ValidationError("quantity", "Quantity must be greater than zero."))

        if draft.order_type not in self.allowed_types:
            violations.append(
                ValidationError(
                    "order_type",
                    f"Unsupported order type '{draft.order_type}'. Allowed: {sorted(self.allowed_types)}.",
                )
            )
        elif draft.order_type == "limit" and not _positive(draft.limit_price):
            violations.append(ValidationError("limit_price", "Limit order requires a positive limit price."))

        if draft.time_in_force not in self.allowed_time_in_force:
            violations.append(
                ValidationError(
                    "time_in_force",
                    f"Unsupported time in force '{draft.time_in_force}'. "
                    f"Allowed: {sorted(self.allowed_time_in_force)}.",
                )
            )

        if violations:
            raise DraftValidationError(violations)

        ((unit, magnitude),) = quantities.items()
        signed = magnitude if draft.side == "buy" else -magnitude
        return ValidatedOrder(
            contract=draft.contract,
            order_type=draft.order_type,
            time_in_force=draft.time_in_force,
            reduce_only=bool(draft.reduce_only),
            quantity_unit=unit,
            quantity=signed,
            limit_price=draft.limit_price if draft.order_type == "limit" else None,
        )


def validate_draft(draft: OrderDraft, validator: DraftValidator | None = None) -> ValidatedOrder:
    """Validate with the given (or default) validator; raises DraftValidationError."""
    return (validator or DraftValidator()).validate(draft)


def _positive(value: Decimal | None) -> bool:
    return value is not None and value.is_finite() and value > 0
