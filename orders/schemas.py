"""
Dataclasses shared by the draft extractor and the order lifecycle.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Tuple

OrderSide = Literal["buy", "sell"]
OrderType = Literal["market", "limit"]
QuantityUnit = Literal["steps", "contracts", "assets"]

ORDER_SIDES = ("buy", "sell")
ORDER_TYPES = ("market", "limit")
TIME_IN_FORCE_VALUES = ("GTC", "IOC", "FOK", "PO")
QUANTITY_UNITS: Tuple[QuantityUnit, ...] = ("steps", "contracts", "assets")


class Provenance(str, Enum):
    """Where a draft field's value came from."""

    EXPLICIT = "explicit"
    INFERRED = "inferred"
    DEFAULT = "default"
    MISSING = "missing"


@dataclass(slots=True, frozen=True)
class Contract:
    """Futures contract as listed by the venue's contract directory."""

    contract_id: int
    symbol: str
    index: str = ""
    min_order_size: Decimal = Decimal("0")
    mark_price: Optional[Decimal] = None
    last_price: Optional[Decimal] = None
    price_tick: Optional[Decimal] = None
    volume_24h: Decimal = Decimal("0")

    @property
    def reference_price(self) -> Optional[Decimal]:
        for price in (self.mark_price, self.last_price):
            if price is not None and price > 0:
                return price
        return None


@dataclass(slots=True)
class OrderDraft:
    """
    Mutable, possibly incomplete order as extracted or entered.

    Quantity is held as an unsigned magnitude in at most one of the three
    unit fields; direction lives in ``side`` until validation folds it into
    the sign.
    """

    contract_ref: Optional[str] = None
    contract: Optional[Contract] = None
    side: Optional[OrderSide] = None
    order_type: str = "market"
    limit_price: Optional[Decimal] = None
    time_in_force: str = "GTC"
    reduce_only: bool = False
    quantity_steps: Optional[Decimal] = None
    quantity_contracts: Optional[Decimal] = None
    quantity_assets: Optional[Decimal] = None
    confidence: Dict[str, Provenance] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def quantities(self) -> Dict[QuantityUnit, Decimal]:
        """Return the populated quantity units."""
        populated: Dict[QuantityUnit, Decimal] = {}
        for unit in QUANTITY_UNITS:
            value = getattr(self, f"quantity_{unit}")
            if value is not None:
                populated[unit] = value
        return populated

    def missing_fields(self) -> List[str]:
        return sorted(name for name, source in self.confidence.items() if source is Provenance.MISSING)

    def fingerprint(self) -> tuple:
        """Order-affecting fields; any change invalidates an estimate."""
        return (
            self.contract.contract_id if self.contract else self.contract_ref,
            self.side,
            self.order_type,
            self.limit_price,
            self.time_in_force,
            self.reduce_only,
            self.quantity_steps,
            self.quantity_contracts,
            self.quantity_assets,
        )


@dataclass(slots=True, frozen=True)
class ValidatedOrder:
    """Draft that passed validation; direction is carried by the quantity sign."""

    contract: Contract
    order_type: OrderType
    time_in_force: str
    reduce_only: bool
    quantity_unit: QuantityUnit
    quantity: Decimal
    limit_price: Optional[Decimal] = None

    @property
    def side(self) -> OrderSide:
        return "buy" if self.quantity > 0 else "sell"

    def to_payload(self) -> Dict[str, Any]:
        """Body for the estimate endpoint; carries exactly one quantity key."""
        return {
            "contract": str(self.contract.contract_id),
            "type": self.order_type,
            "limit_price": _limit_price_text(self.order_type, self.limit_price),
            "time_in_force": self.time_in_force,
            "reduce_only": self.reduce_only,
            f"quantity_{self.quantity_unit}": _decimal_text(self.quantity),
        }


@dataclass(slots=True, frozen=True)
class OrderEstimate:
    """Venue projection of an order's cost and account impact."""

    trading_fee: Optional[Decimal] = None
    operational_fee: Optional[Decimal] = None
    realized_profit: Optional[Decimal] = None
    taker_base_amount: Optional[Decimal] = None
    taker_tokens_amount: Optional[Decimal] = None
    current_equity: Optional[Decimal] = None
    new_equity: Optional[Decimal] = None
    current_leverage: Optional[Decimal] = None
    new_leverage: Optional[Decimal] = None
    estimated_liquidation_price: Optional[Decimal] = None
    raw: Dict[str, Any] = field(default_factory=dict, compare=False)


@dataclass(slots=True, frozen=True)
class EstimationRejected:
    """Venue declined to estimate the order; ``reason`` is the literal text."""

    reason: str


@dataclass(slots=True, frozen=True)
class OrderSubmission:
    """Signed order body; built at the moment of submission."""

    customer_order_id: str
    contract: str
    order_type: OrderType
    limit_price: Optional[Decimal]
    time_in_force: str
    reduce_only: bool
    quantity_unit: QuantityUnit
    quantity: Decimal
    timestamp: int
    recv_window: int

    def to_body(self) -> Dict[str, Any]:
        return {
            "customer_order_id": self.customer_order_id,
            "contract": self.contract,
            "type": self.order_type,
            "limit_price": _limit_price_text(self.order_type, self.limit_price),
            "time_in_force": self.time_in_force,
            "reduce_only": self.reduce_only,
            f"quantity_{self.quantity_unit}": _decimal_text(self.quantity),
            "timestamp": self.timestamp,
            "recv_window": self.recv_window,
        }

    def serialize(self) -> str:
        """Compact JSON text; this exact string is signed and transmitted."""
        return json.dumps(self.to_body(), separators=(",", ":"))


@dataclass(slots=True, frozen=True)
class SubmissionAccepted:
    customer_order_id: str
    transaction_hash: Optional[str]
    status: Optional[str]
    events: List[Any] = field(default_factory=list)
    raw: Dict[str, Any] = field(default_factory=dict, compare=False)


@dataclass(slots=True, frozen=True)
class SubmissionRejected:
    """Venue refused the order; status/code/message are reported verbatim."""

    customer_order_id: str
    status: Optional[str]
    code: Optional[str]
    message: Optional[str]
    raw: Dict[str, Any] = field(default_factory=dict, compare=False)


@dataclass(slots=True, frozen=True)
class SubmissionErrored:
    customer_order_id: str
    cause: Exception


@dataclass(slots=True)
class OpportunityCandidate:
    """Trade idea extracted from analyst narrative text."""

    number: int
    symbol_hint: Optional[str] = None
    action: Optional[OrderSide] = None
    entry_price_hint: Optional[str] = None
    stop_loss_hint: Optional[str] = None
    take_profit_hint: Optional[str] = None
    position_size_hint: str = "small"
    risk_level_hint: str = "medium"
    rationale: str = ""


def _decimal_text(value: Decimal) -> str:
    text = format(value, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"


def _limit_price_text(order_type: str, price: Optional[Decimal]) -> str:
    if order_type == "limit" and price is not None:
        return _decimal_text(price)
    return "0"
