"""
Helper functions for transforming CVEX API responses into domain models.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, List, Optional

from orders.schemas import (
    Contract,
    EstimationRejected,
    OrderEstimate,
    SubmissionAccepted,
    SubmissionRejected,
)

_ESTIMATE_FIELDS = (
    "trading_fee",
    "operational_fee",
    "realized_profit",
    "taker_base_amount",
    "taker_tokens_amount",
    "current_equity",
    "new_equity",
    "current_leverage",
    "new_leverage",
    "estimated_liquidation_price",
)


def parse_contract(raw: dict) -> Contract:
    """Convert a directory/detail entry into a ``Contract``."""
    try:
        contract_id = int(raw["contract_id"])
    except (KeyError, TypeError, ValueError) as exc:
        raise ValueError(f"Contract entry missing a numeric contract_id: {raw!r}") from exc
    return Contract(
        contract_id=contract_id,
        symbol=str(raw.get("symbol") or ""),
        index=str(raw.get("index") or ""),
        min_order_size=_optional_decimal(raw.get("min_order_size_contracts")) or Decimal("0"),
        mark_price=_optional_decimal(raw.get("mark_price")),
        last_price=_optional_decimal(raw.get("last_price")),
        price_tick=_optional_decimal(raw.get("price_tick")),
        volume_24h=_optional_decimal(raw.get("volume_24h")) or Decimal("0"),
    )


def parse_contracts(raw_contracts: Iterable[dict]) -> List[Contract]:
    contracts: List[Contract] = []
    for entry in raw_contracts or []:
        try:
            contracts.append(parse_contract(entry))
        except ValueError:
            continue
    return contracts


def parse_estimate(payload: dict) -> OrderEstimate | EstimationRejected:
    """A 2xx response carrying ``error`` is a refusal, not a transport failure."""
    error = payload.get("error")
    if error:
        return EstimationRejected(reason=str(error))
    values = {name: _optional_decimal(payload.get(name)) for name in _ESTIMATE_FIELDS}
    return OrderEstimate(raw=dict(payload), **values)


def parse_submission_result(
    payload: dict, customer_order_id: str
) -> SubmissionAccepted | SubmissionRejected:
    status = payload.get("status")
    tx_hash = payload.get("transaction_hash")
    if status == "success" or tx_hash:
        return SubmissionAccepted(
            customer_order_id=customer_order_id,
            transaction_hash=tx_hash or None,
            status=status,
            events=list(payload.get("events") or []),
            raw=dict(payload),
        )
    code = payload.get("code")
    return SubmissionRejected(
        customer_order_id=customer_order_id,
        status=status or "error",
        code=str(code) if code is not None else None,
        message=payload.get("message"),
        raw=dict(payload),
    )


def extract_equity(overview: dict) -> Optional[Decimal]:
    """Return the portfolio equity from ``/v1/portfolio/overview``."""
    portfolio = overview.get("portfolio") or {}
    return _optional_decimal(portfolio.get("equity"))


def _optional_decimal(value: Any) -> Optional[Decimal]:
    if value in (None, ""):
        return None
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    return result if result.is_finite() else None
