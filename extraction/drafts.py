"""
Convert opportunity candidates into order drafts sized against account equity.
"""

from __future__ import annotations

import logging
from decimal import ROUND_DOWN, Decimal
from typing import Mapping, Optional

from config import MARKET_PRICE_TOLERANCE_PCT, POSITION_SIZE_FRACTIONS
from extraction.contracts import ContractDirectory
from extraction.narrative import parse_price_hint
from orders.schemas import Contract, OpportunityCandidate, OrderDraft, Provenance

logger = logging.getLogger(__name__)


def to_draft(
    candidate: OpportunityCandidate,
    contracts: ContractDirectory,
    account_equity: Decimal | float | str | None,
    *,
    size_fractions: Mapping[str, str] = POSITION_SIZE_FRACTIONS,
    market_tolerance_pct: Decimal | str = MARKET_PRICE_TOLERANCE_PCT,
) -> OrderDraft:
    """
    Build a draft from a candidate. The result is a proposal: every inferred
    field is flagged in ``confidence`` and must be shown to the operator.
    """
    draft = OrderDraft(contract_ref=candidate.symbol_hint)
    confidence = draft.confidence
    draft.metadata.update(
        {
            "opportunity": candidate.number,
            "stop_loss": candidate.stop_loss_hint,
            "take_profit": candidate.take_profit_hint,
            "position_size": candidate.position_size_hint,
            "risk_level": candidate.risk_level_hint,
            "rationale": candidate.rationale,
        }
    )

    contract = contracts.resolve_fuzzy(candidate.symbol_hint)
    if contract is None:
        logger.warning("Opportunity %s symbol %r did not match any contract", candidate.number, candidate.symbol_hint)
        confidence["contract"] = Provenance.MISSING
    else:
        draft.contract = contract
        exact = contracts.find(candidate.symbol_hint) is not None
        confidence["contract"] = Provenance.EXPLICIT if exact else Provenance.INFERRED

    draft.side = candidate.action
    confidence["side"] = Provenance.EXPLICIT if candidate.action else Provenance.MISSING

    entry_price = parse_price_hint(candidate.entry_price_hint)
    reference_price = contract.reference_price if contract else None

    sizing_price = entry_price or reference_price
    quantity = _size_quantity(
        account_equity,
        size_fractions.get(candidate.position_size_hint, size_fractions["small"]),
        sizing_price,
        contract,
    )
    draft.quantity_contracts = quantity
    if quantity is None:
        confidence["quantity"] = Provenance.MISSING
    else:
        confidence["quantity"] = Provenance.INFERRED

    if entry_price is None:
        draft.order_type = "market"
        confidence["order_type"] = Provenance.DEFAULT
    elif reference_price is not None and _within(entry_price, reference_price, Decimal(market_tolerance_pct)):
        draft.order_type = "market"
        confidence["order_type"] = Provenance.INFERRED
    else:
        draft.order_type = "limit"
        draft.limit_price = entry_price
        confidence["order_type"] = Provenance.INFERRED
        confidence["limit_price"] = Provenance.INFERRED

    confidence["time_in_force"] = Provenance.DEFAULT
    confidence["reduce_only"] = Provenance.DEFAULT
    return draft


def _size_quantity(
    account_equity: Decimal | float | str | None,
    fraction: str,
    price: Optional[Decimal],
    contract: Optional[Contract],
) -> Optional[Decimal]:
    if account_equity in (None, "") or price is None or price <= 0:
        return None
    equity = Decimal(str(account_equity))
    if equity <= 0:
        return None
    quantity = equity * Decimal(fraction) / price
    if contract is None or contract.min_order_size <= 0:
        return quantity.normalize()
    minimum = contract.min_order_size
    if minimum.as_tuple().exponent < 0:
        quantity = quantity.quantize(minimum, rounding=ROUND_DOWN)
    else:
        quantity = quantity.to_integral_value(rounding=ROUND_DOWN)
    return max(quantity, minimum)


def _within(price: Decimal, reference: Decimal, tolerance: Decimal) -> bool:
    return abs(price - reference) <= reference * tolerance
