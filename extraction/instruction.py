"""
Turn a natural-language trading instruction into an order draft.

Field extraction is delegated to a text-generation oracle that answers with a
JSON object of nullable fields. Everything after that is deterministic:
contract resolution, defaults for type/time-in-force/reduce-only, and
provenance tracking. Side and quantity are never defaulted; when absent they
are marked missing so the caller asks the operator.
"""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from extraction.contracts import ContractDirectory, UnresolvedContractError
from models.adapters.base import BaseOracleAdapter
from models.prompts import build_instruction_system_prompt
from models.utils import extract_json_object
from orders.schemas import OrderDraft, Provenance

logger = logging.getLogger(__name__)

_BUY_WORDS = {"buy", "long", "bid"}
_SELL_WORDS = {"sell", "short", "ask"}


async def from_instruction(
    text: str,
    contracts: ContractDirectory,
    oracle: BaseOracleAdapter,
) -> OrderDraft:
    """Ask the oracle to structure ``text`` and build a draft from its answer."""
    system = build_instruction_system_prompt(contracts.describe())
    answer = await oracle.interpret(text, system=system, json_output=True)
    fields = extract_json_object(answer)
    logger.info("Oracle parsed instruction into fields: %s", fields)
    return draft_from_fields(fields, contracts)


def draft_from_fields(fields: Dict[str, Any], contracts: ContractDirectory) -> OrderDraft:
    """Normalize the oracle's field object into an ``OrderDraft``."""
    reference = fields.get("contract")
    if reference in (None, ""):
        raise UnresolvedContractError(reference)
    contract = contracts.resolve(reference)
    logger.info("Resolved '%s' to contract %s (%s)", reference, contract.contract_id, contract.symbol)

    draft = OrderDraft(contract_ref=str(reference), contract=contract)
    confidence = draft.confidence
    confidence["contract"] = Provenance.EXPLICIT

    side = _normalize_side(fields.get("orderSide"))
    draft.side = side
    confidence["side"] = Provenance.EXPLICIT if side else Provenance.MISSING

    quantity = _positive_decimal(fields.get("quantity"))
    draft.quantity_contracts = quantity
    confidence["quantity"] = Provenance.EXPLICIT if quantity is not None else Provenance.MISSING

    order_type = fields.get("orderType")
    if order_type:
        draft.order_type = str(order_type).strip().lower()
        confidence["order_type"] = Provenance.EXPLICIT
    else:
        confidence["order_type"] = Provenance.DEFAULT

    limit_price = _positive_decimal(fields.get("limitPrice"))
    if limit_price is not None:
        draft.limit_price = limit_price
        confidence["limit_price"] = Provenance.EXPLICIT
    elif draft.order_type == "limit":
        confidence["limit_price"] = Provenance.MISSING

    time_in_force = fields.get("timeInForce")
    if time_in_force:
        draft.time_in_force = str(time_in_force).strip().upper()
        confidence["time_in_force"] = Provenance.EXPLICIT
    else:
        confidence["time_in_force"] = Provenance.DEFAULT

    reduce_only = fields.get("reduceOnly")
    if reduce_only is None:
        confidence["reduce_only"] = Provenance.DEFAULT
    else:
        draft.reduce_only = _as_bool(reduce_only)
        confidence["reduce_only"] = Provenance.EXPLICIT
    return draft


def _normalize_side(value: Any) -> Optional[str]:
    if not value:
        return None
    word = str(value).strip().lower()
    if word in _BUY_WORDS:
        return "buy"
    if word in _SELL_WORDS:
        return "sell"
    return None


def _positive_decimal(value: Any) -> Optional[Decimal]:
    if value in (None, "") or isinstance(value, bool):
        return None
    try:
        number = Decimal(str(value).replace(",", "").strip())
    except (InvalidOperation, ValueError):
        return None
    if not number.is_finite() or number <= 0:
        return None
    return number


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"true", "yes", "y", "1"}
    return bool(value)
