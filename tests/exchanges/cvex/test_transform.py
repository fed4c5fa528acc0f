from decimal import Decimal

import pytest

from exchanges.cvex.transform import (
    extract_equity,
    parse_contract,
    parse_contracts,
    parse_estimate,
    parse_submission_result,
)
from orders.schemas import EstimationRejected, OrderEstimate, SubmissionAccepted, SubmissionRejected


def test_parse_contract_reads_decimal_fields():
    contract = parse_contract(
        {
            "contract_id": "12",
            "symbol": "SOL-PERP",
            "index": "SOLUSD",
            "min_order_size_contracts": "0.1",
            "mark_price": "150.25",
            "last_price": None,
            "volume_24h": "1000",
        }
    )
    assert contract.contract_id == 12
    assert contract.min_order_size == Decimal("0.1")
    assert contract.mark_price == Decimal("150.25")
    assert contract.last_price is None
    assert contract.reference_price == Decimal("150.25")


def test_parse_contracts_skips_entries_without_id():
    contracts = parse_contracts([{"symbol": "BROKEN"}, {"contract_id": 3, "symbol": "ETH-PERP"}])
    assert [contract.symbol for contract in contracts] == ["ETH-PERP"]


def test_parse_contract_without_id_raises():
    with pytest.raises(ValueError):
        parse_contract({"contract_id": "abc"})


def test_estimate_error_field_is_a_rejection():
    result = parse_estimate({"error": "Insufficient margin"})
    assert result == EstimationRejected(reason="Insufficient margin")


def test_estimate_fields_are_decimals():
    result = parse_estimate({"trading_fee": "1.25", "new_leverage": 3, "current_equity": ""})
    assert isinstance(result, OrderEstimate)
    assert result.trading_fee == Decimal("1.25")
    assert result.new_leverage == Decimal("3")
    assert result.current_equity is None


def test_submission_success_is_accepted():
    result = parse_submission_result({"status": "success", "transaction_hash": "0x1"}, "cli-1")
    assert isinstance(result, SubmissionAccepted)
    assert result.transaction_hash == "0x1"
    assert result.customer_order_id == "cli-1"


def test_submission_failure_reports_fields_verbatim():
    result = parse_submission_result({"status": "failed", "code": 4001, "message": "Price out of band"}, "cli-2")
    assert isinstance(result, SubmissionRejected)
    assert (result.status, result.code, result.message) == ("failed", "4001", "Price out of band")


def test_extract_equity():
    assert extract_equity({"portfolio": {"equity": "10500.5"}}) == Decimal("10500.5")
    assert extract_equity({}) is None
