from decimal import Decimal

import pytest

from extraction.contracts import ContractDirectory, UnresolvedContractError
from orders.schemas import Contract


def test_resolve_by_id_symbol_and_index(contracts):
    assert contracts.resolve(2).symbol == "ETH-PERP"
    assert contracts.resolve("2").symbol == "ETH-PERP"
    assert contracts.resolve("eth-perp").contract_id == 2
    assert contracts.resolve("ETHUSD").contract_id == 2


def test_resolve_unknown_raises(contracts):
    with pytest.raises(UnresolvedContractError) as excinfo:
        contracts.resolve("XRP-PERP")
    assert excinfo.value.reference == "XRP-PERP"


def test_find_ignores_booleans(contracts):
    assert contracts.find(True) is None


def test_fuzzy_prefers_closest_symbol(contracts):
    assert contracts.resolve_fuzzy("BTC").contract_id == 1
    assert contracts.resolve_fuzzy("BTC-PERPETUAL").contract_id == 1
    assert contracts.resolve_fuzzy("DOGE") is None
    assert contracts.resolve_fuzzy(None) is None


def test_fuzzy_breaks_ties_on_volume():
    directory = ContractDirectory(
        [
            Contract(contract_id=1, symbol="SOL-A", volume_24h=Decimal("10")),
            Contract(contract_id=2, symbol="SOL-B", volume_24h=Decimal("20")),
        ]
    )
    assert directory.resolve_fuzzy("SOL").contract_id == 2


def test_describe_lists_every_contract(contracts):
    lines = contracts.describe().splitlines()
    assert lines[0] == "1: BTC-PERP (Index: BTCUSD)"
    assert len(lines) == len(contracts) == 3
