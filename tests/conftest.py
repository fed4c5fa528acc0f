from decimal import Decimal

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from config import VenueConfig
from extraction.contracts import ContractDirectory
from orders.schemas import Contract

RFC8032_SEED = bytes.fromhex("9d61b19deffd5a60ba844af492ec2cc44449c5697b326919703bac031cae7f60")


@pytest.fixture
def private_key():
    return Ed25519PrivateKey.from_private_bytes(RFC8032_SEED)


@pytest.fixture
def private_key_pem(private_key):
    return private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


@pytest.fixture
def key_file(tmp_path, private_key_pem):
    path = tmp_path / "private.pem"
    path.write_bytes(private_key_pem)
    return path


@pytest.fixture
def venue_config():
    return VenueConfig(api_url="https://api.test.cvex", api_key="read-only-key", recv_window=30000)


@pytest.fixture
def btc_contract():
    return Contract(
        contract_id=1,
        symbol="BTC-PERP",
        index="BTCUSD",
        min_order_size=Decimal("0.001"),
        mark_price=Decimal("80000"),
        last_price=Decimal("79990"),
        price_tick=Decimal("0.5"),
        volume_24h=Decimal("5000000"),
    )


@pytest.fixture
def contracts(btc_contract):
    return ContractDirectory(
        [
            btc_contract,
            Contract(
                contract_id=2,
                symbol="ETH-PERP",
                index="ETHUSD",
                min_order_size=Decimal("0.01"),
                mark_price=Decimal("3000"),
                volume_24h=Decimal("2000000"),
            ),
            Contract(
                contract_id=3,
                symbol="BTC-27DEC24",
                index="BTCUSD",
                min_order_size=Decimal("1"),
                mark_price=Decimal("81000"),
                volume_24h=Decimal("100000"),
            ),
        ]
    )
