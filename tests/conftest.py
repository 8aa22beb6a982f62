"""Pytest configuration and fixtures for wallet character tests."""

import itertools
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from config import Settings
from models import Transaction
from store import TransactionStore


WALLET = "0x" + "ab" * 20
NOW = datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)

UNISWAP = "0x7a250d5630b4cf539739df2c5dacb4c659f2488d"
AAVE = "0x87870bca3f3fd6335c3f4ce8392d69350b4fa4e2"
COMPOUND = "0x3d9819210a31b4961b30ef54be2aed79b9c9cd3b"
CURVE = "0x79a8c46dea5ada233abaffd40f3a0a2b1e5a4f27"
LIDO = "0xae7ab96520de3a18e5e111b5eaab095312d7fe84"
SUSHISWAP = "0xd9e1ce17f2641f24ae83637ab66a2cca9c378b9f"
BALANCER = "0xba12222222228d8ba445958a75a0704d566bf2c8"
ONEINCH = "0x1111111254eeb25477b68fb85ed929f73a960582"
MAKERDAO = "0x5ef30b9986345249bc32d8928b7ee64de9435e39"
CONVEX = "0xf403c135812408bfbe8713b5a23a04b3d48aae31"
DEFI_CONTRACTS = [
    UNISWAP, AAVE, COMPOUND, CURVE, LIDO,
    SUSHISWAP, BALANCER, ONEINCH, MAKERDAO, CONVEX,
]

SEAPORT = "0x00000000000001ad428e4906ae43d8f9852d0dd6"
ENS_REGISTRAR = "0x57f1887a8bf19b14fc0df6fd9b2acc9af147ea85"

# Calldata with a selector that matches none of the heuristics
PLAIN_CALL = "0x12345678"

MAINNETS = ["ethereum", "polygon", "arbitrum", "optimism", "base", "bnb", "gnosis", "linea"]

_GENERIC = object()


def generic_address(n: int) -> str:
    """A recipient that is not in any known-contract table."""
    return f"0x{0xC0FFEE0000 + n:040x}"


# ============================================================================
# TRANSACTION FIXTURES
# ============================================================================

@pytest.fixture
def make_tx():
    """Factory for transactions with unique hashes and sensible defaults."""
    counter = itertools.count(1)

    def _make(
        *,
        chain: str = "ethereum",
        to=_GENERIC,
        data: Optional[str] = "0x",
        value: str = "0",
        days_ago: float = 0,
        success: bool = True,
        wallet: str = WALLET,
    ) -> Transaction:
        n = next(counter)
        return Transaction(
            hash=f"0x{n:064x}",
            chain=chain,
            block_number=1_000 + n,
            block_time=NOW - timedelta(days=days_ago),
            from_address=wallet,
            to_address=generic_address(n) if to is _GENERIC else to,
            value=value,
            success=success,
            input_data=data,
            wallet_address=wallet,
        )

    return _make


# ============================================================================
# SERVICE FIXTURES
# ============================================================================

@pytest.fixture
def settings():
    """Settings with no external keys and the template narrator."""
    return Settings(database_url="sqlite://", ai_provider="none")


@pytest.fixture
def store():
    """Fresh in-memory SQLite store with the schema created."""
    store = TransactionStore.from_url("sqlite://")
    store.create_schema()
    yield store
    store.engine.dispose()
