"""Heuristic predicates over transaction records.

None of these decode ABI payloads. Call-data is matched by leading selector
or by substring, and the over-matching that follows (e.g. every ERC-20
``transfer`` counting as a possible NFT move) is accepted behavior.
"""

from typing import Iterable

from known_contracts import (
    BRIDGE_KEYWORD,
    DEFI_PROTOCOLS,
    EMPTY_CALLDATA,
    ENS_CONTRACTS,
    GOVERNANCE_KEYWORDS,
    KNOWN_CONTRACTS,
    NFT_CALLDATA_PATTERNS,
    NFT_MARKETPLACES,
    NFT_SELECTORS,
)
from models import ContractInteraction, Transaction


def _recipient(tx: Transaction) -> str:
    return (tx.to_address or "").lower()


def _calldata(tx: Transaction) -> str:
    return (tx.input_data or "").lower()


def is_contract_call(tx: Transaction) -> bool:
    return bool(tx.to_address) and bool(tx.input_data) and tx.input_data != EMPTY_CALLDATA


def is_nft_transaction(tx: Transaction) -> bool:
    data = _calldata(tx)
    if data[:10] in NFT_SELECTORS:
        return True
    if _recipient(tx) in NFT_MARKETPLACES:
        return True
    return any(pattern in data for pattern in NFT_CALLDATA_PATTERNS)


def count_nft_transactions(transactions: Iterable[Transaction]) -> int:
    return sum(1 for tx in transactions if is_nft_transaction(tx))


def find_defi_protocols(transactions: Iterable[Transaction]) -> set[str]:
    """Names of the DeFi protocols whose contracts were called at least once."""
    protocols: set[str] = set()
    for tx in transactions:
        address = _recipient(tx)
        if not address:
            continue
        for name, contracts in DEFI_PROTOCOLS.items():
            if address in contracts:
                protocols.add(name)
    return protocols


def is_governance_transaction(tx: Transaction) -> bool:
    data = _calldata(tx)
    return any(keyword in data for keyword in GOVERNANCE_KEYWORDS)


def count_governance_transactions(transactions: Iterable[Transaction]) -> int:
    return sum(1 for tx in transactions if is_governance_transaction(tx))


def count_bridge_transactions(transactions: Iterable[Transaction]) -> int:
    # Matched against call-data as stored, not lower-cased.
    return sum(1 for tx in transactions if tx.input_data and BRIDGE_KEYWORD in tx.input_data)


def is_ens_transaction(tx: Transaction) -> bool:
    return _recipient(tx) in ENS_CONTRACTS


def has_ens_interaction(transactions: Iterable[Transaction]) -> bool:
    return any(is_ens_transaction(tx) for tx in transactions)


def contracts_interacted(transactions: Iterable[Transaction]) -> set[str]:
    """Recipients of calls that carried call-data."""
    return {_recipient(tx) for tx in transactions if is_contract_call(tx)}


def unique_recipients(transactions: Iterable[Transaction]) -> set[str]:
    return {_recipient(tx) for tx in transactions if tx.to_address}


def analyze_contract_interactions(
    transactions: Iterable[Transaction],
) -> list[ContractInteraction]:
    """Count hits per known protocol, most-used first."""
    counts: dict[tuple[str, str], int] = {}
    addresses: dict[tuple[str, str], set[str]] = {}

    for tx in transactions:
        address = _recipient(tx)
        if not address:
            continue
        for category, protocols in KNOWN_CONTRACTS.items():
            for name, contracts in protocols.items():
                if address in contracts:
                    key = (category, name)
                    counts[key] = counts.get(key, 0) + 1
                    addresses.setdefault(key, set()).add(address)

    interactions = [
        ContractInteraction(
            protocol=name,
            category=category,
            count=count,
            addresses=sorted(addresses[(category, name)]),
        )
        for (category, name), count in counts.items()
    ]
    interactions.sort(key=lambda i: (-i.count, i.protocol))
    return interactions
