import re
from typing import Optional

from models import AddressType


def detect_address_type(address: str) -> AddressType:
    """Detect the blockchain address type from format."""
    address = address.strip()

    # EVM: 0x + 40 hex chars
    if re.match(r"^0x[a-fA-F0-9]{40}$", address):
        return AddressType.EVM

    # Bitcoin Legacy (1...) or P2SH (3...)
    if re.match(r"^(1|3)[a-km-zA-HJ-NP-Z1-9]{25,34}$", address):
        return AddressType.BITCOIN

    # Bitcoin Bech32 (bc1...)
    if re.match(r"^bc1[a-zA-HJ-NP-Z0-9]{25,90}$", address):
        return AddressType.BITCOIN

    # Tron: T + 33 alphanumerics
    if re.match(r"^T[a-zA-Z0-9]{33}$", address):
        return AddressType.TRON

    # Solana: Base58, 32-44 chars (checked last)
    if re.match(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$", address):
        return AddressType.SOLANA

    return AddressType.UNKNOWN


def normalize_evm_address(address: str) -> str:
    """Lower-case an EVM address, rejecting anything else."""
    address = address.strip()
    addr_type = detect_address_type(address)
    if addr_type != AddressType.EVM:
        raise ValueError(
            f"Only EVM addresses are supported, got {addr_type.value}: {address}"
        )
    return address.lower()


def short_address(address: str, chars: int = 6) -> str:
    """Truncate: 0x1234...abcd"""
    if len(address) <= chars * 2 + 3:
        return address
    return f"{address[:chars]}...{address[-chars:]}"


def to_decimal_str(raw: Optional[str | int]) -> str:
    """Normalize a hex ("0x1a") or decimal quantity to a decimal string.

    Unparseable input becomes "0" so downstream scoring stays total.
    """
    if raw is None:
        return "0"
    if isinstance(raw, int):
        return str(raw)
    raw = raw.strip()
    try:
        if raw.lower().startswith("0x"):
            return str(int(raw, 16)) if len(raw) > 2 else "0"
        return str(int(raw))
    except ValueError:
        return "0"


def to_optional_int(raw: Optional[str | int]) -> Optional[int]:
    if raw is None or raw == "":
        return None
    return int(to_decimal_str(raw))


def parse_wei(value: Optional[str]) -> int:
    return int(to_decimal_str(value))


def format_number(n: int) -> str:
    return f"{n:,}"
