from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ── Enums ─────────────────────────────────────────────────────────────────────


class MainnetChain(str, Enum):
    ETHEREUM = "ethereum"
    POLYGON = "polygon"
    ARBITRUM = "arbitrum"
    OPTIMISM = "optimism"
    BASE = "base"
    BNB = "bnb"
    AVALANCHE_C = "avalanche_c"
    FANTOM = "fantom"
    GNOSIS = "gnosis"
    BLAST = "blast"
    MODE = "mode"
    ZKSYNC = "zksync"
    LINEA = "linea"
    SCROLL = "scroll"
    ZKEVM = "zkevm"
    REDSTONE = "redstone"
    SONIC = "sonic"
    ABSTRACT = "abstract"
    ZORA = "zora"
    MANTLE = "mantle"


class AddressType(str, Enum):
    EVM = "evm"
    SOLANA = "solana"
    BITCOIN = "bitcoin"
    TRON = "tron"
    UNKNOWN = "unknown"


class SyncStatus(str, Enum):
    PENDING = "pending"
    SYNCING = "syncing"
    COMPLETED = "completed"
    ERROR = "error"


class DataSource(str, Enum):
    DUNE = "dune"
    ALCHEMY = "alchemy"
    ETHERSCAN = "etherscan"


class AssetType(str, Enum):
    ETH = "ETH"
    ERC20 = "ERC20"
    ERC721 = "ERC721"
    ERC1155 = "ERC1155"


class CharacterClass(str, Enum):
    NFT_COLLECTOR = "NFT Collector"
    DEFI_ALCHEMIST = "DeFi Alchemist"
    AIRDROP_HUNTER = "Airdrop Hunter"
    PROTOCOL_DIPLOMAT = "Protocol Diplomat"
    CHAIN_WANDERER = "Chain Wanderer"
    IDENTITY_SEEKER = "Identity Seeker"
    INTERCHAIN_NOMAD = "Interchain Nomad"
    NEWCOMER = "Newcomer"


class CharacterRank(str, Enum):
    S = "S"
    A = "A"
    B = "B"
    C = "C"
    D = "D"

    @property
    def ordinal(self) -> int:
        """D=0 ... S=4, so ranks compare with plain integer ordering."""
        return "DCBAS".index(self.value)


# ── Stored Records ────────────────────────────────────────────────────────────


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Transaction(BaseModel):
    model_config = ConfigDict(frozen=True)

    hash: str
    chain: str
    block_number: int = 0
    block_time: datetime
    from_address: str
    to_address: Optional[str] = None
    value: str = "0"
    nonce: Optional[int] = None
    gas_price: Optional[str] = None
    gas_used: Optional[str] = None
    success: bool = True
    input_data: Optional[str] = "0x"
    data_source: DataSource = DataSource.DUNE
    chain_id: Optional[int] = None
    block_hash: Optional[str] = None
    transaction_index: Optional[int] = None
    wallet_address: Optional[str] = None
    transaction_type: Optional[str] = None
    effective_gas_price: Optional[str] = None
    gas_limit: Optional[str] = None

    @field_validator("block_time")
    @classmethod
    def _block_time_utc(cls, v: datetime) -> datetime:
        return _as_utc(v)


class TransactionLog(BaseModel):
    transaction_hash: str
    log_index: int
    contract_address: str
    data: Optional[str] = None
    topics: list[str] = []
    block_number: int = 0


class TrackedWallet(BaseModel):
    address: str
    label: Optional[str] = None
    sync_status: SyncStatus = SyncStatus.PENDING
    last_synced_at: Optional[datetime] = None
    last_synced_block: Optional[int] = None
    total_transactions: int = 0
    first_transaction_at: Optional[datetime] = None
    last_transaction_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AssetTransfer(BaseModel):
    transaction_hash: str
    from_address: str
    to_address: str
    asset_type: AssetType
    contract_address: Optional[str] = None
    token_id: Optional[str] = None
    raw_amount: str = "0"
    formatted_amount: Optional[float] = None
    decimals: int = 18
    symbol: Optional[str] = None
    name: Optional[str] = None
    block_number: int = 0
    block_time: Optional[datetime] = None


class TransactionFilters(BaseModel):
    wallet_address: Optional[str] = None
    chain: Optional[str] = None
    from_date: Optional[datetime] = None
    to_date: Optional[datetime] = None
    success: Optional[bool] = None
    limit: Optional[int] = None
    offset: Optional[int] = None


class WalletStats(BaseModel):
    total_transactions: int = 0
    successful_transactions: int = 0
    failed_transactions: int = 0
    total_gas_used: str = "0"
    first_transaction: Optional[datetime] = None
    last_transaction: Optional[datetime] = None
    unique_contracts_interacted: int = 0


# ── Character Models ──────────────────────────────────────────────────────────


class CharacterAttributes(BaseModel):
    wisdom: int = Field(0, ge=0, le=5)
    adventure: int = Field(0, ge=0, le=5)
    aesthetic: int = Field(0, ge=0, le=5)
    social: int = Field(0, ge=0, le=5)
    greed: int = Field(0, ge=0, le=5)
    stability: int = Field(0, ge=0, le=5)


class ContractInteraction(BaseModel):
    protocol: str
    category: str
    count: int
    addresses: list[str] = []


class ActiveTime(BaseModel):
    years: int = 0
    days: int = 0
    display_text: str = "0 Years 0 Days"


class ActivityPoint(BaseModel):
    block_time: datetime
    chain: str


class CharacterAnalysis(BaseModel):
    nft_count: int = 0
    defi_protocols: list[str] = []
    governance_transactions: int = 0
    bridge_transactions: int = 0
    unique_contracts: int = 0
    contract_interactions: list[ContractInteraction] = []


class CharacterSummary(BaseModel):
    address: str
    character_class: CharacterClass
    rank: CharacterRank
    attributes: CharacterAttributes
    total_transactions: int = 0
    active_years: float = 0.0
    active_time: ActiveTime = ActiveTime()
    chains_used: list[str] = []
    transaction_activity: list[ActivityPoint] = []
    analysis: CharacterAnalysis = CharacterAnalysis()
    description: Optional[str] = None


# ── API Models ────────────────────────────────────────────────────────────────


class HealthResponse(BaseModel):
    status: str
    version: str


class SyncRequest(BaseModel):
    wallet: Optional[str] = Field(None, description="Public EVM wallet address (0x...)")
    label: Optional[str] = Field(None, description="Optional label for the tracked wallet")


class SyncResponse(BaseModel):
    success: bool
    wallet: str
    transactions_synced: int = 0
    total_in_database: int = 0
    message: Optional[str] = None


class SyncStatusResponse(BaseModel):
    wallet: str
    transaction_count: int
    sync_status: Optional[SyncStatus] = None
    stats: WalletStats
    synced: bool


class CharacterResponse(CharacterSummary):
    generated_at: datetime
    data_source: str = "database"
