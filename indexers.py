from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Optional

import httpx
import structlog
from pydantic import BaseModel

from config import Settings
from models import AssetTransfer, AssetType, DataSource, Transaction, TransactionLog
from utils import to_decimal_str, to_optional_int

logger = structlog.get_logger(__name__)


# ── Dune Sim API ──────────────────────────────────────────────────────────────
# Multi-chain transaction history, cursor pagination via next_offset.

DUNE_SIM_BASE = "https://api.sim.dune.com/v1/evm"


# ── Etherscan V2 Unified API ──────────────────────────────────────────────────
# Single endpoint + chainid param. One API key covers all chains.

ETHERSCAN_V2_BASE = "https://api.etherscan.io/v2/api"

EVM_CHAINS: dict[str, int] = {
    "ethereum": 1,
    "polygon": 137,
    "bnb": 56,
    "arbitrum": 42161,
    "optimism": 10,
    "avalanche_c": 43114,
    "base": 8453,
    "fantom": 250,
    "gnosis": 100,
    "linea": 59144,
    "scroll": 534352,
    "blast": 81457,
    "mantle": 5000,
    "zksync": 324,
}


# ── Alchemy Transfers API ─────────────────────────────────────────────────────

ALCHEMY_TRANSFER_CATEGORIES = ["external", "internal", "erc20", "erc721", "erc1155"]
ALCHEMY_MAX_REQUESTS = 50

_CATEGORY_ASSET_TYPES: dict[str, AssetType] = {
    "external": AssetType.ETH,
    "internal": AssetType.ETH,
    "erc20": AssetType.ERC20,
    "erc721": AssetType.ERC721,
    "erc1155": AssetType.ERC1155,
    "specialnft": AssetType.ERC721,
}


class UpstreamError(Exception):
    """An indexer was unreachable or answered with a non-2xx response."""

    def __init__(self, source: str, status_code: int, details: Any):
        self.source = source
        self.status_code = status_code
        self.details = details
        super().__init__(f"{source} responded with {status_code}: {details}")


class IndexerPage(BaseModel):
    transactions: list[Transaction] = []
    logs: list[TransactionLog] = []
    next_offset: Optional[str] = None


# ── Transforms ────────────────────────────────────────────────────────────────


def _parse_time(raw: Any) -> datetime:
    if isinstance(raw, (int, float)) or (isinstance(raw, str) and raw.isdigit()):
        return datetime.fromtimestamp(int(raw), tz=timezone.utc)
    if isinstance(raw, str) and raw:
        # Dune returns "2024-01-01T00:00:00+00:00"; Alchemy appends a "Z"
        try:
            return datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError:
            pass
    return datetime.fromtimestamp(0, tz=timezone.utc)


def _lower(raw: Optional[str]) -> Optional[str]:
    return raw.lower() if raw else None


def transform_dune_transaction(raw: dict, wallet_address: str) -> Transaction:
    return Transaction(
        hash=raw.get("hash", ""),
        chain=(raw.get("chain") or "").lower(),
        chain_id=raw.get("chain_id"),
        block_number=int(to_decimal_str(raw.get("block_number"))),
        block_hash=raw.get("block_hash"),
        block_time=_parse_time(raw.get("block_time")),
        transaction_index=to_optional_int(raw.get("index")),
        from_address=(raw.get("from") or "").lower(),
        to_address=_lower(raw.get("to")),
        wallet_address=wallet_address.lower(),
        value=to_decimal_str(raw.get("value")),
        nonce=to_optional_int(raw.get("nonce")),
        transaction_type=raw.get("transaction_type"),
        gas_price=to_decimal_str(raw.get("gas_price")) if raw.get("gas_price") else None,
        gas_used=to_decimal_str(raw.get("gas_used")) if raw.get("gas_used") else None,
        effective_gas_price=(
            to_decimal_str(raw.get("effective_gas_price"))
            if raw.get("effective_gas_price") else None
        ),
        success=bool(raw.get("success", True)),
        input_data=raw.get("data") or "0x",
        data_source=DataSource.DUNE,
    )


def transform_dune_logs(raw: dict) -> list[TransactionLog]:
    block_number = int(to_decimal_str(raw.get("block_number")))
    return [
        TransactionLog(
            transaction_hash=raw.get("hash", ""),
            log_index=i,
            contract_address=(log.get("address") or "").lower(),
            data=log.get("data"),
            topics=log.get("topics") or [],
            block_number=block_number,
        )
        for i, log in enumerate(raw.get("logs") or [])
    ]


def transform_etherscan_transaction(
    raw: dict, chain: str, wallet_address: str
) -> Transaction:
    failed = raw.get("isError") == "1" or raw.get("txreceipt_status") == "0"
    return Transaction(
        hash=raw.get("hash", ""),
        chain=chain,
        chain_id=EVM_CHAINS.get(chain),
        block_number=int(to_decimal_str(raw.get("blockNumber"))),
        block_hash=raw.get("blockHash"),
        block_time=_parse_time(raw.get("timeStamp")),
        transaction_index=to_optional_int(raw.get("transactionIndex")),
        from_address=(raw.get("from") or "").lower(),
        to_address=_lower(raw.get("to")),
        wallet_address=wallet_address.lower(),
        value=to_decimal_str(raw.get("value")),
        nonce=to_optional_int(raw.get("nonce")),
        gas_price=to_decimal_str(raw.get("gasPrice")),
        gas_used=to_decimal_str(raw.get("gasUsed")),
        gas_limit=to_decimal_str(raw.get("gas")),
        success=not failed,
        input_data=raw.get("input") or "0x",
        data_source=DataSource.ETHERSCAN,
    )


def transform_alchemy_transfer(raw: dict) -> AssetTransfer:
    category = (raw.get("category") or "").lower()
    asset_type = _CATEGORY_ASSET_TYPES.get(category, AssetType.ERC20)
    contract = raw.get("rawContract") or {}
    decimals = int(to_decimal_str(contract.get("decimal") or "18"))

    token_id = raw.get("erc721TokenId")
    if not token_id and raw.get("erc1155Metadata"):
        token_id = raw["erc1155Metadata"][0].get("tokenId")

    raw_amount = to_decimal_str(contract.get("value"))
    if raw_amount == "0" and raw.get("value"):
        raw_amount = str(int(float(raw["value"]) * 10 ** decimals))

    metadata = raw.get("metadata") or {}
    return AssetTransfer(
        transaction_hash=raw.get("hash", ""),
        from_address=(raw.get("from") or "").lower(),
        to_address=(raw.get("to") or "").lower(),
        asset_type=asset_type,
        contract_address=_lower(contract.get("address")),
        token_id=to_decimal_str(token_id) if token_id else None,
        raw_amount=raw_amount,
        formatted_amount=raw.get("value"),
        decimals=decimals,
        symbol=raw.get("asset"),
        block_number=int(to_decimal_str(raw.get("blockNum"))),
        block_time=_parse_time(metadata["blockTimestamp"]) if metadata.get("blockTimestamp") else None,
    )


# ── Base Provider ─────────────────────────────────────────────────────────────


class IndexerProvider(ABC):
    """Abstract base for paginated transaction-history sources."""

    source: DataSource

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport, timeout=30)

    @abstractmethod
    async def fetch_page(
        self, address: str, limit: int = 100, offset: Optional[str] = None
    ) -> IndexerPage:
        ...

    async def fetch_all(
        self, address: str, batch_size: int = 100, max_transactions: int = 10_000
    ) -> IndexerPage:
        """Follow the cursor until it runs out, a page is empty, or the cap is hit."""
        result = IndexerPage()
        offset: Optional[str] = None
        while True:
            page = await self.fetch_page(address, batch_size, offset)
            if not page.transactions:
                break
            result.transactions.extend(page.transactions)
            result.logs.extend(page.logs)
            offset = page.next_offset
            if not offset:
                break
            if len(result.transactions) >= max_transactions:
                logger.warning(
                    "transaction_cap_reached",
                    source=self.source.value,
                    address=address,
                    cap=max_transactions,
                )
                result.next_offset = offset
                break
        return result


# ── Dune Provider ─────────────────────────────────────────────────────────────


class DuneSimProvider(IndexerProvider):
    source = DataSource.DUNE

    def __init__(
        self,
        api_key: str,
        chain_ids: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(transport)
        self.api_key = api_key
        self.chain_ids = chain_ids

    async def fetch_raw_page(
        self,
        address: str,
        limit: int = 100,
        offset: Optional[str] = None,
        chain_ids: Optional[str] = None,
    ) -> dict:
        params: dict[str, Any] = {}
        if limit:
            params["limit"] = limit
        if offset and offset != "0":
            params["offset"] = offset
        chain_ids = chain_ids or self.chain_ids
        if chain_ids:
            params["chain_ids"] = chain_ids

        async with self._client() as client:
            try:
                resp = await client.get(
                    f"{DUNE_SIM_BASE}/transactions/{address}",
                    params=params,
                    headers={"X-Sim-Api-Key": self.api_key},
                )
            except httpx.HTTPError as e:
                raise UpstreamError(self.source.value, 502, str(e)) from e

        if not resp.is_success:
            raise UpstreamError(self.source.value, resp.status_code, resp.text)
        return resp.json()

    async def fetch_page(
        self, address: str, limit: int = 100, offset: Optional[str] = None
    ) -> IndexerPage:
        data = await self.fetch_raw_page(address, limit, offset)
        raw_txs = data.get("transactions") or []
        return IndexerPage(
            transactions=[transform_dune_transaction(tx, address) for tx in raw_txs],
            logs=[log for tx in raw_txs for log in transform_dune_logs(tx)],
            next_offset=data.get("next_offset") or None,
        )


# ── Etherscan Provider ────────────────────────────────────────────────────────


class EtherscanProvider(IndexerProvider):
    source = DataSource.ETHERSCAN

    def __init__(
        self,
        api_key: str,
        chain: str = "ethereum",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(transport)
        if chain not in EVM_CHAINS:
            raise ValueError(f"Unsupported Etherscan chain: {chain}")
        self.api_key = api_key
        self.chain = chain
        self.evm_chain_id = EVM_CHAINS[chain]

    async def _api_call(self, client: httpx.AsyncClient, params: dict) -> dict:
        params["chainid"] = self.evm_chain_id
        if self.api_key:
            params["apikey"] = self.api_key
        try:
            resp = await client.get(ETHERSCAN_V2_BASE, params=params)
        except httpx.HTTPError as e:
            raise UpstreamError(self.source.value, 502, str(e)) from e
        if not resp.is_success:
            raise UpstreamError(self.source.value, resp.status_code, resp.text)
        data = resp.json()

        if data.get("status") == "0" and "API Key" in str(data.get("result", "")):
            raise PermissionError(
                "ETHERSCAN_API_KEY missing or invalid. "
                "Get a free key at https://etherscan.io/apis"
            )
        return data

    async def fetch_page(
        self, address: str, limit: int = 100, offset: Optional[str] = None
    ) -> IndexerPage:
        page = int(offset) if offset else 1
        async with self._client() as client:
            data = await self._api_call(client, {
                "module": "account",
                "action": "txlist",
                "address": address,
                "startblock": 0,
                "endblock": 99999999,
                "page": page,
                "offset": limit,
                "sort": "desc",
            })

        result = data.get("result")
        if data.get("status") != "1" or not isinstance(result, list):
            # "No transactions found" comes back as status 0 with an empty list
            if isinstance(result, list) or data.get("message") == "No transactions found":
                return IndexerPage()
            raise UpstreamError(self.source.value, 502, result)

        return IndexerPage(
            transactions=[
                transform_etherscan_transaction(tx, self.chain, address) for tx in result
            ],
            next_offset=str(page + 1) if len(result) >= limit else None,
        )


# ── Alchemy Provider ──────────────────────────────────────────────────────────


class AlchemyTransfersProvider:
    """Asset transfers (native, ERC-20/721/1155) for one network."""

    source = DataSource.ALCHEMY

    def __init__(
        self,
        api_key: str,
        network: str = "eth-mainnet",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = f"https://{network}.g.alchemy.com/v2/{api_key}"
        self.transport = transport

    async def _rpc(self, client: httpx.AsyncClient, request_id: int, params: dict) -> dict:
        try:
            resp = await client.post(self.url, json={
                "jsonrpc": "2.0",
                "id": request_id,
                "method": "alchemy_getAssetTransfers",
                "params": [params],
            })
        except httpx.HTTPError as e:
            raise UpstreamError(self.source.value, 502, str(e)) from e
        if not resp.is_success:
            raise UpstreamError(self.source.value, resp.status_code, resp.text)
        data = resp.json()
        if data.get("error"):
            raise UpstreamError(self.source.value, 400, data["error"])
        return data.get("result") or {}

    async def _fetch_direction(
        self, client: httpx.AsyncClient, direction: str, address: str
    ) -> list[dict]:
        transfers: list[dict] = []
        page_key: Optional[str] = None
        for request_id in range(1, ALCHEMY_MAX_REQUESTS + 1):
            params: dict[str, Any] = {
                direction: address,
                "fromBlock": "0x0",
                "toBlock": "latest",
                "category": ALCHEMY_TRANSFER_CATEGORIES,
                "withMetadata": True,
                "excludeZeroValue": False,
                "maxCount": "0x3e8",
            }
            if page_key:
                params["pageKey"] = page_key
            result = await self._rpc(client, request_id, params)
            batch = result.get("transfers") or []
            transfers.extend(batch)
            page_key = result.get("pageKey")
            if not page_key or not batch:
                break
        else:
            logger.warning(
                "alchemy_request_cap_reached",
                address=address,
                direction=direction,
                cap=ALCHEMY_MAX_REQUESTS,
            )
        return transfers

    async def fetch_transfers(self, address: str) -> list[AssetTransfer]:
        async with httpx.AsyncClient(transport=self.transport, timeout=30) as client:
            outgoing = await self._fetch_direction(client, "fromAddress", address)
            incoming = await self._fetch_direction(client, "toAddress", address)

        seen: set[tuple] = set()
        transfers: list[AssetTransfer] = []
        for raw in outgoing + incoming:
            transfer = transform_alchemy_transfer(raw)
            key = (
                transfer.transaction_hash,
                transfer.from_address,
                transfer.to_address,
                transfer.contract_address,
                transfer.token_id,
            )
            if key in seen:
                continue
            seen.add(key)
            transfers.append(transfer)
        return transfers


# ── Factory ───────────────────────────────────────────────────────────────────


def get_indexer(source: str, settings: Settings, chain: str = "ethereum") -> IndexerProvider:
    if source == DataSource.DUNE.value:
        if not settings.dune_api_key:
            raise PermissionError("DUNE_API_KEY is not set.")
        return DuneSimProvider(settings.dune_api_key)
    if source == DataSource.ETHERSCAN.value:
        return EtherscanProvider(settings.etherscan_api_key or "", chain)
    raise ValueError(f"Unsupported transaction source: {source}")


def get_transfers_provider(settings: Settings) -> Optional[AlchemyTransfersProvider]:
    if not settings.alchemy_api_key:
        return None
    return AlchemyTransfersProvider(settings.alchemy_api_key)
