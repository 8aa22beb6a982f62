import io
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Literal, Optional

import structlog
from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from fastmcp import FastMCP

load_dotenv()

from agent import CharacterNarrator
from character_engine import generate_character
from config import Settings
from exports import to_csv, to_excel
from indexers import (
    AlchemyTransfersProvider,
    DuneSimProvider,
    IndexerProvider,
    UpstreamError,
    get_indexer,
    get_transfers_provider,
)
from log_config import setup_logging
from models import (
    CharacterResponse,
    HealthResponse,
    SyncRequest,
    SyncResponse,
    SyncStatusResponse,
    TransactionFilters,
)
from store import StoreError, TransactionStore
from utils import normalize_evm_address
from wallet_sync import WalletSyncer, sync_status

logger = structlog.get_logger(__name__)

VERSION = "1.0.0"


# ── MCP Server (mounted at /mcp) ─────────────────────────────────────────────

mcp = FastMCP(
    name="Wallet Character Agent",
    instructions=(
        "Turns an EVM wallet's on-chain history into an RPG character. Provide a "
        "wallet address that has already been synced and get its class, rank, six "
        "attributes and a short backstory."
    ),
)


@mcp.tool()
async def generate_character_mcp(wallet: str) -> dict:
    """
    Generate the RPG character for a synced wallet.

    Args:
        wallet: Public EVM wallet address (0x...).

    Returns:
        Character sheet with class, rank, attributes, statistics and description.
    """
    try:
        address = normalize_evm_address(wallet)
    except ValueError as e:
        return {"error": str(e)}

    character = build_character(
        address, app.state.store, app.state.narrator, app.state.settings
    )
    if character is None:
        return {"error": "No transactions found for this wallet. Sync it first."}
    return character.model_dump(mode="json")


mcp_app = mcp.http_app(path="/")


# ── Lifespan ──────────────────────────────────────────────────────────────────


def _build_indexer(settings: Settings) -> Optional[IndexerProvider]:
    if settings.dune_api_key:
        return get_indexer("dune", settings)
    if settings.etherscan_api_key:
        return get_indexer("etherscan", settings)
    return None


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = Settings.from_env()
    setup_logging(settings)

    store = TransactionStore.from_url(settings.database_url)
    store.create_schema()

    indexer = _build_indexer(settings)
    transfers = get_transfers_provider(settings)
    if indexer is None:
        logger.warning("wallet_sync_disabled", reason="no DUNE_API_KEY or ETHERSCAN_API_KEY")

    try:
        narrator = CharacterNarrator(settings)
    except Exception as e:
        logger.warning("ai_narration_disabled", error=str(e))
        narrator = CharacterNarrator(settings.model_copy(update={"ai_provider": "none"}))

    app.state.settings = settings
    app.state.store = store
    app.state.narrator = narrator
    app.state.dune = indexer if isinstance(indexer, DuneSimProvider) else None
    app.state.transfers = transfers
    app.state.syncer = (
        WalletSyncer(
            store,
            indexer,
            transfers,
            batch_size=settings.sync_batch_size,
            max_transactions=settings.sync_max_transactions,
        )
        if indexer
        else None
    )
    logger.info("service_ready", version=VERSION, source=indexer.source.value if indexer else None)
    async with mcp_app.lifespan(app):
        yield
    store.engine.dispose()
    logger.info("service_stopped")


# ── Dependencies ──────────────────────────────────────────────────────────────


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_store(request: Request) -> TransactionStore:
    return request.app.state.store


def get_narrator(request: Request) -> CharacterNarrator:
    return request.app.state.narrator


def get_syncer(request: Request) -> Optional[WalletSyncer]:
    return request.app.state.syncer


def get_dune(request: Request) -> Optional[DuneSimProvider]:
    return request.app.state.dune


def get_transfers(request: Request) -> Optional[AlchemyTransfersProvider]:
    return request.app.state.transfers


# ── App ───────────────────────────────────────────────────────────────────────

app = FastAPI(
    title="Wallet Character Agent",
    description=(
        "Turns an EVM wallet's transaction history into an RPG character.\n\n"
        "Sync a wallet (`/wallet-sync`) to pull its history from Dune Sim or "
        "Etherscan into the local database, then request its character "
        "(`/character`): one of eight classes, a rank from D to S, six 0-5 "
        "attributes and a short backstory.\n\n"
        "Exposes **REST** and **MCP** (`/mcp`) endpoints."
    ),
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.mount("/mcp", mcp_app)


def _error(status_code: int, message: str, details: Any = None) -> JSONResponse:
    content: dict[str, Any] = {"error": message}
    if details is not None:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


MISSING_WALLET = "Missing wallet address"


def build_character(
    address: str,
    store: TransactionStore,
    narrator: CharacterNarrator,
    settings: Settings,
) -> Optional[CharacterResponse]:
    """Generate and narrate the character for a stored wallet, None if it has no history."""
    transactions = store.get_transactions(
        TransactionFilters(wallet_address=address, limit=settings.character_tx_limit)
    )
    if not transactions:
        return None

    character = generate_character(address, transactions)
    character.description = narrator.describe(character)
    return CharacterResponse(
        **character.model_dump(),
        generated_at=datetime.now(timezone.utc),
    )


# ── Info ──────────────────────────────────────────────────────────────────────


@app.get("/", tags=["Info"])
def root(request: Request):
    base = str(request.base_url).rstrip("/")
    return {
        "name": "Wallet Character Agent",
        "version": VERSION,
        "endpoints": {
            "docs": f"{base}/docs",
            "health": f"{base}/health",
            "character": f"{base}/character",
            "wallet_sync": f"{base}/wallet-sync",
            "transactions": f"{base}/transactions",
            "transactions_all": f"{base}/transactions/all",
            "transfers": f"{base}/transfers",
            "mcp": f"{base}/mcp/",
        },
    }


@app.get("/health", response_model=HealthResponse, tags=["Info"])
def health():
    return HealthResponse(status="ok", version=VERSION)


# ── Core: Character ───────────────────────────────────────────────────────────


@app.get("/character", tags=["Character"])
def get_character(
    wallet: Optional[str] = Query(default=None, description="EVM wallet address (0x...)"),
    format: Literal["json", "csv", "excel"] = Query(
        default="json",
        description="Output format: json (default) | csv | excel",
    ),
    store: TransactionStore = Depends(get_store),
    narrator: CharacterNarrator = Depends(get_narrator),
    settings: Settings = Depends(get_settings),
):
    """
    Generate the RPG character for a wallet from its stored transactions.

    The wallet must have been synced first. Testnet activity is ignored.
    """
    if not wallet:
        return _error(400, MISSING_WALLET)
    try:
        address = normalize_evm_address(wallet)
    except ValueError as e:
        return _error(422, str(e))

    character = build_character(address, store, narrator, settings)
    if character is None:
        return _error(404, "No transactions found for this wallet. Sync it first.")

    short = address[:12]

    if format == "csv":
        return StreamingResponse(
            content=io.BytesIO(to_csv(character)),
            media_type="text/csv",
            headers={
                "Content-Disposition": f'attachment; filename="character_{short}.csv"'
            },
        )

    if format == "excel":
        return StreamingResponse(
            content=io.BytesIO(to_excel(character)),
            media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            headers={
                "Content-Disposition": f'attachment; filename="character_{short}.xlsx"'
            },
        )

    return character


# ── Wallet Sync ───────────────────────────────────────────────────────────────


@app.post("/wallet-sync", response_model=SyncResponse, tags=["Wallet"])
async def sync_wallet(
    req: SyncRequest,
    syncer: Optional[WalletSyncer] = Depends(get_syncer),
):
    """Pull a wallet's full transaction history into the database."""
    if not req.wallet:
        return _error(400, MISSING_WALLET)
    if syncer is None:
        return _error(503, "No transaction indexer configured. Set DUNE_API_KEY or ETHERSCAN_API_KEY.")

    try:
        result = await syncer.sync(req.wallet, req.label)
    except ValueError as e:
        return _error(422, str(e))
    except UpstreamError as e:
        return _error(500, f"Failed to fetch transactions from {e.source}", e.details)
    except PermissionError as e:
        return _error(500, "Indexer rejected the request", str(e))
    except StoreError as e:
        return _error(500, "Failed to store transactions", str(e))

    message = f"Successfully synced {result.transactions_synced} transactions"
    if result.capped:
        message += f" (stopped at the {syncer.max_transactions} transaction limit)"
    return SyncResponse(
        success=True,
        wallet=result.wallet,
        transactions_synced=result.transactions_synced,
        total_in_database=result.total_in_database,
        message=message,
    )


@app.get("/wallet-sync", response_model=SyncStatusResponse, tags=["Wallet"])
def wallet_sync_status(
    wallet: Optional[str] = Query(default=None, description="EVM wallet address (0x...)"),
    store: TransactionStore = Depends(get_store),
):
    if not wallet:
        return _error(400, MISSING_WALLET)
    try:
        return sync_status(store, wallet)
    except ValueError as e:
        return _error(422, str(e))


# ── Indexer Proxies ───────────────────────────────────────────────────────────


@app.get("/transactions", tags=["Indexer"])
async def dune_transactions(
    wallet: Optional[str] = Query(default=None),
    limit: int = Query(default=100, ge=1, le=1000),
    offset: Optional[str] = Query(default=None, description="Cursor from a previous page"),
    chain_ids: Optional[str] = Query(default=None, description="Comma-separated chain ids"),
    dune: Optional[DuneSimProvider] = Depends(get_dune),
):
    """One raw page of Dune Sim transaction history."""
    if not wallet:
        return _error(400, MISSING_WALLET)
    if dune is None:
        return _error(503, "DUNE_API_KEY is not configured")
    try:
        address = normalize_evm_address(wallet)
    except ValueError as e:
        return _error(422, str(e))
    try:
        return await dune.fetch_raw_page(address, limit, offset, chain_ids)
    except UpstreamError as e:
        return _error(e.status_code, "Failed to fetch transactions from Dune API", e.details)


@app.get("/transactions/all", tags=["Indexer"])
async def dune_transactions_all(
    wallet: Optional[str] = Query(default=None),
    chain_ids: Optional[str] = Query(default=None, description="Comma-separated chain ids"),
    dune: Optional[DuneSimProvider] = Depends(get_dune),
    settings: Settings = Depends(get_settings),
):
    """Every page of Dune Sim history for a wallet, up to the sync cap."""
    if not wallet:
        return _error(400, MISSING_WALLET)
    if dune is None:
        return _error(503, "DUNE_API_KEY is not configured")
    try:
        address = normalize_evm_address(wallet)
    except ValueError as e:
        return _error(422, str(e))

    if chain_ids:
        dune = DuneSimProvider(dune.api_key, chain_ids, dune.transport)
    try:
        page = await dune.fetch_all(
            address, settings.sync_batch_size, settings.sync_max_transactions
        )
    except UpstreamError as e:
        return _error(e.status_code, "Failed to fetch transactions from Dune API", e.details)

    return {
        "wallet": address,
        "total": len(page.transactions),
        "capped": page.next_offset is not None,
        "transactions": [tx.model_dump(mode="json") for tx in page.transactions],
    }


@app.get("/transfers", tags=["Indexer"])
async def asset_transfers(
    wallet: Optional[str] = Query(default=None),
    transfers: Optional[AlchemyTransfersProvider] = Depends(get_transfers),
):
    """Native, ERC-20, ERC-721 and ERC-1155 transfers from Alchemy, both directions."""
    if not wallet:
        return _error(400, MISSING_WALLET)
    if transfers is None:
        return _error(503, "ALCHEMY_API_KEY is not configured")
    try:
        address = normalize_evm_address(wallet)
    except ValueError as e:
        return _error(422, str(e))
    try:
        items = await transfers.fetch_transfers(address)
    except UpstreamError as e:
        return _error(500, "Failed to fetch transfers from Alchemy", e.details)

    return {
        "wallet": address,
        "total": len(items),
        "transfers": [t.model_dump(mode="json") for t in items],
    }


# ── Entry point ───────────────────────────────────────────────────────────────

if __name__ == "__main__":
    import uvicorn

    settings = Settings.from_env()
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
    )
