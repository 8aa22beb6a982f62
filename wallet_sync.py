from typing import Optional

import structlog
from pydantic import BaseModel

from indexers import AlchemyTransfersProvider, IndexerProvider, UpstreamError
from models import SyncStatus, SyncStatusResponse
from store import StoreError, TransactionStore
from utils import normalize_evm_address

logger = structlog.get_logger(__name__)


class SyncResult(BaseModel):
    wallet: str
    transactions_synced: int
    total_in_database: int
    transfers_synced: int = 0
    capped: bool = False


class WalletSyncer:
    """Pulls a wallet's history from an indexer into the store."""

    def __init__(
        self,
        store: TransactionStore,
        provider: IndexerProvider,
        transfers_provider: Optional[AlchemyTransfersProvider] = None,
        batch_size: int = 100,
        max_transactions: int = 10_000,
    ):
        self.store = store
        self.provider = provider
        self.transfers_provider = transfers_provider
        self.batch_size = batch_size
        self.max_transactions = max_transactions

    async def sync(self, wallet: str, label: Optional[str] = None) -> SyncResult:
        wallet = normalize_evm_address(wallet)
        log = logger.bind(wallet=wallet, source=self.provider.source.value)

        # ── Register wallet ───────────────────────────────────────────────
        self.store.upsert_tracked_wallet(wallet, label)
        self.store.update_wallet_sync_status(wallet, SyncStatus.SYNCING)
        log.info("sync_started")

        total_synced = 0
        highest_block = 0
        capped = False
        offset: Optional[str] = None

        try:
            # ── Page through the indexer ──────────────────────────────────
            while True:
                page = await self.provider.fetch_page(wallet, self.batch_size, offset)
                if not page.transactions:
                    break

                if not self.store.insert_transactions(page.transactions):
                    raise StoreError("Failed to insert transactions to database")
                if page.logs:
                    self.store.insert_transaction_logs(page.logs)

                total_synced += len(page.transactions)
                highest_block = max(
                    highest_block, max(tx.block_number for tx in page.transactions)
                )
                log.info("sync_progress", synced=total_synced)

                offset = page.next_offset
                if not offset:
                    break
                if total_synced >= self.max_transactions:
                    log.warning("sync_cap_reached", cap=self.max_transactions)
                    capped = True
                    break

            transfers_synced = await self._sync_transfers(wallet)

            # ── Finish ────────────────────────────────────────────────────
            self.store.update_wallet_sync_status(
                wallet, SyncStatus.COMPLETED, highest_block or None
            )
            self.store.refresh_wallet_totals(wallet)
        except Exception:
            self.store.update_wallet_sync_status(wallet, SyncStatus.ERROR)
            log.exception("sync_failed", synced=total_synced)
            raise

        final_count = self.store.get_transaction_count(wallet)
        log.info("sync_completed", synced=total_synced, total=final_count)
        return SyncResult(
            wallet=wallet,
            transactions_synced=total_synced,
            total_in_database=final_count,
            transfers_synced=transfers_synced,
            capped=capped,
        )

    async def _sync_transfers(self, wallet: str) -> int:
        if self.transfers_provider is None:
            return 0
        try:
            transfers = await self.transfers_provider.fetch_transfers(wallet)
            if not self.store.insert_asset_transfers(transfers):
                raise StoreError("Failed to insert asset transfers")
        except (UpstreamError, StoreError, ValueError) as e:
            logger.warning("transfer_sync_skipped", wallet=wallet, error=str(e))
            return 0
        return len(transfers)

    def status(self, wallet: str) -> SyncStatusResponse:
        return sync_status(self.store, wallet)


def sync_status(store: TransactionStore, wallet: str) -> SyncStatusResponse:
    """Stored transaction count, tracked-wallet status and stats for one wallet."""
    wallet = normalize_evm_address(wallet)
    count = store.get_transaction_count(wallet)
    tracked = store.get_tracked_wallet(wallet)
    return SyncStatusResponse(
        wallet=wallet,
        transaction_count=count,
        sync_status=tracked.sync_status if tracked else None,
        stats=store.get_wallet_stats(wallet),
        synced=count > 0,
    )
