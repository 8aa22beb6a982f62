"""Relational storage for synced wallet data.

The engine is created by the caller and handed to ``TransactionStore``;
nothing in this module holds a global connection. Postgres and SQLite are
supported, both through their native ``ON CONFLICT`` inserts.
"""

from datetime import datetime, timezone
from typing import Optional, Sequence

import structlog
from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Float,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
    create_engine,
    func,
    select,
    update,
)
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from models import (
    AssetTransfer,
    DataSource,
    SyncStatus,
    TrackedWallet,
    Transaction,
    TransactionFilters,
    TransactionLog,
    WalletStats,
)
from utils import parse_wei

logger = structlog.get_logger(__name__)

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StoreError(Exception):
    """A write that is not safe to ignore failed."""


# ── Tables ────────────────────────────────────────────────────────────────────


class TransactionRow(Base):
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    hash = Column(String(66), nullable=False, unique=True)
    chain = Column(String(32), nullable=False, index=True)
    chain_id = Column(Integer, nullable=True)
    block_number = Column(BigInteger, nullable=False, default=0)
    block_hash = Column(String(66), nullable=True)
    block_time = Column(DateTime(timezone=True), nullable=False, index=True)
    transaction_index = Column(Integer, nullable=True)
    from_address = Column(String(42), nullable=False)
    to_address = Column(String(42), nullable=True)
    wallet_address = Column(String(42), nullable=True, index=True)
    value = Column(Text, nullable=False, default="0")
    nonce = Column(BigInteger, nullable=True)
    transaction_type = Column(String(16), nullable=True)
    gas_price = Column(Text, nullable=True)
    gas_used = Column(Text, nullable=True)
    effective_gas_price = Column(Text, nullable=True)
    gas_limit = Column(Text, nullable=True)
    success = Column(Boolean, nullable=False, default=True)
    input_data = Column(Text, nullable=True)
    data_source = Column(String(16), nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


class TransactionLogRow(Base):
    __tablename__ = "transaction_logs"
    __table_args__ = (UniqueConstraint("transaction_hash", "log_index"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    transaction_hash = Column(String(66), nullable=False, index=True)
    log_index = Column(Integer, nullable=False)
    contract_address = Column(String(42), nullable=False)
    data = Column(Text, nullable=True)
    topics = Column(JSON, default=list)
    block_number = Column(BigInteger, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=_utcnow)


class TrackedWalletRow(Base):
    __tablename__ = "tracked_wallets"

    id = Column(Integer, primary_key=True, autoincrement=True)
    address = Column(String(42), nullable=False, unique=True)
    label = Column(String(255), nullable=True)
    sync_status = Column(String(16), nullable=False, default=SyncStatus.PENDING.value)
    last_synced_at = Column(DateTime(timezone=True), nullable=True)
    last_synced_block = Column(BigInteger, nullable=True)
    total_transactions = Column(Integer, nullable=False, default=0)
    first_transaction_at = Column(DateTime(timezone=True), nullable=True)
    last_transaction_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


class AssetTransferRow(Base):
    __tablename__ = "asset_transfers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    # hash:from:to:contract:token_id; nullable columns can't carry the unique key
    transfer_key = Column(String(320), nullable=False, unique=True)
    transaction_hash = Column(String(66), nullable=False, index=True)
    from_address = Column(String(42), nullable=False)
    to_address = Column(String(42), nullable=False)
    asset_type = Column(String(8), nullable=False)
    contract_address = Column(String(42), nullable=True)
    token_id = Column(String(80), nullable=True)
    raw_amount = Column(Text, nullable=False, default="0")
    formatted_amount = Column(Float, nullable=True)
    decimals = Column(Integer, nullable=False, default=18)
    symbol = Column(String(64), nullable=True)
    name = Column(String(255), nullable=True)
    block_number = Column(BigInteger, nullable=False, default=0)
    block_time = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow)


def transfer_key(transfer: AssetTransfer) -> str:
    return ":".join([
        transfer.transaction_hash.lower(),
        transfer.from_address.lower(),
        transfer.to_address.lower(),
        (transfer.contract_address or "").lower(),
        transfer.token_id or "",
    ])


# ── Store ─────────────────────────────────────────────────────────────────────


class TransactionStore:
    """Upserts and queries for wallets, transactions, logs and transfers."""

    def __init__(self, engine: Engine):
        self.engine = engine
        self.SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)

    @classmethod
    def from_url(cls, database_url: str) -> "TransactionStore":
        if database_url.startswith("sqlite"):
            kwargs: dict = {"connect_args": {"check_same_thread": False}}
            if database_url in ("sqlite://", "sqlite:///:memory:"):
                kwargs["poolclass"] = StaticPool
            engine = create_engine(database_url, **kwargs)
        else:
            engine = create_engine(database_url, pool_pre_ping=True)
        return cls(engine)

    def create_schema(self) -> None:
        Base.metadata.create_all(self.engine)

    # ── Insert helpers ─────────────────────────────────────────────────────

    def _insert(self, table):
        dialect = self.engine.dialect.name
        if dialect == "postgresql":
            return postgresql.insert(table)
        if dialect == "sqlite":
            return sqlite.insert(table)
        raise StoreError(f"Unsupported database dialect: {dialect}")

    def _insert_ignoring_duplicates(
        self, table, rows: list[dict], index_elements: list[str]
    ) -> bool:
        if not rows:
            return True
        stmt = self._insert(table).on_conflict_do_nothing(index_elements=index_elements)
        try:
            with self.SessionLocal.begin() as session:
                session.execute(stmt, rows)
        except IntegrityError as e:
            logger.warning(
                "insert_rejected", table=table.name, rows=len(rows), error=str(e.orig)
            )
            return False
        except SQLAlchemyError as e:
            raise StoreError(f"Insert into {table.name} failed: {e}") from e
        return True

    # ── Tracked wallets ────────────────────────────────────────────────────

    def upsert_tracked_wallet(self, address: str, label: Optional[str] = None) -> TrackedWallet:
        address = address.lower()
        now = _utcnow()
        values = {
            "address": address,
            "label": label,
            "sync_status": SyncStatus.PENDING.value,
            "created_at": now,
            "updated_at": now,
        }
        changes = {"sync_status": SyncStatus.PENDING.value, "updated_at": now}
        if label is not None:
            changes["label"] = label

        stmt = self._insert(TrackedWalletRow.__table__).on_conflict_do_update(
            index_elements=["address"], set_=changes
        )
        try:
            with self.SessionLocal.begin() as session:
                session.execute(stmt, values)
        except SQLAlchemyError as e:
            raise StoreError(f"Upserting tracked wallet {address} failed: {e}") from e

        wallet = self.get_tracked_wallet(address)
        if wallet is None:
            raise StoreError(f"Tracked wallet {address} missing after upsert")
        return wallet

    def get_tracked_wallet(self, address: str) -> Optional[TrackedWallet]:
        with self.SessionLocal() as session:
            row = session.scalars(
                select(TrackedWalletRow).where(TrackedWalletRow.address == address.lower())
            ).first()
            if row is None:
                return None
            return TrackedWallet(
                address=row.address,
                label=row.label,
                sync_status=SyncStatus(row.sync_status),
                last_synced_at=row.last_synced_at,
                last_synced_block=row.last_synced_block,
                total_transactions=row.total_transactions,
                first_transaction_at=row.first_transaction_at,
                last_transaction_at=row.last_transaction_at,
                created_at=row.created_at,
                updated_at=row.updated_at,
            )

    def update_wallet_sync_status(
        self,
        address: str,
        status: SyncStatus,
        last_synced_block: Optional[int] = None,
    ) -> bool:
        now = _utcnow()
        changes: dict = {"sync_status": status.value, "updated_at": now}
        if last_synced_block:
            changes["last_synced_block"] = last_synced_block
            changes["last_synced_at"] = now

        try:
            with self.SessionLocal.begin() as session:
                result = session.execute(
                    update(TrackedWalletRow)
                    .where(TrackedWalletRow.address == address.lower())
                    .values(**changes)
                )
        except SQLAlchemyError as e:
            raise StoreError(f"Updating sync status for {address} failed: {e}") from e
        return result.rowcount > 0

    def refresh_wallet_totals(self, address: str) -> None:
        stats = self.get_wallet_stats(address)
        with self.SessionLocal.begin() as session:
            session.execute(
                update(TrackedWalletRow)
                .where(TrackedWalletRow.address == address.lower())
                .values(
                    total_transactions=stats.total_transactions,
                    first_transaction_at=stats.first_transaction,
                    last_transaction_at=stats.last_transaction,
                )
            )

    # ── Bulk inserts ───────────────────────────────────────────────────────

    def insert_transactions(self, transactions: Sequence[Transaction]) -> bool:
        rows = []
        for tx in transactions:
            row = tx.model_dump()
            row["data_source"] = tx.data_source.value
            rows.append(row)
        return self._insert_ignoring_duplicates(TransactionRow.__table__, rows, ["hash"])

    def insert_transaction_logs(self, logs: Sequence[TransactionLog]) -> bool:
        rows = [log.model_dump() for log in logs]
        return self._insert_ignoring_duplicates(
            TransactionLogRow.__table__, rows, ["transaction_hash", "log_index"]
        )

    def insert_asset_transfers(self, transfers: Sequence[AssetTransfer]) -> bool:
        rows = []
        for t in transfers:
            row = t.model_dump()
            row["asset_type"] = t.asset_type.value
            row["transfer_key"] = transfer_key(t)
            rows.append(row)
        return self._insert_ignoring_duplicates(
            AssetTransferRow.__table__, rows, ["transfer_key"]
        )

    # ── Queries ────────────────────────────────────────────────────────────

    def get_transactions(self, filters: Optional[TransactionFilters] = None) -> list[Transaction]:
        filters = filters or TransactionFilters()
        query = select(TransactionRow).order_by(
            TransactionRow.block_time.desc(), TransactionRow.hash
        )

        if filters.wallet_address:
            query = query.where(TransactionRow.wallet_address == filters.wallet_address.lower())
        if filters.chain:
            query = query.where(TransactionRow.chain == filters.chain)
        if filters.from_date:
            query = query.where(TransactionRow.block_time >= filters.from_date)
        if filters.to_date:
            query = query.where(TransactionRow.block_time <= filters.to_date)
        if filters.success is not None:
            query = query.where(TransactionRow.success == filters.success)
        if filters.offset:
            query = query.offset(filters.offset)
        if filters.limit:
            query = query.limit(filters.limit)

        with self.SessionLocal() as session:
            return [self._to_transaction(row) for row in session.scalars(query)]

    def get_transaction_count(self, wallet_address: str) -> int:
        with self.SessionLocal() as session:
            return session.scalar(
                select(func.count())
                .select_from(TransactionRow)
                .where(TransactionRow.wallet_address == wallet_address.lower())
            ) or 0

    def get_wallet_stats(self, wallet_address: str) -> WalletStats:
        wallet_address = wallet_address.lower()
        with self.SessionLocal() as session:
            rows = session.execute(
                select(
                    TransactionRow.success,
                    TransactionRow.gas_used,
                    TransactionRow.block_time,
                    TransactionRow.to_address,
                    TransactionRow.input_data,
                ).where(TransactionRow.wallet_address == wallet_address)
            ).all()

        if not rows:
            return WalletStats()

        successful = sum(1 for r in rows if r.success)
        times = [r.block_time for r in rows]
        contracts = {
            r.to_address for r in rows
            if r.to_address and r.input_data and r.input_data != "0x"
        }
        return WalletStats(
            total_transactions=len(rows),
            successful_transactions=successful,
            failed_transactions=len(rows) - successful,
            total_gas_used=str(sum(parse_wei(r.gas_used) for r in rows)),
            first_transaction=min(times),
            last_transaction=max(times),
            unique_contracts_interacted=len(contracts),
        )

    @staticmethod
    def _to_transaction(row: TransactionRow) -> Transaction:
        return Transaction(
            hash=row.hash,
            chain=row.chain,
            chain_id=row.chain_id,
            block_number=row.block_number,
            block_hash=row.block_hash,
            block_time=row.block_time,
            transaction_index=row.transaction_index,
            from_address=row.from_address,
            to_address=row.to_address,
            wallet_address=row.wallet_address,
            value=row.value,
            nonce=row.nonce,
            transaction_type=row.transaction_type,
            gas_price=row.gas_price,
            gas_used=row.gas_used,
            effective_gas_price=row.effective_gas_price,
            gas_limit=row.gas_limit,
            success=row.success,
            input_data=row.input_data,
            data_source=DataSource(row.data_source),
        )
