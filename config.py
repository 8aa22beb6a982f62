import os
from typing import Optional

from pydantic import BaseModel

DEFAULT_DATABASE_URL = "sqlite:///./wallet_character.db"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    return int(raw) if raw else default


class Settings(BaseModel):
    """Runtime configuration, read once at startup and passed down."""

    database_url: str = DEFAULT_DATABASE_URL
    dune_api_key: Optional[str] = None
    alchemy_api_key: Optional[str] = None
    etherscan_api_key: Optional[str] = None
    ai_provider: str = "none"
    log_level: str = "INFO"
    log_format: str = "console"
    sync_max_transactions: int = 10_000
    sync_batch_size: int = 100
    character_tx_limit: int = 10_000
    host: str = "0.0.0.0"
    port: int = 8000
    app_env: str = "development"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            database_url=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
            dune_api_key=os.getenv("DUNE_API_KEY") or None,
            alchemy_api_key=os.getenv("ALCHEMY_API_KEY") or None,
            etherscan_api_key=os.getenv("ETHERSCAN_API_KEY") or None,
            ai_provider=os.getenv("AI_PROVIDER", "none").lower(),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "console").lower(),
            sync_max_transactions=_env_int("SYNC_MAX_TRANSACTIONS", 10_000),
            sync_batch_size=_env_int("SYNC_BATCH_SIZE", 100),
            character_tx_limit=_env_int("CHARACTER_TX_LIMIT", 10_000),
            host=os.getenv("HOST", "0.0.0.0"),
            port=_env_int("PORT", 8000),
            app_env=os.getenv("APP_ENV", "development"),
        )

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"
