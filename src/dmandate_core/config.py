"""Canonical configuration surface for the mandate payment processor."""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings

from .exceptions import ConfigurationError

DEFAULT_PROGRAM_ID = "BXXJENjyLn4ZGYfkDpSxZ6Vt7TcxW7BQJgWaGiQGbfed"
DEFAULT_RPC_URL = "http://localhost:8899"
DEFAULT_KEYPAIR_PATH = "~/.config/solana/id.json"

# Cluster name -> RPC endpoint, shared with the CLI's network setting
CLUSTER_URLS = {
    "mainnet": "https://api.mainnet-beta.solana.com",
    "testnet": "https://api.testnet.solana.com",
    "devnet": "https://api.devnet.solana.com",
    "localnet": DEFAULT_RPC_URL,
}


class ProcessorSettings(BaseSettings):
    """Mandate processor configuration."""

    # How often to check for payable mandates (milliseconds)
    check_interval_ms: int = Field(default=60_000, gt=0)

    # Solana connection
    rpc_url: str = DEFAULT_RPC_URL
    commitment: Literal["processed", "confirmed", "finalized"] = "confirmed"
    rpc_timeout_seconds: float = Field(default=30.0, gt=0)
    confirm_timeout_seconds: float = Field(default=60.0, gt=0)

    # Signing credential (solana-keygen JSON array)
    keypair_path: str = DEFAULT_KEYPAIR_PATH

    # Program ID of the dmandate program
    program_id: str = DEFAULT_PROGRAM_ID

    # Maximum number of mandates to process in one pass
    batch_size: int = Field(default=100, ge=1)

    # Seconds before the exact due time at which a mandate is considered payable
    buffer_seconds: int = 60

    # Delay between two payment submissions within a pass (milliseconds)
    pacing_delay_ms: int = Field(default=500, ge=0)

    # Logging
    log_level: Literal["debug", "info", "warning", "error"] = "info"
    log_json: bool = False
    log_file: Optional[str] = "mandate-processor.log"

    # Notifications on successful payments
    enable_notifications: bool = False
    notification_webhook_url: str = ""
    notification_webhook_secret: str = ""

    class Config:
        env_prefix = "DMANDATE_"
        env_file = ".env"
        extra = "ignore"

    @field_validator("buffer_seconds")
    @classmethod
    def validate_buffer(cls, v: int) -> int:
        if v < 0:
            raise ValueError("buffer_seconds must be non-negative")
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v):
        """Accept DEBUG/Info/warn spellings from the environment."""
        if isinstance(v, str):
            v = v.strip().lower()
            if v == "warn":
                return "warning"
        return v

    @field_validator("log_file", mode="before")
    @classmethod
    def empty_log_file_disables(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def check_interval_seconds(self) -> float:
        return self.check_interval_ms / 1000.0

    @property
    def pacing_delay_seconds(self) -> float:
        return self.pacing_delay_ms / 1000.0

    @property
    def expanded_keypair_path(self) -> Path:
        return Path(self.keypair_path).expanduser()


def build_settings(env_file: str | None = None, **overrides) -> ProcessorSettings:
    """Build settings, converting validation failures to ConfigurationError."""
    if env_file:
        overrides["_env_file"] = Path(env_file)
    try:
        return ProcessorSettings(**overrides)
    except ValidationError as e:
        errors = e.errors()
        first = errors[0] if errors else {}
        setting = ".".join(str(part) for part in first.get("loc", ()))
        raise ConfigurationError(
            f"Invalid configuration: {first.get('msg', str(e))}",
            setting=setting or None,
            details={"errors": len(errors)},
        ) from e


@lru_cache
def load_settings(env_file: str | None = None) -> ProcessorSettings:
    """Load ProcessorSettings once per process."""
    return build_settings(env_file)
