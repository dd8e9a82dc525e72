"""Configuration management for the ledger gateway."""

from __future__ import annotations

import logging
import os
import re
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field, SecretStr, ValidationError, field_validator

_config_logger = logging.getLogger(__name__)

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


class LoggingSettings(BaseModel):
    level: str = Field(default="INFO", description="Python logging level name")
    file: str | None = Field(default=None, description="Optional log file path")


class LedgerSettings(BaseModel):
    rpc_url: str = Field(default="http://localhost:8545")
    network_id: int = Field(default=1337, ge=1)
    contract_address: str | None = Field(
        default=None,
        description="SimpleStorage contract address. Absence is a reported state, not a fault.",
    )
    rpc_timeout_seconds: float = Field(default=10.0, gt=0, le=300)
    receipt_timeout_seconds: float = Field(default=60.0, gt=0, le=3600)
    receipt_poll_interval_seconds: float = Field(default=1.0, gt=0, le=60)

    @field_validator("contract_address")
    @classmethod
    def _validate_contract_address(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        if not value:
            return None
        if not _ADDRESS_RE.match(value):
            raise ValueError(f"contract address must be a 0x-prefixed 20-byte hex string: {value!r}")
        return value


class SignerSettings(BaseModel):
    private_key: SecretStr | None = Field(default=None, description="Hex encoded signing key")


class StorageSettings(BaseModel):
    sqlite_path: str = Field(default="./data/ledger_gateway.sqlite")
    sqlite_wal: bool = Field(default=True)


class HealthSettings(BaseModel):
    probe_timeout_seconds: float = Field(default=5.0, gt=0, le=120)


class ReconcilerSettings(BaseModel):
    enabled: bool = Field(default=False)
    interval_seconds: float = Field(default=60.0, ge=1, le=86_400)
    lookback_blocks: int = Field(default=100, ge=1, le=100_000)


class ServerSettings(BaseModel):
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8000, ge=1024, le=65535)


class Settings(BaseModel):
    server: ServerSettings = Field(default_factory=ServerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    ledger: LedgerSettings = Field(default_factory=LedgerSettings)
    signer: SignerSettings = Field(default_factory=SignerSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    health: HealthSettings = Field(default_factory=HealthSettings)
    reconciler: ReconcilerSettings = Field(default_factory=ReconcilerSettings)


ENV_KEYS = {
    "host": "GATEWAY_HOST",
    "port": "GATEWAY_PORT",
    "log_level": "LOG_LEVEL",
    "log_file": "LOG_FILE",
    "rpc_url": "LEDGER_RPC_URL",
    "network_id": "LEDGER_NETWORK_ID",
    "contract_address": "CONTRACT_ADDRESS",
    "rpc_timeout": "LEDGER_RPC_TIMEOUT_SECONDS",
    "receipt_timeout": "RECEIPT_TIMEOUT_SECONDS",
    "receipt_poll_interval": "RECEIPT_POLL_INTERVAL_SECONDS",
    "private_key": "SIGNER_PRIVATE_KEY",
    "sqlite_path": "SQLITE_PATH",
    "sqlite_wal": "SQLITE_WAL",
    "probe_timeout": "HEALTH_PROBE_TIMEOUT_SECONDS",
    "reconciler_enabled": "RECONCILER_ENABLED",
    "reconciler_interval": "RECONCILER_INTERVAL_SECONDS",
    "reconciler_lookback": "RECONCILER_LOOKBACK_BLOCKS",
}

_TRUE_VALUES = frozenset({"1", "true", "yes"})


def _project_root() -> Path:
    return Path(__file__).resolve().parents[2]


def _resolve_path(path: str) -> str:
    candidate = Path(path)
    root = _project_root().resolve()
    if candidate.is_absolute():
        resolved = candidate.resolve()
    else:
        resolved = (root / candidate).resolve()
    if not resolved.is_relative_to(root):
        raise ValueError(f"Path traversal detected: '{path}' resolves outside project root")
    return str(resolved)


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        _config_logger.warning(
            "Invalid integer value for %s: %r, using default %d", key, value, default
        )
        return default


def _env_float(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        _config_logger.warning(
            "Invalid float value for %s: %r, using default %s", key, value, default
        )
        return default


def load_settings() -> Settings:
    """Load configuration and cache the result."""

    return _load_settings_cached()


@lru_cache(maxsize=1)
def _load_settings_cached() -> Settings:
    load_dotenv(dotenv_path=_project_root() / ".env")
    log_file_env = os.getenv(ENV_KEYS["log_file"])
    private_key_env = os.getenv(ENV_KEYS["private_key"], "").strip()

    settings_data: dict[str, object] = {
        "server": {
            "host": os.getenv(ENV_KEYS["host"], ServerSettings().host),
            "port": _env_int(ENV_KEYS["port"], ServerSettings().port),
        },
        "logging": {
            "level": os.getenv(ENV_KEYS["log_level"], LoggingSettings().level),
            "file": _resolve_path(log_file_env) if log_file_env else None,
        },
        "ledger": {
            "rpc_url": os.getenv(ENV_KEYS["rpc_url"], LedgerSettings().rpc_url),
            "network_id": _env_int(ENV_KEYS["network_id"], LedgerSettings().network_id),
            "contract_address": os.getenv(ENV_KEYS["contract_address"]),
            "rpc_timeout_seconds": _env_float(
                ENV_KEYS["rpc_timeout"],
                LedgerSettings().rpc_timeout_seconds,
            ),
            "receipt_timeout_seconds": _env_float(
                ENV_KEYS["receipt_timeout"],
                LedgerSettings().receipt_timeout_seconds,
            ),
            "receipt_poll_interval_seconds": _env_float(
                ENV_KEYS["receipt_poll_interval"],
                LedgerSettings().receipt_poll_interval_seconds,
            ),
        },
        "signer": {
            "private_key": private_key_env or None,
        },
        "storage": {
            "sqlite_path": _resolve_path(
                os.getenv(ENV_KEYS["sqlite_path"], StorageSettings().sqlite_path)
            ),
            "sqlite_wal": _env_bool(ENV_KEYS["sqlite_wal"], StorageSettings().sqlite_wal),
        },
        "health": {
            "probe_timeout_seconds": _env_float(
                ENV_KEYS["probe_timeout"],
                HealthSettings().probe_timeout_seconds,
            ),
        },
        "reconciler": {
            "enabled": _env_bool(
                ENV_KEYS["reconciler_enabled"],
                ReconcilerSettings().enabled,
            ),
            "interval_seconds": _env_float(
                ENV_KEYS["reconciler_interval"],
                ReconcilerSettings().interval_seconds,
            ),
            "lookback_blocks": _env_int(
                ENV_KEYS["reconciler_lookback"],
                ReconcilerSettings().lookback_blocks,
            ),
        },
    }

    try:
        settings = Settings.model_validate(settings_data)
    except ValidationError as exc:
        raise RuntimeError(f"Invalid configuration: {exc}") from exc

    Path(settings.storage.sqlite_path).parent.mkdir(parents=True, exist_ok=True)

    return settings
