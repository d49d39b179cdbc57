"""
Central configuration loader.
Reads from environment variables (via .env); validates typed values.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


# ---------------------------------------------------------------------------
# Load .env from repo root (if present)
# ---------------------------------------------------------------------------
_REPO_ROOT = Path(__file__).resolve().parents[1]
load_dotenv(_REPO_ROOT / ".env")

DEFAULT_SYNC_KEY = "patient-registry-sync"
DEFAULT_HISTORY_KEY = "query-history"


def _get(key: str, default: Optional[str] = None, required: bool = False) -> Optional[str]:
    val = os.getenv(key, default)
    if required and not val:
        raise EnvironmentError(f"Missing required environment variable: {key}")
    return val


def _get_bool(key: str, default: str) -> bool:
    return (_get(key, default) or "").lower() in ("1", "true", "yes")


# ---------------------------------------------------------------------------
# Registry (database, change signal, query console)
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class RegistryConfig:
    db_path: Path
    sync_key: str = DEFAULT_SYNC_KEY
    sync_poll_seconds: float = 1.0
    history_key: str = DEFAULT_HISTORY_KEY
    history_size: int = 10


def get_registry_config() -> RegistryConfig:
    raw_path = _get("REGISTRY_DB_PATH")
    return RegistryConfig(
        db_path=Path(raw_path) if raw_path else get_db_path(),
        sync_key=_get("REGISTRY_SYNC_KEY", default=DEFAULT_SYNC_KEY),  # type: ignore[arg-type]
        sync_poll_seconds=float(_get("REGISTRY_SYNC_POLL_SECONDS", default="1.0")),  # type: ignore[arg-type]
        history_key=_get("REGISTRY_HISTORY_KEY", default=DEFAULT_HISTORY_KEY),  # type: ignore[arg-type]
        history_size=int(_get("REGISTRY_QUERY_HISTORY_SIZE", default="10")),  # type: ignore[arg-type]
    )


# ---------------------------------------------------------------------------
# HTTP server
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class ServerConfig:
    host: str
    port: int
    reload: bool


def get_server_config() -> ServerConfig:
    return ServerConfig(
        host=_get("SERVER_HOST", default="0.0.0.0"),  # type: ignore[arg-type]
        port=int(_get("SERVER_PORT", default="8000")),  # type: ignore[arg-type]
        reload=_get_bool("SERVER_RELOAD", default="false"),
    )


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------
def get_db_path() -> Path:
    return _REPO_ROOT / "data" / "patient_registry.db"
