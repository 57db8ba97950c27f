"""Centralised settings for forkgraph.

All runtime configuration is resolved here in one place.  Values can be
overridden via environment variables or a `.env` file in the project root
(loaded automatically when this module is imported).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root (two levels up from this file)
_env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_env_path, override=False)


@dataclass
class Settings:
    # ------------------------------------------------------------------
    # Workspace / storage
    # ------------------------------------------------------------------
    workspace_dir: Path = field(
        default_factory=lambda: Path(
            os.environ.get("FORKGRAPH_WORKSPACE", Path.home() / ".forkgraph")
        )
    )
    cli_config_dir: Path = field(
        default_factory=lambda: Path(
            os.environ.get("FORKGRAPH_CLI_DIR", Path.home() / ".forkgraph_cli")
        )
    )

    @property
    def db_path(self) -> Path:
        """Absolute path to the SQLite registry file."""
        return self.workspace_dir / "registry.db"

    @property
    def blob_dir(self) -> Path:
        """Directory used by the local content-addressed store."""
        return self.workspace_dir / "blobs"

    @property
    def schema_path(self) -> Path:
        """Absolute path to the schema SQL file bundled with the package."""
        return Path(__file__).resolve().parent / "db" / "schema.sql"

    # ------------------------------------------------------------------
    # Canvas defaults
    # ------------------------------------------------------------------
    default_model: str = field(
        default_factory=lambda: os.environ.get("DEFAULT_MODEL", "llama-3.1-8b-instant")
    )
    fork_offset_x: float = field(
        default_factory=lambda: float(os.environ.get("FORK_OFFSET_X", "450"))
    )
    fork_jitter_y: float = field(
        default_factory=lambda: float(os.environ.get("FORK_JITTER_Y", "200"))
    )

    # ------------------------------------------------------------------
    # Inference
    # ------------------------------------------------------------------
    groq_base_url: str = field(
        default_factory=lambda: os.environ.get(
            "GROQ_BASE_URL", "https://api.groq.com/openai/v1"
        )
    )
    groq_api_key: str = field(
        default_factory=lambda: os.environ.get("GROQ_API_KEY", "")
    )
    request_timeout: float = field(
        default_factory=lambda: float(os.environ.get("REQUEST_TIMEOUT", "60.0"))
    )

    # ------------------------------------------------------------------
    # Content-addressed storage
    # ------------------------------------------------------------------
    storage_backend: str = field(
        default_factory=lambda: os.environ.get("STORAGE_BACKEND", "local")
    )
    lighthouse_api_key: str = field(
        default_factory=lambda: os.environ.get("LIGHTHOUSE_API_KEY", "")
    )
    lighthouse_upload_url: str = field(
        default_factory=lambda: os.environ.get(
            "LIGHTHOUSE_UPLOAD_URL", "https://node.lighthouse.storage/api/v0/add"
        )
    )
    lighthouse_gateway: str = field(
        default_factory=lambda: os.environ.get(
            "LIGHTHOUSE_GATEWAY", "https://gateway.lighthouse.storage/ipfs"
        )
    )

    def ensure_workspace(self) -> None:
        """Create the workspace directory if it does not exist."""
        self.workspace_dir.mkdir(parents=True, exist_ok=True)


# Module-level singleton; import this everywhere:
#   from forkgraph.config import settings
settings = Settings()
