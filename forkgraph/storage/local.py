"""Content-addressed blob store on the local filesystem.

Each blob is written to ``<root>/<cid>`` where the cid is the SHA-256 of its
bytes, so writing the same document twice yields the same identifier and a
read returns the exact bytes that were stored.
"""

from __future__ import annotations

import hashlib
import logging
import re
from pathlib import Path
from typing import Optional

from forkgraph.config import settings
from forkgraph.errors import CollaboratorError

logger = logging.getLogger(__name__)

_CID_RE = re.compile(r"^sha256-[0-9a-f]{64}$")


class LocalContentStore:
    def __init__(self, root: Optional[Path] = None) -> None:
        self.root = Path(root) if root is not None else settings.blob_dir

    def put(self, data: bytes, name: str = "") -> str:
        """Store *data* and return its content identifier."""
        cid = "sha256-" + hashlib.sha256(data).hexdigest()
        self.root.mkdir(parents=True, exist_ok=True)
        path = self.root / cid
        if not path.exists():
            path.write_bytes(data)
        logger.debug("Stored %d bytes (%s) as %s", len(data), name or "blob", cid)
        return cid

    def get(self, cid: str) -> bytes:
        """Return the bytes stored under *cid*.

        Raises:
            CollaboratorError: If *cid* is malformed or unknown.
        """
        if not _CID_RE.match(cid):
            raise CollaboratorError(f"Not a local content identifier: {cid!r}")
        path = self.root / cid
        if not path.exists():
            raise CollaboratorError(f"Content not found: {cid!r}")
        return path.read_bytes()
