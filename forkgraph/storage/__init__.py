"""Content-addressed document storage.

Both stores expose ``put(data, name) -> cid`` and ``get(cid) -> bytes``.
``get_content_store()`` returns the backend selected by ``STORAGE_BACKEND``
(``local`` or ``lighthouse``).
"""

from __future__ import annotations

from typing import Protocol

from forkgraph.config import settings
from forkgraph.storage.lighthouse import LighthouseStore, gateway_url, shorten_cid
from forkgraph.storage.local import LocalContentStore


class ContentStore(Protocol):
    def put(self, data: bytes, name: str = ...) -> str: ...

    def get(self, cid: str) -> bytes: ...


def get_content_store() -> ContentStore:
    if settings.storage_backend == "lighthouse":
        return LighthouseStore()
    return LocalContentStore()


__all__ = [
    "ContentStore",
    "LighthouseStore",
    "LocalContentStore",
    "gateway_url",
    "get_content_store",
    "shorten_cid",
]
