"""Lighthouse (IPFS pinning service) content store.

Uploads go to ``LIGHTHOUSE_UPLOAD_URL`` as a multipart ``file`` field with a
bearer API key; the service answers ``{"Name": ..., "Hash": <cid>, "Size":
...}``.  Reads go through the public gateway at
``{LIGHTHOUSE_GATEWAY}/{cid}``.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from forkgraph.config import settings
from forkgraph.errors import CollaboratorError

logger = logging.getLogger(__name__)


def gateway_url(cid: str, gateway: Optional[str] = None) -> str:
    """Return the public gateway URL for *cid*."""
    return f"{(gateway or settings.lighthouse_gateway).rstrip('/')}/{cid}"


def shorten_cid(cid: str, length: int = 8) -> str:
    """``bafy1234...wxyz`` style abbreviation for display."""
    if len(cid) <= length * 2:
        return cid
    return f"{cid[:length]}...{cid[-length:]}"


class LighthouseStore:
    def __init__(
        self,
        api_key: Optional[str] = None,
        upload_url: Optional[str] = None,
        gateway: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.lighthouse_api_key
        self.upload_url = upload_url or settings.lighthouse_upload_url
        self.gateway = gateway or settings.lighthouse_gateway
        self.timeout = timeout or settings.request_timeout

    def put(self, data: bytes, name: str = "project.json") -> str:
        """Pin *data* and return the CID reported by Lighthouse.

        Raises:
            CollaboratorError: If no API key is configured or the upload fails.
        """
        if not self.api_key:
            raise CollaboratorError("LIGHTHOUSE_API_KEY environment variable is not set.")

        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(
                    self.upload_url,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    files={"file": (name, data, "application/json")},
                )
                response.raise_for_status()
                cid = response.json()["Hash"]
        except httpx.HTTPError as exc:
            logger.error("Lighthouse upload of %s failed: %s", name, exc)
            raise CollaboratorError(f"Failed to upload to Lighthouse: {exc}") from exc
        except (KeyError, ValueError) as exc:
            raise CollaboratorError("Unexpected response from Lighthouse upload.") from exc

        logger.info("Uploaded %s to Lighthouse as %s", name, cid)
        return cid

    def get(self, cid: str) -> bytes:
        """Fetch the bytes pinned under *cid* from the gateway."""
        try:
            with httpx.Client(timeout=self.timeout, follow_redirects=True) as client:
                response = client.get(gateway_url(cid, self.gateway))
                response.raise_for_status()
                return response.content
        except httpx.HTTPError as exc:
            raise CollaboratorError(f"Failed to fetch {cid!r} from IPFS: {exc}") from exc
