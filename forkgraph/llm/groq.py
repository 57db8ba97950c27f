"""Streaming chat-completion client for the Groq OpenAI-compatible API.

The endpoint answers ``POST {base_url}/chat/completions`` with
``"stream": true`` by sending Server-Sent Events::

    data: {"choices": [{"delta": {"content": "Hel"}}]}
    data: {"choices": [{"delta": {"content": "lo"}}]}
    data: [DONE]

:meth:`GroqClient.stream` yields only the text deltas.  Lines that are not
``data:`` frames or do not parse as JSON are skipped.
"""

from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator, Optional, Protocol

import httpx

from forkgraph.config import settings
from forkgraph.errors import CollaboratorError

logger = logging.getLogger(__name__)

_DONE = object()


class InferenceClient(Protocol):
    def stream(self, messages: list[dict[str, Any]], model: str) -> AsyncIterator[str]:
        """Yield incremental text for a reply to *messages*."""
        ...


def parse_sse_line(line: str) -> Any:
    """Return the text delta in *line*, ``None`` to skip it, or ``_DONE``."""
    line = line.strip()
    if not line.startswith("data:"):
        return None
    data = line[len("data:"):].strip()
    if data == "[DONE]":
        return _DONE
    try:
        payload = json.loads(data)
    except json.JSONDecodeError:
        return None
    try:
        return payload["choices"][0]["delta"].get("content") or None
    except (KeyError, IndexError, TypeError, AttributeError):
        return None


class GroqClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.groq_api_key
        self.base_url = (base_url or settings.groq_base_url).rstrip("/")
        self.timeout = timeout or settings.request_timeout

    async def stream(self, messages: list[dict[str, Any]], model: str) -> AsyncIterator[str]:
        """Stream the assistant reply for *messages* from *model*.

        Raises:
            CollaboratorError: If the API key is missing, the request fails,
                or the API answers with a non-2xx status.
        """
        if not self.api_key:
            raise CollaboratorError(
                "GROQ_API_KEY environment variable is not set."
            )

        url = f"{self.base_url}/chat/completions"
        body = {"model": model, "messages": messages, "stream": True}
        headers = {"Authorization": f"Bearer {self.api_key}"}

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                async with client.stream("POST", url, json=body, headers=headers) as response:
                    if response.status_code >= 400:
                        detail = (await response.aread()).decode(errors="replace")
                        logger.error("Inference request failed (%s): %s",
                                     response.status_code, detail)
                        raise CollaboratorError(
                            f"Inference API returned HTTP {response.status_code}"
                        )
                    async for line in response.aiter_lines():
                        delta = parse_sse_line(line)
                        if delta is _DONE:
                            break
                        if delta:
                            yield delta
        except httpx.HTTPError as exc:
            raise CollaboratorError(f"Inference request failed: {exc}") from exc
