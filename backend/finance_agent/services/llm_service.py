"""LLM service: Ollama client for embeddings, chat/tool-calling and structured output."""

import json
import logging
from typing import Any, Optional

import httpx

from .. import config

logger = logging.getLogger(__name__)


async def ping_ollama(base_url: str = config.OLLAMA_BASE) -> bool:
    try:
        async with httpx.AsyncClient(timeout=3.0) as client:
            r = await client.get(f"{base_url}/api/tags")
            return r.status_code == 200
    except httpx.HTTPError:
        return False


class OllamaClient:
    """Thin async wrapper over the three Ollama endpoints the agent needs.

    Every call is a single blocking round trip with no retry; transport
    errors surface as ``httpx.HTTPError``.

    IMPORTANT: Ollama does not support sending 'tools' and 'format' in the same
    request.  :meth:`chat` uses 'tools' (no format); :meth:`generate_structured`
    uses 'format' (no tools).
    """

    def __init__(
        self,
        base_url: str = config.OLLAMA_BASE,
        model: str = config.CHAT_MODEL,
        embed_model: str = config.EMBED_MODEL,
        timeout: float = config.LLM_TIMEOUT,
    ):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.embed_model = embed_model
        self.timeout = timeout

    # ── Embeddings ────────────────────────────────────────────────────────────

    async def embed_many(self, texts: list[str]) -> list[list[float]]:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            r = await client.post(
                f"{self.base_url}/api/embed",
                json={"model": self.embed_model, "input": texts},
            )
            r.raise_for_status()
            embeddings = r.json().get("embeddings") or []
        if len(embeddings) != len(texts):
            raise ValueError(
                f"Ollama returned {len(embeddings)} embeddings for {len(texts)} inputs"
            )
        return embeddings

    async def embed(self, text: str) -> list[float]:
        return (await self.embed_many([text]))[0]

    # ── Chat ──────────────────────────────────────────────────────────────────

    async def chat(
        self, messages: list[dict], tools: Optional[list[dict]] = None
    ) -> dict:
        """One non-streaming chat turn; returns Ollama's ``message`` object."""
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "stream": False,
        }
        if tools:
            payload["tools"] = tools
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            r = await client.post(f"{self.base_url}/api/chat", json=payload)
            r.raise_for_status()
            return r.json().get("message", {})

    async def generate_structured(self, prompt: str, schema: dict) -> Any:
        """Ask for a JSON object constrained by ``schema``; returns the decoded JSON.

        Raises ``ValueError`` (``json.JSONDecodeError``) when the model's
        content is not JSON.
        """
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            r = await client.post(
                f"{self.base_url}/api/chat",
                json={
                    "model": self.model,
                    "messages": [{"role": "user", "content": prompt}],
                    "format": schema,
                    "stream": False,
                },
            )
            r.raise_for_status()
            raw = r.json().get("message", {}).get("content", "")
        return json.loads(raw)
