"""Embedding backend talking to an Ollama server over HTTP."""

import logging
import numbers

import httpx

from ..errors import InvalidResponse, ServiceUnavailable
from .base import EmbedderBase

logger = logging.getLogger(__name__)


class OllamaEmbedder(EmbedderBase):
    """Calls ``POST /api/embeddings`` with ``{model, prompt}``.

    No retries happen here; callers decide whether to try again.
    """

    def __init__(
        self,
        base_url: str,
        model_name: str,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.model_name = model_name
        self._client = httpx.Client(base_url=self.base_url, timeout=timeout, transport=transport)

    def embed(self, text: str) -> list[float]:
        try:
            response = self._client.post("/api/embeddings", json={"model": self.model_name, "prompt": text})
        except httpx.HTTPError as e:
            raise ServiceUnavailable(f"Ollama is not reachable at {self.base_url}: {e}") from e

        if response.status_code != 200:
            logger.error("Embedding request failed: status %d, body: %s", response.status_code, response.text[:200])
            raise ServiceUnavailable(
                f"Ollama embedding request failed: {response.status_code} {response.text[:200]}"
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise InvalidResponse("Ollama returned a non-JSON embedding payload.") from e

        return self._extract_embedding(payload)

    @staticmethod
    def _extract_embedding(payload) -> list[float]:
        embedding = payload.get("embedding") if isinstance(payload, dict) else None
        if not isinstance(embedding, list) or not embedding:
            raise InvalidResponse("Ollama returned an invalid embedding payload.")
        if not all(isinstance(v, numbers.Real) and not isinstance(v, bool) for v in embedding):
            raise InvalidResponse("Ollama embedding contains non-numeric values.")
        return [float(v) for v in embedding]

    def close(self) -> None:
        self._client.close()
