"""Abstract base class for embedding backends and factory function."""

from abc import ABC, abstractmethod
from typing import Any


class EmbedderBase(ABC):
    """Turns a text into a fixed-length vector."""

    model_name: str

    @abstractmethod
    def embed(self, text: str) -> list[float]:
        """Embed a single text.

        Raises:
            ServiceUnavailable: The backend could not be reached or refused the request.
            InvalidResponse: The backend answered without a well-formed numeric vector.
        """

    def close(self) -> None:
        """Release any held resources."""


def get_embedder(config: dict[str, Any]) -> EmbedderBase:
    """Factory: return the right embedding backend based on config."""
    backend = config.get("embedding_backend", "ollama")

    if backend == "ollama":
        from .ollama import OllamaEmbedder
        ollama_cfg = config.get("ollama", {})
        return OllamaEmbedder(
            base_url=ollama_cfg.get("base_url", "http://127.0.0.1:11434"),
            model_name=ollama_cfg.get("model", "embeddinggemma:latest"),
            timeout=float(ollama_cfg.get("timeout", 30.0)),
        )
    elif backend == "local":
        from .local import SentenceTransformerEmbedder
        return SentenceTransformerEmbedder(config.get("local_embedding_model", "sentence-transformers/all-MiniLM-L6-v2"))
    else:
        raise ValueError(f"Unknown embedding_backend: {backend}")
