"""Abstract base class for vector indexes and factory function."""

from abc import ABC, abstractmethod
from typing import Any

from ..models import VectorQueryResult


class VectorIndexBase(ABC):
    """Common interface for vector index backends.

    Every entry's metadata carries ``chunkId``, ``documentId``,
    ``pageStart`` and ``pageEnd`` so hits can be traced back to chunks.
    """

    @abstractmethod
    def health_check(self) -> None:
        """Raise ServiceUnavailable unless the backend is reachable."""

    @abstractmethod
    def upsert(
        self,
        ids: list[str],
        embeddings: list[list[float]],
        documents: list[str],
        metadatas: list[dict[str, Any]],
    ) -> None:
        """Insert or replace vectors keyed by ID. Raises IndexWriteError."""

    @abstractmethod
    def query(
        self,
        embedding: list[float],
        limit: int = 10,
        document_id: str | None = None,
    ) -> VectorQueryResult:
        """Nearest neighbours ascending by distance. Raises IndexQueryError."""

    @abstractmethod
    def delete_by_ids(self, ids: list[str]) -> None:
        """Delete vectors by ID. Raises IndexWriteError."""

    @abstractmethod
    def count(self) -> int:
        """Number of stored vectors."""


def get_vector_index(config: dict[str, Any]) -> VectorIndexBase:
    """Factory: return the right vector index based on config."""
    backend = config.get("vector_backend", "chromadb")

    if backend == "chromadb":
        from .chromadb import ChromaVectorIndex
        chroma_cfg = config.get("chroma", {})
        ollama_cfg = config.get("ollama", {})
        return ChromaVectorIndex(
            base_url=chroma_cfg.get("base_url", "http://127.0.0.1:8000"),
            collection_name=chroma_cfg.get("collection", "document_chunks"),
            embedding_model=ollama_cfg.get("model", ""),
            timeout=float(chroma_cfg.get("timeout", 10.0)),
        )
    elif backend == "memory":
        from .memory import InMemoryVectorIndex
        return InMemoryVectorIndex()
    else:
        raise ValueError(f"Unknown vector_backend: {backend}")
