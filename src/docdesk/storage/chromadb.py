"""ChromaDB vector index backend talking to a Chroma server."""

import logging
from typing import Any

import chromadb
import httpx

from ..errors import IndexQueryError, IndexWriteError, ServiceUnavailable
from ..models import VectorQueryResult
from .base import VectorIndexBase

logger = logging.getLogger(__name__)

# Newer servers answer on v2, older ones on v1
HEARTBEAT_PATHS = ("/api/v2/heartbeat", "/api/v1/heartbeat")


class ChromaVectorIndex(VectorIndexBase):
    """Chroma-backed vector index. Embeddings are always supplied by the caller."""

    def __init__(
        self,
        base_url: str,
        collection_name: str = "document_chunks",
        embedding_model: str = "",
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.collection_name = collection_name
        self.embedding_model = embedding_model
        self._http = httpx.Client(timeout=timeout, transport=transport)
        self._client = None
        self._collection = None

    @property
    def client(self):
        if self._client is None:
            url = httpx.URL(self.base_url)
            self._client = chromadb.HttpClient(
                host=url.host,
                port=url.port or (443 if url.scheme == "https" else 8000),
                ssl=url.scheme == "https",
            )
        return self._client

    def get_or_create_collection(self):
        if self._collection is None:
            self._collection = self.client.get_or_create_collection(
                name=self.collection_name,
                embedding_function=None,
                metadata={
                    "hnsw:space": "cosine",
                    "app": "docdesk",
                    "embeddingModel": self.embedding_model or "unknown",
                },
            )
        return self._collection

    def health_check(self) -> None:
        for path in HEARTBEAT_PATHS:
            try:
                response = self._http.get(f"{self.base_url}{path}")
            except httpx.HTTPError as e:
                logger.debug("Chroma heartbeat %s failed: %s", path, e)
                continue
            if response.is_success:
                return
        raise ServiceUnavailable(
            f"Chroma is not reachable at {self.base_url}. Start Chroma locally and check chroma.base_url."
        )

    def upsert(
        self,
        ids: list[str],
        embeddings: list[list[float]],
        documents: list[str],
        metadatas: list[dict[str, Any]],
    ) -> None:
        if not ids:
            return
        try:
            self.get_or_create_collection().upsert(
                ids=ids, embeddings=embeddings, documents=documents, metadatas=metadatas,
            )
        except Exception as e:
            raise IndexWriteError(f"Failed to upsert embeddings into Chroma at {self.base_url}: {e}") from e

    def query(
        self,
        embedding: list[float],
        limit: int = 10,
        document_id: str | None = None,
    ) -> VectorQueryResult:
        try:
            raw = self.get_or_create_collection().query(
                query_embeddings=[embedding],
                n_results=limit,
                where={"documentId": document_id} if document_id else None,
                include=["documents", "metadatas", "distances"],
            )
        except Exception as e:
            raise IndexQueryError(f"Failed to query Chroma at {self.base_url}: {e}") from e

        return VectorQueryResult(
            ids=list(_first(raw.get("ids"))),
            metadatas=[m or {} for m in _first(raw.get("metadatas"))],
            distances=[1.0 if d is None else float(d) for d in _first(raw.get("distances"))],
            documents=[d or "" for d in _first(raw.get("documents"))],
        )

    def delete_by_ids(self, ids: list[str]) -> None:
        if not ids:
            return
        try:
            self.get_or_create_collection().delete(ids=ids)
        except Exception as e:
            raise IndexWriteError(f"Failed to delete embeddings from Chroma at {self.base_url}: {e}") from e

    def count(self) -> int:
        try:
            return self.get_or_create_collection().count()
        except Exception as e:
            raise IndexQueryError(f"Failed to count Chroma collection {self.collection_name}: {e}") from e


def _first(nested) -> list:
    """Chroma returns one list per query embedding; we always send one."""
    if not nested:
        return []
    return nested[0] or []
