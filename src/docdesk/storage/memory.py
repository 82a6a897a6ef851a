"""In-process vector index using brute-force cosine distance."""

from typing import Any

import numpy as np

from ..errors import IndexQueryError, IndexWriteError, ServiceUnavailable
from ..models import VectorQueryResult
from .base import VectorIndexBase


class InMemoryVectorIndex(VectorIndexBase):
    """Dict-backed index. Distance is ``1 - cosine_similarity`` to match Chroma.

    Set ``healthy = False`` to simulate an unreachable server.
    """

    def __init__(self):
        self.healthy = True
        self._entries: dict[str, dict[str, Any]] = {}

    def _require_healthy(self, error_cls):
        if not self.healthy:
            raise error_cls("In-memory vector index is marked unavailable")

    def health_check(self) -> None:
        self._require_healthy(ServiceUnavailable)

    def upsert(
        self,
        ids: list[str],
        embeddings: list[list[float]],
        documents: list[str],
        metadatas: list[dict[str, Any]],
    ) -> None:
        self._require_healthy(IndexWriteError)
        if not (len(ids) == len(embeddings) == len(documents) == len(metadatas)):
            raise IndexWriteError("ids, embeddings, documents and metadatas must have equal lengths")
        for i, entry_id in enumerate(ids):
            self._entries[entry_id] = {
                "embedding": np.asarray(embeddings[i], dtype=float),
                "document": documents[i],
                "metadata": dict(metadatas[i]),
            }

    def query(
        self,
        embedding: list[float],
        limit: int = 10,
        document_id: str | None = None,
    ) -> VectorQueryResult:
        self._require_healthy(IndexQueryError)
        q = np.asarray(embedding, dtype=float)
        q_norm = np.linalg.norm(q)

        scored = []
        for entry_id, entry in self._entries.items():
            if document_id and entry["metadata"].get("documentId") != document_id:
                continue
            vec = entry["embedding"]
            if vec.shape != q.shape:
                raise IndexQueryError(f"Dimension mismatch: index has {vec.shape[0]}, query has {q.shape[0]}")
            denom = q_norm * np.linalg.norm(vec)
            similarity = float(np.dot(q, vec) / denom) if denom else 0.0
            scored.append((1.0 - similarity, entry_id))

        scored.sort(key=lambda pair: pair[0])
        result = VectorQueryResult()
        for distance, entry_id in scored[:limit]:
            entry = self._entries[entry_id]
            result.ids.append(entry_id)
            result.metadatas.append(dict(entry["metadata"]))
            result.distances.append(distance)
            result.documents.append(entry["document"])
        return result

    def delete_by_ids(self, ids: list[str]) -> None:
        self._require_healthy(IndexWriteError)
        for entry_id in ids:
            self._entries.pop(entry_id, None)

    def count(self) -> int:
        return len(self._entries)

    def has_id(self, entry_id: str) -> bool:
        return entry_id in self._entries

    def get(self, entry_id: str) -> dict[str, Any] | None:
        """Stored embedding, document and metadata for an ID."""
        entry = self._entries.get(entry_id)
        if entry is None:
            return None
        return {
            "embedding": entry["embedding"].tolist(),
            "document": entry["document"],
            "metadata": dict(entry["metadata"]),
        }
