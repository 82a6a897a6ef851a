"""Hybrid keyword + semantic search over the workspace."""

import logging
from dataclasses import dataclass, field
from typing import Any

from ..db import WorkspaceDB
from ..embeddings.base import EmbedderBase, get_embedder
from ..errors import ValidationError
from ..models import Document, SearchHit
from ..storage.base import VectorIndexBase, get_vector_index
from ..workspace.tags import filter_documents_by_tags

logger = logging.getLogger(__name__)

KEYWORD_BASE_SCORE = 10
TITLE_MATCH_BONUS = 20
DESCRIPTION_MATCH_BONUS = 8
TAG_MATCH_BONUS = 6
SEMANTIC_MAX_BOOST = 30
SNIPPET_REPLACE_DELTA = 5
SNIPPET_BEFORE = 80
SNIPPET_AFTER = 160
SNIPPET_FALLBACK_CHARS = 240
MAX_SEMANTIC_CANDIDATES = 50
MAX_LIMIT = 100


def find_snippet(text: str, query: str) -> str:
    """Window of ``text`` around the first case-insensitive match of ``query``.

    Falls back to the first 240 characters when there is no match.
    """
    if not text:
        return ""
    lowered_query = query.lower()
    index = text.lower().find(lowered_query)
    if index == -1:
        return text[:SNIPPET_FALLBACK_CHARS]
    start = max(0, index - SNIPPET_BEFORE)
    end = min(len(text), index + len(lowered_query) + SNIPPET_AFTER)
    return text[start:end]


def semantic_boost(distance: float) -> float:
    """Score contribution of a vector hit; zero once distance reaches 1."""
    return max(0.0, 1.0 - distance) * SEMANTIC_MAX_BOOST


@dataclass
class _Scored:
    score: float = 0.0
    reasons: list[str] = field(default_factory=list)
    snippet: str = ""
    page: int | None = None


class HybridSearchEngine:
    """Ranks documents by an additive blend of substring and vector signals.

    The keyword pass always runs. The semantic pass is best-effort: if the
    vector index or embedding service fails, results are keyword-only.
    """

    def __init__(self, db: WorkspaceDB, embedder: EmbedderBase, index: VectorIndexBase):
        self.db = db
        self.embedder = embedder
        self.index = index

    @classmethod
    def from_config(cls, db: WorkspaceDB, config: dict[str, Any]) -> "HybridSearchEngine":
        return cls(db=db, embedder=get_embedder(config), index=get_vector_index(config))

    def search(self, query: str, tag_names: list[str] | None = None, limit: int = 20) -> list[SearchHit]:
        normalized_query = query.strip().lower()
        if not normalized_query:
            raise ValidationError("Search query must not be empty.")
        limit = max(1, min(MAX_LIMIT, limit))

        filtered_ids = filter_documents_by_tags(self.db, tag_names or [])
        if filtered_ids is not None and not filtered_ids:
            return []

        docs = self.db.list_documents(filtered_ids)
        if not docs:
            return []

        scores: dict[str, _Scored] = {}
        self._keyword_pass(docs, normalized_query, scores)

        try:
            self._semantic_pass(query.strip(), {d.id for d in docs}, limit, scores)
        except Exception as e:
            logger.warning("Semantic search unavailable, using keyword results only: %s", e)

        titles = {d.id: d.title for d in docs}
        hits = [
            SearchHit(
                document_id=doc_id,
                title=titles[doc_id],
                page=s.page,
                score=s.score,
                reasons=list(s.reasons),
                snippet=s.snippet,
            )
            for doc_id, s in scores.items()
        ]
        # stable: equal scores keep first-encounter order
        hits.sort(key=lambda h: h.score, reverse=True)
        return hits[:limit]

    def _keyword_pass(self, docs: list[Document], normalized_query: str, scores: dict[str, _Scored]) -> None:
        doc_ids = [d.id for d in docs]
        texts = self.db.get_texts(doc_ids)
        pages = self.db.get_pages(doc_ids)
        tags = self.db.document_tag_names(doc_ids)

        for doc in docs:
            full_text = texts.get(doc.id, "")
            description = doc.description_md or ""
            tag_text = " ".join(tags.get(doc.id, []))
            haystack = f"{doc.title}\n{description}\n{tag_text}\n{full_text}".lower()
            if normalized_query not in haystack:
                continue

            score = KEYWORD_BASE_SCORE
            if normalized_query in doc.title.lower():
                score += TITLE_MATCH_BONUS
            if normalized_query in description.lower():
                score += DESCRIPTION_MATCH_BONUS
            if normalized_query in tag_text.lower():
                score += TAG_MATCH_BONUS

            matched_page = next(
                (p for p in pages.get(doc.id, []) if normalized_query in p.text.lower()),
                None,
            )
            snippet_source = matched_page.text if matched_page else f"{description}\n{full_text}"

            scores[doc.id] = _Scored(
                score=score,
                reasons=["keyword"],
                snippet=find_snippet(snippet_source, normalized_query),
                page=matched_page.page if matched_page else None,
            )

    def _semantic_pass(self, query: str, candidate_ids: set[str], limit: int, scores: dict[str, _Scored]) -> None:
        self.index.health_check()
        embedding = self.embedder.embed(query)
        result = self.index.query(embedding, limit=min(MAX_SEMANTIC_CANDIDATES, limit * 4))

        chunk_ids = [m.get("chunkId") for m in result.metadatas if isinstance(m.get("chunkId"), str)]
        chunks = self.db.get_chunks(chunk_ids)

        for i, metadata in enumerate(result.metadatas):
            chunk_id = metadata.get("chunkId")
            if not isinstance(chunk_id, str) or chunk_id not in chunks:
                continue
            document_id, chunk = chunks[chunk_id]
            if document_id not in candidate_ids:
                continue

            distance = result.distances[i] if i < len(result.distances) else None
            if not isinstance(distance, (int, float)):
                distance = 1.0

            current = scores.get(document_id) or _Scored()
            next_score = current.score + semantic_boost(distance)

            snippet = current.snippet
            if not snippet or next_score > current.score + SNIPPET_REPLACE_DELTA:
                snippet = chunk.text[:SNIPPET_FALLBACK_CHARS]

            reasons = current.reasons if "semantic" in current.reasons else current.reasons + ["semantic"]
            scores[document_id] = _Scored(
                score=next_score,
                reasons=reasons,
                snippet=snippet,
                page=current.page if current.page is not None else chunk.page_start,
            )
