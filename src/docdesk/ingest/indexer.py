"""Ingestion: persist a document, chunk it, embed the chunks and index them."""

import logging
import sqlite3
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from ..db import WorkspaceDB
from ..embeddings.base import EmbedderBase, get_embedder
from ..errors import DocdeskError, StoreError
from ..models import Document, IngestRequest, IngestResult, now_ms
from ..storage.base import VectorIndexBase, get_vector_index
from .chunker import chunk_pages

logger = logging.getLogger(__name__)


class Indexer:
    """Drives one document through storage, chunking, embedding and indexing.

    Steps run in order and the first failure aborts the rest. Rows written
    before a failure are left in place; ``remove_document_artifacts`` cleans
    them up before a re-ingest.
    """

    def __init__(
        self,
        db: WorkspaceDB,
        embedder: EmbedderBase,
        index: VectorIndexBase,
        chunk_size: int = 260,
        overlap: int = 80,
        embed_workers: int = 4,
    ):
        self.db = db
        self.embedder = embedder
        self.index = index
        self.chunk_size = chunk_size
        self.overlap = overlap
        self.embed_workers = max(1, embed_workers)

    @classmethod
    def from_config(cls, db: WorkspaceDB, config: dict[str, Any]) -> "Indexer":
        chunk_cfg = config.get("chunking", {})
        return cls(
            db=db,
            embedder=get_embedder(config),
            index=get_vector_index(config),
            chunk_size=chunk_cfg.get("chunk_size", 260),
            overlap=chunk_cfg.get("overlap", 80),
            embed_workers=config.get("ingest", {}).get("embed_workers", 4),
        )

    def ingest(self, request: IngestRequest) -> IngestResult:
        """Run every ingestion step for one document.

        Raises:
            DocdeskError: The failing step's error, re-raised as the same type
                with the document ID in its message. SQLite failures surface
                as StoreError.
        """
        try:
            return self._ingest(request)
        except DocdeskError as e:
            raise type(e)(f"Ingest of {request.document_id} failed: {e}") from e
        except sqlite3.Error as e:
            raise StoreError(f"Ingest of {request.document_id} failed: {e}") from e

    def _ingest(self, request: IngestRequest) -> IngestResult:
        created_at = now_ms()

        self.db.insert_document(Document(
            id=request.document_id,
            title=request.title,
            source_name=request.source_name,
            page_count=len(request.pages),
            description_md=request.description_md,
            file_path=request.file_path,
            mime_type=request.mime_type,
            byte_size=request.byte_size,
            word_count=request.word_count,
            created_at=created_at,
            updated_at=created_at,
        ))
        self.db.insert_document_text(request.document_id, request.full_text, created_at)
        self.db.insert_pages(request.document_id, request.pages, created_at)

        chunks = chunk_pages(request.document_id, request.pages, self.chunk_size, self.overlap)
        if not chunks:
            logger.info("Document %s has no extractable words; skipping embedding", request.document_id)
            return IngestResult(chunk_count=0)

        self.db.insert_chunks(request.document_id, chunks, created_at)

        logger.debug("Embedding %d chunk(s) for %s", len(chunks), request.document_id)
        texts = [c.text for c in chunks]
        try:
            with ThreadPoolExecutor(max_workers=min(self.embed_workers, len(chunks))) as pool:
                # map() yields in input order regardless of completion order
                embeddings = list(pool.map(self.embedder.embed, texts))
        except DocdeskError:
            logger.error("Embedding failed for document %s", request.document_id)
            raise

        self.index.upsert(
            ids=[c.chunk_id for c in chunks],
            embeddings=embeddings,
            documents=texts,
            metadatas=[
                {
                    "documentId": request.document_id,
                    "pageStart": c.page_start,
                    "pageEnd": c.page_end,
                    "chunkId": c.chunk_id,
                }
                for c in chunks
            ],
        )

        self.db.insert_embedding_records([c.chunk_id for c in chunks], self.embedder.model_name, created_at)

        logger.info("Indexed %s: %d chunk(s)", request.document_id, len(chunks))
        return IngestResult(chunk_count=len(chunks))

    def remove_document_artifacts(self, document_id: str) -> None:
        """Delete a document and everything hanging off it."""
        chunk_ids = [c.chunk_id for c in self.db.get_document_chunks(document_id)]
        if chunk_ids:
            try:
                self.index.delete_by_ids(chunk_ids)
            except DocdeskError as e:
                # search ignores vectors whose chunk row is gone
                logger.warning("Could not delete vectors for %s: %s", document_id, e)
            self.db.delete_chunks(chunk_ids)

        self.db.delete_text_and_pages(document_id)
        self.db.delete_links_to_document(document_id)
        self.db.delete_notes([n.id for n in self.db.list_notes(document_id=document_id)])
        self.db.delete_document_highlights(document_id)
        self.db.delete_document_tags(document_id)
        self.db.delete_document(document_id)
