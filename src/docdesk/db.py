"""SQLite storage for documents, pages, chunks, tags, notes and highlights."""

import json
import sqlite3
from pathlib import Path
from typing import Iterable

from .models import Chunk, Document, Highlight, Note, SelectionRect, TextPage

SCHEMA = """
CREATE TABLE IF NOT EXISTS documents (
    id TEXT PRIMARY KEY NOT NULL,
    title TEXT NOT NULL,
    source_name TEXT NOT NULL,
    page_count INTEGER NOT NULL,
    description_md TEXT NOT NULL DEFAULT '',
    file_path TEXT NOT NULL,
    mime_type TEXT NOT NULL DEFAULT 'application/pdf',
    byte_size INTEGER NOT NULL,
    word_count INTEGER NOT NULL,
    created_at INTEGER NOT NULL,
    updated_at INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS document_text (
    document_id TEXT PRIMARY KEY NOT NULL,
    text TEXT NOT NULL,
    created_at INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS document_pages (
    document_id TEXT NOT NULL,
    page INTEGER NOT NULL,
    text TEXT NOT NULL,
    created_at INTEGER NOT NULL,
    PRIMARY KEY (document_id, page)
);

CREATE TABLE IF NOT EXISTS chunks (
    id TEXT PRIMARY KEY NOT NULL,
    document_id TEXT NOT NULL,
    page_start INTEGER NOT NULL,
    page_end INTEGER NOT NULL,
    chunk_index INTEGER NOT NULL,
    text TEXT NOT NULL,
    created_at INTEGER NOT NULL,
    UNIQUE (document_id, chunk_index)
);

CREATE TABLE IF NOT EXISTS chunk_embeddings (
    chunk_id TEXT PRIMARY KEY NOT NULL,
    chroma_id TEXT NOT NULL,
    model TEXT NOT NULL,
    created_at INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS tags (
    id TEXT PRIMARY KEY NOT NULL,
    name TEXT NOT NULL UNIQUE,
    created_at INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS document_tags (
    document_id TEXT NOT NULL,
    tag_id TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS notes (
    id TEXT PRIMARY KEY NOT NULL,
    document_id TEXT NOT NULL,
    page INTEGER NOT NULL,
    quote TEXT NOT NULL DEFAULT '',
    content_md TEXT NOT NULL DEFAULT '',
    selection_rects_json TEXT NOT NULL DEFAULT '[]',
    created_at INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS note_tags (
    note_id TEXT NOT NULL,
    tag_id TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS note_links (
    id TEXT PRIMARY KEY NOT NULL,
    note_id TEXT NOT NULL,
    linked_document_id TEXT NOT NULL,
    created_at INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS highlights (
    id TEXT PRIMARY KEY NOT NULL,
    document_id TEXT NOT NULL,
    page INTEGER NOT NULL,
    color TEXT NOT NULL,
    text TEXT NOT NULL,
    rects_json TEXT NOT NULL,
    created_at INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_chunks_document ON chunks(document_id);
CREATE INDEX IF NOT EXISTS idx_document_tags_tag ON document_tags(tag_id);
CREATE INDEX IF NOT EXISTS idx_document_tags_document ON document_tags(document_id);
CREATE INDEX IF NOT EXISTS idx_notes_document ON notes(document_id);
"""


def _placeholders(values: list) -> str:
    return ", ".join("?" for _ in values)


def rects_to_json(rects: list[SelectionRect]) -> str:
    return json.dumps([{"x": r.x, "y": r.y, "w": r.w, "h": r.h} for r in rects])


def rects_from_json(raw: str) -> list[SelectionRect]:
    return [SelectionRect(**item) for item in json.loads(raw or "[]")]


def _document(row: sqlite3.Row) -> Document:
    return Document(**{key: row[key] for key in row.keys()})


def _note(row: sqlite3.Row) -> Note:
    return Note(
        id=row["id"],
        document_id=row["document_id"],
        page=row["page"],
        quote=row["quote"],
        content_md=row["content_md"],
        selection_rects=rects_from_json(row["selection_rects_json"]),
        created_at=row["created_at"],
    )


def _highlight(row: sqlite3.Row) -> Highlight:
    return Highlight(
        id=row["id"],
        document_id=row["document_id"],
        page=row["page"],
        color=row["color"],
        text=row["text"],
        rects=rects_from_json(row["rects_json"]),
        created_at=row["created_at"],
    )


def _chunk(row: sqlite3.Row) -> Chunk:
    return Chunk(
        chunk_id=row["id"],
        chunk_index=row["chunk_index"],
        page_start=row["page_start"],
        page_end=row["page_end"],
        text=row["text"],
    )


class WorkspaceDB:
    """Thin CRUD layer over the workspace's SQLite file."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")
        self.conn.execute("PRAGMA busy_timeout=5000")
        self.conn.executescript(SCHEMA)

    def close(self) -> None:
        self.conn.close()

    def _select(self, sql: str, params: Iterable = ()) -> list[sqlite3.Row]:
        return self.conn.execute(sql, tuple(params)).fetchall()

    def _write(self, sql: str, params: Iterable = ()) -> None:
        with self.conn:
            self.conn.execute(sql, tuple(params))

    def _write_many(self, sql: str, rows: list[tuple]) -> None:
        if not rows:
            return
        with self.conn:
            self.conn.executemany(sql, rows)

    def _delete_in(self, table: str, column: str, values: list[str]) -> None:
        if not values:
            return
        self._write(f"DELETE FROM {table} WHERE {column} IN ({_placeholders(values)})", values)

    # -- documents --

    def insert_document(self, doc: Document) -> None:
        self._write(
            "INSERT INTO documents (id, title, source_name, page_count, description_md, file_path, mime_type, "
            "byte_size, word_count, created_at, updated_at) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            (doc.id, doc.title, doc.source_name, doc.page_count, doc.description_md, doc.file_path,
             doc.mime_type, doc.byte_size, doc.word_count, doc.created_at, doc.updated_at),
        )

    def get_document(self, document_id: str) -> Document | None:
        rows = self._select("SELECT * FROM documents WHERE id = ? LIMIT 1", (document_id,))
        return _document(rows[0]) if rows else None

    def list_documents(self, ids: list[str] | None = None) -> list[Document]:
        """Documents newest first, optionally restricted to ``ids``."""
        if ids is None:
            rows = self._select("SELECT * FROM documents ORDER BY created_at DESC, rowid DESC")
        elif not ids:
            return []
        else:
            rows = self._select(
                f"SELECT * FROM documents WHERE id IN ({_placeholders(ids)}) ORDER BY created_at DESC, rowid DESC",
                ids,
            )
        return [_document(r) for r in rows]

    def existing_document_ids(self, ids: list[str]) -> set[str]:
        if not ids:
            return set()
        rows = self._select(f"SELECT id FROM documents WHERE id IN ({_placeholders(ids)})", ids)
        return {r["id"] for r in rows}

    def update_document(self, document_id: str, updated_at: int, description_md: str | None = None) -> None:
        if description_md is None:
            self._write("UPDATE documents SET updated_at = ? WHERE id = ?", (updated_at, document_id))
        else:
            self._write(
                "UPDATE documents SET description_md = ?, updated_at = ? WHERE id = ?",
                (description_md, updated_at, document_id),
            )

    def delete_document(self, document_id: str) -> None:
        self._write("DELETE FROM documents WHERE id = ?", (document_id,))

    # -- text and pages --

    def insert_document_text(self, document_id: str, text: str, created_at: int) -> None:
        self._write(
            "INSERT INTO document_text (document_id, text, created_at) VALUES (?, ?, ?)",
            (document_id, text, created_at),
        )

    def get_texts(self, document_ids: list[str]) -> dict[str, str]:
        if not document_ids:
            return {}
        rows = self._select(
            f"SELECT document_id, text FROM document_text WHERE document_id IN ({_placeholders(document_ids)})",
            document_ids,
        )
        return {r["document_id"]: r["text"] for r in rows}

    def insert_pages(self, document_id: str, pages: list[TextPage], created_at: int) -> None:
        self._write_many(
            "INSERT INTO document_pages (document_id, page, text, created_at) VALUES (?, ?, ?, ?)",
            [(document_id, p.page, p.text, created_at) for p in pages],
        )

    def get_pages(self, document_ids: list[str]) -> dict[str, list[TextPage]]:
        """Pages per document, ascending by page number."""
        if not document_ids:
            return {}
        rows = self._select(
            f"SELECT document_id, page, text FROM document_pages WHERE document_id IN ({_placeholders(document_ids)}) "
            "ORDER BY document_id, page",
            document_ids,
        )
        out: dict[str, list[TextPage]] = {}
        for r in rows:
            out.setdefault(r["document_id"], []).append(TextPage(page=r["page"], text=r["text"]))
        return out

    def delete_text_and_pages(self, document_id: str) -> None:
        self._write("DELETE FROM document_text WHERE document_id = ?", (document_id,))
        self._write("DELETE FROM document_pages WHERE document_id = ?", (document_id,))

    # -- chunks and embedding bookkeeping --

    def insert_chunks(self, document_id: str, chunks: list[Chunk], created_at: int) -> None:
        self._write_many(
            "INSERT INTO chunks (id, document_id, page_start, page_end, chunk_index, text, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            [(c.chunk_id, document_id, c.page_start, c.page_end, c.chunk_index, c.text, created_at) for c in chunks],
        )

    def get_chunks(self, chunk_ids: list[str]) -> dict[str, tuple[str, Chunk]]:
        """Map chunk ID to ``(document_id, chunk)``."""
        if not chunk_ids:
            return {}
        rows = self._select(f"SELECT * FROM chunks WHERE id IN ({_placeholders(chunk_ids)})", chunk_ids)
        return {r["id"]: (r["document_id"], _chunk(r)) for r in rows}

    def get_document_chunks(self, document_id: str) -> list[Chunk]:
        rows = self._select("SELECT * FROM chunks WHERE document_id = ? ORDER BY chunk_index", (document_id,))
        return [_chunk(r) for r in rows]

    def delete_chunks(self, chunk_ids: list[str]) -> None:
        self._delete_in("chunk_embeddings", "chunk_id", chunk_ids)
        self._delete_in("chunks", "id", chunk_ids)

    def insert_embedding_records(self, chunk_ids: list[str], model: str, created_at: int) -> None:
        self._write_many(
            "INSERT INTO chunk_embeddings (chunk_id, chroma_id, model, created_at) VALUES (?, ?, ?, ?)",
            [(cid, cid, model, created_at) for cid in chunk_ids],
        )

    def get_embedding_records(self, chunk_ids: list[str]) -> list[sqlite3.Row]:
        if not chunk_ids:
            return []
        return self._select(
            f"SELECT * FROM chunk_embeddings WHERE chunk_id IN ({_placeholders(chunk_ids)})", chunk_ids,
        )

    # -- tags --

    def get_tags_by_names(self, names: list[str]) -> list[sqlite3.Row]:
        if not names:
            return []
        return self._select(f"SELECT * FROM tags WHERE name IN ({_placeholders(names)})", names)

    def insert_tags(self, rows: list[tuple[str, str, int]]) -> None:
        """Insert ``(id, name, created_at)`` rows, ignoring names that already exist."""
        self._write_many("INSERT OR IGNORE INTO tags (id, name, created_at) VALUES (?, ?, ?)", rows)

    def list_tag_names(self) -> list[str]:
        return [r["name"] for r in self._select("SELECT name FROM tags ORDER BY name")]

    def replace_document_tags(self, document_id: str, tag_ids: list[str]) -> None:
        with self.conn:
            self.conn.execute("DELETE FROM document_tags WHERE document_id = ?", (document_id,))
            self.conn.executemany(
                "INSERT INTO document_tags (document_id, tag_id) VALUES (?, ?)",
                [(document_id, tid) for tid in tag_ids],
            )

    def replace_note_tags(self, note_id: str, tag_ids: list[str]) -> None:
        with self.conn:
            self.conn.execute("DELETE FROM note_tags WHERE note_id = ?", (note_id,))
            self.conn.executemany(
                "INSERT INTO note_tags (note_id, tag_id) VALUES (?, ?)",
                [(note_id, tid) for tid in tag_ids],
            )

    def get_document_tag_rows(self, tag_ids: list[str]) -> list[sqlite3.Row]:
        if not tag_ids:
            return []
        return self._select(
            f"SELECT document_id, tag_id FROM document_tags WHERE tag_id IN ({_placeholders(tag_ids)})", tag_ids,
        )

    def document_tag_names(self, document_ids: list[str] | None = None) -> dict[str, list[str]]:
        """Tag names per document, in tag-name order."""
        sql = "SELECT dt.document_id, t.name FROM document_tags dt JOIN tags t ON t.id = dt.tag_id"
        params: list[str] = []
        if document_ids is not None:
            if not document_ids:
                return {}
            sql += f" WHERE dt.document_id IN ({_placeholders(document_ids)})"
            params = document_ids
        out: dict[str, list[str]] = {}
        for r in self._select(sql + " ORDER BY t.name", params):
            out.setdefault(r["document_id"], []).append(r["name"])
        return out

    def note_tag_names(self, note_ids: list[str]) -> dict[str, list[str]]:
        if not note_ids:
            return {}
        rows = self._select(
            f"SELECT nt.note_id, t.name FROM note_tags nt JOIN tags t ON t.id = nt.tag_id "
            f"WHERE nt.note_id IN ({_placeholders(note_ids)}) ORDER BY t.name",
            note_ids,
        )
        out: dict[str, list[str]] = {}
        for r in rows:
            out.setdefault(r["note_id"], []).append(r["name"])
        return out

    def delete_document_tags(self, document_id: str) -> None:
        self._write("DELETE FROM document_tags WHERE document_id = ?", (document_id,))

    # -- notes and links --

    def insert_note(self, note: Note) -> None:
        self._write(
            "INSERT INTO notes (id, document_id, page, quote, content_md, selection_rects_json, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            (note.id, note.document_id, note.page, note.quote, note.content_md,
             rects_to_json(note.selection_rects), note.created_at),
        )

    def get_note(self, note_id: str) -> Note | None:
        rows = self._select("SELECT * FROM notes WHERE id = ? LIMIT 1", (note_id,))
        return _note(rows[0]) if rows else None

    def list_notes(self, document_id: str | None = None, limit: int | None = None) -> list[Note]:
        sql = "SELECT * FROM notes"
        params: list = []
        if document_id is not None:
            sql += " WHERE document_id = ?"
            params.append(document_id)
        sql += " ORDER BY created_at DESC, rowid DESC"
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        return [_note(r) for r in self._select(sql, params)]

    def delete_notes(self, note_ids: list[str]) -> None:
        self._delete_in("note_tags", "note_id", note_ids)
        self._delete_in("note_links", "note_id", note_ids)
        self._delete_in("notes", "id", note_ids)

    def replace_note_links(self, note_id: str, rows: list[tuple[str, str, int]]) -> None:
        """Replace a note's links with ``(id, linked_document_id, created_at)`` rows."""
        with self.conn:
            self.conn.execute("DELETE FROM note_links WHERE note_id = ?", (note_id,))
            self.conn.executemany(
                "INSERT INTO note_links (id, note_id, linked_document_id, created_at) VALUES (?, ?, ?, ?)",
                [(link_id, note_id, doc_id, created_at) for link_id, doc_id, created_at in rows],
            )

    def get_note_links(self, note_ids: list[str]) -> dict[str, list[str]]:
        """Linked document IDs per note, in insertion order."""
        if not note_ids:
            return {}
        rows = self._select(
            f"SELECT note_id, linked_document_id FROM note_links WHERE note_id IN ({_placeholders(note_ids)}) "
            "ORDER BY rowid",
            note_ids,
        )
        out: dict[str, list[str]] = {}
        for r in rows:
            out.setdefault(r["note_id"], []).append(r["linked_document_id"])
        return out

    def delete_links_to_document(self, document_id: str) -> None:
        self._write("DELETE FROM note_links WHERE linked_document_id = ?", (document_id,))

    # -- highlights --

    def insert_highlight(self, highlight: Highlight) -> None:
        self._write(
            "INSERT INTO highlights (id, document_id, page, color, text, rects_json, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            (highlight.id, highlight.document_id, highlight.page, highlight.color, highlight.text,
             rects_to_json(highlight.rects), highlight.created_at),
        )

    def list_highlights(self, document_id: str) -> list[Highlight]:
        rows = self._select(
            "SELECT * FROM highlights WHERE document_id = ? ORDER BY page, created_at, rowid", (document_id,),
        )
        return [_highlight(r) for r in rows]

    def delete_highlight(self, highlight_id: str) -> bool:
        with self.conn:
            cursor = self.conn.execute("DELETE FROM highlights WHERE id = ?", (highlight_id,))
        return cursor.rowcount > 0

    def delete_document_highlights(self, document_id: str) -> None:
        self._write("DELETE FROM highlights WHERE document_id = ?", (document_id,))
