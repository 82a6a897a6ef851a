"""Tag normalisation, replace-set associations and AND-filtering."""

import uuid

from ..db import WorkspaceDB
from ..models import now_ms


def normalize_tag_name(name: str) -> str:
    return name.strip().lower()


def normalize_tag_names(names: list[str]) -> list[str]:
    """Normalise, drop empties and de-duplicate, keeping first-seen order."""
    return list(dict.fromkeys(n for n in (normalize_tag_name(name) for name in names) if n))


def parse_tag_list(value: str) -> list[str]:
    """Parse a comma-separated tag string."""
    return normalize_tag_names(value.split(","))


def upsert_tags_by_name(db: WorkspaceDB, names: list[str]) -> list[str]:
    """Create any missing tags and return the IDs of all requested ones."""
    normalized = normalize_tag_names(names)
    if not normalized:
        return []

    existing = {row["name"] for row in db.get_tags_by_names(normalized)}
    created_at = now_ms()
    db.insert_tags([(str(uuid.uuid4()), name, created_at) for name in normalized if name not in existing])

    return [row["id"] for row in db.get_tags_by_names(normalized)]


def set_document_tags(db: WorkspaceDB, document_id: str, tag_names: list[str]) -> None:
    """Replace a document's tag set."""
    db.replace_document_tags(document_id, upsert_tags_by_name(db, tag_names))


def set_note_tags(db: WorkspaceDB, note_id: str, tag_names: list[str]) -> None:
    """Replace a note's tag set."""
    db.replace_note_tags(note_id, upsert_tags_by_name(db, tag_names))


def get_document_tag_names(db: WorkspaceDB, document_id: str) -> list[str]:
    return db.document_tag_names([document_id]).get(document_id, [])


def filter_documents_by_tags(db: WorkspaceDB, tag_names: list[str]) -> list[str] | None:
    """Resolve tag names to the documents carrying all of them.

    Returns:
        ``None`` when no tags were requested (no restriction), ``[]`` when any
        requested tag does not exist, otherwise the matching document IDs.
    """
    normalized = normalize_tag_names(tag_names)
    if not normalized:
        return None

    tag_rows = db.get_tags_by_names(normalized)
    if len(tag_rows) != len(normalized):
        return []

    tag_ids = [row["id"] for row in tag_rows]
    counts: dict[str, set[str]] = {}
    for row in db.get_document_tag_rows(tag_ids):
        counts.setdefault(row["document_id"], set()).add(row["tag_id"])

    return [doc_id for doc_id, matched in counts.items() if len(matched) == len(tag_ids)]
