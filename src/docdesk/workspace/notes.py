"""Notes, cross-document links and highlights."""

import json
import logging
import re
import uuid
from typing import Any

from ..db import WorkspaceDB
from ..errors import NotFound, ValidationError
from ..models import Highlight, Note, SelectionRect, now_ms
from .tags import set_note_tags

logger = logging.getLogger(__name__)

DOC_LINK_PATTERN = re.compile(r"doc://([a-zA-Z0-9-]+)")


def parse_linked_doc_ids(markdown: str) -> list[str]:
    """Document IDs mentioned as ``doc://<id>`` in markdown, first-seen order."""
    return list(dict.fromkeys(DOC_LINK_PATTERN.findall(markdown)))


def parse_selection_rects(value: str | list[Any] | None) -> list[SelectionRect]:
    """Parse selection geometry from JSON text or a list of mappings.

    Each rectangle needs numeric ``x``, ``y``, ``w``, ``h`` within [0, 1].
    """
    if value is None or value == "":
        return []
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Selection rectangles are not valid JSON: {e}") from e
    if not isinstance(value, list):
        raise ValidationError("Selection rectangles must be a list.")

    rects = []
    for item in value:
        if isinstance(item, SelectionRect):
            item = {"x": item.x, "y": item.y, "w": item.w, "h": item.h}
        if not isinstance(item, dict):
            raise ValidationError("Each selection rectangle must be an object.")
        coords = {}
        for key in ("x", "y", "w", "h"):
            v = item.get(key)
            if isinstance(v, bool) or not isinstance(v, (int, float)):
                raise ValidationError(f"Selection rectangle field '{key}' must be a number.")
            if not 0.0 <= v <= 1.0:
                raise ValidationError(f"Selection rectangle field '{key}' must be within [0, 1], got {v}.")
            coords[key] = float(v)
        rects.append(SelectionRect(**coords))
    return rects


def set_note_links(db: WorkspaceDB, note_id: str, linked_document_ids: list[str]) -> list[str]:
    """Replace a note's links, silently dropping unknown documents.

    Returns the IDs actually linked.
    """
    unique_ids = list(dict.fromkeys(v.strip() for v in linked_document_ids if v.strip()))
    valid = db.existing_document_ids(unique_ids)
    dropped = [i for i in unique_ids if i not in valid]
    if dropped:
        logger.debug("Dropping links to unknown documents: %s", dropped)

    created_at = now_ms()
    linked = [i for i in unique_ids if i in valid]
    db.replace_note_links(note_id, [(str(uuid.uuid4()), doc_id, created_at) for doc_id in linked])
    return linked


def create_note(
    db: WorkspaceDB,
    document_id: str,
    page: int,
    content_md: str = "",
    quote: str = "",
    selection_rects: list[SelectionRect] | None = None,
    tag_names: list[str] | None = None,
    linked_document_ids: list[str] | None = None,
) -> Note:
    """Attach a markdown note to a page of a document."""
    if db.get_document(document_id) is None:
        raise NotFound(f"Document {document_id} not found.")
    if page < 1:
        raise ValidationError(f"Page must be a positive integer, got {page}.")

    note = Note(
        id=str(uuid.uuid4()),
        document_id=document_id,
        page=page,
        quote=quote,
        content_md=content_md,
        selection_rects=list(selection_rects or []),
        created_at=now_ms(),
    )
    db.insert_note(note)
    set_note_tags(db, note.id, tag_names or [])
    set_note_links(db, note.id, list(linked_document_ids or []) + parse_linked_doc_ids(content_md))
    return note


def delete_note(db: WorkspaceDB, note_id: str) -> None:
    if db.get_note(note_id) is None:
        raise NotFound("Note not found.")
    db.delete_notes([note_id])


def add_highlight(
    db: WorkspaceDB,
    document_id: str,
    page: int,
    text: str,
    rects: list[SelectionRect],
    color: str = "yellow",
) -> Highlight:
    if db.get_document(document_id) is None:
        raise NotFound(f"Document {document_id} not found.")
    if page < 1:
        raise ValidationError(f"Page must be a positive integer, got {page}.")

    highlight = Highlight(
        id=str(uuid.uuid4()),
        document_id=document_id,
        page=page,
        color=color,
        text=text,
        rects=list(rects),
        created_at=now_ms(),
    )
    db.insert_highlight(highlight)
    return highlight


def list_highlights(db: WorkspaceDB, document_id: str) -> list[Highlight]:
    return db.list_highlights(document_id)


def delete_highlight(db: WorkspaceDB, highlight_id: str) -> None:
    if not db.delete_highlight(highlight_id):
        raise NotFound("Highlight not found.")
