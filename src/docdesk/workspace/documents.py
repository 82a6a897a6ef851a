"""Document listings, detail views and metadata updates."""

from ..db import WorkspaceDB
from ..errors import NotFound
from ..models import (
    DocumentDetail,
    DocumentListItem,
    LinkedDocument,
    NoteDetail,
    WorkspaceSnapshot,
    now_ms,
)
from .tags import set_document_tags

RECENT_NOTES_LIMIT = 25


def get_workspace_snapshot(db: WorkspaceDB) -> WorkspaceSnapshot:
    """All documents and the most recent notes, newest first."""
    return WorkspaceSnapshot(
        documents=db.list_documents(),
        notes=db.list_notes(limit=RECENT_NOTES_LIMIT),
    )


def get_documents_page(db: WorkspaceDB) -> tuple[list[DocumentListItem], list[str]]:
    """Documents with their sorted tags, plus every known tag name."""
    tags_by_doc = db.document_tag_names()
    items = [
        DocumentListItem(document=doc, tags=sorted(tags_by_doc.get(doc.id, [])))
        for doc in db.list_documents()
    ]
    return items, db.list_tag_names()


def get_document_detail(db: WorkspaceDB, document_id: str) -> DocumentDetail | None:
    document = db.get_document(document_id)
    if document is None:
        return None

    notes = db.list_notes(document_id=document_id)
    note_ids = [n.id for n in notes]
    tags_by_note = db.note_tag_names(note_ids)
    links_by_note = db.get_note_links(note_ids)

    all_documents = sorted(
        (LinkedDocument(id=d.id, title=d.title) for d in db.list_documents()),
        key=lambda d: d.title,
    )
    by_id = {d.id: d for d in all_documents}

    note_details = [
        NoteDetail(
            note=note,
            tags=sorted(tags_by_note.get(note.id, [])),
            # links to since-deleted documents are skipped
            linked_documents=[by_id[i] for i in links_by_note.get(note.id, []) if i in by_id],
        )
        for note in notes
    ]

    return DocumentDetail(
        document=document,
        tags=sorted(db.document_tag_names([document_id]).get(document_id, [])),
        all_tags=db.list_tag_names(),
        notes=note_details,
        highlights=db.list_highlights(document_id),
        all_documents=all_documents,
    )


def update_description(db: WorkspaceDB, document_id: str, description_md: str) -> None:
    if db.get_document(document_id) is None:
        raise NotFound(f"Document {document_id} not found.")
    db.update_document(document_id, updated_at=now_ms(), description_md=description_md)


def update_document_tags(db: WorkspaceDB, document_id: str, tag_names: list[str]) -> None:
    if db.get_document(document_id) is None:
        raise NotFound(f"Document {document_id} not found.")
    set_document_tags(db, document_id, tag_names)
    db.update_document(document_id, updated_at=now_ms())
