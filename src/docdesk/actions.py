"""Public operations: validate input, run the workspace call, wrap the outcome.

Every function returns an ``ActionResult``; failures become ``ok=False``
with a readable message instead of propagating.
"""

import logging
import mimetypes
import shutil
import uuid
from pathlib import Path
from typing import Any, Callable, TypeVar

import pydantic
from pydantic import BaseModel, Field, field_validator

from .db import WorkspaceDB
from .errors import DocdeskError, NotFound, ValidationError
from .ingest.indexer import Indexer
from .ingest.pdf import PdfParser, title_from_filename
from .models import ActionResult, IngestRequest, SearchHit
from .query.search import HybridSearchEngine
from .workspace import documents, notes
from .workspace.tags import parse_tag_list

logger = logging.getLogger(__name__)

T = TypeVar("T")


class UploadRequest(BaseModel):
    file_path: Path
    title: str | None = None
    description_md: str = ""
    tags_csv: str = ""

    @field_validator("file_path")
    @classmethod
    def _must_be_pdf(cls, v: Path) -> Path:
        if v.suffix.lower() != ".pdf":
            raise ValueError("Only PDF files are supported.")
        if not v.is_file():
            raise ValueError(f"File not found: {v}")
        return v


class SearchRequest(BaseModel):
    query: str = Field(min_length=1)
    tag_names_csv: str = ""
    limit: int = Field(default=20, ge=1, le=100)

    @field_validator("query")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Search query must not be empty.")
        return v


class DescriptionRequest(BaseModel):
    document_id: str = Field(min_length=1)
    description_md: str = ""


class DocumentTagsRequest(BaseModel):
    document_id: str = Field(min_length=1)
    tags_csv: str = ""


class NoteRequest(BaseModel):
    document_id: str = Field(min_length=1)
    page: int = Field(gt=0)
    quote: str = ""
    selection_rects: str | list[dict[str, Any]] = "[]"
    content_md: str = ""
    tags_csv: str = ""
    linked_document_ids_csv: str = ""


class DeleteNoteRequest(BaseModel):
    note_id: str = Field(min_length=1)


def _validation_message(error: pydantic.ValidationError) -> str:
    parts = []
    for err in error.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        msg = err.get("msg", "invalid value").removeprefix("Value error, ")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(parts)


def _parse(model: type[BaseModel], payload: dict[str, Any]):
    try:
        return model.model_validate(payload)
    except pydantic.ValidationError as e:
        raise ValidationError(_validation_message(e)) from e


def _run(fallback: str, fn: Callable[[], ActionResult[T]]) -> ActionResult[T]:
    try:
        return fn()
    except ValidationError as e:
        logger.info("Rejected input: %s", e)
        return ActionResult(ok=False, message=str(e))
    except DocdeskError as e:
        logger.error("%s: %s", fallback, e)
        return ActionResult(ok=False, message=str(e) or fallback)
    except Exception as e:
        logger.exception(fallback)
        return ActionResult(ok=False, message=str(e) or fallback)


def upload_document(
    db: WorkspaceDB,
    indexer: Indexer,
    uploads_path: str | Path,
    **payload: Any,
) -> ActionResult[dict[str, Any]]:
    """Validate, extract, store and index a PDF, then tag it."""
    def action():
        req = _parse(UploadRequest, payload)
        indexer.index.health_check()

        parser = PdfParser()
        parsed = parser.parse(req.file_path)
        document_id = str(uuid.uuid4())
        target = Path(uploads_path) / f"{document_id}.pdf"
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(req.file_path, target)

        title = (
            (req.title or "").strip()
            or parser.title_from_metadata(req.file_path)
            or title_from_filename(req.file_path.name)
        )
        result = indexer.ingest(IngestRequest(
            document_id=document_id,
            title=title,
            source_name=req.file_path.name,
            pages=parsed.pages,
            description_md=req.description_md,
            file_path=str(target),
            mime_type=mimetypes.guess_type(req.file_path.name)[0] or "application/pdf",
            byte_size=target.stat().st_size,
            word_count=parsed.word_count,
            full_text=parsed.full_text,
        ))
        documents.update_document_tags(db, document_id, parse_tag_list(req.tags_csv))

        return ActionResult(
            ok=True,
            message=f"Uploaded and indexed {title}.",
            data={"document_id": document_id, "chunk_count": result.chunk_count},
        )

    return _run("Failed to upload document.", action)


def search_documents(engine: HybridSearchEngine, **payload: Any) -> ActionResult[list[SearchHit]]:
    def action():
        req = _parse(SearchRequest, payload)
        hits = engine.search(req.query, parse_tag_list(req.tag_names_csv), req.limit)
        if not hits:
            return ActionResult(ok=True, message="No matches found.", data=[])
        return ActionResult(ok=True, message=f"Found {len(hits)} matching document(s).", data=hits)

    result = _run("Search failed.", action)
    if result.data is None:
        result.data = []
    return result


def update_document_description(db: WorkspaceDB, **payload: Any) -> ActionResult[None]:
    def action():
        req = _parse(DescriptionRequest, payload)
        documents.update_description(db, req.document_id, req.description_md)
        return ActionResult(ok=True, message="Description updated.")

    return _run("Failed to update description.", action)


def update_document_tags(db: WorkspaceDB, **payload: Any) -> ActionResult[None]:
    def action():
        req = _parse(DocumentTagsRequest, payload)
        documents.update_document_tags(db, req.document_id, parse_tag_list(req.tags_csv))
        return ActionResult(ok=True, message="Document tags updated.")

    return _run("Failed to update tags.", action)


def create_note(db: WorkspaceDB, **payload: Any) -> ActionResult[dict[str, str]]:
    def action():
        req = _parse(NoteRequest, payload)
        note = notes.create_note(
            db,
            document_id=req.document_id,
            page=req.page,
            content_md=req.content_md,
            quote=req.quote,
            selection_rects=notes.parse_selection_rects(req.selection_rects),
            tag_names=parse_tag_list(req.tags_csv),
            linked_document_ids=req.linked_document_ids_csv.split(","),
        )
        return ActionResult(ok=True, message="Note saved.", data={"note_id": note.id})

    return _run("Failed to save note.", action)


def delete_note(db: WorkspaceDB, **payload: Any) -> ActionResult[None]:
    def action():
        req = _parse(DeleteNoteRequest, payload)
        notes.delete_note(db, req.note_id)
        return ActionResult(ok=True, message="Note deleted.")

    return _run("Failed to delete note.", action)


def delete_document(db: WorkspaceDB, indexer: Indexer, document_id: str) -> ActionResult[None]:
    def action():
        doc = db.get_document(document_id)
        if doc is None:
            raise NotFound(f"Document {document_id} not found.")
        indexer.remove_document_artifacts(document_id)
        if doc.file_path:
            Path(doc.file_path).unlink(missing_ok=True)
        return ActionResult(ok=True, message=f"Deleted {doc.title}.")

    return _run("Failed to delete document.", action)
