"""Data models used throughout docdesk."""

import time
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

T = TypeVar("T")


def now_ms() -> int:
    """Current time as integer milliseconds since the epoch."""
    return int(time.time() * 1000)


@dataclass
class TextPage:
    """Extracted text of a single 1-based PDF page."""
    page: int
    text: str


@dataclass
class Chunk:
    """A bounded window of a document's words."""
    chunk_id: str
    chunk_index: int
    page_start: int
    page_end: int
    text: str


@dataclass
class ExtractedPdf:
    pages: list[TextPage]
    page_count: int
    word_count: int
    full_text: str


@dataclass
class IngestRequest:
    """Everything the indexer needs to store and index a new document."""
    document_id: str
    title: str
    source_name: str
    pages: list[TextPage]
    description_md: str
    file_path: str
    mime_type: str
    byte_size: int
    word_count: int
    full_text: str


@dataclass
class IngestResult:
    chunk_count: int


@dataclass
class Document:
    id: str
    title: str
    source_name: str
    page_count: int
    description_md: str
    file_path: str
    mime_type: str
    byte_size: int
    word_count: int
    created_at: int
    updated_at: int


@dataclass
class SelectionRect:
    """A rectangle in page-relative coordinates, each value in [0, 1]."""
    x: float
    y: float
    w: float
    h: float


@dataclass
class Note:
    id: str
    document_id: str
    page: int
    quote: str
    content_md: str
    selection_rects: list[SelectionRect]
    created_at: int


@dataclass
class Highlight:
    id: str
    document_id: str
    page: int
    color: str
    text: str
    rects: list[SelectionRect]
    created_at: int


@dataclass
class LinkedDocument:
    id: str
    title: str


@dataclass
class NoteDetail:
    """A note with its resolved tags and linked documents."""
    note: Note
    tags: list[str] = field(default_factory=list)
    linked_documents: list[LinkedDocument] = field(default_factory=list)


@dataclass
class DocumentListItem:
    document: Document
    tags: list[str] = field(default_factory=list)


@dataclass
class DocumentDetail:
    document: Document
    tags: list[str]
    all_tags: list[str]
    notes: list[NoteDetail]
    highlights: list[Highlight]
    all_documents: list[LinkedDocument]


@dataclass
class WorkspaceSnapshot:
    documents: list[Document]
    notes: list[Note]


@dataclass
class VectorQueryResult:
    """Nearest-neighbour results, ascending by distance."""
    ids: list[str] = field(default_factory=list)
    metadatas: list[dict[str, Any]] = field(default_factory=list)
    distances: list[float] = field(default_factory=list)
    documents: list[str] = field(default_factory=list)


@dataclass
class SearchHit:
    document_id: str
    title: str
    page: int | None
    score: float
    reasons: list[str]
    snippet: str


@dataclass
class ActionResult(Generic[T]):
    """Success/failure envelope returned by every public action."""
    ok: bool
    message: str
    data: T | None = None
