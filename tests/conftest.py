"""Shared fixtures: a temp database, an in-memory vector index and fake embedders."""

import threading

import pytest

from docdesk.db import WorkspaceDB
from docdesk.embeddings.base import EmbedderBase
from docdesk.errors import ServiceUnavailable
from docdesk.ingest.indexer import Indexer
from docdesk.models import Document, IngestRequest, TextPage, now_ms
from docdesk.query.search import HybridSearchEngine
from docdesk.storage.memory import InMemoryVectorIndex

# word -> axis; words outside the vocabulary contribute nothing
CONCEPTS = {
    "ocean": 0, "sea": 0, "tide": 0, "waves": 0,
    "risk": 1, "market": 1, "finance": 1,
    "forest": 2, "tree": 2,
}


class ConceptEmbedder(EmbedderBase):
    """Deterministic bag-of-concepts embedder."""

    model_name = "fake-concepts"

    def __init__(self):
        self.calls: list[str] = []
        self._lock = threading.Lock()

    def embed(self, text: str) -> list[float]:
        with self._lock:
            self.calls.append(text)
        vec = [0.0] * 3
        for word in text.lower().split():
            axis = CONCEPTS.get(word.strip(".,;:!?"))
            if axis is not None:
                vec[axis] += 1.0
        return vec


class BrokenEmbedder(EmbedderBase):
    model_name = "broken"

    def embed(self, text: str) -> list[float]:
        raise ServiceUnavailable("embedding service down")


@pytest.fixture
def db(tmp_path):
    database = WorkspaceDB(tmp_path / "workspace.sqlite")
    yield database
    database.close()


@pytest.fixture
def index():
    return InMemoryVectorIndex()


@pytest.fixture
def embedder():
    return ConceptEmbedder()


@pytest.fixture
def indexer(db, embedder, index):
    return Indexer(db, embedder, index, chunk_size=260, overlap=80, embed_workers=2)


@pytest.fixture
def engine(db, embedder, index):
    return HybridSearchEngine(db, embedder, index)


def make_request(document_id, title, pages, description=""):
    text_pages = [TextPage(page=i, text=t) for i, t in enumerate(pages, start=1)]
    full_text = "\n\n".join(pages)
    return IngestRequest(
        document_id=document_id,
        title=title,
        source_name=f"{title}.pdf",
        pages=text_pages,
        description_md=description,
        file_path=f"/tmp/{document_id}.pdf",
        mime_type="application/pdf",
        byte_size=1024,
        word_count=len(full_text.split()),
        full_text=full_text,
    )


@pytest.fixture
def add_doc(indexer):
    """Ingest a document from a list of page texts."""
    def _add(document_id, title, pages, description=""):
        return indexer.ingest(make_request(document_id, title, pages, description))
    return _add


def insert_bare_document(db, document_id, title="Untitled"):
    ts = now_ms()
    db.insert_document(Document(
        id=document_id, title=title, source_name=f"{title}.pdf", page_count=1, description_md="",
        file_path="", mime_type="application/pdf", byte_size=0, word_count=0, created_at=ts, updated_at=ts,
    ))


@pytest.fixture
def bare_doc(db):
    """Insert a document row without text or chunks."""
    def _insert(document_id, title="Untitled"):
        insert_bare_document(db, document_id, title)
    return _insert


@pytest.fixture
def broken_embedder():
    return BrokenEmbedder()


def write_text_pdf(path, pages, title=None):
    """Write a PDF whose pages show the given lines in Helvetica.

    ``pages`` is a list of line lists. Lines must not contain parentheses
    or backslashes.
    """
    objects = {
        1: b"<< /Type /Catalog /Pages 2 0 R >>",
        3: b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica >>",
    }
    page_ids = [4 + 2 * i for i in range(len(pages))]
    kids = " ".join(f"{pid} 0 R" for pid in page_ids)
    objects[2] = f"<< /Type /Pages /Kids [{kids}] /Count {len(pages)} >>".encode()

    for pid, lines in zip(page_ids, pages):
        ops = ["BT", "/F1 10 Tf", "10 180 Td"]
        for i, line in enumerate(lines):
            if i:
                ops.append("0 -20 Td")
            ops.append(f"({line}) Tj")
        ops.append("ET")
        content = "\n".join(ops).encode("latin-1")
        objects[pid] = (
            f"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 400 200] "
            f"/Resources << /Font << /F1 3 0 R >> >> /Contents {pid + 1} 0 R >>"
        ).encode()
        objects[pid + 1] = b"<< /Length %d >>\nstream\n" % len(content) + content + b"\nendstream"

    trailer_extra = b""
    if title:
        info_id = max(objects) + 1
        objects[info_id] = f"<< /Title ({title}) >>".encode("latin-1")
        trailer_extra = b" /Info %d 0 R" % info_id

    out = bytearray(b"%PDF-1.4\n")
    offsets = {}
    for num in sorted(objects):
        offsets[num] = len(out)
        out += b"%d 0 obj\n" % num + objects[num] + b"\nendobj\n"

    xref_at = len(out)
    size = max(objects) + 1
    out += b"xref\n0 %d\n0000000000 65535 f \n" % size
    for num in range(1, size):
        out += b"%010d 00000 n \n" % offsets[num]
    out += b"trailer\n<< /Size %d /Root 1 0 R%s >>\nstartxref\n%d\n%%%%EOF\n" % (size, trailer_extra, xref_at)

    with open(path, "wb") as f:
        f.write(bytes(out))
    return path
