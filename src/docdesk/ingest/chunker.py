"""Word-window chunking with page-span tracking."""

from ..models import Chunk, TextPage


def split_words(text: str) -> list[str]:
    """Whitespace-tokenize text, dropping empty tokens."""
    return text.split()


def make_chunk_id(document_id: str, chunk_index: int) -> str:
    return f"{document_id}:chunk:{chunk_index}"


def chunk_pages(
    document_id: str,
    pages: list[TextPage],
    chunk_size: int = 260,
    overlap: int = 80,
) -> list[Chunk]:
    """Split per-page text into overlapping fixed-size word windows.

    Words are buffered across page boundaries. Once the buffer holds
    ``chunk_size`` words a chunk is emitted spanning from the page of the
    buffer's first word to the page of the word that filled it. The buffer
    then keeps its last ``overlap`` words and the next chunk is taken to
    start on the emitting page; tail words carried over from an earlier
    page are not tracked individually.

    Args:
        document_id: Owner document, used to derive stable chunk IDs.
        pages: Pages in reading order.
        chunk_size: Maximum words per chunk.
        overlap: Words repeated at the start of the following chunk.

    Returns:
        Chunks in order. Empty when every page is blank.
    """
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    if overlap < 0:
        raise ValueError(f"overlap must not be negative, got {overlap}")

    chunks: list[Chunk] = []
    buffer: list[str] = []
    start_page: int | None = None
    end_page: int | None = None

    for page in pages:
        words = split_words(page.text)
        if not words:
            continue

        for word in words:
            if start_page is None:
                start_page = page.page
            end_page = page.page
            buffer.append(word)

            if len(buffer) >= chunk_size:
                chunks.append(Chunk(
                    chunk_id=make_chunk_id(document_id, len(chunks)),
                    chunk_index=len(chunks),
                    page_start=start_page,
                    page_end=end_page,
                    text=" ".join(buffer),
                ))
                buffer = buffer[chunk_size - overlap:] if chunk_size > overlap else []
                start_page = end_page if buffer else None

    if buffer and start_page is not None:
        chunks.append(Chunk(
            chunk_id=make_chunk_id(document_id, len(chunks)),
            chunk_index=len(chunks),
            page_start=start_page,
            page_end=end_page if end_page is not None else start_page,
            text=" ".join(buffer),
        ))

    return chunks


def count_words(text: str) -> int:
    return len(split_words(text))
