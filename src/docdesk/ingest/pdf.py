"""PDF text extraction."""

import re
from pathlib import Path

from ..errors import ValidationError
from ..models import ExtractedPdf, TextPage
from .chunker import count_words


class PdfParser:
    """Extract per-page text from PDF files using pypdf."""

    def parse(self, file_path: Path) -> ExtractedPdf:
        from pypdf import PdfReader
        from pypdf.errors import PdfReadError

        try:
            reader = PdfReader(str(file_path))
            pages = [
                TextPage(page=number, text=self._clean_page(page.extract_text() or ""))
                for number, page in enumerate(reader.pages, start=1)
            ]
        except PdfReadError as e:
            raise ValidationError(f"Could not read PDF {file_path.name}: {e}") from e

        full_text = "\n\n".join(p.text for p in pages if p.text)
        return ExtractedPdf(
            pages=pages,
            page_count=len(pages),
            word_count=count_words(full_text),
            full_text=full_text,
        )

    def title_from_metadata(self, file_path: Path) -> str | None:
        """Return the embedded PDF title if it looks like a real one."""
        from pypdf import PdfReader

        meta = PdfReader(str(file_path)).metadata
        if meta and meta.title:
            t = meta.title.strip()
            # Skip titles that look like JSON, are too long, or span lines
            if t and not t.startswith(("{", "[")) and len(t) < 200 and "\n" not in t:
                return t
        return None

    @staticmethod
    def _clean_page(text: str) -> str:
        """Rejoin lines that pypdf splits mid-paragraph.

        Blank lines stay paragraph breaks; list items and markdown-style
        headers keep their own line.
        """
        paragraphs: list[str] = []
        current: list[str] = []

        for line in text.split("\n"):
            stripped = line.strip()
            if not stripped:
                if current:
                    paragraphs.append(" ".join(current))
                    current = []
                continue

            if re.match(r"^(#{1,6}\s|[-*•]\s)", stripped):
                if current:
                    paragraphs.append(" ".join(current))
                    current = []
                paragraphs.append(stripped)
            else:
                current.append(stripped)

        if current:
            paragraphs.append(" ".join(current))

        return "\n".join(paragraphs).strip()


def title_from_filename(name: str) -> str:
    """Derive a display title from an uploaded file name."""
    return re.sub(r"\.pdf$", "", name, flags=re.IGNORECASE) or "Untitled"
