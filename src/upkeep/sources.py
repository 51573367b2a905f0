"""Reading uploaded manuals (PDF or plain text) into document text.

For PDFs only pages that mention maintenance keywords are kept, each under a
``--- Page N ---`` header, which keeps installation chapters and technical
data tables away from the completion capability.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from pypdf import PdfReader
from pypdf.errors import PdfReadError

from upkeep.errors import EmptyDocument, ValidationError

MAINTENANCE_KEYWORDS = (
    "обслуживание",
    "регламент",
    "сервис",
    "правила",
    "безопасность",
    "maintenance",
    "service",
    "schedule",
    "safety",
)

TEXT_SUFFIXES = (".txt", ".md", ".markdown")

# Tried in order; cp1251 covers legacy Russian manuals
TEXT_ENCODINGS = ("utf-8", "cp1251")

ProgressCallback = Callable[[int], None]


@dataclass
class DocumentText:
    """Text pulled from a manual, plus any rules found while reading it."""

    text: str
    rules: list[str] = field(default_factory=list)


def is_relevant(page_text: str) -> bool:
    lowered = page_text.lower()
    return any(keyword in lowered for keyword in MAINTENANCE_KEYWORDS)


def read_pdf(file_path: str, on_progress: ProgressCallback | None = None) -> DocumentText:
    """Extract maintenance-relevant pages from a PDF.

    Args:
        file_path: Path to the PDF file
        on_progress: Called with a 0..100 percentage after each page

    Raises:
        EmptyDocument: No text layer, or no page mentions maintenance
    """
    try:
        reader = PdfReader(file_path)
        pages = list(reader.pages)
    except PdfReadError as e:
        raise EmptyDocument(f"Cannot read PDF {Path(file_path).name}: {e}") from e

    total = len(pages)
    parts = []
    for number, page in enumerate(pages, 1):
        page_text = page.extract_text() or ""
        if is_relevant(page_text):
            parts.append(f"--- Page {number} ---\n{page_text}\n\n")
        if on_progress:
            on_progress(round(number / total * 100))

    text = "".join(parts)
    if not text.strip():
        raise EmptyDocument(
            f"{Path(file_path).name} has no text layer or no maintenance sections",
            {"pages": total},
        )
    return DocumentText(text=text)


def read_text(file_path: str, on_progress: ProgressCallback | None = None) -> DocumentText:
    """Read a plain text manual."""
    raw = Path(file_path).read_bytes()
    for encoding in TEXT_ENCODINGS:
        try:
            contents = raw.decode(encoding)
            break
        except UnicodeDecodeError:
            continue
    else:
        raise EmptyDocument(
            f"{Path(file_path).name} is not readable text",
            {"encodings": list(TEXT_ENCODINGS)},
        )
    if on_progress:
        on_progress(100)
    if not contents.strip():
        raise EmptyDocument(f"{Path(file_path).name} is empty")
    return DocumentText(text=contents)


def read_document(file_path: str, on_progress: ProgressCallback | None = None) -> DocumentText:
    """Read an uploaded manual, choosing the reader by file extension.

    Supports:
    - .pdf files (text layer only, no OCR)
    - .txt, .md, .markdown files

    Raises:
        ValidationError: If the file doesn't exist or its extension is not supported
        EmptyDocument: If the document has no usable text
    """
    path = Path(file_path)

    if not path.exists():
        raise ValidationError(f"File not found: {file_path}")

    suffix = path.suffix.lower()
    if suffix == ".pdf":
        return read_pdf(file_path, on_progress)
    if suffix in TEXT_SUFFIXES:
        return read_text(file_path, on_progress)
    raise ValidationError(
        f"Unsupported document type: {suffix or 'no extension'}",
        {"supported": [".pdf", *TEXT_SUFFIXES]},
    )
