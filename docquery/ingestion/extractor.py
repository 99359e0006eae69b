"""Text extraction for uploaded PDF, DOCX, HTML and plain-text files."""

import io
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

from bs4 import BeautifulSoup

from docquery.errors import ExtractionError, UnsupportedFileTypeError
from docquery.models.enums import DocumentType

logger = logging.getLogger(__name__)

HEADING_TAGS = ["h1", "h2", "h3", "h4", "h5", "h6"]


@dataclass
class ExtractedText:
    """Raw text pulled out of a file plus format-specific metadata."""

    text: str
    metadata: dict = field(default_factory=dict)


def file_type_for(path: str | Path) -> DocumentType:
    """Map a file name's suffix to its document type."""
    suffix = Path(path).suffix.lower().lstrip(".")
    if suffix == "htm":
        suffix = "html"
    try:
        return DocumentType(suffix)
    except ValueError:
        allowed = ", ".join(t.value for t in DocumentType)
        raise UnsupportedFileTypeError(
            f"Unsupported file type: {suffix or '(none)'}. Allowed types: {allowed}"
        ) from None


def extract_text(data: bytes, file_type: DocumentType | str, file_name: str = "") -> ExtractedText:
    """Extract text from file contents of the given type."""
    try:
        file_type = DocumentType(file_type)
    except ValueError:
        raise UnsupportedFileTypeError(f"Unsupported file type: {file_type}") from None

    try:
        if file_type == DocumentType.PDF:
            extracted = _extract_pdf(data)
        elif file_type == DocumentType.DOCX:
            extracted = _extract_docx(data)
        elif file_type == DocumentType.HTML:
            extracted = _extract_html(data)
        else:
            extracted = ExtractedText(text=data.decode("utf-8", errors="replace"))
    except Exception as e:
        raise ExtractionError(f"Could not read {file_name or 'file'} as {file_type.value}: {e}") from e

    extracted.metadata["fileName"] = file_name
    logger.debug("Extracted %d characters from %s (%s)", len(extracted.text), file_name, file_type.value)
    return extracted


def extract_file(path: str | Path) -> tuple[DocumentType, ExtractedText]:
    """Read a file from disk and extract its text based on its suffix."""
    path = Path(path)
    file_type = file_type_for(path)
    return file_type, extract_text(path.read_bytes(), file_type, file_name=path.name)


def _extract_html(data: bytes) -> ExtractedText:
    soup = BeautifulSoup(data, "html.parser")

    for tag in soup.find_all(["script", "style"]):
        tag.decompose()

    title = soup.title.get_text(strip=True) if soup.title else ""
    headings = []
    for el in soup.find_all(HEADING_TAGS):
        text = el.get_text(strip=True)
        if text:
            headings.append({"level": int(el.name[1]), "text": text})

    body = soup.body or soup
    text = re.sub(r"\s+", " ", body.get_text(separator=" ")).strip()
    return ExtractedText(text=text, metadata={"title": title, "headings": headings})


def _extract_pdf(data: bytes) -> ExtractedText:
    from pypdf import PdfReader

    reader = PdfReader(io.BytesIO(data))
    pages = [page.extract_text() or "" for page in reader.pages]
    return ExtractedText(text="\n".join(pages), metadata={"pages": len(reader.pages)})


def _extract_docx(data: bytes) -> ExtractedText:
    from docx import Document as DocxDocument

    doc = DocxDocument(io.BytesIO(data))
    paragraphs = [p.text for p in doc.paragraphs]
    return ExtractedText(text="\n".join(paragraphs), metadata={"paragraphs": len(paragraphs)})
