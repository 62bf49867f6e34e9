import re
from pathlib import Path
from typing import List

from docx import Document
from pypdf import PdfReader
from pptx import Presentation

from .errors import DocumentExtractionError


SUPPORTED_DOCUMENT_EXTENSIONS = {".txt", ".docx", ".pdf", ".pptx"}
LEGACY_EXTENSIONS = {".doc": ".docx", ".ppt": ".pptx"}
MIN_TEXT_CHARS = 10


def detect_extension(filename: str) -> str:
    return Path(filename or "").suffix.lower()


def sanitize_filename(filename: str) -> str:
    candidate = Path(filename or "").name
    if candidate in {"", ".", ".."}:
        candidate = "document"

    sanitized = re.sub(r"[^A-Za-z0-9._-]", "_", candidate)
    if sanitized in {"", ".", ".."}:
        sanitized = "document"

    stem = Path(sanitized).stem[:120] or "document"
    ext = Path(sanitized).suffix[:20]
    return f"{stem}{ext}"


def validate_document_extension(extension: str) -> None:
    if extension in LEGACY_EXTENSIONS:
        raise DocumentExtractionError(
            f"Could not parse {extension} file. Please convert to {LEGACY_EXTENSIONS[extension]} "
            "or paste text directly."
        )
    if extension not in SUPPORTED_DOCUMENT_EXTENSIONS:
        raise DocumentExtractionError(f"Unsupported file type: {extension or '(none)'}")


def extract_document_text(document_path: Path) -> str:
    """Plain text of a pitch script or deck, for pasting into the analyzer."""
    extension = document_path.suffix.lower()
    validate_document_extension(extension)

    if extension == ".txt":
        text = document_path.read_bytes().decode("utf-8", errors="replace")
    elif extension == ".docx":
        text = _extract_docx(document_path)
    elif extension == ".pdf":
        text = _extract_pdf(document_path)
    else:
        text = _extract_pptx(document_path)

    text = text.strip()
    if len(text) < MIN_TEXT_CHARS:
        raise DocumentExtractionError(
            "Could not extract text from document. Please paste your pitch text directly."
        )
    return text


def _extract_docx(document_path: Path) -> str:
    document = Document(str(document_path))
    return "\n".join(paragraph.text for paragraph in document.paragraphs)


def _extract_pdf(document_path: Path) -> str:
    reader = PdfReader(str(document_path))
    pages: List[str] = []
    for page in reader.pages:
        text = (page.extract_text() or "").strip()
        if text:
            pages.append(text)
    return "\n\n".join(pages)


def _extract_pptx(document_path: Path) -> str:
    presentation = Presentation(str(document_path))
    slides: List[str] = []

    for slide in presentation.slides:
        text_chunks: List[str] = []
        for shape in slide.shapes:
            text = getattr(shape, "text", "")
            if text:
                text_chunks.append(text.strip())

        slide_text = "\n".join(chunk for chunk in text_chunks if chunk).strip()
        if slide_text:
            slides.append(slide_text)

    return "\n\n".join(slides)
