"""Tests for pitchpulse.document_extractor."""

from __future__ import annotations

from pathlib import Path

import pytest
from docx import Document
from pptx import Presentation
from pypdf import PdfWriter

from pitchpulse.document_extractor import (
    detect_extension,
    extract_document_text,
    sanitize_filename,
    validate_document_extension,
)
from pitchpulse.errors import DocumentExtractionError


class TestExtensions:
    def test_detect_extension(self) -> None:
        assert detect_extension("Pitch Deck.PPTX") == ".pptx"
        assert detect_extension("") == ""

    def test_sanitize_filename(self) -> None:
        assert sanitize_filename("../../my pitch (v2).docx") == "my_pitch__v2_.docx"
        assert sanitize_filename("") == "document"

    @pytest.mark.parametrize("extension", [".txt", ".docx", ".pdf", ".pptx"])
    def test_supported(self, extension: str) -> None:
        validate_document_extension(extension)

    def test_legacy_doc(self) -> None:
        with pytest.raises(DocumentExtractionError, match="convert to .docx"):
            validate_document_extension(".doc")

    def test_legacy_ppt(self) -> None:
        with pytest.raises(DocumentExtractionError, match="convert to .pptx"):
            validate_document_extension(".ppt")

    def test_unknown(self) -> None:
        with pytest.raises(DocumentExtractionError, match="Unsupported file type: .rtf"):
            validate_document_extension(".rtf")


class TestExtractDocumentText:
    def test_txt(self, tmp_path: Path) -> None:
        path = tmp_path / "pitch.txt"
        path.write_text("  Hello investors, we build tools.  \n", encoding="utf-8")
        assert extract_document_text(path) == "Hello investors, we build tools."

    def test_docx(self, tmp_path: Path) -> None:
        path = tmp_path / "pitch.docx"
        document = Document()
        document.add_paragraph("Our mission is simple.")
        document.add_paragraph("We help founders practise.")
        document.save(str(path))
        assert extract_document_text(path) == "Our mission is simple.\nWe help founders practise."

    def test_pptx(self, tmp_path: Path) -> None:
        path = tmp_path / "deck.pptx"
        presentation = Presentation()
        for title in ("The problem we solve", "Traction so far"):
            slide = presentation.slides.add_slide(presentation.slide_layouts[5])
            slide.shapes.title.text = title
        presentation.save(str(path))
        assert extract_document_text(path) == "The problem we solve\n\nTraction so far"

    def test_pdf_without_text(self, tmp_path: Path) -> None:
        path = tmp_path / "scan.pdf"
        writer = PdfWriter()
        writer.add_blank_page(width=612, height=792)
        with path.open("wb") as handle:
            writer.write(handle)
        with pytest.raises(DocumentExtractionError, match="Could not extract text"):
            extract_document_text(path)

    def test_too_short(self, tmp_path: Path) -> None:
        path = tmp_path / "short.txt"
        path.write_text("hi there", encoding="utf-8")
        with pytest.raises(DocumentExtractionError):
            extract_document_text(path)

    def test_unsupported(self, tmp_path: Path) -> None:
        path = tmp_path / "old.doc"
        path.write_bytes(b"\xd0\xcf\x11\xe0")
        with pytest.raises(DocumentExtractionError):
            extract_document_text(path)
