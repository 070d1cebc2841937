import io
from typing import Tuple
from pypdf import PdfReader
from docx import Document as DocxDocument

from .errors import ValidationError

DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


def read_text_from_pdf(data: bytes) -> str:
    pdf = PdfReader(io.BytesIO(data))
    parts = []
    for page in pdf.pages:
        parts.append(page.extract_text() or "")
    return "\n".join(parts)


def read_text_from_docx(data: bytes) -> str:
    """
    Extract text from DOCX content including both paragraphs and tables.
    Tables are converted to readable text format.
    """
    doc = DocxDocument(io.BytesIO(data))
    parts = []

    for para in doc.paragraphs:
        text = para.text.strip()
        if text:
            parts.append(text)

    for table in doc.tables:
        table_text = extract_table_text(table)
        if table_text:
            parts.append("\n" + table_text)

    return "\n\n".join(parts)


def extract_table_text(table) -> str:
    """
    Convert a DOCX table to readable text format.
    Each row is preserved with clear separators.
    """
    lines = []

    for row in table.rows:
        cells = [cell.text.strip() for cell in row.cells]

        # Skip completely empty rows
        if not any(cells):
            continue

        lines.append(" | ".join(cells))

    return "\n".join(lines)


def read_text_from_txt(data: bytes, encoding="utf-8") -> str:
    return data.decode(encoding, errors="ignore")


def read_any(data: bytes, mime: str, filename: str) -> Tuple[str, str]:
    """
    Decode an uploaded file to text.

    Returns:
        (text, kind) where kind is "pdf", "docx" or "txt"

    Raises:
        ValidationError: If a PDF or DOCX payload cannot be parsed
    """
    name = (filename or "").lower()
    try:
        if name.endswith(".pdf") or mime == "application/pdf":
            return read_text_from_pdf(data), "pdf"
        if name.endswith(".docx") or mime == DOCX_MIME:
            return read_text_from_docx(data), "docx"
    except Exception as e:
        raise ValidationError(
            f"Failed to extract text from {filename or 'upload'}",
            details={"error": str(e)},
        ) from e
    # default to txt
    return read_text_from_txt(data), "txt"
