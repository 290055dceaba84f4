"""Turn uploaded files into content the extraction call can consume."""

import base64
import io
import logging
from dataclasses import dataclass

from .errors import ReaderError
from .models import SourceFile

logger = logging.getLogger(__name__)

TEXT_MIME_TYPE = "text/plain"
TEXT_EXTENSIONS = {".txt"}
DOCUMENT_EXTENSIONS = {".docx"}


@dataclass
class ContentPayload:
    """
    Extraction input.

    For text/plain the data is the document text itself; for every other
    mime type it is the base64-encoded file bytes.
    """

    data: str
    mime_type: str

    @property
    def is_text(self) -> bool:
        return self.mime_type == TEXT_MIME_TYPE


def read_content(source: SourceFile) -> ContentPayload:
    """
    Convert a source file into text or base64 content.

    Word-processor documents are detected by extension rather than by the
    declared content type, which uploads frequently get wrong.
    """
    if source.extension in DOCUMENT_EXTENSIONS:
        logger.debug(f"Reading {source.name} as word-processor document")
        return ContentPayload(data=read_docx_text(source.data), mime_type=TEXT_MIME_TYPE)

    if source.content_type == TEXT_MIME_TYPE or source.extension in TEXT_EXTENSIONS:
        logger.debug(f"Reading {source.name} as plain text")
        return ContentPayload(data=_decode_text(source), mime_type=TEXT_MIME_TYPE)

    logger.debug(f"Reading {source.name} as binary ({source.content_type})")
    return ContentPayload(
        data=base64.b64encode(source.data).decode("ascii"),
        mime_type=source.content_type,
    )


def read_docx_text(data: bytes) -> str:
    """Extract raw text from a .docx file: paragraphs first, then table rows."""
    try:
        from docx import Document

        doc = Document(io.BytesIO(data))
    except Exception as e:
        raise ReaderError(f"Could not read word document: {e}") from e

    parts = [p.text.strip() for p in doc.paragraphs if p.text and p.text.strip()]

    for table in doc.tables:
        for row in table.rows:
            cells = [c.text.strip() for c in row.cells if c.text and c.text.strip()]
            if cells:
                parts.append(" | ".join(cells))

    return "\n".join(parts)


def _decode_text(source: SourceFile) -> str:
    try:
        return source.data.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ReaderError(f"{source.name} is not valid UTF-8 text") from e
