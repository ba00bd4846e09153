"""
Read embedded properties and leading text from PDF bytes with PyMuPDF.
"""

import logging
from dataclasses import dataclass, field

import fitz  # PyMuPDF

from paperlib.security.input_validation import sanitize_string

logger = logging.getLogger(__name__)

# PyMuPDF metadata key -> property name used by the extractor
PROPERTY_KEYS = {
    "title": "title",
    "author": "author",
    "subject": "subject",
    "keywords": "keywords",
    "creationDate": "creation_date",
}

MAX_PROPERTY_LENGTH = 2000


@dataclass
class DocumentContent:
    """Text of the first pages plus embedded document properties."""

    text: str = ""
    properties: dict[str, str] = field(default_factory=dict)
    page_count: int = 0


def read_document(data: bytes, max_pages: int = 3) -> DocumentContent:
    """
    Parse PDF bytes.

    Blocking; call through asyncio.to_thread from async code.

    Args:
        data: PDF bytes
        max_pages: Number of leading pages whose text is returned

    Returns:
        DocumentContent

    Raises:
        Whatever PyMuPDF raises for unreadable documents
    """
    doc = fitz.open(stream=data, filetype="pdf")
    try:
        raw = doc.metadata or {}
        properties = {}
        for key, name in PROPERTY_KEYS.items():
            value = sanitize_string(raw.get(key), max_length=MAX_PROPERTY_LENGTH, single_line=True).strip()
            if value:
                properties[name] = value

        pages = []
        for page_number in range(min(max_pages, doc.page_count)):
            pages.append(doc[page_number].get_text() or "")

        content = DocumentContent(
            text="\n".join(pages),
            properties=properties,
            page_count=doc.page_count,
        )
    finally:
        doc.close()

    logger.debug(
        f"Read {content.page_count} pages, {len(content.text)} chars, "
        f"properties={sorted(content.properties)}"
    )
    return content
