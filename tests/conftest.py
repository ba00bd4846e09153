"""
Pytest configuration and fixtures for Paperlib tests.
"""

import pytest
import sys
from pathlib import Path

import fitz  # PyMuPDF

# Add paperlib to path
sys.path.insert(0, str(Path(__file__).parent.parent))


# =============================================================================
# Sample data fixtures
# =============================================================================

PDF_METADATA_KEYS = (
    "title",
    "author",
    "subject",
    "keywords",
    "creator",
    "producer",
    "creationDate",
    "modDate",
)


def build_pdf(pages=None, metadata=None) -> bytes:
    """
    Build a PDF in memory.

    Args:
        pages: List of pages, each a list of text lines
        metadata: PyMuPDF metadata keys (title, author, keywords, creationDate)
    """
    doc = fitz.open()
    for lines in pages or [[]]:
        page = doc.new_page()
        if lines:
            page.insert_text((72, 72), "\n".join(lines), fontsize=10)

    values = {key: "" for key in PDF_METADATA_KEYS}
    values.update(metadata or {})
    doc.set_metadata(values)

    data = doc.tobytes()
    doc.close()
    return data


SAMPLE_PAGE = [
    "Robust Document Import Pipelines",
    "Jane Doe jane.doe@example.edu",
    "John Smith john.smith@example.org",
    "Abstract",
    "We describe a pipeline that imports scholarly documents from URLs and",
    "local files, validates their content and reconciles metadata sources.",
    "Keywords: document import; metadata; deduplication",
    "1. Introduction",
    "Published in 2021. Earlier drafts appeared in 2019.",
    "doi:10.5555/paperlib.2021.001",
]


@pytest.fixture
def make_pdf():
    """Factory building PDF bytes from lines of text and metadata."""
    return build_pdf


@pytest.fixture
def sample_pdf_bytes():
    """Single-page PDF with text but no embedded properties."""
    return build_pdf([SAMPLE_PAGE])


@pytest.fixture
def sample_pdf_path(tmp_path, sample_pdf_bytes):
    """sample_pdf_bytes written to a temporary file."""
    pdf_path = tmp_path / "robust_document-import.pdf"
    pdf_path.write_bytes(sample_pdf_bytes)
    return pdf_path


@pytest.fixture
def sample_paper_text():
    """First-page text of a typical paper."""
    return "\n".join([
        "3",
        "https://journals.example.org/jdi",
        "Robust Document Import Pipelines",
        "Jane Doe jane.doe@example.edu",
        "John Smith <john.smith@example.org>",
        "",
        "Abstract",
        "We describe a pipeline that imports scholarly documents from URLs and",
        "local files, validates their content and reconciles metadata sources.",
        "",
        "Keywords: document import; metadata; deduplication",
        "",
        "1. Introduction",
        "© 2021 The Authors. Received (2020), accepted 2021.",
        "Available at https://doi.org/10.5555/paperlib.2021.001.",
    ])


@pytest.fixture
def files_dir(tmp_path):
    """Empty content-store root."""
    return tmp_path / "files"


@pytest.fixture
def store(files_dir):
    """ContentStore rooted in a temporary directory."""
    from paperlib.ingest.content_store import ContentStore
    return ContentStore(files_dir)


# =============================================================================
# Pytest markers
# =============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with -m 'not slow')"
    )
