"""
DOI and arXiv identifier handling.

Normalization plus the regular expressions shared by the request classifier,
the metadata extractor and the source resolver. Everything here is pure.
"""

import re
from typing import Optional

# Registrant code of at least four digits, then any non-space suffix
DOI_CORE = r"10\.\d{4,}/[^\s]+"

# New-style arXiv ids: YYMM.NNNN or YYMM.NNNNN, optional version
ARXIV_ID = r"\d{4}\.\d{4,5}(?:v\d+)?"

ARXIV_URL_PATTERN = re.compile(
    rf"arxiv\.org/(?:abs|pdf|html|format)/({ARXIV_ID})(?:\.pdf)?",
    re.IGNORECASE,
)
ARXIV_PREFIX_PATTERN = re.compile(rf"^arxiv:\s*({ARXIV_ID})$", re.IGNORECASE)

BARE_DOI_PATTERN = re.compile(r"^(?:doi:\s*)?(10\.\d{4,}/[^\s&]+)$", re.IGNORECASE)
DOI_URL_PATTERN = re.compile(r"(?:dx\.)?doi\.org/(10\.\d{4,}/[^\s&]+)", re.IGNORECASE)

# Used on free text: optional "doi:" or doi.org host in front of the DOI
TEXT_DOI_PATTERN = re.compile(
    rf"(?:doi:\s*|(?:dx\.)?doi\.org/)?({DOI_CORE})",
    re.IGNORECASE,
)
URL_DOI_PATTERN = re.compile(r"10\.\d{4,}/[^\s&]+")

MAX_DOI_LENGTH = 100
ARXIV_DOI_PREFIX = "10.48550/arXiv."

_TRAILING_PUNCT = ".,;:'\""
_BRACKETS = {")": "(", "]": "[", "}": "{", ">": "<"}


def normalize_doi(doi: str) -> str:
    """
    Strip URL / "doi:" prefixes and surrounding whitespace.

    Case is preserved: DOIs are case-insensitive but the registered form is
    what users expect to see.

    Handles:
    - Full URLs (https://doi.org/10.1234/...)
    - doi: prefix
    - Whitespace
    """
    if not doi:
        return ""

    doi = doi.strip()

    for prefix in [
        "https://doi.org/",
        "http://doi.org/",
        "https://dx.doi.org/",
        "http://dx.doi.org/",
        "doi.org/",
        "doi:",
    ]:
        if doi.lower().startswith(prefix):
            doi = doi[len(prefix):]

    return doi.strip()


def normalize_arxiv_id(arxiv_id: str, keep_version: bool = True) -> str:
    """
    Normalize an arXiv ID.

    Handles:
    - Full URLs (https://arxiv.org/abs/2301.12345)
    - arXiv: prefix
    - Version suffixes (v1, v2), removed when keep_version is False
    """
    if not arxiv_id:
        return ""

    arxiv_id = arxiv_id.strip()

    match = ARXIV_URL_PATTERN.search(arxiv_id)
    if match:
        arxiv_id = match.group(1)

    if arxiv_id.lower().startswith("arxiv:"):
        arxiv_id = arxiv_id[len("arxiv:"):].strip()

    if arxiv_id.lower().endswith(".pdf"):
        arxiv_id = arxiv_id[: -len(".pdf")]

    if not keep_version:
        arxiv_id = re.sub(r"v\d+$", "", arxiv_id)

    return arxiv_id


def arxiv_doi(arxiv_id: str) -> str:
    """DataCite DOI assigned to every arXiv paper (version-less)."""
    return f"{ARXIV_DOI_PREFIX}{normalize_arxiv_id(arxiv_id, keep_version=False)}"


def trim_doi(candidate: str) -> str:
    """
    Remove trailing punctuation picked up from running text.

    Closing brackets are only removed when unbalanced, so
    10.1002/(SICI)1097-4571 keeps its parentheses.
    """
    doi = candidate
    while doi:
        last = doi[-1]
        if last in _TRAILING_PUNCT:
            doi = doi[:-1]
        elif last in _BRACKETS and doi.count(last) > doi.count(_BRACKETS[last]):
            doi = doi[:-1]
        else:
            break
    return doi


def extract_doi_from_text(text: str) -> Optional[str]:
    """
    First DOI in free text, trimmed of trailing punctuation.

    Patterns:
    - 10.XXXX/... (standard DOI)
    - doi.org/10.XXXX/...
    - doi:10.XXXX/...

    Returns None when nothing matches or the DOI is longer than 100 chars.
    """
    if not text:
        return None

    match = TEXT_DOI_PATTERN.search(text)
    if not match:
        return None

    doi = trim_doi(match.group(1))
    if not doi or len(doi) > MAX_DOI_LENGTH:
        return None
    return doi


def extract_doi_from_url(url: str) -> Optional[str]:
    """
    DOI embedded in a URL path, e.g. https://example.com/papers/10.1234/abc.pdf.

    Last-resort identifier for downloaded documents.
    """
    if not url:
        return None

    match = URL_DOI_PATTERN.search(url)
    if not match:
        return None

    doi = trim_doi(match.group(0))
    if doi.lower().endswith(".pdf"):
        doi = doi[: -len(".pdf")]
    return doi or None
