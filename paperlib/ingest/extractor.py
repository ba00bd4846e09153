"""
Heuristic metadata extraction from document text and embedded properties.

Each field has an ordered fallback chain and is extracted independently:
one field failing never affects another. Extractors return a FieldResult
tagged found / absent / failed and never raise.

Title:    embedded property -> first plausible line -> filename
Authors:  embedded property -> "Authors:"/"By:" span -> names next to emails
Year:     embedded creation date -> most frequent year in the first 5000 chars
DOI:      first DOI in the first 5000 chars
Abstract: "Abstract" heading up to Introduction / Keywords / blank line
Keywords: "Keywords:" line -> embedded keywords property
"""

import asyncio
import functools
import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional

from paperlib.config import config
from paperlib.ingest.identifiers import extract_doi_from_text
from paperlib.ingest.pdf_text import read_document

logger = logging.getLogger(__name__)

HEAD_CHARS = 5000
TITLE_MAX_LENGTH = 500
TITLE_LINE_MIN = 10
TITLE_LINE_MAX = 200
TITLE_SCAN_LINES = 10
AUTHOR_MAX_LENGTH = 100
AUTHOR_MAX_WORDS = 5
MAX_AUTHORS = 20
AUTHOR_SPAN_LINES = 5
ABSTRACT_MIN = 50
ABSTRACT_MAX = 2000
KEYWORD_MIN = 3
KEYWORD_MAX = 50
MAX_KEYWORDS = 10
MIN_YEAR = 1900


class FieldStatus(Enum):
    FOUND = "found"
    ABSENT = "absent"
    FAILED = "failed"


@dataclass(frozen=True)
class FieldResult:
    """Outcome of extracting one field."""

    status: FieldStatus
    value: Any = None
    origin: Optional[str] = None  # property, text, filename
    error: Optional[str] = None

    @classmethod
    def found(cls, value: Any, origin: str) -> "FieldResult":
        return cls(FieldStatus.FOUND, value, origin)

    @classmethod
    def absent(cls) -> "FieldResult":
        return cls(FieldStatus.ABSENT)

    @classmethod
    def failed(cls, error: str) -> "FieldResult":
        return cls(FieldStatus.FAILED, error=error)

    @property
    def is_found(self) -> bool:
        return self.status is FieldStatus.FOUND


def field_extractor(func: Callable[..., Optional[tuple[Any, str]]]) -> Callable[..., FieldResult]:
    """
    Wrap a heuristic returning (value, origin) or None into a FieldResult.

    Exceptions become FieldResult.failed so a bug in one heuristic only costs
    that field.
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs) -> FieldResult:
        try:
            outcome = func(*args, **kwargs)
        except Exception as e:
            logger.debug(f"{func.__name__} failed: {e}")
            return FieldResult.failed(f"{type(e).__name__}: {e}")
        if outcome is None:
            return FieldResult.absent()
        value, origin = outcome
        return FieldResult.found(value, origin)

    return wrapper


def _collapse(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def _max_year() -> int:
    return date.today().year + 1


# =============================================================================
# Title
# =============================================================================

DOCUMENT_SUFFIXES = (".pdf",)
PLACEHOLDER_TITLES = {"untitled", "untitled document", "title", "no title", "document"}
PLACEHOLDER_TITLE_PATTERN = re.compile(
    r"^(?:microsoft (?:word|powerpoint) - .*|.*\.(?:pdf|docx?|tex|dvi|ps))$",
    re.IGNORECASE,
)
NON_TITLE_LINE_PATTERN = re.compile(
    r"^(?:page\b|doi\b|doi:|arxiv|https?://|www\.|\d+$|\d+\s*/\s*\d+$|[-–]?\s*\d+\s*[-–]?$)",
    re.IGNORECASE,
)
HEADING_PATTERN = re.compile(
    r"^(?:\d+\.?\s*)?(?:abstract|introduction|keywords?|key words|index terms|references?|"
    r"acknowledge?ments?|contents|table of contents|authors?)\s*:?$",
    re.IGNORECASE,
)


def clean_title(title: str) -> str:
    """Collapse whitespace and newlines, cap at TITLE_MAX_LENGTH chars."""
    return _collapse(title)[:TITLE_MAX_LENGTH].strip()


def is_placeholder_title(title: str) -> bool:
    """True for titles that authoring tools insert instead of a real one."""
    lowered = title.strip().lower()
    if len(lowered) < 3 or lowered in PLACEHOLDER_TITLES:
        return True
    return bool(PLACEHOLDER_TITLE_PATTERN.match(lowered))


def title_from_filename(filename: Optional[str]) -> Optional[str]:
    """
    Human-readable title from a filename.

    "attention_is-all_you_need.pdf" -> "attention is all you need"
    "2301.12345" -> "2301.12345"

    Only a known document suffix is stripped, so dotted names such as arXiv
    ids survive.
    """
    if not filename:
        return None
    name = Path(filename).name
    for suffix in DOCUMENT_SUFFIXES:
        if name.lower().endswith(suffix) and len(name) > len(suffix):
            name = name[: -len(suffix)]
            break
    title = re.sub(r"[_-]+", " ", name)
    title = _collapse(title)
    return title or None


def _plausible_title_line(line: str) -> bool:
    if not TITLE_LINE_MIN <= len(line) <= TITLE_LINE_MAX:
        return False
    if NON_TITLE_LINE_PATTERN.match(line) or HEADING_PATTERN.match(line):
        return False
    if "@" in line:
        return False
    return True


@field_extractor
def extract_title(text: str, properties: dict, filename: Optional[str] = None):
    """Title from the embedded property, the first lines, or the filename."""
    embedded = clean_title(properties.get("title") or "")
    if embedded and not is_placeholder_title(embedded):
        return embedded, "property"

    lines = [line.strip() for line in (text or "").splitlines() if line.strip()]
    for line in lines[:TITLE_SCAN_LINES]:
        if _plausible_title_line(line):
            return clean_title(line), "text"

    fallback = title_from_filename(filename)
    if fallback:
        return fallback, "filename"
    return None


# =============================================================================
# Authors
# =============================================================================

AUTHOR_SPLIT_PATTERN = re.compile(r"[;,&]|\s+and\s+", re.IGNORECASE)
AUTHOR_LABEL_PATTERN = re.compile(r"^\s*(?:authors?|by)\s*:\s*(.*)$", re.IGNORECASE)
EMAIL_NAME_PATTERN = re.compile(
    r"\b([A-Z][a-z]+(?:\s+[A-Z]\.)?\s+[A-Z][a-z]+(?:-[A-Z][a-z]+)?)"
    r"\s*[\(<\[,]?\s*[\w.+-]+@[\w-]+(?:\.[\w-]+)+"
)


def parse_authors(value: str) -> list[str]:
    """
    Split an author string on ; , & and " and ".

    Entries longer than 100 chars or more than five words are dropped.
    """
    if not value:
        return []

    authors = []
    for part in AUTHOR_SPLIT_PATTERN.split(value):
        name = _collapse(part)
        if not name or len(name) >= AUTHOR_MAX_LENGTH:
            continue
        if len(name.split()) > AUTHOR_MAX_WORDS:
            continue
        authors.append(name)
    return authors


def _usable(authors: list[str]) -> bool:
    return 0 < len(authors) <= MAX_AUTHORS


def _labelled_author_span(text: str) -> Optional[str]:
    lines = text.splitlines()
    for index, line in enumerate(lines):
        match = AUTHOR_LABEL_PATTERN.match(line)
        if not match:
            continue

        span = [match.group(1)]
        for following in lines[index + 1 : index + AUTHOR_SPAN_LINES]:
            stripped = following.strip()
            if not stripped or HEADING_PATTERN.match(stripped):
                break
            span.append(stripped)
        joined = ", ".join(part for part in span if part.strip())
        return joined or None
    return None


@field_extractor
def extract_authors(text: str, properties: dict):
    """Ordered author list; lists longer than 20 are treated as noise."""
    embedded = parse_authors(properties.get("author") or "")
    if _usable(embedded):
        return tuple(embedded), "property"

    head = (text or "")[:HEAD_CHARS]

    span = _labelled_author_span(head)
    if span:
        labelled = [a for a in parse_authors(span) if a[0].isalpha()]
        if _usable(labelled):
            return tuple(labelled), "text"

    near_email = list(dict.fromkeys(m.group(1) for m in EMAIL_NAME_PATTERN.finditer(head)))
    if _usable(near_email):
        return tuple(near_email), "text"

    return None


# =============================================================================
# Year
# =============================================================================

DATE_YEAR_PATTERN = re.compile(r"(?<!\d)((?:19|20)\d{2})")
YEAR_PATTERNS = [
    re.compile(r"(?:©|\(c\)|copyright)\s*((?:19|20)\d{2})\b", re.IGNORECASE),
    re.compile(r"\(((?:19|20)\d{2})\)"),
    re.compile(r"\b((?:19|20)\d{2})\b"),
]


def _in_range(year: int) -> bool:
    return MIN_YEAR <= year <= _max_year()


@field_extractor
def extract_year(text: str, properties: dict):
    """
    Publication year.

    The text fallback counts every pattern hit, so a year that is both a
    copyright year and a bare year outweighs one seen once; ties go to the
    most recent year.
    """
    created = properties.get("creation_date") or ""
    match = DATE_YEAR_PATTERN.search(created)
    if match and _in_range(int(match.group(1))):
        return int(match.group(1)), "property"

    head = (text or "")[:HEAD_CHARS]
    counts = Counter()
    for pattern in YEAR_PATTERNS:
        for m in pattern.finditer(head):
            year = int(m.group(1))
            if _in_range(year):
                counts[year] += 1

    if not counts:
        return None

    year = max(counts, key=lambda y: (counts[y], y))
    return year, "text"


# =============================================================================
# DOI
# =============================================================================

@field_extractor
def extract_identifier(text: str):
    """First DOI in the first 5000 chars."""
    doi = extract_doi_from_text((text or "")[:HEAD_CHARS])
    if doi:
        return doi, "text"
    return None


# =============================================================================
# Abstract
# =============================================================================

ABSTRACT_PATTERN = re.compile(
    r"^[ \t]*abstract\b[ \t]*[:.—–-]?[ \t]*\n?(.*?)"
    r"(?=\n[ \t]*\n|^[ \t]*(?:\d+\.?[ \t]*|I\.[ \t]*)?introduction\b"
    r"|^[ \t]*(?:key[ \t]*words?|index[ \t]+terms)\b|\Z)",
    re.IGNORECASE | re.MULTILINE | re.DOTALL,
)


@field_extractor
def extract_abstract(text: str):
    """
    Abstract paragraph, whitespace collapsed.

    Omitted (not truncated) when shorter than 50 or longer than 2000 chars.
    """
    match = ABSTRACT_PATTERN.search(text or "")
    if not match:
        return None

    abstract = _collapse(match.group(1))
    if ABSTRACT_MIN <= len(abstract) <= ABSTRACT_MAX:
        return abstract, "text"
    return None


# =============================================================================
# Keywords
# =============================================================================

KEYWORDS_PATTERN = re.compile(
    r"^[ \t]*(?:key[ \t]*words?|index[ \t]+terms)[ \t]*[:.—–-]?[ \t]*(.+)$",
    re.IGNORECASE | re.MULTILINE,
)
KEYWORD_SPLIT_PATTERN = re.compile(r"[;,•·]")


def parse_keywords(value: str) -> list[str]:
    keywords = []
    for part in KEYWORD_SPLIT_PATTERN.split(value or ""):
        keyword = _collapse(part).rstrip(".")
        if KEYWORD_MIN <= len(keyword) < KEYWORD_MAX:
            keywords.append(keyword)
    return keywords[:MAX_KEYWORDS]


@field_extractor
def extract_keywords(text: str, properties: dict):
    """Up to 10 keywords from a Keywords line or the embedded property."""
    match = KEYWORDS_PATTERN.search(text or "")
    if match:
        keywords = parse_keywords(match.group(1))
        if keywords:
            return tuple(keywords), "text"

    embedded = parse_keywords(properties.get("keywords") or "")
    if embedded:
        return tuple(embedded), "property"
    return None


# =============================================================================
# Combined
# =============================================================================

FIELD_NAMES = ("title", "authors", "year", "identifier", "abstract", "keywords")


@dataclass
class ExtractedMetadata:
    """Per-field extraction results for one document."""

    title: FieldResult = field(default_factory=FieldResult.absent)
    authors: FieldResult = field(default_factory=FieldResult.absent)
    year: FieldResult = field(default_factory=FieldResult.absent)
    identifier: FieldResult = field(default_factory=FieldResult.absent)
    abstract: FieldResult = field(default_factory=FieldResult.absent)
    keywords: FieldResult = field(default_factory=FieldResult.absent)

    # Set when the document could not be read at all
    reader_error: Optional[str] = None

    def value(self, name: str) -> Any:
        """Field value if found, else None."""
        result: FieldResult = getattr(self, name)
        return result.value if result.is_found else None

    @property
    def failures(self) -> dict[str, str]:
        """Field name -> error for fields whose heuristic raised."""
        return {
            name: getattr(self, name).error
            for name in FIELD_NAMES
            if getattr(self, name).status is FieldStatus.FAILED
        }


def extract_metadata(
    text: str,
    properties: Optional[dict] = None,
    filename: Optional[str] = None,
) -> ExtractedMetadata:
    """
    Run every field extractor.

    Args:
        text: Document text (typically the first few pages)
        properties: Embedded document properties (title, author,
            creation_date, keywords)
        filename: Used as the last-resort title

    Returns:
        ExtractedMetadata
    """
    properties = properties or {}
    return ExtractedMetadata(
        title=extract_title(text, properties, filename),
        authors=extract_authors(text, properties),
        year=extract_year(text, properties),
        identifier=extract_identifier(text),
        abstract=extract_abstract(text),
        keywords=extract_keywords(text, properties),
    )


class MetadataExtractor:
    """
    Extract metadata from document bytes.

    Usage:
        extractor = MetadataExtractor()
        extracted = await extractor.extract(pdf_bytes, "paper.pdf")
        extracted.value("title")
    """

    def __init__(self, max_pages: Optional[int] = None):
        self.max_pages = max_pages or config.EXTRACT_MAX_PAGES

    async def extract(self, data: bytes, filename: Optional[str] = None) -> ExtractedMetadata:
        """
        Parse the document in a worker thread and run the heuristics.

        An unreadable document yields a result with only the filename title
        and `reader_error` set.
        """
        try:
            content = await asyncio.to_thread(read_document, data, self.max_pages)
        except Exception as e:
            logger.warning(f"Could not read document text: {e}")
            return ExtractedMetadata(
                title=extract_title("", {}, filename),
                reader_error=f"{type(e).__name__}: {e}",
            )

        return extract_metadata(content.text, content.properties, filename)
