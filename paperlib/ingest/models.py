"""
Data model for document imports.

Everything here is immutable once created. The persistence collaborator
receives a PaperMetadataDraft and owns any later mutation.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from pathlib import Path
from typing import Optional


class ImportKind(Enum):
    REMOTE = "remote"
    LOCAL = "local"


@dataclass(frozen=True)
class ImportRequest:
    """
    What to import: a remote URL (or DOI / arXiv reference) or a local path.

    Usage:
        ImportRequest.remote("https://arxiv.org/abs/2301.12345")
        ImportRequest.local("/tmp/paper.pdf")
    """

    kind: ImportKind
    target: str

    @classmethod
    def remote(cls, url: str) -> "ImportRequest":
        return cls(ImportKind.REMOTE, url)

    @classmethod
    def local(cls, path: str | Path) -> "ImportRequest":
        return cls(ImportKind.LOCAL, str(path))

    @property
    def is_remote(self) -> bool:
        return self.kind is ImportKind.REMOTE


class ProgressStage(Enum):
    DOWNLOADING = "downloading"
    PROCESSING = "processing"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass(frozen=True)
class ImportProgress:
    """A single progress event for one import."""

    import_id: str
    stage: ProgressStage
    percent: int  # 0-100, non-decreasing per import
    message: str
    file_path: Optional[str] = None


class ImportState(Enum):
    """Lifecycle of an import. Only CREATED and the terminal states are stable."""

    CREATED = "created"
    CLASSIFYING = "classifying"
    FETCHING = "fetching"
    VALIDATING = "validating"
    STORING = "storing"
    RESOLVING = "resolving"
    EXTRACTING = "extracting"
    MERGING = "merging"
    COMPLETE = "complete"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ImportState.COMPLETE, ImportState.CANCELLED, ImportState.FAILED)


class PaperSource(Enum):
    URL = "url"
    ARXIV = "arxiv"
    PUBMED = "pubmed"
    CROSSREF = "crossref"
    SEMANTICSCHOLAR = "semanticscholar"
    PDF = "pdf"


@dataclass(frozen=True)
class StoredFile:
    """A file in the content store."""

    path: Path
    content_hash: str  # hex sha256 of the file bytes
    size: int
    created: bool  # True if this call performed the physical write


@dataclass(frozen=True)
class PaperMetadataDraft:
    """Merged metadata for one imported document, ready for persistence."""

    title: str
    content_hash: str
    source: PaperSource
    authors: tuple[str, ...] = ()
    venue: Optional[str] = None
    year: Optional[int] = None
    identifier: Optional[str] = None  # DOI
    abstract: Optional[str] = None
    keywords: Optional[tuple[str, ...]] = None
    file_path: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dict."""
        data = asdict(self)
        data["source"] = self.source.value
        data["authors"] = list(self.authors)
        data["keywords"] = list(self.keywords) if self.keywords else None
        return data


@dataclass(frozen=True)
class ImportResult:
    """Result of a successful import."""

    id: str
    paper: PaperMetadataDraft
    file_path: str
    warnings: tuple[str, ...] = field(default_factory=tuple)
