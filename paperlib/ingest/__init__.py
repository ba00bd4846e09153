"""
Ingestion core for Paperlib.

Handles classification, download, validation, content-addressed storage,
metadata resolution and extraction for imported documents.
"""

from .importer import ImportOrchestrator, ImportHandle, create_orchestrator, merge_metadata
from .classifier import Reference, ReferenceKind, classify_reference
from .content_store import ContentStore, compute_content_hash
from .downloader import Downloader
from .extractor import MetadataExtractor, ExtractedMetadata, extract_metadata
from .resolver import SourceResolver, ResolvedMetadata
from .cancellation import CancellationToken
from .validation import is_valid_document
from .models import (
    ImportProgress,
    ImportRequest,
    ImportResult,
    ImportState,
    PaperMetadataDraft,
    PaperSource,
    ProgressStage,
    StoredFile,
)
from .errors import (
    IngestError,
    ImportFailed,
    InvalidReference,
    UnsupportedContent,
    HttpFailure,
    NetworkFailure,
    FileNotFound,
    EmptyFile,
    DownloadCancelled,
    MetadataExtractionDegraded,
)

__all__ = [
    "ImportOrchestrator",
    "ImportHandle",
    "create_orchestrator",
    "merge_metadata",
    "Reference",
    "ReferenceKind",
    "classify_reference",
    "ContentStore",
    "compute_content_hash",
    "Downloader",
    "MetadataExtractor",
    "ExtractedMetadata",
    "extract_metadata",
    "SourceResolver",
    "ResolvedMetadata",
    "CancellationToken",
    "is_valid_document",
    "ImportProgress",
    "ImportRequest",
    "ImportResult",
    "ImportState",
    "PaperMetadataDraft",
    "PaperSource",
    "ProgressStage",
    "StoredFile",
    "IngestError",
    "ImportFailed",
    "InvalidReference",
    "UnsupportedContent",
    "HttpFailure",
    "NetworkFailure",
    "FileNotFound",
    "EmptyFile",
    "DownloadCancelled",
    "MetadataExtractionDegraded",
]
