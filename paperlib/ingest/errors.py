"""
Error taxonomy for document imports.

IngestError
├── ImportFailed            fatal, rejects the import
│   ├── InvalidReference
│   ├── UnsupportedContent
│   ├── HttpFailure
│   ├── NetworkFailure
│   ├── FileNotFound
│   └── EmptyFile
└── DownloadCancelled       user-initiated, not a failure

MetadataExtractionDegraded is informational: it is logged and attached to the
import result as a warning, never raised to callers.
"""

from typing import Optional


class IngestError(Exception):
    """Base class for all ingestion errors."""

    pass


class ImportFailed(IngestError):
    """An import was rejected. Surfaced verbatim to the caller."""

    pass


class InvalidReference(ImportFailed):
    """Input is not a usable URL or file path."""

    pass


class UnsupportedContent(ImportFailed):
    """Bytes failed structural validation (not a PDF)."""

    pass


class HttpFailure(ImportFailed):
    """Server answered with a non-success status."""

    def __init__(self, status: int, url: str = "", reason: Optional[str] = None):
        self.status = status
        self.url = url
        self.reason = reason
        message = f"HTTP {status}"
        if reason:
            message += f": {reason}"
        if url:
            message += f" ({url})"
        super().__init__(message)


class NetworkFailure(ImportFailed):
    """Connection, DNS, TLS or read failure."""

    pass


class FileNotFound(ImportFailed):
    """Local file does not exist."""

    pass


class EmptyFile(ImportFailed):
    """Local file has zero bytes."""

    pass


class DownloadCancelled(IngestError):
    """The import's cancellation token fired."""

    def __init__(self, message: str = "Import cancelled"):
        super().__init__(message)


class MetadataExtractionDegraded(IngestError):
    """A metadata source failed; the import continued without it."""

    def __init__(self, stage: str, cause: Optional[BaseException | str] = None):
        self.stage = stage
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"{stage} degraded{detail}")
