"""
Import orchestrator.

Drives one import through

    CREATED -> CLASSIFYING -> FETCHING -> VALIDATING -> STORING
            -> RESOLVING -> EXTRACTING -> MERGING -> COMPLETE

with CANCELLED / FAILED reachable from every state. Fetch, validation and
storage failures are fatal and leave no file behind; resolution and
extraction failures only degrade the metadata.

Many imports can run concurrently on one event loop. Each has its own
CancellationToken; the content store directory is the only shared resource.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional

from paperlib.config import config
from paperlib.ingest.cancellation import CancellationToken, run_cancellable
from paperlib.ingest.classifier import (
    Reference,
    ReferenceKind,
    classify_reference,
    fetch_url_for,
    filename_for,
)
from paperlib.ingest.content_store import ContentStore, compute_content_hash
from paperlib.ingest.downloader import Downloader
from paperlib.ingest.errors import (
    DownloadCancelled,
    EmptyFile,
    FileNotFound,
    ImportFailed,
    InvalidReference,
    MetadataExtractionDegraded,
    UnsupportedContent,
)
from paperlib.ingest.extractor import (
    ExtractedMetadata,
    MetadataExtractor,
    extract_title,
    title_from_filename,
)
from paperlib.ingest.identifiers import extract_doi_from_url
from paperlib.ingest.models import (
    ImportProgress,
    ImportRequest,
    ImportResult,
    ImportState,
    PaperMetadataDraft,
    PaperSource,
    ProgressStage,
    StoredFile,
)
from paperlib.ingest.resolver import ResolvedMetadata, SourceResolver
from paperlib.ingest.validation import is_valid_document
from paperlib.security.input_validation import InputValidationError, validate_local_file
from paperlib.telemetry import TelemetryLogger

logger = logging.getLogger(__name__)

ProgressListener = Callable[[ImportProgress], None]

# Progress layout: download owns 0-70, processing stages follow
DOWNLOAD_SHARE = 70
LOCAL_START_PERCENT = 10
STAGE_PERCENT = {
    ImportState.VALIDATING: 72,
    ImportState.STORING: 75,
    ImportState.RESOLVING: 80,
    ImportState.EXTRACTING: 90,
    ImportState.MERGING: 95,
}
STAGE_MESSAGES = {
    ImportState.VALIDATING: "Validating content",
    ImportState.STORING: "Storing file",
    ImportState.RESOLVING: "Looking up metadata",
    ImportState.EXTRACTING: "Extracting metadata",
    ImportState.MERGING: "Merging metadata",
}

UNTITLED = "Untitled"


@dataclass
class ActiveImport:
    """In-memory bookkeeping for one running import."""

    import_id: str
    request: ImportRequest
    token: CancellationToken
    state: ImportState = ImportState.CREATED
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    stored: Optional[StoredFile] = None
    task: Optional[asyncio.Task] = None


@dataclass(frozen=True)
class ImportHandle:
    """Id of a submitted import plus the task that will produce its result."""

    import_id: str
    task: asyncio.Task

    def __await__(self):
        return self.task.__await__()


class ProgressTracker:
    """Emits progress for one import with percent never going backwards."""

    def __init__(self, import_id: str, emit: ProgressListener):
        self.import_id = import_id
        self.percent = 0
        self._emit = emit

    def report(
        self,
        stage: ProgressStage,
        percent: int,
        message: str,
        file_path: Optional[str] = None,
    ):
        self.percent = max(self.percent, min(100, int(percent)))
        self._emit(ImportProgress(self.import_id, stage, self.percent, message, file_path))


def _first(*values):
    """First value that is not None or empty."""
    for value in values:
        if value:
            return value
    return None


def merge_metadata(
    resolved: Optional[ResolvedMetadata],
    extracted: Optional[ExtractedMetadata],
    content_hash: str,
    file_path: Optional[str] = None,
    fallback_source: PaperSource = PaperSource.PDF,
    original_url: Optional[str] = None,
    filename: Optional[str] = None,
) -> PaperMetadataDraft:
    """
    Combine resolver and extractor output into a draft.

    Per field, highest first: resolver > extractor > filename (title only).
    The identifier falls back last to a DOI in the URL.

    Deliberate departure from strict resolver-first precedence: a
    placeholder resolver title ("Paper with DOI: ...") is not real metadata,
    so it ranks below a title extracted from the document and only above
    the filename. The placeholder's DOI and source tag still win.

    Args:
        resolved: Resolver record, or None
        extracted: Extractor output, or None
        content_hash: sha256 of the stored bytes
        file_path: Final path in the content store
        fallback_source: Source tag when no resolver contributed
        original_url: URL the import started from
        filename: Last path segment, for the title fallback
    """
    extracted = extracted or ExtractedMetadata()

    if extracted.title.is_found and extracted.title.origin == "filename":
        extracted_title = None
        filename_title = extracted.title.value
    else:
        extracted_title = extracted.value("title")
        filename_title = title_from_filename(filename)

    resolver_title = None
    placeholder_title = None
    if resolved is not None:
        if resolved.placeholder:
            placeholder_title = resolved.title
        else:
            resolver_title = resolved.title

    title = _first(resolver_title, extracted_title, placeholder_title, filename_title) or UNTITLED

    resolved = resolved or ResolvedMetadata(source=fallback_source)

    keywords = _first(resolved.keywords, extracted.value("keywords"))

    return PaperMetadataDraft(
        title=title,
        content_hash=content_hash,
        source=resolved.source,
        authors=tuple(_first(resolved.authors, extracted.value("authors")) or ()),
        venue=resolved.venue,
        year=_first(resolved.year, extracted.value("year")),
        identifier=_first(
            resolved.doi,
            extracted.value("identifier"),
            extract_doi_from_url(original_url) if original_url else None,
        ),
        abstract=_first(resolved.abstract, extracted.value("abstract")),
        keywords=tuple(keywords) if keywords else None,
        file_path=file_path,
    )


class ImportOrchestrator:
    """
    Run imports from URLs and local files.

    Usage:
        orchestrator = create_orchestrator()
        unsubscribe = orchestrator.subscribe(print)

        result = await orchestrator.import_from_url("https://arxiv.org/abs/2301.12345")

        handle = orchestrator.submit(ImportRequest.local("paper.pdf"))
        orchestrator.cancel_import(handle.import_id)
    """

    def __init__(
        self,
        store: ContentStore,
        downloader: Optional[Downloader] = None,
        resolver: Optional[SourceResolver] = None,
        extractor: Optional[MetadataExtractor] = None,
        telemetry_enabled: Optional[bool] = None,
        telemetry_log_path: Optional[Path] = None,
    ):
        """
        Initialize the orchestrator.

        Args:
            store: Content store for imported files
            downloader: HTTP downloader (default: Downloader())
            resolver: Source resolver (default: SourceResolver())
            extractor: Metadata extractor (default: MetadataExtractor())
            telemetry_enabled: Override PAPERLIB_TELEMETRY
            telemetry_log_path: Override config.TELEMETRY_LOG_PATH
        """
        self.store = store
        self.downloader = downloader or Downloader()
        self.resolver = resolver or SourceResolver()
        self.extractor = extractor or MetadataExtractor()
        self.telemetry_enabled = telemetry_enabled
        self.telemetry_log_path = telemetry_log_path

        self._active: dict[str, ActiveImport] = {}
        self._listeners: list[ProgressListener] = []

    # =========================================================================
    # Public API
    # =========================================================================

    def subscribe(self, listener: ProgressListener) -> Callable[[], None]:
        """
        Receive progress events for every import.

        Returns:
            Function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def submit(
        self,
        request: ImportRequest,
        on_progress: Optional[ProgressListener] = None,
    ) -> ImportHandle:
        """
        Start an import and return immediately.

        The id is registered before this returns, so it can be passed to
        cancel_import() right away. Must be called from a running event loop.
        """
        loop = asyncio.get_running_loop()

        import_id = str(uuid.uuid4())
        active = ActiveImport(import_id, request, CancellationToken())
        self._active[import_id] = active

        active.task = loop.create_task(self._run(active, on_progress), name=f"import-{import_id}")
        logger.debug(f"Import {import_id} created for {request.kind.value} {request.target}")
        return ImportHandle(import_id, active.task)

    async def import_from_url(
        self,
        url: str,
        on_progress: Optional[ProgressListener] = None,
    ) -> ImportResult:
        """
        Import a document from a URL, DOI or arXiv reference.

        Raises:
            ImportFailed: InvalidReference, HttpFailure, NetworkFailure,
                UnsupportedContent
            DownloadCancelled: cancel_import() was called
        """
        return await self.submit(ImportRequest.remote(url), on_progress)

    async def import_from_local_file(
        self,
        path: str | Path,
        on_progress: Optional[ProgressListener] = None,
    ) -> ImportResult:
        """
        Import a document from the local filesystem (no download stage).

        Raises:
            ImportFailed: FileNotFound, EmptyFile, UnsupportedContent
            DownloadCancelled: cancel_import() was called
        """
        return await self.submit(ImportRequest.local(path), on_progress)

    def cancel_import(self, import_id: str) -> bool:
        """
        Request cancellation.

        Returns:
            True if the import was active and not already cancelled
        """
        active = self._active.get(import_id)
        if active is None or active.state.is_terminal:
            return False

        cancelled = active.token.cancel()
        if cancelled:
            logger.info(f"Cancellation requested for import {import_id}")
        return cancelled

    def get_active_imports(self) -> list[str]:
        """Ids of imports that have not reached a terminal state."""
        return list(self._active)

    def get_import_state(self, import_id: str) -> Optional[ImportState]:
        active = self._active.get(import_id)
        return active.state if active else None

    # =========================================================================
    # Execution
    # =========================================================================

    def _emit(self, progress: ImportProgress, on_progress: Optional[ProgressListener]):
        listeners = list(self._listeners)
        if on_progress is not None:
            listeners.append(on_progress)

        for listener in listeners:
            try:
                listener(progress)
            except Exception as e:
                logger.warning(f"Progress listener failed for import {progress.import_id}: {e}")

    def _set_state(self, active: ActiveImport, state: ImportState):
        logger.debug(f"Import {active.import_id}: {active.state.value} -> {state.value}")
        active.state = state

    def _enter_stage(self, active: ActiveImport, tracker: ProgressTracker, state: ImportState):
        active.token.raise_if_cancelled()
        self._set_state(active, state)
        tracker.report(ProgressStage.PROCESSING, STAGE_PERCENT[state], STAGE_MESSAGES[state])

    def _rollback(self, active: ActiveImport):
        if active.stored is not None:
            self.store.discard(active.stored)
            active.stored = None

    async def _run(
        self,
        active: ActiveImport,
        on_progress: Optional[ProgressListener],
    ) -> ImportResult:
        tracker = ProgressTracker(active.import_id, lambda p: self._emit(p, on_progress))
        telemetry = TelemetryLogger(
            import_id=active.import_id,
            kind=active.request.kind.value,
            reference=active.request.target,
            log_path=self.telemetry_log_path,
            enabled=self.telemetry_enabled,
        )

        try:
            result = await self._execute(active, tracker, telemetry)

        except DownloadCancelled as e:
            self._rollback(active)
            self._set_state(active, ImportState.CANCELLED)
            tracker.report(ProgressStage.ERROR, tracker.percent, str(e))
            telemetry.finalize("cancelled", str(e))
            logger.info(f"Import {active.import_id} cancelled")
            raise

        except asyncio.CancelledError:
            self._rollback(active)
            self._set_state(active, ImportState.CANCELLED)
            telemetry.finalize("cancelled", "task cancelled")
            raise

        except ImportFailed as e:
            self._rollback(active)
            self._set_state(active, ImportState.FAILED)
            tracker.report(ProgressStage.ERROR, tracker.percent, str(e))
            telemetry.finalize("failed", f"{type(e).__name__}: {e}")
            logger.error(f"Import {active.import_id} failed: {e}")
            raise

        except Exception as e:
            self._rollback(active)
            self._set_state(active, ImportState.FAILED)
            tracker.report(ProgressStage.ERROR, tracker.percent, f"Unexpected error: {e}")
            telemetry.finalize("failed", f"{type(e).__name__}: {e}")
            logger.exception(f"Import {active.import_id} failed unexpectedly")
            raise ImportFailed(f"Unexpected error: {e}") from e

        finally:
            self._active.pop(active.import_id, None)

        self.store.commit(active.stored)
        self._set_state(active, ImportState.COMPLETE)
        tracker.report(ProgressStage.COMPLETE, 100, "Import complete", result.file_path)
        telemetry.finalize("complete")
        logger.info(f"Imported '{result.paper.title}' -> {Path(result.file_path).name}")
        return result

    async def _execute(
        self,
        active: ActiveImport,
        tracker: ProgressTracker,
        telemetry: TelemetryLogger,
    ) -> ImportResult:
        request = active.request
        token = active.token

        if request.is_remote:
            reference = self._classify(active, telemetry)
            data = await self._fetch_remote(active, reference, tracker, telemetry)
            filename = filename_for(reference)
            original_url = reference.url
            fallback_source = PaperSource.URL
        else:
            reference = None
            data, filename = await self._read_local(active, tracker, telemetry)
            original_url = None
            fallback_source = PaperSource.PDF

        telemetry.record(bytes=len(data))

        # Validate
        self._enter_stage(active, tracker, ImportState.VALIDATING)
        if not is_valid_document(data):
            raise UnsupportedContent(
                f"Content is not a PDF (starts with {bytes(data[:16])!r})"
            )
        content_hash = compute_content_hash(data)

        # Store
        self._enter_stage(active, tracker, ImportState.STORING)
        with telemetry.time("storing"):
            active.stored = await self.store.persist(data, content_hash)
        telemetry.record(content_hash=content_hash, deduplicated=not active.stored.created)

        warnings: list[str] = []

        # Resolve (remote references only)
        resolved = None
        if reference is not None:
            self._enter_stage(active, tracker, ImportState.RESOLVING)
            try:
                with telemetry.time("resolving"):
                    resolved = await run_cancellable(self.resolver.resolve(reference), token)
            except DownloadCancelled:
                raise
            except Exception as e:
                warnings.append(str(MetadataExtractionDegraded("resolving", e)))
            else:
                if resolved is None and reference.kind in (ReferenceKind.ARXIV, ReferenceKind.DOI):
                    warnings.append(str(MetadataExtractionDegraded(
                        "resolving", f"no catalog record for {reference.value}"
                    )))

        # Extract
        self._enter_stage(active, tracker, ImportState.EXTRACTING)
        try:
            with telemetry.time("extracting"):
                extracted = await run_cancellable(self.extractor.extract(data, filename), token)
        except DownloadCancelled:
            raise
        except Exception as e:
            warnings.append(str(MetadataExtractionDegraded("extracting", e)))
            extracted = ExtractedMetadata(title=extract_title("", {}, filename))

        if extracted.reader_error:
            warnings.append(str(MetadataExtractionDegraded("reading", extracted.reader_error)))
        for name, error in extracted.failures.items():
            warnings.append(str(MetadataExtractionDegraded(f"extracting {name}", error)))

        # Merge
        self._enter_stage(active, tracker, ImportState.MERGING)
        draft = merge_metadata(
            resolved,
            extracted,
            content_hash=content_hash,
            file_path=str(active.stored.path),
            fallback_source=fallback_source,
            original_url=original_url,
            filename=filename,
        )
        token.raise_if_cancelled()

        for warning in warnings:
            logger.warning(f"Import {active.import_id}: {warning}")
        telemetry.record(metadata_source=draft.source.value, warnings=list(warnings))

        return ImportResult(
            id=active.import_id,
            paper=draft,
            file_path=str(active.stored.path),
            warnings=tuple(warnings),
        )

    def _classify(self, active: ActiveImport, telemetry: TelemetryLogger) -> Reference:
        self._set_state(active, ImportState.CLASSIFYING)
        reference = classify_reference(active.request.target)
        telemetry.record(reference_kind=reference.kind.value)

        if not reference.is_remote:
            raise InvalidReference(f"Not a URL: {reference.original}")
        return reference

    async def _fetch_remote(
        self,
        active: ActiveImport,
        reference: Reference,
        tracker: ProgressTracker,
        telemetry: TelemetryLogger,
    ) -> bytes:
        url = fetch_url_for(reference)

        active.token.raise_if_cancelled()
        self._set_state(active, ImportState.FETCHING)
        tracker.report(ProgressStage.DOWNLOADING, 0, f"Downloading {url}")

        def on_bytes(received: int, total: Optional[int]):
            if total:
                percent = min(DOWNLOAD_SHARE, received * DOWNLOAD_SHARE // total)
                tracker.report(
                    ProgressStage.DOWNLOADING,
                    percent,
                    f"Downloaded {received:,} of {total:,} bytes",
                )

        with telemetry.time("fetching"):
            data = await self.downloader.download(url, active.token, on_progress=on_bytes)

        tracker.report(ProgressStage.DOWNLOADING, DOWNLOAD_SHARE, f"Downloaded {len(data):,} bytes")
        return data

    async def _read_local(
        self,
        active: ActiveImport,
        tracker: ProgressTracker,
        telemetry: TelemetryLogger,
    ) -> tuple[bytes, str]:
        self._set_state(active, ImportState.CLASSIFYING)
        telemetry.record(reference_kind=ReferenceKind.LOCAL_PATH.value)

        try:
            path, size = validate_local_file(active.request.target)
        except InputValidationError as e:
            raise InvalidReference(str(e)) from e
        except FileNotFoundError as e:
            raise FileNotFound(str(e)) from e

        if size == 0:
            raise EmptyFile(f"File is empty: {path}")

        active.token.raise_if_cancelled()
        self._set_state(active, ImportState.FETCHING)
        tracker.report(ProgressStage.PROCESSING, LOCAL_START_PERCENT, f"Reading {path.name}")

        with telemetry.time("fetching"):
            try:
                data = await run_cancellable(asyncio.to_thread(path.read_bytes), active.token)
            except FileNotFoundError as e:
                raise FileNotFound(str(e)) from e

        if not data:
            raise EmptyFile(f"File is empty: {path}")
        return data, path.name


def create_orchestrator(
    files_dir: Optional[Path] = None,
    transport=None,
) -> ImportOrchestrator:
    """
    Build an orchestrator from configuration.

    Args:
        files_dir: Content store root (default: config.FILES_DIR)
        transport: httpx transport shared by downloader and resolver
    """
    store = ContentStore(files_dir or config.FILES_DIR)
    return ImportOrchestrator(
        store,
        downloader=Downloader(transport=transport),
        resolver=SourceResolver(transport=transport),
        extractor=MetadataExtractor(),
    )
