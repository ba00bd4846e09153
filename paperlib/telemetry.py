"""
Import telemetry for Paperlib.

Logs one JSONL record per import (stage timings, outcome, size, hash,
metadata source) for debugging and regression checks.

Enable with: PAPERLIB_TELEMETRY=1
"""

import json
import logging
import time
import uuid
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from paperlib.config import config

logger = logging.getLogger(__name__)


def is_telemetry_enabled() -> bool:
    """Check if telemetry is enabled via environment variable."""
    return config.TELEMETRY_ENABLED


@dataclass
class ImportTelemetry:
    """Telemetry data for a single import."""

    # Identifiers
    run_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    import_id: str = ""

    # Request
    kind: str = ""  # remote, local
    reference: str = ""
    reference_kind: Optional[str] = None

    # Outcome
    outcome: str = "pending"  # complete, cancelled, failed
    error: Optional[str] = None
    bytes: int = 0
    content_hash: Optional[str] = None
    deduplicated: bool = False
    metadata_source: Optional[str] = None
    warnings: list[str] = field(default_factory=list)

    # Timing
    stage_latency_ms: dict[str, float] = field(default_factory=dict)
    total_latency_ms: float = 0.0

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dict."""
        return asdict(self)


class TelemetryLogger:
    """
    Logger for import telemetry.

    Usage:
        tl = TelemetryLogger(import_id, kind="remote", reference=url)
        with tl.time("fetching"):
            data = await downloader.download(url, token)
        tl.finalize("complete")
    """

    def __init__(
        self,
        import_id: str = "",
        kind: str = "",
        reference: str = "",
        log_path: Optional[Path] = None,
        enabled: Optional[bool] = None,
    ):
        """
        Initialize telemetry logger.

        Args:
            import_id: Import being recorded
            kind: remote or local
            reference: URL or path as given by the caller
            log_path: Path to JSONL log file (default: config.TELEMETRY_LOG_PATH)
            enabled: Override PAPERLIB_TELEMETRY
        """
        self.log_path = log_path or config.TELEMETRY_LOG_PATH
        self.enabled = is_telemetry_enabled() if enabled is None else enabled
        self.telemetry = ImportTelemetry(import_id=import_id, kind=kind, reference=reference)
        self._start_time = time.perf_counter()
        self._finalized = False

    class _Timer:
        """Context manager for timing operations."""

        def __init__(self, logger: "TelemetryLogger", name: str):
            self.logger = logger
            self.name = name
            self.start = 0.0

        def __enter__(self):
            self.start = time.perf_counter()
            return self

        def __exit__(self, *args):
            elapsed_ms = (time.perf_counter() - self.start) * 1000
            self.logger.telemetry.stage_latency_ms[self.name] = round(elapsed_ms, 3)

    def time(self, stage: str) -> "_Timer":
        """
        Time a stage.

        Usage:
            with tl.time("storing"):
                stored = await store.persist(data)
        """
        return self._Timer(self, stage)

    def record(self, **values):
        """Set fields on the telemetry record."""
        for key, value in values.items():
            if hasattr(self.telemetry, key):
                setattr(self.telemetry, key, value)

    def finalize(self, outcome: str, error: Optional[str] = None):
        """Set the outcome and write the record. Only the first call writes."""
        if self._finalized:
            return
        self._finalized = True

        self.telemetry.outcome = outcome
        self.telemetry.error = error
        self.telemetry.total_latency_ms = round((time.perf_counter() - self._start_time) * 1000, 3)

        if self.enabled:
            self._write_log()

    def _write_log(self):
        """Append telemetry to JSONL log file."""
        try:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)

            with open(self.log_path, "a") as f:
                json.dump(self.telemetry.to_dict(), f)
                f.write("\n")

            logger.debug(f"Telemetry logged: {self.telemetry.run_id}")

        except OSError as e:
            logger.warning(f"Failed to write telemetry: {e}")


def read_telemetry_logs(
    log_path: Optional[Path] = None,
    outcome: Optional[str] = None,
    limit: int = 100,
) -> list[dict]:
    """
    Read telemetry records from JSONL file, most recent last.

    Args:
        log_path: Path to log file (default: config.TELEMETRY_LOG_PATH)
        outcome: Optional filter (complete, cancelled, failed)
        limit: Maximum number of records to return (the latest ones)

    Returns:
        List of record dicts
    """
    log_path = log_path or config.TELEMETRY_LOG_PATH

    if not log_path.exists():
        return []

    results = []
    with open(log_path, "r") as f:
        for line in f:
            if not line.strip():
                continue
            try:
                data = json.loads(line)
            except json.JSONDecodeError:
                continue
            if outcome and data.get("outcome") != outcome:
                continue
            results.append(data)

    return results[-limit:] if limit else results
