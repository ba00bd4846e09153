"""
Input validation utilities for Paperlib.

Provides validation and sanitization for import references and for text
pulled out of untrusted documents.
"""

from pathlib import Path
from typing import Optional


class InputValidationError(ValueError):
    """Raised when input validation fails."""

    pass


def validate_reference(
    reference: str,
    max_length: int = 4096,
) -> str:
    """
    Validate and sanitize an import reference (URL, DOI or path).

    Args:
        reference: The reference to validate
        max_length: Maximum allowed length

    Returns:
        Trimmed reference without control characters

    Raises:
        InputValidationError: If validation fails
    """
    if isinstance(reference, Path):
        reference = str(reference)

    if not isinstance(reference, str):
        raise InputValidationError("Reference must be a string")

    # Remove control characters, then leading/trailing whitespace
    reference = "".join(c for c in reference if ord(c) >= 32).strip()

    if not reference:
        raise InputValidationError("Reference is empty")

    if len(reference) > max_length:
        raise InputValidationError(f"Reference too long (max {max_length} characters)")

    return reference


def validate_local_file(path: str | Path) -> tuple[Path, int]:
    """
    Resolve a local file path and return it with its size.

    Args:
        path: File path to validate

    Returns:
        (resolved path, size in bytes)

    Raises:
        InputValidationError: If the path cannot be resolved
        FileNotFoundError: If nothing exists at the path or it is not a file
    """
    try:
        resolved = Path(path).expanduser().resolve()
    except (OSError, ValueError) as e:
        raise InputValidationError(f"Invalid path: {e}")

    if not resolved.is_file():
        raise FileNotFoundError(f"File not found: {resolved}")

    return resolved, resolved.stat().st_size


# Zero-width and byte-order characters that PDF producers leave in info fields
INVISIBLE_CHARS = {"\ufeff", "\u200b", "\u200c", "\u200d", "\u2060"}


def sanitize_string(
    value: Optional[str],
    max_length: Optional[int] = None,
    single_line: bool = False,
) -> str:
    """
    Clean text taken from an untrusted document.

    Drops control characters (keeping newlines and tabs unless
    `single_line`, which turns them into spaces) and invisible
    zero-width / BOM characters, then truncates to `max_length`.
    """
    if value is None:
        return ""
    if not isinstance(value, str):
        value = str(value)

    kept = []
    for c in value:
        if c in INVISIBLE_CHARS:
            continue
        if c in "\n\r\t":
            kept.append(" " if single_line else c)
        elif ord(c) >= 32 and c != "\x7f":
            kept.append(c)

    result = "".join(kept)
    if max_length is not None:
        result = result[:max_length]
    return result
