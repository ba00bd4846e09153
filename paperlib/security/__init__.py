"""
Security utilities for Paperlib.

Provides input validation and sanitization.
"""

from paperlib.security.input_validation import (
    validate_reference,
    validate_local_file,
    sanitize_string,
    InputValidationError,
)

__all__ = [
    "validate_reference",
    "validate_local_file",
    "sanitize_string",
    "InputValidationError",
]
