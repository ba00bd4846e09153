"""
Classify an import reference before anything touches the network.

Rules, first match wins:
1. arXiv URL (/abs/, /pdf/, /html/, /format/) or "arXiv:<id>"  -> ARXIV
2. DOI (bare, "doi:" prefixed, or doi.org URL)                 -> DOI
3. Anything that parses as a URL with scheme and host           -> GENERIC_URL
4. Everything else                                               -> LOCAL_PATH
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional
from urllib.parse import unquote, urlparse

from paperlib.ingest.errors import InvalidReference
from paperlib.ingest.identifiers import (
    ARXIV_PREFIX_PATTERN,
    ARXIV_URL_PATTERN,
    BARE_DOI_PATTERN,
    DOI_URL_PATTERN,
)
from paperlib.security.input_validation import InputValidationError, validate_reference

FETCHABLE_SCHEMES = ("http", "https")


class ReferenceKind(Enum):
    ARXIV = "arxiv"
    DOI = "doi"
    GENERIC_URL = "generic_url"
    LOCAL_PATH = "local_path"


@dataclass(frozen=True)
class Reference:
    """A classified import reference."""

    kind: ReferenceKind
    value: str  # arXiv id, bare DOI, URL, or filesystem path
    original: str
    url: Optional[str] = None  # set when the input itself was a URL

    @property
    def is_remote(self) -> bool:
        return self.kind is not ReferenceKind.LOCAL_PATH


def _parse_url(text: str):
    parsed = urlparse(text)
    if parsed.scheme and parsed.netloc and "." not in parsed.scheme:
        return parsed
    return None


def classify_reference(text: str) -> Reference:
    """
    Classify a user-supplied reference string.

    Args:
        text: URL, DOI, arXiv reference or file path

    Returns:
        Reference with canonical identifier in `value`

    Raises:
        InvalidReference: If the input is empty or not a string
    """
    try:
        cleaned = validate_reference(text)
    except InputValidationError as e:
        raise InvalidReference(str(e)) from e

    # 1. arXiv
    match = ARXIV_URL_PATTERN.search(cleaned)
    if match:
        return Reference(ReferenceKind.ARXIV, match.group(1), cleaned, url=cleaned)

    match = ARXIV_PREFIX_PATTERN.match(cleaned)
    if match:
        return Reference(ReferenceKind.ARXIV, match.group(1), cleaned)

    # 2. DOI
    match = BARE_DOI_PATTERN.match(cleaned)
    if match:
        return Reference(ReferenceKind.DOI, match.group(1), cleaned)

    match = DOI_URL_PATTERN.search(cleaned)
    if match:
        return Reference(ReferenceKind.DOI, unquote(match.group(1)), cleaned, url=cleaned)

    if cleaned.lower().startswith("file://"):
        return Reference(ReferenceKind.LOCAL_PATH, unquote(urlparse(cleaned).path), cleaned)

    # 3. URL
    parsed = _parse_url(cleaned)
    if parsed is not None:
        return Reference(ReferenceKind.GENERIC_URL, cleaned, cleaned, url=cleaned)

    # 4. Local path
    return Reference(ReferenceKind.LOCAL_PATH, cleaned, cleaned)


def fetch_url_for(reference: Reference) -> str:
    """
    URL to download the document bytes from.

    arXiv landing pages map to their PDF, bare DOIs go through the doi.org
    resolver, other URLs are fetched as given.

    Raises:
        InvalidReference: For local paths and non-HTTP URLs
    """
    if reference.kind is ReferenceKind.ARXIV:
        return f"https://arxiv.org/pdf/{reference.value}"

    if reference.kind is ReferenceKind.DOI:
        return f"https://doi.org/{reference.value}"

    if reference.kind is ReferenceKind.GENERIC_URL:
        scheme = urlparse(reference.value).scheme.lower()
        if scheme not in FETCHABLE_SCHEMES:
            raise InvalidReference(f"Unsupported URL scheme: {scheme}")
        return reference.value

    raise InvalidReference(f"Not a URL: {reference.original}")


def filename_for(reference: Reference) -> Optional[str]:
    """Last path segment of a URL or path, used for the title fallback."""
    if reference.kind is ReferenceKind.LOCAL_PATH:
        path = reference.value.replace("\\", "/").rstrip("/")
    elif reference.url:
        path = unquote(urlparse(reference.url).path).rstrip("/")
    else:
        return None

    name = path.rsplit("/", 1)[-1]
    return name or None
