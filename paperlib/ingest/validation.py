"""
Structural (magic number) validation of document bytes.

Rejects HTML error pages and truncated downloads before anything is parsed
or written to the content store. Not a full parse.
"""

PDF_SIGNATURE = b"%PDF-"


def is_valid_document(data: bytes, signature: bytes = PDF_SIGNATURE) -> bool:
    """True if `data` starts with the document signature."""
    if not data or len(data) < len(signature):
        return False
    return bytes(data[: len(signature)]) == signature
