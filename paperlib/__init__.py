"""
Paperlib - document ingestion core

Turns a URL, DOI, arXiv identifier or local PDF into a validated,
deduplicated metadata draft:
- Content-addressed PDF storage (sha256 file names)
- Cancellable streaming downloads with progress events
- arXiv / CrossRef metadata resolution
- Heuristic metadata extraction from embedded properties and text
"""

__version__ = "1.0.0"
