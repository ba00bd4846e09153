"""
Structured metadata lookup for classified references.

- arXiv: Atom API, one entry by id
- DOI: placeholder record; CrossRef when RESOLVE_DOI_VIA_CROSSREF is set
- Generic URL: source tag only (pubmed / semanticscholar / url)

Lookups never raise: any failure is logged and returns None, and the import
carries on with locally extracted metadata.
"""

import logging
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import urlparse

import httpx

from paperlib.config import config
from paperlib.ingest.classifier import Reference, ReferenceKind
from paperlib.ingest.identifiers import arxiv_doi, normalize_doi
from paperlib.ingest.models import PaperSource

logger = logging.getLogger(__name__)

ATOM_NS = {
    "atom": "http://www.w3.org/2005/Atom",
    "arxiv": "http://arxiv.org/schemas/atom",
}


@dataclass(frozen=True)
class ResolvedMetadata:
    """Metadata from an external catalog."""

    source: PaperSource
    title: Optional[str] = None
    authors: tuple[str, ...] = ()
    venue: Optional[str] = None
    year: Optional[int] = None
    doi: Optional[str] = None
    abstract: Optional[str] = None
    keywords: Optional[tuple[str, ...]] = None

    # True when the record was synthesized without a real lookup; its title
    # ranks below a title extracted from the document itself
    placeholder: bool = False


def _collapse(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    collapsed = re.sub(r"\s+", " ", value).strip()
    return collapsed or None


def flatten_authors(value: Any) -> list[str]:
    """
    Flatten possibly nested author structures to a flat list of names.

    [["Ada Lovelace"], ["Alan Turing", ""], None, 3] -> ["Ada Lovelace", "Alan Turing"]
    """
    if isinstance(value, str):
        name = _collapse(value)
        return [name] if name else []

    if isinstance(value, (list, tuple)):
        authors = []
        for item in value:
            authors.extend(flatten_authors(item))
        return authors

    return []


def _year_from_date(value: Optional[str]) -> Optional[int]:
    if value and len(value) >= 4 and value[:4].isdigit():
        return int(value[:4])
    return None


def parse_arxiv_feed(xml_data: bytes | str) -> Optional[ResolvedMetadata]:
    """
    Map an arXiv Atom response to ResolvedMetadata.

    Returns None for zero or several entries, API error entries, and entries
    without a title.
    """
    root = ET.fromstring(xml_data)
    entries = root.findall("atom:entry", ATOM_NS)

    if len(entries) != 1:
        logger.debug(f"arXiv returned {len(entries)} entries, expected 1")
        return None

    entry = entries[0]
    entry_id = entry.findtext("atom:id", "", ATOM_NS)
    if "api/errors" in entry_id:
        logger.debug(f"arXiv API error: {entry.findtext('atom:summary', '', ATOM_NS)}")
        return None

    title = _collapse(entry.findtext("atom:title", "", ATOM_NS))
    if not title:
        return None

    authors = flatten_authors([
        author.findtext("atom:name", None, ATOM_NS)
        for author in entry.findall("atom:author", ATOM_NS)
    ])

    # Explicit DOI link or <arxiv:doi>, else the DataCite arXiv DOI
    doi = None
    for link in entry.findall("atom:link", ATOM_NS):
        if link.get("title") == "doi" and link.get("href"):
            doi = normalize_doi(link.get("href"))
            break
    if not doi:
        doi = _collapse(entry.findtext("arxiv:doi", "", ATOM_NS))
    if not doi:
        match = re.search(r"arxiv\.org/abs/(.+)$", entry_id)
        if match:
            doi = arxiv_doi(match.group(1))

    categories = [
        c.get("term") for c in entry.findall("atom:category", ATOM_NS) if c.get("term")
    ]

    return ResolvedMetadata(
        source=PaperSource.ARXIV,
        title=title,
        authors=tuple(authors),
        venue=", ".join(categories) or None,
        year=_year_from_date(entry.findtext("atom:published", "", ATOM_NS)),
        doi=doi,
        abstract=_collapse(entry.findtext("atom:summary", "", ATOM_NS)),
    )


def parse_crossref_work(work: dict, doi: str) -> Optional[ResolvedMetadata]:
    """Map a CrossRef `message` object to ResolvedMetadata."""
    titles = work.get("title") or []
    title = _collapse(titles[0]) if titles else None
    if not title:
        return None

    authors = []
    for author in work.get("author", []):
        name_parts = []
        if author.get("given"):
            name_parts.append(author["given"])
        if author.get("family"):
            name_parts.append(author["family"])
        if not name_parts and author.get("name"):
            name_parts.append(author["name"])
        if name_parts:
            authors.append(" ".join(name_parts))

    year = None
    for date_field in ["published-print", "published-online", "issued", "created"]:
        date_parts = work.get(date_field, {}).get("date-parts", [[]])
        if date_parts and date_parts[0] and date_parts[0][0]:
            year = int(date_parts[0][0])
            break

    venues = work.get("container-title") or []

    # CrossRef abstracts are JATS XML fragments
    abstract = work.get("abstract")
    if abstract:
        abstract = _collapse(re.sub(r"<[^>]+>", " ", abstract))

    subjects = tuple(s for s in work.get("subject", []) if isinstance(s, str) and s.strip())

    return ResolvedMetadata(
        source=PaperSource.CROSSREF,
        title=title,
        authors=tuple(flatten_authors(authors)),
        venue=_collapse(venues[0]) if venues else None,
        year=year,
        doi=doi,
        abstract=abstract,
        keywords=subjects or None,
    )


def doi_placeholder(doi: str) -> ResolvedMetadata:
    """Minimal record for a DOI that was not looked up."""
    return ResolvedMetadata(
        source=PaperSource.CROSSREF,
        title=f"Paper with DOI: {doi}",
        doi=doi,
        placeholder=True,
    )


def source_for_url(url: str) -> PaperSource:
    """Tag well-known catalog hosts; everything else is a plain URL."""
    parsed = urlparse(url)
    host = (parsed.hostname or "").lower()

    if host.startswith("pubmed.") or (host.endswith("ncbi.nlm.nih.gov") and "/pubmed" in parsed.path):
        return PaperSource.PUBMED
    if host == "semanticscholar.org" or host.endswith(".semanticscholar.org"):
        return PaperSource.SEMANTICSCHOLAR
    return PaperSource.URL


class SourceResolver:
    """
    Resolve a classified reference against external catalogs.

    Usage:
        resolver = SourceResolver()
        resolved = await resolver.resolve(classify_reference("arXiv:2301.12345"))
    """

    def __init__(
        self,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        user_agent: Optional[str] = None,
        timeout: Optional[float] = None,
        arxiv_api_url: Optional[str] = None,
        crossref_api_url: Optional[str] = None,
        use_crossref: Optional[bool] = None,
    ):
        """
        Initialize resolver.

        Args:
            transport: Custom httpx transport (tests use httpx.MockTransport)
            user_agent: User-Agent header (config.USER_AGENT)
            timeout: Request timeout in seconds (config.HTTP_TIMEOUT)
            arxiv_api_url: arXiv query endpoint (config.ARXIV_API_URL)
            crossref_api_url: CrossRef works endpoint (config.CROSSREF_API_URL)
            use_crossref: Look DOIs up on CrossRef (config.RESOLVE_DOI_VIA_CROSSREF)
        """
        self._transport = transport
        self.user_agent = user_agent or config.USER_AGENT
        self.timeout = timeout if timeout is not None else config.HTTP_TIMEOUT
        self.arxiv_api_url = arxiv_api_url or config.ARXIV_API_URL
        self.crossref_api_url = (crossref_api_url or config.CROSSREF_API_URL).rstrip("/")
        self.use_crossref = config.RESOLVE_DOI_VIA_CROSSREF if use_crossref is None else use_crossref

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            transport=self._transport,
            timeout=self.timeout,
            follow_redirects=True,
            headers={"User-Agent": self.user_agent},
        )

    async def resolve(self, reference: Reference) -> Optional[ResolvedMetadata]:
        """
        Look up structured metadata.

        Returns:
            ResolvedMetadata, or None when nothing usable was found
        """
        try:
            if reference.kind is ReferenceKind.ARXIV:
                return await self.lookup_arxiv(reference.value)

            if reference.kind is ReferenceKind.DOI:
                if self.use_crossref:
                    resolved = await self.lookup_crossref(reference.value)
                    if resolved is not None:
                        return resolved
                return doi_placeholder(reference.value)

            if reference.kind is ReferenceKind.GENERIC_URL:
                return ResolvedMetadata(source=source_for_url(reference.value), placeholder=True)

            return None

        except Exception as e:
            logger.warning(f"Metadata lookup failed for {reference.original}: {e}")
            return None

    async def lookup_arxiv(self, arxiv_id: str) -> Optional[ResolvedMetadata]:
        """
        Look up metadata from the arXiv API.

        Args:
            arxiv_id: arXiv identifier (e.g., "2301.12345v2")

        Raises:
            httpx.HTTPError, ET.ParseError: Propagated to resolve()
        """
        async with self._client() as client:
            response = await client.get(self.arxiv_api_url, params={"id_list": arxiv_id})
            response.raise_for_status()

        resolved = parse_arxiv_feed(response.content)
        if resolved is None:
            logger.info(f"No unique arXiv entry for {arxiv_id}")
        return resolved

    async def lookup_crossref(self, doi: str) -> Optional[ResolvedMetadata]:
        """
        Look up metadata from CrossRef by DOI.

        Failures are logged and return None so the caller falls back to the
        placeholder record.
        """
        url = f"{self.crossref_api_url}/{doi}"

        try:
            async with self._client() as client:
                response = await client.get(url, params={"mailto": config.CONTACT_EMAIL})
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.debug(f"CrossRef lookup failed for {doi}: {e}")
            return None

        return parse_crossref_work(data.get("message", {}), doi)
