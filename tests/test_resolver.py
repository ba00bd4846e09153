"""
Tests for source resolution (arXiv, DOI, generic URLs).
"""

import asyncio

import httpx
import pytest

from paperlib.ingest.classifier import classify_reference
from paperlib.ingest.models import PaperSource
from paperlib.ingest.resolver import (
    SourceResolver,
    flatten_authors,
    parse_arxiv_feed,
    parse_crossref_work,
    source_for_url,
)

ARXIV_ENTRY = """
  <entry>
    <id>http://arxiv.org/abs/2301.12345v2</id>
    <published>2023-01-29T10:00:00Z</published>
    <title>Robust Document
      Import Pipelines</title>
    <summary>  We describe a pipeline
      for importing documents.  </summary>
    <author><name>Jane Doe</name></author>
    <author><name>John Smith</name></author>
    <author><name></name></author>
    {extra}
    <link href="http://arxiv.org/abs/2301.12345v2" rel="alternate" type="text/html"/>
    <link title="pdf" href="http://arxiv.org/pdf/2301.12345v2" rel="related" type="application/pdf"/>
    <arxiv:primary_category term="cs.DL" scheme="http://arxiv.org/schemas/atom"/>
    <category term="cs.DL" scheme="http://arxiv.org/schemas/atom"/>
    <category term="cs.IR" scheme="http://arxiv.org/schemas/atom"/>
  </entry>
"""


def arxiv_feed(entries: int = 1, extra: str = "") -> bytes:
    body = "".join(ARXIV_ENTRY.format(extra=extra) for _ in range(entries))
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<feed xmlns="http://www.w3.org/2005/Atom" xmlns:arxiv="http://arxiv.org/schemas/atom">'
        f"<title>ArXiv Query</title>{body}</feed>"
    ).encode("utf-8")


ARXIV_ERROR_FEED = b"""<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <entry>
    <id>http://arxiv.org/api/errors#incorrect_id_format_for_1234</id>
    <title>Error</title>
    <summary>incorrect id format for 1234</summary>
  </entry>
</feed>
"""

CROSSREF_WORK = {
    "title": ["A Registered   Paper"],
    "author": [
        {"given": "Jane", "family": "Doe"},
        {"family": "Smith"},
        {"name": "Paperlib Consortium"},
    ],
    "published-print": {"date-parts": [[2019, 5]]},
    "container-title": ["Journal of Tests"],
    "abstract": "<jats:p>An abstract with <jats:italic>markup</jats:italic>.</jats:p>",
    "subject": ["Library Science", ""],
}


def _resolver(handler, **kwargs) -> SourceResolver:
    return SourceResolver(
        transport=httpx.MockTransport(handler),
        arxiv_api_url="https://export.arxiv.test/api/query",
        crossref_api_url="https://api.crossref.test/works",
        **kwargs,
    )


class TestFlattenAuthors:
    """Tests for author list flattening."""

    def test_nested_lists(self):
        """Nested arrays flatten; empty and non-string entries drop."""
        assert flatten_authors([["Ada Lovelace"], ["Alan Turing", ""], None, 3]) == [
            "Ada Lovelace",
            "Alan Turing",
        ]

    def test_whitespace_collapsed(self):
        """Names are whitespace-normalised."""
        assert flatten_authors(["  Grace\n Hopper "]) == ["Grace Hopper"]


class TestArxivFeed:
    """Tests for arXiv Atom parsing."""

    def test_single_entry(self):
        """A single entry maps to structured metadata."""
        resolved = parse_arxiv_feed(arxiv_feed())

        assert resolved.source is PaperSource.ARXIV
        assert resolved.title == "Robust Document Import Pipelines"
        assert resolved.authors == ("Jane Doe", "John Smith")
        assert resolved.year == 2023
        assert resolved.venue == "cs.DL, cs.IR"
        assert resolved.abstract == "We describe a pipeline for importing documents."
        assert resolved.placeholder is False

    def test_synthesized_doi(self):
        """Without a DOI link the version-less arXiv DOI is synthesized."""
        assert parse_arxiv_feed(arxiv_feed()).doi == "10.48550/arXiv.2301.12345"

    def test_doi_link(self):
        """An explicit DOI link wins."""
        link = '<link title="doi" href="http://dx.doi.org/10.1145/1234567.7654321" rel="related"/>'
        assert parse_arxiv_feed(arxiv_feed(extra=link)).doi == "10.1145/1234567.7654321"

    def test_arxiv_doi_element(self):
        """<arxiv:doi> is used when there is no DOI link."""
        element = "<arxiv:doi>10.1000/journal.42</arxiv:doi>"
        assert parse_arxiv_feed(arxiv_feed(extra=element)).doi == "10.1000/journal.42"

    def test_zero_entries(self):
        """No entries means no metadata."""
        assert parse_arxiv_feed(arxiv_feed(entries=0)) is None

    def test_ambiguous_entries(self):
        """More than one entry is ambiguous."""
        assert parse_arxiv_feed(arxiv_feed(entries=2)) is None

    def test_error_entry(self):
        """API error entries are not papers."""
        assert parse_arxiv_feed(ARXIV_ERROR_FEED) is None


class TestCrossrefWork:
    """Tests for CrossRef work parsing."""

    def test_maps_fields(self):
        """Authors, year, venue, abstract and subjects are mapped."""
        resolved = parse_crossref_work(CROSSREF_WORK, "10.1000/xyz123")

        assert resolved.source is PaperSource.CROSSREF
        assert resolved.title == "A Registered Paper"
        assert resolved.authors == ("Jane Doe", "Smith", "Paperlib Consortium")
        assert resolved.year == 2019
        assert resolved.venue == "Journal of Tests"
        assert resolved.abstract == "An abstract with markup ."
        assert resolved.keywords == ("Library Science",)
        assert resolved.doi == "10.1000/xyz123"

    def test_missing_title(self):
        """Works without a title are unusable."""
        assert parse_crossref_work({"title": []}, "10.1000/xyz123") is None


class TestSourceResolver:
    """Tests for SourceResolver.resolve over MockTransport."""

    def test_arxiv_lookup(self):
        """arXiv references query the API by id_list."""
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, content=arxiv_feed())

        ref = classify_reference("https://arxiv.org/abs/2301.12345v2")
        resolved = asyncio.run(_resolver(handler).resolve(ref))

        assert resolved.title == "Robust Document Import Pipelines"
        assert seen[0].url.host == "export.arxiv.test"
        assert seen[0].url.params["id_list"] == "2301.12345v2"

    @pytest.mark.parametrize("response", [
        httpx.Response(503, text="Service Unavailable"),
        httpx.Response(200, text="<not-xml"),
        httpx.Response(200, content=ARXIV_ERROR_FEED),
    ])
    def test_arxiv_failures_yield_none(self, response):
        """HTTP errors, bad XML and error entries degrade to None."""

        def handler(request: httpx.Request) -> httpx.Response:
            return response

        ref = classify_reference("arXiv:2301.12345")
        assert asyncio.run(_resolver(handler).resolve(ref)) is None

    def test_arxiv_network_error_yields_none(self):
        """Network failures degrade to None."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("unreachable", request=request)

        ref = classify_reference("arXiv:2301.12345")
        assert asyncio.run(_resolver(handler).resolve(ref)) is None

    def test_doi_placeholder(self):
        """DOIs resolve to a placeholder without any request by default."""
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(500)

        resolved = asyncio.run(
            _resolver(handler, use_crossref=False).resolve(classify_reference("10.1000/xyz123"))
        )

        assert resolved.title == "Paper with DOI: 10.1000/xyz123"
        assert resolved.authors == ()
        assert resolved.doi == "10.1000/xyz123"
        assert resolved.source is PaperSource.CROSSREF
        assert resolved.placeholder is True
        assert seen == []

    def test_doi_via_crossref(self):
        """With CrossRef enabled the works endpoint is used."""

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/works/10.1000/xyz123"
            return httpx.Response(200, json={"status": "ok", "message": CROSSREF_WORK})

        resolved = asyncio.run(
            _resolver(handler, use_crossref=True).resolve(classify_reference("doi:10.1000/xyz123"))
        )

        assert resolved.title == "A Registered Paper"
        assert resolved.placeholder is False

    def test_crossref_failure_falls_back_to_placeholder(self):
        """A failed CrossRef lookup still yields the placeholder."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, text="Resource not found.")

        resolved = asyncio.run(
            _resolver(handler, use_crossref=True).resolve(classify_reference("10.1000/xyz123"))
        )

        assert resolved.placeholder is True
        assert resolved.title == "Paper with DOI: 10.1000/xyz123"

    def test_generic_url(self):
        """Generic URLs get a source tag and nothing else."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        resolved = asyncio.run(
            _resolver(handler).resolve(classify_reference("https://example.com/paper.pdf"))
        )

        assert resolved.source is PaperSource.URL
        assert resolved.title is None
        assert resolved.authors == ()

    def test_local_path(self):
        """Local paths have nothing to resolve."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        assert asyncio.run(_resolver(handler).resolve(classify_reference("/tmp/paper.pdf"))) is None


class TestSourceForUrl:
    """Tests for catalog host tagging."""

    @pytest.mark.parametrize("url,expected", [
        ("https://pubmed.ncbi.nlm.nih.gov/12345678/", PaperSource.PUBMED),
        ("https://www.ncbi.nlm.nih.gov/pubmed/12345678", PaperSource.PUBMED),
        ("https://www.semanticscholar.org/paper/abc123", PaperSource.SEMANTICSCHOLAR),
        ("https://example.com/paper.pdf", PaperSource.URL),
    ])
    def test_hosts(self, url, expected):
        """Known catalogs are tagged; others are plain URLs."""
        assert source_for_url(url) is expected
