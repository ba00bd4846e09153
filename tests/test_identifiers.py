"""
Tests for DOI and arXiv identifier helpers.
"""

import pytest

from paperlib.ingest.identifiers import (
    arxiv_doi,
    extract_doi_from_text,
    extract_doi_from_url,
    normalize_arxiv_id,
    normalize_doi,
    trim_doi,
)


class TestNormalizeDoi:
    """Tests for DOI normalization."""

    @pytest.mark.parametrize("raw", [
        "https://doi.org/10.1000/xyz123",
        "http://dx.doi.org/10.1000/xyz123",
        "doi:10.1000/xyz123",
        "  10.1000/xyz123  ",
    ])
    def test_strips_prefixes(self, raw):
        """URL and doi: prefixes should be removed."""
        assert normalize_doi(raw) == "10.1000/xyz123"

    def test_preserves_case(self):
        """The registered casing is kept."""
        assert normalize_doi("10.48550/arXiv.2301.12345") == "10.48550/arXiv.2301.12345"

    def test_empty(self):
        """Empty input gives empty output."""
        assert normalize_doi("") == ""


class TestArxivIds:
    """Tests for arXiv id helpers."""

    def test_normalize_from_url(self):
        """Ids are pulled out of arXiv URLs."""
        assert normalize_arxiv_id("https://arxiv.org/abs/2301.12345v2") == "2301.12345v2"

    def test_normalize_strips_version(self):
        """Version suffix is removed on request."""
        assert normalize_arxiv_id("arXiv:2301.12345v2", keep_version=False) == "2301.12345"

    def test_arxiv_doi_is_versionless(self):
        """Synthesized DOI never carries a version."""
        assert arxiv_doi("2301.12345v3") == "10.48550/arXiv.2301.12345"


class TestDoiExtraction:
    """Tests for DOI extraction from free text and URLs."""

    def test_trailing_period_stripped(self):
        """A sentence-ending period is not part of the DOI."""
        assert extract_doi_from_text("see doi:10.1000/xyz123.") == "10.1000/xyz123"

    def test_doi_org_host(self):
        """DOIs after a doi.org host are found."""
        text = "Available at https://doi.org/10.5555/abc.def, accessed 2021"
        assert extract_doi_from_text(text) == "10.5555/abc.def"

    def test_bare_doi(self):
        """Bare DOIs are found."""
        assert extract_doi_from_text("Citation 10.1038/nature12373 (2013)") == "10.1038/nature12373"

    def test_balanced_parentheses_kept(self):
        """Parentheses that belong to the DOI survive trimming."""
        assert trim_doi("10.1002/(SICI)1097-4571") == "10.1002/(SICI)1097-4571"
        assert trim_doi("10.1002/(SICI)1097-4571)") == "10.1002/(SICI)1097-4571"

    def test_rejects_overlong(self):
        """Matches longer than 100 chars are rejected."""
        assert extract_doi_from_text("doi:10.1000/" + "a" * 120) is None

    def test_no_doi(self):
        """Text without a DOI gives None."""
        assert extract_doi_from_text("No identifiers here 10.10/short") is None
        assert extract_doi_from_text("") is None

    def test_from_url(self):
        """DOIs embedded in URL paths are found and lose the .pdf suffix."""
        assert extract_doi_from_url("https://example.com/papers/10.1234/abc.pdf") == "10.1234/abc"

    def test_from_url_without_doi(self):
        """URLs without a DOI give None."""
        assert extract_doi_from_url("https://example.com/papers/abc.pdf") is None
