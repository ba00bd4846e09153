"""
Tests for import reference classification.
"""

import pytest

from paperlib.ingest.classifier import (
    ReferenceKind,
    classify_reference,
    fetch_url_for,
    filename_for,
)
from paperlib.ingest.errors import InvalidReference


class TestArxivReferences:
    """Tests for arXiv URL and prefix classification."""

    @pytest.mark.parametrize("url,expected", [
        ("https://arxiv.org/abs/2301.12345", "2301.12345"),
        ("https://arxiv.org/abs/2301.12345v2", "2301.12345v2"),
        ("https://arxiv.org/pdf/2301.12345", "2301.12345"),
        ("https://arxiv.org/pdf/2301.12345v2.pdf", "2301.12345v2"),
        ("https://arxiv.org/html/2301.12345v1", "2301.12345v1"),
        ("https://arxiv.org/format/2301.1234", "2301.1234"),
    ])
    def test_arxiv_urls(self, url, expected):
        """All arXiv URL forms classify as arxiv with the id."""
        ref = classify_reference(url)
        assert ref.kind is ReferenceKind.ARXIV
        assert ref.value == expected

    def test_arxiv_prefix(self):
        """arXiv:<id> classifies as arxiv."""
        ref = classify_reference("arXiv:2301.12345v3")
        assert ref.kind is ReferenceKind.ARXIV
        assert ref.value == "2301.12345v3"

    def test_fetch_url_is_pdf(self):
        """arXiv abstract pages are fetched from /pdf/."""
        ref = classify_reference("https://arxiv.org/abs/2301.12345")
        assert fetch_url_for(ref) == "https://arxiv.org/pdf/2301.12345"


class TestDoiReferences:
    """Tests for DOI classification."""

    @pytest.mark.parametrize("text", [
        "10.1000/xyz123",
        "doi:10.1000/xyz123",
        "https://doi.org/10.1000/xyz123",
        "http://dx.doi.org/10.1000/xyz123",
    ])
    def test_doi_forms(self, text):
        """Bare, prefixed and URL DOIs classify as doi with the bare DOI."""
        ref = classify_reference(text)
        assert ref.kind is ReferenceKind.DOI
        assert ref.value == "10.1000/xyz123"

    def test_fetch_url_uses_resolver(self):
        """Bare DOIs are fetched through doi.org."""
        ref = classify_reference("10.1000/xyz123")
        assert fetch_url_for(ref) == "https://doi.org/10.1000/xyz123"


class TestGenericAndLocal:
    """Tests for generic URLs and local paths."""

    def test_generic_url(self):
        """Other URLs classify as generic_url and are fetched as given."""
        ref = classify_reference("https://example.com/papers/my_paper.pdf")
        assert ref.kind is ReferenceKind.GENERIC_URL
        assert fetch_url_for(ref) == "https://example.com/papers/my_paper.pdf"

    def test_local_path(self):
        """Plain paths classify as local_path."""
        ref = classify_reference("/home/user/papers/paper.pdf")
        assert ref.kind is ReferenceKind.LOCAL_PATH
        assert ref.value == "/home/user/papers/paper.pdf"
        assert not ref.is_remote

    def test_windows_path_is_local(self):
        """Drive letters are not URL schemes."""
        ref = classify_reference("C:\\papers\\paper.pdf")
        assert ref.kind is ReferenceKind.LOCAL_PATH

    def test_file_url_is_local(self):
        """file:// URLs map to local paths."""
        ref = classify_reference("file:///tmp/my%20paper.pdf")
        assert ref.kind is ReferenceKind.LOCAL_PATH
        assert ref.value == "/tmp/my paper.pdf"

    def test_input_is_trimmed(self):
        """Surrounding whitespace is ignored."""
        ref = classify_reference("   https://example.com/a.pdf  ")
        assert ref.value == "https://example.com/a.pdf"

    @pytest.mark.parametrize("text", ["", "   ", "\n\t"])
    def test_empty_is_invalid(self, text):
        """Empty input raises InvalidReference."""
        with pytest.raises(InvalidReference):
            classify_reference(text)

    def test_non_http_url_not_fetchable(self):
        """Only http(s) URLs can be downloaded."""
        ref = classify_reference("ftp://example.com/paper.pdf")
        assert ref.kind is ReferenceKind.GENERIC_URL
        with pytest.raises(InvalidReference):
            fetch_url_for(ref)

    def test_local_path_not_fetchable(self):
        """Local paths have no fetch URL."""
        with pytest.raises(InvalidReference):
            fetch_url_for(classify_reference("paper.pdf"))


class TestFilenameFor:
    """Tests for filename derivation."""

    def test_url_filename(self):
        """Last URL path segment, unquoted."""
        ref = classify_reference("https://example.com/files/deep%20learning.pdf?dl=1")
        assert filename_for(ref) == "deep learning.pdf"

    def test_local_filename(self):
        """Last path component."""
        assert filename_for(classify_reference("/tmp/dir/paper.pdf")) == "paper.pdf"

    def test_prefix_reference_has_no_filename(self):
        """References that were not URLs have no filename."""
        assert filename_for(classify_reference("arXiv:2301.12345")) is None
