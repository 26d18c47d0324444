"""
Unit tests for header folding and normalization.
"""

import pytest
from multidict import CIMultiDict

from httpadapter.http.headers import fold_headers, normalize_headers, update_headers


class TestFoldHeaders:
    """Tests for collapsing multi-valued raw headers."""

    def test_repeated_values_joined_with_comma(self):
        """Test that repeated headers become one comma-joined value."""
        raw = CIMultiDict([
            ("Accept", "text/html"),
            ("Accept", "application/json"),
        ])

        folded = fold_headers(raw)

        assert folded["accept"] == "text/html,application/json"
        assert len(folded) == 1

    def test_values_keep_arrival_order(self):
        """Test that values are joined in the order they arrived."""
        raw = CIMultiDict([("X-Trace", "3"), ("X-Trace", "1"), ("X-Trace", "2")])

        assert fold_headers(raw)["X-Trace"] == "3,1,2"

    def test_names_are_case_insensitive(self):
        """Test folding across differently cased names."""
        raw = CIMultiDict([("Cache-Control", "no-cache"), ("cache-control", "no-store")])

        folded = fold_headers(raw)

        assert folded["CACHE-CONTROL"] == "no-cache,no-store"
        assert list(folded.keys()) == ["Cache-Control"]

    def test_single_values_untouched(self):
        """Test that single-valued headers are copied as they are."""
        raw = CIMultiDict([("Host", "localhost:8080"), ("User-Agent", "pytest")])

        folded = fold_headers(raw)

        assert folded["Host"] == "localhost:8080"
        assert folded["User-Agent"] == "pytest"

    def test_result_is_read_only(self):
        """Test that the folded collection can't be modified."""
        folded = fold_headers(CIMultiDict([("Host", "x")]))

        with pytest.raises(TypeError):
            folded["Host"] = "y"

    def test_plain_mapping_accepted(self):
        """Test folding a plain dict."""
        assert fold_headers({"Host": "x"})["host"] == "x"


class TestNormalizeHeaders:
    """Tests for building header collections from user input."""

    def test_mapping(self):
        """Test a plain mapping."""
        headers = normalize_headers({"Content-Type": "text/plain"})
        assert headers["content-type"] == "text/plain"

    def test_pairs(self):
        """Test an iterable of (name, value) pairs."""
        headers = normalize_headers([("X-One", "1"), ("X-Two", "2")])
        assert headers["X-One"] == "1"
        assert headers["X-Two"] == "2"

    def test_repeated_pair_names_joined(self):
        """Test that a name repeated in the pairs keeps every value."""
        headers = normalize_headers([("X-A", "1"), ("x-a", "2"), ("X-A", "3")])
        assert headers["X-A"] == "1,2,3"
        assert len(headers) == 1

    def test_list_values_joined(self):
        """Test that list values are joined with commas."""
        headers = normalize_headers({"Vary": ["Accept", "Origin"]})
        assert headers["Vary"] == "Accept,Origin"

    def test_none_kept(self):
        """Test that None values are stored."""
        headers = normalize_headers({"Server": None})
        assert "Server" in headers
        assert headers["Server"] is None

    def test_none_input(self):
        """Test that no headers give an empty collection."""
        assert len(normalize_headers(None)) == 0


class TestUpdateHeaders:
    """Tests for merging header updates."""

    def test_replaces_existing_value(self):
        """Test that an update replaces the value regardless of case."""
        merged = update_headers({"X-Mode": "a"}, {"x-mode": "b"})
        assert merged["X-Mode"] == "b"
        assert len(merged) == 1

    def test_drop_none_removes(self):
        """Test that None removes a header when drop_none is set."""
        merged = update_headers({"X-Gone": "1", "X-Kept": "2"}, {"X-Gone": None}, drop_none=True)
        assert "X-Gone" not in merged
        assert merged["X-Kept"] == "2"

    def test_none_stored_by_default(self):
        """Test that None is stored without drop_none."""
        merged = update_headers({"Server": "x"}, {"Server": None})
        assert merged["Server"] is None

    def test_repeated_update_names_joined(self):
        """Test that repeated names in the updates are joined, not replaced."""
        merged = update_headers({"X-A": "old"}, [("X-A", "1"), ("X-A", "2")])
        assert merged["X-A"] == "1,2"

    def test_original_untouched(self):
        """Test that the original collection is not modified."""
        original = normalize_headers({"X-One": "1"})
        update_headers(original, {"X-Two": "2"})
        assert "X-Two" not in original
