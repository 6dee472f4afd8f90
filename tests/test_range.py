"""Tests for HTTP Range header parsing."""

import pytest

from flatdav.ranges import parse_range_header


class TestParseRangeHeader:
    """Tests for parse_range_header()."""

    def test_simple_range(self):
        assert parse_range_header("bytes=0-4", 100) == (0, 4)

    def test_open_ended_range(self):
        """bytes=95- runs to the last byte."""
        assert parse_range_header("bytes=95-", 100) == (95, 99)

    def test_end_clamped(self):
        """An end offset past the object is clamped to the last byte."""
        assert parse_range_header("bytes=10-500", 100) == (10, 99)

    def test_start_past_end_yields_full_range(self):
        """A start at or beyond the size falls back to the whole object."""
        assert parse_range_header("bytes=100-", 100) == (0, 99)
        assert parse_range_header("bytes=250-300", 100) == (0, 99)

    def test_start_after_end_yields_full_range(self):
        assert parse_range_header("bytes=50-10", 100) == (0, 99)

    def test_single_byte(self):
        assert parse_range_header("bytes=7-7", 100) == (7, 7)

    def test_whitespace_is_tolerated(self):
        assert parse_range_header("  bytes=1-2 ", 10) == (1, 2)

    @pytest.mark.parametrize(
        "header",
        [
            "bytes=abc",
            "bytes=-5",
            "items=0-4",
            "bytes=0-4,10-20",
            "0-4",
        ],
    )
    def test_malformed_returns_none(self, header):
        """Unparseable headers mean 'serve the full content'."""
        assert parse_range_header(header, 100) is None

    def test_missing_header(self):
        assert parse_range_header(None, 100) is None
        assert parse_range_header("", 100) is None

    def test_empty_resource(self):
        assert parse_range_header("bytes=0-4", 0) is None
