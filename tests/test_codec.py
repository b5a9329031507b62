"""Tests for message body compression."""

import zlib

import pytest

from flashback.codec import compress, decompress


class TestRoundTrip:
    @pytest.mark.parametrize("text", [
        "",
        "hello world",
        "déjà vu — 日本語 🎉",
        "line one\nline two\ttabbed",
        "budget " * 5000,
    ])
    def test_decompress_restores_text(self, text):
        assert decompress(compress(text)) == text

    def test_compression_shrinks_repetitive_text(self):
        text = "quarterly budget review " * 200
        assert len(compress(text)) < len(text.encode("utf-8"))

    def test_output_is_zlib(self):
        assert zlib.decompress(compress("abc")) == b"abc"


class TestDegradedInput:
    def test_compress_failure_returns_empty(self):
        assert compress(None) == b""

    def test_decompress_garbage_returns_empty_string(self):
        assert decompress(b"not zlib at all") == ""

    def test_decompress_empty_returns_empty_string(self):
        assert decompress(b"") == ""
        assert decompress(None) == ""

    def test_decompress_truncated_returns_empty_string(self):
        data = compress("a long enough message to truncate")
        assert decompress(data[: len(data) // 2]) == ""
