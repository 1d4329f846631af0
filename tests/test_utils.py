"""Unit tests for kubersync utility functions."""

from pathlib import Path

import pytest

from kubersync.exceptions import KubeInvalidResponseError, UnsafePathError
from kubersync.utils import (
    contents_equal,
    decode_data,
    encode_data,
    entries_equal,
    object_key,
    resolve_key,
)


class TestContentsEqual:
    """Tests for byte-exact content comparison."""

    def test_identical_bytes(self):
        assert contents_equal(b"abc", b"abc")

    def test_different_bytes(self):
        assert not contents_equal(b"abc", b"abd")

    def test_empty_is_not_missing(self):
        """An empty file is different from a file that does not exist."""
        assert not contents_equal(b"", None)
        assert not contents_equal(None, b"")

    def test_both_missing(self):
        assert contents_equal(None, None)

    def test_bytearray_and_bytes(self):
        assert contents_equal(bytearray(b"x"), b"x")


class TestEntriesEqual:
    """Tests for comparing whole entry maps."""

    def test_equal_maps(self):
        assert entries_equal({"a": b"1", "b": b"2"}, {"b": b"2", "a": b"1"})

    def test_extra_key(self):
        assert not entries_equal({"a": b"1"}, {"a": b"1", "b": b"2"})

    def test_changed_value(self):
        assert not entries_equal({"a": b"1"}, {"a": b"2"})

    def test_empty_maps(self):
        assert entries_equal({}, {})


class TestBase64Helpers:
    """Tests for the Secret data encoding helpers."""

    def test_encode_data(self):
        assert encode_data({"a": b"hello"}) == {"a": "aGVsbG8="}

    def test_decode_data(self):
        assert decode_data({"a": "aGVsbG8=", "b": ""}) == {"a": b"hello", "b": b""}

    def test_decode_none(self):
        assert decode_data(None) == {}

    def test_decode_invalid_base64(self):
        with pytest.raises(KubeInvalidResponseError, match="'a'"):
            decode_data({"a": "!!notbase64"})

    def test_binary_payload(self):
        payload = bytes(range(256))
        assert decode_data(encode_data({"bin": payload})) == {"bin": payload}


class TestResolveKey:
    """Tests for mapping secret keys to local paths."""

    def test_simple_key(self, tmp_path):
        assert resolve_key(tmp_path, "config.yaml") == tmp_path / "config.yaml"

    def test_nested_key(self, tmp_path):
        assert resolve_key(tmp_path, "tls/tls.crt") == tmp_path / "tls" / "tls.crt"

    def test_dot_segments_are_dropped(self, tmp_path):
        assert resolve_key(tmp_path, "./a/./b") == tmp_path / "a" / "b"

    @pytest.mark.parametrize("key", ["../escape", "a/../../b", "/etc/passwd", ""])
    def test_unsafe_keys_rejected(self, tmp_path, key):
        with pytest.raises(UnsafePathError):
            resolve_key(tmp_path, key)


def test_object_key():
    assert object_key("default", "app") == "default/app"


def test_resolve_key_returns_path_type():
    assert isinstance(resolve_key(Path("/root"), "x"), Path)
