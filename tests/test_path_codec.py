from pathlib import PurePosixPath

import pytest

from bucketfs.file_access.errors import InvalidPath
from bucketfs.file_access.path_codec import (
    PathCodec,
    as_directory,
    as_object,
    basename,
    is_directory_key,
    quote_key,
)


@pytest.fixture
def codec():
    return PathCodec("test-bucket")


@pytest.mark.parametrize("path", [
    "reports/q1.csv",
    "my file.txt",
    "a+b/c d/e&f=g.txt",
    "100%/done?.txt",
    "résumé/naïve.txt",
    "日本語/ファイル",
    "dir/with#hash/[x]",
    "nested/dir/",
])
def test_decode_inverts_encode(codec, path):
    assert codec.decode(codec.encode(path)) == path


@pytest.mark.parametrize("char,escaped", [
    (" ", "%20"),
    ("?", "%3F"),
    ("#", "%23"),
    ("%", "%25"),
    ("&", "%26"),
    ("+", "%2B"),
    ("=", "%3D"),
    ("[", "%5B"),
    ("]", "%5D"),
    ("@", "%40"),
])
def test_reserved_characters_escaped_inside_segments(codec, char, escaped):
    assert codec.encode(f"dir/a{char}b") == f"dir/a{escaped}b"


def test_separator_left_unescaped(codec):
    encoded = codec.encode("a/b/c.txt")
    assert encoded == "a/b/c.txt"
    assert "%2F" not in encoded


def test_non_ascii_encoded_as_utf8(codec):
    assert codec.encode("é") == "%C3%A9"


def test_normalize_strips_leading_slash_and_collapses_empty_segments(codec):
    assert codec.normalize("/a//b/c") == "a/b/c"


def test_normalize_keeps_trailing_slash(codec):
    assert codec.normalize("a/b/") == "a/b/"
    assert codec.normalize("a/b") == "a/b"


def test_normalize_resolves_dot_segments(codec):
    assert codec.normalize("a/./b/../c") == "a/c"
    assert codec.normalize("a/b/..") == "a"


def test_normalize_strips_bucket_url(codec):
    assert codec.normalize("gs://test-bucket/a/b") == "a/b"


def test_other_bucket_url_is_not_stripped(codec):
    # Treated as an ordinary relative path inside this bucket
    assert codec.normalize("gs://other/a").startswith("gs:")


@pytest.mark.parametrize("root", ["", "/", ".", "./", "a/.."])
def test_root_normalizes_to_empty_key(codec, root):
    assert codec.normalize(root) == ""


@pytest.mark.parametrize("path", ["..", "../etc/passwd", "a/../../b", "/../x"])
def test_paths_escaping_root_rejected(codec, path):
    with pytest.raises(InvalidPath):
        codec.normalize(path)


@pytest.mark.parametrize("path, encoded", [
    ("tab\there", "tab%09here"),
    ("bell\x07x", "bell%07x"),
    ("a\x00b", "a%00b"),
    ("line\nbreak/del\x7f", "line%0Abreak/del%7F"),
])
def test_control_characters_escaped(codec, path, encoded):
    assert codec.encode(path) == encoded
    assert codec.decode(encoded) == path


def test_lone_surrogate_rejected(codec):
    with pytest.raises(InvalidPath):
        codec.encode("bad\ud800name")


def test_bytes_paths_must_be_utf8(codec):
    assert codec.normalize("dir/é".encode("utf-8")) == "dir/é"
    with pytest.raises(InvalidPath):
        codec.normalize(b"dir/\xff")


def test_pathlike_accepted(codec):
    assert codec.normalize(PurePosixPath("a/b")) == "a/b"


def test_unsupported_type_rejected(codec):
    with pytest.raises(InvalidPath):
        codec.normalize(42)


def test_decode_rejects_invalid_utf8_escape(codec):
    with pytest.raises(InvalidPath):
        codec.decode("dir/%FF")


def test_invalid_path_carries_kind(codec):
    with pytest.raises(InvalidPath) as excinfo:
        codec.normalize("../x")
    assert excinfo.value.kind.value == "invalid_path"
    assert excinfo.value.retryable is False


def test_key_helpers():
    assert as_directory("a/b") == "a/b/"
    assert as_directory("a/b/") == "a/b/"
    assert as_directory("") == ""
    assert as_object("a/b/") == "a/b"
    assert is_directory_key("a/")
    assert is_directory_key("")
    assert not is_directory_key("a")
    assert basename("a/b/c.txt") == "c.txt"
    assert basename("a/b/") == "b"
    assert quote_key("a b/c") == "a%20b/c"
