# bucketfs/file_access/path_codec.py
"""
Translation between logical filesystem paths and object keys.

Logical paths are '/'-separated and relative to the bucket root; a leading
'/' (or a ``gs://<bucket>/`` prefix) is accepted and stripped. A trailing '/'
is kept because it marks a directory. Encoded keys percent-escape every
reserved character inside a segment but leave the separator alone so the
store can still split on it.
"""
import os
from typing import Union
from urllib.parse import quote, unquote

from bucketfs.file_access.errors import InvalidPath

SEPARATOR = "/"

PathLike = Union[str, bytes, "os.PathLike[str]"]


class PathCodec:
    """Encode and decode object keys for one bucket."""

    def __init__(self, bucket: str):
        self.bucket = bucket
        self._url_prefix = f"gs://{bucket}/"

    def _as_text(self, path: PathLike) -> str:
        if isinstance(path, bytes):
            try:
                return path.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise InvalidPath("path is not valid UTF-8", path=repr(path)) from exc
        if isinstance(path, os.PathLike):
            path = os.fspath(path)
        if not isinstance(path, str):
            raise InvalidPath(f"unsupported path type {type(path).__name__}", path=repr(path))
        return path

    def normalize(self, path: PathLike) -> str:
        """
        Return the raw object key for a logical path.

        Resolves '.' and '..' segments and collapses empty ones. The root is
        the empty string.

        Raises:
            InvalidPath: if the path is not valid text or climbs above the
                bucket root
        """
        text = self._as_text(path)
        try:
            text.encode("utf-8")
        except UnicodeEncodeError as exc:
            raise InvalidPath("path is not valid text", path=text) from exc

        if text.startswith(self._url_prefix):
            text = text[len(self._url_prefix):]
        is_dir = text.endswith(SEPARATOR)

        segments = []
        for segment in text.split(SEPARATOR):
            if segment in ("", "."):
                continue
            if segment == "..":
                if not segments:
                    raise InvalidPath("path escapes the bucket root", path=text)
                segments.pop()
                continue
            segments.append(segment)

        key = SEPARATOR.join(segments)
        if key and is_dir:
            key += SEPARATOR
        return key

    def encode(self, path: PathLike) -> str:
        """Normalize ``path`` and percent-encode each of its segments."""
        return quote_key(self.normalize(path))

    def decode(self, key: str) -> str:
        """Inverse of :meth:`encode`."""
        try:
            return SEPARATOR.join(unquote(segment, errors="strict") for segment in key.split(SEPARATOR))
        except UnicodeDecodeError as exc:
            raise InvalidPath("key does not decode to UTF-8 text", path=key) from exc


def as_directory(key: str) -> str:
    """Directory form of a raw key; the root stays ''."""
    if not key or key.endswith(SEPARATOR):
        return key
    return key + SEPARATOR


def as_object(key: str) -> str:
    return key.rstrip(SEPARATOR)


def is_directory_key(key: str) -> bool:
    return key == "" or key.endswith(SEPARATOR)


def basename(key: str) -> str:
    return key.rstrip(SEPARATOR).rsplit(SEPARATOR, 1)[-1]


def quote_key(key: str) -> str:
    """Percent-encode an already normalized raw key."""
    return SEPARATOR.join(quote(segment, safe="") for segment in key.split(SEPARATOR))
