# bucketfs/file_access/metadata.py
"""
Conversion of decoded object records into filesystem metadata.
"""
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from bucketfs.file_access.errors import MetadataDecodeError
from bucketfs.file_access.response_mapper import Item

_DECIMAL = re.compile(r"[0-9]+")

# The store has no POSIX ownership model
OWNER_SENTINEL = 0


@dataclass(frozen=True)
class ObjectMetadata:
    """Metadata for an object or a (virtual) directory."""
    size: int
    modified: Optional[datetime]
    is_file: bool
    is_symlink: bool = False
    uid: int = OWNER_SENTINEL
    gid: int = OWNER_SENTINEL

    @property
    def is_dir(self) -> bool:
        return not self.is_file

    @property
    def is_empty(self) -> bool:
        return self.size == 0


def parse_size(text: str) -> int:
    """
    Parse the store's decimal size string.

    Raises:
        MetadataDecodeError: if the value is not an unsigned decimal integer
    """
    if not isinstance(text, str) or not _DECIMAL.fullmatch(text):
        raise MetadataDecodeError(f"invalid object size {text!r}")
    return int(text)


def to_metadata(item: Item) -> ObjectMetadata:
    return ObjectMetadata(
        size=parse_size(item.size),
        modified=item.updated,
        is_file=True,
    )


def directory_metadata(modified: Optional[datetime] = None) -> ObjectMetadata:
    """Metadata for a directory marker or a listing prefix."""
    return ObjectMetadata(size=0, modified=modified, is_file=False)
