# bucketfs/file_access/object_reader.py
"""
Sequential reader over a fully downloaded object.
"""
import io


class ObjectReader(io.RawIOBase):
    """
    File-like view of an object's bytes, returned by ``CloudStorage.get``.

    The reader owns its buffer and hands it out front to back. ``read`` and
    ``readall`` come from ``io.RawIOBase``; an empty result means end of
    data. One owner, one cursor: do not share an instance between tasks.
    """

    def __init__(self, data: bytes):
        super().__init__()
        self._data = memoryview(bytes(data))
        self._index = 0

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        if self.closed:
            raise ValueError("I/O operation on closed object reader")
        view = memoryview(buffer).cast("B")
        count = min(len(view), len(self._data) - self._index)
        view[:count] = self._data[self._index:self._index + count]
        self._index += count
        return count

    @property
    def remaining(self) -> int:
        return len(self._data) - self._index

    def __len__(self) -> int:
        return len(self._data)

    def close(self) -> None:
        if not self.closed:
            self._data.release()
        super().close()
