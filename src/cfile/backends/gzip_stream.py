"""gzip files, read and written through the standard library's GzipFile."""

import gzip
import os
import struct
import zlib
from typing import Optional

from ..config import CFileConfig
from ..core.buffer import GenericBuffer
from ..core.errors import CodecError, UnsupportedModeError, codec_errors
from ..core.handle import SIZE_UNKNOWN, StreamHandle

# 10 byte header plus 8 byte trailer
MIN_MEMBER_SIZE = 18

GZIP_ERRORS = (gzip.BadGzipFile, zlib.error, EOFError)


class GzipFile(StreamHandle):
    """A gzip compressed file.

    Reads go through a GenericBuffer filled with ``read1``, which decodes
    at most one chunk per call, so bytes decoded ahead of a corrupt or
    truncated region are always delivered before the failure.
    """

    backend_name = 'GZip file'
    extensions = ('.gz',)
    magic = b'\x1f\x8b'

    def __init__(self, raw, gz: gzip.GzipFile, path: str, mode: str, config: CFileConfig):
        super().__init__(path, path, mode, config.encoding)
        self._raw = raw
        self._gz = gz
        self._failed = False
        self._buffer = None if self.writing else GenericBuffer(config.buffer_size, self._refill)

    @classmethod
    def open(cls, path: str, mode: str, config: CFileConfig) -> 'GzipFile':
        if mode[:1] not in ('r', 'w'):
            raise UnsupportedModeError(f"gzip files can only be read or written, not {mode!r}")
        raw = open(path, mode[0] + 'b')
        try:
            gz = gzip.GzipFile(fileobj=raw, mode=mode[0] + 'b', compresslevel=config.gzip_level)
        except BaseException:
            raw.close()
            raise
        return cls(raw, gz, path, mode, config)

    def _refill(self, view: memoryview) -> int:
        try:
            with codec_errors(self.name, *GZIP_ERRORS):
                data = self._gz.read1(len(view))
        except CodecError:
            self._failed = True
            raise
        view[:len(data)] = data
        return len(data)

    def size(self) -> int:
        """Uncompressed size from the ISIZE field of the last member.

        ISIZE is stored modulo 2**32, and a file of several members only
        records the last member's size there.
        """
        with open(self.path, 'rb') as raw:
            raw.seek(0, os.SEEK_END)
            if raw.tell() < MIN_MEMBER_SIZE:
                return SIZE_UNKNOWN
            raw.seek(-4, os.SEEK_END)
            (isize,) = struct.unpack('<I', raw.read(4))
        return isize

    def eof(self) -> bool:
        return self._failed or (self._buffer is not None and self._buffer.is_empty())

    def gets(self, capacity: int) -> Optional[bytes]:
        self._require_reading()
        return self._buffer.gets(capacity)

    def read(self, length: int) -> bytes:
        self._require_reading()
        return self._buffer.read(length)

    def write(self, data: bytes) -> int:
        self._require_writing()
        return self._gz.write(data)

    def flush(self) -> None:
        """Sync-flush to a byte boundary without resetting the compressor."""
        if self.writing:
            self._gz.flush(zlib.Z_SYNC_FLUSH)

    def _close(self) -> None:
        try:
            self._gz.close()
        finally:
            self._raw.close()
