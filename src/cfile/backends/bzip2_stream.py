"""bzip2 files."""

import bz2
import logging
from typing import Optional

from ..config import CFileConfig
from ..core.buffer import GenericBuffer
from ..core.errors import CodecError, UnsupportedModeError, codec_errors
from ..core.handle import StreamHandle
from ..sizing import size_cache

logger = logging.getLogger(__name__)

BZIP2_ERRORS = (OSError, EOFError, ValueError)


class Bzip2File(StreamHandle):
    """A bzip2 compressed file.

    bz2 has no line reads, so reading goes through a GenericBuffer
    refilled from the decompressor. Writing counts the uncompressed
    bytes so the size cache can be primed when the file is closed.
    """

    backend_name = 'BZip2 file'
    extensions = ('.bz2',)
    magic = b'BZh'

    def __init__(self, raw, bz: bz2.BZ2File, path: str, mode: str, config: CFileConfig):
        super().__init__(path, path, mode, config.encoding)
        self._raw = raw
        self._bz = bz
        self._config = config
        self._buffer = None if self.writing else GenericBuffer(config.buffer_size, self._refill)
        self._failed = False
        self._written = 0

    @classmethod
    def open(cls, path: str, mode: str, config: CFileConfig) -> 'Bzip2File':
        if mode[:1] not in ('r', 'w'):
            raise UnsupportedModeError(f"bzip2 files can only be read or written, not {mode!r}")
        raw = open(path, mode[0] + 'b')
        try:
            bz = bz2.BZ2File(raw, mode[0] + 'b', compresslevel=config.bzip2_level)
        except BaseException:
            raw.close()
            raise
        return cls(raw, bz, path, mode, config)

    def _refill(self, view: memoryview) -> int:
        try:
            with codec_errors(self.name, *BZIP2_ERRORS):
                return self._bz.readinto(view)
        except CodecError:
            self._failed = True
            raise

    def size(self) -> int:
        return size_cache.cached_size(self.path, self._config)

    def eof(self) -> bool:
        # bz2 signals the end of data by returning no bytes, which leaves
        # the buffer empty after its last refill
        return self._failed or (self._buffer is not None and self._buffer.is_empty())

    def gets(self, capacity: int) -> Optional[bytes]:
        self._require_reading()
        return self._buffer.gets(capacity)

    def read(self, length: int) -> bytes:
        self._require_reading()
        return self._buffer.read(length)

    def write(self, data: bytes) -> int:
        self._require_writing()
        written = self._bz.write(data)
        self._written += written
        return written

    def flush(self) -> None:
        """Push completed blocks to the file.

        bzip2 cannot end a block early without ending the stream, so data
        still inside the current block stays there until close.
        """
        if self.writing:
            self._raw.flush()

    def _close(self) -> None:
        try:
            self._bz.close()
        finally:
            self._raw.close()
        if self.writing:
            logger.debug(f"{self.name}: {self._written} bytes written")
            size_cache.store_size(self.path, self._written, self._config.size_attribute)
