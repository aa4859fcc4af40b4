"""xz files, decoded stream by stream with liblzma through the lzma module."""

import logging
import lzma
from typing import Optional

from ..config import CFileConfig
from ..core.buffer import GenericBuffer
from ..core.errors import CodecError, UnsupportedModeError, codec_errors
from ..core.handle import SIZE_UNKNOWN, StreamHandle
from ..sizing import xz_index

logger = logging.getLogger(__name__)

XZ_ERRORS = (lzma.LZMAError, EOFError)


class XzFile(StreamHandle):
    """An xz compressed file.

    Reading accepts any number of concatenated streams with stream padding
    between them. Writing produces one stream per flush: flushing finishes
    the current stream, and the next write starts a new one, so every
    flushed prefix of the file is a complete xz file.
    """

    backend_name = 'xz file'
    extensions = ('.xz',)
    magic = xz_index.HEADER_MAGIC

    def __init__(self, raw, path: str, mode: str, config: CFileConfig):
        super().__init__(path, path, mode, config.encoding)
        self._raw = raw
        self._config = config
        self._failed = False
        if self.writing:
            self._buffer = None
            self._compressor = self._new_compressor()
            self._dirty = False
            self.streams_written = 0
        else:
            self._buffer = GenericBuffer(config.buffer_size, self._refill)
            self._decoder = lzma.LZMADecompressor(format=lzma.FORMAT_XZ)
            self._pending = b''
            self._in_stream = False
            self._padding = 0

    @classmethod
    def open(cls, path: str, mode: str, config: CFileConfig) -> 'XzFile':
        if mode[:1] not in ('r', 'w'):
            raise UnsupportedModeError(f"xz files can only be read or written, not {mode!r}")
        raw = open(path, mode[0] + 'b')
        try:
            return cls(raw, path, mode, config)
        except BaseException:
            raw.close()
            raise

    def _new_compressor(self) -> lzma.LZMACompressor:
        return lzma.LZMACompressor(format=lzma.FORMAT_XZ, check=lzma.CHECK_CRC64,
                                   preset=self._config.xz_preset)

    def _read_raw(self) -> bool:
        chunk = self._raw.read(self._config.read_chunk_size)
        self._pending += chunk
        return bool(chunk)

    def _decode(self, limit: int) -> bytes:
        """Decode up to ``limit`` bytes, crossing stream boundaries.

        Returns:
            Decoded bytes, empty only once the last stream has ended
        """
        while True:
            if self._decoder.eof:
                self._pending = self._decoder.unused_data + self._pending
                self._decoder = lzma.LZMADecompressor(format=lzma.FORMAT_XZ)
                self._in_stream = False
                continue

            if not self._in_stream:
                # Zero bytes between streams are stream padding
                stripped = self._pending.lstrip(b'\x00')
                self._padding += len(self._pending) - len(stripped)
                self._pending = stripped
                if not self._pending:
                    if self._read_raw():
                        continue
                    if self._padding % 4:
                        raise lzma.LZMAError("Stream padding is not a multiple of four bytes")
                    return b''
                if self._padding % 4:
                    raise lzma.LZMAError("Stream padding is not a multiple of four bytes")
                self._padding = 0
                self._in_stream = True

            if self._decoder.needs_input:
                if not self._pending and not self._read_raw():
                    raise EOFError("Compressed file ended before the end-of-stream marker was reached")
                data, self._pending = self._pending, b''
            else:
                data = b''
            out = self._decoder.decompress(data, limit)
            if out:
                return out

    def _refill(self, view: memoryview) -> int:
        try:
            with codec_errors(self.name, *XZ_ERRORS):
                data = self._decode(len(view))
        except CodecError:
            self._failed = True
            raise
        view[:len(data)] = data
        return len(data)

    def size(self) -> int:
        size = xz_index.uncompressed_size(self.path)
        return SIZE_UNKNOWN if size is None else size

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
        with codec_errors(self.name, *XZ_ERRORS):
            self._raw.write(self._compressor.compress(data))
        if data:
            self._dirty = True
        return len(data)

    def _finish_stream(self) -> None:
        with codec_errors(self.name, *XZ_ERRORS):
            self._raw.write(self._compressor.flush())
        self.streams_written += 1
        logger.debug(f"Finished xz stream {self.streams_written} of {self.name}")
        self._compressor = self._new_compressor()
        self._dirty = False

    def flush(self) -> None:
        """End the current stream so everything written so far can be decoded."""
        if not self.writing:
            return
        if self._dirty:
            self._finish_stream()
        self._raw.flush()

    def _close(self) -> None:
        try:
            # An empty file still gets one (empty) stream
            if self.writing and (self._dirty or self.streams_written == 0):
                self._finish_stream()
        finally:
            self._raw.close()
