"""
lzop files.

python-lzo only compresses and decompresses single buffers, so the lzop
container around them is handled here:

    magic (9) | header | checksum | { block header | data } ... | 0 (u32)

Each block header holds the uncompressed length, the compressed length and
checksums selected by the header flags. A block whose compressed form is
no smaller than its input is stored as is. The uncompressed size of a file
is the sum of its block lengths, available without decoding anything.
"""

import logging
import os
import struct
import time
import zlib
from dataclasses import dataclass
from typing import BinaryIO, Iterator, Optional

from ..config import CFileConfig
from ..core.buffer import GenericBuffer
from ..core.errors import BackendUnavailableError, CodecError, UnsupportedModeError, codec_errors
from ..core.handle import StreamHandle

try:
    import lzo
    HAS_LZO = True
except ImportError:
    HAS_LZO = False

logger = logging.getLogger(__name__)

LZOP_MAGIC = b'\x89LZO\x00\r\n\x1a\n'
LZOP_VERSION = 0x1040
LZOP_VERSION_NEEDED = 0x0940
LZOP_MIN_VERSION = 0x0900

M_LZO1X_1 = 1
M_LZO1X_1_15 = 2
M_LZO1X_999 = 3
LZO1X_METHODS = (M_LZO1X_1, M_LZO1X_1_15, M_LZO1X_999)

F_ADLER32_D = 0x00000001
F_ADLER32_C = 0x00000002
F_H_EXTRA_FIELD = 0x00000040
F_CRC32_D = 0x00000100
F_CRC32_C = 0x00000200
F_H_FILTER = 0x00000800
F_H_CRC32 = 0x00001000
F_OS_UNIX = 0x03000000

# Largest block lzop itself accepts
MAX_BLOCK_SIZE = 64 * 1024 * 1024

_U32 = struct.Struct('>I')


def _adler32(data: bytes) -> int:
    return zlib.adler32(data) & 0xFFFFFFFF


def _crc32(data: bytes) -> int:
    return zlib.crc32(data) & 0xFFFFFFFF


def _read_exact(fileobj: BinaryIO, length: int) -> bytes:
    data = fileobj.read(length)
    if len(data) != length:
        raise CodecError(f"lzop data truncated: wanted {length} bytes, got {len(data)}")
    return data


def _read_u32(fileobj: BinaryIO) -> int:
    return _U32.unpack(_read_exact(fileobj, 4))[0]


class _RecordingReader:
    """Reads header fields while keeping the bytes for the header checksum."""

    def __init__(self, fileobj: BinaryIO):
        self.fileobj = fileobj
        self.consumed = bytearray()

    def take(self, fmt: str) -> int:
        field = struct.Struct('>' + fmt)
        data = _read_exact(self.fileobj, field.size)
        self.consumed += data
        return field.unpack(data)[0]

    def take_bytes(self, length: int) -> bytes:
        data = _read_exact(self.fileobj, length)
        self.consumed += data
        return data


@dataclass(frozen=True)
class LzopHeader:
    """The file header that follows the lzop magic."""
    method: int
    level: int
    flags: int = F_ADLER32_D | F_OS_UNIX
    mode: int = 0o100644
    mtime: int = 0
    name: str = ''
    version: int = LZOP_VERSION
    lib_version: int = 0
    version_needed: int = LZOP_VERSION_NEEDED

    @classmethod
    def for_level(cls, level: int, name: str = '') -> 'LzopHeader':
        """Header for a new file compressed at ``level`` (1 or 9)."""
        method = M_LZO1X_999 if level >= 7 else M_LZO1X_1
        return cls(method=method, level=level, mtime=int(time.time()),
                   name=name, lib_version=getattr(lzo, 'LZO_VERSION', 0) & 0xFFFF)

    def pack(self) -> bytes:
        """Encode magic, header and header checksum."""
        name = self.name.encode('utf-8', 'replace')[:255]
        body = struct.pack(
            '>HHHBBIIIIB',
            self.version, self.lib_version, self.version_needed,
            self.method, self.level, self.flags, self.mode,
            self.mtime & 0xFFFFFFFF, self.mtime >> 32, len(name),
        ) + name
        checksum = _crc32(body) if self.flags & F_H_CRC32 else _adler32(body)
        return LZOP_MAGIC + body + _U32.pack(checksum)

    @classmethod
    def read(cls, fileobj: BinaryIO) -> 'LzopHeader':
        """Parse a header, checking the magic and header checksum.

        Raises:
            CodecError: If the header is malformed or uses features this
                reader does not support
        """
        if _read_exact(fileobj, len(LZOP_MAGIC)) != LZOP_MAGIC:
            raise CodecError("Not an lzop file")

        reader = _RecordingReader(fileobj)
        version = reader.take('H')
        if version < LZOP_MIN_VERSION:
            raise CodecError(f"lzop version {version:#06x} is too old")
        lib_version = reader.take('H')
        version_needed = reader.take('H') if version >= 0x0940 else LZOP_MIN_VERSION
        if version_needed > LZOP_VERSION:
            raise CodecError(f"lzop version {version_needed:#06x} is needed to read this file")
        method = reader.take('B')
        if method not in LZO1X_METHODS:
            raise CodecError(f"Unsupported lzop method {method}")
        level = reader.take('B') if version >= 0x0940 else 0
        flags = reader.take('I')
        if flags & F_H_FILTER and reader.take('I'):
            raise CodecError("lzop filters are not supported")
        mode = reader.take('I')
        mtime = reader.take('I')
        if version >= 0x0940:
            mtime |= reader.take('I') << 32
        name = reader.take_bytes(reader.take('B')).decode('utf-8', 'replace')

        expected = _crc32(reader.consumed) if flags & F_H_CRC32 else _adler32(reader.consumed)
        if _read_u32(fileobj) != expected:
            raise CodecError("lzop header checksum mismatch")

        if flags & F_H_EXTRA_FIELD:
            extra_length = _read_u32(fileobj)
            _read_exact(fileobj, extra_length + 4)

        return cls(method=method, level=level, flags=flags, mode=mode, mtime=mtime,
                   name=name, version=version, lib_version=lib_version,
                   version_needed=version_needed)


@dataclass(frozen=True)
class BlockHeader:
    uncompressed_size: int
    compressed_size: int
    uncompressed_check: Optional[int] = None
    compressed_check: Optional[int] = None

    @property
    def stored(self) -> bool:
        return self.compressed_size == self.uncompressed_size


def read_block_header(fileobj: BinaryIO, flags: int) -> Optional[BlockHeader]:
    """Read the next block header, or None at the terminating zero length."""
    uncompressed_size = _read_u32(fileobj)
    if uncompressed_size == 0:
        return None
    if uncompressed_size > MAX_BLOCK_SIZE:
        raise CodecError(f"lzop block of {uncompressed_size} bytes is too large")
    compressed_size = _read_u32(fileobj)
    if compressed_size > uncompressed_size:
        raise CodecError("lzop block expands on compression")

    uncompressed_check = None
    if flags & (F_ADLER32_D | F_CRC32_D):
        uncompressed_check = _read_u32(fileobj)
        if flags & F_ADLER32_D and flags & F_CRC32_D:
            _read_u32(fileobj)

    compressed_check = None
    if compressed_size < uncompressed_size and flags & (F_ADLER32_C | F_CRC32_C):
        compressed_check = _read_u32(fileobj)
        if flags & F_ADLER32_C and flags & F_CRC32_C:
            _read_u32(fileobj)

    return BlockHeader(uncompressed_size, compressed_size, uncompressed_check, compressed_check)


def iter_block_headers(fileobj: BinaryIO, header: LzopHeader) -> Iterator[BlockHeader]:
    """Walk the block headers, seeking over the block data."""
    while True:
        block = read_block_header(fileobj, header.flags)
        if block is None:
            return
        fileobj.seek(block.compressed_size, os.SEEK_CUR)
        yield block


def _data_check(flags: int, data: bytes) -> int:
    return _adler32(data) if flags & F_ADLER32_D else _crc32(data)


def _compressed_check(flags: int, data: bytes) -> int:
    return _adler32(data) if flags & F_ADLER32_C else _crc32(data)


def decode_block(block: BlockHeader, payload: bytes, flags: int) -> bytes:
    """Decompress one block's payload and verify its checksums."""
    if block.compressed_check is not None and _compressed_check(flags, payload) != block.compressed_check:
        raise CodecError("lzop compressed block checksum mismatch")
    if block.stored:
        data = payload
    else:
        with codec_errors('lzop block', lzo.error):
            data = lzo.decompress(payload, False, block.uncompressed_size)
    if len(data) != block.uncompressed_size:
        raise CodecError(f"lzop block decoded to {len(data)} bytes, expected {block.uncompressed_size}")
    if block.uncompressed_check is not None and _data_check(flags, data) != block.uncompressed_check:
        raise CodecError("lzop block checksum mismatch")
    return data


def encode_block(data: bytes, level: int, flags: int = F_ADLER32_D) -> bytes:
    """Compress one block, storing it when compression does not help."""
    with codec_errors('lzop block', lzo.error):
        compressed = lzo.compress(data, level, False)
    header = _U32.pack(len(data))
    if len(compressed) >= len(data):
        header += _U32.pack(len(data))
        compressed = data
    else:
        header += _U32.pack(len(compressed))
    if flags & (F_ADLER32_D | F_CRC32_D):
        header += _U32.pack(_data_check(flags, data))
    return header + compressed


def uncompressed_size(fileobj: BinaryIO) -> int:
    """Sum of the block lengths of an lzop file, read from its headers."""
    header = LzopHeader.read(fileobj)
    return sum(block.uncompressed_size for block in iter_block_headers(fileobj, header))


class LzoFile(StreamHandle):
    """An lzop compressed file, through python-lzo."""

    backend_name = 'LZO file'
    extensions = ('.lzo',)
    magic = LZOP_MAGIC

    def __init__(self, raw, path: str, mode: str, config: CFileConfig,
                 header: Optional[LzopHeader] = None):
        super().__init__(path, path, mode, config.encoding)
        self._raw = raw
        self._config = config
        self._header = header
        self._failed = False
        self._block = b''
        self._block_pos = 0
        self._pending = bytearray()
        self._buffer = None if self.writing else GenericBuffer(config.buffer_size, self._refill)

    @classmethod
    def open(cls, path: str, mode: str, config: CFileConfig) -> 'LzoFile':
        if not HAS_LZO:
            raise BackendUnavailableError("python-lzo is required for lzop files")
        if mode[:1] not in ('r', 'w'):
            raise UnsupportedModeError(f"lzop files can only be read or written, not {mode!r}")
        raw = open(path, mode[0] + 'b')
        try:
            if mode.startswith('r'):
                header = LzopHeader.read(raw)
                logger.debug(f"{path}: lzop method {header.method}, level {header.level}")
            else:
                header = LzopHeader.for_level(config.lzo_level, os.path.basename(path))
                raw.write(header.pack())
        except BaseException:
            raw.close()
            raise
        return cls(raw, path, mode, config, header)

    def _next_block(self) -> bool:
        block = read_block_header(self._raw, self._header.flags)
        if block is None:
            return False
        payload = _read_exact(self._raw, block.compressed_size)
        self._block = decode_block(block, payload, self._header.flags)
        self._block_pos = 0
        return True

    def _refill(self, view: memoryview) -> int:
        try:
            while self._block_pos == len(self._block):
                if not self._next_block():
                    return 0
        except CodecError:
            self._failed = True
            raise
        count = min(len(view), len(self._block) - self._block_pos)
        view[:count] = self._block[self._block_pos:self._block_pos + count]
        self._block_pos += count
        return count

    def size(self) -> int:
        with open(self.path, 'rb') as f:
            return uncompressed_size(f)

    def eof(self) -> bool:
        return self._failed or (self._buffer is not None and self._buffer.is_empty())

    def gets(self, capacity: int) -> Optional[bytes]:
        self._require_reading()
        return self._buffer.gets(capacity)

    def read(self, length: int) -> bytes:
        self._require_reading()
        return self._buffer.read(length)

    def _write_blocks(self, final: bool) -> None:
        block_size = self._config.lzo_block_size
        while len(self._pending) >= block_size or (final and self._pending):
            chunk = bytes(self._pending[:block_size])
            del self._pending[:block_size]
            self._raw.write(encode_block(chunk, self._config.lzo_level, self._header.flags))

    def write(self, data: bytes) -> int:
        self._require_writing()
        self._pending += data
        self._write_blocks(final=False)
        return len(data)

    def flush(self) -> None:
        """Write out the partial block and flush the file."""
        if self.writing:
            self._write_blocks(final=True)
            self._raw.flush()

    def _close(self) -> None:
        try:
            if self.writing:
                self._write_blocks(final=True)
                self._raw.write(_U32.pack(0))
        finally:
            self._raw.close()
