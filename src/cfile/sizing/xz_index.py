"""
Uncompressed size of xz files without decoding their payload.

An xz file is one or more streams, each optionally followed by stream
padding (zero bytes, a multiple of four):

    [header 12][blocks ...][index][footer 12][padding] [header 12] ...

The footer records the index size ("backward size") and the index lists
every block's unpadded and uncompressed size. Walking the file from the
end, footer to index to header, recovers each stream's sizes, and the
combined index holds the total for the file.
"""

import logging
import os
import struct
import zlib
from dataclasses import dataclass, field
from typing import BinaryIO, List, Optional

from ..core.errors import CorruptIndexError

logger = logging.getLogger(__name__)

HEADER_SIZE = 12
HEADER_MAGIC = b'\xfd7zXZ\x00'
FOOTER_MAGIC = b'YZ'

UNPADDED_SIZE_MIN = 5
UNPADDED_SIZE_MAX = 0x7FFFFFFFFFFFFFFC
VLI_BYTES_MAX = 9

INDEX_CHUNK_SIZE = 8192

_ZERO_WORD = b'\x00' * 4

# Index decoder states
_INDICATOR, _COUNT, _UNPADDED, _UNCOMPRESSED, _PADDING, _CRC = range(6)


def _crc32(data: bytes) -> int:
    return zlib.crc32(data) & 0xFFFFFFFF


def _round_up4(value: int) -> int:
    return (value + 3) & ~3


@dataclass(frozen=True)
class StreamFlags:
    """Stream flags shared by a stream's header and footer."""
    check: int

    @classmethod
    def decode(cls, raw: bytes) -> 'StreamFlags':
        if raw[0] != 0 or raw[1] & 0xF0:
            raise CorruptIndexError(f"Unsupported stream flags {raw.hex()}")
        return cls(check=raw[1] & 0x0F)


@dataclass(frozen=True)
class StreamFooter:
    flags: StreamFlags
    backward_size: int


def decode_stream_header(data: bytes) -> StreamFlags:
    """Decode a 12 byte stream header and return its flags."""
    if len(data) != HEADER_SIZE or not data.startswith(HEADER_MAGIC):
        raise CorruptIndexError("Missing stream header magic")
    (stored_crc,) = struct.unpack('<I', data[8:12])
    if stored_crc != _crc32(data[6:8]):
        raise CorruptIndexError("Stream header CRC32 mismatch")
    return StreamFlags.decode(data[6:8])


def decode_stream_footer(data: bytes) -> StreamFooter:
    """Decode a 12 byte stream footer."""
    if len(data) != HEADER_SIZE or data[10:12] != FOOTER_MAGIC:
        raise CorruptIndexError("Missing stream footer magic")
    stored_crc, stored_size = struct.unpack('<II', data[0:8])
    if stored_crc != _crc32(data[4:10]):
        raise CorruptIndexError("Stream footer CRC32 mismatch")
    return StreamFooter(StreamFlags.decode(data[8:10]), (stored_size + 1) * 4)


@dataclass(frozen=True)
class IndexRecord:
    unpadded_size: int
    uncompressed_size: int


class IndexDecoder:
    """Incremental decoder for one stream's index.

    Feed it the bytes that follow the last block, in chunks of any size,
    until ``done`` is set. The index validates itself: indicator byte,
    record count, records, zero padding to a multiple of four and a CRC32
    over everything before it.
    """

    def __init__(self):
        self.records: List[IndexRecord] = []
        self.size = 0
        self.done = False
        self._state = _INDICATOR
        self._crc = 0
        self._count = 0
        self._unpadded = 0
        self._vli_value = 0
        self._vli_length = 0
        self._padding = 0
        self._stored_crc = bytearray()

    @property
    def uncompressed_size(self) -> int:
        return sum(record.uncompressed_size for record in self.records)

    @property
    def blocks_size(self) -> int:
        """Bytes taken by the blocks, each padded to a multiple of four."""
        return sum(_round_up4(record.unpadded_size) for record in self.records)

    def feed(self, data: bytes) -> int:
        """Decode ``data``, stopping at the end of the index.

        Returns:
            The number of bytes consumed
        """
        for consumed, byte in enumerate(data):
            if self.done:
                return consumed
            self._step(byte)
        return len(data)

    def _step(self, byte: int) -> None:
        state = self._state
        if state != _CRC:
            self._crc = zlib.crc32(bytes((byte,)), self._crc)
        self.size += 1

        if state == _INDICATOR:
            if byte != 0x00:
                raise CorruptIndexError("Missing index indicator")
            self._state = _COUNT
        elif state == _PADDING:
            if byte != 0x00:
                raise CorruptIndexError("Non-zero index padding")
            self._padding -= 1
            if self._padding == 0:
                self._state = _CRC
        elif state == _CRC:
            self._stored_crc.append(byte)
            if len(self._stored_crc) == 4:
                if int.from_bytes(self._stored_crc, 'little') != self._crc & 0xFFFFFFFF:
                    raise CorruptIndexError("Index CRC32 mismatch")
                self.done = True
        else:
            value = self._read_vli(byte)
            if value is None:
                return
            if state == _COUNT:
                self._count = value
                if value == 0:
                    self._end_of_records()
                else:
                    self._state = _UNPADDED
            elif state == _UNPADDED:
                if not UNPADDED_SIZE_MIN <= value <= UNPADDED_SIZE_MAX:
                    raise CorruptIndexError(f"Invalid unpadded block size {value}")
                self._unpadded = value
                self._state = _UNCOMPRESSED
            else:
                self.records.append(IndexRecord(self._unpadded, value))
                if len(self.records) == self._count:
                    self._end_of_records()
                else:
                    self._state = _UNPADDED

    def _read_vli(self, byte: int) -> Optional[int]:
        self._vli_value |= (byte & 0x7F) << (7 * self._vli_length)
        self._vli_length += 1
        if byte & 0x80:
            if self._vli_length == VLI_BYTES_MAX:
                raise CorruptIndexError("Variable-length integer too long")
            return None
        if byte == 0x00 and self._vli_length > 1:
            raise CorruptIndexError("Variable-length integer is not minimally encoded")
        value = self._vli_value
        self._vli_value = 0
        self._vli_length = 0
        return value

    def _end_of_records(self) -> None:
        self._padding = -self.size % 4
        self._state = _PADDING if self._padding else _CRC


@dataclass(frozen=True)
class StreamIndex:
    """Sizes recovered for one stream."""
    offset: int
    flags: StreamFlags
    uncompressed_size: int
    blocks_size: int
    index_size: int
    block_count: int
    padding: int = 0

    @property
    def compressed_size(self) -> int:
        return HEADER_SIZE + self.blocks_size + self.index_size + HEADER_SIZE


@dataclass
class CombinedIndex:
    """The streams of a file, in file order."""
    streams: List[StreamIndex] = field(default_factory=list)

    def prepend(self, stream: StreamIndex) -> None:
        """Add a stream that precedes every stream seen so far."""
        self.streams.insert(0, stream)

    @property
    def uncompressed_size(self) -> int:
        return sum(stream.uncompressed_size for stream in self.streams)

    @property
    def file_size(self) -> int:
        return sum(stream.compressed_size + stream.padding for stream in self.streams)


def _read_at(fileobj: BinaryIO, position: int, length: int) -> bytes:
    fileobj.seek(position)
    data = fileobj.read(length)
    if len(data) != length:
        raise CorruptIndexError(f"Short read at offset {position}")
    return data


def _decode_index(fileobj: BinaryIO, position: int, backward_size: int,
                  chunk_size: int) -> IndexDecoder:
    fileobj.seek(position)
    decoder = IndexDecoder()
    remaining = backward_size
    while not decoder.done:
        chunk = fileobj.read(min(chunk_size, remaining))
        if not chunk:
            raise CorruptIndexError(f"Index at offset {position} is truncated")
        remaining -= decoder.feed(chunk)
    if decoder.size != backward_size:
        raise CorruptIndexError(
            f"Index at offset {position} is {decoder.size} bytes, footer says {backward_size}"
        )
    return decoder


def read_combined_index(fileobj: BinaryIO, file_size: int,
                        chunk_size: int = INDEX_CHUNK_SIZE) -> CombinedIndex:
    """Walk an xz file backwards, stream by stream, collecting every index.

    Args:
        fileobj: Seekable binary file positioned anywhere
        file_size: Size of the file in bytes
        chunk_size: Read size while decoding each index

    Returns:
        The combined index of all streams

    Raises:
        CorruptIndexError: If any header, footer or index fails to decode
            or the pieces do not fit together
        OSError: If the file cannot be read
    """
    if file_size < 2 * HEADER_SIZE:
        raise CorruptIndexError("File too small to hold an xz stream")

    combined = CombinedIndex()
    # End of the region not yet accounted for
    pos = file_size
    while pos > 0:
        padding = 0
        while True:
            if pos < 2 * HEADER_SIZE:
                raise CorruptIndexError(f"No room for a stream before offset {pos}")
            record = _read_at(fileobj, pos - HEADER_SIZE, HEADER_SIZE)
            zero_words = 0
            for start in (8, 4, 0):
                if record[start:start + 4] != _ZERO_WORD:
                    break
                zero_words += 1
            if zero_words == 0:
                break
            padding += 4 * zero_words
            pos -= 4 * zero_words

        footer_pos = pos - HEADER_SIZE
        footer = decode_stream_footer(record)
        if footer.backward_size > footer_pos - HEADER_SIZE:
            raise CorruptIndexError(f"Index size {footer.backward_size} exceeds the data before offset {footer_pos}")

        index_pos = footer_pos - footer.backward_size
        index = _decode_index(fileobj, index_pos, footer.backward_size, chunk_size)

        header_pos = index_pos - index.blocks_size - HEADER_SIZE
        if header_pos < 0:
            raise CorruptIndexError(f"Blocks of the stream ending at {pos} overrun the file start")
        header_flags = decode_stream_header(_read_at(fileobj, header_pos, HEADER_SIZE))
        if header_flags != footer.flags:
            raise CorruptIndexError(f"Stream header at {header_pos} and its footer disagree")

        combined.prepend(StreamIndex(
            offset=header_pos,
            flags=footer.flags,
            uncompressed_size=index.uncompressed_size,
            blocks_size=index.blocks_size,
            index_size=footer.backward_size,
            block_count=len(index.records),
            padding=padding,
        ))
        pos = header_pos

    return combined


def uncompressed_size(path: str, chunk_size: int = INDEX_CHUNK_SIZE) -> Optional[int]:
    """Total uncompressed size of every stream in an xz file.

    Returns:
        The size in bytes, or None if the file could not be read or is
        not a well formed xz file
    """
    try:
        with open(path, 'rb') as f:
            file_size = os.fstat(f.fileno()).st_size
            combined = read_combined_index(f, file_size, chunk_size)
    except (OSError, CorruptIndexError) as e:
        logger.debug(f"Could not recover the size of {path}: {e}")
        return None
    logger.debug(f"{path}: {len(combined.streams)} stream(s), {combined.uncompressed_size} bytes")
    return combined.uncompressed_size
