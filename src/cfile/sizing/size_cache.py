"""
Uncompressed size of bzip2 files.

bzip2 records no uncompressed length, so the only exact answer comes from
decoding the whole file. That takes seconds for large inputs, so the
result is cached in an extended attribute on the compressed file together
with the time it was recorded. A file modified at or after that time
invalidates the cache. Attribute support is optional: when the platform
or filesystem refuses, sizes are simply recomputed on every call.
"""

import bz2
import logging
import os
import struct
import subprocess
import time
from dataclasses import dataclass
from typing import Optional, Sequence

from ..config import CFileConfig
from ..core.handle import SIZE_UNKNOWN

logger = logging.getLogger(__name__)

# Native byte order, no version field: the attribute is read back on the
# system that wrote it.
RECORD_FORMAT = struct.Struct('=qq')


@dataclass(frozen=True)
class SizeRecord:
    """A cached uncompressed size and when it was recorded (ns since the epoch)."""
    size: int
    timestamp: int

    def pack(self) -> bytes:
        return RECORD_FORMAT.pack(self.size, self.timestamp)

    @classmethod
    def unpack(cls, data: bytes) -> Optional['SizeRecord']:
        if len(data) != RECORD_FORMAT.size:
            return None
        size, timestamp = RECORD_FORMAT.unpack(data)
        return cls(size, timestamp)

    def is_fresh(self, mtime_ns: int) -> bool:
        """Valid only if recorded strictly after the last modification."""
        return self.size >= 0 and mtime_ns < self.timestamp


def read_cached_size(path: str, attribute: str) -> Optional[int]:
    """Return the cached size if the attribute exists and is still fresh."""
    if not hasattr(os, 'getxattr'):
        return None
    try:
        record = SizeRecord.unpack(os.getxattr(path, attribute))
        mtime_ns = os.stat(path).st_mtime_ns
    except OSError:
        return None
    if record is None or not record.is_fresh(mtime_ns):
        return None
    return record.size


def store_size(path: str, size: int, attribute: str) -> bool:
    """Record ``size`` on ``path``. Failures are logged and ignored.

    Returns:
        True if the attribute was written
    """
    if not hasattr(os, 'setxattr'):
        return False
    record = SizeRecord(size, time.time_ns())
    try:
        os.setxattr(path, attribute, record.pack())
    except OSError as e:
        logger.debug(f"Could not cache size of {path}: {e}")
        return False
    return True


def count_decoded_bytes(path: str, chunk_size: int = 64 * 1024) -> Optional[int]:
    """Decode ``path`` in-process and count the bytes produced."""
    total = 0
    try:
        with bz2.open(path, 'rb') as f:
            while True:
                chunk = f.read(chunk_size)
                if not chunk:
                    break
                total += len(chunk)
    except (OSError, EOFError) as e:
        logger.debug(f"Could not decode {path}: {e}")
        return None
    return total


def count_with_pipeline(path: str, decoder_command: Sequence[str],
                        counter_command: Sequence[str]) -> Optional[int]:
    """Pipe ``path`` through the reference decoder into a byte counter.

    Equivalent to ``bzcat PATH | wc -c`` without a shell.

    Returns:
        The decimal count printed by the counter, or None if either
        process could not be run or the output did not parse
    """
    try:
        decoder = subprocess.Popen([*decoder_command, path],
                                   stdout=subprocess.PIPE, stderr=subprocess.DEVNULL)
    except OSError as e:
        logger.debug(f"Could not start {decoder_command[0]}: {e}")
        return None

    with decoder:
        try:
            counter = subprocess.run(list(counter_command), stdin=decoder.stdout,
                                     stdout=subprocess.PIPE, stderr=subprocess.DEVNULL)
        except OSError as e:
            logger.debug(f"Could not start {counter_command[0]}: {e}")
            decoder.kill()
            return None
        finally:
            decoder.stdout.close()

    if decoder.returncode != 0 or counter.returncode != 0:
        return None
    try:
        return int(counter.stdout.split()[0])
    except (IndexError, ValueError):
        return None


def compute_size(path: str, config: CFileConfig) -> Optional[int]:
    """Decode the whole file to measure it, using the configured method."""
    logger.debug(f"Computing uncompressed size of {path} ({config.size_method})")
    if config.size_method == 'external':
        return count_with_pipeline(path, config.decoder_command, config.counter_command)
    return count_decoded_bytes(path, config.read_chunk_size)


def cached_size(path: str, config: CFileConfig) -> int:
    """Uncompressed size of a bzip2 file, from the cache when possible.

    Args:
        path: Compressed file
        config: Active configuration (attribute name, size method)

    Returns:
        The size in bytes, or SIZE_UNKNOWN
    """
    size = read_cached_size(path, config.size_attribute)
    if size is not None:
        logger.debug(f"Cached size of {path}: {size}")
        return size

    size = compute_size(path, config)
    if size is None:
        return SIZE_UNKNOWN
    store_size(path, size, config.size_attribute)
    return size
