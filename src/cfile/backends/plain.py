"""Uncompressed files, file descriptors and the standard streams."""

import os
import stat
import sys
from typing import BinaryIO, Optional

from ..config import CFileConfig
from ..core.errors import UnsupportedModeError
from ..core.handle import SIZE_UNKNOWN, StreamHandle


def binary_mode(mode: str) -> str:
    """Turn an fopen-style mode into the equivalent binary Python mode."""
    return mode.replace('t', '').replace('b', '') + 'b'


class PlainFile(StreamHandle):
    """A file read and written as is."""

    backend_name = 'Normal file'

    def __init__(self, fileobj: BinaryIO, name: str, path: Optional[str], mode: str,
                 encoding: str = 'utf-8', owns_file: bool = True):
        super().__init__(name, path, mode, encoding)
        self._file = fileobj
        self._owns_file = owns_file
        self._at_eof = False

    @classmethod
    def open(cls, path: str, mode: str, config: CFileConfig) -> 'PlainFile':
        if path == '-':
            return cls.open_standard(mode, config)
        fileobj = open(path, binary_mode(mode))
        return cls(fileobj, path, path, mode, config.encoding)

    @classmethod
    def open_standard(cls, mode: str, config: CFileConfig) -> 'PlainFile':
        """Wrap standard input for reading or standard output for writing.

        The standard streams are flushed on close but left open.
        """
        if mode.startswith('r'):
            stream, name = sys.stdin, 'standard input'
        elif mode.startswith(('w', 'a')):
            stream, name = sys.stdout, 'standard output'
        else:
            raise UnsupportedModeError(f"Can't open - with mode {mode}")
        fileobj = getattr(stream, 'buffer', stream)
        return cls(fileobj, name, None, mode, config.encoding, owns_file=False)

    @classmethod
    def open_descriptor(cls, fd: int, mode: str, config: CFileConfig) -> 'PlainFile':
        """Wrap an open descriptor; closing the handle closes the descriptor."""
        fileobj = os.fdopen(fd, binary_mode(mode))
        return cls(fileobj, f"file descriptor {fd} (mode {mode})", None, mode, config.encoding)

    def size(self) -> int:
        try:
            info = os.fstat(self._file.fileno())
        except OSError:
            return SIZE_UNKNOWN
        if not stat.S_ISREG(info.st_mode):
            return SIZE_UNKNOWN
        return info.st_size

    def eof(self) -> bool:
        return self._at_eof

    def gets(self, capacity: int) -> Optional[bytes]:
        if capacity <= 0:
            return None
        if capacity == 1:
            return b''
        line = self._file.readline(capacity - 1)
        if not line:
            self._at_eof = True
            return None
        # A short line without its newline means the file ran out
        self._at_eof = not line.endswith(b'\n') and len(line) < capacity - 1
        return line

    def read(self, length: int) -> bytes:
        data = self._file.read(length)
        self._at_eof = len(data) < length
        return data

    def write(self, data: bytes) -> int:
        return self._file.write(data)

    def flush(self) -> None:
        self._file.flush()

    def _close(self) -> None:
        if self._owns_file:
            self._file.close()
        else:
            self._file.flush()
