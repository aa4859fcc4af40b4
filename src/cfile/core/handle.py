"""Abstract stream handle shared by every backend."""

from abc import ABC, abstractmethod
from typing import Any, Iterator, Optional, Sequence, Union

from .errors import FormatError, InvalidHandleError, UnsupportedModeError
from .lines import LineBuffer, read_line

Format = Union[str, bytes]

SIZE_UNKNOWN = -1


def format_output(fmt: Format, args: Sequence[Any], encoding: str) -> bytes:
    """Expand a printf-style format completely before it reaches a codec.

    Args:
        fmt: ``%`` format, text or bytes
        args: Values for the format
        encoding: Encoding for text formats

    Returns:
        The formatted bytes

    Raises:
        FormatError: If the arguments do not fit the format or the result
            cannot be encoded
    """
    try:
        text = fmt % tuple(args)
        if isinstance(text, str):
            return text.encode(encoding)
        return bytes(text)
    except (TypeError, ValueError, KeyError) as e:
        raise FormatError(f"Cannot format {fmt!r}: {e}") from e


class StreamHandle(ABC):
    """A file opened through one of the codec backends.

    Subclasses implement every operation below; the dispatch functions in
    :mod:`cfile.core.dispatch` are the only intended callers. Handles are
    binary: reads return ``bytes`` and writes take bytes-like objects.
    """

    backend_name = 'abstract'

    def __init__(self, name: str, path: Optional[str], mode: str, encoding: str = 'utf-8'):
        self.name = name
        self.path = path
        self.mode = mode
        self.encoding = encoding
        self.writing = mode[:1] in ('w', 'a', 'x')
        self.closed = False

    def __repr__(self) -> str:
        state = 'closed' if self.closed else 'open'
        return f"<{type(self).__name__} {self.backend_name} {self.name!r} mode={self.mode!r} {state}>"

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if not self.closed:
            self.close()

    def __iter__(self) -> Iterator[bytes]:
        """Iterate over lines, each of any length."""
        line = LineBuffer()
        while read_line(self, line):
            yield line.value

    @abstractmethod
    def size(self) -> int:
        """Uncompressed size in bytes, or SIZE_UNKNOWN."""

    @abstractmethod
    def eof(self) -> bool:
        """Whether a read has run into the end of the stream."""

    @abstractmethod
    def gets(self, capacity: int) -> Optional[bytes]:
        """Read at most ``capacity - 1`` bytes, stopping after a newline."""

    @abstractmethod
    def read(self, length: int) -> bytes:
        """Read up to ``length`` bytes."""

    @abstractmethod
    def write(self, data: bytes) -> int:
        """Write ``data``, returning the number of bytes accepted."""

    @abstractmethod
    def flush(self) -> None:
        """Push buffered output through the codec to the file."""

    @abstractmethod
    def _close(self) -> None:
        """Finish the codec session and release the file."""

    def vprintf(self, fmt: Format, args: Sequence[Any]) -> int:
        """Format into a temporary buffer and send it down the write path."""
        return self.write(format_output(fmt, args, self.encoding))

    def close(self) -> None:
        """Release the handle's resources, exactly once."""
        if self.closed:
            raise InvalidHandleError(f"{self.name} is already closed")
        self.closed = True
        self._close()

    def _require_reading(self) -> None:
        if self.writing:
            raise UnsupportedModeError(f"{self.name} is open for writing")

    def _require_writing(self) -> None:
        if not self.writing:
            raise UnsupportedModeError(f"{self.name} is open for reading")
