"""Reading lines of any length through a bounded ``gets``."""

from typing import Optional

from .errors import CFileError

DEFAULT_LINE_SIZE = 80


class LineBuffer:
    """A caller-owned, growable line buffer.

    ``data`` is the allocated storage (its length is the capacity) and
    ``length`` the number of bytes holding the current line. Reading a
    line reuses the storage and only ever enlarges it.
    """

    def __init__(self, capacity: int = 0):
        self.data = bytearray(capacity)
        self.length = 0

    @property
    def capacity(self) -> int:
        return len(self.data)

    @property
    def value(self) -> bytes:
        return bytes(self.data[:self.length])

    def grow(self, initial_size: int = DEFAULT_LINE_SIZE) -> None:
        """Double the capacity, or allocate ``initial_size`` if empty."""
        new_capacity = self.capacity * 2 if self.capacity else initial_size
        self.data.extend(bytes(new_capacity - self.capacity))


def read_line(handle, line: LineBuffer, initial_size: Optional[int] = None) -> bool:
    """Read one whole line from ``handle`` into ``line``.

    Args:
        handle: Anything with a ``gets(capacity)`` method
        line: Buffer receiving the line, grown as needed
        initial_size: Capacity for an empty buffer (default 80)

    Returns:
        False if the stream ended before any byte was read, True otherwise.
        A line cut short by a read failure is still returned; the handle
        reports the failure on its next read.
    """
    if initial_size is None:
        initial_size = DEFAULT_LINE_SIZE
    offset = 0
    line.length = 0
    while True:
        if line.capacity - offset < 2:
            line.grow(initial_size)
        try:
            chunk = handle.gets(line.capacity - offset)
        except (CFileError, OSError):
            if offset == 0:
                raise
            break
        if chunk is None:
            break
        line.data[offset:offset + len(chunk)] = chunk
        offset += len(chunk)
        line.length = offset
        if chunk.endswith(b'\n'):
            break
    return offset > 0
