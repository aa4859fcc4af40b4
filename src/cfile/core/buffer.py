"""
Generic decode buffer.

The compressed backends decode in bulk. Each keeps one of these buffers
and hands it a refill callback that decodes the next chunk of the stream,
which gives them character and line reads without each one
reimplementing fgets.
"""

from typing import Callable, Optional

from .errors import CFileError

RefillCallback = Callable[[memoryview], int]

# Failures a refill may report; anything else is a bug and propagates at once
REFILL_ERRORS = (CFileError, OSError)


class GenericBuffer:
    """A refillable byte buffer fed by a decode callback.

    The callback receives a view over the whole storage, writes newly
    decoded bytes at its start and returns how many it wrote. Returning 0
    means the stream has ended.

    When a refill fails after a read has already collected some bytes,
    the read returns those bytes and the failure is raised by every later
    read instead.
    """

    def __init__(self, capacity: int, refill: RefillCallback):
        """Initialize the buffer.

        Args:
            capacity: Size of the byte storage
            refill: Callback that decodes more bytes into the storage
        """
        if capacity <= 0:
            raise ValueError("Buffer capacity must be positive")
        self.storage = bytearray(capacity)
        self.capacity = capacity
        self.valid = 0
        self.cursor = 0
        self.error: Optional[BaseException] = None
        self._refill = refill
        self._refilled = False

    def _fill(self) -> int:
        if self.error is not None:
            raise self.error
        try:
            count = self._refill(memoryview(self.storage))
        except REFILL_ERRORS as e:
            self.error = e
            self.valid = self.cursor = 0
            raise
        if count < 0 or count > self.capacity:
            raise ValueError(f"Refill reported {count} bytes for a {self.capacity} byte buffer")
        self.valid = count
        self.cursor = 0
        self._refilled = True
        return count

    def available(self) -> int:
        """Number of decoded bytes not yet consumed."""
        return self.valid - self.cursor

    def getc(self) -> Optional[int]:
        """Return the next byte, or None at end of stream."""
        if self.cursor == self.valid and self._fill() == 0:
            return None
        byte = self.storage[self.cursor]
        self.cursor += 1
        return byte

    def gets(self, max_len: int) -> Optional[bytes]:
        """Read up to a newline, at most ``max_len - 1`` bytes.

        Args:
            max_len: Size of the caller's line buffer, terminator included

        Returns:
            The line including its newline if one was reached, a partial
            line if the limit, end of stream or a decode failure came
            first, or None when the stream ended before any byte was copied
        """
        if max_len <= 0:
            return None
        wanted = max_len - 1
        line = bytearray()
        while len(line) < wanted:
            try:
                if self.cursor == self.valid and self._fill() == 0:
                    if not line:
                        return None
                    break
            except REFILL_ERRORS:
                if not line:
                    raise
                break
            end = min(self.valid, self.cursor + wanted - len(line))
            newline = self.storage.find(b'\n', self.cursor, end)
            if newline >= 0:
                end = newline + 1
            line += self.storage[self.cursor:end]
            self.cursor = end
            if newline >= 0:
                break
        return bytes(line)

    def read(self, length: int) -> bytes:
        """Read up to ``length`` bytes, refilling as needed.

        Returns:
            The bytes delivered; fewer than requested at end of stream or
            when decoding failed part way
        """
        out = bytearray()
        while len(out) < length:
            try:
                if self.cursor == self.valid and self._fill() == 0:
                    break
            except REFILL_ERRORS:
                if not out:
                    raise
                break
            end = min(self.valid, self.cursor + length - len(out))
            out += self.storage[self.cursor:end]
            self.cursor = end
        return bytes(out)

    def is_empty(self) -> bool:
        """True once the most recent refill produced no bytes."""
        return self._refilled and self.valid == 0
