"""The null device: writes vanish, reads find nothing."""

from typing import Any, Optional, Sequence

from ..config import CFileConfig
from ..core.handle import Format, StreamHandle, format_output


class NullFile(StreamHandle):
    """Stands in for the null device without opening it."""

    backend_name = 'Null file'

    @classmethod
    def open(cls, path: str, mode: str, config: CFileConfig) -> 'NullFile':
        return cls(path, path, mode, config.encoding)

    def size(self) -> int:
        return 0

    def eof(self) -> bool:
        return True

    def gets(self, capacity: int) -> Optional[bytes]:
        return None

    def read(self, length: int) -> bytes:
        return b''

    def write(self, data: bytes) -> int:
        return len(data)

    def vprintf(self, fmt: Format, args: Sequence[Any]) -> int:
        return len(format_output(fmt, args, self.encoding))

    def flush(self) -> None:
        pass

    def _close(self) -> None:
        pass
