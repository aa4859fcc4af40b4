"""
cfile - compressed file handles

Open plain, gzip, bzip2, xz and lzop files (or the null device) through
one handle type and read, write, flush and size them without caring
which codec sits underneath.
"""

try:
    from .__version__ import __version__
except ImportError:
    __version__ = "dev"

from .core.dispatch import (
    SIZE_UNKNOWN,
    close,
    eof,
    flush,
    getline,
    gets,
    open_descriptor,
    open_path,
    printf,
    read,
    size,
    vprintf,
    write,
)
from .core.errors import clear_last_error, last_error
from .core.lines import LineBuffer

__all__ = [
    "__version__",
    "SIZE_UNKNOWN",
    "LineBuffer",
    "clear_last_error",
    "close",
    "eof",
    "flush",
    "getline",
    "gets",
    "last_error",
    "open_descriptor",
    "open_path",
    "printf",
    "read",
    "size",
    "vprintf",
    "write",
]
