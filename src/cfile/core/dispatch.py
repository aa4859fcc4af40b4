"""
Entry points for working with cfile handles.

Each function validates the handle, forwards to the backend chosen at
open time and converts failures into return values: the exception is
stored as the calling thread's last error (see
:func:`cfile.core.errors.last_error`) and a failure value is returned,
so callers can treat every codec alike.
"""

import logging
import os
from typing import Any, Optional, Sequence, Union

from ..config import get_config
from .errors import CFileError, InvalidBufferError, InvalidHandleError, UnsupportedModeError, set_last_error
from .handle import SIZE_UNKNOWN, Format, StreamHandle
from .lines import LineBuffer, read_line
from .registry import get_registry

logger = logging.getLogger(__name__)

PathLike = Union[str, 'os.PathLike[str]']

__all__ = [
    'SIZE_UNKNOWN',
    'close',
    'eof',
    'flush',
    'getline',
    'gets',
    'open_descriptor',
    'open_path',
    'printf',
    'read',
    'size',
    'vprintf',
    'write',
]


def _fail(error: BaseException, result):
    set_last_error(error)
    logger.debug(f"cfile operation failed: {error!r}")
    return result


def _validate(handle: Optional[StreamHandle]) -> StreamHandle:
    if handle is None:
        raise InvalidHandleError("No handle given")
    if not isinstance(handle, StreamHandle):
        raise InvalidHandleError(f"Not a cfile handle: {handle!r}")
    if handle.closed:
        raise InvalidHandleError(f"{handle.name} is closed")
    return handle


def _validate_mode(mode: str) -> None:
    if not mode or mode[0] not in 'rwax':
        raise UnsupportedModeError(f"Mode must start with 'r' or 'w', got {mode!r}")


def _byte_view(buffer, writable: bool = False) -> memoryview:
    try:
        view = memoryview(buffer).cast('B')
    except TypeError as e:
        raise InvalidBufferError(f"Expected a bytes-like object, got {type(buffer).__name__}: {e}") from e
    if writable and view.readonly:
        raise InvalidBufferError(f"Cannot read into read-only {type(buffer).__name__}")
    return view


def open_path(path: PathLike, mode: str = 'r', backend: Optional[str] = None) -> Optional[StreamHandle]:
    """Open a file, compressed or not.

    Args:
        path: File to open; '-' means standard input (read) or output (write)
        mode: Open mode, starting with 'r' or 'w'
        backend: Backend name to use instead of automatic selection

    Returns:
        A new handle, or None on failure (see last_error())
    """
    try:
        path = os.fspath(path)
        _validate_mode(mode)
        config = get_config()
        handle_class = get_registry().select(path, mode, config, backend)
        handle = handle_class.open(path, mode, config)
    except (CFileError, OSError) as e:
        return _fail(e, None)
    logger.debug(f"Opened {handle!r}")
    return handle


def open_descriptor(fd: int, mode: str = 'r') -> Optional[StreamHandle]:
    """Wrap an already open file descriptor, always as uncompressed data.

    Returns:
        A new handle, or None on failure (see last_error())
    """
    from ..backends.plain import PlainFile

    try:
        _validate_mode(mode)
        return PlainFile.open_descriptor(fd, mode, get_config())
    except (CFileError, OSError) as e:
        return _fail(e, None)


def size(handle: Optional[StreamHandle]) -> int:
    """Uncompressed size of the file in bytes.

    This may be expensive: bzip2 files without a cached size are decoded
    in full, and xz files have every stream index read.

    Returns:
        The size, or SIZE_UNKNOWN if it cannot be determined
    """
    try:
        return _validate(handle).size()
    except (CFileError, OSError) as e:
        return _fail(e, SIZE_UNKNOWN)


def eof(handle: Optional[StreamHandle]) -> bool:
    """True once a read on the handle has reached the end of the stream."""
    try:
        return _validate(handle).eof()
    except (CFileError, OSError) as e:
        return _fail(e, False)


def gets(handle: Optional[StreamHandle], capacity: int) -> Optional[bytes]:
    """Read at most ``capacity - 1`` bytes, stopping after a newline.

    Returns:
        The bytes read, including the newline if one was reached, or None
        if nothing could be read
    """
    try:
        return _validate(handle).gets(capacity)
    except (CFileError, OSError) as e:
        return _fail(e, None)


def getline(handle: Optional[StreamHandle], line: LineBuffer) -> bool:
    """Read a whole line of any length into ``line``, growing it as needed.

    Returns:
        False if the stream had already ended (or the read failed), True
        if any bytes were read
    """
    try:
        return read_line(_validate(handle), line, get_config().initial_line_size)
    except (CFileError, OSError) as e:
        return _fail(e, False)


def vprintf(handle: Optional[StreamHandle], fmt: Format, args: Sequence[Any]) -> int:
    """Write ``fmt % args``, formatted in full before it is written.

    Returns:
        The number of bytes written, or -1 on failure
    """
    try:
        return _validate(handle).vprintf(fmt, args)
    except (CFileError, OSError) as e:
        return _fail(e, -1)


def printf(handle: Optional[StreamHandle], fmt: Format, *args: Any) -> int:
    """Write ``fmt % args``. See :func:`vprintf`."""
    return vprintf(handle, fmt, args)


def read(handle: Optional[StreamHandle], dest, item_size: int = 1,
         item_count: Optional[int] = None) -> int:
    """Read items of ``item_size`` bytes into the writable buffer ``dest``.

    Args:
        handle: Handle to read from
        dest: Writable bytes-like object receiving the data
        item_size: Size of one item in bytes
        item_count: Items wanted (default: as many as fit in dest)

    Returns:
        The number of whole items read; a short count means end of
        stream or failure
    """
    try:
        handle = _validate(handle)
        view = _byte_view(dest, writable=True)
        if item_size <= 0:
            return 0
        fits = len(view) // item_size
        item_count = fits if item_count is None else min(item_count, fits)
        data = handle.read(item_size * item_count)
        view[:len(data)] = data
        return len(data) // item_size
    except (CFileError, OSError) as e:
        return _fail(e, 0)


def write(handle: Optional[StreamHandle], src, item_size: int = 1,
          item_count: Optional[int] = None) -> int:
    """Write items of ``item_size`` bytes from ``src``.

    Returns:
        The number of whole items written; a short count means failure
    """
    try:
        handle = _validate(handle)
        view = _byte_view(src)
        if item_size <= 0:
            return 0
        fits = len(view) // item_size
        item_count = fits if item_count is None else min(item_count, fits)
        written = handle.write(bytes(view[:item_size * item_count]))
        return written // item_size
    except (CFileError, OSError) as e:
        return _fail(e, 0)


def flush(handle: Optional[StreamHandle]) -> int:
    """Flush codec-buffered output to the file.

    Returns:
        0 on success, -1 on failure
    """
    try:
        _validate(handle).flush()
    except (CFileError, OSError) as e:
        return _fail(e, -1)
    return 0


def close(handle: Optional[StreamHandle]) -> int:
    """Close the handle, releasing everything it owns.

    Closing None succeeds and does nothing. The handle's resources are
    released even when finishing the codec stream fails.

    Returns:
        0 on success, -1 on failure
    """
    if handle is None:
        return 0
    try:
        _validate(handle).close()
    except (CFileError, OSError) as e:
        return _fail(e, -1)
    logger.debug(f"Closed {handle.name}")
    return 0
