"""Exceptions raised by cfile backends and the per-thread last error."""

import threading
from contextlib import contextmanager
from typing import Iterator, Optional, Type


class CFileError(Exception):
    """Base class for cfile failures."""


class InvalidHandleError(CFileError, ValueError):
    """A missing, closed or foreign handle was passed to an operation."""


class UnsupportedModeError(CFileError, ValueError):
    """The backend cannot open a file with the requested mode."""


class BackendUnavailableError(CFileError):
    """The library a backend depends on could not be imported."""


class FormatError(CFileError, ValueError):
    """A printf format could not be expanded with the given arguments."""


class InvalidBufferError(CFileError, TypeError):
    """A read or write was given something that is not a suitable byte buffer."""


class CodecError(CFileError):
    """The compression library rejected the data or reported corruption."""


class CorruptIndexError(CodecError):
    """An xz stream header, footer or index failed to decode."""


_state = threading.local()


def set_last_error(error: Optional[BaseException]) -> None:
    _state.error = error


def last_error() -> Optional[BaseException]:
    """Return the exception behind the most recent failed call on this thread."""
    return getattr(_state, 'error', None)


def clear_last_error() -> None:
    _state.error = None


@contextmanager
def codec_errors(name: str, *exception_types: Type[BaseException]) -> Iterator[None]:
    """Re-raise a codec library's own exceptions as CodecError.

    Args:
        name: Display name of the file, for the message
        *exception_types: Library exceptions to translate
    """
    try:
        yield
    except exception_types as e:
        raise CodecError(f"{name}: {e}") from e
