"""Pytest configuration and shared fixtures."""

import bz2
import errno
import gzip
import lzma
import os

import pytest

from cfile.config import reset_config
from cfile.core.errors import clear_last_error


@pytest.fixture(autouse=True)
def clean_cfile_state():
    """Default configuration and no last error around every test."""
    reset_config()
    clear_last_error()
    yield
    reset_config()
    clear_last_error()


@pytest.fixture
def temp_dir(tmp_path):
    """Temporary directory for test files."""
    return tmp_path


@pytest.fixture
def sample_lines():
    """Lines covering empty, short and longer-than-buffer cases."""
    return [
        b'first line\n',
        b'\n',
        b'x' * 79 + b'\n',
        b'y' * 80 + b'\n',
        b'z' * 200 + b'\n',
        b'0123456789' * 500 + b'\n',
        b'no newline at the end',
    ]


@pytest.fixture
def sample_data(sample_lines):
    """The sample lines joined into one payload."""
    return b''.join(sample_lines)


@pytest.fixture
def make_file(temp_dir):
    """Write ``data`` to ``name`` with the standard library's own codecs.

    The codec follows the extension, so files produced here are
    independent of the code under test.
    """
    def _make(name, data):
        path = temp_dir / name
        if name.endswith('.gz'):
            path.write_bytes(gzip.compress(data))
        elif name.endswith('.bz2'):
            path.write_bytes(bz2.compress(data))
        elif name.endswith('.xz'):
            path.write_bytes(lzma.compress(data, format=lzma.FORMAT_XZ))
        else:
            path.write_bytes(data)
        return path

    return _make


@pytest.fixture
def fake_xattrs(monkeypatch):
    """Replace extended attributes with an in-memory store.

    Returns the backing dict, keyed by (path, attribute name).
    """
    store = {}

    def getxattr(path, attribute, *args, **kwargs):
        key = (os.fspath(path), attribute)
        if key not in store:
            raise OSError(errno.ENODATA, 'No data available', os.fspath(path))
        return store[key]

    def setxattr(path, attribute, value, *args, **kwargs):
        os.stat(path)
        store[(os.fspath(path), attribute)] = bytes(value)

    monkeypatch.setattr(os, 'getxattr', getxattr, raising=False)
    monkeypatch.setattr(os, 'setxattr', setxattr, raising=False)
    return store
