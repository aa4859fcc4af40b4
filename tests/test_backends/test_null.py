"""Tests for the null backend."""

import os

import cfile
from cfile.config import configure
from cfile.backends.null import NullFile


class TestNullFile:
    """Test the null device stand-in."""

    def test_selected_for_null_device(self):
        """Test os.devnull opens the null backend."""
        handle = cfile.open_path(os.devnull, 'w')
        assert isinstance(handle, NullFile)
        assert cfile.close(handle) == 0

    def test_writes_disappear(self):
        """Test writes and printf report success."""
        handle = cfile.open_path(os.devnull, 'w')
        assert cfile.write(handle, b"12345") == 5
        assert cfile.printf(handle, "%05d\n", 42) == 6
        assert cfile.flush(handle) == 0
        cfile.close(handle)

    def test_reads_find_nothing(self):
        """Test reads are empty and eof is always set."""
        handle = cfile.open_path(os.devnull)
        assert cfile.eof(handle)
        assert cfile.gets(handle, 10) is None
        assert cfile.read(handle, bytearray(10)) == 0
        assert cfile.size(handle) == 0
        assert not cfile.getline(handle, cfile.LineBuffer())
        assert cfile.last_error() is None
        cfile.close(handle)

    def test_configured_null_devices(self, temp_dir):
        """Test extra paths can be routed to the null backend."""
        sink = str(temp_dir / "sink")
        configure(null_devices=(os.devnull, sink))
        handle = cfile.open_path(sink, 'w')
        assert isinstance(handle, NullFile)
        cfile.close(handle)
        assert not os.path.exists(sink)
