"""Tests for the bzip2 backend."""

import bz2

import cfile
from cfile.config import configure, get_config
from cfile.backends.bzip2_stream import Bzip2File
from cfile.sizing import size_cache


class TestBzip2File:
    """Test bzip2 specific behaviour."""

    def test_close_records_size(self, temp_dir, fake_xattrs):
        """Test closing a written file caches its uncompressed size."""
        path = temp_dir / "written.bz2"
        handle = cfile.open_path(path, 'w')
        assert isinstance(handle, Bzip2File)
        cfile.write(handle, b"q" * 4321)
        cfile.close(handle)

        attribute = get_config().size_attribute
        record = size_cache.SizeRecord.unpack(fake_xattrs[(str(path), attribute)])
        assert record.size == 4321

    def test_size_uses_recorded_value(self, temp_dir, fake_xattrs, monkeypatch):
        """Test size after writing needs no decode."""
        path = temp_dir / "cached.bz2"
        handle = cfile.open_path(path, 'w')
        cfile.write(handle, b"r" * 100)
        cfile.close(handle)

        def fail(*args):
            raise AssertionError("size was recomputed")

        monkeypatch.setattr(size_cache, 'compute_size', fail)
        handle = cfile.open_path(path)
        assert cfile.size(handle) == 100
        cfile.close(handle)

    def test_flush_writes_completed_data(self, temp_dir):
        """Test flush succeeds and the file completes on close."""
        path = temp_dir / "flushed.bz2"
        handle = cfile.open_path(path, 'w')
        cfile.write(handle, b"data\n")
        assert cfile.flush(handle) == 0
        cfile.close(handle)

        assert bz2.decompress(path.read_bytes()) == b"data\n"

    def test_compression_level(self, temp_dir):
        """Test the configured block size level is written to the header."""
        configure(bzip2_level=1)
        path = temp_dir / "level.bz2"
        handle = cfile.open_path(path, 'w')
        cfile.write(handle, b"level")
        cfile.close(handle)

        assert path.read_bytes()[:4] == b"BZh1"
