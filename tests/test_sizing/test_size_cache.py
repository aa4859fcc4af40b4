"""Tests for the bzip2 size cache."""

import bz2
import errno
import os
import shutil

import pytest

import cfile
from cfile.config import configure, get_config
from cfile.core.handle import SIZE_UNKNOWN
from cfile.sizing import size_cache
from cfile.sizing.size_cache import SizeRecord


@pytest.fixture
def bz2_file(temp_dir, sample_data):
    path = temp_dir / "sample.bz2"
    path.write_bytes(bz2.compress(sample_data))
    return str(path)


@pytest.fixture
def counted_compute(monkeypatch):
    """Wrap compute_size to count how often the file is decoded."""
    calls = []
    real = size_cache.compute_size

    def compute(path, config):
        calls.append(path)
        return real(path, config)

    monkeypatch.setattr(size_cache, 'compute_size', compute)
    return calls


class TestSizeRecord:
    """Test the attribute record."""

    def test_pack_unpack(self):
        """Test the record survives packing."""
        record = SizeRecord(1234, 5678)
        assert SizeRecord.unpack(record.pack()) == record
        assert len(record.pack()) == 16

    def test_wrong_length(self):
        """Test records of the wrong size are ignored."""
        assert SizeRecord.unpack(b"short") is None

    def test_freshness(self):
        """Test a record is stale once the file is as new as the record."""
        record = SizeRecord(10, 1000)
        assert record.is_fresh(999)
        assert not record.is_fresh(1000)
        assert not record.is_fresh(1001)
        assert not SizeRecord(-1, 1000).is_fresh(0)


class TestCachedSize:
    """Test caching and invalidation."""

    def test_computed_once(self, bz2_file, sample_data, fake_xattrs, counted_compute):
        """Test the second call is answered from the attribute."""
        config = get_config()
        assert size_cache.cached_size(bz2_file, config) == len(sample_data)
        assert size_cache.cached_size(bz2_file, config) == len(sample_data)
        assert len(counted_compute) == 1
        assert (bz2_file, config.size_attribute) in fake_xattrs

    def test_modification_invalidates(self, bz2_file, sample_data, fake_xattrs, counted_compute):
        """Test a file modified after caching is measured again."""
        config = get_config()
        size_cache.cached_size(bz2_file, config)
        record = SizeRecord.unpack(fake_xattrs[(bz2_file, config.size_attribute)])

        later = record.timestamp + 2_000_000_000
        os.utime(bz2_file, ns=(later, later))
        assert size_cache.cached_size(bz2_file, config) == len(sample_data)
        assert len(counted_compute) == 2

    def test_older_file_uses_cache(self, bz2_file, fake_xattrs, counted_compute):
        """Test a file last modified before the record keeps the cache."""
        config = get_config()
        fake_xattrs[(bz2_file, config.size_attribute)] = SizeRecord(42, 2_000_000_000).pack()
        os.utime(bz2_file, ns=(1_000_000_000, 1_000_000_000))

        assert size_cache.cached_size(bz2_file, config) == 42
        assert counted_compute == []

    def test_no_attribute_support(self, bz2_file, sample_data, monkeypatch, counted_compute):
        """Test sizes are recomputed when attributes are unavailable."""
        monkeypatch.delattr(os, 'getxattr', raising=False)
        monkeypatch.delattr(os, 'setxattr', raising=False)
        config = get_config()

        assert size_cache.cached_size(bz2_file, config) == len(sample_data)
        assert size_cache.cached_size(bz2_file, config) == len(sample_data)
        assert len(counted_compute) == 2
        assert not size_cache.store_size(bz2_file, 1, config.size_attribute)

    def test_store_failure_ignored(self, bz2_file, sample_data, monkeypatch):
        """Test a filesystem refusing attributes is not an error."""
        def refuse(*args):
            raise OSError(errno.ENOTSUP, "Operation not supported")

        monkeypatch.setattr(os, 'getxattr', refuse, raising=False)
        monkeypatch.setattr(os, 'setxattr', refuse, raising=False)

        assert size_cache.cached_size(bz2_file, get_config()) == len(sample_data)
        assert not size_cache.store_size(bz2_file, 1, get_config().size_attribute)

    def test_corrupt_file(self, temp_dir, fake_xattrs):
        """Test an undecodable file has unknown size and is not cached."""
        path = temp_dir / "corrupt.bz2"
        path.write_bytes(b"BZh9" + b"\x00" * 40)

        assert size_cache.cached_size(str(path), get_config()) == SIZE_UNKNOWN
        assert fake_xattrs == {}

    def test_concatenated_streams(self, temp_dir, fake_xattrs):
        """Test every stream is counted."""
        path = temp_dir / "multi.bz2"
        path.write_bytes(bz2.compress(b"a" * 10) + bz2.compress(b"b" * 20))
        assert size_cache.count_decoded_bytes(str(path)) == 30

    def test_through_handle(self, bz2_file, sample_data, fake_xattrs, counted_compute):
        """Test the handle API uses the cache."""
        handle = cfile.open_path(bz2_file)
        assert cfile.size(handle) == len(sample_data)
        assert cfile.size(handle) == len(sample_data)
        cfile.close(handle)
        assert len(counted_compute) == 1


class TestExternalPipeline:
    """Test the decoder | counter strategy."""

    @pytest.mark.skipif(shutil.which('bzcat') is None or shutil.which('wc') is None,
                        reason="bzcat and wc are required")
    def test_pipeline(self, bz2_file, sample_data):
        """Test bzcat | wc -c counts the decoded bytes."""
        assert size_cache.count_with_pipeline(bz2_file, ('bzcat',), ('wc', '-c')) == len(sample_data)

    def test_missing_decoder(self, bz2_file):
        """Test a decoder that cannot be started gives None."""
        assert size_cache.count_with_pipeline(bz2_file, ('no-such-decoder-cfile',), ('wc', '-c')) is None

    @pytest.mark.skipif(shutil.which('false') is None or shutil.which('wc') is None,
                        reason="false and wc are required")
    def test_failing_decoder(self, bz2_file):
        """Test a decoder exiting with an error gives None."""
        assert size_cache.count_with_pipeline(bz2_file, ('false',), ('wc', '-c')) is None

    def test_method_selection(self, bz2_file, monkeypatch):
        """Test size_method='external' uses the pipeline."""
        seen = []

        def pipeline(path, decoder_command, counter_command):
            seen.append((decoder_command, counter_command))
            return 99

        monkeypatch.setattr(size_cache, 'count_with_pipeline', pipeline)
        config = configure(size_method='external', decoder_command=('bzip2', '-dc'))

        assert size_cache.compute_size(bz2_file, config) == 99
        assert seen == [(('bzip2', '-dc'), ('wc', '-c'))]

    def test_invalid_method(self):
        """Test unknown size methods are rejected."""
        with pytest.raises(ValueError, match="size_method"):
            configure(size_method='guess')
