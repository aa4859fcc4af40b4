"""Tests for backend registration and selection."""

import gzip
import os

import pytest

from cfile.backends.bzip2_stream import Bzip2File
from cfile.backends.gzip_stream import GzipFile
from cfile.backends.null import NullFile
from cfile.backends.plain import PlainFile
from cfile.backends.xz_stream import XzFile
from cfile.config import configure, get_config
from cfile.core.errors import CFileError
from cfile.core.registry import BackendRegistry


@pytest.fixture
def registry():
    return BackendRegistry()


class TestBackendRegistry:
    """Test selection by name, extension and content."""

    def test_builtin_backends(self, registry):
        """Test every shipped backend is registered."""
        backends = registry.list_available_backends()
        assert set(backends) == {'plain', 'null', 'gzip', 'bzip2', 'xz', 'lzo'}
        assert backends['gzip'] == 'GZip file'

    def test_extension_lookup(self, registry):
        """Test extensions map case-insensitively, defaulting to plain."""
        assert registry.backend_for_extension('a.gz') == 'gzip'
        assert registry.backend_for_extension('A.BZ2') == 'bzip2'
        assert registry.backend_for_extension('dir.xz/file.Xz') == 'xz'
        assert registry.backend_for_extension('a.lzo') == 'lzo'
        assert registry.backend_for_extension('a.txt') == 'plain'
        assert registry.backend_for_extension('noext') == 'plain'

    def test_write_mode_uses_extension(self, registry, temp_dir):
        """Test files that do not exist yet are chosen by extension."""
        config = get_config()
        assert registry.select(str(temp_dir / 'new.xz'), 'w', config) is XzFile
        assert registry.select(str(temp_dir / 'new.bz2'), 'w', config) is Bzip2File
        assert registry.select(str(temp_dir / 'new.txt'), 'w', config) is PlainFile

    def test_sniffing_overrides_extension(self, registry, temp_dir):
        """Test gzip content under a .txt name is read as gzip."""
        path = temp_dir / 'disguised.txt'
        path.write_bytes(gzip.compress(b'payload'))

        assert registry.select(str(path), 'r', get_config()) is GzipFile
        assert registry.select(str(path), 'r', configure(sniff_content=False)) is PlainFile

    def test_special_paths(self, registry):
        """Test '-' and the null device."""
        config = get_config()
        assert registry.select('-', 'r', config) is PlainFile
        assert registry.select(os.devnull, 'w', config) is NullFile

    def test_explicit_backend(self, registry, temp_dir):
        """Test an explicit name beats every other rule."""
        path = str(temp_dir / 'data.gz')
        assert registry.select(path, 'w', get_config(), backend='xz') is XzFile
        with pytest.raises(CFileError, match="Unknown backend"):
            registry.select(path, 'w', get_config(), backend='zstd')

    def test_register_rejects_non_handles(self, registry):
        """Test only StreamHandle subclasses can be registered."""
        with pytest.raises(ValueError):
            registry.register_backend('bogus', dict)

    def test_register_custom_extension(self, registry):
        """Test a registered class's extensions become selection rules."""
        class TextNull(NullFile):
            extensions = ('.void',)

        registry.register_backend('void', TextNull)
        assert registry.backend_for_extension('x.VOID') == 'void'
