"""Backend registration and selection by name, extension and content."""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Type

from ..config import CFileConfig
from .errors import CFileError
from .handle import StreamHandle

logger = logging.getLogger(__name__)

STANDARD_STREAM = '-'


class BackendRegistry:
    """Maps backend names, file extensions and magic bytes to handle classes."""

    def __init__(self):
        self._backends: Dict[str, Type[StreamHandle]] = {}
        self._extensions: Dict[str, str] = {}
        self._magic: List[Tuple[bytes, str]] = []
        self._register_builtin_backends()

    def _register_builtin_backends(self):
        """Register the backends shipped with cfile."""
        from ..backends.bzip2_stream import Bzip2File
        from ..backends.gzip_stream import GzipFile
        from ..backends.lzo_stream import LzoFile
        from ..backends.null import NullFile
        from ..backends.plain import PlainFile
        from ..backends.xz_stream import XzFile

        self.register_backend('plain', PlainFile)
        self.register_backend('null', NullFile)
        self.register_backend('gzip', GzipFile)
        self.register_backend('bzip2', Bzip2File)
        self.register_backend('xz', XzFile)
        self.register_backend('lzo', LzoFile)

    def register_backend(self, name: str, backend_class: Type[StreamHandle]):
        """Register a backend class.

        The class's ``extensions`` tuple and ``magic`` bytes, when present,
        become selection rules for it.

        Args:
            name: Name to register the backend under
            backend_class: Concrete StreamHandle subclass with an ``open`` classmethod
        """
        if not (isinstance(backend_class, type) and issubclass(backend_class, StreamHandle)):
            raise ValueError("Backend class must inherit from StreamHandle")

        self._backends[name] = backend_class
        for extension in getattr(backend_class, 'extensions', ()):
            self._extensions[extension.lower()] = name
        magic = getattr(backend_class, 'magic', None)
        if magic:
            self._magic.append((magic, name))
            # Longest signatures first so a prefix never shadows a longer match
            self._magic.sort(key=lambda item: len(item[0]), reverse=True)

    def get_backend(self, name: str) -> Type[StreamHandle]:
        if name not in self._backends:
            raise CFileError(f"Unknown backend: {name}")
        return self._backends[name]

    def list_available_backends(self) -> Dict[str, str]:
        """Map backend names to their human readable descriptions."""
        return {name: cls.backend_name for name, cls in self._backends.items()}

    def backend_for_extension(self, path: str) -> str:
        """Pick a backend from the trailing extension, defaulting to plain."""
        suffix = Path(path).suffix.lower()
        return self._extensions.get(suffix, 'plain')

    def sniff(self, path: str) -> Optional[str]:
        """Pick a backend from the file's leading bytes.

        Returns:
            The backend name, or None when nothing matches or the file
            cannot be read
        """
        if not self._magic:
            return None
        longest = max(len(magic) for magic, _ in self._magic)
        try:
            with open(path, 'rb') as f:
                head = f.read(longest)
        except OSError:
            return None
        for magic, name in self._magic:
            if head.startswith(magic):
                return name
        return None

    def select(self, path: str, mode: str, config: CFileConfig,
               backend: Optional[str] = None) -> Type[StreamHandle]:
        """Choose the backend class for opening ``path`` with ``mode``.

        Args:
            path: File path, or '-' for standard input/output
            mode: Open mode
            config: Active configuration
            backend: Explicit backend name overriding every other rule

        Returns:
            The handle class to open the file with
        """
        if backend is not None:
            name = backend
        elif path == STANDARD_STREAM:
            name = 'plain'
        elif path in config.null_devices:
            name = 'null'
        else:
            name = None
            if mode.startswith('r') and config.sniff_content:
                name = self.sniff(path)
            if name is None:
                name = self.backend_for_extension(path)
        logger.debug(f"Selected {name} backend for {path} (mode {mode})")
        return self.get_backend(name)


_registry: Optional[BackendRegistry] = None


def get_registry() -> BackendRegistry:
    """Return the shared registry, building it on first use."""
    global _registry
    if _registry is None:
        _registry = BackendRegistry()
    return _registry
