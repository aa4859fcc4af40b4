"""Process-wide settings for cfile handles."""

import os
from dataclasses import dataclass, field, fields, replace
from typing import Any, Tuple

SIZE_METHODS = ('internal', 'external')


@dataclass(frozen=True)
class CFileConfig:
    """Tunables read by the backends when a handle is opened.

    Attributes:
        encoding: Encoding applied to ``str`` formats passed to printf
        sniff_content: Let leading magic bytes override the extension in read mode
        null_devices: Paths that select the null backend
        buffer_size: Capacity of the generic decode buffer in bytes
        read_chunk_size: Size of raw reads from the compressed file
        initial_line_size: First allocation of an empty line buffer
        gzip_level: gzip compression level (0-9)
        bzip2_level: bzip2 block size level (1-9)
        xz_preset: xz/LZMA2 preset (0-9)
        lzo_level: LZO level, 1 for LZO1X-1 or 9 for LZO1X-999
        lzo_block_size: Uncompressed bytes per lzop block
        size_method: How bzip2 sizes are recomputed, 'internal' or 'external'
        size_attribute: Extended attribute holding cached bzip2 sizes
        decoder_command: Reference bzip2 decoder for the external size method
        counter_command: Byte counter fed by the decoder
    """
    encoding: str = 'utf-8'
    sniff_content: bool = True
    null_devices: Tuple[str, ...] = field(default_factory=lambda: (os.devnull,))
    buffer_size: int = 4096
    read_chunk_size: int = 64 * 1024
    initial_line_size: int = 80
    gzip_level: int = 6
    bzip2_level: int = 9
    xz_preset: int = 6
    lzo_level: int = 1
    lzo_block_size: int = 256 * 1024
    size_method: str = 'internal'
    size_attribute: str = 'user.cfile_uncompressed_size'
    decoder_command: Tuple[str, ...] = ('bzcat',)
    counter_command: Tuple[str, ...] = ('wc', '-c')

    def __post_init__(self):
        if self.size_method not in SIZE_METHODS:
            raise ValueError(f"size_method must be one of {SIZE_METHODS}, got {self.size_method!r}")
        for name in ('buffer_size', 'read_chunk_size', 'initial_line_size', 'lzo_block_size'):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")


_config = CFileConfig()


def get_config() -> CFileConfig:
    """Return the active configuration."""
    return _config


def configure(**overrides: Any) -> CFileConfig:
    """Replace fields of the active configuration.

    Args:
        **overrides: Field names and their new values

    Returns:
        The new active configuration

    Raises:
        ValueError: If a field name is unknown or a value is invalid
    """
    global _config
    known = {f.name for f in fields(CFileConfig)}
    unknown = set(overrides) - known
    if unknown:
        raise ValueError(f"Unknown configuration fields: {sorted(unknown)}")
    _config = replace(_config, **overrides)
    return _config


def reset_config() -> CFileConfig:
    """Restore the default configuration."""
    global _config
    _config = CFileConfig()
    return _config
