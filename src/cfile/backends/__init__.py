"""One stream handle implementation per file format."""

# Submodules are available for import but not loaded at package level
# Backends are normally reached through cfile.core.registry:
#   from cfile.backends.xz_stream import XzFile
#   from cfile.backends.plain import PlainFile

__all__ = [
    "bzip2_stream",
    "gzip_stream",
    "lzo_stream",
    "null",
    "plain",
    "xz_stream",
]
