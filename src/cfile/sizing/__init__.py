"""Recovering uncompressed sizes for formats that do not record them up front."""

# Submodules are available for import but not loaded at package level
# Import submodules explicitly when needed:
#   from cfile.sizing.xz_index import uncompressed_size
#   from cfile.sizing.size_cache import cached_size

__all__ = [
    "size_cache",
    "xz_index",
]
