"""Handle dispatch, decode buffering and line reading."""

# Submodules are available for import but not loaded at package level
# Import submodules explicitly when needed:
#   from cfile.core.dispatch import open_path
#   from cfile.core.buffer import GenericBuffer
#   from cfile.core.lines import LineBuffer

__all__ = [
    "buffer",
    "dispatch",
    "errors",
    "handle",
    "lines",
    "registry",
]
