"""Command line interfaces."""

# Submodules are available for import but not loaded at package level
# This prevents circular import issues during installation
# Import submodules explicitly when needed:
#   from cfile.cli.main import main

__all__ = [
    "main",
]
