"""Sphinx configuration for the cfile documentation."""

import os
import sys

# Document the package from the source tree, no install needed
sys.path.insert(0, os.path.abspath('../src'))

from cfile.__version__ import __version__  # noqa: E402

project = 'cfile'
copyright = '2024, cfile contributors'
author = 'cfile contributors'
version = '.'.join(__version__.split('.')[:2])
release = __version__

extensions = [
    'sphinx.ext.autodoc',
    'sphinx.ext.intersphinx',
    'sphinx.ext.viewcode',
    'sphinx.ext.napoleon',
    'sphinx_click',
    'sphinx_rtd_theme'
]

templates_path = ['_templates']
exclude_patterns = ['_build', 'Thumbs.db', '.DS_Store']

html_theme = 'sphinx_rtd_theme'
html_static_path = ['_static']

# python-lzo is optional; the lzop backend still documents without it
autodoc_mock_imports = ['lzo']
autodoc_member_order = 'bysource'
autodoc_default_options = {
    'members': True,
    'show-inheritance': True,
}

# Handles wrap the standard library codecs, so link to their docs
intersphinx_mapping = {
    'python': ('https://docs.python.org/3', None),
}

# Docstrings use the Google style throughout
napoleon_google_docstring = True
napoleon_numpy_docstring = False
napoleon_include_init_with_doc = True
napoleon_include_private_with_doc = False
