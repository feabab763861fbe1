# Configuration file for the Sphinx documentation builder.
#
# https://www.sphinx-doc.org/en/master/usage/configuration.html

import os
import sys

# -- Path setup --------------------------------------------------------------

sys.path.insert(0, os.path.abspath('..'))

from rotarch.version import __version__ as version
from rotarch.version import __author__, __copyright__, __title__, __description__

# -- Project information -----------------------------------------------------

project = __title__
copyright = __copyright__
author = __author__
release = version

# -- General configuration ---------------------------------------------------

extensions = [
    'sphinx.ext.autodoc',
    'sphinx.ext.autosummary',
    'sphinx.ext.viewcode',
    'sphinx.ext.napoleon',
    'sphinx.ext.mathjax',
    'sphinx.ext.intersphinx',
    'sphinx_rtd_theme',
]

templates_path = ['_templates']
exclude_patterns = ['_build', 'Thumbs.db', '.DS_Store']
pygments_style = 'sphinx'

# -- Options for autodoc -----------------------------------------------------

autodoc_typehints = 'description'
autoclass_content = 'class'
autodoc_default_options = {
    'members': True,
    'member-order': 'bysource',
    'special-members': '__init__',
    'undoc-members': True,
    'exclude-members': '__weakref__'
}

# -- Options for intersphinx -------------------------------------------------

intersphinx_mapping = {
    'python': ('https://docs.python.org/3', None),
    'numpy': ('https://numpy.org/doc/stable/', None),
    'scipy': ('https://docs.scipy.org/doc/scipy/', None),
    'pandas': ('https://pandas.pydata.org/pandas-docs/stable/', None),
    'matplotlib': ('https://matplotlib.org/stable/', None),
    'numba': ('https://numba.readthedocs.io/en/stable/', None),
}

# -- Options for HTML output -------------------------------------------------

html_theme = 'sphinx_rtd_theme'
html_theme_options = {
    'collapse_navigation': False,
    'navigation_depth': 4,
}
htmlhelp_basename = 'rotarchdoc'

# -- Napoleon settings -------------------------------------------------------

napoleon_google_docstring = True
napoleon_numpy_docstring = False
napoleon_include_init_with_doc = False
napoleon_use_param = True
napoleon_use_rtype = True


def setup(app):
    app.connect('autodoc-process-docstring', process_docstrings)
    app.add_config_value('package_version', version, 'env')


def process_docstrings(app, what, name, obj, options, lines):
    """Note Numba compilation on the recursion kernels."""
    if what == 'function' and getattr(obj, '__module__', '').endswith('_numba_core'):
        lines.append('')
        lines.append('.. note::')
        lines.append('   This function is compiled with Numba. The pure Python version is available as ``py_func``.')
        lines.append('')
