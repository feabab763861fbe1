# rotarch/version.py
"""
Version information for rotarch.

The project follows semantic versioning (MAJOR.MINOR.PATCH).
"""

from typing import Any, Dict, Tuple

VERSION_MAJOR = 1
VERSION_MINOR = 0
VERSION_PATCH = 0

__version__ = f"{VERSION_MAJOR}.{VERSION_MINOR}.{VERSION_PATCH}"

__title__ = "rotarch"
__description__ = "Rotated ARCH multivariate volatility models"
__author__ = "rotarch developers"
__license__ = "MIT"
__copyright__ = "Copyright 2026 rotarch developers"

__python_requires__ = ">=3.10"

__dependencies__ = {
    "numpy": ">=1.26.0",
    "scipy": ">=1.11.3",
    "pandas": ">=2.1.1",
    "numba": ">=0.58.0",
    "matplotlib": ">=3.8.0",
}


def get_version_info() -> Dict[str, Any]:
    """Version string, components, dependencies and license."""
    return {
        "version": __version__,
        "major": VERSION_MAJOR,
        "minor": VERSION_MINOR,
        "patch": VERSION_PATCH,
        "python_requires": __python_requires__,
        "dependencies": __dependencies__,
        "license": __license__,
    }


def get_version_components() -> Tuple[int, int, int]:
    return (VERSION_MAJOR, VERSION_MINOR, VERSION_PATCH)


def is_compatible_with(version: str) -> bool:
    """
    Check whether this release satisfies a required version.

    Compatible means the same major version and an equal or higher
    minor/patch version. Invalid version strings are never compatible.
    """
    try:
        parts = version.split(".")
        major = int(parts[0])
        minor = int(parts[1] if len(parts) > 1 else 0)
        patch = int(parts[2] if len(parts) > 2 else 0)
    except (ValueError, IndexError):
        return False

    if VERSION_MAJOR != major:
        return False
    return (VERSION_MINOR, VERSION_PATCH) >= (minor, patch)
