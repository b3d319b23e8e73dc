"""pkgcache - Incremental package build cache.

This package builds the artifacts of a multi-package project in dependency
order, once per session, reusing on-disk artifacts whose recorded inputs are
unchanged.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
