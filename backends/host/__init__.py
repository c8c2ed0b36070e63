"""
Host (NumPy) reference backend.

Runs everywhere; used by the test suite and as the default backend.
"""

from .backend import HostBackend  # noqa: F401

__all__ = ["HostBackend"]
