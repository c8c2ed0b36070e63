"""
Triton backend: Torch CUDA device memory + Triton JIT elementwise kernels.
"""

from .backend import TritonBackend  # noqa: F401

__all__ = ["TritonBackend"]
