"""
CUDA backend entrypoints.

Elementwise `.cu` kernels compiled into a Torch extension; device memory from
the Torch caching allocator.
"""

from .backend import TorchCudaBackend  # noqa: F401
from .runtime import MAX_THREADS_PER_BLOCK, CudaLaunch, compile_cuda_extension  # noqa: F401

__all__ = [
    "MAX_THREADS_PER_BLOCK",
    "CudaLaunch",
    "TorchCudaBackend",
    "compile_cuda_extension",
]
