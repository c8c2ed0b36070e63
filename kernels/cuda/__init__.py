"""
CUDA kernel library (source-only).

Kernel sources are plain CUDA C++ `.cu` files under `kernels/cuda/ops/`; the
CUDA backend compiles them once into a Torch extension at initialization.
"""
