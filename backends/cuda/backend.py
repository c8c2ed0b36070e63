"""
Torch CUDA backend.

Device memory is raw byte tensors from the Torch caching allocator; kernels are
the `.cu` entry points under `kernels/cuda/ops/`, compiled once into a Torch
extension when the backend is initialized. Every operation synchronizes the
device before returning.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence

import numpy as np

from backends.base import FLOAT32_NBYTES, ComputeBackend, KernelHandle
from backends.cuda.runtime import MAX_THREADS_PER_BLOCK, CudaLaunch, compile_cuda_extension, cuda_free_mem_mb
from device_vector.config import RuntimeConfig
from device_vector.errors import AllocationError, BackendStateError, KernelLaunchError
from device_vector.partition import LaunchPartition
from kernels.cuda.ops.elementwise import elementwise_io, list_kernel_entries, read_elementwise_source


logger = logging.getLogger(__name__)


def _torch() -> Any:
    import torch  # noqa: PLC0415

    return torch


class TorchCudaBackend(ComputeBackend):
    """
    Memory management on a Torch CUDA device; subclasses swap the kernel
    provider (see `backends.triton`).
    """

    name = "cuda"

    def __init__(self, config: Optional[RuntimeConfig] = None, *, extra_cuda_cflags: Optional[Sequence[str]] = None) -> None:
        super().__init__(config)
        self.extra_cuda_cflags = list(extra_cuda_cflags or [])
        self._torch: Any = None
        self._device: Any = None
        self._module: Any = None
        self._entries: List[str] = []

    # -- lifecycle -----------------------------------------------------------

    def _initialize(self) -> None:
        try:
            torch = _torch()
        except ImportError as e:
            raise BackendStateError(f"{self.name} backend requires torch: {e}") from e
        if not torch.cuda.is_available():
            raise BackendStateError("torch.cuda is not available; cannot initialize a CUDA backend")
        self._torch = torch
        self._device = torch.device(self.config.device)
        try:
            if self._device.index is not None:
                torch.cuda.set_device(self._device)
            torch.cuda.synchronize(self._device)
        except Exception as e:
            raise BackendStateError(f"cannot create CUDA context on {self.config.device}: {type(e).__name__}: {e}") from e
        logger.info("%s backend on %s (free≈%d MiB)", self.name, self._device, cuda_free_mem_mb())
        self._load_kernels()

    def _load_kernels(self) -> None:
        src = read_elementwise_source()
        self._entries = list_kernel_entries(src)
        io_specs = {k: v for k, v in elementwise_io.items() if k in self._entries}
        try:
            self._module = compile_cuda_extension(
                module_prefix="devvec_elementwise",
                cuda_src=src,
                io_specs=io_specs,
                extra_cuda_cflags=self.extra_cuda_cflags,
                build_root=self.config.torch_ext_dir,
            )
        except Exception as e:
            raise BackendStateError(f"failed to build CUDA elementwise extension: {type(e).__name__}: {e}") from e

    def _shutdown(self) -> None:
        self._module = None
        if self._torch is not None:
            try:
                self._torch.cuda.synchronize(self._device)
                self._torch.cuda.empty_cache()
            except Exception:
                logger.warning("%s backend: device sync failed during shutdown", self.name, exc_info=True)

    def _sync(self) -> None:
        self._torch.cuda.synchronize(self._device)

    # -- kernels -------------------------------------------------------------

    def kernel_names(self) -> Sequence[str]:
        return tuple(self._entries)

    def _resolve_kernel(self, name: str) -> Any:
        if name not in self._entries:
            return None
        return getattr(self._module, f"launch_{name}", None)

    # -- memory --------------------------------------------------------------

    def _allocate(self, nbytes: int) -> Any:
        torch = self._torch
        if nbytes % FLOAT32_NBYTES:
            raise AllocationError(f"CUDA buffers hold float32 values; {nbytes} is not a multiple of {FLOAT32_NBYTES}")
        try:
            return torch.empty(nbytes, dtype=torch.uint8, device=self._device)
        except torch.cuda.OutOfMemoryError as e:
            raise AllocationError(f"CUDA OOM allocating {nbytes} bytes (free≈{cuda_free_mem_mb()} MiB): {e}") from e
        except RuntimeError as e:
            if "out of memory" in str(e).lower():
                raise AllocationError(f"CUDA OOM allocating {nbytes} bytes: {e}") from e
            raise

    def _free(self, payload: Any, nbytes: int) -> None:
        # Dropping the last reference returns the block to the caching allocator.
        del payload

    def _floats(self, payload: Any) -> Any:
        return payload.view(self._torch.float32)

    def _copy_h2d(self, payload: Any, host: np.ndarray) -> None:
        src = self._torch.from_numpy(host)
        self._floats(payload).copy_(src)
        self._sync()

    def _copy_d2h(self, payload: Any, length: int) -> np.ndarray:
        out = self._floats(payload)[:length].cpu().numpy()
        self._sync()
        return out

    # -- launch --------------------------------------------------------------

    def _check_chunk_size(self, partition: LaunchPartition) -> None:
        if partition.chunk_size > MAX_THREADS_PER_BLOCK:
            raise KernelLaunchError(
                f"chunk_size {partition.chunk_size} exceeds {MAX_THREADS_PER_BLOCK} threads per block"
            )

    def _launch(self, kernel: KernelHandle, payloads: List[Any], partition: LaunchPartition) -> None:
        self._check_chunk_size(partition)
        launch = CudaLaunch(grid=partition.grid, block=partition.block)
        a, b, out = (self._floats(p) for p in payloads)
        kernel.fn(a, b, out, int(partition.element_count), int(launch.grid[0]), int(launch.block[0]))
        self._sync()


__all__ = ["TorchCudaBackend"]
