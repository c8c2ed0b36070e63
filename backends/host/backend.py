"""
NumPy-backed compute backend.

"Device memory" is a pool of private float32 arrays. An optional capacity
(`DEVVEC_HOST_MEMORY_LIMIT_MB`, or `memory_limit_bytes=`) makes exhaustion
observable, so allocation failure paths can be exercised without a GPU.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence

import numpy as np

from backends.base import FLOAT32_NBYTES, ComputeBackend, KernelHandle
from device_vector.config import RuntimeConfig
from device_vector.errors import AllocationError, TransferError
from device_vector.partition import LaunchPartition
from kernels.host.elementwise import HOST_KERNELS, run_chunk


logger = logging.getLogger(__name__)


class HostBackend(ComputeBackend):
    name = "host"

    def __init__(self, config: Optional[RuntimeConfig] = None, *, memory_limit_bytes: Optional[int] = None) -> None:
        super().__init__(config)
        if memory_limit_bytes is None:
            memory_limit_bytes = self.config.host_memory_limit_bytes
        # 0 or negative means unlimited, same as DEVVEC_HOST_MEMORY_LIMIT_MB.
        elif memory_limit_bytes <= 0:
            memory_limit_bytes = None
        self.memory_limit_bytes = memory_limit_bytes
        self._reserved = 0

    def _initialize(self) -> None:
        self._reserved = 0
        if self.memory_limit_bytes is not None:
            logger.info("host backend capacity: %d bytes", self.memory_limit_bytes)

    def _shutdown(self) -> None:
        self._reserved = 0

    def kernel_names(self) -> Sequence[str]:
        return tuple(HOST_KERNELS)

    def _resolve_kernel(self, name: str) -> Any:
        return HOST_KERNELS.get(name)

    def _allocate(self, nbytes: int) -> np.ndarray:
        if nbytes % FLOAT32_NBYTES:
            raise AllocationError(f"host buffers hold float32 values; {nbytes} is not a multiple of {FLOAT32_NBYTES}")
        limit = self.memory_limit_bytes
        with self._lock:
            if limit is not None and self._reserved + nbytes > limit:
                raise AllocationError(
                    f"host device memory exhausted: requested {nbytes} bytes, {limit - self._reserved} of {limit} free"
                )
            self._reserved += nbytes
        try:
            # Uninitialized, like device memory.
            return np.empty(nbytes // FLOAT32_NBYTES, dtype=np.float32)
        except MemoryError:
            with self._lock:
                self._reserved -= nbytes
            raise

    def _free(self, payload: Any, nbytes: int) -> None:
        with self._lock:
            self._reserved = max(0, self._reserved - int(nbytes))

    def _copy_h2d(self, payload: np.ndarray, host: np.ndarray) -> None:
        if payload.shape != host.shape:
            raise TransferError(f"shape mismatch: device {payload.shape} vs host {host.shape}")
        np.copyto(payload, host)

    def _copy_d2h(self, payload: np.ndarray, length: int) -> np.ndarray:
        return payload[:length].copy()

    def _launch(self, kernel: KernelHandle, payloads: List[Any], partition: LaunchPartition) -> None:
        if len(payloads) != 3:
            raise ValueError(f"{kernel.name} expects (a, b, out), got {len(payloads)} buffers")
        a, b, out = payloads
        n = partition.element_count
        for arr in (a, b, out):
            if arr.shape[0] < n:
                raise ValueError(f"buffer of {arr.shape[0]} floats is shorter than the index space ({n})")
        for start, stop in partition.chunks():
            run_chunk(kernel.fn, a, b, out, start, stop)


__all__ = ["HostBackend"]
