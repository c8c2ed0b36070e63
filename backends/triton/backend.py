from __future__ import annotations

import logging
from typing import Any, List, Sequence

from backends.base import KernelHandle
from backends.cuda.backend import TorchCudaBackend
from device_vector.errors import BackendStateError, KernelLaunchError
from device_vector.partition import LaunchPartition, is_pow2


logger = logging.getLogger(__name__)


class TritonBackend(TorchCudaBackend):
    """
    Same memory model as the CUDA backend; kernels are `@triton.jit`
    functions compiled on first launch for each chunk size.
    """

    name = "triton"

    def _load_kernels(self) -> None:
        try:
            from kernels.triton.ops import elementwise  # noqa: PLC0415
        except ImportError as e:
            raise BackendStateError(f"triton backend requires triton: {e}") from e
        self._module = elementwise
        self._entries = list(elementwise.TRITON_KERNELS)
        logger.info("triton kernels: %s (compiled on first launch per block size)", ", ".join(self._entries))

    def kernel_names(self) -> Sequence[str]:
        return tuple(self._entries)

    def _resolve_kernel(self, name: str) -> Any:
        return self._module.TRITON_KERNELS.get(name)

    def _check_chunk_size(self, partition: LaunchPartition) -> None:
        super()._check_chunk_size(partition)
        if not is_pow2(partition.chunk_size):
            raise KernelLaunchError(f"triton block size must be a power of two, got {partition.chunk_size}")

    def _launch(self, kernel: KernelHandle, payloads: List[Any], partition: LaunchPartition) -> None:
        self._check_chunk_size(partition)
        a, b, out = (self._floats(p) for p in payloads)
        self._module.launch_elementwise(kernel.fn, a, b, out, int(partition.element_count), BLOCK_SIZE=int(partition.chunk_size))
        self._sync()


__all__ = ["TritonBackend"]
