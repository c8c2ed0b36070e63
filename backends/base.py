"""
Compute backend contract shared by all device-vector backends.

A backend owns one device + execution context for its lifetime. It allocates
and frees device buffers, copies between host and device, resolves kernels by
name and launches them synchronously. Concrete backends implement the
underscore hooks; this base class keeps the lifecycle checks and the registry
of live buffers (used for leak diagnostics and for freeing leftovers at
shutdown).

Keep this module dependency-light (numpy only) so the core can import it
without pulling torch/triton.
"""

from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from device_vector.config import RuntimeConfig
from device_vector.errors import (
    AllocationError,
    BackendStateError,
    KernelLaunchError,
    KernelNotFoundError,
    TransferError,
)
from device_vector.partition import FLOAT32_NBYTES, LaunchPartition, validate_chunk_size


logger = logging.getLogger(__name__)

_HANDLE_IDS = itertools.count(1)


@dataclass(eq=False)
class BufferHandle:
    """
    Opaque handle to a device-memory region.

    `payload` is backend-private (a numpy array for the host backend, a torch
    tensor for the GPU backends).
    """

    nbytes: int
    payload: Any = field(repr=False)
    backend_name: str = ""
    handle_id: int = field(default_factory=lambda: next(_HANDLE_IDS))
    freed: bool = False


@dataclass(frozen=True)
class KernelHandle:
    name: str
    fn: Any = field(repr=False, compare=False)


class ComputeBackend:
    """
    Base class for compute backends.

    Subclasses set `name` and implement `_initialize`, `_shutdown`,
    `_resolve_kernel`, `_allocate`, `_free`, `_copy_h2d`, `_copy_d2h` and
    `_launch`. Hooks may raise the taxonomy errors directly; any other
    exception is wrapped by the public method that called the hook.
    """

    name = "base"

    def __init__(self, config: Optional[RuntimeConfig] = None) -> None:
        self.config = config or RuntimeConfig.from_env()
        self._lock = threading.Lock()
        self._initialized = False
        self._shut_down = False
        self._kernels: Dict[str, KernelHandle] = {}
        self._live: Dict[int, BufferHandle] = {}

    # -- lifecycle -----------------------------------------------------------

    def initialize(self) -> "ComputeBackend":
        with self._lock:
            if self._shut_down:
                raise BackendStateError(f"{self.name} backend was shut down; create a new instance")
            if self._initialized:
                return self
            self._initialize()
            self._initialized = True
        logger.info("initialized %s backend (chunk_size=%d)", self.name, self.config.chunk_size)
        return self

    def shutdown(self) -> None:
        with self._lock:
            # Never initialized: nothing to tear down, and initialize() stays usable.
            if not self._initialized or self._shut_down:
                return
            leaked = list(self._live.values())
            self._live.clear()
        for buf in leaked:
            logger.warning("%s backend: freeing leaked buffer #%d (%d bytes) at shutdown", self.name, buf.handle_id, buf.nbytes)
            self._release_payload(buf)
        with self._lock:
            self._kernels.clear()
            self._shutdown()
            self._shut_down = True
        logger.info("shut down %s backend", self.name)

    @property
    def initialized(self) -> bool:
        return self._initialized and not self._shut_down

    def __enter__(self) -> "ComputeBackend":
        return self.initialize()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise BackendStateError(f"{self.name} backend is not initialized; call initialize() first")
        if self._shut_down:
            raise BackendStateError(f"{self.name} backend was shut down")

    def _require_live(self, buf: BufferHandle) -> None:
        if not isinstance(buf, BufferHandle):
            raise BackendStateError(f"expected BufferHandle, got {type(buf).__name__}")
        if buf.freed or self._live.get(buf.handle_id) is not buf:
            raise BackendStateError(f"buffer #{buf.handle_id} is not a live {self.name} allocation")

    # -- diagnostics ---------------------------------------------------------

    def live_buffers(self) -> List[BufferHandle]:
        with self._lock:
            return list(self._live.values())

    def live_bytes(self) -> int:
        return sum(b.nbytes for b in self.live_buffers())

    # -- kernels -------------------------------------------------------------

    def load_kernel(self, name: str) -> KernelHandle:
        self._require_initialized()
        key = str(name)
        cached = self._kernels.get(key)
        if cached is not None:
            return cached
        try:
            fn = self._resolve_kernel(key)
        except KernelNotFoundError:
            raise
        except Exception as e:
            raise KernelNotFoundError(f"{self.name}: failed to load kernel {key!r}: {type(e).__name__}: {e}") from e
        if fn is None:
            raise KernelNotFoundError(f"{self.name}: no kernel named {key!r}; have {sorted(self.kernel_names())}")
        handle = KernelHandle(name=key, fn=fn)
        self._kernels[key] = handle
        return handle

    def kernel_names(self) -> Sequence[str]:
        return ()

    # -- memory --------------------------------------------------------------

    def allocate(self, nbytes: int) -> BufferHandle:
        self._require_initialized()
        n = int(nbytes)
        if n < 0:
            raise AllocationError(f"cannot allocate a negative size ({n} bytes)")
        try:
            payload = self._allocate(n)
        except AllocationError:
            raise
        except MemoryError as e:
            raise AllocationError(f"{self.name}: out of memory allocating {n} bytes") from e
        buf = BufferHandle(nbytes=n, payload=payload, backend_name=self.name)
        with self._lock:
            self._live[buf.handle_id] = buf
        logger.debug("%s: allocated buffer #%d (%d bytes)", self.name, buf.handle_id, n)
        return buf

    def free(self, buf: BufferHandle) -> None:
        self._require_initialized()
        with self._lock:
            self._require_live(buf)
            del self._live[buf.handle_id]
        self._release_payload(buf)
        logger.debug("%s: freed buffer #%d", self.name, buf.handle_id)

    def _release_payload(self, buf: BufferHandle) -> None:
        buf.freed = True
        payload, buf.payload = buf.payload, None
        self._free(payload, buf.nbytes)

    # -- transfers -----------------------------------------------------------

    def copy_host_to_device(self, buf: BufferHandle, host_data: Any) -> None:
        self._require_initialized()
        try:
            self._require_live(buf)
        except BackendStateError as e:
            raise TransferError(str(e)) from e
        arr = np.ascontiguousarray(host_data, dtype=np.float32)
        if arr.ndim != 1:
            arr = arr.reshape(-1)
        if arr.nbytes != buf.nbytes:
            raise TransferError(f"host data is {arr.nbytes} bytes but buffer #{buf.handle_id} is {buf.nbytes} bytes")
        try:
            self._copy_h2d(buf.payload, arr)
        except TransferError:
            raise
        except Exception as e:
            raise TransferError(f"{self.name}: host->device copy failed: {type(e).__name__}: {e}") from e

    def copy_device_to_host(self, buf: BufferHandle, length: int) -> np.ndarray:
        self._require_initialized()
        try:
            self._require_live(buf)
        except BackendStateError as e:
            raise TransferError(str(e)) from e
        n = int(length)
        if n < 0 or n * FLOAT32_NBYTES > buf.nbytes:
            raise TransferError(f"cannot read {n} floats from buffer #{buf.handle_id} ({buf.nbytes} bytes)")
        try:
            out = self._copy_d2h(buf.payload, n)
        except TransferError:
            raise
        except Exception as e:
            raise TransferError(f"{self.name}: device->host copy failed: {type(e).__name__}: {e}") from e
        return np.asarray(out, dtype=np.float32)

    # -- launch --------------------------------------------------------------

    def launch(self, kernel: KernelHandle, args: Sequence[BufferHandle], element_count: int, chunk_size: Optional[int] = None) -> None:
        """
        Dispatch `kernel` over `[0, element_count)` and wait for completion.

        `args` are buffer handles in kernel parameter order (inputs first,
        output last). An empty index space issues no device work.
        """
        self._require_initialized()
        if not isinstance(kernel, KernelHandle):
            raise KernelLaunchError(f"expected KernelHandle, got {type(kernel).__name__}")
        try:
            for buf in args:
                self._require_live(buf)
            partition = LaunchPartition(int(element_count), validate_chunk_size(self.config.chunk_size if chunk_size is None else chunk_size))
        except (BackendStateError, ValueError) as e:
            raise KernelLaunchError(f"{self.name}: invalid launch of {kernel.name}: {e}") from e
        if partition.element_count == 0:
            return
        logger.debug(
            "%s: launch %s n=%d chunk=%d chunks=%d",
            self.name,
            kernel.name,
            partition.element_count,
            partition.chunk_size,
            partition.num_chunks,
        )
        try:
            self._launch(kernel, [b.payload for b in args], partition)
        except KernelLaunchError:
            raise
        except Exception as e:
            raise KernelLaunchError(f"{self.name}: kernel {kernel.name} failed: {type(e).__name__}: {e}") from e

    # -- hooks ---------------------------------------------------------------

    def _initialize(self) -> None:
        raise NotImplementedError

    def _shutdown(self) -> None:
        pass

    def _resolve_kernel(self, name: str) -> Any:
        raise NotImplementedError

    def _allocate(self, nbytes: int) -> Any:
        raise NotImplementedError

    def _free(self, payload: Any, nbytes: int) -> None:
        raise NotImplementedError

    def _copy_h2d(self, payload: Any, host: np.ndarray) -> None:
        raise NotImplementedError

    def _copy_d2h(self, payload: Any, length: int) -> np.ndarray:
        raise NotImplementedError

    def _launch(self, kernel: KernelHandle, payloads: List[Any], partition: LaunchPartition) -> None:
        raise NotImplementedError


__all__ = ["FLOAT32_NBYTES", "BufferHandle", "ComputeBackend", "KernelHandle"]
