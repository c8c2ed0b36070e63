"""
Device-resident float32 vector with elementwise arithmetic.

A `DeviceVector` is an immutable value: it exclusively owns one device buffer
of `size() * 4` bytes, never writes to it after construction, and every
arithmetic operation returns a new vector backed by a freshly allocated
buffer. Release is explicit (`release()` or a `with` block) and idempotent;
nothing is deferred to the garbage collector.

All operations block until the device work they issue has completed.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Iterable, Optional, Union

import numpy as np

from device_vector.errors import DimensionMismatchError, UseAfterReleaseError
from device_vector.partition import FLOAT32_NBYTES

if TYPE_CHECKING:
    from backends.base import BufferHandle, ComputeBackend


logger = logging.getLogger(__name__)


class DeviceVector:
    __slots__ = ("_backend", "_buffer", "_length", "_released")

    def __init__(self, backend: "ComputeBackend", buffer: "BufferHandle", length: int) -> None:
        """
        Take ownership of `buffer`. Client code should use `from_host`; this
        constructor is for backends handing over a buffer they populated.
        """
        n = int(length)
        if n < 0:
            raise ValueError(f"length must be non-negative, got {length}")
        if buffer.nbytes != n * FLOAT32_NBYTES:
            raise ValueError(f"buffer #{buffer.handle_id} is {buffer.nbytes} bytes, expected {n * FLOAT32_NBYTES} for length {n}")
        self._backend = backend
        self._buffer: Optional["BufferHandle"] = buffer
        self._length = n
        self._released = False

    @classmethod
    def from_host(cls, backend: "ComputeBackend", values: Union[Iterable[float], np.ndarray]) -> "DeviceVector":
        """
        Allocate a device buffer and copy `values` (converted to float32) into it.

        Raises `AllocationError` if the buffer cannot be reserved and
        `TransferError` if the copy fails; in the latter case the buffer is
        freed before the error propagates.
        """
        if isinstance(values, np.ndarray):
            host = np.ascontiguousarray(values, dtype=np.float32).reshape(-1)
        else:
            host = np.asarray(list(values), dtype=np.float32).reshape(-1)
        buf = backend.allocate(host.size * FLOAT32_NBYTES)
        try:
            backend.copy_host_to_device(buf, host)
        except BaseException:
            backend.free(buf)
            raise
        return cls(backend, buf, host.size)

    # -- accessors -----------------------------------------------------------

    @property
    def backend(self) -> "ComputeBackend":
        return self._backend

    @property
    def released(self) -> bool:
        # A buffer reclaimed by backend shutdown counts as released.
        return self._released or self._buffer is None or self._buffer.freed

    def size(self) -> int:
        return self._length

    def __len__(self) -> int:
        return self._length

    def __repr__(self) -> str:
        state = "released" if self.released else f"buffer=#{self._buffer.handle_id}"
        return f"DeviceVector(size={self._length}, backend={self._backend.name}, {state})"

    def _require_live(self, op: str) -> "BufferHandle":
        if self.released:
            raise UseAfterReleaseError(f"{op}() on a released DeviceVector (size={self._length})")
        return self._buffer

    # -- readback ------------------------------------------------------------

    def to_host(self) -> np.ndarray:
        """Copy the realizations back into a new float32 array of length `size()`."""
        buf = self._require_live("to_host")
        return self._backend.copy_device_to_host(buf, self._length)

    get_realizations = to_host

    def get_average(self) -> float:
        values = self.to_host()
        if values.size == 0:
            return float("nan")
        return float(np.mean(values, dtype=np.float64))

    def get_variance(self) -> float:
        """Population variance, E[X^2] - E[X]^2, accumulated in float64."""
        values = self.to_host().astype(np.float64)
        if values.size == 0:
            return float("nan")
        mean = values.mean()
        return float((values * values).mean() - mean * mean)

    # -- arithmetic ----------------------------------------------------------

    def _binary(self, other: "DeviceVector", kernel_name: str, op: str, chunk_size: Optional[int]) -> "DeviceVector":
        if not isinstance(other, DeviceVector):
            raise TypeError(f"{op}() expects a DeviceVector, got {type(other).__name__}")
        a = self._require_live(op)
        b = other._require_live(op)
        if other._backend is not self._backend:
            raise ValueError(f"{op}() operands live on different backends ({self._backend.name} vs {other._backend.name})")
        if other._length != self._length:
            raise DimensionMismatchError(f"{op}(): size mismatch {self._length} vs {other._length}")

        backend = self._backend
        kernel = backend.load_kernel(kernel_name)
        out = backend.allocate(self._length * FLOAT32_NBYTES)
        try:
            backend.launch(kernel, (a, b, out), self._length, chunk_size)
        except BaseException:
            logger.debug("%s() failed; releasing partial result buffer #%d", op, out.handle_id)
            backend.free(out)
            raise
        return DeviceVector(backend, out, self._length)

    def add(self, other: "DeviceVector", *, chunk_size: Optional[int] = None) -> "DeviceVector":
        return self._binary(other, "vec_add", "add", chunk_size)

    def sub(self, other: "DeviceVector", *, chunk_size: Optional[int] = None) -> "DeviceVector":
        return self._binary(other, "vec_sub", "sub", chunk_size)

    def mult(self, other: "DeviceVector", *, chunk_size: Optional[int] = None) -> "DeviceVector":
        return self._binary(other, "vec_mul", "mult", chunk_size)

    def divide(self, other: "DeviceVector", *, chunk_size: Optional[int] = None) -> "DeviceVector":
        """
        Elementwise `self / other`. Zero divisors are not checked: results
        follow IEEE-754 (x/0 -> +-inf, 0/0 -> nan).
        """
        return self._binary(other, "vec_div", "divide", chunk_size)

    div = divide

    def __add__(self, other: Any) -> "DeviceVector":
        if not isinstance(other, DeviceVector):
            return NotImplemented
        return self.add(other)

    def __sub__(self, other: Any) -> "DeviceVector":
        if not isinstance(other, DeviceVector):
            return NotImplemented
        return self.sub(other)

    def __mul__(self, other: Any) -> "DeviceVector":
        if not isinstance(other, DeviceVector):
            return NotImplemented
        return self.mult(other)

    def __truediv__(self, other: Any) -> "DeviceVector":
        if not isinstance(other, DeviceVector):
            return NotImplemented
        return self.divide(other)

    # -- lifetime ------------------------------------------------------------

    def release(self) -> None:
        """Free the device buffer. Safe to call more than once."""
        if self._released:
            return
        buf, self._buffer = self._buffer, None
        self._released = True
        # The backend may already have reclaimed it at shutdown.
        if buf is not None and not buf.freed:
            self._backend.free(buf)

    def __enter__(self) -> "DeviceVector":
        self._require_live("__enter__")
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()


def realizations_equal(a: DeviceVector, b: DeviceVector) -> bool:
    """Bitwise comparison of two vectors' contents (NaN payloads included)."""
    x = a.to_host()
    y = b.to_host()
    if x.shape != y.shape:
        return False
    return bool(np.array_equal(x.view(np.uint32), y.view(np.uint32)))


__all__ = ["DeviceVector", "realizations_equal"]
