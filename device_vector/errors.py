"""
Error taxonomy for device vectors and compute backends.

Backend-originating failures (allocation, transfer, launch, kernel lookup) are
raised by the backend and propagate unchanged through `DeviceVector`.
"""

from __future__ import annotations


class DeviceError(RuntimeError):
    pass


class AllocationError(DeviceError):
    pass


class TransferError(DeviceError):
    pass


class KernelLaunchError(DeviceError):
    pass


class KernelNotFoundError(DeviceError):
    pass


class BackendStateError(DeviceError):
    """
    Backend used outside its init/shutdown lifecycle, or handed a buffer it
    does not own (already freed, or allocated by another backend).
    """


class DimensionMismatchError(DeviceError, ValueError):
    pass


class UseAfterReleaseError(TransferError):
    # A released vector no longer has a valid device region, so reads of it
    # are transfer failures as well.
    pass


__all__ = [
    "AllocationError",
    "BackendStateError",
    "DeviceError",
    "DimensionMismatchError",
    "KernelLaunchError",
    "KernelNotFoundError",
    "TransferError",
    "UseAfterReleaseError",
]
