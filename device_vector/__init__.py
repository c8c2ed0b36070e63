"""
Device-resident float32 vectors with elementwise arithmetic dispatched to a
compute backend (see `backends`).
"""

from .config import RuntimeConfig  # noqa: F401
from .errors import (  # noqa: F401
    AllocationError,
    BackendStateError,
    DeviceError,
    DimensionMismatchError,
    KernelLaunchError,
    KernelNotFoundError,
    TransferError,
    UseAfterReleaseError,
)
from .partition import FLOAT32_NBYTES, LaunchPartition  # noqa: F401
from .vector import DeviceVector, realizations_equal  # noqa: F401

__version__ = "0.1.0"

__all__ = [
    "AllocationError",
    "BackendStateError",
    "DeviceError",
    "DeviceVector",
    "DimensionMismatchError",
    "FLOAT32_NBYTES",
    "KernelLaunchError",
    "KernelNotFoundError",
    "LaunchPartition",
    "RuntimeConfig",
    "TransferError",
    "UseAfterReleaseError",
    "realizations_equal",
]
