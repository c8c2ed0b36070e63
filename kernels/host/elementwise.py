"""
NumPy reference kernels for the host backend.

Each kernel writes into a slice of the output view, so the host backend can
execute a launch chunk by chunk the way a GPU runs one block per chunk.
"""

from __future__ import annotations

from typing import Callable, Dict

import numpy as np


HOST_KERNELS: Dict[str, Callable[..., np.ndarray]] = {
    "vec_add": np.add,
    "vec_sub": np.subtract,
    "vec_mul": np.multiply,
    # Unguarded IEEE division: x/0 -> +-inf, 0/0 -> nan.
    "vec_div": np.divide,
}


def run_chunk(kernel: Callable[..., np.ndarray], a: np.ndarray, b: np.ndarray, out: np.ndarray, start: int, stop: int) -> None:
    with np.errstate(divide="ignore", invalid="ignore", over="ignore", under="ignore"):
        kernel(a[start:stop], b[start:stop], out=out[start:stop])


__all__ = ["HOST_KERNELS", "run_chunk"]
