from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Dict, List


ELEMENTWISE_CU_PATH = Path(__file__).with_name("elementwise.cu")

_KERNEL_DECL_RE = re.compile(r"__global__\s+void\s+(?P<name>[A-Za-z_][A-Za-z0-9_]*)\s*\(", re.M)


def _binary_io(kernel_name: str) -> Dict[str, Any]:
    return {
        # Matches kernel parameter order.
        "arg_names": ["A", "B", "C", "N"],
        "tensors": {
            "A": {"dtype": "f32", "rank": 1, "shape": ["N"]},
            "B": {"dtype": "f32", "rank": 1, "shape": ["N"]},
            "C": {"dtype": "f32", "rank": 1, "shape": ["N"]},
        },
        "scalars": {"N": "i32"},
        "kernel_name": kernel_name,
    }


elementwise_io: Dict[str, Dict[str, Any]] = {
    name: _binary_io(name) for name in ("vec_add", "vec_sub", "vec_mul", "vec_div")
}


def read_elementwise_source() -> str:
    return ELEMENTWISE_CU_PATH.read_text(encoding="utf-8")


def list_kernel_entries(cuda_src: str) -> List[str]:
    """Names of the `__global__` entry points declared in `cuda_src`, in order."""
    return [m.group("name") for m in _KERNEL_DECL_RE.finditer(str(cuda_src))]


__all__ = ["ELEMENTWISE_CU_PATH", "elementwise_io", "list_kernel_entries", "read_elementwise_source"]
