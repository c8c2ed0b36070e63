"""
CUDA kernel runtime (Torch extension).

Kernel sources are compiled into a tiny Torch CUDA extension at runtime
(torch.utils.cpp_extension.load_inline). This keeps dependencies to only
torch+nvcc (CuPy/cuda-python not required). Build products are cached by
content hash, so the compile happens once per source/flags combination and
later processes load the prebuilt module.
"""

from __future__ import annotations

import hashlib
import logging
import os
import sys
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Tuple

from device_vector.errors import BackendStateError


logger = logging.getLogger(__name__)

# Threads per block on every CUDA architecture we target.
MAX_THREADS_PER_BLOCK = 1024


@dataclass(frozen=True)
class CudaLaunch:
    grid: Tuple[int, int, int]
    block: Tuple[int, int, int]


def _torch() -> Any:
    import torch  # noqa: PLC0415

    return torch


def cuda_free_mem_mb() -> int:
    """
    Best-effort free CUDA memory query.

    This can fail if the CUDA context cannot be created (e.g., GPU OOM); in that
    case we return 0 so callers can surface a clearer error early.
    """
    torch = _torch()
    try:
        if not torch.cuda.is_available():
            return 0
        free, _total = torch.cuda.mem_get_info()
        return int(free // (1024 * 1024))
    except Exception:
        return 0


def _c_type(dt: str) -> str:
    s = str(dt)
    if s == "f32":
        return "float"
    if s == "i32":
        return "int"
    raise BackendStateError(f"unsupported dtype for CUDA runtime: {dt}")


def _hash_src(text: str) -> str:
    return hashlib.sha256(str(text).encode("utf-8")).hexdigest()[:16]


def _default_torch_ext_root() -> Path:
    """
    Default Torch extension build root under the repo.

    Some sandboxed environments forbid writing to `~/.cache/torch_extensions`.
    Keeping build outputs under `artifacts/` also makes runs reproducible.
    """
    root = Path(__file__).resolve().parents[2]
    py_tag = f"py{sys.version_info.major}{sys.version_info.minor}"
    return root / "artifacts" / "torch_extensions" / py_tag


def torch_ext_build_dir(name: str, base: Optional[str] = None) -> Path:
    if base:
        return Path(base) / str(name)
    return _default_torch_ext_root() / str(name)


def _launch_wrapper_src(io_spec: Dict[str, Any]) -> str:
    kernel_name = str(io_spec["kernel_name"])
    arg_names = [str(x) for x in io_spec.get("arg_names") or []]
    tensors = io_spec.get("tensors") if isinstance(io_spec.get("tensors"), dict) else {}
    scalars = io_spec.get("scalars") if isinstance(io_spec.get("scalars"), dict) else {}

    # Tensors as torch::Tensor, scalars as int64_t (cast at the call site).
    sig_args: list[str] = []
    call_args: list[str] = []
    checks: list[str] = []
    for name in arg_names:
        if name in tensors:
            dt = str((tensors.get(name) or {}).get("dtype") or "f32")
            sig_args.append(f"torch::Tensor {name}")
            checks += [
                f"TORCH_CHECK({name}.is_cuda(), \"{name} must be CUDA tensor\");",
                f"TORCH_CHECK({name}.is_contiguous(), \"{name} must be contiguous\");",
            ]
            if dt == "f32":
                checks.append(f"TORCH_CHECK({name}.scalar_type() == at::kFloat, \"{name} must be float32\");")
            call_args.append(f"({_c_type(dt)}*){name}.data_ptr()")
        elif name in scalars:
            sig_args.append(f"int64_t {name}")
            call_args.append(f"({_c_type(str(scalars[name]))}){name}")
        else:
            raise BackendStateError(f"{kernel_name}: arg {name!r} is neither a tensor nor a scalar in io_spec")
    sig_args += ["int64_t grid_x", "int64_t block_x"]

    return f"""
static void launch_{kernel_name}({", ".join(sig_args)}) {{
  {" ".join(checks)}
  // Respect the current PyTorch CUDA stream.
  cudaStream_t stream = at::cuda::getCurrentCUDAStream().stream();
  {kernel_name}<<<dim3((unsigned)grid_x, 1, 1), dim3((unsigned)block_x, 1, 1), 0, stream>>>({", ".join(call_args)});
  cudaError_t err = cudaGetLastError();
  TORCH_CHECK(err == cudaSuccess, "{kernel_name} launch failed: ", cudaGetErrorString(err));
}}
""".strip("\n")


def build_extension_src(cuda_src: str, *, io_specs: Dict[str, Dict[str, Any]]) -> str:
    """
    Wrap kernel-only CUDA source into a Torch extension translation unit that
    exposes one `launch_<kernel>(...)` binding per entry in `io_specs`.
    """
    wrappers = "\n\n".join(_launch_wrapper_src(spec) for spec in io_specs.values())
    defs = "\n".join(
        f'  m.def("launch_{name}", &launch_{name}, "Launch {name}");' for name in io_specs
    )
    return f"""
#include <torch/extension.h>
#include <ATen/cuda/CUDAContext.h>
#include <cuda.h>
#include <cuda_runtime.h>
#include <stdint.h>

{cuda_src}

{wrappers}

PYBIND11_MODULE(TORCH_EXTENSION_NAME, m) {{
{defs}
}}
""".lstrip()


@lru_cache(maxsize=8)
def _load_ext_cached(name: str, cuda_src: str, extra_cuda_cflags: Tuple[str, ...], build_root: Optional[str]) -> Any:
    torch = _torch()
    from torch.utils.cpp_extension import load_inline  # noqa: PLC0415

    # Avoid compiling fatbins for unrelated GPU architectures by default,
    # while still allowing users to override explicitly via env var.
    if not os.getenv("TORCH_CUDA_ARCH_LIST"):
        try:
            major, minor = torch.cuda.get_device_capability()
            os.environ["TORCH_CUDA_ARCH_LIST"] = f"{major}.{minor}"
        except Exception:
            logger.debug("could not query device capability; using torch default arch list")

    build_dir = torch_ext_build_dir(name, build_root)
    build_dir.mkdir(parents=True, exist_ok=True)
    logger.info("loading CUDA extension %s (build dir %s)", name, build_dir)
    return load_inline(
        name=name,
        cpp_sources="",
        cuda_sources=cuda_src,
        functions=None,
        with_cuda=True,
        extra_cuda_cflags=["--std=c++17", *list(extra_cuda_cflags)],
        extra_cflags=["-std=c++17", "-O3"],
        build_directory=str(build_dir),
        verbose=False,
    )


def compile_cuda_extension(
    *,
    module_prefix: str,
    cuda_src: str,
    io_specs: Dict[str, Dict[str, Any]],
    extra_cuda_cflags: Optional[Iterable[str]] = None,
    build_root: Optional[str] = None,
) -> Any:
    """
    Compile (or load from cache) a Torch extension exposing `launch_<kernel>`.

    `--use_fast_math` is never added: elementwise division must keep IEEE
    semantics for zero divisors.
    """
    flags_list = ["-O3"]
    for x in (extra_cuda_cflags or []):
        s = str(x).strip()
        if s:
            flags_list.append(s)
    # De-duplicate while preserving order.
    seen: set[str] = set()
    flags: tuple[str, ...] = tuple(s for s in flags_list if not (s in seen or seen.add(s)))
    full_src = build_extension_src(cuda_src, io_specs=io_specs)
    h = _hash_src(full_src + "\nFLAGS:" + " ".join(flags))
    mod_name = f"{module_prefix}_{h}"
    return _load_ext_cached(mod_name, full_src, flags, build_root)


__all__ = [
    "MAX_THREADS_PER_BLOCK",
    "CudaLaunch",
    "build_extension_src",
    "compile_cuda_extension",
    "cuda_free_mem_mb",
    "torch_ext_build_dir",
]
