"""
Backend registry (backend name -> ComputeBackend class).

MVP: a simple in-process dict. Built-in backends are imported lazily so the
host backend works without torch/triton installed.
"""

from __future__ import annotations

import importlib
from typing import Dict, Optional, Type

from backends.base import ComputeBackend
from device_vector.config import RuntimeConfig

_REGISTRY: Dict[str, Type[ComputeBackend]] = {}

_LAZY = {
    "host": ("backends.host.backend", "HostBackend"),
    "cuda": ("backends.cuda.backend", "TorchCudaBackend"),
    "triton": ("backends.triton.backend", "TritonBackend"),
}


def register(cls: Type[ComputeBackend]) -> Type[ComputeBackend]:
    _REGISTRY[cls.name] = cls
    return cls


def available() -> list[str]:
    return sorted(set(_REGISTRY) | set(_LAZY))


def get_backend_class(name: str) -> Type[ComputeBackend]:
    key = str(name).lower()
    if key not in _REGISTRY and key in _LAZY:
        mod_name, cls_name = _LAZY[key]
        register(getattr(importlib.import_module(mod_name), cls_name))
    if key not in _REGISTRY:
        raise KeyError(f"compute backend not registered: {name} (available: {available()})")
    return _REGISTRY[key]


def get_backend(name: Optional[str] = None, config: Optional[RuntimeConfig] = None, **kwargs) -> ComputeBackend:
    """
    Construct (but do not initialize) a backend. `name` defaults to
    `config.backend`, i.e. `DEVVEC_BACKEND`.
    """
    cfg = config or RuntimeConfig.from_env()
    return get_backend_class(name or cfg.backend)(cfg, **kwargs)


__all__ = ["ComputeBackend", "available", "get_backend", "get_backend_class", "register"]
