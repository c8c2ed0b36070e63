"""
Runtime configuration read from `DEVVEC_*` environment variables.

Malformed values never raise: they fall back to the default, the same way the
CUDA runner treats its tuning knobs.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Optional


DEFAULT_BACKEND = "host"
DEFAULT_CHUNK_SIZE = 256
DEFAULT_DEVICE = "cuda"


def _env_int(name: str, default: int, *, minimum: int = 0) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        v = int(raw.strip())
    except ValueError:
        return default
    if v < minimum:
        return default
    return v


def _env_str(name: str, default: Optional[str]) -> Optional[str]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


@dataclass(frozen=True)
class RuntimeConfig:
    backend: str = DEFAULT_BACKEND
    chunk_size: int = DEFAULT_CHUNK_SIZE
    device: str = DEFAULT_DEVICE
    # 0 means unlimited.
    host_memory_limit_mb: int = 0
    torch_ext_dir: Optional[str] = None

    @classmethod
    def from_env(cls) -> "RuntimeConfig":
        return cls(
            backend=str(_env_str("DEVVEC_BACKEND", DEFAULT_BACKEND)).lower(),
            chunk_size=_env_int("DEVVEC_CHUNK_SIZE", DEFAULT_CHUNK_SIZE, minimum=1),
            device=str(_env_str("DEVVEC_DEVICE", DEFAULT_DEVICE)),
            host_memory_limit_mb=_env_int("DEVVEC_HOST_MEMORY_LIMIT_MB", 0),
            torch_ext_dir=_env_str("DEVVEC_TORCH_EXT_DIR", None),
        )

    @property
    def host_memory_limit_bytes(self) -> Optional[int]:
        if self.host_memory_limit_mb <= 0:
            return None
        return int(self.host_memory_limit_mb) * 1024 * 1024

    def with_overrides(self, **kwargs) -> "RuntimeConfig":
        return replace(self, **{k: v for k, v in kwargs.items() if v is not None})


__all__ = ["DEFAULT_BACKEND", "DEFAULT_CHUNK_SIZE", "DEFAULT_DEVICE", "RuntimeConfig"]
