import pytest

import backends
from backends.host import HostBackend
from device_vector import RuntimeConfig


def test_builtin_backends_are_listed():
    assert {"host", "cuda", "triton"} <= set(backends.available())


def test_get_backend_uses_config_name():
    backend = backends.get_backend(config=RuntimeConfig(backend="host", chunk_size=64))
    assert isinstance(backend, HostBackend)
    assert backend.config.chunk_size == 64
    assert not backend.initialized


def test_get_backend_passes_kwargs():
    backend = backends.get_backend("HOST", RuntimeConfig(), memory_limit_bytes=128)
    assert backend.memory_limit_bytes == 128


def test_unknown_backend():
    with pytest.raises(KeyError, match="opencl"):
        backends.get_backend("opencl", RuntimeConfig())
