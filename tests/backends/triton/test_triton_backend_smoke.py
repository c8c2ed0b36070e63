from __future__ import annotations

import numpy as np
import pytest

try:
    import torch
except Exception:
    torch = None

from device_vector import DeviceVector, KernelLaunchError, RuntimeConfig, realizations_equal


def _cuda_available() -> bool:
    if torch is None:
        return False
    try:
        return bool(torch.cuda.is_available())
    except Exception:
        return False


pytestmark = pytest.mark.skipif(not _cuda_available(), reason="CUDA not available")


@pytest.fixture(scope="module")
def backend():
    pytest.importorskip("triton")
    from backends.triton import TritonBackend

    with TritonBackend(RuntimeConfig(backend="triton")) as b:
        yield b


def test_triton_matches_numpy(backend):
    rng = np.random.default_rng(0)
    a_np = rng.uniform(-5, 5, 1000).astype(np.float32)
    b_np = rng.uniform(1, 5, 1000).astype(np.float32)
    a = DeviceVector.from_host(backend, a_np)
    b = DeviceVector.from_host(backend, b_np)
    np.testing.assert_array_equal(a.add(b).to_host(), a_np + b_np)
    np.testing.assert_array_equal(a.divide(b).to_host(), a_np / b_np)


def test_triton_chunk_size_invariance(backend):
    rng = np.random.default_rng(2)
    a = DeviceVector.from_host(backend, rng.standard_normal(3000, dtype=np.float32))
    b = DeviceVector.from_host(backend, rng.standard_normal(3000, dtype=np.float32))
    r32, r256, r1024 = (a.add(b, chunk_size=c) for c in (32, 256, 1024))
    assert realizations_equal(r32, r256) and realizations_equal(r256, r1024)


def test_triton_requires_pow2_chunks(backend):
    a = DeviceVector.from_host(backend, [1.0, 2.0])
    with pytest.raises(KernelLaunchError, match="power of two"):
        a.add(a, chunk_size=100)
