from __future__ import annotations

import shutil

import numpy as np
import pytest

try:
    import torch
except Exception:
    torch = None

from device_vector import DeviceVector, KernelLaunchError, KernelNotFoundError, RuntimeConfig, realizations_equal


def _cuda_available() -> bool:
    if torch is None:
        return False
    try:
        return bool(torch.cuda.is_available())
    except Exception:
        return False


pytestmark = [
    pytest.mark.skipif(not _cuda_available(), reason="CUDA not available"),
    pytest.mark.skipif(shutil.which("nvcc") is None, reason="nvcc not available (torch extension build)"),
]


@pytest.fixture(scope="module")
def backend():
    from backends.cuda import TorchCudaBackend

    with TorchCudaBackend(RuntimeConfig(backend="cuda")) as b:
        yield b


def test_cuda_worked_example(backend):
    a = DeviceVector.from_host(backend, [-4.0, -2.0, 0.0, 2.0, 4.0])
    b = DeviceVector.from_host(backend, [4.0, 4.0, 4.0, 4.0, 4.0])
    c = DeviceVector.from_host(backend, [2.0, 2.0, 2.0, 2.0, 2.0])
    with a, b, c, a.add(b) as s, s.divide(c) as r:
        np.testing.assert_array_equal(r.to_host(), np.array([0, 1, 2, 3, 4], dtype=np.float32))
        assert r.get_average() == pytest.approx(2.0, abs=1e-6)
        assert r.get_variance() == pytest.approx(2.0, abs=1e-6)


def test_cuda_matches_numpy_bitwise(backend):
    rng = np.random.default_rng(0)
    a_np = rng.standard_normal(10_000, dtype=np.float32)
    b_np = rng.standard_normal(10_000, dtype=np.float32)
    a = DeviceVector.from_host(backend, a_np)
    b = DeviceVector.from_host(backend, b_np)
    np.testing.assert_array_equal(a.add(b).to_host(), a_np + b_np)
    np.testing.assert_array_equal(a.sub(b).to_host(), a_np - b_np)
    np.testing.assert_array_equal(a.mult(b).to_host(), a_np * b_np)
    np.testing.assert_array_equal(a.divide(b).to_host(), a_np / b_np)


def test_cuda_divide_by_zero(backend):
    a = DeviceVector.from_host(backend, [1.0, -1.0, 0.0])
    z = DeviceVector.from_host(backend, [0.0, 0.0, 0.0])
    got = a.divide(z).to_host()
    assert got[0] == np.inf and got[1] == -np.inf and np.isnan(got[2])


def test_cuda_chunk_size_invariance(backend):
    rng = np.random.default_rng(1)
    a = DeviceVector.from_host(backend, rng.standard_normal(4099, dtype=np.float32))
    b = DeviceVector.from_host(backend, rng.standard_normal(4099, dtype=np.float32))
    r32, r256, r1024 = (a.add(b, chunk_size=c) for c in (32, 256, 1024))
    assert realizations_equal(r32, r256) and realizations_equal(r256, r1024)


def test_cuda_rejects_oversized_blocks(backend):
    a = DeviceVector.from_host(backend, [1.0])
    live = len(backend.live_buffers())
    with pytest.raises(KernelLaunchError):
        a.add(a, chunk_size=2048)
    assert len(backend.live_buffers()) == live


def test_cuda_kernel_lookup(backend):
    assert set(backend.kernel_names()) == {"vec_add", "vec_sub", "vec_mul", "vec_div"}
    with pytest.raises(KernelNotFoundError):
        backend.load_kernel("vec_fma")
