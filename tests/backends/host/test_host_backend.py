import logging

import numpy as np
import pytest

from backends.base import BufferHandle
from backends.host import HostBackend
from device_vector import (
    AllocationError,
    BackendStateError,
    DeviceVector,
    KernelLaunchError,
    RuntimeConfig,
    TransferError,
    UseAfterReleaseError,
)


def test_operations_require_initialize():
    backend = HostBackend(RuntimeConfig())
    with pytest.raises(BackendStateError):
        backend.allocate(4)
    with pytest.raises(BackendStateError):
        backend.load_kernel("vec_add")
    assert backend.initialize() is backend
    assert backend.initialize() is backend
    assert backend.initialized


def test_double_free_is_a_caller_error():
    backend = HostBackend(RuntimeConfig()).initialize()
    buf = backend.allocate(8)
    backend.free(buf)
    with pytest.raises(BackendStateError):
        backend.free(buf)


def test_foreign_buffer_is_rejected():
    one = HostBackend(RuntimeConfig()).initialize()
    two = HostBackend(RuntimeConfig()).initialize()
    buf = one.allocate(8)
    with pytest.raises(BackendStateError):
        two.free(buf)
    with pytest.raises(TransferError):
        two.copy_device_to_host(buf, 2)
    with pytest.raises(KernelLaunchError):
        two.launch(two.load_kernel("vec_add"), (buf, buf, buf), 2)


def test_allocation_rules():
    backend = HostBackend(RuntimeConfig(), memory_limit_bytes=64).initialize()
    with pytest.raises(AllocationError):
        backend.allocate(-4)
    with pytest.raises(AllocationError):
        backend.allocate(6)
    bufs = [backend.allocate(16) for _ in range(4)]
    with pytest.raises(AllocationError):
        backend.allocate(4)
    backend.free(bufs[0])
    backend.allocate(16)
    assert backend.live_bytes() == 64


def test_transfer_size_must_match():
    backend = HostBackend(RuntimeConfig()).initialize()
    buf = backend.allocate(8)
    with pytest.raises(TransferError):
        backend.copy_host_to_device(buf, np.zeros(3, dtype=np.float32))
    with pytest.raises(TransferError):
        backend.copy_device_to_host(buf, 3)
    backend.copy_host_to_device(buf, [1.0, 2.0])
    np.testing.assert_array_equal(backend.copy_device_to_host(buf, 2), [1.0, 2.0])


def test_kernel_handles_are_cached():
    backend = HostBackend(RuntimeConfig()).initialize()
    assert backend.load_kernel("vec_div") is backend.load_kernel("vec_div")
    assert set(backend.kernel_names()) == {"vec_add", "vec_sub", "vec_mul", "vec_div"}


def test_launch_checks_arity():
    backend = HostBackend(RuntimeConfig()).initialize()
    buf = backend.allocate(8)
    with pytest.raises(KernelLaunchError):
        backend.launch(backend.load_kernel("vec_add"), (buf, buf), 2)


def test_shutdown_reclaims_leaked_buffers():
    backend = HostBackend(RuntimeConfig())
    with backend:
        kept = DeviceVector.from_host(backend, [1.0, 2.0])
        DeviceVector.from_host(backend, [3.0])
    assert backend.live_buffers() == []
    assert not backend.initialized
    # Releasing after the backend reclaimed the buffer is still a no-op.
    kept.release()
    with pytest.raises(UseAfterReleaseError):
        kept.to_host()
    with pytest.raises(BackendStateError):
        backend.initialize()


def test_shutdown_logs_each_leak(caplog):
    backend = HostBackend(RuntimeConfig()).initialize()
    DeviceVector.from_host(backend, [1.0, 2.0])
    DeviceVector.from_host(backend, [3.0])
    with caplog.at_level(logging.WARNING, logger="backends.base"):
        backend.shutdown()
    leaks = [r for r in caplog.records if "leaked buffer" in r.getMessage()]
    assert len(leaks) == 2
    backend.shutdown()


def test_vectors_are_released_once_shutdown_reclaims_them():
    backend = HostBackend(RuntimeConfig()).initialize()
    v = DeviceVector.from_host(backend, [1.0, 2.0])
    w = DeviceVector.from_host(backend, [3.0, 4.0])
    backend.shutdown()
    assert v.released and w.released
    assert "released" in repr(v)
    with pytest.raises(UseAfterReleaseError):
        v.to_host()
    with pytest.raises(TransferError):
        v.add(w)
    with pytest.raises(UseAfterReleaseError):
        w.divide(v)
    v.release()
    v.release()


def test_shutdown_before_initialize_is_a_noop():
    backend = HostBackend(RuntimeConfig())
    backend.shutdown()
    assert backend.initialize() is backend
    v = DeviceVector.from_host(backend, [2.0])
    np.testing.assert_array_equal(v.to_host(), [2.0])
    v.release()
    backend.shutdown()
    with pytest.raises(BackendStateError):
        backend.initialize()


def test_zero_memory_limit_means_unlimited():
    backend = HostBackend(RuntimeConfig(), memory_limit_bytes=0).initialize()
    assert backend.memory_limit_bytes is None
    backend.allocate(1 << 20)
    assert HostBackend(RuntimeConfig(host_memory_limit_mb=0)).memory_limit_bytes is None
    assert HostBackend(RuntimeConfig(), memory_limit_bytes=8).memory_limit_bytes == 8


def test_buffer_handles_are_unique():
    backend = HostBackend(RuntimeConfig()).initialize()
    bufs = [backend.allocate(4) for _ in range(10)]
    assert len({b.handle_id for b in bufs}) == 10
    assert all(isinstance(b, BufferHandle) and b.backend_name == "host" for b in bufs)
