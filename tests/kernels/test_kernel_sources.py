import dataclasses

import pytest

from backends.cuda.runtime import CudaLaunch, build_extension_src
from device_vector.errors import BackendStateError
from kernels import ELEMENTWISE_KERNELS
from kernels.cuda.ops.elementwise import elementwise_io, list_kernel_entries, read_elementwise_source
from kernels.host.elementwise import HOST_KERNELS


def test_cuda_source_declares_every_kernel():
    src = read_elementwise_source()
    assert list_kernel_entries(src) == list(ELEMENTWISE_KERNELS)
    assert "--use_fast_math" not in src


def test_list_kernel_entries():
    src = """
    extern "C" __global__ void foo(float* a) {}
    __global__  void bar_2 (int n) {}
    __device__ float helper(float x) { return x; }
    """
    assert list_kernel_entries(src) == ["foo", "bar_2"]


def test_extension_source_binds_each_launcher():
    src = build_extension_src(read_elementwise_source(), io_specs=elementwise_io)
    assert "PYBIND11_MODULE(TORCH_EXTENSION_NAME, m)" in src
    for name in ELEMENTWISE_KERNELS:
        assert f'm.def("launch_{name}", &launch_{name}' in src
        assert f"static void launch_{name}(torch::Tensor A, torch::Tensor B, torch::Tensor C, int64_t N, int64_t grid_x, int64_t block_x)" in src
        assert f"{name}<<<" in src
    assert "(int)N" in src


def test_every_backend_ships_the_same_kernel_names():
    assert set(HOST_KERNELS) == set(ELEMENTWISE_KERNELS)
    assert set(elementwise_io) == set(ELEMENTWISE_KERNELS)


def test_launch_carries_only_grid_and_block():
    assert [f.name for f in dataclasses.fields(CudaLaunch)] == ["grid", "block"]


def test_wrapper_rejects_unsupported_scalar_dtype():
    io = {"kernel_name": "k", "arg_names": ["A", "N"], "tensors": {"A": {"dtype": "f32"}}, "scalars": {"N": "i64"}}
    with pytest.raises(BackendStateError):
        build_extension_src("", io_specs={"k": io})
