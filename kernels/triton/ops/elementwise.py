import torch
import triton
import triton.language as tl


@triton.jit
def vec_add_kernel(A_ptr, B_ptr, C_ptr, N, BLOCK_SIZE: tl.constexpr):
    pid = tl.program_id(0)
    offs = pid * BLOCK_SIZE + tl.arange(0, BLOCK_SIZE)
    mask = offs < N
    a = tl.load(A_ptr + offs, mask=mask, other=0.0)
    b = tl.load(B_ptr + offs, mask=mask, other=0.0)
    tl.store(C_ptr + offs, a + b, mask=mask)


@triton.jit
def vec_sub_kernel(A_ptr, B_ptr, C_ptr, N, BLOCK_SIZE: tl.constexpr):
    pid = tl.program_id(0)
    offs = pid * BLOCK_SIZE + tl.arange(0, BLOCK_SIZE)
    mask = offs < N
    a = tl.load(A_ptr + offs, mask=mask, other=0.0)
    b = tl.load(B_ptr + offs, mask=mask, other=0.0)
    tl.store(C_ptr + offs, a - b, mask=mask)


@triton.jit
def vec_mul_kernel(A_ptr, B_ptr, C_ptr, N, BLOCK_SIZE: tl.constexpr):
    pid = tl.program_id(0)
    offs = pid * BLOCK_SIZE + tl.arange(0, BLOCK_SIZE)
    mask = offs < N
    a = tl.load(A_ptr + offs, mask=mask, other=0.0)
    b = tl.load(B_ptr + offs, mask=mask, other=0.0)
    tl.store(C_ptr + offs, a * b, mask=mask)


@triton.jit
def vec_div_kernel(A_ptr, B_ptr, C_ptr, N, BLOCK_SIZE: tl.constexpr):
    pid = tl.program_id(0)
    offs = pid * BLOCK_SIZE + tl.arange(0, BLOCK_SIZE)
    mask = offs < N
    a = tl.load(A_ptr + offs, mask=mask, other=0.0)
    # Masked lanes load 1.0 so they never divide by zero.
    b = tl.load(B_ptr + offs, mask=mask, other=1.0)
    # IEEE round-to-nearest division (plain `/` may lower to an approximation).
    tl.store(C_ptr + offs, tl.math.div_rn(a, b), mask=mask)


TRITON_KERNELS = {
    "vec_add": vec_add_kernel,
    "vec_sub": vec_sub_kernel,
    "vec_mul": vec_mul_kernel,
    "vec_div": vec_div_kernel,
}


def launch_elementwise(kernel, A: torch.Tensor, B: torch.Tensor, C: torch.Tensor, N: int, BLOCK_SIZE: int = 256) -> None:
    if A.dtype != torch.float32 or B.dtype != torch.float32 or C.dtype != torch.float32:
        raise TypeError("elementwise kernels expect float32 tensors")
    grid = (triton.cdiv(N, BLOCK_SIZE),)
    kernel[grid](A, B, C, N, BLOCK_SIZE=BLOCK_SIZE)


__all__ = ["TRITON_KERNELS", "launch_elementwise", "vec_add_kernel", "vec_div_kernel", "vec_mul_kernel", "vec_sub_kernel"]
