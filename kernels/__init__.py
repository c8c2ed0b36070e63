"""
Elementwise kernel library, one subpackage per backend.

Every backend exposes the same entry-point names:
`vec_add`, `vec_sub`, `vec_mul`, `vec_div` with signature
`(a, b, out, n)` computing `out[i] = a[i] OP b[i]` for `i < n`.
"""

ELEMENTWISE_KERNELS = ("vec_add", "vec_sub", "vec_mul", "vec_div")

__all__ = ["ELEMENTWISE_KERNELS"]
