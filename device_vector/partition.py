"""
Index-space partition for elementwise launches.

`[0, n)` is split into contiguous chunks of `chunk_size` indices; the last
chunk may be short. GPU backends map one chunk to one block/program, the host
backend walks the chunks in order. The partition covers every index exactly
once for any chunk size, so it never changes numeric results.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Tuple


# Bytes per float32 element.
FLOAT32_NBYTES = 4


def ceil_div(a: int, b: int) -> int:
    return (int(a) + int(b) - 1) // int(b)


def validate_chunk_size(chunk_size: int) -> int:
    try:
        c = int(chunk_size)
    except (TypeError, ValueError) as e:
        raise ValueError(f"chunk_size must be an integer, got {chunk_size!r}") from e
    if c <= 0:
        raise ValueError(f"chunk_size must be positive, got {c}")
    return c


def is_pow2(x: int) -> bool:
    return x > 0 and (x & (x - 1)) == 0


@dataclass(frozen=True)
class LaunchPartition:
    element_count: int
    chunk_size: int

    def __post_init__(self) -> None:
        if int(self.element_count) < 0:
            raise ValueError(f"element_count must be non-negative, got {self.element_count}")
        validate_chunk_size(self.chunk_size)

    @property
    def num_chunks(self) -> int:
        return ceil_div(self.element_count, self.chunk_size)

    @property
    def grid(self) -> Tuple[int, int, int]:
        return (self.num_chunks, 1, 1)

    @property
    def block(self) -> Tuple[int, int, int]:
        return (int(self.chunk_size), 1, 1)

    def chunks(self) -> Iterator[Tuple[int, int]]:
        """Yield `(start, stop)` for each chunk, in index order."""
        n = int(self.element_count)
        c = int(self.chunk_size)
        for start in range(0, n, c):
            yield start, min(start + c, n)


__all__ = ["FLOAT32_NBYTES", "LaunchPartition", "ceil_div", "is_pow2", "validate_chunk_size"]
