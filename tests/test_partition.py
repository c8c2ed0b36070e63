import pytest

from device_vector.partition import LaunchPartition, ceil_div, is_pow2, validate_chunk_size


def test_ceil_div():
    assert ceil_div(0, 256) == 0
    assert ceil_div(1, 256) == 1
    assert ceil_div(256, 256) == 1
    assert ceil_div(257, 256) == 2


@pytest.mark.parametrize("n,chunk", [(0, 32), (1, 32), (5, 256), (1000, 32), (1024, 1024), (1025, 1024), (777, 7)])
def test_chunks_cover_every_index_exactly_once(n, chunk):
    p = LaunchPartition(n, chunk)
    seen = []
    for start, stop in p.chunks():
        assert 0 <= start < stop <= n
        assert stop - start <= chunk
        seen.extend(range(start, stop))
    assert seen == list(range(n))
    assert len(list(p.chunks())) == p.num_chunks


def test_grid_and_block():
    p = LaunchPartition(1000, 256)
    assert p.num_chunks == 4
    assert p.grid == (4, 1, 1)
    assert p.block == (256, 1, 1)


def test_invalid_partition():
    with pytest.raises(ValueError):
        LaunchPartition(-1, 256)
    with pytest.raises(ValueError):
        LaunchPartition(10, 0)
    with pytest.raises(ValueError):
        validate_chunk_size("abc")


def test_is_pow2():
    assert [x for x in range(0, 20) if is_pow2(x)] == [1, 2, 4, 8, 16]
