import pytest

from hdrmat.mempool import MemBlock, MemPool


def _pool():
    pool = MemPool()
    pool.create(1024)
    return pool


def test_allocate_rounds_to_64_and_splits():
    pool = _pool()
    address = pool.allocate(10)
    blocks = pool.blocks()
    assert pool.used_bytes() == 64
    assert blocks[0] == MemBlock(address, 64, False)
    assert blocks[1].available
    assert blocks[1].address == address + 64
    assert sum(b.size for b in blocks) == 1024


def test_allocations_do_not_overlap():
    pool = _pool()
    sizes = [64, 128, 100, 1]
    addresses = [pool.allocate(s) for s in sizes]
    used = sorted(
        (b.address, b.address + b.size) for b in pool.blocks() if not b.available
    )
    assert len(used) == len(sizes)
    for (_, end), (start, _) in zip(used, used[1:]):
        assert end <= start
    assert len(set(addresses)) == len(addresses)


def test_freeing_everything_returns_region():
    pool = _pool()
    a = pool.allocate(64)
    b = pool.allocate(64)
    assert pool.deallocate(a) is True
    assert len(pool.blocks()) == 3
    assert pool.deallocate(b) is True
    assert pool.blocks() == ()
    assert pool.used_bytes() == 0


def test_free_merges_neighbours():
    pool = _pool()
    a = pool.allocate(64)
    b = pool.allocate(64)
    c = pool.allocate(64)
    pool.deallocate(a)
    pool.deallocate(b)
    blocks = pool.blocks()
    assert blocks[0] == MemBlock(a, 128, True)
    assert blocks[1].address == c and not blocks[1].available
    assert pool.used_bytes() == 64


def test_unknown_and_double_free_are_rejected():
    pool = _pool()
    a = pool.allocate(64)
    pool.allocate(64)
    assert pool.deallocate(None) is False
    assert pool.deallocate(a + 1) is False
    assert pool.deallocate(a) is True
    assert pool.deallocate(a) is False


def test_allocate_grows_pool_when_full():
    pool = _pool()
    address = pool.allocate(2048)
    blocks = pool.blocks()
    assert blocks[0] == MemBlock(blocks[0].address, 1024, True)
    assert blocks[1] == MemBlock(address, 2048, False)
    assert blocks[2].available
    assert pool.used_bytes() == 2048


def test_big_requests_use_big_list():
    pool = MemPool(big_threshold=1 << 20, used_big_size=4096)
    pool.create(1024)
    address = pool.allocate(8192)
    assert pool.used_bytes(True) == 8192
    assert pool.used_bytes(False) == 0
    assert any(b.address == address and not b.available for b in pool.blocks(True))
    assert pool.deallocate(address) is True
    assert pool.used_bytes(True) == 0


def test_create_large_splits_between_lists():
    pool = MemPool(big_threshold=1 << 20, used_big_size=4096)
    pool.create(2 << 20)
    big_total = sum(b.size for b in pool.blocks(True))
    small_total = sum(b.size for b in pool.blocks(False))
    assert big_total > 2 << 20
    assert small_total == 0


def test_preallocate_takes_exact_size():
    pool = _pool()
    address = pool.preallocate(100, False)
    blocks = pool.blocks()
    assert blocks[0] == MemBlock(address, 100, False)
    assert pool.used_bytes() == 100
    with pytest.raises(MemoryError):
        pool.preallocate(5000, False)


def test_release_is_reference_counted():
    pool = MemPool()
    pool.create(1024)
    pool.create(1024)
    pool.allocate(64)
    assert pool.release() is False
    assert len(pool.blocks()) > 0
    assert pool.release() is True
    assert pool.blocks() == ()
    assert pool.used_bytes() == 0


def test_negative_sizes_raise():
    pool = _pool()
    with pytest.raises(ValueError):
        pool.allocate(-1)
    with pytest.raises(ValueError):
        pool.create(-5)
    with pytest.raises(ValueError):
        pool.preallocate(-1, False)


def test_blocks_returns_snapshot():
    pool = _pool()
    pool.allocate(64)
    snapshot = pool.blocks()
    snapshot[0].available = True
    assert pool.blocks()[0].available is False