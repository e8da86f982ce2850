import pytest

from teachos.allocator import HEADER_SIZE, MIN_UNITS, Heap


def test_sbrk_returns_old_break():
    heap = Heap(base=0x1000)
    assert heap.sbrk(0) == 0x1000
    assert heap.sbrk(10) == 0x1000
    assert heap.sbrk(0) == 0x1000 + 10


def test_sbrk_past_capacity_raises():
    heap = Heap(capacity=16)
    with pytest.raises(MemoryError):
        heap.sbrk(17)


def test_sbrk_below_base_raises():
    heap = Heap(base=0x1000)
    with pytest.raises(MemoryError):
        heap.sbrk(-1)


def test_first_malloc_grabs_minimum_chunk():
    heap = Heap()
    heap.malloc(1)
    assert heap.sbrk(0) == MIN_UNITS * HEADER_SIZE


def test_free_restores_free_list():
    heap = Heap()
    ptr = heap.malloc(100)
    assert heap.free_units() < MIN_UNITS
    heap.free(ptr)
    assert heap.free_units() == MIN_UNITS


def test_blocks_are_disjoint_and_inside_heap():
    heap = Heap(base=0x2000)
    sizes = [1, 7, 8, 9, 100, 1000, 3]
    blocks = sorted((heap.malloc(n), n) for n in sizes)
    end = heap.sbrk(0)
    for (a, na), (b, _) in zip(blocks, blocks[1:]):
        assert a + na <= b - HEADER_SIZE
    for ptr, n in blocks:
        assert heap.base < ptr
        assert ptr + n <= end


def test_same_size_reuses_freed_block():
    heap = Heap()
    ptr = heap.malloc(64)
    heap.free(ptr)
    assert heap.malloc(64) == ptr


def test_double_free_raises():
    heap = Heap()
    ptr = heap.malloc(10)
    heap.free(ptr)
    with pytest.raises(ValueError):
        heap.free(ptr)


def test_free_unknown_pointer_raises():
    heap = Heap()
    heap.malloc(10)
    with pytest.raises(ValueError):
        heap.free(12345)


def test_malloc_without_room_raises():
    heap = Heap(capacity=100)
    with pytest.raises(MemoryError):
        heap.malloc(1)


def test_large_request_grows_by_exact_units():
    heap = Heap()
    nbytes = MIN_UNITS * HEADER_SIZE * 2
    heap.malloc(nbytes)
    units = (nbytes + HEADER_SIZE - 1) // HEADER_SIZE + 1
    assert heap.sbrk(0) == units * HEADER_SIZE
    assert heap.free_units() == 0


def test_coalescing_allows_one_large_block():
    heap = Heap()
    ptrs = [heap.malloc(500) for _ in range(5)]
    grown = heap.sbrk(0)
    for ptr in (ptrs[2], ptrs[0], ptrs[4], ptrs[1], ptrs[3]):
        heap.free(ptr)
    total = heap.free_units()
    assert total * HEADER_SIZE == grown
    heap.malloc((total - 1) * HEADER_SIZE)
    assert heap.sbrk(0) == grown
    assert heap.free_units() == 0


def test_malloc_negative_raises():
    heap = Heap()
    with pytest.raises(ValueError):
        heap.malloc(-1)