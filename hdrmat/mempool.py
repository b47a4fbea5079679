"""A first-fit memory pool over simulated address space.

Regions are obtained from a simulated system allocator and carved into
blocks.  Freed blocks are merged with free neighbours, and a region that
becomes entirely free again is handed back at once.  Requests larger than
``used_big_size`` are served from a separate list of big regions.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace
from typing import Optional

NEED_MALLOC_BIG_SIZE = 4000 << 20
USED_BIG_SIZE = 4000 << 20
PREALLOC_SIZE = 128
BIG_BLOCK_EXTRA = 4 << 20
SMALL_EXTEND_MIN = 20 << 20
BIG_EXTEND_MIN = 40 << 20
ALIGNMENT = 64
_FIRST_BASE = 0x100000


@dataclass
class MemBlock:
    """A run of ``size`` bytes starting at ``address``."""

    address: int
    size: int
    available: bool


@dataclass
class _Arena:
    blocks: list[MemBlock] = field(default_factory=list)
    regions: list[MemBlock] = field(default_factory=list)
    current: int = 0
    used: int = 0

    def clear(self) -> None:
        self.blocks.clear()
        self.regions.clear()
        self.current = 0
        self.used = 0

    def add_region(self, address: int, size: int) -> None:
        self.regions.append(MemBlock(address, size, True))
        self.blocks.append(MemBlock(address, size, True))

    def find(self, size: int) -> Optional[int]:
        """Index of the first free block of at least ``size`` bytes."""
        for index, block in enumerate(self.blocks):
            if block.available and block.size >= size:
                return index
        return None

    def take(self, index: int, size: int) -> int:
        block = self.blocks[index]
        original = block.size
        block.available = False
        block.size = size
        if original > size:
            self.blocks.insert(
                index + 1, MemBlock(block.address + size, original - size, True)
            )
            index += 1
        self.current = index
        self.used += size
        return block.address

    def free(self, address: int) -> bool:
        index = next(
            (
                i
                for i, block in enumerate(self.blocks)
                if not block.available and block.address == address
            ),
            None,
        )
        if index is None:
            return False
        block = self.blocks[index]
        block.available = True
        self.current = index
        self.used -= block.size

        if index + 1 < len(self.blocks):
            following = self.blocks[index + 1]
            if following.available and following.address == block.address + block.size:
                block.size += following.size
                del self.blocks[index + 1]

        if index > 0:
            previous = self.blocks[index - 1]
            if previous.available and previous.address + previous.size == block.address:
                previous.size += block.size
                del self.blocks[index]
                self.current = index - 1

        for region in list(self.regions):
            if not self.blocks:
                break
            current = self.blocks[self.current]
            if (
                current.available
                and current.address == region.address
                and current.size == region.size
            ):
                del self.blocks[self.current]
                if self.current >= len(self.blocks):
                    self.current = 0
                self.regions.remove(region)
        return True


class MemPool:
    """Reference-counted pool handing out 64-byte aligned sizes, first fit."""

    def __init__(
        self,
        big_threshold: int = NEED_MALLOC_BIG_SIZE,
        used_big_size: int = USED_BIG_SIZE,
    ) -> None:
        self._big_threshold = big_threshold
        self._used_big_size = used_big_size
        self._lock = threading.Lock()
        self._ref_count = 0
        self._small = _Arena()
        self._big = _Arena()
        self._next_base = _FIRST_BASE

    def _system_allocate(self, arena: _Arena, size: int) -> None:
        base = self._next_base
        # Leave a gap so that separate regions are never adjacent.
        self._next_base = base + size + 2 * PREALLOC_SIZE
        arena.add_region(base + PREALLOC_SIZE, size)

    def _big_block_size(self, size: int) -> int:
        return size * 3 // 5 + BIG_BLOCK_EXTRA

    @staticmethod
    def _check_size(size: int) -> None:
        if size < 0:
            raise ValueError("size must not be negative")

    def create(self, size: int) -> None:
        """Add a region of ``size`` bytes and take a reference on the pool."""
        self._check_size(size)
        with self._lock:
            if self._ref_count <= 0:
                self._ref_count = 0
                self._small.clear()
                if size > self._big_threshold:
                    self._big.clear()
            if size > self._big_threshold:
                big_size = self._big_block_size(size)
                self._system_allocate(self._big, big_size)
                size = max(size - big_size, 0)
            self._system_allocate(self._small, size)
            self._ref_count += 1
            if self._ref_count == 1:
                self._small.current = 0
                self._big.current = 0

    def release(self) -> bool:
        """Drop a reference; free every region when none is left.

        Returns True when the pool's storage was freed.
        """
        with self._lock:
            self._ref_count -= 1
            if self._ref_count > 0:
                return False
            self._small.clear()
            self._big.clear()
            self._ref_count = 0
            return True

    def allocate(self, size: int) -> int:
        """Reserve ``size`` bytes, rounded up to 64, and return their address."""
        self._check_size(size)
        with self._lock:
            size = (size + ALIGNMENT - 1) // ALIGNMENT * ALIGNMENT
            if size > self._used_big_size:
                arena, minimum = self._big, BIG_EXTEND_MIN
            else:
                arena, minimum = self._small, SMALL_EXTEND_MIN
            index = arena.find(size)
            if index is None:
                self._system_allocate(arena, max(2 * size, minimum))
                arena.current = len(arena.blocks) - 1
                index = arena.find(size)
            if index is None:
                raise MemoryError(f"cannot allocate {size} bytes")
            return arena.take(index, size)

    def preallocate(self, size: int, big: bool = False) -> int:
        """Reserve exactly ``size`` bytes from existing regions, without growing."""
        self._check_size(size)
        with self._lock:
            arena = self._big if big else self._small
            index = arena.find(size)
            if index is None:
                raise MemoryError(f"no free block of {size} bytes to preallocate")
            return arena.take(index, size)

    def deallocate(self, address: Optional[int]) -> bool:
        """Return a block to the pool; False if ``address`` is not in use."""
        if address is None:
            return False
        with self._lock:
            if self._big.free(address):
                return True
            return self._small.free(address)

    def blocks(self, big: bool = False) -> tuple[MemBlock, ...]:
        """Snapshot of the blocks in the small or big list, in address order."""
        with self._lock:
            arena = self._big if big else self._small
            return tuple(replace(block) for block in arena.blocks)

    def used_bytes(self, big: bool = False) -> int:
        """Bytes currently handed out from the small or big list."""
        with self._lock:
            return (self._big if big else self._small).used