from __future__ import annotations

import heapq
from typing import Any, Iterator, Optional

from errors import ConsistencyFault
from models import Occupant


class SlotTable:
    """
    固定長の区画テーブル（容量 N、区画番号は 1..N）

    各セルは None（空き）か Occupant。
    空き区画は index の Min-Heap で管理し、自動割当は最小番号を返す。

    ※ 区画指定の予約では heap の途中の要素を取り除けないため、
      heap 内に「古いデータ」（使用中の index）が残る。
      参照時にセルを確認して使用中なら捨てる（lazy deletion）。
    """

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be > 0")
        self._capacity = capacity
        self._cells: list[Optional[Occupant]] = [None] * capacity
        self._occupied = 0
        self._free_heap: list[int] = list(range(capacity))
        self._in_heap: set[int] = set(self._free_heap)

    @property
    def capacity(self) -> int:
        return self._capacity

    # -------------------------
    # 参照
    # -------------------------
    def in_range(self, slot: int) -> bool:
        return 1 <= slot <= self._capacity

    def get(self, slot: int) -> Optional[Occupant]:
        return self._cells[self._index(slot)]

    def is_free(self, slot: int) -> bool:
        return self.get(slot) is None

    def occupied_count(self) -> int:
        return self._occupied

    def free_count(self) -> int:
        return self._capacity - self._occupied

    def is_full(self) -> bool:
        return self._occupied == self._capacity

    def first_free(self) -> Optional[int]:
        """
        最小番号の空き区画（1-based）。heap からは取り出さない。
        使用中の古い要素が先頭に来たら捨てて続行する。
        """
        while self._free_heap:
            idx = self._free_heap[0]
            if self._cells[idx] is None:
                return idx + 1
            heapq.heappop(self._free_heap)
            self._in_heap.discard(idx)
        return None

    def __iter__(self) -> Iterator[Optional[Occupant]]:
        return iter(self._cells)

    def __len__(self) -> int:
        return self._capacity

    # -------------------------
    # 更新
    # -------------------------
    def occupy(self, slot: int, occupant: Occupant) -> None:
        idx = self._index(slot)
        if self._cells[idx] is not None:
            raise ConsistencyFault(f"slot {slot} is already occupied")
        self._cells[idx] = occupant
        self._occupied += 1

    def release(self, slot: int) -> Occupant:
        idx = self._index(slot)
        occupant = self._cells[idx]
        if occupant is None:
            raise ConsistencyFault(f"slot {slot} is already empty")
        self._cells[idx] = None
        self._occupied -= 1
        if idx not in self._in_heap:
            heapq.heappush(self._free_heap, idx)
            self._in_heap.add(idx)
        return occupant

    def clear(self) -> None:
        self._cells = [None] * self._capacity
        self._occupied = 0
        self._free_heap = list(range(self._capacity))
        self._in_heap = set(self._free_heap)

    def to_list(self) -> list[Optional[dict[str, Any]]]:
        return [None if c is None else c.to_dict() for c in self._cells]

    # -------------------------
    # 内部
    # -------------------------
    def _index(self, slot: int) -> int:
        if not self.in_range(slot):
            raise IndexError(f"slot {slot} out of range 1..{self._capacity}")
        return slot - 1
