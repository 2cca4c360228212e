from __future__ import annotations

from datetime import datetime
from typing import Any, Iterator, List, Optional, Tuple

from models import Reservation

# 旧版（ブラウザ版）の toLocaleString() 形式
_LEGACY_FORMATS = (
    "%m/%d/%Y, %I:%M:%S %p",
    "%m/%d/%Y, %H:%M:%S",
)


def parse_timestamp(timestamp: str) -> Optional[datetime]:
    """
    ISO-8601 または旧形式の時刻を naive なローカル時刻に揃える。
    解釈できなければ None。
    """
    try:
        dt = datetime.fromisoformat(timestamp)
    except (TypeError, ValueError):
        dt = None
        for fmt in _LEGACY_FORMATS:
            try:
                dt = datetime.strptime(timestamp, fmt)
                break
            except (TypeError, ValueError):
                continue
    if dt is None:
        return None
    if dt.tzinfo is not None:
        try:
            dt = dt.astimezone().replace(tzinfo=None)
        except (OverflowError, ValueError, OSError):
            dt = dt.replace(tzinfo=None)
    return dt


def _time_key(r: Reservation) -> Tuple[int, datetime]:
    # 解釈できない時刻は末尾（同士の順序は安定ソートで維持）
    dt = parse_timestamp(r.timestamp)
    if dt is None:
        return (1, datetime.min)
    return (0, dt)


class ReservationList:
    """
    有効な予約の一覧（配列）
    append: O(1)
    remove / find / search: O(n)
    sort: O(n log n)（安定ソート）
    reverse: O(n)
    """

    def __init__(self) -> None:
        self._data: List[Reservation] = []

    def append(self, r: Reservation) -> None:
        self._data.append(r)

    def find(self, reservation_id: str) -> Optional[Reservation]:
        for r in self._data:
            if r.reservation_id == reservation_id:
                return r
        return None

    def remove(self, reservation_id: str) -> Optional[Reservation]:
        for i, r in enumerate(self._data):
            if r.reservation_id == reservation_id:
                return self._data.pop(i)
        return None

    def search(self, term: str) -> list[Reservation]:
        """
        線形探索：ナンバーの部分一致（大文字小文字無視） or 区画番号の完全一致
        結果は現在の並び順のまま
        """
        needle = term.casefold()
        return [
            r for r in self._data
            if needle in r.license_plate.casefold() or str(r.slot) == term
        ]

    # -------------------------
    # 並び替え（区画テーブルには影響しない）
    # -------------------------
    def sort_by_slot(self) -> None:
        self._data.sort(key=lambda r: r.slot)

    def sort_by_time(self) -> None:
        self._data.sort(key=_time_key)

    def reverse(self) -> None:
        self._data.reverse()

    def clear(self) -> None:
        self._data.clear()

    def size(self) -> int:
        return len(self._data)

    def is_empty(self) -> bool:
        return self.size() == 0

    def __len__(self) -> int:
        return len(self._data)

    def __iter__(self) -> Iterator[Reservation]:
        return iter(list(self._data))

    def to_list(self) -> list[dict[str, Any]]:
        return [r.to_dict() for r in self._data]
