from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterator, Optional

from models import PendingRequest


@dataclass
class _Entry:
    request: PendingRequest
    behind: Optional["_Entry"] = None


class WaitQueue:
    """
    満車時の待機列（単方向リンク、FIFO）
    enqueue / dequeue: O(1)

    先頭 = 最も早く並んだリクエスト。途中への割り込み・途中からの削除はしない。
    """

    def __init__(self) -> None:
        self._front: Optional[_Entry] = None
        self._back: Optional[_Entry] = None
        self._length = 0

    def enqueue(self, request: PendingRequest) -> None:
        entry = _Entry(request=request)
        if self._back is None:
            self._front = entry
        else:
            self._back.behind = entry
        self._back = entry
        self._length += 1

    def dequeue(self) -> Optional[PendingRequest]:
        """先頭を取り出す（空なら None）"""
        entry = self._front
        if entry is None:
            return None
        self._front = entry.behind
        if self._front is None:
            self._back = None
        self._length -= 1
        return entry.request

    def clear(self) -> None:
        self._front = None
        self._back = None
        self._length = 0

    def size(self) -> int:
        return self._length

    def is_empty(self) -> bool:
        return self._length == 0

    def __len__(self) -> int:
        return self._length

    def __iter__(self) -> Iterator[PendingRequest]:
        entry = self._front
        while entry is not None:
            yield entry.request
            entry = entry.behind

    def to_list(self) -> list[dict[str, Any]]:
        return [p.to_dict() for p in self]
