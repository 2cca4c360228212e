"""
スナップショットの保存・復元

保存形式（JSON）:
  {
    "smartpark_slots":     [null | {"plate", "time", "id"}, ...],   # 長さ N
    "smartpark_arraylist": [{"plate", "slot", "time", "id"}, ...],
    "smartpark_queue":     [{"plate", "time", "id"}, ...]            # 先頭 = 最も古い
  }

どのキーも省略可能（初回起動時はファイル自体が無い）。
"""

from __future__ import annotations

import copy
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

from errors import PersistenceError

logger = logging.getLogger(__name__)

SLOTS_KEY = "smartpark_slots"
RESERVATIONS_KEY = "smartpark_arraylist"
QUEUE_KEY = "smartpark_queue"


class PersistenceGateway(Protocol):
    def save(
        self,
        slots: list[Optional[dict[str, Any]]],
        reservations: list[dict[str, Any]],
        waiting: list[dict[str, Any]],
    ) -> None:
        ...

    def load(self) -> Dict[str, Any]:
        ...


def _snapshot(slots, reservations, waiting) -> Dict[str, Any]:
    return {
        SLOTS_KEY: slots,
        RESERVATIONS_KEY: reservations,
        QUEUE_KEY: waiting,
    }


class MemoryStore:
    """プロセス内だけで保持するストア（データファイル未設定時・テスト用）"""

    def __init__(self, initial: Optional[Dict[str, Any]] = None) -> None:
        self._data: Dict[str, Any] = copy.deepcopy(initial) if initial else {}
        self.save_count = 0

    def save(self, slots, reservations, waiting) -> None:
        self._data = copy.deepcopy(_snapshot(slots, reservations, waiting))
        self.save_count += 1

    def load(self) -> Dict[str, Any]:
        return copy.deepcopy(self._data)


class JsonFileStore:
    """
    JSON ファイルに保存するストア

    書き込みは一時ファイル経由で置き換える（途中で落ちても元ファイルは壊れない）
    """

    def __init__(self, path: str | os.PathLike[str]) -> None:
        self.path = Path(path)

    def save(self, slots, reservations, waiting) -> None:
        data = _snapshot(slots, reservations, waiting)
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=self.path.name, suffix=".tmp"
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_name, self.path)
        except (OSError, TypeError, ValueError) as e:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise PersistenceError(f"failed to save {self.path}: {e}") from e

    def load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            # ValueError: JSONDecodeError / UnicodeDecodeError
            logger.warning("Failed to load state from %s: %s", self.path, e)
            return {}

        if not isinstance(data, dict):
            logger.warning("Ignoring state file %s: top level is not an object", self.path)
            return {}
        return data
