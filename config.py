"""
アプリ設定

環境変数（すべて省略可）:
- SMARTPARK_CAPACITY   区画数（既定 20）
- SMARTPARK_DATA_FILE  保存先 JSON（既定 data/smartpark.json、空文字ならメモリのみ）
- SMARTPARK_HOST       既定 127.0.0.1
- PORT                 既定 5000
- SMARTPARK_DEBUG      1/true/yes で Flask debug
- SMARTPARK_LOG_LEVEL  既定 INFO
"""

from __future__ import annotations

import os
from dataclasses import dataclass


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, str(default)))
    except ValueError:
        return default


def _env_flag(name: str) -> bool:
    value = os.environ.get(name, "")
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class SmartParkConfig:
    capacity: int = 20
    data_file: str = "data/smartpark.json"
    host: str = "127.0.0.1"
    port: int = 5000
    debug: bool = False
    log_level: str = "INFO"

    @staticmethod
    def from_env() -> "SmartParkConfig":
        return SmartParkConfig(
            capacity=_env_int("SMARTPARK_CAPACITY", 20),
            data_file=os.environ.get("SMARTPARK_DATA_FILE", "data/smartpark.json"),
            host=os.environ.get("SMARTPARK_HOST", "127.0.0.1"),
            port=_env_int("PORT", 5000),
            debug=_env_flag("SMARTPARK_DEBUG"),
            log_level=os.environ.get("SMARTPARK_LOG_LEVEL", "INFO"),
        )
