from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional


def plate_key(license_plate: str) -> str:
    """重複判定用のキー（大文字小文字を区別しない）"""
    return license_plate.strip().casefold()


@dataclass(frozen=True)
class Occupant:
    """区画セルに入る値（Reservation の写し）"""
    license_plate: str
    timestamp: str
    reservation_id: str

    def to_dict(self) -> dict[str, Any]:
        return {"plate": self.license_plate, "time": self.timestamp, "id": self.reservation_id}


@dataclass(frozen=True)
class Reservation:
    reservation_id: str
    license_plate: str
    slot: int           # 1..N
    timestamp: str      # ISO-8601

    def occupant(self) -> Occupant:
        return Occupant(
            license_plate=self.license_plate,
            timestamp=self.timestamp,
            reservation_id=self.reservation_id,
        )

    def sticker_code(self) -> str:
        return f"SP-{self.license_plate}-{self.slot:02d}-{self.reservation_id[2:10].upper()}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "plate": self.license_plate,
            "slot": self.slot,
            "time": self.timestamp,
            "id": self.reservation_id,
        }

    @staticmethod
    def from_mapping(m: Mapping[str, Any]) -> "Reservation":
        """保存形式 {plate, slot, time, id} から復元（不正なら KeyError/ValueError/TypeError）"""
        plate = str(m["plate"]).strip()
        rid = str(m["id"]).strip()
        if not plate or not rid:
            raise ValueError("plate and id are required")
        return Reservation(
            reservation_id=rid,
            license_plate=plate,
            slot=int(m["slot"]),
            timestamp=str(m["time"]),
        )


@dataclass(frozen=True)
class PendingRequest:
    """満車時の待機リクエスト"""
    request_id: str
    license_plate: str
    timestamp: str

    def to_dict(self) -> dict[str, Any]:
        return {"plate": self.license_plate, "time": self.timestamp, "id": self.request_id}

    @staticmethod
    def from_mapping(m: Mapping[str, Any]) -> "PendingRequest":
        plate = str(m["plate"]).strip()
        rid = str(m["id"]).strip()
        if not plate or not rid:
            raise ValueError("plate and id are required")
        return PendingRequest(request_id=rid, license_plate=plate, timestamp=str(m["time"]))


# -------------------------
# 操作結果
# -------------------------
@dataclass(frozen=True)
class Reserved:
    slot: int
    reservation_id: str
    timestamp: str
    license_plate: str
    sticker_code: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": "reserved",
            "slot": self.slot,
            "id": self.reservation_id,
            "time": self.timestamp,
            "plate": self.license_plate,
            "sticker_code": self.sticker_code,
        }


@dataclass(frozen=True)
class Queued:
    request_id: str
    timestamp: str
    license_plate: str
    position: int       # 1 = 先頭

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": "queued",
            "id": self.request_id,
            "time": self.timestamp,
            "plate": self.license_plate,
            "position": self.position,
        }


@dataclass(frozen=True)
class Promotion:
    """削除で空いた区画に待機列の先頭を割り当てた結果"""
    license_plate: str
    slot: int
    reservation_id: str
    timestamp: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "plate": self.license_plate,
            "slot": self.slot,
            "id": self.reservation_id,
            "time": self.timestamp,
        }


@dataclass(frozen=True)
class DeleteResult:
    removed: bool
    vacated_slot: Optional[int] = None
    promotion: Optional[Promotion] = None

    @property
    def promoted(self) -> bool:
        return self.promotion is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "removed": self.removed,
            "vacated_slot": self.vacated_slot,
            "promotion": None if self.promotion is None else self.promotion.to_dict(),
        }


@dataclass(frozen=True)
class Counts:
    available: int
    reserved: int
    queued: int

    def to_dict(self) -> dict[str, int]:
        return {"available": self.available, "reserved": self.reserved, "queued": self.queued}
