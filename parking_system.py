from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime
from typing import Any, Callable, Optional, Union

from errors import (
    ConsistencyFault,
    DuplicateError,
    InvalidSlotError,
    PersistenceError,
    SlotOccupiedError,
    ValidationError,
)
from models import (
    Counts,
    DeleteResult,
    PendingRequest,
    Promotion,
    Queued,
    Reservation,
    Reserved,
    plate_key,
)
from reservation_list import ReservationList
from slot_table import SlotTable
from storage import (
    QUEUE_KEY,
    RESERVATIONS_KEY,
    SLOTS_KEY,
    MemoryStore,
    PersistenceGateway,
)
from wait_queue import WaitQueue

logger = logging.getLogger(__name__)

AUTO = "auto"


class ParkingSystem:
    """
    駐車場予約システムの中枢

    - 区画: SlotTable（固定長配列 + 空き区画 Min-Heap）
    - 有効な予約: ReservationList（配列）
    - 満車時の待機: WaitQueue（FIFO）

    公開操作はすべて 1 つのロックの中で完結し、
    3 つのコレクションが中途半端な状態で見えることはない。
    変更のたびにスナップショットを保存する（失敗してもログのみ）。
    """

    def __init__(
        self,
        capacity: int = 20,
        store: Optional[PersistenceGateway] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.slots = SlotTable(capacity)
        self.reservations = ReservationList()
        self.waiting = WaitQueue()

        # 予約済み + 待機中のナンバー（casefold）と id
        self._plates: set[str] = set()
        self._live_ids: set[str] = set()

        self._store: PersistenceGateway = store if store is not None else MemoryStore()
        self._clock = clock or datetime.now
        self._lock = threading.RLock()

    @classmethod
    def from_store(
        cls,
        store: PersistenceGateway,
        capacity: int = 20,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> "ParkingSystem":
        """起動時に一度だけ保存データを読み込んで生成する"""
        system = cls(capacity=capacity, store=store, clock=clock)
        system._restore()
        return system

    @property
    def capacity(self) -> int:
        return self.slots.capacity

    # -------------------------
    # 予約
    # -------------------------
    def insert(self, license_plate: str, chosen_slot: Union[str, int, None] = AUTO) -> Union[Reserved, Queued]:
        plate = self._validate_plate(license_plate)
        wanted = self._parse_slot_choice(chosen_slot)

        with self._lock:
            key = plate_key(plate)
            if key in self._plates:
                raise DuplicateError(f"plate {plate} is already reserved or queued")

            timestamp = self._now()
            new_id = self._new_id()

            # 満車なら待機列へ（区画指定は無視）
            if self.slots.is_full():
                pending = PendingRequest(request_id=new_id, license_plate=plate, timestamp=timestamp)
                self.waiting.enqueue(pending)
                self._plates.add(key)
                self._live_ids.add(new_id)
                logger.info("Lot full, %s queued at position %d", plate, self.waiting.size())
                self._save()
                return Queued(
                    request_id=new_id,
                    timestamp=timestamp,
                    license_plate=plate,
                    position=self.waiting.size(),
                )

            if wanted is None:
                slot = self.slots.first_free()
                if slot is None:
                    raise ConsistencyFault(
                        f"no free slot found with {self.slots.occupied_count()}/{self.capacity} occupied"
                    )
            else:
                if not self.slots.in_range(wanted):
                    raise InvalidSlotError(f"slot {wanted} is outside 1..{self.capacity}")
                if not self.slots.is_free(wanted):
                    raise SlotOccupiedError(f"slot {wanted} is occupied")
                slot = wanted

            r = Reservation(reservation_id=new_id, license_plate=plate, slot=slot, timestamp=timestamp)
            self._place(r)
            logger.info("Reserved slot %d for %s (%s)", slot, plate, new_id)
            self._save()
            return Reserved(
                slot=slot,
                reservation_id=new_id,
                timestamp=timestamp,
                license_plate=plate,
                sticker_code=r.sticker_code(),
            )

    # -------------------------
    # 削除（空いた区画は待機列の先頭へ）
    # -------------------------
    def delete(self, reservation_id: str) -> DeleteResult:
        if not isinstance(reservation_id, str):
            return DeleteResult(removed=False)

        with self._lock:
            r = self.reservations.remove(reservation_id)
            if r is None:
                return DeleteResult(removed=False)

            occupant = self.slots.release(r.slot)
            if occupant.reservation_id != r.reservation_id:
                raise ConsistencyFault(
                    f"slot {r.slot} held {occupant.reservation_id}, expected {r.reservation_id}"
                )
            self._plates.discard(plate_key(r.license_plate))
            self._live_ids.discard(r.reservation_id)
            logger.info("Deleted reservation %s (%s, slot %d)", r.reservation_id, r.license_plate, r.slot)

            promotion = self._promote_into(r.slot)
            self._save()
            return DeleteResult(removed=True, vacated_slot=r.slot, promotion=promotion)

    # -------------------------
    # 検索・並び替え
    # -------------------------
    def search(self, term: Optional[str]) -> list[Reservation]:
        term = (term or "").strip()
        if not term:
            return []
        with self._lock:
            results = self.reservations.search(term)
        logger.debug("Search %r matched %d reservation(s)", term, len(results))
        return results

    def sort_by_slot(self) -> None:
        with self._lock:
            self.reservations.sort_by_slot()
            logger.debug("Sorted reservations by slot")
            self._save()

    def sort_by_time(self) -> None:
        with self._lock:
            self.reservations.sort_by_time()
            logger.debug("Sorted reservations by time")
            self._save()

    def reverse(self) -> None:
        with self._lock:
            self.reservations.reverse()
            logger.debug("Reversed reservation order")
            self._save()

    def reset(self) -> None:
        """全区画・予約・待機列を空にする"""
        with self._lock:
            self.slots.clear()
            self.reservations.clear()
            self.waiting.clear()
            self._plates.clear()
            self._live_ids.clear()
            logger.info("Parking lot reset")
            self._save()

    # -------------------------
    # 表示用
    # -------------------------
    def counts(self) -> Counts:
        with self._lock:
            reserved = self.reservations.size()
            return Counts(
                available=self.slots.free_count(),
                reserved=reserved,
                queued=self.waiting.size(),
            )

    def list_reservations(self) -> list[Reservation]:
        with self._lock:
            return list(self.reservations)

    def list_waiting(self) -> list[PendingRequest]:
        with self._lock:
            return list(self.waiting)

    def get_reservation(self, reservation_id: str) -> Optional[Reservation]:
        with self._lock:
            return self.reservations.find(reservation_id)

    def find_by_slot(self, slot: int) -> Optional[Reservation]:
        if not self.slots.in_range(slot):
            raise InvalidSlotError(f"slot {slot} is outside 1..{self.capacity}")
        with self._lock:
            occupant = self.slots.get(slot)
            if occupant is None:
                return None
            return self.reservations.find(occupant.reservation_id)

    def sticker(self, reservation_id: str) -> Optional[dict[str, Any]]:
        r = self.get_reservation(reservation_id)
        if r is None:
            return None
        return {"plate": r.license_plate, "slot": r.slot, "time": r.timestamp, "code": r.sticker_code()}

    def state(self) -> dict[str, Any]:
        with self._lock:
            return {
                "capacity": self.capacity,
                "counts": self.counts().to_dict(),
                "reservations": self.reservations.to_list(),
                "queue": self.waiting.to_list(),
                "slots": self.slots.to_list(),
            }

    def verify(self) -> None:
        """区画テーブルと予約一覧が 1 対 1 で対応しているか確認する"""
        with self._lock:
            by_slot: dict[int, Reservation] = {}
            for r in self.reservations:
                if r.slot in by_slot:
                    raise ConsistencyFault(f"slot {r.slot} reserved twice")
                by_slot[r.slot] = r

            if len(by_slot) > self.capacity:
                raise ConsistencyFault("more reservations than slots")

            for slot in range(1, self.capacity + 1):
                occupant = self.slots.get(slot)
                r = by_slot.get(slot)
                if occupant is None and r is None:
                    continue
                if occupant is None or r is None or occupant != r.occupant():
                    raise ConsistencyFault(f"slot {slot} does not match its reservation")

            if self.slots.occupied_count() != len(by_slot):
                raise ConsistencyFault("occupied count out of sync")

    # -------------------------
    # 内部
    # -------------------------
    def _place(self, r: Reservation) -> None:
        self.slots.occupy(r.slot, r.occupant())
        self.reservations.append(r)
        self._plates.add(plate_key(r.license_plate))
        self._live_ids.add(r.reservation_id)

    def _promote_into(self, slot: int) -> Optional[Promotion]:
        nxt = self.waiting.dequeue()
        if nxt is None:
            return None

        self._live_ids.discard(nxt.request_id)
        r = Reservation(
            reservation_id=self._new_id(),
            license_plate=nxt.license_plate,
            slot=slot,
            timestamp=self._now(),
        )
        self._place(r)
        logger.info("FIFO queue: %s automatically assigned to slot %d", r.license_plate, slot)
        return Promotion(
            license_plate=r.license_plate,
            slot=slot,
            reservation_id=r.reservation_id,
            timestamp=r.timestamp,
        )

    def _save(self) -> None:
        try:
            self._store.save(self.slots.to_list(), self.reservations.to_list(), self.waiting.to_list())
        except PersistenceError as e:
            logger.warning("Failed to save state: %s", e)

    def _restore(self) -> None:
        data = self._store.load()

        for item in self._stored_list(data, RESERVATIONS_KEY):
            try:
                r = Reservation.from_mapping(item)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Dropping malformed reservation %r: %s", item, e)
                continue
            if not self.slots.in_range(r.slot):
                logger.warning("Dropping reservation %s: slot %d outside 1..%d", r.reservation_id, r.slot, self.capacity)
                continue
            if not self.slots.is_free(r.slot):
                logger.warning("Dropping reservation %s: slot %d already taken", r.reservation_id, r.slot)
                continue
            if not self._is_new_record(r.license_plate, r.reservation_id):
                continue
            self._place(r)

        for item in self._stored_list(data, QUEUE_KEY):
            try:
                p = PendingRequest.from_mapping(item)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("Dropping malformed queue entry %r: %s", item, e)
                continue
            if not self._is_new_record(p.license_plate, p.request_id):
                continue
            self.waiting.enqueue(p)
            self._plates.add(plate_key(p.license_plate))
            self._live_ids.add(p.request_id)

        stored_slots = data.get(SLOTS_KEY)
        if stored_slots is not None and stored_slots != self.slots.to_list():
            logger.warning("Stored slot table disagrees with reservations; rebuilt from reservations")

        # 容量が増えた場合など、空き区画と待機列が同時に残らないようにする
        promoted = False
        while not self.waiting.is_empty():
            slot = self.slots.first_free()
            if slot is None:
                break
            self._promote_into(slot)
            promoted = True

        self.verify()
        logger.info(
            "Loaded %d reservation(s) and %d waiting request(s)",
            self.reservations.size(),
            self.waiting.size(),
        )
        if promoted:
            self._save()

    def _stored_list(self, data: dict[str, Any], key: str) -> list[Any]:
        items = data.get(key)
        if items is None:
            return []
        if not isinstance(items, list):
            logger.warning("Ignoring stored %s: expected a list", key)
            return []
        return items

    def _is_new_record(self, license_plate: str, record_id: str) -> bool:
        if plate_key(license_plate) in self._plates:
            logger.warning("Dropping duplicate plate %s from stored state", license_plate)
            return False
        if record_id in self._live_ids:
            logger.warning("Dropping duplicate id %s from stored state", record_id)
            return False
        return True

    @staticmethod
    def _validate_plate(license_plate: Any) -> str:
        if not isinstance(license_plate, str):
            raise ValidationError("plate must be a string")
        plate = license_plate.strip()
        if not plate:
            raise ValidationError("Please enter a plate number")
        return plate

    @staticmethod
    def _parse_slot_choice(chosen_slot: Union[str, int, None]) -> Optional[int]:
        """'auto'（または None）→ None、区画番号 → int"""
        if chosen_slot is None:
            return None
        if isinstance(chosen_slot, bool):
            raise ValidationError("slot must be 'auto' or a slot number")
        if isinstance(chosen_slot, int):
            return chosen_slot
        if isinstance(chosen_slot, str):
            s = chosen_slot.strip()
            if s.lower() == AUTO:
                return None
            if not (s.isascii() and s.isdigit()):
                raise ValidationError(f"invalid slot choice {chosen_slot!r}")
            return int(s)
        raise ValidationError("slot must be 'auto' or a slot number")

    def _now(self) -> str:
        return self._clock().isoformat()

    def _new_id(self) -> str:
        while True:
            rid = f"R-{uuid.uuid4().hex}"
            if rid not in self._live_ids:
                return rid
