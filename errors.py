"""
予約エンジンのエラー階層

- 入力・重複・区画指定のエラーは呼び出し側へそのまま返す（状態は変更しない）
- PersistenceError は保存処理の中だけで扱う
- ConsistencyFault は不変条件の破れ（プログラムのバグ）
"""


class ParkingError(Exception):
    """受け付けられなかった操作の基底クラス"""
    status_code = 400


class ValidationError(ParkingError):
    """ナンバー・区画指定が空または不正"""
    status_code = 400


class DuplicateError(ParkingError):
    """同じナンバーが予約済み or 待機中"""
    status_code = 409


class InvalidSlotError(ParkingError):
    """区画番号が 1..N の範囲外"""
    status_code = 400


class SlotOccupiedError(ParkingError):
    """指定区画はすでに使用中"""
    status_code = 409


class PersistenceError(Exception):
    pass


class ConsistencyFault(RuntimeError):
    """SlotTable と ReservationList の対応が崩れている"""
    pass
