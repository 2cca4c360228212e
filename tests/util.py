from datetime import datetime, timedelta

from errors import PersistenceError


class StepClock:
    """呼ぶたびに 1 分ずつ進む時計"""

    def __init__(self, start=datetime(2025, 12, 16, 9, 0, 0)):
        self.current = start

    def __call__(self):
        now = self.current
        self.current = self.current + timedelta(minutes=1)
        return now


class FailingStore:
    """save が毎回失敗するストア"""

    def __init__(self):
        self.attempts = 0

    def save(self, slots, reservations, waiting):
        self.attempts += 1
        raise PersistenceError("disk full")

    def load(self):
        return {}
