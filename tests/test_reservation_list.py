import unittest
from datetime import datetime

from models import Reservation
from reservation_list import ReservationList, parse_timestamp


def make(rid, plate, slot, time):
    return Reservation(reservation_id=rid, license_plate=plate, slot=slot, timestamp=time)


class ReservationListTests(unittest.TestCase):
    def setUp(self):
        self.items = ReservationList()
        self.items.append(make("R-1", "ABC-XYZ", 3, "2025-12-16T09:02:00"))
        self.items.append(make("R-2", "xyz-QQ", 1, "2025-12-16T09:00:00"))
        self.items.append(make("R-3", "abd-KK", 12, "2025-12-16T09:00:00"))

    def slots(self):
        return [r.slot for r in self.items]

    def test_find_and_remove(self):
        self.assertEqual(self.items.find("R-2").license_plate, "xyz-QQ")
        self.assertIsNone(self.items.find("R-9"))
        self.assertEqual(self.items.remove("R-2").slot, 1)
        self.assertIsNone(self.items.remove("R-2"))
        self.assertEqual(self.slots(), [3, 12])

    def test_search_plate_substring_case_insensitive(self):
        found = self.items.search("AB")
        self.assertEqual([r.reservation_id for r in found], ["R-1", "R-3"])

    def test_search_slot_is_exact(self):
        self.assertEqual([r.reservation_id for r in self.items.search("1")], ["R-2"])
        self.assertEqual([r.reservation_id for r in self.items.search("12")], ["R-3"])

    def test_sort_by_slot(self):
        self.items.sort_by_slot()
        self.assertEqual(self.slots(), [1, 3, 12])

    def test_sort_by_time_is_stable(self):
        self.items.sort_by_time()
        self.assertEqual([r.reservation_id for r in self.items], ["R-2", "R-3", "R-1"])

    def test_sort_by_time_puts_unreadable_times_last(self):
        self.items.append(make("R-4", "old-1", 4, "12/16/2025, 8:30:00 AM"))
        self.items.append(make("R-5", "old-2", 5, "yesterday"))
        self.items.append(make("R-6", "utc-1", 6, "2025-12-16T08:59:00+00:00"))
        self.items.sort_by_time()
        ids = [r.reservation_id for r in self.items]
        self.assertEqual(ids[-1], "R-5")
        self.assertLess(ids.index("R-4"), ids.index("R-2"))
        self.assertEqual(len(ids), 6)

    def test_reverse(self):
        self.items.reverse()
        self.assertEqual(self.slots(), [12, 1, 3])

    def test_iteration_is_a_snapshot(self):
        for r in self.items:
            self.items.remove(r.reservation_id)
        self.assertTrue(self.items.is_empty())


class ParseTimestampTests(unittest.TestCase):
    def test_iso_and_legacy_formats(self):
        self.assertEqual(parse_timestamp("2025-12-16T09:00:00"), datetime(2025, 12, 16, 9, 0))
        self.assertEqual(parse_timestamp("12/16/2025, 9:00:00 PM"), datetime(2025, 12, 16, 21, 0))
        self.assertIsNone(parse_timestamp("not a time"))

    def test_offset_times_become_naive(self):
        self.assertIsNone(parse_timestamp("2025-12-16T09:00:00+00:00").tzinfo)


if __name__ == "__main__":
    unittest.main()
