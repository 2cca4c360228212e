import unittest

from app import create_app
from config import SmartParkConfig
from parking_system import ParkingSystem
from storage import MemoryStore

from .util import StepClock


class ApiTests(unittest.TestCase):
    def setUp(self):
        self.system = ParkingSystem(capacity=2, store=MemoryStore(), clock=StepClock())
        app = create_app(SmartParkConfig(capacity=2, data_file=""), system=self.system)
        app.testing = True
        self.client = app.test_client()

    def reserve(self, plate, slot="auto"):
        return self.client.post("/api/reservations", json={"plate": plate, "slot": slot})

    def test_health(self):
        res = self.client.get("/health")
        self.assertEqual(res.status_code, 200)
        self.assertTrue(res.get_json()["ok"])

    def test_reserve_then_queue(self):
        res = self.reserve("P1")
        self.assertEqual(res.status_code, 201)
        body = res.get_json()
        self.assertEqual(body["status"], "reserved")
        self.assertEqual(body["slot"], 1)
        self.assertEqual(body["state"]["counts"], {"available": 1, "reserved": 1, "queued": 0})

        self.reserve("P2")
        res = self.reserve("P3")
        self.assertEqual(res.status_code, 202)
        self.assertEqual(res.get_json()["status"], "queued")
        self.assertEqual(res.get_json()["position"], 1)

    def test_error_mapping(self):
        self.assertEqual(self.reserve("   ").status_code, 400)
        self.assertEqual(self.client.post("/api/reservations").status_code, 400)
        self.assertEqual(self.reserve("P1", "9").status_code, 400)
        self.reserve("P1", "2")
        res = self.reserve("p1")
        self.assertEqual(res.status_code, 409)
        self.assertEqual(res.get_json()["type"], "DuplicateError")
        res = self.reserve("P2", "2")
        self.assertEqual(res.status_code, 409)
        self.assertEqual(res.get_json()["type"], "SlotOccupiedError")

    def test_non_object_body(self):
        res = self.client.post("/api/reservations", json=["P1"])
        self.assertEqual(res.status_code, 400)

    def test_delete_promotes(self):
        first = self.reserve("P1").get_json()
        self.reserve("P2")
        self.reserve("P3")
        res = self.client.delete(f"/api/reservations/{first['id']}")
        self.assertEqual(res.status_code, 200)
        body = res.get_json()
        self.assertTrue(body["removed"])
        self.assertEqual(body["promotion"]["plate"], "P3")
        self.assertEqual(body["promotion"]["slot"], 1)
        self.assertEqual(body["state"]["queue"], [])

    def test_delete_unknown_is_noop(self):
        res = self.client.delete("/api/reservations/R-nope")
        self.assertEqual(res.status_code, 200)
        self.assertFalse(res.get_json()["removed"])

    def test_search(self):
        self.reserve("ABC-1")
        self.reserve("XYZ-2")
        body = self.client.get("/api/search?q=abc").get_json()
        self.assertEqual(body["count"], 1)
        self.assertEqual(body["results"][0]["plate"], "ABC-1")
        self.assertEqual(self.client.get("/api/search?q=").get_json()["results"], [])

    def test_sort_and_reverse(self):
        self.reserve("AAA", "2")
        self.reserve("BBB", "1")
        body = self.client.post("/api/sort", json={"by": "slot"}).get_json()
        self.assertEqual([r["slot"] for r in body["reservations"]], [1, 2])
        body = self.client.post("/api/sort", json={"by": "time"}).get_json()
        self.assertEqual([r["plate"] for r in body["reservations"]], ["AAA", "BBB"])
        body = self.client.post("/api/reverse").get_json()
        self.assertEqual([r["plate"] for r in body["reservations"]], ["BBB", "AAA"])
        self.assertEqual(self.client.post("/api/sort", json={"by": "plate"}).status_code, 400)

    def test_slot_details_and_sticker(self):
        r = self.reserve("AAA", "2").get_json()
        self.assertEqual(self.client.get("/api/slots/2").get_json()["plate"], "AAA")
        self.assertEqual(self.client.get("/api/slots/1").status_code, 404)
        self.assertEqual(self.client.get("/api/slots/5").status_code, 400)
        sticker = self.client.get(f"/api/reservations/{r['id']}/sticker").get_json()
        self.assertEqual(sticker["code"], r["sticker_code"])
        self.assertEqual(self.client.get("/api/reservations/R-x/sticker").status_code, 404)

    def test_reset(self):
        self.reserve("AAA")
        body = self.client.post("/api/reset").get_json()
        self.assertEqual(body["counts"]["reserved"], 0)
        self.assertEqual(body["slots"], [None, None])


class FactoryTests(unittest.TestCase):
    def test_builds_system_from_config(self):
        app = create_app(SmartParkConfig(capacity=4, data_file=""))
        state = app.test_client().get("/api/state").get_json()
        self.assertEqual(state["capacity"], 4)
        self.assertEqual(state["counts"]["available"], 4)


if __name__ == "__main__":
    unittest.main()
