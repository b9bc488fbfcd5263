from __future__ import annotations

import unittest
from unittest.mock import patch

from fastapi.testclient import TestClient

from burnledger.api.deps import get_db
from burnledger.core.config import settings
from burnledger.main import app

from ledger_support import frozen_now, memory_sessionmaker

PROFILE = {
    "gender": "female",
    "date_of_birth": "1993-06-01",
    "height_cm": 165,
    "weight_lb": 150,
    "activity_level": "moderate",
}


class ApiTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.engine, self.Session = memory_sessionmaker()

        def override_get_db():
            db = self.Session()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_get_db
        self.addCleanup(app.dependency_overrides.clear)
        self.addCleanup(self.engine.dispose)

        clock = frozen_now()
        clock.start()
        self.addCleanup(clock.stop)

        self.client = TestClient(app)

    def put_profile(self, **changes):
        return self.client.put("/v1/users/u1/profile", json={**PROFILE, **changes})

    def weigh_in(self, timestamp: str, weight_lb: float):
        return self.client.post(
            "/v1/users/u1/body-metrics/ingest",
            json={"measurements": [{"timestamp": timestamp, "weight_lb": weight_lb, "source": "scale"}]},
        )


class TestHealth(ApiTestCase):
    def test_health(self) -> None:
        r = self.client.get("/v1/health")
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json()["status"], "ok")
        self.assertEqual(r.json()["timezone"], settings.LOCAL_TIMEZONE)


class TestBurnedApi(ApiTestCase):
    def test_missing_profile_is_a_conflict(self) -> None:
        r = self.client.get("/v1/users/u1/burned/2024-01-10")
        self.assertEqual(r.status_code, 409)
        self.assertEqual(r.json()["detail"]["code"], "BURNED_DEFAULTS_PROFILE_MISSING")

    def test_lazy_creation_and_lookups(self) -> None:
        self.assertEqual(self.put_profile().status_code, 200)
        self.assertEqual(self.weigh_in("2024-01-10T08:00:00Z", 140).status_code, 200)

        r = self.client.get("/v1/users/u1/burned/2024-01-10")
        self.assertEqual(r.status_code, 200)
        body = r.json()
        self.assertEqual(body["entry_date"], "2024-01-10")
        self.assertEqual((body["bmr_cal"], body["active_cal"], body["tdee_cal"]), (1355, 745, 2100))
        self.assertEqual(body["source"], "system")
        self.assertFalse(body["is_overridden"])

        # Same row on the second read
        self.assertEqual(self.client.get("/v1/users/u1/burned/2024-01-10").json()["id"], body["id"])

        self.assertEqual(self.client.get("/v1/users/u1/burned/2024-01-16").status_code, 404)
        self.assertEqual(self.client.get("/v1/users/u1/burned/2024-13-45").status_code, 400)

        r = self.client.get("/v1/users/u1/burned", params={"start": "2024-01-01", "end": "2024-01-15"})
        self.assertEqual([row["entry_date"] for row in r.json()], ["2024-01-10"])

    def test_override_then_reset(self) -> None:
        self.put_profile()
        self.weigh_in("2024-01-10T08:00:00Z", 140)

        r = self.client.put(
            "/v1/users/u1/burned/2024-01-10",
            json={
                "touched": {"tdee": True},
                "values": {"bmr_cal": 0, "active_cal": 0, "tdee_cal": 2500},
            },
        )
        self.assertEqual(r.status_code, 200)
        self.assertEqual((r.json()["active_cal"], r.json()["tdee_cal"]), (1145, 2500))
        self.assertTrue(r.json()["is_overridden"])

        r = self.client.post("/v1/users/u1/burned/2024-01-10/reset")
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json()["tdee_cal"], 2100)
        self.assertFalse(r.json()["is_overridden"])

    def test_rejected_edits_are_unprocessable(self) -> None:
        self.put_profile()
        self.weigh_in("2024-01-10T08:00:00Z", 140)

        r = self.client.put(
            "/v1/users/u1/burned/2024-01-10",
            json={
                "touched": {"tdee": True},
                "values": {"bmr_cal": 0, "active_cal": 0, "tdee_cal": 1000},
            },
        )
        self.assertEqual(r.status_code, 422)
        self.assertEqual(r.json()["detail"]["code"], "BURNED_TDEE_BELOW_BMR")

        r = self.client.put(
            "/v1/users/u1/burned/2024-01-10",
            json={
                "touched": {},
                "values": {"bmr_cal": 0, "active_cal": 0, "tdee_cal": 0},
                "reduction": {"burn_reduction_pct_int": 75},
            },
        )
        self.assertEqual(r.status_code, 422)
        self.assertEqual(r.json()["detail"]["code"], "BURNED_REDUCTION_PCT_INVALID")

    def test_wearable_total(self) -> None:
        self.put_profile()
        self.weigh_in("2024-01-10T08:00:00Z", 140)

        r = self.client.put(
            "/v1/users/u1/burned/2024-01-10/wearable",
            json={"tdee_cal": 2600, "vendor_external_id": "cycle-9"},
        )
        self.assertEqual(r.status_code, 200)
        body = r.json()
        self.assertEqual(body["tdee_cal"], 2600)
        self.assertEqual(body["source"], "vendor")
        self.assertEqual(body["vendor_external_id"], "cycle-9")
        self.assertEqual(body["system_tdee_cal"], 2100)

    def test_whoop_sync_without_credentials_is_bad_gateway(self) -> None:
        self.put_profile()
        with patch.object(settings, "WHOOP_CREDENTIALS_PATH", "/nonexistent/mywhoop/credentials.json"):
            r = self.client.post("/v1/users/u1/burned/2024-01-10/sync/whoop")

        self.assertEqual(r.status_code, 502)
        self.assertEqual(r.json()["detail"]["code"], "VENDOR_SYNC_FAILED")


class TestRefreshHooks(ApiTestCase):
    def test_weigh_in_refreshes_existing_rows(self) -> None:
        self.put_profile()
        self.weigh_in("2024-01-10T08:00:00Z", 140)
        self.client.get("/v1/users/u1/burned/2024-01-12")

        r = self.weigh_in("2024-01-12T07:30:00Z", 160)
        self.assertEqual(r.json(), {"status": "ok", "created": 1, "burned_refreshed": 1})

        self.assertNotEqual(self.client.get("/v1/users/u1/burned/2024-01-12").json()["tdee_cal"], 2100)

        r = self.client.get("/v1/users/u1/body-metrics/daily/2024-01-12")
        self.assertTrue(r.json()["found"])
        self.assertEqual(r.json()["weight_lb"], 160)

    def test_profile_edit_refreshes_today(self) -> None:
        r = self.put_profile()
        self.assertFalse(r.json()["burned_today_refreshed"])

        before = self.client.get("/v1/users/u1/burned/2024-01-15").json()

        r = self.client.put("/v1/users/u1/profile", json={"height_cm": 175})
        self.assertTrue(r.json()["burned_today_refreshed"])
        self.assertEqual(r.json()["gender"], "female")

        after = self.client.get("/v1/users/u1/burned/2024-01-15").json()
        self.assertGreater(after["system_bmr_cal"], before["system_bmr_cal"])


if __name__ == "__main__":
    unittest.main()
