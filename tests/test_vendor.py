from __future__ import annotations

import json
import os
import tempfile
import unittest
from datetime import datetime

import httpx

from burnledger.core import ledger_store, vendor
from burnledger.core.errors import VendorSyncError

from ledger_support import add_profile, add_weigh_in, frozen_now, memory_sessionmaker

CYCLES = {
    "records": [
        {"id": 93844, "score_state": "PENDING_SCORE", "score": None},
        {"id": 93845, "score_state": "SCORED", "score": {"strain": 12.1, "kilojoule": 10878.4}},
        {"id": 93846, "score_state": "SCORED", "score": {"strain": 3.0, "kilojoule": 2092.0}},
    ],
    "next_token": None,
}


def mock_client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


class TestExtractCycleEnergy(unittest.TestCase):
    def test_picks_highest_scored_cycle_in_kcal(self) -> None:
        energy = vendor.extract_cycle_energy(CYCLES)
        self.assertEqual(energy.cycle_id, "93845")
        self.assertEqual(energy.kcal, 2600)
        self.assertEqual(len(energy.payload_hash), 64)

    def test_hash_ignores_key_order(self) -> None:
        a = {"id": 1, "score": {"kilojoule": 5.0, "strain": 1}}
        b = {"score": {"strain": 1, "kilojoule": 5.0}, "id": 1}
        self.assertEqual(vendor.payload_hash(a), vendor.payload_hash(b))

    def test_nothing_scored(self) -> None:
        self.assertIsNone(vendor.extract_cycle_energy({"records": []}))
        self.assertIsNone(vendor.extract_cycle_energy({"records": [CYCLES["records"][0]]}))
        self.assertIsNone(vendor.extract_cycle_energy("not a payload"))


class TestLoadAccessToken(unittest.TestCase):
    def setUp(self) -> None:
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.path = os.path.join(self.tmp.name, "credentials.json")

    def test_reads_access_token(self) -> None:
        with open(self.path, "w") as f:
            json.dump({"access_token": "tok-123", "refresh_token": "r"}, f)
        self.assertEqual(vendor.load_access_token(self.path), "tok-123")

    def test_missing_file(self) -> None:
        with self.assertRaises(VendorSyncError) as ctx:
            vendor.load_access_token(self.path)
        self.assertEqual(ctx.exception.code, "VENDOR_SYNC_FAILED")

    def test_missing_token_or_bad_json(self) -> None:
        with open(self.path, "w") as f:
            json.dump({"refresh_token": "r"}, f)
        with self.assertRaises(VendorSyncError):
            vendor.load_access_token(self.path)

        with open(self.path, "w") as f:
            f.write("{not json")
        with self.assertRaises(VendorSyncError):
            vendor.load_access_token(self.path)


class TestFetchCycleEnergy(unittest.TestCase):
    def test_requests_the_local_day(self) -> None:
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=CYCLES)

        with mock_client(handler) as client:
            energy = vendor.fetch_cycle_energy("2024-01-10", "tok", client=client)

        self.assertEqual(energy.kcal, 2600)
        request = seen[0]
        self.assertEqual(request.url.path, "/developer/v2/cycle")
        self.assertEqual(request.headers["Authorization"], "Bearer tok")
        self.assertEqual(request.url.params["start"], "2024-01-10T00:00:00+00:00")
        self.assertEqual(request.url.params["end"], "2024-01-11T00:00:00+00:00")

    def test_error_status_raises(self) -> None:
        with mock_client(lambda request: httpx.Response(401, text="expired")) as client:
            with self.assertRaises(VendorSyncError):
                vendor.fetch_cycle_energy("2024-01-10", "tok", client=client)

    def test_transport_error_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with mock_client(handler) as client:
            with self.assertRaises(VendorSyncError):
                vendor.fetch_cycle_energy("2024-01-10", "tok", client=client)


class TestSyncWhoopTotal(unittest.TestCase):
    def setUp(self) -> None:
        self.engine, self.Session = memory_sessionmaker()
        self.db = self.Session()
        clock = frozen_now()
        clock.start()
        self.addCleanup(clock.stop)

        add_profile(self.db)
        add_weigh_in(self.db, datetime(2024, 1, 10, 8, 0), 140)

    def tearDown(self) -> None:
        self.db.close()
        self.engine.dispose()

    def test_scored_cycle_becomes_wearable_total(self) -> None:
        with mock_client(lambda request: httpx.Response(200, json=CYCLES)) as client:
            row = vendor.sync_whoop_total(self.db, "u1", "2024-01-10", client=client, access_token="tok")

        self.assertEqual(row.tdee_cal, 2600)
        self.assertEqual(row.bmr_cal, 1355)
        self.assertEqual(row.source, "vendor")
        self.assertEqual(row.vendor_external_id, "93845")
        self.assertEqual(row.vendor_payload_hash, vendor.payload_hash(CYCLES["records"][1]))
        self.assertEqual(row.synced_at, datetime(2024, 1, 15, 12, 0))
        self.assertEqual(row.system_tdee_cal, 2100)

    def test_no_scored_cycle_leaves_ledger_alone(self) -> None:
        with mock_client(lambda request: httpx.Response(200, json={"records": []})) as client:
            row = vendor.sync_whoop_total(self.db, "u1", "2024-01-10", client=client, access_token="tok")

        self.assertIsNone(row)
        self.assertIsNone(ledger_store.find_by_day(self.db, "u1", datetime(2024, 1, 10).date()))

    def test_vendor_failure_propagates(self) -> None:
        with mock_client(lambda request: httpx.Response(500, text="down")) as client:
            with self.assertRaises(VendorSyncError):
                vendor.sync_whoop_total(self.db, "u1", "2024-01-10", client=client, access_token="tok")


if __name__ == "__main__":
    unittest.main()
