from __future__ import annotations

import sys
import unittest
from pathlib import Path
from unittest import mock

from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))
sys.path.insert(0, str(ROOT / "tests"))

from support import FakeStore, xlsx_bytes

from voter_ingest.api import create_app, get_store
from voter_ingest.config import Settings

XLSX_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

ROLL = xlsx_bytes(
    [
        ["Voter List - Ward 5"],
        ["Sr No", "Name_En", "Name_Mr", "Gender_En", "Gender_Mr", "Age"],
        ["1", "John", "जॉन", "Male", "पुरुष", "30"],
        ["2", "Sunita Patil", "सुनीता पाटील", "Female", "स्त्री", "41"],
        ["3", "", "गणेश", "", "पुरुष", "52"],
    ]
)


class ApiTestCase(unittest.TestCase):
    def setUp(self):
        self.store = FakeStore()
        self.settings = Settings(chunk_pause_seconds=0.0, default_page_size=2)
        self.app = create_app(self.settings, store=self.store)
        self.client = TestClient(self.app)

    def upload(self, content: bytes = ROLL, filename: str = "roll.xlsx"):
        return self.client.post("/api/voters/upload", files={"file": (filename, content, XLSX_TYPE)})


class UploadEndpointTests(ApiTestCase):
    def test_upload_returns_201_with_counts(self):
        response = self.upload()
        self.assertEqual(response.status_code, 201, response.text)
        body = response.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["insertedCount"], 3)
        self.assertEqual(body["totalProcessed"], 3)
        self.assertEqual(body["errorCount"], 0)
        self.assertEqual(body["headerRowIndex"], 1)
        self.assertEqual(body["sample"][2]["name"], "")
        self.assertEqual(body["sample"][2]["name_mr"], "गणेश")
        self.assertEqual(len(self.store.documents), 3)

    def test_unsupported_file_is_400(self):
        response = self.upload(b"%PDF-1.4", "roll.pdf")
        self.assertEqual(response.status_code, 400)
        body = response.json()
        self.assertEqual(body["success"], False)
        self.assertEqual(body["error"], "malformed_input")
        self.assertTrue(body["message_hi"])

    def test_missing_optional_reader_is_a_typed_400(self):
        with mock.patch(
            "voter_ingest.pipeline.load_rows",
            side_effect=ImportError(".xls files require xlrd - run: pip install xlrd"),
        ):
            response = self.upload(b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1", "roll.xls")
        self.assertEqual(response.status_code, 400)
        body = response.json()
        self.assertEqual(body["success"], False)
        self.assertEqual(body["error"], "unsupported_reader")
        self.assertIn("xlrd", body["message"])
        self.assertTrue(body["message_hi"])

    def test_missing_file_is_400(self):
        response = self.client.post("/api/voters/upload")
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "invalid_request")

    def test_no_valid_records_is_400(self):
        content = xlsx_bytes([["Sr No", "Name", "Age"], ["1", "", "40"]])
        response = self.upload(content)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "no_valid_records")
        self.assertEqual(self.store.insert_many_calls, [])

    def test_oversize_upload_is_413(self):
        app = create_app(Settings(max_upload_mb=1), store=self.store)
        response = TestClient(app).post(
            "/api/voters/upload",
            files={"file": ("roll.csv", b"x" * (2 * 1024 * 1024), "text/csv")},
        )
        self.assertEqual(response.status_code, 413)
        self.assertEqual(response.json()["error"], "upload_too_large")

    def test_transport_failure_is_503_with_counts(self):
        app = create_app(self.settings, store=FakeStore(disconnect_on_call=1))
        response = TestClient(app).post(
            "/api/voters/upload", files={"file": ("roll.xlsx", ROLL, XLSX_TYPE)}
        )
        self.assertEqual(response.status_code, 503)
        body = response.json()
        self.assertEqual(body["error"], "store_unavailable")
        self.assertEqual(body["insertedCount"], 0)


class ReadEndpointTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.upload()

    def test_list_is_paginated_with_configured_default(self):
        body = self.client.get("/api/voters").json()
        self.assertEqual(body["count"], 2)
        self.assertEqual(body["totalCount"], 3)
        self.assertEqual(body["currentPage"], 1)
        self.assertEqual(body["totalPages"], 2)

        page_two = self.client.get("/api/voters", params={"page": 2}).json()
        self.assertEqual(page_two["count"], 1)

    def test_invalid_page_is_400(self):
        response = self.client.get("/api/voters", params={"page": 0})
        self.assertEqual(response.status_code, 400)

    def test_latin_search(self):
        body = self.client.get("/api/voters/search", params={"query": "sunita"}).json()
        self.assertEqual(body["searchLanguage"], "en")
        self.assertEqual(body["totalCount"], 1)
        self.assertEqual(body["data"][0]["name"], "Sunita Patil")

    def test_devanagari_search_uses_secondary_fields(self):
        body = self.client.get("/api/voters/search", params={"query": "पुरुष"}).json()
        self.assertEqual(body["searchLanguage"], "mr")
        self.assertEqual(body["totalCount"], 2)

    def test_blank_search_is_400(self):
        response = self.client.get("/api/voters/search", params={"query": "  "})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "invalid_request")

    def test_detail_and_missing_record(self):
        record_id = self.store.documents[0]["_id"]
        body = self.client.get(f"/api/voters/{record_id}").json()
        self.assertEqual(body["data"]["name"], "John")

        missing = self.client.get("/api/voters/does-not-exist")
        self.assertEqual(missing.status_code, 404)
        self.assertEqual(missing.json()["error"], "not_found")

    def test_delete_all(self):
        body = self.client.delete("/api/voters").json()
        self.assertEqual(body["deletedCount"], 3)
        self.assertEqual(self.store.documents, [])


class ServiceEndpointTests(ApiTestCase):
    def test_health(self):
        body = self.client.get("/health").json()
        self.assertEqual(body["status"], "ok")
        self.assertEqual(body["mongodb"]["state"], "connected")

    def test_index_lists_endpoints_under_prefix(self):
        body = self.client.get("/").json()
        self.assertEqual(body["endpoints"]["uploadExcel"], "POST /api/voters/upload")

    def test_store_dependency_can_be_overridden(self):
        other = FakeStore()
        self.app.dependency_overrides[get_store] = lambda: other
        try:
            self.upload()
        finally:
            self.app.dependency_overrides.clear()
        self.assertEqual(len(other.documents), 3)
        self.assertEqual(self.store.documents, [])

    def test_custom_prefix(self):
        app = create_app(Settings(api_prefix="/v2/voters"), store=self.store)
        response = TestClient(app).get("/v2/voters")
        self.assertEqual(response.status_code, 200)


if __name__ == "__main__":
    unittest.main()
