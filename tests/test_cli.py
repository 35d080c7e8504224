from __future__ import annotations

import io
import json
import sys
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path
from unittest import mock

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))
sys.path.insert(0, str(ROOT / "tests"))

from pymongo.errors import ServerSelectionTimeoutError
from support import FakeStore, xlsx_bytes

from voter_ingest import __version__
from voter_ingest.cli import main

ENV = {"VOTER_INGEST_CHUNK_PAUSE_SECONDS": "0", "VOTER_INGEST_LOG_LEVEL": "WARNING"}

ROLL_ROWS = [
    ["Voter List - Ward 5"],
    ["Sr No", "Name_En", "Name_Mr", "EPIC", "Age"],
    ["1", "John", "जॉन", "MHA1", "30"],
    ["2", "Sunita Patil", "सुनीता पाटील", "MHA2", "41"],
    ["3", "", "", "MHA3", "52"],
]


def run_main(*args: str, store: FakeStore | None = None) -> tuple[int, str, str]:
    stdout, stderr = io.StringIO(), io.StringIO()
    with mock.patch.dict("os.environ", ENV), mock.patch(
        "voter_ingest.cli.open_store", return_value=store if store is not None else FakeStore()
    ), redirect_stdout(stdout), redirect_stderr(stderr):
        code = main(list(args))
    return code, stdout.getvalue(), stderr.getvalue()


class VoterIngestCliTests(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmpdir.cleanup)
        self.roll = Path(self.tmpdir.name) / "roll.xlsx"
        self.roll.write_bytes(xlsx_bytes(ROLL_ROWS))

    def test_version(self):
        code, stdout, _ = run_main("version")
        self.assertEqual(code, 0)
        self.assertEqual(stdout.strip(), __version__)

    def test_upload_json_reports_counts_and_closes_store(self):
        store = FakeStore()
        code, stdout, _ = run_main("upload", str(self.roll), "--json", store=store)
        self.assertEqual(code, 0)
        payload = json.loads(stdout)
        self.assertEqual(payload["insertedCount"], 2)
        self.assertEqual(payload["skippedCount"], 1)
        self.assertEqual(payload["sample"][1]["name_mr"], "सुनीता पाटील")
        self.assertTrue(store.closed)

    def test_upload_with_failed_records_returns_exit_6(self):
        store = FakeStore(reject=lambda document: document["voterIdCard"] == "MHA2")
        code, _, stderr = run_main("upload", str(self.roll), store=store)
        self.assertEqual(code, 6)
        self.assertIn("Failed: 1", stderr)

    def test_batch_size_override(self):
        store = FakeStore()
        code, _, _ = run_main("upload", str(self.roll), "--batch-size", "1", "-q", store=store)
        self.assertEqual(code, 0)
        self.assertEqual(store.insert_many_calls, [1, 1])

    def test_store_unavailable_returns_exit_7(self):
        code, _, stderr = run_main("upload", str(self.roll), store=FakeStore(disconnect_on_call=1))
        self.assertEqual(code, 7)
        self.assertIn("inserted before failure: 0", stderr)

    def test_missing_file_returns_exit_1(self):
        code, _, stderr = run_main("upload", str(Path(self.tmpdir.name) / "missing.xlsx"))
        self.assertEqual(code, 1)
        self.assertIn("File not found", stderr)

    def test_unsupported_type_returns_exit_1(self):
        path = Path(self.tmpdir.name) / "roll.pdf"
        path.write_bytes(b"%PDF-1.4")
        code, _, stderr = run_main("preview", str(path))
        self.assertEqual(code, 1)
        self.assertIn("Unsupported file type", stderr)

    def test_unparseable_workbook_returns_exit_2(self):
        path = Path(self.tmpdir.name) / "broken.xlsx"
        path.write_bytes(b"PK\x03\x04 not a workbook")
        code, _, stderr = run_main("preview", str(path))
        self.assertEqual(code, 2)
        self.assertIn("Could not open workbook", stderr)

    def test_preview_json_does_not_touch_the_store(self):
        store = FakeStore()
        code, stdout, _ = run_main("preview", str(self.roll), "--json", store=store)
        self.assertEqual(code, 0)
        payload = json.loads(stdout)
        self.assertEqual(payload["headerRowIndex"], 1)
        self.assertEqual(payload["validCount"], 2)
        self.assertEqual(payload["skippedRows"], [5])
        self.assertEqual(store.insert_many_calls, [])

    def test_search_json_picks_language_from_script(self):
        store = FakeStore()
        run_main("upload", str(self.roll), "-q", store=store)
        code, stdout, _ = run_main("search", "पाटील", "--json", store=store)
        self.assertEqual(code, 0)
        payload = json.loads(stdout)
        self.assertEqual(payload["searchLanguage"], "mr")
        self.assertEqual(payload["totalCount"], 1)
        self.assertEqual(payload["data"][0]["name"], "Sunita Patil")

    def test_search_rejects_bad_page(self):
        code, _, stderr = run_main("search", "patil", "--page", "0")
        self.assertEqual(code, 1)
        self.assertIn("--page", stderr)

    def test_clear_requires_confirmation(self):
        store = FakeStore()
        run_main("upload", str(self.roll), "-q", store=store)

        code, _, stderr = run_main("clear", store=store)
        self.assertEqual(code, 1)
        self.assertIn("--yes", stderr)
        self.assertEqual(len(store.documents), 2)

        code, stdout, _ = run_main("clear", "--yes", store=store)
        self.assertEqual(code, 0)
        self.assertIn("Deleted 2 records", stdout)
        self.assertEqual(store.documents, [])

    def test_connection_error_outside_ingest_returns_exit_7(self):
        store = FakeStore()
        with mock.patch.object(store, "delete_all", side_effect=ServerSelectionTimeoutError("no servers")):
            code, _, stderr = run_main("clear", "--yes", store=store)
        self.assertEqual(code, 7)
        self.assertIn("Store error", stderr)

    def test_bad_arguments_return_exit_1(self):
        code, _, _ = run_main("upload")
        self.assertEqual(code, 1)


if __name__ == "__main__":
    unittest.main()
