from datetime import datetime

import httpx
import pytest
from bson import ObjectId, json_util

from helpers import ADMIN, BASE_URL, mock_client
from stockbook.services.schema_service import ensure_document_indexes
from stockbook.storage import (
    BackendTimeout,
    IntegrityViolation,
    RemoteDocumentBackend,
    UnsupportedQueryError,
)
from stockbook.storage.translator import to_document

NOW = datetime(2024, 3, 9, 14, 5, 7)


def backend_with(handler) -> RemoteDocumentBackend:
    return RemoteDocumentBackend.for_base_url(
        BASE_URL, ADMIN, client=mock_client(handler), clock=lambda: NOW
    )


class TestPayloadShaping:
    def setup_method(self):
        self.backend = RemoteDocumentBackend.for_base_url(BASE_URL, ADMIN, clock=lambda: NOW)

    def test_insert_is_stamped(self):
        op = to_document("INSERT INTO companies (name) VALUES (?)", ["Acme"], now=NOW)
        payload = self.backend.build_payload(op, now=NOW)
        assert payload["data"] == {"name": "Acme", "created_at": NOW, "updated_at": NOW}

    def test_caller_timestamps_win(self):
        op = to_document(
            "INSERT INTO sales (invoice_number, created_at) VALUES (?, ?)", ["INV-1", "2020-01-01 00:00:00"], now=NOW
        )
        payload = self.backend.build_payload(op, now=NOW)
        assert payload["data"]["created_at"] == "2020-01-01 00:00:00"
        assert payload["data"]["updated_at"] == NOW

    def test_explicit_id_becomes_native_key(self):
        oid = ObjectId()
        op = to_document("INSERT INTO products (id, name) VALUES (?, ?)", [str(oid), "Cola"], now=NOW)
        payload = self.backend.build_payload(op, now=NOW)
        assert payload["data"]["_id"] == oid
        assert "id" not in payload["data"]

    def test_update_by_id_targets_native_key_and_stamps(self):
        oid = ObjectId()
        op = to_document("UPDATE companies SET name = ? WHERE id = ?", ["Acme", str(oid)], now=NOW)
        payload = self.backend.build_payload(op, now=NOW)
        assert payload["method"] == "updateOne"
        assert payload["filter"] == {"_id": oid}
        assert payload["data"] == {"name": "Acme", "updated_at": NOW}

    def test_sort_and_projection_use_native_key(self):
        op = to_document("SELECT id, name FROM companies ORDER BY id DESC", [], now=NOW)
        payload = self.backend.build_payload(op, now=NOW)
        assert payload["options"]["sort"] == {"_id": -1}
        assert payload["options"]["projection"] == {"_id": 1, "name": 1}


class TestAgainstHandler:
    def test_insert_returns_string_id_and_reads_back(self, document_backend):
        result = document_backend.prepare(
            "INSERT INTO companies (name, description) VALUES (?, ?)"
        ).run("Acme", "Widgets")
        assert isinstance(result.last_insert_rowid, str)
        assert ObjectId.is_valid(result.last_insert_rowid)
        assert result.changes == 1

        row = document_backend.prepare("SELECT * FROM companies WHERE id = ?").get(result.last_insert_rowid)
        assert row["id"] == result.last_insert_rowid
        assert "_id" not in row
        assert row["name"] == "Acme"
        assert len(row["created_at"]) == len("2024-01-01 00:00:00")

    def test_stored_documents_use_native_shapes(self, document_backend, fake_mongo_db):
        document_backend.prepare("INSERT INTO companies (name) VALUES (?)").run("Acme")
        stored = fake_mongo_db["companies"].docs[0]
        assert isinstance(stored["_id"], ObjectId)
        assert isinstance(stored["created_at"], datetime)
        assert "id" not in stored

    def test_count_and_all(self, document_backend):
        insert = document_backend.prepare("INSERT INTO inventory (product_id, transaction_type, quantity) VALUES (?, ?, ?)")
        insert.run("p1", "IN", 5)
        insert.run("p1", "OUT", -2)
        insert.run("p2", "IN", 1)

        assert document_backend.prepare(
            "SELECT COUNT(*) AS n FROM inventory WHERE product_id = ?"
        ).get("p1") == {"n": 2}
        rows = document_backend.prepare(
            "SELECT product_id, quantity FROM inventory WHERE product_id = ?"
        ).all("p1")
        assert sorted(row["quantity"] for row in rows) == [-2, 5]

    def test_update_reports_matched_rows(self, document_backend):
        company_id = document_backend.prepare("INSERT INTO companies (name) VALUES (?)").run("Acme").last_insert_rowid
        update = document_backend.prepare("UPDATE companies SET name = ? WHERE id = ?")
        assert update.run("Acme", company_id).changes == 1
        assert update.run("Acme", str(ObjectId())).changes == 0

    def test_delete(self, document_backend):
        company_id = document_backend.prepare("INSERT INTO companies (name) VALUES (?)").run("Acme").last_insert_rowid
        assert document_backend.prepare("DELETE FROM companies WHERE id = ?").run(company_id).changes == 1
        assert document_backend.prepare("SELECT * FROM companies WHERE id = ?").get(company_id) is None

    def test_unique_index_collision_is_integrity_violation(self, document_backend, fake_mongo_db):
        ensure_document_indexes(fake_mongo_db)
        insert = document_backend.prepare("INSERT INTO companies (name) VALUES (?)")
        insert.run("Acme")
        with pytest.raises(IntegrityViolation) as exc_info:
            insert.run("Acme")
        assert "duplicate key" in exc_info.value.detail

    def test_run_needs_a_write(self, document_backend):
        with pytest.raises(UnsupportedQueryError):
            document_backend.prepare("SELECT * FROM companies").run()
        with pytest.raises(UnsupportedQueryError):
            document_backend.prepare("DELETE FROM companies WHERE id = ?").all("x")


class TestWire:
    def test_body_is_extended_json(self):
        seen = {}

        def handler(request):
            seen["body"] = json_util.loads(request.content)
            return httpx.Response(200, content=json_util.dumps({
                "success": True,
                "data": {"_id": ObjectId("65f0c0ffee0000000000abcd"), "name": "Acme", "created_at": NOW},
            }))

        row = backend_with(handler).prepare("SELECT * FROM companies WHERE id = ?").get("65f0c0ffee0000000000abcd")

        assert seen["body"]["method"] == "findOne"
        assert seen["body"]["filter"] == {"_id": ObjectId("65f0c0ffee0000000000abcd")}
        assert row == {"id": "65f0c0ffee0000000000abcd", "name": "Acme", "created_at": "2024-03-09 14:05:07"}

    def test_timeout_degrades_reads_not_writes(self):
        backend = backend_with(lambda request: httpx.Response(504, json={"error": "timeout"}))
        assert backend.prepare("SELECT * FROM companies").all() == []
        assert backend.prepare("SELECT COUNT(*) AS n FROM companies").get() == {"n": 0}
        with pytest.raises(BackendTimeout):
            backend.prepare("INSERT INTO companies (name) VALUES (?)").run("Acme")
