"""HTTP-layer tests using FastAPI's TestClient against temp SQLite files."""

from __future__ import annotations

import tempfile
import unittest
from pathlib import Path

from fastapi.testclient import TestClient

from patient_registry.config import RegistryConfig
from server.app import create_app
from tests.helpers import sample_form, temp_db_path


def _config(path: Path) -> RegistryConfig:
    return RegistryConfig(db_path=path, sync_poll_seconds=0.05)


class TestPatientRoutes(unittest.TestCase):
    def setUp(self):
        self.app = create_app(_config(temp_db_path()), wait_for_database=True, watch_changes=False)
        self.client = TestClient(self.app)
        self.client.__enter__()

    def tearDown(self):
        self.client.__exit__(None, None, None)

    def _register(self, **overrides) -> dict:
        resp = self.client.post("/api/patients", json=sample_form(**overrides))
        self.assertEqual(resp.status_code, 201, resp.text)
        return resp.json()["patient"]

    def test_status_ready(self):
        body = self.client.get("/api/status").json()
        self.assertTrue(body["database"]["ready"])
        self.assertIsNone(body["database"]["error"])
        self.assertEqual(body["sync"]["reload_count"], 1)

    def test_register_list_get(self):
        ada = self._register()
        self.assertEqual(ada["created_at"], ada["updated_at"])

        listing = self.client.get("/api/patients").json()
        self.assertEqual(listing["count"], 1)
        self.assertEqual(listing["stats"]["total"], 1)
        self.assertEqual(listing["patients"][0]["id"], ada["id"])

        fetched = self.client.get(f"/api/patients/{ada['id']}").json()
        self.assertEqual(fetched["email"], "ada@example.com")

    def test_search(self):
        self._register()
        self._register(first_name="Grace", last_name="Hopper", email="grace@navy.mil")
        body = self.client.get("/api/patients", params={"q": "grace"}).json()
        self.assertEqual(body["count"], 1)
        self.assertEqual(body["patients"][0]["last_name"], "Hopper")

    def test_update_and_delete(self):
        ada = self._register()
        resp = self.client.put(f"/api/patients/{ada['id']}", json={"email": "ada@lovelace.org"})
        self.assertEqual(resp.status_code, 200, resp.text)
        updated = resp.json()["patient"]
        self.assertEqual(updated["id"], ada["id"])
        self.assertGreater(updated["updated_at"], updated["created_at"])

        resp = self.client.delete(f"/api/patients/{ada['id']}")
        self.assertEqual(resp.status_code, 200)
        listing = self.client.get("/api/patients").json()
        self.assertEqual(listing["count"], 0)

    def test_validation_error(self):
        resp = self.client.post("/api/patients", json={"first_name": "Ada"})
        self.assertEqual(resp.status_code, 422)
        self.assertEqual(resp.json()["detail"], "First name and last name are required")

    def test_duplicate_email_is_400(self):
        self._register()
        resp = self.client.post("/api/patients", json=sample_form(first_name="Augusta"))
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["title"], "Query Error")

    def test_not_found(self):
        self.assertEqual(self.client.get("/api/patients/missing").status_code, 404)
        self.assertEqual(self.client.delete("/api/patients/missing").status_code, 404)


class TestQueryRoutes(unittest.TestCase):
    def setUp(self):
        self.app = create_app(_config(temp_db_path()), wait_for_database=True, watch_changes=False)
        self.client = TestClient(self.app)
        self.client.__enter__()
        self.client.post("/api/patients", json=sample_form())

    def tearDown(self):
        self.client.__exit__(None, None, None)

    def test_execute_and_history(self):
        resp = self.client.post("/api/query", json={"sql": "SELECT first_name FROM patients"})
        self.assertEqual(resp.status_code, 200, resp.text)
        body = resp.json()
        self.assertEqual(body["columns"], ["first_name"])
        self.assertEqual(body["row_count"], 1)

        history = self.client.get("/api/query/history").json()
        self.assertEqual(history["history"], ["SELECT first_name FROM patients"])

        self.assertEqual(self.client.delete("/api/query/history").status_code, 200)
        self.assertEqual(self.client.get("/api/query/history").json()["count"], 0)

    def test_query_error(self):
        resp = self.client.post("/api/query", json={"sql": "SELEC oops"})
        self.assertEqual(resp.status_code, 400)
        self.assertIn("syntax error", resp.json()["detail"])

    def test_console_mutation_refreshes_list(self):
        self.client.post("/api/query", json={"sql": "DELETE FROM patients WHERE email IS NOT NULL"})
        self.assertEqual(self.client.get("/api/patients").json()["count"], 0)

    def test_export_csv(self):
        resp = self.client.post(
            "/api/query/export", json={"sql": "SELECT first_name, last_name FROM patients"}
        )
        self.assertEqual(resp.status_code, 200)
        self.assertTrue(resp.headers["content-type"].startswith("text/csv"))
        self.assertIn("query-results-", resp.headers["content-disposition"])
        self.assertEqual(resp.text, "first_name,last_name\nAda,Lovelace\n")

    def test_samples(self):
        samples = self.client.get("/api/query/samples").json()["samples"]
        self.assertEqual(len(samples), 6)


class TestSessionStates(unittest.TestCase):
    def test_pending_database_answers_503(self):
        # No lifespan: the session never starts.
        client = TestClient(create_app(_config(temp_db_path())))
        resp = client.get("/api/patients")
        self.assertEqual(resp.status_code, 503)
        self.assertEqual(resp.json()["detail"], "Initializing database...")
        status = client.get("/api/status").json()
        self.assertTrue(status["database"]["pending"])

    def test_failed_init_is_reported(self):
        blocker = tempfile.NamedTemporaryFile(delete=False)
        blocker.close()
        app = create_app(
            _config(Path(blocker.name) / "sub" / "registry.db"),
            wait_for_database=True,
            watch_changes=False,
        )
        with TestClient(app) as client:
            status = client.get("/api/status").json()
            self.assertFalse(status["database"]["ready"])
            self.assertTrue(status["database"]["error"])
            resp = client.post("/api/patients", json=sample_form())
            self.assertEqual(resp.status_code, 503)
            self.assertIn("Database initialization failed", resp.json()["detail"])


class TestTwoServersShareChanges(unittest.TestCase):
    def test_write_in_one_reloads_the_other(self):
        path = temp_db_path()
        app_a = create_app(_config(path), wait_for_database=True, watch_changes=False)
        app_b = create_app(_config(path), wait_for_database=True, watch_changes=False)
        with TestClient(app_a) as client_a, TestClient(app_b) as client_b:
            self.assertEqual(client_b.get("/api/patients").json()["count"], 0)

            client_a.post("/api/patients", json=sample_form())
            # B still shows its cached list until it sees the signal.
            self.assertEqual(client_b.get("/api/patients").json()["count"], 0)

            registry_b = app_b.state.registry
            self.assertTrue(registry_b.channel.poll())
            self.assertEqual(client_b.get("/api/patients").json()["count"], 1)
            self.assertEqual(client_b.get("/api/status").json()["sync"]["reload_count"], 2)


if __name__ == "__main__":
    unittest.main()
