"""Tests for bulk actions, duplicate detection and vehicle edits."""
from app.models.history import AccreditationHistory, HistoryAction
from app.models.user import Feature
from app.services import bulk_service
from tests.conftest import (
    auth_headers,
    create_test_accreditation,
    create_test_user,
    vehicle_payload,
)


class TestBulk:
    """POST /api/accreditations/bulk."""

    def test_failures_are_isolated(self, client, agent_headers):
        a = create_test_accreditation(client, company="A")
        b = create_test_accreditation(client, company="B")
        resp = client.post(
            "/api/accreditations/bulk",
            json={"ids": [a["id"], "missing-id", b["id"]], "action": "ENTREE"},
            headers=agent_headers,
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["total"] == 3
        assert data["succeeded"] == 2
        assert data["failed"] == 1
        failed = [r for r in data["results"] if not r["success"]]
        assert failed[0]["id"] == "missing-id"
        assert "not found" in failed[0]["error"].lower()

        for acc in (a, b):
            current = client.get(f"/api/accreditations/{acc['id']}", headers=agent_headers).json()
            assert current["status"] == "ENTREE"
            assert current["version"] == 2

    def test_unexpected_error_on_one_id_does_not_stop_the_rest(self, client, agent_headers, monkeypatch):
        a = create_test_accreditation(client, company="A")
        b = create_test_accreditation(client, company="B")
        c = create_test_accreditation(client, company="C")
        real_change_status = bulk_service.change_status

        def _flaky_change_status(db, accreditation_id, *args, **kwargs):
            if accreditation_id == b["id"]:
                raise RuntimeError("database went away")
            return real_change_status(db, accreditation_id, *args, **kwargs)

        monkeypatch.setattr(bulk_service, "change_status", _flaky_change_status)
        resp = client.post(
            "/api/accreditations/bulk",
            json={"ids": [a["id"], b["id"], c["id"]], "action": "ENTREE"},
            headers=agent_headers,
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["succeeded"] == 2
        assert data["failed"] == 1
        assert data["results"][1] == {"id": b["id"], "success": False, "error": "Internal error"}

        statuses = {
            acc["id"]: client.get(f"/api/accreditations/{acc['id']}", headers=agent_headers).json()["status"]
            for acc in (a, b, c)
        }
        assert statuses == {a["id"]: "ENTREE", b["id"]: "ATTENTE", c["id"]: "ENTREE"}

    def test_bulk_archive_needs_archives_write(self, client, agent_headers):
        acc = create_test_accreditation(client)
        resp = client.post(
            "/api/accreditations/bulk", json={"ids": [acc["id"]], "action": "ARCHIVE"}, headers=agent_headers
        )
        assert resp.status_code == 403

    def test_bulk_archive(self, client, db):
        archivist = create_test_user(
            db, email="archivist@example.com", permissions={Feature.LISTE: "write", Feature.ARCHIVES: "write"}
        )
        acc = create_test_accreditation(client)
        resp = client.post(
            "/api/accreditations/bulk",
            json={"ids": [acc["id"]], "action": "ARCHIVE"},
            headers=auth_headers(archivist),
        )
        assert resp.json()["succeeded"] == 1
        entry = db.query(AccreditationHistory).filter(AccreditationHistory.action == HistoryAction.ARCHIVED).one()
        assert entry.user_id == archivist.id

    def test_invalid_action_is_400(self, client, agent_headers):
        acc = create_test_accreditation(client)
        resp = client.post(
            "/api/accreditations/bulk", json={"ids": [acc["id"]], "action": "EXPLODE"}, headers=agent_headers
        )
        assert resp.status_code == 400

    def test_empty_ids_is_400(self, client, agent_headers):
        resp = client.post("/api/accreditations/bulk", json={"ids": [], "action": "ENTREE"}, headers=agent_headers)
        assert resp.status_code == 400


class TestDuplicates:
    """POST /api/accreditations/check-duplicate (public)."""

    def test_normalised_match(self, client):
        acc = create_test_accreditation(client, company="Acme")
        resp = client.post("/api/accreditations/check-duplicate", json={"company": " acme ", "plate": "ab123cd"})
        assert resp.status_code == 200
        duplicates = resp.json()["duplicates"]
        assert [d["id"] for d in duplicates] == [acc["id"]]
        assert duplicates[0]["vehicles"][0]["plate"] == "AB-123-CD"

    def test_other_company_does_not_match(self, client):
        create_test_accreditation(client, company="Acme")
        resp = client.post("/api/accreditations/check-duplicate", json={"company": "Globex", "plate": "AB-123-CD"})
        assert resp.json()["duplicates"] == []

    def test_archived_are_ignored(self, client, admin_headers):
        acc = create_test_accreditation(client, company="Acme")
        client.post(f"/api/accreditations/{acc['id']}/archive", json={"archive": True}, headers=admin_headers)
        resp = client.post("/api/accreditations/check-duplicate", json={"company": "Acme", "plate": "AB-123-CD"})
        assert resp.json()["duplicates"] == []

    def test_trailer_plate_must_match_when_given(self, client):
        create_test_accreditation(client, vehicles=[vehicle_payload(trailerPlate="TR-900-XY")])
        hit = client.post(
            "/api/accreditations/check-duplicate",
            json={"company": "Acme", "plate": "AB-123-CD", "trailerPlate": "tr 900 xy"},
        )
        miss = client.post(
            "/api/accreditations/check-duplicate",
            json={"company": "Acme", "plate": "AB-123-CD", "trailerPlate": "ZZ-000-ZZ"},
        )
        assert len(hit.json()["duplicates"]) == 1
        assert miss.json()["duplicates"] == []

    def test_missing_fields_return_nothing(self, client):
        create_test_accreditation(client)
        resp = client.post("/api/accreditations/check-duplicate", json={"company": "Acme"})
        assert resp.json()["duplicates"] == []


class TestVehicles:
    """Vehicle add / update / delete bump the parent version."""

    def test_add_vehicle(self, client, db, agent_headers):
        acc = create_test_accreditation(client)
        resp = client.post(
            f"/api/accreditations/{acc['id']}/vehicles",
            json=vehicle_payload(plate="XY-999-ZZ", unloading=["side", "rear"]),
            headers=agent_headers,
        )
        assert resp.status_code == 201
        assert resp.json()["unloading"] == ["side", "rear"]
        current = client.get(f"/api/accreditations/{acc['id']}", headers=agent_headers).json()
        assert len(current["vehicles"]) == 2
        assert current["version"] == 2

    def test_update_vehicle_records_changes(self, client, db, agent_headers):
        acc = create_test_accreditation(client)
        vehicle_id = acc["vehicles"][0]["id"]
        resp = client.patch(
            f"/api/vehicles/{vehicle_id}",
            json={"city": "Marseille", "version": 1},
            headers=agent_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["city"] == "Marseille"
        entry = db.query(AccreditationHistory).filter(
            AccreditationHistory.action == HistoryAction.VEHICLE_UPDATED
        ).one()
        assert "Nice" in entry.old_value
        assert "Marseille" in entry.new_value

    def test_update_with_stale_version_is_409(self, client, agent_headers):
        acc = create_test_accreditation(client)
        client.post(f"/api/accreditations/{acc['id']}/status", json={"status": "ENTREE"}, headers=agent_headers)
        resp = client.patch(
            f"/api/vehicles/{acc['vehicles'][0]['id']}", json={"city": "Lyon", "version": 1}, headers=agent_headers
        )
        assert resp.status_code == 409

    def test_last_vehicle_cannot_be_removed(self, client, agent_headers):
        acc = create_test_accreditation(client)
        resp = client.delete(f"/api/vehicles/{acc['vehicles'][0]['id']}", headers=agent_headers)
        assert resp.status_code == 400

    def test_remove_vehicle(self, client, db, agent_headers):
        acc = create_test_accreditation(client, vehicles=[vehicle_payload(), vehicle_payload(plate="ZZ-111-AA")])
        resp = client.delete(f"/api/vehicles/{acc['vehicles'][1]['id']}", headers=agent_headers)
        assert resp.status_code == 204
        current = client.get(f"/api/accreditations/{acc['id']}", headers=agent_headers).json()
        assert [v["plate"] for v in current["vehicles"]] == ["AB-123-CD"]
        assert current["version"] == 2
        entry = db.query(AccreditationHistory).filter(
            AccreditationHistory.action == HistoryAction.VEHICLE_REMOVED
        ).one()
        assert entry.old_value == "ZZ-111-AA"

    def test_unknown_vehicle_is_404(self, client, agent_headers):
        assert client.delete("/api/vehicles/4242", headers=agent_headers).status_code == 404
