"""Tests for zone reference data.

Covers:
- Zone create with upper-cased key, duplicate key -> 409
- Listing active zones for any agent, inactive on request
- Update and soft delete (deactivation)
- Movements into an inactive zone are rejected
"""
from tests.conftest import auth_headers, create_test_accreditation, create_test_user, create_test_zone

ZONE = {
    "zone": "la-bocca",
    "label": "La Bocca",
    "address": "Avenue Francis Tonner",
    "latitude": 43.55,
    "longitude": 6.97,
}


class TestZoneConfig:
    def test_create_uppercases_key(self, client, agent_headers):
        resp = client.post("/api/zones", json=ZONE, headers=agent_headers)
        assert resp.status_code == 201
        data = resp.json()
        assert data["zone"] == "LA-BOCCA"
        assert data["is_active"] is True
        assert data["is_final_destination"] is False

    def test_duplicate_key_conflicts(self, client, agent_headers):
        client.post("/api/zones", json=ZONE, headers=agent_headers)
        resp = client.post("/api/zones", json={**ZONE, "zone": "LA-BOCCA"}, headers=agent_headers)
        assert resp.status_code == 409

    def test_missing_coordinates_is_400(self, client, agent_headers):
        payload = {k: v for k, v in ZONE.items() if k != "latitude"}
        assert client.post("/api/zones", json=payload, headers=agent_headers).status_code == 400

    def test_create_requires_zone_write(self, client, db):
        reader = create_test_user(db, email="reader@example.com")
        assert client.post("/api/zones", json=ZONE, headers=auth_headers(reader)).status_code == 403

    def test_list_sorted_by_label_and_hides_inactive(self, client, db, agent_headers):
        create_test_zone(db, "PALAIS", label="Palais")
        create_test_zone(db, "AEROPORT", label="Aeroport")
        create_test_zone(db, "OLD", label="Old lot", is_active=False)

        labels = [z["label"] for z in client.get("/api/zones", headers=agent_headers).json()]
        assert labels == ["Aeroport", "Palais"]
        everything = client.get("/api/zones", params={"include_inactive": True}, headers=agent_headers).json()
        assert len(everything) == 3

    def test_list_requires_token(self, client):
        assert client.get("/api/zones").status_code == 401

    def test_update(self, client, db, agent_headers):
        config = create_test_zone(db, "PALAIS")
        resp = client.patch(
            f"/api/zones/{config.id}", json={"label": "Palais (Quai)", "is_final_destination": True},
            headers=agent_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["label"] == "Palais (Quai)"
        assert resp.json()["is_final_destination"] is True

    def test_delete_deactivates(self, client, db, agent_headers):
        config = create_test_zone(db, "PALAIS")
        resp = client.delete(f"/api/zones/{config.id}", headers=agent_headers)
        assert resp.status_code == 200
        assert resp.json()["is_active"] is False
        assert client.get(f"/api/zones/{config.id}", headers=agent_headers).status_code == 200

    def test_unknown_zone_is_404(self, client, agent_headers):
        assert client.get("/api/zones/999", headers=agent_headers).status_code == 404

    def test_movement_into_inactive_zone_rejected(self, client, db, agent_headers):
        create_test_zone(db, "OLD", is_active=False)
        acc = create_test_accreditation(client)
        resp = client.post(
            f"/api/accreditations/{acc['id']}/zones",
            json={"action": "ENTRY", "zone": "OLD"},
            headers=agent_headers,
        )
        assert resp.status_code == 400
