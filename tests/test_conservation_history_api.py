"""Conservation status history endpoints."""


def _change(species_id, previous="Endangered", new="Vulnerable", **extra):
    body = {"species_id": species_id, "previous_status": previous, "new_status": new}
    body.update(extra)
    return body


class TestRecordStatusChange:
    def test_change_updates_species_status(self, client, tiger_setup):
        species_id = tiger_setup["species_id"]
        response = client.post("/conservation-history", json=_change(
            species_id, reason="Population recovery", changed_by="Dr. Jane Smith",
        ))
        assert response.status_code == 200
        assert isinstance(response.json()["id"], int)

        assert client.get(f"/species/{species_id}").json()["conservation_status"] == "Vulnerable"
        (entry,) = client.get(f"/conservation-history/{species_id}").json()
        assert entry["previous_status"] == "Endangered"
        assert entry["new_status"] == "Vulnerable"
        assert entry["reason"] == "Population recovery"
        assert entry["changed_by"] == "Dr. Jane Smith"
        assert entry["change_date"] is not None

    def test_latest_change_decides_current_status(self, client, tiger_setup):
        species_id = tiger_setup["species_id"]
        client.post("/conservation-history", json=_change(species_id, "Endangered", "Vulnerable"))
        client.post("/conservation-history", json=_change(species_id, "Vulnerable", "Near Threatened"))

        assert client.get(f"/species/{species_id}").json()["conservation_status"] == "Near Threatened"
        history = client.get(f"/conservation-history/{species_id}").json()
        assert [h["new_status"] for h in history] == ["Near Threatened", "Vulnerable"]

    def test_any_transition_between_known_statuses_is_allowed(self, client, tiger_setup):
        species_id = tiger_setup["species_id"]
        response = client.post("/conservation-history", json=_change(species_id, "Extinct", "Least Concern"))
        assert response.status_code == 200

    def test_unknown_status_is_rejected_without_writes(self, client, tiger_setup):
        species_id = tiger_setup["species_id"]
        response = client.post("/conservation-history", json=_change(species_id, new="Thriving"))
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "Invalid status value"
        assert "Least Concern" in body["details"]

        assert client.get(f"/conservation-history/{species_id}").json() == []
        assert client.get(f"/species/{species_id}").json()["conservation_status"] == "Endangered"

    def test_missing_status_is_rejected(self, client, tiger_setup):
        response = client.post("/conservation-history", json=_change(tiger_setup["species_id"], previous=""))
        assert response.status_code == 400
        assert response.json()["error"] == "Missing required fields"

    def test_missing_species_id_is_rejected(self, client):
        response = client.post("/conservation-history", json={
            "previous_status": "Endangered", "new_status": "Vulnerable",
        })
        assert response.status_code == 400

    def test_unknown_species_is_404(self, client):
        response = client.post("/conservation-history", json=_change(404))
        assert response.status_code == 404
        assert response.json()["error"] == "Species not found"


class TestListStatusHistory:
    def test_species_without_history_gives_empty_list(self, client, tiger_setup):
        response = client.get(f"/conservation-history/{tiger_setup['species_id']}")
        assert response.status_code == 200
        assert response.json() == []

    def test_unknown_species_is_404(self, client):
        response = client.get("/conservation-history/12")
        assert response.status_code == 404

    def test_invalid_species_id_is_400(self, client):
        assert client.get("/conservation-history/abc").status_code == 400
