"""Location endpoints and coordinate handling."""
import pytest
from sqlalchemy import create_engine, update

from census_api.models import Location


SUNDARBANS = {
    "name": "Sundarbans",
    "region": "West Bengal",
    "coordinates": {"lat": 21.9497, "lng": 88.9404},
    "area_hectares": 10000,
}


class TestLocations:
    def test_coordinates_round_trip(self, client):
        location_id = client.post("/locations", json=SUNDARBANS).json()["id"]

        data = client.get(f"/locations/{location_id}").json()
        assert data["coordinates"]["lat"] == pytest.approx(21.9497)
        assert data["coordinates"]["lng"] == pytest.approx(88.9404)
        assert data["area_hectares"] == pytest.approx(10000)

    def test_list_serializes_coordinates_as_numbers(self, client):
        client.post("/locations", json=SUNDARBANS)
        (location,) = client.get("/locations").json()
        assert isinstance(location["coordinates"]["lat"], float)
        assert isinstance(location["coordinates"]["lng"], float)

    def test_numeric_strings_are_accepted(self, client):
        body = dict(SUNDARBANS, coordinates={"lat": "26.5775", "lng": "93.1711"})
        location_id = client.post("/locations", json=body).json()["id"]
        coordinates = client.get(f"/locations/{location_id}").json()["coordinates"]
        assert coordinates == {"lat": pytest.approx(26.5775), "lng": pytest.approx(93.1711)}

    def test_missing_coordinates_rejected(self, client):
        body = {k: v for k, v in SUNDARBANS.items() if k != "coordinates"}
        response = client.post("/locations", json=body)
        assert response.status_code == 400
        assert "coordinates" in response.json()["details"]

    def test_missing_longitude_rejected(self, client):
        body = dict(SUNDARBANS, coordinates={"lat": 21.9})
        assert client.post("/locations", json=body).status_code == 400

    def test_non_numeric_latitude_rejected(self, client):
        body = dict(SUNDARBANS, coordinates={"lat": "north", "lng": 88.9})
        response = client.post("/locations", json=body)
        assert response.status_code == 400
        assert client.get("/locations").json() == []

    def test_update_moves_location(self, client):
        location_id = client.post("/locations", json=SUNDARBANS).json()["id"]
        body = dict(SUNDARBANS, coordinates={"lat": 22.0, "lng": 89.0}, area_hectares=12000)
        response = client.put(f"/locations/{location_id}", json=body)
        assert response.status_code == 200

        data = client.get(f"/locations/{location_id}").json()
        assert data["coordinates"] == {"lat": 22.0, "lng": 89.0}
        assert data["area_hectares"] == 12000

    def test_update_requires_coordinates(self, client):
        location_id = client.post("/locations", json=SUNDARBANS).json()["id"]
        response = client.put(f"/locations/{location_id}", json={"name": "Sundarbans"})
        assert response.status_code == 400

    def test_update_missing_location_is_404(self, client):
        response = client.put("/locations/7", json=SUNDARBANS)
        assert response.status_code == 404
        assert response.json()["error"] == "Location not found"

    def test_unknown_location_is_404(self, client):
        assert client.get("/locations/7").status_code == 404

    def test_null_coordinates_read_back_as_origin(self, client, database_url):
        location_id = client.post("/locations", json=SUNDARBANS).json()["id"]

        engine = create_engine(database_url.replace("+aiosqlite", ""))
        try:
            with engine.begin() as conn:
                conn.execute(
                    update(Location).where(Location.id == location_id).values(latitude=None, longitude=None)
                )
        finally:
            engine.dispose()

        response = client.get(f"/locations/{location_id}")
        assert response.status_code == 200
        assert response.json()["coordinates"] == {"lat": 0.0, "lng": 0.0}
