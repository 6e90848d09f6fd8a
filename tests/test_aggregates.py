"""Population density and growth rate figures."""
from datetime import date, timedelta

import pytest

from census_api.aggregates import compute_growth_rate, months_ago


def _record(client, ids, count, census_date, **overrides):
    body = dict(ids, count=count, census_date=census_date)
    body.update(overrides)
    response = client.post("/census", json=body)
    assert response.status_code == 200
    return response


def _species(client, name, status="Least Concern"):
    return client.post("/species", json={"name": name, "conservation_status": status}).json()["id"]


class TestGrowthRateHelpers:
    def test_growth_is_rounded_percentage(self):
        assert compute_growth_rate(50, 75) == 50.0
        assert compute_growth_rate(3, 4) == 33.33

    def test_zero_baseline_gives_zero(self):
        assert compute_growth_rate(0, 10) == 0.0

    def test_months_ago_clips_to_month_end(self):
        assert months_ago(date(2024, 3, 31), 1) == date(2024, 2, 29)
        assert months_ago(date(2024, 1, 15), 13) == date(2022, 12, 15)


class TestGrowthRates:
    def test_single_record_species_are_excluded(self, client, tiger_setup):
        _record(client, tiger_setup, 50, "2023-01-01")
        _record(client, tiger_setup, 75, "2024-01-01")
        lone = _species(client, "Gharial")
        _record(client, tiger_setup, 10, "2024-01-01", species_id=lone)

        data = client.get("/species/growth-rates").json()
        assert [s["name"] for s in data["species"]] == ["Bengal Tiger"]
        tiger = data["species"][0]
        assert tiger["initial_population"] == 50
        assert tiger["current_population"] == 75
        assert tiger["census_count"] == 2
        assert tiger["growth_rate"] == 50.0
        assert data["averageGrowthRate"] == pytest.approx(50.0)

    def test_growth_uses_min_and_max_not_order(self, client, tiger_setup):
        _record(client, tiger_setup, 200, "2022-01-01")
        _record(client, tiger_setup, 100, "2023-01-01")
        _record(client, tiger_setup, 150, "2024-01-01")
        (tiger,) = client.get("/species/growth-rates").json()["species"]
        assert tiger["growth_rate"] == 100.0

    def test_average_over_qualifying_species(self, client, tiger_setup):
        _record(client, tiger_setup, 100, "2023-01-01")
        _record(client, tiger_setup, 110, "2024-01-01")
        other = _species(client, "Asian Elephant")
        _record(client, tiger_setup, 40, "2023-01-01", species_id=other)
        _record(client, tiger_setup, 50, "2024-01-01", species_id=other)

        data = client.get("/species/growth-rates").json()
        assert {s["name"]: s["growth_rate"] for s in data["species"]} == {
            "Asian Elephant": 25.0,
            "Bengal Tiger": 10.0,
        }
        assert data["averageGrowthRate"] == pytest.approx(17.5)

    def test_no_qualifying_species(self, client, tiger_setup):
        _record(client, tiger_setup, 100, "2024-01-01")
        assert client.get("/species/growth-rates").json() == {"species": [], "averageGrowthRate": 0.0}

    def test_zero_minimum_reports_zero(self, client, tiger_setup):
        _record(client, tiger_setup, 0, "2023-01-01")
        _record(client, tiger_setup, 12, "2024-01-01")
        (tiger,) = client.get("/species/growth-rates").json()["species"]
        assert tiger["growth_rate"] == 0.0

    def test_months_window_drops_old_records(self, client, tiger_setup):
        today = date.today()
        _record(client, tiger_setup, 10, (today - timedelta(days=3650)).isoformat())
        _record(client, tiger_setup, 40, (today - timedelta(days=60)).isoformat())
        _record(client, tiger_setup, 50, (today - timedelta(days=10)).isoformat())

        (all_time,) = client.get("/species/growth-rates").json()["species"]
        assert all_time["growth_rate"] == 400.0
        (recent,) = client.get("/species/growth-rates?months=12").json()["species"]
        assert recent["growth_rate"] == 25.0

    def test_single_species_endpoint(self, client, tiger_setup):
        _record(client, tiger_setup, 80, "2023-01-01")
        _record(client, tiger_setup, 100, "2024-01-01")
        data = client.get(f"/species/{tiger_setup['species_id']}/growth-rate").json()
        assert data["growth_rate"] == 25.0

    def test_single_species_needs_two_records(self, client, tiger_setup):
        _record(client, tiger_setup, 80, "2023-01-01")
        response = client.get(f"/species/{tiger_setup['species_id']}/growth-rate")
        assert response.status_code == 404
        assert response.json()["error"] == "Could not calculate growth rate"

    def test_single_species_unknown(self, client):
        response = client.get("/species/77/growth-rate")
        assert response.status_code == 404
        assert response.json()["error"] == "Species not found"


class TestPopulationDensity:
    def test_species_without_records_has_zero_density(self, client):
        _species(client, "Pangolin")
        (row,) = client.get("/species/population-density").json()
        assert row["population_count"] == 0
        assert row["total_area"] == 0
        assert row["population_density"] == 0

    def test_location_without_area_gives_zero_density(self, client, tiger_setup):
        location = client.post("/locations", json={
            "name": "Unmapped Reserve",
            "coordinates": {"lat": 10.0, "lng": 20.0},
        }).json()["id"]
        species = _species(client, "Dhole", "Endangered")
        _record(client, tiger_setup, 30, "2024-01-01", species_id=species, location_id=location)

        row = client.get(f"/species/{species}/population-density").json()
        assert row["population_count"] == 30
        assert row["total_area"] == 0
        assert row["population_density"] == 0

    def test_area_counts_each_location_once(self, client, tiger_setup):
        _record(client, tiger_setup, 100, "2023-01-01")
        _record(client, tiger_setup, 120, "2024-01-01")
        second = client.post("/locations", json={
            "name": "Corbett",
            "coordinates": {"lat": 29.5, "lng": 78.8},
            "area_hectares": 30000,
        }).json()["id"]
        _record(client, tiger_setup, 200, "2024-06-01", location_id=second)

        row = client.get(f"/species/{tiger_setup['species_id']}/population-density").json()
        assert row["total_area"] == pytest.approx(40000)
        assert row["population_density"] == pytest.approx(200 / 40000)

    def test_density_values_are_numbers(self, client, tiger_setup):
        _record(client, tiger_setup, 100, "2024-04-20")
        row = client.get(f"/species/{tiger_setup['species_id']}/population-density").json()
        assert isinstance(row["population_density"], float)
        assert isinstance(row["total_area"], float)

    def test_unknown_species_is_404(self, client):
        response = client.get("/species/5/population-density")
        assert response.status_code == 404
        assert response.json()["error"] == "Population density record not found"
