"""
Shared test fixtures for the census API test suite.
"""

import pytest
from starlette.testclient import TestClient

from census_api import db_utils
from census_api.api import create_app
from census_api.config import Settings
from census_api.db import Database


@pytest.fixture
def anyio_backend():
    return 'asyncio'


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'census.db'}"


@pytest.fixture
def client(database_url):
    """API client over a fresh SQLite database; the schema is built at startup."""
    settings = Settings(database_url=database_url, create_schema=True, log_level="WARNING")
    app = create_app(settings)
    with TestClient(app) as client:
        yield client


@pytest.fixture
async def database(database_url):
    """Database handle with the schema created, for store-level tests."""
    database = Database.from_url(database_url)
    await db_utils.create_schema(database)
    yield database
    await database.dispose()


@pytest.fixture
def tiger_setup(client):
    """Bengal Tiger, the Sundarbans and one observer, created through the API."""
    species = client.post("/species", json={
        "name": "Bengal Tiger",
        "scientific_name": "Panthera tigris tigris",
        "conservation_status": "Endangered",
    })
    location = client.post("/locations", json={
        "name": "Sundarbans",
        "region": "West Bengal",
        "coordinates": {"lat": 21.9497, "lng": 88.9404},
        "area_hectares": 10000,
    })
    observer = client.post("/observers", json={
        "name": "Asha Rao",
        "email": "asha@example.org",
        "organization": "WII",
    })
    assert species.status_code == 200
    assert location.status_code == 200
    assert observer.status_code == 200
    return {
        "species_id": species.json()["id"],
        "location_id": location.json()["id"],
        "observer_id": observer.json()["id"],
    }
