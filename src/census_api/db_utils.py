"""
Database utilities for schema creation, seeding and inspection.

Every function takes a `Database` handle; callers own its lifetime.
"""

from datetime import date
from typing import Dict

from loguru import logger
from sqlalchemy import func, select

from . import store
from .aggregates import POPULATION_DENSITY_VIEW, population_density_select, population_density_view
from .db import Database
from .models import (
    Base,
    CensusRecord,
    ConservationStatus,
    ConservationStatusChange,
    Location,
    Observer,
    Species,
)
from .schemas import CensusRecordIn, Coordinates, LocationIn, ObserverIn, SpeciesIn


def population_density_view_ddl(dialect) -> str:
    """CREATE VIEW statement for the density view, rendered for `dialect`."""
    compiled = population_density_select().compile(
        dialect=dialect, compile_kwargs={"literal_binds": True}
    )
    return f"CREATE VIEW {POPULATION_DENSITY_VIEW} AS {compiled}"


async def create_schema(database: Database, drop_existing: bool = False) -> None:
    """
    Create all tables and the population density view.

    Args:
        database: target database handle
        drop_existing: If True, drop all existing tables first
    """
    async with database.engine.begin() as conn:
        # The view depends on the tables, so it goes first and comes back last.
        await conn.exec_driver_sql(f"DROP VIEW IF EXISTS {POPULATION_DENSITY_VIEW}")
        if drop_existing:
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
        await conn.exec_driver_sql(population_density_view_ddl(conn.dialect))
    logger.info("Schema ready")


SAMPLE_SPECIES = [
    SpeciesIn(name="Bengal Tiger", scientific_name="Panthera tigris tigris",
              conservation_status=ConservationStatus.ENDANGERED),
    SpeciesIn(name="Asian Elephant", scientific_name="Elephas maximus",
              conservation_status=ConservationStatus.ENDANGERED),
    SpeciesIn(name="Snow Leopard", scientific_name="Panthera uncia",
              conservation_status=ConservationStatus.ENDANGERED),
    SpeciesIn(name="Indian Rhinoceros", scientific_name="Rhinoceros unicornis",
              conservation_status=ConservationStatus.VULNERABLE),
]

SAMPLE_LOCATIONS = [
    LocationIn(name="Sundarbans", region="West Bengal",
               coordinates=Coordinates(lat=21.9497, lng=88.9404), area_hectares=10000),
    LocationIn(name="Kaziranga", region="Assam",
               coordinates=Coordinates(lat=26.5775, lng=93.1711), area_hectares=43000),
    LocationIn(name="Hemis", region="Ladakh",
               coordinates=Coordinates(lat=33.9167, lng=77.2500), area_hectares=440000),
]

SAMPLE_OBSERVER = ObserverIn(
    name="Field Survey Team",
    email="survey@wildlife-census.example",
    organization="Wildlife Census",
    expertise="Large mammals",
    join_date=date(2023, 1, 1),
)


async def seed_initial_data(database: Database) -> bool:
    """
    Seed the database with a small sample data set.

    Returns False without writing anything when species already exist.
    """
    async with database.session_maker() as session:
        existing = await session.scalar(select(func.count()).select_from(Species))
        if existing:
            return False

        species_ids = [await store.create_species(session, s) for s in SAMPLE_SPECIES]
        location_ids = [await store.create_location(session, loc) for loc in SAMPLE_LOCATIONS]
        observer_id = await store.create_observer(session, SAMPLE_OBSERVER)

        tiger, elephant, leopard, rhino = species_ids
        sundarbans, kaziranga, hemis = location_ids
        censuses = [
            (tiger, sundarbans, 96, date(2023, 4, 20)),
            (tiger, sundarbans, 100, date(2024, 4, 20)),
            (elephant, kaziranga, 1940, date(2023, 3, 1)),
            (elephant, kaziranga, 2010, date(2024, 3, 1)),
            (rhino, kaziranga, 2613, date(2024, 3, 1)),
            (leopard, hemis, 120, date(2024, 2, 10)),
        ]
        for species_id, location_id, count, census_date in censuses:
            await store.record_census(session, CensusRecordIn(
                species_id=species_id,
                location_id=location_id,
                observer_id=observer_id,
                count=count,
                census_date=census_date,
            ))

        await store.record_conservation_status_change(
            session,
            species_id=leopard,
            previous_status=ConservationStatus.ENDANGERED.value,
            new_status=ConservationStatus.VULNERABLE.value,
            reason="Reassessed population estimate",
            changed_by="Field Survey Team",
        )
    return True


async def get_database_stats(database: Database) -> Dict[str, int]:
    """
    Get statistics about the database contents.

    Returns:
        Dictionary with table counts
    """
    models = [Species, Location, Observer, CensusRecord, ConservationStatusChange]
    stats = {}
    async with database.session_maker() as session:
        for model in models:
            count = await session.scalar(select(func.count()).select_from(model))
            stats[model.__tablename__] = int(count or 0)
    return stats


async def verify_schema(database: Database) -> bool:
    """
    Verify that every table and the density view can be queried.

    Returns:
        True if schema is valid, False otherwise
    """
    try:
        async with database.session_maker() as session:
            for model in (Species, Location, Observer, CensusRecord, ConservationStatusChange):
                await session.execute(select(model).limit(1))
            await session.execute(select(population_density_view).limit(1))
        return True
    except Exception as e:
        logger.warning(f"Schema verification failed: {e}")
        return False
