"""
Record store: data access for species, locations, observers, census records
and conservation status history.

Every write runs inside `_write`, which commits on success and rolls back on
any failure before the error leaves this module. The two compound writes
(`record_census`/`update_census` and `record_conservation_status_change`)
rely on that to keep the cached species columns in step with the event tables.
"""
from contextlib import asynccontextmanager
from datetime import date
from typing import List, Optional

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy import exc as sa_exc
from sqlalchemy.ext.asyncio import AsyncSession

from .aggregates import population_density_view
from .errors import (
    CensusError,
    ConflictError,
    DatabaseConnectionError,
    NotFoundError,
    TransactionError,
    ValidationError,
)
from .models import (
    CensusRecord,
    ConservationStatus,
    ConservationStatusChange,
    Location,
    Observer,
    Species,
)
from .schemas import (
    CensusRecordIn,
    CensusRecordSchema,
    CensusReportRow,
    DetailedCensusReportRow,
    LocationIn,
    ObserverIn,
    ObserverUpdate,
    SpeciesIn,
)


@asynccontextmanager
async def _write(db: AsyncSession, action: str):
    """Commit the enclosed statements as one unit, or roll all of them back."""
    try:
        yield
        await db.commit()
    except CensusError:
        await db.rollback()
        raise
    except sa_exc.IntegrityError as exc:
        await db.rollback()
        logger.warning(f"Integrity error while trying to {action}: {exc.orig}")
        raise ConflictError(f"Failed to {action}", details=str(exc.orig)) from exc
    except sa_exc.TimeoutError as exc:
        await db.rollback()
        logger.error(f"Connection pool exhausted while trying to {action}: {exc}")
        raise DatabaseConnectionError("Database connection unavailable", details=str(exc)) from exc
    except sa_exc.SQLAlchemyError as exc:
        await db.rollback()
        logger.error(f"Rolled back while trying to {action}: {exc}")
        raise TransactionError(f"Failed to {action}", details=str(exc)) from exc


# ============================================================================
# Species
# ============================================================================

async def list_species(db: AsyncSession, limit: int = 100, offset: int = 0) -> List[Species]:
    result = await db.execute(select(Species).order_by(Species.id).limit(limit).offset(offset))
    return list(result.scalars().all())


async def get_species(db: AsyncSession, species_id: int) -> Species:
    species = await db.get(Species, species_id)
    if species is None:
        raise NotFoundError("Species not found")
    return species


async def create_species(db: AsyncSession, payload: SpeciesIn) -> int:
    species = Species(
        name=payload.name,
        scientific_name=payload.scientific_name,
        conservation_status=payload.conservation_status,
        population_count=0,
    )
    async with _write(db, "create species"):
        db.add(species)
    await db.refresh(species)
    logger.info(f"Created species {species.id} ({species.name})")
    return species.id


async def update_species(db: AsyncSession, species_id: int, payload: SpeciesIn) -> None:
    async with _write(db, "update species"):
        result = await db.execute(
            update(Species)
            .where(Species.id == species_id)
            .values(
                name=payload.name,
                scientific_name=payload.scientific_name,
                conservation_status=payload.conservation_status,
            )
        )
        if result.rowcount == 0:
            raise NotFoundError("Species not found")
    logger.info(f"Updated species {species_id}")


# ============================================================================
# Locations
# ============================================================================

async def list_locations(db: AsyncSession, limit: int = 100, offset: int = 0) -> List[Location]:
    result = await db.execute(select(Location).order_by(Location.id).limit(limit).offset(offset))
    return list(result.scalars().all())


async def get_location(db: AsyncSession, location_id: int) -> Location:
    location = await db.get(Location, location_id)
    if location is None:
        raise NotFoundError("Location not found")
    return location


async def create_location(db: AsyncSession, payload: LocationIn) -> int:
    location = Location(
        name=payload.name,
        region=payload.region,
        latitude=payload.coordinates.lat,
        longitude=payload.coordinates.lng,
        area_hectares=payload.area_hectares,
    )
    async with _write(db, "create location"):
        db.add(location)
    await db.refresh(location)
    logger.info(f"Created location {location.id} ({location.name})")
    return location.id


async def update_location(db: AsyncSession, location_id: int, payload: LocationIn) -> None:
    async with _write(db, "update location"):
        result = await db.execute(
            update(Location)
            .where(Location.id == location_id)
            .values(
                name=payload.name,
                region=payload.region,
                latitude=payload.coordinates.lat,
                longitude=payload.coordinates.lng,
                area_hectares=payload.area_hectares,
            )
        )
        if result.rowcount == 0:
            raise NotFoundError("Location not found")
    logger.info(f"Updated location {location_id}")


# ============================================================================
# Observers
# ============================================================================

async def list_observers(db: AsyncSession, limit: int = 100, offset: int = 0) -> List[Observer]:
    result = await db.execute(select(Observer).order_by(Observer.id).limit(limit).offset(offset))
    return list(result.scalars().all())


async def get_observer(db: AsyncSession, observer_id: int) -> Observer:
    observer = await db.get(Observer, observer_id)
    if observer is None:
        raise NotFoundError("Observer not found")
    return observer


async def create_observer(db: AsyncSession, payload: ObserverIn) -> int:
    observer = Observer(
        name=payload.name,
        email=payload.email,
        phone=payload.phone,
        organization=payload.organization,
        expertise=payload.expertise,
        join_date=payload.join_date or date.today(),
        active=payload.active,
    )
    async with _write(db, "create observer"):
        db.add(observer)
    await db.refresh(observer)
    logger.info(f"Created observer {observer.id} ({observer.email})")
    return observer.id


async def update_observer(db: AsyncSession, observer_id: int, patch: ObserverUpdate) -> None:
    """Write only the fields present in `patch`."""
    changes = patch.changes()
    if not changes:
        raise ValidationError("No fields to update")

    async with _write(db, "update observer"):
        result = await db.execute(
            update(Observer).where(Observer.id == observer_id).values(**changes)
        )
        if result.rowcount == 0:
            raise NotFoundError("Observer not found")
    logger.info(f"Updated observer {observer_id}: {sorted(changes)}")


# ============================================================================
# Census Records
# ============================================================================

def _census_with_names():
    return (
        select(
            CensusRecord,
            Species.name.label("species_name"),
            Location.name.label("location_name"),
            Observer.name.label("observer_name"),
        )
        .join(Species, CensusRecord.species_id == Species.id)
        .join(Location, CensusRecord.location_id == Location.id)
        .join(Observer, CensusRecord.observer_id == Observer.id)
    )


async def list_census(
    db: AsyncSession,
    species_id: Optional[int] = None,
    location_id: Optional[int] = None,
    observer_id: Optional[int] = None,
    limit: int = 100,
    offset: int = 0,
) -> List[CensusRecordSchema]:
    query = _census_with_names()
    if species_id is not None:
        query = query.where(CensusRecord.species_id == species_id)
    if location_id is not None:
        query = query.where(CensusRecord.location_id == location_id)
    if observer_id is not None:
        query = query.where(CensusRecord.observer_id == observer_id)
    query = query.order_by(CensusRecord.census_date.desc(), CensusRecord.id.desc()).limit(limit).offset(offset)

    result = await db.execute(query)
    return [
        CensusRecordSchema(
            id=record.id,
            species_id=record.species_id,
            location_id=record.location_id,
            observer_id=record.observer_id,
            count=record.count,
            census_date=record.census_date,
            notes=record.notes,
            created_at=record.created_at,
            species_name=species_name,
            location_name=location_name,
            observer_name=observer_name,
        )
        for record, species_name, location_name, observer_name in result.all()
    ]


async def _lock_species(db: AsyncSession, species_id: int) -> None:
    # FOR UPDATE serializes census writes per species on PostgreSQL; SQLite ignores it.
    result = await db.execute(
        select(Species.id).where(Species.id == species_id).with_for_update()
    )
    if result.scalar_one_or_none() is None:
        raise NotFoundError("Species not found")


async def apply_census_to_species(db: AsyncSession, species_id: int, count: int, census_date: date) -> None:
    """Copy a census count onto its species (last write wins)."""
    await db.execute(
        update(Species)
        .where(Species.id == species_id)
        .values(population_count=count, last_census_date=census_date)
    )


async def record_census(db: AsyncSession, payload: CensusRecordIn) -> int:
    """Insert a census record and refresh its species' cached figures atomically."""
    record = CensusRecord(
        species_id=payload.species_id,
        location_id=payload.location_id,
        observer_id=payload.observer_id,
        count=payload.count,
        census_date=payload.census_date,
        notes=payload.notes,
    )
    async with _write(db, "record census"):
        await _lock_species(db, payload.species_id)
        db.add(record)
        await db.flush()
        await apply_census_to_species(db, payload.species_id, payload.count, payload.census_date)

    logger.info(
        f"Recorded census {record.id}: species {payload.species_id} count={payload.count} "
        f"on {payload.census_date}"
    )
    return record.id


async def update_census(db: AsyncSession, record_id: int, payload: CensusRecordIn) -> None:
    """Rewrite a census record and re-apply its count to the species atomically."""
    async with _write(db, "update census record"):
        await _lock_species(db, payload.species_id)
        result = await db.execute(
            update(CensusRecord)
            .where(CensusRecord.id == record_id)
            .values(
                species_id=payload.species_id,
                location_id=payload.location_id,
                observer_id=payload.observer_id,
                count=payload.count,
                census_date=payload.census_date,
                notes=payload.notes,
            )
        )
        if result.rowcount == 0:
            raise NotFoundError("Census record not found")
        await apply_census_to_species(db, payload.species_id, payload.count, payload.census_date)

    logger.info(f"Updated census {record_id}: species {payload.species_id} count={payload.count}")


async def list_census_dates(db: AsyncSession) -> List[date]:
    result = await db.execute(
        select(CensusRecord.census_date).distinct().order_by(CensusRecord.census_date.desc())
    )
    return list(result.scalars().all())


async def census_report(db: AsyncSession, start_date: date, end_date: date) -> List[CensusReportRow]:
    """Census records between two dates, both inclusive, newest first."""
    if start_date > end_date:
        raise ValidationError("Start date must not be after end date")

    query = (
        _census_with_names()
        .where(CensusRecord.census_date.between(start_date, end_date))
        .order_by(CensusRecord.census_date.desc(), CensusRecord.id.desc())
    )
    result = await db.execute(query)
    return [
        CensusReportRow(
            record_id=record.id,
            count=record.count,
            census_date=record.census_date,
            notes=record.notes,
            species_name=species_name,
            location_name=location_name,
            observer_name=observer_name,
        )
        for record, species_name, location_name, observer_name in result.all()
    ]


async def detailed_census_report(db: AsyncSession, census_date: date) -> List[DetailedCensusReportRow]:
    density = population_density_view
    query = (
        select(
            Species.name.label("species_name"),
            Species.scientific_name,
            Species.conservation_status,
            Species.population_count,
            density.c.population_density,
            Location.name.label("location_name"),
            Location.region,
            CensusRecord.count,
            CensusRecord.census_date,
            Observer.name.label("observer_name"),
        )
        .select_from(CensusRecord)
        .join(Species, CensusRecord.species_id == Species.id)
        .join(Location, CensusRecord.location_id == Location.id)
        .join(Observer, CensusRecord.observer_id == Observer.id)
        .outerjoin(density, density.c.species_id == Species.id)
        .where(CensusRecord.census_date == census_date)
        .order_by(Species.name, CensusRecord.id)
    )
    rows = (await db.execute(query)).mappings().all()
    if not rows:
        raise NotFoundError("No census records found for the selected date")

    return [
        DetailedCensusReportRow(
            **{key: row[key] for key in row.keys() if key != "population_density"},
            population_density=float(row["population_density"] or 0),
        )
        for row in rows
    ]


# ============================================================================
# Conservation Status History
# ============================================================================

async def list_conservation_history(db: AsyncSession, species_id: int) -> List[ConservationStatusChange]:
    await get_species(db, species_id)
    result = await db.execute(
        select(ConservationStatusChange)
        .where(ConservationStatusChange.species_id == species_id)
        .order_by(ConservationStatusChange.change_date.desc(), ConservationStatusChange.id.desc())
    )
    return list(result.scalars().all())


async def record_conservation_status_change(
    db: AsyncSession,
    species_id: Optional[int],
    previous_status: Optional[str],
    new_status: Optional[str],
    reason: Optional[str] = None,
    changed_by: Optional[str] = None,
) -> int:
    """
    Append a status change and set the species' current status to `new_status`.

    Input is validated and the species looked up before anything is written.
    Any transition between two known statuses is accepted.
    """
    if species_id is None or not previous_status or not new_status:
        raise ValidationError(
            "Missing required fields",
            details="species_id, previous_status, and new_status are required",
        )
    try:
        previous = ConservationStatus(previous_status)
        new = ConservationStatus(new_status)
    except ValueError as exc:
        raise ValidationError(
            "Invalid status value",
            details="Status must be one of: " + ", ".join(ConservationStatus.values()),
        ) from exc

    await get_species(db, species_id)

    change = ConservationStatusChange(
        species_id=species_id,
        previous_status=previous,
        new_status=new,
        reason=reason or None,
        changed_by=changed_by or None,
    )
    async with _write(db, "record conservation status change"):
        db.add(change)
        await db.flush()
        await db.execute(
            update(Species).where(Species.id == species_id).values(conservation_status=new)
        )

    logger.info(f"Species {species_id} status {previous.value!r} -> {new.value!r} (change {change.id})")
    return change.id
