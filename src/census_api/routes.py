"""HTTP routes. Each handler translates a request into one store or aggregate call."""
from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from . import aggregates, store
from .db import get_db
from .schemas import (
    CensusRecordIn,
    CensusRecordSchema,
    CensusReportRow,
    ConservationStatusChangeIn,
    ConservationStatusChangeSchema,
    DetailedCensusReportRow,
    ErrorResponse,
    GrowthRateSchema,
    GrowthRatesResponse,
    LocationIn,
    LocationSchema,
    ObserverIn,
    ObserverSchema,
    ObserverUpdate,
    PopulationDensitySchema,
    SpeciesIn,
    SpeciesSchema,
    WriteResponse,
)

router = APIRouter()

NOT_FOUND = {404: {"model": ErrorResponse}}
BAD_REQUEST = {400: {"model": ErrorResponse}}


def _limit():
    return Query(default=100, ge=1, le=1000, description="Maximum results per page")


def _offset():
    return Query(default=0, ge=0, description="Number of results to skip")


def _months():
    return Query(None, ge=1, le=1200, description="Only use census records from the last N months")


# ============================================================================
# Species
# ============================================================================

@router.get("/species", response_model=List[SpeciesSchema], tags=["species"])
async def list_species(
    db: AsyncSession = Depends(get_db),
    limit: int = _limit(),
    offset: int = _offset(),
):
    """List all species."""
    species = await store.list_species(db, limit=limit, offset=offset)
    return [SpeciesSchema.model_validate(s) for s in species]


# Fixed sub-paths are registered before /species/{species_id}.
@router.get("/species/population-density", response_model=List[PopulationDensitySchema], tags=["aggregates"])
async def list_population_density(db: AsyncSession = Depends(get_db)):
    """Population per hectare of observed habitat, for every species."""
    return await aggregates.population_density(db)


@router.get("/species/growth-rates", response_model=GrowthRatesResponse, tags=["aggregates"])
async def list_growth_rates(
    db: AsyncSession = Depends(get_db),
    months: Optional[int] = _months(),
):
    """
    Growth rate per species with at least two census records, plus the average.

    growth_rate = (max(count) - min(count)) / min(count) * 100, rounded to 2 places.
    """
    return await aggregates.growth_rates(db, months=months)


@router.get("/species/{species_id}", response_model=SpeciesSchema, responses=NOT_FOUND, tags=["species"])
async def get_species(
    species_id: int = Path(..., description="Species ID"),
    db: AsyncSession = Depends(get_db),
):
    species = await store.get_species(db, species_id)
    return SpeciesSchema.model_validate(species)


@router.post("/species", response_model=WriteResponse, responses=BAD_REQUEST, tags=["species"])
async def create_species(payload: SpeciesIn, db: AsyncSession = Depends(get_db)):
    species_id = await store.create_species(db, payload)
    return WriteResponse(id=species_id, message="Species added successfully")


@router.put("/species/{species_id}", response_model=WriteResponse, responses={**NOT_FOUND, **BAD_REQUEST}, tags=["species"])
async def update_species(
    payload: SpeciesIn,
    species_id: int = Path(..., description="Species ID"),
    db: AsyncSession = Depends(get_db),
):
    await store.update_species(db, species_id, payload)
    return WriteResponse(id=species_id, message="Species updated successfully")


@router.get(
    "/species/{species_id}/population-density",
    response_model=PopulationDensitySchema,
    responses=NOT_FOUND,
    tags=["aggregates"],
)
async def get_population_density(
    species_id: int = Path(..., description="Species ID"),
    db: AsyncSession = Depends(get_db),
):
    rows = await aggregates.population_density(db, species_id=species_id)
    return rows[0]


@router.get(
    "/species/{species_id}/growth-rate",
    response_model=GrowthRateSchema,
    responses=NOT_FOUND,
    tags=["aggregates"],
)
async def get_growth_rate(
    species_id: int = Path(..., description="Species ID"),
    months: Optional[int] = _months(),
    db: AsyncSession = Depends(get_db),
):
    return await aggregates.species_growth_rate(db, species_id, months=months)


# ============================================================================
# Locations
# ============================================================================

@router.get("/locations", response_model=List[LocationSchema], tags=["locations"])
async def list_locations(
    db: AsyncSession = Depends(get_db),
    limit: int = _limit(),
    offset: int = _offset(),
):
    locations = await store.list_locations(db, limit=limit, offset=offset)
    return [LocationSchema.from_model(loc) for loc in locations]


@router.get("/locations/{location_id}", response_model=LocationSchema, responses=NOT_FOUND, tags=["locations"])
async def get_location(
    location_id: int = Path(..., description="Location ID"),
    db: AsyncSession = Depends(get_db),
):
    location = await store.get_location(db, location_id)
    return LocationSchema.from_model(location)


@router.post("/locations", response_model=WriteResponse, responses=BAD_REQUEST, tags=["locations"])
async def create_location(payload: LocationIn, db: AsyncSession = Depends(get_db)):
    location_id = await store.create_location(db, payload)
    return WriteResponse(id=location_id, message="Location added successfully")


@router.put("/locations/{location_id}", response_model=WriteResponse, responses={**NOT_FOUND, **BAD_REQUEST}, tags=["locations"])
async def update_location(
    payload: LocationIn,
    location_id: int = Path(..., description="Location ID"),
    db: AsyncSession = Depends(get_db),
):
    await store.update_location(db, location_id, payload)
    return WriteResponse(id=location_id, message="Location updated successfully")


# ============================================================================
# Observers
# ============================================================================

@router.get("/observers", response_model=List[ObserverSchema], tags=["observers"])
async def list_observers(
    db: AsyncSession = Depends(get_db),
    limit: int = _limit(),
    offset: int = _offset(),
):
    observers = await store.list_observers(db, limit=limit, offset=offset)
    return [ObserverSchema.model_validate(o) for o in observers]


@router.get("/observers/{observer_id}", response_model=ObserverSchema, responses=NOT_FOUND, tags=["observers"])
async def get_observer(
    observer_id: int = Path(..., description="Observer ID"),
    db: AsyncSession = Depends(get_db),
):
    observer = await store.get_observer(db, observer_id)
    return ObserverSchema.model_validate(observer)


@router.post("/observers", response_model=WriteResponse, responses=BAD_REQUEST, tags=["observers"])
async def create_observer(payload: ObserverIn, db: AsyncSession = Depends(get_db)):
    observer_id = await store.create_observer(db, payload)
    return WriteResponse(id=observer_id, message="Observer added successfully")


@router.put("/observers/{observer_id}", response_model=WriteResponse, responses={**NOT_FOUND, **BAD_REQUEST}, tags=["observers"])
async def update_observer(
    payload: ObserverUpdate,
    observer_id: int = Path(..., description="Observer ID"),
    db: AsyncSession = Depends(get_db),
):
    """Sparse update: only the fields sent in the body are changed."""
    await store.update_observer(db, observer_id, payload)
    return WriteResponse(id=observer_id, message="Observer updated successfully")


# ============================================================================
# Census Records
# ============================================================================

@router.get("/census", response_model=List[CensusRecordSchema], tags=["census"])
async def list_census(
    db: AsyncSession = Depends(get_db),
    species_id: Optional[int] = Query(None, description="Filter by species ID"),
    location_id: Optional[int] = Query(None, description="Filter by location ID"),
    observer_id: Optional[int] = Query(None, description="Filter by observer ID"),
    limit: int = _limit(),
    offset: int = _offset(),
):
    return await store.list_census(
        db,
        species_id=species_id,
        location_id=location_id,
        observer_id=observer_id,
        limit=limit,
        offset=offset,
    )


@router.get("/census/dates", response_model=List[date], tags=["census"])
async def list_census_dates(db: AsyncSession = Depends(get_db)):
    """Distinct census dates, newest first."""
    return await store.list_census_dates(db)


@router.post("/census", response_model=WriteResponse, responses={**NOT_FOUND, **BAD_REQUEST}, tags=["census"])
async def record_census(payload: CensusRecordIn, db: AsyncSession = Depends(get_db)):
    """Record a census count; the species' population_count and last_census_date follow it."""
    record_id = await store.record_census(db, payload)
    return WriteResponse(id=record_id, message="Census record added successfully")


@router.put("/census/{record_id}", response_model=WriteResponse, responses={**NOT_FOUND, **BAD_REQUEST}, tags=["census"])
async def update_census(
    payload: CensusRecordIn,
    record_id: int = Path(..., description="Census record ID"),
    db: AsyncSession = Depends(get_db),
):
    await store.update_census(db, record_id, payload)
    return WriteResponse(id=record_id, message="Census record updated successfully")


# ============================================================================
# Reports
# ============================================================================

@router.get("/reports/census", response_model=List[CensusReportRow], responses=BAD_REQUEST, tags=["reports"])
async def census_report(
    start_date: date = Query(..., description="First census date to include (YYYY-MM-DD)"),
    end_date: date = Query(..., description="Last census date to include (YYYY-MM-DD)"),
    db: AsyncSession = Depends(get_db),
):
    return await store.census_report(db, start_date, end_date)


@router.get(
    "/reports/census/detailed",
    response_model=List[DetailedCensusReportRow],
    responses={**NOT_FOUND, **BAD_REQUEST},
    tags=["reports"],
)
async def detailed_census_report(
    census_date: date = Query(..., description="Census date (YYYY-MM-DD)"),
    db: AsyncSession = Depends(get_db),
):
    """Every record on one date with species status and population density."""
    return await store.detailed_census_report(db, census_date)


# ============================================================================
# Conservation Status History
# ============================================================================

@router.get(
    "/conservation-history/{species_id}",
    response_model=List[ConservationStatusChangeSchema],
    responses=NOT_FOUND,
    tags=["conservation"],
)
async def list_conservation_history(
    species_id: int = Path(..., description="Species ID"),
    db: AsyncSession = Depends(get_db),
):
    changes = await store.list_conservation_history(db, species_id)
    return [ConservationStatusChangeSchema.model_validate(c) for c in changes]


@router.post(
    "/conservation-history",
    response_model=WriteResponse,
    responses={**NOT_FOUND, **BAD_REQUEST},
    tags=["conservation"],
)
async def record_conservation_status_change(
    payload: ConservationStatusChangeIn,
    db: AsyncSession = Depends(get_db),
):
    change_id = await store.record_conservation_status_change(
        db,
        species_id=payload.species_id,
        previous_status=payload.previous_status,
        new_status=payload.new_status,
        reason=payload.reason,
        changed_by=payload.changed_by,
    )
    return WriteResponse(
        id=change_id,
        message="Conservation status history record added successfully and species updated",
    )
