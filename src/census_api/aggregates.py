"""
Derived census figures: population density and growth rate.

Both are recomputed from stored rows on every call. Density is read through
the `species_population_density` view, whose SELECT is defined here and
installed by `db_utils.create_schema`.
"""
import calendar
from datetime import date
from typing import List, Optional

from sqlalchemy import Column, Float, Integer, MetaData, String, Table, case, cast, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from .errors import NotFoundError
from .models import CensusRecord, Location, Species
from .schemas import GrowthRateSchema, GrowthRatesResponse, PopulationDensitySchema


POPULATION_DENSITY_VIEW = "species_population_density"

# Views live outside Base.metadata so create_all never turns them into tables.
view_metadata = MetaData()

population_density_view = Table(
    POPULATION_DENSITY_VIEW,
    view_metadata,
    Column("species_id", Integer, primary_key=True),
    Column("name", String),
    Column("population_count", Integer),
    Column("total_area", Float),
    Column("population_density", Float),
)


def population_density_select():
    """SELECT behind the density view.

    total_area sums each distinct location a species was counted at once,
    however many census records point at it. Legacy census databases summed
    the area once per census row, so their total_area reads higher.
    """
    linked = (
        select(CensusRecord.species_id, CensusRecord.location_id)
        .distinct()
        .subquery("linked_locations")
    )
    area_sum = func.sum(Location.area_hectares)
    total_area = func.coalesce(area_sum, 0.0)
    population = func.coalesce(Species.population_count, 0)

    return (
        select(
            Species.id.label("species_id"),
            Species.name.label("name"),
            population.label("population_count"),
            total_area.label("total_area"),
            case(
                (total_area > 0, cast(population, Float) / area_sum),
                else_=0.0,
            ).label("population_density"),
        )
        .select_from(Species)
        .outerjoin(linked, linked.c.species_id == Species.id)
        .outerjoin(Location, Location.id == linked.c.location_id)
        .group_by(Species.id, Species.name, Species.population_count)
    )


async def population_density(db: AsyncSession, species_id: Optional[int] = None) -> List[PopulationDensitySchema]:
    """Density for every species, or for one when species_id is given."""
    view = population_density_view
    query = select(view).order_by(view.c.name, view.c.species_id)
    if species_id is not None:
        query = query.where(view.c.species_id == species_id)

    rows = (await db.execute(query)).mappings().all()
    if species_id is not None and not rows:
        raise NotFoundError("Population density record not found")

    return [
        PopulationDensitySchema(
            species_id=row["species_id"],
            name=row["name"],
            population_count=int(row["population_count"] or 0),
            total_area=float(row["total_area"] or 0),
            population_density=float(row["population_density"] or 0),
        )
        for row in rows
    ]


def months_ago(today: date, months: int) -> date:
    """Same day `months` calendar months earlier, clipped to the month's end."""
    month_index = today.year * 12 + (today.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(today.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def compute_growth_rate(initial: int, current: int) -> float:
    if initial <= 0:
        return 0.0
    return round((current - initial) / initial * 100, 2)


async def growth_rates(
    db: AsyncSession,
    species_id: Optional[int] = None,
    months: Optional[int] = None,
) -> GrowthRatesResponse:
    """
    Growth between the smallest and largest recorded count per species.

    Species with fewer than two census records (inside the window, when
    `months` is given) are left out. The average is taken over the species
    that remain and is 0 when there are none.
    """
    record_count = func.count(CensusRecord.id)
    query = (
        select(
            Species.id.label("species_id"),
            Species.name.label("name"),
            func.min(CensusRecord.count).label("initial_population"),
            func.max(CensusRecord.count).label("current_population"),
            record_count.label("census_count"),
        )
        .join(CensusRecord, CensusRecord.species_id == Species.id)
        .group_by(Species.id, Species.name)
        .having(record_count >= 2)
        .order_by(Species.name, Species.id)
    )
    if species_id is not None:
        query = query.where(Species.id == species_id)
    if months:
        query = query.where(CensusRecord.census_date >= months_ago(date.today(), months))

    rows = (await db.execute(query)).mappings().all()

    species = [
        GrowthRateSchema(
            species_id=row["species_id"],
            name=row["name"],
            initial_population=row["initial_population"],
            current_population=row["current_population"],
            census_count=row["census_count"],
            growth_rate=compute_growth_rate(row["initial_population"], row["current_population"]),
        )
        for row in rows
    ]
    average = sum(s.growth_rate for s in species) / len(species) if species else 0.0

    return GrowthRatesResponse(species=species, average_growth_rate=average)


async def species_growth_rate(db: AsyncSession, species_id: int, months: Optional[int] = None) -> GrowthRateSchema:
    if await db.get(Species, species_id) is None:
        raise NotFoundError("Species not found")

    result = await growth_rates(db, species_id=species_id, months=months)
    if not result.species:
        raise NotFoundError(
            "Could not calculate growth rate",
            details="At least two census records are required",
        )
    return result.species[0]
