"""Pydantic schemas for API request/response models."""
from datetime import date, datetime
from typing import Optional, List
from pydantic import BaseModel, Field, ConfigDict, field_validator

from .models import ConservationStatus, Location


# ============================================================================
# Species
# ============================================================================

class SpeciesIn(BaseModel):
    """Payload for creating or replacing a species."""
    name: str = Field(..., min_length=1, max_length=100)
    scientific_name: Optional[str] = Field(None, max_length=100)
    conservation_status: ConservationStatus


class SpeciesSchema(BaseModel):
    """Species with its cached census figures."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    scientific_name: Optional[str] = None
    conservation_status: ConservationStatus
    population_count: int
    last_census_date: Optional[date] = None
    created_at: Optional[datetime] = None


# ============================================================================
# Locations
# ============================================================================

class Coordinates(BaseModel):
    lat: float = Field(..., allow_inf_nan=False)
    lng: float = Field(..., allow_inf_nan=False)


class LocationIn(BaseModel):
    """Payload for creating or replacing a location."""
    name: str = Field(..., min_length=1, max_length=100)
    region: Optional[str] = Field(None, max_length=100)
    coordinates: Coordinates
    area_hectares: Optional[float] = Field(None, ge=0, allow_inf_nan=False)


class LocationSchema(BaseModel):
    """Location with coordinates as a {lat, lng} pair."""
    id: int
    name: str
    region: Optional[str] = None
    coordinates: Coordinates
    area_hectares: Optional[float] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, location: Location) -> "LocationSchema":
        # A missing point reads back as (0, 0).
        return cls(
            id=location.id,
            name=location.name,
            region=location.region,
            coordinates=Coordinates(
                lat=location.latitude if location.latitude is not None else 0.0,
                lng=location.longitude if location.longitude is not None else 0.0,
            ),
            area_hectares=location.area_hectares,
            created_at=location.created_at,
        )


# ============================================================================
# Observers
# ============================================================================

class ObserverIn(BaseModel):
    """Payload for registering an observer."""
    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., min_length=3, max_length=100, pattern=r"^[^@\s]+@[^@\s]+$")
    phone: Optional[str] = Field(None, max_length=20)
    organization: Optional[str] = Field(None, max_length=100)
    expertise: Optional[str] = Field(None, max_length=100)
    join_date: Optional[date] = None
    active: bool = True


class ObserverUpdate(BaseModel):
    """Sparse patch: only fields present in the request body are written."""
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[str] = Field(None, min_length=3, max_length=100, pattern=r"^[^@\s]+@[^@\s]+$")
    phone: Optional[str] = Field(None, max_length=20)
    organization: Optional[str] = Field(None, max_length=100)
    expertise: Optional[str] = Field(None, max_length=100)
    join_date: Optional[date] = None
    active: Optional[bool] = None

    @field_validator("name", "email", "join_date", "active")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("may be omitted but not null")
        return value

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True)


class ObserverSchema(BaseModel):
    """Observer information."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str
    phone: Optional[str] = None
    organization: Optional[str] = None
    expertise: Optional[str] = None
    join_date: Optional[date] = None
    active: bool
    created_at: Optional[datetime] = None


# ============================================================================
# Census Records
# ============================================================================

class CensusRecordIn(BaseModel):
    """Payload for recording or rewriting a census count."""
    species_id: int
    location_id: int
    observer_id: int
    count: int = Field(..., ge=0)
    census_date: date
    notes: Optional[str] = None


class CensusRecordSchema(BaseModel):
    """Census record joined with the names of what it references."""
    id: int
    species_id: int
    location_id: int
    observer_id: int
    count: int
    census_date: date
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    species_name: Optional[str] = None
    location_name: Optional[str] = None
    observer_name: Optional[str] = None


class CensusReportRow(BaseModel):
    record_id: int
    count: int
    census_date: date
    notes: Optional[str] = None
    species_name: str
    location_name: str
    observer_name: str


class DetailedCensusReportRow(BaseModel):
    species_name: str
    scientific_name: Optional[str] = None
    conservation_status: ConservationStatus
    population_count: int
    population_density: float
    location_name: str
    region: Optional[str] = None
    count: int
    census_date: date
    observer_name: str


# ============================================================================
# Conservation Status History
# ============================================================================

class ConservationStatusChangeIn(BaseModel):
    """Status values are checked by the record store so the error lists the allowed set."""
    species_id: int
    previous_status: str
    new_status: str
    reason: Optional[str] = None
    changed_by: Optional[str] = Field(None, max_length=100)


class ConservationStatusChangeSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    species_id: int
    previous_status: ConservationStatus
    new_status: ConservationStatus
    change_date: Optional[datetime] = None
    reason: Optional[str] = None
    changed_by: Optional[str] = None


# ============================================================================
# Aggregates
# ============================================================================

class PopulationDensitySchema(BaseModel):
    species_id: int
    name: str
    population_count: int
    total_area: float
    population_density: float


class GrowthRateSchema(BaseModel):
    species_id: int
    name: str
    initial_population: int
    current_population: int
    census_count: int
    growth_rate: float


class GrowthRatesResponse(BaseModel):
    """Per-species growth rates plus their mean."""
    species: List[GrowthRateSchema]
    average_growth_rate: float = Field(..., serialization_alias="averageGrowthRate")


# ============================================================================
# Response Envelopes
# ============================================================================

class WriteResponse(BaseModel):
    """Acknowledgement of a create or update."""
    id: int
    message: str


class ErrorResponse(BaseModel):
    """Error response."""
    error: str
    details: Optional[str] = None
