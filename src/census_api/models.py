"""
SQLAlchemy ORM models for the wildlife census database.

Species, locations and observers are the reference entities. Census records
and conservation status changes are append-only event tables; the species row
carries denormalized copies (population_count, last_census_date,
conservation_status) that the record store keeps in sync.
"""

import enum
from datetime import datetime, date
from typing import Optional, List
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.sql import func


class ConservationStatus(str, enum.Enum):
    """IUCN-style conservation categories."""

    EXTINCT = "Extinct"
    EXTINCT_IN_THE_WILD = "Extinct in the Wild"
    CRITICALLY_ENDANGERED = "Critically Endangered"
    ENDANGERED = "Endangered"
    VULNERABLE = "Vulnerable"
    NEAR_THREATENED = "Near Threatened"
    LEAST_CONCERN = "Least Concern"
    DATA_DEFICIENT = "Data Deficient"
    NOT_EVALUATED = "Not Evaluated"

    @classmethod
    def values(cls) -> List[str]:
        return [member.value for member in cls]


def _status_type(name: str) -> Enum:
    # Stored as VARCHAR + CHECK so SQLite and PostgreSQL behave the same.
    return Enum(
        ConservationStatus,
        name=name,
        native_enum=False,
        create_constraint=True,
        length=32,
        values_callable=lambda e: [m.value for m in e],
        validate_strings=True,
    )


class Base(DeclarativeBase):
    """Base class for all ORM models."""
    pass


# ============================================================================
# Reference Entities
# ============================================================================

class Species(Base):
    """Tracked species with cached census figures."""
    __tablename__ = "species"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    scientific_name: Mapped[Optional[str]] = mapped_column(String(100))
    conservation_status: Mapped[ConservationStatus] = mapped_column(
        _status_type("ck_species_conservation_status"), nullable=False
    )
    population_count: Mapped[int] = mapped_column(Integer, nullable=False, server_default="0")
    last_census_date: Mapped[Optional[date]] = mapped_column(Date)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    census_records: Mapped[List["CensusRecord"]] = relationship(back_populates="species")
    status_changes: Mapped[List["ConservationStatusChange"]] = relationship(back_populates="species")

    __table_args__ = (
        Index("idx_species_name", "name"),
    )

    def __repr__(self) -> str:
        return f"<Species(id={self.id}, name='{self.name}', status='{self.conservation_status}')>"


class Location(Base):
    """Observation site. latitude/longitude together form the site point."""
    __tablename__ = "locations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    region: Mapped[Optional[str]] = mapped_column(String(100))
    latitude: Mapped[Optional[float]] = mapped_column(Float)
    longitude: Mapped[Optional[float]] = mapped_column(Float)
    area_hectares: Mapped[Optional[float]] = mapped_column(Float)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    census_records: Mapped[List["CensusRecord"]] = relationship(back_populates="location")

    def __repr__(self) -> str:
        return f"<Location(id={self.id}, name='{self.name}')>"


class Observer(Base):
    """Field observers submitting census counts."""
    __tablename__ = "observers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    phone: Mapped[Optional[str]] = mapped_column(String(20))
    organization: Mapped[Optional[str]] = mapped_column(String(100))
    expertise: Mapped[Optional[str]] = mapped_column(String(100))
    join_date: Mapped[date] = mapped_column(Date, nullable=False, server_default=func.current_date())
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="1")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    census_records: Mapped[List["CensusRecord"]] = relationship(back_populates="observer")

    def __repr__(self) -> str:
        return f"<Observer(id={self.id}, email='{self.email}')>"


# ============================================================================
# Event Tables
# ============================================================================

class CensusRecord(Base):
    """A single counted observation of a species at a location."""
    __tablename__ = "census_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    species_id: Mapped[int] = mapped_column(Integer, ForeignKey("species.id"), nullable=False)
    location_id: Mapped[int] = mapped_column(Integer, ForeignKey("locations.id"), nullable=False)
    observer_id: Mapped[int] = mapped_column(Integer, ForeignKey("observers.id"), nullable=False)
    count: Mapped[int] = mapped_column(Integer, nullable=False)
    census_date: Mapped[date] = mapped_column(Date, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    species: Mapped["Species"] = relationship(back_populates="census_records")
    location: Mapped["Location"] = relationship(back_populates="census_records")
    observer: Mapped["Observer"] = relationship(back_populates="census_records")

    __table_args__ = (
        CheckConstraint("count >= 0", name="ck_census_records_count"),
        Index("idx_census_species", "species_id"),
        Index("idx_census_location", "location_id"),
        Index("idx_census_date", "census_date"),
    )

    def __repr__(self) -> str:
        return f"<CensusRecord(id={self.id}, species_id={self.species_id}, count={self.count})>"


class ConservationStatusChange(Base):
    """Audit trail of conservation status transitions."""
    __tablename__ = "conservation_status_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    species_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("species.id", ondelete="CASCADE"), nullable=False
    )
    previous_status: Mapped[ConservationStatus] = mapped_column(
        _status_type("ck_history_previous_status"), nullable=False
    )
    new_status: Mapped[ConservationStatus] = mapped_column(
        _status_type("ck_history_new_status"), nullable=False
    )
    change_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    reason: Mapped[Optional[str]] = mapped_column(Text)
    changed_by: Mapped[Optional[str]] = mapped_column(String(100))

    # Relationships
    species: Mapped["Species"] = relationship(back_populates="status_changes")

    __table_args__ = (
        Index("idx_history_species", "species_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<ConservationStatusChange(id={self.id}, species_id={self.species_id}, "
            f"'{self.previous_status}' -> '{self.new_status}')>"
        )


# ============================================================================
# Exports
# ============================================================================

__all__ = [
    "Base",
    "ConservationStatus",
    # Reference entities
    "Species",
    "Location",
    "Observer",
    # Events
    "CensusRecord",
    "ConservationStatusChange",
]
