"""Database models for the CarHub API.

This module defines SQLAlchemy ORM models used by the application.
"""

from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Date,
    DateTime,
    Boolean,
    Numeric,
    ForeignKey,
    Index,
    func,
    text,
)
from sqlalchemy.orm import relationship

from .database import Base


class User(Base):
    """
    SQLAlchemy model representing an application user.

    A user can own multiple cars and has a role of either ``user``
    or ``admin``.
    """

    __tablename__ = "users"
    __table_args__ = (Index("ix_users_first_last_name", "first_name", "last_name"),)

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    phone = Column(String(20), nullable=True, index=True)
    birth_date = Column(Date, nullable=True)
    profile_photo_url = Column(String(500), nullable=True)
    role = Column(String(20), default="user", nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    email_verified_at = Column(DateTime(timezone=True), nullable=True)
    last_login_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    #: Cars owned by the user, removed together with the user
    cars = relationship(
        "Car",
        back_populates="owner",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class Car(Base):
    """
    SQLAlchemy model representing a car listing.

    Each car belongs to exactly one user. The licence plate is unique
    across all cars; the VIN is unique only among non-empty values.
    """

    __tablename__ = "cars"
    __table_args__ = (
        Index(
            "uq_cars_vin_filtered",
            "vin",
            unique=True,
            sqlite_where=text("vin IS NOT NULL AND vin <> ''"),
            postgresql_where=text("vin IS NOT NULL AND vin <> ''"),
        ),
        Index("ix_cars_user_make", "user_id", "make"),
        Index("ix_cars_user_model", "user_id", "model"),
        Index("ix_cars_user_year", "user_id", "year"),
        Index("ix_cars_user_status", "user_id", "status"),
    )

    id = Column(Integer, primary_key=True, index=True)

    #: Identifier of the owning user
    user_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    make = Column(String(255), nullable=False)
    model = Column(String(255), nullable=False)
    year = Column(Integer, nullable=False)
    color = Column(String(255), nullable=False)
    license_plate = Column(String(20), unique=True, index=True, nullable=False)
    vin = Column(String(17), nullable=True)
    mileage = Column(Integer, default=0, nullable=False)
    fuel_type = Column(String(50), nullable=False)
    transmission = Column(String(50), nullable=False)
    engine_size = Column(String(50), nullable=True)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    status = Column(String(50), default="available", nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    #: Reference to the owning User object
    owner = relationship("User", back_populates="cars")
