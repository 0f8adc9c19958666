from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator
from pydantic_core import PydanticCustomError

from .validation import (
    MIN_VEHICLE_YEAR,
    CarStatus,
    FuelType,
    Role,
    Transmission,
    max_vehicle_year,
)

# Update schemas declare required fields as ``str = None``: an absent field
# keeps the unvalidated default, an explicit null is rejected.


def _check_year(value):
    if value is not None and value > max_vehicle_year():
        raise PydanticCustomError(
            "year_range",
            "The year must be between {min} and {max}.",
            {"min": MIN_VEHICLE_YEAR, "max": max_vehicle_year()},
        )
    return value


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


class UserRegister(BaseModel):
    """Registration payload."""

    name: str = Field(min_length=1, max_length=255)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(min_length=8)
    password_confirmation: str
    phone: Optional[str] = Field(None, max_length=20)
    birth_date: Optional[date] = None

    @field_validator("password_confirmation")
    @classmethod
    def passwords_match(cls, value, info):
        if "password" in info.data and value != info.data["password"]:
            raise PydanticCustomError(
                "password_confirmation", "The password confirmation does not match."
            )
        return value


class LoginRequest(BaseModel):
    email: str
    password: str


class ProfileUpdate(BaseModel):
    """Self-service profile changes; absent fields stay untouched."""

    name: str = Field(None, min_length=1, max_length=255)
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    email: EmailStr = None
    phone: Optional[str] = Field(None, max_length=20)
    birth_date: Optional[date] = None


class AdminUserUpdate(ProfileUpdate):
    """Changes an administrator may apply to any account."""

    role: Role = None
    is_active: bool = None


class PasswordChange(BaseModel):
    current_password: str
    new_password: str = Field(min_length=6)
    new_password_confirmation: str

    @field_validator("new_password_confirmation")
    @classmethod
    def passwords_match(cls, value, info):
        if "new_password" in info.data and value != info.data["new_password"]:
            raise PydanticCustomError(
                "password_confirmation",
                "The new password confirmation does not match.",
            )
        return value


class Token(BaseModel):
    """JWT token response schema."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int


class TokenData(BaseModel):
    """Payload stored inside JWT token."""

    sub: str | None = None
    jti: str | None = None
    exp: Optional[datetime] = None
    scope: Optional[str] = None


class EmailRequest(BaseModel):
    """Schema for verification email requests."""

    email: EmailStr


class UserSummary(BaseModel):
    id: int
    name: str
    email: str

    class Config:
        from_attributes = True


class UserOut(BaseModel):
    """Response schema for user data. Never carries the password hash."""

    id: int
    name: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: str
    phone: Optional[str] = None
    birth_date: Optional[date] = None
    profile_photo_url: Optional[str] = None
    role: str = "user"
    is_active: bool = True
    email_verified_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CarBase(BaseModel):
    """Shared rules of car creation."""

    make: str = Field(min_length=1, max_length=255)
    model: str = Field(min_length=1, max_length=255)
    year: int = Field(ge=MIN_VEHICLE_YEAR)
    color: str = Field(min_length=1, max_length=255)
    license_plate: str = Field(min_length=1, max_length=20)
    vin: Optional[str] = Field(None, max_length=17)
    mileage: int = Field(ge=0)
    fuel_type: FuelType
    transmission: Transmission
    engine_size: Optional[str] = Field(None, max_length=50)
    description: Optional[str] = Field(None, max_length=1000)
    price: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    status: CarStatus

    @field_validator("year")
    @classmethod
    def year_not_after_next(cls, value):
        return _check_year(value)

    @field_validator("vin", mode="before")
    @classmethod
    def blank_vin_is_none(cls, value):
        return _blank_to_none(value)


class CarCreate(CarBase):
    """Schema for creating a car. Ownership is never read from the payload."""

    pass


class CarUpdate(BaseModel):
    """Schema for updating a car; present fields obey the creation rules."""

    make: str = Field(None, min_length=1, max_length=255)
    model: str = Field(None, min_length=1, max_length=255)
    year: int = Field(None, ge=MIN_VEHICLE_YEAR)
    color: str = Field(None, min_length=1, max_length=255)
    license_plate: str = Field(None, min_length=1, max_length=20)
    vin: Optional[str] = Field(None, max_length=17)
    mileage: int = Field(None, ge=0)
    fuel_type: FuelType = None
    transmission: Transmission = None
    engine_size: Optional[str] = Field(None, max_length=50)
    description: Optional[str] = Field(None, max_length=1000)
    price: Decimal = Field(None, ge=0, max_digits=10, decimal_places=2)
    status: CarStatus = None

    @field_validator("year")
    @classmethod
    def year_not_after_next(cls, value):
        return _check_year(value)

    @field_validator("vin", mode="before")
    @classmethod
    def blank_vin_is_none(cls, value):
        return _blank_to_none(value)


class CarOut(BaseModel):
    """Schema for returning a car with its owner summary."""

    id: int
    user_id: int
    make: str
    model: str
    year: int
    color: str
    license_plate: str
    vin: Optional[str] = None
    mileage: int
    fuel_type: str
    transmission: str
    engine_size: Optional[str] = None
    description: Optional[str] = None
    price: Decimal
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    owner: Optional[UserSummary] = None

    class Config:
        from_attributes = True


class UserWithCars(UserOut):
    cars: List[CarOut] = []


class BulkStatusUpdate(BaseModel):
    car_ids: List[int] = Field(min_length=1)
    status: CarStatus


class BulkStatusResult(BaseModel):
    updated: int
    requested: int
    status: str
    message: str


class CarStatistics(BaseModel):
    total_cars: int
    available_cars: int
    sold_cars: int
    reserved_cars: int
    maintenance_cars: int
    average_price: Optional[float] = None
    total_value: float
    total_mileage: int


class UserStatistics(BaseModel):
    total_users: int
    admin_users: int
    regular_users: int
    users_with_cars: int
    users_without_cars: int
