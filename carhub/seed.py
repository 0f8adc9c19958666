"""
Seed the database with an administrator and, optionally, demo data.

Usage:
    python -m carhub.seed            # administrator only
    python -m carhub.seed --demo     # plus two users with sample cars

The administrator credentials come from ``ADMIN_EMAIL``, ``ADMIN_PASSWORD``
and ``ADMIN_NAME``. Existing accounts and plates are left untouched, so the
command can be run repeatedly.
"""

import argparse
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from . import crud, models, schemas
from .auth import get_password_hash
from .core import get_settings
from .database import Base, SessionLocal, engine
from .logger import get_logger

logger = get_logger(__name__)

DEMO_PASSWORD = "password123"

DEMO_USERS = [
    {
        "name": "Juan Perez",
        "first_name": "Juan",
        "last_name": "Perez",
        "email": "juan@example.com",
        "phone": "+1234567890",
        "birth_date": "1990-05-15",
        "cars": [
            ("Toyota", "Corolla", 2022, "White", "ABC-123", "Gasoline", "Automatic", "18500.00", "available"),
            ("Honda", "Civic", 2021, "Black", "DEF-456", "Gasoline", "Manual", "17200.00", "available"),
            ("Ford", "Mustang", 2020, "Red", "GHI-789", "Gasoline", "Automatic", "32000.00", "reserved"),
            ("BMW", "X5", 2023, "Blue", "JKL-012", "Diesel", "Automatic", "61000.00", "available"),
        ],
    },
    {
        "name": "Maria Garcia",
        "first_name": "Maria",
        "last_name": "Garcia",
        "email": "maria@example.com",
        "phone": "+0987654321",
        "birth_date": "1985-12-03",
        "cars": [
            ("Volkswagen", "Golf", 2023, "Green", "STU-901", "Hybrid", "CVT", "24900.00", "available"),
            ("Nissan", "Sentra", 2020, "White", "VWX-234", "Gasoline", "Automatic", "14300.00", "sold"),
        ],
    },
]


def seed_admin(db: Session) -> models.User:
    """Create the configured administrator, or promote an existing account."""
    settings = get_settings()
    admin = crud.get_user_by_email(db, settings.ADMIN_EMAIL)
    if admin is None:
        admin_in = schemas.UserRegister(
            name=settings.ADMIN_NAME,
            first_name="Admin",
            last_name="System",
            email=settings.ADMIN_EMAIL,
            password=settings.ADMIN_PASSWORD,
            password_confirmation=settings.ADMIN_PASSWORD,
        )
        admin = crud.create_user(
            db, admin_in, get_password_hash(settings.ADMIN_PASSWORD), role="admin"
        )
        logger.info("Created administrator %s", admin.email)
    elif admin.role != "admin":
        admin = crud.update_user(db, admin, {"role": "admin"})
        logger.info("Promoted %s to administrator", admin.email)
    return admin


def seed_demo(db: Session) -> int:
    """
    Create the demo users and their cars.

    Returns:
        int: Number of cars created.
    """
    created = 0
    for entry in DEMO_USERS:
        user = crud.get_user_by_email(db, entry["email"])
        if user is None:
            user_in = schemas.UserRegister(
                password=DEMO_PASSWORD,
                password_confirmation=DEMO_PASSWORD,
                **{k: v for k, v in entry.items() if k != "cars"},
            )
            user = crud.create_user(db, user_in, get_password_hash(DEMO_PASSWORD))
        for make, model, year, color, plate, fuel, transmission, price, status in entry["cars"]:
            if db.execute(
                select(models.Car.id).where(models.Car.license_plate == plate)
            ).first():
                continue
            car_in = schemas.CarCreate(
                make=make,
                model=model,
                year=year,
                color=color,
                license_plate=plate,
                mileage=0,
                fuel_type=fuel,
                transmission=transmission,
                price=Decimal(price),
                status=status,
            )
            crud.create_car(db, car_in, owner_id=user.id)
            created += 1
    return created


def main(argv=None):
    parser = argparse.ArgumentParser(description="Seed the CarHub database.")
    parser.add_argument(
        "--demo", action="store_true", help="also create demo users and cars"
    )
    args = parser.parse_args(argv)

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        admin = seed_admin(db)
        print(f"Administrator: {admin.email}")
        if args.demo:
            created = seed_demo(db)
            print(f"Demo cars created: {created}")
            print(f"Demo users log in with password '{DEMO_PASSWORD}'")
    finally:
        db.close()


if __name__ == "__main__":
    main()
