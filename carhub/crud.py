"""CRUD operations for users and cars.

This module contains database interaction logic for user and car
entities, isolated from FastAPI route handlers. Unique constraint
violations reported by the database are translated into field level
validation errors and never leak as raw storage exceptions.
"""

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from . import models, schemas
from .errors import UNPROCESSABLE, StorageConstraintViolation, ValidationError
from .logger import get_logger
from .policy import RecordScope

logger = get_logger(__name__)

# column name -> label used in messages
_UNIQUE_FIELDS = {
    "email": "email",
    "license_plate": "license plate",
    "vin": "vin",
}


def _taken(field: str) -> dict[str, list[str]]:
    return {field: [f"The {_UNIQUE_FIELDS[field]} has already been taken."]}


def _commit(db: Session, error_status: int = UNPROCESSABLE) -> None:
    """
    Commit the session, translating unique violations.

    Raises:
        StorageConstraintViolation: If a unique constraint rejected the write.
    """
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        message = str(exc.orig)
        for field in _UNIQUE_FIELDS:
            if field in message:
                logger.warning("Unique constraint rejected %s: %s", field, message)
                raise StorageConstraintViolation(
                    _taken(field), status_code=error_status
                ) from exc
        raise


def create_user(
    db: Session,
    user_in: schemas.UserRegister,
    hashed_password: str,
    role: str = "user",
    error_status: int = UNPROCESSABLE,
) -> models.User:
    """
    Create and persist a new user.

    Args:
        db (Session): SQLAlchemy database session.
        user_in (UserRegister): Incoming user data.
        hashed_password (str): Securely hashed password.
        role (str): Role of the new account.
        error_status (int): HTTP status of the duplicate email error.

    Raises:
        ValidationError: If a user with the same email already exists.

    Returns:
        User: Newly created user instance.
    """
    if get_user_by_email(db, user_in.email):
        raise ValidationError(_taken("email"), status_code=error_status)

    user = models.User(
        name=user_in.name,
        first_name=user_in.first_name,
        last_name=user_in.last_name,
        email=user_in.email,
        hashed_password=hashed_password,
        phone=user_in.phone,
        birth_date=user_in.birth_date,
        role=role,
    )
    db.add(user)
    _commit(db, error_status)
    db.refresh(user)
    return user


def get_user_by_email(db: Session, email: str) -> models.User | None:
    """
    Retrieve a user by email address.

    Args:
        db (Session): Database session.
        email (str): User email.

    Returns:
        User | None: User if found, otherwise ``None``.
    """
    return db.execute(
        select(models.User).where(models.User.email == email)
    ).scalar_one_or_none()


def get_user_by_id(db: Session, user_id: int) -> models.User | None:
    """
    Retrieve a user by primary key.

    Args:
        db (Session): Database session.
        user_id (int): User identifier.

    Returns:
        User | None: User if found, otherwise ``None``.
    """
    return db.execute(
        select(models.User).where(models.User.id == user_id)
    ).scalar_one_or_none()


def list_users(db: Session):
    """Return every user together with their cars."""
    return db.scalars(
        select(models.User)
        .options(selectinload(models.User.cars))
        .order_by(models.User.id)
    ).all()


def update_user(db: Session, user: models.User, changes: dict) -> models.User:
    """
    Update mutable fields of a user.

    The email uniqueness check ignores the user's own row so that
    resubmitting the current address succeeds.

    Args:
        db (Session): Database session.
        user (User): Target user.
        changes (dict): Fields to update.

    Raises:
        ValidationError: If the new email belongs to another user.

    Returns:
        User: Updated user instance.
    """
    if "email" in changes:
        other = db.execute(
            select(models.User.id).where(
                models.User.email == changes["email"],
                models.User.id != user.id,
            )
        ).first()
        if other:
            raise ValidationError(_taken("email"))

    for key, value in changes.items():
        setattr(user, key, value)

    db.add(user)
    _commit(db)
    db.refresh(user)
    return user


def update_user_password(
    db: Session, user: models.User, hashed_password: str
) -> models.User:
    """
    Replace user's hashed password.

    Args:
        db (Session): Database session.
        user (User): Target user.
        hashed_password (str): New hashed password.

    Returns:
        User: Updated user instance.
    """
    user.hashed_password = hashed_password
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def update_profile_photo(db: Session, user: models.User, photo_url: str) -> models.User:
    """
    Update profile photo URL for a user.

    Args:
        db (Session): Database session.
        user (User): Target user.
        photo_url (str): Public URL of the uploaded photo.

    Returns:
        User: Updated user instance.
    """
    user.profile_photo_url = photo_url
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def mark_email_verified(db: Session, user: models.User) -> models.User:
    user.email_verified_at = datetime.now(timezone.utc)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def record_login(db: Session, user: models.User) -> models.User:
    user.last_login_at = datetime.now(timezone.utc)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def delete_user(db: Session, user: models.User) -> None:
    """
    Delete a user and, through the cascade, every car they own.

    Args:
        db (Session): Database session.
        user (User): User to delete.
    """
    db.delete(user)
    db.commit()


def user_statistics(db: Session) -> schemas.UserStatistics:
    """Count users by role and by car ownership."""
    total = db.scalar(select(func.count(models.User.id)))
    admins = db.scalar(
        select(func.count(models.User.id)).where(models.User.role == "admin")
    )
    with_cars = db.scalar(
        select(func.count(models.User.id)).where(models.User.cars.any())
    )
    return schemas.UserStatistics(
        total_users=total,
        admin_users=admins,
        regular_users=total - admins,
        users_with_cars=with_cars,
        users_without_cars=total - with_cars,
    )


def _car_conflicts(
    db: Session,
    license_plate: str | None,
    vin: str | None,
    exclude_id: int | None = None,
) -> dict[str, list[str]]:
    """Check licence plate and non-empty VIN uniqueness, ignoring ``exclude_id``."""
    errors: dict[str, list[str]] = {}
    checks = (("license_plate", license_plate), ("vin", vin))
    for field, value in checks:
        if not value:
            continue
        column = getattr(models.Car, field)
        stmt = select(models.Car.id).where(column == value)
        if exclude_id is not None:
            stmt = stmt.where(models.Car.id != exclude_id)
        if db.execute(stmt).first():
            errors.update(_taken(field))
    return errors


def create_car(db: Session, car_in: schemas.CarCreate, owner_id: int) -> models.Car:
    """
    Create a new car owned by the given user.

    Args:
        db (Session): Database session.
        car_in (CarCreate): Car data.
        owner_id (int): Identifier of the owner.

    Raises:
        ValidationError: If the licence plate or VIN is already taken.

    Returns:
        Car: Newly created car.
    """
    errors = _car_conflicts(db, car_in.license_plate, car_in.vin)
    if errors:
        raise ValidationError(errors)

    car = models.Car(**car_in.model_dump(), user_id=owner_id)
    db.add(car)
    _commit(db)
    db.refresh(car)
    logger.info("Car %s created for user %s", car.id, owner_id)
    return car


def get_car(db: Session, car_id: int) -> models.Car | None:
    """
    Retrieve a single car by ID, whoever owns it.

    Args:
        db (Session): Database session.
        car_id (int): Car identifier.

    Returns:
        Car | None: Car if found, otherwise ``None``.
    """
    return db.execute(
        select(models.Car).where(models.Car.id == car_id)
    ).scalar_one_or_none()


def _newest_first(stmt):
    return stmt.order_by(models.Car.created_at.desc(), models.Car.id.desc())


def list_cars(db: Session, scope: RecordScope):
    """
    Retrieve the cars visible through ``scope``, newest first.

    Args:
        db (Session): Database session.
        scope (RecordScope): Visibility of the caller.

    Returns:
        list[Car]: Cars with their owners loaded.
    """
    stmt = select(models.Car).options(selectinload(models.Car.owner))
    stmt = scope.apply(stmt, models.Car.user_id)
    return db.scalars(_newest_first(stmt)).all()


def search_cars(
    db: Session,
    scope: RecordScope,
    make: str | None = None,
    model: str | None = None,
    year: int | None = None,
    min_price: Decimal | None = None,
    max_price: Decimal | None = None,
):
    """
    Filter cars within ``scope``.

    ``make`` and ``model`` match substrings using the store's collation,
    the price bounds are inclusive.

    Returns:
        list[Car]: Matching cars, newest first.
    """
    stmt = scope.apply(select(models.Car), models.Car.user_id)
    if make:
        stmt = stmt.where(models.Car.make.like(f"%{make}%"))
    if model:
        stmt = stmt.where(models.Car.model.like(f"%{model}%"))
    if year is not None:
        stmt = stmt.where(models.Car.year == year)
    if min_price is not None:
        stmt = stmt.where(models.Car.price >= min_price)
    if max_price is not None:
        stmt = stmt.where(models.Car.price <= max_price)
    return db.scalars(_newest_first(stmt)).all()


def cars_by_status(db: Session, scope: RecordScope, status: str):
    stmt = scope.apply(
        select(models.Car).where(models.Car.status == status), models.Car.user_id
    )
    return db.scalars(_newest_first(stmt)).all()


def update_car(db: Session, car: models.Car, changes: dict) -> models.Car:
    """
    Update mutable fields of a car.

    Args:
        db (Session): Database session.
        car (Car): Car instance.
        changes (dict): Fields to update.

    Raises:
        ValidationError: If the new licence plate or VIN belongs to another car.

    Returns:
        Car: Updated car.
    """
    errors = _car_conflicts(
        db, changes.get("license_plate"), changes.get("vin"), exclude_id=car.id
    )
    if errors:
        raise ValidationError(errors)

    for key, value in changes.items():
        setattr(car, key, value)

    db.add(car)
    _commit(db)
    db.refresh(car)
    return car


def delete_car(db: Session, car: models.Car):
    """
    Delete a car from the database.

    Args:
        db (Session): Database session.
        car (Car): Car to delete.
    """
    db.delete(car)
    db.commit()
    return None


def find_missing_car_ids(db: Session, car_ids: list[int]) -> list[int]:
    """Return the ids in ``car_ids`` that match no car at all."""
    existing = set(
        db.scalars(select(models.Car.id).where(models.Car.id.in_(car_ids))).all()
    )
    return [car_id for car_id in car_ids if car_id not in existing]


def bulk_update_status(
    db: Session, scope: RecordScope, car_ids: list[int], status: str
) -> int:
    """
    Set ``status`` on every listed car that ``scope`` accepts.

    Cars outside the scope are skipped silently. Each car is committed on
    its own, so a failure part way leaves earlier updates in place.

    Returns:
        int: Number of cars updated.
    """
    updated = 0
    for car_id in dict.fromkeys(car_ids):
        stmt = scope.apply(
            select(models.Car).where(models.Car.id == car_id), models.Car.user_id
        )
        car = db.execute(stmt).scalar_one_or_none()
        if car is None:
            continue
        car.status = status
        db.add(car)
        db.commit()
        updated += 1
    return updated


def car_statistics(db: Session, scope: RecordScope) -> schemas.CarStatistics:
    """
    Aggregate status counts, prices and mileage of the cars in ``scope``.

    Args:
        db (Session): Database session.
        scope (RecordScope): Visibility of the caller.

    Returns:
        CarStatistics: Aggregated figures. ``average_price`` is ``None``
        when there are no cars.
    """
    by_status = dict(
        db.execute(
            scope.apply(
                select(models.Car.status, func.count(models.Car.id)).group_by(
                    models.Car.status
                ),
                models.Car.user_id,
            )
        ).all()
    )
    total, average, value, mileage = db.execute(
        scope.apply(
            select(
                func.count(models.Car.id),
                func.avg(models.Car.price),
                func.sum(models.Car.price),
                func.sum(models.Car.mileage),
            ),
            models.Car.user_id,
        )
    ).one()
    return schemas.CarStatistics(
        total_cars=total,
        available_cars=by_status.get("available", 0),
        sold_cars=by_status.get("sold", 0),
        reserved_cars=by_status.get("reserved", 0),
        maintenance_cars=by_status.get("maintenance", 0),
        average_price=round(float(average), 2) if average is not None else None,
        total_value=round(float(value or 0), 2),
        total_mileage=int(mileage or 0),
    )
