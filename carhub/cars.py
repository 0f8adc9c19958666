"""Car management routes for the CarHub API."""

from decimal import Decimal
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from . import schemas, crud
from .auth import get_caller
from .database import get_db
from .errors import NotFoundError, ValidationError
from .logger import get_logger
from .policy import Caller, car_access, enforce, own_records, scope_for
from .validation import CAR_STATUSES, check_price_range, check_year, merge_errors

logger = get_logger(__name__)

router = APIRouter(prefix="/cars", tags=["cars"])

CAR_NOT_FOUND = "Car not found"


def _load_car(db: Session, car_id: int, caller: Caller):
    """Fetch a car the caller may act on; foreign cars look missing."""
    car = crud.get_car(db, car_id)
    if car is None:
        raise NotFoundError(CAR_NOT_FOUND)
    enforce(car_access(caller, car), not_found_detail=CAR_NOT_FOUND)
    return car


@router.get("/search", response_model=List[schemas.CarOut])
def search_cars(
    make: str | None = Query(None, max_length=255),
    model: str | None = Query(None, max_length=255),
    year: int | None = Query(None),
    min_price: Decimal | None = Query(None, ge=0),
    max_price: Decimal | None = Query(None, ge=0),
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    """
    Search the caller's own cars.

    Admins are limited to their own cars here as well.

    Args:
        make (str | None): Substring of the make.
        model (str | None): Substring of the model.
        year (int | None): Exact model year.
        min_price (Decimal | None): Inclusive lower price bound.
        max_price (Decimal | None): Inclusive upper price bound.
        db (Session): Database session.
        caller (Caller): Authenticated identity.

    Raises:
        ValidationError: If the year is out of range or the price range is inverted.

    Returns:
        list[CarOut]: Matching cars, newest first.
    """
    errors = merge_errors(check_year(year), check_price_range(min_price, max_price))
    if errors:
        raise ValidationError(errors)
    return crud.search_cars(
        db,
        own_records(caller),
        make=make,
        model=model,
        year=year,
        min_price=min_price,
        max_price=max_price,
    )


@router.get("/statistics", response_model=schemas.CarStatistics)
def car_statistics(
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    """Status counts and price/mileage totals over the cars the caller can see."""
    return crud.car_statistics(db, scope_for(caller))


@router.patch("/bulk-status", response_model=schemas.BulkStatusResult)
def bulk_update_status(
    payload: schemas.BulkStatusUpdate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    """
    Set the status of several of the caller's cars at once.

    Cars owned by somebody else are skipped without error; ids that match
    no car at all are rejected.

    Args:
        payload (BulkStatusUpdate): Car ids and the new status.
        db (Session): Database session.
        caller (Caller): Authenticated identity.

    Returns:
        BulkStatusResult: How many of the requested cars were updated.
    """
    missing = set(crud.find_missing_car_ids(db, payload.car_ids))
    if missing:
        raise ValidationError(
            {
                f"car_ids.{index}": [f"The selected car_ids.{index} is invalid."]
                for index, car_id in enumerate(payload.car_ids)
                if car_id in missing
            }
        )
    requested = len(set(payload.car_ids))
    updated = crud.bulk_update_status(
        db, own_records(caller), payload.car_ids, payload.status
    )
    logger.info(
        "User %s set status %s on %s of %s cars",
        caller.id,
        payload.status,
        updated,
        requested,
    )
    return schemas.BulkStatusResult(
        updated=updated,
        requested=requested,
        status=payload.status,
        message=f"Successfully updated {updated} cars to status '{payload.status}'",
    )


@router.get("/status/{status}", response_model=List[schemas.CarOut])
def cars_by_status(
    status: str,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    """
    Retrieve the caller's own cars with the given status.

    Raises:
        ValidationError: With status 400 if ``status`` is not a known status.
    """
    if status not in CAR_STATUSES:
        raise ValidationError(
            {"status": ["The selected status is invalid."]}, status_code=400
        )
    return crud.cars_by_status(db, own_records(caller), status)


@router.get("/", response_model=List[schemas.CarOut])
def list_cars(
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    """
    Retrieve cars, newest first.

    Admins see every car, other users only their own.

    Args:
        db (Session): Database session.
        caller (Caller): Authenticated identity.

    Returns:
        list[CarOut]: Visible cars with owner summaries.
    """
    return crud.list_cars(db, scope_for(caller))


@router.post("/", response_model=schemas.CarOut, status_code=201)
def create_car(
    car_in: schemas.CarCreate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    """
    Create a new car owned by the caller.

    Any ``user_id`` in the payload is ignored.

    Args:
        car_in (CarCreate): Car input data.
        db (Session): Database session.
        caller (Caller): Authenticated identity.

    Returns:
        CarOut: Created car.
    """
    return crud.create_car(db, car_in, owner_id=caller.id)


@router.get("/{car_id}", response_model=schemas.CarOut)
def get_car(
    car_id: int,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    """
    Retrieve a single car by ID.

    Raises:
        NotFoundError: If the car does not exist or belongs to someone else.
    """
    return _load_car(db, car_id, caller)


@router.api_route("/{car_id}", methods=["PUT", "PATCH"], response_model=schemas.CarOut)
def update_car(
    car_id: int,
    changes: schemas.CarUpdate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    """
    Partially update an existing car.

    Only fields provided in the request are validated and updated. The
    licence plate and VIN may be resubmitted unchanged.

    Args:
        car_id (int): Car identifier.
        changes (CarUpdate): Fields to update.
        db (Session): Database session.
        caller (Caller): Authenticated identity.

    Raises:
        NotFoundError: If the car does not exist or belongs to someone else.
        ValidationError: If the licence plate or VIN belongs to another car.

    Returns:
        CarOut: Updated car.
    """
    car = _load_car(db, car_id, caller)
    return crud.update_car(db, car, changes.model_dump(exclude_unset=True))


@router.delete("/{car_id}")
def remove_car(
    car_id: int,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    """
    Delete a car owned by the caller, or any car for admins.

    Raises:
        NotFoundError: If the car does not exist or belongs to someone else.

    Returns:
        dict: Deletion status.
    """
    car = _load_car(db, car_id, caller)
    crud.delete_car(db, car)
    logger.info("Car %s deleted by user %s", car_id, caller.id)
    return {"message": "Car deleted successfully"}
