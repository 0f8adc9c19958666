"""Validation rules shared by the request schemas and route handlers.

Rule constants live here so that schemas, handlers and the seeder agree on
the accepted values. Every failure is reported as a mapping of field name
to a list of human readable messages, all fields at once.
"""

import os
from datetime import date
from typing import Any, Iterable, Literal, get_args

from fastapi import Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from .errors import UNPROCESSABLE, ValidationError

INVALID_DATA = "The given data was invalid."

FuelType = Literal["Gasoline", "Diesel", "Electric", "Hybrid", "LPG"]
Transmission = Literal["Manual", "Automatic", "CVT", "Semi-Automatic"]
CarStatus = Literal["available", "sold", "reserved", "maintenance"]
Role = Literal["user", "admin"]

FUEL_TYPES = get_args(FuelType)
TRANSMISSIONS = get_args(Transmission)
CAR_STATUSES = get_args(CarStatus)
ROLES = get_args(Role)

MIN_VEHICLE_YEAR = 1900

PHOTO_EXTENSIONS = ("jpeg", "png", "jpg", "gif")
PHOTO_CONTENT_TYPES = ("image/jpeg", "image/png", "image/gif")
PHOTO_MAX_KB = 5120

_IMAGE_SIGNATURES = (
    b"\xff\xd8\xff",
    b"\x89PNG\r\n\x1a\n",
    b"GIF87a",
    b"GIF89a",
)

# request sources prefixed to error locations by FastAPI
_LOCATION_SOURCES = {"body", "query", "path", "header", "cookie", "form"}


def max_vehicle_year() -> int:
    """Latest accepted model year: next calendar year."""
    return date.today().year + 1


def collect_errors(errors: Iterable[dict[str, Any]]) -> dict[str, list[str]]:
    """Flatten pydantic error dicts into ``{field: [messages]}``.

    Nested locations are joined with dots, e.g. ``car_ids.1``. Errors that
    concern the request as a whole are reported under ``body``.
    """
    collected: dict[str, list[str]] = {}
    for error in errors:
        loc = list(error.get("loc", ()))
        if len(loc) > 1 and loc[0] in _LOCATION_SOURCES:
            loc = loc[1:]
        field = ".".join(str(part) for part in loc) or "body"
        collected.setdefault(field, []).append(error["msg"])
    return collected


def merge_errors(*maps: dict[str, list[str]]) -> dict[str, list[str]]:
    merged: dict[str, list[str]] = {}
    for errors in maps:
        for field, messages in errors.items():
            merged.setdefault(field, []).extend(messages)
    return merged


def parse_payload(model: type[BaseModel], payload: Any, status_code: int = UNPROCESSABLE):
    """Validate ``payload`` against ``model`` or raise :class:`ValidationError`.

    Used where an endpoint reports validation failures with a status other
    than the default 422.
    """
    try:
        return model.model_validate(payload)
    except PydanticValidationError as exc:
        raise ValidationError(collect_errors(exc.errors()), status_code=status_code)


def check_price_range(min_price, max_price) -> dict[str, list[str]]:
    if min_price is not None and max_price is not None and max_price < min_price:
        return {
            "max_price": [
                "The max price must be greater than or equal to the min price."
            ]
        }
    return {}


def check_year(year: int | None) -> dict[str, list[str]]:
    if year is not None and not MIN_VEHICLE_YEAR <= year <= max_vehicle_year():
        return {
            "year": [
                f"The year must be between {MIN_VEHICLE_YEAR} and {max_vehicle_year()}."
            ]
        }
    return {}


def check_profile_photo(upload: UploadFile) -> None:
    """Check that an uploaded profile photo is a small jpeg, png or gif.

    Raises:
        ValidationError: With every violated rule under ``profile_photo``.
    """
    messages: list[str] = []
    filename = upload.filename or ""
    extension = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    if extension not in PHOTO_EXTENSIONS or upload.content_type not in PHOTO_CONTENT_TYPES:
        messages.append(
            "The profile photo must be a file of type: " + ", ".join(PHOTO_EXTENSIONS) + "."
        )

    upload.file.seek(0, os.SEEK_END)
    size = upload.file.tell()
    upload.file.seek(0)
    if size > PHOTO_MAX_KB * 1024:
        messages.append(
            f"The profile photo may not be greater than {PHOTO_MAX_KB} kilobytes."
        )

    head = upload.file.read(8)
    upload.file.seek(0)
    if not head.startswith(_IMAGE_SIGNATURES):
        messages.append("The profile photo must be an image.")

    if messages:
        raise ValidationError({"profile_photo": messages})


async def validation_error_handler(request: Request, exc: ValidationError):
    """Render a :class:`ValidationError` as a JSON field map."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": INVALID_DATA, "errors": exc.errors},
    )


async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
):
    """Render FastAPI request validation failures in the same shape."""
    return JSONResponse(
        status_code=UNPROCESSABLE,
        content={"detail": INVALID_DATA, "errors": collect_errors(exc.errors())},
    )
