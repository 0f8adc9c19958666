"""Error taxonomy shared by the route handlers.

Authentication, authorization and lookup failures are ``HTTPException``
subclasses and are rendered by FastAPI itself. Validation failures carry a
field to messages map and are rendered by the handlers in
:mod:`carhub.validation`.
"""

from fastapi import HTTPException, status

UNPROCESSABLE = 422


class ValidationError(Exception):
    """Field level validation failure.

    Args:
        errors (dict[str, list[str]]): Messages keyed by field name.
        status_code (int): HTTP status used when rendering the error.
    """

    def __init__(self, errors: dict[str, list[str]], status_code: int = UNPROCESSABLE):
        super().__init__(errors)
        self.errors = errors
        self.status_code = status_code


class StorageConstraintViolation(ValidationError):
    """A unique constraint rejected by the database, keyed by field."""


class AuthenticationError(HTTPException):
    def __init__(self, detail: str = "Could not validate credentials"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )


class ForbiddenError(HTTPException):
    def __init__(self, detail: str = "Forbidden"):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class NotFoundError(HTTPException):
    def __init__(self, detail: str = "Not found"):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)
