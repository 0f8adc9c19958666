"""User administration routes. Every route requires the ``admin`` role."""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from . import schemas, crud
from .auth import require_admin
from .database import get_db
from .errors import NotFoundError
from .logger import get_logger
from .models import User
from .policy import Caller, enforce, user_deletion

logger = get_logger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


def _load_user(db: Session, user_id: int) -> User:
    user = crud.get_user_by_id(db, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


@router.get("/", response_model=List[schemas.UserWithCars])
def list_users(
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    """List every user together with their cars."""
    return crud.list_users(db)


@router.get("/statistics", response_model=schemas.UserStatistics)
def user_statistics(
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    """Count users by role and by whether they own cars."""
    return crud.user_statistics(db)


@router.get("/{user_id}", response_model=schemas.UserWithCars)
def get_user(
    user_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    """
    Retrieve a single user with their cars.

    Raises:
        NotFoundError: If the user does not exist.
    """
    return _load_user(db, user_id)


@router.put("/{user_id}", response_model=schemas.UserOut)
def update_user(
    user_id: int,
    changes: schemas.AdminUserUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    """
    Partially update any user, including their role.

    Args:
        user_id (int): User identifier.
        changes (AdminUserUpdate): Fields to update.
        db (Session): Database session.
        admin (User): Authenticated administrator.

    Raises:
        NotFoundError: If the user does not exist.
        ValidationError: If the email belongs to another account.

    Returns:
        UserOut: Updated user.
    """
    user = _load_user(db, user_id)
    updated = crud.update_user(db, user, changes.model_dump(exclude_unset=True))
    logger.info("Admin %s updated user %s", admin.id, user_id)
    return updated


@router.delete("/{user_id}")
def delete_user(
    user_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    """
    Delete a user and all of their cars.

    Raises:
        NotFoundError: If the user does not exist.
        ForbiddenError: If the administrator targets their own account.
    """
    user = _load_user(db, user_id)
    enforce(
        user_deletion(Caller.from_user(admin), user),
        forbidden_detail="You cannot delete your own account",
    )
    crud.delete_user(db, user)
    logger.info("Admin %s deleted user %s", admin.id, user_id)
    return {"message": "User deleted successfully"}
