"""Profile and credential routes for the authenticated user."""

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from sqlalchemy.orm import Session

from . import schemas, crud
from .auth import get_current_user, get_password_hash, verify_password
from .database import get_db
from .errors import ValidationError
from .logger import get_logger
from .models import User
from .storage import StorageError, store_profile_photo
from .validation import check_profile_photo

logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["profile"])


@router.put("/profile", response_model=schemas.UserOut)
def update_profile(
    changes: schemas.ProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Partially update the profile of the authenticated user.

    Only fields provided in the request are validated and updated.

    Args:
        changes (ProfileUpdate): Fields to update.
        current_user (User): Authenticated user.
        db (Session): Database session.

    Raises:
        ValidationError: If the email belongs to another account.

    Returns:
        UserOut: Updated profile.
    """
    return crud.update_user(db, current_user, changes.model_dump(exclude_unset=True))


@router.put("/change-password")
def change_password(
    payload: schemas.PasswordChange,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Replace the password of the authenticated user.

    Raises:
        ValidationError: If ``current_password`` does not match.
    """
    if not verify_password(payload.current_password, current_user.hashed_password):
        raise ValidationError(
            {"current_password": ["The current password is incorrect."]}
        )
    crud.update_user_password(db, current_user, get_password_hash(payload.new_password))
    logger.info("User %s changed their password", current_user.id)
    return {"message": "Password changed successfully"}


@router.post("/upload-photo", response_model=schemas.UserOut)
def upload_photo(
    profile_photo: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Upload a new profile photo for the authenticated user.

    Args:
        profile_photo (UploadFile): Jpeg, png or gif image up to 5 MB.
        current_user (User): Authenticated user.
        db (Session): Database session.

    Raises:
        ValidationError: If the file is not an acceptable image.
        HTTPException: If the storage backend rejects the upload.

    Returns:
        UserOut: Updated user profile.
    """
    check_profile_photo(profile_photo)
    try:
        photo_url = store_profile_photo(current_user.id, profile_photo)
    except StorageError as exc:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))
    return crud.update_profile_photo(db, current_user, photo_url)
