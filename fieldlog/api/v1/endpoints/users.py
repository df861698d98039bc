# fieldlog/api/v1/endpoints/users.py
import time

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from fieldlog.db import models, session
from fieldlog.core import security
from fieldlog.core.config import settings
from fieldlog.schemas import engineer as engineer_schema
from fieldlog.schemas import user as user_schema
from fieldlog.services import store

router = APIRouter()

@router.get("/me", response_model=engineer_schema.Engineer)
def read_user_me(engineer: engineer_schema.Engineer = Depends(security.get_current_engineer)):
    """
    Get the engineer profile for the currently logged-in account.
    Accounts without a profile get a 403 with code 'profile_missing'.
    """
    return engineer

@router.post("/me/profile", response_model=engineer_schema.Engineer, status_code=status.HTTP_201_CREATED)
def create_profile_me(
    db: Session = Depends(session.get_db),
    current_user: models.User = Depends(security.get_current_user)
):
    """
    Self-service profile creation. Claims an admin-provisioned engineer
    profile with the same email if one is waiting, otherwise creates a new
    engineer with a temporary employee code. Admin-role profiles are never
    claimed here; an admin links them via /admin/engineers/{id}/link-account.
    """
    if store.get_engineer_for_user(db, current_user.id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Engineer profile already exists")

    claimed = store.claim_engineer_profile(db, current_user.id, current_user.email)
    if claimed:
        return claimed

    return store.create_engineer(
        db,
        engineer_schema.EngineerCreate(
            employee_id=f"ENG{int(time.time() * 1000)}",
            full_name=current_user.full_name or current_user.email.split("@")[0],
            email=current_user.email,
            weekly_hour_requirement=settings.DEFAULT_WEEKLY_HOURS,
        ),
        user_id=current_user.id,
    )

@router.put("/me/password", status_code=status.HTTP_204_NO_CONTENT)
def update_user_password(
    passwords: user_schema.PasswordUpdate,
    db: Session = Depends(session.get_db),
    current_user: models.User = Depends(security.get_current_user)
):
    """
    Allows a logged-in user to change their own password.
    """
    if not security.verify_password(passwords.current_password, current_user.hashed_password):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Incorrect current password")

    current_user.hashed_password = security.get_password_hash(passwords.new_password)
    db.commit()
    return

@router.post("/me/deactivate", response_model=engineer_schema.Engineer)
def deactivate_me(
    db: Session = Depends(session.get_db),
    engineer: engineer_schema.Engineer = Depends(security.get_current_engineer)
):
    """ Deactivates the caller's own engineer profile. Only an admin can reactivate it. """
    return store.update_engineer(db, engineer.id, engineer_schema.EngineerUpdate(is_active=False))
