# fieldlog/api/v1/endpoints/admin.py
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from typing import List

from fieldlog.db import session
from fieldlog.core import security
from fieldlog.schemas import activity as activity_schema
from fieldlog.schemas import engineer as engineer_schema
from fieldlog.services import store

router = APIRouter()

# --- Engineers ---

@router.get("/engineers", response_model=List[engineer_schema.Engineer])
def get_all_engineers(
    db: Session = Depends(session.get_db),
    admin: engineer_schema.Engineer = Depends(security.get_current_admin)
):
    """ Retrieves every engineer profile, by name. """
    return store.list_engineers(db)

@router.post("/engineers", response_model=engineer_schema.Engineer, status_code=status.HTTP_201_CREATED)
def create_engineer(
    engineer_in: engineer_schema.EngineerCreate,
    db: Session = Depends(session.get_db),
    admin: engineer_schema.Engineer = Depends(security.get_current_full_admin)
):
    """ Creates a new engineer profile. """
    return store.create_engineer(db, engineer_in)

@router.put("/engineers/{engineer_id}", response_model=engineer_schema.Engineer)
def update_engineer_details(
    engineer_id: int,
    updates: engineer_schema.EngineerUpdate,
    db: Session = Depends(session.get_db),
    admin: engineer_schema.Engineer = Depends(security.get_current_full_admin)
):
    """ Updates an engineer's code, name, email, role, weekly requirement or active flag. """
    if engineer_id == admin.id and updates.role is not None and updates.role != admin.role:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot change your own role")
    return store.update_engineer(db, engineer_id, updates)

@router.post("/engineers/{engineer_id}/toggle-active", response_model=engineer_schema.Engineer)
def toggle_engineer_status(
    engineer_id: int,
    db: Session = Depends(session.get_db),
    admin: engineer_schema.Engineer = Depends(security.get_current_full_admin)
):
    """ Flips an engineer between active and inactive. """
    engineer = store.get_engineer(db, engineer_id)
    return store.update_engineer(db, engineer_id, engineer_schema.EngineerUpdate(is_active=not engineer.is_active))

@router.post("/engineers/{engineer_id}/link-account", response_model=engineer_schema.Engineer)
def link_engineer_account(
    engineer_id: int,
    db: Session = Depends(session.get_db),
    admin: engineer_schema.Engineer = Depends(security.get_current_full_admin)
):
    """ Links a profile to the login account registered with the same email. Required for admin-role profiles. """
    return store.link_engineer_account(db, engineer_id)

@router.delete("/engineers/{engineer_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_engineer(
    engineer_id: int,
    db: Session = Depends(session.get_db),
    admin: engineer_schema.Engineer = Depends(security.get_current_full_admin)
):
    """ Deletes an engineer together with their activities. """
    if engineer_id == admin.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot delete your own profile")
    store.delete_engineer(db, engineer_id)
    return

# --- Service categories ---

@router.get("/categories", response_model=List[activity_schema.ServiceCategory])
def get_all_categories(
    db: Session = Depends(session.get_db),
    admin: engineer_schema.Engineer = Depends(security.get_current_admin)
):
    """ All service categories, including inactive ones. """
    return store.list_service_categories(db, active_only=False)

@router.post("/categories", response_model=activity_schema.ServiceCategory, status_code=status.HTTP_201_CREATED)
def create_category(
    category_in: activity_schema.ServiceCategoryCreate,
    db: Session = Depends(session.get_db),
    admin: engineer_schema.Engineer = Depends(security.get_current_full_admin)
):
    return store.create_service_category(db, category_in)

@router.put("/categories/{category_id}", response_model=activity_schema.ServiceCategory)
def update_category(
    category_id: int,
    updates: activity_schema.ServiceCategoryUpdate,
    db: Session = Depends(session.get_db),
    admin: engineer_schema.Engineer = Depends(security.get_current_full_admin)
):
    return store.update_service_category(db, category_id, updates)

# --- Activities ---

@router.put("/activities/{activity_id}/hours", response_model=activity_schema.ActivityRecord)
def replace_hours(
    activity_id: int,
    hours: List[activity_schema.ActivityHourIn],
    db: Session = Depends(session.get_db),
    admin: engineer_schema.Engineer = Depends(security.get_current_full_admin)
):
    """ Replaces an activity's category hours wholesale and recomputes its total. """
    return store.replace_activity_hours(db, activity_id, hours)

@router.delete("/activities/{activity_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_activity(
    activity_id: int,
    db: Session = Depends(session.get_db),
    admin: engineer_schema.Engineer = Depends(security.get_current_full_admin)
):
    """ Deletes any engineer's activity. This cannot be undone. """
    store.delete_activity(db, activity_id)
    return
