import uuid
from datetime import time
from typing import Any

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, EmailStr
from sqlmodel import col, select

from berryvision import crud
from berryvision.api.deps import SessionDep
from berryvision.models import AppUser, AppUserBase, get_datetime_utc

router = APIRouter()


class AppUserUpdate(BaseModel):
    user_id: uuid.UUID | None = None
    first_name: str | None = None
    last_name: str | None = None
    email: EmailStr | None = None
    phone: str | None = None
    whatsapp: str | None = None
    role: str | None = None
    ranch_ids: list[str] | None = None
    sector_ids: list[str] | None = None
    notify_email: bool | None = None
    notify_whatsapp: bool | None = None
    notify_time: time | None = None
    notify_weekdays: bool | None = None
    notify_weekends: bool | None = None
    notes: str | None = None
    is_active: bool | None = None


@router.get("")
def read_users(
    session: SessionDep,
    role: str | None = None,
    active: bool | None = None,
    include_activity: bool = False,
) -> Any:
    statement = select(AppUser)
    if role:
        statement = statement.where(AppUser.role == role)
    if active is not None:
        statement = statement.where(AppUser.is_active == active)
    users = session.exec(statement.order_by(col(AppUser.created_at).desc())).all()

    activity = crud.user_activity_for_day(session=session, day=get_datetime_utc().date()) if include_activity else None
    return {"success": True, "users": users, "activity": activity}


@router.post("")
def create_user(*, session: SessionDep, user_in: AppUserBase) -> Any:
    if crud.get_user_by_email(session=session, email=user_in.email):
        raise HTTPException(status_code=400, detail="A user with that email already exists")

    user = AppUser.model_validate(user_in, update={"whatsapp": user_in.whatsapp or user_in.phone})
    return {"success": True, "user": crud.save(session, user)}


@router.patch("")
def update_user(*, session: SessionDep, user_in: AppUserUpdate) -> Any:
    if not user_in.user_id:
        raise HTTPException(status_code=400, detail="user_id is required")
    user = session.get(AppUser, user_in.user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    data = user_in.model_dump(exclude_unset=True, exclude={"user_id"})
    if data.get("email") and data["email"] != user.email:
        existing = crud.get_user_by_email(session=session, email=data["email"])
        if existing and existing.id != user.id:
            raise HTTPException(status_code=400, detail="A user with that email already exists")
    return {"success": True, "user": crud.update_fields(session=session, db_obj=user, data=data)}


@router.delete("")
def deactivate_user(session: SessionDep, user_id: uuid.UUID | None = None) -> Any:
    """Users are never removed, only deactivated."""
    if not user_id:
        raise HTTPException(status_code=400, detail="user_id is required")
    user = session.get(AppUser, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    crud.update_fields(session=session, db_obj=user, data={"is_active": False})
    return {"success": True, "message": "User deactivated"}
