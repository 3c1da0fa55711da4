from datetime import date
from typing import Any

from fastapi import APIRouter
from sqlmodel import col, select

from berryvision import crud
from berryvision.api.deps import SessionDep
from berryvision.models import FieldLogEntry, FieldLogEntryBase

router = APIRouter()


@router.get("")
def read_field_log(
    session: SessionDep,
    date_from: date | None = None,
    date_to: date | None = None,
    crop: str | None = None,
    problem_type: str | None = None,
    severity: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> Any:
    statement = select(FieldLogEntry)
    if date_from:
        statement = statement.where(col(FieldLogEntry.entry_date) >= date_from)
    if date_to:
        statement = statement.where(col(FieldLogEntry.entry_date) <= date_to)
    if crop and crop != "all":
        statement = statement.where(FieldLogEntry.crop == crop)
    if problem_type and problem_type != "all":
        statement = statement.where(FieldLogEntry.problem_type == problem_type)
    if severity and severity != "all":
        statement = statement.where(FieldLogEntry.severity == severity)

    entries, total = crud.paginate(
        session,
        statement.order_by(col(FieldLogEntry.entry_date).desc(), col(FieldLogEntry.created_at).desc()),
        limit=limit,
        offset=offset,
    )
    return {"success": True, "entries": entries, "total": total, "limit": limit, "offset": offset}


@router.post("")
def create_field_log_entry(*, session: SessionDep, entry_in: FieldLogEntryBase) -> Any:
    entry = crud.save(session, FieldLogEntry.model_validate(entry_in))
    return {"success": True, "entry": entry}
