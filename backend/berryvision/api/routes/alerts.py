import json
import logging
import uuid
from collections import Counter
from datetime import date, timedelta
from typing import Any

from fastapi import APIRouter, HTTPException, Query
from pydantic import AliasChoices, BaseModel, Field
from sqlmodel import Session, col, select

from berryvision import crud
from berryvision.api.deps import SessionDep
from berryvision.models import FieldLogEntry, SystemAlert, get_datetime_utc

logger = logging.getLogger(__name__)

router = APIRouter()

WORKDAYS_PER_WEEK = 5


class MarkReadRequest(BaseModel):
    alert_ids: list[uuid.UUID] = Field(
        default_factory=list, validation_alias=AliasChoices("alert_ids", "alertaIds")
    )


def check_daily_activity(session: Session, day: date) -> dict[str, Any]:
    """Raise an inactivity alert when nothing was recorded on a weekday."""
    if day.weekday() >= 5:
        return {"success": True, "alert": False, "message": "Weekend, no activity check"}

    uploads = crud.total_uploads_for_day(session=session, day=day)
    if uploads > 0:
        return {
            "success": True,
            "alert": False,
            "message": f"Activity recorded: {uploads} records",
            "date": day.isoformat(),
            "records": uploads,
        }

    crud.save(
        session,
        SystemAlert(
            alert_type="daily_inactivity",
            title="No records today",
            message=f"No field activity was recorded on {day.isoformat()}",
            alert_date=day,
        ),
    )
    logger.info(f"Daily inactivity alert raised for {day}")
    return {
        "success": True,
        "alert": True,
        "type": "inactivity",
        "message": f"No activity recorded for {day.isoformat()}",
        "date": day.isoformat(),
    }


def weekly_summary(session: Session, day: date) -> dict[str, Any]:
    """Summarize the field log of the Monday-to-Sunday week containing ``day``."""
    week_start = day - timedelta(days=day.weekday())
    week_end = week_start + timedelta(days=6)
    entries = session.exec(
        select(FieldLogEntry).where(
            col(FieldLogEntry.entry_date) >= week_start, col(FieldLogEntry.entry_date) <= week_end
        )
    ).all()

    by_severity = Counter(entry.severity for entry in entries)
    active_days = len({entry.entry_date for entry in entries})
    year, week, _ = day.isocalendar()
    summary = {
        "week": week,
        "year": year,
        "period": f"{week_start.isoformat()} to {week_end.isoformat()}",
        "total_entries": len(entries),
        "days_with_activity": active_days,
        "days_without_activity": max(0, WORKDAYS_PER_WEEK - active_days),
        "by_problem_type": dict(Counter(entry.problem_type for entry in entries)),
        "by_crop": dict(Counter(entry.crop for entry in entries)),
        "by_severity": dict(by_severity),
        "critical_problems": by_severity.get("critical", 0),
        "high_problems": by_severity.get("high", 0),
    }

    crud.save(
        session,
        SystemAlert(
            alert_type="weekly_summary",
            title=f"Week {week} summary",
            message=json.dumps(summary),
            alert_date=day,
        ),
    )
    return {"success": True, "type": "weekly_summary", "summary": summary}


@router.get("")
def run_alert_check(
    session: SessionDep,
    tipo: str = "diaria",
    day: date | None = Query(default=None, alias="date"),
) -> Any:
    """``tipo=diaria`` runs the weekday inactivity check, ``tipo=semanal`` the weekly summary."""
    day = day or get_datetime_utc().date()
    if tipo == "diaria":
        return check_daily_activity(session, day)
    if tipo == "semanal":
        return weekly_summary(session, day)
    raise HTTPException(status_code=400, detail="Invalid alert type")


@router.get("/system")
def read_system_alerts(session: SessionDep, unread_only: bool = False, limit: int = 50) -> Any:
    statement = select(SystemAlert)
    if unread_only:
        statement = statement.where(SystemAlert.read == False)  # noqa: E712
    alerts = session.exec(statement.order_by(col(SystemAlert.created_at).desc()).limit(limit)).all()
    return {"success": True, "alerts": alerts}


@router.post("")
def mark_alerts_read(*, session: SessionDep, request: MarkReadRequest) -> Any:
    alerts = session.exec(select(SystemAlert).where(col(SystemAlert.id).in_(request.alert_ids))).all()
    for alert in alerts:
        alert.read = True
        session.add(alert)
    session.commit()
    return {"success": True, "updated": len(alerts)}
