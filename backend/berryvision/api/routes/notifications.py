import json
import logging
from datetime import date
from typing import Any

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlmodel import Session

from berryvision import crud
from berryvision.api.deps import SessionDep
from berryvision.core.config import settings
from berryvision.models import NotificationRecord, get_datetime_utc

logger = logging.getLogger(__name__)

router = APIRouter()


class NotificationAction(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    action: str | None = None
    day: date | None = Field(default=None, alias="date")


def deliver(session: Session, notification: NotificationRecord) -> NotificationRecord:
    # Delivery is handed to the external email/WhatsApp gateway; here it is recorded as sent.
    notification.status = "sent"
    notification.sent_at = get_datetime_utc()
    return crud.save(session, notification)


def send_reminders(session: Session, day: date) -> dict[str, Any]:
    inactive = crud.inactive_users_for_day(session=session, day=day)
    if not inactive:
        return {"success": True, "message": "No inactive users to notify", "sent": 0}

    sent = []
    for user in inactive:
        channel = "email" if user["notify_email"] else "whatsapp"
        deliver(
            session,
            NotificationRecord(
                user_id=user["user_id"],
                notification_type="daily_reminder",
                channel=channel,
                subject="Reminder: you have not recorded anything today",
                message=(
                    f"Hi {user['full_name']}, you have not uploaded anything to BerryVision today. "
                    "Please record your field observations."
                ),
                details={"date": day.isoformat()},
            ),
        )
        sent.append({"user": user["full_name"], "channel": channel, "status": "sent"})

    logger.info(f"Sent {len(sent)} daily reminders for {day}")
    return {"success": True, "message": f"Sent {len(sent)} reminders", "sent": len(sent), "notifications": sent}


def send_admin_report(session: Session, day: date) -> dict[str, Any]:
    report = crud.generate_daily_report(session=session, day=day)
    summary = report.model_dump(mode="json", exclude={"id", "created_at", "sent_at", "sent_to_admin"})

    deliver(
        session,
        NotificationRecord(
            notification_type="admin_report",
            channel="email",
            subject=f"BerryVision daily report - {day.isoformat()}",
            message=json.dumps(summary),
            details={"report_date": day.isoformat(), "admin_email": settings.ADMIN_REPORT_EMAIL},
        ),
    )
    crud.update_fields(session=session, db_obj=report, data={"sent_to_admin": True, "sent_at": get_datetime_utc()})

    return {
        "success": True,
        "message": "Report sent to the administrator",
        "report": {
            "date": day.isoformat(),
            "total_users": report.total_users,
            "active_users": report.active_users,
            "inactive_users": report.inactive_users,
            "total_records": report.total_growth_records + report.total_photos + report.total_lab_analyses,
            "alerts": report.alerts_generated,
        },
    }


@router.get("")
def read_notifications(
    session: SessionDep,
    type: str = "inactive",
    day: date | None = Query(default=None, alias="date"),
) -> Any:
    day = day or get_datetime_utc().date()
    if type == "inactive":
        inactive = crud.inactive_users_for_day(session=session, day=day)
        return {"success": True, "inactive_users": inactive, "count": len(inactive)}
    if type == "daily_report":
        return {"success": True, "report": crud.generate_daily_report(session=session, day=day)}
    if type == "activity":
        return {"success": True, "activity": crud.user_activity_for_day(session=session, day=day)}
    raise HTTPException(status_code=400, detail="Invalid query type")


@router.post("")
def run_notification_action(*, session: SessionDep, action_in: NotificationAction) -> Any:
    day = action_in.day or get_datetime_utc().date()
    if action_in.action == "send_reminders":
        return send_reminders(session, day)
    if action_in.action == "send_admin_report":
        return send_admin_report(session, day)
    raise HTTPException(status_code=400, detail="Invalid action")
