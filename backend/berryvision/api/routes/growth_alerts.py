import uuid
from typing import Any, Literal

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel
from sqlmodel import col, select

from berryvision import crud
from berryvision.api.deps import SessionDep
from berryvision.models import GrowthAlert, Plant, get_datetime_utc

router = APIRouter()


class AlertStatusUpdate(BaseModel):
    alert_id: uuid.UUID | None = None
    status: Literal["active", "acknowledged", "resolved", "dismissed"] | None = None
    resolution_notes: str | None = None


@router.get("/alerts")
def read_growth_alerts(
    session: SessionDep,
    plant_id: uuid.UUID | None = None,
    status: str | None = None,
    severity: str | None = None,
    limit: int = 50,
) -> Any:
    statement = select(GrowthAlert)
    if plant_id:
        statement = statement.where(GrowthAlert.plant_id == plant_id)
    if status:
        statement = statement.where(GrowthAlert.status == status)
    if severity:
        statement = statement.where(GrowthAlert.severity == severity)
    alerts = session.exec(statement.order_by(col(GrowthAlert.created_at).desc()).limit(limit)).all()

    results = []
    for alert in alerts:
        plant = session.get(Plant, alert.plant_id)
        results.append(
            {
                **alert.model_dump(),
                "plant": plant.model_dump(include={"id", "plant_code", "name", "sector", "crop_type"})
                if plant
                else None,
            }
        )
    return {
        "success": True,
        "alerts": results,
        "stats": {
            "active": crud.count_alerts(session=session),
            "critical": crud.count_alerts(session=session, severity="critical"),
        },
    }


@router.patch("/alerts")
def update_growth_alert(*, session: SessionDep, alert_in: AlertStatusUpdate) -> Any:
    """Move an alert through its lifecycle, stamping acknowledgement or resolution time."""
    if not alert_in.alert_id or not alert_in.status:
        raise HTTPException(status_code=400, detail="alert_id and status are required")
    alert = session.get(GrowthAlert, alert_in.alert_id)
    if not alert:
        raise HTTPException(status_code=404, detail="Alert not found")

    data: dict[str, Any] = {"status": alert_in.status}
    if alert_in.status == "acknowledged":
        data["acknowledged_at"] = get_datetime_utc()
    elif alert_in.status == "resolved":
        data["resolved_at"] = get_datetime_utc()
        data["resolution_notes"] = alert_in.resolution_notes
    return {"success": True, "alert": crud.update_fields(session=session, db_obj=alert, data=data)}
