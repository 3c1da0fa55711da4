import logging
from datetime import timedelta
from typing import Any

from fastapi import APIRouter
from sqlmodel import col, select

from berryvision import crud
from berryvision.api.deps import SessionDep
from berryvision.growth import daily_environment_chart, environmental_alerts, mean
from berryvision.models import (
    EnvironmentalReading,
    EnvironmentalReadingBase,
    GrowthAlert,
    Plant,
    get_datetime_utc,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/environment")
def read_environment(
    session: SessionDep,
    sector: str | None = None,
    days: int = 7,
    limit: int = 100,
) -> Any:
    """Readings from the last ``days`` days with overall averages and a per-day chart."""
    statement = select(EnvironmentalReading).where(
        col(EnvironmentalReading.recorded_at) >= get_datetime_utc() - timedelta(days=days)
    )
    if sector:
        statement = statement.where(EnvironmentalReading.sector == sector)
    readings = session.exec(
        statement.order_by(col(EnvironmentalReading.recorded_at).desc()).limit(limit)
    ).all()

    return {
        "success": True,
        "readings": readings,
        "averages": {
            "temperature": round(mean(r.temperature for r in readings), 1),
            "humidity": round(mean(r.humidity for r in readings), 1),
        },
        "chart_data": daily_environment_chart(list(readings)),
    }


@router.post("/environment")
def create_environment_reading(*, session: SessionDep, reading_in: EnvironmentalReadingBase) -> Any:
    """Store a reading; out-of-band values raise an alert on every active plant in the sector."""
    reading = crud.save(session, EnvironmentalReading.model_validate(reading_in))

    thresholds = crud.get_default_threshold(session=session)
    drafts = environmental_alerts(reading, thresholds) if thresholds else []
    if drafts and reading.sector:
        plants = session.exec(
            select(Plant).where(Plant.sector == reading.sector, Plant.is_active == True)  # noqa: E712
        ).all()
        for plant in plants:
            for draft in drafts:
                session.add(
                    GrowthAlert(
                        plant_id=plant.id,
                        alert_type=draft.alert_type,
                        severity=draft.severity,
                        title=draft.title,
                        message=draft.message,
                    )
                )
        session.commit()
        session.refresh(reading)
        logger.info(f"Raised {len(drafts)} environmental alerts for {len(plants)} plants in {reading.sector}")

    return {"success": True, "reading": reading}
