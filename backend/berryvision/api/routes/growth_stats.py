import uuid
from collections import Counter, defaultdict
from datetime import timedelta
from typing import Any

from fastapi import APIRouter
from sqlalchemy import func
from sqlmodel import Session, col, select

from berryvision import crud
from berryvision.api.deps import SessionDep
from berryvision.growth import mean
from berryvision.models import EnvironmentalReading, GrowthRecord, Plant, ensure_utc, get_datetime_utc

router = APIRouter()


def _count_active_plants(session: Session, health_status: str | None = None) -> int:
    statement = select(func.count()).select_from(Plant).where(Plant.is_active == True)  # noqa: E712
    if health_status:
        statement = statement.where(Plant.health_status == health_status)
    return crud.count(session, statement)


def plant_history(session: Session, plant_id: uuid.UUID) -> dict[str, Any] | None:
    plant = session.get(Plant, plant_id)
    if not plant:
        return None
    records = session.exec(
        select(GrowthRecord)
        .where(GrowthRecord.plant_id == plant_id)
        .order_by(col(GrowthRecord.recorded_at).asc())
    ).all()
    if not records:
        return {"plant": plant, "total_records": 0, "growth_history": []}

    first, last = records[0], records[-1]
    return {
        "plant": plant,
        "total_records": len(records),
        "first_record_date": first.recorded_at,
        "last_record_date": last.recorded_at,
        "initial_height": first.height_cm,
        "current_height": last.height_cm,
        "total_growth": last.height_cm - first.height_cm if last.height_cm and first.height_cm else 0,
        "avg_growth_score": mean(r.growth_score for r in records),
        "growth_history": [
            {
                "date": r.recorded_at,
                "height": r.height_cm,
                "score": r.growth_score,
                "temperature": r.temperature,
                "humidity": r.humidity,
            }
            for r in records
        ],
    }


def weekly_records(session: Session) -> list[dict[str, Any]]:
    since = get_datetime_utc() - timedelta(days=7)
    records = session.exec(
        select(GrowthRecord)
        .where(col(GrowthRecord.recorded_at) >= since)
        .order_by(col(GrowthRecord.recorded_at).asc())
    ).all()
    scores: dict[str, list[float]] = defaultdict(list)
    for record in records:
        day = ensure_utc(record.recorded_at).date().isoformat()
        scores[day].append(record.growth_score or 0)
    return [
        {"date": day, "records": len(values), "avg_score": round(mean(values))}
        for day, values in scores.items()
    ]


@router.get("/stats")
def read_growth_stats(session: SessionDep, plant_id: uuid.UUID | None = None) -> Any:
    stages = session.exec(select(Plant.current_stage).where(Plant.is_active == True)).all()  # noqa: E712
    scores = session.exec(
        select(GrowthRecord.growth_score)
        .where(col(GrowthRecord.growth_score) != None)  # noqa: E711
        .order_by(col(GrowthRecord.recorded_at).desc())
        .limit(100)
    ).all()
    readings = session.exec(
        select(EnvironmentalReading).order_by(col(EnvironmentalReading.recorded_at).desc()).limit(24)
    ).all()

    environment = None
    if readings:
        environment = {
            "temperature": mean(r.temperature for r in readings),
            "humidity": mean(r.humidity for r in readings),
            "soil_moisture": mean(r.soil_moisture for r in readings),
        }

    return {
        "success": True,
        "stats": {
            "plants": {
                "total": _count_active_plants(session),
                "healthy": _count_active_plants(session, "healthy"),
                "warning": _count_active_plants(session, "warning"),
                "critical": _count_active_plants(session, "critical"),
                "by_stage": dict(Counter(stages)),
            },
            "records": {
                "total": crud.count(session, select(func.count()).select_from(GrowthRecord)),
                "avg_growth_score": round(mean(scores)),
            },
            "alerts": {
                "active": crud.count_alerts(session=session),
                "critical": crud.count_alerts(session=session, severity="critical"),
            },
            "environment": environment,
            "weekly_trend": weekly_records(session),
        },
        "plant_stats": plant_history(session, plant_id) if plant_id else None,
    }
