import logging
import uuid
from typing import Any

from fastapi import APIRouter, HTTPException
from sqlmodel import Session, col, select

from berryvision import crud
from berryvision.agent.artifacts import GrowthAssessment
from berryvision.agent.growth_agent import GrowthAnalysisAgent, GrowthObservation
from berryvision.api.deps import SessionDep
from berryvision.core.config import settings
from berryvision.growth import AlertDraft, compute_growth_trend, growth_slow_alert
from berryvision.models import (
    GrowthAlert,
    GrowthMeasurements,
    GrowthRecord,
    Plant,
    get_datetime_utc,
)

logger = logging.getLogger(__name__)

router = APIRouter()


class GrowthRecordCreate(GrowthMeasurements):
    plant_id: uuid.UUID | None = None
    image_url: str | None = None
    recorded_by: uuid.UUID | None = None
    skip_ai_analysis: bool = False


def _plant_summary(plant: Plant | None) -> dict[str, Any] | None:
    if plant is None:
        return None
    return plant.model_dump(
        include={"id", "plant_code", "name", "sector", "crop_type", "variety", "current_stage"}
    )


def _save_alert(session: Session, plant: Plant, record: GrowthRecord, draft: AlertDraft) -> GrowthAlert:
    return crud.save(
        session,
        GrowthAlert(
            plant_id=plant.id,
            growth_record_id=record.id,
            alert_type=draft.alert_type,
            severity=draft.severity,
            title=draft.title,
            message=draft.message,
            detected_value=draft.detected_value,
            expected_value=draft.expected_value,
        ),
    )


@router.get("/records")
def read_growth_records(
    session: SessionDep,
    plant_id: uuid.UUID | None = None,
    limit: int = 50,
    offset: int = 0,
) -> Any:
    statement = select(GrowthRecord)
    if plant_id:
        statement = statement.where(GrowthRecord.plant_id == plant_id)
    records, total = crud.paginate(
        session, statement.order_by(col(GrowthRecord.recorded_at).desc()), limit=limit, offset=offset
    )
    return {
        "success": True,
        "records": [
            {**record.model_dump(), "plant": _plant_summary(session.get(Plant, record.plant_id))}
            for record in records
        ],
        "total": total,
        "limit": limit,
        "offset": offset,
    }


@router.post("/records")
async def create_growth_record(*, session: SessionDep, record_in: GrowthRecordCreate) -> Any:
    """
    Ingest one growth observation.

    Computes the growth trend against the plant's previous record, fills missing
    climate values from the sector's latest reading, asks the vision model for a
    health assessment, stores the record and raises alerts for reported problems
    and for stalled growth.
    """
    if not record_in.plant_id or not record_in.image_url:
        raise HTTPException(status_code=400, detail="plant_id and image_url are required")

    plant = session.get(Plant, record_in.plant_id)
    if not plant:
        raise HTTPException(status_code=404, detail="Plant not found")

    previous = crud.get_latest_growth_record(session=session, plant_id=plant.id)
    trend = compute_growth_trend(previous, record_in.height_cm, get_datetime_utc())

    temperature, humidity = record_in.temperature, record_in.humidity
    if temperature is None or humidity is None:
        reading = crud.get_latest_environment_reading(session=session, sector=plant.sector)
        if reading:
            temperature = temperature if temperature is not None else reading.temperature
            humidity = humidity if humidity is not None else reading.humidity

    assessment: GrowthAssessment | None = None
    if not record_in.skip_ai_analysis and settings.ai_enabled:
        observation = GrowthObservation(
            image_url=record_in.image_url,
            plant_code=plant.plant_code,
            crop_type=plant.crop_type,
            variety=plant.variety,
            current_stage=plant.current_stage,
            height_cm=record_in.height_cm,
            previous_height_cm=previous.height_cm if previous else None,
            growth_rate=trend.growth_rate,
            days_since_last=trend.days_since_last,
            temperature=temperature,
            humidity=humidity,
            leaf_count=record_in.leaf_count,
            flower_count=record_in.flower_count,
            fruit_count=record_in.fruit_count,
        )
        try:
            assessment = await GrowthAnalysisAgent().run(observation)
        except Exception as e:
            logger.error(f"Growth analysis failed for plant {plant.plant_code}: {e}")

    record = GrowthRecord.model_validate(
        record_in.model_dump(exclude={"plant_id", "skip_ai_analysis", "temperature", "humidity"}),
        update={
            "plant_id": plant.id,
            "temperature": temperature,
            "humidity": humidity,
            "growth_rate": trend.growth_rate,
            "days_since_last": trend.days_since_last,
        },
    )
    if assessment:
        record.ai_analysis = assessment.model_dump()
        record.growth_score = assessment.growth_score
        record.health_status = assessment.health_status
        record.detected_issues = assessment.detected_issues
        record.ai_recommendations = "\n\n".join(assessment.recommendations)
    record = crud.save(session, record)

    if assessment:
        for alert in assessment.alerts:
            _save_alert(
                session,
                plant,
                record,
                AlertDraft(
                    alert_type=alert.type,
                    severity=alert.severity,
                    title=f"Alert: {alert.type}",
                    message=alert.message,
                ),
            )

    if record.health_status != plant.health_status:
        crud.update_fields(session=session, db_obj=plant, data={"health_status": record.health_status})

    slow = growth_slow_alert(trend, plant.plant_code)
    if slow:
        _save_alert(session, plant, record, slow)
        logger.info(f"Growth slow alert ({slow.severity}) for plant {plant.plant_code}")

    session.refresh(record)
    return {
        "success": True,
        "record": record,
        "analysis": assessment.model_dump() if assessment else None,
    }
