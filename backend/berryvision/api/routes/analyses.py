import logging
import uuid
from datetime import date, datetime
from typing import Any

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field
from sqlmodel import col, select

from berryvision import crud
from berryvision.agent.diagnosis_agent import DiagnosisRequest, ImageDiagnosisAgent
from berryvision.api.deps import SessionDep
from berryvision.core.config import settings
from berryvision.models import Analysis, get_datetime_utc

logger = logging.getLogger(__name__)

router = APIRouter()


class AnalysisUpsert(BaseModel):
    id: uuid.UUID | None = None  # set by the mobile app when syncing offline captures
    timestamp: datetime | None = None
    crop_type: str | None = None
    sector: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    image_url: str | None = None
    notes: str | None = None
    sync_status: str = "pending"


class AnalysisUpdate(BaseModel):
    id: uuid.UUID | None = None
    health_status: str | None = None
    disease_name: str | None = None
    disease_confidence: float | None = None
    pest_name: str | None = None
    pest_confidence: float | None = None
    phenology_bbch: int | None = Field(default=None, ge=0, le=99)
    fruit_count: int | None = None
    maturity_green: int | None = None
    maturity_ripe: int | None = None
    maturity_overripe: int | None = None
    recommendation: str | None = None
    raw_ai_response: str | None = None
    sync_status: str | None = None


def _filter(value: str | None) -> str | None:
    return None if not value or value == "all" else value


@router.get("")
def read_analyses(
    session: SessionDep,
    status: str | None = None,
    sync_status: str | None = None,
    crop_type: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
    limit: int = 50,
    offset: int = 0,
) -> Any:
    statement = select(Analysis)
    if _filter(status):
        statement = statement.where(Analysis.health_status == status)
    if _filter(sync_status):
        statement = statement.where(Analysis.sync_status == sync_status)
    if _filter(crop_type):
        statement = statement.where(Analysis.crop_type == crop_type)
    if date_from:
        statement = statement.where(col(Analysis.timestamp) >= crud.day_bounds(date_from)[0])
    if date_to:
        statement = statement.where(col(Analysis.timestamp) < crud.day_bounds(date_to)[1])

    analyses, total = crud.paginate(
        session, statement.order_by(col(Analysis.timestamp).desc()), limit=limit, offset=offset
    )
    return {"success": True, "analyses": analyses, "total": total, "limit": limit, "offset": offset}


@router.post("")
def upsert_analysis(*, session: SessionDep, analysis_in: AnalysisUpsert) -> Any:
    """Create an analysis, or update it when the mobile client re-syncs an existing id."""
    if not analysis_in.crop_type:
        raise HTTPException(status_code=400, detail="Missing required field: crop_type")

    existing = session.get(Analysis, analysis_in.id) if analysis_in.id else None
    if existing:
        # a re-sync only overwrites the fields the client sent
        data = analysis_in.model_dump(exclude_unset=True, exclude={"id"})
        if data.get("timestamp") is None:
            data.pop("timestamp", None)
        analysis = crud.update_fields(session=session, db_obj=existing, data=data)
    else:
        data = analysis_in.model_dump(exclude={"id"})
        data["timestamp"] = analysis_in.timestamp or get_datetime_utc()
        if analysis_in.id:
            data["id"] = analysis_in.id
        analysis = crud.save(session, Analysis.model_validate(data))
    return {"success": True, "analysis": analysis}


@router.patch("")
def update_analysis(*, session: SessionDep, analysis_in: AnalysisUpdate) -> Any:
    if not analysis_in.id:
        raise HTTPException(status_code=400, detail="Missing analysis ID")
    analysis = session.get(Analysis, analysis_in.id)
    if not analysis:
        raise HTTPException(status_code=404, detail="Analysis not found")

    data = analysis_in.model_dump(exclude_unset=True, exclude={"id"})
    analysis = crud.update_fields(session=session, db_obj=analysis, data=data)
    return {"success": True, "analysis": analysis}


@router.delete("")
def delete_analysis(session: SessionDep, id: uuid.UUID | None = None) -> Any:
    if not id:
        raise HTTPException(status_code=400, detail="Missing analysis ID")
    analysis = session.get(Analysis, id)
    if analysis:
        session.delete(analysis)
        session.commit()
    return {"success": True}


@router.post("/{id}/process")
async def process_analysis(id: uuid.UUID, session: SessionDep) -> Any:
    """
    Run the vision diagnosis on a captured image and store the normalized result.
    A failed model call marks the analysis with sync_status ``error``.
    """
    analysis = session.get(Analysis, id)
    if not analysis:
        raise HTTPException(status_code=404, detail="Analysis not found")
    if not analysis.image_url:
        raise HTTPException(status_code=400, detail="Analysis has no image to process")
    if not settings.ai_enabled:
        raise HTTPException(status_code=400, detail="AI analysis is not configured")

    try:
        diagnosis = await ImageDiagnosisAgent().run(
            DiagnosisRequest(
                image_url=analysis.image_url,
                crop_type=analysis.crop_type,
                additional_context=analysis.notes,
            )
        )
    except Exception as e:
        logger.error(f"Vision diagnosis failed for analysis {id}: {e}")
        analysis = crud.update_fields(session=session, db_obj=analysis, data={"sync_status": "error"})
        return {"success": True, "analysis": analysis, "processed": False}

    data = diagnosis.as_analysis_fields()
    data["raw_ai_response"] = diagnosis.model_dump_json()
    data["sync_status"] = "processed"
    analysis = crud.update_fields(session=session, db_obj=analysis, data=data)
    logger.info(f"Processed analysis {id}: {diagnosis.health_status}")
    return {"success": True, "analysis": analysis, "processed": True}
