import logging
import uuid
from collections import Counter
from datetime import date
from typing import Any

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel
from sqlalchemy import func
from sqlmodel import Session, col, select

from berryvision import crud
from berryvision.agent.artifacts import LabInterpretationResult
from berryvision.agent.lab_agent import (
    LabContext,
    LabInterpretationAgent,
    describe_growth,
    describe_range,
    environment_averages,
)
from berryvision.api.deps import SessionDep
from berryvision.core.config import settings
from berryvision.models import (
    AnalysisCorrelation,
    AnalysisOptimalRange,
    AppliedTreatment,
    AppliedTreatmentBase,
    EnvironmentalReading,
    GrowthAlert,
    GrowthRecord,
    LabAnalysis,
    LabAnalysisBase,
    Plant,
)

logger = logging.getLogger(__name__)

router = APIRouter()


class LabAnalysisCreate(LabAnalysisBase):
    skip_ai_analysis: bool = False


class LabAnalysisUpdate(BaseModel):
    analysis_id: uuid.UUID | None = None
    status: str | None = None
    notes: str | None = None


class TreatmentUpdate(BaseModel):
    treatment_id: uuid.UUID | None = None
    status: str | None = None
    applied_date: date | None = None
    applied_by: str | None = None
    actual_dose: str | None = None
    weather_conditions: str | None = None
    effectiveness: str | None = None
    result_notes: str | None = None
    follow_up_date: date | None = None


def analysis_code(analysis_type: str, sample_date: date) -> str:
    return f"{analysis_type[:3].upper()}-{sample_date:%Y%m%d}-{uuid.uuid4().hex[:6].upper()}"


def build_lab_context(session: Session, lab_in: LabAnalysisCreate, plant: Plant | None) -> LabContext:
    crop_type = plant.crop_type if plant else "blueberry"
    ranges = session.exec(
        select(AnalysisOptimalRange).where(
            AnalysisOptimalRange.crop_type == crop_type,
            AnalysisOptimalRange.analysis_type == lab_in.analysis_type,
        )
    ).all()
    recent_growth: list[GrowthRecord] = []
    if plant:
        recent_growth = list(
            session.exec(
                select(GrowthRecord)
                .where(GrowthRecord.plant_id == plant.id)
                .order_by(col(GrowthRecord.recorded_at).desc())
                .limit(5)
            ).all()
        )
    readings = session.exec(
        select(EnvironmentalReading)
        .where(EnvironmentalReading.sector == lab_in.sector)
        .order_by(col(EnvironmentalReading.recorded_at).desc())
        .limit(10)
    ).all()
    temperature, humidity = environment_averages(list(readings))

    return LabContext(
        analysis_type=lab_in.analysis_type,
        crop_type=crop_type,
        variety=plant.variety if plant else None,
        sector=lab_in.sector,
        sample_date=lab_in.sample_date,
        plant_code=plant.plant_code if plant else None,
        plant_stage=plant.current_stage if plant else None,
        results=lab_in.results,
        reference_ranges=[describe_range(r) for r in ranges],
        recent_growth=[describe_growth(g) for g in recent_growth],
        average_temperature=temperature,
        average_humidity=humidity,
    )


@router.get("/analyses")
def read_lab_analyses(
    session: SessionDep,
    type: str | None = None,
    plant_id: uuid.UUID | None = None,
    sector: str | None = None,
    status: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> Any:
    statement = select(LabAnalysis)
    if type:
        statement = statement.where(LabAnalysis.analysis_type == type)
    if plant_id:
        statement = statement.where(LabAnalysis.plant_id == plant_id)
    if sector:
        statement = statement.where(LabAnalysis.sector == sector)
    if status:
        statement = statement.where(LabAnalysis.status == status)
    analyses, total = crud.paginate(
        session, statement.order_by(col(LabAnalysis.sample_date).desc()), limit=limit, offset=offset
    )

    results = []
    for analysis in analyses:
        plant = session.get(Plant, analysis.plant_id) if analysis.plant_id else None
        results.append(
            {
                **analysis.model_dump(),
                "plant": plant.model_dump(
                    include={"id", "plant_code", "name", "sector", "crop_type", "variety"}
                )
                if plant
                else None,
            }
        )

    types = session.exec(select(LabAnalysis.analysis_type)).all()
    return {
        "success": True,
        "analyses": results,
        "total": total,
        "limit": limit,
        "offset": offset,
        "stats": {
            "total": crud.count(session, select(func.count()).select_from(LabAnalysis)),
            "pending": crud.count(
                session,
                select(func.count()).select_from(LabAnalysis).where(LabAnalysis.status == "pending"),
            ),
            "by_type": dict(Counter(types)),
        },
    }


@router.post("/analyses")
async def create_lab_analysis(*, session: SessionDep, lab_in: LabAnalysisCreate) -> Any:
    """
    Store a lab report. When AI is available the results are interpreted against the
    crop's reference ranges, recent growth and sector climate; the model's
    correlations are stored and each main issue becomes an alert on the plant.
    """
    if not lab_in.analysis_type or not lab_in.results:
        raise HTTPException(status_code=400, detail="analysis_type, sample_date and results are required")

    plant = session.get(Plant, lab_in.plant_id) if lab_in.plant_id else None

    result: LabInterpretationResult | None = None
    if not lab_in.skip_ai_analysis and settings.ai_enabled:
        try:
            result = await LabInterpretationAgent().run(build_lab_context(session, lab_in, plant))
        except Exception as e:
            logger.error(f"Lab interpretation failed for {lab_in.analysis_type} analysis: {e}")

    analysis = LabAnalysis.model_validate(
        lab_in.model_dump(exclude={"skip_ai_analysis"}),
        update={"analysis_code": analysis_code(lab_in.analysis_type, lab_in.sample_date), "status": "pending"},
    )
    if result:
        analysis.ai_interpretation = result.interpretation.model_dump()
        analysis.ai_correlations = [c.model_dump() for c in result.correlations]
        analysis.ai_recommendations = result.recommendations_text()
    analysis = crud.save(session, analysis)

    if result:
        for correlation in result.correlations:
            session.add(
                AnalysisCorrelation(
                    analysis_id=analysis.id,
                    plant_id=lab_in.plant_id,
                    correlation_type=correlation.type,
                    description=correlation.description,
                    confidence=correlation.confidence,
                    impact_assessment=correlation.impact,
                )
            )
        if plant:
            severity = "critical" if result.interpretation.is_critical else "warning"
            for issue in result.interpretation.main_issues:
                session.add(
                    GrowthAlert(
                        plant_id=plant.id,
                        alert_type="nutrient_issue",
                        severity=severity,
                        title=f"Issue detected in {lab_in.analysis_type} analysis",
                        message=issue,
                    )
                )
        session.commit()
        session.refresh(analysis)

    return {
        "success": True,
        "analysis": analysis,
        "ai_interpretation": analysis.ai_interpretation,
        "ai_recommendations": analysis.ai_recommendations,
    }


@router.patch("/analyses")
def update_lab_analysis(*, session: SessionDep, analysis_in: LabAnalysisUpdate) -> Any:
    if not analysis_in.analysis_id:
        raise HTTPException(status_code=400, detail="analysis_id is required")
    analysis = session.get(LabAnalysis, analysis_in.analysis_id)
    if not analysis:
        raise HTTPException(status_code=404, detail="Lab analysis not found")

    data = analysis_in.model_dump(exclude_unset=True, exclude={"analysis_id"})
    if not data.get("status"):
        data.pop("status", None)
    return {"success": True, "analysis": crud.update_fields(session=session, db_obj=analysis, data=data)}


@router.get("/treatments")
def read_treatments(
    session: SessionDep,
    analysis_id: uuid.UUID | None = None,
    plant_id: uuid.UUID | None = None,
    status: str | None = None,
    limit: int = 50,
) -> Any:
    statement = select(AppliedTreatment)
    if analysis_id:
        statement = statement.where(AppliedTreatment.lab_analysis_id == analysis_id)
    if plant_id:
        statement = statement.where(AppliedTreatment.plant_id == plant_id)
    if status:
        statement = statement.where(AppliedTreatment.status == status)
    treatments = session.exec(statement.order_by(col(AppliedTreatment.created_at).desc()).limit(limit)).all()

    results = []
    for treatment in treatments:
        analysis = session.get(LabAnalysis, treatment.lab_analysis_id) if treatment.lab_analysis_id else None
        plant = session.get(Plant, treatment.plant_id) if treatment.plant_id else None
        results.append(
            {
                **treatment.model_dump(),
                "lab_analysis": analysis.model_dump(
                    include={"id", "analysis_code", "analysis_type", "sample_date"}
                )
                if analysis
                else None,
                "plant": plant.model_dump(include={"id", "plant_code", "name", "sector"}) if plant else None,
            }
        )
    return {"success": True, "treatments": results}


@router.post("/treatments")
def create_treatment(*, session: SessionDep, treatment_in: AppliedTreatmentBase) -> Any:
    """Record a treatment; one with an applied date is already completed."""
    lab_analysis = None
    if treatment_in.lab_analysis_id:
        lab_analysis = session.get(LabAnalysis, treatment_in.lab_analysis_id)
        if not lab_analysis:
            raise HTTPException(status_code=404, detail="Lab analysis not found")

    treatment = AppliedTreatment.model_validate(
        treatment_in, update={"status": "completed" if treatment_in.applied_date else "planned"}
    )
    treatment = crud.save(session, treatment)

    if lab_analysis:
        crud.update_fields(session=session, db_obj=lab_analysis, data={"status": "applied"})
        session.refresh(treatment)
    return {"success": True, "treatment": treatment}


@router.patch("/treatments")
def update_treatment(*, session: SessionDep, treatment_in: TreatmentUpdate) -> Any:
    if not treatment_in.treatment_id:
        raise HTTPException(status_code=400, detail="treatment_id is required")
    treatment = session.get(AppliedTreatment, treatment_in.treatment_id)
    if not treatment:
        raise HTTPException(status_code=404, detail="Treatment not found")

    data = {
        key: value
        for key, value in treatment_in.model_dump(exclude={"treatment_id"}).items()
        if value not in (None, "")
    }
    return {"success": True, "treatment": crud.update_fields(session=session, db_obj=treatment, data=data)}
