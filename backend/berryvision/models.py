import uuid
from datetime import date, datetime, time, timezone
from typing import Any

from pydantic import EmailStr
from sqlalchemy import JSON, DateTime
from sqlmodel import Field, SQLModel


def get_datetime_utc() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; treat those as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


# Field analyses (mobile capture + AI diagnosis)

class AnalysisBase(SQLModel):
    timestamp: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
        index=True,
    )
    crop_type: str = Field(max_length=50, index=True)  # blueberry, raspberry, strawberry, other
    sector: str | None = Field(default=None, max_length=100)
    latitude: float | None = None
    longitude: float | None = None
    image_url: str | None = None
    notes: str | None = None
    sync_status: str = Field(default="pending", index=True)  # pending, synced, processed, error
    user_id: uuid.UUID | None = Field(
        default=None, foreign_key="appuser.id", ondelete="SET NULL"
    )


class AnalysisDiagnosis(SQLModel):
    health_status: str | None = Field(default=None, index=True)  # healthy, alert, critical
    disease_name: str | None = None
    disease_confidence: float | None = None
    pest_name: str | None = None
    pest_confidence: float | None = None
    phenology_bbch: int | None = Field(default=None, ge=0, le=99)
    fruit_count: int = 0
    maturity_green: int = 0
    maturity_ripe: int = 0
    maturity_overripe: int = 0
    recommendation: str | None = None
    raw_ai_response: str | None = None


class Analysis(AnalysisBase, AnalysisDiagnosis, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    created_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )
    updated_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )


# Labeled images for fine-tuning

class TrainingImageBase(SQLModel):
    image_url: str
    crop_type: str = Field(max_length=50, index=True)
    health_status: str = Field(max_length=50)
    disease_name: str | None = None
    disease_confidence: float | None = None
    pest_name: str | None = None
    pest_confidence: float | None = None
    phenology_bbch: int | None = Field(default=None, ge=0, le=99)
    notes: str | None = None
    verified_by: str = "user"
    source: str = "manual_upload"


class TrainingImage(TrainingImageBase, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    verified_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )
    used_for_training: bool = Field(default=False, index=True)
    training_batch: str | None = None
    created_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )


# Growth tracking

class PlantBase(SQLModel):
    plant_code: str = Field(min_length=1, max_length=100, index=True)
    name: str | None = Field(default=None, max_length=255)
    sector: str | None = Field(default=None, max_length=100, index=True)
    row_number: int | None = None
    position: str | None = None
    gps_lat: float | None = None
    gps_lng: float | None = None
    crop_type: str = Field(default="blueberry", max_length=50, index=True)
    variety: str | None = None
    planting_date: date | None = None
    expected_harvest_date: date | None = None
    # seedling, vegetative, flowering, fruiting, harvest, dormant
    current_stage: str = Field(default="seedling", max_length=50)
    notes: str | None = None
    tags: list[str] = Field(default_factory=list, sa_type=JSON)


class Plant(PlantBase, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    health_status: str = Field(default="healthy", index=True)  # healthy, warning, critical
    is_active: bool = Field(default=True, index=True)
    created_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )
    updated_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )


class GrowthStage(SQLModel, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    plant_id: uuid.UUID = Field(foreign_key="plant.id", nullable=False, ondelete="CASCADE")
    stage: str = Field(max_length=50)
    started_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )
    ended_at: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore
    )


class GrowthMeasurements(SQLModel):
    height_cm: float | None = None
    width_cm: float | None = None
    leaf_count: int | None = None
    branch_count: int | None = None
    flower_count: int | None = None
    fruit_count: int | None = None
    temperature: float | None = None
    humidity: float | None = None
    soil_moisture: float | None = None
    light_level: float | None = None
    ph_level: float | None = None
    notes: str | None = None


class GrowthRecord(GrowthMeasurements, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    plant_id: uuid.UUID = Field(
        foreign_key="plant.id", nullable=False, ondelete="CASCADE", index=True
    )
    image_url: str
    ai_analysis: dict[str, Any] | None = Field(default=None, sa_type=JSON)
    growth_score: float | None = None
    health_status: str = "healthy"
    detected_issues: list[str] = Field(default_factory=list, sa_type=JSON)
    ai_recommendations: str = ""
    growth_rate: float = 0.0
    days_since_last: int = 0
    recorded_by: uuid.UUID | None = Field(
        default=None, foreign_key="appuser.id", ondelete="SET NULL"
    )
    recorded_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
        index=True,
    )


class GrowthAlert(SQLModel, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    plant_id: uuid.UUID = Field(
        foreign_key="plant.id", nullable=False, ondelete="CASCADE", index=True
    )
    growth_record_id: uuid.UUID | None = Field(
        default=None, foreign_key="growthrecord.id", ondelete="SET NULL"
    )
    alert_type: str = Field(max_length=100)
    severity: str = Field(default="warning", index=True)  # info, warning, critical
    title: str
    message: str
    detected_value: str | None = None
    expected_value: str | None = None
    status: str = Field(default="active", index=True)  # active, acknowledged, resolved, dismissed
    acknowledged_at: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore
    )
    resolved_at: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore
    )
    resolution_notes: str | None = None
    created_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
        index=True,
    )


class EnvironmentalReadingBase(SQLModel):
    sector: str | None = Field(default=None, max_length=100, index=True)
    temperature: float
    humidity: float | None = None
    soil_moisture: float | None = None
    light_level: float | None = None
    wind_speed: float | None = None
    rainfall_mm: float | None = None
    source: str = "manual"  # manual, sensor, weather_api
    sensor_id: str | None = None


class EnvironmentalReading(EnvironmentalReadingBase, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    recorded_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
        index=True,
    )


class GrowthThreshold(SQLModel, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    crop_type: str | None = None
    variety: str | None = None
    stage: str | None = None
    temp_min: float
    temp_max: float
    humidity_min: float
    humidity_max: float


# Lab analyses and treatments

class LabAnalysisBase(SQLModel):
    analysis_type: str = Field(max_length=50, index=True)  # soil, foliar, water, fruit, pest, disease
    plant_id: uuid.UUID | None = Field(
        default=None, foreign_key="plant.id", ondelete="SET NULL", index=True
    )
    sector: str | None = Field(default=None, max_length=100, index=True)
    sample_date: date
    sample_location: str | None = None
    sample_description: str | None = None
    sampled_by: str | None = None
    lab_name: str | None = None
    lab_reference: str | None = None
    analysis_date: date | None = None
    report_pdf_url: str | None = None
    report_images: list[str] = Field(default_factory=list, sa_type=JSON)
    results: dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
    interpretation: str | None = None
    recommendations: str | None = None
    notes: str | None = None
    tags: list[str] = Field(default_factory=list, sa_type=JSON)
    recorded_by: uuid.UUID | None = Field(
        default=None, foreign_key="appuser.id", ondelete="SET NULL"
    )


class LabAnalysis(LabAnalysisBase, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    analysis_code: str | None = Field(default=None, max_length=64, index=True)
    ai_interpretation: dict[str, Any] | None = Field(default=None, sa_type=JSON)
    ai_correlations: list[dict[str, Any]] | None = Field(default=None, sa_type=JSON)
    ai_recommendations: str = ""
    status: str = Field(default="pending", index=True)  # pending, reviewed, applied, closed
    created_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )
    updated_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )


class AnalysisOptimalRange(SQLModel, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    crop_type: str = Field(max_length=50, index=True)
    analysis_type: str = Field(max_length=50, index=True)
    parameter_name: str
    parameter_unit: str | None = None
    optimal_min: float | None = None
    optimal_max: float | None = None
    deficient_max: float | None = None
    excess_min: float | None = None


class AnalysisCorrelation(SQLModel, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    analysis_id: uuid.UUID = Field(
        foreign_key="labanalysis.id", nullable=False, ondelete="CASCADE"
    )
    plant_id: uuid.UUID | None = Field(default=None, foreign_key="plant.id", ondelete="SET NULL")
    correlation_type: str
    description: str
    confidence: float | None = None
    impact_assessment: str | None = None
    created_by: str = "ai"
    created_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )


class AppliedTreatmentBase(SQLModel):
    lab_analysis_id: uuid.UUID | None = Field(
        default=None, foreign_key="labanalysis.id", ondelete="SET NULL", index=True
    )
    correlation_id: uuid.UUID | None = Field(
        default=None, foreign_key="analysiscorrelation.id", ondelete="SET NULL"
    )
    growth_alert_id: uuid.UUID | None = Field(
        default=None, foreign_key="growthalert.id", ondelete="SET NULL"
    )
    plant_id: uuid.UUID | None = Field(
        default=None, foreign_key="plant.id", ondelete="SET NULL", index=True
    )
    sector: str | None = None
    affected_area: str | None = None
    treatment_type: str = Field(min_length=1, max_length=100)  # fertilization, fungicide, insecticide, ...
    treatment_name: str = Field(min_length=1, max_length=255)
    product_name: str | None = None
    product_dose: str | None = None
    application_method: str | None = None
    planned_date: date | None = None
    applied_date: date | None = None
    applied_by: str | None = None
    actual_dose: str | None = None
    weather_conditions: str | None = None
    cost: float | None = None
    notes: str | None = None


class AppliedTreatment(AppliedTreatmentBase, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    status: str = Field(default="planned", index=True)  # planned, in_progress, completed, cancelled
    effectiveness: str | None = None
    result_notes: str | None = None
    follow_up_date: date | None = None
    created_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
        index=True,
    )
    updated_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )


# Knowledge base (RAG)

class KnowledgeSource(SQLModel, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    name: str = Field(max_length=255)
    description: str | None = None
    source_type: str = "manual"  # manual, pdf, web
    language: str = "es"
    is_verified: bool = False
    created_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )


class KnowledgeDocumentBase(SQLModel):
    title: str = Field(min_length=1, max_length=500)
    content: str = Field(min_length=1)
    summary: str | None = None
    category: str = Field(min_length=1, max_length=100, index=True)
    tags: list[str] = Field(default_factory=list, sa_type=JSON)
    crop_types: list[str] = Field(default_factory=lambda: ["blueberry"], sa_type=JSON)


class KnowledgeDocument(KnowledgeDocumentBase, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    source_id: uuid.UUID | None = Field(
        default=None, foreign_key="knowledgesource.id", ondelete="SET NULL"
    )
    created_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )
    updated_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )


class RagQuery(SQLModel, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    query_text: str
    retrieved_doc_ids: list[str] = Field(default_factory=list, sa_type=JSON)
    context_used: str = ""
    response_generated: str = ""
    total_tokens_used: int = 0
    created_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )


# Staff, notifications and activity

class AppUserBase(SQLModel):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: EmailStr = Field(unique=True, index=True, max_length=255)
    phone: str | None = Field(default=None, max_length=50)
    whatsapp: str | None = Field(default=None, max_length=50)
    # admin, manager, field_engineer, lab_technician, viewer
    role: str = Field(default="field_engineer", max_length=50, index=True)
    ranch_ids: list[str] = Field(default_factory=list, sa_type=JSON)
    sector_ids: list[str] = Field(default_factory=list, sa_type=JSON)
    notify_email: bool = True
    notify_whatsapp: bool = False
    notify_time: time = time(18, 0)
    notify_weekdays: bool = True
    notify_weekends: bool = False
    notes: str | None = None


class AppUser(AppUserBase, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    is_active: bool = Field(default=True, index=True)
    created_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )
    updated_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class NotificationRecord(SQLModel, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID | None = Field(default=None, foreign_key="appuser.id", ondelete="SET NULL")
    notification_type: str = Field(max_length=50)  # daily_reminder, admin_report
    channel: str = Field(default="email", max_length=20)  # email, whatsapp
    subject: str
    message: str
    details: dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
    status: str = Field(default="pending")  # pending, sent, failed
    sent_at: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore
    )
    created_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )


class DailyReport(SQLModel, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    report_date: date = Field(unique=True, index=True)
    total_users: int = 0
    active_users: int = 0
    inactive_users: int = 0
    total_growth_records: int = 0
    total_photos: int = 0
    total_lab_analyses: int = 0
    alerts_generated: int = 0
    sent_to_admin: bool = False
    sent_at: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore
    )
    created_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )


class SystemAlert(SQLModel, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    alert_type: str = Field(max_length=50)  # daily_inactivity, weekly_summary
    title: str
    message: str
    alert_date: date = Field(index=True)
    read: bool = Field(default=False, index=True)
    created_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )


class FieldLogEntryBase(SQLModel):
    entry_date: date = Field(index=True)
    cycle: str | None = None
    crop: str = Field(max_length=50)
    variety: str | None = None
    sector: str | None = None
    problem_type: str = Field(max_length=50)  # pest, disease, nutrition, other
    problem: str
    severity: str = Field(default="medium", max_length=20)  # low, medium, high, critical
    treatment_product: str | None = None
    treatment_dose: str | None = None
    treatment_applied: bool = False
    application_date: date | None = None
    image_url: str | None = None
    comments: str | None = None
    recorded_by: uuid.UUID | None = Field(
        default=None, foreign_key="appuser.id", ondelete="SET NULL"
    )


class FieldLogEntry(FieldLogEntryBase, table=True):
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    created_at: datetime | None = Field(
        default_factory=get_datetime_utc,
        sa_type=DateTime(timezone=True),  # type: ignore
    )


# Generic message
class Message(SQLModel):
    success: bool = True
    message: str
