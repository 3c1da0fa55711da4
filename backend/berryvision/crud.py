import uuid
from datetime import date, datetime, time, timedelta, timezone
from typing import Any

from sqlalchemy import func
from sqlmodel import Session, SQLModel, select

from berryvision.models import (
    Analysis,
    AppUser,
    DailyReport,
    EnvironmentalReading,
    FieldLogEntry,
    GrowthAlert,
    GrowthRecord,
    GrowthStage,
    GrowthThreshold,
    KnowledgeSource,
    LabAnalysis,
    Plant,
    get_datetime_utc,
)

DEFAULT_KNOWLEDGE_SOURCE_NAME = "Manual BerryVision"


def save(session: Session, db_obj: SQLModel) -> Any:
    session.add(db_obj)
    session.commit()
    session.refresh(db_obj)
    return db_obj


def update_fields(*, session: Session, db_obj: SQLModel, data: dict[str, Any]) -> Any:
    db_obj.sqlmodel_update(data)
    if hasattr(db_obj, "updated_at"):
        db_obj.updated_at = get_datetime_utc()
    return save(session, db_obj)


def count(session: Session, statement) -> int:
    return session.exec(statement).one() or 0


def paginate(session: Session, statement, *, limit: int, offset: int) -> tuple[list[Any], int]:
    """One page of ``statement`` plus the total row count ignoring limit/offset."""
    total = count(session, select(func.count()).select_from(statement.order_by(None).subquery()))
    items = session.exec(statement.offset(offset).limit(limit)).all()
    return list(items), total


def day_bounds(day: date) -> tuple[datetime, datetime]:
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


# Plants and growth

def get_plant_by_code(*, session: Session, plant_code: str) -> Plant | None:
    return session.exec(select(Plant).where(Plant.plant_code == plant_code)).first()


def create_plant(*, session: Session, plant: Plant) -> Plant:
    """Insert a plant together with its initial growth stage row."""
    session.add(plant)
    session.add(GrowthStage(plant_id=plant.id, stage=plant.current_stage))
    session.commit()
    session.refresh(plant)
    return plant


def get_latest_growth_record(*, session: Session, plant_id: uuid.UUID) -> GrowthRecord | None:
    statement = (
        select(GrowthRecord)
        .where(GrowthRecord.plant_id == plant_id)
        .order_by(GrowthRecord.recorded_at.desc())  # type: ignore[union-attr]
        .limit(1)
    )
    return session.exec(statement).first()


def get_latest_environment_reading(
    *, session: Session, sector: str | None
) -> EnvironmentalReading | None:
    statement = (
        select(EnvironmentalReading)
        .where(EnvironmentalReading.sector == sector)
        .order_by(EnvironmentalReading.recorded_at.desc())  # type: ignore[union-attr]
        .limit(1)
    )
    return session.exec(statement).first()


def get_default_threshold(*, session: Session) -> GrowthThreshold | None:
    statement = select(GrowthThreshold).where(
        GrowthThreshold.variety == None,  # noqa: E711
        GrowthThreshold.stage == None,  # noqa: E711
    )
    return session.exec(statement).first()


def count_alerts(*, session: Session, severity: str | None = None) -> int:
    statement = select(func.count()).select_from(GrowthAlert).where(GrowthAlert.status == "active")
    if severity:
        statement = statement.where(GrowthAlert.severity == severity)
    return count(session, statement)


# Knowledge

def get_default_knowledge_source(*, session: Session) -> KnowledgeSource:
    source = session.exec(
        select(KnowledgeSource).where(KnowledgeSource.name == DEFAULT_KNOWLEDGE_SOURCE_NAME)
    ).first()
    if source:
        return source
    return save(
        session,
        KnowledgeSource(
            name=DEFAULT_KNOWLEDGE_SOURCE_NAME,
            description="Knowledge added manually by the team",
            source_type="manual",
            language="es",
            is_verified=True,
        ),
    )


# Users and daily activity

def get_user_by_email(*, session: Session, email: str) -> AppUser | None:
    return session.exec(select(AppUser).where(AppUser.email == email)).first()


def user_activity_for_day(*, session: Session, day: date) -> list[dict[str, Any]]:
    """Upload counts per active user for one calendar day (UTC)."""
    start, end = day_bounds(day)
    sources = {
        "growth_records": (GrowthRecord.recorded_by, GrowthRecord.recorded_at),
        "photos": (Analysis.user_id, Analysis.timestamp),
        "lab_analyses": (LabAnalysis.recorded_by, LabAnalysis.created_at),
        "field_log_entries": (FieldLogEntry.recorded_by, FieldLogEntry.created_at),
    }
    per_source: dict[str, dict[uuid.UUID, int]] = {}
    for name, (user_column, time_column) in sources.items():
        rows = session.exec(
            select(user_column, func.count())
            .where(user_column != None, time_column >= start, time_column < end)  # noqa: E711
            .group_by(user_column)
        ).all()
        per_source[name] = {user_id: total for user_id, total in rows}

    users = session.exec(select(AppUser).where(AppUser.is_active == True)).all()  # noqa: E712
    activity = []
    for user in users:
        counts = {name: per_source[name].get(user.id, 0) for name in sources}
        activity.append(
            {
                "user_id": user.id,
                "full_name": user.full_name,
                "email": user.email,
                "role": user.role,
                "notify_email": user.notify_email,
                "notify_whatsapp": user.notify_whatsapp,
                **counts,
                "total_uploads": sum(counts.values()),
            }
        )
    return activity


def inactive_users_for_day(*, session: Session, day: date) -> list[dict[str, Any]]:
    return [row for row in user_activity_for_day(session=session, day=day) if row["total_uploads"] == 0]


def total_uploads_for_day(*, session: Session, day: date) -> int:
    start, end = day_bounds(day)
    return sum(
        count(session, select(func.count()).select_from(model).where(column >= start, column < end))
        for model, column in (
            (GrowthRecord, GrowthRecord.recorded_at),
            (Analysis, Analysis.timestamp),
            (LabAnalysis, LabAnalysis.created_at),
            (FieldLogEntry, FieldLogEntry.created_at),
        )
    )


def generate_daily_report(*, session: Session, day: date) -> DailyReport:
    """Create or refresh the aggregate report row for ``day``."""
    activity = user_activity_for_day(session=session, day=day)
    start, end = day_bounds(day)
    alerts_generated = count(
        session,
        select(func.count())
        .select_from(GrowthAlert)
        .where(GrowthAlert.created_at >= start, GrowthAlert.created_at < end),
    )

    report = session.exec(select(DailyReport).where(DailyReport.report_date == day)).first()
    if not report:
        report = DailyReport(report_date=day)
    report.total_users = len(activity)
    report.active_users = sum(1 for row in activity if row["total_uploads"] > 0)
    report.inactive_users = report.total_users - report.active_users
    report.total_growth_records = sum(row["growth_records"] for row in activity)
    report.total_photos = sum(row["photos"] for row in activity)
    report.total_lab_analyses = sum(row["lab_analyses"] for row in activity)
    report.alerts_generated = alerts_generated
    return save(session, report)
