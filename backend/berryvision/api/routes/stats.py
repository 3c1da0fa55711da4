from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any

from fastapi import APIRouter
from sqlalchemy import func
from sqlmodel import Session, col, select

from berryvision import crud
from berryvision.api.deps import SessionDep
from berryvision.models import Analysis, GrowthAlert

router = APIRouter()


def _count_analyses(session: Session, *conditions) -> int:
    return crud.count(session, select(func.count()).select_from(Analysis).where(*conditions))


def weekly_trend(session: Session, today) -> list[dict[str, Any]]:
    """Analyses and alert-level analyses per day for the last seven days, oldest first."""
    trend = []
    for days_ago in range(6, -1, -1):
        day = today - timedelta(days=days_ago)
        start, end = crud.day_bounds(day)
        in_day = (col(Analysis.timestamp) >= start, col(Analysis.timestamp) < end)
        trend.append(
            {
                "date": day.isoformat(),
                "weekday": day.strftime("%a"),
                "analyses": _count_analyses(session, *in_day),
                "alerts": _count_analyses(
                    session, col(Analysis.health_status).in_(["alert", "critical"]), *in_day
                ),
            }
        )
    return trend


def detection_counts(session: Session, column, since: datetime) -> dict[str, int]:
    names = session.exec(
        select(column).where(column != None, col(Analysis.timestamp) >= since)  # noqa: E711
    ).all()
    return dict(Counter(names))


@router.get("")
def read_dashboard_stats(session: SessionDep) -> Any:
    now = datetime.now(timezone.utc)
    since = now - timedelta(days=30)
    recent_alerts = session.exec(
        select(GrowthAlert).order_by(col(GrowthAlert.created_at).desc()).limit(5)
    ).all()

    return {
        "success": True,
        "stats": {
            "total_analyses": _count_analyses(session),
            "healthy_count": _count_analyses(session, Analysis.health_status == "healthy"),
            "alert_count": _count_analyses(session, Analysis.health_status == "alert"),
            "critical_count": _count_analyses(session, Analysis.health_status == "critical"),
            "pending_count": _count_analyses(session, Analysis.sync_status == "pending"),
        },
        "weekly_trend": weekly_trend(session, now.date()),
        "disease_counts": detection_counts(session, col(Analysis.disease_name), since),
        "pest_counts": detection_counts(session, col(Analysis.pest_name), since),
        "recent_alerts": recent_alerts,
    }
