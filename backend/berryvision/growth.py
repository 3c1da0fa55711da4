"""Plain calculations behind growth tracking: rates, trend alerts, threshold checks."""
import math
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

from berryvision.core.config import settings
from berryvision.models import EnvironmentalReading, GrowthRecord, GrowthThreshold, ensure_utc

SECONDS_PER_DAY = 60 * 60 * 24


@dataclass
class GrowthTrend:
    growth_rate: float = 0.0
    days_since_last: int = 0


@dataclass
class AlertDraft:
    alert_type: str
    severity: str
    title: str
    message: str
    detected_value: str | None = None
    expected_value: str | None = None


def compute_growth_trend(
    previous: GrowthRecord | None, height_cm: float | None, now: datetime
) -> GrowthTrend:
    """Percentage height change against the previous record.

    Both heights must be present; a non-positive previous height leaves the
    rate at 0 while still counting the days elapsed.
    """
    if previous is None or not previous.height_cm or not height_cm:
        return GrowthTrend()

    last_date = ensure_utc(previous.recorded_at) or now
    elapsed = (now - last_date).total_seconds() / SECONDS_PER_DAY
    trend = GrowthTrend(days_since_last=max(0, math.ceil(elapsed)))
    if previous.height_cm > 0:
        trend.growth_rate = (height_cm - previous.height_cm) / previous.height_cm * 100
    return trend


def growth_slow_alert(trend: GrowthTrend, plant_code: str) -> AlertDraft | None:
    if trend.growth_rate >= 0 or trend.days_since_last < settings.GROWTH_SLOW_MIN_DAYS:
        return None
    severity = "critical" if trend.growth_rate < settings.GROWTH_SLOW_CRITICAL_RATE else "warning"
    return AlertDraft(
        alert_type="growth_slow",
        severity=severity,
        title="Stalled or negative growth",
        message=(
            f"Plant {plant_code} shows {trend.growth_rate:.1f}% growth "
            f"over the last {trend.days_since_last} days"
        ),
        detected_value=f"{trend.growth_rate:.2f}",
        expected_value="> 0",
    )


def environmental_alerts(
    reading: EnvironmentalReading, thresholds: GrowthThreshold
) -> list[AlertDraft]:
    """Compare a reading to the comfort band; 5 degrees past a limit is critical."""
    alerts: list[AlertDraft] = []
    temperature = reading.temperature
    humidity = reading.humidity

    if temperature < thresholds.temp_min:
        alerts.append(
            AlertDraft(
                alert_type="environmental",
                severity="critical" if temperature < thresholds.temp_min - 5 else "warning",
                title="Environmental alert",
                message=f"Temperature too low: {temperature}°C (minimum: {thresholds.temp_min}°C)",
            )
        )
    if temperature > thresholds.temp_max:
        alerts.append(
            AlertDraft(
                alert_type="environmental",
                severity="critical" if temperature > thresholds.temp_max + 5 else "warning",
                title="Environmental alert",
                message=f"Temperature too high: {temperature}°C (maximum: {thresholds.temp_max}°C)",
            )
        )
    if humidity and humidity < thresholds.humidity_min:
        alerts.append(
            AlertDraft(
                alert_type="environmental",
                severity="warning",
                title="Environmental alert",
                message=f"Humidity too low: {humidity}% (minimum: {thresholds.humidity_min}%)",
            )
        )
    if humidity and humidity > thresholds.humidity_max:
        alerts.append(
            AlertDraft(
                alert_type="environmental",
                severity="warning",
                title="Environmental alert",
                message=f"Humidity too high: {humidity}% (maximum: {thresholds.humidity_max}%)",
            )
        )
    return alerts


def mean(values: Iterable[float | None]) -> float:
    items = [v or 0 for v in values]
    return sum(items) / len(items) if items else 0.0


def daily_environment_chart(readings: list[EnvironmentalReading]) -> list[dict]:
    """Group readings by calendar day, oldest first."""
    days: dict[str, dict[str, list[float]]] = defaultdict(lambda: {"temps": [], "humidities": []})
    for reading in readings:
        day = (ensure_utc(reading.recorded_at) or datetime.min).date().isoformat()
        if reading.temperature:
            days[day]["temps"].append(reading.temperature)
        if reading.humidity:
            days[day]["humidities"].append(reading.humidity)

    chart = []
    for day in sorted(days):
        temps = days[day]["temps"]
        humidities = days[day]["humidities"]
        chart.append(
            {
                "date": day,
                "avg_temp": round(mean(temps), 1) if temps else None,
                "avg_humidity": round(mean(humidities), 1) if humidities else None,
                "min_temp": min(temps) if temps else None,
                "max_temp": max(temps) if temps else None,
            }
        )
    return chart
