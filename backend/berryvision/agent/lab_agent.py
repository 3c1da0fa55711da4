import json
from datetime import date
from typing import Any

from pydantic import BaseModel, Field

from berryvision.agent.artifacts import LabInterpretationResult
from berryvision.agent.base import BaseAgent
from berryvision.agent.prompts.lab import ANALYSIS_TYPE_NAMES, LAB_SYSTEM_PROMPT
from berryvision.models import AnalysisOptimalRange, EnvironmentalReading, GrowthRecord, ensure_utc


class LabContext(BaseModel):
    analysis_type: str
    crop_type: str = "blueberry"
    variety: str | None = None
    sector: str | None = None
    sample_date: date
    plant_code: str | None = None
    plant_stage: str | None = None
    results: dict[str, Any] = Field(default_factory=dict)
    reference_ranges: list[str] = Field(default_factory=list)
    recent_growth: list[str] = Field(default_factory=list)
    average_temperature: float | None = None
    average_humidity: float | None = None


def describe_range(optimal_range: AnalysisOptimalRange) -> str:
    unit = optimal_range.parameter_unit or ""
    return (
        f"{optimal_range.parameter_name}: optimal {optimal_range.optimal_min}-{optimal_range.optimal_max} {unit}, "
        f"deficient <{optimal_range.deficient_max}, excess >{optimal_range.excess_min}"
    )


def describe_growth(record: GrowthRecord) -> str:
    day = ensure_utc(record.recorded_at)
    return (
        f"{day.date().isoformat() if day else '?'}: height {record.height_cm}cm, "
        f"score {record.growth_score}, temp {record.temperature}°C, humidity {record.humidity}%"
    )


def environment_averages(readings: list[EnvironmentalReading]) -> tuple[float | None, float | None]:
    if not readings:
        return None, None
    temperature = sum(r.temperature or 0 for r in readings) / len(readings)
    humidity = sum(r.humidity or 0 for r in readings) / len(readings)
    return temperature, humidity


class LabInterpretationAgent(BaseAgent[LabContext, LabInterpretationResult]):
    """Turns raw lab results into an interpretation, correlations and recommendations."""

    @staticmethod
    def build_prompt(context: LabContext) -> str:
        crop = context.crop_type + (f" ({context.variety})" if context.variety else "")
        lines = [
            f"Interpret this {ANALYSIS_TYPE_NAMES.get(context.analysis_type, context.analysis_type)} analysis.",
            "",
            f"CROP: {crop}",
            f"SECTOR: {context.sector or 'Not specified'}",
            f"SAMPLE DATE: {context.sample_date.isoformat()}",
        ]
        if context.plant_code:
            lines.append(f"PLANT: {context.plant_code} - Stage: {context.plant_stage}")
        lines += ["", "RESULTS:", json.dumps(context.results, indent=2, ensure_ascii=False), "", "REFERENCE RANGES:"]
        lines.append("\n".join(context.reference_ranges) or "No reference ranges available")
        if context.recent_growth:
            lines += ["", "RECENT GROWTH DATA:"] + [f"- {g}" for g in context.recent_growth]
        if context.average_temperature is not None:
            lines += [
                "",
                "AVERAGE ENVIRONMENTAL CONDITIONS (latest readings):",
                f"- Temperature: {context.average_temperature:.1f}°C",
                f"- Humidity: {(context.average_humidity or 0):.1f}%",
            ]
        return "\n".join(lines)

    async def run(self, input_data: LabContext) -> LabInterpretationResult:
        return await self.llm.generate_structured(
            system_prompt=LAB_SYSTEM_PROMPT,
            user_prompt=self.build_prompt(input_data),
            response_schema=LabInterpretationResult,
            max_tokens=2000,
        )
