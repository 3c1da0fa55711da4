from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator


def _clamp(value: float | int | None, low: float, high: float) -> float:
    return min(high, max(low, value or 0))


def normalize_health_status(value: Any) -> Literal["healthy", "alert", "critical"]:
    """Map the labels models tend to emit (English or Spanish) onto the analysis enum."""
    normalized = str(value or "").strip().lower()
    if normalized in {"healthy", "sano", "saludable"}:
        return "healthy"
    if normalized in {"critical", "critico", "crítico"}:
        return "critical"
    return "alert"


# Growth record assessment

class AssessmentAlert(BaseModel):
    type: str = Field(description="Short alert category, e.g. 'disease', 'water_stress'")
    severity: Literal["info", "warning", "critical"] = "warning"
    message: str

    @field_validator("severity", mode="before")
    @classmethod
    def _normalize_severity(cls, value: Any) -> str:
        value = str(value or "").strip().lower()
        return value if value in {"info", "warning", "critical"} else "warning"


class GrowthAssessment(BaseModel):
    """Vision model interpretation of a single growth observation."""
    growth_score: float | None = Field(default=None, description="0-100, 100 is optimal growth")
    health_status: Literal["healthy", "warning", "critical"] = "healthy"
    overall_assessment: str = ""
    detected_issues: list[str] = Field(default_factory=list)
    growth_analysis: dict[str, Any] = Field(default_factory=dict)
    environmental_analysis: dict[str, Any] = Field(default_factory=dict)
    recommendations: list[str] = Field(default_factory=list)
    next_check_days: int | None = None
    alerts: list[AssessmentAlert] = Field(default_factory=list)

    @field_validator("growth_score", mode="before")
    @classmethod
    def _clamp_score(cls, value: Any) -> float | None:
        if value is None:
            return None
        return _clamp(float(value), 0, 100)

    @field_validator("health_status", mode="before")
    @classmethod
    def _normalize_status(cls, value: Any) -> str:
        value = str(value or "healthy").strip().lower()
        if value in {"alert", "alerta"}:
            return "warning"
        return value if value in {"healthy", "warning", "critical"} else "warning"


# Lab report interpretation

class LabInterpretation(BaseModel):
    overall_status: str = Field(default="", description="good / fair / deficient / critical")
    summary: str = ""
    parameters: dict[str, Any] = Field(default_factory=dict)
    main_issues: list[str] = Field(default_factory=list)
    strengths: list[str] = Field(default_factory=list)

    @property
    def is_critical(self) -> bool:
        return self.overall_status.strip().lower() in {"critical", "crítico", "critico"}


class LabCorrelation(BaseModel):
    type: str
    description: str
    confidence: float | None = None
    impact: str | None = None


class LabRecommendation(BaseModel):
    priority: str = "media"
    action: str
    product: str | None = None
    dose: str | None = None
    timing: str | None = None
    expected_result: str | None = None

    def as_line(self) -> str:
        line = f"[{self.priority.upper()}] {self.action}"
        if self.product:
            line += f" - Product: {self.product}"
        if self.dose:
            line += f" ({self.dose})"
        return line


class LabInterpretationResult(BaseModel):
    interpretation: LabInterpretation = Field(default_factory=LabInterpretation)
    correlations: list[LabCorrelation] = Field(default_factory=list)
    recommendations: list[LabRecommendation] = Field(default_factory=list)
    follow_up: dict[str, Any] = Field(default_factory=dict)

    def recommendations_text(self) -> str:
        return "\n\n".join(r.as_line() for r in self.recommendations)


# Image diagnosis (field analyses)

class Detection(BaseModel):
    name: str | None = None
    confidence: float = 0.0

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value: Any) -> float:
        return _clamp(float(value or 0), 0, 100)


class Maturity(BaseModel):
    green: int = 0
    ripe: int = 0
    overripe: int = 0

    @field_validator("green", "ripe", "overripe", mode="before")
    @classmethod
    def _non_negative(cls, value: Any) -> int:
        return max(0, int(value or 0))


class ImageDiagnosis(BaseModel):
    health_status: Literal["healthy", "alert", "critical"] = "alert"
    disease: Detection | None = None
    pest: Detection | None = None
    phenology_bbch: int = 0
    fruit_count: int = 0
    maturity: Maturity = Field(default_factory=Maturity)
    recommendation: str = "No specific recommendation"

    @field_validator("health_status", mode="before")
    @classmethod
    def _normalize_status(cls, value: Any) -> str:
        return normalize_health_status(value)

    @field_validator("phenology_bbch", mode="before")
    @classmethod
    def _clamp_bbch(cls, value: Any) -> int:
        return int(_clamp(int(value or 0), 0, 99))

    @field_validator("fruit_count", mode="before")
    @classmethod
    def _non_negative(cls, value: Any) -> int:
        return max(0, int(value or 0))

    def as_analysis_fields(self) -> dict[str, Any]:
        """Flatten into the column names used by ``Analysis``."""
        disease = self.disease if self.disease and self.disease.name else None
        pest = self.pest if self.pest and self.pest.name else None
        return {
            "health_status": self.health_status,
            "disease_name": disease.name if disease else None,
            "disease_confidence": disease.confidence if disease else None,
            "pest_name": pest.name if pest else None,
            "pest_confidence": pest.confidence if pest else None,
            "phenology_bbch": self.phenology_bbch,
            "fruit_count": self.fruit_count,
            "maturity_green": self.maturity.green,
            "maturity_ripe": self.maturity.ripe,
            "maturity_overripe": self.maturity.overripe,
            "recommendation": self.recommendation,
        }
