from pydantic import BaseModel

from berryvision.agent.artifacts import GrowthAssessment
from berryvision.agent.base import BaseAgent
from berryvision.agent.prompts.growth import (
    CROP_NAMES,
    GROWTH_RECORD_TEMPLATE,
    GROWTH_SYSTEM_PROMPT,
    STAGE_NAMES,
)
from berryvision.core.config import settings


class GrowthObservation(BaseModel):
    """Everything the model sees about one growth record."""
    image_url: str
    plant_code: str
    crop_type: str
    variety: str | None = None
    current_stage: str
    height_cm: float | None = None
    previous_height_cm: float | None = None
    growth_rate: float = 0.0
    days_since_last: int = 0
    temperature: float | None = None
    humidity: float | None = None
    leaf_count: int | None = None
    flower_count: int | None = None
    fruit_count: int | None = None


def _or(value, unit: str, missing: str) -> str:
    return f"{value}{unit}" if value else missing


class GrowthAnalysisAgent(BaseAgent[GrowthObservation, GrowthAssessment]):
    """
    Interprets a growth photo plus its measurements into a GrowthAssessment.
    """

    default_model = settings.MODEL_VISION

    @staticmethod
    def build_prompt(observation: GrowthObservation) -> str:
        rate = f"{observation.growth_rate:.1f}%"
        if observation.days_since_last > 0:
            rate += f" over {observation.days_since_last} days"
        return GROWTH_RECORD_TEMPLATE.format(
            crop=CROP_NAMES.get(observation.crop_type, observation.crop_type),
            variety=observation.variety or "not specified",
            stage=STAGE_NAMES.get(observation.current_stage, observation.current_stage),
            plant_code=observation.plant_code,
            height=_or(observation.height_cm, " cm", "Not measured"),
            previous_height=_or(observation.previous_height_cm, " cm", "No previous record"),
            growth_rate=rate,
            temperature=_or(observation.temperature, "°C", "Not recorded"),
            humidity=_or(observation.humidity, "%", "Not recorded"),
            leaf_count=_or(observation.leaf_count, "", "Not counted"),
            flower_count=_or(observation.flower_count, "", "Not counted"),
            fruit_count=_or(observation.fruit_count, "", "Not counted"),
        )

    async def run(self, input_data: GrowthObservation) -> GrowthAssessment:
        return await self.llm.generate_structured(
            system_prompt=GROWTH_SYSTEM_PROMPT,
            user_prompt=self.build_prompt(input_data),
            response_schema=GrowthAssessment,
            image_url=input_data.image_url,
            max_tokens=1500,
        )
