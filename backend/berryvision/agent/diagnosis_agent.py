from pydantic import BaseModel

from berryvision.agent.artifacts import ImageDiagnosis
from berryvision.agent.base import BaseAgent
from berryvision.agent.prompts.diagnosis import DIAGNOSIS_SYSTEM_PROMPT
from berryvision.core.config import settings


class DiagnosisRequest(BaseModel):
    image_url: str  # http(s) URL or data URL
    crop_type: str = "blueberry"
    additional_context: str | None = None


class ImageDiagnosisAgent(BaseAgent[DiagnosisRequest, ImageDiagnosis]):
    """Vision diagnosis of a single field photo."""

    default_model = settings.MODEL_VISION

    async def run(self, input_data: DiagnosisRequest) -> ImageDiagnosis:
        prompt = f"Analyze this {input_data.crop_type} crop image."
        if input_data.additional_context:
            prompt += f" Additional context: {input_data.additional_context}"
        return await self.llm.generate_structured(
            system_prompt=DIAGNOSIS_SYSTEM_PROMPT,
            user_prompt=prompt,
            response_schema=ImageDiagnosis,
            image_url=input_data.image_url,
            max_tokens=1000,
        )
