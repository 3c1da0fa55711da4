import json
from collections.abc import Iterable
from typing import Any

from berryvision.agent.prompts.diagnosis import DATASET_SYSTEM_PROMPT
from berryvision.models import TrainingImage


def _detection(name: str | None, confidence: float | None) -> dict[str, Any] | None:
    if not name:
        return None
    return {"name": name, "confidence": confidence}


def training_example(image: TrainingImage) -> dict[str, Any]:
    """One chat-format fine-tuning example: system prompt, image question, labeled answer."""
    expected = {
        "health_status": image.health_status,
        "disease": _detection(image.disease_name, image.disease_confidence),
        "pest": _detection(image.pest_name, image.pest_confidence),
        "phenology_bbch": image.phenology_bbch,
    }
    return {
        "messages": [
            {"role": "system", "content": DATASET_SYSTEM_PROMPT},
            {
                "role": "user",
                "content": [
                    {
                        "type": "text",
                        "text": f"Analyze this {image.crop_type} crop image and provide a detailed diagnosis.",
                    },
                    {"type": "image_url", "image_url": {"url": image.image_url}},
                ],
            },
            {"role": "assistant", "content": json.dumps(expected, ensure_ascii=False)},
        ]
    }


def to_jsonl(images: Iterable[TrainingImage]) -> str:
    return "\n".join(json.dumps(training_example(image), ensure_ascii=False) for image in images)
