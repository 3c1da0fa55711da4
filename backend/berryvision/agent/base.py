from abc import ABC, abstractmethod
from typing import Generic, TypeVar

from pydantic import BaseModel

from berryvision.agent.llm_client import LLMClient
from berryvision.core.config import settings

InType = TypeVar("InType", bound=BaseModel | str)
OutType = TypeVar("OutType", bound=BaseModel)


class BaseAgent(ABC, Generic[InType, OutType]):
    """Abstract base class for the model-backed interpreters."""

    default_model: str | None = None

    def __init__(self, model_name: str | None = None, llm: LLMClient | None = None):
        self.llm = llm or LLMClient(model_name=model_name or self.default_model or settings.MODEL_DEFAULT)

    @abstractmethod
    async def run(self, input_data: InType) -> OutType:
        """Run the agent on the given input to produce the output artifact."""
        pass
