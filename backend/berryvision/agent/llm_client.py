import json
import logging
import re
from typing import Any, TypeVar

from openai import AsyncOpenAI
from pydantic import BaseModel, ValidationError

from berryvision.core.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


class TextResponse(BaseModel):
    text: str
    total_tokens: int = 0


def _extract_fenced_block(text: str) -> str | None:
    blocks = re.findall(r"```(?:json)?\s*(.*?)\s*```", text, re.DOTALL | re.IGNORECASE)
    return blocks[0].strip() if blocks else None


def _extract_json_object(text: str) -> str | None:
    """Return the first balanced top-level JSON object in ``text``."""
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escape = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return None


def json_candidates(raw_text: str) -> list[str]:
    """Candidate JSON payloads from a model reply, most specific first."""
    text = (raw_text or "").strip()
    if not text:
        return []

    candidates = [_extract_fenced_block(text), text, _extract_json_object(text)]
    unique: list[str] = []
    for candidate in candidates:
        if candidate and candidate not in unique:
            unique.append(candidate)
    return unique


def parse_json_reply(raw_text: str) -> dict[str, Any]:
    errors: list[str] = []
    for candidate in json_candidates(raw_text):
        try:
            parsed = json.loads(candidate, strict=False)
        except json.JSONDecodeError as e:
            errors.append(str(e))
            continue
        if isinstance(parsed, dict):
            return parsed
        errors.append("top-level JSON value is not an object")
    raise ValueError("Unable to parse JSON from model reply: " + " | ".join(errors[:3]))


def _user_content(user_prompt: str, image_url: str | None) -> str | list[dict[str, Any]]:
    if not image_url:
        return user_prompt
    return [
        {"type": "text", "text": user_prompt},
        {"type": "image_url", "image_url": {"url": image_url, "detail": "high"}},
    ]


class LLMClient:
    """Thin wrapper around the OpenAI chat API for structured and free-text replies."""

    def __init__(
        self,
        model_name: str | None = None,
        base_url: str | None = None,
        api_key: str | None = None,
    ):
        self.model_name = model_name or settings.MODEL_DEFAULT
        self.client = AsyncOpenAI(
            base_url=base_url or settings.LLM_BASE_URL,
            api_key=api_key or settings.OPENAI_API_KEY,
        )

    def _chat_completion_kwargs(self, *, temperature: float | None, max_tokens: int | None) -> dict:
        kwargs: dict[str, Any] = {}
        # GPT-5 family rejects non-default temperature values.
        if temperature is not None and not (self.model_name or "").lower().startswith("gpt-5"):
            kwargs["temperature"] = temperature
        if max_tokens:
            kwargs["max_tokens"] = max_tokens
        return kwargs

    async def _complete(
        self,
        *,
        system_prompt: str | None,
        user_prompt: str,
        image_url: str | None,
        temperature: float | None,
        max_tokens: int | None,
    ) -> Any:
        messages: list[dict[str, Any]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": _user_content(user_prompt, image_url)})

        response = await self.client.chat.completions.create(
            model=self.model_name,
            messages=messages,
            **self._chat_completion_kwargs(temperature=temperature, max_tokens=max_tokens),
        )
        if not getattr(response, "choices", None):
            logger.error("Received no choices from %s: %s", self.model_name, response)
            raise ValueError(f"Provider {self.model_name} returned no output")
        return response

    async def generate_structured(
        self,
        system_prompt: str | None,
        user_prompt: str,
        response_schema: type[T],
        *,
        image_url: str | None = None,
        temperature: float = 0.3,
        max_tokens: int | None = 1500,
    ) -> T:
        """
        Ask the model for a JSON object and validate it against ``response_schema``.
        A reply that cannot be parsed is retried once at temperature 0.
        """
        last_error: Exception | None = None
        for attempt_idx, attempt_temperature in enumerate((temperature, 0.0), start=1):
            logger.info(
                "Issuing structured request to model %s (attempt %s/2)...",
                self.model_name,
                attempt_idx,
            )
            response = await self._complete(
                system_prompt=system_prompt,
                user_prompt=user_prompt,
                image_url=image_url,
                temperature=attempt_temperature,
                max_tokens=max_tokens,
            )
            text_response = response.choices[0].message.content or ""
            try:
                return response_schema.model_validate(parse_json_reply(text_response))
            except (ValidationError, ValueError) as e:
                last_error = e
                logger.warning(
                    "Structured parsing failed for %s on attempt %s/2: %s",
                    self.model_name,
                    attempt_idx,
                    e,
                )

        logger.error("Error parsing structured LLM response from %s: %s", self.model_name, last_error)
        raise last_error  # type: ignore[misc]

    async def generate_text(
        self,
        system_prompt: str | None,
        user_prompt: str,
        *,
        temperature: float = 0.3,
        max_tokens: int | None = 1000,
    ) -> TextResponse:
        """Plain text completion together with the provider's token count."""
        response = await self._complete(
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            image_url=None,
            temperature=temperature,
            max_tokens=max_tokens,
        )
        text = (response.choices[0].message.content or "").strip()
        if not text:
            raise ValueError("Model returned empty content")
        usage = getattr(response, "usage", None)
        total_tokens = getattr(usage, "total_tokens", 0) or 0
        logger.info("Received text response from %s (%s tokens).", self.model_name, total_tokens)
        return TextResponse(text=text, total_tokens=int(total_tokens))
