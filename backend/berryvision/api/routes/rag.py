from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from berryvision.agent.artifacts import ImageDiagnosis
from berryvision.agent.assistant import DiagnosisContext, KnowledgeAssistant
from berryvision.api.deps import SessionDep

router = APIRouter()


class SearchOptions(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    match_count: int = 5
    match_threshold: float = 0.75
    category: str | None = None
    crop_type: str | None = None


class RagRequest(BaseModel):
    """One body for every action; each action reads only its own fields."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    action: str | None = None
    question: str | None = None
    context: DiagnosisContext | None = None
    query: str | None = None
    options: SearchOptions | None = None
    analysis_result: ImageDiagnosis | None = None
    crop_type: str | None = None
    image: str | None = None
    additional_context: str | None = None


def get_assistant(session: SessionDep) -> KnowledgeAssistant:
    return KnowledgeAssistant(session)


AssistantDep = Annotated[KnowledgeAssistant, Depends(get_assistant)]


@router.get("")
async def ask(assistant: AssistantDep, q: str | None = None) -> Any:
    if not q:
        raise HTTPException(status_code=400, detail='Query parameter "q" is required')
    return await assistant.generate_rag_response(q)


@router.post("")
async def run_rag_action(*, assistant: AssistantDep, request: RagRequest) -> Any:
    if request.action == "query":
        if not request.question:
            raise HTTPException(status_code=400, detail="Question is required")
        return await assistant.generate_rag_response(request.question, request.context)

    if request.action == "search":
        if not request.query:
            raise HTTPException(status_code=400, detail="Query is required")
        options = request.options or SearchOptions()
        return {"documents": assistant.search_knowledge(request.query, **options.model_dump())}

    if request.action == "enhance":
        if not request.analysis_result or not request.crop_type:
            raise HTTPException(status_code=400, detail="analysisResult and cropType are required")
        return await assistant.enhance_analysis(request.analysis_result, request.crop_type)

    if request.action == "analyze-image":
        if not request.image:
            raise HTTPException(status_code=400, detail="image (base64) is required")
        return await assistant.analyze_image(
            request.image, request.crop_type or "blueberry", request.additional_context
        )

    raise HTTPException(status_code=400, detail="Invalid action. Use: query, search, enhance, or analyze-image")
