from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlmodel import select

from berryvision import crud
from berryvision.agent.artifacts import Detection, ImageDiagnosis
from berryvision.agent.assistant import (
    DiagnosisContext,
    KnowledgeAssistant,
    extract_treatments,
    merge_documents,
)
from berryvision.agent.llm_client import TextResponse
from berryvision.agent.prompts.assistant import ERROR_ANSWER
from berryvision.models import KnowledgeDocument, RagQuery


@pytest.fixture
def documents(session):
    botrytis = crud.save(
        session,
        KnowledgeDocument(
            title="Botrytis en arándano",
            content="Aplicar fungicida a base de fenhexamid. Retirar frutos afectados.",
            summary="Moho gris en flores y frutos",
            category="disease",
            crop_types=["blueberry"],
        ),
    )
    thrips = crud.save(
        session,
        KnowledgeDocument(
            title="Trips en frambuesa",
            content="Usar spinosad en la tarde. Colocar trampas azules.",
            category="pest",
            crop_types=["raspberry"],
        ),
    )
    return botrytis, thrips


def make_assistant(session, *, hits=None, reply="Respuesta", vision_result=None):
    rag = MagicMock()
    rag.search.return_value = hits or []
    llm = MagicMock()
    llm.generate_text = AsyncMock(return_value=TextResponse(text=reply, total_tokens=120))
    vision = MagicMock()
    vision.run = AsyncMock(return_value=vision_result or ImageDiagnosis(health_status="healthy"))
    return KnowledgeAssistant(session, rag=rag, llm=llm, vision=vision), rag, llm, vision


def test_search_knowledge_maps_hits_to_documents(session, documents):
    botrytis, _ = documents
    assistant, rag, _, _ = make_assistant(
        session,
        hits=[
            {"document_id": str(botrytis.id), "similarity": 0.91234, "content": "..."},
            {"document_id": "not-a-uuid", "similarity": 0.9, "content": "..."},
        ],
    )

    results = assistant.search_knowledge("moho gris", crop_type="blueberry")

    assert [doc["title"] for doc in results] == ["Botrytis en arándano"]
    assert results[0]["similarity"] == 0.9123
    rag.search.assert_called_once_with(
        "moho gris", n_results=5, match_threshold=0.75, category=None, crop_type="blueberry"
    )


def test_search_knowledge_survives_vector_store_failure(session):
    assistant, rag, _, _ = make_assistant(session)
    rag.search.side_effect = RuntimeError("chroma down")
    assert assistant.search_knowledge("anything") == []


def test_knowledge_for_diagnosis_matches_name_and_crop(session, documents):
    assistant, _, _, _ = make_assistant(session)

    found = assistant.knowledge_for_diagnosis(DiagnosisContext(crop_type="blueberry", disease_name="botrytis"))
    assert [doc["title"] for doc in found] == ["Botrytis en arándano"]

    wrong_crop = assistant.knowledge_for_diagnosis(DiagnosisContext(crop_type="blueberry", pest_name="Trips"))
    assert wrong_crop == []

    assert assistant.knowledge_for_diagnosis(DiagnosisContext()) == []


@pytest.mark.asyncio
async def test_generate_rag_response_logs_query(session, documents):
    botrytis, _ = documents
    assistant, _, llm, _ = make_assistant(
        session,
        hits=[{"document_id": str(botrytis.id), "similarity": 0.8, "content": "..."}],
        reply="Aplicar: fenhexamid cada 10 días",
    )

    response = await assistant.generate_rag_response(
        "¿Cómo controlo botrytis?", DiagnosisContext(crop_type="blueberry", disease_name="Botrytis")
    )

    assert response["answer"] == "Aplicar: fenhexamid cada 10 días"
    assert response["tokens_used"] == 120
    assert [doc["title"] for doc in response["sources"]] == ["Botrytis en arándano"]
    system_prompt = llm.generate_text.call_args.args[0]
    assert "## Botrytis en arándano" in system_prompt

    logged = session.exec(select(RagQuery)).one()
    assert logged.query_text == "¿Cómo controlo botrytis?"
    assert logged.retrieved_doc_ids == [str(botrytis.id)]
    assert logged.total_tokens_used == 120


@pytest.mark.asyncio
async def test_generate_rag_response_returns_apology_on_model_error(session):
    assistant, _, llm, _ = make_assistant(session)
    llm.generate_text.side_effect = RuntimeError("rate limited")

    response = await assistant.generate_rag_response("hola")

    assert response == {"answer": ERROR_ANSWER, "sources": [], "tokens_used": 0}


@pytest.mark.asyncio
async def test_enhance_analysis_extracts_treatments(session, documents):
    assistant, _, llm, _ = make_assistant(
        session, reply="Tratamiento: fenhexamid 1 g/L\nUsar: trampas pegajosas. Monitorear."
    )
    analysis = ImageDiagnosis(health_status="alert", disease=Detection(name="Botrytis", confidence=80))

    enhanced = await assistant.enhance_analysis(analysis, "blueberry")

    assert enhanced["treatments"] == ["fenhexamid 1 g/L", "trampas pegajosas"]
    assert enhanced["detailed_info"] == "Moho gris en flores y frutos"
    question = llm.generate_text.call_args.args[1]
    assert "Botrytis" in question and "arándano" in question


@pytest.mark.asyncio
async def test_analyze_image_prefixes_base64_and_combines(session, documents):
    diagnosis = ImageDiagnosis(
        health_status="critical", pest=Detection(name="Trips", confidence=70), phenology_bbch=65
    )
    assistant, _, llm, vision = make_assistant(
        session, reply="Dosis: spinosad 0.5 ml/L", vision_result=diagnosis
    )

    result = await assistant.analyze_image("QUJD", crop_type="raspberry")

    request = vision.run.call_args.args[0]
    assert request.image_url == "data:image/jpeg;base64,QUJD"
    assert result["analysis"]["pest"]["name"] == "Trips"
    assert result["combined_response"] == "Dosis: spinosad 0.5 ml/L"
    assert result["rag_enhancement"]["treatments"] == ["spinosad 0"]
    assert [doc["title"] for doc in result["rag_enhancement"]["sources"]] == ["Trips en frambuesa"]
    prompt = llm.generate_text.call_args.args[1]
    assert "Detected pest: Trips (70.0% confidence)" in prompt

    logged = session.exec(select(RagQuery)).one()
    assert logged.query_text.startswith("[IMAGE ANALYSIS] Control de Trips en frambuesa")


@pytest.mark.asyncio
async def test_analyze_image_falls_back_when_vision_reply_is_unusable(session):
    assistant, _, llm, vision = make_assistant(session)
    vision.run.side_effect = ValueError("Unable to parse JSON")
    llm.generate_text.side_effect = RuntimeError("offline")

    result = await assistant.analyze_image("https://cdn.example.com/leaf.jpg")

    assert result["analysis"]["health_status"] == "alert"
    assert result["analysis"]["phenology_bbch"] == 50
    assert result["combined_response"] == "No specific recommendation"


def test_helpers():
    assert extract_treatments("producto: cobre. aplicar: azufre\nnada") == ["cobre", "azufre"]
    merged = merge_documents([{"id": "1"}, {"id": "2"}], [{"id": "2"}, {"id": "3"}])
    assert [doc["id"] for doc in merged] == ["1", "2", "3"]
