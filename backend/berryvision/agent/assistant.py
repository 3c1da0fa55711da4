import logging
import re
import uuid
from typing import Any

from pydantic import BaseModel
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, col, select

from berryvision import crud
from berryvision.agent.artifacts import ImageDiagnosis
from berryvision.agent.diagnosis_agent import DiagnosisRequest, ImageDiagnosisAgent
from berryvision.agent.llm_client import LLMClient
from berryvision.agent.prompts.assistant import (
    ASSISTANT_SYSTEM_PROMPT,
    COMBINED_RESPONSE_TEMPLATE,
    COMBINED_SYSTEM_PROMPT,
    CROP_LABELS,
    DIAGNOSIS_QUESTIONS,
    ERROR_ANSWER,
    IMAGE_QUESTIONS,
    NO_ANSWER,
)
from berryvision.agent.rag import RAGManager, get_rag_manager
from berryvision.core.config import settings
from berryvision.models import KnowledgeDocument, RagQuery

logger = logging.getLogger(__name__)

TREATMENT_PATTERN = re.compile(r"(?:productos?|tratamiento|aplicar|usar)[:\s]+([^\n.]+)", re.IGNORECASE)
IMAGE_TREATMENT_PATTERN = re.compile(
    r"(?:productos?|tratamiento|aplicar|usar|dosis)[:\s]+([^\n.]+)", re.IGNORECASE
)


class DiagnosisContext(BaseModel):
    crop_type: str = "blueberry"
    health_status: str | None = None
    disease_name: str | None = None
    pest_name: str | None = None
    confidence: float | None = None


def crop_label(crop_type: str, plural: bool = False) -> str:
    singular, many = CROP_LABELS.get(crop_type, CROP_LABELS["raspberry"])
    return many if plural else singular


def extract_treatments(text: str, pattern: re.Pattern = TREATMENT_PATTERN, limit: int = 5) -> list[str]:
    return [match.strip() for match in pattern.findall(text or "")][:limit]


def document_payload(document: KnowledgeDocument, similarity: float | None = None) -> dict[str, Any]:
    payload = {
        "id": str(document.id),
        "title": document.title,
        "content": document.content,
        "summary": document.summary,
        "category": document.category,
        "tags": document.tags,
    }
    if similarity is not None:
        payload["similarity"] = round(similarity, 4)
    return payload


def build_context(documents: list[dict[str, Any]]) -> str:
    return "\n\n---\n\n".join(f"## {doc['title']}\n{doc['content']}" for doc in documents)


def merge_documents(*groups: list[dict[str, Any]]) -> list[dict[str, Any]]:
    seen: set[str] = set()
    merged = []
    for group in groups:
        for doc in group:
            if doc["id"] not in seen:
                seen.add(doc["id"])
                merged.append(doc)
    return merged


def detailed_info(documents: list[dict[str, Any]]) -> str:
    return "\n".join(doc.get("summary") or doc["content"][:200] for doc in documents)


class KnowledgeAssistant:
    """
    Answers agronomy questions from the knowledge base.

    Retrieval combines a keyword lookup for the diagnosed disease or pest with a
    semantic search over the vector store; the merged documents become the
    context of a single chat completion. Every answer is logged as a RagQuery.
    """

    def __init__(
        self,
        session: Session,
        *,
        rag: RAGManager | None = None,
        llm: LLMClient | None = None,
        vision: ImageDiagnosisAgent | None = None,
    ):
        self.session = session
        self._rag = rag
        self.llm = llm or LLMClient(model_name=settings.MODEL_RAG)
        self.vision = vision or ImageDiagnosisAgent()

    @property
    def rag(self) -> RAGManager:
        if self._rag is None:
            self._rag = get_rag_manager()
        return self._rag

    def search_knowledge(
        self,
        query: str,
        *,
        match_count: int = 5,
        match_threshold: float = 0.75,
        category: str | None = None,
        crop_type: str | None = None,
    ) -> list[dict[str, Any]]:
        try:
            hits = self.rag.search(
                query,
                n_results=match_count,
                match_threshold=match_threshold,
                category=category,
                crop_type=crop_type,
            )
        except Exception as e:
            logger.error(f"Error searching knowledge: {e}")
            return []

        documents = []
        for hit in hits:
            try:
                document = self.session.get(KnowledgeDocument, uuid.UUID(hit["document_id"]))
            except ValueError:
                continue
            if document:
                documents.append(document_payload(document, hit["similarity"]))
        return documents

    def knowledge_for_diagnosis(self, context: DiagnosisContext, limit: int = 5) -> list[dict[str, Any]]:
        """Documents whose title or content names the diagnosed disease or pest."""
        terms = [term for term in (context.disease_name, context.pest_name) if term]
        if not terms:
            return []

        conditions = []
        for term in terms:
            pattern = f"%{term}%"
            conditions += [col(KnowledgeDocument.title).ilike(pattern), col(KnowledgeDocument.content).ilike(pattern)]
        documents = self.session.exec(
            select(KnowledgeDocument)
            .where(or_(*conditions))
            .order_by(col(KnowledgeDocument.created_at).desc())
        ).all()

        matching = [doc for doc in documents if not doc.crop_types or context.crop_type in doc.crop_types]
        return [document_payload(doc) for doc in matching[:limit]]

    def log_query(
        self,
        *,
        query_text: str,
        documents: list[dict[str, Any]],
        context_used: str,
        response: str,
        tokens: int,
    ) -> None:
        try:
            crud.save(
                self.session,
                RagQuery(
                    query_text=query_text,
                    retrieved_doc_ids=[doc["id"] for doc in documents],
                    context_used=context_used[:5000],
                    response_generated=response,
                    total_tokens_used=tokens,
                ),
            )
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.warning(f"Could not log RAG query: {e}")

    async def generate_rag_response(
        self, question: str, context: DiagnosisContext | None = None
    ) -> dict[str, Any]:
        try:
            documents: list[dict[str, Any]] = []
            if context and (context.disease_name or context.pest_name):
                documents = self.knowledge_for_diagnosis(context)
            semantic = self.search_knowledge(
                question, match_count=3, crop_type=context.crop_type if context else None
            )
            sources = merge_documents(documents, semantic)
            context_text = build_context(sources)

            reply = await self.llm.generate_text(
                ASSISTANT_SYSTEM_PROMPT.format(context=context_text),
                question,
                temperature=0.3,
                max_tokens=1000,
            )
            answer = reply.text or NO_ANSWER

            self.log_query(
                query_text=question,
                documents=sources,
                context_used=context_text,
                response=answer,
                tokens=reply.total_tokens,
            )
            return {"answer": answer, "sources": sources, "tokens_used": reply.total_tokens}
        except Exception as e:
            logger.error(f"Error generating RAG response: {e}")
            return {"answer": ERROR_ANSWER, "sources": [], "tokens_used": 0}

    async def enhance_analysis(self, analysis: ImageDiagnosis, crop_type: str) -> dict[str, Any]:
        """Turn a diagnosis into a knowledge-backed recommendation with treatment hints."""
        disease = analysis.disease if analysis.disease and analysis.disease.name else None
        pest = analysis.pest if analysis.pest and analysis.pest.name else None
        context = DiagnosisContext(
            crop_type=crop_type,
            health_status=analysis.health_status,
            disease_name=disease.name if disease else None,
            pest_name=pest.name if pest else None,
            confidence=(disease or pest).confidence if (disease or pest) else None,
        )
        documents = self.knowledge_for_diagnosis(context)

        question = self._question(DIAGNOSIS_QUESTIONS, analysis, crop_type)
        response = await self.generate_rag_response(question, context)

        return {
            "enhanced_recommendation": response["answer"],
            "detailed_info": detailed_info(documents),
            "treatments": extract_treatments(response["answer"]),
            "sources": response["sources"],
        }

    async def analyze_image(
        self, image: str, crop_type: str = "blueberry", additional_context: str | None = None
    ) -> dict[str, Any]:
        """Vision diagnosis of a photo followed by a knowledge-backed answer for the grower."""
        if not image.startswith(("data:", "http://", "https://")):
            image = f"data:image/jpeg;base64,{image}"

        try:
            analysis = await self.vision.run(
                DiagnosisRequest(image_url=image, crop_type=crop_type, additional_context=additional_context)
            )
        except ValueError as e:
            logger.warning(f"Unparseable vision reply, using fallback diagnosis: {e}")
            analysis = ImageDiagnosis(health_status="alert", phenology_bbch=50)

        disease = analysis.disease if analysis.disease and analysis.disease.name else None
        pest = analysis.pest if analysis.pest and analysis.pest.name else None
        context = DiagnosisContext(
            crop_type=crop_type,
            health_status=analysis.health_status,
            disease_name=disease.name if disease else None,
            pest_name=pest.name if pest else None,
        )
        query = self._question(IMAGE_QUESTIONS, analysis, crop_type)
        sources = merge_documents(
            self.knowledge_for_diagnosis(context),
            self.search_knowledge(query, match_count=3, crop_type=crop_type),
        )

        prompt = COMBINED_RESPONSE_TEMPLATE.format(
            health_status=analysis.health_status,
            disease=disease.name if disease else "None",
            disease_confidence=disease.confidence if disease else 0,
            pest=pest.name if pest else "None",
            pest_confidence=pest.confidence if pest else 0,
            bbch=analysis.phenology_bbch,
            fruit_count=analysis.fruit_count,
            recommendation=analysis.recommendation,
            context=build_context(sources),
        )
        try:
            reply = await self.llm.generate_text(COMBINED_SYSTEM_PROMPT, prompt, temperature=0.3, max_tokens=1500)
            final_response, tokens = reply.text, reply.total_tokens
        except Exception as e:
            logger.error(f"Error generating combined response: {e}")
            final_response, tokens = analysis.recommendation, 0

        self.log_query(
            query_text=f"[IMAGE ANALYSIS] {query}",
            documents=sources,
            context_used=f"Vision: {analysis.model_dump_json()}",
            response=final_response,
            tokens=tokens,
        )

        return {
            "analysis": analysis.model_dump(),
            "rag_enhancement": {
                "detailed_info": detailed_info(sources),
                "treatments": extract_treatments(final_response, IMAGE_TREATMENT_PATTERN),
                "sources": sources,
            },
            "combined_response": final_response,
        }

    @staticmethod
    def _question(templates: dict[str, str], analysis: ImageDiagnosis, crop_type: str) -> str:
        values = {
            "crop": crop_label(crop_type),
            "crops": crop_label(crop_type, plural=True),
            "bbch": analysis.phenology_bbch,
        }
        if analysis.disease and analysis.disease.name:
            return templates["disease"].format(name=analysis.disease.name, **values)
        if analysis.pest and analysis.pest.name:
            return templates["pest"].format(name=analysis.pest.name, **values)
        if analysis.health_status == "alert":
            return templates["alert"].format(**values)
        return templates["healthy"].format(**values)
