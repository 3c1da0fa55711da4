import io
import logging
import uuid
from typing import Any

import pypdf
from fastapi import APIRouter, File, Form, HTTPException, UploadFile
from pydantic import BaseModel
from sqlmodel import Session, col, select

from berryvision import crud
from berryvision.agent.rag import get_rag_manager
from berryvision.api.deps import SessionDep
from berryvision.models import KnowledgeDocument, KnowledgeDocumentBase, get_datetime_utc

logger = logging.getLogger(__name__)

router = APIRouter()

TEXT_TYPES = {"text/plain", "text/markdown"}


class KnowledgeDocumentUpdate(BaseModel):
    id: uuid.UUID | None = None
    title: str | None = None
    content: str | None = None
    summary: str | None = None
    category: str | None = None
    tags: list[str] | None = None
    crop_types: list[str] | None = None


def extract_text_from_file(file: UploadFile, content: bytes) -> str:
    """Extracts text from a PDF or plain-text upload."""
    if file.content_type == "application/pdf":
        try:
            reader = pypdf.PdfReader(io.BytesIO(content))
        except pypdf.errors.PyPdfError as e:
            raise HTTPException(status_code=400, detail=f"Failed to parse PDF: {e}")
        return "\n".join(text for page in reader.pages if (text := page.extract_text()))

    if file.content_type in TEXT_TYPES:
        return content.decode("utf-8")

    raise HTTPException(status_code=400, detail=f"Unsupported file type: {file.content_type}")


def index_document(document: KnowledgeDocument) -> int:
    """Embed the document into the vector store; the SQL row is kept if this fails."""
    try:
        return get_rag_manager().index_document(
            document_id=str(document.id),
            title=document.title,
            content=document.content,
            category=document.category,
            tags=document.tags,
            crop_types=document.crop_types,
        )
    except Exception as e:
        logger.error(f"Could not index knowledge document {document.id}: {e}")
        return 0


def store_document(session: Session, document_in: KnowledgeDocumentBase) -> dict[str, Any]:
    source = crud.get_default_knowledge_source(session=session)
    document = crud.save(
        session,
        KnowledgeDocument.model_validate(
            document_in,
            update={"source_id": source.id, "crop_types": document_in.crop_types or ["blueberry"]},
        ),
    )
    chunks = index_document(document)
    logger.info(f"Stored knowledge document '{document.title}' ({chunks} chunks indexed)")
    return {"success": True, "document": document, "chunks_indexed": chunks}


@router.get("")
def read_documents(
    session: SessionDep,
    category: str | None = None,
    crop_type: str | None = None,
    search: str | None = None,
) -> Any:
    statement = select(KnowledgeDocument)
    if category and category != "all":
        statement = statement.where(KnowledgeDocument.category == category)
    if search:
        statement = statement.where(col(KnowledgeDocument.title).ilike(f"%{search}%"))
    documents = session.exec(statement.order_by(col(KnowledgeDocument.created_at).desc())).all()

    if crop_type and crop_type != "all":
        documents = [doc for doc in documents if crop_type in doc.crop_types]
    return {"success": True, "documents": documents}


@router.post("")
def create_document(*, session: SessionDep, document_in: KnowledgeDocumentBase) -> Any:
    return store_document(session, document_in)


@router.put("")
def update_document(*, session: SessionDep, document_in: KnowledgeDocumentUpdate) -> Any:
    if not document_in.id or not document_in.title or not document_in.content:
        raise HTTPException(status_code=400, detail="Missing required fields")
    document = session.get(KnowledgeDocument, document_in.id)
    if not document:
        raise HTTPException(status_code=404, detail="Document not found")

    data = document_in.model_dump(exclude={"id"})
    data["category"] = data["category"] or document.category
    data["tags"] = data["tags"] or []
    data["crop_types"] = data["crop_types"] or ["blueberry"]
    data["updated_at"] = get_datetime_utc()
    document = crud.update_fields(session=session, db_obj=document, data=data)
    index_document(document)
    return {"success": True, "document": document}


@router.delete("")
def delete_document(session: SessionDep, id: uuid.UUID | None = None) -> Any:
    if not id:
        raise HTTPException(status_code=400, detail="Missing document ID")
    document = session.get(KnowledgeDocument, id)
    if not document:
        raise HTTPException(status_code=404, detail="Document not found")

    try:
        get_rag_manager().delete_document(str(document.id))
    except Exception as e:
        logger.error(f"Could not remove vectors for knowledge document {document.id}: {e}")
    session.delete(document)
    session.commit()
    return {"success": True}


@router.post("/upload")
async def upload_document(
    *,
    session: SessionDep,
    file: UploadFile = File(...),
    title: str | None = Form(None),
    category: str = Form("manual"),
    summary: str | None = Form(None),
    crop_types: str | None = Form(None),
) -> Any:
    """
    Turn an uploaded PDF or text file into a knowledge document.
    ``crop_types`` is a comma-separated list; the title defaults to the file name.
    """
    content = await file.read()
    text = extract_text_from_file(file, content)
    if not text.strip():
        raise HTTPException(status_code=400, detail="Could not extract any text from the document.")

    crops = [crop.strip() for crop in (crop_types or "").split(",") if crop.strip()]
    document_in = KnowledgeDocumentBase(
        title=title or file.filename or "Untitled document",
        content=text,
        summary=summary,
        category=category,
        crop_types=crops or ["blueberry"],
    )
    return store_document(session, document_in)
