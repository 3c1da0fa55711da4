import logging
from typing import Any

import chromadb
from chromadb.config import Settings
from chromadb.utils import embedding_functions

from berryvision.core.config import settings
from berryvision.text_chunking import chunk_text

logger = logging.getLogger(__name__)


def _metadata_filter(**conditions: Any) -> dict[str, Any]:
    items = [{key: value} for key, value in conditions.items() if value is not None]
    if not items:
        return {}
    if len(items) == 1:
        return items[0]
    return {"$and": items}


def _crop_key(crop_type: str) -> str:
    # Chroma metadata values must be scalars, so each crop gets its own flag.
    return f"crop_{crop_type}"


class RAGManager:
    """Embeds knowledge documents into ChromaDB and runs similarity search over them."""

    collection_name = "knowledge_documents"

    def __init__(self, persist_directory: str | None = None):
        self.persist_directory = persist_directory or settings.CHROMA_PERSIST_DIR

        if settings.OPENAI_API_KEY:
            self.embedding_function = embedding_functions.OpenAIEmbeddingFunction(
                api_key=settings.OPENAI_API_KEY,
                model_name=settings.EMBEDDING_MODEL,
            )
        else:
            self.embedding_function = embedding_functions.DefaultEmbeddingFunction()

        self.client = chromadb.PersistentClient(
            path=self.persist_directory,
            settings=Settings(allow_reset=True, anonymized_telemetry=False),
        )
        self.collection = self.client.get_or_create_collection(
            name=self.collection_name,
            embedding_function=self.embedding_function,
            metadata={"hnsw:space": "cosine"},
        )

    def index_document(
        self,
        *,
        document_id: str,
        title: str,
        content: str,
        category: str,
        tags: list[str] | None = None,
        crop_types: list[str] | None = None,
    ) -> int:
        """Replace the stored chunks of a document. Returns the number of chunks indexed."""
        self.delete_document(document_id)

        text = f"{title}\n\n{content}"
        if tags:
            text += "\n\n" + " ".join(tags)
        chunks = chunk_text(text)
        if not chunks:
            return 0

        metadata: dict[str, Any] = {"document_id": document_id, "category": category}
        for crop_type in crop_types or []:
            metadata[_crop_key(crop_type)] = True

        try:
            self.collection.add(
                documents=chunks,
                metadatas=[dict(metadata, chunk_index=i) for i in range(len(chunks))],
                ids=[f"{document_id}_{i}" for i in range(len(chunks))],
            )
            logger.info(f"Indexed {len(chunks)} chunks for knowledge document {document_id}")
        except Exception as e:
            logger.error(f"Error adding chunks to ChromaDB: {e}")
            raise
        return len(chunks)

    def search(
        self,
        query: str,
        *,
        n_results: int = 5,
        match_threshold: float = 0.75,
        category: str | None = None,
        crop_type: str | None = None,
    ) -> list[dict[str, Any]]:
        """
        Return the best-matching documents as ``{"document_id", "similarity", "content"}``,
        one entry per document, most similar first.
        """
        if not query:
            return []

        conditions: dict[str, Any] = {"category": category}
        if crop_type:
            conditions[_crop_key(crop_type)] = True

        try:
            results = self.collection.query(
                query_texts=[query],
                # Several chunks can belong to one document.
                n_results=n_results * 3,
                where=_metadata_filter(**conditions) or None,
            )
        except Exception as e:
            logger.error(f"Error querying ChromaDB: {e}")
            return []

        documents = (results.get("documents") or [[]])[0]
        metadatas = (results.get("metadatas") or [[]])[0]
        distances = (results.get("distances") or [[]])[0]

        best: dict[str, dict[str, Any]] = {}
        for idx, chunk in enumerate(documents):
            metadata = metadatas[idx] if idx < len(metadatas) and metadatas[idx] else {}
            document_id = metadata.get("document_id")
            if not document_id:
                continue
            distance = distances[idx] if idx < len(distances) else 1.0
            similarity = 1.0 - float(distance)
            if similarity < match_threshold:
                continue
            if document_id not in best or best[document_id]["similarity"] < similarity:
                best[document_id] = {
                    "document_id": document_id,
                    "similarity": similarity,
                    "content": chunk,
                }

        ranked = sorted(best.values(), key=lambda item: item["similarity"], reverse=True)
        return ranked[:n_results]

    def delete_document(self, document_id: str):
        """Delete specific document chunks."""
        try:
            self.collection.delete(where=_metadata_filter(document_id=str(document_id)))
        except Exception as e:
            logger.error(f"Error deleting document {document_id}: {e}")


_rag_manager_instance = None


def get_rag_manager() -> RAGManager:
    """Lazily initializes the RAG manager to prevent module load freezing."""
    global _rag_manager_instance
    if _rag_manager_instance is None:
        _rag_manager_instance = RAGManager()
    return _rag_manager_instance
