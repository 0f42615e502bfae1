from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict, Field

from api.dependencies import get_manager, get_session
from single_doc_chat.exception.custom_exception import NoDocumentError, ValidationError
from single_doc_chat.logger import GLOBAL_LOGGER as log
from single_doc_chat.src.embeddings.provider_selector import normalize_provider_name
from single_doc_chat.src.session_state import SessionState
from single_doc_chat.utils.thread_pool import run_sync

router = APIRouter()


class QueryRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    question: Optional[str] = None
    embedding_provider: Optional[str] = Field(None, alias="embeddingProvider")
    groq_model: Optional[str] = Field(None, alias="groqModel")


class SourceInfo(BaseModel):
    source: Optional[str] = None
    chunkIndex: Optional[int] = None
    contentPreview: str


class QueryResponse(BaseModel):
    answer: str
    sources: list[SourceInfo]
    question: str
    timestamp: str


@router.post("/api/query", response_model=QueryResponse)
async def query(
    req: QueryRequest,
    request: Request,
    session: SessionState = Depends(get_session),
):
    """
    Query endpoint.

    Pipeline:
      1. Validate question and that a document is loaded
      2. Pick the query engine for the document's embedding provider
      3. Retrieve top-k chunks, call the chat model
    """
    question = (req.question or "").strip()
    if not question:
        raise ValidationError("Question is required")

    document = session.document
    if document is None:
        raise NoDocumentError("No file uploaded. Please upload a file first.")

    manager = await get_manager(request)

    # vectors were built with the document's provider, so queries must use it too
    if req.embedding_provider and normalize_provider_name(req.embedding_provider) != document.embedding_provider:
        log.warning(
            "Ignoring query embedding provider | requested=%s | document=%s",
            req.embedding_provider,
            document.embedding_provider,
        )

    engine = await run_sync(manager.get_query_engine, document.embedding_provider, req.groq_model)
    result = await run_sync(engine.ask, question, document)

    log.info("Query completed | file=%s", document.filename)
    return QueryResponse(
        answer=result["answer"],
        sources=[SourceInfo(**s) for s in result["sources"]],
        question=question,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )
