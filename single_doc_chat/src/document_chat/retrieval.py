from typing import Any, Dict, List, Optional

from langchain_core.documents import Document
from langchain_core.language_models import BaseChatModel
from langchain_core.output_parsers import StrOutputParser

from single_doc_chat.exception.custom_exception import (
    DocumentChatException,
    InferenceError,
    NoDocumentError,
    ValidationError,
)
from single_doc_chat.logger import GLOBAL_LOGGER as log
from single_doc_chat.prompts.prompt_library import PROMPT_REGISTRY
from single_doc_chat.src.document_ingestion.index_manager import VectorIndexManager


def format_context(docs: List[Document]) -> str:
    return "\n\n".join(d.page_content for d in docs)


def source_preview(doc: Document, preview_chars: int = 200) -> Dict[str, Any]:
    """Citation entry for one retrieved chunk; content is cut to `preview_chars`."""
    content = doc.page_content
    if len(content) > preview_chars:
        content = content[:preview_chars] + "..."
    return {
        "source": doc.metadata.get("source"),
        "chunkIndex": doc.metadata.get("chunk_index"),
        "contentPreview": content,
    }


class RetrievalQueryEngine:
    """
    Answers a question about the current document:
      1. top-k similarity search in the document's index
      2. stuff the chunks into the context prompt
      3. one chat model call
    Returns the answer with truncated source previews for citation.
    """

    def __init__(
        self,
        index_manager: VectorIndexManager,
        llm: BaseChatModel,
        top_k: int = 20,
        preview_chars: int = 200,
    ):
        self.index_manager = index_manager
        self.llm = llm
        self.top_k = top_k
        self.preview_chars = preview_chars
        self.chain = PROMPT_REGISTRY["context_qa"] | llm | StrOutputParser()

    def retrieve(self, question: str) -> List[Document]:
        return self.index_manager.query(question, k=self.top_k)

    def ask(self, question: Optional[str], document: Optional[Any]) -> Dict[str, Any]:
        if not question or not question.strip():
            raise ValidationError("Question is required")
        if document is None:
            raise NoDocumentError("No file uploaded. Please upload a file first.")

        question = question.strip()
        log.info("Processing question | file=%s | question=%s", document.filename, question)

        # retrieval errors are IndexUnavailableError and propagate unchanged
        docs = self.retrieve(question)

        try:
            answer = self.chain.invoke({"context": format_context(docs), "input": question})
        except DocumentChatException:
            raise
        except Exception as e:
            log.error("Chat model call failed | error=%s", str(e))
            raise InferenceError(f"Chat model request failed: {e}", e) from e

        log.info("Query completed | sources=%d", len(docs))
        return {
            "answer": answer,
            "sources": [source_preview(d, self.preview_chars) for d in docs],
        }
