from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from langchain_core.documents import Document
from langchain_text_splitters import RecursiveCharacterTextSplitter

from single_doc_chat.exception.custom_exception import EmptyDocumentError
from single_doc_chat.logger import GLOBAL_LOGGER as log

DEFAULT_CHUNK_SIZE = 2000
DEFAULT_CHUNK_OVERLAP = 100


class Chunker:
    """
    Splits extracted text into overlapping segments for embedding.

    Breaks on paragraphs first, then lines, then words, and only cuts inside a
    word when a single word exceeds chunk_size. Output is a pure function of
    (text, chunk_size, chunk_overlap); the metadata timestamp is the only
    per-run value.
    """

    def __init__(
        self,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        chunk_overlap: int = DEFAULT_CHUNK_OVERLAP,
    ):
        if chunk_overlap >= chunk_size:
            raise ValueError("chunk_overlap must be smaller than chunk_size")
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self._splitter = RecursiveCharacterTextSplitter(
            chunk_size=chunk_size,
            chunk_overlap=chunk_overlap,
            separators=["\n\n", "\n", ". ", " ", ""],
            keep_separator="end",
            add_start_index=True,
        )

    def split(
        self,
        text: str,
        source: str,
        full_path: str = "",
        timestamp: Optional[str] = None,
    ) -> List[Document]:
        if not text or not text.strip():
            raise EmptyDocumentError("File is empty or contains only whitespace")

        timestamp = timestamp or datetime.now(timezone.utc).isoformat()
        pieces = self._splitter.create_documents([text])

        chunks: List[Document] = []
        for idx, piece in enumerate(pieces):
            chunks.append(
                Document(
                    page_content=piece.page_content,
                    metadata={
                        "source": source,
                        "full_path": full_path,
                        "chunk_index": idx,
                        "start_index": piece.metadata.get("start_index", -1),
                        "timestamp": timestamp,
                    },
                )
            )

        log.info(
            "Text split | source=%s | chars=%d | chunks=%d | size=%d | overlap=%d",
            source,
            len(text),
            len(chunks),
            self.chunk_size,
            self.chunk_overlap,
        )
        return chunks
