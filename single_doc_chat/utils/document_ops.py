from __future__ import annotations
import threading
import warnings
from pathlib import Path
from typing import List, Optional

from langchain_community.document_loaders import Docx2txtLoader, PyPDFLoader, TextLoader
from langchain_core.documents import Document

from single_doc_chat.exception.custom_exception import ExtractionError
from single_doc_chat.logger import GLOBAL_LOGGER as log

TEXT_EXTENSIONS = {".txt", ".log", ".csv", ".json", ".md"}
PDF_EXTENSIONS = {".pdf"}
WORD_EXTENSIONS = {".doc", ".docx"}

# catch_warnings swaps process-wide state, so Word extractions on pool threads take turns
_WARNINGS_LOCK = threading.Lock()


def _join_pages(docs: List[Document]) -> str:
    return "\n\n".join(d.page_content for d in docs if d.page_content)


def _load_text(p: Path) -> str:
    loader = TextLoader(str(p), encoding="utf-8")
    return _join_pages(loader.load())


def _load_pdf(p: Path) -> str:
    try:
        pages = PyPDFLoader(str(p)).load()
    except Exception as e:
        log.error("PDF parsing failed | file=%s | error=%s", p, str(e))
        raise ExtractionError(f"Failed to parse PDF {p.name}: {e}", e) from e

    text = _join_pages(pages)
    if not text.strip():
        raise ExtractionError(
            f"No text could be extracted from PDF {p.name}. It may be scanned or image-based."
        )
    log.info("PDF text extracted | file=%s | pages=%d | chars=%d", p.name, len(pages), len(text))
    return text


def _load_word(p: Path) -> str:
    with _WARNINGS_LOCK, warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        try:
            docs = Docx2txtLoader(str(p)).load()
        except Exception as e:
            log.error("Word parsing failed | file=%s | error=%s", p, str(e))
            raise ExtractionError(f"Failed to parse Word document {p.name}: {e}", e) from e

    # warnings from the parser are informational only; a warning raised by an
    # unrelated thread during the window may still be picked up here
    for w in caught:
        log.warning("Word extraction warning | file=%s | warning=%s", p.name, w.message)

    text = _join_pages(docs)
    if not text.strip():
        raise ExtractionError(f"No text could be extracted from Word document {p.name}.")
    log.info("Word text extracted | file=%s | chars=%d", p.name, len(text))
    return text


def extract_text(path: Path | str, extension: Optional[str] = None) -> str:
    """
    Turn a stored upload into plain text, dispatching on its extension.

    - .txt .log .csv .json .md are read verbatim
    - .pdf goes through pypdf
    - .doc / .docx go through docx2txt

    Raises ExtractionError when a binary document yields no text or its parser fails.
    Unsupported extensions are rejected at upload time and never reach this point.
    """
    p = Path(path)
    extension = (extension or p.suffix).lower()

    if extension in TEXT_EXTENSIONS:
        try:
            return _load_text(p)
        except Exception as e:
            log.error("Failed reading text file | file=%s | error=%s", p, str(e))
            raise ExtractionError(f"Failed to read {p.name}: {e}", e) from e
    if extension in PDF_EXTENSIONS:
        return _load_pdf(p)
    if extension in WORD_EXTENSIONS:
        return _load_word(p)

    raise ExtractionError(f"Unsupported extension for extraction: {extension}")
