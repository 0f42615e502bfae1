from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Callable, Optional

from single_doc_chat.logger import GLOBAL_LOGGER as log
from single_doc_chat.src.document_ingestion.job import IngestionJob
from single_doc_chat.utils.file_io import StoredDocument, delete_stored_file


@dataclass
class ActiveDocument:
    """The ingested document queries run against, and how it was indexed."""

    stored: StoredDocument
    embedding_provider: str
    index_name: str
    chunks: int

    @property
    def filename(self) -> str:
        return self.stored.filename


class SessionState:
    """
    Process-wide session: at most one current document and one tracked job.

    Owned by the application and passed to handlers explicitly. Reads and
    writes go through a lock because ingestion steps run on worker threads.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._document: Optional[ActiveDocument] = None
        self._job: Optional[IngestionJob] = None

    # ------------------------- document -------------------------
    @property
    def document(self) -> Optional[ActiveDocument]:
        with self._lock:
            return self._document

    def set_document(self, document: ActiveDocument) -> None:
        with self._lock:
            self._document = document
        log.info(
            "Current document set | file=%s | index=%s | chunks=%d",
            document.filename,
            document.index_name,
            document.chunks,
        )

    def detach_document(self) -> Optional[ActiveDocument]:
        """Forget the current document and hand it back to the caller."""
        with self._lock:
            previous, self._document = self._document, None
        return previous

    def supersede_document(self) -> None:
        """Drop the current document ahead of a new ingestion and delete its file."""
        previous = self.detach_document()
        if previous is not None:
            log.info("Superseding document | file=%s", previous.filename)
            delete_stored_file(previous.stored.path)

    # --------------------------- jobs ---------------------------
    def start_job(self, job: IngestionJob) -> None:
        with self._lock:
            if self._job is not None and not self._job.is_terminal:
                log.warning(
                    "New upload replaces a job still in progress | previous=%s | new=%s",
                    self._job.id,
                    job.id,
                )
            self._job = job

    def update_job(self, job: IngestionJob, update: Callable[[IngestionJob], None]) -> None:
        """Apply a mutation to a job under the session lock (batch callbacks run on worker threads)."""
        with self._lock:
            update(job)

    def get_job(self, job_id: str) -> Optional[IngestionJob]:
        with self._lock:
            if self._job is not None and self._job.id == job_id:
                return self._job.model_copy(deep=True)
            return None

    @property
    def current_job(self) -> Optional[IngestionJob]:
        with self._lock:
            return self._job
