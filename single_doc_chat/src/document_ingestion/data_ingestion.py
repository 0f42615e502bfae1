from __future__ import annotations

import time
from typing import Any, Optional

from single_doc_chat.logger import GLOBAL_LOGGER as log
from single_doc_chat.src.document_ingestion.chunker import Chunker
from single_doc_chat.src.document_ingestion.job import IngestionJob, JobStage
from single_doc_chat.src.session_state import ActiveDocument, SessionState
from single_doc_chat.utils.document_ops import extract_text
from single_doc_chat.utils.file_io import StoredDocument, delete_stored_file
from single_doc_chat.utils.thread_pool import run_sync

# Coarse progress milestones per stage
PROGRESS = {
    JobStage.RECREATING_INDEX: 10,
    JobStage.PROCESSING_FILE: 30,
    JobStage.LOADING_TO_VECTOR_STORE: 50,
    JobStage.FINALIZING: 90,
}


class IngestionJobRunner:
    """
    Runs extraction -> chunking -> embedding -> indexing for one upload in the
    background, reporting through the job record only.

    Stage flow:
      initializing -> recreating_index -> processing_file
        -> loading_to_vector_store -> finalizing -> completed
    Any error moves the job to failed and deletes the uploaded file. A failed
    index recreation is logged and ingestion continues against whatever index
    is left.
    """

    def __init__(self, session: SessionState, chunker: Optional[Chunker] = None, batch_size: int = 50):
        self.session = session
        self.chunker = chunker or Chunker()
        self.batch_size = batch_size

    def _advance(self, job: IngestionJob, stage: JobStage, message: str) -> None:
        self.session.update_job(job, lambda j: j.advance(stage, PROGRESS[stage], message))

    async def run(
        self,
        job: IngestionJob,
        stored: StoredDocument,
        pipeline: Any,
        groq_model: Optional[str] = None,
    ) -> None:
        start = time.perf_counter()
        index_manager = pipeline.index_manager
        log.info(
            "Ingestion started | job_id=%s | file=%s | provider=%s | index=%s",
            job.id,
            stored.filename,
            pipeline.provider,
            index_manager.index_name,
        )

        try:
            # the previous document's vectors go away with the index below
            self.session.supersede_document()

            self._advance(job, JobStage.RECREATING_INDEX, "Recreating vector index")
            try:
                await run_sync(index_manager.recreate)
            except Exception as e:
                # keep going with the index as it is
                log.warning("Could not recreate index before upload | job_id=%s | error=%s", job.id, str(e))

            self._advance(job, JobStage.PROCESSING_FILE, "Extracting and chunking text")
            text = await run_sync(extract_text, stored.path, stored.extension)
            chunks = self.chunker.split(text, source=stored.filename, full_path=str(stored.path))

            self._advance(
                job,
                JobStage.LOADING_TO_VECTOR_STORE,
                f"Adding {len(chunks)} chunks to vector store",
            )
            await run_sync(index_manager.ensure_exists)

            def on_batch(done: int, total: int) -> None:
                span = PROGRESS[JobStage.FINALIZING] - PROGRESS[JobStage.LOADING_TO_VECTOR_STORE]
                pct = PROGRESS[JobStage.LOADING_TO_VECTOR_STORE] + span * done // max(total, 1)
                self.session.update_job(job, lambda j: j.set_progress(pct, f"Loaded batch {done}/{total}"))

            count = await run_sync(
                index_manager.add_documents, chunks, batch_size=self.batch_size, on_batch=on_batch
            )

            self._advance(job, JobStage.FINALIZING, "Finalizing")
            self.session.set_document(
                ActiveDocument(
                    stored=stored,
                    embedding_provider=pipeline.provider,
                    index_name=index_manager.index_name,
                    chunks=count,
                )
            )

            processing_time = round(time.perf_counter() - start, 3)
            result = {
                "filename": stored.filename,
                "size": stored.size,
                "chunks": count,
                "processingTime": processing_time,
                "embeddingProvider": pipeline.provider,
                "embeddingFallback": pipeline.fallback_from,
                "groqModel": groq_model,
                "indexName": index_manager.index_name,
            }
            self.session.update_job(job, lambda j: j.complete(result))
            log.info(
                "File processed | job_id=%s | chunks=%d | seconds=%.2f",
                job.id,
                count,
                processing_time,
            )

        except Exception as e:
            log.error("Ingestion failed | job_id=%s | file=%s | error=%s", job.id, stored.filename, str(e))
            self.session.update_job(job, lambda j: j.fail(e))
            delete_stored_file(stored.path)
