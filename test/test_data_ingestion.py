import asyncio

import pytest

from conftest import FakePineconeClient, build_manager
from single_doc_chat.src.document_ingestion.job import STAGE_ORDER, IngestionJob, JobStage, JobStatus
from single_doc_chat.src.session_state import SessionState
from single_doc_chat.utils.file_io import save_uploaded_file

LOG_TEXT = "Error Log: Connection timeout at 10:00\n\nWarning: High memory usage at 16:45\n"


class RecordingSession(SessionState):
    """Remembers (stage, progress) after every job update."""

    def __init__(self):
        super().__init__()
        self.history = []

    def update_job(self, job, update):
        super().update_job(job, update)
        self.history.append((job.stage, job.progress))


def ingest(manager, session, tmp_path, name="errors.log", data=LOG_TEXT.encode()):
    stored = save_uploaded_file(name, data, tmp_path / "uploads")
    job = IngestionJob(filename=name)
    session.start_job(job)
    pipeline = manager.get_pipeline()
    asyncio.run(manager.build_runner(session).run(job, stored, pipeline, "llama-3.1-8b-instant"))
    return job, stored


def test_successful_ingestion(manager, tmp_path):
    session = RecordingSession()
    job, stored = ingest(manager, session, tmp_path)

    assert job.status == JobStatus.COMPLETED
    assert job.progress == 100
    assert job.result["filename"] == "errors.log"
    assert job.result["chunks"] == 1
    assert job.result["embeddingProvider"] == "simple"
    assert job.result["embeddingFallback"] is None
    assert job.result["indexName"] == "log-interpreter-index-simple"
    assert job.result["groqModel"] == "llama-3.1-8b-instant"

    document = session.document
    assert document.filename == "errors.log"
    assert document.embedding_provider == "simple"
    assert stored.path.exists()


def test_stages_and_progress_are_monotonic(manager, tmp_path):
    session = RecordingSession()
    ingest(manager, session, tmp_path)

    stages = [stage for stage, _ in session.history]
    progress = [pct for _, pct in session.history]
    assert [STAGE_ORDER.index(s) for s in stages] == sorted(STAGE_ORDER.index(s) for s in stages)
    assert progress == sorted(progress)
    assert stages[0] == JobStage.RECREATING_INDEX
    assert stages[-1] == JobStage.COMPLETED


def test_failure_deletes_upload(manager, tmp_path):
    session = SessionState()
    job, stored = ingest(manager, session, tmp_path, name="blank.txt", data=b"   \n\n  ")

    assert job.status == JobStatus.FAILED
    assert job.stage == JobStage.FAILED
    assert job.error_type == "empty_document"
    assert not stored.path.exists()
    assert session.document is None


def test_recreate_failure_is_not_fatal(env, test_config, tmp_path):
    client = FakePineconeClient(fail_on={"delete"})
    manager = build_manager(test_config, client)
    manager.get_pipeline().index_manager.ensure_exists()

    job, _ = ingest(manager, SessionState(), tmp_path)

    assert "delete" in client.calls
    assert job.status == JobStatus.COMPLETED


def test_new_upload_supersedes_previous(manager, tmp_path):
    session = SessionState()
    _, first = ingest(manager, session, tmp_path, name="first.log", data=b"first document body")
    _, second = ingest(manager, session, tmp_path, name="second.log", data=b"second document body")

    assert not first.path.exists()
    assert second.path.exists()
    assert session.document.filename == "second.log"

    hits = manager.get_pipeline().index_manager.query("document body", k=20)
    assert {d.metadata["source"] for d in hits} == {"second.log"}


def test_get_job_returns_snapshot(manager, tmp_path):
    session = SessionState()
    job, _ = ingest(manager, session, tmp_path)

    snapshot = session.get_job(job.id)
    assert snapshot is not job
    assert snapshot.to_response() == job.to_response()
    assert session.get_job("job_missing") is None


@pytest.mark.parametrize("size", [120, 55])
def test_batches_report_progress(env, test_config, tmp_path, size):
    test_config["chunking"] = {"chunk_size": 200, "chunk_overlap": 20}
    test_config["ingestion"] = {"batch_size": 2}
    manager = build_manager(test_config, FakePineconeClient())
    session = RecordingSession()
    text = "\n\n".join(f"Entry {i}: request served in {i} ms by worker pool" for i in range(size))

    job, _ = ingest(manager, session, tmp_path, name="big.log", data=text.encode())

    loading = [pct for stage, pct in session.history if stage == JobStage.LOADING_TO_VECTOR_STORE]
    assert job.status == JobStatus.COMPLETED
    assert len(loading) > 2
    assert loading[-1] == 90
    assert all(50 <= pct <= 90 for pct in loading)


def test_index_that_never_becomes_ready_fails_the_job(env, test_config, tmp_path):
    client = FakePineconeClient(ready_after=None)
    manager = build_manager(test_config, client)
    session = SessionState()

    job, stored = ingest(manager, session, tmp_path)

    assert job.status == JobStatus.FAILED
    assert job.error_type == "timeout"
    assert "not ready" in job.error
    assert not stored.path.exists()
    assert session.document is None
    assert manager.get_pipeline().index_manager.index_name not in client.stores
