from pathlib import Path

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, HTTPException, Request, UploadFile

from api.dependencies import get_manager, get_session
from single_doc_chat.exception.custom_exception import ValidationError
from single_doc_chat.logger import GLOBAL_LOGGER as log
from single_doc_chat.src.document_ingestion.job import IngestionJob
from single_doc_chat.src.embeddings.provider_selector import normalize_provider_name
from single_doc_chat.src.session_state import SessionState
from single_doc_chat.utils.file_io import save_uploaded_file, validate_upload
from single_doc_chat.utils.thread_pool import run_sync

router = APIRouter()


@router.post("/api/upload")
async def upload_file(
    request: Request,
    background_tasks: BackgroundTasks,
    file: UploadFile | None = File(None),
    embedding_provider: str | None = Form(None, alias="embeddingProvider"),
    groq_model: str | None = Form(None, alias="groqModel"),
    session: SessionState = Depends(get_session),
):
    """
    Upload endpoint:
      - Validates type and size before anything is stored
      - Saves the file and creates the job record
      - Schedules ingestion in the background and returns the job handle
    """
    if file is None or not file.filename:
        raise ValidationError("No file uploaded")

    upload_cfg = request.app.state.config["upload"]
    allowed = upload_cfg.get("allowed_extensions", [])
    max_bytes = int(upload_cfg.get("max_bytes", 10 * 1024 * 1024))

    # reject on the declared size before reading the body
    if file.size is not None:
        validate_upload(file.filename, file.size, allowed, max_bytes)
    data = await file.read()
    validate_upload(file.filename, len(data), allowed, max_bytes)

    provider = normalize_provider_name(embedding_provider) if embedding_provider else None

    log.info("Processing file | file=%s | provider=%s | model=%s", file.filename, provider, groq_model)

    manager = await get_manager(request)
    pipeline = await run_sync(manager.get_pipeline, provider)
    groq_model = groq_model or manager.default_model

    stored = await run_sync(save_uploaded_file, file.filename, data, Path(request.app.state.upload_dir))

    job = IngestionJob(filename=stored.filename)
    session.start_job(job)

    runner = manager.build_runner(session)
    background_tasks.add_task(runner.run, job, stored, pipeline, groq_model)

    log.info("Upload accepted | job_id=%s | file=%s | size=%d", job.id, stored.filename, stored.size)
    return {
        "success": True,
        "processingId": job.id,
        "filename": stored.filename,
        "size": stored.size,
        "status": job.status.value,
        "embeddingProvider": pipeline.provider,
        "groqModel": groq_model,
    }


@router.get("/api/upload-status/{processing_id}")
async def upload_status(processing_id: str, session: SessionState = Depends(get_session)):
    job = session.get_job(processing_id)
    if job is None:
        raise HTTPException(404, "Processing job not found")
    return job.to_response()
