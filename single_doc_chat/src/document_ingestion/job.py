from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from single_doc_chat.exception.custom_exception import classify_error
from single_doc_chat.logger import GLOBAL_LOGGER as log


class JobStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class JobStage(str, Enum):
    INITIALIZING = "initializing"
    RECREATING_INDEX = "recreating_index"
    PROCESSING_FILE = "processing_file"
    LOADING_TO_VECTOR_STORE = "loading_to_vector_store"
    FINALIZING = "finalizing"
    COMPLETED = "completed"
    FAILED = "failed"


# Happy-path order; FAILED may follow any non-terminal stage
STAGE_ORDER = [
    JobStage.INITIALIZING,
    JobStage.RECREATING_INDEX,
    JobStage.PROCESSING_FILE,
    JobStage.LOADING_TO_VECTOR_STORE,
    JobStage.FINALIZING,
    JobStage.COMPLETED,
]

TERMINAL_STAGES = {JobStage.COMPLETED, JobStage.FAILED}


class InvalidTransition(RuntimeError):
    pass


def generate_job_id() -> str:
    return f"job_{datetime.now().strftime('%Y%m%d%H%M%S')}_{uuid.uuid4().hex[:8]}"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class IngestionJob(BaseModel):
    """
    Pollable status record of one background ingestion.

    Stages only move forward; `advance` and `fail` enforce that.
    Serialised with camelCase keys for the HTTP API.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(default_factory=generate_job_id)
    filename: str = ""
    status: JobStatus = JobStatus.PROCESSING
    stage: JobStage = JobStage.INITIALIZING
    progress: int = 0
    message: str = "Upload received"
    started_at: str = Field(default_factory=_now)
    updated_at: str = Field(default_factory=_now)
    completed_at: Optional[str] = None
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    details: Optional[Dict[str, Any]] = None

    @property
    def is_terminal(self) -> bool:
        return self.stage in TERMINAL_STAGES

    def advance(self, stage: JobStage, progress: int, message: str = "") -> None:
        if stage == JobStage.FAILED:
            raise InvalidTransition("use fail() to move a job to the failed stage")
        if self.is_terminal:
            raise InvalidTransition(f"job {self.id} already {self.stage.value}")
        if STAGE_ORDER.index(stage) < STAGE_ORDER.index(self.stage):
            raise InvalidTransition(f"cannot move job {self.id} from {self.stage.value} back to {stage.value}")

        self.stage = stage
        self.progress = max(self.progress, int(progress))
        self.message = message or self.message
        self.updated_at = _now()
        log.info("Job stage | job_id=%s | stage=%s | progress=%d", self.id, stage.value, self.progress)

    def set_progress(self, progress: int, message: str = "") -> None:
        """Move the percentage forward within the current stage."""
        if self.is_terminal:
            return
        self.progress = max(self.progress, int(progress))
        if message:
            self.message = message
        self.updated_at = _now()

    def complete(self, result: Dict[str, Any]) -> None:
        self.advance(JobStage.COMPLETED, 100, "File processed successfully")
        self.status = JobStatus.COMPLETED
        self.result = result
        self.completed_at = self.updated_at

    def fail(self, error: BaseException) -> None:
        if self.is_terminal:
            raise InvalidTransition(f"job {self.id} already {self.stage.value}")
        details = classify_error(error)
        self.stage = JobStage.FAILED
        self.status = JobStatus.FAILED
        self.error = str(error)
        self.error_type = details["type"]
        self.details = details
        self.message = "Processing failed"
        self.updated_at = _now()
        self.completed_at = self.updated_at
        log.error("Job failed | job_id=%s | error_type=%s | error=%s", self.id, self.error_type, self.error)

    def to_response(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
