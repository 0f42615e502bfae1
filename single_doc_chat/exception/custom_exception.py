import sys
import traceback
from typing import Optional


class DocumentChatException(Exception):
    """
    Base exception for the document chat pipeline.

    Every subclass carries:
    - kind: machine readable error type, stored on failed jobs and returned to the UI
    - status_code: HTTP status used when the error reaches a request handler

    `error_details` may be the causing exception (or `sys`, as a shortcut for
    "whatever is being handled right now"); the file and line of the failure
    are captured from it so log lines point at the real origin.
    """

    kind = "document_chat_error"
    status_code = 500

    def __init__(self, error_message: str, error_details: object = None):
        super().__init__(error_message)
        self.error_message = str(error_message)
        self.file_name: Optional[str] = None
        self.lineno: Optional[int] = None

        tb = None
        if error_details is sys:
            tb = sys.exc_info()[2]
        elif isinstance(error_details, BaseException):
            tb = error_details.__traceback__

        if tb is not None:
            last = traceback.extract_tb(tb)[-1]
            self.file_name = last.filename
            self.lineno = last.lineno

    def __str__(self) -> str:
        return self.error_message

    def describe(self) -> str:
        """Message with origin, used for log lines."""
        if self.file_name:
            return f"{self.error_message} [{self.file_name}:{self.lineno}]"
        return self.error_message


class ConfigurationError(DocumentChatException):
    kind = "configuration_error"
    status_code = 500


class ValidationError(DocumentChatException):
    kind = "validation_error"
    status_code = 400


class ExtractionError(DocumentChatException):
    kind = "extraction_error"
    status_code = 422


class EmptyDocumentError(DocumentChatException):
    kind = "empty_document"
    status_code = 422


class IndexUnavailableError(DocumentChatException):
    kind = "index_unavailable"
    status_code = 503


class PollTimeout(IndexUnavailableError):
    """A bounded poll loop ran out of attempts."""

    kind = "timeout"
    status_code = 504


class InferenceError(DocumentChatException):
    kind = "inference_error"
    status_code = 502


class NoDocumentError(DocumentChatException):
    kind = "no_document"
    status_code = 400


# Remedies shown by the UI, keyed by the credential named in the error message
_MISSING_KEY_HINTS = {
    "GROQ_API_KEY": ("groq", "Please set your GROQ_API_KEY environment variable"),
    "OPENAI_API_KEY": (
        "openai",
        "Please set your OPENAI_API_KEY environment variable or switch to HuggingFace embeddings",
    ),
    "PINECONE_API_KEY": ("pinecone", "Please set your PINECONE_API_KEY environment variable"),
}


def classify_error(error: BaseException) -> dict:
    """
    Best-effort classification of an error so the UI can suggest a remedy.
    """
    message = str(error)

    for key, (provider, hint) in _MISSING_KEY_HINTS.items():
        if key in message:
            return {"type": "missing_api_key", "provider": provider, "message": hint}

    if "decommissioned" in message:
        return {
            "type": "model_decommissioned",
            "message": "The selected model has been decommissioned. Please update your GROQ_MODEL setting.",
        }

    if isinstance(error, DocumentChatException):
        return {"type": error.kind, "message": message}

    return {"type": "unknown", "message": "An unexpected error occurred"}
