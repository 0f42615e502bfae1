from __future__ import annotations
import re
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from single_doc_chat.exception.custom_exception import DocumentChatException, ValidationError
from single_doc_chat.logger import GLOBAL_LOGGER as log

SUPPORTED_EXTENSIONS = {".txt", ".log", ".csv", ".json", ".md", ".pdf", ".doc", ".docx"}
MAX_UPLOAD_BYTES = 10 * 1024 * 1024


@dataclass
class StoredDocument:
    """The single uploaded file a session works on."""

    filename: str
    path: Path
    size: int
    extension: str


def validate_upload(
    filename: Optional[str],
    size: int,
    allowed_extensions: Iterable[str] = SUPPORTED_EXTENSIONS,
    max_bytes: int = MAX_UPLOAD_BYTES,
) -> str:
    """
    Reject unsupported types and oversized files before anything is written.
    Returns the lower-cased extension.
    """
    if not filename:
        raise ValidationError("No file uploaded")

    allowed = {e.lower() for e in allowed_extensions}
    extension = Path(filename).suffix.lower()
    if extension not in allowed:
        supported = ", ".join(sorted(e.lstrip(".").upper() for e in allowed))
        raise ValidationError(f"Unsupported file type. Supported formats: {supported}")

    if size > max_bytes:
        raise ValidationError(
            f"File too large: {size} bytes (limit {max_bytes // (1024 * 1024)}MB)"
        )

    return extension


def save_uploaded_file(filename: str, data: bytes, target_dir: Path) -> StoredDocument:
    """
    Persist validated upload bytes under `target_dir` with a collision-free name.
    Callers must run validate_upload first.
    """
    try:
        target_dir.mkdir(parents=True, exist_ok=True)
        extension = Path(filename).suffix.lower()

        # Clean file name (only alphanum, dash, underscore)
        safe_name = re.sub(r'[^a-zA-Z0-9_\-]', '_', Path(filename).stem).lower()
        file_name = f"{safe_name}_{uuid.uuid4().hex[:5]}{extension}"
        output_path = target_dir / file_name

        with open(output_path, "wb") as f:
            f.write(data)

        log.info("File saved for ingestion | uploaded=%s | saved_as=%s", filename, output_path)
        return StoredDocument(
            filename=filename,
            path=output_path,
            size=len(data),
            extension=extension,
        )
    except OSError as e:
        log.error("Failed to save uploaded file | error=%s | dir=%s", str(e), target_dir)
        raise DocumentChatException("Failed to save uploaded file", e) from e


def delete_stored_file(path: Optional[Path]) -> bool:
    """Remove a stored upload. Returns False when there was nothing to delete."""
    if path is None:
        return False
    try:
        Path(path).unlink()
        log.info("Removed uploaded file | path=%s", path)
        return True
    except FileNotFoundError:
        log.warning("Uploaded file already gone | path=%s", path)
        return False
