from fastapi import APIRouter, Depends

from api.dependencies import get_session
from single_doc_chat.exception.custom_exception import DocumentChatException
from single_doc_chat.logger import GLOBAL_LOGGER as log
from single_doc_chat.src.session_state import SessionState
from single_doc_chat.utils.file_io import delete_stored_file

router = APIRouter()


@router.post("/api/remove-file")
async def remove_file(session: SessionState = Depends(get_session)):
    """Delete the stored file only; the index is recreated on the next upload."""
    document = session.detach_document()
    if document is None:
        return {"success": True, "message": "No file to remove"}

    try:
        delete_stored_file(document.stored.path)
    except OSError as e:
        log.warning("Could not delete file | path=%s | error=%s", document.stored.path, str(e))
        session.set_document(document)
        raise DocumentChatException(f"Failed to delete file: {e}", e) from e

    return {
        "success": True,
        "message": "File removed from server successfully (index will be recreated on next upload)",
    }


@router.post("/api/clear")
async def clear_session(session: SessionState = Depends(get_session)):
    document = session.detach_document()
    if document is not None:
        try:
            delete_stored_file(document.stored.path)
        except OSError as e:
            log.warning("Could not delete file | path=%s | error=%s", document.stored.path, str(e))

    return {
        "success": True,
        "message": "Session cleared (index will be recreated on next upload)",
    }
