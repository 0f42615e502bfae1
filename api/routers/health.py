from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request

from api.dependencies import get_session
from orchestrator.pipeline_manager import describe_defaults
from single_doc_chat.src.session_state import SessionState

router = APIRouter()


@router.get("/api/status")
async def status(request: Request, session: SessionState = Depends(get_session)):
    document = session.document
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "agent": "initialized" if request.app.state.manager is not None else "not_initialized",
        "currentFile": document.filename if document else None,
    }


@router.get("/api/config")
async def config(request: Request):
    """Current provider/model defaults and the valid choices for each."""
    manager = request.app.state.manager
    if manager is not None:
        return manager.describe()
    return describe_defaults(request.app.state.config)
