import os
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.dependencies import initialize_manager
from api.routers import chat, data_upload, files, health
from orchestrator.pipeline_manager import PipelineManager
from single_doc_chat.exception.custom_exception import DocumentChatException, classify_error
from single_doc_chat.logger import GLOBAL_LOGGER as log
from single_doc_chat.src.session_state import SessionState
from single_doc_chat.utils.config_loader import load_config
from single_doc_chat.utils.thread_pool import run_sync


def create_app(
    manager_factory: Optional[Callable[[], PipelineManager]] = None,
    config: Optional[dict] = None,
) -> FastAPI:

    # Use lifespan instead of deprecated on_event
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        log.info("Application startup initiated")
        app.state.config = config if config is not None else load_config()
        app.state.session = SessionState()
        app.state.manager_factory = manager_factory or PipelineManager
        app.state.manager = None
        app.state.upload_dir = os.getenv("UPLOAD_DIR") or app.state.config["upload"].get("dir", "uploads")

        try:
            app.state.manager = await run_sync(initialize_manager, app.state.manager_factory)
        except Exception as e:
            log.error("Failed to initialize agent | error=%s", str(e))
            log.error("Make sure GROQ_API_KEY and PINECONE_API_KEY are set (OPENAI_API_KEY for OpenAI embeddings)")
        yield
        log.info("Application shutdown")

    app = FastAPI(title="Single-Document RAG Chat", version="1.0", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(DocumentChatException)
    async def document_chat_exception_handler(request: Request, exc: DocumentChatException):
        log.error("Request failed | path=%s | kind=%s | error=%s", request.url.path, exc.kind, exc.describe())
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc), "details": classify_error(exc)},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404 and exc.detail == "Not Found":
            return JSONResponse(status_code=404, content={"error": "Endpoint not found"})
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        log.exception("Server error | path=%s", request.url.path)
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "message": str(exc),
                "details": classify_error(exc),
            },
        )

    # Router Registration
    app.include_router(health.router, tags=["health"])
    app.include_router(data_upload.router, tags=["upload"])
    app.include_router(chat.router, tags=["chat"])
    app.include_router(files.router, tags=["files"])

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", "3000"))
    log.info("Server running at: http://localhost:%d", port)
    uvicorn.run(app, host="0.0.0.0", port=port)
