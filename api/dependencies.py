from typing import Callable

from fastapi import Request

from orchestrator.pipeline_manager import PipelineManager
from single_doc_chat.logger import GLOBAL_LOGGER as log
from single_doc_chat.src.session_state import SessionState
from single_doc_chat.utils.thread_pool import run_sync


def initialize_manager(factory: Callable[[], PipelineManager]) -> PipelineManager:
    """Build the manager and make sure the default provider's index exists."""
    manager = factory()
    pipeline = manager.get_pipeline()
    pipeline.index_manager.ensure_exists()
    log.info(
        "Agent initialized | groq_model=%s | provider=%s | index=%s",
        manager.default_model,
        pipeline.provider,
        pipeline.index_manager.index_name,
    )
    return manager


def get_session(request: Request) -> SessionState:
    return request.app.state.session


async def get_manager(request: Request) -> PipelineManager:
    """
    The initialized pipeline manager, retrying initialization if startup failed.
    Raises ConfigurationError while credentials are still missing.
    """
    state = request.app.state
    if state.manager is None:
        log.info("Agent not initialized, retrying initialization")
        state.manager = await run_sync(initialize_manager, state.manager_factory)
    return state.manager
