# orchestrator/pipeline_manager.py
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from cachetools import LRUCache
from langchain_core.embeddings import Embeddings
from langchain_core.language_models import BaseChatModel
from langchain_core.vectorstores import VectorStore

from single_doc_chat.logger import GLOBAL_LOGGER as log
from single_doc_chat.src.document_chat.retrieval import RetrievalQueryEngine
from single_doc_chat.src.document_ingestion.chunker import Chunker
from single_doc_chat.src.document_ingestion.data_ingestion import IngestionJobRunner
from single_doc_chat.src.document_ingestion.index_manager import (
    DEFAULT_BASE_NAME,
    VectorIndexManager,
    index_name_for,
)
from single_doc_chat.src.embeddings.provider_selector import (
    EmbeddingSelection,
    PROVIDERS,
    make_provider,
    normalize_provider_name,
)
from single_doc_chat.src.session_state import SessionState
from single_doc_chat.utils.model_loader import ModelLoader


@dataclass
class ProviderPipeline:
    """Embeddings of one provider together with the index sized for them."""

    selection: EmbeddingSelection
    index_manager: VectorIndexManager

    @property
    def provider(self) -> str:
        return self.selection.config.provider

    @property
    def fallback_from(self) -> Optional[str]:
        return self.selection.fallback_from


class PipelineManager:
    """
    Keeps one ProviderPipeline per embedding provider.

    Each pipeline:
      - holds the embeddings selected for that provider
      - manages the index named for that provider, so dimensions never clash
    Chat models are cached per Groq model id.
    """

    def __init__(
        self,
        model_loader: Optional[ModelLoader] = None,
        index_client: Any = None,
        vector_store_factory: Optional[Callable[[str, Embeddings], VectorStore]] = None,
        llm_factory: Optional[Callable[[str], BaseChatModel]] = None,
    ):
        self.model_loader = model_loader or ModelLoader()
        self.config = self.model_loader.config
        self.index_client = index_client if index_client is not None else self.model_loader.load_index_client()
        self.vector_store_factory = vector_store_factory
        self.llm_factory = llm_factory or self.model_loader.load_llm

        index_cfg = dict(self.config.get("vector_index", {}))
        index_cfg["cloud"] = os.getenv("PINECONE_CLOUD") or index_cfg.get("cloud", "aws")
        index_cfg["region"] = os.getenv("PINECONE_REGION") or index_cfg.get("region", "us-east-1")
        self.index_cfg = index_cfg
        self.base_index_name = index_cfg.get("base_name", DEFAULT_BASE_NAME)
        self.index_override = os.getenv("PINECONE_INDEX_NAME")

        self.cache: LRUCache = LRUCache(maxsize=8)
        self.llms: Dict[str, BaseChatModel] = {}

    @property
    def default_provider(self) -> str:
        return self.model_loader.default_provider

    @property
    def default_model(self) -> str:
        return self.model_loader.default_model

    def index_name_for(self, provider: str) -> str:
        provider_obj = make_provider(provider, self.config["embedding"])
        return index_name_for(provider_obj.index_suffix, self.base_index_name, self.index_override)

    def get_pipeline(self, provider: Optional[str] = None) -> ProviderPipeline:
        """
        Get or lazily create the pipeline for a provider (default: EMBEDDING_PROVIDER).
        """
        provider = normalize_provider_name(provider or self.default_provider)

        if provider not in self.cache:
            log.info("Creating new pipeline | provider=%s", provider)
            selection = self.model_loader.load_embeddings(provider)
            index_manager = VectorIndexManager(
                client=self.index_client,
                embeddings=selection.embeddings,
                index_name=self.index_name_for(provider),
                dimension=selection.config.dimension,
                index_cfg=self.index_cfg,
                vector_store_factory=self.vector_store_factory,
            )
            self.cache[provider] = ProviderPipeline(selection=selection, index_manager=index_manager)
        else:
            log.debug("Reusing cached pipeline | provider=%s", provider)

        return self.cache[provider]

    def get_llm(self, model_name: Optional[str] = None) -> BaseChatModel:
        model_name = model_name or self.default_model
        if model_name not in self.llms:
            self.llms[model_name] = self.llm_factory(model_name)
        return self.llms[model_name]

    def get_query_engine(self, provider: str, model_name: Optional[str] = None) -> RetrievalQueryEngine:
        retriever_cfg = self.config.get("retriever", {})
        return RetrievalQueryEngine(
            index_manager=self.get_pipeline(provider).index_manager,
            llm=self.get_llm(model_name),
            top_k=int(retriever_cfg.get("top_k", 20)),
            preview_chars=int(retriever_cfg.get("preview_chars", 200)),
        )

    def build_runner(self, session: SessionState) -> IngestionJobRunner:
        chunk_cfg = self.config.get("chunking", {})
        return IngestionJobRunner(
            session=session,
            chunker=Chunker(
                chunk_size=int(chunk_cfg.get("chunk_size", 2000)),
                chunk_overlap=int(chunk_cfg.get("chunk_overlap", 100)),
            ),
            batch_size=int(self.config.get("ingestion", {}).get("batch_size", 50)),
        )

    def describe(self) -> Dict[str, Any]:
        return describe_defaults(self.config, self.default_provider, self.default_model)


def describe_defaults(
    config: dict,
    provider: Optional[str] = None,
    model_name: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Defaults and valid choices, as served by GET /api/config.
    Works without credentials so the UI can render before the agent is up.
    """
    provider = normalize_provider_name(
        provider or os.getenv("EMBEDDING_PROVIDER") or config["embedding"].get("default_provider", "openai")
    )
    model_name = model_name or os.getenv("GROQ_MODEL") or config["llm"]["default_model"]
    upload_cfg = config.get("upload", {})
    return {
        "embeddingProvider": provider,
        "groqModel": model_name,
        "embeddingModel": make_provider(provider, config["embedding"], os.getenv("EMBEDDING_MODEL")).model,
        "availableProviders": list(PROVIDERS),
        "availableModels": list(config["llm"].get("available_models", [])),
        "maxUploadBytes": int(upload_cfg.get("max_bytes", 10 * 1024 * 1024)),
        "allowedExtensions": list(upload_cfg.get("allowed_extensions", [])),
    }
