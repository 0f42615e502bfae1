from __future__ import annotations

from typing import Any, Callable, List, Optional

from langchain_core.documents import Document
from langchain_core.embeddings import Embeddings
from langchain_core.vectorstores import VectorStore
from langchain_pinecone import PineconeVectorStore
from pinecone import ServerlessSpec

from single_doc_chat.exception.custom_exception import (
    DocumentChatException,
    IndexUnavailableError,
    PollTimeout,
)
from single_doc_chat.logger import GLOBAL_LOGGER as log
from single_doc_chat.utils.polling import poll_until

DEFAULT_BASE_NAME = "log-interpreter-index"


def index_name_for(
    index_suffix: str,
    base_name: str = DEFAULT_BASE_NAME,
    override: Optional[str] = None,
) -> str:
    """
    Provider-qualified index name: `<base>-<suffix>`.

    An explicit override (anything other than the default base name) is used
    as-is, which lets an operator pin every provider to one shared index.
    """
    if override and override != DEFAULT_BASE_NAME:
        return override
    return f"{base_name}-{index_suffix}" if index_suffix else base_name


class VectorIndexManager:
    """
    Owns the lifecycle of one remote Pinecone index:
    - ensure_exists: create on first use, then wait until it is queryable
    - recreate: delete + wait for deletion + create + wait for readiness
    - add_documents: embed and upsert chunks in bounded batches
    - query: top-k similarity search returning chunk text + metadata

    Every remote failure surfaces as IndexUnavailableError (PollTimeout when a
    poll loop runs out of attempts); nothing is swallowed here.
    """

    def __init__(
        self,
        client: Any,
        embeddings: Embeddings,
        index_name: str,
        dimension: int,
        index_cfg: Optional[dict] = None,
        vector_store_factory: Optional[Callable[[str, Embeddings], VectorStore]] = None,
    ):
        cfg = index_cfg or {}
        self.client = client
        self.embeddings = embeddings
        self.index_name = index_name
        self.dimension = int(dimension)
        self.metric = cfg.get("metric", "cosine")
        self.cloud = cfg.get("cloud", "aws")
        self.region = cfg.get("region", "us-east-1")
        self.delete_attempts = int(cfg.get("delete_poll_attempts", 30))
        self.create_attempts = int(cfg.get("create_poll_attempts", 60))
        self.poll_interval = float(cfg.get("poll_interval_seconds", 1.0))
        self.poll_backoff = float(cfg.get("poll_backoff", 1.0))
        self._vector_store_factory = vector_store_factory or self._pinecone_store
        self._store: Optional[VectorStore] = None

    # ---------------------------------------------------------------
    # Helpers
    # ---------------------------------------------------------------
    def _pinecone_store(self, name: str, embeddings: Embeddings) -> VectorStore:
        return PineconeVectorStore(index=self.client.Index(name), embedding=embeddings, text_key="text")

    def _remote(self, what: str, func, *args, **kwargs):
        try:
            return func(*args, **kwargs)
        except DocumentChatException:
            raise
        except Exception as e:
            log.error("Vector index call failed | op=%s | index=%s | error=%s", what, self.index_name, str(e))
            raise IndexUnavailableError(f"Vector index {what} failed for '{self.index_name}': {e}", e) from e

    def _vector_store(self) -> VectorStore:
        if self._store is None:
            self._store = self._remote(
                "open", self._vector_store_factory, self.index_name, self.embeddings
            )
        return self._store

    @staticmethod
    def _is_ready(description: Any) -> bool:
        status = getattr(description, "status", None)
        if status is None and isinstance(description, dict):
            status = description.get("status")
        if isinstance(status, dict):
            return bool(status.get("ready"))
        return bool(getattr(status, "ready", False))

    # ---------------------------------------------------------------
    # Control plane
    # ---------------------------------------------------------------
    def list_index_names(self) -> List[str]:
        return list(self._remote("list", lambda: self.client.list_indexes().names()))

    def exists(self, name: Optional[str] = None) -> bool:
        return (name or self.index_name) in self.list_index_names()

    def is_ready(self, name: Optional[str] = None) -> bool:
        description = self._remote("describe", self.client.describe_index, name or self.index_name)
        return self._is_ready(description)

    def wait_until_ready(self, name: Optional[str] = None) -> None:
        name = name or self.index_name
        result = poll_until(
            lambda: self.is_ready(name),
            max_attempts=self.create_attempts,
            interval=self.poll_interval,
            backoff=self.poll_backoff,
            description=f"index {name} ready",
        )
        if result.timed_out:
            raise PollTimeout(
                f"Index '{name}' was not ready after {result.attempts} checks ({result.waited_seconds:.0f}s)"
            )
        log.info("Index ready | index=%s | checks=%d", name, result.attempts)

    def create(self, name: Optional[str] = None, dimension: Optional[int] = None) -> None:
        name = name or self.index_name
        dimension = int(dimension or self.dimension)
        log.info(
            "Creating Pinecone index | index=%s | dimension=%d | metric=%s",
            name,
            dimension,
            self.metric,
        )
        self._remote(
            "create",
            self.client.create_index,
            name=name,
            dimension=dimension,
            metric=self.metric,
            spec=ServerlessSpec(cloud=self.cloud, region=self.region),
            timeout=-1,
        )
        self.wait_until_ready(name)

    def ensure_exists(self, name: Optional[str] = None, dimension: Optional[int] = None) -> bool:
        """
        Create the index if it is missing, otherwise wait until the existing one is ready.
        Returns True when a new index was created.
        """
        name = name or self.index_name
        if self.exists(name):
            log.info("Using existing index | index=%s", name)
            # a create that timed out earlier leaves an index that is not queryable yet
            self.wait_until_ready(name)
            return False
        self.create(name, dimension)
        return True

    def delete(self, name: Optional[str] = None) -> bool:
        """
        Delete the index if present and wait until it is gone. Returns False if it did not exist.
        """
        name = name or self.index_name
        if not self.exists(name):
            log.info("Index not present, nothing to delete | index=%s", name)
            return False

        log.info("Deleting Pinecone index | index=%s", name)
        self._remote("delete", self.client.delete_index, name, timeout=-1)
        self._store = None

        result = poll_until(
            lambda: not self.exists(name),
            max_attempts=self.delete_attempts,
            interval=self.poll_interval,
            backoff=self.poll_backoff,
            description=f"index {name} deleted",
        )
        if result.timed_out:
            raise PollTimeout(
                f"Index '{name}' still present after {result.attempts} checks ({result.waited_seconds:.0f}s)"
            )
        log.info("Index deleted | index=%s | checks=%d", name, result.attempts)
        return True

    def recreate(self, name: Optional[str] = None, dimension: Optional[int] = None) -> None:
        """Wipe every vector by dropping the index and creating a fresh one."""
        name = name or self.index_name
        self.delete(name)
        self.create(name, dimension)
        self._store = None
        log.info("Index recreated | index=%s | dimension=%d", name, int(dimension or self.dimension))

    # ---------------------------------------------------------------
    # Data plane
    # ---------------------------------------------------------------
    def add_documents(
        self,
        chunks: List[Document],
        batch_size: int = 50,
        on_batch: Optional[Callable[[int, int], None]] = None,
    ) -> int:
        """
        Embed and upsert `chunks` `batch_size` at a time.
        `on_batch(done, total)` is called after each batch.
        """
        store = self._vector_store()
        total_batches = (len(chunks) + batch_size - 1) // batch_size

        for start in range(0, len(chunks), batch_size):
            batch = chunks[start:start + batch_size]
            batch_number = start // batch_size + 1
            log.info(
                "Processing batch %d/%d (%d chunks) | index=%s",
                batch_number,
                total_batches,
                len(batch),
                self.index_name,
            )
            ids = [f"chunk-{d.metadata.get('chunk_index', start + i)}" for i, d in enumerate(batch)]
            self._remote("upsert", store.add_documents, batch, ids=ids)
            if on_batch:
                on_batch(batch_number, total_batches)

        log.info("Chunks loaded | index=%s | count=%d", self.index_name, len(chunks))
        return len(chunks)

    def query(self, text: str, k: int = 20) -> List[Document]:
        store = self._vector_store()
        docs = self._remote("query", store.similarity_search, text, k=k)
        log.info("Similarity search | index=%s | k=%d | hits=%d", self.index_name, k, len(docs))
        return docs
