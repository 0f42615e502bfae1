import copy
from types import SimpleNamespace

import pytest
from langchain_core.language_models import FakeListChatModel
from langchain_core.vectorstores import InMemoryVectorStore

from orchestrator.pipeline_manager import PipelineManager
from single_doc_chat.utils.config_loader import load_config
from single_doc_chat.utils.model_loader import ModelLoader

ANSWER = "There was a connection timeout error at 10:00."


class FakeIndexList:
    def __init__(self, names):
        self._names = list(names)

    def names(self):
        return list(self._names)


class FakePineconeClient:
    """
    In-process stand-in for the Pinecone control plane.

    - ready_after: describe_index calls before a new index reports ready (None = never)
    - delete_lag: list_indexes calls a deleted index keeps showing up for (None = forever)
    - fail_on: operation names that raise, e.g. {"delete"}
    Each index is backed by its own InMemoryVectorStore, dropped on delete.
    """

    def __init__(self, ready_after=0, delete_lag=0, fail_on=()):
        self.ready_after = ready_after
        self.delete_lag = delete_lag
        self.fail_on = set(fail_on)
        self.indexes = {}
        self.stores = {}
        self._pending_delete = {}
        self.calls = []

    def _maybe_fail(self, op):
        self.calls.append(op)
        if op in self.fail_on:
            raise RuntimeError(f"pinecone {op} unavailable")

    def list_indexes(self):
        self._maybe_fail("list")
        for name in list(self._pending_delete):
            remaining = self._pending_delete[name]
            if remaining is None:
                continue
            if remaining <= 0:
                del self._pending_delete[name]
                self.indexes.pop(name, None)
            else:
                self._pending_delete[name] = remaining - 1
        return FakeIndexList(self.indexes)

    def create_index(self, name, dimension, metric, spec, timeout=None):
        self._maybe_fail("create")
        self.indexes[name] = {"dimension": dimension, "metric": metric, "checks": 0}

    def describe_index(self, name):
        self._maybe_fail("describe")
        info = self.indexes[name]
        ready = self.ready_after is not None and info["checks"] >= self.ready_after
        info["checks"] += 1
        return SimpleNamespace(name=name, dimension=info["dimension"], status={"ready": ready})

    def delete_index(self, name, timeout=None):
        self._maybe_fail("delete")
        self.stores.pop(name, None)
        if self.delete_lag == 0:
            self.indexes.pop(name, None)
        else:
            self._pending_delete[name] = self.delete_lag

    def vector_store(self, name, embeddings):
        if name not in self.indexes:
            raise RuntimeError(f"index {name} not found")
        if name not in self.stores:
            self.stores[name] = InMemoryVectorStore(embedding=embeddings)
        return self.stores[name]


@pytest.fixture
def test_config():
    config = copy.deepcopy(load_config())
    config["vector_index"]["poll_interval_seconds"] = 0
    config["vector_index"]["delete_poll_attempts"] = 3
    config["vector_index"]["create_poll_attempts"] = 3
    return config


@pytest.fixture
def env(monkeypatch, tmp_path):
    monkeypatch.setenv("GROQ_API_KEY", "test-groq-key")
    monkeypatch.setenv("PINECONE_API_KEY", "test-pinecone-key")
    monkeypatch.setenv("EMBEDDING_PROVIDER", "simple")
    monkeypatch.setenv("UPLOAD_DIR", str(tmp_path / "uploads"))
    for key in (
        "OPENAI_API_KEY",
        "PINECONE_INDEX_NAME",
        "PINECONE_CLOUD",
        "PINECONE_REGION",
        "EMBEDDING_MODEL",
        "GROQ_MODEL",
        "CONFIG_PATH",
    ):
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


@pytest.fixture
def fake_pinecone():
    return FakePineconeClient()


def build_manager(config, client, responses=None):
    return PipelineManager(
        model_loader=ModelLoader(config=config),
        index_client=client,
        vector_store_factory=client.vector_store,
        llm_factory=lambda model: FakeListChatModel(responses=responses or [ANSWER]),
    )


@pytest.fixture
def manager(env, test_config, fake_pinecone):
    return build_manager(test_config, fake_pinecone)
