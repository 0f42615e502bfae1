import pytest

from conftest import FakePineconeClient, build_manager
from orchestrator.pipeline_manager import describe_defaults
from single_doc_chat.exception.custom_exception import ConfigurationError, ValidationError


def test_pipelines_are_cached_per_provider(manager):
    first = manager.get_pipeline()
    assert manager.get_pipeline("simple") is first
    assert manager.get_pipeline("fake") is first
    assert first.provider == "simple"
    assert first.index_manager.index_name == "log-interpreter-index-simple"
    assert first.index_manager.dimension == 384


def test_providers_get_separate_indexes(manager, monkeypatch):
    def broken(self, api_keys):
        raise ImportError("sentence_transformers missing")

    monkeypatch.setattr(
        "single_doc_chat.src.embeddings.provider_selector.HuggingFaceEmbeddingProvider.build", broken
    )
    hf = manager.get_pipeline("hf")

    assert hf.index_manager.index_name == "log-interpreter-index-hf"
    assert hf.fallback_from == "huggingface"
    assert hf.index_manager.index_name != manager.get_pipeline("simple").index_manager.index_name


def test_openai_pipeline_needs_key(manager):
    with pytest.raises(ConfigurationError, match="OPENAI_API_KEY"):
        manager.get_pipeline("openai")


def test_unknown_provider(manager):
    with pytest.raises(ValidationError):
        manager.get_pipeline("cohere")


def test_index_name_override(env, test_config):
    env.setenv("PINECONE_INDEX_NAME", "shared-index")
    manager = build_manager(test_config, FakePineconeClient())

    assert manager.get_pipeline().index_manager.index_name == "shared-index"


def test_region_override(env, test_config):
    env.setenv("PINECONE_REGION", "eu-west-1")
    manager = build_manager(test_config, FakePineconeClient())

    assert manager.get_pipeline().index_manager.region == "eu-west-1"
    assert manager.get_pipeline().index_manager.cloud == "aws"


def test_llms_are_cached_per_model(manager):
    assert manager.get_llm() is manager.get_llm("llama-3.1-8b-instant")
    assert manager.get_llm("gemma2-9b-it") is not manager.get_llm()


def test_query_engine_uses_retriever_settings(manager):
    engine = manager.get_query_engine("simple")
    assert engine.top_k == 20
    assert engine.preview_chars == 200


def test_describe_defaults_without_credentials(env, test_config):
    env.delenv("GROQ_API_KEY")
    env.setenv("GROQ_MODEL", "llama-3.3-70b-versatile")
    body = describe_defaults(test_config)

    assert body["embeddingProvider"] == "simple"
    assert body["groqModel"] == "llama-3.3-70b-versatile"
    assert body["embeddingModel"] == "deterministic-fake"
    assert "gemma2-9b-it" in body["availableModels"]
