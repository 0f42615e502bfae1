import pytest
from langchain_core.embeddings import DeterministicFakeEmbedding

from single_doc_chat.exception.custom_exception import ConfigurationError, ValidationError
from single_doc_chat.src.embeddings import provider_selector
from single_doc_chat.src.embeddings.provider_selector import (
    make_provider,
    normalize_provider_name,
    select_embedding_provider,
)
from single_doc_chat.utils.config_loader import load_config


@pytest.fixture
def embedding_cfg():
    return load_config()["embedding"]


@pytest.mark.parametrize(
    "name,expected",
    [("openai", "openai"), (" OpenAI ", "openai"), ("hf", "huggingface"), ("HuggingFace", "huggingface"),
     ("fake", "simple"), ("simple", "simple")],
)
def test_provider_names_and_aliases(name, expected):
    assert normalize_provider_name(name) == expected


@pytest.mark.parametrize("name", ["cohere", "", None])
def test_unknown_provider_is_rejected(name):
    with pytest.raises(ValidationError, match="Unsupported embedding provider"):
        normalize_provider_name(name)


@pytest.mark.parametrize(
    "name,dimension,suffix",
    [("openai", 1536, "openai"), ("huggingface", 384, "hf"), ("simple", 384, "simple")],
)
def test_provider_dimensions(embedding_cfg, name, dimension, suffix):
    provider = make_provider(name, embedding_cfg)
    assert provider.dimension == dimension
    assert provider.index_suffix == suffix


def test_model_override(embedding_cfg):
    assert make_provider("simple", embedding_cfg, "custom-model").model == "custom-model"


def test_openai_requires_key(embedding_cfg):
    with pytest.raises(ConfigurationError, match="OPENAI_API_KEY"):
        select_embedding_provider("openai", embedding_cfg, {})


def test_openai_with_key(embedding_cfg):
    selection = select_embedding_provider("openai", embedding_cfg, {"OPENAI_API_KEY": "sk-test"})
    assert selection.config.provider == "openai"
    assert selection.config.dimension == 1536
    assert selection.fallback_from is None


def test_huggingface_falls_back_to_stub(embedding_cfg, monkeypatch):
    def broken(self, api_keys):
        raise ImportError("No module named 'sentence_transformers'")

    monkeypatch.setattr(provider_selector.HuggingFaceEmbeddingProvider, "build", broken)
    selection = select_embedding_provider("hf", embedding_cfg, {})

    assert selection.fallback_from == "huggingface"
    assert selection.config.provider == "huggingface"
    assert selection.config.index_suffix == "hf"
    assert selection.config.dimension == 384
    assert isinstance(selection.embeddings, DeterministicFakeEmbedding)
    assert len(selection.embeddings.embed_query("hello")) == 384


def test_other_build_failures_are_configuration_errors(embedding_cfg, monkeypatch):
    def broken(self, api_keys):
        raise RuntimeError("boom")

    monkeypatch.setattr(provider_selector.SimpleEmbeddingProvider, "build", broken)
    with pytest.raises(ConfigurationError, match="boom"):
        select_embedding_provider("simple", embedding_cfg, {})


def test_simple_embeddings_are_deterministic(embedding_cfg):
    selection = select_embedding_provider("simple", embedding_cfg, {})
    first = selection.embeddings.embed_query("Connection timeout at 10:00")
    second = selection.embeddings.embed_query("Connection timeout at 10:00")

    assert first == second
    assert len(first) == selection.config.dimension
