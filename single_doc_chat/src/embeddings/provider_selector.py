from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Type

from langchain_core.embeddings import DeterministicFakeEmbedding, Embeddings
from langchain_openai import OpenAIEmbeddings

from single_doc_chat.exception.custom_exception import ConfigurationError, ValidationError
from single_doc_chat.logger import GLOBAL_LOGGER as log


@dataclass(frozen=True)
class EmbeddingConfiguration:
    """{provider, model, dimension} of the active embedding backend, plus its index suffix."""

    provider: str
    model: str
    dimension: int
    index_suffix: str


@dataclass
class EmbeddingSelection:
    embeddings: Embeddings
    config: EmbeddingConfiguration
    # name of the provider that failed to load when the stub had to stand in
    fallback_from: Optional[str] = None


class EmbeddingProvider(ABC):
    """
    One embedding backend. Subclasses are the closed set of supported providers;
    add a subclass (and register it in PROVIDERS) to support a new one.
    """

    name: str = ""
    required_key: Optional[str] = None

    def __init__(self, model: str, dimension: int, index_suffix: str):
        self.model = model
        self.dimension = int(dimension)
        self.index_suffix = index_suffix

    @property
    def config(self) -> EmbeddingConfiguration:
        return EmbeddingConfiguration(
            provider=self.name,
            model=self.model,
            dimension=self.dimension,
            index_suffix=self.index_suffix,
        )

    def check_credentials(self, api_keys: Mapping[str, str]) -> None:
        if self.required_key and not api_keys.get(self.required_key):
            raise ConfigurationError(
                f"{self.required_key} is required when using {self.name} embeddings"
            )

    @abstractmethod
    def build(self, api_keys: Mapping[str, str]) -> Embeddings:
        pass


class OpenAIEmbeddingProvider(EmbeddingProvider):
    name = "openai"
    required_key = "OPENAI_API_KEY"

    def build(self, api_keys: Mapping[str, str]) -> Embeddings:
        return OpenAIEmbeddings(model=self.model, api_key=api_keys[self.required_key])


class HuggingFaceEmbeddingProvider(EmbeddingProvider):
    """Local sentence-transformers model, no API key required."""

    name = "huggingface"

    def build(self, api_keys: Mapping[str, str]) -> Embeddings:
        # torch + sentence-transformers are only pulled in when this provider is used
        from langchain_huggingface import HuggingFaceEmbeddings

        return HuggingFaceEmbeddings(model_name=self.model)


class SimpleEmbeddingProvider(EmbeddingProvider):
    """
    Deterministic vectors with no semantic meaning. Offline testing only:
    retrieval quality is whatever the hash happens to give.
    """

    name = "simple"

    def build(self, api_keys: Mapping[str, str]) -> Embeddings:
        return DeterministicFakeEmbedding(size=self.dimension)


PROVIDERS: Dict[str, Type[EmbeddingProvider]] = {
    OpenAIEmbeddingProvider.name: OpenAIEmbeddingProvider,
    HuggingFaceEmbeddingProvider.name: HuggingFaceEmbeddingProvider,
    SimpleEmbeddingProvider.name: SimpleEmbeddingProvider,
}

ALIASES = {"hf": "huggingface", "fake": "simple"}


def normalize_provider_name(name: Optional[str]) -> str:
    """Canonical provider name, or ValidationError for anything unsupported."""
    key = (name or "").strip().lower()
    key = ALIASES.get(key, key)
    if key not in PROVIDERS:
        raise ValidationError(
            f"Unsupported embedding provider: {name}. Supported: {', '.join(PROVIDERS)}"
        )
    return key


def make_provider(
    name: str, embedding_cfg: dict, model_override: Optional[str] = None
) -> EmbeddingProvider:
    """Instantiate the provider class for `name` from the `embedding` config section."""
    key = normalize_provider_name(name)
    settings = embedding_cfg.get("providers", {}).get(key, {})
    return PROVIDERS[key](
        model=model_override or settings.get("model", ""),
        dimension=settings["dimension"],
        index_suffix=settings.get("index_suffix", key),
    )


def select_embedding_provider(
    name: str,
    embedding_cfg: dict,
    api_keys: Mapping[str, str],
    model_override: Optional[str] = None,
) -> EmbeddingSelection:
    """
    Build the embedding backend for `name`.

    - Missing credentials for a credential-requiring provider raise ConfigurationError.
    - If the local HuggingFace model cannot load, the deterministic stub of the
      same dimension is used instead and the selection records the fallback.
    """
    provider = make_provider(name, embedding_cfg, model_override)
    provider.check_credentials(api_keys)

    log.info(
        "Initializing embeddings | provider=%s | model=%s | dimension=%d",
        provider.name,
        provider.model,
        provider.dimension,
    )

    if isinstance(provider, HuggingFaceEmbeddingProvider):
        try:
            return EmbeddingSelection(provider.build(api_keys), provider.config)
        except Exception as e:
            log.warning(
                "HuggingFace embeddings failed, falling back to simple embeddings | error=%s",
                str(e),
            )
            log.warning("To fix: pip install 'single-doc-chat[local]'")
            stub = SimpleEmbeddingProvider(
                model="deterministic-fake",
                dimension=provider.dimension,
                index_suffix=provider.index_suffix,
            )
            # The stub keeps the huggingface identity so the index name (and
            # dimension) stay those of the requested provider.
            config = EmbeddingConfiguration(
                provider=provider.name,
                model=stub.model,
                dimension=stub.dimension,
                index_suffix=provider.index_suffix,
            )
            return EmbeddingSelection(stub.build(api_keys), config, fallback_from=provider.name)

    try:
        return EmbeddingSelection(provider.build(api_keys), provider.config)
    except Exception as e:
        log.error("Failed to initialize embeddings | provider=%s | error=%s", provider.name, str(e))
        raise ConfigurationError(f"Failed to initialize {provider.name} embeddings: {e}", e) from e
