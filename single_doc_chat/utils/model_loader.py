import os
from typing import Optional

from dotenv import load_dotenv
from langchain_groq import ChatGroq
from pinecone import Pinecone

from single_doc_chat.exception.custom_exception import ConfigurationError
from single_doc_chat.logger import GLOBAL_LOGGER as log
from single_doc_chat.src.embeddings.provider_selector import (
    EmbeddingSelection,
    normalize_provider_name,
    select_embedding_provider,
)
from single_doc_chat.utils.config_loader import load_config


class ApiKeyManager:
    REQUIRED = ["GROQ_API_KEY", "PINECONE_API_KEY"]
    OPTIONAL = ["OPENAI_API_KEY"]

    def __init__(self, embedding_provider: Optional[str] = None):
        load_dotenv()
        self.keys = {}
        missing = []

        # Iterate over the required keys:
        for k in self.REQUIRED:
            # get the value of the specific key from Env variables:
            if val := os.getenv(k):
                self.keys[k] = val
                log.info("Loaded %s from env", k)
            else:
                log.error("Missing required API key: %s", k)
                missing.append(k)

        for k in self.OPTIONAL:
            if val := os.getenv(k):
                self.keys[k] = val

        # OpenAI embeddings need their own key on top of the always-required ones
        if embedding_provider == "openai" and "OPENAI_API_KEY" not in self.keys:
            missing.append("OPENAI_API_KEY (required for OpenAI embeddings)")

        if missing:
            raise ConfigurationError(
                f"Missing required environment variables: {', '.join(missing)}"
            )

    def get(self, key: str) -> str:
        return self.keys[key]


class ModelLoader:
    """
    Responsible for:
    - Validating credentials
    - Loading the Groq chat model
    - Selecting embeddings per provider
    - Creating the Pinecone control-plane client
    """

    def __init__(self, config: Optional[dict] = None):
        # Load configuration
        self.config = config if config is not None else load_config()
        log.info("YAML config loaded | sections=%s", list(self.config.keys()))

        self.default_provider = normalize_provider_name(
            os.getenv("EMBEDDING_PROVIDER")
            or self.config["embedding"].get("default_provider", "openai")
        )
        self.default_model = os.getenv("GROQ_MODEL") or self.config["llm"]["default_model"]

        # Validate env credentials against the default provider
        self.api_key_mgr = ApiKeyManager(embedding_provider=self.default_provider)
        self.api_keys = self.api_key_mgr.keys

    def load_embeddings(self, provider: Optional[str] = None) -> EmbeddingSelection:
        """
        Select and build the embedding backend for `provider` (default: EMBEDDING_PROVIDER).
        """
        provider = normalize_provider_name(provider or self.default_provider)
        override = os.getenv("EMBEDDING_MODEL") if provider == self.default_provider else None
        return select_embedding_provider(
            provider,
            self.config["embedding"],
            self.api_keys,
            model_override=override,
        )

    def load_llm(self, model_name: Optional[str] = None) -> ChatGroq:
        """
        Load and return the Groq chat model.
        Args:
            model_name: Groq model id, defaults to GROQ_MODEL / config default

        Returns:
            Configured ChatGroq instance
        """
        llm_config = self.config["llm"]
        model = model_name or self.default_model

        log.info("Loading LLM | model=%s", model)

        return ChatGroq(
            model=model,
            api_key=self.api_keys.get("GROQ_API_KEY"),
            temperature=llm_config.get("temperature", 0.1),
        )

    def load_index_client(self) -> Pinecone:
        log.info("Creating Pinecone client")
        return Pinecone(api_key=self.api_keys.get("PINECONE_API_KEY"))
