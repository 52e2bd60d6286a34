"""Configuration management."""

from typing import Literal

from pydantic import BaseModel, Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CONTEXT_TEMPLATE = "Based on the following context:\n{context}\n\nAnswer this question: {query}"

ChunkingStrategy = Literal["sentence", "paragraph", "fixed"]
BackendName = Literal["neo4j", "meilisearch", "in_process"]
ProviderName = Literal["voyage", "openai", "ollama"]


class ChunkingConfig(BaseModel):
    """How documents are split before embedding."""

    strategy: ChunkingStrategy = Field(default="sentence", description="Chunk boundary strategy")
    chunk_size: int = Field(default=1000, gt=0, description="Maximum characters per chunk")
    overlap: int = Field(default=200, ge=0, description="Characters shared between adjacent chunks")

    @model_validator(mode="after")
    def _overlap_below_size(self) -> "ChunkingConfig":
        if self.overlap >= self.chunk_size:
            raise ValueError("overlap must be smaller than chunk_size")
        return self


class RagConfig(BaseModel):
    """Defaults for retrieval-augmented context assembly."""

    max_context_length: int = Field(default=4000, gt=0)
    include_metadata: bool = True
    context_template: str | None = Field(
        default=DEFAULT_CONTEXT_TEMPLATE,
        description="Template with {context} and {query} placeholders; None disables wrapping",
    )


class SearchConfig(BaseModel):
    """Defaults applied when a search does not specify them."""

    default_limit: int = Field(default=5, gt=0)
    similarity_threshold: float = Field(default=0.7, ge=-1.0, le=1.0)


class Settings(BaseSettings):
    # Backend selection
    vector_backend: BackendName = "in_process"
    default_namespace: str = "default"

    chunking: ChunkingConfig = Field(default_factory=ChunkingConfig)
    rag: RagConfig = Field(default_factory=RagConfig)
    search: SearchConfig = Field(default_factory=SearchConfig)

    # Embedding providers
    embedding_provider: ProviderName = "voyage"
    voyage_api_key: SecretStr = SecretStr("")
    voyage_model: str = "voyage-3-large"
    openai_api_key: SecretStr = SecretStr("")
    openai_base_url: str = "https://api.openai.com/v1"
    openai_embedding_model: str = "text-embedding-3-small"
    ollama_url: str = "http://localhost:11434"
    ollama_embedding_model: str = "nomic-embed-text"
    embedding_timeout: float = 60.0
    embedding_dimensions: dict[str, int] = Field(
        default_factory=lambda: {
            # Voyage
            "voyage-3-large": 1024,
            "voyage-3": 1024,
            "voyage-code-2": 1536,
            "voyage-large-2": 1536,
            # OpenAI
            "text-embedding-3-small": 1536,
            "text-embedding-3-large": 3072,
            "text-embedding-ada-002": 1536,
            # Ollama
            "nomic-embed-text": 768,
            "mxbai-embed-large": 1024,
            "all-minilm": 384,
        }
    )

    # Neo4j
    neo4j_uri: str = "bolt://localhost:7687"
    neo4j_user: str = "neo4j"
    neo4j_password: SecretStr = SecretStr("password")

    # Meilisearch
    meilisearch_host: str = "http://localhost:7700"
    meilisearch_api_key: SecretStr | None = None
    meilisearch_index_prefix: str = "agent_vectors_"
    meilisearch_embedder: str = "default"
    meilisearch_task_timeout: float = 10.0

    # In-process fallback; None keeps records in memory only
    sqlite_path: str | None = None

    # App config
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        env_nested_delimiter="__",  # Allows CHUNKING__CHUNK_SIZE=500
    )

    def dimensions_for(self, model: str, default: int) -> int:
        """Known vector size for an embedding model."""
        return self.embedding_dimensions.get(model, default)


settings = Settings()
