"""Backend selection, done once when the memory manager is built."""

from semantic_memory.core.base import ServiceErrorDetails
from semantic_memory.core.config import Settings, settings
from semantic_memory.core.errors import ConfigurationError
from semantic_memory.core.logging import get_logger
from semantic_memory.infrastructure.backends.base import VectorBackend
from semantic_memory.infrastructure.backends.in_process import InProcessVectorBackend
from semantic_memory.infrastructure.backends.meilisearch import MeilisearchVectorBackend
from semantic_memory.infrastructure.backends.neo4j import Neo4jVectorBackend
from semantic_memory.infrastructure.backends.stores import InMemoryRecordStore, SqliteRecordStore
from semantic_memory.infrastructure.neo4j import create_neo4j_driver

logger = get_logger(__name__)


def create_backend(dimensions: int, config: Settings | None = None) -> VectorBackend:
    """Build the backend named by ``config.vector_backend``.

    Args:
        dimensions: Vector size of the configured embedding provider
        config: Settings to read (defaults to the module settings)

    Raises:
        ConfigurationError: If the backend name is not supported
    """
    config = config or settings

    if config.vector_backend == "neo4j":
        backend: VectorBackend = Neo4jVectorBackend(create_neo4j_driver(config))
    elif config.vector_backend == "meilisearch":
        backend = MeilisearchVectorBackend(
            dimensions=dimensions,
            host=config.meilisearch_host,
            api_key=config.meilisearch_api_key.get_secret_value() if config.meilisearch_api_key else None,
            index_prefix=config.meilisearch_index_prefix,
            embedder=config.meilisearch_embedder,
            task_timeout=config.meilisearch_task_timeout,
        )
    elif config.vector_backend == "in_process":
        store = SqliteRecordStore(config.sqlite_path) if config.sqlite_path else InMemoryRecordStore()
        backend = InProcessVectorBackend(store)
    else:
        raise ConfigurationError(
            message=f"Unsupported vector backend: {config.vector_backend}",
            details=ServiceErrorDetails(
                source="backend_factory",
                operation="create_backend",
                service_name=str(config.vector_backend),
            ),
        )

    logger.info(f"Using {backend.name} vector backend")
    return backend
