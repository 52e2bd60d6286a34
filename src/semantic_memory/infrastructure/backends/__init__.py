"""Vector backend strategies."""

from .base import VectorBackend
from .factory import create_backend
from .in_process import InProcessVectorBackend
from .meilisearch import MeilisearchVectorBackend
from .neo4j import Neo4jVectorBackend
from .stores import InMemoryRecordStore, RecordStore, SqliteRecordStore

__all__ = [
    "InMemoryRecordStore",
    "InProcessVectorBackend",
    "MeilisearchVectorBackend",
    "Neo4jVectorBackend",
    "RecordStore",
    "SqliteRecordStore",
    "VectorBackend",
    "create_backend",
]
