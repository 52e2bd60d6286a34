from .driver import Neo4jDriver, create_neo4j_driver
from .queries import VectorMemoryQueries

__all__ = ["Neo4jDriver", "VectorMemoryQueries", "create_neo4j_driver"]
