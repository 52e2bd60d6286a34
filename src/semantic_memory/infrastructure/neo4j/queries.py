"""Cypher for vector memories.

All Cypher used by the Neo4j backend lives here. Each builder returns a
``(query, params)`` tuple.
"""

from typing import Any, LiteralString


class VectorMemoryQueries:
    """All vector memory queries in one place."""

    @staticmethod
    def schema() -> list[LiteralString]:
        """Idempotent constraint and index statements."""
        return [
            "CREATE CONSTRAINT vector_memory_owner_hash IF NOT EXISTS "
            "FOR (m:VectorMemory) REQUIRE (m.owner, m.content_hash) IS UNIQUE",
            "CREATE INDEX vector_memory_owner_namespace IF NOT EXISTS "
            "FOR (m:VectorMemory) ON (m.owner, m.namespace)",
        ]

    @staticmethod
    def store(properties: dict[str, Any]) -> tuple[LiteralString, dict[str, Any]]:
        """Create the node unless one with the same owner/hash already exists.

        Returns the surviving node either way.
        """
        query: LiteralString = """
        MERGE (m:VectorMemory {owner: $owner, content_hash: $content_hash})
        ON CREATE SET m += $properties
        RETURN m
        """
        return query, {
            "owner": properties["owner"],
            "content_hash": properties["content_hash"],
            "properties": properties,
        }

    @staticmethod
    def find_by_content_hash(owner: str, content_hash: str) -> tuple[LiteralString, dict[str, Any]]:
        query: LiteralString = """
        MATCH (m:VectorMemory {owner: $owner, content_hash: $content_hash})
        RETURN m
        LIMIT 1
        """
        return query, {"owner": owner, "content_hash": content_hash}

    @staticmethod
    def similarity_search(
        owner: str,
        namespace: str,
        query_vector: list[float],
        limit: int,
        threshold: float,
    ) -> tuple[LiteralString, dict[str, Any]]:
        """Server-side cosine ranking over one owner/namespace."""
        query: LiteralString = """
        MATCH (m:VectorMemory {owner: $owner, namespace: $namespace})
        WHERE m.embedding_dimensions = size($query_vector)
        WITH m, gds.similarity.cosine(m.embedding_vector, $query_vector) AS similarity
        WHERE similarity >= $threshold
        RETURN m, similarity
        ORDER BY similarity DESC, m.id ASC
        LIMIT $limit
        """
        return query, {
            "owner": owner,
            "namespace": namespace,
            "query_vector": query_vector,
            "limit": limit,
            "threshold": threshold,
        }

    @staticmethod
    def delete(owner: str, namespace: str, source: str | None = None) -> tuple[LiteralString, dict[str, Any]]:
        query: LiteralString = """
        MATCH (m:VectorMemory {owner: $owner, namespace: $namespace})
        WHERE $source IS NULL OR m.source = $source
        DETACH DELETE m
        RETURN count(m) AS deleted
        """
        return query, {"owner": owner, "namespace": namespace, "source": source}

    @staticmethod
    def statistics(owner: str, namespace: str) -> tuple[LiteralString, dict[str, Any]]:
        query: LiteralString = """
        MATCH (m:VectorMemory {owner: $owner, namespace: $namespace})
        RETURN count(m) AS total_memories,
               coalesce(sum(m.token_count), 0) AS total_tokens,
               collect(m.embedding_provider) AS providers,
               collect(m.source) AS sources
        """
        return query, {"owner": owner, "namespace": namespace}
