"""
In-memory stand-ins for Meilisearch and Neo4j.

FakeMeilisearch answers the REST endpoints the backend uses through an
``httpx.MockTransport``. FakeNeo4jSession interprets the handful of Cypher
statements issued by the Neo4j backend.
"""

import itertools
import json
import math
import re
from contextlib import asynccontextmanager
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import httpx


def cosine(a: list[float], b: list[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


# ---------------------------------------------------------------------------
# Meilisearch
# ---------------------------------------------------------------------------

def parse_filter(expression: str) -> dict[str, Any]:
    """Parse ``field = value AND ...`` as produced by build_filter."""
    conditions: dict[str, Any] = {}
    for clause in expression.split(" AND "):
        field, raw = clause.split(" = ", 1)
        conditions[field] = json.loads(raw)
    return conditions


class FakeMeilisearch:
    """Single-node Meilisearch double. Every task succeeds immediately
    unless ``fail_next_task`` is set."""

    def __init__(self, embedder: str = "default"):
        self.embedder = embedder
        self.indexes: dict[str, dict[str, Any]] = {}
        self.documents: dict[str, dict[str, dict[str, Any]]] = {}
        self.tasks: dict[int, dict[str, Any]] = {}
        self.requests: list[httpx.Request] = []
        self.fail_next_task = False
        self.fail_status: int | None = None
        # Leave tasks "processing" forever
        self.stall_tasks = False
        self._task_ids = itertools.count(1)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport())

    def _task(self, details: dict[str, Any] | None = None) -> httpx.Response:
        uid = next(self._task_ids)
        if self.stall_tasks:
            self.tasks[uid] = {"uid": uid, "status": "processing"}
        elif self.fail_next_task:
            self.fail_next_task = False
            self.tasks[uid] = {"uid": uid, "status": "failed", "error": {"message": "invalid document"}}
        else:
            self.tasks[uid] = {"uid": uid, "status": "succeeded", "details": details or {}}
        return httpx.Response(202, json={"taskUid": uid, "status": "enqueued"})

    def _matching(self, index: str, expression: str | None) -> list[dict[str, Any]]:
        conditions = parse_filter(expression) if expression else {}
        return [
            doc
            for doc in self.documents.get(index, {}).values()
            if all(doc.get(field) == value for field, value in conditions.items())
        ]

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_status is not None:
            return httpx.Response(self.fail_status, json={"message": "internal error"})

        path = request.url.path
        method = request.method
        body = json.loads(request.content) if request.content else None

        if path == "/health":
            return httpx.Response(200, json={"status": "available"})

        if method == "GET" and (match := re.fullmatch(r"/tasks/(\d+)", path)):
            return httpx.Response(200, json=self.tasks[int(match.group(1))])

        if method == "POST" and path == "/indexes":
            self.indexes[body["uid"]] = {"primaryKey": body["primaryKey"], "settings": {}}
            self.documents.setdefault(body["uid"], {})
            return self._task()

        match = re.fullmatch(r"/indexes/([^/]+)(/.*)?", path)
        if not match:
            return httpx.Response(404, json={"code": "not_found"})
        index, rest = match.group(1), match.group(2) or ""
        if index not in self.indexes:
            return httpx.Response(404, json={"code": "index_not_found"})
        primary_key = self.indexes[index]["primaryKey"]

        if method == "GET" and rest == "":
            return httpx.Response(200, json={"uid": index, "primaryKey": primary_key})

        if method == "PATCH" and rest == "/settings":
            self.indexes[index]["settings"].update(body)
            return self._task()

        if method == "POST" and rest == "/documents":
            for document in body:
                self.documents[index][document[primary_key]] = document
            return self._task({"receivedDocuments": len(body)})

        if method == "GET" and (doc_match := re.fullmatch(r"/documents/([^/]+)", rest)):
            document = self.documents[index].get(doc_match.group(1))
            if document is None:
                return httpx.Response(404, json={"code": "document_not_found"})
            return httpx.Response(200, json={k: v for k, v in document.items() if k != "_vectors"})

        if method == "POST" and rest == "/documents/delete":
            doomed = self._matching(index, body["filter"])
            for document in doomed:
                del self.documents[index][document[primary_key]]
            return self._task({"deletedDocuments": len(doomed)})

        if method == "POST" and rest == "/documents/fetch":
            matching = self._matching(index, body.get("filter"))
            offset, limit = body.get("offset", 0), body.get("limit", 20)
            fields = body.get("fields")
            page = [
                {k: v for k, v in doc.items() if fields is None or k in fields}
                for doc in matching[offset : offset + limit]
            ]
            return httpx.Response(
                200, json={"results": page, "offset": offset, "limit": limit, "total": len(matching)}
            )

        if method == "POST" and rest == "/search":
            query_vector = body["vector"]
            scored = []
            for doc in self._matching(index, body.get("filter")):
                similarity = cosine(doc["_vectors"][body["hybrid"]["embedder"]], query_vector)
                hit = {k: v for k, v in doc.items() if k != "_vectors"}
                # Engine scores are rescaled, not raw cosine
                hit["_rankingScore"] = (1 + similarity) / 2
                scored.append(hit)
            scored.sort(key=lambda hit: -hit["_rankingScore"])
            return httpx.Response(200, json={"hits": scored[: body["limit"]]})

        return httpx.Response(404, json={"code": "not_found"})


# ---------------------------------------------------------------------------
# Neo4j
# ---------------------------------------------------------------------------

class FakeResult:
    def __init__(self, rows: list[dict[str, Any]]):
        self._rows = rows

    async def data(self) -> list[dict[str, Any]]:
        return self._rows


class FakeNeo4jSession:
    """Interprets the VectorMemory statements against a dict of nodes."""

    def __init__(self) -> None:
        self.nodes: dict[tuple[str, str], dict[str, Any]] = {}
        self.queries: list[tuple[str, dict[str, Any]]] = []

    async def run(self, query: str, params: dict[str, Any] | None = None) -> FakeResult:
        params = params or {}
        self.queries.append((query, params))

        if "CREATE CONSTRAINT" in query or "CREATE INDEX" in query:
            return FakeResult([])

        if "MERGE" in query:
            key = (params["owner"], params["content_hash"])
            if key not in self.nodes:
                self.nodes[key] = dict(params["properties"])
            return FakeResult([{"m": dict(self.nodes[key])}])

        if "DETACH DELETE" in query:
            doomed = [
                key
                for key, node in self.nodes.items()
                if node["owner"] == params["owner"]
                and node["namespace"] == params["namespace"]
                and (params["source"] is None or node.get("source") == params["source"])
            ]
            for key in doomed:
                del self.nodes[key]
            return FakeResult([{"deleted": len(doomed)}])

        if "gds.similarity.cosine" in query:
            rows = []
            for node in self._scope(params):
                if node["embedding_dimensions"] != len(params["query_vector"]):
                    continue
                similarity = cosine(node["embedding_vector"], params["query_vector"])
                if similarity >= params["threshold"]:
                    rows.append({"m": dict(node), "similarity": similarity})
            rows.sort(key=lambda row: (-row["similarity"], row["m"]["id"]))
            return FakeResult(rows[: params["limit"]])

        if "total_memories" in query:
            nodes = list(self._scope(params))
            return FakeResult(
                [
                    {
                        "total_memories": len(nodes),
                        "total_tokens": sum(n["token_count"] for n in nodes),
                        "providers": [n["embedding_provider"] for n in nodes],
                        "sources": [n["source"] for n in nodes if n.get("source") is not None],
                    }
                ]
            )

        if "content_hash: $content_hash" in query:
            node = self.nodes.get((params["owner"], params["content_hash"]))
            return FakeResult([{"m": dict(node)}] if node else [])

        raise AssertionError(f"Unexpected query: {query}")

    def _scope(self, params: dict[str, Any]):
        return (
            node
            for node in self.nodes.values()
            if node["owner"] == params["owner"] and node["namespace"] == params["namespace"]
        )


class FakeNeo4jDriver:
    """Driver double handing out one shared session."""

    def __init__(self, session: Any):
        self._session = session
        self.verify_connectivity = AsyncMock()
        self.close = AsyncMock()

    @asynccontextmanager
    async def session(self):
        yield self._session


def mock_session(rows: list[dict[str, Any]] | None = None) -> MagicMock:
    """Session whose every run() yields ``rows``."""
    session = MagicMock()
    session.run = AsyncMock(return_value=FakeResult(rows or []))
    return session
