"""Async Neo4j driver wrapper."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from neo4j import AsyncDriver, AsyncGraphDatabase, AsyncSession

from semantic_memory.core.config import Settings, settings
from semantic_memory.core.logging import get_logger

logger = get_logger(__name__)


class Neo4jDriver:
    """Lazily connecting async Neo4j driver."""

    def __init__(self, uri: str, username: str, password: str, database: str | None = None):
        self.uri = uri
        self.username = username
        self.password = password
        self.database = database
        self._driver: AsyncDriver | None = None

    async def connect(self) -> None:
        """Connect to Neo4j."""
        if self._driver is None:
            self._driver = AsyncGraphDatabase.driver(
                self.uri,
                auth=(self.username, self.password),
            )
            await self._driver.verify_connectivity()
            logger.info("Connected to Neo4j", uri=self.uri)

    async def verify_connectivity(self) -> None:
        if self._driver is None:
            await self.connect()
        else:
            await self._driver.verify_connectivity()

    async def close(self) -> None:
        """Close the connection."""
        if self._driver:
            await self._driver.close()
            self._driver = None
            logger.info("Closed Neo4j connection")

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get a Neo4j session, connecting on first use."""
        if not self._driver:
            await self.connect()
        assert self._driver is not None

        async with self._driver.session(database=self.database) as session:
            yield session


def create_neo4j_driver(config: Settings | None = None) -> Neo4jDriver:
    """Driver for the configured Neo4j instance; connects on first session."""
    config = config or settings
    return Neo4jDriver(
        uri=config.neo4j_uri,
        username=config.neo4j_user,
        password=config.neo4j_password.get_secret_value(),
    )
