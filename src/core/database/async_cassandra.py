"""Cassandra session for the API, via cassandra-asyncio-driver.

The driver's ``Cluster`` hands out sessions with ``aexecute()``. Connecting
and preparing statements are synchronous; queries are awaited.
"""

from typing import Any

import structlog
from cassandra.auth import PlainTextAuthProvider
from cassandra.policies import DCAwareRoundRobinPolicy, TokenAwarePolicy
from cassandra_asyncio.cluster import Cluster

from src.auth.models import AUTH_TABLES_CQL
from src.config.settings import Settings, get_settings
from src.courses.models import COURSES_TABLES_CQL
from src.enrollments.models import ENROLLMENTS_TABLES_CQL


logger = structlog.get_logger(__name__)

# Table groups created at startup
SCHEMA: dict[str, list[str]] = {
    "auth": AUTH_TABLES_CQL,
    "courses": COURSES_TABLES_CQL,
    "enrollments": ENROLLMENTS_TABLES_CQL,
}


def keyspace_cql(keyspace: str, settings: Settings) -> str:
    """CREATE KEYSPACE statement; replicated across a DC only in production."""
    if settings.is_production:
        replication = (
            "{'class': 'NetworkTopologyStrategy', "
            f"'datacenter1': {settings.cassandra_replication_factor}}}"
        )
    else:
        replication = "{'class': 'SimpleStrategy', 'replication_factor': 1}"
    return (
        f"CREATE KEYSPACE IF NOT EXISTS {keyspace} "
        f"WITH replication = {replication} AND durable_writes = true"
    )


async def create_schema(session: Any, keyspace: str) -> None:
    """Create the keyspace and every table in ``SCHEMA`` (idempotent)."""
    await session.aexecute(keyspace_cql(keyspace, get_settings()))
    for group, statements in SCHEMA.items():
        for template in statements:
            await session.aexecute(template.format(keyspace=keyspace))
        logger.info("tables_ready", group=group, keyspace=keyspace)


class AsyncCassandraConnection:
    """Process-wide cluster and session holder."""

    _cluster: Cluster | None = None
    _session: Any = None

    @classmethod
    def connect(cls) -> Any:
        """Open the session once; later calls return the same one.

        Raises:
            ConnectionError: If no contact point answers.
        """
        if cls._session is not None:
            return cls._session

        settings = get_settings()
        auth_provider = (
            PlainTextAuthProvider(
                username=settings.cassandra_username,
                password=settings.cassandra_password,
            )
            if settings.cassandra_username and settings.cassandra_password
            else None
        )
        cluster = Cluster(
            contact_points=settings.cassandra_hosts,
            port=settings.cassandra_port,
            auth_provider=auth_provider,
            protocol_version=settings.cassandra_protocol_version,
            load_balancing_policy=TokenAwarePolicy(DCAwareRoundRobinPolicy()),
            connect_timeout=settings.cassandra_connect_timeout,
        )

        try:
            session = cluster.connect()
        except Exception as e:
            cluster.shutdown()
            logger.error("cassandra_connection_failed", error=str(e))
            raise ConnectionError(f"Failed to connect to Cassandra: {e}") from e

        session.default_timeout = settings.cassandra_request_timeout
        cls._cluster, cls._session = cluster, session
        logger.info(
            "cassandra_connected",
            hosts=settings.cassandra_hosts,
            port=settings.cassandra_port,
        )
        return session

    @classmethod
    def disconnect(cls) -> None:
        if cls._session is not None:
            cls._session.shutdown()
        if cls._cluster is not None:
            cls._cluster.shutdown()
        cls._cluster, cls._session = None, None
        logger.info("cassandra_disconnected")

    @classmethod
    def is_connected(cls) -> bool:
        return cls._session is not None and not cls._session.is_shutdown


async def init_async_cassandra() -> Any:
    """Connect, create the schema and bind the session to the keyspace."""
    keyspace = get_settings().cassandra_keyspace
    session = AsyncCassandraConnection.connect()
    await create_schema(session, keyspace)
    session.set_keyspace(keyspace)
    logger.info("cassandra_initialized", keyspace=keyspace)
    return session


async def shutdown_async_cassandra() -> None:
    AsyncCassandraConnection.disconnect()
