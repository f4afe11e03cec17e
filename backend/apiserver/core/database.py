"""
Data store connection.

This module owns the process-wide Elasticsearch client used as the
backing document store. The bootstrap awaits connect_database() before
the listening socket is opened.
"""

import logging
from typing import Optional

from elasticsearch import AsyncElasticsearch

from apiserver.core.config import Settings, settings as default_settings
from apiserver.utils.exceptions import DatabaseError
from apiserver.utils.metrics import database_connection_attempts_total

logger = logging.getLogger(__name__)


# Global Elasticsearch client instance
_database_client: Optional[AsyncElasticsearch] = None


def create_database_client(settings: Settings) -> AsyncElasticsearch:
    """Build an unconnected client from settings. No retries."""
    return AsyncElasticsearch(
        hosts=[settings.elasticsearch_url],
        request_timeout=settings.elasticsearch_timeout,
        max_retries=0,
        retry_on_timeout=False,
    )


async def connect_database(settings: Optional[Settings] = None) -> AsyncElasticsearch:
    """
    Connect to the data store and verify it answers.

    Args:
        settings: Settings to read the connection URL from (default: module settings)

    Returns:
        Connected AsyncElasticsearch client

    Raises:
        DatabaseError: If the client cannot be created or the ping fails
    """
    global _database_client

    if _database_client is not None:
        return _database_client

    settings = settings or default_settings
    url = settings.elasticsearch_url

    try:
        client = create_database_client(settings)
    except Exception as e:
        database_connection_attempts_total.labels(status="failure").inc()
        logger.error(f"Failed to create Elasticsearch client: {str(e)}")
        raise DatabaseError(
            f"Failed to create Elasticsearch client: {str(e)}",
            {"url": url},
        ) from e

    try:
        available = await client.ping()
    except Exception as e:
        await client.close()
        database_connection_attempts_total.labels(status="failure").inc()
        logger.error(f"Failed to connect to Elasticsearch: {str(e)}")
        raise DatabaseError(
            f"Failed to connect to Elasticsearch: {str(e)}",
            {"url": url, "error": str(e)},
        ) from e

    if not available:
        await client.close()
        database_connection_attempts_total.labels(status="failure").inc()
        logger.error(f"Failed to connect to Elasticsearch at {url}: ping() returned False")
        raise DatabaseError(
            "Failed to connect to Elasticsearch: ping() returned False",
            {"url": url},
        )

    database_connection_attempts_total.labels(status="success").inc()
    _database_client = client
    logger.info(f"Connected to Elasticsearch: {url}")
    return _database_client


async def close_database() -> None:
    """Close the global client, if any."""
    global _database_client
    if _database_client is not None:
        await _database_client.close()
        _database_client = None
        logger.info("Closed Elasticsearch connection")


def reset_database_client() -> None:
    """Reset the global client without closing it (useful for testing)."""
    global _database_client
    _database_client = None
