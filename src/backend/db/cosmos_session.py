"""
Azure Cosmos DB session management for document storage.

Uses async Cosmos DB SDK with DefaultAzureCredential for RBAC authentication.
This module provides a unified client for all Cosmos DB operations.
"""

import logging
from typing import Any

from azure.cosmos.aio import ContainerProxy, CosmosClient, DatabaseProxy
from azure.cosmos.exceptions import CosmosResourceNotFoundError
from azure.identity.aio import DefaultAzureCredential

from core.config import settings

logger = logging.getLogger(__name__)

# Container names
USERS_CONTAINER = "users"
ISSUES_CONTAINER = "issues"
SURVEYS_CONTAINER = "surveys"

# Global client instances (lazy-initialized)
_cosmos_client: CosmosClient | None = None
_database: DatabaseProxy | None = None
_credential: DefaultAzureCredential | None = None


async def get_cosmos_client() -> CosmosClient:
    """
    Get or create the Cosmos DB client.

    Supports two authentication modes:
    1. Connection string (for local development with Cosmos DB Emulator)
    2. DefaultAzureCredential/RBAC (for Azure deployment)

    The client is singleton and reused across requests.
    """
    global _cosmos_client, _credential

    if _cosmos_client is None:
        if settings.AZURE_COSMOS_CONNECTION_STRING:
            # Format: AccountEndpoint=https://...;AccountKey=...;
            conn_parts = dict(
                part.split("=", 1) for part in settings.AZURE_COSMOS_CONNECTION_STRING.split(";") if "=" in part
            )
            endpoint = conn_parts.get("AccountEndpoint", "")
            key = conn_parts.get("AccountKey", "")

            if not endpoint or not key:
                raise ValueError("AZURE_COSMOS_CONNECTION_STRING must contain AccountEndpoint and AccountKey")

            # The emulator uses a self-signed certificate
            _cosmos_client = CosmosClient(
                url=endpoint,
                credential=key,
                connection_verify=not settings.AZURE_COSMOS_DISABLE_SSL,
            )
            logger.info(
                f"Initialized Cosmos DB client for {endpoint} (connection string mode, "
                f"SSL verification: {not settings.AZURE_COSMOS_DISABLE_SSL})"
            )
        else:
            if not settings.AZURE_COSMOS_ENDPOINT:
                raise ValueError("Either AZURE_COSMOS_ENDPOINT or AZURE_COSMOS_CONNECTION_STRING must be set")

            _credential = DefaultAzureCredential()
            _cosmos_client = CosmosClient(
                url=settings.AZURE_COSMOS_ENDPOINT,
                credential=_credential,
            )
            logger.info(f"Initialized Cosmos DB client for {settings.AZURE_COSMOS_ENDPOINT} (RBAC mode)")

    return _cosmos_client


async def get_database() -> DatabaseProxy:
    """Get the Cosmos DB database proxy."""
    global _database

    if _database is None:
        client = await get_cosmos_client()
        _database = client.get_database_client(settings.AZURE_COSMOS_DATABASE)
        logger.info(f"Connected to database: {settings.AZURE_COSMOS_DATABASE}")

    return _database


async def get_container(container_name: str) -> ContainerProxy:
    """Get a container proxy for the specified container."""
    database = await get_database()
    return database.get_container_client(container_name)


async def close_cosmos() -> None:
    """
    Close Cosmos DB connections.

    Should be called during application shutdown.
    """
    global _cosmos_client, _database, _credential

    if _cosmos_client is not None:
        await _cosmos_client.close()
        _cosmos_client = None
        _database = None
        logger.info("Closed Cosmos DB client")

    if _credential is not None:
        await _credential.close()
        _credential = None


# ============================================================================
# Utility Functions for Common Operations
# ============================================================================


async def create_item(container_name: str, item: dict[str, Any]) -> dict[str, Any]:
    """
    Create a new item in the specified container.

    Raises CosmosResourceExistsError if an item with the same id already
    exists in the partition.
    """
    container = await get_container(container_name)
    return await container.create_item(body=item)


async def read_item(
    container_name: str,
    item_id: str,
    partition_key: str,
) -> dict[str, Any] | None:
    """Read an item by ID and partition key, or None if it does not exist."""
    container = await get_container(container_name)
    try:
        return await container.read_item(item=item_id, partition_key=partition_key)
    except CosmosResourceNotFoundError:
        return None


async def upsert_item(container_name: str, item: dict[str, Any]) -> dict[str, Any]:
    """Create or update an item in the specified container."""
    container = await get_container(container_name)
    return await container.upsert_item(body=item)


async def patch_item(
    container_name: str,
    item_id: str,
    partition_key: str,
    operations: list[dict[str, Any]],
    filter_predicate: str | None = None,
) -> dict[str, Any]:
    """
    Apply partial-document operations to an item atomically.

    With ``filter_predicate`` (e.g. ``FROM c WHERE c.status = 'active'``)
    the server applies the operations only if the stored document matches;
    otherwise CosmosAccessConditionFailedError (412) is raised.

    Returns:
        The updated item
    """
    container = await get_container(container_name)
    kwargs: dict[str, Any] = {}
    if filter_predicate:
        kwargs["filter_predicate"] = filter_predicate
    return await container.patch_item(
        item=item_id,
        partition_key=partition_key,
        patch_operations=operations,
        **kwargs,
    )


async def execute_batch(
    container_name: str,
    partition_key: str,
    operations: list[tuple],
) -> list[dict[str, Any]]:
    """
    Execute a transactional batch within a single logical partition.

    Either every operation succeeds or none is applied; on failure
    CosmosBatchOperationError is raised with the index of the failing
    operation.

    Returns:
        One result dict per operation (``statusCode``, ``resourceBody``)
    """
    container = await get_container(container_name)
    results = await container.execute_item_batch(
        batch_operations=operations,
        partition_key=partition_key,
    )
    return list(results)


async def delete_item(
    container_name: str,
    item_id: str,
    partition_key: str,
) -> None:
    """Delete an item by ID and partition key."""
    container = await get_container(container_name)
    await container.delete_item(item=item_id, partition_key=partition_key)


async def query_items(
    container_name: str,
    query: str,
    parameters: list[dict[str, Any]] | None = None,
    partition_key: str | None = None,
    max_items: int | None = None,
) -> list[dict[str, Any]]:
    """
    Query items using SQL-like syntax.

    Example:
        results = await query_items(
            'issues',
            'SELECT * FROM c WHERE c.reporter_id = @reporter_id',
            parameters=[{'name': '@reporter_id', 'value': user_id}]
        )
    """
    container = await get_container(container_name)

    # enable_cross_partition_query is implied when no partition_key is given
    query_kwargs: dict[str, Any] = {
        "query": query,
    }

    if parameters:
        query_kwargs["parameters"] = parameters

    if partition_key:
        query_kwargs["partition_key"] = partition_key

    if max_items:
        query_kwargs["max_item_count"] = max_items

    items: list[dict[str, Any]] = []
    async for item in container.query_items(**query_kwargs):
        items.append(item)
        if max_items and len(items) >= max_items:
            break

    return items


async def query_count(
    container_name: str,
    query: str,
    parameters: list[dict[str, Any]] | None = None,
    partition_key: str | None = None,
) -> int:
    """Execute a ``SELECT VALUE COUNT(1)`` query and return the integer result."""
    results = await query_items(container_name, query, parameters, partition_key)
    if results and len(results) > 0:
        result = results[0]
        if isinstance(result, (int, float)):
            return int(result)
        return 0
    return 0
