"""
Cosmos DB User repository.

Users are owned by the identity service. This repository only reads the
display identities mirrored into the 'users' container, so reporters,
status-change actors and comment authors can be shown by name.
"""

import logging
from typing import Iterable, Optional

from db.cosmos_session import USERS_CONTAINER, query_items, read_item
from models.cosmos_documents import UserDocument

logger = logging.getLogger(__name__)


class CosmosUserRepository:
    """Read-only repository for user display identities."""

    async def get_by_id(self, user_id: str) -> Optional[UserDocument]:
        """Get a user by ID (direct point read - very efficient)."""
        data = await read_item(USERS_CONTAINER, user_id, partition_key=user_id)
        if data is None:
            return None
        return UserDocument(**data)

    async def get_many(self, user_ids: Iterable[str]) -> dict[str, UserDocument]:
        """
        Get several users in one cross-partition query.

        Unknown IDs are simply missing from the result.
        """
        ids = sorted({user_id for user_id in user_ids if user_id})
        if not ids:
            return {}

        query = """
            SELECT c.id, c.name, c.email, c.role FROM c
            WHERE ARRAY_CONTAINS(@ids, c.id)
        """
        results = await query_items(
            USERS_CONTAINER,
            query,
            parameters=[{"name": "@ids", "value": ids}],
        )
        users = {row["id"]: UserDocument(**row) for row in results}
        if len(users) < len(ids):
            logger.debug(f"Resolved {len(users)} of {len(ids)} user identities")
        return users
