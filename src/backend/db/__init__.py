"""Database module."""

from db.cosmos_session import close_cosmos, get_cosmos_client, get_database

__all__ = ["get_cosmos_client", "get_database", "close_cosmos"]
