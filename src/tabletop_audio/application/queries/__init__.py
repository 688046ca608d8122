"""
Application Queries (CQRS Read Side)

Query objects and handlers for read operations.
Queries do not modify state, only retrieve data.
"""

from tabletop_audio.application.queries.get_collection import (
    CollectionInfo,
    GetCollectionHandler,
    GetCollectionQuery,
)
from tabletop_audio.application.queries.get_session_state import (
    GetSessionStateHandler,
    GetSessionStateQuery,
)

__all__ = [
    "GetCollectionQuery",
    "GetCollectionHandler",
    "CollectionInfo",
    "GetSessionStateQuery",
    "GetSessionStateHandler",
]
