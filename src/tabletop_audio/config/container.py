"""Dependency Injection Container

Manages the application's dependency graph, providing lazy initialization
and lifecycle management for the database, repositories, broadcast channel,
services and query handlers. Components are created on-demand and cached
for reuse throughout the application.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from ..application.interfaces.broadcast_channel import BroadcastChannel
    from ..application.queries.get_collection import GetCollectionHandler
    from ..application.queries.get_session_state import GetSessionStateHandler
    from ..application.services.aggregate_locks import AggregateLockRegistry
    from ..application.services.collection_store import CollectionStore
    from ..application.services.session_state_service import SessionStateRegistry
    from ..application.services.sync_adapter import ClientSyncAdapter
    from ..domain.library.repository import (
        AudioFileRepository,
        CollectionRepository,
        FolderRepository,
    )
    from ..infrastructure.persistence.database import Database
    from .settings import Settings


@dataclass
class Container:
    """Dependency injection container.

    This container manages all application dependencies and their lifecycle.
    Components are lazily initialized when first accessed.
    """

    settings: Settings

    # Persistence layer
    _database: Database | None = None
    _folder_repository: FolderRepository | None = None
    _file_repository: AudioFileRepository | None = None
    _collection_repository: CollectionRepository | None = None

    # Infrastructure adapters
    _broadcast_channel: BroadcastChannel | None = None

    # Application services
    _lock_registry: AggregateLockRegistry | None = None
    _collection_store: CollectionStore | None = None
    _session_registry: SessionStateRegistry | None = None

    # Query handlers
    _get_collection_handler: GetCollectionHandler | None = None
    _get_session_state_handler: GetSessionStateHandler | None = None

    # === Database ===

    @property
    def database(self) -> Database:
        """Get the database connection manager."""
        if self._database is None:
            from ..infrastructure.persistence.database import Database

            self._database = Database(self.settings.database.url, settings=self.settings.database)
        return self._database

    # === Repositories ===

    @property
    def folder_repository(self) -> FolderRepository:
        if self._folder_repository is None:
            from ..infrastructure.persistence.repositories.folder_repository import (
                SQLiteFolderRepository,
            )

            self._folder_repository = SQLiteFolderRepository(self.database)
        return self._folder_repository

    @property
    def file_repository(self) -> AudioFileRepository:
        if self._file_repository is None:
            from ..infrastructure.persistence.repositories.file_repository import (
                SQLiteAudioFileRepository,
            )

            self._file_repository = SQLiteAudioFileRepository(self.database)
        return self._file_repository

    @property
    def collection_repository(self) -> CollectionRepository:
        if self._collection_repository is None:
            from ..infrastructure.persistence.repositories.collection_repository import (
                SQLiteCollectionRepository,
            )

            self._collection_repository = SQLiteCollectionRepository(self.database)
        return self._collection_repository

    # === Infrastructure Adapters ===

    @property
    def broadcast_channel(self) -> BroadcastChannel:
        """Get the event broadcast channel."""
        if self._broadcast_channel is None:
            from ..infrastructure.broadcast.memory_channel import InMemoryBroadcastChannel

            self._broadcast_channel = InMemoryBroadcastChannel(self.settings.sync)
        return self._broadcast_channel

    # === Application Services ===

    @property
    def lock_registry(self) -> AggregateLockRegistry:
        if self._lock_registry is None:
            from ..application.services.aggregate_locks import AggregateLockRegistry

            self._lock_registry = AggregateLockRegistry(self.settings.concurrency)
        return self._lock_registry

    @property
    def collection_store(self) -> CollectionStore:
        """Get the collection store."""
        if self._collection_store is None:
            from ..application.services.collection_store import CollectionStore

            self._collection_store = CollectionStore(
                folder_repository=self.folder_repository,
                file_repository=self.file_repository,
                collection_repository=self.collection_repository,
                locks=self.lock_registry,
                channel=self.broadcast_channel,
                settings=self.settings.ordering,
                default_session_id=self.settings.sync.default_session_id,
            )
        return self._collection_store

    @property
    def session_registry(self) -> SessionStateRegistry:
        """Get the server-side session state mirror."""
        if self._session_registry is None:
            from ..application.services.session_state_service import SessionStateRegistry

            self._session_registry = SessionStateRegistry(channel=self.broadcast_channel)
        return self._session_registry

    def create_sync_adapter(
        self, session_id: str | None = None, *, client_id: str | None = None
    ) -> ClientSyncAdapter:
        """Build a sync adapter for one participant (not cached)."""
        from ..application.services.sync_adapter import ClientSyncAdapter

        return ClientSyncAdapter(
            channel=self.broadcast_channel,
            session_id=session_id or self.settings.sync.default_session_id,
            resolver=self.collection_store.resolve,
            volume_debounce_ms=self.settings.sync.volume_debounce_ms,
            client_id=client_id,
        )

    # === Query Handlers ===

    @property
    def get_collection_handler(self) -> GetCollectionHandler:
        if self._get_collection_handler is None:
            from ..application.queries.get_collection import GetCollectionHandler

            self._get_collection_handler = GetCollectionHandler(
                collection_repository=self.collection_repository,
                file_repository=self.file_repository,
            )
        return self._get_collection_handler

    @property
    def get_session_state_handler(self) -> GetSessionStateHandler:
        if self._get_session_state_handler is None:
            from ..application.queries.get_session_state import GetSessionStateHandler

            self._get_session_state_handler = GetSessionStateHandler(
                registry=self.session_registry,
            )
        return self._get_session_state_handler

    # === Lifecycle ===

    async def initialize(self) -> None:
        """Initialize all async resources."""
        await self.database.initialize()
        await self.collection_store.ensure_root_folder()
        await self.session_registry.start()

    async def shutdown(self) -> None:
        """Shutdown and cleanup all resources."""
        try:
            if self._session_registry is not None:
                await self._session_registry.stop()
        except Exception as exc:
            logger.warning("Failed stopping session state registry: %r", exc)

        try:
            if self._broadcast_channel is not None:
                await self._broadcast_channel.close()
        except Exception as exc:
            logger.warning("Failed closing broadcast channel: %r", exc)

        if self._database is not None:
            await self._database.close()


def create_container(settings: Settings) -> Container:
    """Create a new dependency injection container."""
    return Container(settings)
