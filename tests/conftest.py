import asyncio

import pytest
import pytest_asyncio

# ============================================================================
# Database Fixtures
# ============================================================================


@pytest_asyncio.fixture
async def in_memory_database():
    """Create an in-memory SQLite database for testing."""
    from tabletop_audio.infrastructure.persistence.database import Database

    db = Database(":memory:")
    await db.initialize()
    yield db
    await db.close()


@pytest_asyncio.fixture
async def folder_repository(in_memory_database):
    from tabletop_audio.infrastructure.persistence.repositories.folder_repository import (
        SQLiteFolderRepository,
    )

    return SQLiteFolderRepository(in_memory_database)


@pytest_asyncio.fixture
async def file_repository(in_memory_database):
    from tabletop_audio.infrastructure.persistence.repositories.file_repository import (
        SQLiteAudioFileRepository,
    )

    return SQLiteAudioFileRepository(in_memory_database)


@pytest_asyncio.fixture
async def collection_repository(in_memory_database):
    from tabletop_audio.infrastructure.persistence.repositories.collection_repository import (
        SQLiteCollectionRepository,
    )

    return SQLiteCollectionRepository(in_memory_database)


# ============================================================================
# Service Fixtures
# ============================================================================


@pytest.fixture
def channel():
    from tabletop_audio.infrastructure.broadcast.memory_channel import InMemoryBroadcastChannel

    return InMemoryBroadcastChannel()


@pytest.fixture
def lock_registry():
    from tabletop_audio.application.services.aggregate_locks import AggregateLockRegistry

    return AggregateLockRegistry(timeout_s=0.5, retries=2)


@pytest_asyncio.fixture
async def store(folder_repository, file_repository, collection_repository, lock_registry, channel):
    """Collection store over an in-memory database with its root folder."""
    from tabletop_audio.application.services.collection_store import CollectionStore

    collection_store = CollectionStore(
        folder_repository=folder_repository,
        file_repository=file_repository,
        collection_repository=collection_repository,
        locks=lock_registry,
        channel=channel,
    )
    await collection_store.ensure_root_folder()
    return collection_store


@pytest_asyncio.fixture
async def music_folder(store):
    root = await store.ensure_root_folder()
    return await store.create_folder("Music", "music", root.id)


@pytest_asyncio.fixture
async def sfx_folder(store):
    root = await store.ensure_root_folder()
    return await store.create_folder("Effects", "sfx", root.id)


@pytest_asyncio.fixture
async def ambience_folder(store):
    root = await store.ensure_root_folder()
    return await store.create_folder("Ambience", "ambience", root.id)


# ============================================================================
# Helpers
# ============================================================================


async def wait_until(predicate, timeout: float = 1.0) -> None:
    """Yield to the event loop until ``predicate()`` is true."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.005)


@pytest.fixture
def eventually():
    return wait_until
