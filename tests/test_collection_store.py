"""Tests for CollectionStore over the SQLite repositories."""

import asyncio

import pytest

from tabletop_audio.application.services.collection_store import CollectionStore
from tabletop_audio.config.settings import OrderingSettings
from tabletop_audio.domain.library.value_objects import CollectionType, FolderType, ItemRef
from tabletop_audio.domain.shared.exceptions import (
    CycleError,
    NotFoundError,
    TypeMismatchError,
    ValidationError,
)
from tabletop_audio.domain.sync.events import AudioEventType, Namespace


async def _music(store, folder, *names):
    return [await store.register_file(name, "music", f"/music/{name}.ogg", folder.id) for name in names]


async def _sfx(store, folder, *names):
    return [await store.register_file(name, "sfx", f"/sfx/{name}.wav", folder.id) for name in names]


def _refs(collection):
    return [str(ref) for ref in collection.refs()]


class TestCollections:
    """Tests for collection lifecycle."""

    @pytest.mark.asyncio
    async def test_create_and_list(self, store):
        """Should create collections in append order per type."""
        first = await store.create_collection("playlist", "Tavern")
        second = await store.create_collection(CollectionType.PLAYLIST, "Battle")
        await store.create_collection("macro", "Thunder", duration_seconds=4, volume=0.5)

        playlists = await store.list_collections("playlist")
        assert [c.id for c in playlists] == [first.id, second.id]
        assert second.position > first.position
        assert len(await store.list_collections()) == 3

    @pytest.mark.asyncio
    async def test_unknown_type(self, store):
        """Should reject unknown collection types."""
        with pytest.raises(ValidationError):
            await store.create_collection("podcast", "x")

    @pytest.mark.asyncio
    async def test_macro_fields_only_on_macros(self, store):
        """Should reject macro fields on other types as a domain ValidationError."""
        with pytest.raises(ValidationError):
            await store.create_collection("playlist", "x", duration_seconds=10)

    @pytest.mark.asyncio
    async def test_blank_name(self, store):
        """Should reject blank names."""
        with pytest.raises(ValidationError) as exc_info:
            await store.create_collection("sfx", "   ")
        assert exc_info.value.field == "name"

    @pytest.mark.asyncio
    async def test_update_collection(self, store):
        """Should update only the given fields."""
        macro = await store.create_collection("macro", "Storm", "rain", volume=0.3)
        updated = await store.update_collection(macro.id, name="Big storm")
        assert updated.name == "Big storm"
        assert updated.description == "rain"
        assert updated.volume == 0.3

    @pytest.mark.asyncio
    async def test_get_missing(self, store):
        """Should raise NotFoundError for unknown collections."""
        with pytest.raises(NotFoundError):
            await store.get_collection(404)

    @pytest.mark.asyncio
    async def test_move_collection(self, store):
        """Should reorder collections among their type."""
        a = await store.create_collection("ambience", "A")
        b = await store.create_collection("ambience", "B")
        c = await store.create_collection("ambience", "C")

        await store.move_collection(c.id, 0)

        ambience = await store.list_collections("ambience")
        assert [x.id for x in ambience] == [c.id, a.id, b.id]

    @pytest.mark.asyncio
    async def test_delete_collection_drops_references(self, store):
        """Should drop memberships pointing at a deleted collection."""
        pack = await store.create_collection("pack", "Dungeon")
        playlist = await store.create_collection("playlist", "Crawl")
        await store.add_item(pack.id, ItemRef.collection(playlist.id))

        deleted = await store.delete_collection(playlist.id)

        assert deleted.id == playlist.id
        assert (await store.get_collection(pack.id)).items == []
        with pytest.raises(NotFoundError):
            await store.get_collection(playlist.id)

    @pytest.mark.asyncio
    async def test_writer_queued_behind_delete(self, store, lock_registry, music_folder):
        """Should give a writer queued behind a delete NotFoundError and free the lock."""
        (track,) = await _music(store, music_folder, "track")
        playlist = await store.create_collection("playlist", "Doomed")
        key = f"collection:{playlist.id}"

        async with lock_registry.hold(key):
            deleting = asyncio.create_task(store.delete_collection(playlist.id))
            await asyncio.sleep(0.01)
            adding = asyncio.create_task(store.add_item(playlist.id, ItemRef.file(track.id)))
            await asyncio.sleep(0.01)

        assert (await asyncio.wait_for(deleting, 1.0)).id == playlist.id
        with pytest.raises(NotFoundError):
            await asyncio.wait_for(adding, 1.0)

        async with lock_registry.hold(key):
            assert lock_registry.is_locked(key)
        assert not lock_registry.is_locked(key)


class TestItems:
    """Tests for collection membership."""

    @pytest.mark.asyncio
    async def test_insert_at_index(self, store, music_folder):
        """Should insert at a zero-based index."""
        f1, f2, f3 = await _music(store, music_folder, "f1", "f2", "f3")
        playlist = await store.create_collection("playlist", "Set")
        await store.add_item(playlist.id, ItemRef.file(f1.id))
        await store.add_item(playlist.id, f"file:{f2.id}")

        result = await store.add_item(playlist.id, ItemRef.file(f3.id), at_index=1)

        assert _refs(result) == [f"file:{f1.id}", f"file:{f3.id}", f"file:{f2.id}"]

    @pytest.mark.asyncio
    async def test_insert_at_head(self, store, music_folder):
        """Should insert before the first item."""
        f1, f2 = await _music(store, music_folder, "f1", "f2")
        playlist = await store.create_collection("playlist", "Set")
        await store.add_item(playlist.id, ItemRef.file(f1.id))

        result = await store.add_item(playlist.id, ItemRef.file(f2.id), at_index=0)

        assert result.refs() == [ItemRef.file(f2.id), ItemRef.file(f1.id)]

    @pytest.mark.asyncio
    async def test_negative_index(self, store, music_folder):
        """Should reject negative indices."""
        (f1,) = await _music(store, music_folder, "f1")
        playlist = await store.create_collection("playlist", "Set")
        with pytest.raises(ValidationError):
            await store.add_item(playlist.id, ItemRef.file(f1.id), at_index=-1)

    @pytest.mark.asyncio
    async def test_duplicate_member(self, store, music_folder):
        """Should reject a member that is already present."""
        (f1,) = await _music(store, music_folder, "f1")
        playlist = await store.create_collection("playlist", "Set")
        await store.add_item(playlist.id, ItemRef.file(f1.id))
        with pytest.raises(ValidationError):
            await store.add_item(playlist.id, ItemRef.file(f1.id))

    @pytest.mark.asyncio
    async def test_type_mismatch(self, store, sfx_folder):
        """Should reject sfx files in a playlist."""
        (boom,) = await _sfx(store, sfx_folder, "boom")
        playlist = await store.create_collection("playlist", "Set")
        with pytest.raises(TypeMismatchError):
            await store.add_item(playlist.id, ItemRef.file(boom.id))
        assert (await store.get_collection(playlist.id)).items == []

    @pytest.mark.asyncio
    async def test_pack_rejects_files(self, store, music_folder):
        """Should never let a pack hold a file."""
        (f1,) = await _music(store, music_folder, "f1")
        pack = await store.create_collection("pack", "Pack")
        with pytest.raises(TypeMismatchError):
            await store.add_item(pack.id, ItemRef.file(f1.id))

    @pytest.mark.asyncio
    async def test_missing_member(self, store):
        """Should raise NotFoundError for dangling references."""
        playlist = await store.create_collection("playlist", "Set")
        with pytest.raises(NotFoundError):
            await store.add_item(playlist.id, "file:999")
        with pytest.raises(NotFoundError):
            await store.add_item(999, "file:1")

    @pytest.mark.asyncio
    async def test_malformed_ref(self, store):
        """Should reject malformed item references."""
        playlist = await store.create_collection("playlist", "Set")
        with pytest.raises(ValidationError):
            await store.add_item(playlist.id, "track-7")

    @pytest.mark.asyncio
    async def test_macro_cycle(self, store):
        """Should reject macros that would contain themselves."""
        a = await store.create_collection("macro", "A")
        b = await store.create_collection("macro", "B")
        await store.add_item(a.id, ItemRef.collection(b.id))

        with pytest.raises(CycleError):
            await store.add_item(b.id, ItemRef.collection(a.id))
        with pytest.raises(CycleError):
            await store.add_item(a.id, ItemRef.collection(a.id))

    @pytest.mark.asyncio
    async def test_nesting_depth(self, folder_repository, file_repository, collection_repository, lock_registry):
        """Should reject nesting beyond the configured depth."""
        store = CollectionStore(
            folder_repository=folder_repository,
            file_repository=file_repository,
            collection_repository=collection_repository,
            locks=lock_registry,
            settings=OrderingSettings(max_nesting_depth=2),
        )
        a = await store.create_collection("macro", "A")
        b = await store.create_collection("macro", "B")
        c = await store.create_collection("macro", "C")
        d = await store.create_collection("macro", "D")
        await store.add_item(a.id, ItemRef.collection(b.id))
        await store.add_item(b.id, ItemRef.collection(c.id))

        with pytest.raises(ValidationError):
            await store.add_item(c.id, ItemRef.collection(d.id))

    @pytest.mark.asyncio
    async def test_pack_nests_packs(self, store):
        """Should allow packs inside packs."""
        outer = await store.create_collection("pack", "Outer")
        inner = await store.create_collection("pack", "Inner")
        result = await store.add_item(outer.id, ItemRef.collection(inner.id))
        assert result.nested_refs() == [ItemRef.collection(inner.id)]

    @pytest.mark.asyncio
    async def test_remove_is_idempotent(self, store, music_folder):
        """Should ignore removing an absent member."""
        (f1,) = await _music(store, music_folder, "f1")
        playlist = await store.create_collection("playlist", "Set")
        await store.add_item(playlist.id, ItemRef.file(f1.id))

        first = await store.remove_item(playlist.id, ItemRef.file(f1.id))
        second = await store.remove_item(playlist.id, ItemRef.file(f1.id))

        assert first.items == []
        assert second.items == []

    @pytest.mark.asyncio
    async def test_move_item(self, store, music_folder):
        """Should move a member to the requested index."""
        f1, f2, f3 = await _music(store, music_folder, "f1", "f2", "f3")
        playlist = await store.create_collection("playlist", "Set")
        for f in (f1, f2, f3):
            await store.add_item(playlist.id, ItemRef.file(f.id))

        result = await store.move_item(playlist.id, ItemRef.file(f3.id), 0)
        assert result.refs() == [ItemRef.file(f3.id), ItemRef.file(f1.id), ItemRef.file(f2.id)]

        result = await store.move_item(playlist.id, ItemRef.file(f3.id), 5)
        assert result.refs() == [ItemRef.file(f1.id), ItemRef.file(f2.id), ItemRef.file(f3.id)]

    @pytest.mark.asyncio
    async def test_move_missing_item(self, store):
        """Should raise NotFoundError when the member is absent."""
        playlist = await store.create_collection("playlist", "Set")
        with pytest.raises(NotFoundError):
            await store.move_item(playlist.id, "file:1", 0)

    @pytest.mark.asyncio
    async def test_update_item(self, store, sfx_folder):
        """Should update member volume, active flag and delay."""
        (boom,) = await _sfx(store, sfx_folder, "boom")
        macro = await store.create_collection("macro", "Cue")
        await store.add_item(macro.id, ItemRef.file(boom.id))

        result = await store.update_item(
            macro.id, ItemRef.file(boom.id), volume=0.25, active=True, delay_ms=1500
        )

        item = result.find_item(ItemRef.file(boom.id))
        assert (item.volume, item.active, item.delay_ms) == (0.25, True, 1500)

    @pytest.mark.asyncio
    async def test_update_item_out_of_range(self, store, sfx_folder):
        """Should reject volumes outside [0, 1]."""
        (boom,) = await _sfx(store, sfx_folder, "boom")
        macro = await store.create_collection("macro", "Cue")
        await store.add_item(macro.id, ItemRef.file(boom.id))
        with pytest.raises(ValidationError):
            await store.update_item(macro.id, ItemRef.file(boom.id), volume=1.5)

    @pytest.mark.asyncio
    async def test_renumber_keeps_order(self, folder_repository, file_repository, collection_repository, lock_registry, music_folder):
        """Should keep insertion intent across a renumber."""
        store = CollectionStore(
            folder_repository=folder_repository,
            file_repository=file_repository,
            collection_repository=collection_repository,
            locks=lock_registry,
            settings=OrderingSettings(gap=1.0, min_position=-3.0),
        )
        files = await _music(store, music_folder, *[f"t{i}" for i in range(8)])
        playlist = await store.create_collection("playlist", "Set")
        for f in files:
            await store.add_item(playlist.id, ItemRef.file(f.id), at_index=0)

        result = await store.get_collection(playlist.id)
        assert result.refs() == [ItemRef.file(f.id) for f in reversed(files)]
        positions = [item.position for item in result.ordered_items()]
        assert positions == sorted(set(positions))


class TestFolders:
    """Tests for folder operations."""

    @pytest.mark.asyncio
    async def test_root_is_unique(self, store):
        """Should reuse the existing root folder."""
        first = await store.ensure_root_folder()
        second = await store.ensure_root_folder()
        assert first.id == second.id
        assert first.folder_type == FolderType.ROOT

    @pytest.mark.asyncio
    async def test_tree(self, store, music_folder, sfx_folder):
        """Should build the nested tree in read order."""
        battle = await store.create_folder("Battle", "any", music_folder.id)
        tree = await store.get_folder_tree()
        assert [f.name for f in tree.walk()] == ["root", "Music", "Battle", "Effects"]
        assert battle.parent_id == music_folder.id

    @pytest.mark.asyncio
    async def test_create_requires_parent(self, store):
        """Should require a parent for non-root folders."""
        with pytest.raises(ValidationError):
            await store.create_folder("Loose")
        with pytest.raises(NotFoundError):
            await store.create_folder("Orphan", parent_id=999)

    @pytest.mark.asyncio
    async def test_create_conflicting_type(self, store, music_folder):
        """Should reject sfx folders under a music folder."""
        with pytest.raises(TypeMismatchError):
            await store.create_folder("Hits", "sfx", music_folder.id)

    @pytest.mark.asyncio
    async def test_move_into_descendant(self, store, music_folder):
        """Should reject cycles and leave the tree unchanged."""
        child = await store.create_folder("Child", "any", music_folder.id)
        grandchild = await store.create_folder("Grandchild", "any", child.id)
        before = await store.get_folder_tree()

        with pytest.raises(CycleError):
            await store.move_folder(music_folder.id, grandchild.id)

        assert await store.get_folder_tree() == before

    @pytest.mark.asyncio
    async def test_move_type_conflict(self, store, music_folder, sfx_folder):
        """Should reject moving sfx content under a music folder."""
        await _sfx(store, sfx_folder, "boom")
        with pytest.raises(TypeMismatchError):
            await store.move_folder(sfx_folder.id, music_folder.id)

    @pytest.mark.asyncio
    async def test_move_folder(self, store, music_folder):
        """Should re-parent a folder."""
        root = await store.ensure_root_folder()
        loose = await store.create_folder("Loose", "any", root.id)
        moved = await store.move_folder(loose.id, music_folder.id)
        assert moved.parent_id == music_folder.id

    @pytest.mark.asyncio
    async def test_root_cannot_move_or_delete(self, store, music_folder):
        """Should protect the root folder."""
        root = await store.ensure_root_folder()
        with pytest.raises(ValidationError):
            await store.move_folder(root.id, music_folder.id)
        with pytest.raises(ValidationError):
            await store.delete_folder(root.id)

    @pytest.mark.asyncio
    async def test_rename_folder(self, store, music_folder):
        """Should rename and strip the name."""
        renamed = await store.rename_folder(music_folder.id, "  Songs ")
        assert renamed.name == "Songs"
        assert (await store.get_folder(music_folder.id)).name == "Songs"

    @pytest.mark.asyncio
    async def test_delete_folder_cascades(self, store, music_folder):
        """Should delete the subtree, its files and their memberships."""
        child = await store.create_folder("Child", "any", music_folder.id)
        (f1,) = await _music(store, music_folder, "f1")
        (f2,) = await _music(store, child, "f2")
        playlist = await store.create_collection("playlist", "Set")
        await store.add_item(playlist.id, ItemRef.file(f1.id))
        await store.add_item(playlist.id, ItemRef.file(f2.id))

        assert await store.delete_folder(music_folder.id) == (2, 2)

        assert (await store.get_collection(playlist.id)).items == []
        with pytest.raises(NotFoundError):
            await store.get_file(f2.id)


class TestFiles:
    """Tests for file operations."""

    @pytest.mark.asyncio
    async def test_register_publishes(self, store, channel, music_folder):
        """Should announce registered files with FILE_DOWNLOADED."""
        sub = await channel.subscribe(Namespace.AUDIO)
        (f1,) = await _music(store, music_folder, "f1")

        assert sub.pending == 1
        event = await anext(aiter(sub))
        assert event.type == AudioEventType.FILE_DOWNLOADED
        assert event.payload.item_ref == ItemRef.file(f1.id)

    @pytest.mark.asyncio
    async def test_register_type_conflict(self, store, music_folder):
        """Should reject files whose type conflicts with the folder."""
        with pytest.raises(TypeMismatchError):
            await store.register_file("boom", "sfx", "/boom.wav", music_folder.id)

    @pytest.mark.asyncio
    async def test_register_unknown_type(self, store, music_folder):
        """Should reject unknown audio types."""
        with pytest.raises(ValidationError) as exc_info:
            await store.register_file("x", "speech", "/x.wav", music_folder.id)
        assert exc_info.value.field == "audio_type"

    @pytest.mark.asyncio
    async def test_list_rename_and_move(self, store, music_folder):
        """Should list, rename and move files."""
        root = await store.ensure_root_folder()
        (f1,) = await _music(store, music_folder, "f1")

        assert [f.id for f in await store.list_files(music_folder.id)] == [f1.id]
        assert (await store.rename_file(f1.id, "Theme")).name == "Theme"
        moved = await store.move_file(f1.id, root.id)

        assert moved.folder_id == root.id
        assert (await store.get_file(f1.id)).folder_id == root.id
        assert await store.list_files(music_folder.id) == []

    @pytest.mark.asyncio
    async def test_delete_files_drops_memberships(self, store, music_folder):
        """Should drop memberships of deleted files."""
        f1, f2 = await _music(store, music_folder, "f1", "f2")
        playlist = await store.create_collection("playlist", "Set")
        await store.add_item(playlist.id, ItemRef.file(f1.id))
        await store.add_item(playlist.id, ItemRef.file(f2.id))

        assert await store.delete_files([f1.id]) == (1, 1)
        assert (await store.get_collection(playlist.id)).refs() == [ItemRef.file(f2.id)]

    @pytest.mark.asyncio
    async def test_resolve(self, store, music_folder):
        """Should resolve both reference kinds."""
        (f1,) = await _music(store, music_folder, "f1")
        playlist = await store.create_collection("playlist", "Set")
        assert (await store.resolve(f"file:{f1.id}")).id == f1.id
        assert (await store.resolve(ItemRef.collection(playlist.id))).name == "Set"
        with pytest.raises(NotFoundError):
            await store.resolve("collection:999")
