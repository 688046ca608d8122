"""Collection Store - owns folders, files and collections and their ordering."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import TYPE_CHECKING, Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ...domain.library.entities import AudioCollection, AudioFile, CollectionItem, Folder
from ...domain.library.ordering import InsertPlan, PositionAllocator
from ...domain.library.services import (
    CollectionGraph,
    CollectionRules,
    FolderTree,
    check_folder_type,
)
from ...domain.library.value_objects import AudioType, CollectionType, FolderType, ItemRef
from ...domain.shared.constants import LockKeys
from ...domain.shared.exceptions import NotFoundError, ValidationError
from ...domain.shared.messages import ErrorMessages, LogTemplates
from ...domain.shared.validators import parse_enum
from ...domain.sync.events import AudioEventPayload, AudioEventType, Namespace

if TYPE_CHECKING:
    from ...config.settings import OrderingSettings
    from ...domain.library.repository import (
        AudioFileRepository,
        CollectionRepository,
        FolderRepository,
    )
    from ..interfaces.broadcast_channel import BroadcastChannel
    from .aggregate_locks import AggregateLockRegistry

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

ROOT_FOLDER_NAME = "root"


def _build(model: type[M], **data: Any) -> M:
    """Validate ``data`` into ``model``, raising the domain ValidationError."""
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        error = e.errors()[0]
        field = ".".join(str(part) for part in error["loc"]) or None
        raise ValidationError(error["msg"], field=field) from e


class CollectionStore:
    """Structural mutations and reads over the audio library.

    Every mutation runs under the aggregate locks it touches and persists the
    allocator's plan in a single repository call, so the new row and any
    renumbered siblings commit together.
    """

    def __init__(
        self,
        *,
        folder_repository: FolderRepository,
        file_repository: AudioFileRepository,
        collection_repository: CollectionRepository,
        locks: AggregateLockRegistry,
        channel: BroadcastChannel | None = None,
        settings: OrderingSettings | None = None,
        default_session_id: str = "default",
    ) -> None:
        self._folders = folder_repository
        self._files = file_repository
        self._collections = collection_repository
        self._locks = locks
        self._channel = channel
        self._default_session_id = default_session_id

        if settings is None:
            from ...config.settings import OrderingSettings

            settings = OrderingSettings()
        self._allocator = PositionAllocator(gap=settings.gap, min_position=settings.min_position)
        self._max_depth = settings.max_nesting_depth
        self._enforce_audio_types = settings.enforce_audio_types

    # === Lookups ===

    async def resolve(self, item_ref: ItemRef | str) -> AudioFile | AudioCollection:
        """Load the file or collection an item reference points at.

        Raises:
            NotFoundError: nothing with that id exists.
        """
        ref = ItemRef.coerce(item_ref)
        if ref.is_file:
            file = await self._files.get(ref.id)
            if file is None:
                raise NotFoundError("AudioFile", ref.id)
            return file

        collection = await self._collections.get(ref.id)
        if collection is None:
            raise NotFoundError("AudioCollection", ref.id)
        return collection

    async def get_collection(self, collection_id: int) -> AudioCollection:
        """Snapshot read of a collection and its items."""
        collection = await self._collections.get(collection_id)
        if collection is None:
            raise NotFoundError("AudioCollection", collection_id)
        return collection

    async def list_collections(
        self, collection_type: CollectionType | str | None = None
    ) -> list[AudioCollection]:
        ctype = None if collection_type is None else CollectionType.parse(collection_type)
        return await self._collections.list_all(ctype)

    async def get_file(self, file_id: int) -> AudioFile:
        file = await self._files.get(file_id)
        if file is None:
            raise NotFoundError("AudioFile", file_id)
        return file

    async def list_files(self, folder_id: int) -> list[AudioFile]:
        return await self._files.list_by_folder(folder_id)

    async def get_folder(self, folder_id: int) -> Folder:
        folder = await self._folders.get(folder_id)
        if folder is None:
            raise NotFoundError("Folder", folder_id)
        return folder

    async def get_folder_tree(self, root_id: int | None = None) -> Folder:
        """The nested folder tree under ``root_id`` (the root folder by default)."""
        tree = FolderTree(await self._folders.list_all())
        if root_id is None:
            roots = tree.roots()
            if not roots:
                raise NotFoundError("Folder", ROOT_FOLDER_NAME)
            root_id = roots[0].id
        if root_id not in tree:
            raise NotFoundError("Folder", root_id)
        return tree.build(root_id)

    # === Collections ===

    async def create_collection(
        self,
        collection_type: CollectionType | str,
        name: str,
        description: str | None = None,
        *,
        duration_seconds: float | None = None,
        volume: float | None = None,
    ) -> AudioCollection:
        """Create an empty collection appended after its same-type siblings."""
        ctype = CollectionType.parse(collection_type)
        draft = _build(
            AudioCollection,
            collection_type=ctype,
            name=name,
            description=description,
            duration_seconds=duration_seconds,
            volume=volume,
        )

        async with self._locks.hold(LockKeys.COLLECTION_ORDER.format(type=ctype.value)):
            siblings = await self._collections.list_all(ctype)
            plan = self._allocator.plan_insert([c.position for c in siblings])
            reposition = self._reposition([c.id for c in siblings], plan, ctype.value)
            created = await self._collections.add(
                draft.model_copy(update={"position": plan.position}), reposition
            )

        logger.info(LogTemplates.COLLECTION_CREATED, ctype.value, created.name, created.id)
        return created

    async def update_collection(
        self,
        collection_id: int,
        *,
        name: str | None = None,
        description: str | None = None,
        duration_seconds: float | None = None,
        volume: float | None = None,
    ) -> AudioCollection:
        """Change descriptive fields; ``None`` leaves a field unchanged."""
        changes = {
            key: value
            for key, value in {
                "name": name,
                "description": description,
                "duration_seconds": duration_seconds,
                "volume": volume,
            }.items()
            if value is not None
        }

        async with self._locks.hold(LockKeys.COLLECTION.format(id=collection_id)):
            collection = await self.get_collection(collection_id)
            updated = _build(
                AudioCollection, **{**collection.model_dump(exclude={"items"}), **changes}
            )
            await self._collections.update(updated)
            return await self.get_collection(collection_id)

    async def delete_collection(self, collection_id: int) -> AudioCollection:
        """Delete a collection and drop every membership that references it.

        Returns:
            The collection as it was just before deletion.
        """
        key = LockKeys.COLLECTION.format(id=collection_id)
        async with self._locks.hold(key, LockKeys.COLLECTION_GRAPH):
            collection = await self.get_collection(collection_id)
            dropped = await self._collections.delete(collection_id)

        self._locks.discard(key)
        logger.info(LogTemplates.COLLECTION_DELETED, collection_id, dropped)
        return collection

    async def move_collection(self, collection_id: int, to_index: int) -> AudioCollection:
        """Reorder a collection among its same-type siblings."""
        collection = await self.get_collection(collection_id)
        ctype = collection.collection_type

        async with self._locks.hold(LockKeys.COLLECTION_ORDER.format(type=ctype.value)):
            siblings = await self._collections.list_all(ctype)
            from_index = next((i for i, c in enumerate(siblings) if c.id == collection_id), None)
            if from_index is None:
                raise NotFoundError("AudioCollection", collection_id)

            plan = self._allocator.plan_move([c.position for c in siblings], from_index, to_index)
            remaining = [c.id for c in siblings if c.id != collection_id]
            positions = self._reposition(remaining, plan, ctype.value)
            positions[collection_id] = plan.position
            await self._collections.reposition(positions)

        return await self.get_collection(collection_id)

    # === Collection items ===

    async def add_item(
        self,
        collection_id: int,
        item_ref: ItemRef | str,
        at_index: int | None = None,
    ) -> AudioCollection:
        """Insert a file or collection reference into a collection.

        ``at_index`` is a zero-based index into the current read order;
        ``None`` or anything past the end appends.

        Raises:
            NotFoundError: the collection or the referenced entity is missing.
            TypeMismatchError: the member is not allowed in this collection type.
            ValidationError: duplicate member, negative index or nesting too deep.
            CycleError: the collection would end up containing itself.
        """
        ref = ItemRef.coerce(item_ref)
        if at_index is not None and at_index < 0:
            raise ValidationError(ErrorMessages.NEGATIVE_INDEX, field="position")

        keys = [LockKeys.COLLECTION.format(id=collection_id)]
        if ref.is_collection:
            keys.append(LockKeys.COLLECTION_GRAPH)

        async with self._locks.hold(*keys):
            collection = await self.get_collection(collection_id)
            member = await self.resolve(ref)

            if isinstance(member, AudioFile):
                CollectionRules.check_file(
                    collection, member, enforce_audio_types=self._enforce_audio_types
                )
            else:
                CollectionRules.check_collection(collection, member)

            if collection.has_member(ref):
                raise ValidationError(
                    ErrorMessages.DUPLICATE_ITEM.format(ref=ref, collection_id=collection_id),
                    field="item_ref",
                )

            if ref.is_collection:
                graph = CollectionGraph(await self._collections.nesting_edges())
                graph.check_nesting(collection_id, ref.id, self._max_depth)

            ordered = collection.ordered_items()
            plan = self._allocator.plan_insert([item.position for item in ordered], at_index)
            reposition = self._reposition(
                [item.id for item in ordered], plan, LockKeys.COLLECTION.format(id=collection_id)
            )
            stored = await self._collections.insert_item(
                CollectionItem(collection_id=collection_id, ref=ref, position=plan.position),
                reposition,
            )
            if stored is None:
                raise NotFoundError(ref.kind.value, ref.id)

            logger.info(LogTemplates.ITEM_ADDED, ref, collection_id, plan.position)
            return await self.get_collection(collection_id)

    async def remove_item(self, collection_id: int, item_ref: ItemRef | str) -> AudioCollection:
        """Remove a member; removing an absent member is a no-op."""
        ref = ItemRef.coerce(item_ref)
        async with self._locks.hold(LockKeys.COLLECTION.format(id=collection_id)):
            collection = await self.get_collection(collection_id)
            item = collection.find_item(ref)
            if item is None:
                return collection

            await self._collections.delete_item(item.id)
            logger.info(LogTemplates.ITEM_REMOVED, ref, collection_id)
            return await self.get_collection(collection_id)

    async def move_item(
        self, collection_id: int, item_ref: ItemRef | str, to_index: int
    ) -> AudioCollection:
        """Move a member so that it ends up at ``to_index`` in read order."""
        ref = ItemRef.coerce(item_ref)
        async with self._locks.hold(LockKeys.COLLECTION.format(id=collection_id)):
            collection = await self.get_collection(collection_id)
            ordered = collection.ordered_items()
            from_index = next((i for i, item in enumerate(ordered) if item.ref == ref), None)
            if from_index is None:
                raise NotFoundError("CollectionItem", str(ref))

            moving = ordered[from_index]
            plan = self._allocator.plan_move([item.position for item in ordered], from_index, to_index)
            remaining = [item.id for item in ordered if item.id != moving.id]
            positions = self._reposition(remaining, plan, LockKeys.COLLECTION.format(id=collection_id))
            positions[moving.id] = plan.position
            await self._collections.reposition_items(positions)

            logger.info(LogTemplates.ITEM_MOVED, ref, collection_id, plan.position)
            return await self.get_collection(collection_id)

    async def update_item(
        self,
        collection_id: int,
        item_ref: ItemRef | str,
        *,
        volume: float | None = None,
        active: bool | None = None,
        delay_ms: int | None = None,
    ) -> AudioCollection:
        """Change per-member volume, active flag or macro cue delay."""
        ref = ItemRef.coerce(item_ref)
        changes = {
            key: value
            for key, value in {"volume": volume, "active": active, "delay_ms": delay_ms}.items()
            if value is not None
        }

        async with self._locks.hold(LockKeys.COLLECTION.format(id=collection_id)):
            collection = await self.get_collection(collection_id)
            item = collection.find_item(ref)
            if item is None:
                raise NotFoundError("CollectionItem", str(ref))

            updated = _build(CollectionItem, **{**item.model_dump(), **changes})
            await self._collections.update_item(updated)
            return await self.get_collection(collection_id)

    # === Folders ===

    async def ensure_root_folder(self) -> Folder:
        """Return the root folder, creating it on first use."""
        async with self._locks.hold(LockKeys.FOLDER_TREE):
            root = await self._folders.get_root()
            if root is not None:
                return root
            root = await self._folders.add(Folder(name=ROOT_FOLDER_NAME, folder_type=FolderType.ROOT))

        logger.info(LogTemplates.ROOT_FOLDER_CREATED, root.id)
        return root

    async def create_folder(
        self,
        name: str,
        folder_type: FolderType | str = FolderType.ANY,
        parent_id: int | None = None,
        at_index: int | None = None,
    ) -> Folder:
        ftype = parse_enum(FolderType, folder_type, "folder_type")
        if ftype == FolderType.ROOT and parent_id is not None:
            raise ValidationError(ErrorMessages.ROOT_FOLDER_HAS_PARENT, field="parent_id")
        if ftype != FolderType.ROOT and parent_id is None:
            raise ValidationError(ErrorMessages.PARENT_REQUIRED, field="parent_id")
        draft = _build(Folder, name=name, folder_type=ftype, parent_id=parent_id)

        async with self._locks.hold(LockKeys.FOLDER_TREE):
            tree = FolderTree(await self._folders.list_all())
            if parent_id is None:
                siblings = tree.roots()
            else:
                if parent_id not in tree:
                    raise NotFoundError("Folder", parent_id)
                check_folder_type(parent_id, tree.effective_type(parent_id), [ftype], [])
                siblings = tree.children(parent_id)

            plan = self._allocator.plan_insert([f.position for f in siblings], at_index)
            reposition = self._reposition(
                [f.id for f in siblings], plan, LockKeys.FOLDER.format(id=parent_id)
            )
            created = await self._folders.add(
                draft.model_copy(update={"position": plan.position}), reposition
            )

        logger.info(LogTemplates.FOLDER_CREATED, created.name, ftype.value, parent_id)
        return created

    async def rename_folder(self, folder_id: int, name: str) -> Folder:
        async with self._locks.hold(LockKeys.FOLDER.format(id=folder_id)):
            folder = await self.get_folder(folder_id)
            renamed = _build(Folder, **{**folder.model_dump(exclude={"children"}), "name": name})
            await self._folders.rename(folder_id, renamed.name)
            return renamed

    async def move_folder(
        self, folder_id: int, new_parent_id: int, at_index: int | None = None
    ) -> Folder:
        """Re-parent a folder; the tree is left untouched on any error.

        Raises:
            NotFoundError: either folder is missing.
            ValidationError: the folder is a root folder.
            CycleError: ``new_parent_id`` is the folder itself or one of its descendants.
            TypeMismatchError: the destination's type conflicts with the subtree.
        """
        async with self._locks.hold(LockKeys.FOLDER_TREE, LockKeys.FOLDER.format(id=folder_id)):
            tree = FolderTree(await self._folders.list_all())
            folder = tree.get(folder_id)
            if folder is None:
                raise NotFoundError("Folder", folder_id)
            if folder.is_root:
                raise ValidationError(ErrorMessages.ROOT_FOLDER_IMMOVABLE, field="folder_id")
            if new_parent_id not in tree:
                raise NotFoundError("Folder", new_parent_id)

            tree.check_move(folder_id, new_parent_id)

            subtree = [folder_id, *tree.descendant_ids(folder_id)]
            check_folder_type(
                folder_id,
                tree.effective_type(new_parent_id),
                [tree.get(i).folder_type for i in subtree],
                await self._files.audio_types_in_folders(subtree),
            )

            siblings = [f for f in tree.children(new_parent_id) if f.id != folder_id]
            plan = self._allocator.plan_insert([f.position for f in siblings], at_index)
            reposition = self._reposition(
                [f.id for f in siblings], plan, LockKeys.FOLDER.format(id=new_parent_id)
            )
            await self._folders.move(folder_id, new_parent_id, plan.position, reposition)

        logger.info(LogTemplates.FOLDER_MOVED, folder_id, new_parent_id, plan.position)
        return await self.get_folder(folder_id)

    async def delete_folder(self, folder_id: int) -> tuple[int, int]:
        """Delete a folder subtree with its files.

        Returns:
            ``(folders_deleted, files_deleted)``.
        """
        async with self._locks.hold(LockKeys.FOLDER_TREE, LockKeys.FOLDER.format(id=folder_id)):
            folder = await self.get_folder(folder_id)
            if folder.is_root:
                raise ValidationError(ErrorMessages.ROOT_FOLDER_UNDELETABLE, field="folder_id")
            folders, files = await self._folders.delete_subtree(folder_id)

        logger.info(LogTemplates.FOLDERS_DELETED, folders, files)
        return folders, files

    # === Files ===

    async def register_file(
        self,
        name: str,
        audio_type: AudioType | str,
        source: str,
        folder_id: int,
        duration_seconds: float | None = None,
    ) -> AudioFile:
        """Register an audio asset and announce it with FILE_DOWNLOADED."""
        atype = parse_enum(AudioType, audio_type, "audio_type")
        draft = _build(
            AudioFile,
            name=name,
            audio_type=atype,
            source=source,
            folder_id=folder_id,
            duration_seconds=duration_seconds,
        )

        async with self._locks.hold(LockKeys.FOLDER_TREE):
            await self._check_file_destination(folder_id, atype)
            file = await self._files.add(draft)

        logger.info(LogTemplates.FILE_REGISTERED, atype.value, file.id, folder_id)

        if self._channel is not None:
            await self._channel.publish(
                Namespace.AUDIO,
                AudioEventType.FILE_DOWNLOADED,
                AudioEventPayload(session_id=self._default_session_id, item_ref=ItemRef.file(file.id)),
            )
        return file

    async def rename_file(self, file_id: int, name: str) -> AudioFile:
        file = await self.get_file(file_id)
        renamed = _build(AudioFile, **{**file.model_dump(), "name": name})
        await self._files.rename(file_id, renamed.name)
        return renamed

    async def move_file(self, file_id: int, folder_id: int) -> AudioFile:
        """Move a file to another folder whose type accepts it."""
        async with self._locks.hold(LockKeys.FOLDER_TREE):
            file = await self.get_file(file_id)
            await self._check_file_destination(folder_id, file.audio_type)
            await self._files.move(file_id, folder_id)
        return file.model_copy(update={"folder_id": folder_id})

    async def delete_files(self, file_ids: Iterable[int]) -> tuple[int, int]:
        """Delete files and drop their collection memberships.

        Returns:
            ``(files_deleted, memberships_dropped)``.
        """
        async with self._locks.hold(LockKeys.FOLDER_TREE):
            deleted, dropped = await self._files.delete_many(file_ids)

        logger.info(LogTemplates.FILES_DELETED, deleted, dropped)
        return deleted, dropped

    # === Helpers ===

    async def _check_file_destination(self, folder_id: int, audio_type: AudioType) -> None:
        tree = FolderTree(await self._folders.list_all())
        if folder_id not in tree:
            raise NotFoundError("Folder", folder_id)
        check_folder_type(folder_id, tree.effective_type(folder_id), [], [audio_type])

    def _reposition(
        self, sibling_ids: Sequence[int | None], plan: InsertPlan, owner: str
    ) -> dict[int, float]:
        """Translate a plan's index-keyed reassignments into row-id keys."""
        if not plan.renumbered:
            return {}
        logger.info(LogTemplates.POSITIONS_RENUMBERED, len(plan.reassigned), owner)
        return {
            sibling_ids[index]: position
            for index, position in plan.reassigned.items()
            if sibling_ids[index] is not None
        }
