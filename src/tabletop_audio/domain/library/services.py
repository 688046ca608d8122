"""
Library Domain Services

Structural rules for collection membership, collection nesting and the
folder tree. Pure functions over already-loaded data; persistence and
locking live in the application layer.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Mapping

from tabletop_audio.domain.library.entities import AudioCollection, AudioFile, Folder, read_order_key
from tabletop_audio.domain.library.value_objects import AudioType, CollectionType, FolderType
from tabletop_audio.domain.shared.exceptions import CycleError, TypeMismatchError, ValidationError
from tabletop_audio.domain.shared.messages import ErrorMessages


class CollectionRules:
    """Which members a collection of each type may hold."""

    FILE_MEMBERS: dict[CollectionType, frozenset[AudioType]] = {
        CollectionType.PLAYLIST: frozenset({AudioType.MUSIC}),
        CollectionType.SFX: frozenset({AudioType.SFX}),
        CollectionType.AMBIENCE: frozenset({AudioType.AMBIENCE}),
        CollectionType.MACRO: frozenset({AudioType.SFX}),
        CollectionType.PACK: frozenset(),
    }

    COLLECTION_MEMBERS: dict[CollectionType, frozenset[CollectionType]] = {
        CollectionType.PLAYLIST: frozenset(),
        CollectionType.SFX: frozenset({CollectionType.MACRO}),
        CollectionType.AMBIENCE: frozenset(),
        CollectionType.MACRO: frozenset({CollectionType.MACRO}),
        CollectionType.PACK: frozenset(CollectionType),
    }

    @classmethod
    def check_file(
        cls, collection: AudioCollection, file: AudioFile, *, enforce_audio_types: bool = True
    ) -> None:
        """Raise TypeMismatchError if ``file`` may not join ``collection``.

        Packs never hold files. Audio type compatibility is only checked
        when ``enforce_audio_types`` is set.
        """
        if collection.is_pack:
            raise TypeMismatchError("pack-holds-collections", ErrorMessages.PACK_REQUIRES_COLLECTIONS)

        if enforce_audio_types and file.audio_type not in cls.FILE_MEMBERS[collection.collection_type]:
            raise TypeMismatchError(
                "file-audio-type",
                ErrorMessages.FILE_TYPE_NOT_ALLOWED.format(
                    collection_type=collection.collection_type.value,
                    audio_type=file.audio_type.value,
                ),
            )

    @classmethod
    def check_collection(cls, collection: AudioCollection, member: AudioCollection) -> None:
        """Raise TypeMismatchError if ``member`` may not be nested in ``collection``."""
        if member.collection_type not in cls.COLLECTION_MEMBERS[collection.collection_type]:
            raise TypeMismatchError(
                "collection-type",
                ErrorMessages.COLLECTION_TYPE_NOT_ALLOWED.format(
                    collection_type=collection.collection_type.value,
                    member_type=member.collection_type.value,
                ),
            )


class CollectionGraph:
    """Directed graph of collection-in-collection memberships.

    Edges point from the containing collection to the nested one.
    """

    def __init__(self, edges: Mapping[int, Iterable[int]]) -> None:
        self._children: dict[int, set[int]] = {parent: set(kids) for parent, kids in edges.items()}
        self._parents: dict[int, set[int]] = {}
        for parent, kids in self._children.items():
            for kid in kids:
                self._parents.setdefault(kid, set()).add(parent)
        self._heights: dict[int, int] = {}
        self._depths: dict[int, int] = {}

    def reaches(self, start: int, target: int) -> bool:
        """True if ``target`` is ``start`` or nested anywhere below it."""
        seen: set[int] = set()
        queue = deque([start])
        while queue:
            node = queue.popleft()
            if node == target:
                return True
            if node in seen:
                continue
            seen.add(node)
            queue.extend(self._children.get(node, ()))
        return False

    def height(self, node: int) -> int:
        """Longest chain of nesting edges below ``node``."""
        return self._longest(node, self._children, self._heights, set())

    def depth(self, node: int) -> int:
        """Longest chain of nesting edges above ``node``."""
        return self._longest(node, self._parents, self._depths, set())

    def _longest(
        self,
        node: int,
        edges: dict[int, set[int]],
        memo: dict[int, int],
        path: set[int],
    ) -> int:
        # Memoised per node; stored nesting graphs are acyclic.
        if node in memo:
            return memo[node]
        if node in path:
            return 0
        path.add(node)
        best = 0
        for nxt in edges.get(node, ()):
            best = max(best, 1 + self._longest(nxt, edges, memo, path))
        path.discard(node)
        memo[node] = best
        return best

    def check_nesting(self, parent_id: int, child_id: int, max_depth: int) -> None:
        """Validate adding ``child_id`` as a member of ``parent_id``.

        Raises:
            CycleError: if the parent would end up containing itself.
            ValidationError: if the resulting chain exceeds ``max_depth``.
        """
        if self.reaches(child_id, parent_id):
            raise CycleError("collection", child_id, parent_id)

        if self.depth(parent_id) + 1 + self.height(child_id) > max_depth:
            raise ValidationError(
                ErrorMessages.NESTING_TOO_DEEP.format(ref=f"collection:{child_id}", max_depth=max_depth),
                field="item_ref",
            )


class FolderTree:
    """Read-only view over a flat list of folders."""

    def __init__(self, folders: Iterable[Folder]) -> None:
        self._by_id: dict[int, Folder] = {f.id: f for f in folders if f.id is not None}
        self._children: dict[int, list[Folder]] = {}
        for folder in self._by_id.values():
            if folder.parent_id is not None:
                self._children.setdefault(folder.parent_id, []).append(folder)
        for kids in self._children.values():
            kids.sort(key=lambda f: read_order_key(f.position, f.id))

    def __contains__(self, folder_id: object) -> bool:
        return folder_id in self._by_id

    def get(self, folder_id: int) -> Folder | None:
        return self._by_id.get(folder_id)

    def roots(self) -> list[Folder]:
        roots = [f for f in self._by_id.values() if f.parent_id is None]
        return sorted(roots, key=lambda f: read_order_key(f.position, f.id))

    def children(self, folder_id: int) -> list[Folder]:
        """Direct children of ``folder_id`` in read order."""
        return list(self._children.get(folder_id, []))

    def ancestors(self, folder_id: int) -> list[Folder]:
        """Parent chain from the immediate parent up to the root."""
        chain: list[Folder] = []
        seen = {folder_id}
        current = self._by_id.get(folder_id)
        while current is not None and current.parent_id is not None:
            if current.parent_id in seen:
                break
            seen.add(current.parent_id)
            parent = self._by_id.get(current.parent_id)
            if parent is None:
                break
            chain.append(parent)
            current = parent
        return chain

    def descendant_ids(self, folder_id: int) -> list[int]:
        """Every folder id below ``folder_id`` (breadth first, excluding itself)."""
        result: list[int] = []
        seen = {folder_id}
        queue = deque([folder_id])
        while queue:
            for child in self._children.get(queue.popleft(), []):
                if child.id in seen:
                    continue
                seen.add(child.id)
                result.append(child.id)
                queue.append(child.id)
        return result

    def effective_type(self, folder_id: int) -> AudioType | None:
        """Nearest constraining audio type on the path from ``folder_id`` to the root."""
        folder = self._by_id.get(folder_id)
        if folder is None:
            return None
        for node in [folder, *self.ancestors(folder_id)]:
            if node.folder_type.constrains:
                return node.folder_type.audio_type
        return None

    def check_move(self, folder_id: int, new_parent_id: int) -> None:
        """Raise CycleError if ``new_parent_id`` is the folder itself or below it."""
        if new_parent_id == folder_id or new_parent_id in self.descendant_ids(folder_id):
            raise CycleError("folder", folder_id, new_parent_id)

    def build(self, root_id: int) -> Folder:
        """Materialize the nested tree rooted at ``root_id``."""
        folder = self._by_id[root_id]
        return folder.model_copy(
            update={"children": [self.build(child.id) for child in self.children(root_id)]}
        )


def check_folder_type(
    folder_id: int,
    required: AudioType | None,
    folder_types: Iterable[FolderType],
    audio_types: Iterable[AudioType],
) -> None:
    """Ensure a subtree fits under a destination constrained to ``required``.

    Raises:
        TypeMismatchError: a constraining folder or a file in the subtree
            has a different audio type.
    """
    if required is None:
        return

    for folder_type in folder_types:
        if folder_type.constrains and folder_type.audio_type != required:
            raise TypeMismatchError(
                "folder-type",
                ErrorMessages.FOLDER_TYPE_CONFLICT.format(
                    folder_id=folder_id, expected=required.value, actual=folder_type.value
                ),
            )

    for audio_type in audio_types:
        if audio_type != required:
            raise TypeMismatchError(
                "folder-type",
                ErrorMessages.FOLDER_TYPE_CONFLICT.format(
                    folder_id=folder_id, expected=required.value, actual=audio_type.value
                ),
            )
