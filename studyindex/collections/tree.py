"""Directory tree built from the manifest's collection paths."""

from __future__ import annotations

import msgspec

from studyindex.core.paths import join_path, normalize_folder_path, split_path


class DirNode(msgspec.Struct):
    """A folder in the collection tree."""

    name: str
    path: str
    dirs: dict[str, DirNode] = {}
    files: dict[str, str] = {}


class FolderItem(msgspec.Struct, frozen=True):
    """A subfolder shown in a directory listing."""

    name: str
    path: str
    label: str
    virtual: bool = False


class FileItem(msgspec.Struct, frozen=True):
    """A collection shown in a directory listing."""

    filename: str
    key: str
    label: str
    loaded: bool = False


class DirListing(msgspec.Struct, frozen=True):
    """Immediate children of a folder."""

    dir: str
    parent_dir: str | None
    folders: list[FolderItem] = []
    files: list[FileItem] = []


class PathTree:
    """Folder hierarchy of collection paths.

    Built once from the manifest and never modified afterwards.
    """

    def __init__(self):
        """Initialize an empty tree."""
        self.root = DirNode(name="", path="")

    @classmethod
    def from_paths(cls, paths: list[str]) -> PathTree:
        """Build a tree from relative file paths.

        Args:
            paths: Collection keys such as ``japanese/words/verbs.json``

        Returns:
            Populated tree
        """
        tree = cls()
        for path in paths:
            tree._add(path)
        return tree

    def _add(self, rel_path: str) -> None:
        parts = split_path(rel_path)
        if not parts:
            return

        node = self.root
        for part in parts[:-1]:
            child = node.dirs.get(part)
            if child is None:
                child = DirNode(name=part, path=join_path(node.path, part))
                node.dirs[part] = child
            node = child
        node.files[parts[-1]] = rel_path

    def find(self, dir_path: str) -> DirNode | None:
        """Find the node for a folder path.

        Args:
            dir_path: Folder path, ``""`` for the root

        Returns:
            Node or None if the folder does not exist
        """
        node = self.root
        for part in split_path(normalize_folder_path(dir_path)):
            node = node.dirs.get(part)
            if node is None:
                return None
        return node
