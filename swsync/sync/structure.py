"""Flat path views over the remote project tree."""

from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Optional, TypeVar

from ..models import ProjectStructure, RemoteFile, RemoteFolder

# Top-level remote folder that holds pushed content
REMOTE_SOURCE_FOLDER_NAME = "source"

PUSH_METADATA_FILENAME = "push_metadata.json"
PUSH_METADATA_REMOTE_PATH = f"{REMOTE_SOURCE_FOLDER_NAME}/{PUSH_METADATA_FILENAME}"
PUSH_METADATA_RELATIVE_PATH = f".uipath/{PUSH_METADATA_FILENAME}"

T = TypeVar("T")


@dataclass
class EmptyFolder:
    """A materialised remote folder holding no files at any depth."""

    id: str
    name: str
    path: str


# =============================================================================
# Path helpers
# =============================================================================


def normalize_separators(path: str) -> str:
    """Use forward slashes as the only separator."""
    return path.replace("\\", "/")


def normalize_folder_path(path: str) -> str:
    """Normalize a folder path for lookups.

    The backend may change the casing of folder names, so folder lookups
    ignore case. File paths are never passed through this function.

    Example:
        >>> normalize_folder_path("Source\\\\Dist")
        'source/dist'
    """
    return normalize_separators(path).lower()


def normalize_bundle_path(bundle_path: str) -> str:
    """Reduce a bundle path to plain segments.

    Example:
        >>> normalize_bundle_path("./dist/")
        'dist'
    """
    parts = PurePosixPath(normalize_separators(bundle_path)).parts
    return "/".join(part for part in parts if part not in ("/", "."))


def get_remote_content_root(bundle_path: str) -> str:
    """Return the remote folder that mirrors the local bundle directory.

    Examples:
        >>> get_remote_content_root("dist")
        'source/dist'
        >>> get_remote_content_root("")
        'source'
    """
    name = normalize_bundle_path(bundle_path)
    if not name:
        return REMOTE_SOURCE_FOLDER_NAME
    return f"{REMOTE_SOURCE_FOLDER_NAME}/{name}"


def local_path_to_remote_path(local_path: str, bundle_path: str) -> str:
    """Map a path relative to the project root to its remote path.

    A path equal to the bundle directory maps to the content root itself.
    """
    local = normalize_separators(local_path).strip("/")
    if local == normalize_bundle_path(bundle_path):
        return get_remote_content_root(bundle_path)
    return f"{REMOTE_SOURCE_FOLDER_NAME}/{local}"


def parent_path(path: str) -> str:
    """Return the parent of a slash-separated path, or an empty string."""
    return path.rsplit("/", 1)[0] if "/" in path else ""


def path_depth(path: str) -> int:
    """Number of non-empty segments in a path."""
    return len([segment for segment in path.split("/") if segment])


def ancestor_paths(path: str) -> list[str]:
    """All proper ancestors of a path, shallowest first.

    Example:
        >>> ancestor_paths("source/dist/js/app.js")
        ['source', 'source/dist', 'source/dist/js']
    """
    segments = [segment for segment in path.split("/") if segment]
    return ["/".join(segments[:i]) for i in range(1, len(segments))]


def is_under(path: str, root: str) -> bool:
    """Check whether ``path`` equals ``root`` or lies below it."""
    return path == root or path.startswith(root + "/")


# =============================================================================
# Flat maps
# =============================================================================


def get_remote_files_map(structure: ProjectStructure) -> dict[str, RemoteFile]:
    """Flatten the tree into ``path -> RemoteFile`` by pre-order traversal."""
    files: dict[str, RemoteFile] = {}

    def walk(folder: RemoteFolder, prefix: str) -> None:
        for file in folder.files:
            files[f"{prefix}/{file.name}"] = file
        for child in folder.folders:
            walk(child, f"{prefix}/{child.name}")

    for file in structure.files:
        files[file.name] = file
    for folder in structure.folders:
        walk(folder, folder.name)
    return files


def get_remote_folders_map(structure: ProjectStructure) -> dict[str, RemoteFolder]:
    """Flatten the tree into ``path -> RemoteFolder`` by pre-order traversal."""
    folders: dict[str, RemoteFolder] = {}

    def walk(folder: RemoteFolder, path: str) -> None:
        folders[path] = folder
        for child in folder.folders:
            walk(child, f"{path}/{child.name}")

    for folder in structure.folders:
        walk(folder, folder.name)
    return folders


def filter_to_subtree(mapping: dict[str, T], root: str) -> dict[str, T]:
    """Keep only entries at ``root`` or below it."""
    return {path: value for path, value in mapping.items() if is_under(path, root)}


def rekey_subtree(mapping: dict[str, T], root: str, new_root: str) -> dict[str, T]:
    """Move entries at or below ``root`` under ``new_root``.

    Entries outside ``root`` keep their keys.

    Example:
        >>> rekey_subtree({"Source/a.txt": 1, "b.txt": 2}, "Source", "source")
        {'source/a.txt': 1, 'b.txt': 2}
    """
    if root == new_root:
        return dict(mapping)
    result: dict[str, T] = {}
    for path, value in mapping.items():
        if is_under(path, root):
            path = new_root + path[len(root) :]
        result[path] = value
    return result


def find_folder_path(folders_map: dict[str, RemoteFolder], path: str) -> Optional[str]:
    """Find the key of a folder by normalized path.

    Returns:
        The key as stored in the map, or None if no folder matches
    """
    if path in folders_map:
        return path
    wanted = normalize_folder_path(path)
    for key in folders_map:
        if normalize_folder_path(key) == wanted:
            return key
    return None


def get_folder_id(folders_map: dict[str, RemoteFolder], path: str) -> Optional[str]:
    """Resolve a folder id by normalized path."""
    key = find_folder_path(folders_map, path)
    if key is None:
        return None
    return folders_map[key].id


# =============================================================================
# Empty folder detection
# =============================================================================


def is_folder_empty(folder: RemoteFolder) -> bool:
    """True if the folder holds no files at any depth."""
    if folder.files:
        return False
    return all(is_folder_empty(child) for child in folder.folders)


def find_empty_folders(
    structure: ProjectStructure, root_path: Optional[str] = None
) -> list[EmptyFolder]:
    """Collect empty, materialised folders under ``root_path``.

    The walk is post-order, so children are always listed before their
    parents and the result can be deleted front to back. The root folder
    itself is included when it is empty.

    Args:
        structure: Remote tree snapshot
        root_path: Folder to search below; the whole tree when omitted.
            Segments are matched case-insensitively.

    Returns:
        Empty folders in children-before-parents order
    """
    result: list[EmptyFolder] = []

    def walk(folder: RemoteFolder, path: str) -> None:
        for child in folder.folders:
            walk(child, f"{path}/{child.name}")
        if folder.id and is_folder_empty(folder):
            result.append(EmptyFolder(id=folder.id, name=folder.name, path=path))

    if not root_path:
        for folder in structure.folders:
            walk(folder, folder.name)
        return result

    segments = [s for s in normalize_separators(root_path).split("/") if s]
    candidates = structure.folders
    current: Optional[RemoteFolder] = None
    resolved: list[str] = []
    for segment in segments:
        current = next(
            (f for f in candidates if f.name.lower() == segment.lower()), None
        )
        if current is None:
            return result
        resolved.append(current.name)
        candidates = current.folders

    if current is not None:
        walk(current, "/".join(resolved))
    return result
