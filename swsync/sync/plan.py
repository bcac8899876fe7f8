"""Diffing local files against the remote tree."""

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from ..models import RemoteFile, RemoteFolder
from ..utils import WORKER_POOL_SIZE, compute_hash
from .operations import settle_in_batches
from .scanner import LocalFile
from .structure import (
    PUSH_METADATA_FILENAME,
    PUSH_METADATA_RELATIVE_PATH,
    PUSH_METADATA_REMOTE_PATH,
    REMOTE_SOURCE_FOLDER_NAME,
    ancestor_paths,
    get_remote_content_root,
    is_under,
    local_path_to_remote_path,
    normalize_folder_path,
    normalize_separators,
    parent_path,
    path_depth,
)

logger = logging.getLogger(__name__)


@dataclass
class CreateFolderEntry:
    path: str
    id: Optional[str] = None


@dataclass
class UploadFileEntry:
    path: str
    local_file: LocalFile
    parent_path: Optional[str]
    parent_id: Optional[str] = None
    """Filled in once the parent folder has been reconciled"""


@dataclass
class UpdateFileEntry:
    path: str
    local_file: LocalFile
    file_id: str


@dataclass
class DeleteFileEntry:
    file_id: str
    path: str


@dataclass
class DeleteFolderEntry:
    folder_id: str
    path: str


@dataclass
class ExecutionPlan:
    """Structural changes that bring the remote tree in line with local files.

    All paths are full remote paths under the content root, e.g.
    ``source/dist/assets/app.js``.
    """

    create_folders: list[CreateFolderEntry] = field(default_factory=list)
    upload_files: list[UploadFileEntry] = field(default_factory=list)
    update_files: list[UpdateFileEntry] = field(default_factory=list)
    delete_files: list[DeleteFileEntry] = field(default_factory=list)
    delete_folders: list[DeleteFolderEntry] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (
            self.create_folders
            or self.upload_files
            or self.update_files
            or self.delete_files
            or self.delete_folders
        )

    @property
    def operation_count(self) -> int:
        return (
            len(self.create_folders)
            + len(self.upload_files)
            + len(self.update_files)
            + len(self.delete_files)
            + len(self.delete_folders)
        )


def is_metadata_path(path: str) -> bool:
    """Push metadata is managed separately from the diff."""
    return (
        path in (PUSH_METADATA_REMOTE_PATH, PUSH_METADATA_RELATIVE_PATH, PUSH_METADATA_FILENAME)
        or path.endswith("/" + PUSH_METADATA_FILENAME)
    )


def _upload_parent(remote_path: str) -> str:
    return parent_path(remote_path) or REMOTE_SOURCE_FOLDER_NAME


def _missing_folders(
    required: set[str], remote_folders: dict[str, RemoteFolder], content_root: str
) -> list[CreateFolderEntry]:
    """Required folders at or below the content root not yet present remotely.

    Returns:
        Entries sorted by depth, shallowest first
    """
    existing = {normalize_folder_path(path) for path in remote_folders}
    missing = sorted(
        {
            path
            for path in required
            if is_under(normalize_folder_path(path), normalize_folder_path(content_root))
            and normalize_folder_path(path) not in existing
        },
        key=lambda p: (path_depth(p), p),
    )
    return [CreateFolderEntry(path=path) for path in missing]


def _with_remote_paths(
    local_files: list[LocalFile], bundle_path: str
) -> list[tuple[LocalFile, str]]:
    return [
        (local_file, local_path_to_remote_path(local_file.relative_path, bundle_path))
        for local_file in local_files
    ]


def compute_first_push_plan(
    local_files: list[LocalFile],
    remote_folders: dict[str, RemoteFolder],
    bundle_path: str,
) -> ExecutionPlan:
    """Plan for a project whose content root has no files yet.

    Every local file is uploaded and every ancestor folder that does not
    exist remotely is created.

    Args:
        local_files: Collected local files
        remote_folders: Full remote folder map
        bundle_path: Build output directory relative to the project root

    Returns:
        The execution plan
    """
    plan = ExecutionPlan()
    content_root = get_remote_content_root(bundle_path)
    required: set[str] = set()

    for local_file, remote_path in _with_remote_paths(local_files, bundle_path):
        if is_metadata_path(remote_path):
            continue
        parent = _upload_parent(remote_path)
        plan.upload_files.append(
            UploadFileEntry(path=remote_path, local_file=local_file, parent_path=parent)
        )
        required.update(ancestor_paths(remote_path))

    plan.create_folders = _missing_folders(required, remote_folders, content_root)
    logger.debug(
        f"First push plan: {len(plan.upload_files)} upload(s), "
        f"{len(plan.create_folders)} folder(s)"
    )
    return plan


class PlanComputer:
    """Computes incremental plans by comparing content hashes.

    The remote store does not expose content hashes, so every file present
    on both sides is downloaded and hashed with the same line-ending
    normalization as local files.
    """

    def __init__(
        self,
        download_file: Callable[[str], bytes],
        batch_size: int = WORKER_POOL_SIZE,
    ):
        """Initialize the plan computer.

        Args:
            download_file: Returns the bytes of a remote file by id
            batch_size: Number of concurrent downloads
        """
        self.download_file = download_file
        self.batch_size = batch_size

    def _remote_hash(self, remote_file: RemoteFile) -> str:
        return compute_hash(self.download_file(remote_file.id))

    def compute_execution_plan(
        self,
        local_files: list[LocalFile],
        remote_files: dict[str, RemoteFile],
        remote_folders: dict[str, RemoteFolder],
        bundle_path: str,
    ) -> ExecutionPlan:
        """Diff local files against the remote content root.

        Args:
            local_files: Collected local files
            remote_files: Remote file map scoped to the content root
            remote_folders: Remote folder map
            bundle_path: Build output directory relative to the project root

        Returns:
            The execution plan; empty when nothing changed
        """
        plan = ExecutionPlan()
        content_root = get_remote_content_root(bundle_path)
        remote_by_path = {
            normalize_separators(path): remote for path, remote in remote_files.items()
        }

        required: set[str] = set()
        local_paths: set[str] = set()
        to_compare: list[tuple[LocalFile, str, RemoteFile]] = []

        for local_file, remote_path in _with_remote_paths(local_files, bundle_path):
            if is_metadata_path(remote_path):
                continue
            local_paths.add(remote_path)
            required.update(ancestor_paths(remote_path))

            remote_file = remote_by_path.get(remote_path)
            if remote_file is None:
                plan.upload_files.append(
                    UploadFileEntry(
                        path=remote_path,
                        local_file=local_file,
                        parent_path=_upload_parent(remote_path),
                    )
                )
            else:
                to_compare.append((local_file, remote_path, remote_file))

        outcomes = settle_in_batches(
            to_compare,
            lambda entry: self._remote_hash(entry[2]),
            batch_size=self.batch_size,
        )
        for outcome in outcomes:
            local_file, remote_path, remote_file = outcome.item
            if not outcome.ok:
                logger.warning(
                    f"Could not download remote file {remote_path}: "
                    f"{outcome.error} (will update anyway)"
                )
            elif outcome.value == local_file.hash:
                continue
            plan.update_files.append(
                UpdateFileEntry(path=remote_path, local_file=local_file, file_id=remote_file.id)
            )

        for path, remote_file in remote_by_path.items():
            if is_metadata_path(path) or not is_under(path, content_root):
                continue
            if path not in local_paths:
                plan.delete_files.append(DeleteFileEntry(file_id=remote_file.id, path=path))

        plan.create_folders = _missing_folders(required, remote_folders, content_root)
        logger.debug(
            f"Incremental plan: {len(plan.upload_files)} upload(s), "
            f"{len(plan.update_files)} update(s), {len(plan.delete_files)} delete(s), "
            f"{len(plan.create_folders)} folder(s)"
        )
        return plan
