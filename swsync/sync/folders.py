"""Remote folder reconciliation.

The folder API only creates folders at the project root. Nested folders
are created at the root first and then moved under their parent, with the
structure snapshot refetched after every mutation so ids always come from
the server.
"""

import logging
from typing import TYPE_CHECKING, Optional

from ..exceptions import ContentRootError, StudioWebAPIError
from ..models import ProjectStructure
from ..output import OutputFormatter
from .plan import CreateFolderEntry, DeleteFolderEntry, ExecutionPlan
from .structure import (
    REMOTE_SOURCE_FOLDER_NAME,
    find_empty_folders,
    find_folder_path,
    get_folder_id,
    get_remote_content_root,
    get_remote_folders_map,
    normalize_folder_path,
    parent_path,
    path_depth,
)

if TYPE_CHECKING:
    from ..api import StudioWebClient
    from .operations import BatchExecutor, FileOpsResult

logger = logging.getLogger(__name__)


class FolderReconciler:
    """Makes the remote folder tree match what a plan needs."""

    def __init__(
        self,
        client: "StudioWebClient",
        structure: ProjectStructure,
        lock_key: Optional[str],
        output: Optional[OutputFormatter] = None,
    ):
        self.client = client
        self.structure = structure
        self.lock_key = lock_key
        self.output = output or OutputFormatter()

    def refetch(self) -> ProjectStructure:
        """Replace the snapshot with a fresh copy from the server."""
        self.structure = self.client.fetch_structure()
        return self.structure

    def _folders(self):
        return get_remote_folders_map(self.structure)

    # =========================
    # Content root
    # =========================

    def ensure_content_root_exists(self, bundle_path: str) -> None:
        """Create ``source`` and every content-root segment below it.

        Args:
            bundle_path: Build output directory (may have several segments)

        Raises:
            ContentRootError: If a folder still cannot be found after creation
        """
        if find_folder_path(self._folders(), REMOTE_SOURCE_FOLDER_NAME) is None:
            logger.debug("Creating remote '%s' folder", REMOTE_SOURCE_FOLDER_NAME)
            self.client.create_folder_at_root(REMOTE_SOURCE_FOLDER_NAME, self.lock_key)
            self.refetch()
            if find_folder_path(self._folders(), REMOTE_SOURCE_FOLDER_NAME) is None:
                raise ContentRootError(
                    f"Remote folder '{REMOTE_SOURCE_FOLDER_NAME}' could not be created"
                )

        segments = get_remote_content_root(bundle_path).split("/")
        current_path = segments[0]
        for segment in segments[1:]:
            parent = current_path
            current_path = f"{current_path}/{segment}"
            if find_folder_path(self._folders(), current_path) is not None:
                continue

            logger.debug(f"Creating content root segment {current_path}")
            folder_id = self.client.create_folder_at_root(segment, self.lock_key)
            self.refetch()
            folders = self._folders()
            if folder_id is None:
                folder_id = get_folder_id(folders, segment)
            parent_id = get_folder_id(folders, parent)

            if folder_id and parent_id and folder_id != parent_id:
                self.client.move_folder(folder_id, parent_id, self.lock_key)
                self.refetch()

            if find_folder_path(self._folders(), current_path) is None:
                raise ContentRootError(
                    f"Remote folder '{current_path}' could not be created"
                )

    # =========================
    # Plan folders
    # =========================

    def build_folder_id_map(self) -> dict[str, str]:
        """Map normalized folder paths to ids for the current snapshot."""
        return {
            normalize_folder_path(path): folder.id
            for path, folder in self._folders().items()
            if folder.id
        }

    def ensure_folders_created(
        self, plan: ExecutionPlan, folder_id_map: dict[str, str]
    ) -> None:
        """Create the plan's missing folders and nest them under their parents.

        Folders are handled one depth level at a time, and folders of one
        level that share a name go in separate rounds. Each round is created
        at the root, the snapshot is refetched, ids are backfilled, and the
        round is moved into place before the next one starts. Two new folders
        sharing a name (``a/js`` and ``b/js``) are never at the root together.

        Creation may not report an id, so ids are backfilled by exact path,
        then by bare name among unclaimed root folders. ``folder_id_map`` is
        updated in place.
        """
        pending = [
            entry
            for entry in plan.create_folders
            if normalize_folder_path(entry.path) not in folder_id_map
        ]
        levels: dict[int, list[CreateFolderEntry]] = {}
        for entry in pending:
            levels.setdefault(path_depth(entry.path), []).append(entry)

        for depth in sorted(levels):
            for batch in _batches_with_distinct_names(levels[depth]):
                to_move = self._create_at_root(batch, folder_id_map)
                self.move_nested_folders_into_parents(to_move, folder_id_map)

    def _create_at_root(
        self, entries: list[CreateFolderEntry], folder_id_map: dict[str, str]
    ) -> list[CreateFolderEntry]:
        """Create folders with distinct names at the root.

        Returns:
            The entries that now sit at the root and still need moving
        """
        for entry in entries:
            name = entry.path.rsplit("/", 1)[-1]
            try:
                folder_id = self.client.create_folder_at_root(name, self.lock_key)
            except StudioWebAPIError as e:
                self.output.warning(f"Failed to create folder {entry.path}: {e}")
                continue
            if folder_id:
                entry.id = folder_id
                folder_id_map[normalize_folder_path(entry.path)] = folder_id

        self.refetch()
        folders = self._folders()
        claimed = set(folder_id_map.values())
        root_by_name = {
            folder.name.lower(): folder.id for folder in self.structure.folders if folder.id
        }

        to_move = []
        for entry in entries:
            key = normalize_folder_path(entry.path)
            if key in folder_id_map:
                to_move.append(entry)
                continue
            resolved = get_folder_id(folders, entry.path)
            if resolved:
                # Already nested where it belongs
                entry.id = resolved
                folder_id_map[key] = resolved
                claimed.add(resolved)
                continue
            candidate = root_by_name.get(entry.path.rsplit("/", 1)[-1].lower())
            if candidate and candidate not in claimed:
                entry.id = candidate
                folder_id_map[key] = candidate
                claimed.add(candidate)
                to_move.append(entry)
            else:
                logger.warning(f"Could not resolve id for folder {entry.path}")
        return to_move

    def move_nested_folders_into_parents(
        self, create_folders: list[CreateFolderEntry], folder_id_map: dict[str, str]
    ) -> None:
        """Move each created nested folder under its parent.

        Entries are processed shallowest first so a parent is in place
        before its children. Failures are logged and skipped.
        """
        moved = False
        for entry in sorted(create_folders, key=lambda e: path_depth(e.path)):
            if path_depth(entry.path) < 2:
                continue
            folder_id = folder_id_map.get(normalize_folder_path(entry.path))
            parent_id = folder_id_map.get(normalize_folder_path(parent_path(entry.path)))
            if not folder_id or not parent_id or folder_id == parent_id:
                continue
            try:
                self.client.move_folder(folder_id, parent_id, self.lock_key)
                moved = True
            except StudioWebAPIError as e:
                self.output.warning(f"Failed to move folder {entry.path}: {e}")

        if moved:
            self.refetch()

    @staticmethod
    def resolve_upload_parents(plan: ExecutionPlan, folder_id_map: dict[str, str]) -> None:
        """Fill in parent ids for uploads from the reconciled folder ids."""
        for upload in plan.upload_files:
            if upload.parent_path:
                upload.parent_id = folder_id_map.get(
                    normalize_folder_path(upload.parent_path)
                )

    # =========================
    # Cleanup
    # =========================

    def cleanup_empty_folders(
        self, content_root: str, executor: "BatchExecutor"
    ) -> "FileOpsResult":
        """Delete folders under the content root left without any files.

        Deletions run deepest first, one at a time. Failures are reported
        in the returned result but are not treated as push failures.
        """
        self.refetch()
        empty = find_empty_folders(self.structure, content_root)
        folders = [
            DeleteFolderEntry(folder_id=folder.id, path=folder.path)
            for folder in empty
            if normalize_folder_path(folder.path) != normalize_folder_path(content_root)
        ]
        if folders:
            logger.debug(f"Removing {len(folders)} empty folder(s)")
        return executor.delete_folders(folders)


def _batches_with_distinct_names(
    entries: list[CreateFolderEntry],
) -> list[list[CreateFolderEntry]]:
    """Split entries so that no batch holds two folders with the same name."""
    batches: list[list[CreateFolderEntry]] = []
    for entry in entries:
        name = entry.path.rsplit("/", 1)[-1].lower()
        for batch in batches:
            if all(other.path.rsplit("/", 1)[-1].lower() != name for other in batch):
                batch.append(entry)
                break
        else:
            batches.append([entry])
    return batches
