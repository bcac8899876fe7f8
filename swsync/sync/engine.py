"""Push engine: sequences a full push under the remote project lock."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from ..exceptions import LockNotAcquiredError, PushError, StudioWebAPIError
from ..output import OutputFormatter
from ..utils import WORKER_POOL_SIZE
from .folders import FolderReconciler
from .metadata import add_metadata_to_plan, prepare_metadata
from .operations import BatchExecutor, FileOpsResult, ProgressCallback
from .plan import ExecutionPlan, PlanComputer, compute_first_push_plan
from .resources import BINDINGS_FILE_NAME, ImportSummary, ResourceImporter
from .scanner import DirectoryScanner
from .structure import (
    REMOTE_SOURCE_FOLDER_NAME,
    filter_to_subtree,
    find_folder_path,
    get_remote_content_root,
    get_remote_files_map,
    get_remote_folders_map,
    rekey_subtree,
)

if TYPE_CHECKING:
    from ..api import StudioWebClient

logger = logging.getLogger(__name__)


class PushState(str, Enum):
    """Stages of a push, in order."""

    IDLE = "idle"
    LOCK_ACQUIRED = "lock_acquired"
    STRUCTURE_FETCHED = "structure_fetched"
    PLAN_COMPUTED = "plan_computed"
    FOLDERS_RECONCILED = "folders_reconciled"
    FILE_OPS_EXECUTED = "file_ops_executed"
    CLEANED_UP = "cleaned_up"
    RESOURCES_IMPORTED = "resources_imported"
    DONE = "done"
    FAILED = "failed"


@dataclass
class PushResult:
    """What a completed push did."""

    plan: ExecutionPlan
    file_ops: FileOpsResult = field(default_factory=FileOpsResult)
    cleanup: FileOpsResult = field(default_factory=FileOpsResult)
    import_summary: Optional[ImportSummary] = None
    first_push: bool = False


class PushEngine:
    """Pushes a local build directory to a Studio Web project."""

    def __init__(
        self,
        client: "StudioWebClient",
        output: Optional[OutputFormatter] = None,
        batch_size: int = WORKER_POOL_SIZE,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        """Initialize push engine.

        Args:
            client: Studio Web API client
            output: Output formatter for user-facing messages
            batch_size: Number of concurrent remote operations
            progress_callback: Receives (stage, processed, total) after each batch
        """
        self.client = client
        self.output = output or OutputFormatter()
        self.batch_size = batch_size
        self.progress_callback = progress_callback
        self.state = PushState.IDLE

    def _transition(self, state: PushState) -> None:
        logger.debug(f"Push state: {self.state.value} -> {state.value}")
        self.state = state

    def push(
        self,
        project_dir: Path,
        bundle_path: str,
        ignore_resources: bool = False,
        ignore_patterns: Optional[list[str]] = None,
        exclude_dot_files: bool = True,
    ) -> PushResult:
        """Push ``project_dir/bundle_path`` to the remote project.

        Args:
            project_dir: Project root (holds bindings.json and .uipath/)
            bundle_path: Build output directory relative to the project root
            ignore_resources: Skip the referenced resource import
            ignore_patterns: Extra glob patterns to exclude
            exclude_dot_files: Skip files and folders starting with a dot

        Returns:
            PushResult describing the work done

        Raises:
            ValueError: If the project or bundle directory is missing
            LockNotAcquiredError: If the project lock could not be obtained
            PushError: If any file or folder operation failed
        """
        project_dir = Path(project_dir)
        bundle_dir = project_dir / bundle_path
        if not project_dir.exists():
            raise ValueError(f"Project directory does not exist: {project_dir}")
        if not bundle_dir.exists():
            raise ValueError(f"Build directory does not exist: {bundle_dir}")
        if not bundle_dir.is_dir():
            raise ValueError(f"Build path is not a directory: {bundle_dir}")

        self.state = PushState.IDLE
        self.output.info("[push] Acquiring lock...")
        try:
            lock_info = self.client.acquire_lock()
        except Exception:
            self._transition(PushState.FAILED)
            raise
        lock_key = lock_info.lock_key
        if not lock_key:
            self._transition(PushState.FAILED)
            raise LockNotAcquiredError(
                "Could not acquire the project lock. "
                "The project may be open in Studio Web by another user."
            )
        self._transition(PushState.LOCK_ACQUIRED)

        try:
            return self._push_locked(
                project_dir,
                bundle_path,
                lock_key,
                ignore_resources,
                ignore_patterns,
                exclude_dot_files,
            )
        except Exception:
            self._transition(PushState.FAILED)
            raise
        finally:
            try:
                self.client.release_lock(lock_key)
                logger.debug("Lock released")
            except StudioWebAPIError as e:
                self.output.warning(f"Failed to release project lock: {e}")

    def _push_locked(
        self,
        project_dir: Path,
        bundle_path: str,
        lock_key: str,
        ignore_resources: bool,
        ignore_patterns: Optional[list[str]],
        exclude_dot_files: bool,
    ) -> PushResult:
        self.output.info("[push] Fetching remote structure...")
        structure = self.client.fetch_structure()
        self._transition(PushState.STRUCTURE_FETCHED)

        scanner = DirectoryScanner(
            ignore_patterns=ignore_patterns, exclude_dot_files=exclude_dot_files
        )
        local_files = scanner.scan_bundle(project_dir, bundle_path)
        self.output.info(f"[push] Local files: {len(local_files)}")

        # The backend may re-case folders, so paths under source are keyed
        # by their canonical spelling before any case-sensitive comparison
        remote_files = get_remote_files_map(structure)
        remote_folders = get_remote_folders_map(structure)
        source_key = find_folder_path(remote_folders, REMOTE_SOURCE_FOLDER_NAME)
        if source_key is not None:
            remote_files = rekey_subtree(remote_files, source_key, REMOTE_SOURCE_FOLDER_NAME)
            remote_folders = rekey_subtree(remote_folders, source_key, REMOTE_SOURCE_FOLDER_NAME)
        content_root = get_remote_content_root(bundle_path)
        reconciler = FolderReconciler(self.client, structure, lock_key, self.output)

        root_key = find_folder_path(remote_folders, content_root)
        first_push = root_key is None
        if first_push:
            self.output.info(f"[push] First push: ensuring {content_root}...")
            reconciler.ensure_content_root_exists(bundle_path)
            plan = compute_first_push_plan(
                local_files, get_remote_folders_map(reconciler.structure), bundle_path
            )
            self.output.info(
                f"[push] Plan: {len(plan.upload_files)} to upload, "
                f"{len(plan.create_folders)} folder(s) to create."
            )
        else:
            self.output.info(f"[push] Computing diff (scoped to {content_root})...")
            computer = PlanComputer(self.client.download_file, batch_size=self.batch_size)
            plan = computer.compute_execution_plan(
                local_files,
                filter_to_subtree(
                    rekey_subtree(remote_files, root_key, content_root), content_root
                ),
                filter_to_subtree(
                    rekey_subtree(remote_folders, root_key, content_root), content_root
                ),
                bundle_path,
            )
            self.output.info(
                f"[push] Plan: {len(plan.upload_files)} add, "
                f"{len(plan.update_files)} update, {len(plan.delete_files)} delete."
            )

        metadata_file = prepare_metadata(
            project_dir,
            str(self.client.project_id),
            bundle_path,
            remote_files,
            self.client.download_file,
        )
        add_metadata_to_plan(plan, metadata_file, remote_files)
        self._transition(PushState.PLAN_COMPUTED)

        folder_id_map = reconciler.build_folder_id_map()
        if plan.create_folders:
            self.output.info(f"[push] Creating {len(plan.create_folders)} folder(s)...")
            reconciler.ensure_folders_created(plan, folder_id_map)
        reconciler.resolve_upload_parents(plan, folder_id_map)
        self._transition(PushState.FOLDERS_RECONCILED)

        executor = BatchExecutor(
            self.client,
            lock_key,
            self.output,
            batch_size=self.batch_size,
            progress_callback=self.progress_callback,
        )
        file_ops = FileOpsResult()
        if plan.upload_files or plan.update_files:
            total = len(plan.upload_files) + len(plan.update_files)
            self.output.info(f"[push] Executing {total} file operation(s)...")
            file_ops = file_ops.merge(executor.execute_file_operations(plan))
        if plan.delete_files:
            self.output.info(f"[push] Deleting {len(plan.delete_files)} file(s)...")
            file_ops = file_ops.merge(executor.delete_files(plan.delete_files))
        if plan.delete_folders:
            ordered = sorted(
                plan.delete_folders, key=lambda f: f.path.count("/"), reverse=True
            )
            self.output.info(f"[push] Deleting {len(ordered)} folder(s)...")
            file_ops = file_ops.merge(executor.delete_folders(ordered))
        self._transition(PushState.FILE_OPS_EXECUTED)

        self.output.info("[push] Cleaning up empty folders...")
        cleanup = reconciler.cleanup_empty_folders(content_root, executor)
        self._transition(PushState.CLEANED_UP)

        if file_ops.failed_count > 0:
            raise PushError(f"Push failed: {file_ops.failed_count} operation(s) failed.")

        import_summary = None
        if not ignore_resources:
            self.output.info("[resources] Importing referenced resources...")
            import_summary = ResourceImporter(
                self.client, self.output
            ).run_import_referenced_resources(project_dir / BINDINGS_FILE_NAME, lock_key)
        self._transition(PushState.RESOURCES_IMPORTED)

        self._transition(PushState.DONE)
        self.output.success("[push] Done.")
        return PushResult(
            plan=plan,
            file_ops=file_ops,
            cleanup=cleanup,
            import_summary=import_summary,
            first_push=first_push,
        )
