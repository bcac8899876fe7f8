"""Batched execution of remote file operations."""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Generic, Optional, TypeVar

from ..output import OutputFormatter
from ..utils import WORKER_POOL_SIZE

if TYPE_CHECKING:
    from ..api import StudioWebClient
    from .plan import DeleteFileEntry, DeleteFolderEntry, ExecutionPlan

logger = logging.getLogger(__name__)

T = TypeVar("T")

ProgressCallback = Callable[[str, int, int], None]


@dataclass
class FailedPath:
    path: str
    error: str


@dataclass
class FileOpsResult:
    """Tally of one or more batches of remote operations."""

    succeeded_count: int = 0
    failed_count: int = 0
    failed_paths: list[FailedPath] = field(default_factory=list)

    def record_success(self) -> None:
        self.succeeded_count += 1

    def record_failure(self, path: str, error: str) -> None:
        self.failed_count += 1
        self.failed_paths.append(FailedPath(path=path, error=error))

    def merge(self, other: "FileOpsResult") -> "FileOpsResult":
        """Return a new result holding the sum of both."""
        return FileOpsResult(
            succeeded_count=self.succeeded_count + other.succeeded_count,
            failed_count=self.failed_count + other.failed_count,
            failed_paths=self.failed_paths + other.failed_paths,
        )

    @property
    def processed_count(self) -> int:
        return self.succeeded_count + self.failed_count


@dataclass
class Settled(Generic[T]):
    """Outcome of one item run through settle_in_batches."""

    item: T
    value: Any = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def settle_in_batches(
    items: list[T],
    func: Callable[[T], Any],
    batch_size: int = WORKER_POOL_SIZE,
    on_batch_done: Optional[Callable[[list["Settled[T]"]], None]] = None,
) -> list["Settled[T]"]:
    """Run ``func`` over ``items`` with bounded concurrency.

    Items are split into batches of ``batch_size``. All calls of a batch run
    concurrently and the next batch only starts once every call of the
    current batch has finished. Exceptions raised by ``func`` are captured
    in the result instead of propagating.

    Args:
        items: Work items
        func: Called once per item
        batch_size: Maximum number of concurrent calls
        on_batch_done: Called with the outcomes of each finished batch

    Returns:
        One Settled per item, in input order
    """
    results: list[Settled[T]] = []
    if not items:
        return results

    batch_size = max(1, batch_size)
    with ThreadPoolExecutor(max_workers=batch_size) as executor:
        for start in range(0, len(items), batch_size):
            batch = items[start : start + batch_size]
            futures = {executor.submit(func, item): i for i, item in enumerate(batch)}
            outcomes: list[Optional[Settled[T]]] = [None] * len(batch)

            for future in as_completed(futures):
                index = futures[future]
                try:
                    outcomes[index] = Settled(item=batch[index], value=future.result())
                except Exception as e:
                    outcomes[index] = Settled(item=batch[index], error=e)

            settled = [outcome for outcome in outcomes if outcome is not None]
            results.extend(settled)
            if on_batch_done is not None:
                on_batch_done(settled)

    return results


class BatchExecutor:
    """Runs plan operations against the remote project under a lock.

    Per-item failures are recorded in the returned FileOpsResult and never
    raised; deciding whether the push failed is left to the caller.
    """

    def __init__(
        self,
        client: "StudioWebClient",
        lock_key: Optional[str],
        output: Optional[OutputFormatter] = None,
        batch_size: int = WORKER_POOL_SIZE,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        """Initialize the executor.

        Args:
            client: Studio Web API client
            lock_key: Active lock key attached to every mutating call
            output: Output formatter for user-facing messages
            batch_size: Number of concurrent operations per batch
            progress_callback: Called as (stage, processed, total) after each batch
        """
        self.client = client
        self.lock_key = lock_key
        self.output = output or OutputFormatter()
        self.batch_size = batch_size
        self.progress_callback = progress_callback

    def _report(self, stage: str, result: FileOpsResult, total: int, noun: str) -> None:
        logger.debug(f"[push] {stage} {result.processed_count}/{total} {noun}")
        self.output.progress_message(
            f"[push] {stage} {result.processed_count}/{total} {noun}."
        )
        if self.progress_callback is not None:
            self.progress_callback(f"{stage} {noun}", result.processed_count, total)

    def _run_batched(
        self,
        operations: list[tuple[str, Callable[[], Any]]],
        stage: str,
        noun: str,
        failure_prefix: str,
    ) -> FileOpsResult:
        result = FileOpsResult()
        total = len(operations)
        if not total:
            return result

        def on_batch_done(settled: list[Settled[tuple[str, Callable[[], Any]]]]) -> None:
            for outcome in settled:
                path = outcome.item[0]
                if outcome.ok:
                    result.record_success()
                else:
                    result.record_failure(path, str(outcome.error))
                    logger.debug(f"{failure_prefix} {path}", exc_info=outcome.error)
                    self.output.error(f"{failure_prefix} {path}: {outcome.error}")
            self._report(stage, result, total, noun)

        settle_in_batches(
            operations,
            lambda op: op[1](),
            batch_size=self.batch_size,
            on_batch_done=on_batch_done,
        )
        return result

    def execute_file_operations(self, plan: "ExecutionPlan") -> FileOpsResult:
        """Upload new files and update changed ones.

        Args:
            plan: Plan whose upload entries already carry resolved parent ids

        Returns:
            Combined result for uploads and updates
        """
        operations: list[tuple[str, Callable[[], Any]]] = []

        for upload in plan.upload_files:
            operations.append(
                (
                    upload.path,
                    lambda u=upload: self.client.create_file(
                        u.path, u.local_file, u.parent_id, u.parent_path, self.lock_key
                    ),
                )
            )
        for update in plan.update_files:
            operations.append(
                (
                    update.path,
                    lambda u=update: self.client.update_file(
                        u.path, u.local_file, u.file_id, self.lock_key
                    ),
                )
            )

        return self._run_batched(
            operations, "Processed", "file operation(s)", "File operation failed:"
        )

    def delete_files(self, files: list["DeleteFileEntry"]) -> FileOpsResult:
        """Delete remote files in concurrent batches."""
        operations: list[tuple[str, Callable[[], Any]]] = [
            (f.path, lambda f=f: self.client.delete_item(f.file_id, self.lock_key))
            for f in files
        ]
        return self._run_batched(operations, "Deleted", "file(s)", "Failed to delete file")

    def delete_folders(self, folders: list["DeleteFolderEntry"]) -> FileOpsResult:
        """Delete remote folders one at a time.

        The caller orders ``folders`` deepest first; deleting sequentially
        keeps that order.
        """
        result = FileOpsResult()
        total = len(folders)
        for folder in folders:
            try:
                self.client.delete_item(folder.folder_id, self.lock_key)
                result.record_success()
            except Exception as e:
                result.record_failure(folder.path, str(e))
                self.output.warning(f"Failed to delete folder {folder.path}: {e}")
            self._report("Deleted", result, total, "folder(s)")
        return result
