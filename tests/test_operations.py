"""Tests for batched remote operations."""

import threading
import time
from pathlib import Path
from unittest.mock import Mock

import pytest

from swsync.api import StudioWebClient
from swsync.exceptions import StudioWebAPIError
from swsync.output import OutputFormatter
from swsync.sync.operations import BatchExecutor, FileOpsResult, settle_in_batches
from swsync.sync.plan import (
    DeleteFileEntry,
    DeleteFolderEntry,
    ExecutionPlan,
    UpdateFileEntry,
    UploadFileEntry,
)
from swsync.sync.scanner import LocalFile


@pytest.fixture
def mock_client():
    """Create a mock Studio Web client."""
    return Mock(spec=StudioWebClient)


@pytest.fixture
def mock_output():
    """Create a mock output formatter."""
    output = Mock(spec=OutputFormatter)
    output.quiet = True
    return output


def local(name: str) -> LocalFile:
    return LocalFile(relative_path=f"dist/{name}", path=Path(name), hash="h", content=b"x")


class TestSettleInBatches:
    """Tests for settle_in_batches."""

    def test_results_in_input_order(self):
        outcomes = settle_in_batches(list(range(10)), lambda i: i * 2, batch_size=3)
        assert [o.value for o in outcomes] == [i * 2 for i in range(10)]

    def test_errors_captured(self):
        def func(i):
            if i == 2:
                raise ValueError("bad")
            return i

        outcomes = settle_in_batches([1, 2, 3], func)

        assert [o.ok for o in outcomes] == [True, False, True]
        assert isinstance(outcomes[1].error, ValueError)

    def test_batches_are_barriers(self):
        """Test that no call of batch two starts before batch one finishes."""
        lock = threading.Lock()
        events = []

        def func(i):
            with lock:
                events.append(("start", i))
            time.sleep(0.01)
            with lock:
                events.append(("end", i))

        settle_in_batches(list(range(4)), func, batch_size=2)

        last_end_first_batch = max(
            idx for idx, (kind, i) in enumerate(events) if kind == "end" and i < 2
        )
        first_start_second_batch = min(
            idx for idx, (kind, i) in enumerate(events) if kind == "start" and i >= 2
        )
        assert last_end_first_batch < first_start_second_batch

    def test_callback_per_batch(self):
        batches = []
        settle_in_batches(list(range(5)), lambda i: i, batch_size=2, on_batch_done=batches.append)
        assert [len(b) for b in batches] == [2, 2, 1]

    def test_empty_input(self):
        assert settle_in_batches([], lambda i: i) == []


class TestFileOpsResult:
    """Tests for FileOpsResult."""

    def test_merge(self):
        a = FileOpsResult()
        a.record_success()
        b = FileOpsResult()
        b.record_failure("p", "err")

        merged = a.merge(b)

        assert merged.succeeded_count == 1
        assert merged.failed_count == 1
        assert merged.processed_count == 2
        assert merged.failed_paths[0].path == "p"


class TestBatchExecutor:
    """Tests for BatchExecutor."""

    def test_partial_failure_aggregation(self, mock_client, mock_output):
        """Test that 5 failures out of 20 are counted, not raised."""
        failing = {f"source/dist/f{i}.txt" for i in (1, 4, 9, 12, 17)}

        def create_file(path, *args):
            if path in failing:
                raise StudioWebAPIError("upload failed")

        mock_client.create_file.side_effect = create_file
        plan = ExecutionPlan(
            upload_files=[
                UploadFileEntry(
                    path=f"source/dist/f{i}.txt",
                    local_file=local(f"f{i}.txt"),
                    parent_path="source/dist",
                    parent_id="id-dist",
                )
                for i in range(20)
            ]
        )
        executor = BatchExecutor(mock_client, "lock-1", mock_output)

        result = executor.execute_file_operations(plan)

        assert result.succeeded_count == 15
        assert result.failed_count == 5
        assert {f.path for f in result.failed_paths} == failing
        assert mock_client.create_file.call_count == 20

    def test_uploads_and_updates_pass_lock_key(self, mock_client, mock_output):
        upload_file = local("a.txt")
        update_file = local("b.txt")
        plan = ExecutionPlan(
            upload_files=[
                UploadFileEntry(
                    path="source/dist/a.txt",
                    local_file=upload_file,
                    parent_path="source/dist",
                    parent_id="id-dist",
                )
            ],
            update_files=[
                UpdateFileEntry(path="source/dist/b.txt", local_file=update_file, file_id="id-b")
            ],
        )
        executor = BatchExecutor(mock_client, "lock-1", mock_output)

        result = executor.execute_file_operations(plan)

        assert result.succeeded_count == 2
        mock_client.create_file.assert_called_once_with(
            "source/dist/a.txt", upload_file, "id-dist", "source/dist", "lock-1"
        )
        mock_client.update_file.assert_called_once_with(
            "source/dist/b.txt", update_file, "id-b", "lock-1"
        )

    def test_progress_callback(self, mock_client, mock_output):
        callback = Mock()
        executor = BatchExecutor(
            mock_client, "lock-1", mock_output, batch_size=2, progress_callback=callback
        )

        executor.delete_files(
            [DeleteFileEntry(file_id=f"id-{i}", path=f"p{i}") for i in range(3)]
        )

        assert [c.args for c in callback.call_args_list] == [
            ("Deleted file(s)", 2, 3),
            ("Deleted file(s)", 3, 3),
        ]

    def test_delete_folders_sequential_in_given_order(self, mock_client, mock_output):
        """Test that folders are deleted one by one, deepest first as given."""
        folders = [
            DeleteFolderEntry(folder_id="id-c", path="source/dist/a/b/c"),
            DeleteFolderEntry(folder_id="id-b", path="source/dist/a/b"),
            DeleteFolderEntry(folder_id="id-a", path="source/dist/a"),
        ]
        executor = BatchExecutor(mock_client, "lock-1", mock_output)

        result = executor.delete_folders(folders)

        assert result.succeeded_count == 3
        assert [c.args[0] for c in mock_client.delete_item.call_args_list] == [
            "id-c",
            "id-b",
            "id-a",
        ]

    def test_delete_folder_failure_recorded(self, mock_client, mock_output):
        mock_client.delete_item.side_effect = [StudioWebAPIError("nope"), None]
        executor = BatchExecutor(mock_client, "lock-1", mock_output)

        result = executor.delete_folders(
            [
                DeleteFolderEntry(folder_id="id-b", path="source/dist/b"),
                DeleteFolderEntry(folder_id="id-a", path="source/dist/a"),
            ]
        )

        assert result.failed_count == 1
        assert result.succeeded_count == 1
        mock_output.warning.assert_called_once()
