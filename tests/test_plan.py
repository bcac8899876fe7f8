"""Tests for execution plan computation."""

from pathlib import Path
from unittest.mock import Mock

from swsync.models import RemoteFile, RemoteFolder
from swsync.sync.plan import (
    ExecutionPlan,
    PlanComputer,
    compute_first_push_plan,
    is_metadata_path,
)
from swsync.sync.scanner import LocalFile
from swsync.utils import compute_hash


def local(relative_path: str, content: bytes = b"content") -> LocalFile:
    return LocalFile(
        relative_path=relative_path,
        path=Path("/project") / relative_path,
        hash=compute_hash(content),
        content=content,
    )


def folders(*paths: str) -> dict[str, RemoteFolder]:
    return {
        path: RemoteFolder(id=f"id-{path}", name=path.rsplit("/", 1)[-1]) for path in paths
    }


class TestExecutionPlan:
    """Tests for ExecutionPlan helpers."""

    def test_empty_plan(self):
        plan = ExecutionPlan()
        assert plan.is_empty
        assert plan.operation_count == 0

    def test_metadata_paths(self):
        assert is_metadata_path("source/push_metadata.json")
        assert is_metadata_path(".uipath/push_metadata.json")
        assert not is_metadata_path("source/dist/index.html")


class TestFirstPushPlan:
    """Tests for compute_first_push_plan."""

    def test_uploads_everything(self):
        files = [local("dist/index.html"), local("dist/x/y/app.js")]

        plan = compute_first_push_plan(files, folders("source", "source/dist"), "dist")

        assert [u.path for u in plan.upload_files] == [
            "source/dist/index.html",
            "source/dist/x/y/app.js",
        ]
        assert plan.upload_files[0].parent_path == "source/dist"
        assert plan.update_files == []
        assert plan.delete_files == []

    def test_parents_created_before_children(self):
        """Test that x is planned before x/y."""
        files = [local("dist/x/y/app.js"), local("dist/x/style.css")]

        plan = compute_first_push_plan(files, folders("source", "source/dist"), "dist")

        assert [f.path for f in plan.create_folders] == [
            "source/dist/x",
            "source/dist/x/y",
        ]

    def test_existing_folders_not_recreated(self):
        """Test that casing differences still count as existing."""
        files = [local("dist/Assets/app.js")]

        plan = compute_first_push_plan(
            files, folders("source", "source/dist", "source/dist/assets"), "dist"
        )

        assert plan.create_folders == []


class TestPlanComputer:
    """Tests for incremental plan computation."""

    def test_diff_correctness(self):
        """Test upload, delete and skip decisions in one diff."""
        download = Mock(return_value=b"content")
        computer = PlanComputer(download)
        remote_files = {
            "source/dist/a.txt": RemoteFile(id="id-a", name="a.txt"),
            "source/dist/c.txt": RemoteFile(id="id-c", name="c.txt"),
        }

        plan = computer.compute_execution_plan(
            [local("dist/a.txt"), local("dist/b.txt")],
            remote_files,
            folders("source", "source/dist"),
            "dist",
        )

        assert [u.path for u in plan.upload_files] == ["source/dist/b.txt"]
        assert [d.path for d in plan.delete_files] == ["source/dist/c.txt"]
        assert plan.delete_files[0].file_id == "id-c"
        assert plan.update_files == []
        assert plan.delete_folders == []
        download.assert_called_once_with("id-a")

    def test_idempotent_when_in_sync(self):
        """Test that identical trees produce an empty plan."""
        download = Mock(return_value=b"same\n")
        computer = PlanComputer(download)
        remote_files = {"source/dist/a.txt": RemoteFile(id="id-a", name="a.txt")}

        plan = computer.compute_execution_plan(
            [local("dist/a.txt", b"same\r\n")],
            remote_files,
            folders("source", "source/dist"),
            "dist",
        )

        assert plan.is_empty

    def test_changed_content_updates(self):
        download = Mock(return_value=b"old")
        computer = PlanComputer(download)
        remote_files = {"source/dist/a.txt": RemoteFile(id="id-a", name="a.txt")}

        plan = computer.compute_execution_plan(
            [local("dist/a.txt", b"new")],
            remote_files,
            folders("source", "source/dist"),
            "dist",
        )

        assert [u.file_id for u in plan.update_files] == ["id-a"]

    def test_failed_download_updates_anyway(self):
        download = Mock(side_effect=RuntimeError("boom"))
        computer = PlanComputer(download)
        remote_files = {"source/dist/a.txt": RemoteFile(id="id-a", name="a.txt")}

        plan = computer.compute_execution_plan(
            [local("dist/a.txt")],
            remote_files,
            folders("source", "source/dist"),
            "dist",
        )

        assert [u.path for u in plan.update_files] == ["source/dist/a.txt"]

    def test_files_outside_content_root_untouched(self):
        computer = PlanComputer(Mock(return_value=b""))
        remote_files = {
            "source/other/keep.txt": RemoteFile(id="id-k", name="keep.txt"),
            "source/push_metadata.json": RemoteFile(id="id-m", name="push_metadata.json"),
        }

        plan = computer.compute_execution_plan(
            [], remote_files, folders("source", "source/dist"), "dist"
        )

        assert plan.delete_files == []

    def test_file_paths_case_sensitive(self):
        """Test that a rename differing only in case is upload plus delete."""
        computer = PlanComputer(Mock(return_value=b"content"))
        remote_files = {"source/dist/Readme.md": RemoteFile(id="id-r", name="Readme.md")}

        plan = computer.compute_execution_plan(
            [local("dist/README.md")],
            remote_files,
            folders("source", "source/dist"),
            "dist",
        )

        assert [u.path for u in plan.upload_files] == ["source/dist/README.md"]
        assert [d.path for d in plan.delete_files] == ["source/dist/Readme.md"]

    def test_missing_folders_planned(self):
        computer = PlanComputer(Mock(return_value=b""))

        plan = computer.compute_execution_plan(
            [local("dist/js/vendor/lib.js")],
            {},
            folders("source", "source/dist"),
            "dist",
        )

        assert [f.path for f in plan.create_folders] == [
            "source/dist/js",
            "source/dist/js/vendor",
        ]
        assert plan.upload_files[0].parent_path == "source/dist/js/vendor"
