"""Pull engine: download a Studio Web project's source into a local directory."""

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Optional

from ..exceptions import PullError
from ..models import RemoteFile
from ..output import OutputFormatter
from ..utils import MAX_LISTED_CONFLICTS, WORKER_POOL_SIZE
from .operations import FileOpsResult, Settled, settle_in_batches
from .structure import (
    PUSH_METADATA_FILENAME,
    PUSH_METADATA_RELATIVE_PATH,
    PUSH_METADATA_REMOTE_PATH,
    REMOTE_SOURCE_FOLDER_NAME,
    get_remote_files_map,
    get_remote_folders_map,
    is_under,
    normalize_bundle_path,
    normalize_separators,
    parent_path,
)

if TYPE_CHECKING:
    from ..api import StudioWebClient

logger = logging.getLogger(__name__)

WEB_APP_MANIFEST = "webAppManifest.json"
WEB_APP_MANIFEST_TYPE = "App_ProCode"

PROJECT_ROOT_MARKERS = ("package.json", WEB_APP_MANIFEST, ".uipath")

NOT_SUPPORTED_MESSAGE = (
    "This project is not a supported coded web app "
    f"({WEB_APP_MANIFEST} with type '{WEB_APP_MANIFEST_TYPE}' not found)."
)


def is_project_root_directory(directory: Path) -> bool:
    """Check whether a directory looks like an app project root."""
    for marker in PROJECT_ROOT_MARKERS:
        candidate = directory / marker
        if marker == ".uipath":
            if candidate.is_dir():
                return True
        elif candidate.exists():
            return True
    return False


def strip_source_prefix(remote_path: str) -> str:
    """``source/dist/index.html`` -> ``dist/index.html``."""
    path = normalize_separators(remote_path)
    if path == REMOTE_SOURCE_FOLDER_NAME:
        return ""
    prefix = REMOTE_SOURCE_FOLDER_NAME + "/"
    return path[len(prefix) :] if path.startswith(prefix) else path


def get_local_relative_path(relative_path: str) -> str:
    """Place pushed metadata back under ``.uipath/``."""
    if relative_path == PUSH_METADATA_FILENAME:
        return PUSH_METADATA_RELATIVE_PATH
    return relative_path


def is_under_build_dir(relative_path: str, build_dir: Optional[str]) -> bool:
    if not build_dir:
        return False
    root = normalize_bundle_path(build_dir)
    return bool(root) and is_under(relative_path, root)


class PullEngine:
    """Downloads the ``source/`` tree of a remote project."""

    def __init__(
        self,
        client: "StudioWebClient",
        output: Optional[OutputFormatter] = None,
        batch_size: int = WORKER_POOL_SIZE,
    ):
        self.client = client
        self.output = output or OutputFormatter()
        self.batch_size = batch_size

    def _find_manifest(self, files: dict[str, RemoteFile]) -> Optional[RemoteFile]:
        if WEB_APP_MANIFEST in files:
            return files[WEB_APP_MANIFEST]
        for path, remote in files.items():
            if path.endswith("/" + WEB_APP_MANIFEST):
                return remote
        return None

    def validate_project_type(self, files: dict[str, RemoteFile]) -> None:
        """Ensure the remote project is a coded web app.

        Raises:
            PullError: If the manifest is missing, unreadable or of another type
        """
        manifest = self._find_manifest(files)
        if manifest is None:
            raise PullError(NOT_SUPPORTED_MESSAGE)
        try:
            data = json.loads(self.client.download_file(manifest.id).decode("utf-8"))
        except ValueError as e:
            raise PullError(NOT_SUPPORTED_MESSAGE) from e
        if not isinstance(data, dict) or data.get("type") != WEB_APP_MANIFEST_TYPE:
            raise PullError(NOT_SUPPORTED_MESSAGE)

    def _read_build_dir(self, files: dict[str, RemoteFile]) -> Optional[str]:
        remote = files.get(PUSH_METADATA_REMOTE_PATH)
        if remote is None:
            return None
        try:
            data = json.loads(self.client.download_file(remote.id).decode("utf-8"))
        except Exception as e:
            self.output.progress_message(
                f"[pull] Could not read push metadata ({e}); pulling all files under source/"
            )
            return None
        build_dir = data.get("buildDir") if isinstance(data, dict) else None
        if isinstance(build_dir, str) and build_dir.strip():
            return build_dir.strip()
        return None

    def find_overwrites(self, files: dict[str, RemoteFile], target_dir: Path) -> list[Path]:
        """Local files that a pull of ``files`` would replace."""
        overwrites = []
        for remote_path in files:
            local = target_dir / get_local_relative_path(strip_source_prefix(remote_path))
            if local.is_file():
                overwrites.append(local)
        return overwrites

    def pull(
        self,
        target_dir: Path,
        overwrite: bool = False,
        prompt_overwrite: Optional[Callable[[list[Path]], bool]] = None,
    ) -> FileOpsResult:
        """Download the remote project's source into ``target_dir``.

        Args:
            target_dir: Existing local directory to write into
            overwrite: Replace existing local files without asking
            prompt_overwrite: Asked with the conflicting paths when overwrite
                is False; returning False aborts the pull

        Returns:
            Result with one success per downloaded file

        Raises:
            PullError: On an invalid target, unsupported project, refused
                overwrite or failed downloads
        """
        target_dir = Path(target_dir)
        if not target_dir.exists():
            raise PullError(f"Target directory does not exist: {target_dir}")
        if not target_dir.is_dir():
            raise PullError(f"Target path is not a directory: {target_dir}")

        self.output.info("[pull] Fetching remote structure...")
        structure = self.client.fetch_structure()
        if not structure.name and structure.is_empty:
            raise PullError("Project not found or has no files.")

        all_files = get_remote_files_map(structure)
        self.output.info("[pull] Validating project type...")
        self.validate_project_type(all_files)

        files = {
            path: remote
            for path, remote in all_files.items()
            if is_under(normalize_separators(path), REMOTE_SOURCE_FOLDER_NAME)
        }
        build_dir = self._read_build_dir(all_files)
        if build_dir:
            files = {
                path: remote
                for path, remote in files.items()
                if not is_under_build_dir(strip_source_prefix(path), build_dir)
            }
            self.output.info(f"[pull] Skipping build output folder: {build_dir}")

        result = FileOpsResult()
        if not files:
            self.output.warning("[pull] No files under source/ in remote project. Nothing to pull.")
            return result

        if not overwrite:
            conflicts = self.find_overwrites(files, target_dir)
            if conflicts:
                proceed = prompt_overwrite(conflicts) if prompt_overwrite else False
                if not proceed:
                    listed = "\n".join(f"  - {p}" for p in conflicts[:MAX_LISTED_CONFLICTS])
                    more = len(conflicts) - MAX_LISTED_CONFLICTS
                    if more > 0:
                        listed += f"\n  ... and {more} more."
                    raise PullError(
                        "Pull would overwrite existing files. "
                        f"Use --overwrite to replace them:\n{listed}",
                        failed_paths=[str(p) for p in conflicts],
                    )

        folders = set()
        for path in get_remote_folders_map(structure):
            relative = strip_source_prefix(path)
            if is_under(normalize_separators(path), REMOTE_SOURCE_FOLDER_NAME) and relative:
                if not is_under_build_dir(relative, build_dir):
                    folders.add(relative)
        for path in files:
            relative = parent_path(get_local_relative_path(strip_source_prefix(path)))
            if relative:
                folders.add(relative)

        self.output.info(f"[pull] Recreating {len(folders)} folder(s)...")
        for folder in sorted(folders):
            (target_dir / folder).mkdir(parents=True, exist_ok=True)

        def download(entry: tuple[str, RemoteFile]) -> None:
            remote_path, remote = entry
            local = target_dir / get_local_relative_path(strip_source_prefix(remote_path))
            content = self.client.download_file(remote.id)
            local.parent.mkdir(parents=True, exist_ok=True)
            local.write_bytes(content)

        total = len(files)

        def on_batch_done(settled: list[Settled[tuple[str, RemoteFile]]]) -> None:
            for outcome in settled:
                if outcome.ok:
                    result.record_success()
                else:
                    result.record_failure(outcome.item[0], str(outcome.error))
                    self.output.error(f"Failed to download {outcome.item[0]}: {outcome.error}")
            self.output.progress_message(
                f"[pull] Downloaded {result.processed_count}/{total} file(s)."
            )

        settle_in_batches(
            sorted(files.items()),
            download,
            batch_size=self.batch_size,
            on_batch_done=on_batch_done,
        )

        if result.failed_count:
            raise PullError(
                f"Pull failed: {result.failed_count} file(s) failed to download.",
                failed_paths=[f.path for f in result.failed_paths],
            )

        self.output.success(f"[pull] Done. {result.succeeded_count} file(s) synced.")
        return result
