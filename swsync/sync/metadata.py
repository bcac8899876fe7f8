"""Push metadata bookkeeping (``.uipath/push_metadata.json``)."""

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional

from ..models import PushMetadata, RemoteFile
from ..utils import bump_patch_version, compute_hash
from .plan import ExecutionPlan, UpdateFileEntry, UploadFileEntry
from .scanner import LocalFile
from .structure import (
    PUSH_METADATA_FILENAME,
    PUSH_METADATA_RELATIVE_PATH,
    PUSH_METADATA_REMOTE_PATH,
    REMOTE_SOURCE_FOLDER_NAME,
    normalize_bundle_path,
)

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "1.0.0"


def get_current_user() -> str:
    """Best guess at who is pushing."""
    return (
        os.environ.get("USER")
        or os.environ.get("USERNAME")
        or os.environ.get("UIPATH_USER")
        or "unknown"
    )


def find_remote_metadata(remote_files: dict[str, RemoteFile]) -> Optional[RemoteFile]:
    """Locate the pushed metadata file in a full remote file map."""
    for key in (PUSH_METADATA_REMOTE_PATH, PUSH_METADATA_RELATIVE_PATH, PUSH_METADATA_FILENAME):
        if key in remote_files:
            return remote_files[key]
    return None


def read_remote_metadata(
    remote_files: dict[str, RemoteFile], download_file: Callable[[str], bytes]
) -> Optional[dict]:
    """Download and decode the remote metadata.

    Raises:
        ValueError: If the remote file is not a JSON object
    """
    remote = find_remote_metadata(remote_files)
    if remote is None:
        return None
    data = json.loads(download_file(remote.id).decode("utf-8"))
    if not isinstance(data, dict):
        raise ValueError("push metadata is not a JSON object")
    return data


def _write_atomic(path: Path, content: str) -> None:
    fd, tmp_name = tempfile.mkstemp(
        dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp"
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.chmod(tmp_name, 0o600)
        os.replace(tmp_name, path)
    except OSError:
        try:
            os.unlink(tmp_name)
        except OSError as unlink_error:
            logger.debug(f"Could not remove temp file {tmp_name}: {unlink_error}")
        raise


def prepare_metadata(
    root_dir: Path,
    project_id: str,
    bundle_path: str,
    remote_files: dict[str, RemoteFile],
    download_file: Callable[[str], bytes],
) -> LocalFile:
    """Refresh the local push metadata and return it as a pushable file.

    The code version is the remote one with its patch number bumped; a
    malformed or unreadable remote version resets it to 0.1.1.

    Args:
        root_dir: Project root
        project_id: Studio Web project id
        bundle_path: Build output directory, recorded as ``buildDir``
        remote_files: Full remote file map
        download_file: Returns the bytes of a remote file by id

    Returns:
        The written metadata file
    """
    metadata_path = root_dir / PUSH_METADATA_RELATIVE_PATH
    metadata_path.parent.mkdir(parents=True, exist_ok=True)

    now = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    raw: dict = {}
    if metadata_path.is_file():
        raw = json.loads(metadata_path.read_text(encoding="utf-8"))

    metadata = PushMetadata.from_dict(raw)
    metadata.schema_version = metadata.schema_version or SCHEMA_VERSION
    metadata.project_id = metadata.project_id or project_id
    metadata.last_push_date = now
    metadata.last_push_author = get_current_user()
    metadata.build_dir = normalize_bundle_path(bundle_path)

    if find_remote_metadata(remote_files) is not None:
        try:
            remote = read_remote_metadata(remote_files, download_file) or {}
            metadata.code_version = bump_patch_version(remote.get("codeVersion"))
        except Exception as e:
            logger.warning(f"Could not read remote push metadata ({e}), using default version")
            metadata.code_version = bump_patch_version(None)

    content = json.dumps({**raw, **metadata.to_dict()}, indent=2)
    _write_atomic(metadata_path, content)
    logger.debug(f"Wrote push metadata to {metadata_path}")

    data = content.encode("utf-8")
    return LocalFile(
        relative_path=PUSH_METADATA_RELATIVE_PATH,
        path=metadata_path,
        hash=compute_hash(data),
        content=data,
    )


def add_metadata_to_plan(
    plan: ExecutionPlan, metadata_file: LocalFile, remote_files: dict[str, RemoteFile]
) -> None:
    """Schedule the metadata upload at ``source/push_metadata.json``."""
    remote = remote_files.get(PUSH_METADATA_REMOTE_PATH)
    if remote is not None:
        plan.update_files.append(
            UpdateFileEntry(
                path=PUSH_METADATA_REMOTE_PATH, local_file=metadata_file, file_id=remote.id
            )
        )
    else:
        plan.upload_files.append(
            UploadFileEntry(
                path=PUSH_METADATA_REMOTE_PATH,
                local_file=metadata_file,
                parent_path=REMOTE_SOURCE_FOLDER_NAME,
            )
        )
