"""Data models for Studio Web API responses and push bookkeeping."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from .utils import is_uuid


@dataclass
class RemoteFile:
    """A file node in the remote project tree."""

    id: str
    name: str
    path: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RemoteFile":
        return cls(
            id=str(data.get("id", "")),
            name=data.get("name", ""),
            path=data.get("path"),
        )


@dataclass
class RemoteFolder:
    """A folder node in the remote project tree.

    A folder with ``id`` set to None exists only in the snapshot and has
    not been materialised remotely.
    """

    id: Optional[str]
    name: str
    files: list[RemoteFile] = field(default_factory=list)
    folders: list["RemoteFolder"] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RemoteFolder":
        folder_id = data.get("id")
        return cls(
            id=str(folder_id) if folder_id else None,
            name=data.get("name", ""),
            files=[RemoteFile.from_dict(f) for f in data.get("files") or []],
            folders=[cls.from_dict(f) for f in data.get("folders") or []],
        )


@dataclass
class ProjectStructure:
    """Root of the remote project tree.

    Treated as an immutable snapshot: callers refetch after any mutating
    call instead of patching it.
    """

    name: str
    files: list[RemoteFile] = field(default_factory=list)
    folders: list[RemoteFolder] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ProjectStructure":
        return cls(
            name=data.get("name", ""),
            files=[RemoteFile.from_dict(f) for f in data.get("files") or []],
            folders=[RemoteFolder.from_dict(f) for f in data.get("folders") or []],
        )

    @property
    def is_empty(self) -> bool:
        return not self.files and not self.folders


@dataclass
class LockInfo:
    """Lock keys returned by the project lock endpoint."""

    project_lock_key: Optional[str] = None
    solution_lock_key: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LockInfo":
        return cls(
            project_lock_key=data.get("projectLockKey") or None,
            solution_lock_key=data.get("solutionLockKey") or None,
        )

    @property
    def lock_key(self) -> Optional[str]:
        """The key to attach to mutating calls, project key preferred."""
        return self.project_lock_key or self.solution_lock_key


@dataclass
class QualifiedFolder:
    """Orchestrator folder descriptor shared by catalog, connections and references."""

    folder_key: str
    fully_qualified_name: str
    path: str

    @classmethod
    def from_catalog(cls, data: dict[str, Any]) -> "QualifiedFolder":
        """Build from a resource catalog folder entry.

        The catalog is inconsistent about key casing; a UUID-looking path is
        taken as the folder key when no explicit key is present.
        """
        path = data.get("path") or ""
        folder_key = data.get("key") or data.get("folderKey") or data.get("folder_key")
        if not folder_key:
            folder_key = path if is_uuid(str(path)) else ""
        return cls(
            folder_key=str(folder_key),
            fully_qualified_name=data.get("fullyQualifiedName")
            or data.get("fully_qualified_name")
            or "",
            path=str(path),
        )

    def to_dict(self) -> dict[str, str]:
        return {
            "folderKey": self.folder_key,
            "fullyQualifiedName": self.fully_qualified_name,
            "path": self.path,
        }


@dataclass
class Resource:
    """An entry from the tenant resource catalog."""

    resource_key: str
    name: str
    resource_type: str
    resource_sub_type: Optional[str] = None
    folders: list[QualifiedFolder] = field(default_factory=list)

    @classmethod
    def from_catalog(cls, data: dict[str, Any]) -> "Resource":
        return cls(
            resource_key=data.get("entityKey") or data.get("resource_key") or "",
            name=data.get("name", ""),
            resource_type=data.get("entityType") or data.get("resource_type") or "",
            resource_sub_type=data.get("entitySubType")
            or data.get("resource_sub_type")
            or None,
            folders=[
                QualifiedFolder.from_catalog(f) for f in data.get("folders") or []
            ],
        )


@dataclass
class Connection:
    """An Integration Service connection."""

    key: str
    name: str
    folder: Optional[QualifiedFolder] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any], connection_key: str) -> "Connection":
        folder_data = data.get("Folder")
        folder = None
        if folder_data:
            folder = QualifiedFolder(
                folder_key=folder_data.get("Id") or folder_data.get("Key") or "",
                fully_qualified_name=folder_data.get("FullyQualifiedName") or "",
                path=folder_data.get("Path") or "",
            )
        return cls(
            key=data.get("Key") or connection_key,
            name=data.get("Name") or connection_key,
            folder=folder,
        )


class ReferencedResourceStatus(str, Enum):
    """Outcome of a referenced resource upsert."""

    ADDED = "ADDED"
    UNCHANGED = "UNCHANGED"
    UPDATED = "UPDATED"

    @classmethod
    def parse(cls, value: Optional[str]) -> "ReferencedResourceStatus":
        raw = str(value or "UNCHANGED").upper()
        if raw == "CREATED":
            return cls.ADDED
        try:
            return cls(raw)
        except ValueError:
            return cls.UNCHANGED


@dataclass
class ReferencedResourceRequest:
    """Payload for creating a referenced resource in a solution."""

    key: str
    kind: str
    type: Optional[str]
    folder: QualifiedFolder

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "key": self.key,
            "kind": self.kind,
            "folder": self.folder.to_dict(),
        }
        if self.type is not None:
            payload["type"] = self.type
        return payload


@dataclass
class ReferencedResourceResponse:
    status: ReferencedResourceStatus
    resource: dict[str, Any] = field(default_factory=dict)
    saved: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ReferencedResourceResponse":
        return cls(
            status=ReferencedResourceStatus.parse(data.get("status")),
            resource=data.get("resource") or {},
            saved=bool(data.get("saved", False)),
        )


@dataclass
class PushMetadata:
    """Contents of push_metadata.json."""

    schema_version: str
    project_id: str
    description: str
    last_push_date: str
    last_push_author: str
    code_version: Optional[str] = None
    build_dir: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PushMetadata":
        return cls(
            schema_version=data.get("schemaVersion", "1.0.0"),
            project_id=data.get("projectId", ""),
            description=data.get("description", ""),
            last_push_date=data.get("lastPushDate", ""),
            last_push_author=data.get("lastPushAuthor", ""),
            code_version=data.get("codeVersion"),
            build_dir=data.get("buildDir"),
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "schemaVersion": self.schema_version,
            "projectId": self.project_id,
            "description": self.description,
            "lastPushDate": self.last_push_date,
            "lastPushAuthor": self.last_push_author,
        }
        if self.code_version is not None:
            data["codeVersion"] = self.code_version
        if self.build_dir is not None:
            data["buildDir"] = self.build_dir
        return data
