"""Import of referenced resources declared in bindings.json."""

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

from ..exceptions import StudioWebAPIError
from ..models import (
    QualifiedFolder,
    ReferencedResourceRequest,
    ReferencedResourceStatus,
    Resource,
)
from ..output import OutputFormatter

if TYPE_CHECKING:
    from ..api import StudioWebClient

logger = logging.getLogger(__name__)

BINDINGS_FILE_NAME = "bindings.json"

# Catalog sub types whose remote name is not a lower-first-letter passthrough
TYPE_MAPPINGS: dict[str, str] = {
    "text": "stringAsset",
    "integer": "integerAsset",
    "bool": "booleanAsset",
    "credential": "credentialAsset",
    "secret": "secretAsset",
    "orchestrator": "orchestratorBucket",
    "amazon": "amazonBucket",
    "azure": "azureBucket",
}


class ResourceKind(str, Enum):
    """Kinds of resource a binding can reference."""

    ASSET = "asset"
    PROCESS = "process"
    BUCKET = "bucket"
    INDEX = "index"
    APP = "app"
    CONNECTION = "connection"
    QUEUE = "queue"


@dataclass
class BindingResource:
    """One entry of the bindings manifest.

    Connections carry a connection id; every other kind is looked up by
    name and folder path.
    """

    resource: ResourceKind
    key: str
    name: Optional[str] = None
    folder_path: str = ""
    connection_id: Optional[str] = None
    connector: Optional[str] = None

    @staticmethod
    def _default_value(value: dict[str, Any], prop: str) -> Optional[str]:
        definition = value.get(prop)
        if not isinstance(definition, dict):
            return None
        default = definition.get("defaultValue")
        return str(default) if default is not None else None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BindingResource":
        """Parse a binding.

        Raises:
            ValueError: If the resource kind is not recognised
        """
        kind = ResourceKind(str(data.get("resource", "")).lower())
        value = data.get("value")
        if not isinstance(value, dict):
            value = {}
        metadata = data.get("metadata")
        if not isinstance(metadata, dict):
            metadata = {}
        return cls(
            resource=kind,
            key=data.get("key", ""),
            name=cls._default_value(value, "name"),
            folder_path=cls._default_value(value, "folderPath") or "",
            connection_id=cls._default_value(value, "ConnectionId"),
            connector=metadata.get("Connector"),
        )

    @property
    def display_name(self) -> str:
        return self.name or self.connection_id or self.key


@dataclass
class Bindings:
    version: str
    resources: list[BindingResource] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Bindings":
        resources = []
        entries = data.get("resources") or []
        if not isinstance(entries, list):
            logger.warning("Ignoring bindings: \"resources\" is not a list")
            entries = []
        for entry in entries:
            if not isinstance(entry, dict):
                logger.warning(f"Skipping malformed binding: {entry!r}")
                continue
            try:
                resources.append(BindingResource.from_dict(entry))
            except ValueError:
                logger.warning(f"Skipping binding with unknown kind: {entry.get('resource')}")
            except (AttributeError, TypeError) as e:
                logger.warning(f"Skipping malformed binding {entry.get('key')!r}: {e}")
        return cls(version=str(data.get("version", "")), resources=resources)


@dataclass
class ImportSummary:
    """Counters reported at the end of a resource import."""

    created: int = 0
    updated: int = 0
    unchanged: int = 0
    not_found: int = 0

    def __str__(self) -> str:
        return (
            f"{self.created} added, {self.updated} updated, "
            f"{self.unchanged} unchanged, {self.not_found} not found"
        )


def transform_kind(kind: str) -> str:
    """Lowercase the first letter of a resource kind (``Asset`` -> ``asset``)."""
    return kind[:1].lower() + kind[1:] if kind else kind


def transform_type(resource_type: Optional[str]) -> Optional[str]:
    """Map a catalog sub type onto the referenced resource vocabulary.

    Examples:
        >>> transform_type("Text")
        'stringAsset'
        >>> transform_type("QueueTrigger")
        'queueTrigger'
    """
    if not resource_type:
        return None
    mapped = TYPE_MAPPINGS.get(resource_type.lower())
    if mapped:
        return mapped
    return resource_type[:1].lower() + resource_type[1:]


def load_bindings(bindings_path: Path) -> Optional[Bindings]:
    """Read the bindings manifest.

    Returns:
        The parsed manifest, or None when the file is missing or malformed
    """
    try:
        data = json.loads(bindings_path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return None
    except (OSError, ValueError) as e:
        logger.error(f"Failed to parse {bindings_path.name}: {e}")
        return None

    if not isinstance(data, dict):
        logger.error(f"Failed to parse {bindings_path.name}: expected a JSON object")
        return None
    return Bindings.from_dict(data)


class ResourceImporter:
    """Registers the resources an app uses as references in its solution."""

    def __init__(self, client: "StudioWebClient", output: Optional[OutputFormatter] = None):
        self.client = client
        self.output = output or OutputFormatter()

    def _resolve(self, binding: BindingResource) -> Optional[Resource]:
        """Find the remote resource a binding points at.

        Returns:
            The resource, or None if it cannot be found
        """
        if binding.resource == ResourceKind.CONNECTION:
            try:
                connection = self.client.retrieve_connection(str(binding.connection_id))
            except StudioWebAPIError as e:
                logger.debug(f"Connection lookup failed: {e}")
                self.output.warning(
                    f"Connection not found: {binding.connection_id} "
                    f"({binding.connector or 'unknown'})"
                )
                return None
            return Resource(
                resource_key=connection.key,
                name=connection.name,
                resource_type=ResourceKind.CONNECTION.value,
                resource_sub_type=binding.connector,
                folders=[connection.folder] if connection.folder else [],
            )

        try:
            return self.client.find_resource_in_catalog(
                binding.resource.value, str(binding.name), binding.folder_path
            )
        except StudioWebAPIError as e:
            logger.debug(f"Catalog lookup failed: {e}")
            folder_info = (
                f" at folder path '{binding.folder_path}'"
                if binding.folder_path
                else " (tenant-scoped)"
            )
            self.output.warning(
                f"Resource not found: {binding.name} ({binding.resource.value}){folder_info}"
            )
            return None

    def _import_one(
        self,
        binding: BindingResource,
        solution_id: str,
        lock_key: Optional[str],
        summary: ImportSummary,
    ) -> None:
        resource = self._resolve(binding)
        if resource is None:
            summary.not_found += 1
            return
        if not resource.folders:
            self.output.warning(
                f"Resource not found: {binding.display_name} ({binding.resource.value})"
            )
            summary.not_found += 1
            return

        folder: QualifiedFolder = resource.folders[0]
        request = ReferencedResourceRequest(
            key=resource.resource_key,
            kind=transform_kind(resource.resource_type),
            type=transform_type(resource.resource_sub_type),
            folder=folder,
        )
        response = self.client.create_referenced_resource(solution_id, request, lock_key)
        label = f"{resource.name} ({binding.resource.value})"

        if response.status == ReferencedResourceStatus.ADDED:
            summary.created += 1
            self.output.success(f"Resource added: {label}")
        elif response.status == ReferencedResourceStatus.UPDATED:
            summary.updated += 1
            self.output.info(f"Resource updated: {label}")
        else:
            summary.unchanged += 1
            self.output.progress_message(f"Resource unchanged: {label}")

    def run_import_referenced_resources(
        self, bindings_path: Path, lock_key: Optional[str]
    ) -> Optional[ImportSummary]:
        """Resolve every binding and upsert it as a referenced resource.

        A single failing binding never stops the import: it is logged and
        counted as not found.

        Args:
            bindings_path: Path to bindings.json
            lock_key: Active lock key

        Returns:
            The import summary, or None when there was nothing to import
        """
        bindings = load_bindings(bindings_path)
        if bindings is None or not bindings.resources:
            return None

        self.output.info(
            f"[resources] Processing {len(bindings.resources)} resource(s) "
            f"from {bindings_path.name}..."
        )

        try:
            solution_id = self.client.get_solution_id()
        except StudioWebAPIError as e:
            self.output.warning(f"Skipping resource import, solution lookup failed: {e}")
            return None

        summary = ImportSummary()
        for binding in bindings.resources:
            if binding.resource == ResourceKind.CONNECTION:
                if not binding.connection_id:
                    continue
            elif not binding.name:
                continue

            try:
                self._import_one(binding, solution_id, lock_key, summary)
            except Exception as e:
                logger.debug("Resource import failed", exc_info=True)
                self.output.error(
                    f"Error processing resource {binding.display_name}: {e}"
                )
                summary.not_found += 1

        self.output.info(f"[resources] Summary: {summary}")
        return summary
