"""Push/pull engine for Studio Web projects."""

from .engine import PushEngine, PushResult, PushState
from .folders import FolderReconciler
from .ignore import IGNORE_FILE_NAME, IgnoreFileManager, IgnoreRule
from .operations import BatchExecutor, FailedPath, FileOpsResult, settle_in_batches
from .plan import (
    CreateFolderEntry,
    DeleteFileEntry,
    DeleteFolderEntry,
    ExecutionPlan,
    PlanComputer,
    UpdateFileEntry,
    UploadFileEntry,
    compute_first_push_plan,
)
from .pull import PullEngine, is_project_root_directory
from .resources import (
    BindingResource,
    Bindings,
    ImportSummary,
    ResourceImporter,
    ResourceKind,
    load_bindings,
    transform_kind,
    transform_type,
)
from .scanner import DirectoryScanner, LocalFile
from .structure import (
    REMOTE_SOURCE_FOLDER_NAME,
    EmptyFolder,
    filter_to_subtree,
    find_empty_folders,
    get_remote_content_root,
    get_remote_files_map,
    get_remote_folders_map,
    is_folder_empty,
    normalize_bundle_path,
    normalize_folder_path,
    rekey_subtree,
)

__all__ = [
    "PushEngine",
    "PushResult",
    "PushState",
    "PullEngine",
    "is_project_root_directory",
    "FolderReconciler",
    "BatchExecutor",
    "FailedPath",
    "FileOpsResult",
    "settle_in_batches",
    "ExecutionPlan",
    "CreateFolderEntry",
    "UploadFileEntry",
    "UpdateFileEntry",
    "DeleteFileEntry",
    "DeleteFolderEntry",
    "PlanComputer",
    "compute_first_push_plan",
    "ResourceImporter",
    "ResourceKind",
    "BindingResource",
    "Bindings",
    "ImportSummary",
    "load_bindings",
    "transform_kind",
    "transform_type",
    "DirectoryScanner",
    "LocalFile",
    "IgnoreFileManager",
    "IgnoreRule",
    "IGNORE_FILE_NAME",
    "REMOTE_SOURCE_FOLDER_NAME",
    "EmptyFolder",
    "filter_to_subtree",
    "find_empty_folders",
    "get_remote_content_root",
    "get_remote_files_map",
    "get_remote_folders_map",
    "is_folder_empty",
    "normalize_bundle_path",
    "normalize_folder_path",
    "rekey_subtree",
]
