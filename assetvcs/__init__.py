"""assetvcs - Sync project assets and layers with a remote version control service."""

from .api import PullResult, VCSClient
from .backend import RemotePullClient, create_status_cache
from .exceptions import (
    AssetMetadataError,
    AssetVCSAPIError,
    AssetVCSAuthenticationError,
    AssetVCSConfigError,
    AssetVCSDownloadError,
    AssetVCSError,
    AssetVCSInvalidResponseError,
    AssetVCSNetworkError,
    AssetVCSNotFoundError,
    AssetVCSPermissionError,
    AssetVCSRateLimitError,
    LayerImportError,
)
from .groups import (
    Asset,
    AssetFileGroup,
    FileGroup,
    LayerFileGroup,
    SimpleFileGroup,
    layers_to_file_groups,
    to_file_groups,
)
from .layers import Layer, LayerManager, LayerSynchronizer, LayerSyncReport
from .reconcile import all_files, all_main_files, find_missing
from .scanner import DirectoryScanner, find_files_by_extension
from .status import RemoteStatus, StatusCache
from .synchronizer import AssetsSynchronizer, PullRequest, SyncReport, SyncStep

__all__ = [
    "AssetsSynchronizer",
    "LayerSynchronizer",
    "SyncReport",
    "LayerSyncReport",
    "PullRequest",
    "SyncStep",
    "FileGroup",
    "SimpleFileGroup",
    "AssetFileGroup",
    "LayerFileGroup",
    "Asset",
    "to_file_groups",
    "layers_to_file_groups",
    "Layer",
    "LayerManager",
    "RemoteStatus",
    "StatusCache",
    "DirectoryScanner",
    "find_files_by_extension",
    "find_missing",
    "all_files",
    "all_main_files",
    "VCSClient",
    "PullResult",
    "RemotePullClient",
    "create_status_cache",
    "AssetVCSError",
    "AssetVCSAPIError",
    "AssetVCSAuthenticationError",
    "AssetVCSConfigError",
    "AssetVCSDownloadError",
    "AssetVCSInvalidResponseError",
    "AssetVCSNetworkError",
    "AssetVCSNotFoundError",
    "AssetVCSPermissionError",
    "AssetVCSRateLimitError",
    "AssetMetadataError",
    "LayerImportError",
]
