"""Exceptions raised by assetvcs."""


class AssetVCSError(Exception):
    """Base exception for all assetvcs errors."""


class AssetVCSConfigError(AssetVCSError):
    """Configuration is missing or invalid."""


class AssetVCSAPIError(AssetVCSError):
    """Request to the remote version control service failed."""


class AssetVCSAuthenticationError(AssetVCSAPIError):
    """API key is invalid or missing."""


class AssetVCSPermissionError(AssetVCSAPIError):
    """Access to the requested resource is forbidden."""


class AssetVCSNotFoundError(AssetVCSAPIError):
    """Requested resource does not exist on the remote."""


class AssetVCSRateLimitError(AssetVCSAPIError):
    """Too many requests."""


class AssetVCSNetworkError(AssetVCSAPIError):
    """Transport level failure (connection refused, timeout, ...)."""


class AssetVCSInvalidResponseError(AssetVCSAPIError):
    """Server answered with something that is not the expected JSON."""


class AssetVCSDownloadError(AssetVCSAPIError):
    """File content could not be downloaded or written."""


class AssetMetadataError(AssetVCSError):
    """Asset metadata file is missing or malformed."""


class LayerImportError(AssetVCSError):
    """Layer file could not be imported."""
