"""Release installer for the senterm command."""

from .errors import (
    AmbiguousBinary,
    ArchiveCorrupt,
    BinaryNotFound,
    DownloadFailed,
    InstallerError,
    InstallWriteFailed,
    InvalidBinaryFormat,
    UnsupportedPlatform,
    VersionResolutionFailed,
)
from .pipeline import InstallReport, run_install, run_local_install
from .resolver import AssetSpec, PlatformTarget, ReleaseRef, asset_spec, detect_platform, resolve_release

__all__ = [
    "AmbiguousBinary",
    "ArchiveCorrupt",
    "AssetSpec",
    "BinaryNotFound",
    "DownloadFailed",
    "InstallReport",
    "InstallWriteFailed",
    "InstallerError",
    "InvalidBinaryFormat",
    "PlatformTarget",
    "ReleaseRef",
    "UnsupportedPlatform",
    "VersionResolutionFailed",
    "asset_spec",
    "detect_platform",
    "resolve_release",
    "run_install",
    "run_local_install",
]
