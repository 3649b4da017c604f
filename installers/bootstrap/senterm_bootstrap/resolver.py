"""Platform, release and asset resolution for the senterm installer."""

from __future__ import annotations

import platform
import re
import urllib.parse
from dataclasses import dataclass
from typing import Callable

from senterm_core.config import InstallerConfig

from .errors import UnsupportedPlatform, VersionResolutionFailed


SUPPORTED_ARCHES = {
    "linux": ("x86_64",),
}

_TAG_NAME_RE = re.compile(r'"tag_name"\s*:\s*"([^"]+)"')


@dataclass(frozen=True)
class PlatformTarget:
    os_name: str
    arch: str

    @property
    def label(self) -> str:
        return "macOS" if self.os_name == "macos" else "Linux"


@dataclass(frozen=True)
class ReleaseRef:
    tag: str
    source: str = "explicit"


@dataclass(frozen=True)
class AssetSpec:
    filename: str
    url: str

    @property
    def stem(self) -> str:
        for suffix in (".tar.gz", ".tgz", ".tar.xz", ".tar"):
            if self.filename.endswith(suffix):
                return self.filename[: -len(suffix)]
        return self.filename


def _normalize_os(system: str) -> str | None:
    s = system.lower()
    if s.startswith("darwin") or s.startswith("mac"):
        return "macos"
    if s.startswith("linux"):
        return "linux"
    return None


def _normalize_arch(machine: str) -> str:
    m = machine.lower()
    if m in ("x86_64", "amd64", "x64"):
        return "x86_64"
    if m in ("aarch64", "arm64"):
        return "arm64"
    return m


def detect_platform(system: str | None = None, machine: str | None = None) -> PlatformTarget:
    system = platform.system() if system is None else system
    machine = platform.machine() if machine is None else machine

    os_name = _normalize_os(system)
    if os_name is None:
        raise UnsupportedPlatform(
            f"Unsupported operating system: {system or 'unknown'}",
            hints=["This installer supports macOS and Linux only."],
        )

    arch = _normalize_arch(machine)
    supported = SUPPORTED_ARCHES.get(os_name)
    # macOS ships a universal binary, so every architecture is accepted there.
    if supported is not None and arch not in supported:
        raise UnsupportedPlatform(
            f"Unsupported architecture: {machine or 'unknown'}",
            hints=[f"Currently only {', '.join(supported)} is supported on {os_name}."],
        )
    return PlatformTarget(os_name=os_name, arch=arch)


def asset_filename(target: PlatformTarget, binary_name: str) -> str:
    if target.os_name == "macos":
        return f"{binary_name}-macos-universal.tar.gz"
    return f"{binary_name}-{target.os_name}-{target.arch}.tar.gz"


def asset_spec(target: PlatformTarget, release: ReleaseRef, config: InstallerConfig) -> AssetSpec:
    filename = asset_filename(target, config.binary_name)
    tag = urllib.parse.quote(release.tag, safe="")
    return AssetSpec(filename=filename, url=f"{config.releases_url}/download/{tag}/{filename}")


def extract_tag_name(payload: str) -> str | None:
    """Return the first ``tag_name`` value found in release index text."""
    match = _TAG_NAME_RE.search(payload or "")
    if not match:
        return None
    return match.group(1).strip() or None


def resolution_hints(config: InstallerConfig) -> list[str]:
    return [
        "This could mean:",
        "  - No releases published yet",
        "  - GitHub API rate limit reached",
        "",
        "Try specifying version manually:",
        "  senterm-install --version v0.1.0",
        "",
        "Check available releases at:",
        f"  {config.releases_url}",
    ]


def resolve_release(
    config: InstallerConfig,
    version: str | None,
    fetch_latest: Callable[[InstallerConfig], str | None],
) -> ReleaseRef:
    if version:
        return ReleaseRef(tag=version, source="explicit")

    tag = fetch_latest(config)
    if not tag:
        raise VersionResolutionFailed("Failed to get latest version", hints=resolution_hints(config))
    return ReleaseRef(tag=tag, source="latest")
