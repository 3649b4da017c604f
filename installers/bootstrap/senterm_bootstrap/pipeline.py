"""Sequential install pipeline shared by the CLI entry points."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from senterm_core.config import InstallerConfig
from senterm_core.logging_setup import get_logger

from .command import PrivilegedRunner
from .errors import InstallerError
from .install import CommandRunner, InstallResult, Installer, PostProcessor, post_processor_for
from .locator import LocatedBinary, archive_strategies, local_strategies, locate_binary
from .post_install import PostInstallReport, check_command
from .resolver import AssetSpec, PlatformTarget, ReleaseRef, asset_spec, detect_platform, resolve_release
from .service import Workspace, extract_archive, fetch_artifact, fetch_latest_tag
from .verifier import BinaryFormat, verify_binary

logger = get_logger("pipeline")

ProgressCallback = Callable[[str], None]


@dataclass(frozen=True)
class InstallReport:
    target: PlatformTarget
    release: ReleaseRef | None
    asset: AssetSpec | None
    located: LocatedBinary
    binary_format: BinaryFormat
    installed: InstallResult
    post_install: PostInstallReport

    @property
    def warnings(self) -> tuple[str, ...]:
        return self.installed.warnings


def _finish(
    config: InstallerConfig,
    target: PlatformTarget,
    located: LocatedBinary,
    progress: ProgressCallback,
    runner: CommandRunner,
    post_processor: PostProcessor | None,
    path_env: str | None,
) -> tuple[BinaryFormat, InstallResult, PostInstallReport]:
    fmt = verify_binary(located.path, target)
    progress(f"Binary verified ({fmt.description})")

    progress(f"Installing to {config.install_path}...")
    installer = Installer(config, runner=runner, post_processor=post_processor or post_processor_for(target, runner))
    installed = installer.install(located.path)
    if installed.escalated:
        progress("Administrator privileges were used")
    if target.os_name == "macos" and not installed.warnings:
        progress("Code signed (ad-hoc)")

    post = check_command(config, target, installed.target_path, path_env=path_env)
    return fmt, installed, post


def run_install(
    config: InstallerConfig,
    version: str | None = None,
    *,
    system: str | None = None,
    machine: str | None = None,
    progress: ProgressCallback | None = None,
    runner: CommandRunner | None = None,
    post_processor: PostProcessor | None = None,
    workspace_dir: Path | None = None,
    path_env: str | None = None,
) -> InstallReport:
    """Detect, resolve, fetch, locate, verify, install and post-verify.

    Every stage raises an ``InstallerError`` subclass on failure; only a
    command missing from PATH is reported as a soft outcome on the result.
    """
    progress = progress or (lambda _msg: None)
    runner = runner or PrivilegedRunner(config.elevate_command)

    try:
        target = detect_platform(system, machine)
        progress(f"Detected: {target.label} ({target.arch})")

        if not version:
            progress("Fetching latest release...")
        release = resolve_release(config, version, fetch_latest_tag)
        progress(f"Version: {release.tag}")

        asset = asset_spec(target, release, config)
        with Workspace(base_dir=workspace_dir) as workspace:
            progress(f"Downloading from: {asset.url}")
            archive = fetch_artifact(asset, release, workspace.path, config)
            progress("Download complete")

            progress("Extracting...")
            extract_archive(archive, workspace.path)
            located = locate_binary(
                workspace.path,
                archive_strategies(config.binary_name, asset.stem),
                listing=workspace.listing(),
            )
            progress("Extracted successfully")

            fmt, installed, post = _finish(config, target, located, progress, runner, post_processor, path_env)
    except InstallerError as exc:
        logger.error("install failed at %s: %s", exc.stage, exc.message, extra={"event": "install_failed"})
        raise

    return InstallReport(
        target=target,
        release=release,
        asset=asset,
        located=located,
        binary_format=fmt,
        installed=installed,
        post_install=post,
    )


def run_local_install(
    config: InstallerConfig,
    source_dir: Path,
    *,
    system: str | None = None,
    machine: str | None = None,
    progress: ProgressCallback | None = None,
    runner: CommandRunner | None = None,
    post_processor: PostProcessor | None = None,
    cwd: Path | None = None,
    path_env: str | None = None,
) -> InstallReport:
    """Install a binary that is already on disk, skipping resolve and fetch."""
    progress = progress or (lambda _msg: None)
    runner = runner or PrivilegedRunner(config.elevate_command)

    source_dir = source_dir.resolve()
    try:
        target = detect_platform(system, machine)
        progress(f"Detected: {target.label} ({target.arch})")

        listing = sorted(p.name for p in source_dir.iterdir()) if source_dir.is_dir() else []
        located = locate_binary(source_dir, local_strategies(config.binary_name, source_dir, cwd=cwd), listing=listing)
        progress(f"Found binary: {located.path}")
        fmt, installed, post = _finish(config, target, located, progress, runner, post_processor, path_env)
    except InstallerError as exc:
        logger.error("local install failed at %s: %s", exc.stage, exc.message, extra={"event": "install_failed"})
        raise

    return InstallReport(
        target=target,
        release=None,
        asset=None,
        located=located,
        binary_format=fmt,
        installed=installed,
        post_install=post,
    )
