"""Copy the verified binary into the system command directory."""

from __future__ import annotations

import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, Sequence

from senterm_core.config import InstallerConfig
from senterm_core.logging_setup import get_logger

from .command import CmdResult, CommandError, PrivilegedRunner
from .errors import InstallWriteFailed
from .resolver import PlatformTarget

logger = get_logger("install")


class CommandRunner(Protocol):
    def run(self, argv: Sequence[str], *, escalate: bool = False, check: bool = True) -> CmdResult:
        ...


class PostProcessor(Protocol):
    """OS-specific best-effort steps; each returns a warning or None."""

    def clear_quarantine(self, path: Path, escalate: bool) -> str | None:
        ...

    def ad_hoc_sign(self, path: Path, escalate: bool) -> str | None:
        ...


class NoopPostProcessor:
    def clear_quarantine(self, path: Path, escalate: bool) -> str | None:
        return None

    def ad_hoc_sign(self, path: Path, escalate: bool) -> str | None:
        return None


class MacOSPostProcessor:
    def __init__(self, runner: CommandRunner) -> None:
        self.runner = runner

    def _attempt(self, argv: list[str], escalate: bool, what: str) -> str | None:
        result = self.runner.run(argv, escalate=escalate, check=False)
        if result.returncode == 0:
            return None
        detail = (result.stderr or "").strip().splitlines()
        suffix = f": {detail[-1]}" if detail else ""
        return f"Could not {what} (exit {result.returncode}){suffix}"

    def clear_quarantine(self, path: Path, escalate: bool) -> str | None:
        return self._attempt(["xattr", "-cr", str(path)], escalate, "clear quarantine attribute")

    def ad_hoc_sign(self, path: Path, escalate: bool) -> str | None:
        return self._attempt(["codesign", "--force", "--deep", "--sign", "-", str(path)], escalate, "apply ad-hoc signature")


def post_processor_for(target: PlatformTarget, runner: CommandRunner) -> PostProcessor:
    if target.os_name == "macos":
        return MacOSPostProcessor(runner)
    return NoopPostProcessor()


@dataclass(frozen=True)
class InstallResult:
    target_path: Path
    escalated: bool
    warnings: tuple[str, ...] = ()


def dir_writable(path: Path) -> bool:
    return os.access(path, os.W_OK | os.X_OK)


def _nearest_existing(path: Path) -> Path:
    for candidate in (path, *path.parents):
        if candidate.exists():
            return candidate
    return Path(path.anchor or ".")


class Installer:
    def __init__(
        self,
        config: InstallerConfig,
        runner: CommandRunner | None = None,
        post_processor: PostProcessor | None = None,
    ) -> None:
        self.config = config
        self.runner = runner or PrivilegedRunner(config.elevate_command)
        self.post_processor = post_processor or NoopPostProcessor()

    def _escalated(self, argv: list[str], what: str) -> None:
        try:
            self.runner.run(argv, escalate=True)
        except CommandError as exc:
            raise InstallWriteFailed(
                f"Failed to {what} even with administrator privileges",
                hints=[str(exc), f"Check that you can write to {self.config.install_dir}."],
            ) from exc

    def _ensure_dir(self, directory: Path) -> bool:
        """Create the install directory; True when escalation was needed."""
        if dir_writable(_nearest_existing(directory)):
            try:
                directory.mkdir(parents=True, exist_ok=True)
                logger.info("created %s", directory, extra={"event": "install_dir_created"})
                return False
            except OSError as exc:
                logger.warning("mkdir %s failed: %s", directory, exc)

        logger.info("creating %s with elevated privileges", directory, extra={"event": "install_dir_escalated"})
        self._escalated(["mkdir", "-p", str(directory)], f"create {directory}")
        return True

    def _copy_direct(self, source: Path, target: Path) -> None:
        staging = target.with_name(f".{target.name}.{os.getpid()}.tmp")
        try:
            shutil.copyfile(source, staging)
            staging.chmod(staging.stat().st_mode | 0o755)
            # Atomic swap; a running old binary keeps its inode.
            os.replace(staging, target)
        except OSError:
            staging.unlink(missing_ok=True)
            raise

    def _copy_escalated(self, source: Path, target: Path) -> None:
        self._escalated(["cp", str(source), str(target)], f"copy binary to {target}")
        self._escalated(["chmod", "755", str(target)], f"make {target} executable")

    def _post_process(self, target: Path, escalate: bool) -> tuple[str, ...]:
        warnings: list[str] = []
        for step in (self.post_processor.clear_quarantine, self.post_processor.ad_hoc_sign):
            warning = step(target, escalate)
            if warning:
                logger.warning(warning, extra={"event": "post_process_warning"})
                warnings.append(warning)
        return tuple(warnings)

    def install(self, source: Path) -> InstallResult:
        directory = self.config.install_dir
        target = self.config.install_path
        escalated = False

        if not directory.is_dir():
            escalated = self._ensure_dir(directory)

        if dir_writable(directory):
            try:
                self._copy_direct(source, target)
            except OSError as exc:
                logger.warning("direct copy to %s failed: %s", target, exc)
                self._copy_escalated(source, target)
                escalated = True
        else:
            logger.info("administrator privileges required for %s", directory, extra={"event": "install_escalated"})
            self._copy_escalated(source, target)
            escalated = True

        logger.info("installed %s", target, extra={"event": "installed"})
        warnings = self._post_process(target, escalated)
        return InstallResult(target_path=target, escalated=escalated, warnings=warnings)
