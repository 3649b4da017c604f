"""Check that the installed command resolves on PATH."""

from __future__ import annotations

import os
import shutil
from dataclasses import dataclass
from pathlib import Path

from senterm_core.config import InstallerConfig
from senterm_core.logging_setup import get_logger

from .resolver import PlatformTarget

logger = get_logger("post_install")


@dataclass(frozen=True)
class PostInstallReport:
    command_name: str
    expected_path: Path
    resolved_path: Path | None
    usage: tuple[str, ...] = ()
    remediation: tuple[str, ...] = ()

    @property
    def on_path(self) -> bool:
        return self.resolved_path is not None

    @property
    def shadowed(self) -> bool:
        if self.resolved_path is None:
            return False
        try:
            return not self.resolved_path.samefile(self.expected_path)
        except OSError:
            return self.resolved_path != self.expected_path


def usage_lines(config: InstallerConfig) -> tuple[str, ...]:
    cmd = config.command_name
    return (
        "Usage:",
        f"  {cmd}              Start file manager in current directory",
        f"  {cmd} <path>       Start file manager in specified path",
        "",
        "Uninstall:",
        f"  sudo rm {config.install_path}",
    )


def remediation_lines(config: InstallerConfig, target: PlatformTarget) -> tuple[str, ...]:
    if target.os_name == "macos":
        profiles, rc = "~/.zshrc", "~/.zshrc"
    else:
        profiles, rc = "~/.bashrc or ~/.zshrc", "~/.bashrc"
    return (
        f"Add the following to your shell profile ({profiles}):",
        f'  export PATH="$PATH:{config.install_dir}"',
        "",
        "Then restart your terminal or run:",
        f"  source {rc}",
    )


def check_command(
    config: InstallerConfig,
    target: PlatformTarget,
    installed_path: Path,
    path_env: str | None = None,
) -> PostInstallReport:
    search_path = os.environ.get("PATH", "") if path_env is None else path_env
    found = shutil.which(config.command_name, path=search_path)
    resolved = Path(found) if found else None

    report = PostInstallReport(
        command_name=config.command_name,
        expected_path=installed_path,
        resolved_path=resolved,
        usage=usage_lines(config),
        remediation=() if resolved else remediation_lines(config, target),
    )
    if resolved is None:
        logger.warning("%s not found in PATH", config.command_name, extra={"event": "not_on_path"})
    elif report.shadowed:
        logger.warning("%s resolves to %s, not %s", config.command_name, resolved, installed_path, extra={"event": "shadowed"})
    else:
        logger.info("%s resolves to %s", config.command_name, resolved, extra={"event": "on_path"})
    return report
