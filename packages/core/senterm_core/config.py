"""Installer settings schema and load helpers."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any


CONFIG_ENV = "SENTERM_INSTALLER_CONFIG"
INSTALL_DIR_ENV = "SENTERM_INSTALL_DIR"

logger = logging.getLogger("senterm.config")


@dataclass(frozen=True)
class InstallerConfig:
    binary_name: str = "senterm"
    command_name: str = "x"
    install_dir: Path = Path("/usr/local/bin")
    repo_owner: str = "neuralfoundry-coder"
    repo_name: str = "senterm-opensource"
    github_url: str = "https://github.com"
    api_url: str = "https://api.github.com"
    api_timeout_s: int = 30
    download_timeout_s: int = 180
    elevate_command: tuple[str, ...] = field(default=("sudo",))

    @property
    def repo(self) -> str:
        return f"{self.repo_owner}/{self.repo_name}"

    @property
    def releases_url(self) -> str:
        return f"{self.github_url.rstrip('/')}/{self.repo}/releases"

    @property
    def latest_release_api_url(self) -> str:
        return f"{self.api_url.rstrip('/')}/repos/{self.repo}/releases/latest"

    @property
    def install_path(self) -> Path:
        return self.install_dir / self.command_name


DEFAULT_CONFIG = InstallerConfig()


def _coerce(name: str, value: Any) -> Any:
    if name == "install_dir":
        return Path(value).expanduser()
    if name == "elevate_command":
        if isinstance(value, str):
            return tuple(value.split())
        return tuple(str(v) for v in value)
    if name in ("api_timeout_s", "download_timeout_s"):
        return max(1, int(value))
    return str(value)


def _merge(raw: dict[str, Any]) -> InstallerConfig:
    known = {f.name for f in fields(InstallerConfig)}
    updates: dict[str, Any] = {}
    for k, v in raw.items():
        if k not in known or v is None:
            continue
        try:
            updates[k] = _coerce(k, v)
        except (TypeError, ValueError) as exc:
            logger.warning("ignoring invalid %s=%r: %s", k, v, exc)
    return replace(DEFAULT_CONFIG, **updates)


def _normalize(cfg: InstallerConfig) -> InstallerConfig:
    # The installed command must never shadow the upstream binary name.
    if cfg.command_name == cfg.binary_name or "/" in cfg.command_name:
        logger.warning("invalid command_name %r, using default", cfg.command_name)
        cfg = replace(cfg, command_name=DEFAULT_CONFIG.command_name)
    return cfg


def load_config(path: Path | None = None) -> InstallerConfig:
    if path is None:
        env_path = os.environ.get(CONFIG_ENV, "").strip()
        path = Path(env_path).expanduser() if env_path else None

    raw: dict[str, Any] = {}
    if path is not None and path.exists():
        try:
            loaded = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("ignoring unreadable config %s: %s", path, exc)
        else:
            if isinstance(loaded, dict):
                raw = loaded

    install_dir = os.environ.get(INSTALL_DIR_ENV, "").strip()
    if install_dir:
        raw["install_dir"] = install_dir

    return _normalize(_merge(raw))
