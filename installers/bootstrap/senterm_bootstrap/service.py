"""Release index queries, artifact download and the scoped install workspace."""

from __future__ import annotations

import atexit
import http.client
import os
import shutil
import signal
import ssl
import tarfile
import tempfile
import threading
import urllib.error
import urllib.request
import zlib
from pathlib import Path

import certifi

from senterm_core.config import InstallerConfig
from senterm_core.logging_setup import get_logger

from .errors import ArchiveCorrupt, DownloadFailed, VersionResolutionFailed
from .resolver import AssetSpec, ReleaseRef, extract_tag_name, resolution_hints

logger = get_logger("service")

# urllib surfaces malformed URLs as ValueError and short reads as HTTPException.
_FETCH_ERRORS = (OSError, ValueError, http.client.HTTPException)

_CLEANUP_SIGNALS = tuple(
    getattr(signal, name) for name in ("SIGTERM", "SIGHUP") if hasattr(signal, name)
)


def _build_ssl_context() -> ssl.SSLContext:
    """Create TLS context for release downloads with explicit CA handling."""
    if os.environ.get("SENTERM_ALLOW_INSECURE_TLS", "").strip() == "1":
        return ssl._create_unverified_context()

    ca_bundle = os.environ.get("SENTERM_CA_BUNDLE", "").strip()
    if ca_bundle:
        return ssl.create_default_context(cafile=ca_bundle)

    return ssl.create_default_context(cafile=certifi.where())


def _urlopen(url: str, timeout: int, accept: str = "*/*"):
    request = urllib.request.Request(
        url,
        headers={
            "User-Agent": "SentermInstaller/0.1 (+https://github.com/neuralfoundry-coder/senterm-opensource)",
            "Accept": accept,
        },
    )
    return urllib.request.urlopen(request, timeout=timeout, context=_build_ssl_context())


def _describe(exc: Exception) -> str:
    if isinstance(exc, urllib.error.HTTPError):
        return f"HTTP {exc.code}"
    if isinstance(exc, urllib.error.URLError):
        return str(exc.reason)
    return str(exc) or type(exc).__name__


def fetch_latest_tag(config: InstallerConfig) -> str | None:
    url = config.latest_release_api_url
    logger.info("querying release index %s", url, extra={"event": "release_index_query"})
    try:
        with _urlopen(url, timeout=config.api_timeout_s, accept="application/vnd.github+json") as response:
            payload = response.read().decode("utf-8", errors="replace")
    except _FETCH_ERRORS as exc:
        logger.warning("release index query failed: %s", _describe(exc), extra={"event": "release_index_failed"})
        raise VersionResolutionFailed(
            f"Failed to get latest version ({_describe(exc)})",
            hints=resolution_hints(config),
        ) from exc
    return extract_tag_name(payload)


def download_hints(release: ReleaseRef, config: InstallerConfig) -> list[str]:
    return [
        "Possible reasons:",
        f"  - Version {release.tag} may not exist",
        "  - Release assets may not be uploaded yet",
        "",
        "Check available releases at:",
        f"  {config.releases_url}",
    ]


class Workspace:
    """Exclusively owned temporary directory for one installer run.

    Removal is registered on entry (atexit plus SIGTERM/SIGHUP), so the
    directory disappears on success, error and interruption alike.
    """

    def __init__(self, prefix: str = "senterm-install-", base_dir: Path | None = None) -> None:
        self.prefix = prefix
        self.base_dir = base_dir
        self.path: Path | None = None
        self._active = False
        self._previous_handlers: dict[int, object] = {}

    def __enter__(self) -> "Workspace":
        self.path = Path(tempfile.mkdtemp(prefix=self.prefix, dir=str(self.base_dir) if self.base_dir else None))
        self._active = True
        atexit.register(self.cleanup)
        self._install_signal_handlers()
        logger.info("workspace created %s", self.path, extra={"event": "workspace_created"})
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            self.cleanup()
        finally:
            self._restore_signal_handlers()

    def _on_signal(self, signum, _frame) -> None:
        raise SystemExit(128 + signum)

    def _install_signal_handlers(self) -> None:
        if threading.current_thread() is not threading.main_thread():
            return
        for sig in _CLEANUP_SIGNALS:
            self._previous_handlers[sig] = signal.signal(sig, self._on_signal)

    def _restore_signal_handlers(self) -> None:
        for sig, previous in self._previous_handlers.items():
            signal.signal(sig, previous)
        self._previous_handlers.clear()

    def cleanup(self) -> None:
        if not self._active or self.path is None:
            return
        self._active = False
        atexit.unregister(self.cleanup)
        try:
            shutil.rmtree(self.path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            # Never mask the failure that is already propagating.
            logger.warning("workspace cleanup failed for %s: %s", self.path, exc, extra={"event": "workspace_cleanup_failed"})
        else:
            logger.info("workspace removed %s", self.path, extra={"event": "workspace_removed"})

    def listing(self) -> list[str]:
        if self.path is None or not self.path.exists():
            return []
        return sorted(p.relative_to(self.path).as_posix() for p in self.path.rglob("*") if p.is_file())


def fetch_artifact(asset: AssetSpec, release: ReleaseRef, workspace: Path, config: InstallerConfig) -> Path:
    dest = workspace / asset.filename
    logger.info("downloading %s", asset.url, extra={"event": "download_started"})
    try:
        with _urlopen(asset.url, timeout=config.download_timeout_s) as response, dest.open("wb") as fh:
            shutil.copyfileobj(response, fh)
    except _FETCH_ERRORS as exc:
        logger.warning("download failed: %s", _describe(exc), extra={"event": "download_failed"})
        raise DownloadFailed(
            f"Download failed ({_describe(exc)})",
            hints=download_hints(release, config),
        ) from exc
    logger.info("downloaded %s bytes", dest.stat().st_size, extra={"event": "download_complete"})
    return dest


def _check_members(tf: tarfile.TarFile, dest: Path) -> None:
    root = dest.resolve()
    for member in tf.getmembers():
        target = (root / member.name).resolve()
        if target != root and root not in target.parents:
            raise ArchiveCorrupt(f"Archive member escapes extraction directory: {member.name}")


def extract_archive(archive: Path, dest: Path) -> Path:
    logger.info("extracting %s", archive.name, extra={"event": "extract_started"})
    try:
        with tarfile.open(archive, "r:*") as tf:
            if hasattr(tarfile, "data_filter"):
                tf.extractall(dest, filter="data")
            else:
                _check_members(tf, dest)
                tf.extractall(dest)
    except (tarfile.TarError, EOFError, zlib.error, OSError) as exc:
        logger.warning("extraction failed: %s", exc, extra={"event": "extract_failed"})
        raise ArchiveCorrupt(
            f"Failed to extract {archive.name}: {exc}",
            hints=["The download may be incomplete or corrupted. Re-run the installer to retry."],
        ) from exc
    return dest
