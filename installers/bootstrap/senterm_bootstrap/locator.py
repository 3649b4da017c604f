"""Find the executable to install inside an extracted release archive."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Protocol, Sequence

from senterm_core.logging_setup import get_logger

from .errors import AmbiguousBinary, BinaryNotFound

logger = get_logger("locator")


class LocateStrategy(Protocol):
    """One archive layout; returns the binary path or None."""

    name: str

    def locate(self, root: Path) -> Path | None:
        ...


@dataclass(frozen=True)
class LocatedBinary:
    path: Path
    strategy: str


@dataclass(frozen=True)
class DirectoryCandidate:
    subdir: str
    binary_name: str

    @property
    def name(self) -> str:
        return "root" if self.subdir in ("", ".") else f"subdir:{self.subdir}"

    def locate(self, root: Path) -> Path | None:
        candidate = root / self.subdir / self.binary_name
        return candidate if candidate.is_file() else None


@dataclass(frozen=True)
class FixedDirectory:
    """Looks in an absolute directory, independent of the search root."""

    directory: Path
    binary_name: str

    @property
    def name(self) -> str:
        return f"dir:{self.directory}"

    def locate(self, root: Path) -> Path | None:
        candidate = self.directory / self.binary_name
        return candidate if candidate.is_file() else None


@dataclass(frozen=True)
class RecursiveSearch:
    binary_name: str
    name: str = "recursive"

    def locate(self, root: Path) -> Path | None:
        matches = sorted(p for p in root.rglob(self.binary_name) if p.is_file())
        if len(matches) > 1:
            raise AmbiguousBinary(
                f"Found {len(matches)} files named {self.binary_name!r}; refusing to guess",
                listing=[p.relative_to(root).as_posix() for p in matches],
                hints=["Report the archive layout to the maintainers or install manually."],
            )
        return matches[0] if matches else None


def archive_strategies(binary_name: str, platform_dir: str) -> list[LocateStrategy]:
    """Layouts seen in published archives, highest priority first."""
    return [
        DirectoryCandidate(".", binary_name),
        DirectoryCandidate(platform_dir, binary_name),
        DirectoryCandidate("release", binary_name),
        RecursiveSearch(binary_name),
    ]


def local_strategies(binary_name: str, source_dir: Path, cwd: Path | None = None) -> list[LocateStrategy]:
    cwd = Path.cwd() if cwd is None else cwd
    return [
        FixedDirectory(source_dir, binary_name),
        FixedDirectory(source_dir.parent, binary_name),
        FixedDirectory(cwd, binary_name),
    ]


def _listing(root: Path) -> list[str]:
    if not root.is_dir():
        return []
    return sorted(p.relative_to(root).as_posix() for p in root.rglob("*") if p.is_file())


def locate_binary(root: Path, strategies: Sequence[LocateStrategy], listing: Iterable[str] | None = None) -> LocatedBinary:
    for strategy in strategies:
        found = strategy.locate(root)
        if found is not None:
            logger.info("binary found via %s at %s", strategy.name, found, extra={"event": "binary_located"})
            return LocatedBinary(path=found, strategy=strategy.name)

    entries = list(listing) if listing is not None else _listing(root)
    raise BinaryNotFound(
        "Binary not found in archive",
        listing=entries or ["(no files)"],
        hints=["The release archive layout may have changed. Check the release page and install manually."],
    )
