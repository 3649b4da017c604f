"""Terminal failure kinds raised by the install pipeline."""

from __future__ import annotations

from typing import Iterable


class InstallerError(RuntimeError):
    """Base for every terminal installer failure.

    ``hints`` are operator-facing next steps printed under the message.
    """

    exit_code = 1
    stage = "install"

    def __init__(self, message: str, hints: Iterable[str] = ()) -> None:
        super().__init__(message)
        self.message = message
        self.hints = tuple(hints)

    def render(self) -> str:
        lines = [self.message]
        if self.hints:
            lines.append("")
            lines.extend(self.hints)
        return "\n".join(lines)


class UnsupportedPlatform(InstallerError):
    exit_code = 2
    stage = "detect"


class VersionResolutionFailed(InstallerError):
    exit_code = 3
    stage = "resolve"


class DownloadFailed(InstallerError):
    exit_code = 4
    stage = "fetch"


class ArchiveCorrupt(InstallerError):
    exit_code = 5
    stage = "fetch"


class BinaryNotFound(InstallerError):
    exit_code = 6
    stage = "locate"

    def __init__(self, message: str, listing: Iterable[str] = (), hints: Iterable[str] = ()) -> None:
        self.listing = tuple(listing)
        if self.listing:
            message = message + "\nExtracted files:\n" + "\n".join(f"  {item}" for item in self.listing)
        super().__init__(message, hints)


class AmbiguousBinary(BinaryNotFound):
    exit_code = 7


class InvalidBinaryFormat(InstallerError):
    exit_code = 8
    stage = "verify"


class InstallWriteFailed(InstallerError):
    exit_code = 9
    stage = "install"
