"""External command execution with consistent logging and optional escalation."""

from __future__ import annotations

import os
import shlex
import subprocess
from dataclasses import dataclass
from typing import Sequence

from senterm_core.logging_setup import get_logger

logger = get_logger("command")


class CommandError(RuntimeError):
    def __init__(self, argv: Sequence[str], returncode: int, stderr: str) -> None:
        super().__init__(f"Command failed ({returncode}): {fmt_argv(argv)}\n{stderr}".rstrip())
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr


@dataclass(frozen=True)
class CmdResult:
    argv: list[str]
    returncode: int
    stdout: str
    stderr: str


def fmt_argv(argv: Sequence[str]) -> str:
    return " ".join(shlex.quote(str(a)) for a in argv)


def run_cmd(argv: Sequence[str], *, check: bool = True) -> CmdResult:
    """Run a command, logging argv and captured output.

    A missing executable is reported as returncode 127, matching the shell.
    """

    argv_list = [str(a) for a in argv]
    logger.info("CMD %s", fmt_argv(argv_list), extra={"event": "command"})

    try:
        p = subprocess.run(
            argv_list,
            text=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
    except FileNotFoundError as exc:
        if check:
            raise CommandError(argv_list, 127, str(exc)) from exc
        return CmdResult(argv=argv_list, returncode=127, stdout="", stderr=str(exc))

    if p.stdout:
        logger.debug("STDOUT %s", p.stdout.strip())
    if p.stderr:
        logger.debug("STDERR %s", p.stderr.strip())

    if check and p.returncode != 0:
        raise CommandError(argv_list, p.returncode, p.stderr)

    return CmdResult(argv=argv_list, returncode=p.returncode, stdout=p.stdout, stderr=p.stderr)


class PrivilegedRunner:
    """Runs commands, prefixing the escalation command when asked to."""

    def __init__(self, elevate_command: Sequence[str] = ("sudo",)) -> None:
        self.elevate_command = tuple(elevate_command)

    def _prefix(self) -> list[str]:
        geteuid = getattr(os, "geteuid", None)
        if geteuid is not None and geteuid() == 0:
            return []
        return list(self.elevate_command)

    def run(self, argv: Sequence[str], *, escalate: bool = False, check: bool = True) -> CmdResult:
        full = (self._prefix() if escalate else []) + [str(a) for a in argv]
        return run_cmd(full, check=check)
