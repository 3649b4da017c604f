"""CLI installer that downloads a senterm release and installs it as a command."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from senterm_core.config import InstallerConfig, load_config
from senterm_core.logging_setup import configure_logging, get_logger

from .errors import InstallerError
from .pipeline import InstallReport, run_install, run_local_install

logger = get_logger("cli")


def _say(msg: str = "") -> None:
    print(msg, flush=True)


def _progress(msg: str) -> None:
    _say(f"→ {msg}")


def _banner(title: str) -> None:
    _say("")
    _say(f"  {title}")
    _say("  " + "=" * len(title))
    _say("")


def _fail(exc: InstallerError) -> int:
    print(f"✗ {exc.render()}", file=sys.stderr, flush=True)
    return exc.exit_code


def _summarize(report: InstallReport, config: InstallerConfig) -> None:
    for warning in report.warnings:
        _say(f"⚠ {warning}")

    post = report.post_install
    _say("")
    if not post.on_path:
        _say(f"⚠ Installation complete, but '{post.command_name}' not found in PATH")
        _say("")
        for line in post.remediation:
            _say(line)
        return

    if post.shadowed:
        _say(f"⚠ '{post.command_name}' resolves to {post.resolved_path}, not the installed {post.expected_path}")
        _say(f"  Move {config.install_dir} earlier in PATH or remove the other '{post.command_name}'.")
        _say("")

    _banner("Installation Complete!")
    _say(f"✓ '{post.command_name}' command is now available")
    _say("")
    for line in post.usage:
        _say(line)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="senterm-install", description="Install senterm from GitHub Releases")
    parser.add_argument(
        "--version",
        "-v",
        dest="version",
        nargs="?",
        const=None,
        default=None,
        help="Release tag to install (default: latest)",
    )
    return parser


def build_local_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="senterm-install-local", description="Install a senterm binary from disk")
    parser.add_argument("source_dir", nargs="?", default=None, help="Directory containing the binary (default: cwd)")
    return parser


def _run(func, *args, **kwargs) -> int:
    try:
        report = func(*args, **kwargs)
    except InstallerError as exc:
        return _fail(exc)
    except KeyboardInterrupt:
        print("✗ Interrupted", file=sys.stderr, flush=True)
        return 130
    _summarize(report, args[0])
    return 0


def main(argv: list[str] | None = None) -> int:
    configure_logging(console=False)
    args, unknown = build_parser().parse_known_args(argv)
    if unknown:
        logger.info("ignoring arguments %s", unknown, extra={"event": "ignored_args"})

    config = load_config()
    _banner(f"{config.binary_name.capitalize()} Installer")
    return _run(run_install, config, args.version, progress=_progress)


def main_local(argv: list[str] | None = None) -> int:
    configure_logging(console=False)
    args, unknown = build_local_parser().parse_known_args(argv)
    if unknown:
        logger.info("ignoring arguments %s", unknown, extra={"event": "ignored_args"})

    config = load_config()
    _banner(f"{config.binary_name.capitalize()} Local Installer")
    source_dir = Path(args.source_dir).expanduser() if args.source_dir else Path.cwd()
    return _run(run_local_install, config, source_dir, progress=_progress)


if __name__ == "__main__":
    raise SystemExit(main())
