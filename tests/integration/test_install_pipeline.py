from __future__ import annotations

import platform
import stat
from pathlib import Path

import pytest

import senterm_bootstrap.cli as cli
import senterm_bootstrap.install as install
from conftest import elf_executable, macho_universal, tarball
from senterm_bootstrap.command import CmdResult
from senterm_bootstrap.errors import BinaryNotFound, DownloadFailed, InvalidBinaryFormat, UnsupportedPlatform
from senterm_bootstrap.install import MacOSPostProcessor
from senterm_bootstrap.pipeline import run_install
from senterm_core.config import InstallerConfig

RELEASES = "https://github.com/neuralfoundry-coder/senterm-opensource/releases"
MACOS_ASSET = f"{RELEASES}/download/v0.1.0/senterm-macos-universal.tar.gz"
LINUX_ASSET = f"{RELEASES}/download/v0.1.0/senterm-linux-x86_64.tar.gz"


class FakeRunner:
    def __init__(self) -> None:
        self.calls: list[tuple[list[str], bool]] = []

    def run(self, argv, *, escalate=False, check=True):
        argv = [str(a) for a in argv]
        self.calls.append((argv, escalate))
        if argv[0] == "mkdir":
            Path(argv[-1]).mkdir(parents=True, exist_ok=True)
        elif argv[0] == "cp":
            Path(argv[2]).write_bytes(Path(argv[1]).read_bytes())
        elif argv[0] == "chmod":
            Path(argv[2]).chmod(int(argv[1], 8))
        return CmdResult(argv=argv, returncode=0, stdout="", stderr="")


@pytest.fixture
def workspace_dir(tmp_path) -> Path:
    path = tmp_path / "work"
    path.mkdir()
    return path


def test_scenario_a_macos_explicit_tag(release_server, tmp_path, workspace_dir) -> None:
    cfg = InstallerConfig(install_dir=tmp_path / "bin")
    server = release_server({MACOS_ASSET: tarball({"senterm": macho_universal()})})
    runner = FakeRunner()
    messages: list[str] = []

    report = run_install(
        cfg,
        "v0.1.0",
        system="Darwin",
        machine="arm64",
        progress=messages.append,
        runner=runner,
        post_processor=MacOSPostProcessor(runner),
        workspace_dir=workspace_dir,
        path_env=str(cfg.install_dir),
    )

    assert server.calls == [MACOS_ASSET]
    assert report.release.tag == "v0.1.0"
    assert report.binary_format.universal
    assert report.located.strategy == "root"
    assert report.installed.target_path == tmp_path / "bin" / "x"
    assert report.post_install.on_path
    assert report.post_install.resolved_path == report.installed.target_path
    assert [argv[0] for argv, _ in runner.calls] == ["xattr", "codesign"]
    assert "Code signed (ad-hoc)" in messages
    assert list(workspace_dir.iterdir()) == []


def test_scenario_a_through_cli(monkeypatch, release_server, tmp_path, capsys) -> None:
    install_dir = tmp_path / "bin"
    monkeypatch.setattr(cli, "configure_logging", lambda **_kw: None)
    monkeypatch.setattr(platform, "system", lambda: "Darwin")
    monkeypatch.setattr(platform, "machine", lambda: "x86_64")
    monkeypatch.setenv("SENTERM_INSTALL_DIR", str(install_dir))
    monkeypatch.delenv("SENTERM_INSTALLER_CONFIG", raising=False)
    monkeypatch.setenv("PATH", str(install_dir))
    release_server({MACOS_ASSET: tarball({"senterm": macho_universal()})})

    code = cli.main(["--version", "v0.1.0", "--unknown-flag"])

    out = capsys.readouterr().out
    assert code == 0
    assert (install_dir / "x").exists()
    assert "'x' command is now available" in out


def test_scenario_b_no_tag_published(monkeypatch, release_server, capsys) -> None:
    cfg = InstallerConfig()
    monkeypatch.setattr(cli, "configure_logging", lambda **_kw: None)
    monkeypatch.delenv("SENTERM_INSTALLER_CONFIG", raising=False)
    monkeypatch.delenv("SENTERM_INSTALL_DIR", raising=False)
    monkeypatch.setattr(platform, "system", lambda: "Linux")
    monkeypatch.setattr(platform, "machine", lambda: "x86_64")
    server = release_server({cfg.latest_release_api_url: b'{"message": "Not Found"}'})

    code = cli.main([])

    err = capsys.readouterr().err
    assert code != 0
    assert "No releases published" in err
    assert "rate limit" in err
    assert server.calls == [cfg.latest_release_api_url]


def test_scenario_c_linux_arm_fails_before_network(monkeypatch, release_server, capsys) -> None:
    monkeypatch.setattr(cli, "configure_logging", lambda **_kw: None)
    monkeypatch.setattr(platform, "system", lambda: "Linux")
    monkeypatch.setattr(platform, "machine", lambda: "aarch64")
    server = release_server({})

    code = cli.main(["-v", "v0.1.0"])

    assert code == UnsupportedPlatform.exit_code
    assert code != 0
    assert server.calls == []
    assert "Unsupported architecture" in capsys.readouterr().err


def test_scenario_d_escalated_install(monkeypatch, release_server, tmp_path, workspace_dir) -> None:
    monkeypatch.setattr(install, "dir_writable", lambda _p: False)
    cfg = InstallerConfig(install_dir=tmp_path / "opt" / "bin")
    release_server({LINUX_ASSET: tarball({"senterm-linux-x86_64/senterm": elf_executable()})})
    runner = FakeRunner()

    report = run_install(
        cfg,
        "v0.1.0",
        system="Linux",
        machine="x86_64",
        runner=runner,
        workspace_dir=workspace_dir,
        path_env="",
    )

    assert [(argv[0], escalate) for argv, escalate in runner.calls] == [
        ("mkdir", True),
        ("cp", True),
        ("chmod", True),
    ]
    assert report.installed.escalated
    assert report.installed.target_path.stat().st_mode & stat.S_IXUSR
    assert not report.post_install.on_path
    assert report.post_install.remediation
    assert list(workspace_dir.iterdir()) == []


def test_invalid_binary_is_not_installed(release_server, tmp_path, workspace_dir) -> None:
    cfg = InstallerConfig(install_dir=tmp_path / "bin")
    release_server({LINUX_ASSET: tarball({"senterm": b"<html>404</html>"})})
    runner = FakeRunner()

    with pytest.raises(InvalidBinaryFormat):
        run_install(cfg, "v0.1.0", system="Linux", machine="x86_64", runner=runner, workspace_dir=workspace_dir)

    assert not cfg.install_path.exists()
    assert runner.calls == []
    assert list(workspace_dir.iterdir()) == []


def test_missing_binary_lists_workspace(release_server, tmp_path, workspace_dir) -> None:
    cfg = InstallerConfig(install_dir=tmp_path / "bin")
    release_server({LINUX_ASSET: tarball({"docs/README.md": b"readme"})})

    with pytest.raises(BinaryNotFound) as info:
        run_install(cfg, "v0.1.0", system="Linux", machine="x86_64", runner=FakeRunner(), workspace_dir=workspace_dir)

    assert "senterm-linux-x86_64.tar.gz" in info.value.listing
    assert "docs/README.md" in info.value.listing
    assert list(workspace_dir.iterdir()) == []


def test_latest_release_is_resolved(release_server, tmp_path, workspace_dir) -> None:
    cfg = InstallerConfig(install_dir=tmp_path / "bin")
    server = release_server(
        {
            cfg.latest_release_api_url: b'{"tag_name":"v0.1.0","name":"first"}',
            LINUX_ASSET: tarball({"release/senterm": elf_executable()}),
        }
    )

    report = run_install(cfg, None, system="Linux", machine="x86_64", runner=FakeRunner(), workspace_dir=workspace_dir, path_env="")

    assert server.calls == [cfg.latest_release_api_url, LINUX_ASSET]
    assert report.release.source == "latest"
    assert report.located.strategy == "subdir:release"


def test_tag_with_whitespace_reports_download_failure(monkeypatch, release_server, tmp_path, capsys) -> None:
    monkeypatch.setattr(cli, "configure_logging", lambda **_kw: None)
    monkeypatch.setattr(platform, "system", lambda: "Linux")
    monkeypatch.setattr(platform, "machine", lambda: "x86_64")
    monkeypatch.setenv("SENTERM_INSTALL_DIR", str(tmp_path / "bin"))
    monkeypatch.delenv("SENTERM_INSTALLER_CONFIG", raising=False)
    server = release_server({})

    code = cli.main(["--version", "v0.1 beta"])

    assert code == DownloadFailed.exit_code
    assert server.calls == [f"{RELEASES}/download/v0.1%20beta/senterm-linux-x86_64.tar.gz"]
    assert "Version v0.1 beta may not exist" in capsys.readouterr().err
