from __future__ import annotations

import email.message
import io
import struct
import sys
import tarfile
import urllib.error
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "installers" / "bootstrap"))
sys.path.insert(0, str(ROOT / "packages" / "core"))


def elf_executable() -> bytes:
    ident = b"\x7fELF" + bytes([2, 1, 1, 0]) + bytes(8)
    return ident + struct.pack("<HH", 2, 62) + bytes(44)


def macho_universal() -> bytes:
    header = struct.pack(">II", 0xCAFEBABE, 2)
    header += struct.pack(">IIIII", 0x01000007, 3, 4096, 64, 12)
    header += struct.pack(">IIIII", 0x0100000C, 0, 8192, 64, 14)
    return header + bytes(128)


def tarball(files: dict[str, bytes]) -> bytes:
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tf:
        for name, data in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = 0o755
            tf.addfile(info, io.BytesIO(data))
    return buf.getvalue()


def http_error(url: str, code: int) -> urllib.error.HTTPError:
    return urllib.error.HTTPError(url, code, "error", email.message.Message(), None)


class FakeReleaseServer:
    """Stand-in for ``service._urlopen`` serving canned bodies per URL."""

    def __init__(self, routes: dict[str, bytes | int]) -> None:
        self.routes = routes
        self.calls: list[str] = []

    def __call__(self, url: str, timeout: int, accept: str = "*/*"):
        self.calls.append(url)
        body = self.routes.get(url, 404)
        if isinstance(body, int):
            raise http_error(url, body)
        return io.BytesIO(body)


@pytest.fixture
def release_server(monkeypatch):
    from senterm_bootstrap import service

    def _install(routes: dict[str, bytes | int]) -> FakeReleaseServer:
        server = FakeReleaseServer(routes)
        monkeypatch.setattr(service, "_urlopen", server)
        return server

    return _install
