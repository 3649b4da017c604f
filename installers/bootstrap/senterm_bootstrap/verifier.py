"""Coarse executable format sniffing for downloaded binaries.

This reads magic numbers only. It catches an HTML error page, a truncated
download or the wrong platform's asset; it is not a checksum or signature
check.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass
from pathlib import Path

from senterm_core.logging_setup import get_logger

from .errors import InvalidBinaryFormat
from .resolver import PlatformTarget

logger = get_logger("verifier")

ELF_MAGIC = b"\x7fELF"
ET_EXEC = 2
ET_DYN = 3

MACHO_MAGICS = {
    0xFEEDFACE: ">",
    0xFEEDFACF: ">",
    0xCEFAEDFE: "<",
    0xCFFAEDFE: "<",
}
FAT_MAGIC = 0xCAFEBABE
FAT_MAGIC_64 = 0xCAFEBABF
# Java class files share 0xCAFEBABE; their "arch count" is the class version (>= 45).
MAX_FAT_ARCHES = 20

_ELF_MACHINES = {3: "i386", 40: "arm", 62: "x86_64", 183: "arm64"}
_MACHO_CPUS = {
    7: "i386",
    0x01000007: "x86_64",
    12: "arm",
    0x0100000C: "arm64",
    0x0200000C: "arm64_32",
    18: "ppc",
    0x01000012: "ppc64",
}


@dataclass(frozen=True)
class BinaryFormat:
    kind: str
    universal: bool = False
    architectures: tuple[str, ...] = ()

    @property
    def description(self) -> str:
        if self.kind == "elf":
            arch = f" ({', '.join(self.architectures)})" if self.architectures else ""
            return f"ELF executable{arch}"
        if self.universal:
            return f"Mach-O universal binary ({' + '.join(self.architectures) or 'unknown'})"
        return f"Mach-O executable ({', '.join(self.architectures) or 'unknown'})"


def _read_header(path: Path, size: int = 4096) -> bytes:
    try:
        with path.open("rb") as fh:
            return fh.read(size)
    except OSError as exc:
        raise InvalidBinaryFormat(f"Cannot read {path.name}: {exc}") from exc


def _sniff_elf(header: bytes) -> BinaryFormat | None:
    if len(header) < 20 or not header.startswith(ELF_MAGIC):
        return None
    order = "<" if header[5] == 1 else ">"
    e_type, e_machine = struct.unpack_from(order + "HH", header, 16)
    if e_type not in (ET_EXEC, ET_DYN):
        return None
    arch = _ELF_MACHINES.get(e_machine, f"machine-{e_machine}")
    return BinaryFormat(kind="elf", architectures=(arch,))


def _sniff_macho(header: bytes) -> BinaryFormat | None:
    if len(header) < 8:
        return None
    (magic,) = struct.unpack_from(">I", header, 0)

    order = MACHO_MAGICS.get(magic)
    if order is not None:
        (cputype,) = struct.unpack_from(order + "I", header, 4)
        return BinaryFormat(kind="mach-o", architectures=(_MACHO_CPUS.get(cputype, "unknown"),))

    if magic not in (FAT_MAGIC, FAT_MAGIC_64):
        return None
    (nfat,) = struct.unpack_from(">I", header, 4)
    if not 0 < nfat < MAX_FAT_ARCHES:
        return None

    entry_size = 20 if magic == FAT_MAGIC else 32
    arches: list[str] = []
    for i in range(nfat):
        offset = 8 + i * entry_size
        if offset + 4 > len(header):
            break
        (cputype,) = struct.unpack_from(">I", header, offset)
        arches.append(_MACHO_CPUS.get(cputype, "unknown"))
    return BinaryFormat(kind="mach-o", universal=True, architectures=tuple(arches))


def sniff_format(path: Path) -> BinaryFormat | None:
    header = _read_header(path)
    return _sniff_elf(header) or _sniff_macho(header)


def verify_binary(path: Path, target: PlatformTarget) -> BinaryFormat:
    expected = "mach-o" if target.os_name == "macos" else "elf"
    if not path.is_file():
        raise InvalidBinaryFormat(f"Invalid binary format: {path.name} is not a regular file")

    fmt = sniff_format(path)
    if fmt is None or fmt.kind != expected:
        found = fmt.description if fmt is not None else "unrecognised data"
        logger.warning("format mismatch for %s: %s", path.name, found, extra={"event": "verify_failed"})
        raise InvalidBinaryFormat(
            f"Invalid binary format: expected {'Mach-O' if expected == 'mach-o' else 'ELF'} executable, found {found}",
            hints=["The downloaded asset may be corrupted or built for another platform."],
        )

    logger.info("verified %s as %s", path.name, fmt.description, extra={"event": "verified"})
    return fmt
