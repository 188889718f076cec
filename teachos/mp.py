"""Locate and parse the multiprocessor configuration tables in physical memory."""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import Optional

NCPU = 8

# Table entry types.
MPPROC = 0x00
MPBUS = 0x01
MPIOAPIC = 0x02
MPIOINTR = 0x03
MPLINTR = 0x04

# Processor entry flag: this is the bootstrap processor.
MPBOOT = 0x02

_FP = struct.Struct("<4sIBBBBB3s")
_CONF = struct.Struct("<4sHBB20sIHHIHBB")
_PROC = struct.Struct("<BBBB4sI8s")
_IOAPIC = struct.Struct("<BBBBI")
_OTHER_ENTRY_SIZE = 8

FP_SIZE = _FP.size
CONF_SIZE = _CONF.size

_BDA = 0x400
_BIOS_ROM = 0xF0000
_BIOS_ROM_LEN = 0x10000


class MPError(Exception):
    """The machine description is missing or unusable."""


@dataclass(frozen=True)
class FloatingPointer:
    """The MP floating pointer structure and the address it was found at."""

    address: int
    physaddr: int
    length: int
    specrev: int
    checksum: int
    type: int
    imcrp: int


@dataclass
class MachineConfig:
    """What the configuration table says about the processors and the I/O APIC."""

    lapic_addr: int
    cpu_apicids: list[int] = field(default_factory=list)
    ioapic_id: int = 0
    imcr: bool = False


def checksum(data: bytes) -> int:
    """Sum of the bytes modulo 256; a valid structure sums to zero."""
    return sum(data) & 0xFF


def search_region(memory: bytes, start: int, length: int) -> Optional[FloatingPointer]:
    """Look for a floating pointer in ``length`` bytes of ``memory`` from ``start``."""
    if start < 0:
        return None
    end = min(start + length, len(memory))
    for p in range(start, end, FP_SIZE):
        chunk = bytes(memory[p:p + FP_SIZE])
        if len(chunk) < FP_SIZE:
            break
        if chunk[:4] == b"_MP_" and checksum(chunk) == 0:
            _, physaddr, ln, specrev, cs, kind, imcrp, _ = _FP.unpack(chunk)
            return FloatingPointer(p, physaddr, ln, specrev, cs, kind, imcrp)
    return None


def find_floating_pointer(memory: bytes) -> Optional[FloatingPointer]:
    """Search the EBDA, the end of base memory, then the BIOS ROM."""

    def byte(i: int) -> int:
        return memory[i] if i < len(memory) else 0

    ebda = ((byte(_BDA + 0x0F) << 8) | byte(_BDA + 0x0E)) << 4
    if ebda:
        found = search_region(memory, ebda, 1024)
    else:
        base = ((byte(_BDA + 0x14) << 8) | byte(_BDA + 0x13)) * 1024
        found = search_region(memory, base - 1024, 1024)
    if found is not None:
        return found
    return search_region(memory, _BIOS_ROM, _BIOS_ROM_LEN)


def read_config(memory: bytes) -> Optional[tuple[FloatingPointer, bytes]]:
    """Find the configuration table; returns (floating pointer, table bytes) or None.

    The default configurations (physaddr 0) are not accepted; the table must
    carry the PCMP signature, version 1 or 4 and a zero checksum.
    """
    fp = find_floating_pointer(memory)
    if fp is None or fp.physaddr == 0:
        return None
    addr = fp.physaddr
    header = bytes(memory[addr:addr + CONF_SIZE])
    if len(header) < CONF_SIZE or header[:4] != b"PCMP":
        return None
    _, length, version, *_ = _CONF.unpack(header)
    if version not in (1, 4):
        return None
    table = bytes(memory[addr:addr + length])
    if length < CONF_SIZE or len(table) != length:
        return None
    if checksum(table) != 0:
        return None
    return fp, table


def parse_machine(memory: bytes, ncpu_max: int = NCPU) -> MachineConfig:
    """Read the processors, the I/O APIC and the local APIC address from memory."""
    found = read_config(memory)
    if found is None:
        raise MPError("Expect to run on an SMP")
    fp, table = found
    fields = _CONF.unpack_from(table)
    config = MachineConfig(lapic_addr=fields[8], imcr=bool(fp.imcrp))

    p = CONF_SIZE
    while p < len(table):
        kind = table[p]
        if kind == MPPROC:
            if p + _PROC.size > len(table):
                raise MPError("truncated processor entry")
            _, apicid, *_ = _PROC.unpack_from(table, p)
            if len(config.cpu_apicids) < ncpu_max:
                config.cpu_apicids.append(apicid)
            p += _PROC.size
        elif kind == MPIOAPIC:
            if p + _IOAPIC.size > len(table):
                raise MPError("truncated I/O APIC entry")
            _, apicno, *_ = _IOAPIC.unpack_from(table, p)
            config.ioapic_id = apicno
            p += _IOAPIC.size
        elif kind in (MPBUS, MPIOINTR, MPLINTR):
            p += _OTHER_ENTRY_SIZE
        else:
            raise MPError("Didn't find a suitable machine")
    return config