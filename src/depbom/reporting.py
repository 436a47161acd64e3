from __future__ import annotations

import logging
import os
from typing import BinaryIO, Iterable, List, Sequence

from .licenses import package_license_files, package_licenses
from .types import Bom, BomEntry, Package

logger = logging.getLogger(__name__)

TABLE_HEADER = ("Name", "Version", "Licenses")
CELL_PADDING = 2
NEXT_LICENSE_MARKER = b"\n-----NEXT LICENSE-----\n"
READ_CHUNK = 64 * 1024


def bom_entry(package: Package) -> BomEntry:
    return BomEntry(
        name=package.name,
        version=package.version,
        licenses=str(package_licenses(package)),
        license_files=tuple(package_license_files(package)),
    )


def build_bom(packages: Iterable[Package]) -> Bom:
    return Bom.from_entries(bom_entry(package) for package in packages)


def _align(rows: Sequence[Sequence[str]]) -> List[str]:
    """Pad every cell but the last to its column width plus CELL_PADDING."""

    if not rows:
        return []
    aligned_columns = max(len(row) for row in rows) - 1
    widths = [0] * aligned_columns
    for row in rows:
        for index, cell in enumerate(row[:-1]):
            widths[index] = max(widths[index], len(cell))

    lines = []
    for row in rows:
        cells = [cell.ljust(widths[index] + CELL_PADDING) for index, cell in enumerate(row[:-1])]
        cells.append(row[-1])
        lines.append("".join(cells))
    return lines


def render_table(bom: Bom) -> str:
    rows: List[tuple[str, ...]] = [
        (TABLE_HEADER[0], f"| {TABLE_HEADER[1]}", f"| {TABLE_HEADER[2]}"),
        tuple(
            "-" * len(title) if index == 0 else f"| {'-' * len(title)}"
            for index, title in enumerate(TABLE_HEADER)
        ),
    ]
    for entry in bom:
        rows.append((entry.name, f"| {entry.version}", f"| {entry.licenses}"))
    return "".join(f"{line}\n" for line in _align(rows))


def read_into(handle: BinaryIO, buf: bytearray) -> int:
    """Read all of ``handle`` into the front of ``buf``; return the byte count."""

    size = os.fstat(handle.fileno()).st_size
    if len(buf) < size:
        buf.extend(bytes(size - len(buf)))
    filled = 0
    while True:
        if filled == len(buf):
            # Buffer full: either EOF or the file grew since fstat.
            more = handle.read(1)
            if not more:
                return filled
            buf.extend(more)
            filled += 1
            buf.extend(bytes(READ_CHUNK))
        with memoryview(buf) as view, view[filled:] as chunk:
            count = handle.readinto(chunk)
        if not count:
            return filled
        filled += count


def write_license_texts(bom: Bom, out: BinaryIO) -> None:
    """Stream every located license file, framed per package.

    Each file is read whole into one reused buffer and written before the
    next is opened; the buffer only grows to the largest file. Any read
    error aborts the dump.
    """

    buf = bytearray()
    for entry in bom:
        if not entry.license_files:
            continue

        out.write(f"-----BEGIN {entry.name} {entry.version} LICENSES-----\n".encode())
        remaining = len(entry.license_files)
        for path in entry.license_files:
            with open(path, "rb") as handle:
                size = read_into(handle, buf)
            with memoryview(buf) as view, view[:size] as data:
                out.write(data)
            if remaining > 1:
                out.write(NEXT_LICENSE_MARKER)
                remaining -= 1

        out.write(f"-----END {entry.name} {entry.version} LICENSES-----\n".encode())
        out.write(b"\n")


def write_report(bom: Bom, out: BinaryIO) -> None:
    logger.info("rendering %d BOM entries", len(bom))
    out.write(render_table(bom).encode())
    out.flush()

    out.write(b"\n")
    out.flush()

    write_license_texts(bom, out)
    out.flush()
