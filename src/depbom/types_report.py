from __future__ import annotations

import bisect
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Iterator, List, Tuple

EntryKey = Tuple[str, str, str, Tuple[str, ...]]


@dataclass(frozen=True)
class BomEntry:
    name: str
    version: str
    licenses: str
    license_files: Tuple[Path, ...] = ()

    @property
    def sort_key(self) -> EntryKey:
        return self.name, self.version, self.licenses, tuple(str(path) for path in self.license_files)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, BomEntry):
            return NotImplemented
        return self.sort_key < other.sort_key


@dataclass
class Bom:
    """Sorted, duplicate-free collection of :class:`BomEntry`.

    Two entries collapse into one only when name, version, license string and
    license file list are all equal.
    """

    _entries: List[BomEntry] = field(default_factory=list)
    _keys: List[EntryKey] = field(default_factory=list)

    @classmethod
    def from_entries(cls, entries: Iterable[BomEntry]) -> "Bom":
        bom = cls()
        for entry in entries:
            bom.add(entry)
        return bom

    def add(self, entry: BomEntry) -> bool:
        key = entry.sort_key
        index = bisect.bisect_left(self._keys, key)
        if index < len(self._keys) and self._keys[index] == key:
            return False
        self._keys.insert(index, key)
        self._entries.insert(index, entry)
        return True

    def __iter__(self) -> Iterator[BomEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, entry: object) -> bool:
        if not isinstance(entry, BomEntry):
            return False
        key = entry.sort_key
        index = bisect.bisect_left(self._keys, key)
        return index < len(self._keys) and self._keys[index] == key
