from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Explicit:
    names: frozenset[str]

    def __str__(self) -> str:
        return ", ".join(sorted(self.names))


@dataclass(frozen=True)
class FilePointer:
    file_name: str

    def __str__(self) -> str:
        return "Specified in license file"


@dataclass(frozen=True)
class Missing:
    def __str__(self) -> str:
        return "Missing"


LicenseClassification = Explicit | FilePointer | Missing
