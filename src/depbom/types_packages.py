from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterable, Iterator, List, Optional

from packaging.requirements import Requirement
from packaging.utils import NormalizedName, canonicalize_name
from packaging.version import InvalidVersion, Version

from .errors import UnresolvedDependencyError


class DependencyKind(str, Enum):
    NORMAL = "normal"
    BUILD = "build"
    DEVELOPMENT = "development"


@dataclass(frozen=True)
class PackageId:
    name: str
    version: str

    @property
    def key(self) -> tuple[NormalizedName, str]:
        return canonicalize_name(self.name), self.version

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PackageId):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:
        return hash(self.key)

    def __str__(self) -> str:
        return f"{self.name} {self.version}"


@dataclass(frozen=True)
class Dependency:
    requirement: Requirement
    kind: DependencyKind = DependencyKind.NORMAL

    @property
    def name(self) -> NormalizedName:
        return canonicalize_name(self.requirement.name)

    @property
    def extras(self) -> frozenset[str]:
        return frozenset(self.requirement.extras)

    def matches(self, package_id: PackageId) -> bool:
        """Return True when ``package_id`` satisfies this dependency.

        Names are compared in canonical form. A version that does not parse
        under PEP 440 matches on name alone, as do direct URL requirements.
        """

        if canonicalize_name(package_id.name) != self.name:
            return False
        if not self.requirement.specifier:
            return True
        try:
            version = Version(package_id.version)
        except InvalidVersion:
            return True
        return self.requirement.specifier.contains(version, prereleases=True)

    def __str__(self) -> str:
        return f"{self.requirement} ({self.kind.value})"


@dataclass(eq=False)
class Package:
    id: PackageId
    license: Optional[str] = None
    license_file: Optional[str] = None
    manifest_dir: Optional[Path] = None
    dependencies: List[Dependency] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.id.name

    @property
    def version(self) -> str:
        return self.id.version

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Package):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)


@dataclass
class Workspace:
    """First-party packages of the project being audited."""

    root: Path
    members: List[Package] = field(default_factory=list)

    def contains(self, package: Package | PackageId) -> bool:
        package_id = package.id if isinstance(package, Package) else package
        return any(member.id == package_id for member in self.members)

    def __iter__(self) -> Iterator[Package]:
        return iter(self.members)


class ResolvedGraph:
    """All packages reachable from a workspace, keyed by identity."""

    def __init__(self, packages: Iterable[Package] = ()) -> None:
        self._packages: dict[PackageId, Package] = {}
        for package in packages:
            self.add(package)

    def add(self, package: Package) -> None:
        self._packages.setdefault(package.id, package)

    def get(self, package_id: PackageId) -> Package:
        try:
            return self._packages[package_id]
        except KeyError:
            raise UnresolvedDependencyError(f"package `{package_id}` is not part of the resolved graph") from None

    def find(self, dependency: Dependency) -> Package:
        for package_id in self.package_ids():
            if dependency.matches(package_id):
                return self._packages[package_id]
        raise UnresolvedDependencyError(
            f"no package in the resolved graph matches `{dependency.requirement}`"
        )

    def package_ids(self) -> List[PackageId]:
        return sorted(self._packages, key=lambda package_id: package_id.key)

    def __contains__(self, package_id: object) -> bool:
        return package_id in self._packages

    def __iter__(self) -> Iterator[Package]:
        return (self._packages[package_id] for package_id in self.package_ids())

    def __len__(self) -> int:
        return len(self._packages)
