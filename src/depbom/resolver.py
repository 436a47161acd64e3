from __future__ import annotations

import logging
import os
import sys
from collections import deque
from dataclasses import dataclass, field
from importlib import metadata
from pathlib import Path
from typing import Dict, Iterable, List, Optional

try:  # Python < 3.11 compatibility
    import tomllib  # type: ignore
except ModuleNotFoundError:  # pragma: no cover - exercised in older runtimes
    import tomli as tomllib  # type: ignore

from packaging.requirements import InvalidRequirement, Requirement
from packaging.utils import NormalizedName, canonicalize_name

from .errors import ConfigError, UnresolvedDependencyError, WorkspaceError
from .types import Dependency, DependencyKind, Package, PackageId, ResolvedGraph, Workspace

logger = logging.getLogger(__name__)

MANIFEST_NAME = "pyproject.toml"
UNKNOWN_VERSION = "0.0.0"
KNOWN_UNSTABLE_FLAGS: frozenset[str] = frozenset()

# Values older setuptools releases write when no license was declared.
_UNDECLARED_LICENSES = {"", "UNKNOWN"}


@dataclass
class ResolverConfig:
    """Settings handed to the resolver; the BOM core never reads them."""

    manifest_path: Optional[Path] = None
    target_dir: Optional[Path] = None
    verbose: int = 0
    quiet: bool = False
    color: Optional[str] = None
    frozen: bool = False
    locked: bool = False
    offline: bool = False
    unstable_flags: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.manifest_path is None:
            self.manifest_path = Path.cwd() / MANIFEST_NAME
        if self.target_dir is None and os.getenv("DEPBOM_TARGET_DIR"):
            self.target_dir = Path(os.environ["DEPBOM_TARGET_DIR"])
        if self.frozen:
            self.locked = True
            self.offline = True
        for flag in self.unstable_flags:
            if flag not in KNOWN_UNSTABLE_FLAGS:
                raise ConfigError(f"unknown `-Z` flag specified: {flag}")

    @property
    def search_path(self) -> List[str]:
        path = list(sys.path)
        if self.target_dir is not None:
            path.insert(0, str(self.target_dir))
        return path


def _load_manifest(path: Path) -> dict:
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise WorkspaceError(f"could not find `{MANIFEST_NAME}` at `{path}`") from None
    except OSError as exc:
        raise WorkspaceError(f"failed to read `{path}`: {exc.strerror or exc}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise WorkspaceError(f"failed to parse manifest at `{path}`: {exc}") from exc


def _parse_requirement(raw: str, source: object) -> Requirement:
    try:
        return Requirement(raw)
    except InvalidRequirement as exc:
        raise WorkspaceError(f"invalid requirement `{raw}` in {source}: {exc}") from exc


def _marker_applies(requirement: Requirement, extras: Iterable[str] = ()) -> bool:
    if requirement.marker is None:
        return True
    return any(requirement.marker.evaluate({"extra": extra}) for extra in {"", *extras})


def _dependency_groups(manifest: dict, source: Path) -> List[str]:
    groups = manifest.get("dependency-groups", {}) or {}
    collected: List[str] = []

    def _expand(name: str, seen: tuple[str, ...]) -> None:
        if name in seen:
            raise WorkspaceError(f"dependency group `{name}` includes itself in `{source}`")
        for item in groups.get(name, []) or []:
            if isinstance(item, dict) and "include-group" in item:
                _expand(str(item["include-group"]), seen + (name,))
            else:
                collected.append(str(item))

    for group in groups:
        _expand(group, ())
    return collected


def _member_dependencies(manifest: dict, source: Path) -> List[Dependency]:
    project = manifest.get("project", {}) or {}
    dependencies: List[Dependency] = []

    def _add(values: Iterable[str], kind: DependencyKind, extra: str = "") -> None:
        for raw in values:
            requirement = _parse_requirement(raw, source)
            if not _marker_applies(requirement, [extra] if extra else []):
                logger.debug("%s: marker excludes %s", source, raw)
                continue
            dependencies.append(Dependency(requirement, kind))

    _add(project.get("dependencies", []) or [], DependencyKind.NORMAL)
    build_system = manifest.get("build-system", {}) or {}
    _add(build_system.get("requires", []) or [], DependencyKind.BUILD)
    for extra, values in (project.get("optional-dependencies", {}) or {}).items():
        _add(values or [], DependencyKind.DEVELOPMENT, extra)
    _add(_dependency_groups(manifest, source), DependencyKind.DEVELOPMENT)
    return dependencies


def _member_license(project: dict) -> tuple[Optional[str], Optional[str]]:
    declared = project.get("license")
    if isinstance(declared, str):
        return declared, None
    if isinstance(declared, dict):
        if declared.get("text") is not None:
            return str(declared["text"]), None
        if declared.get("file") is not None:
            return None, str(declared["file"])
    return None, None


class _Environment:
    """Installed distributions visible on the resolver's search path."""

    def __init__(self, search_path: List[str]) -> None:
        self._distributions: Dict[NormalizedName, metadata.Distribution] = {}
        self._packages: Dict[NormalizedName, Package] = {}
        for dist in metadata.distributions(path=search_path):
            name = dist.metadata["Name"]
            if not name:
                continue
            # Earlier path entries shadow later ones, as they do for imports.
            self._distributions.setdefault(canonicalize_name(name), dist)

    def version_of(self, name: str) -> Optional[str]:
        dist = self._distributions.get(canonicalize_name(name))
        return dist.version if dist is not None else None

    def package(self, name: NormalizedName) -> Optional[Package]:
        if name in self._packages:
            return self._packages[name]
        dist = self._distributions.get(name)
        if dist is None:
            return None
        package = _package_from_distribution(dist)
        self._packages[name] = package
        return package

    def requirements(self, name: NormalizedName, extras: Iterable[str]) -> List[Requirement]:
        dist = self._distributions[name]
        result = []
        for raw in dist.requires or []:
            requirement = _parse_requirement(raw, f"metadata of `{dist.metadata['Name']}`")
            if _marker_applies(requirement, extras):
                result.append(requirement)
        return result


def _dist_info_dir(dist: metadata.Distribution) -> Optional[Path]:
    for file in dist.files or []:
        if file.name in {"METADATA", "PKG-INFO"}:
            return Path(str(dist.locate_file(file))).parent
    return None


def _package_from_distribution(dist: metadata.Distribution) -> Package:
    meta = dist.metadata
    license_expression = meta.get("License-Expression") or meta.get("License")
    if license_expression is not None:
        # Free-text License fields often carry the whole multi-line license.
        license_expression = " ".join(license_expression.split())
        if license_expression in _UNDECLARED_LICENSES:
            license_expression = None
    license_files = meta.get_all("License-File") or []

    manifest_dir = _dist_info_dir(dist)
    # Core metadata 2.4 keeps license files under ``licenses/``.
    if manifest_dir is not None and (manifest_dir / "licenses").is_dir():
        manifest_dir = manifest_dir / "licenses"

    return Package(
        id=PackageId(meta["Name"], dist.version),
        license=license_expression,
        license_file=license_files[0] if license_files else None,
        manifest_dir=manifest_dir,
    )


def _member_manifests(root_dir: Path, manifest: dict) -> List[Path]:
    workspace = ((manifest.get("tool", {}) or {}).get("uv", {}) or {}).get("workspace", {}) or {}
    excluded = set()
    for pattern in workspace.get("exclude", []) or []:
        excluded.update(path.resolve() for path in root_dir.glob(pattern))

    manifests = []
    for pattern in workspace.get("members", []) or []:
        for candidate in sorted(root_dir.glob(pattern)):
            if candidate.resolve() in excluded or not (candidate / MANIFEST_NAME).is_file():
                continue
            manifests.append(candidate / MANIFEST_NAME)
    return manifests


def _load_member(manifest_path: Path, manifest: dict, environment: _Environment) -> Optional[Package]:
    project = manifest.get("project")
    if not project:
        return None
    name = project.get("name")
    if not name:
        raise WorkspaceError(f"missing `project.name` in `{manifest_path}`")

    version = project.get("version") or environment.version_of(name) or UNKNOWN_VERSION
    license_expression, license_file = _member_license(project)
    return Package(
        id=PackageId(str(name), str(version)),
        license=license_expression,
        license_file=license_file,
        manifest_dir=manifest_path.parent,
        dependencies=_member_dependencies(manifest, manifest_path),
    )


def load_workspace(config: ResolverConfig, environment: Optional[_Environment] = None) -> Workspace:
    """Read the root manifest and every workspace member it names."""

    environment = environment or _Environment(config.search_path)
    root_manifest = Path(config.manifest_path).absolute()
    manifest = _load_manifest(root_manifest)

    members: List[Package] = []
    seen = set()
    for member_manifest in [root_manifest, *_member_manifests(root_manifest.parent, manifest)]:
        resolved = member_manifest.resolve()
        if resolved in seen:
            continue
        seen.add(resolved)
        data = manifest if member_manifest == root_manifest else _load_manifest(member_manifest)
        member = _load_member(member_manifest, data, environment)
        if member is not None:
            logger.debug("workspace member %s at %s", member.id, member.manifest_dir)
            members.append(member)

    if not members:
        raise WorkspaceError(f"no `[project]` table found in `{root_manifest}` or its workspace members")
    return Workspace(root=root_manifest.parent, members=members)


def resolve_workspace(
    workspace: Workspace, config: ResolverConfig, environment: Optional[_Environment] = None
) -> ResolvedGraph:
    """Build the graph of packages reachable from ``workspace``.

    Members' own edges of every kind are followed; installed distributions
    contribute their ``Requires-Dist`` entries for the extras requested of
    them. A normal edge that cannot be satisfied is fatal. Build and
    development edges whose target is missing or installed at another
    version are left out of the graph, because isolated builds never
    install them into the environment.
    """

    environment = environment or _Environment(config.search_path)
    logger.debug(
        "resolving with locked=%s offline=%s target_dir=%s",
        config.locked,
        config.offline,
        config.target_dir,
    )

    graph = ResolvedGraph(workspace.members)
    members_by_name = {canonicalize_name(member.name): member for member in workspace}
    requested_extras: Dict[PackageId, set] = {}

    queue = deque((member, dependency) for member in workspace for dependency in member.dependencies)
    while queue:
        parent, dependency = queue.popleft()

        member = members_by_name.get(dependency.name)
        if member is not None:
            if not dependency.matches(member.id):
                raise UnresolvedDependencyError(
                    f"`{dependency.requirement}` required by `{parent.id}` does not match workspace member `{member.id}`"
                )
            continue

        package = environment.package(dependency.name)
        if package is None:
            if dependency.kind is not DependencyKind.NORMAL:
                logger.info("%s: %s is not installed; leaving it out of the graph", parent.id, dependency)
                continue
            raise UnresolvedDependencyError(
                f"`{dependency.requirement}` required by `{parent.id}` is not installed"
            )
        if not dependency.matches(package.id):
            if dependency.kind is not DependencyKind.NORMAL:
                logger.info(
                    "%s: %s does not match installed %s; leaving it out of the graph", parent.id, dependency, package.id
                )
                continue
            raise UnresolvedDependencyError(
                f"`{dependency.requirement}` required by `{parent.id}` does not match installed `{package.id}`"
            )

        extras = requested_extras.setdefault(package.id, set())
        first_visit = package.id not in graph
        if not first_visit and dependency.extras <= extras:
            continue
        extras.update(dependency.extras)
        graph.add(package)

        known = {str(existing.requirement) for existing in package.dependencies}
        for requirement in environment.requirements(dependency.name, extras):
            if str(requirement) in known:
                continue
            edge = Dependency(requirement, DependencyKind.NORMAL)
            package.dependencies.append(edge)
            queue.append((package, edge))

    logger.info("resolved %d packages for %d workspace member(s)", len(graph), len(workspace.members))
    return graph


def resolve(config: ResolverConfig) -> tuple[Workspace, ResolvedGraph]:
    environment = _Environment(config.search_path)
    workspace = load_workspace(config, environment)
    return workspace, resolve_workspace(workspace, config, environment)
