from pathlib import Path

import pytest

from depbom.errors import ConfigError, UnresolvedDependencyError, WorkspaceError
from depbom.resolver import ResolverConfig, load_workspace, resolve
from depbom.types import DependencyKind, PackageId


def write_manifest(directory: Path, text: str) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    manifest = directory / "pyproject.toml"
    manifest.write_text(text)
    return manifest


def config_for(manifest: Path, site: Path, **kwargs) -> ResolverConfig:
    return ResolverConfig(manifest_path=manifest, target_dir=site, **kwargs)


def test_workspace_reads_dependency_kinds(tmp_path: Path, site_dir: Path):
    manifest = write_manifest(
        tmp_path / "proj",
        """
[build-system]
requires = ["zz-builder>=1"]

[project]
name = "proj"
version = "0.2.0"
license = {file = "LICENSE"}
dependencies = ["zz-runtime>=1", "zz-never; python_version < '3'"]

[project.optional-dependencies]
docs = ["zz-docs"]

[dependency-groups]
test = ["zz-test", {include-group = "lint"}]
lint = ["zz-lint"]
""",
    )

    workspace = load_workspace(config_for(manifest, site_dir))

    (member,) = workspace.members
    assert member.id == PackageId("proj", "0.2.0")
    assert member.license is None
    assert member.license_file == "LICENSE"
    assert member.manifest_dir == manifest.parent.absolute()
    kinds = {dependency.name: dependency.kind for dependency in member.dependencies}
    assert kinds == {
        "zz-runtime": DependencyKind.NORMAL,
        "zz-builder": DependencyKind.BUILD,
        "zz-docs": DependencyKind.DEVELOPMENT,
        "zz-test": DependencyKind.DEVELOPMENT,
        "zz-lint": DependencyKind.DEVELOPMENT,
    }


def test_uv_workspace_members_are_discovered(tmp_path: Path, site_dir: Path):
    root = write_manifest(
        tmp_path / "repo",
        """
[tool.uv.workspace]
members = ["packages/*"]
exclude = ["packages/skipped"]
""",
    )
    write_manifest(tmp_path / "repo" / "packages" / "one", '[project]\nname = "one"\nversion = "1.0"\n')
    write_manifest(tmp_path / "repo" / "packages" / "two", '[project]\nname = "two"\nversion = "2.0"\nlicense = "MIT"\n')
    write_manifest(tmp_path / "repo" / "packages" / "skipped", '[project]\nname = "skipped"\nversion = "0"\n')
    (tmp_path / "repo" / "packages" / "not-a-project").mkdir()

    workspace = load_workspace(config_for(root, site_dir))

    assert [member.name for member in workspace.members] == ["one", "two"]
    assert workspace.members[1].license == "MIT"


def test_dynamic_version_falls_back_to_installed_metadata(tmp_path: Path, site_dir: Path, make_dist):
    make_dist("zz-dynamic", "4.5.6")
    manifest = write_manifest(tmp_path / "proj", '[project]\nname = "zz_dynamic"\ndynamic = ["version"]\n')

    (member,) = load_workspace(config_for(manifest, site_dir)).members
    assert member.version == "4.5.6"


def test_missing_manifest_is_a_workspace_error(tmp_path: Path, site_dir: Path):
    with pytest.raises(WorkspaceError, match="could not find"):
        load_workspace(config_for(tmp_path / "nope" / "pyproject.toml", site_dir))


def test_manifest_without_project_is_a_workspace_error(tmp_path: Path, site_dir: Path):
    manifest = write_manifest(tmp_path / "proj", "[tool.other]\nkey = 1\n")
    with pytest.raises(WorkspaceError, match="no `\\[project\\]` table"):
        load_workspace(config_for(manifest, site_dir))


def test_invalid_toml_is_a_workspace_error(tmp_path: Path, site_dir: Path):
    manifest = write_manifest(tmp_path / "proj", "[project\n")
    with pytest.raises(WorkspaceError, match="failed to parse"):
        load_workspace(config_for(manifest, site_dir))


def test_resolve_walks_installed_distributions(tmp_path: Path, site_dir: Path, make_dist):
    make_dist(
        "zz-alpha",
        "1.0",
        requires=["zz-beta>=2", 'zz-gamma; extra == "fast"'],
        license_expression="MIT OR Apache-2.0",
        license_file="LICENSE",
        files={"LICENSE": "alpha license"},
        licenses_subdir=True,
    )
    make_dist("zz-beta", "2.1", license="BSD", files={"LICENSE.txt": "beta license"})
    make_dist("zz-gamma", "0.5", license="UNKNOWN")
    manifest = write_manifest(
        tmp_path / "proj",
        '[project]\nname = "proj"\nversion = "1.0"\ndependencies = ["zz-alpha"]\n',
    )

    workspace, graph = resolve(config_for(manifest, site_dir))

    assert [str(package_id) for package_id in graph.package_ids()] == ["proj 1.0", "zz-alpha 1.0", "zz-beta 2.1"]
    alpha = graph.get(PackageId("zz-alpha", "1.0"))
    assert alpha.license == "MIT OR Apache-2.0"
    assert alpha.license_file == "LICENSE"
    assert alpha.manifest_dir.name == "licenses"
    beta = graph.get(PackageId("zz-beta", "2.1"))
    assert beta.license == "BSD"
    assert beta.manifest_dir.name.endswith(".dist-info")


def test_requested_extras_pull_optional_requirements(tmp_path: Path, site_dir: Path, make_dist):
    make_dist("zz-alpha", "1.0", requires=['zz-gamma; extra == "fast"'])
    make_dist("zz-gamma", "0.5", license="UNKNOWN")
    manifest = write_manifest(
        tmp_path / "proj",
        '[project]\nname = "proj"\nversion = "1.0"\ndependencies = ["zz-alpha[fast]"]\n',
    )

    _, graph = resolve(config_for(manifest, site_dir))

    gamma = graph.get(PackageId("zz-gamma", "0.5"))
    assert gamma.license is None


def test_missing_normal_dependency_is_fatal(tmp_path: Path, site_dir: Path):
    manifest = write_manifest(
        tmp_path / "proj",
        '[project]\nname = "proj"\nversion = "1.0"\ndependencies = ["zz-not-installed"]\n',
    )
    with pytest.raises(UnresolvedDependencyError, match="is not installed"):
        resolve(config_for(manifest, site_dir))


def test_version_mismatch_is_fatal(tmp_path: Path, site_dir: Path, make_dist):
    make_dist("zz-alpha", "1.0")
    manifest = write_manifest(
        tmp_path / "proj",
        '[project]\nname = "proj"\nversion = "1.0"\ndependencies = ["zz-alpha>=2"]\n',
    )
    with pytest.raises(UnresolvedDependencyError, match="does not match installed"):
        resolve(config_for(manifest, site_dir))


def test_uninstalled_build_and_dev_dependencies_are_left_out(tmp_path: Path, site_dir: Path):
    manifest = write_manifest(
        tmp_path / "proj",
        """
[build-system]
requires = ["zz-missing-builder"]

[project]
name = "proj"
version = "1.0"

[dependency-groups]
dev = ["zz-missing-devtool"]
""",
    )

    _, graph = resolve(config_for(manifest, site_dir))
    assert [package.name for package in graph] == ["proj"]


def test_outdated_build_and_dev_dependencies_are_left_out(tmp_path: Path, site_dir: Path, make_dist):
    make_dist("zz-setuptools", "69.0")
    make_dist("zz-devtool", "1.0")
    make_dist("zz-alpha", "1.0")
    manifest = write_manifest(
        tmp_path / "proj",
        """
[build-system]
requires = ["zz-setuptools>=77"]

[project]
name = "proj"
version = "1.0"
dependencies = ["zz-alpha"]

[dependency-groups]
dev = ["zz-devtool>=2"]
""",
    )

    _, graph = resolve(config_for(manifest, site_dir))
    assert [package.name for package in graph] == ["proj", "zz-alpha"]


def test_multi_line_license_field_is_collapsed(tmp_path: Path, site_dir: Path, make_dist):
    make_dist(
        "zz-alpha",
        "1.0",
        license="Copyright (c) 2005 Someone\n        All rights reserved.\n        Redistribution OR use",
    )
    manifest = write_manifest(
        tmp_path / "proj",
        '[project]\nname = "proj"\nversion = "1.0"\ndependencies = ["zz-alpha"]\n',
    )

    _, graph = resolve(config_for(manifest, site_dir))

    alpha = graph.get(PackageId("zz-alpha", "1.0"))
    assert alpha.license == "Copyright (c) 2005 Someone All rights reserved. Redistribution OR use"


def test_member_dependencies_resolve_to_members(tmp_path: Path, site_dir: Path):
    root = write_manifest(
        tmp_path / "repo",
        """
[project]
name = "app"
version = "1.0"
dependencies = ["lib-core"]

[tool.uv.workspace]
members = ["lib"]
""",
    )
    write_manifest(tmp_path / "repo" / "lib", '[project]\nname = "lib_core"\nversion = "0.3"\n')

    workspace, graph = resolve(config_for(root, site_dir))

    assert len(graph) == 2
    assert all(workspace.contains(package) for package in graph)


def test_frozen_implies_locked_and_offline(tmp_path: Path):
    config = ResolverConfig(manifest_path=tmp_path / "pyproject.toml", frozen=True)
    assert config.locked and config.offline


def test_target_dir_defaults_from_environment(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("DEPBOM_TARGET_DIR", str(tmp_path))
    config = ResolverConfig(manifest_path=tmp_path / "pyproject.toml")
    assert config.target_dir == tmp_path
    assert config.search_path[0] == str(tmp_path)


def test_unknown_unstable_flag_is_rejected(tmp_path: Path):
    with pytest.raises(ConfigError, match="unknown `-Z` flag"):
        ResolverConfig(manifest_path=tmp_path / "pyproject.toml", unstable_flags=["sparse-registry"])
