import sys
from pathlib import Path

import pytest

# Ensure src package is importable without installation
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if SRC.exists():
    sys.path.insert(0, str(SRC))


def _write_distribution(
    site: Path,
    name: str,
    version: str,
    requires=(),
    license=None,
    license_expression=None,
    license_file=None,
    files=None,
    licenses_subdir=False,
) -> Path:
    dist_info = site / f"{name.replace('-', '_')}-{version}.dist-info"
    dist_info.mkdir(parents=True)
    lines = ["Metadata-Version: 2.4", f"Name: {name}", f"Version: {version}"]
    if license_expression is not None:
        lines.append(f"License-Expression: {license_expression}")
    if license is not None:
        lines.append(f"License: {license}")
    if license_file is not None:
        lines.append(f"License-File: {license_file}")
    lines.extend(f"Requires-Dist: {requirement}" for requirement in requires)
    (dist_info / "METADATA").write_text("\n".join(lines) + "\n")

    license_dir = dist_info / "licenses" if licenses_subdir else dist_info
    license_dir.mkdir(exist_ok=True)
    for file_name, text in (files or {}).items():
        (license_dir / file_name).write_text(text)

    (dist_info / "RECORD").write_text(f"{dist_info.name}/METADATA,,\n{dist_info.name}/RECORD,,\n")
    return dist_info


@pytest.fixture
def site_dir(tmp_path: Path) -> Path:
    site = tmp_path / "site"
    site.mkdir()
    return site


@pytest.fixture
def make_dist(site_dir: Path):
    def _make(name: str, version: str, **kwargs) -> Path:
        return _write_distribution(site_dir, name, version, **kwargs)

    return _make
