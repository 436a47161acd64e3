from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import List, Optional

from .types import Explicit, FilePointer, LicenseClassification, Missing, Package

logger = logging.getLogger(__name__)

LICENSE_FILE_PREFIXES = ("LICENSE", "UNLICENSE")

# Plain substring split, not an SPDX parser: "(MIT OR Apache-2.0) AND Zlib"
# keeps its parentheses and "Apache-2.0 WITH LLVM-exception" stays one token.
_LICENSE_SEPARATORS = re.compile(r"OR|AND|/")


def split_license_expression(expression: str) -> frozenset[str]:
    tokens = (token.strip() for token in _LICENSE_SEPARATORS.split(expression))
    return frozenset(token for token in tokens if token)


def classify_license(license_expression: Optional[str], license_file: Optional[str]) -> LicenseClassification:
    if license_expression is not None:
        return Explicit(split_license_expression(license_expression))
    if license_file is not None:
        return FilePointer(license_file)
    return Missing()


def package_licenses(package: Package) -> LicenseClassification:
    return classify_license(package.license, package.license_file)


def find_license_files(directory: Path) -> List[Path]:
    """Return license files directly inside ``directory``.

    Entries are kept in the order the filesystem lists them. Errors while
    listing the directory propagate to the caller.
    """

    result: List[Path] = []
    for entry in directory.iterdir():
        if entry.name.startswith(LICENSE_FILE_PREFIXES):
            result.append(entry.absolute())
    return result


def package_license_files(package: Package) -> List[Path]:
    if package.manifest_dir is None:
        logger.debug("%s has no manifest directory; skipping license file lookup", package.id)
        return []
    files = find_license_files(package.manifest_dir)
    logger.debug("%s: found %d license file(s) in %s", package.id, len(files), package.manifest_dir)
    return files
