from __future__ import annotations

"""Shared data structures for dependency selection and BOM rendering.

The definitions live in domain-focused modules; this module keeps a single
stable import path for callers.
"""

from .types_licenses import Explicit, FilePointer, LicenseClassification, Missing
from .types_packages import Dependency, DependencyKind, Package, PackageId, ResolvedGraph, Workspace
from .types_report import Bom, BomEntry

__all__ = [
    "Bom",
    "BomEntry",
    "Dependency",
    "DependencyKind",
    "Explicit",
    "FilePointer",
    "LicenseClassification",
    "Missing",
    "Package",
    "PackageId",
    "ResolvedGraph",
    "Workspace",
]
