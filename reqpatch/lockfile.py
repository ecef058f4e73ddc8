"""Poetry lockfile reading."""

import tomllib

from packaging.utils import canonicalize_name

from .models import LockedPackage

LOCKFILE_NAMES = ("poetry.lock", "pyproject.lock")


def parse_lockfile(content: str) -> list[LockedPackage]:
    """Parse poetry.lock content into locked packages.

    Args:
        content: The lockfile content

    Returns:
        Locked packages in file order; entries without a name are skipped
    """
    packages = []
    for details in tomllib.loads(content).get("package", []):
        if not details.get("name"):
            continue

        source = details.get("source") or {}
        packages.append(
            LockedPackage(
                name=details["name"],
                version=details.get("version"),
                category=details.get("category", "main"),
                source_type=source.get("type"),
                source_url=source.get("url"),
                source_reference=source.get("reference"),
            )
        )
    return packages


def find_package(packages: list[LockedPackage], name: str) -> LockedPackage | None:
    """Find a locked package by PEP 503 normalised name."""
    normalized = canonicalize_name(name)
    return next((p for p in packages if canonicalize_name(p.name) == normalized), None)
