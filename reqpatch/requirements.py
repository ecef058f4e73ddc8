"""Translate Poetry version constraints into PEP 440 specifier sets."""

import re

from packaging.specifiers import SpecifierSet
from packaging.version import Version

OR_SEPARATOR = re.compile(r"\s*\|\|?\s*")
OPERATOR_SPACING = re.compile(r"(?<=[<>=!~^])\s+")


def _bump(release: tuple[int, ...], index: int) -> str:
    upper = list(release[:index]) + [release[index] + 1]
    return ".".join(str(part) for part in upper)


def _caret(version: str) -> list[str]:
    release = Version(version).release
    index = next((i for i, part in enumerate(release) if part != 0), len(release) - 1)
    return [f">={version}", f"<{_bump(release, index)}"]


def _tilde(version: str) -> list[str]:
    release = Version(version).release
    index = 0 if len(release) == 1 else 1
    return [f">={version}", f"<{_bump(release, index)}"]


def _convert(token: str) -> list[str]:
    if token in ("*", ""):
        return []
    if token.startswith("^"):
        return _caret(token[1:])
    if token.startswith("~") and not token.startswith("~="):
        return _tilde(token[1:])
    if re.match(r"^(==|>=|<=|!=|~=|===|<|>)", token):
        return [token]
    if token.startswith("="):
        return ["=" + token]
    return [f"=={token}"]


def requirements_array(constraint: str) -> list[SpecifierSet]:
    """Parse a Poetry constraint into alternative specifier sets.

    ``||`` separates alternatives; commas or whitespace join constraints.

    Args:
        constraint: Poetry constraint, e.g. ``^3.8`` or ``>=2.7 || ~3.6``

    Returns:
        One SpecifierSet per alternative
    """
    specifier_sets = []
    for alternative in OR_SEPARATOR.split(constraint.strip()):
        alternative = OPERATOR_SPACING.sub("", alternative)
        specifiers = []
        for token in re.split(r"[\s,]+", alternative):
            specifiers.extend(_convert(token))
        specifier_sets.append(SpecifierSet(",".join(specifiers)))
    return specifier_sets


def satisfied_by(constraint: str, version: str) -> bool:
    return any(Version(version) in specifiers for specifiers in requirements_array(constraint))
