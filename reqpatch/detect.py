"""Ecosystem detection for dependency file sets."""

import re

from .models import ManagedFile

MSBUILD_PROJECT_SUFFIXES = (".csproj", ".vbproj", ".fsproj")
MSBUILD_SUFFIXES = MSBUILD_PROJECT_SUFFIXES + (".props", ".targets")


def is_msbuild_file(name: str) -> bool:
    return name.lower().endswith(MSBUILD_SUFFIXES)


def is_requirements_file(name: str) -> bool:
    basename = name.rsplit("/", 1)[-1]
    return bool(re.match(r"^.*requirements.*\.(txt|in)$", basename))


def identify(files: list[ManagedFile]) -> str:
    """Detect ecosystem from the names and content of a file set.

    Args:
        files: The project's dependency files

    Returns:
        Detected ecosystem: 'nuget', 'pip', 'poetry', or 'unknown'
    """
    names = [f.name for f in files]

    # Filename-based detection
    if any(name.lower().endswith(MSBUILD_PROJECT_SUFFIXES) for name in names):
        return "nuget"

    for f in files:
        if f.name.rsplit("/", 1)[-1] == "pyproject.toml" and re.search(
            r"^\[tool\.poetry", f.content, re.MULTILINE
        ):
            return "poetry"

    if any(is_requirements_file(name) for name in names):
        return "pip"

    return "unknown"
