"""Classify Poetry solver failures into structured error kinds."""

import re
from dataclasses import dataclass
from urllib.parse import urlsplit, urlunsplit

from .errors import ErrorKind

GIT_REFERENCE_NOT_FOUND_REGEX = re.compile(
    r"'git'.*pypoetry-git-(?P<name>.+?).{8}','checkout','(?P<tag>.+?)'"
)
GIT_DEPENDENCY_UNREACHABLE_REGEX = re.compile(
    r"Command '\['git', 'clone', '(?P<url>.+?)'.* exit status 128", re.DOTALL
)
SOLVER_PROBLEM_MARKERS = ("SolverProblemError", "PackageNotFound")
RUNTIME_INCOMPATIBLE_MARKER = "support the following Python"
URL_REGEX = re.compile(r"https?://\S+")
REDACTED = "<redacted>"


@dataclass(frozen=True)
class Classification:
    kind: ErrorKind
    detail: str | None = None
    runtime_incompatible: bool = False


def redact_urls(message: str) -> str:
    """Replace URL-shaped substrings, which may embed credentials."""
    return URL_REGEX.sub(REDACTED, message)


def strip_userinfo(url: str) -> str:
    parts = urlsplit(url)
    if "@" not in parts.netloc:
        return url
    host = parts.netloc.rsplit("@", 1)[-1]
    return urlunsplit((parts.scheme, host, parts.path, parts.query, parts.fragment))


def is_solver_problem(output: str) -> bool:
    return any(marker in output for marker in SOLVER_PROBLEM_MARKERS)


def classify_solver_failure(output: str) -> Classification:
    """Map raw solver output to an error kind.

    Args:
        output: Combined stdout and stderr of the failed command

    Returns:
        Classification with the kind and, for git failures, the dependency
        name or the unreachable URL
    """
    compact = re.sub(r"\s", "", output)
    match = GIT_REFERENCE_NOT_FOUND_REGEX.search(compact)
    if match:
        return Classification(ErrorKind.GIT_REFERENCE_NOT_FOUND, match.group("name"))

    match = GIT_DEPENDENCY_UNREACHABLE_REGEX.search(output)
    if match:
        return Classification(ErrorKind.GIT_DEPENDENCY_UNREACHABLE, strip_userinfo(match.group("url")))

    if is_solver_problem(output):
        return Classification(
            ErrorKind.SOLVER_PROBLEM,
            redact_urls(output),
            runtime_incompatible=RUNTIME_INCOMPATIBLE_MARKER in output,
        )

    return Classification(ErrorKind.UNCLASSIFIED)
