"""Core data models for reqpatch."""

from dataclasses import dataclass, field, replace
from enum import Enum

from packaging.utils import canonicalize_name

from .errors import FAILURE_CLASSES, ErrorKind


@dataclass(frozen=True)
class ManagedFile:
    """A project file: path identity plus full textual content."""

    name: str
    content: str

    def with_content(self, content: str) -> "ManagedFile":
        return replace(self, content=content)


@dataclass(frozen=True)
class Requirement:
    """A version requirement as declared in one file."""

    file: str
    requirement: str | None
    groups: tuple[str, ...] = ()


@dataclass
class Dependency:
    """A dependency with its new and previous requirement lists.

    The two lists are paired positionally by the caller.
    """

    name: str
    requirements: list[Requirement] = field(default_factory=list)
    previous_requirements: list[Requirement] = field(default_factory=list)
    version: str | None = None
    previous_version: str | None = None

    @property
    def normalized_name(self) -> str:
        return canonicalize_name(self.name)

    @property
    def top_level(self) -> bool:
        return bool(self.requirements)


@dataclass(frozen=True)
class Credential:
    """Private registry credentials. Opaque beyond manifest injection."""

    type: str
    url: str
    token: str | None = None


@dataclass(frozen=True)
class LockedPackage:
    """A single entry of a solved lockfile."""

    name: str
    version: str
    category: str = "main"  # main, dev
    source_type: str | None = None  # git, directory, legacy, url
    source_url: str | None = None
    source_reference: str | None = None


class ResolutionOutcome(str, Enum):
    RESOLVED = "resolved"
    BLOCKED = "blocked"  # candidate conflicts with the project's runtime constraint
    FAILED = "failed"


@dataclass(frozen=True)
class ResolutionResult:
    """Result of resolving a dependency against one candidate requirement."""

    requirement: str | None
    outcome: ResolutionOutcome
    version: str | None = None
    error_kind: ErrorKind | None = None
    message: str | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is not ResolutionOutcome.FAILED

    def raise_for_error(self) -> None:
        """Raise the typed failure for FAILED results; no-op otherwise."""
        if self.ok:
            return

        failure_class = FAILURE_CLASSES[self.error_kind]
        raise failure_class(self.message or "")
