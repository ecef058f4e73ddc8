"""Error taxonomy for reqpatch."""

from enum import Enum


class ErrorKind(str, Enum):
    """Tag carried by every classified resolution failure."""

    GIT_REFERENCE_NOT_FOUND = "git_reference_not_found"
    GIT_DEPENDENCY_UNREACHABLE = "git_dependency_unreachable"
    DEPENDENCY_FILE_NOT_RESOLVABLE = "dependency_file_not_resolvable"
    RUNTIME_VERSION_INCOMPATIBLE = "runtime_version_incompatible"
    SOLVER_PROBLEM = "solver_problem"
    UNCLASSIFIED = "unclassified"


class ReqpatchError(Exception):
    """Base class for all reqpatch errors."""


class ContractViolation(ReqpatchError):
    """Raised when a caller or internal invariant is broken. Never retried."""


class InconsistentLockfile(ContractViolation):
    """Raised when a solved lockfile is missing a top-level dependency."""


class ResolutionFailure(ReqpatchError):
    """Actionable, dependency-specific resolution error."""

    kind = ErrorKind.UNCLASSIFIED


class GitDependencyReferenceNotFound(ResolutionFailure):
    kind = ErrorKind.GIT_REFERENCE_NOT_FOUND

    def __init__(self, dependency_name: str):
        self.dependency_name = dependency_name
        super().__init__(f"The branch or reference specified for {dependency_name} could not be retrieved")


class GitDependenciesNotReachable(ResolutionFailure):
    kind = ErrorKind.GIT_DEPENDENCY_UNREACHABLE

    def __init__(self, url: str):
        self.url = url
        super().__init__(f"The following git URL could not be retrieved: {url}")


class DependencyFileNotResolvable(ResolutionFailure):
    kind = ErrorKind.DEPENDENCY_FILE_NOT_RESOLVABLE

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class SolverSubprocessFailed(ReqpatchError):
    """A helper command exited with a non-zero status.

    ``message`` holds the combined stdout and stderr of the command.
    """

    def __init__(
        self,
        message: str,
        command: str,
        time_taken: float = 0.0,
        exit_status: int | None = None,
    ):
        self.message = message
        self.command = command
        self.time_taken = time_taken
        self.exit_status = exit_status
        super().__init__(message)


class SolverTimedOut(ReqpatchError):
    """A helper command did not finish within its timeout."""

    def __init__(self, command: str, timeout: float | None):
        self.command = command
        self.timeout = timeout
        super().__init__(f"Command timed out after {timeout}s: {command}")


FAILURE_CLASSES: dict[ErrorKind, type[ResolutionFailure]] = {
    ErrorKind.GIT_REFERENCE_NOT_FOUND: GitDependencyReferenceNotFound,
    ErrorKind.GIT_DEPENDENCY_UNREACHABLE: GitDependenciesNotReachable,
    ErrorKind.DEPENDENCY_FILE_NOT_RESOLVABLE: DependencyFileNotResolvable,
}
