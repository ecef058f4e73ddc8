"""Version resolution for Poetry projects via a sandboxed solver run."""

import logging
import re
import shlex
from functools import cached_property
from pathlib import Path

import tomlkit
from packaging.version import Version

from .classify import classify_solver_failure, is_solver_problem, redact_urls
from .config import SolverSettings
from .errors import (
    ContractViolation,
    DependencyFileNotResolvable,
    ErrorKind,
    InconsistentLockfile,
    SolverSubprocessFailed,
)
from .lockfile import LOCKFILE_NAMES, find_package, parse_lockfile
from .models import Credential, Dependency, ManagedFile, ResolutionOutcome, ResolutionResult
from .pyproject_preparer import prepare_pyproject
from .python_versions import SUPPORTED_VERSIONS, versions_to_iterate
from .requirements import satisfied_by
from .shell import run_command, temporary_workspace, write_files

logger = logging.getLogger(__name__)


class PoetryVersionResolver:
    """Resolve the version Poetry would lock for a candidate requirement.

    Results are memoised per candidate requirement for the lifetime of the
    instance. Each solver run gets its own temporary workspace.
    """

    def __init__(
        self,
        dependency: Dependency,
        dependency_files: list[ManagedFile],
        credentials: list[Credential] | tuple[Credential, ...] = (),
        settings: SolverSettings | None = None,
    ):
        """Initialize Poetry resolver.

        Args:
            dependency: Dependency being updated
            dependency_files: Project files (pyproject.toml, poetry.lock, ...)
            credentials: Private registry credentials
            settings: Sandbox settings (defaults read from the environment)
        """
        self.dependency = dependency
        self.dependency_files = dependency_files
        self.credentials = list(credentials)
        self.settings = settings or SolverSettings()
        self._results: dict[str | None, ResolutionResult] = {}
        self._resolvable: dict[str, bool] = {}
        self._original_check_done = False
        self._original_failure: ResolutionResult | None = None
        self._pyenv_versions: list[str] | None = None

    def latest_resolvable_version(self, requirement: str | None = None) -> Version | None:
        """Return the locked version for a candidate, raising typed failures.

        Args:
            requirement: Candidate requirement, or None to keep the current one

        Returns:
            The resolved version, or None when the update is blocked
        """
        result = self.resolve(requirement)
        result.raise_for_error()
        return Version(result.version) if result.version else None

    def resolvable(self, version: str) -> bool:
        """Check whether pinning the dependency to a version can be solved."""
        if version in self._resolvable:
            return self._resolvable[version]

        try:
            resolved = self.resolve(f"=={version}")
        except SolverSubprocessFailed as error:
            if "SolverProblemError" not in error.message:
                raise
            self._resolvable[version] = False
        else:
            resolved.raise_for_error()
            self._resolvable[version] = resolved.version is not None

        return self._resolvable[version]

    def resolve(self, requirement: str | None = None) -> ResolutionResult:
        """Run the solver for a candidate requirement.

        Unclassified solver failures and timeouts propagate as exceptions;
        every other outcome is returned as a ResolutionResult.
        """
        if requirement in self._results:
            return self._results[requirement]

        try:
            result = self._run_resolution(requirement)
        except DependencyFileNotResolvable as error:
            result = ResolutionResult(
                requirement=requirement,
                outcome=ResolutionOutcome.FAILED,
                error_kind=ErrorKind.DEPENDENCY_FILE_NOT_RESOLVABLE,
                message=error.message,
            )

        self._results[requirement] = result
        return result

    def _run_resolution(self, requirement: str | None) -> ResolutionResult:
        with temporary_workspace() as root:
            self._write_temporary_dependency_files(root, updated_requirement=requirement)

            try:
                if self.python_version and not self._pre_installed_python(self.python_version):
                    self._install_python(root)

                self._run_poetry_command(self._poetry_update_command(), cwd=root)
                version = self._fetch_version_from_lockfile(root)
            except SolverSubprocessFailed as error:
                return self._handle_poetry_errors(requirement, error)

        logger.info("Resolved %s with requirement %s to %s", self.dependency.name, requirement, version)
        return ResolutionResult(requirement=requirement, outcome=ResolutionOutcome.RESOLVED, version=version)

    def _handle_poetry_errors(self, requirement: str | None, error: SolverSubprocessFailed) -> ResolutionResult:
        classification = classify_solver_failure(error.message)
        logger.info("Solver failed for %s (%s)", self.dependency.name, classification.kind.value)

        if classification.kind in (ErrorKind.GIT_REFERENCE_NOT_FOUND, ErrorKind.GIT_DEPENDENCY_UNREACHABLE):
            return ResolutionResult(
                requirement=requirement,
                outcome=ResolutionOutcome.FAILED,
                error_kind=classification.kind,
                message=classification.detail,
            )

        if classification.kind is not ErrorKind.SOLVER_PROBLEM:
            raise error

        original_failure = self._check_original_requirements_resolvable()
        if original_failure is not None:
            return ResolutionResult(
                requirement=requirement,
                outcome=ResolutionOutcome.FAILED,
                error_kind=original_failure.error_kind,
                message=original_failure.message,
            )

        # The original requirements resolve, so the candidate caused the
        # failure. A clash with the project's Python constraint blocks the
        # update; anything else is unexpected.
        if classification.runtime_incompatible:
            return ResolutionResult(
                requirement=requirement,
                outcome=ResolutionOutcome.BLOCKED,
                error_kind=ErrorKind.RUNTIME_VERSION_INCOMPATIBLE,
                message=classification.detail,
            )

        raise error

    def _check_original_requirements_resolvable(self) -> ResolutionResult | None:
        """Solve the unmodified requirements once; return a failure if any."""
        if self._original_check_done:
            return self._original_failure

        with temporary_workspace() as root:
            self._write_temporary_dependency_files(root, update_pyproject=False)
            try:
                self._run_poetry_command(self._poetry_update_command(), cwd=root)
            except SolverSubprocessFailed as error:
                if not is_solver_problem(error.message):
                    raise
                self._original_failure = ResolutionResult(
                    requirement=None,
                    outcome=ResolutionOutcome.FAILED,
                    error_kind=ErrorKind.DEPENDENCY_FILE_NOT_RESOLVABLE,
                    message=redact_urls(error.message),
                )

        self._original_check_done = True
        return self._original_failure

    def _fetch_version_from_lockfile(self, root: Path) -> str | None:
        lockfile_path = next((root / name for name in LOCKFILE_NAMES if (root / name).exists()), None)
        if lockfile_path is None:
            raise InconsistentLockfile("Solver succeeded but wrote no lockfile")

        locked = find_package(parse_lockfile(lockfile_path.read_text()), self.dependency.name)
        if locked is not None:
            return locked.version
        if self.dependency.top_level:
            raise InconsistentLockfile(f"No version in lockfile for {self.dependency.name}!")
        return None

    def _write_temporary_dependency_files(
        self,
        root: Path,
        updated_requirement: str | None = None,
        update_pyproject: bool = True,
    ) -> None:
        write_files(root, self.dependency_files)

        if self.python_version:
            (root / ".python-version").write_text(self.python_version)

        content = prepare_pyproject(
            self.pyproject.content,
            dependency=self.dependency,
            lockfile=self.lockfile,
            credentials=self.credentials,
            requirement=updated_requirement,
            freeze=update_pyproject,
            manifest_name=self.pyproject.name,
        )
        (root / "pyproject.toml").write_text(content)

    # Using `--lock` avoids doing an install.
    # Using `--no-interaction` avoids asking for passwords.
    def _poetry_update_command(self) -> str:
        return (
            f"{self.settings.pyenv_command} exec poetry update "
            f"{shlex.quote(self.dependency.name)} --lock --no-interaction"
        )

    def _install_python(self, root: Path) -> None:
        pyenv = self.settings.pyenv_command
        self._run_poetry_command(f"{pyenv} install -s {shlex.quote(self.python_version)}", cwd=root)
        if self.settings.helper_requirements_path:
            self._run_poetry_command(
                f"{pyenv} exec pip install -r {shlex.quote(self.settings.helper_requirements_path)}",
                cwd=root,
            )

    def _run_poetry_command(self, command: str, cwd: Path | None = None) -> str:
        return run_command(command, cwd=cwd, timeout=self.settings.command_timeout)

    @cached_property
    def python_version(self) -> str | None:
        """Python version the sandbox should run, if the project names one."""
        poetry = tomlkit.parse(self.pyproject.content).get("tool", {}).get("poetry", {})
        requirement = poetry.get("dependencies", {}).get("python") or poetry.get("dev-dependencies", {}).get(
            "python"
        )

        if not requirement:
            return self._python_version_file_version() or self._runtime_file_python_version()

        for version in versions_to_iterate(self.settings.pre_installed_python_versions):
            if satisfied_by(str(requirement), version):
                return version

        raise DependencyFileNotResolvable(
            f"reqpatch detected the following Python requirement for your project: '{requirement}'.\n\n"
            f"Currently, the following Python versions are supported: {', '.join(SUPPORTED_VERSIONS)}."
        )

    def _python_version_file_version(self) -> str | None:
        python_version_file = self._find_file(".python-version")
        if python_version_file is None:
            return None

        file_version = python_version_file.content.strip()
        if not file_version or file_version not in self._available_pyenv_versions():
            return None
        return file_version

    def _runtime_file_python_version(self) -> str | None:
        runtime_file = next((f for f in self.dependency_files if f.name.endswith("runtime.txt")), None)
        if runtime_file is None:
            return None

        match = re.search(r"(?<=python-).*", runtime_file.content)
        return match.group(0).strip() if match else None

    def _available_pyenv_versions(self) -> list[str]:
        if self._pyenv_versions is None:
            output = self._run_poetry_command(f"{self.settings.pyenv_command} install --list")
            self._pyenv_versions = [line.strip() for line in output.splitlines()]
        return self._pyenv_versions

    def _pre_installed_python(self, version: str) -> bool:
        return version in self.settings.pre_installed_python_versions

    def _find_file(self, name: str) -> ManagedFile | None:
        return next((f for f in self.dependency_files if f.name == name), None)

    @property
    def pyproject(self) -> ManagedFile:
        pyproject = self._find_file("pyproject.toml")
        if pyproject is None:
            raise ContractViolation("No pyproject.toml found")
        return pyproject

    @property
    def lockfile(self) -> ManagedFile | None:
        return self._find_file("poetry.lock") or self._find_file("pyproject.lock")
