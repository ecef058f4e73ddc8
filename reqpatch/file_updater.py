"""Compute updated manifest files for a set of dependency changes."""

import logging

from .declarations import locator_for
from .errors import ContractViolation
from .models import Dependency, ManagedFile, Requirement
from .patch import apply_declarations

logger = logging.getLogger(__name__)


class FileUpdater:
    """Apply requirement changes to manifests by exact textual substitution.

    Requirements are patched where they are declared, which for MSBuild
    projects may be a shared properties file rather than the project itself.
    """

    def __init__(
        self,
        dependencies: list[Dependency],
        dependency_files: list[ManagedFile],
        locator=None,
    ):
        self.dependencies = dependencies
        self.dependency_files = dependency_files
        self._locator = locator
        self._declaration_cache: dict[tuple[str, Requirement], dict[str, list[str]]] = {}

    @property
    def locator(self):
        if self._locator is None:
            self._locator = locator_for(self.dependency_files)
        return self._locator

    def updated_dependency_files(self) -> list[ManagedFile]:
        """Return the changed files, failing if nothing changed."""
        updated_files = self.changed_files()
        if not updated_files:
            raise ContractViolation("No files changed!")
        return updated_files

    def changed_files(self) -> list[ManagedFile]:
        """Return every file whose content differs after all updates."""
        # Validate every pairing before any file is touched
        changes = [(dependency, self._changed_requirement_pairs(dependency)) for dependency in self.dependencies]

        files = {f.name: f for f in self.dependency_files}
        applied: set[tuple[str, str]] = set()

        for dependency, pairs in changes:
            files = self._update_files_for_dependency(files, dependency, pairs, applied)

        return [files[f.name] for f in self.dependency_files if files[f.name].content != f.content]

    def _changed_requirement_pairs(self, dependency: Dependency) -> list[tuple[Requirement, Requirement]]:
        # The caller preserves requirement order between the two lists, so
        # they can be paired positionally
        try:
            pairs = list(zip(dependency.requirements, dependency.previous_requirements, strict=True))
        except ValueError:
            raise ContractViolation(f"Requirement lists for {dependency.name} differ in length") from None

        for new_req, old_req in pairs:
            if new_req.file != old_req.file:
                raise ContractViolation(
                    f"Bad requirement match for {dependency.name}: {new_req.file} != {old_req.file}"
                )

        return [(new_req, old_req) for new_req, old_req in pairs if new_req.requirement != old_req.requirement]

    def _update_files_for_dependency(
        self,
        files: dict[str, ManagedFile],
        dependency: Dependency,
        pairs: list[tuple[Requirement, Requirement]],
        applied: set[tuple[str, str]],
    ) -> dict[str, ManagedFile]:
        files = dict(files)

        for new_req, old_req in pairs:
            if new_req.file not in files:
                raise ContractViolation(f"No dependency file named {new_req.file}")

            located = self._declarations(dependency, old_req)
            if not located:
                # Nothing to substitute; let the patch fail loudly
                located = {old_req.file: []}

            for path, declarations in located.items():
                pending = [d for d in declarations if (path, d) not in applied]
                if declarations and not pending:
                    # Shared declaration already rewritten earlier in this run
                    continue

                files[path] = apply_declarations(files[path], pending, old_req.requirement, new_req.requirement)
                applied.update((path, d) for d in pending)

            logger.info(
                "Updated %s from %s to %s in %s",
                dependency.name,
                old_req.requirement,
                new_req.requirement,
                ", ".join(located),
            )

        return files

    def _declarations(self, dependency: Dependency, requirement: Requirement) -> dict[str, list[str]]:
        key = (dependency.name, requirement)
        if key not in self._declaration_cache:
            self._declaration_cache[key] = self.locator.declarations(dependency.name, requirement)
        return self._declaration_cache[key]
