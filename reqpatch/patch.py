"""Exact textual replacement of requirement declarations."""

import logging

from .errors import ContractViolation
from .models import ManagedFile

logger = logging.getLogger(__name__)


def updated_declaration(old_declaration: str, previous_requirement: str, requirement: str) -> str:
    """Swap the first occurrence of the old expression inside a declaration."""
    return old_declaration.replace(previous_requirement, requirement, 1)


def apply_declarations(
    file: ManagedFile,
    declarations: list[str],
    previous_requirement: str,
    requirement: str,
) -> ManagedFile:
    """Rewrite every occurrence of each declaration in a file.

    Everything outside the matched declarations is left byte-for-byte intact.

    Args:
        file: File to patch
        declarations: Literal declaration strings located for the requirement
        previous_requirement: Expression being replaced
        requirement: Replacement expression

    Returns:
        A new ManagedFile with the patched content

    Raises:
        ContractViolation: if a declaration is absent or nothing changed
    """
    updated_content = file.content

    for old_declaration in declarations:
        if old_declaration not in updated_content:
            raise ContractViolation(f"Declaration {old_declaration!r} not found in {file.name}")

        new_declaration = updated_declaration(old_declaration, previous_requirement, requirement)
        updated_content = updated_content.replace(old_declaration, new_declaration)

    if updated_content == file.content:
        raise ContractViolation(f"Expected content of {file.name} to change!")

    logger.debug("Patched %d declaration(s) in %s", len(declarations), file.name)
    return file.with_content(updated_content)
