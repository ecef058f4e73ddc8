"""Locate the literal text that declares a dependency's requirement.

A locator maps a (dependency, requirement) pair to the exact substrings of the
project's files that encode that requirement. For MSBuild projects the version
may be inherited through a property declared in another file (for example
``Directory.Build.props``); the property graph is built once per locator and
followed before any patch is attempted.
"""

import logging
import re
from dataclasses import dataclass

from packaging.requirements import InvalidRequirement
from packaging.requirements import Requirement as PackagingRequirement
from packaging.specifiers import InvalidSpecifier, SpecifierSet
from packaging.utils import canonicalize_name

from .detect import identify, is_msbuild_file
from .errors import ContractViolation
from .models import ManagedFile, Requirement

logger = logging.getLogger(__name__)

PACKAGE_ELEMENT_REGEX = re.compile(
    r"<(?P<tag>PackageReference|PackageVersion|GlobalPackageReference)\b"
    r"(?P<attributes>[^>]*?)"
    r"(?:/>|>(?P<body>.*?)</(?P=tag)\s*>)",
    re.DOTALL | re.IGNORECASE,
)
INCLUDE_REGEX = re.compile(r"""\b(?:Include|Update)\s*=\s*["'](?P<name>[^"']+)["']""", re.IGNORECASE)
VERSION_ATTRIBUTE_REGEX = re.compile(r"""\bVersion\s*=\s*["'](?P<version>[^"']*)["']""", re.IGNORECASE)
VERSION_ELEMENT_REGEX = re.compile(r"<Version\s*>\s*(?P<version>[^<]*?)\s*</Version\s*>", re.IGNORECASE)

PROPERTY_GROUP_REGEX = re.compile(r"<PropertyGroup\b[^>]*>(?P<body>.*?)</PropertyGroup\s*>", re.DOTALL | re.IGNORECASE)
PROPERTY_REGEX = re.compile(r"<(?P<name>[A-Za-z_][\w.-]*)\b[^>]*?(?<!/)>(?P<value>[^<]*)</(?P=name)\s*>")
PROPERTY_REFERENCE_REGEX = re.compile(r"\$\((?P<name>[A-Za-z_][\w.-]*)\)")


@dataclass(frozen=True)
class PropertyDeclaration:
    file: str
    text: str
    value: str


def _add(found: dict[str, list[str]], path: str, declaration: str) -> None:
    declarations = found.setdefault(path, [])
    if declaration not in declarations:
        declarations.append(declaration)


class MsbuildDeclarationLocator:
    """Locator for .csproj/.vbproj/.fsproj and shared .props/.targets files."""

    def __init__(self, dependency_files: list[ManagedFile]):
        self.dependency_files = dependency_files
        self._files = {f.name: f for f in dependency_files}
        self._properties = self._build_property_graph()

    def declarations(self, dependency_name: str, requirement: Requirement) -> dict[str, list[str]]:
        """Return declaration strings for a requirement, keyed by file name."""
        found: dict[str, list[str]] = {}
        file = self._files.get(requirement.file)
        if file is None or not requirement.requirement:
            return found

        for element, version in self._package_elements(file.content, dependency_name):
            if PROPERTY_REFERENCE_REGEX.search(version):
                for prop, evaluated in self._resolve_property(version, frozenset()):
                    if evaluated == requirement.requirement:
                        _add(found, prop.file, prop.text)
            elif version == requirement.requirement:
                _add(found, file.name, element)

        logger.debug("Located declarations for %s in %s: %s", dependency_name, requirement.file, found)
        return found

    def _package_elements(self, content: str, dependency_name: str):
        for match in PACKAGE_ELEMENT_REGEX.finditer(content):
            include = INCLUDE_REGEX.search(match.group("attributes"))
            if not include or include.group("name").lower() != dependency_name.lower():
                continue

            version = VERSION_ATTRIBUTE_REGEX.search(match.group("attributes"))
            if not version and match.group("body"):
                version = VERSION_ELEMENT_REGEX.search(match.group("body"))
            if version:
                yield match.group(0), version.group("version").strip()

    def _build_property_graph(self) -> dict[str, list[PropertyDeclaration]]:
        properties: dict[str, list[PropertyDeclaration]] = {}
        for file in self.dependency_files:
            if not is_msbuild_file(file.name):
                continue
            for group in PROPERTY_GROUP_REGEX.finditer(file.content):
                for prop in PROPERTY_REGEX.finditer(group.group("body")):
                    properties.setdefault(prop.group("name").lower(), []).append(
                        PropertyDeclaration(file=file.name, text=prop.group(0), value=prop.group("value").strip())
                    )
        return properties

    def _resolve_property(self, value: str, seen: frozenset[str]):
        """Yield each literal property behind a value with the value it evaluates to.

        Wrapping text such as ``[$(Version)]`` is kept in the evaluated value.
        """
        # MSBuild property names are case-insensitive
        for reference in PROPERTY_REFERENCE_REGEX.finditer(value):
            name = reference.group("name").lower()
            if name in seen:
                continue
            for prop in self._properties.get(name, []):
                if PROPERTY_REFERENCE_REGEX.search(prop.value):
                    for leaf, evaluated in self._resolve_property(prop.value, seen | {name}):
                        yield leaf, value.replace(reference.group(0), evaluated)
                else:
                    yield prop, value.replace(reference.group(0), prop.value)


class RequirementsTxtDeclarationLocator:
    """Locator for pip requirements files."""

    def __init__(self, dependency_files: list[ManagedFile]):
        self.dependency_files = dependency_files
        self._files = {f.name: f for f in dependency_files}
        # Patterns for lines to skip
        self.skip_patterns = [
            r"^\s*#",  # Comment lines
            r"^\s*$",  # Empty lines
            r"^-e\s+",  # Editable installs
            r"^(git|hg|svn|bzr)\+",  # VCS URLs
            r"^https?://",  # Direct URLs
            r"^file://",  # File URLs
            r"^\./",  # Local paths
            r"^-[rcf]\s+",  # Includes, constraints and find links
            r"^--",  # Other pip options
        ]

    def _should_skip_line(self, line: str) -> bool:
        stripped = line.strip()
        if not stripped:
            return True

        return any(re.match(pattern, stripped) for pattern in self.skip_patterns)

    def _requirement_text(self, line: str) -> tuple[str, str, SpecifierSet] | None:
        """Return the canonical name, requirement text and specifier of a line."""
        # Inline comments, per-requirement options and continuations are not
        # part of the declaration
        text = re.split(r"\s+(?:#|--|\\$)", line.strip(), maxsplit=1)[0]
        if not text:
            return None

        try:
            req = PackagingRequirement(text)
        except InvalidRequirement:
            return None

        return canonicalize_name(req.name), text, req.specifier

    def declarations(self, dependency_name: str, requirement: Requirement) -> dict[str, list[str]]:
        found: dict[str, list[str]] = {}
        file = self._files.get(requirement.file)
        if file is None or not requirement.requirement:
            return found

        try:
            expected = str(SpecifierSet(requirement.requirement))
        except InvalidSpecifier:
            return found

        name = canonicalize_name(dependency_name)
        for line in file.content.splitlines():
            if self._should_skip_line(line):
                continue

            parsed = self._requirement_text(line)
            if parsed and parsed[0] == name and str(parsed[2]) == expected:
                _add(found, file.name, parsed[1])

        return found


LOCATORS = {
    "nuget": MsbuildDeclarationLocator,
    "pip": RequirementsTxtDeclarationLocator,
}


def locator_for(dependency_files: list[ManagedFile]):
    """Build the declaration locator matching a file set's ecosystem."""
    ecosystem = identify(dependency_files)
    try:
        locator_class = LOCATORS[ecosystem]
    except KeyError:
        raise ContractViolation(f"No declaration locator for ecosystem: {ecosystem}") from None
    return locator_class(dependency_files)
