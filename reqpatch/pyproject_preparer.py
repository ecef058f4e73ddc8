"""Rewrite pyproject.toml content for a sandboxed Poetry solve.

Edits go through tomlkit so that everything not touched keeps its original
formatting. The pipeline order is fixed: sanitize, add private sources,
freeze the other top-level dependencies, then set the target requirement.
"""

import base64
import binascii
import logging
import re
from collections.abc import Iterable, Mapping
from urllib.parse import quote, urlsplit, urlunsplit

import tomlkit
from packaging.utils import canonicalize_name

from .lockfile import find_package, parse_lockfile
from .models import Credential, Dependency, ManagedFile

logger = logging.getLogger(__name__)

DEPENDENCY_TYPES = ("dependencies", "dev-dependencies")
PLACEHOLDER_REGEX = re.compile(r"\{\{.*?\}\}")


def _normalize_source_url(url: str) -> str:
    return url.rstrip("/") + "/"


def authed_url(credential: Credential) -> str:
    """Embed a credential's token into its index URL.

    Tokens may be ``user:password``, base64 encoded ``user:password``, or a
    bare token used as the username.
    """
    if not credential.token:
        return credential.url

    basic_auth = credential.token
    if ":" not in basic_auth:
        try:
            decoded = base64.b64decode(basic_auth, validate=True).decode("ascii")
        except (binascii.Error, UnicodeDecodeError):
            decoded = ""
        if ":" in decoded:
            basic_auth = decoded

    user, _, password = basic_auth.partition(":")
    userinfo = quote(user, safe="")
    if password:
        userinfo += ":" + quote(password, safe="")

    parts = urlsplit(credential.url)
    host = parts.netloc.rsplit("@", 1)[-1]
    return urlunsplit((parts.scheme, f"{userinfo}@{host}", parts.path, parts.query, parts.fragment))


def _poetry_table(document):
    tool = document.get("tool")
    return tool.get("poetry") if tool is not None else None


class PyprojectPreparer:
    """Produce modified pyproject.toml content for the resolution sandbox."""

    def __init__(self, pyproject_content: str, lockfile: ManagedFile | None = None):
        self.pyproject_content = pyproject_content
        self.lockfile = lockfile

    def sanitize(self) -> str:
        """Replace template placeholders the solver cannot parse."""
        content = PLACEHOLDER_REGEX.sub("something", self.pyproject_content)
        return content.replace("#{", "{")

    def replace_sources(self, credentials: Iterable[Credential]) -> str:
        """Declare authenticated private indexes as Poetry sources."""
        index_credentials = [c for c in credentials if c.type == "python_index"]
        document = tomlkit.parse(self.pyproject_content)
        poetry = _poetry_table(document)
        if poetry is None:
            return self.pyproject_content

        sources = [dict(source.unwrap()) for source in poetry.get("source", [])]
        if not sources and not index_credentials:
            return self.pyproject_content

        for source in sources:
            source["url"] = _normalize_source_url(source["url"])

        for position, credential in enumerate(index_credentials):
            url = _normalize_source_url(credential.url)
            authed = authed_url(Credential(type=credential.type, url=url, token=credential.token))
            declared = next((s for s in sources if s["url"] == url), None)
            if declared is not None:
                declared["url"] = authed
            else:
                sources.append({"name": f"reqpatch-{position}", "url": authed})

        source_tables = tomlkit.aot()
        for source in sources:
            table = tomlkit.table()
            table.update(source)
            source_tables.append(table)
        poetry["source"] = source_tables

        return tomlkit.dumps(document)

    def freeze_top_level_dependencies_except(self, dependencies: list[Dependency]) -> str:
        """Pin every other top-level dependency to its locked version."""
        if self.lockfile is None:
            return self.pyproject_content

        document = tomlkit.parse(self.pyproject_content)
        poetry = _poetry_table(document)
        if poetry is None:
            return self.pyproject_content

        excluded_names = {d.normalized_name for d in dependencies} | {"python"}
        locked_packages = parse_lockfile(self.lockfile.content)

        for key in DEPENDENCY_TYPES:
            section = poetry.get(key)
            if section is None:
                continue

            for dep_name in list(section.keys()):
                if canonicalize_name(dep_name) in excluded_names:
                    continue

                locked = find_package(locked_packages, dep_name)
                if locked is None or not locked.version:
                    continue
                if locked.source_type == "directory":
                    continue

                if locked.source_type == "git":
                    pinned = tomlkit.inline_table()
                    pinned.update({"git": locked.source_url, "rev": locked.source_reference})
                    section[dep_name] = pinned
                elif isinstance(section[dep_name], Mapping):
                    section[dep_name]["version"] = locked.version
                else:
                    section[dep_name] = locked.version

        return tomlkit.dumps(document)

    def set_dependency_requirement(
        self,
        dependency: Dependency,
        requirement: str | None,
        manifest_name: str = "pyproject.toml",
    ) -> str:
        """Set the target requirement, adding an entry for sub-dependencies."""
        if not requirement:
            return self.pyproject_content

        document = tomlkit.parse(self.pyproject_content)
        poetry = _poetry_table(document)
        if poetry is None:
            return self.pyproject_content

        for key in DEPENDENCY_TYPES:
            section = poetry.get(key)
            if section is None:
                continue

            for dep_name in list(section.keys()):
                if canonicalize_name(dep_name) != dependency.normalized_name:
                    continue
                if isinstance(section[dep_name], Mapping):
                    section[dep_name]["version"] = requirement
                else:
                    section[dep_name] = requirement

        if not any(r.file == manifest_name for r in dependency.requirements):
            subdep_type = self._subdependency_type(dependency)
            if subdep_type not in poetry:
                poetry[subdep_type] = tomlkit.table()
            poetry[subdep_type][dependency.normalized_name] = requirement
            logger.debug("Added %s as a sub-dependency under %s", dependency.name, subdep_type)

        return tomlkit.dumps(document)

    def _subdependency_type(self, dependency: Dependency) -> str:
        if self.lockfile is None:
            return "dependencies"

        locked = find_package(parse_lockfile(self.lockfile.content), dependency.name)
        if locked is not None and locked.category == "dev":
            return "dev-dependencies"
        return "dependencies"


def prepare_pyproject(
    pyproject_content: str,
    *,
    dependency: Dependency,
    lockfile: ManagedFile | None = None,
    credentials: Iterable[Credential] = (),
    requirement: str | None = None,
    freeze: bool = True,
    manifest_name: str = "pyproject.toml",
) -> str:
    """Run the full rewrite pipeline.

    With ``freeze=False`` only sanitizing and source injection run, which is
    what checking the original requirements needs.
    """
    content = PyprojectPreparer(pyproject_content).sanitize()
    content = PyprojectPreparer(content).replace_sources(credentials)
    if not freeze:
        return content

    content = PyprojectPreparer(content, lockfile).freeze_top_level_dependencies_except([dependency])
    return PyprojectPreparer(content, lockfile).set_dependency_requirement(dependency, requirement, manifest_name)
