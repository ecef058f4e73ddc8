"""Pytest configuration and fixtures."""

import pytest

from reqpatch.models import ManagedFile


@pytest.fixture
def csproj_with_property():
    """Project file whose Newtonsoft.Json version comes from a shared property."""
    return ManagedFile(
        name="src/App/App.csproj",
        content="""<Project Sdk="Microsoft.NET.Sdk">
  <PropertyGroup>
    <TargetFramework>net8.0</TargetFramework>
  </PropertyGroup>
  <ItemGroup>
    <PackageReference Include="Newtonsoft.Json" Version="$(NewtonsoftVersion)" />
    <PackageReference Include="Serilog" Version="3.1.0" />
  </ItemGroup>
</Project>
""",
    )


@pytest.fixture
def build_props():
    """Shared properties file inherited by every project."""
    return ManagedFile(
        name="Directory.Build.props",
        content="""<Project>
  <!-- shared versions -->
  <PropertyGroup>
    <NewtonsoftVersion>13.0.1</NewtonsoftVersion>
    <LangVersion>latest</LangVersion>
  </PropertyGroup>
</Project>
""",
    )


@pytest.fixture
def sample_pyproject():
    """Poetry manifest with runtime, dev, git and path dependencies."""
    return """[tool.poetry]
name = "sample"
version = "0.1.0"
description = ""

[tool.poetry.dependencies]
python = "^3.8"
requests = "^2.18"
Flask = { version = "^1.0", extras = ["dotenv"] }
toolbox = { git = "https://github.com/acme/toolbox.git", branch = "main" }
localpkg = { path = "../localpkg" }

[tool.poetry.dev-dependencies]
pytest = "^3.4"
"""


@pytest.fixture
def sample_poetry_lock():
    """Lockfile matching sample_pyproject."""
    return """[[package]]
name = "requests"
version = "2.18.4"
category = "main"

[[package]]
name = "flask"
version = "1.0.2"
category = "main"

[[package]]
name = "toolbox"
version = "0.4.0"
category = "main"

[package.source]
type = "git"
url = "https://github.com/acme/toolbox.git"
reference = "a1b2c3d"

[[package]]
name = "localpkg"
version = "0.1.0"
category = "main"

[package.source]
type = "directory"
url = "../localpkg"

[[package]]
name = "pytest"
version = "3.5.1"
category = "dev"

[[package]]
name = "attrs"
version = "18.1.0"
category = "dev"

[[package]]
name = "idna"
version = "2.6"
category = "main"
"""
