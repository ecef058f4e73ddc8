"""Tests for declaration lookup."""

import pytest

from reqpatch.declarations import (
    MsbuildDeclarationLocator,
    RequirementsTxtDeclarationLocator,
    locator_for,
)
from reqpatch.errors import ContractViolation
from reqpatch.models import ManagedFile, Requirement


class TestMsbuildDeclarationLocator:
    """Test PackageReference and property lookup."""

    def test_direct_self_closing_reference(self, csproj_with_property, build_props):
        """Should return the element as written in the project file."""
        locator = MsbuildDeclarationLocator([csproj_with_property, build_props])
        requirement = Requirement(file="src/App/App.csproj", requirement="3.1.0")

        found = locator.declarations("Serilog", requirement)

        assert found == {"src/App/App.csproj": ['<PackageReference Include="Serilog" Version="3.1.0" />']}

    def test_name_match_is_case_insensitive(self, csproj_with_property, build_props):
        locator = MsbuildDeclarationLocator([csproj_with_property, build_props])
        requirement = Requirement(file="src/App/App.csproj", requirement="3.1.0")

        assert locator.declarations("serilog", requirement)

    def test_property_reference_resolves_to_source_file(self, csproj_with_property, build_props):
        """Should follow $(Property) into the file that declares it."""
        locator = MsbuildDeclarationLocator([csproj_with_property, build_props])
        requirement = Requirement(file="src/App/App.csproj", requirement="13.0.1")

        found = locator.declarations("Newtonsoft.Json", requirement)

        assert found == {"Directory.Build.props": ["<NewtonsoftVersion>13.0.1</NewtonsoftVersion>"]}

    def test_chained_property_references(self):
        """Should follow properties that reference other properties."""
        project = ManagedFile(
            name="App.csproj",
            content='<Project><ItemGroup><PackageReference Include="Dapper" Version="$(DapperVersion)" /></ItemGroup></Project>',
        )
        props = ManagedFile(
            name="Directory.Build.props",
            content=(
                "<Project><PropertyGroup>\n"
                "  <DapperVersion>$(DataVersion)</DapperVersion>\n"
                "  <DataVersion>2.0.123</DataVersion>\n"
                "</PropertyGroup></Project>"
            ),
        )
        locator = MsbuildDeclarationLocator([project, props])

        found = locator.declarations("Dapper", Requirement(file="App.csproj", requirement="2.0.123"))

        assert found == {"Directory.Build.props": ["<DataVersion>2.0.123</DataVersion>"]}

    def test_property_cycle_is_cut(self):
        project = ManagedFile(
            name="App.csproj",
            content='<PackageReference Include="Dapper" Version="$(A)" />',
        )
        props = ManagedFile(
            name="Directory.Build.props",
            content="<PropertyGroup><A>$(B)</A><B>$(A)</B></PropertyGroup>",
        )
        locator = MsbuildDeclarationLocator([project, props])

        assert locator.declarations("Dapper", Requirement(file="App.csproj", requirement="1.0")) == {}

    def test_nested_version_element(self):
        """Should match references that carry a child <Version> element."""
        element = '<PackageReference Include="NUnit">\n      <Version>3.13.2</Version>\n    </PackageReference>'
        project = ManagedFile(name="Tests.csproj", content=f"<Project><ItemGroup>\n    {element}\n</ItemGroup></Project>")
        locator = MsbuildDeclarationLocator([project])

        found = locator.declarations("NUnit", Requirement(file="Tests.csproj", requirement="3.13.2"))

        assert found == {"Tests.csproj": [element]}

    def test_central_package_version(self):
        """Should find PackageVersion items in Directory.Packages.props."""
        packages = ManagedFile(
            name="Directory.Packages.props",
            content='<Project><ItemGroup><PackageVersion Include="xunit" Version="2.4.1" /></ItemGroup></Project>',
        )
        locator = MsbuildDeclarationLocator([ManagedFile("App.csproj", "<Project />"), packages])

        found = locator.declarations("xunit", Requirement(file="Directory.Packages.props", requirement="2.4.1"))

        assert found == {"Directory.Packages.props": ['<PackageVersion Include="xunit" Version="2.4.1" />']}

    def test_version_must_match_exactly(self):
        """A reference whose version merely starts with the requirement is left alone."""
        net48 = '<PackageReference Include="Z" Version="1.0" Condition="\'$(TargetFramework)\' == \'net48\'" />'
        net8 = '<PackageReference Include="Z" Version="1.0.5" Condition="\'$(TargetFramework)\' == \'net8.0\'" />'
        project = ManagedFile(name="App.csproj", content=f"<Project><ItemGroup>\n  {net48}\n  {net8}\n</ItemGroup></Project>")
        locator = MsbuildDeclarationLocator([project])

        found = locator.declarations("Z", Requirement(file="App.csproj", requirement="1.0"))

        assert found == {"App.csproj": [net48]}

    def test_property_value_must_match_exactly(self):
        project = ManagedFile(
            name="App.csproj",
            content='<Project><ItemGroup><PackageReference Include="Z" Version="$(ZVersion)" /></ItemGroup></Project>',
        )
        props = ManagedFile(
            name="Directory.Build.props",
            content="<Project><PropertyGroup><ZVersion>1.0.5</ZVersion></PropertyGroup></Project>",
        )
        locator = MsbuildDeclarationLocator([project, props])

        assert locator.declarations("Z", Requirement(file="App.csproj", requirement="1.0")) == {}

    def test_wrapped_property_reference_is_evaluated(self):
        """Text around $(Property) takes part in the comparison."""
        project = ManagedFile(
            name="App.csproj",
            content='<Project><ItemGroup><PackageReference Include="Z" Version="[$(ZVersion)]" /></ItemGroup></Project>',
        )
        props = ManagedFile(
            name="Directory.Build.props",
            content="<Project><PropertyGroup><ZVersion>1.0</ZVersion></PropertyGroup></Project>",
        )
        locator = MsbuildDeclarationLocator([project, props])

        assert locator.declarations("Z", Requirement(file="App.csproj", requirement="[1.0]")) == {
            "Directory.Build.props": ["<ZVersion>1.0</ZVersion>"]
        }
        assert locator.declarations("Z", Requirement(file="App.csproj", requirement="1.0")) == {}

    def test_unmatched_requirement_returns_nothing(self, csproj_with_property, build_props):
        locator = MsbuildDeclarationLocator([csproj_with_property, build_props])

        assert locator.declarations("Serilog", Requirement(file="src/App/App.csproj", requirement="9.9.9")) == {}
        assert locator.declarations("Serilog", Requirement(file="missing.csproj", requirement="3.1.0")) == {}


class TestRequirementsTxtDeclarationLocator:
    """Test pip requirements lookup."""

    def test_declaration_excludes_inline_comment(self):
        content = "# Web framework\nfastapi==0.85.0  # Fast API framework\nuvicorn>=0.18.0\n"
        locator = RequirementsTxtDeclarationLocator([ManagedFile("requirements.txt", content)])

        found = locator.declarations("fastapi", Requirement(file="requirements.txt", requirement="==0.85.0"))

        assert found == {"requirements.txt": ["fastapi==0.85.0"]}

    def test_matches_normalised_names(self):
        content = "Typing_Extensions>=4.0.0\n"
        locator = RequirementsTxtDeclarationLocator([ManagedFile("requirements.txt", content)])

        found = locator.declarations("typing-extensions", Requirement(file="requirements.txt", requirement=">=4.0.0"))

        assert found == {"requirements.txt": ["Typing_Extensions>=4.0.0"]}

    def test_skips_vcs_editable_and_option_lines(self):
        content = (
            "-r base.txt\n"
            "-e ./local-package\n"
            "git+https://github.com/user/repo.git@v1.0.0#egg=requests\n"
            "--index-url https://example.com/simple\n"
            "requests==2.28.0 \\\n"
            "    --hash=sha256:abcdef\n"
        )
        locator = RequirementsTxtDeclarationLocator([ManagedFile("requirements.txt", content)])

        found = locator.declarations("requests", Requirement(file="requirements.txt", requirement="==2.28.0"))

        assert found == {"requirements.txt": ["requests==2.28.0"]}

    def test_specifier_must_match_exactly(self):
        content = "fastapi==0.85\nfastapi==0.85.0\nfastapi==0.85.01\n"
        locator = RequirementsTxtDeclarationLocator([ManagedFile("requirements.txt", content)])

        found = locator.declarations("fastapi", Requirement(file="requirements.txt", requirement="==0.85.0"))

        assert found == {"requirements.txt": ["fastapi==0.85.0"]}

    def test_range_is_compared_as_a_specifier_set(self):
        content = "requests<3,>=2.28\nrequests>=2.28\n"
        locator = RequirementsTxtDeclarationLocator([ManagedFile("requirements.txt", content)])

        found = locator.declarations("requests", Requirement(file="requirements.txt", requirement=">=2.28,<3"))

        assert found == {"requirements.txt": ["requests<3,>=2.28"]}

    def test_markers_are_part_of_declaration(self):
        content = 'uvloop>=0.17.0; sys_platform != "win32"\n'
        locator = RequirementsTxtDeclarationLocator([ManagedFile("requirements.txt", content)])

        found = locator.declarations("uvloop", Requirement(file="requirements.txt", requirement=">=0.17.0"))

        assert found == {"requirements.txt": ['uvloop>=0.17.0; sys_platform != "win32"']}


class TestLocatorFor:
    def test_picks_locator_by_ecosystem(self):
        assert isinstance(locator_for([ManagedFile("App.csproj", "")]), MsbuildDeclarationLocator)
        assert isinstance(locator_for([ManagedFile("requirements.txt", "")]), RequirementsTxtDeclarationLocator)

    def test_unsupported_ecosystem(self):
        with pytest.raises(ContractViolation):
            locator_for([ManagedFile("package.json", "{}")])
