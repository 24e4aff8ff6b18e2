"""Tests for descriptor discovery and parsing."""

from pathlib import Path

import pytest
from fixtures import write_pom

from forestkeeper.workspace.descriptor import discover_descriptors, parse_module, read_module
from forestkeeper.workspace.exceptions import DescriptorParseError


class TestDiscoverDescriptors:
    """Tests for discover_descriptors."""

    def test_finds_nested_descriptors(self, tmp_path: Path) -> None:
        """Test descriptors at every depth are found."""
        write_pom(tmp_path, "com.example", "root")
        write_pom(tmp_path / "a", "com.example", "a")
        write_pom(tmp_path / "b" / "c" / "d", "com.example", "d")

        found = discover_descriptors(tmp_path, max_workers=2)

        assert found == {
            (tmp_path / "pom.xml").resolve(),
            (tmp_path / "a" / "pom.xml").resolve(),
            (tmp_path / "b" / "c" / "d" / "pom.xml").resolve(),
        }

    def test_skips_build_output_and_hidden_folders(self, tmp_path: Path) -> None:
        """Test build output, dependency and hidden folders are not searched."""
        write_pom(tmp_path / "a", "com.example", "a")
        write_pom(tmp_path / "a" / "target" / "classes", "com.example", "copy")
        write_pom(tmp_path / "node_modules" / "x", "com.example", "x")
        write_pom(tmp_path / ".git" / "modules", "com.example", "git")

        found = discover_descriptors(tmp_path)

        assert found == {(tmp_path / "a" / "pom.xml").resolve()}

    def test_finds_module_folder_named_build(self, tmp_path: Path) -> None:
        """Test a module living in a folder called build is found."""
        write_pom(tmp_path / "build", "com.example", "build")

        found = discover_descriptors(tmp_path)

        assert found == {(tmp_path / "build" / "pom.xml").resolve()}

    def test_missing_root(self, tmp_path: Path) -> None:
        """Test a missing folder yields nothing."""
        assert discover_descriptors(tmp_path / "missing") == set()


class TestReadModule:
    """Tests for read_module."""

    def test_reads_coordinates(self, tmp_path: Path) -> None:
        """Test reading a descriptor with a namespace."""
        pom = write_pom(tmp_path, "com.telenav.kivakit", "kivakit-core", "1.2.3")

        module = read_module(pom)

        assert module.group_id == "com.telenav.kivakit"
        assert module.artifact_id == "kivakit-core"
        assert module.version == "1.2.3"
        assert module.path == pom.resolve()

    def test_inherits_from_parent(self, tmp_path: Path) -> None:
        """Test group id and version are inherited from the parent section."""
        pom = tmp_path / "pom.xml"
        pom.write_text(
            """<project>
  <parent>
    <groupId>com.telenav.kivakit</groupId>
    <artifactId>kivakit-parent</artifactId>
    <version>2.0.0</version>
  </parent>
  <artifactId>kivakit-network</artifactId>
</project>
"""
        )

        module = read_module(pom)

        assert module.group_id == "com.telenav.kivakit"
        assert module.version == "2.0.0"
        assert module.artifact_id == "kivakit-network"

    def test_malformed_xml(self, tmp_path: Path) -> None:
        """Test malformed XML is reported."""
        pom = tmp_path / "pom.xml"
        pom.write_text("<project><groupId>")

        with pytest.raises(DescriptorParseError, match="Unable to parse"):
            read_module(pom)

    def test_missing_coordinates(self, tmp_path: Path) -> None:
        """Test descriptors without coordinates are rejected."""
        pom = tmp_path / "pom.xml"
        pom.write_text("<project><artifactId>x</artifactId></project>")

        with pytest.raises(DescriptorParseError, match="groupId, version"):
            read_module(pom)

    def test_not_a_project(self, tmp_path: Path) -> None:
        """Test other XML documents are rejected."""
        pom = tmp_path / "pom.xml"
        pom.write_text("<settings/>")

        with pytest.raises(DescriptorParseError, match="not a project descriptor"):
            read_module(pom)


class TestParseModule:
    """Tests for parse_module."""

    def test_returns_none_on_error(self, tmp_path: Path) -> None:
        """Test unusable descriptors are skipped."""
        pom = tmp_path / "pom.xml"
        pom.write_text("not xml")

        assert parse_module(pom) is None

    def test_returns_module(self, tmp_path: Path) -> None:
        """Test usable descriptors are read."""
        module = parse_module(write_pom(tmp_path, "com.example", "a"))

        assert module is not None
        assert module.artifact_id == "a"
