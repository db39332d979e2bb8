"""
Project description model.

The declarative form of an Android project: default config, build types,
product flavors and their groups, source set locations and dependency
declarations. Projects are usually loaded from JSON.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field

from ..core.exceptions import ConfigurationError
from .dependency import BundleDependency, JarDependency
from .flavor import DEBUG, BuildType, ProductFlavor
from .source import SourceProvider

MAIN_SOURCE_SET = "main"
TEST_SOURCE_SET = "test"


class LibraryDeclaration(BaseModel):
    """An Android library available to the project."""

    name: str = Field(description="Library identity, group:artifact:version or a path")
    bundle_folder: Path = Field(description="Exploded bundle folder")
    archive: Path | None = Field(
        default=None, description="Bundle archive exploded into the folder before use"
    )
    dependencies: list[str] = Field(
        default_factory=list, description="Names of the libraries this library depends on"
    )


class SourceSetDependencies(BaseModel):
    """Dependencies declared on one source set."""

    libraries: list[str] = Field(default_factory=list, description="Library names, in order")
    jars: list[JarDependency] = Field(
        default_factory=list, description="Jars, screened by coordinate for platform conflicts"
    )


class AndroidProject(BaseModel):
    """Declarative description of an application or library project."""

    name: str = Field(default="project", description="Project name, prefix of archive names")
    project_dir: Path = Field(default=Path("."), description="Project root directory")
    is_library: bool = Field(default=False, description="Whether the project builds a library")
    compile_sdk_version: int = Field(default=17, description="API level compiled against")
    default_config: ProductFlavor = Field(
        default_factory=lambda: ProductFlavor(name=MAIN_SOURCE_SET)
    )
    build_types: list[BuildType] = Field(default_factory=list)
    product_flavors: list[ProductFlavor] = Field(default_factory=list)
    flavor_groups: list[str] = Field(default_factory=list, description="Flavor dimensions, in order")
    test_build_type: str = Field(default=DEBUG, description="Build type used by test variants")
    source_sets: dict[str, Path] = Field(
        default_factory=dict, description="Source set roots overriding src/<name>"
    )
    dependencies: dict[str, SourceSetDependencies] = Field(
        default_factory=dict, description="Dependencies keyed by source set name"
    )
    libraries: list[LibraryDeclaration] = Field(default_factory=list)

    @classmethod
    def from_json_file(cls, path: Path) -> AndroidProject:
        """Load a project from JSON.

        A relative ``project_dir`` is resolved against the file's directory.
        """
        path = Path(path)
        project = cls.model_validate_json(path.read_text(encoding="utf-8"))
        if not project.project_dir.is_absolute():
            project = project.model_copy(update={"project_dir": path.parent / project.project_dir})
        return project

    def _resolve(self, location: Path) -> Path:
        return location if location.is_absolute() else self.project_dir / location

    def source_provider(self, name: str) -> SourceProvider:
        """Source set ``name`` with the conventional layout."""
        root = self.source_sets.get(name)
        root = self._resolve(root) if root is not None else self.project_dir / "src" / name
        return SourceProvider.from_root(root, name=name)

    def dependencies_for(self, source_set: str) -> SourceSetDependencies:
        """Dependencies declared on ``source_set``, empty if none."""
        return self.dependencies.get(source_set) or SourceSetDependencies()

    def library_nodes(self) -> dict[str, BundleDependency]:
        """Build the library graph from the declarations.

        Returns:
            dict[str, BundleDependency]: Nodes keyed by library name. Nodes
                are shared by every variant using them.

        Raises:
            ConfigurationError: If a library is declared twice or depends on
                an undeclared library.
        """
        nodes: dict[str, BundleDependency] = {}
        for declaration in self.libraries:
            if declaration.name in nodes:
                raise ConfigurationError(
                    message=f"Library '{declaration.name}' is declared twice",
                    field_name="libraries",
                )
            nodes[declaration.name] = BundleDependency(
                self._resolve(declaration.bundle_folder), name=declaration.name
            )

        for declaration in self.libraries:
            node = nodes[declaration.name]
            for dependency in declaration.dependencies:
                node.add_dependency(self.library_node(nodes, dependency, declaration.name))
        return nodes

    @staticmethod
    def library_node(
        nodes: dict[str, BundleDependency], name: str, required_by: str
    ) -> BundleDependency:
        """Look up a library node by name."""
        try:
            return nodes[name]
        except KeyError:
            raise ConfigurationError(
                message=f"Unknown library '{name}' required by '{required_by}'",
                field_name="libraries",
            ) from None

    def jar_location(self, jar: JarDependency) -> JarDependency:
        """The jar with its location resolved against the project directory."""
        return jar.model_copy(update={"location": self._resolve(jar.location)})

    def library_archives(self) -> dict[str, tuple[Path, Path]]:
        """Archive and bundle folder of every library declared as an archive."""
        return {
            declaration.name: (self._resolve(declaration.archive), self._resolve(declaration.bundle_folder))
            for declaration in self.libraries
            if declaration.archive is not None
        }
