"""
Variant manager.

Expands an AndroidProject into its variants: one per build type and flavor
combination, plus one test variant per flavor combination. Library projects
get a debug and a release library variant and a test variant against the
debug library.
"""

from __future__ import annotations

import itertools
from collections.abc import Sequence
from pathlib import Path

from ..core.config import Config, get_config
from ..core.exceptions import ConfigurationError
from ..core.logging import get_logger
from ..models.dependency import AndroidDependency, BundleDependency, JarDependency
from ..models.flavor import DEBUG, RELEASE, BuildType, ProductFlavor
from ..models.project import MAIN_SOURCE_SET, TEST_SOURCE_SET, AndroidProject
from ..services.manifest.service import ManifestParser, get_manifest_parser
from ..services.resolution.service import DependencyChecker, ModuleId
from ..variant.configuration import (
    VariantConfiguration,
    VariantConfigurationBuilder,
    VariantType,
)
from .variants import BuildVariant

logger = get_logger(__name__)

DIR_BUNDLES = "bundles"
RESERVED_PREFIX = "test"


def resolve_build_dir(project: AndroidProject, config: Config | None = None) -> Path:
    """Build directory of a project, relative locations resolved against it."""
    config = config or get_config()
    build_dir = config.build.build_dir
    return build_dir if build_dir.is_absolute() else project.project_dir / build_dir


def _capitalize(name: str) -> str:
    return name[:1].upper() + name[1:]


def flavor_test_source_set(flavor_name: str) -> str:
    """Name of the test source set of a flavor, e.g. ``testFree``."""
    return f"{TEST_SOURCE_SET}{_capitalize(flavor_name)}"


class VariantManager:
    """Creates and holds the variants of a project.

    Variants are created once, on first access, in a deterministic order:
    for each flavor combination the build types in declaration order, then
    the test variant of that combination.
    """

    def __init__(
        self,
        project: AndroidProject,
        config: Config | None = None,
        manifest_parser: ManifestParser | None = None,
    ) -> None:
        """Initialize the manager.

        Args:
            project: The project description.
            config: Configuration, defaults to get_config().
            manifest_parser: Reader for manifest values, shared with every
                created configuration.
        """
        self.project = project
        self.config = config or get_config()
        self.manifest_parser = manifest_parser or get_manifest_parser()
        self.build_dir = resolve_build_dir(project, self.config)
        self._variants: list[BuildVariant] | None = None
        self._nodes: dict[str, BundleDependency] | None = None

    # --- declarations ---

    @property
    def build_types(self) -> dict[str, BuildType]:
        """Build types by name, debug and release first.

        A declared ``debug`` or ``release`` replaces the conventional one.
        Library projects only have debug and release.
        """
        types = {DEBUG: BuildType(name=DEBUG), RELEASE: BuildType(name=RELEASE)}
        for build_type in self.project.build_types:
            if self.project.is_library and build_type.name not in types:
                logger.warning("Library projects only build debug and release", build_type=build_type.name)
                continue
            types[build_type.name] = build_type
        return types

    @property
    def product_flavors(self) -> list[ProductFlavor]:
        if self.project.is_library:
            return []
        return list(self.project.product_flavors)

    def validate(self) -> None:
        """Check the naming rules of build types and flavors.

        Raises:
            ConfigurationError: If a name starts with ``test``, a build type
                and a flavor share a name, a flavor is declared twice, the
                test build type does not exist or a flavor group is missing
                or unknown.
        """
        build_type_names = [bt.name for bt in self.project.build_types]
        if len(set(build_type_names)) != len(build_type_names):
            raise ConfigurationError(message="A build type is declared twice", field_name="build_types")
        for name in build_type_names:
            if name.startswith(RESERVED_PREFIX):
                raise ConfigurationError(
                    message=f"BuildType names cannot start with '{RESERVED_PREFIX}': {name}",
                    field_name="build_types",
                )

        build_types = self.build_types
        flavor_names: set[str] = set()
        for flavor in self.product_flavors:
            if flavor.name.startswith(RESERVED_PREFIX):
                raise ConfigurationError(
                    message=f"ProductFlavor names cannot start with '{RESERVED_PREFIX}': {flavor.name}",
                    field_name="product_flavors",
                )
            if flavor.name in build_types:
                raise ConfigurationError(
                    message=f"ProductFlavor names cannot collide with BuildType names: {flavor.name}",
                    field_name="product_flavors",
                )
            if flavor.name == MAIN_SOURCE_SET or flavor.name in flavor_names:
                raise ConfigurationError(
                    message=f"ProductFlavor '{flavor.name}' is declared twice or shadows the main source set",
                    field_name="product_flavors",
                )
            flavor_names.add(flavor.name)

        test_build_type = DEBUG if self.project.is_library else self.project.test_build_type
        if test_build_type not in build_types:
            raise ConfigurationError(
                message=f"Test Build Type '{test_build_type}' does not exist.",
                field_name="test_build_type",
            )

        if len(self.project.flavor_groups) >= 2:
            for flavor in self.product_flavors:
                if flavor.flavor_group is None:
                    raise ConfigurationError(
                        message=f"Flavor {flavor.name} has no flavor group.",
                        field_name="flavor_group",
                    )
                if flavor.flavor_group not in self.project.flavor_groups:
                    raise ConfigurationError(
                        message=f"Flavor {flavor.name} has unknown group {flavor.flavor_group}.",
                        field_name="flavor_group",
                    )

    def flavor_combinations(self) -> list[tuple[ProductFlavor, ...]]:
        """Flavor lists of the variants, in group order.

        Without flavors there is a single, empty, combination. With fewer
        than two flavor groups each flavor is a combination of its own.
        """
        flavors = self.product_flavors
        if not flavors:
            return [()]

        groups = self.project.flavor_groups
        if len(groups) < 2:
            return [(flavor,) for flavor in flavors]

        per_group = [[f for f in flavors if f.flavor_group == group] for group in groups]
        return list(itertools.product(*per_group))

    # --- variants ---

    @property
    def variants(self) -> list[BuildVariant]:
        if self._variants is None:
            self._variants = self.create_variants()
        return self._variants

    def get(self, name: str) -> BuildVariant:
        """Look up a variant by name.

        Raises:
            ConfigurationError: If no variant has that name.
        """
        for variant in self.variants:
            if variant.name == name:
                return variant
        raise ConfigurationError(message=f"Unknown variant '{name}'", field_name="variant")

    def create_variants(self) -> list[BuildVariant]:
        """Create every variant of the project.

        Raises:
            ConfigurationError: On an invalid declaration, an unsigned tested
                variant or a missing main manifest.
            DependencyError: If a declared jar cannot be used by a variant.
            DependencyCycleError: If the library graph has a cycle.
        """
        self.validate()
        self._nodes = self.project.library_nodes()

        if self.project.is_library:
            variants = self._create_library_variants()
        else:
            variants = self._create_application_variants()

        logger.debug(
            "Created variants",
            project=self.project.name,
            variants=[v.name for v in variants],
        )
        return variants

    def _create_application_variants(self) -> list[BuildVariant]:
        build_types = self.build_types
        test_build_type = build_types[self.project.test_build_type]
        variants: list[BuildVariant] = []

        for flavors in self.flavor_combinations():
            tested: BuildVariant | None = None
            for build_type in build_types.values():
                config = self._production_config(build_type, flavors, VariantType.DEFAULT)
                variant = BuildVariant(config)
                variants.append(variant)
                if build_type.name == test_build_type.name:
                    tested = variant

            if tested is None:
                raise ConfigurationError(
                    message=f"Test Build Type '{test_build_type.name}' does not exist.",
                    field_name="test_build_type",
                )
            variants.append(self._test_variant(tested, flavors, test_build_type))
        return variants

    def _create_library_variants(self) -> list[BuildVariant]:
        build_types = self.build_types
        variants: list[BuildVariant] = []
        for name in (DEBUG, RELEASE):
            build_type = build_types[name]
            config = self._production_config(
                build_type,
                (),
                VariantType.LIBRARY,
                output_folder=self.build_dir / DIR_BUNDLES / build_type.name,
            )
            variants.append(BuildVariant(config))

        variants.append(self._test_variant(variants[0], (), build_types[DEBUG]))
        return variants

    def _production_config(
        self,
        build_type: BuildType,
        flavors: Sequence[ProductFlavor],
        variant_type: VariantType,
        output_folder: Path | None = None,
    ) -> VariantConfiguration:
        project = self.project
        name = "".join(_capitalize(f.name) for f in flavors) + _capitalize(build_type.name)

        builder = VariantConfigurationBuilder(
            project.default_config,
            project.source_provider(MAIN_SOURCE_SET),
            build_type,
            project.source_provider(build_type.name),
            variant_type=variant_type,
            manifest_parser=self.manifest_parser,
            output_folder=output_folder,
            output_name=name if output_folder is not None else None,
        )

        # libraries in descending priority: build type, flavors, default config
        jars = list(project.dependencies_for(MAIN_SOURCE_SET).jars)
        jars += project.dependencies_for(build_type.name).jars
        libraries = list(project.dependencies_for(build_type.name).libraries)
        for flavor in flavors:
            builder.add_product_flavor(flavor, project.source_provider(flavor.name))
            jars += project.dependencies_for(flavor.name).jars
            libraries += project.dependencies_for(flavor.name).libraries
        libraries += project.dependencies_for(MAIN_SOURCE_SET).libraries

        min_sdk = builder.merged_flavor.min_sdk_version
        if min_sdk is None:
            manifest = project.source_provider(MAIN_SOURCE_SET).manifest_file
            min_sdk = self.manifest_parser.get_min_sdk_version(manifest)  # type: ignore[arg-type]

        checker = DependencyChecker(name, min_sdk)
        builder.add_jar_dependencies(self._screen_jars(jars, checker))
        builder.add_library_dependencies(self._library_nodes(libraries, name))
        return builder.build()

    def _test_variant(
        self,
        tested: BuildVariant,
        flavors: Sequence[ProductFlavor],
        test_build_type: BuildType,
    ) -> BuildVariant:
        project = self.project
        if not tested.is_signed:
            raise ConfigurationError(
                message=f"Tested variant '{tested.name}' is not configured to create a signed APK.",
                field_name="signing",
            )

        builder = VariantConfigurationBuilder(
            project.default_config,
            project.source_provider(TEST_SOURCE_SET),
            test_build_type,
            None,
            variant_type=VariantType.TEST,
            tested_config=tested.config,
            manifest_parser=self.manifest_parser,
        )

        # libraries in descending priority: flavors, default config
        jars = list(project.dependencies_for(TEST_SOURCE_SET).jars)
        libraries: list[str] = []
        for flavor in flavors:
            source_set = flavor_test_source_set(flavor.name)
            builder.add_product_flavor(flavor, project.source_provider(source_set))
            jars += project.dependencies_for(source_set).jars
            libraries += project.dependencies_for(source_set).libraries
        libraries += project.dependencies_for(TEST_SOURCE_SET).libraries

        name = "".join(_capitalize(f.name) for f in flavors) + "Test"
        checker = DependencyChecker(name, tested.config.min_sdk_version)
        builder.add_jar_dependencies(self._screen_jars(jars, checker))
        builder.add_library_dependencies(self._library_nodes(libraries, name))
        return BuildVariant(builder.build(), tested=tested)

    def _screen_jars(self, jars: Sequence[JarDependency], checker: DependencyChecker) -> list[JarDependency]:
        kept: list[JarDependency] = []
        for jar in jars:
            if jar.coordinate is not None and checker.is_excluded(ModuleId.parse(jar.coordinate)):
                continue
            kept.append(self.project.jar_location(jar))
        return kept

    def _library_nodes(self, names: Sequence[str], required_by: str) -> list[AndroidDependency]:
        nodes = self._nodes if self._nodes is not None else self.project.library_nodes()
        libraries: list[AndroidDependency] = []
        for name in names:
            node = AndroidProject.library_node(nodes, name, required_by)
            if node not in libraries:
                libraries.append(node)
        return libraries


def dependency_report(variant: BuildVariant) -> list[str]:
    """Render the library tree of a variant, one line per node."""
    lines = [variant.name]
    libraries = variant.config.direct_libraries
    if not libraries:
        lines.append("No dependencies")
        return lines

    def render(dependency: AndroidDependency, depth: int) -> None:
        lines.append(f"{'|    ' * depth}+--- {dependency.name}")
        for child in dependency.dependencies:
            render(child, depth + 1)

    for library in libraries:
        render(library, 0)
    return lines
