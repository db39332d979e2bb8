"""
Variant configuration.

A VariantConfiguration is everything needed to build one variant: the default
config, an ordered list of product flavors, a build type, the source set of
each layer and the resolved dependencies. It is assembled by a
VariantConfigurationBuilder and is immutable afterwards, so every derived
query returns the same result each time it is called.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from ..core.exceptions import ConfigurationError
from ..core.logging import get_logger
from ..models.dependency import (
    AndroidDependency,
    BundleDependency,
    JarDependency,
    ManifestDependency,
    SymbolFileProvider,
)
from ..models.flavor import BuildType, ProductFlavor
from ..models.source import SourceProvider
from ..services.manifest.service import ManifestParser, get_manifest_parser
from ..services.resolution.service import resolve_library_dependencies

logger = get_logger(__name__)

DEFAULT_TEST_RUNNER = "android.test.InstrumentationTestRunner"


class VariantType(str, Enum):
    """Kind of output produced by a variant."""

    DEFAULT = "default"
    LIBRARY = "library"
    TEST = "test"


class VariantConfigurationBuilder:
    """Accumulates the layers of a variant before it is finalized.

    Flavors and dependencies are added to the builder; ``build()`` resolves
    the library graph and returns the immutable configuration. A builder can
    only be built once.
    """

    def __init__(
        self,
        default_config: ProductFlavor,
        default_source: SourceProvider,
        build_type: BuildType,
        build_type_source: SourceProvider | None = None,
        variant_type: VariantType = VariantType.DEFAULT,
        tested_config: VariantConfiguration | None = None,
        manifest_parser: ManifestParser | None = None,
        output_folder: Path | None = None,
        output_name: str | None = None,
    ) -> None:
        """Start a variant configuration.

        Args:
            default_config: The default config, lowest priority flavor.
            default_source: Source set of the default config.
            build_type: The build type of the variant.
            build_type_source: Source set of the build type. Test variants
                have none.
            variant_type: Kind of variant.
            tested_config: The configuration under test. Required for, and
                only allowed on, test variants.
            manifest_parser: Reader used for manifest values. Defaults to the
                shared memoizing parser.
            output_folder: Bundle folder of a library variant.
            output_name: Name of the produced bundle, the folder path when
                unset.

        Raises:
            ConfigurationError: If the main manifest is missing for a
                non-test variant, or the tested configuration does not match
                the variant type.
        """
        if (variant_type == VariantType.TEST) != (tested_config is not None):
            raise ConfigurationError(
                message="A tested configuration is required for test variants and only for them",
                field_name="tested_config",
            )
        if output_folder is not None and variant_type != VariantType.LIBRARY:
            raise ConfigurationError(
                message="Only library variants produce a bundle",
                field_name="output_folder",
            )

        self._default_config = default_config
        self._default_source = default_source
        self._build_type = build_type
        self._build_type_source = build_type_source
        self._type = variant_type
        self._tested_config = tested_config
        self._manifest_parser = manifest_parser or get_manifest_parser()
        self._output_folder = output_folder
        self._output_name = output_name or (str(output_folder) if output_folder is not None else None)

        self._flavors: list[ProductFlavor] = []
        self._flavor_sources: list[SourceProvider] = []
        self._merged_flavor = default_config
        self._jars: list[JarDependency] = []
        self._direct_libraries: list[AndroidDependency] = []
        self._built = False

        self._validate()

    def _validate(self) -> None:
        if self._type == VariantType.TEST:
            return
        manifest = self._default_source.manifest_file
        if manifest is None or not manifest.is_file():
            location = manifest.absolute() if manifest is not None else "<not set>"
            raise ConfigurationError(
                message=f"Main Manifest missing from {location}",
                field_name="manifest_file",
            )

    def _check_open(self) -> None:
        if self._built:
            raise ConfigurationError(
                message="The variant configuration has already been built",
                field_name="builder",
            )

    @property
    def merged_flavor(self) -> ProductFlavor:
        """The fold of the flavors added so far over the default config."""
        return self._merged_flavor

    def add_product_flavor(
        self,
        flavor: ProductFlavor,
        source: SourceProvider | None = None,
    ) -> VariantConfigurationBuilder:
        """Add a product flavor.

        Flavors added later win the field merge, while flavors added earlier
        win resource overlays.

        Args:
            flavor: The flavor to add.
            source: Source set of the flavor.

        Returns:
            VariantConfigurationBuilder: This builder.
        """
        self._check_open()
        self._flavors.append(flavor)
        self._flavor_sources.append(source or SourceProvider(name=flavor.name))
        self._merged_flavor = flavor.merge_over(self._merged_flavor)
        return self

    def add_jar_dependencies(self, jars: list[JarDependency]) -> VariantConfigurationBuilder:
        """Add plain jar dependencies."""
        self._check_open()
        self._jars.extend(jars)
        return self

    def add_library_dependencies(
        self,
        direct_libraries: list[AndroidDependency] | None,
    ) -> VariantConfigurationBuilder:
        """Add direct library dependencies, each carrying its own dependencies."""
        self._check_open()
        if direct_libraries:
            self._direct_libraries.extend(direct_libraries)
        return self

    def build(self) -> VariantConfiguration:
        """Resolve the dependencies and produce the immutable configuration.

        Returns:
            VariantConfiguration: The finalized configuration.

        Raises:
            ConfigurationError: If the builder was already built.
            DependencyCycleError: If the library graph has a cycle.
        """
        self._check_open()
        self._built = True

        direct = list(self._direct_libraries)
        tested = self._tested_config
        if tested is not None and tested.type == VariantType.LIBRARY and tested.output is not None:
            # the test of a library consumes the library bundle itself
            direct.insert(0, tested.output)

        flat = resolve_library_dependencies(direct)

        output: BundleDependency | None = None
        if self._output_folder is not None:
            output = BundleDependency(
                self._output_folder,
                name=self._output_name,
                dependencies=list(direct),
            )

        config = VariantConfiguration(
            default_config=self._default_config,
            default_source=self._default_source,
            build_type=self._build_type,
            build_type_source=self._build_type_source,
            flavors=tuple(self._flavors),
            flavor_sources=tuple(self._flavor_sources),
            merged_flavor=self._merged_flavor,
            variant_type=self._type,
            tested_config=tested,
            jars=tuple(self._jars),
            direct_libraries=tuple(direct),
            flat_libraries=tuple(flat),
            output=output,
            manifest_parser=self._manifest_parser,
        )
        logger.debug(
            "Built variant configuration",
            variant=config.full_name,
            type=self._type.value,
            libraries=len(flat),
        )
        return config


class VariantConfiguration:
    """The finalized configuration of one variant."""

    __slots__ = (
        "_default_config",
        "_default_source",
        "_build_type",
        "_build_type_source",
        "_flavors",
        "_flavor_sources",
        "_merged_flavor",
        "_type",
        "_tested_config",
        "_jars",
        "_direct_libraries",
        "_flat_libraries",
        "_output",
        "_manifest_parser",
    )

    def __init__(
        self,
        *,
        default_config: ProductFlavor,
        default_source: SourceProvider,
        build_type: BuildType,
        build_type_source: SourceProvider | None,
        flavors: tuple[ProductFlavor, ...],
        flavor_sources: tuple[SourceProvider, ...],
        merged_flavor: ProductFlavor,
        variant_type: VariantType,
        tested_config: VariantConfiguration | None,
        jars: tuple[JarDependency, ...],
        direct_libraries: tuple[AndroidDependency, ...],
        flat_libraries: tuple[AndroidDependency, ...],
        output: BundleDependency | None,
        manifest_parser: ManifestParser,
    ) -> None:
        self._default_config = default_config
        self._default_source = default_source
        self._build_type = build_type
        self._build_type_source = build_type_source
        self._flavors = flavors
        self._flavor_sources = flavor_sources
        self._merged_flavor = merged_flavor
        self._type = variant_type
        self._tested_config = tested_config
        self._jars = jars
        self._direct_libraries = direct_libraries
        self._flat_libraries = flat_libraries
        self._output = output
        self._manifest_parser = manifest_parser

    # --- layers ---

    @property
    def default_config(self) -> ProductFlavor:
        return self._default_config

    @property
    def default_source(self) -> SourceProvider:
        return self._default_source

    @property
    def build_type(self) -> BuildType:
        return self._build_type

    @property
    def build_type_source(self) -> SourceProvider | None:
        return self._build_type_source

    @property
    def flavors(self) -> tuple[ProductFlavor, ...]:
        """Added flavors, in the order they were added."""
        return self._flavors

    @property
    def flavor_sources(self) -> tuple[SourceProvider, ...]:
        return self._flavor_sources

    @property
    def merged_flavor(self) -> ProductFlavor:
        return self._merged_flavor

    @property
    def has_flavors(self) -> bool:
        return bool(self._flavors)

    @property
    def type(self) -> VariantType:
        return self._type

    @property
    def tested_config(self) -> VariantConfiguration | None:
        return self._tested_config

    @property
    def output(self) -> BundleDependency | None:
        """The bundle produced by a library variant, if it declares one."""
        return self._output

    @property
    def manifest_parser(self) -> ManifestParser:
        return self._manifest_parser

    # --- naming ---

    @property
    def flavor_name(self) -> str:
        """Flavor names joined and capitalized, e.g. ``FreeArm``. Empty without flavors."""
        return "".join(_capitalize(f.name) for f in self._flavors)

    @property
    def flavored_name(self) -> str:
        """Flavor names joined with lowercase first letter, e.g. ``freeArm``."""
        name = self.flavor_name
        return name[:1].lower() + name[1:]

    @property
    def full_name(self) -> str:
        """Variant name, e.g. ``FreeArmDebug``, ``FreeArmTest`` or ``Release``."""
        suffix = "Test" if self._type == VariantType.TEST else _capitalize(self._build_type.name)
        return f"{self.flavor_name}{suffix}"

    # --- dependencies ---

    @property
    def jars(self) -> tuple[JarDependency, ...]:
        return self._jars

    @property
    def direct_libraries(self) -> list[AndroidDependency]:
        """Direct library dependencies, in declaration order."""
        return list(self._direct_libraries)

    @property
    def all_libraries(self) -> list[AndroidDependency]:
        """Direct and transitive libraries, highest priority first."""
        return list(self._flat_libraries)

    @property
    def has_libraries(self) -> bool:
        return bool(self._direct_libraries)

    @property
    def manifest_dependencies(self) -> list[ManifestDependency]:
        """Libraries whose manifests are merged into the variant manifest."""
        return list(self._direct_libraries)

    @property
    def symbol_file_providers(self) -> list[SymbolFileProvider]:
        """Libraries whose symbol files are regenerated for the variant."""
        return list(self._flat_libraries)

    @property
    def packaged_jars(self) -> list[Path]:
        """Jars to package: existing jar dependencies and library class archives.

        A file reachable twice is listed once. Jars declared with
        ``packaged=False`` are left out.
        """
        jars: list[Path] = []
        for jar in self._jars:
            if jar.packaged and jar.location.exists() and jar.location not in jars:
                jars.append(jar.location)
        for library in self._flat_libraries:
            lib_jar = library.jar_file
            if lib_jar.exists() and lib_jar not in jars:
                jars.append(lib_jar)
        return jars

    @property
    def compile_classpath(self) -> frozenset[Path]:
        """Library class archives and jar dependency locations.

        Jars declared with ``compiled=False`` are left out, unlike Gradle's
        classpath, which lists every jar dependency. ``compiled`` defaults to
        True, so only jars explicitly marked packaging-only are affected.
        Library archives are listed whether or not they exist yet.
        """
        classpath = {library.jar_file for library in self._flat_libraries}
        classpath.update(jar.location for jar in self._jars if jar.compiled)
        return frozenset(classpath)

    # --- package names ---

    @property
    def package_from_manifest(self) -> str:
        """Package declared by the main manifest."""
        return self._manifest_parser.get_package(self._require_main_manifest_path())

    @property
    def original_package_name(self) -> str:
        """The package before flavor overrides.

        Generated sources are placed in this package. For a test variant this
        is the test package name.
        """
        if self._type == VariantType.TEST:
            return self.package_name
        return self.package_from_manifest

    @property
    def package_name(self) -> str:
        """The final package of the variant's application."""
        if self._type == VariantType.TEST:
            package = self._merged_flavor.test_package_name
            if package is None:
                package = f"{self._tested().package_name}.test"
            return package

        override = self.package_override
        return override if override is not None else self.package_from_manifest

    @property
    def tested_package_name(self) -> str | None:
        """The package under test, for test variants only.

        A library is tested inside the test application, so the test of a
        library targets its own package.
        """
        if self._type != VariantType.TEST:
            return None
        tested = self._tested()
        if tested.type == VariantType.LIBRARY:
            return self.package_name
        return tested.package_name

    @property
    def package_override(self) -> str | None:
        """The package set through flavors and the build type suffix, if any."""
        package = self._merged_flavor.package_name
        suffix = self._build_type.package_name_suffix

        if suffix:
            if package is None:
                package = self.package_from_manifest
            package = f"{package}{suffix}" if suffix.startswith(".") else f"{package}.{suffix}"

        return package

    @property
    def instrumentation_runner(self) -> str:
        """Runner used to test this variant, or the tested variant for tests."""
        config = self._tested() if self._type == VariantType.TEST else self
        runner = config.merged_flavor.test_instrumentation_runner
        return runner if runner is not None else DEFAULT_TEST_RUNNER

    @property
    def min_sdk_version(self) -> int:
        """minSdkVersion from the flavors, falling back to the main manifest."""
        if self._tested_config is not None:
            return self._tested_config.min_sdk_version
        value = self._merged_flavor.min_sdk_version
        if value is None:
            value = self._manifest_parser.get_min_sdk_version(self._require_main_manifest_path())
        return value

    # --- sources ---

    @property
    def main_manifest(self) -> Path | None:
        """The default manifest, when it exists. Test variants have none."""
        manifest = self._default_source.manifest_file
        if manifest is not None and manifest.is_file():
            return manifest
        return None

    @property
    def manifest_overlays(self) -> list[Path]:
        """Build type then flavor manifests, for those that exist."""
        overlays: list[Path] = []
        sources = [self._build_type_source, *self._flavor_sources]
        for source in sources:
            if source is not None and source.manifest_file is not None and source.manifest_file.is_file():
                overlays.append(source.manifest_file)
        return overlays

    @property
    def resource_inputs(self) -> list[Path]:
        """Resource folders, highest overlay priority first.

        Build type, flavors in the order they were added, default config,
        then library resources in flattened order.
        """
        inputs: list[Path] = []
        if self._build_type_source is not None and self._build_type_source.res_dir is not None:
            inputs.append(self._build_type_source.res_dir)

        for source in self._flavor_sources:
            if source.res_dir is not None:
                inputs.append(source.res_dir)

        if self._default_source.res_dir is not None:
            inputs.append(self._default_source.res_dir)

        for library in self._flat_libraries:
            if library.res_folder is not None:
                inputs.append(library.res_folder)

        return inputs

    @property
    def aidl_source_list(self) -> list[Path]:
        """AIDL source folders of the default config, build type and flavors."""
        return self._layer_dirs("aidl_dir")

    @property
    def aidl_imports(self) -> list[Path]:
        """AIDL folders of the libraries, for those that exist."""
        return [
            library.aidl_folder
            for library in self._flat_libraries
            if library.aidl_folder is not None and library.aidl_folder.is_dir()
        ]

    @property
    def java_source_dirs(self) -> list[Path]:
        return self._layer_dirs("java_dir")

    @property
    def java_resource_dirs(self) -> list[Path]:
        return self._layer_dirs("java_resources_dir")

    @property
    def jni_dirs(self) -> list[Path]:
        return self._layer_dirs("jni_dir")

    @property
    def assets_dir(self) -> Path | None:
        """Assets folder of the default source set."""
        return self._default_source.assets_dir

    def _layer_dirs(self, attr: str) -> list[Path]:
        sources: list[SourceProvider | None] = [self._default_source]
        if self._type != VariantType.TEST:
            sources.append(self._build_type_source)
        sources.extend(self._flavor_sources)

        dirs: list[Path] = []
        for source in sources:
            if source is None:
                continue
            location = getattr(source, attr)
            if location is not None:
                dirs.append(location)
        return dirs

    # --- generated code ---

    @property
    def build_config_lines(self) -> list[str]:
        """BuildConfig lines of the default config, build type and flavors.

        Each non empty block is preceded by a comment naming its origin.
        """
        lines: list[str] = []

        if not self._default_config.build_config.is_empty:
            lines.append("// lines from default config.")
            lines.extend(self._default_config.build_config.lines)

        if not self._build_type.build_config.is_empty:
            lines.append(f"// lines from build type: {self._build_type.name}")
            lines.extend(self._build_type.build_config.lines)

        for flavor in self._flavors:
            if not flavor.build_config.is_empty:
                lines.append(f"// lines from product flavor: {flavor.name}")
                lines.extend(flavor.build_config.lines)

        return lines

    # --- helpers ---

    def _tested(self) -> VariantConfiguration:
        if self._tested_config is None:
            raise ConfigurationError(
                message="Test variant without a tested configuration",
                field_name="tested_config",
            )
        return self._tested_config

    def _require_main_manifest_path(self) -> Path:
        manifest = self._default_source.manifest_file
        if manifest is None:
            raise ConfigurationError(
                message="The default source set declares no manifest",
                field_name="manifest_file",
            )
        return manifest

    def __repr__(self) -> str:
        return f"VariantConfiguration({self.full_name!r}, type={self._type.value})"


def _capitalize(name: str) -> str:
    return name[:1].upper() + name[1:]
