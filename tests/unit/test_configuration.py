"""Unit tests for variant configurations."""

from pathlib import Path

import pytest

from apkforge.core.exceptions import ConfigurationError
from apkforge.models import (
    BuildType,
    BundleDependency,
    ConstantLines,
    JarDependency,
    ProductFlavor,
    SourceProvider,
)
from apkforge.variant import (
    DEFAULT_TEST_RUNNER,
    VariantConfigurationBuilder,
    VariantType,
)


@pytest.fixture
def sources(temp_dir, write_manifest):
    """Create main, debug and flavor source sets, with a main manifest."""
    root = temp_dir / "src"
    write_manifest(root / "main" / "AndroidManifest.xml", "com.example.app", min_sdk=8)
    return {
        name: SourceProvider.from_root(root / name)
        for name in ("main", "debug", "release", "f1", "fa", "test")
    }


@pytest.fixture
def make_config(sources, manifest_parser):
    """Create finalized configurations from layers."""

    def make(
        build_type=None,
        flavors=(),
        default_config=None,
        variant_type=VariantType.DEFAULT,
        tested=None,
        libraries=None,
        jars=None,
        output_folder=None,
        output_name=None,
    ):
        build_type = build_type or BuildType(name="debug")
        is_test = variant_type == VariantType.TEST
        builder = VariantConfigurationBuilder(
            default_config or ProductFlavor(name="main"),
            sources["test"] if is_test else sources["main"],
            build_type,
            None if is_test else sources.get(build_type.name),
            variant_type=variant_type,
            tested_config=tested,
            manifest_parser=manifest_parser,
            output_folder=output_folder,
            output_name=output_name,
        )
        for flavor in flavors:
            builder.add_product_flavor(flavor, sources.get(flavor.name))
        builder.add_jar_dependencies(jars or [])
        builder.add_library_dependencies(libraries)
        return builder.build()

    return make


class TestVariantConfigurationBuilder:
    """Tests for building configurations."""

    def test_missing_main_manifest(self, temp_dir):
        """Test main manifest check.

        Verifies that a production variant without a main manifest is
        rejected when the builder is created.
        """
        with pytest.raises(ConfigurationError) as exc_info:
            VariantConfigurationBuilder(
                ProductFlavor(name="main"),
                SourceProvider.from_root(temp_dir / "missing"),
                BuildType(name="debug"),
            )
        assert "Main Manifest missing" in str(exc_info.value)

    def test_test_variant_requires_tested(self, sources):
        """Test that a test variant needs a tested configuration."""
        with pytest.raises(ConfigurationError):
            VariantConfigurationBuilder(
                ProductFlavor(name="main"),
                sources["test"],
                BuildType(name="debug"),
                variant_type=VariantType.TEST,
            )

    def test_only_library_has_output(self, sources):
        """Test that only library variants produce bundles."""
        with pytest.raises(ConfigurationError):
            VariantConfigurationBuilder(
                ProductFlavor(name="main"),
                sources["main"],
                BuildType(name="debug"),
                output_folder=Path("bundles/debug"),
            )

    def test_builder_builds_once(self, sources, manifest_parser):
        """Test builder finalization.

        Verifies that a builder rejects changes and a second build once it
        has been built.
        """
        builder = VariantConfigurationBuilder(
            ProductFlavor(name="main"),
            sources["main"],
            BuildType(name="debug"),
            manifest_parser=manifest_parser,
        )
        builder.build()

        with pytest.raises(ConfigurationError):
            builder.build()
        with pytest.raises(ConfigurationError):
            builder.add_product_flavor(ProductFlavor(name="f1"))

    def test_merged_flavor_tracks_added_flavors(self, sources):
        """Test the running flavor merge."""
        builder = VariantConfigurationBuilder(
            ProductFlavor(name="main", version_code=1),
            sources["main"],
            BuildType(name="debug"),
        )
        builder.add_product_flavor(ProductFlavor(name="f1", version_code=5))

        assert builder.merged_flavor.version_code == 5


class TestNaming:
    """Tests for variant names."""

    def test_full_name_with_flavors(self, make_config):
        """Test flavored names.

        Verifies that flavor names are capitalized and joined before the
        build type.
        """
        config = make_config(flavors=[ProductFlavor(name="f1"), ProductFlavor(name="fa")])

        assert config.full_name == "F1FaDebug"
        assert config.flavor_name == "F1Fa"
        assert config.flavored_name == "f1Fa"
        assert config.has_flavors

    def test_full_name_without_flavors(self, make_config):
        """Test names without flavors."""
        config = make_config(build_type=BuildType(name="release"))

        assert config.full_name == "Release"
        assert config.flavor_name == ""

    def test_test_variant_name(self, make_config):
        """Test the test variant suffix."""
        tested = make_config(flavors=[ProductFlavor(name="f1")])
        test = make_config(flavors=[ProductFlavor(name="f1")], variant_type=VariantType.TEST, tested=tested)

        assert test.full_name == "F1Test"


class TestPackageNames:
    """Tests for package name derivation."""

    def test_package_from_manifest(self, make_config):
        """Test the package without overrides."""
        config = make_config()

        assert config.package_name == "com.example.app"
        assert config.package_override is None
        assert config.original_package_name == "com.example.app"

    def test_flavor_package_override(self, make_config):
        """Test a flavor package.

        Verifies that the flavor package replaces the manifest package while
        generated sources stay in the manifest package.
        """
        config = make_config(flavors=[ProductFlavor(name="f1", package_name="com.example.free")])

        assert config.package_name == "com.example.free"
        assert config.original_package_name == "com.example.app"

    @pytest.mark.parametrize("suffix", ["debug", ".debug"])
    def test_build_type_suffix(self, make_config, suffix):
        """Test the build type suffix.

        Verifies that the suffix is appended with a single dot, whether or
        not it starts with one.
        """
        config = make_config(build_type=BuildType(name="debug", package_name_suffix=suffix))
        assert config.package_name == "com.example.app.debug"

    def test_suffix_applies_to_flavor_package(self, make_config):
        """Test the suffix on top of a flavor package."""
        config = make_config(
            build_type=BuildType(name="debug", package_name_suffix=".dev"),
            flavors=[ProductFlavor(name="f1", package_name="com.example.free")],
        )
        assert config.package_override == "com.example.free.dev"

    def test_test_package_defaults_to_tested_plus_test(self, make_config):
        """Test the default test package."""
        tested = make_config(flavors=[ProductFlavor(name="f1", package_name="com.example.free")])
        test = make_config(
            flavors=[ProductFlavor(name="f1", package_name="com.example.free")],
            variant_type=VariantType.TEST,
            tested=tested,
        )

        assert test.package_name == "com.example.free.test"
        assert test.original_package_name == "com.example.free.test"
        assert test.tested_package_name == "com.example.free"

    def test_explicit_test_package(self, make_config):
        """Test a declared test package name."""
        default = ProductFlavor(name="main", test_package_name="com.example.tests")
        tested = make_config(default_config=default)
        test = make_config(default_config=default, variant_type=VariantType.TEST, tested=tested)

        assert test.package_name == "com.example.tests"

    def test_library_test_targets_itself(self, make_config, temp_dir):
        """Test the tested package of a library test.

        Verifies that the test of a library instruments its own package.
        """
        library = make_config(variant_type=VariantType.LIBRARY, output_folder=temp_dir / "bundles" / "debug")
        test = make_config(variant_type=VariantType.TEST, tested=library)

        assert test.tested_package_name == test.package_name == "com.example.app.test"

    def test_production_variant_has_no_tested_package(self, make_config):
        """Test tested package outside test variants."""
        assert make_config().tested_package_name is None


class TestDerivedValues:
    """Tests for the other derived queries."""

    def test_instrumentation_runner(self, make_config):
        """Test the instrumentation runner.

        Verifies the default runner and that a test variant uses the runner
        declared on the tested variant.
        """
        plain = make_config()
        custom = make_config(flavors=[ProductFlavor(name="f1", test_instrumentation_runner="com.example.Runner")])
        test = make_config(
            flavors=[ProductFlavor(name="f1")],
            variant_type=VariantType.TEST,
            tested=custom,
        )

        assert plain.instrumentation_runner == DEFAULT_TEST_RUNNER
        assert test.instrumentation_runner == "com.example.Runner"

    def test_min_sdk_from_flavor_then_manifest(self, make_config):
        """Test minSdkVersion resolution."""
        assert make_config().min_sdk_version == 8
        assert make_config(flavors=[ProductFlavor(name="f1", min_sdk_version=14)]).min_sdk_version == 14

    def test_test_min_sdk_comes_from_tested(self, make_config):
        """Test minSdkVersion of a test variant."""
        tested = make_config(flavors=[ProductFlavor(name="f1", min_sdk_version=11)])
        test = make_config(variant_type=VariantType.TEST, tested=tested)

        assert test.min_sdk_version == 11

    def test_resource_inputs_priority(self, make_config, sources):
        """Test resource overlay order.

        Verifies build type, then flavors in the order they were added, then
        the default config, then library resources.
        """
        lib = BundleDependency(Path("/libs/lib1"), name="lib1")
        config = make_config(
            flavors=[ProductFlavor(name="f1"), ProductFlavor(name="fa")],
            libraries=[lib],
        )

        assert config.resource_inputs == [
            sources["debug"].res_dir,
            sources["f1"].res_dir,
            sources["fa"].res_dir,
            sources["main"].res_dir,
            lib.res_folder,
        ]

    def test_manifest_overlays_only_existing(self, make_config, sources, write_manifest):
        """Test manifest overlays.

        Verifies that only the build type and flavor manifests on disk are
        overlays, build type first.
        """
        write_manifest(sources["fa"].manifest_file)
        write_manifest(sources["debug"].manifest_file)

        config = make_config(flavors=[ProductFlavor(name="f1"), ProductFlavor(name="fa")])

        assert config.manifest_overlays == [sources["debug"].manifest_file, sources["fa"].manifest_file]
        assert config.main_manifest == sources["main"].manifest_file

    def test_java_sources_of_every_layer(self, make_config, sources):
        """Test source folder collection."""
        config = make_config(flavors=[ProductFlavor(name="f1")])

        assert config.java_source_dirs == [
            sources["main"].java_dir,
            sources["debug"].java_dir,
            sources["f1"].java_dir,
        ]

    def test_build_config_lines(self, make_config):
        """Test BuildConfig lines.

        Verifies that each non-empty block is preceded by a comment naming
        the layer it comes from.
        """
        config = make_config(
            default_config=ProductFlavor(name="main", build_config=ConstantLines.of("int A = 1;")),
            build_type=BuildType(name="debug", build_config=ConstantLines.of("int B = 2;")),
            flavors=[
                ProductFlavor(name="f1"),
                ProductFlavor(name="fa", build_config=ConstantLines.of("int C = 3;", "int D = 4;")),
            ],
        )

        assert config.build_config_lines == [
            "// lines from default config.",
            "int A = 1;",
            "// lines from build type: debug",
            "int B = 2;",
            "// lines from product flavor: fa",
            "int C = 3;",
            "int D = 4;",
        ]

    def test_queries_are_stable(self, make_config):
        """Test that derived queries give the same answer every time."""
        c = BundleDependency(Path("/libs/c"), name="c")
        a = BundleDependency(Path("/libs/a"), name="a", dependencies=[c])
        config = make_config(libraries=[a])

        assert config.all_libraries == config.all_libraries == [a, c]
        assert config.direct_libraries == [a]
        assert config.package_name == config.package_name


class TestJars:
    """Tests for jar selection."""

    def test_packaged_jars_existing_and_packaged(self, make_config, temp_dir):
        """Test the packaged jars.

        Verifies that missing or non-packaged jars are left out and library
        class archives on disk are added once.
        """
        kept = temp_dir / "kept.jar"
        kept.write_bytes(b"")
        provided = temp_dir / "provided.jar"
        provided.write_bytes(b"")
        lib = BundleDependency(temp_dir / "lib1", name="lib1")
        lib.bundle_folder.mkdir()
        lib.jar_file.write_bytes(b"")

        config = make_config(
            jars=[
                JarDependency(location=kept),
                JarDependency(location=kept),
                JarDependency(location=provided, packaged=False),
                JarDependency(location=temp_dir / "missing.jar"),
            ],
            libraries=[lib],
        )

        assert config.packaged_jars == [kept, lib.jar_file]

    def test_compile_classpath(self, make_config, temp_dir):
        """Test the compile classpath.

        Verifies that jars not meant for compilation are left out while
        library class archives are always there.
        """
        lib = BundleDependency(temp_dir / "lib1", name="lib1")
        config = make_config(
            jars=[
                JarDependency(location=temp_dir / "api.jar"),
                JarDependency(location=temp_dir / "runtime.jar", compiled=False),
            ],
            libraries=[lib],
        )

        assert config.compile_classpath == frozenset({temp_dir / "api.jar", lib.jar_file})


class TestLibraryOutput:
    """Tests for library bundles."""

    def test_library_output_bundle(self, make_config, temp_dir):
        """Test the bundle of a library variant.

        Verifies that the output carries the variant name, the bundle folder
        and the direct libraries.
        """
        dep = BundleDependency(temp_dir / "dep", name="dep")
        config = make_config(
            variant_type=VariantType.LIBRARY,
            output_folder=temp_dir / "bundles" / "debug",
            output_name="Debug",
            libraries=[dep],
        )

        assert config.output is not None
        assert config.output.name == "Debug"
        assert config.output.bundle_folder == temp_dir / "bundles" / "debug"
        assert config.output.dependencies == [dep]

    def test_library_test_depends_on_library(self, make_config, temp_dir):
        """Test the dependencies of a library test.

        Verifies that the library bundle comes first among the test's
        libraries, followed by the libraries of the library.
        """
        dep = BundleDependency(temp_dir / "dep", name="dep")
        library = make_config(
            variant_type=VariantType.LIBRARY,
            output_folder=temp_dir / "bundles" / "debug",
            output_name="Debug",
            libraries=[dep],
        )
        test = make_config(variant_type=VariantType.TEST, tested=library)

        assert [lib.name for lib in test.all_libraries] == ["Debug", "dep"]
        assert test.manifest_dependencies == [library.output]
