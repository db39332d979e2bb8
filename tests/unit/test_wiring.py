"""Unit tests for build task wiring."""

from pathlib import Path

import pytest

from apkforge.core.exceptions import DependencyError
from apkforge.core.types import TaskStatus
from apkforge.models import ProductFlavor, SigningConfig
from apkforge.models.project import LibraryDeclaration, SourceSetDependencies
from apkforge.orchestration import (
    VariantManager,
    VariantTaskGraphBuilder,
    create_task_graph,
    execute_build_task,
)

RELEASE_SIGNING = SigningConfig(
    store_location="release.keystore",
    store_password="store",
    key_alias="release",
    key_password="key",
)


@pytest.fixture
def build_graph(config, manifest_parser):
    """Create the task graph of a project."""

    def build(project):
        manager = VariantManager(project, config, manifest_parser)
        return VariantTaskGraphBuilder(project, manager.variants, config).build()

    return build


def deps(graph, name):
    return set(graph.get(name).depends_on)


class TestApplicationTasks:
    """Tests for the tasks of an application without flavors."""

    def test_variant_task_chain(self, make_project, build_graph):
        """Test the tasks of the debug variant.

        Verifies the dependencies from library preparation to the install
        task.
        """
        graph = build_graph(make_project())

        assert deps(graph, "processDebugManifest") == {"prepareDebugDependencies"}
        assert deps(graph, "processDebugRes") == {"processDebugManifest", "processDebugImages"}
        assert deps(graph, "compileDebugAidl") == {"prepareDebugDependencies"}
        assert deps(graph, "compileDebug") == {
            "processDebugRes",
            "generateDebugBuildConfig",
            "compileDebugAidl",
        }
        assert deps(graph, "dexDebug") == {"compileDebug"}
        assert deps(graph, "packageDebug") == {
            "jniBuildDebug",
            "processDebugRes",
            "dexDebug",
            "processDebugJavaRes",
        }
        assert deps(graph, "installDebug") == {"packageDebug"}
        assert deps(graph, "assembleDebug") == {"packageDebug"}

    def test_unsigned_release_not_installable(self, make_project, build_graph):
        """Test an unsigned release.

        Verifies that an unsigned variant is neither aligned nor installable
        and that its APK is marked unsigned.
        """
        graph = build_graph(make_project())

        assert "zipalignRelease" not in graph
        assert "installRelease" not in graph
        assert "uninstallRelease" in graph
        assert graph.get("packageRelease").outputs[0].name == "app-release-unsigned.apk"

    def test_signed_release_aligned(self, make_project, build_graph):
        """Test a signed release."""
        project = make_project(default_config=ProductFlavor(name="main", signing=RELEASE_SIGNING))
        graph = build_graph(project)

        assert graph.get("packageRelease").outputs[0].name == "app-release-unaligned.apk"
        assert deps(graph, "zipalignRelease") == {"packageRelease"}
        assert deps(graph, "installRelease") == {"zipalignRelease"}
        assert graph.get("zipalignRelease").outputs == [
            project.project_dir / "build" / "apk" / "app-release.apk"
        ]

    def test_aggregates(self, make_project, build_graph):
        """Test the top level tasks."""
        graph = build_graph(make_project())

        assert deps(graph, "assemble") == {"assembleDebug", "assembleRelease"}
        assert deps(graph, "uninstallAll") == {"uninstallDebug", "uninstallRelease", "uninstallTest"}
        assert deps(graph, "check") == {"checkDebug"}
        assert "androidDependencies" in graph

    def test_test_tasks(self, make_project, build_graph):
        """Test the tasks of the test variant.

        Verifies that the test compiles against the tested variant and that
        the check task installs both APKs, runs the tests and uninstalls.
        """
        graph = build_graph(make_project())

        assert "processTestTestManifest" in graph
        assert "compileDebug" in deps(graph, "compileTest")
        assert "zipalignTest" not in graph
        assert deps(graph, "runDebugTests") == {"installDebug", "installTest"}
        assert deps(graph, "checkDebug") == {
            "assembleDebug",
            "assembleTest",
            "installDebug",
            "installTest",
            "runDebugTests",
            "uninstallDebug",
            "uninstallTest",
        }
        assert "processTestTestManifest" in deps(graph, "generateTestBuildConfig")

    def test_archive_names(self, make_project, config, build_graph):
        """Test output file names."""
        config.build.archives_base_name = "shop"
        project = make_project()
        graph = build_graph(project)

        libs = project.project_dir / "build" / "libs"
        assert graph.get("dexDebug").outputs == [libs / "shop-debug.dex"]
        assert libs / "shop-debug.ap_" in graph.get("processDebugRes").outputs

    def test_execution_order(self, make_project, build_graph):
        """Test the order of an assemble build."""
        graph = build_graph(make_project())

        order = [task.name for task in graph.topological_order(["assembleDebug"])]

        for before, after in [
            ("prepareDebugDependencies", "processDebugManifest"),
            ("processDebugManifest", "processDebugRes"),
            ("processDebugRes", "compileDebug"),
            ("compileDebug", "dexDebug"),
            ("dexDebug", "packageDebug"),
        ]:
            assert order.index(before) < order.index(after)
        assert order[-1] == "assembleDebug"
        assert "compileRelease" not in order

    def test_check_uninstalls_after_running_tests(self, make_project, build_graph):
        """Test the order of a check build.

        Verifies that both APKs are installed before the instrumentation runs
        and uninstalled only after it finished.
        """
        graph = build_graph(make_project())

        order = [task.name for task in graph.topological_order(["checkDebug"])]

        run_tests = order.index("runDebugTests")
        assert order.index("installDebug") < run_tests
        assert order.index("installTest") < run_tests
        assert order.index("uninstallDebug") > run_tests
        assert order.index("uninstallTest") > run_tests
        assert order[-1] == "checkDebug"

    def test_uninstall_alone_needs_no_build(self, make_project, build_graph):
        """Test an uninstall build.

        Verifies that the ordering after the test run does not pull the
        test run into the build.
        """
        graph = build_graph(make_project())

        order = [task.name for task in graph.topological_order(["uninstallAll"])]

        assert order == ["uninstallDebug", "uninstallRelease", "uninstallTest", "uninstallAll"]


class TestFlavoredTasks:
    """Tests for the tasks of a flavored application."""

    @pytest.fixture
    def graph(self, make_project, build_graph):
        return build_graph(
            make_project(
                product_flavors=[
                    ProductFlavor(name="f1", flavor_group="group1"),
                    ProductFlavor(name="fa", flavor_group="group2"),
                    ProductFlavor(name="fb", flavor_group="group2"),
                ],
                flavor_groups=["group1", "group2"],
            )
        )

    def test_flavor_aggregates(self, graph):
        """Test the per-flavor and per-build-type assemble tasks."""
        assert deps(graph, "assembleF1Fa") == {"assembleF1FaDebug", "assembleF1FaRelease"}
        assert deps(graph, "assembleDebug") == {"assembleF1FaDebug", "assembleF1FbDebug"}
        assert {"assembleDebug", "assembleRelease", "assembleF1Fa", "assembleF1Fb"} <= deps(graph, "assemble")

    def test_assemble_test(self, graph):
        """Test the aggregate of the test applications."""
        assert deps(graph, "assembleTest") == {"assembleF1FaTest", "assembleF1FbTest"}
        assert deps(graph, "check") == {"checkF1FaDebug", "checkF1FbDebug"}

    def test_flavored_output_folders(self, graph):
        """Test the output folders of flavored variants."""
        outputs = graph.get("processF1FaDebugJavaRes").outputs
        assert outputs[0].parts[-4:] == ("javaResources", "f1", "fa", "debug")


class TestLibraryTasks:
    """Tests for the tasks of a library project."""

    @pytest.fixture
    def project(self, make_project):
        return make_project(name="lib", is_library=True)

    def test_bundle_tasks(self, project, build_graph):
        """Test the bundle tasks.

        Verifies that a library is bundled instead of being dexed and
        packaged as an APK.
        """
        graph = build_graph(project)

        assert "dexDebug" not in graph
        assert "processDebugImages" not in graph
        assert deps(graph, "bundleDebug") == {
            "packageDebugJar",
            "packageDebugRes",
            "packageDebugAidl",
            "packageDebugSymbols",
        }
        assert deps(graph, "packageDebugJar") == {"compileDebug", "processDebugJavaRes"}
        assert deps(graph, "assembleDebug") == {"bundleDebug"}

    def test_archive_classifiers(self, project, build_graph):
        """Test library archive names."""
        graph = build_graph(project)
        libs = project.project_dir / "build" / "libs"

        assert graph.get("bundleDebug").outputs == [libs / "lib-debug.aar"]
        assert graph.get("bundleRelease").outputs == [libs / "lib.aar"]

    def test_library_manifest_in_bundle(self, project, build_graph):
        """Test the merged manifest location of a library."""
        graph = build_graph(project)

        assert graph.get("processDebugManifest").outputs == [
            project.project_dir / "build" / "bundles" / "debug" / "AndroidManifest.xml"
        ]

    def test_library_test_tasks(self, project, build_graph):
        """Test the tests of a library.

        Verifies that the test waits for the bundle and that only the test
        APK is installed.
        """
        graph = build_graph(project)

        assert "bundleDebug" in deps(graph, "processTestTestManifest")
        assert "bundleDebug" in deps(graph, "processTestImages")
        assert deps(graph, "runDebugTests") == {"installTest"}
        assert deps(graph, "checkDebug") == {
            "bundleDebug",
            "assembleTest",
            "installTest",
            "runDebugTests",
            "uninstallTest",
        }


class TestTaskActions:
    """Tests for running wired tasks."""

    def test_build_config_generated(self, make_project, config, builder):
        """Test the BuildConfig task.

        Verifies that the generated class lands in the package of the main
        manifest under the variant source folder.
        """
        project = make_project(package="com.example.shop")
        graph = create_task_graph(project, config)

        result = execute_build_task(graph.get("generateDebugBuildConfig"), builder)

        generated = project.project_dir / "build" / "source" / "debug" / "com" / "example" / "shop" / "BuildConfig.java"
        assert result.status == TaskStatus.COMPLETED
        assert "DEBUG = true" in generated.read_text(encoding="utf-8")

    def test_manifest_task_copies_main_manifest(self, make_project, config, builder):
        """Test the manifest task of a variant without overlays."""
        project = make_project()
        graph = create_task_graph(project, config)

        execute_build_task(graph.get("processReleaseManifest"), builder)

        merged = project.project_dir / "build" / "manifests" / "release" / "AndroidManifest.xml"
        assert merged.read_bytes() == (project.project_dir / "src" / "main" / "AndroidManifest.xml").read_bytes()

    def test_prepare_requires_library_manifest(self, make_project, config, builder):
        """Test preparing a library without manifest."""
        project = make_project(
            libraries=[LibraryDeclaration(name="lib1", bundle_folder=Path("libs/lib1"))],
            dependencies={"main": SourceSetDependencies(libraries=["lib1"])},
        )
        graph = create_task_graph(project, config)

        with pytest.raises(DependencyError):
            execute_build_task(graph.get("prepareDebugDependencies"), builder)

    def test_uninstall_command(self, make_project, config, builder, runner):
        """Test the uninstall task."""
        graph = create_task_graph(make_project(), config)

        result = execute_build_task(graph.get("uninstallTest"), builder)

        assert runner.commands[0][1:] == ["uninstall", "com.example.app.test"]
        assert result.metadata["command"] == runner.commands[0]
