"""Unit tests for the toolchain builder."""

import os

import pytest

from apkforge.core.config import AaptOptions, DexOptions
from apkforge.core.exceptions import ConfigurationError, ToolchainError
from apkforge.models import BundleDependency
from apkforge.services.manifest import CommandLineManifestMerger, XmlManifestMerger
from apkforge.services.toolchain import AndroidBuilder
from apkforge.variant import VariantType


class TestProcessResources:
    """Tests for the aapt command line."""

    def test_application_command(self, builder, runner, temp_dir, android_target):
        """Test resources of an application.

        Verifies the inputs, the packaged resources output, the debug flag
        and the package rename.
        """
        res = temp_dir / "src" / "main" / "res"
        res.mkdir(parents=True)
        manifest = temp_dir / "AndroidManifest.xml"

        command = builder.process_resources(
            manifest,
            None,
            [res, temp_dir / "missing"],
            None,
            [],
            "com.example.app.debug",
            temp_dir / "source",
            temp_dir / "symbols",
            temp_dir / "libs" / "app-debug.ap_",
            None,
            VariantType.DEFAULT,
            True,
        )

        assert runner.commands == [command]
        assert command[:2] == [str(android_target.aapt), "package"]
        assert command[command.index("-I") + 1] == str(android_target.android_jar)
        assert command.count("-S") == 1
        assert "--auto-add-overlay" in command
        assert command[command.index("-F") + 1] == str(temp_dir / "libs" / "app-debug.ap_")
        assert "--debug-mode" in command
        assert command[command.index("--rename-manifest-package") + 1] == "com.example.app.debug"
        assert "--output-text-symbols" not in command

    def test_library_command(self, builder, temp_dir):
        """Test resources of a library.

        Verifies that a library gets non constant identifiers and a symbol
        file but no packaged resources.
        """
        command = builder.process_resources(
            temp_dir / "AndroidManifest.xml",
            None,
            [],
            None,
            [],
            None,
            temp_dir / "source",
            temp_dir / "symbols",
            temp_dir / "lib.ap_",
            None,
            VariantType.LIBRARY,
            False,
        )

        assert "--non-constant-id" in command
        assert "-F" not in command
        assert "--debug-mode" not in command
        assert command[command.index("--output-text-symbols") + 1] == str(temp_dir / "symbols")

    def test_options(self, builder, temp_dir):
        """Test aapt options."""
        command = builder.process_resources(
            temp_dir / "AndroidManifest.xml",
            None,
            [],
            None,
            [],
            None,
            temp_dir / "source",
            None,
            None,
            None,
            VariantType.DEFAULT,
            False,
            AaptOptions(ignore_assets="*.txt", no_compress=["ogg", "mp3"]),
        )

        assert command[command.index("---ignore-assets") + 1] == "*.txt"
        assert command[-4:] == ["-0", "ogg", "-0", "mp3"]

    def test_no_output(self, builder, temp_dir):
        """Test a call without any output."""
        with pytest.raises(ConfigurationError):
            builder.process_resources(
                temp_dir / "AndroidManifest.xml",
                None,
                [],
                None,
                [],
                None,
                None,
                None,
                None,
                None,
                VariantType.DEFAULT,
                False,
            )

    def test_library_symbols_regenerated(self, builder, temp_dir, write_manifest):
        """Test R classes of libraries.

        Verifies that an application writes an R class for each library
        with the identifiers assigned in the application.
        """
        lib = BundleDependency(temp_dir / "lib", name="lib")
        write_manifest(lib.manifest, "com.example.lib")
        lib.symbol_file.write_text("int string lib_name 0x7f040000\n", encoding="utf-8")
        symbols = temp_dir / "symbols"
        symbols.mkdir()
        (symbols / "R.txt").write_text(
            "int string app_name 0x7f040000\nint string lib_name 0x7f040001\n",
            encoding="utf-8",
        )

        command = builder.process_resources(
            temp_dir / "AndroidManifest.xml",
            None,
            [],
            None,
            [lib],
            None,
            temp_dir / "source",
            symbols,
            temp_dir / "app.ap_",
            None,
            VariantType.DEFAULT,
            True,
        )

        r_java = (temp_dir / "source" / "com" / "example" / "lib" / "R.java").read_text(encoding="utf-8")
        assert "--output-text-symbols" in command
        assert "public static final int lib_name = 0x7f040001;" in r_java
        assert "app_name" not in r_java


class TestCodeSteps:
    """Tests for aidl, javac and dx."""

    def test_process_images_needs_existing_folder(self, builder, runner, temp_dir):
        """Test image crunching.

        Verifies that nothing runs without an existing folder and that
        existing folders are crunched into the output folder.
        """
        builder.process_images(temp_dir / "out", [temp_dir / "missing"])
        assert runner.commands == []

        res = temp_dir / "res"
        res.mkdir()
        builder.process_images(temp_dir / "out", [res])

        assert runner.commands[0][1:] == ["crunch", "-S", str(res.absolute()), "-C", str(temp_dir / "out")]

    def test_compile_aidl_per_file(self, builder, runner, temp_dir, android_target):
        """Test AIDL compilation.

        Verifies one aidl call per file, with the framework and import
        folders.
        """
        aidl = temp_dir / "aidl"
        (aidl / "com" / "example").mkdir(parents=True)
        (aidl / "com" / "example" / "IService.aidl").write_text("", encoding="utf-8")
        (aidl / "com" / "example" / "IData.aidl").write_text("", encoding="utf-8")
        imports = temp_dir / "lib" / "aidl"

        count = builder.compile_aidl([aidl, temp_dir / "missing"], temp_dir / "out", [imports])

        assert count == 2
        first = runner.commands[0]
        assert first[1] == f"-p{android_target.framework_aidl}"
        assert f"-I{aidl.absolute()}" in first
        assert f"-I{imports.absolute()}" in first
        assert first[-1].endswith("IData.aidl")

    def test_convert_byte_code(self, builder, temp_dir):
        """Test dex conversion.

        Verifies that inputs missing on disk are skipped and the core
        library option is passed.
        """
        classes = temp_dir / "classes"
        classes.mkdir()
        jar = temp_dir / "lib.jar"
        jar.write_bytes(b"")

        command = builder.convert_byte_code(
            [classes],
            [jar, temp_dir / "missing.jar"],
            temp_dir / "out" / "app.dex",
            DexOptions(core_library=True),
        )

        assert "--core-library" in command
        assert command[-2:] == [str(classes.absolute()), str(jar.absolute())]

    def test_compile_java_without_sources(self, builder, runner, temp_dir):
        """Test javac without any source."""
        assert builder.compile_java([temp_dir / "java"], [], temp_dir / "classes") is None
        assert runner.commands == []

    def test_compile_java(self, builder, temp_dir, android_target):
        """Test the javac command line."""
        java = temp_dir / "java" / "com" / "example"
        java.mkdir(parents=True)
        (java / "Main.java").write_text("class Main {}", encoding="utf-8")
        jar = temp_dir / "lib.jar"
        jar.write_bytes(b"")

        command = builder.compile_java([temp_dir / "java"], [jar, temp_dir / "missing.jar"], temp_dir / "classes")

        assert command[0] == "javac"
        assert command[command.index("-source") + 1] == "1.6"
        assert command[command.index("-classpath") + 1] == str(jar)
        bootclasspath = command[command.index("-bootclasspath") + 1].split(os.pathsep)
        assert bootclasspath == [str(android_target.android_jar)]
        assert command[-1].endswith("Main.java")

    def test_generate_build_config(self, builder, temp_dir):
        """Test the generated BuildConfig class."""
        generated = builder.generate_build_config(
            "com.example.app", False, ["public static final int LEVEL = 3;"], temp_dir / "source"
        )

        content = generated.read_text(encoding="utf-8")
        assert generated == temp_dir / "source" / "com" / "example" / "app" / "BuildConfig.java"
        assert "package com.example.app;" in content
        assert "public final static boolean DEBUG = false;" in content
        assert "    public static final int LEVEL = 3;" in content


class TestDeviceSteps:
    """Tests for zipalign, adb and ndk-build."""

    def test_zip_align(self, builder, temp_dir, android_target):
        """Test the zipalign command line."""
        command = builder.zip_align(temp_dir / "in.apk", temp_dir / "out.apk")

        assert command == [
            str(android_target.zipalign),
            "-f",
            "4",
            str(temp_dir / "in.apk"),
            str(temp_dir / "out.apk"),
        ]

    def test_install(self, builder, temp_dir, android_target):
        """Test installing an APK."""
        command = builder.install_apk(temp_dir / "app.apk")
        assert command == [str(android_target.adb), "install", "-r", str(temp_dir / "app.apk")]

    def test_instrumentation_failure(self, builder, runner):
        """Test failing instrumentation tests.

        Verifies that a failure report fails the step although adb succeeds.
        """
        runner.output = "Tests run: 3,  Failures: 1\nFAILURES!!!\n"

        with pytest.raises(ToolchainError):
            builder.run_instrumentation_tests("com.example.app.test", "android.test.InstrumentationTestRunner")

    def test_instrumentation_success(self, builder, runner):
        """Test passing instrumentation tests."""
        runner.output = "OK (3 tests)\n"

        report = builder.run_instrumentation_tests("com.example.app.test", "com.example.Runner")

        assert report == "OK (3 tests)\n"
        assert runner.commands[0][-1] == "com.example.app.test/com.example.Runner"

    def test_ndk_build_runs_in_project(self, builder, runner, temp_dir):
        """Test the native build."""
        builder.build_native_libraries(temp_dir / "ndk", temp_dir / "app")

        assert runner.commands[0] == [str(temp_dir / "ndk" / "ndk-build"), "all"]
        assert runner.cwds[0] == temp_dir / "app"


class TestManifestMergerChoice:
    """Tests for the merger used by the builder."""

    def test_default_merger(self, builder):
        """Test a configuration without merger tool."""
        assert isinstance(builder.manifest_service.merger, XmlManifestMerger)

    def test_configured_merger(self, android_target, config, runner, manifest_parser, temp_dir):
        """Test a configured manifmerger executable.

        Verifies that the builder merges through the tool with its own runner.
        """
        config.tools.manifest_merger_path = temp_dir / "manifmerger"

        builder = AndroidBuilder(android_target, config=config, runner=runner, manifest_parser=manifest_parser)

        merger = builder.manifest_service.merger
        assert isinstance(merger, CommandLineManifestMerger)
        assert merger.tool == temp_dir / "manifmerger"
        assert merger.runner is runner
