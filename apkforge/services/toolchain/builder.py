"""
Android Builder.

Turns the computed inputs of each build step into toolchain invocations:
image crunching, manifest processing, resource packaging, AIDL compilation,
Java compilation, dexing, native builds, BuildConfig generation, APK
packaging, signing, alignment and the device operations of a check run.
"""

from __future__ import annotations

import os
from collections.abc import Iterable, Sequence
from pathlib import Path

from ...core.config import AaptOptions, Config, DexOptions, get_config
from ...core.exceptions import ConfigurationError, PackagingError, ToolchainError
from ...core.logging import get_logger
from ...models.dependency import ManifestDependency, SymbolFileProvider
from ...models.flavor import SigningConfig
from ...variant.configuration import VariantType
from ..manifest.service import ManifestParser, ManifestService, create_manifest_merger, get_manifest_parser
from .packager import Packager, SigningInfo
from .runner import CommandLineRunner
from .sdk import AndroidTarget
from .symbols import SymbolLoader, SymbolWriter

logger = get_logger(__name__)

KEYTOOL = "keytool"
JAVAC = "javac"
NDK_BUILD = "ndk-build"
JAVA_LANGUAGE_LEVEL = "1.6"
DEBUG_KEY_DNAME = "CN=Android Debug,O=Android,C=US"
# 30 years, in days
DEBUG_KEY_VALIDITY = "10950"


class AndroidBuilder:
    """Issues the toolchain calls of a build.

    The builder is stateless between calls; everything a step needs is passed
    in by the task that runs it.
    """

    def __init__(
        self,
        target: AndroidTarget,
        config: Config | None = None,
        runner: CommandLineRunner | None = None,
        manifest_service: ManifestService | None = None,
        manifest_parser: ManifestParser | None = None,
    ) -> None:
        """Initialize the builder.

        Args:
            target: The compilation target.
            config: Configuration, defaults to get_config().
            runner: Process runner, replaceable in tests.
            manifest_service: Manifest merge driver. Uses the merger of
                ``tools.manifest_merger_path`` when set, else XmlManifestMerger.
            manifest_parser: Reader for library manifest packages.
        """
        self.target = target
        self.config = config or get_config()
        self.runner = runner or CommandLineRunner()
        self.manifest_service = manifest_service or ManifestService(
            create_manifest_merger(self.config.tools.manifest_merger_path, self.runner)
        )
        self.manifest_parser = manifest_parser or get_manifest_parser()

    @property
    def verbose_exec(self) -> bool:
        return self.config.build.verbose_exec

    def get_runtime_classpath(self) -> list[Path]:
        """Boot classpath: android.jar, optional libraries, annotations.jar up to API 15."""
        return self.target.runtime_classpath()

    def _run(self, tool: str, command: list[str], cwd: Path | None = None) -> str:
        logger.info(f"{tool} command", command=" ".join(command))
        return self.runner.run_cmd_line(command, cwd=cwd)

    # --- generated sources ---

    def generate_build_config(
        self,
        package_name: str,
        debuggable: bool,
        java_lines: Sequence[str],
        source_output_dir: Path,
    ) -> Path:
        """Generate ``BuildConfig.java``.

        Args:
            package_name: Package of the generated class.
            debuggable: Value of the ``DEBUG`` constant.
            java_lines: Extra declarations, written verbatim.
            source_output_dir: Source root, not the package folder.

        Returns:
            Path: The generated file.
        """
        package_dir = Path(source_output_dir).joinpath(*package_name.split("."))
        package_dir.mkdir(parents=True, exist_ok=True)

        body = [
            "/** Automatically generated file. DO NOT MODIFY */",
            f"package {package_name};",
            "",
            "public final class BuildConfig {",
            f"    public final static boolean DEBUG = {'true' if debuggable else 'false'};",
        ]
        if java_lines:
            body.append("")
            body.extend(f"    {line}" for line in java_lines)
        body.append("}")

        out = package_dir / "BuildConfig.java"
        out.write_text("\n".join(body) + "\n", encoding="utf-8")
        logger.debug("Generated BuildConfig", package=package_name, lines=len(java_lines))
        return out

    def process_images(self, res_output_dir: Path, inputs: Sequence[Path] | None) -> None:
        """Crunch PNG and 9-patch files of the existing input folders.

        Nothing runs when no input folder exists.
        """
        if not inputs:
            return

        command = [str(self.target.aapt), "crunch"]
        if self.verbose_exec:
            command.append("-v")

        run_command = False
        for folder in inputs:
            if folder.is_dir():
                command += ["-S", str(folder.absolute())]
                run_command = True

        if not run_command:
            return

        command += ["-C", str(res_output_dir)]
        self._run("processImages", command)

    # --- manifests ---

    def process_manifest(
        self,
        main_manifest: Path,
        manifest_overlays: Sequence[Path],
        libraries: Sequence[ManifestDependency],
        version_code: int | None,
        version_name: str | None,
        min_sdk_version: int | None,
        target_sdk_version: int | None,
        out_manifest: Path,
    ) -> None:
        """Merge the manifest of a variant. See ManifestService.process_manifest."""
        self.manifest_service.process_manifest(
            main_manifest,
            manifest_overlays,
            libraries,
            version_code,
            version_name,
            min_sdk_version,
            target_sdk_version,
            out_manifest,
        )

    def process_test_manifest(
        self,
        test_package_name: str,
        min_sdk_version: int,
        tested_package_name: str,
        instrumentation_runner: str,
        libraries: Sequence[ManifestDependency],
        out_manifest: Path,
    ) -> None:
        """Create the manifest of a test variant."""
        self.manifest_service.process_test_manifest(
            test_package_name,
            min_sdk_version,
            tested_package_name,
            instrumentation_runner,
            libraries,
            out_manifest,
        )

    # --- resources ---

    def process_resources(
        self,
        manifest_file: Path,
        preprocess_res_dir: Path | None,
        res_inputs: Iterable[Path],
        assets_dir: Path | None,
        libraries: Sequence[SymbolFileProvider],
        package_override: str | None,
        source_output_dir: Path | None,
        symbol_output_dir: Path | None,
        res_package_output: Path | None,
        proguard_output: Path | None,
        variant_type: VariantType,
        debuggable: bool,
        options: AaptOptions | None = None,
    ) -> list[str]:
        """Generate ``R.java`` and/or the packaged resources.

        Args:
            manifest_file: The merged manifest.
            preprocess_res_dir: Output of image crunching, if any.
            res_inputs: Resource folders, highest priority first.
            assets_dir: Assets folder.
            libraries: Flattened libraries providing symbol files.
            package_override: Package to rename the manifest to.
            source_output_dir: Where ``R.java`` files go.
            symbol_output_dir: Where ``R.txt`` goes.
            res_package_output: The packaged resources file.
            proguard_output: Shrinker rules generated from the resources.
            variant_type: Kind of variant.
            debuggable: Whether the build is debuggable.
            options: aapt options, defaults to the configured ones.

        Returns:
            list[str]: The aapt command line.

        Raises:
            ConfigurationError: If neither output is requested.
        """
        if source_output_dir is None and res_package_output is None:
            raise ConfigurationError(
                message="No output provided for aapt task",
                field_name="res_package_output",
            )
        options = options or self.config.aapt

        command = [str(self.target.aapt), "package"]
        if self.verbose_exec:
            command.append("-v")

        command += ["-f", "--no-crunch"]

        # inputs
        command += ["-I", str(self.target.android_jar)]
        command += ["-M", str(Path(manifest_file).absolute())]

        if preprocess_res_dir is not None and preprocess_res_dir.is_dir():
            command += ["-S", str(preprocess_res_dir.absolute())]

        for folder in res_inputs:
            if folder.is_dir():
                command += ["-S", str(folder.absolute())]

        command.append("--auto-add-overlay")

        if assets_dir is not None and assets_dir.is_dir():
            command += ["-A", str(assets_dir.absolute())]

        # outputs
        if source_output_dir is not None:
            command += ["-m", "-J", str(source_output_dir)]

        if variant_type != VariantType.LIBRARY and res_package_output is not None:
            command += ["-F", str(res_package_output)]
            if proguard_output is not None:
                command += ["-G", str(proguard_output)]

        # options controlled by build variants
        if debuggable:
            command.append("--debug-mode")

        if variant_type == VariantType.DEFAULT and package_override is not None:
            command += ["--rename-manifest-package", package_override]
            logger.debug("Inserting package in AndroidManifest.xml", package=package_override)

        if variant_type == VariantType.LIBRARY:
            command.append("--non-constant-id")

        if options.ignore_assets is not None:
            command += ["---ignore-assets", options.ignore_assets]

        for extension in options.no_compress:
            command += ["-0", extension]

        if symbol_output_dir is not None and (variant_type == VariantType.LIBRARY or libraries):
            command += ["--output-text-symbols", str(symbol_output_dir)]

        for output in (source_output_dir, symbol_output_dir):
            if output is not None:
                Path(output).mkdir(parents=True, exist_ok=True)
        for output in (res_package_output, proguard_output):
            if output is not None:
                Path(output).parent.mkdir(parents=True, exist_ok=True)

        self._run("aapt", command)

        # an application regenerates R for every library with the final values
        if variant_type != VariantType.LIBRARY and libraries:
            self._write_library_symbols(libraries, source_output_dir, symbol_output_dir)

        return command

    def _write_library_symbols(
        self,
        libraries: Sequence[SymbolFileProvider],
        source_output_dir: Path | None,
        symbol_output_dir: Path | None,
    ) -> None:
        values: SymbolLoader | None = None
        for library in libraries:
            symbol_file = library.symbol_file
            # a library without resources has no symbol file
            if not symbol_file.is_file():
                continue
            if source_output_dir is None or symbol_output_dir is None:
                raise ConfigurationError(
                    message="Library symbols need both a source and a symbol output",
                    field_name="symbol_output_dir",
                )
            if values is None:
                values = SymbolLoader(Path(symbol_output_dir) / "R.txt").load()

            symbols = SymbolLoader(symbol_file).load()
            package_name = self.manifest_parser.get_package(library.manifest)
            SymbolWriter(source_output_dir, package_name, symbols, values).write()

    # --- code ---

    def compile_aidl(
        self,
        source_folders: Sequence[Path],
        source_output_dir: Path,
        import_folders: Sequence[Path],
    ) -> int:
        """Compile every ``.aidl`` file of the existing source folders.

        Returns:
            int: Number of files compiled.
        """
        existing = [folder for folder in source_folders if folder.is_dir()]
        base = [str(self.target.aidl), f"-p{self.target.framework_aidl}"]
        base += [f"-I{folder.absolute()}" for folder in existing]
        base += [f"-I{folder.absolute()}" for folder in import_folders]
        base.append(f"-o{source_output_dir}")

        Path(source_output_dir).mkdir(parents=True, exist_ok=True)
        count = 0
        for folder in existing:
            for aidl_file in sorted(folder.rglob("*.aidl")):
                self._run("aidl", [*base, str(aidl_file.absolute())])
                count += 1
        return count

    def convert_byte_code(
        self,
        classes_locations: Iterable[Path | None],
        libraries: Iterable[Path | None],
        out_dex_file: Path,
        options: DexOptions | None = None,
    ) -> list[str]:
        """Convert class files and jars to a dex file.

        Inputs that do not exist are skipped.

        Returns:
            list[str]: The dx command line.
        """
        options = options or self.config.dex

        command = [str(self.target.dx), "--dex"]
        if self.verbose_exec:
            command.append("--verbose")
        if options.core_library:
            command.append("--core-library")
        command += ["--output", str(out_dex_file)]

        classes = [str(f.absolute()) for f in classes_locations if f is not None and f.exists()]
        libs = [str(f.absolute()) for f in libraries if f is not None and f.exists()]
        logger.debug("Dex inputs", classes=classes, libraries=libs)
        command += classes + libs

        Path(out_dex_file).parent.mkdir(parents=True, exist_ok=True)
        self._run("dx", command)
        return command

    def compile_java(
        self,
        source_dirs: Sequence[Path],
        classpath: Iterable[Path],
        classes_output_dir: Path,
    ) -> list[str] | None:
        """Compile the Java sources of the existing source folders.

        Args:
            source_dirs: Source roots, generated sources included.
            classpath: Library jars and class folders compiled against.
            classes_output_dir: Where class files go.

        Returns:
            list[str] | None: The javac command line, or None when there is
                nothing to compile.
        """
        sources: list[str] = []
        for folder in source_dirs:
            if folder.is_dir():
                sources.extend(str(f.absolute()) for f in sorted(folder.rglob("*.java")))
        if not sources:
            logger.debug("No Java source to compile", output=str(classes_output_dir))
            return None

        command = [
            JAVAC,
            "-d",
            str(classes_output_dir),
            "-source",
            JAVA_LANGUAGE_LEVEL,
            "-target",
            JAVA_LANGUAGE_LEVEL,
            "-encoding",
            "UTF-8",
            "-bootclasspath",
            os.pathsep.join(str(p) for p in self.get_runtime_classpath()),
        ]
        entries = sorted(str(p) for p in classpath if p.exists())
        if entries:
            command += ["-classpath", os.pathsep.join(entries)]
        command += sources

        Path(classes_output_dir).mkdir(parents=True, exist_ok=True)
        self._run("javac", command)
        return command

    def build_native_libraries(self, ndk_dir: Path, project_dir: Path) -> list[str]:
        """Run ``ndk-build all`` in the project directory."""
        command = [str(Path(ndk_dir) / NDK_BUILD), "all"]
        self._run("ndk-build", command, cwd=project_dir)
        return command

    # --- packaging ---

    def package_apk(
        self,
        res_package: Path,
        dex_file: Path,
        packaged_jars: Sequence[Path],
        java_resources_dir: Path | None,
        jni_libs_dir: Path | None,
        debug_signed: bool,
        debug_jni: bool,
        signing: SigningConfig | None,
        out_apk: Path,
    ) -> Path:
        """Package and sign the APK.

        A debug-signed build uses the debug keystore, created on first use.
        Otherwise the release identity is used when complete, and the APK is
        left unsigned when it is not.

        Raises:
            DuplicateFileError: If two inputs provide the same archive path.
            PackagingError: If the debug keystore location is a folder.
        """
        signing_info = self._signing_info(debug_signed, signing)

        packager = Packager(
            out_apk,
            res_package,
            dex_file,
            signing=signing_info,
            runner=self.runner,
            signer=self.config.tools.signer_path,
        )
        packager.debug_jni_mode = debug_jni
        packager.add_resource_package()
        packager.add_dex()

        if java_resources_dir is not None:
            packager.add_source_folder(java_resources_dir)
        for jar in packaged_jars:
            packager.add_resources_from_jar(jar)
        if jni_libs_dir is not None:
            packager.add_native_libraries(jni_libs_dir)

        return packager.seal_apk()

    def _signing_info(self, debug_signed: bool, signing: SigningConfig | None) -> SigningInfo | None:
        if debug_signed:
            defaults = self.config.signing
            keystore = defaults.debug_keystore
            if keystore.is_dir():
                raise PackagingError(
                    message=f"A folder is in the way of the debug keystore: {keystore}"
                )
            if not keystore.exists():
                self._create_debug_store(keystore)
            return SigningInfo(
                keystore=keystore,
                store_password=defaults.store_password,
                key_alias=defaults.key_alias,
                key_password=defaults.key_password,
            )

        if signing is not None and signing.is_ready:
            return SigningInfo(
                keystore=Path(signing.store_location),  # type: ignore[arg-type]
                store_password=signing.store_password,  # type: ignore[arg-type]
                key_alias=signing.key_alias,  # type: ignore[arg-type]
                key_password=signing.key_password,  # type: ignore[arg-type]
            )
        return None

    def _create_debug_store(self, keystore: Path) -> None:
        defaults = self.config.signing
        keystore.parent.mkdir(parents=True, exist_ok=True)
        logger.info("Creating debug keystore", keystore=str(keystore))
        try:
            self._run(
                "keytool",
                [
                    KEYTOOL,
                    "-genkey",
                    "-keystore",
                    str(keystore),
                    "-storepass",
                    defaults.store_password,
                    "-alias",
                    defaults.key_alias,
                    "-keypass",
                    defaults.key_password,
                    "-keyalg",
                    "RSA",
                    "-keysize",
                    "2048",
                    "-validity",
                    DEBUG_KEY_VALIDITY,
                    "-dname",
                    DEBUG_KEY_DNAME,
                ],
            )
        except ToolchainError as e:
            raise PackagingError(
                message=f"Unable to create the debug keystore {keystore}",
                cause=e,
            ) from e

    def zip_align(self, input_apk: Path, output_apk: Path) -> list[str]:
        """Align the APK on 4-byte boundaries."""
        command = [str(self.target.zipalign), "-f", "4", str(input_apk), str(output_apk)]
        self._run("zipalign", command)
        return command

    # --- device ---

    def install_apk(self, apk: Path) -> list[str]:
        """Install, or reinstall, an APK on the connected device."""
        command = [str(self.target.adb), "install", "-r", str(apk)]
        self._run("adb", command)
        return command

    def uninstall_package(self, package_name: str) -> list[str]:
        command = [str(self.target.adb), "uninstall", package_name]
        self._run("adb", command)
        return command

    def run_instrumentation_tests(self, test_package_name: str, instrumentation_runner: str) -> str:
        """Run the instrumentation of an installed test package.

        Returns:
            str: The instrumentation report.

        Raises:
            ToolchainError: If adb fails or the report contains a failure.
        """
        command = [
            str(self.target.adb),
            "shell",
            "am",
            "instrument",
            "-w",
            f"{test_package_name}/{instrumentation_runner}",
        ]
        report = self._run("adb", command)
        # am instrument exits with 0 even when tests fail
        if "FAILURES!!!" in report or "INSTRUMENTATION_FAILED" in report:
            raise ToolchainError(
                message=f"Instrumentation tests failed for {test_package_name}",
                tool="adb",
                command=command,
            )
        return report
