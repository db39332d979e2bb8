"""
Task wiring.

Creates the build tasks of every variant and their dependencies:

    prepare -> processManifest -> processRes -> compile
    processImages -> processRes
    prepare -> compileAidl -> compile
    generateBuildConfig -> compile
    compile -> dex -> package -> zipalign -> assemble
    processJavaRes, jniBuild -> package
    zipalign -> install

Library variants replace the dex and packaging steps with the bundle steps.
Test variants add the instrumentation run and the check tasks of the variant
they test. Each task computes the inputs of its toolchain call when it runs,
so building the graph reads no more than the variants already did.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

from ..core.config import Config, get_config, locate_ndk
from ..core.exceptions import DependencyError, TaskGraphError
from ..core.logging import get_logger
from ..models.project import AndroidProject
from ..models.source import existing_dir
from ..services.toolchain.builder import AndroidBuilder
from ..services.toolchain.bundle import (
    bundle_archive_name,
    copy_folders,
    explode_bundle,
    package_classes_jar,
    zip_bundle,
)
from ..variant.configuration import VariantType
from .graph import BuildTask, TaskGraph
from .manager import DIR_BUNDLES, dependency_report, resolve_build_dir
from .variants import BuildVariant

logger = get_logger(__name__)

ASSEMBLE = "assemble"
ASSEMBLE_TEST = "assembleTest"
CHECK = "check"
UNINSTALL_ALL = "uninstallAll"
ANDROID_DEPENDENCIES = "androidDependencies"


def _capitalize(name: str) -> str:
    return name[:1].upper() + name[1:]


class VariantTaskGraphBuilder:
    """Builds the task graph of a set of variants.

    Variants must be given tested variants first, which is the order the
    VariantManager creates them in.
    """

    def __init__(
        self,
        project: AndroidProject,
        variants: Sequence[BuildVariant],
        config: Config | None = None,
    ) -> None:
        self.project = project
        self.variants = list(variants)
        self.config = config or get_config()
        self.build_dir = resolve_build_dir(project, self.config)
        self.archives_base_name = self.config.build.archives_base_name or project.name
        self._catalog = {declaration.name for declaration in project.libraries}
        self._archives = project.library_archives()
        self._graph = TaskGraph()
        # variant name -> name of its assemble task
        self._assemble_tasks: dict[str, str] = {}

    def build(self) -> TaskGraph:
        """Create every task.

        Returns:
            TaskGraph: The validated graph.

        Raises:
            TaskGraphError: If two tasks share a name or a dependency is
                missing.
        """
        self._aggregate(ASSEMBLE, "Assembles all variants of all applications and secondary packages.")
        self._aggregate(CHECK, "Runs all checks.")
        self._aggregate(UNINSTALL_ALL, "Uninstall all applications.")
        if any(v.is_test and v.config.has_flavors for v in self.variants):
            self._aggregate(ASSEMBLE_TEST, "Assembles all the Test applications")

        for variant in self.variants:
            if variant.is_test:
                self._create_test_tasks(variant)
            elif variant.is_library:
                self._create_library_tasks(variant)
            else:
                self._create_application_tasks(variant)

        self._create_dependency_report_task()
        self._graph.validate()
        logger.debug("Built task graph", tasks=len(self._graph), variants=len(self.variants))
        return self._graph

    # --- locations ---

    def _path(self, *parts: str) -> Path:
        return self.build_dir.joinpath(*parts)

    def _archive(self, variant: BuildVariant, extension: str) -> Path:
        return self._path("libs", f"{self.archives_base_name}-{variant.base_name}.{extension}")

    def _manifest_output(self, variant: BuildVariant) -> Path:
        folder = DIR_BUNDLES if variant.is_library else "manifests"
        return self._path(folder, variant.dir_name, "AndroidManifest.xml")

    def _bundle_folder(self, variant: BuildVariant) -> Path:
        return self._path(DIR_BUNDLES, variant.dir_name)

    # --- helpers ---

    def _add(self, task: BuildTask) -> BuildTask:
        return self._graph.add(task)

    def _aggregate(self, name: str, description: str) -> BuildTask:
        if name in self._graph:
            return self._graph.get(name)
        return self._graph.add(BuildTask(name=name, description=description))

    # --- variant tasks ---

    def _create_application_tasks(self, variant: BuildVariant) -> None:
        self._create_common_tasks(variant)
        assemble = self._create_package_tasks(variant)

        build_type_task = self._aggregate(
            f"{ASSEMBLE}{_capitalize(variant.build_type_name)}",
            f"Assembles all {variant.build_type_name.capitalize()} builds",
        )
        if build_type_task.name != assemble.name:
            build_type_task.depend_on(assemble.name)
        self._graph.get(ASSEMBLE).depend_on(build_type_task.name)

        if variant.config.has_flavors:
            flavor_name = variant.config.flavor_name
            flavor_task = self._aggregate(
                f"{ASSEMBLE}{flavor_name}", f"Assembles all builds for flavor {flavor_name}"
            )
            flavor_task.depend_on(assemble.name)
            self._graph.get(ASSEMBLE).depend_on(flavor_task.name)

    def _create_common_tasks(self, variant: BuildVariant) -> None:
        """Tasks shared by every kind of variant, up to compilation."""
        name = variant.name
        cfg = variant.config
        dir_name = variant.dir_name

        source_dir = self._path("source", dir_name)
        symbols_dir = self._path("symbols", dir_name)
        classes_dir = self._path("classes", dir_name)
        java_res_dir = self._path("javaResources", dir_name)
        manifest_out = self._manifest_output(variant)

        prepare = self._add(self._prepare_task(variant))

        # manifest
        if variant.is_test:

            def process_test_manifest(builder: AndroidBuilder) -> None:
                builder.process_test_manifest(
                    cfg.package_name,
                    cfg.min_sdk_version,
                    cfg.tested_package_name or cfg.package_name,
                    cfg.instrumentation_runner,
                    cfg.manifest_dependencies,
                    manifest_out,
                )

            manifest = self._add(
                BuildTask(
                    name=f"process{name}TestManifest",
                    description=f"Generates the manifest of the {variant.description}",
                    variant=name,
                    depends_on=[prepare.name],
                    outputs=[manifest_out],
                    action=process_test_manifest,
                )
            )
        else:

            def process_manifest(builder: AndroidBuilder) -> None:
                merged = cfg.merged_flavor
                builder.process_manifest(
                    cfg.default_source.manifest_file,  # type: ignore[arg-type]
                    cfg.manifest_overlays,
                    cfg.manifest_dependencies,
                    merged.version_code,
                    merged.version_name,
                    merged.min_sdk_version,
                    merged.target_sdk_version,
                    manifest_out,
                )

            manifest = self._add(
                BuildTask(
                    name=f"process{name}Manifest",
                    description=f"Merges the manifests of the {variant.description}",
                    variant=name,
                    depends_on=[prepare.name],
                    inputs={"overlays": [str(p) for p in cfg.manifest_overlays]},
                    outputs=[manifest_out],
                    action=process_manifest,
                )
            )

        # images, application and test variants only
        images: BuildTask | None = None
        images_dir = self._path("res", dir_name)
        if not variant.is_library:
            images = self._add(
                BuildTask(
                    name=f"process{name}Images",
                    description=f"Crunches the images of the {variant.description}",
                    variant=name,
                    inputs={"res": [str(p) for p in cfg.resource_inputs]},
                    outputs=[images_dir],
                    action=lambda builder: builder.process_images(images_dir, cfg.resource_inputs),
                )
            )

        # BuildConfig
        build_config = self._add(
            BuildTask(
                name=f"generate{name}BuildConfig",
                description=f"Generates the BuildConfig class of the {variant.description}",
                variant=name,
                outputs=[source_dir],
                action=lambda builder: builder.generate_build_config(
                    cfg.original_package_name,
                    cfg.build_type.debuggable,
                    cfg.build_config_lines,
                    source_dir,
                ),
            )
        )
        if variant.is_test:
            # the test manifest is generated, the package is only known after it
            build_config.depend_on(manifest.name)

        # resources
        res_package = None if variant.is_library else self._archive(variant, "ap_")
        proguard_file = self._path("proguard", dir_name, "rules.txt") if variant.run_proguard else None

        def process_resources(builder: AndroidBuilder) -> list[str]:
            tested = cfg.tested_config
            package_override = tested.package_override if tested is not None else cfg.package_override
            return builder.process_resources(
                manifest_out,
                images_dir if images is not None else None,
                cfg.resource_inputs,
                existing_dir(cfg.assets_dir),
                cfg.symbol_file_providers,
                package_override,
                source_dir,
                symbols_dir,
                res_package,
                proguard_file,
                cfg.type,
                cfg.build_type.debuggable,
                self.config.aapt,
            )

        resources = self._add(
            BuildTask(
                name=f"process{name}Res",
                description=f"Processes the resources of the {variant.description}",
                variant=name,
                depends_on=[manifest.name],
                outputs=[p for p in (source_dir, symbols_dir, res_package, proguard_file) if p is not None],
                action=process_resources,
            )
        )
        if images is not None:
            resources.depend_on(images.name)

        # Java resources
        self._add(
            BuildTask(
                name=f"process{name}JavaRes",
                description=f"Copies the Java resources of the {variant.description}",
                variant=name,
                inputs={"resources": [str(p) for p in cfg.java_resource_dirs]},
                outputs=[java_res_dir],
                action=lambda builder: copy_folders(cfg.java_resource_dirs, java_res_dir),
            )
        )

        # aidl
        aidl = self._add(
            BuildTask(
                name=f"compile{name}Aidl",
                description=f"Compiles the AIDL files of the {variant.description}",
                variant=name,
                depends_on=[prepare.name],
                inputs={"sources": [str(p) for p in cfg.aidl_source_list]},
                outputs=[source_dir],
                action=lambda builder: builder.compile_aidl(cfg.aidl_source_list, source_dir, cfg.aidl_imports),
            )
        )

        # java
        tested_classes: Path | None = None
        if variant.tested is not None:
            tested_classes = self._path("classes", variant.tested.dir_name)

        def compile_java(builder: AndroidBuilder) -> list[str] | None:
            classpath = set(cfg.compile_classpath)
            if variant.tested is not None and tested_classes is not None:
                classpath.update(variant.tested.config.compile_classpath)
                classpath.add(tested_classes)
            return builder.compile_java([*cfg.java_source_dirs, source_dir], classpath, classes_dir)

        compile_task = self._add(
            BuildTask(
                name=f"compile{name}",
                description=f"Compiles the Java sources of the {variant.description}",
                variant=name,
                depends_on=[resources.name, build_config.name, aidl.name],
                inputs={"sources": [str(p) for p in cfg.java_source_dirs]},
                outputs=[classes_dir],
                action=compile_java,
            )
        )
        if variant.tested is not None:
            compile_task.depend_on(f"compile{variant.tested.name}")

    def _prepare_task(self, variant: BuildVariant) -> BuildTask:
        libraries = variant.config.all_libraries
        archives = [self._archives[lib.name] for lib in libraries if lib.name in self._archives]
        declared = [lib for lib in libraries if lib.name in self._catalog]

        def prepare(builder: AndroidBuilder) -> int:
            for archive, folder in archives:
                explode_bundle(archive, folder)
            for library in declared:
                if not library.manifest.is_file():
                    raise DependencyError(
                        message=f"Library '{library.name}' has no manifest at {library.manifest}",
                        dependency=library.name,
                    )
            return len(declared)

        return BuildTask(
            name=f"prepare{variant.name}Dependencies",
            description=f"Prepares the libraries of the {variant.description}",
            variant=variant.name,
            inputs={"libraries": [lib.name for lib in libraries]},
            action=prepare,
        )

    def _create_package_tasks(self, variant: BuildVariant) -> BuildTask:
        """Dex, package, align and install tasks; returns the assemble task."""
        name = variant.name
        cfg = variant.config
        classes_dir = self._path("classes", variant.dir_name)
        java_res_dir = self._path("javaResources", variant.dir_name)
        jni_libs_dir = self._path("libs")
        dex_file = self._archive(variant, "dex")
        res_package = self._archive(variant, "ap_")

        dex = self._add(
            BuildTask(
                name=f"dex{name}",
                description=f"Converts the classes of the {variant.description} to dex",
                variant=name,
                depends_on=[f"compile{name}"],
                outputs=[dex_file],
                action=lambda builder: builder.convert_byte_code(
                    [classes_dir], cfg.packaged_jars, dex_file, self.config.dex
                ),
            )
        )

        project_dir = self.project.project_dir
        ndk_root = self.config.tools.android_ndk_root

        def jni_build(builder: AndroidBuilder) -> list[str] | None:
            if not any(d.is_dir() for d in cfg.jni_dirs):
                logger.debug("No native sources", variant=name)
                return None
            return builder.build_native_libraries(locate_ndk(project_dir, ndk_root), project_dir)

        jni = self._add(
            BuildTask(
                name=f"jniBuild{name}",
                description=f"Builds the native libraries of the {variant.description}",
                variant=name,
                inputs={"jni": [str(p) for p in cfg.jni_dirs]},
                outputs=[jni_libs_dir],
                action=jni_build,
            )
        )

        suffix = "unaligned" if variant.is_signed else "unsigned"
        apk = self._path("apk", f"{self.archives_base_name}-{variant.base_name}-{suffix}.apk")

        package = self._add(
            BuildTask(
                name=f"package{name}",
                description=f"Packages the {variant.description}",
                variant=name,
                depends_on=[jni.name, f"process{name}Res", dex.name, f"process{name}JavaRes"],
                outputs=[apk],
                action=lambda builder: builder.package_apk(
                    res_package,
                    dex_file,
                    cfg.packaged_jars,
                    existing_dir(java_res_dir),
                    jni_libs_dir,
                    cfg.build_type.debug_signed,
                    cfg.build_type.debug_jni_build,
                    cfg.merged_flavor.signing,
                    apk,
                ),
            )
        )

        app_task = package
        output = apk
        if variant.is_signed:
            if variant.zip_align:
                aligned = self._path("apk", f"{self.archives_base_name}-{variant.base_name}.apk")
                app_task = self._add(
                    BuildTask(
                        name=f"zipalign{name}",
                        description=f"Aligns the {variant.description}",
                        variant=name,
                        depends_on=[package.name],
                        outputs=[aligned],
                        action=lambda builder: builder.zip_align(apk, aligned),
                    )
                )
                output = aligned

            final_apk = output
            self._add(
                BuildTask(
                    name=f"install{name}",
                    description=f"Installs the {variant.description}",
                    variant=name,
                    depends_on=[app_task.name],
                    inputs={"apk": str(final_apk)},
                    action=lambda builder: builder.install_apk(final_apk),
                )
            )

        assemble = self._aggregate(f"{ASSEMBLE}{name}", f"Assembles the {variant.description}")
        assemble.variant = name
        assemble.depend_on(app_task.name)
        self._assemble_tasks[name] = assemble.name

        uninstall = self._add(
            BuildTask(
                name=f"uninstall{name}",
                description=f"Uninstalls the {variant.description}",
                variant=name,
                action=lambda builder: builder.uninstall_package(cfg.package_name),
            )
        )
        self._graph.get(UNINSTALL_ALL).depend_on(uninstall.name)
        return assemble

    def _create_library_tasks(self, variant: BuildVariant) -> None:
        self._create_common_tasks(variant)

        name = variant.name
        cfg = variant.config
        bundle_dir = self._bundle_folder(variant)
        classes_dir = self._path("classes", variant.dir_name)
        java_res_dir = self._path("javaResources", variant.dir_name)
        symbols_dir = self._path("symbols", variant.dir_name)
        build_type_source = cfg.build_type_source
        res_sources = [cfg.default_source.res_dir]
        aidl_sources = [cfg.default_source.aidl_dir]
        if build_type_source is not None:
            res_sources.append(build_type_source.res_dir)
            aidl_sources.append(build_type_source.aidl_dir)
        res_dirs = [p for p in res_sources if p is not None]
        aidl_dirs = [p for p in aidl_sources if p is not None]

        jar = self._add(
            BuildTask(
                name=f"package{_capitalize(variant.build_type_name)}Jar",
                description=f"Jars the classes of the {variant.description}",
                variant=name,
                depends_on=[f"compile{name}", f"process{name}JavaRes"],
                outputs=[bundle_dir / "classes.jar"],
                action=lambda builder: package_classes_jar(
                    classes_dir,
                    existing_dir(java_res_dir),
                    bundle_dir / "classes.jar",
                    cfg.package_from_manifest,
                ),
            )
        )
        res = self._add(
            BuildTask(
                name=f"package{name}Res",
                description=f"Copies the resources of the {variant.description} into the bundle",
                variant=name,
                outputs=[bundle_dir / "res"],
                action=lambda builder: copy_folders(res_dirs, bundle_dir / "res"),
            )
        )
        aidl = self._add(
            BuildTask(
                name=f"package{name}Aidl",
                description=f"Copies the AIDL files of the {variant.description} into the bundle",
                variant=name,
                outputs=[bundle_dir / "aidl"],
                action=lambda builder: copy_folders(aidl_dirs, bundle_dir / "aidl"),
            )
        )
        symbols = self._add(
            BuildTask(
                name=f"package{name}Symbols",
                description=f"Copies the symbol file of the {variant.description} into the bundle",
                variant=name,
                depends_on=[f"process{name}Res"],
                outputs=[bundle_dir],
                action=lambda builder: copy_folders([symbols_dir], bundle_dir),
            )
        )

        archive = self._path("libs", bundle_archive_name(self.archives_base_name, variant.bundle_classifier))
        bundle = self._add(
            BuildTask(
                name=f"bundle{name}",
                description=f"Assembles a bundle containing the library in {name}.",
                variant=name,
                depends_on=[jar.name, res.name, aidl.name, symbols.name],
                outputs=[archive],
                action=lambda builder: zip_bundle(bundle_dir, archive),
            )
        )
        self._assemble_tasks[name] = bundle.name

        build_type_task = self._aggregate(
            f"{ASSEMBLE}{_capitalize(variant.build_type_name)}",
            f"Assembles all {variant.build_type_name.capitalize()} builds",
        )
        build_type_task.depend_on(bundle.name)
        self._graph.get(ASSEMBLE).depend_on(build_type_task.name)

    def _create_test_tasks(self, variant: BuildVariant) -> None:
        tested = variant.tested
        if tested is None:
            raise TaskGraphError(
                message=f"Test variant {variant.name} has no tested variant",
                task_name=f"check{variant.name}",
            )
        tested_assemble = self._assemble_tasks[tested.name]

        self._create_common_tasks(variant)
        if tested.is_library:
            # the tested library must be fully built before the test
            self._graph.get(f"process{variant.name}TestManifest").depend_on(tested_assemble)
            self._graph.get(f"process{variant.name}Images").depend_on(tested_assemble)

        assemble = self._create_package_tasks(variant)
        if assemble.name != ASSEMBLE_TEST and ASSEMBLE_TEST in self._graph:
            self._graph.get(ASSEMBLE_TEST).depend_on(assemble.name)

        cfg = variant.config
        install_names = [f"install{variant.name}"]
        uninstall_names = [f"uninstall{variant.name}"]
        if tested.type == VariantType.DEFAULT:
            install_names.insert(0, f"install{tested.name}")
            uninstall_names.insert(0, f"uninstall{tested.name}")

        run_tests = self._add(
            BuildTask(
                name=f"run{tested.name}Tests",
                description=f"Runs the checks for Build {tested.name}. Must be installed on device.",
                variant=variant.name,
                depends_on=list(install_names),
                action=lambda builder: builder.run_instrumentation_tests(
                    cfg.package_name, cfg.instrumentation_runner
                ),
            )
        )

        for uninstall_name in uninstall_names:
            self._graph.get(uninstall_name).run_after(run_tests.name)

        check = self._add(
            BuildTask(
                name=f"{CHECK}{tested.name}",
                description=f"Installs and runs the checks for Build {tested.name}.",
                variant=variant.name,
                depends_on=[tested_assemble, assemble.name, *install_names, run_tests.name, *uninstall_names],
            )
        )
        self._graph.get(CHECK).depend_on(check.name)

    def _create_dependency_report_task(self) -> None:
        variants = list(self.variants)

        def report(builder: AndroidBuilder) -> list[str]:
            lines: list[str] = []
            for variant in variants:
                lines.extend(dependency_report(variant))
                lines.append("")
            for line in lines:
                logger.info(line)
            return lines

        self._add(
            BuildTask(
                name=ANDROID_DEPENDENCIES,
                description="Displays the Android dependencies of the project",
                action=report,
            )
        )
