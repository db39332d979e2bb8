"""
Manifest Service.

Reads values out of AndroidManifest.xml files, merges manifest overlays and
library manifests into the manifest of a variant and generates the manifest of
test applications.
"""

from __future__ import annotations

import copy
import shutil
import tempfile
import xml.etree.ElementTree as ET
from abc import ABC, abstractmethod
from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING
from xml.sax.saxutils import quoteattr

from ...core.exceptions import ConfigurationError, ManifestMergeError, ToolchainError
from ...core.logging import get_logger
from ...models.dependency import ManifestDependency

if TYPE_CHECKING:
    from ..toolchain.runner import CommandLineRunner

logger = get_logger(__name__)

ANDROID_NS = "http://schemas.android.com/apk/res/android"
ET.register_namespace("android", ANDROID_NS)

# Injectable attributes and the element that carries them
ATTR_VERSION_CODE = "versionCode"
ATTR_VERSION_NAME = "versionName"
ATTR_MIN_SDK_VERSION = "minSdkVersion"
ATTR_TARGET_SDK_VERSION = "targetSdkVersion"
_INJECTION_TARGETS: dict[str, str | None] = {
    ATTR_VERSION_CODE: None,
    ATTR_VERSION_NAME: None,
    ATTR_MIN_SDK_VERSION: "uses-sdk",
    ATTR_TARGET_SDK_VERSION: "uses-sdk",
}

# API level assumed when a manifest declares no minSdkVersion
DEFAULT_MIN_SDK_VERSION = 1

TEST_MANIFEST_TEMPLATE = """\
<?xml version="1.0" encoding="utf-8"?>
<manifest xmlns:android="http://schemas.android.com/apk/res/android"
    package={test_package}>

    <uses-sdk android:minSdkVersion={min_sdk_version} />

    <application>
        <uses-library android:name="android.test.runner" />
    </application>

    <instrumentation android:name={instrumentation_runner}
                     android:targetPackage={tested_package}
                     android:functionalTest="false"
                     android:handleProfiling="false"
                     android:label={label} />
</manifest>
"""


def _android(attr: str) -> str:
    return f"{{{ANDROID_NS}}}{attr}"


class ManifestParser(ABC):
    """Reads values from a manifest file."""

    @abstractmethod
    def get_package(self, manifest: Path) -> str:
        """Return the package declared by the manifest."""

    @abstractmethod
    def get_min_sdk_version(self, manifest: Path) -> int:
        """Return the minSdkVersion declared by the manifest."""


class DefaultManifestParser(ManifestParser):
    """ElementTree based parser that parses each manifest at most once."""

    def __init__(self) -> None:
        self._cache: dict[Path, ET.Element] = {}

    def _root(self, manifest: Path) -> ET.Element:
        key = Path(manifest).resolve()
        root = self._cache.get(key)
        if root is None:
            try:
                root = ET.parse(key).getroot()
            except (OSError, ET.ParseError) as e:
                raise ConfigurationError(
                    message=f"Unable to read manifest {manifest}",
                    field_name="manifest_file",
                    cause=e,
                ) from e
            self._cache[key] = root
        return root

    def get_package(self, manifest: Path) -> str:
        package = self._root(manifest).get("package")
        if not package:
            raise ConfigurationError(
                message=f"No package declared in {manifest}",
                field_name="package",
            )
        return package

    def get_min_sdk_version(self, manifest: Path) -> int:
        uses_sdk = self._root(manifest).find("uses-sdk")
        if uses_sdk is None:
            return DEFAULT_MIN_SDK_VERSION
        value = uses_sdk.get(_android(ATTR_MIN_SDK_VERSION))
        if value is None:
            return DEFAULT_MIN_SDK_VERSION
        try:
            return int(value)
        except ValueError:
            # codenames such as "JellyBean" are not resolved
            logger.warning("Non numeric minSdkVersion", manifest=str(manifest), value=value)
            return DEFAULT_MIN_SDK_VERSION

    def clear(self) -> None:
        """Forget every parsed manifest."""
        self._cache.clear()


_default_parser = DefaultManifestParser()


def get_manifest_parser() -> ManifestParser:
    """Get the shared manifest parser."""
    return _default_parser


def attribute_injection_map(
    version_code: int | None,
    version_name: str | None,
    min_sdk_version: int | None,
    target_sdk_version: int | None,
) -> dict[str, str]:
    """Build the attributes to inject into a merged manifest.

    Unset values are left out of the map.
    """
    injection: dict[str, str] = {}
    if version_code is not None:
        injection[ATTR_VERSION_CODE] = str(version_code)
    if version_name is not None:
        injection[ATTR_VERSION_NAME] = version_name
    if min_sdk_version is not None:
        injection[ATTR_MIN_SDK_VERSION] = str(min_sdk_version)
    if target_sdk_version is not None:
        injection[ATTR_TARGET_SDK_VERSION] = str(target_sdk_version)
    return injection


class ManifestMerger(ABC):
    """Merges manifests into one output manifest."""

    @abstractmethod
    def process(
        self,
        output: Path,
        main_manifest: Path,
        overlay_manifests: Sequence[Path],
        attribute_injection: dict[str, str] | None,
        *,
        library_merge: bool = False,
    ) -> bool:
        """Merge manifests into ``output``.

        Args:
            output: Where to write the merged manifest.
            main_manifest: The manifest merged into.
            overlay_manifests: Manifests to merge, highest priority first.
            attribute_injection: Attributes to set on the result, keyed by
                versionCode, versionName, minSdkVersion or targetSdkVersion.
            library_merge: When True the main manifest keeps every element it
                declares and the overlays only add to it. Otherwise overlay
                elements replace the main manifest's.

        Returns:
            bool: True on success.
        """


class XmlManifestMerger(ManifestMerger):
    """A manifest merger working on the element tree.

    Elements are matched on their tag and ``android:name``.
    """

    def process(
        self,
        output: Path,
        main_manifest: Path,
        overlay_manifests: Sequence[Path],
        attribute_injection: dict[str, str] | None,
        *,
        library_merge: bool = False,
    ) -> bool:
        try:
            tree = ET.parse(main_manifest)
            root = tree.getroot()

            # the first overlay wins, so it is applied last
            ordered = list(overlay_manifests) if library_merge else list(reversed(overlay_manifests))
            for overlay in ordered:
                _merge_root(root, ET.parse(overlay).getroot(), overlay_wins=not library_merge)

            if attribute_injection:
                _inject_attributes(root, attribute_injection)

            Path(output).parent.mkdir(parents=True, exist_ok=True)
            tree.write(output, encoding="utf-8", xml_declaration=True)
        except (OSError, ET.ParseError) as e:
            logger.error(
                "Manifest merge failed",
                main=str(main_manifest),
                overlays=[str(m) for m in overlay_manifests],
                error=str(e),
            )
            return False
        return True


class CommandLineManifestMerger(ManifestMerger):
    """Runs an external ``manifmerger`` executable.

    The tool is called as ``manifmerger merge --out <output> --main <main>
    --libs <manifest>...``. It has no attribute injection, so the injected
    attributes are set on its output afterwards.
    """

    def __init__(self, tool: Path, runner: CommandLineRunner) -> None:
        self.tool = Path(tool)
        self.runner = runner

    def process(
        self,
        output: Path,
        main_manifest: Path,
        overlay_manifests: Sequence[Path],
        attribute_injection: dict[str, str] | None,
        *,
        library_merge: bool = False,
    ) -> bool:
        Path(output).parent.mkdir(parents=True, exist_ok=True)
        command: list[str | Path] = [self.tool, "merge", "--out", output, "--main", main_manifest]
        if overlay_manifests:
            command += ["--libs", *overlay_manifests]
        try:
            self.runner.run_cmd_line(command)
            if attribute_injection:
                tree = ET.parse(output)
                _inject_attributes(tree.getroot(), attribute_injection)
                tree.write(output, encoding="utf-8", xml_declaration=True)
        except (ToolchainError, OSError, ET.ParseError) as e:
            logger.error("Manifest merge failed", tool=str(self.tool), main=str(main_manifest), error=str(e))
            return False
        return True


def create_manifest_merger(tool: Path | None, runner: CommandLineRunner) -> ManifestMerger:
    """Pick the merger: the external tool when one is configured, else XmlManifestMerger."""
    if tool is None:
        return XmlManifestMerger()
    return CommandLineManifestMerger(tool, runner)


def _element_key(element: ET.Element) -> tuple[str, str | None]:
    return element.tag, element.get(_android("name"))


def _merge_element(parent: ET.Element, element: ET.Element, overlay_wins: bool) -> None:
    key = _element_key(element)
    children = list(parent)
    for index, existing in enumerate(children):
        if _element_key(existing) == key:
            if overlay_wins:
                parent.remove(existing)
                parent.insert(index, copy.deepcopy(element))
            return
    parent.append(copy.deepcopy(element))


def _merge_root(root: ET.Element, other: ET.Element, overlay_wins: bool) -> None:
    for child in other:
        if child.tag != "application":
            _merge_element(root, child, overlay_wins)
            continue

        application = root.find("application")
        if application is None:
            root.append(copy.deepcopy(child))
            continue
        if overlay_wins:
            application.attrib.update(child.attrib)
        for component in child:
            _merge_element(application, component, overlay_wins)


def _inject_attributes(root: ET.Element, attributes: dict[str, str]) -> None:
    for name, value in attributes.items():
        if name not in _INJECTION_TARGETS:
            raise ManifestMergeError(message=f"Unknown injected attribute '{name}'")
        target_tag = _INJECTION_TARGETS[name]
        target = root
        if target_tag is not None:
            target = root.find(target_tag)
            if target is None:
                target = ET.Element(target_tag)
                root.insert(0, target)
        target.set(_android(name), value)


class ManifestService:
    """Produces the merged manifest of a variant."""

    def __init__(self, merger: ManifestMerger | None = None) -> None:
        """Initialize the manifest service.

        Args:
            merger: Merge tool. Defaults to XmlManifestMerger.
        """
        self.merger = merger or XmlManifestMerger()

    def _run_merger(
        self,
        output: Path,
        main_manifest: Path,
        overlays: Sequence[Path],
        attribute_injection: dict[str, str] | None,
        library_merge: bool = False,
    ) -> None:
        logger.debug(
            "Merging manifests",
            output=str(output),
            main=str(main_manifest),
            overlays=[str(o) for o in overlays],
            inject=attribute_injection,
        )
        if not self.merger.process(
            output,
            main_manifest,
            overlays,
            attribute_injection,
            library_merge=library_merge,
        ):
            raise ManifestMergeError(
                message="The manifest merger reported a failure",
                output_path=str(output),
                context={"main": str(main_manifest), "overlays": [str(o) for o in overlays]},
            )

    def process_manifest(
        self,
        main_manifest: Path,
        manifest_overlays: Sequence[Path],
        libraries: Sequence[ManifestDependency],
        version_code: int | None,
        version_name: str | None,
        min_sdk_version: int | None,
        target_sdk_version: int | None,
        output: Path,
    ) -> None:
        """Merge the manifest of an application or library variant.

        The overlays are merged first, with attribute injection, then the
        library manifests are merged recursively from the leaves up. A
        manifest with nothing to merge and nothing to inject is copied.

        Args:
            main_manifest: Manifest of the default source set.
            manifest_overlays: Build type and flavor manifests, highest
                priority first.
            libraries: Direct library dependencies.
            version_code: Version code to inject, if set.
            version_name: Version name to inject, if set.
            min_sdk_version: minSdkVersion to inject, if set.
            target_sdk_version: targetSdkVersion to inject, if set.
            output: Location of the merged manifest.

        Raises:
            ManifestMergeError: If the merge tool fails.
        """
        output = Path(output)
        output.parent.mkdir(parents=True, exist_ok=True)
        injection: dict[str, str] | None = attribute_injection_map(
            version_code, version_name, min_sdk_version, target_sdk_version
        )

        if not manifest_overlays and not libraries:
            if not injection:
                shutil.copyfile(main_manifest, output)
            else:
                self._run_merger(output, main_manifest, [], injection)
            return

        with tempfile.TemporaryDirectory(prefix="manifestMerge") as scratch:
            scratch_dir = Path(scratch)
            if manifest_overlays:
                merged_out = scratch_dir / "main.xml" if libraries else output
                self._run_merger(merged_out, main_manifest, manifest_overlays, injection)
                main_manifest = merged_out
                # attributes are in place already
                injection = None

            if libraries:
                self._merge_library_manifests(main_manifest, libraries, output, injection, scratch_dir)

    def process_test_manifest(
        self,
        test_package_name: str,
        min_sdk_version: int,
        tested_package_name: str,
        instrumentation_runner: str,
        libraries: Sequence[ManifestDependency],
        output: Path,
    ) -> None:
        """Generate the manifest of a test application.

        Raises:
            ManifestMergeError: If merging library manifests fails.
        """
        output = Path(output)
        output.parent.mkdir(parents=True, exist_ok=True)
        if not libraries:
            generate_test_manifest(
                test_package_name, min_sdk_version, tested_package_name, instrumentation_runner, output
            )
            return

        with tempfile.TemporaryDirectory(prefix="manifestMerge") as scratch:
            scratch_dir = Path(scratch)
            generated = scratch_dir / "test.xml"
            generate_test_manifest(
                test_package_name, min_sdk_version, tested_package_name, instrumentation_runner, generated
            )
            self._merge_library_manifests(generated, libraries, output, None, scratch_dir)

    def _merge_library_manifests(
        self,
        main_manifest: Path,
        libraries: Sequence[ManifestDependency],
        output: Path,
        attribute_injection: dict[str, str] | None,
        scratch_dir: Path,
    ) -> None:
        manifests: list[Path] = []
        for library in libraries:
            sub_libraries = library.manifest_dependencies
            if not sub_libraries:
                manifests.append(library.manifest)
                continue
            with tempfile.NamedTemporaryFile(
                prefix="lib", suffix=".xml", dir=scratch_dir, delete=False
            ) as handle:
                merged = Path(handle.name)
            # libraries never get attributes injected
            self._merge_library_manifests(library.manifest, sub_libraries, merged, None, scratch_dir)
            manifests.append(merged)

        self._run_merger(output, main_manifest, manifests, attribute_injection, library_merge=True)


def generate_test_manifest(
    test_package_name: str,
    min_sdk_version: int,
    tested_package_name: str,
    instrumentation_runner: str,
    output: Path,
) -> None:
    """Write the manifest of a test application from the built-in template."""
    content = TEST_MANIFEST_TEMPLATE.format(
        test_package=quoteattr(test_package_name),
        min_sdk_version=quoteattr(str(min_sdk_version)),
        tested_package=quoteattr(tested_package_name),
        instrumentation_runner=quoteattr(instrumentation_runner),
        label=quoteattr(f"Tests for {tested_package_name}"),
    )
    output = Path(output)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(content, encoding="utf-8")
    logger.debug("Generated test manifest", output=str(output), package=test_package_name)
