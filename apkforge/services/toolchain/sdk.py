"""
Android SDK layout.

Resolves a compilation target inside an SDK installation and the location of
the tools used by the build.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field

from ...core.exceptions import ConfigurationError

# Last API level whose android.jar does not carry the support annotations
ANNOTATIONS_JAR_MAX_API = 15


class AndroidTarget(BaseModel):
    """A compilation target (``android-<api level>``) of an SDK."""

    sdk_root: Path = Field(description="SDK installation")
    api_level: int = Field(description="Target API level")
    build_tools_dir: Path | None = Field(
        default=None, description="Directory holding aapt, aidl and dx"
    )
    optional_libraries: list[Path] = Field(
        default_factory=list, description="Extra jars the target provides"
    )

    @classmethod
    def resolve(
        cls,
        sdk_root: Path,
        api_level: int,
        build_tools_dir: Path | None = None,
        check: bool = True,
    ) -> AndroidTarget:
        """Resolve ``android-<api_level>`` in ``sdk_root``.

        Args:
            sdk_root: SDK installation.
            api_level: Target API level.
            build_tools_dir: Explicit tools directory.
            check: Whether the platform must be installed.

        Raises:
            ConfigurationError: If the platform is not installed.
        """
        target = cls(sdk_root=sdk_root, api_level=api_level, build_tools_dir=build_tools_dir)
        if check and not target.platform_dir.is_dir():
            raise ConfigurationError(
                message=f"Unknown target: android-{api_level} (no {target.platform_dir})",
                field_name="compile_sdk_version",
            )
        return target

    @property
    def hash_string(self) -> str:
        return f"android-{self.api_level}"

    @property
    def platform_dir(self) -> Path:
        return self.sdk_root / "platforms" / self.hash_string

    @property
    def android_jar(self) -> Path:
        return self.platform_dir / "android.jar"

    @property
    def framework_aidl(self) -> Path:
        return self.platform_dir / "framework.aidl"

    @property
    def _tools_dir(self) -> Path:
        return self.build_tools_dir or self.sdk_root / "platform-tools"

    @property
    def aapt(self) -> Path:
        return self._tools_dir / "aapt"

    @property
    def aidl(self) -> Path:
        return self._tools_dir / "aidl"

    @property
    def dx(self) -> Path:
        return self._tools_dir / "dx"

    @property
    def adb(self) -> Path:
        return self.sdk_root / "platform-tools" / "adb"

    @property
    def zipalign(self) -> Path:
        return self.sdk_root / "tools" / "zipalign"

    @property
    def annotations_jar(self) -> Path:
        return self.sdk_root / "tools" / "support" / "annotations.jar"

    def runtime_classpath(self) -> list[Path]:
        """Jars on the boot classpath when compiling against this target."""
        classpath = [self.android_jar, *self.optional_libraries]
        if self.api_level <= ANNOTATIONS_JAR_MAX_API:
            classpath.append(self.annotations_jar)
        return classpath
