"""
Configuration management for apkforge.

Provides centralized, type-safe configuration with environment variable overrides
and sensible defaults for the toolchain, build directories and tool options.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from .exceptions import ConfigurationError

# Load .env file if it exists (looks in cwd and parent directories)
load_dotenv()

LOCAL_PROPERTIES = "local.properties"


class ToolsConfig(BaseModel):
    """External tools configuration."""

    android_sdk_root: Path | None = Field(
        default_factory=lambda: _env_path("ANDROID_SDK_ROOT") or _env_path("ANDROID_HOME"),
        description="Android SDK root path",
    )
    android_ndk_root: Path | None = Field(
        default_factory=lambda: _env_path("ANDROID_NDK_ROOT"),
        description="Android NDK root path",
    )
    build_tools_dir: Path | None = Field(
        default=None, description="Directory holding aapt, aidl, dx and zipalign"
    )
    manifest_merger_path: Path | None = Field(
        default=None, description="Custom manifest merger executable"
    )
    signer_path: str = Field(default="jarsigner", description="APK signing executable")


class BuildDirsConfig(BaseModel):
    """Build output layout configuration."""

    build_dir: Path = Field(default=Path("build"), description="Root of all build outputs")
    archives_base_name: str | None = Field(
        default=None, description="Prefix for archive names, the project name when unset"
    )
    verbose_exec: bool = Field(default=False, description="Run external tools in verbose mode")


class AaptOptions(BaseModel):
    """Options handed to the resource compiler."""

    ignore_assets: str | None = Field(default=None, description="Asset ignore pattern")
    no_compress: list[str] = Field(
        default_factory=list, description="Extensions stored without compression"
    )


class DexOptions(BaseModel):
    """Options handed to the bytecode converter."""

    core_library: bool = Field(default=False, description="Allow core library classes")


class SigningDefaults(BaseModel):
    """Debug signing identity used for debug-signed build types."""

    debug_keystore: Path = Field(
        default_factory=lambda: Path("~/.android/debug.keystore").expanduser(),
        description="Location of the debug keystore",
    )
    store_password: str = Field(default="android")
    key_alias: str = Field(default="androiddebugkey")
    key_password: str = Field(default="android")


class Config(BaseModel):
    """Root configuration for apkforge."""

    project_name: str = Field(default="apkforge", description="Project identifier")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging level"
    )
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    build: BuildDirsConfig = Field(default_factory=BuildDirsConfig)
    aapt: AaptOptions = Field(default_factory=AaptOptions)
    dex: DexOptions = Field(default_factory=DexOptions)
    signing: SigningDefaults = Field(default_factory=SigningDefaults)

    model_config = {"extra": "ignore"}

    @classmethod
    def from_env(cls) -> Config:
        """Create configuration from environment variables."""
        build_tools = os.environ.get("APKFORGE_BUILD_TOOLS")
        return cls(
            log_level=os.environ.get("APKFORGE_LOG_LEVEL", "INFO"),  # type: ignore
            tools=ToolsConfig(
                build_tools_dir=Path(build_tools) if build_tools else None,
            ),
            build=BuildDirsConfig(
                build_dir=Path(os.environ.get("APKFORGE_BUILD_DIR", "build")),
                verbose_exec=os.environ.get("APKFORGE_VERBOSE_EXEC", "false").lower() == "true",
            ),
        )


@lru_cache(maxsize=1)
def get_config() -> Config:
    """Get cached configuration instance."""
    return Config.from_env()


def _env_path(name: str) -> Path | None:
    value = os.environ.get(name)
    return Path(value).expanduser() if value else None


def read_local_properties(project_root: Path) -> dict[str, str] | None:
    """Parse ``local.properties`` in the project root.

    Args:
        project_root: Root directory of the Android project.

    Returns:
        The key/value pairs, or None when the file does not exist.
    """
    path = project_root / LOCAL_PROPERTIES
    if not path.is_file():
        return None

    properties: dict[str, str] = {}
    for raw in path.read_text(encoding="utf-8").splitlines():
        line = raw.strip()
        if not line or line.startswith(("#", "!")):
            continue
        for separator in ("=", ":"):
            if separator in line:
                key, value = line.split(separator, 1)
                # properties files escape ':' and '\' in paths
                properties[key.strip()] = value.strip().replace("\\:", ":").replace("\\\\", "\\")
                break
    return properties


def _locate(project_root: Path, prop: str, env_var: str, label: str, configured: Path | None) -> Path:
    properties = read_local_properties(project_root)
    location: Path | None = None

    if properties is not None:
        value = properties.get(prop)
        if not value:
            raise ConfigurationError(
                message=f"No {prop} property defined in {LOCAL_PROPERTIES} file.",
                field_name=prop,
            )
        location = Path(value)
    else:
        env_value = os.environ.get(env_var)
        if env_value:
            location = Path(env_value)
        elif configured is not None:
            location = configured

    if location is None:
        raise ConfigurationError(
            message=(
                f"{label} location not found. Define location with {prop} in the "
                f"{LOCAL_PROPERTIES} file or with an {env_var} environment variable."
            ),
            field_name=prop,
        )

    if not location.is_dir():
        raise ConfigurationError(
            message=f"The {label} directory '{location}' specified in {LOCAL_PROPERTIES} does not exist.",
            field_name=prop,
        )
    return location


def locate_sdk(project_root: Path, configured: Path | None = None) -> Path:
    """Find the Android SDK for a project.

    ``sdk.dir`` in local.properties wins, then ``ANDROID_HOME``, then the
    configured ``tools.android_sdk_root``.
    """
    return _locate(project_root, "sdk.dir", "ANDROID_HOME", "SDK", configured)


def locate_ndk(project_root: Path, configured: Path | None = None) -> Path:
    """Find the Android NDK for a project.

    ``ndk.dir`` in local.properties wins, then ``ANDROID_NDK_ROOT``, then the
    configured ``tools.android_ndk_root``.
    """
    return _locate(project_root, "ndk.dir", "ANDROID_NDK_ROOT", "NDK", configured)
