"""
Source set model.

Each configuration layer (default config, build type, product flavor, test)
has a source set. Every location is optional and is only consulted when it
exists on disk.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from .dependency import FD_AIDL, FD_ASSETS, FD_JNI, FD_RES, FN_ANDROID_MANIFEST_XML


class SourceProvider(BaseModel):
    """Locations of the sources of one configuration layer."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(default="", description="Source set name")
    manifest_file: Path | None = Field(default=None)
    java_dir: Path | None = Field(default=None, description="Java sources")
    java_resources_dir: Path | None = Field(default=None, description="Java resources")
    res_dir: Path | None = Field(default=None, description="Android resources")
    assets_dir: Path | None = Field(default=None)
    aidl_dir: Path | None = Field(default=None)
    renderscript_dir: Path | None = Field(default=None)
    jni_dir: Path | None = Field(default=None, description="Native libraries")

    @classmethod
    def from_root(cls, root: Path, name: str = "") -> SourceProvider:
        """Create a source set with the conventional layout under ``root``.

        Args:
            root: Source set directory, e.g. ``src/main``.
            name: Source set name. Defaults to the directory name.

        Returns:
            SourceProvider: Provider pointing at ``AndroidManifest.xml``,
                ``java``, ``resources``, ``res``, ``assets``, ``aidl``,
                ``rs`` and ``jni`` under ``root``.
        """
        root = Path(root)
        return cls(
            name=name or root.name,
            manifest_file=root / FN_ANDROID_MANIFEST_XML,
            java_dir=root / "java",
            java_resources_dir=root / "resources",
            res_dir=root / FD_RES,
            assets_dir=root / FD_ASSETS,
            aidl_dir=root / FD_AIDL,
            renderscript_dir=root / "rs",
            jni_dir=root / FD_JNI,
        )


def existing_dir(path: Path | None) -> Path | None:
    """Return ``path`` when it is an existing directory, else None."""
    if path is not None and path.is_dir():
        return path
    return None
