"""
Library bundles.

A library variant is packaged as a folder with the conventional bundle layout
(manifest, ``classes.jar``, ``res/``, ``aidl/``, ``R.txt``...) which is then
zipped into an ``.aar`` archive. Bundles declared as archives are exploded
before use.
"""

from __future__ import annotations

import shutil
import zipfile
from collections.abc import Sequence
from pathlib import Path

from ...core.exceptions import DependencyError, DuplicateFileError
from ...core.logging import get_logger

logger = get_logger(__name__)

BUNDLE_EXTENSION = "aar"


def copy_folders(sources: Sequence[Path], destination: Path) -> int:
    """Copy the content of the existing ``sources`` into ``destination``.

    Folders are copied in order, so a file of a later folder replaces the file
    of an earlier one at the same relative path.

    Returns:
        int: Number of files copied.
    """
    destination = Path(destination)
    destination.mkdir(parents=True, exist_ok=True)
    count = 0
    for source in sources:
        if not source.is_dir():
            continue
        for path in sorted(source.rglob("*")):
            if not path.is_file():
                continue
            target = destination / path.relative_to(source)
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(path, target)
            count += 1
    return count


def _is_r_class(relative: str, package_path: str | None) -> bool:
    if package_path is None:
        return False
    folder, _, name = relative.rpartition("/")
    return folder == package_path and (name == "R.class" or name.startswith("R$"))


def package_classes_jar(
    classes_dir: Path,
    java_resources_dir: Path | None,
    out_jar: Path,
    package_name: str | None = None,
) -> Path:
    """Jar the compiled classes and Java resources of a library.

    The ``R`` classes of the library package are left out: the application
    consuming the library regenerates them with its final identifiers.

    Args:
        classes_dir: Compiler output.
        java_resources_dir: Merged Java resources, if any.
        out_jar: The ``classes.jar`` to write.
        package_name: Package of the library.

    Raises:
        DuplicateFileError: If the classes and the resources both provide a file.
    """
    package_path = package_name.replace(".", "/") if package_name else None
    seen: dict[str, Path] = {}

    out_jar = Path(out_jar)
    out_jar.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(out_jar, "w", compression=zipfile.ZIP_DEFLATED) as jar:
        for root in (classes_dir, java_resources_dir):
            if root is None or not root.is_dir():
                continue
            for path in sorted(root.rglob("*")):
                if not path.is_file():
                    continue
                relative = path.relative_to(root).as_posix()
                if _is_r_class(relative, package_path):
                    continue
                if relative in seen:
                    raise DuplicateFileError(
                        message=f"Duplicate entry {relative} in {out_jar}",
                        archive_path=relative,
                        file1=seen[relative],
                        file2=path,
                    )
                seen[relative] = path
                jar.write(path, relative)

    logger.debug("Packaged library classes", jar=str(out_jar), entries=len(seen))
    return out_jar


def zip_bundle(bundle_folder: Path, out_archive: Path) -> Path:
    """Zip a bundle folder into an ``.aar`` archive."""
    bundle_folder = Path(bundle_folder)
    out_archive = Path(out_archive)
    out_archive.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(out_archive, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for path in sorted(bundle_folder.rglob("*")):
            if path.is_file():
                archive.write(path, path.relative_to(bundle_folder).as_posix())
    logger.info("Bundled library", archive=str(out_archive))
    return out_archive


def explode_bundle(archive: Path, bundle_folder: Path) -> Path:
    """Extract a library archive into its bundle folder.

    Raises:
        DependencyError: If the archive is missing or is not a zip file.
    """
    archive = Path(archive)
    if not archive.is_file():
        raise DependencyError(message=f"Library archive not found: {archive}", dependency=str(archive))

    try:
        with zipfile.ZipFile(archive, "r") as zf:
            zf.extractall(bundle_folder)
    except zipfile.BadZipFile as e:
        raise DependencyError(
            message=f"Invalid library archive: {archive}",
            dependency=str(archive),
            cause=e,
        ) from e

    logger.debug("Exploded library bundle", archive=str(archive), folder=str(bundle_folder))
    return Path(bundle_folder)


def bundle_archive_name(base_name: str, classifier: str | None = None) -> str:
    """Archive name of a library variant, e.g. ``lib-debug.aar`` or ``lib.aar``."""
    if classifier:
        return f"{base_name}-{classifier}.{BUNDLE_EXTENSION}"
    return f"{base_name}.{BUNDLE_EXTENSION}"
