"""
APK packager.

Assembles the final archive from the packaged resources, the dex file, Java
resources, the non-class content of packaged jars and native libraries, then
signs it.
"""

from __future__ import annotations

import zipfile
from pathlib import Path

from pydantic import BaseModel, Field

from ...core.exceptions import DuplicateFileError, PackagingError
from ...core.logging import get_logger
from .runner import CommandLineRunner

logger = get_logger(__name__)

# Files never copied from source folders
_IGNORED_NAMES = frozenset({"CVS", ".svn", ".git", "thumbs.db", "picasa.ini"})
_IGNORED_SUFFIXES = (".java", ".class", ".aidl", ".rs", ".scc", ".swp")
GDBSERVER = "gdbserver"


class SigningInfo(BaseModel):
    """A resolved signing identity."""

    keystore: Path = Field(description="Keystore holding the key")
    store_password: str
    key_alias: str
    key_password: str


def _is_ignored(name: str) -> bool:
    return name in _IGNORED_NAMES or name.startswith(".") or name.endswith(_IGNORED_SUFFIXES) or name.endswith("~")


class Packager:
    """Builds one APK.

    Every archive path is recorded with the file that provided it so that a
    second provider is reported with both origins.
    """

    def __init__(
        self,
        out_apk: Path,
        res_package: Path,
        dex_file: Path,
        signing: SigningInfo | None = None,
        runner: CommandLineRunner | None = None,
        signer: str = "jarsigner",
    ) -> None:
        self.out_apk = Path(out_apk)
        self.res_package = Path(res_package)
        self.dex_file = Path(dex_file)
        self.signing = signing
        self.runner = runner or CommandLineRunner()
        self.signer = signer
        self.debug_jni_mode = False
        self._origins: dict[str, Path] = {}
        self._entries: list[tuple[str, Path, str | None]] = []
        self._sealed = False

    def _add(self, archive_path: str, origin: Path, member: str | None = None) -> None:
        if self._sealed:
            raise PackagingError(message=f"APK {self.out_apk} is already sealed")
        previous = self._origins.get(archive_path)
        if previous is not None:
            raise DuplicateFileError(
                message="Duplicate file in APK",
                archive_path=archive_path,
                file1=previous,
                file2=origin,
            )
        self._origins[archive_path] = origin
        self._entries.append((archive_path, origin, member))

    def add_resource_package(self) -> None:
        """Add every entry of the packaged resources (``.ap_``)."""
        with zipfile.ZipFile(self.res_package) as zf:
            for name in zf.namelist():
                if not name.endswith("/"):
                    self._add(name, self.res_package, name)

    def add_dex(self) -> None:
        self._add("classes.dex", self.dex_file)

    def add_source_folder(self, folder: Path) -> None:
        """Add Java resources found under ``folder``."""
        folder = Path(folder)
        if not folder.is_dir():
            return
        for path in sorted(folder.rglob("*")):
            relative = path.relative_to(folder)
            if any(_is_ignored(part) for part in relative.parts) or not path.is_file():
                continue
            self._add(relative.as_posix(), path)

    def add_resources_from_jar(self, jar: Path) -> None:
        """Add the non-class entries of a jar, META-INF excluded."""
        with zipfile.ZipFile(jar) as zf:
            for name in zf.namelist():
                if name.endswith("/") or name.upper().startswith("META-INF/"):
                    continue
                if any(_is_ignored(part) for part in name.split("/")):
                    continue
                self._add(name, Path(jar), name)

    def add_native_libraries(self, jni_dir: Path) -> None:
        """Add ``<abi>/*.so`` as ``lib/<abi>/``, and gdbserver in debug JNI mode."""
        jni_dir = Path(jni_dir)
        if not jni_dir.is_dir():
            return
        for abi_dir in sorted(p for p in jni_dir.iterdir() if p.is_dir()):
            for lib in sorted(abi_dir.iterdir()):
                if not lib.is_file():
                    continue
                if lib.suffix == ".so" or (self.debug_jni_mode and lib.name == GDBSERVER):
                    self._add(f"lib/{abi_dir.name}/{lib.name}", lib)

    def seal_apk(self) -> Path:
        """Write the archive and sign it when a signing identity is set."""
        if self._sealed:
            raise PackagingError(message=f"APK {self.out_apk} is already sealed")
        self._sealed = True

        self.out_apk.parent.mkdir(parents=True, exist_ok=True)
        archives: dict[Path, zipfile.ZipFile] = {}
        try:
            with zipfile.ZipFile(self.out_apk, "w", compression=zipfile.ZIP_DEFLATED) as out:
                for archive_path, origin, member in self._entries:
                    if member is None:
                        out.write(origin, archive_path)
                        continue
                    source = archives.get(origin)
                    if source is None:
                        source = archives[origin] = zipfile.ZipFile(origin)
                    info = source.getinfo(member)
                    out.writestr(info, source.read(member), compress_type=info.compress_type)
        finally:
            for archive in archives.values():
                archive.close()

        logger.info("Packaged APK", apk=str(self.out_apk), entries=len(self._entries))

        if self.signing is not None:
            self._sign(self.signing)
        return self.out_apk

    def _sign(self, signing: SigningInfo) -> None:
        self.runner.run_cmd_line(
            [
                self.signer,
                "-keystore",
                str(signing.keystore),
                "-storepass",
                signing.store_password,
                "-keypass",
                signing.key_password,
                "-sigalg",
                "SHA1withRSA",
                "-digestalg",
                "SHA1",
                str(self.out_apk),
                signing.key_alias,
            ]
        )
        logger.info("Signed APK", apk=str(self.out_apk), alias=signing.key_alias)
