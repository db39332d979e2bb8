"""Test configuration for apkforge."""

import tempfile
from pathlib import Path

import pytest
import structlog

from apkforge.core.config import BuildDirsConfig, Config, SigningDefaults
from apkforge.models.project import AndroidProject
from apkforge.services.manifest import DefaultManifestParser
from apkforge.services.toolchain import AndroidBuilder, AndroidTarget

MANIFEST_TEMPLATE = """\
<?xml version="1.0" encoding="utf-8"?>
<manifest xmlns:android="http://schemas.android.com/apk/res/android" package="{package}">
{uses_sdk}    <application android:label="app">
{body}    </application>
</manifest>
"""


class RecordingRunner:
    """Command line runner that records commands instead of running them."""

    def __init__(self, output: str = ""):
        self.commands: list[list[str]] = []
        self.cwds: list[Path | None] = []
        self.output = output

    def run_cmd_line(self, command, cwd=None):
        self.commands.append([str(part) for part in command])
        self.cwds.append(cwd)
        return self.output

    def tools(self) -> list[str]:
        """Names of the executables that were called, in order."""
        return [Path(command[0]).name for command in self.commands]


def write_manifest_file(
    path: Path,
    package: str = "com.example.app",
    min_sdk: int | str | None = None,
    body: str = "",
) -> Path:
    """Write an AndroidManifest.xml, creating parent folders."""
    uses_sdk = f'    <uses-sdk android:minSdkVersion="{min_sdk}" />\n' if min_sdk is not None else ""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        MANIFEST_TEMPLATE.format(package=package, uses_sdk=uses_sdk, body=body),
        encoding="utf-8",
    )
    return path


@pytest.fixture(autouse=True)
def reset_structlog():
    """Restore the default structlog configuration after each test."""
    yield
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests.

    Yields:
        Path: A Path object pointing to the temporary directory.
            The directory is automatically cleaned up after the test.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def write_manifest():
    """Provide the manifest writer.

    Returns:
        Callable: write_manifest_file(path, package, min_sdk, body).
    """
    return write_manifest_file


@pytest.fixture
def manifest_parser():
    """Create a manifest parser with an empty cache."""
    return DefaultManifestParser()


@pytest.fixture
def runner():
    """Create a runner recording every command line."""
    return RecordingRunner()


@pytest.fixture
def config(temp_dir):
    """Create a configuration isolated from the environment.

    The debug keystore lives in the temporary directory and the build
    directory is relative to each project.
    """
    return Config(
        build=BuildDirsConfig(build_dir=Path("build")),
        signing=SigningDefaults(debug_keystore=temp_dir / "keystore" / "debug.keystore"),
    )


@pytest.fixture
def android_target(temp_dir):
    """Create an API 17 target in a fake SDK; nothing is checked on disk."""
    return AndroidTarget(sdk_root=temp_dir / "sdk", api_level=17)


@pytest.fixture
def builder(android_target, config, runner, manifest_parser):
    """Create a builder whose tool calls are recorded."""
    return AndroidBuilder(android_target, config=config, runner=runner, manifest_parser=manifest_parser)


@pytest.fixture
def make_project(temp_dir):
    """Create projects with a main manifest on disk.

    Returns:
        Callable: make(package="com.example.app", min_sdk=None, **fields)
            returning an AndroidProject rooted in ``temp_dir/app``.
    """

    def make(package: str = "com.example.app", min_sdk: int | None = None, **fields) -> AndroidProject:
        project_dir = temp_dir / "app"
        write_manifest_file(project_dir / "src" / "main" / "AndroidManifest.xml", package, min_sdk)
        fields.setdefault("name", "app")
        return AndroidProject(project_dir=project_dir, **fields)

    return make
