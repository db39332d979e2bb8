"""
Library Dependency Resolution Service.

Flattens a forest of library dependencies into a single ordered list, highest
priority first, and screens declared artifacts for conflicts with the
classes already provided by the Android platform.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from pydantic import BaseModel, Field

from ...core.exceptions import DependencyCycleError, DependencyError
from ...core.logging import get_logger
from ...models.dependency import AndroidDependency

logger = get_logger(__name__)


def resolve_library_dependencies(
    direct_dependencies: Sequence[AndroidDependency] | None,
) -> list[AndroidDependency]:
    """Flatten library dependencies into aapt priority order.

    Direct dependencies are walked in reverse declaration order. The children
    of each library are flattened first, then the library itself is inserted
    at the front of the result unless it is already there. Earlier declared
    libraries therefore end up with a higher priority, and a library reachable
    through several paths appears once.

    The nodes are only read, so graphs shared between variants stay intact.

    Args:
        direct_dependencies: Direct libraries in declaration order.

    Returns:
        list[AndroidDependency]: Every direct and transitive library, once.

    Raises:
        DependencyCycleError: If a library depends on itself, directly or not.
    """
    flat: list[AndroidDependency] = []
    _resolve(direct_dependencies or [], flat, [])
    logger.debug(
        "Resolved library dependencies",
        direct=[dep.name for dep in direct_dependencies or []],
        flat=[dep.name for dep in flat],
    )
    return flat


def _resolve(
    dependencies: Sequence[AndroidDependency],
    out: list[AndroidDependency],
    path: list[AndroidDependency],
) -> None:
    # loop in reverse so that a library required by two higher level libraries
    # lands in front of both
    for library in reversed(dependencies):
        if library in path:
            cycle = path[path.index(library):] + [library]
            raise DependencyCycleError(
                message="Library dependency cycle",
                dependency=library.name,
                cycle=[dep.name for dep in cycle],
            )

        path.append(library)
        _resolve(library.dependencies, out, path)
        path.pop()

        if library not in out:
            out.insert(0, library)


# Maven versions of com.google.android:android mapped to API levels
ANDROID_ARTIFACT_API_LEVELS: dict[str, int] = {
    "1.5_r3": 3,
    "1.5_r4": 3,
    "1.6_r2": 4,
    "2.1_r1": 7,
    "2.1.2": 7,
    "2.2.1": 8,
    "2.3.1": 9,
    "2.3.3": 10,
    "4.0.1.2": 14,
    "4.1.1.4": 15,
}

# Artifacts duplicating classes that ship inside the platform
PLATFORM_PROVIDED: frozenset[tuple[str, str]] = frozenset(
    {
        ("org.apache.httpcomponents", "httpclient"),
        ("xpp3", "xpp3"),
        ("commons-logging", "commons-logging"),
        ("xerces", "xmlParserAPIs"),
        ("org.json", "json"),
        ("org.khronos", "opengl-api"),
    }
)

# First API level with a repackaged internal BouncyCastle
BOUNCYCASTLE_SAFE_API = 11


class ModuleId(BaseModel):
    """A ``group:name:version`` artifact coordinate."""

    group: str = Field(description="Maven group")
    name: str = Field(description="Maven artifact name")
    version: str = Field(default="", description="Maven version")

    @classmethod
    def parse(cls, coordinate: str) -> ModuleId:
        """Parse ``group:name[:version]``.

        Raises:
            DependencyError: If the coordinate has fewer than two parts.
        """
        parts = coordinate.split(":")
        if len(parts) < 2:
            raise DependencyError(
                message=f"Invalid artifact coordinate '{coordinate}', expected group:name:version",
                dependency=coordinate,
            )
        return cls(group=parts[0], name=parts[1], version=parts[2] if len(parts) > 2 else "")

    def __str__(self) -> str:
        return f"{self.group}:{self.name}:{self.version}"


class DependencyChecker:
    """Checks declared artifacts for Android compatibility.

    Artifacts that the platform already provides are excluded from the
    variant; artifacts that cannot work on the variant's minimum SDK version
    are errors.
    """

    def __init__(self, variant_name: str, min_sdk_version: int | None) -> None:
        """Initialize the checker.

        Args:
            variant_name: Variant being checked, used in messages.
            min_sdk_version: Minimum SDK version of the variant. None is
                treated as API level 1.
        """
        self.variant_name = variant_name
        self.min_sdk_version = min_sdk_version if min_sdk_version is not None else 1

    def is_excluded(self, module: ModuleId) -> bool:
        """Whether ``module`` must be left out of the variant.

        Raises:
            DependencyError: If the artifact is incompatible with the variant.
        """
        if module.group == "com.google.android" and module.name == "android":
            level = ANDROID_ARTIFACT_API_LEVELS.get(module.version)
            if level is None:
                logger.warning("Unknown Android API artifact version", artifact=str(module))
            elif self.min_sdk_version < level:
                raise DependencyError(
                    message=(
                        f"Android API level {level} is in the dependency graph, but "
                        f"minSdkVersion for '{self.variant_name}' is {self.min_sdk_version}"
                    ),
                    dependency=str(module),
                )
            logger.info("Ignoring Android API artifact", artifact=str(module))
            return True

        if (module.group, module.name) in PLATFORM_PROVIDED:
            logger.warning(
                "Dependency is ignored as it may be conflicting with the internal version "
                "provided by Android. In case of problem, please repackage with jarjar to "
                "change the class packages",
                artifact=str(module),
                variant=self.variant_name,
            )
            return True

        if module.group == "org.bouncycastle" and module.name.startswith("bcprov"):
            if self.min_sdk_version >= BOUNCYCASTLE_SAFE_API:
                return False
            raise DependencyError(
                message=(
                    f"Dependency {module} is conflicting with the internal version provided "
                    "by Android. To use, please repackage with jarjar to change the class packages"
                ),
                dependency=str(module),
            )

        return False

    def filter(self, coordinates: Iterable[str]) -> list[str]:
        """Drop every excluded coordinate, keeping the order of the rest."""
        return [c for c in coordinates if not self.is_excluded(ModuleId.parse(c))]
