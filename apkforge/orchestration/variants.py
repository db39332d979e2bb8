"""
Build variants.

A BuildVariant wraps a finalized VariantConfiguration with the names used
for tasks and output locations, and the flags deciding which packaging steps
run.
"""

from __future__ import annotations

from ..models.flavor import RELEASE
from ..variant.configuration import VariantConfiguration, VariantType


class BuildVariant:
    """A variant as seen by the task graph.

    Naming, for flavors ``f1`` and ``fa`` and build type ``debug``:

    - ``name``: ``F1FaDebug`` (``F1FaTest`` for the test variant)
    - ``dir_name``: ``f1/fa/debug``, used under each output folder
    - ``base_name``: ``f1-fa-debug``, used in archive file names
    """

    def __init__(self, config: VariantConfiguration, tested: BuildVariant | None = None) -> None:
        self.config = config
        self.tested = tested

    @property
    def name(self) -> str:
        return self.config.full_name

    @property
    def type(self) -> VariantType:
        return self.config.type

    @property
    def is_test(self) -> bool:
        return self.config.type == VariantType.TEST

    @property
    def is_library(self) -> bool:
        return self.config.type == VariantType.LIBRARY

    @property
    def build_type_name(self) -> str:
        return self.config.build_type.name

    @property
    def _segments(self) -> list[str]:
        last = "test" if self.is_test else self.config.build_type.name
        return [flavor.name for flavor in self.config.flavors] + [last]

    @property
    def dir_name(self) -> str:
        return "/".join(self._segments)

    @property
    def base_name(self) -> str:
        return "-".join(self._segments)

    @property
    def description(self) -> str:
        """Human readable description, e.g. ``Debug build for flavor F1Fa``."""
        flavors = self.config.flavor_name
        if self.is_test:
            return f"{self.config.flavored_name} test" if flavors else "test"
        build = self.config.build_type.name.capitalize()
        if flavors:
            return f"{build} build for flavor {flavors}"
        return f"{build} build"

    @property
    def is_signed(self) -> bool:
        """Whether the APK is signed.

        Test APKs are always signed with the debug identity.
        """
        if self.is_test:
            return True
        return self.config.build_type.debug_signed or self.config.merged_flavor.is_signing_ready

    @property
    def zip_align(self) -> bool:
        if self.is_test:
            return False
        return self.config.build_type.zip_align

    @property
    def run_proguard(self) -> bool:
        if self.is_test:
            return False
        return self.config.build_type.run_proguard

    @property
    def bundle_classifier(self) -> str | None:
        """Classifier of a library archive; the release bundle has none."""
        if self.config.build_type.name == RELEASE:
            return None
        return self.base_name

    def __repr__(self) -> str:
        return f"BuildVariant({self.name!r}, type={self.type.value})"
