"""
Build type and product flavor models.

A variant is described by a stack of configuration layers: the default config,
one product flavor per flavor group and a build type. Product flavors are
merged field by field, the overlay winning whenever it sets a value. Build
types never take part in that merge; they contribute build-mode switches and
an optional package name suffix that is applied afterwards.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

DEBUG = "debug"
RELEASE = "release"


class ConstantLines(BaseModel):
    """Literal lines contributed verbatim to the generated BuildConfig class."""

    model_config = ConfigDict(frozen=True)

    lines: tuple[str, ...] = Field(default=(), description="Java declarations")

    @classmethod
    def of(cls, *lines: str) -> ConstantLines:
        """Create a block from individual lines."""
        return cls(lines=tuple(lines))

    @property
    def is_empty(self) -> bool:
        """Whether the block contributes nothing."""
        return not self.lines


class SigningConfig(BaseModel):
    """Release signing identity. All four fields are needed to sign."""

    model_config = ConfigDict(frozen=True)

    store_location: str | None = Field(default=None, description="Keystore path")
    store_password: str | None = Field(default=None)
    key_alias: str | None = Field(default=None)
    key_password: str | None = Field(default=None)

    @property
    def is_ready(self) -> bool:
        """Whether every part of the signing identity is known.

        Returns:
            bool: True when store location, store password, key alias and
                key password are all set.
        """
        return (
            self.store_location is not None
            and self.store_password is not None
            and self.key_alias is not None
            and self.key_password is not None
        )

    def merge_over(self, base: SigningConfig) -> SigningConfig:
        """Merge this identity on top of ``base``, field by field."""
        return SigningConfig(
            store_location=_choose(self.store_location, base.store_location),
            store_password=_choose(self.store_password, base.store_password),
            key_alias=_choose(self.key_alias, base.key_alias),
            key_password=_choose(self.key_password, base.key_password),
        )


class ProductFlavor(BaseModel):
    """A named, overridable bundle of product configuration.

    Every optional field uses None as "not set". The default config is itself a
    ProductFlavor (conventionally named ``main``).
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(default="", description="Flavor name, empty for merge results")
    package_name: str | None = Field(default=None, description="Application package override")
    version_code: int | None = Field(default=None)
    version_name: str | None = Field(default=None)
    min_sdk_version: int | None = Field(default=None)
    target_sdk_version: int | None = Field(default=None)
    test_package_name: str | None = Field(default=None)
    test_instrumentation_runner: str | None = Field(default=None)
    signing: SigningConfig = Field(default_factory=SigningConfig)
    flavor_group: str | None = Field(default=None, description="Flavor dimension")
    build_config: ConstantLines = Field(default_factory=ConstantLines)

    @property
    def is_signing_ready(self) -> bool:
        """Whether this flavor carries a complete signing identity."""
        return self.signing.is_ready

    def merge_over(self, base: ProductFlavor) -> ProductFlavor:
        """Merge this flavor on top of ``base`` and return a new, unnamed flavor.

        Args:
            base: The lower priority flavor.

        Returns:
            ProductFlavor: For each field, this flavor's value when set,
                otherwise the base value. Neither input is modified.
        """
        return ProductFlavor(
            name="",
            package_name=_choose(self.package_name, base.package_name),
            version_code=_choose(self.version_code, base.version_code),
            version_name=_choose(self.version_name, base.version_name),
            min_sdk_version=_choose(self.min_sdk_version, base.min_sdk_version),
            target_sdk_version=_choose(self.target_sdk_version, base.target_sdk_version),
            test_package_name=_choose(self.test_package_name, base.test_package_name),
            test_instrumentation_runner=_choose(
                self.test_instrumentation_runner, base.test_instrumentation_runner
            ),
            signing=self.signing.merge_over(base.signing),
        )


def merge_flavors(overlay: ProductFlavor, base: ProductFlavor) -> ProductFlavor:
    """Merge ``overlay`` on top of ``base``. See ProductFlavor.merge_over."""
    return overlay.merge_over(base)


def fold_flavors(default_config: ProductFlavor, flavors: list[ProductFlavor]) -> ProductFlavor:
    """Fold flavors over the default config in declaration order.

    The most recently added flavor has the highest priority and the default
    config the lowest. With no flavors the default config itself is returned.
    """
    merged = default_config
    for flavor in flavors:
        merged = flavor.merge_over(merged)
    return merged


class BuildType(BaseModel):
    """A named bundle of build-mode configuration.

    ``debug`` and ``release`` get their conventional defaults for every field
    that is not given explicitly.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Build type name")
    debuggable: bool = Field(default=False)
    debug_jni_build: bool = Field(default=False, description="Debug build of native code")
    debug_signed: bool = Field(default=False, description="Sign with the debug identity")
    package_name_suffix: str | None = Field(default=None)
    run_proguard: bool = Field(default=False, description="Run the code shrinker")
    zip_align: bool = Field(default=True)
    build_config: ConstantLines = Field(default_factory=ConstantLines)

    @model_validator(mode="before")
    @classmethod
    def _apply_conventions(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        if data.get("name") == DEBUG:
            data = dict(data)
            data.setdefault("debuggable", True)
            data.setdefault("debug_jni_build", True)
            data.setdefault("debug_signed", True)
            data.setdefault("zip_align", False)
        return data


def _choose(overlay: Any, base: Any) -> Any:
    return overlay if overlay is not None else base
