"""Variant configuration for apkforge."""

from .configuration import (
    DEFAULT_TEST_RUNNER,
    VariantConfiguration,
    VariantConfigurationBuilder,
    VariantType,
)

__all__ = [
    "DEFAULT_TEST_RUNNER",
    "VariantConfiguration",
    "VariantConfigurationBuilder",
    "VariantType",
]
