"""Manifest reading, merging and generation."""

from .service import (
    CommandLineManifestMerger,
    DefaultManifestParser,
    ManifestMerger,
    ManifestParser,
    ManifestService,
    XmlManifestMerger,
    attribute_injection_map,
    create_manifest_merger,
    generate_test_manifest,
    get_manifest_parser,
)

__all__ = [
    "CommandLineManifestMerger",
    "DefaultManifestParser",
    "ManifestMerger",
    "ManifestParser",
    "ManifestService",
    "XmlManifestMerger",
    "attribute_injection_map",
    "create_manifest_merger",
    "generate_test_manifest",
    "get_manifest_parser",
]
