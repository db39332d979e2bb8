"""
apkforge: Android build variant resolution and build-graph construction.

This package merges build types and product flavors into per-variant
configurations, flattens library dependency graphs into override order and
wires the toolchain steps that turn a variant into an installable APK.
"""

__version__ = "0.4.0"
__author__ = "apkforge Team"
