"""Services for apkforge: dependency resolution, manifests and the toolchain."""
