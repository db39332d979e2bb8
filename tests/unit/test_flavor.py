"""Unit tests for build types and product flavors."""

from apkforge.models import (
    BuildType,
    ConstantLines,
    ProductFlavor,
    SigningConfig,
    fold_flavors,
    merge_flavors,
)


class TestProductFlavorMerge:
    """Tests for the field by field flavor merge."""

    def test_overlay_wins_when_set(self):
        """Test overlay precedence.

        Verifies that a field set on the overlay replaces the base value
        while unset overlay fields keep the base value.
        """
        base = ProductFlavor(name="main", package_name="com.example", version_code=1, min_sdk_version=8)
        overlay = ProductFlavor(name="free", version_code=2)

        merged = overlay.merge_over(base)

        assert merged.version_code == 2
        assert merged.package_name == "com.example"
        assert merged.min_sdk_version == 8

    def test_merge_result_is_unnamed(self):
        """Test merge result naming.

        Verifies that the merged flavor has an empty name and does not
        carry the build config lines of either input.
        """
        base = ProductFlavor(name="main", build_config=ConstantLines.of("int A = 1;"))
        merged = merge_flavors(ProductFlavor(name="free"), base)

        assert merged.name == ""
        assert merged.build_config.is_empty

    def test_inputs_are_not_modified(self):
        """Test merge purity.

        Verifies that neither flavor changes when they are merged.
        """
        base = ProductFlavor(name="main", version_name="1.0")
        overlay = ProductFlavor(name="free", version_name="1.0-free")

        overlay.merge_over(base)

        assert base.version_name == "1.0"
        assert overlay.version_name == "1.0-free"

    def test_signing_merged_field_by_field(self):
        """Test signing config merge.

        Verifies that the signing identity is assembled from both layers.
        """
        base = ProductFlavor(
            name="main",
            signing=SigningConfig(store_location="release.keystore", store_password="secret"),
        )
        overlay = ProductFlavor(name="paid", signing=SigningConfig(key_alias="paid", key_password="pw"))

        merged = overlay.merge_over(base)

        assert merged.signing.store_location == "release.keystore"
        assert merged.signing.key_alias == "paid"
        assert merged.is_signing_ready

    def test_fold_last_flavor_has_highest_priority(self):
        """Test flavor folding order.

        Verifies that flavors folded over the default config let the most
        recently added flavor win.
        """
        default = ProductFlavor(name="main", version_code=1, version_name="1.0")
        first = ProductFlavor(name="f1", version_code=10, target_sdk_version=15)
        second = ProductFlavor(name="fa", version_code=20)

        merged = fold_flavors(default, [first, second])

        assert merged.version_code == 20
        assert merged.target_sdk_version == 15
        assert merged.version_name == "1.0"

    def test_fold_without_flavors_returns_default(self):
        """Test folding an empty flavor list."""
        default = ProductFlavor(name="main", version_code=3)
        assert fold_flavors(default, []) is default


class TestSigningConfig:
    """Tests for signing readiness."""

    def test_ready_needs_all_fields(self):
        """Test signing completeness.

        Verifies that a signing config is ready only when its four fields
        are set.
        """
        partial = SigningConfig(store_location="k", store_password="p", key_alias="a")
        complete = SigningConfig(store_location="k", store_password="p", key_alias="a", key_password="kp")

        assert not partial.is_ready
        assert complete.is_ready
        assert not SigningConfig().is_ready


class TestBuildType:
    """Tests for build type conventions."""

    def test_debug_conventions(self):
        """Test debug defaults.

        Verifies that the debug build type is debuggable, debug signed and
        not zip aligned by default.
        """
        debug = BuildType(name="debug")

        assert debug.debuggable
        assert debug.debug_jni_build
        assert debug.debug_signed
        assert not debug.zip_align
        assert not debug.run_proguard

    def test_release_conventions(self):
        """Test release defaults."""
        release = BuildType(name="release")

        assert not release.debuggable
        assert not release.debug_signed
        assert release.zip_align

    def test_explicit_values_override_conventions(self):
        """Test explicit debug settings.

        Verifies that values given for the debug build type are kept.
        """
        debug = BuildType(name="debug", debug_signed=False, zip_align=True)

        assert not debug.debug_signed
        assert debug.zip_align
        assert debug.debuggable

    def test_custom_build_type_defaults(self):
        """Test user build type defaults."""
        staging = BuildType(name="staging", package_name_suffix=".staging")

        assert not staging.debuggable
        assert staging.zip_align
        assert staging.package_name_suffix == ".staging"


class TestConstantLines:
    """Tests for BuildConfig line blocks."""

    def test_of_keeps_order(self):
        """Test line block creation."""
        block = ConstantLines.of("int A = 1;", "int B = 2;")

        assert block.lines == ("int A = 1;", "int B = 2;")
        assert not block.is_empty
        assert ConstantLines().is_empty
