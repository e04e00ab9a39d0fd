"""Tests for versions module."""

import pytest

from rtkernel.errors import MalformedVersion
from rtkernel.models import VersionIdentifier, VersionKind
from rtkernel.versions import (
    kernel_from_patch,
    kernel_release_to_version,
    major_tag_from_minor,
    minor_from_kernel,
    resolve_from_patch,
    trim_trailing_segment,
)


class TestKernelFromPatch:
    """Tests for kernel_from_patch."""

    def test_strips_rt_suffix(self):
        """Test stripping the -rtN suffix."""
        kernel = kernel_from_patch("5.10.78-rt55")
        assert kernel.kind == VersionKind.FULL_KERNEL
        assert kernel.value == "5.10.78"

    def test_mainline_patch(self):
        """Test patch against a release without patch level."""
        assert kernel_from_patch("6.6-rt15").value == "6.6"

    def test_accepts_identifier(self):
        """Test passing a parsed identifier."""
        patch = VersionIdentifier.full_patch("6.1.59-rt16")
        assert kernel_from_patch(patch).value == "6.1.59"

    def test_missing_suffix_fails(self):
        """Test a kernel version is rejected instead of truncated."""
        with pytest.raises(MalformedVersion):
            kernel_from_patch("5.10.78")

    def test_garbage_fails(self):
        """Test malformed patch strings."""
        for value in ["5.10.78-rt", "5.10.78-rtx", "rt55", "", "5.10.78-rt55a"]:
            with pytest.raises(MalformedVersion):
                kernel_from_patch(value)

    def test_non_ascii_and_trailing_newline_fail(self):
        """Test full-width digits and a trailing newline are not accepted."""
        for value in ["５.10.78-rt55", "5.10.78-rt55\n"]:
            with pytest.raises(MalformedVersion):
                resolve_from_patch(value)

    def test_wrong_kind_fails(self):
        """Test passing an identifier of another kind."""
        with pytest.raises(MalformedVersion):
            kernel_from_patch(VersionIdentifier.full_kernel("5.10.78"))


class TestMinorFromKernel:
    """Tests for minor_from_kernel."""

    def test_drops_patch_level(self):
        """Test dropping the patch level."""
        minor = minor_from_kernel("5.10.78")
        assert minor.kind == VersionKind.MINOR
        assert minor.value == "5.10"

    def test_two_components(self):
        """Test a release without patch level."""
        assert minor_from_kernel("6.6").value == "6.6"

    def test_single_component_fails(self):
        """Test fewer than two components."""
        with pytest.raises(MalformedVersion):
            minor_from_kernel("5")


class TestMajorTagFromMinor:
    """Tests for major_tag_from_minor."""

    def test_major_tag(self):
        """Test formatting the major tag."""
        assert major_tag_from_minor("5.11").value == "v5.x"
        assert major_tag_from_minor("6.12").value == "v6.x"

    def test_non_numeric_fails(self):
        """Test non-numeric leading component."""
        with pytest.raises(MalformedVersion):
            major_tag_from_minor("x.10")


class TestResolveFromPatch:
    """Tests for the full derivation chain."""

    def test_worked_example(self):
        """Test 5.10.78-rt55 -> 5.10.78 -> 5.10 -> v5.x."""
        resolved = resolve_from_patch("5.10.78-rt55")
        assert resolved.patch.value == "5.10.78-rt55"
        assert resolved.kernel.value == "5.10.78"
        assert resolved.minor.value == "5.10"
        assert resolved.major_tag.value == "v5.x"

    def test_chain_matches_individual_steps(self):
        """Test composing the steps by hand gives the same result."""
        for patch in ["4.19.255-rt113", "6.1.59-rt16", "6.12-rt5"]:
            kernel = kernel_from_patch(patch)
            minor = minor_from_kernel(kernel)
            resolved = resolve_from_patch(patch)
            assert resolved.kernel == kernel
            assert resolved.minor == minor
            assert resolved.major_tag.value == f"v{patch.split('.')[0]}.x"
            assert kernel.value.startswith(minor.value)

    def test_as_dict(self):
        """Test dictionary form."""
        assert resolve_from_patch("5.10.78-rt55").as_dict() == {
            "patch": "5.10.78-rt55",
            "kernel": "5.10.78",
            "minor": "5.10",
            "major_tag": "v5.x",
        }


class TestTrimTrailingSegment:
    """Tests for trim_trailing_segment."""

    def test_trims_last_segment(self):
        """Test removing from the last dot."""
        assert trim_trailing_segment("5.10.78") == "5.10"
        assert trim_trailing_segment("linux-image-6.12.6-rt-amd64_6.12.6-1_amd64.deb") == (
            "linux-image-6.12.6-rt-amd64_6.12.6-1_amd64"
        )

    def test_no_dot(self):
        """Test text without a dot is unchanged."""
        assert trim_trailing_segment("trixie") == "trixie"

    def test_trailing_dot(self):
        """Test text ending in a dot."""
        assert trim_trailing_segment("5.10.") == "5.10"


class TestKernelReleaseToVersion:
    """Tests for parsing running kernel releases."""

    def test_distribution_release(self):
        """Test a distribution kernel release string."""
        assert kernel_release_to_version("5.15.0-91-generic").value == "5.15.0"

    def test_rt_release(self):
        """Test an rt kernel release string."""
        assert kernel_release_to_version("6.1.0-13-rt-amd64").value == "6.1.0"

    def test_invalid_release(self):
        """Test a release without leading version."""
        with pytest.raises(MalformedVersion):
            kernel_release_to_version("generic")
