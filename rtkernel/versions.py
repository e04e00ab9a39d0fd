"""
Derivation of related version identifiers.

A full rt patch version determines everything else needed to fetch a
matching kernel:

    5.10.78-rt55  ->  5.10.78  ->  5.10  ->  v5.x
    (patch)           (kernel)     (minor)   (major tag)

All functions are pure and accept either a VersionIdentifier of the
expected kind or a plain string, which is parsed first.
"""

import re
from typing import Union

from rtkernel.common import logger
from rtkernel.errors import MalformedVersion
from rtkernel.models import ResolvedVersions, VersionIdentifier, VersionKind


VersionLike = Union[VersionIdentifier, str]

_RT_SUFFIX = re.compile(r"-rt[0-9]+\Z")


def kernel_from_patch(patch: VersionLike) -> VersionIdentifier:
    """
    Get the kernel version an rt patch applies to.

    Args:
        patch: Full patch version (e.g. "5.10.78-rt55")

    Returns:
        Full kernel version (e.g. "5.10.78")

    Raises:
        MalformedVersion: if the input does not end in -rt<digits>
    """
    patch_id = VersionIdentifier.coerce(patch, VersionKind.FULL_PATCH)
    kernel = _RT_SUFFIX.sub("", patch_id.value)
    return VersionIdentifier.full_kernel(kernel)


def minor_from_kernel(kernel: VersionLike) -> VersionIdentifier:
    """
    Get the minor version of a kernel release.

    Args:
        kernel: Full kernel version (e.g. "5.10.78")

    Returns:
        Minor kernel version (e.g. "5.10")

    Raises:
        MalformedVersion: if fewer than two components are present
    """
    kernel_id = VersionIdentifier.coerce(kernel, VersionKind.FULL_KERNEL)
    major, minor = kernel_id.value.split(".")[:2]
    return VersionIdentifier.minor(f"{major}.{minor}")


def major_tag_from_minor(minor: VersionLike) -> VersionIdentifier:
    """
    Get the kernel.org source tree tag of a minor version.

    Args:
        minor: Minor kernel version (e.g. "5.11")

    Returns:
        Major tag (e.g. "v5.x")

    Raises:
        MalformedVersion: on a non-numeric leading component
    """
    minor_id = VersionIdentifier.coerce(minor, VersionKind.MINOR)
    major = int(minor_id.value.split(".")[0])
    return VersionIdentifier.major_tag(f"v{major}.x")


def trim_trailing_segment(text: str) -> str:
    """
    Remove everything from the last '.' onward.

    Text without a '.' is returned unchanged.
    """
    head, sep, _ = text.rpartition(".")
    return head if sep else text


def resolve_from_patch(patch: VersionLike) -> ResolvedVersions:
    """Derive the kernel, minor and major tag belonging to an rt patch."""
    patch_id = VersionIdentifier.coerce(patch, VersionKind.FULL_PATCH)
    kernel = kernel_from_patch(patch_id)
    minor = minor_from_kernel(kernel)
    major_tag = major_tag_from_minor(minor)

    logger.debug(f"Resolved {patch_id} -> {kernel} -> {minor} -> {major_tag}")
    return ResolvedVersions(patch=patch_id, kernel=kernel, minor=minor, major_tag=major_tag)


def kernel_release_to_version(release: str) -> VersionIdentifier:
    """
    Extract the kernel version from a running kernel release string.

    Args:
        release: Release as reported by uname (e.g. "5.15.0-91-generic")

    Returns:
        Full kernel version (e.g. "5.15.0")
    """
    match = re.match(r"([0-9]+\.[0-9]+(?:\.[0-9]+)?)", release.strip())
    if not match:
        raise MalformedVersion(release, VersionKind.FULL_KERNEL.value, "no leading version")
    return VersionIdentifier.full_kernel(match.group(1))
