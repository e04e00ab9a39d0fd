"""
Construction of download links following the upstream mirror layouts.

kernel.org:
    {mirror}/v5.x/linux-5.10.78.tar.xz
    {mirror}/v5.x/linux-5.10.78.tar.sign
    {mirror}/projects/rt/5.10/older/patch-5.10.78-rt55.patch.xz
    {mirror}/projects/rt/5.10/older/patch-5.10.78-rt55.patch.sign

packages.debian.org:
    {mirror}/trixie/linux-image-rt-amd64
    {mirror}/trixie/amd64/linux-image-6.12.6-rt-amd64/download

No network access happens here. Every link is validated before it is
returned, so a malformed URL never reaches a downloader.
"""

import re
from typing import Iterable, Optional, Tuple
from urllib.parse import urlparse

from rtkernel.common import logger
from rtkernel.config import (
    DEFAULT_CONFIG,
    DEBIAN_PACKAGE_EXT,
    KERNEL_SIGNATURE_EXT,
    KERNEL_TARBALL_EXT,
    PATCH_FILE_EXT,
    PATCH_SIGNATURE_EXT,
    RT_OLDER_DIR,
    RtKernelConfig,
)
from rtkernel.errors import LinkConstructionError
from rtkernel.models import (
    ArtifactKind,
    DownloadLink,
    LinkSet,
    ResolvedVersions,
    VersionIdentifier,
    VersionKind,
)
from rtkernel.versions import (
    VersionLike,
    kernel_from_patch,
    major_tag_from_minor,
    minor_from_kernel,
)


ARTIFACT_EXTENSIONS = {
    ArtifactKind.KERNEL_TARBALL: KERNEL_TARBALL_EXT,
    ArtifactKind.KERNEL_SIGNATURE: KERNEL_SIGNATURE_EXT,
    ArtifactKind.PATCH_FILE: PATCH_FILE_EXT,
    ArtifactKind.PATCH_SIGNATURE: PATCH_SIGNATURE_EXT,
    ArtifactKind.DEBIAN_PACKAGE: DEBIAN_PACKAGE_EXT,
}

# Debian codenames and dpkg architecture names
_TOKEN = re.compile(r"[a-z0-9][a-z0-9.+-]*")


def validate_url(url: str, extensions: Optional[Iterable[str]] = None) -> str:
    """
    Check that a URL is an absolute http(s) URL, optionally with a given extension.

    Args:
        url: URL to check
        extensions: Accepted path suffixes; any path is accepted if None

    Returns:
        The URL unchanged

    Raises:
        LinkConstructionError: if any check fails
    """
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https"):
        raise LinkConstructionError(url, "scheme must be http or https")
    if not parsed.netloc:
        raise LinkConstructionError(url, "missing host")
    if any(c.isspace() for c in url):
        raise LinkConstructionError(url, "contains whitespace")

    if extensions is not None:
        extensions = tuple(extensions)
        if not parsed.path.endswith(extensions):
            raise LinkConstructionError(url, f"expected one of {', '.join(extensions)}")

    return url


def make_link(
    url: str,
    artifact: ArtifactKind,
    derived_from: Tuple[VersionIdentifier, ...] = (),
) -> DownloadLink:
    """Validate a URL against its artifact extension and wrap it in a DownloadLink."""
    validate_url(url, [ARTIFACT_EXTENSIONS[artifact]])
    return DownloadLink(url=url, artifact=artifact, derived_from=derived_from)


def _check_token(value: str, what: str) -> str:
    if not value or not _TOKEN.fullmatch(value):
        raise LinkConstructionError(value, f"invalid {what}")
    return value


class LinkBuilder:
    """Build download and index URLs for kernel.org and packages.debian.org."""

    def __init__(self, config: Optional[RtKernelConfig] = None):
        self.config = config or DEFAULT_CONFIG

    # -------------------------------------------------------------------------
    # kernel.org
    # -------------------------------------------------------------------------

    def rt_index_url(self) -> str:
        """Get the index listing all rt minor versions."""
        return validate_url(self.config.rt_index_url)

    def rt_patch_index_url(self, minor: VersionLike) -> str:
        """Get the index listing every rt patch of a minor version."""
        minor_id = VersionIdentifier.coerce(minor, VersionKind.MINOR)
        return validate_url(f"{self.config.rt_index_url}{minor_id}/{RT_OLDER_DIR}/")

    def kernel_links(
        self,
        major_tag: VersionLike,
        kernel: VersionLike,
    ) -> Tuple[DownloadLink, DownloadLink]:
        """
        Build the kernel tarball link and its detached signature link.

        Args:
            major_tag: Major tag (e.g. "v5.x")
            kernel: Full kernel version (e.g. "5.10.78")

        Returns:
            Tuple of (tarball link, signature link)
        """
        tag_id = VersionIdentifier.coerce(major_tag, VersionKind.MAJOR_TAG)
        kernel_id = VersionIdentifier.coerce(kernel, VersionKind.FULL_KERNEL)
        if major_tag_from_minor(minor_from_kernel(kernel_id)) != tag_id:
            raise LinkConstructionError(
                kernel_id.value, f"kernel does not belong to source tree {tag_id}"
            )
        base = f"{self.config.kernel_mirror}/{tag_id}/linux-{kernel_id}"
        derived = (tag_id, kernel_id)

        return (
            make_link(f"{base}{KERNEL_TARBALL_EXT}", ArtifactKind.KERNEL_TARBALL, derived),
            make_link(f"{base}{KERNEL_SIGNATURE_EXT}", ArtifactKind.KERNEL_SIGNATURE, derived),
        )

    def patch_links(
        self,
        minor: VersionLike,
        patch: VersionLike,
    ) -> Tuple[DownloadLink, DownloadLink]:
        """
        Build the rt patch link and its detached signature link.

        Args:
            minor: Minor kernel version (e.g. "5.10")
            patch: Full patch version (e.g. "5.10.78-rt55")

        Returns:
            Tuple of (patch link, signature link)
        """
        minor_id = VersionIdentifier.coerce(minor, VersionKind.MINOR)
        patch_id = VersionIdentifier.coerce(patch, VersionKind.FULL_PATCH)
        if minor_from_kernel(kernel_from_patch(patch_id)) != minor_id:
            raise LinkConstructionError(
                patch_id.value, f"patch does not belong to minor version {minor_id}"
            )
        base = (
            f"{self.config.rt_index_url}{minor_id}/{RT_OLDER_DIR}/patch-{patch_id}"
        )
        derived = (minor_id, patch_id)

        return (
            make_link(f"{base}{PATCH_FILE_EXT}", ArtifactKind.PATCH_FILE, derived),
            make_link(f"{base}{PATCH_SIGNATURE_EXT}", ArtifactKind.PATCH_SIGNATURE, derived),
        )

    def build_links(self, resolved: ResolvedVersions) -> LinkSet:
        """Build all four links for a resolved patch/kernel combination."""
        kernel, kernel_sig = self.kernel_links(resolved.major_tag, resolved.kernel)
        patch, patch_sig = self.patch_links(resolved.minor, resolved.patch)

        logger.debug(f"Built links for {resolved.patch}: {kernel.url}, {patch.url}")
        return LinkSet(
            kernel=kernel,
            kernel_signature=kernel_sig,
            patch=patch,
            patch_signature=patch_sig,
        )

    # -------------------------------------------------------------------------
    # packages.debian.org
    # -------------------------------------------------------------------------

    def debian_index_url(self, codename: str, architecture: str) -> str:
        """Get the page of the rt kernel meta-package for a release and architecture."""
        _check_token(codename, "Debian codename")
        _check_token(architecture, "architecture")
        return validate_url(
            f"{self.config.debian_mirror}/{codename}/linux-image-rt-{architecture}"
        )

    def debian_download_page_url(self, codename: str, architecture: str, package: str) -> str:
        """Get the page listing the download mirrors of a package."""
        _check_token(codename, "Debian codename")
        _check_token(architecture, "architecture")
        _check_token(package, "package name")
        return validate_url(
            f"{self.config.debian_mirror}/{codename}/{architecture}/{package}/download"
        )

    def debian_package_link(self, url: str) -> DownloadLink:
        """Wrap a mirror URL of a .deb file in a validated DownloadLink."""
        return make_link(url, ArtifactKind.DEBIAN_PACKAGE)


def build_links(
    resolved: ResolvedVersions,
    config: Optional[RtKernelConfig] = None,
) -> LinkSet:
    """Build the kernel, kernel signature, patch and patch signature links."""
    return LinkBuilder(config).build_links(resolved)
