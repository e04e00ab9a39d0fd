"""
Version catalogs built from remote index pages.

Each listing is fetched as text and version tokens are extracted with a
fixed pattern matching the known layout of that index. A failed fetch is
SourceUnavailable; a successful fetch without matches is NoCandidates.
Nothing is cached, every call fetches again.
"""

import platform
import re
from typing import Iterable, List, Optional, Protocol

import requests

from rtkernel.common import logger, run_command
from rtkernel.config import DEFAULT_CONFIG, RtKernelConfig, debian_codename
from rtkernel.errors import NoCandidates, SourceUnavailable
from rtkernel.links import LinkBuilder
from rtkernel.models import (
    CandidateSet,
    DebianPackage,
    DownloadLink,
    VersionIdentifier,
    VersionKind,
)
from rtkernel.versions import VersionLike, kernel_release_to_version


# kernel.org/pub/linux/kernel/projects/rt/ lists one directory per minor version
MINOR_VERSION_PATTERN = re.compile(r'href="([0-9]+\.[0-9]+)/"')

# projects/rt/<minor>/older/ lists every compressed patch of that minor version
PATCH_VERSION_PATTERN = re.compile(
    r'href="patch-([0-9]+\.[0-9]+(?:\.[0-9]+)?-rt[0-9]+)\.patch\.xz"'
)

# packages.debian.org download pages list one mirror per <li>
DEBIAN_MIRROR_PATTERN = re.compile(r'<li><a href="([^"]*\.deb)">')


def _unique(values: Iterable[str]) -> List[str]:
    seen = set()
    result = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result


def extract_minor_versions(listing: str) -> List[str]:
    """Extract minor versions from the rt project index."""
    return _unique(MINOR_VERSION_PATTERN.findall(listing))


def extract_patch_versions(listing: str) -> List[str]:
    """Extract full patch versions from an rt minor version index."""
    return _unique(PATCH_VERSION_PATTERN.findall(listing))


def extract_debian_packages(page: str, codename: str, architecture: str) -> List[str]:
    """Extract the rt image packages linked from the meta-package page."""
    pattern = re.compile(
        rf'<a href="/{re.escape(codename)}/(linux-image-[^"/]*-rt-{re.escape(architecture)})"'
    )
    return _unique(pattern.findall(page))


def extract_download_locations(page: str) -> List[str]:
    """Extract .deb mirror URLs from a package download page."""
    return _unique(DEBIAN_MIRROR_PATTERN.findall(page))


class TextFetcher(Protocol):
    """Capability to fetch a document as text."""

    def fetch(self, url: str) -> str:
        """Return the body of url, raising SourceUnavailable on failure."""
        ...


class HttpTextFetcher:
    """Fetch documents over HTTP(S) with requests."""

    def __init__(self, config: Optional[RtKernelConfig] = None):
        self.config = config or DEFAULT_CONFIG

    def fetch(self, url: str) -> str:
        logger.debug(f"Fetching {url}")
        try:
            response = requests.get(
                url,
                timeout=self.config.network_timeout,
                headers={"User-Agent": self.config.user_agent},
                allow_redirects=True,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise SourceUnavailable(url, str(e)) from e
        return response.text


class VersionCatalog:
    """List rt patch versions published on kernel.org."""

    def __init__(
        self,
        config: Optional[RtKernelConfig] = None,
        fetcher: Optional[TextFetcher] = None,
    ):
        self.config = config or DEFAULT_CONFIG
        self.fetcher = fetcher or HttpTextFetcher(self.config)
        self.links = LinkBuilder(self.config)

    def list_minor_patch_versions(self) -> CandidateSet:
        """
        List the minor kernel versions that have rt patches.

        Returns:
            CandidateSet of minor versions in listing order

        Raises:
            SourceUnavailable: if the index cannot be fetched
            NoCandidates: if the index lists no minor versions
        """
        url = self.links.rt_index_url()
        versions = extract_minor_versions(self.fetcher.fetch(url))
        if not versions:
            raise NoCandidates(url, "rt minor versions")

        logger.debug(f"Found {len(versions)} rt minor versions")
        return CandidateSet.from_strings(VersionKind.MINOR, versions, source=url)

    def list_full_patch_versions(self, minor: VersionLike) -> CandidateSet:
        """
        List the rt patch versions released for a minor kernel version.

        Args:
            minor: Minor kernel version (e.g. "5.10")

        Returns:
            CandidateSet of full patch versions in listing order

        Raises:
            SourceUnavailable: if the index cannot be fetched
            NoCandidates: if the index lists no patches
        """
        url = self.links.rt_patch_index_url(minor)
        versions = extract_patch_versions(self.fetcher.fetch(url))
        if not versions:
            raise NoCandidates(url, f"rt patches for {minor}")

        logger.debug(f"Found {len(versions)} rt patches for {minor}")
        return CandidateSet.from_strings(VersionKind.FULL_PATCH, versions, source=url)

    def current_system_kernel_version(self, release: Optional[str] = None) -> VersionIdentifier:
        """Get the version of the running kernel (or of the given release string)."""
        release = release if release is not None else platform.release()
        return kernel_release_to_version(release)

    def resolve_candidate_versions(
        self,
        kind: VersionKind,
        minor: Optional[VersionLike] = None,
    ) -> CandidateSet:
        """
        List candidates of the given kind.

        Args:
            kind: VersionKind.MINOR or VersionKind.FULL_PATCH
            minor: Minor version, required for full patches
        """
        if kind == VersionKind.MINOR:
            return self.list_minor_patch_versions()
        if kind == VersionKind.FULL_PATCH:
            if minor is None:
                raise ValueError("A minor version is required to list full patches")
            return self.list_full_patch_versions(minor)
        raise ValueError(f"Cannot list candidates of kind {kind.value}")


class DebianCatalog:
    """Find rt kernel image packages on packages.debian.org."""

    def __init__(
        self,
        config: Optional[RtKernelConfig] = None,
        fetcher: Optional[TextFetcher] = None,
    ):
        self.config = config or DEFAULT_CONFIG
        self.fetcher = fetcher or HttpTextFetcher(self.config)
        self.links = LinkBuilder(self.config)

    def debian_versions(self) -> List[str]:
        """
        Get the Debian releases of this system.

        /etc/debian_version holds either a release number ("12.5") or
        codenames separated by '/' ("trixie/sid").
        """
        path = self.config.debian_version_file
        try:
            content = path.read_text()
        except OSError as e:
            raise SourceUnavailable(str(path), str(e)) from e

        versions = [v.strip() for v in content.strip().split("/") if v.strip()]
        return _unique(debian_codename(v) for v in versions)

    def architecture(self) -> str:
        """Get the dpkg architecture of this system."""
        returncode, stdout, stderr = run_command(["dpkg", "--print-architecture"])
        if returncode != 0 or not stdout.strip():
            raise SourceUnavailable("dpkg --print-architecture", stderr.strip() or "no output")
        return stdout.strip()

    def preemptrt_package(self, codename: str, architecture: str) -> str:
        """
        Get the rt image package the linux-image-rt-<arch> meta-package depends on.

        Raises:
            SourceUnavailable: if the package page cannot be fetched
            NoCandidates: if the release has no rt image package
        """
        url = self.links.debian_index_url(codename, architecture)
        packages = extract_debian_packages(self.fetcher.fetch(url), codename, architecture)
        if not packages:
            raise NoCandidates(url, f"rt kernel packages for {codename}")
        return packages[0]

    def available_packages(
        self,
        codenames: Iterable[str],
        architecture: str,
    ) -> List[DebianPackage]:
        """
        Get the rt image package of every release that has one.

        Releases without an rt package are skipped.

        Raises:
            NoCandidates: if none of the releases has an rt package
        """
        codenames = list(codenames)
        packages = []
        for codename in codenames:
            try:
                name = self.preemptrt_package(codename, architecture)
            except NoCandidates:
                logger.debug(f"No rt kernel package for {codename}/{architecture}")
                continue
            packages.append(DebianPackage(codename=codename, architecture=architecture, name=name))

        if not packages:
            raise NoCandidates(
                self.config.debian_mirror,
                f"rt kernel packages for {', '.join(codenames) or 'any release'}",
            )
        return packages

    def download_locations(
        self,
        codename: str,
        architecture: str,
        package: str,
    ) -> List[DownloadLink]:
        """
        Get the mirror download links of a package.

        Raises:
            SourceUnavailable: if the download page cannot be fetched
            NoCandidates: if the page lists no mirrors
            LinkConstructionError: if a listed mirror is not a valid .deb URL
        """
        url = self.links.debian_download_page_url(codename, architecture, package)
        locations = extract_download_locations(self.fetcher.fetch(url))
        if not locations:
            raise NoCandidates(url, f"download mirrors for {package}")
        return [self.links.debian_package_link(location) for location in locations]
