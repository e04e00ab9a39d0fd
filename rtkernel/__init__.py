"""
rtkernel - PREEMPT_RT kernel version resolution.

This package provides tools for:
- Listing rt patch releases on kernel.org and rt kernel packages on Debian
- Deriving the kernel release, minor version and source tree of an rt patch
- Building validated download links for kernels, patches and signatures
- Idempotent, atomic edits of KEY="VALUE" kernel build configurations
"""

__version__ = "1.0.0"

from rtkernel.config import RtKernelConfig, DEFAULT_CONFIG
from rtkernel.errors import (
    RtKernelError,
    SourceUnavailable,
    NoCandidates,
    MalformedVersion,
    LinkConstructionError,
    KeyNotFound,
    AmbiguousKey,
    SelectionCancelled,
)
from rtkernel.models import (
    VersionKind,
    VersionIdentifier,
    CandidateSet,
    ArtifactKind,
    DownloadLink,
    LinkSet,
    ResolvedVersions,
    Selection,
    EditOperation,
)
from rtkernel.versions import (
    kernel_from_patch,
    minor_from_kernel,
    major_tag_from_minor,
    trim_trailing_segment,
    resolve_from_patch,
)
from rtkernel.links import LinkBuilder, build_links
from rtkernel.catalog import VersionCatalog, DebianCatalog
from rtkernel.config_file import ConfigDocument, apply_config_edit

__all__ = [
    "__version__",
    "RtKernelConfig",
    "DEFAULT_CONFIG",
    "RtKernelError",
    "SourceUnavailable",
    "NoCandidates",
    "MalformedVersion",
    "LinkConstructionError",
    "KeyNotFound",
    "AmbiguousKey",
    "SelectionCancelled",
    "VersionKind",
    "VersionIdentifier",
    "CandidateSet",
    "ArtifactKind",
    "DownloadLink",
    "LinkSet",
    "ResolvedVersions",
    "Selection",
    "EditOperation",
    "kernel_from_patch",
    "minor_from_kernel",
    "major_tag_from_minor",
    "trim_trailing_segment",
    "resolve_from_patch",
    "LinkBuilder",
    "build_links",
    "VersionCatalog",
    "DebianCatalog",
    "ConfigDocument",
    "apply_config_edit",
]
