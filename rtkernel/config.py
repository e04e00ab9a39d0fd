"""
Configuration constants and mirror locations for the rtkernel solution.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
import os


# Upstream mirrors
KERNEL_ORG_BASE_URL = "https://www.kernel.org/pub/linux/kernel"
DEBIAN_PACKAGES_URL = "https://packages.debian.org"

# Path of the rt patch tree below the kernel.org base
RT_PROJECT_PATH = "projects/rt"

# Directory below each rt minor version that lists every patch release
RT_OLDER_DIR = "older"

# Artifact file extensions
KERNEL_TARBALL_EXT = ".tar.xz"
KERNEL_SIGNATURE_EXT = ".tar.sign"
PATCH_FILE_EXT = ".patch.xz"
PATCH_SIGNATURE_EXT = ".patch.sign"
DEBIAN_PACKAGE_EXT = ".deb"

DEFAULT_DEBIAN_VERSION_FILE = Path("/etc/debian_version")


@dataclass
class RtKernelConfig:
    """Global configuration for version resolution and link construction."""

    # Mirrors
    kernel_mirror: str = KERNEL_ORG_BASE_URL
    debian_mirror: str = DEBIAN_PACKAGES_URL

    # Network settings
    network_timeout: int = 30
    user_agent: str = "rtkernel"

    # Logging
    log_file: Optional[Path] = None

    # Local system
    debian_version_file: Path = field(default_factory=lambda: DEFAULT_DEBIAN_VERSION_FILE)

    def __post_init__(self):
        """Normalise mirror URLs so paths can be joined with '/'."""
        self.kernel_mirror = self.kernel_mirror.rstrip("/")
        self.debian_mirror = self.debian_mirror.rstrip("/")

    @classmethod
    def from_env(cls) -> "RtKernelConfig":
        """Create configuration from environment variables."""
        log_file = os.getenv("RTKERNEL_LOG_FILE")
        return cls(
            kernel_mirror=os.getenv("RTKERNEL_KERNEL_MIRROR", KERNEL_ORG_BASE_URL),
            debian_mirror=os.getenv("RTKERNEL_DEBIAN_MIRROR", DEBIAN_PACKAGES_URL),
            network_timeout=int(os.getenv("RTKERNEL_TIMEOUT", "30")),
            log_file=Path(log_file) if log_file else None,
            debian_version_file=Path(
                os.getenv("RTKERNEL_DEBIAN_VERSION_FILE", str(DEFAULT_DEBIAN_VERSION_FILE))
            ),
        )

    @property
    def rt_index_url(self) -> str:
        """Get the URL of the rt patch project index."""
        return f"{self.kernel_mirror}/{RT_PROJECT_PATH}/"


# Default global configuration instance
DEFAULT_CONFIG = RtKernelConfig()


# Debian release numbers as found in /etc/debian_version on stable systems
DEBIAN_CODENAMES = {
    "10": "buster",
    "11": "bullseye",
    "12": "bookworm",
    "13": "trixie",
    "14": "forky",
}


def debian_codename(version: str) -> str:
    """Map a numeric Debian version (e.g. '12.5') to its codename, if known."""
    major = version.split(".")[0]
    if major.isdigit():
        return DEBIAN_CODENAMES.get(major, version)
    return version
