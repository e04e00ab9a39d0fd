"""
Error taxonomy for the rtkernel solution.

Nothing raising one of these errors is retried automatically. Callers decide
whether a transient failure such as SourceUnavailable is worth another run.
"""

from typing import Optional


class RtKernelError(Exception):
    """Base exception for all rtkernel errors."""
    pass


class SourceUnavailable(RtKernelError):
    """A remote listing could not be fetched (transport error or bad status)."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"Source unavailable: {url} ({reason})")
        self.url = url
        self.reason = reason


class NoCandidates(RtKernelError):
    """A listing was fetched but contained no matching versions."""

    def __init__(self, url: str, what: str = "versions"):
        super().__init__(f"No {what} found at {url}")
        self.url = url
        self.what = what


class MalformedVersion(RtKernelError, ValueError):
    """A version string violates the grammar of its kind."""

    def __init__(self, value: str, kind: Optional[str] = None, reason: str = ""):
        message = f"Malformed {kind or 'version'}: {value!r}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)
        self.value = value
        self.kind = kind


class LinkConstructionError(RtKernelError):
    """A constructed download link is not a well-formed artifact URL."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"Invalid link {url!r}: {reason}")
        self.url = url
        self.reason = reason


class ConfigEditError(RtKernelError):
    """A configuration edit precondition was violated."""

    def __init__(self, key: str, message: str):
        super().__init__(message)
        self.key = key


class KeyNotFound(ConfigEditError):
    """The key to edit does not appear in the configuration."""

    def __init__(self, key: str):
        super().__init__(key, f"Key not found in configuration: {key}")


class AmbiguousKey(ConfigEditError):
    """The key to edit has more than one active definition."""

    def __init__(self, key: str, line_numbers):
        lines = ", ".join(str(n) for n in line_numbers)
        super().__init__(key, f"Key {key} is defined more than once (lines {lines})")
        self.line_numbers = list(line_numbers)


class SelectionCancelled(RtKernelError):
    """The user declined to choose. A normal termination, not a failure."""

    def __init__(self, title: str = ""):
        super().__init__(f"Selection cancelled{': ' + title if title else ''}")
        self.title = title
