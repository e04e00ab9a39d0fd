"""
Data models for the rtkernel solution using Pydantic for validation.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterator, List, Optional, Tuple, Union
from pydantic import BaseModel, ConfigDict, ValidationError, model_validator
import re

from rtkernel.common import extract_filename
from rtkernel.errors import MalformedVersion, SelectionCancelled


class VersionKind(str, Enum):
    """Granularity of a version identifier."""
    MINOR = "minor"
    FULL_KERNEL = "full_kernel"
    FULL_PATCH = "full_patch"
    MAJOR_TAG = "major_tag"


# Textual grammar of every kind. Mainline releases such as 6.6 have no
# patch level, so the third component is optional for kernels and patches.
# Patterns are applied with fullmatch and accept ASCII digits only.
VERSION_PATTERNS: Dict[VersionKind, "re.Pattern[str]"] = {
    VersionKind.MINOR: re.compile(r"[0-9]+\.[0-9]+"),
    VersionKind.FULL_KERNEL: re.compile(r"[0-9]+\.[0-9]+(?:\.[0-9]+)?"),
    VersionKind.FULL_PATCH: re.compile(r"[0-9]+\.[0-9]+(?:\.[0-9]+)?-rt[0-9]+"),
    VersionKind.MAJOR_TAG: re.compile(r"v[0-9]+\.x"),
}


class ArtifactKind(str, Enum):
    """Kinds of downloadable artifacts."""
    KERNEL_TARBALL = "kernel_tarball"
    KERNEL_SIGNATURE = "kernel_signature"
    PATCH_FILE = "patch_file"
    PATCH_SIGNATURE = "patch_signature"
    DEBIAN_PACKAGE = "debian_package"


class EditOperation(str, Enum):
    """Edits the config patcher can apply to a key."""
    REPLACE = "replace"
    COMMENT_OUT = "comment_out"


class VersionIdentifier(BaseModel):
    """An immutable version string tagged with its kind."""
    model_config = ConfigDict(frozen=True)

    kind: VersionKind
    value: str

    def __init__(self, **data):
        try:
            super().__init__(**data)
        except ValidationError as e:
            kind = data.get("kind")
            raise MalformedVersion(
                str(data.get("value")),
                getattr(kind, "value", kind),
                e.errors()[0]["msg"],
            ) from e

    @model_validator(mode="after")
    def check_grammar(self) -> "VersionIdentifier":
        """Reject values that do not match the grammar of their kind."""
        if not VERSION_PATTERNS[self.kind].fullmatch(self.value):
            raise ValueError(f"Invalid {self.kind.value} version: {self.value!r}")
        return self

    @classmethod
    def parse(cls, value: str, kind: VersionKind) -> "VersionIdentifier":
        """
        Parse a string as the given kind, raising MalformedVersion on mismatch.

        The whole string must match; surrounding whitespace is rejected too.
        """
        if not isinstance(value, str):
            raise MalformedVersion(repr(value), kind.value, "not a string")
        if not VERSION_PATTERNS[kind].fullmatch(value):
            raise MalformedVersion(value, kind.value)
        return cls(kind=kind, value=value)

    @classmethod
    def coerce(
        cls,
        value: Union["VersionIdentifier", str],
        kind: VersionKind,
    ) -> "VersionIdentifier":
        """Accept an identifier of the expected kind or a string to parse."""
        if isinstance(value, VersionIdentifier):
            if value.kind != kind:
                raise MalformedVersion(value.value, kind.value, f"got a {value.kind.value}")
            return value
        return cls.parse(value, kind)

    @classmethod
    def minor(cls, value: str) -> "VersionIdentifier":
        return cls.parse(value, VersionKind.MINOR)

    @classmethod
    def full_kernel(cls, value: str) -> "VersionIdentifier":
        return cls.parse(value, VersionKind.FULL_KERNEL)

    @classmethod
    def full_patch(cls, value: str) -> "VersionIdentifier":
        return cls.parse(value, VersionKind.FULL_PATCH)

    @classmethod
    def major_tag(cls, value: str) -> "VersionIdentifier":
        return cls.parse(value, VersionKind.MAJOR_TAG)

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class CandidateSet:
    """Ordered versions of one kind, in the order of the source listing."""
    kind: VersionKind
    items: Tuple[VersionIdentifier, ...] = ()
    source: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "items", tuple(self.items))
        for item in self.items:
            if item.kind != self.kind:
                raise ValueError(
                    f"Candidate {item.value} is a {item.kind.value}, expected {self.kind.value}"
                )

    @classmethod
    def from_strings(
        cls,
        kind: VersionKind,
        values: List[str],
        source: Optional[str] = None,
    ) -> "CandidateSet":
        """Parse strings into a candidate set, dropping repeats but keeping order."""
        seen = set()
        items = []
        for value in values:
            if value in seen:
                continue
            seen.add(value)
            items.append(VersionIdentifier.parse(value, kind))
        return cls(kind=kind, items=tuple(items), source=source)

    @property
    def values(self) -> List[str]:
        """Get the plain version strings."""
        return [item.value for item in self.items]

    def __iter__(self) -> Iterator[VersionIdentifier]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def __getitem__(self, index: int) -> VersionIdentifier:
        return self.items[index]

    def __contains__(self, value: object) -> bool:
        if isinstance(value, VersionIdentifier):
            return value in self.items
        return value in self.values


class DownloadLink(BaseModel):
    """An absolute artifact URL and the versions it was derived from."""
    model_config = ConfigDict(frozen=True)

    url: str
    artifact: ArtifactKind
    derived_from: Tuple[VersionIdentifier, ...] = ()

    @property
    def filename(self) -> str:
        """Get the final path segment of the URL."""
        return extract_filename(self.url)

    def __str__(self) -> str:
        return self.url


class LinkSet(BaseModel):
    """Download links for a kernel release and its rt patch."""
    model_config = ConfigDict(frozen=True)

    kernel: DownloadLink
    kernel_signature: DownloadLink
    patch: DownloadLink
    patch_signature: DownloadLink

    def as_dict(self) -> Dict[str, str]:
        return {
            "kernel_url": self.kernel.url,
            "kernel_sig_url": self.kernel_signature.url,
            "patch_url": self.patch.url,
            "patch_sig_url": self.patch_signature.url,
        }

    def artifacts(self) -> List[DownloadLink]:
        """Get the links in download order, each artifact before its signature."""
        return [self.kernel, self.kernel_signature, self.patch, self.patch_signature]


class ResolvedVersions(BaseModel):
    """Every identifier derived from one full patch version."""
    model_config = ConfigDict(frozen=True)

    patch: VersionIdentifier
    kernel: VersionIdentifier
    minor: VersionIdentifier
    major_tag: VersionIdentifier

    def as_dict(self) -> Dict[str, str]:
        return {
            "patch": self.patch.value,
            "kernel": self.kernel.value,
            "minor": self.minor.value,
            "major_tag": self.major_tag.value,
        }


class Selection(BaseModel):
    """
    Outcome of an interactive choice.

    Exactly one of: a chosen candidate id, or an explicit cancellation.
    """
    model_config = ConfigDict(frozen=True)

    value: Optional[str] = None
    cancelled: bool = False

    @model_validator(mode="after")
    def check_outcome(self) -> "Selection":
        if self.cancelled == (self.value is not None):
            raise ValueError("A selection is either one chosen value or cancelled")
        return self

    @classmethod
    def chosen(cls, value: str) -> "Selection":
        return cls(value=value)

    @classmethod
    def cancel(cls) -> "Selection":
        return cls(cancelled=True)

    @property
    def is_cancelled(self) -> bool:
        return self.cancelled

    def require(self, title: str = "") -> str:
        """Return the chosen value, raising SelectionCancelled if there is none."""
        if self.cancelled:
            raise SelectionCancelled(title)
        return self.value


@dataclass
class DebianPackage:
    """An rt kernel image package available for a Debian release."""
    codename: str
    architecture: str
    name: str
