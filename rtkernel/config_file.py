"""
Idempotent edits of KEY="VALUE" configuration files such as a kernel .config.

A document is an ordered sequence of lines, each an active assignment
(KEY=VALUE), a commented-out assignment (#KEY=VALUE) or opaque text.
Documents are immutable: every edit returns a new document. Edits are
written back atomically under an exclusive lock, so a reader sees either
the old or the new file, never a partial one.
"""

import fcntl
import os
import re
import shutil
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Iterator, List, Optional, Tuple, Union

from rtkernel.common import logger
from rtkernel.errors import AmbiguousKey, KeyNotFound
from rtkernel.models import EditOperation


ASSIGNMENT_PATTERN = re.compile(
    r"^(?P<indent>\s*)"
    r"(?P<marker>#\s*)?"
    r"(?P<key>[A-Za-z_][A-Za-z0-9_]*)"
    r"(?P<sep>\s*=\s*)"
    r"(?P<value>\"(?:[^\"\\]|\\.)*\"|'[^']*'|[^\s#]*)"
    r"(?P<suffix>.*)$"
)

KEY_PATTERN = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")

COMMENT_MARKER = "#"


class LineKind(str, Enum):
    """Classification of a configuration line."""
    ACTIVE = "active"
    COMMENTED = "commented"
    OPAQUE = "opaque"


@dataclass(frozen=True)
class ConfigLine:
    """One line of a configuration document."""
    text: str
    kind: LineKind = LineKind.OPAQUE
    key: Optional[str] = None
    value: Optional[str] = None
    # Text before and after the value, kept verbatim on edits
    prefix: str = ""
    suffix: str = ""

    @classmethod
    def parse(cls, text: str) -> "ConfigLine":
        """Classify a line and split an assignment around its value."""
        match = ASSIGNMENT_PATTERN.match(text)
        if not match:
            return cls(text=text)

        kind = LineKind.COMMENTED if match.group("marker") else LineKind.ACTIVE
        prefix = text[:match.start("value")]
        return cls(
            text=text,
            kind=kind,
            key=match.group("key"),
            value=match.group("value"),
            prefix=prefix,
            suffix=match.group("suffix"),
        )

    @property
    def is_assignment(self) -> bool:
        return self.kind != LineKind.OPAQUE

    def with_value(self, new_value: str) -> "ConfigLine":
        """Get this line with the value replaced and everything else kept."""
        return replace(
            self,
            text=f"{self.prefix}{new_value}{self.suffix}",
            value=new_value,
        )

    def commented(self) -> "ConfigLine":
        """Get this line prefixed with a comment marker."""
        if self.kind == LineKind.COMMENTED:
            return self
        return ConfigLine.parse(f"{COMMENT_MARKER}{self.text}")


@dataclass(frozen=True)
class ConfigDocument:
    """An immutable, ordered configuration document."""
    lines: Tuple[ConfigLine, ...] = ()
    trailing_newline: bool = True
    newline: str = "\n"

    @classmethod
    def parse(cls, text: str) -> "ConfigDocument":
        """Parse configuration text, remembering its line endings."""
        newline = "\r\n" if "\r\n" in text else "\n"
        trailing_newline = text.endswith(newline)
        body = text[:-len(newline)] if trailing_newline else text
        lines = body.split(newline) if text else []
        return cls(
            lines=tuple(ConfigLine.parse(line) for line in lines),
            trailing_newline=trailing_newline,
            newline=newline,
        )

    @classmethod
    def load(cls, path: Path) -> "ConfigDocument":
        """Read and parse a configuration file."""
        with open(path, newline="") as f:
            return cls.parse(f.read())

    def render(self) -> str:
        """Get the document as text."""
        text = self.newline.join(line.text for line in self.lines)
        if self.trailing_newline and self.lines:
            text += self.newline
        return text

    def locate(self, key: str) -> Tuple[List[int], List[int]]:
        """
        Find the lines assigning a key.

        Returns:
            Tuple of (active line indexes, commented line indexes)
        """
        active = []
        commented = []
        for index, line in enumerate(self.lines):
            if line.key != key:
                continue
            if line.kind == LineKind.ACTIVE:
                active.append(index)
            else:
                commented.append(index)
        return active, commented

    def value_of(self, key: str) -> Optional[str]:
        """Get the value of the active assignment of a key, if there is exactly one."""
        active, _ = self.locate(key)
        if len(active) != 1:
            return None
        return self.lines[active[0]].value

    def _target(self, key: str) -> Tuple[Optional[int], List[int]]:
        _check_key(key)
        active, commented = self.locate(key)
        if len(active) > 1:
            raise AmbiguousKey(key, [i + 1 for i in active])
        if not active and not commented:
            raise KeyNotFound(key)
        return (active[0] if active else None), commented

    def _with_line(self, index: int, line: ConfigLine) -> "ConfigDocument":
        lines = list(self.lines)
        lines[index] = line
        return replace(self, lines=tuple(lines))

    def find_and_replace(self, key: str, new_value: str) -> "ConfigDocument":
        """
        Replace the value assigned to a key.

        The active assignment is edited; if the key only appears commented
        out, the first commented assignment is edited and stays commented.
        new_value is inserted verbatim, so quotes are the caller's business.

        Raises:
            KeyNotFound: if no line assigns the key
            AmbiguousKey: if the key has more than one active assignment
        """
        if "\n" in new_value or "\r" in new_value:
            raise ValueError("Configuration values cannot span lines")

        active, commented = self._target(key)
        if active is None:
            index = commented[0]
            logger.warning(f"{key} is commented out, replacing its value without enabling it")
        else:
            index = active

        line = self.lines[index]
        if line.value == new_value:
            return self
        return self._with_line(index, line.with_value(new_value))

    def comment_out(self, key: str) -> "ConfigDocument":
        """
        Comment out the active assignment of a key.

        A key that is already commented out is left alone, so applying this
        twice gives the same document as applying it once.

        Raises:
            KeyNotFound: if no line assigns the key
            AmbiguousKey: if the key has more than one active assignment
        """
        active, _ = self._target(key)
        if active is None:
            return self
        return self._with_line(active, self.lines[active].commented())


def _check_key(key: str) -> None:
    if not KEY_PATTERN.fullmatch(key):
        raise ValueError(f"Invalid configuration key: {key!r}")


def find_and_replace(doc: ConfigDocument, key: str, new_value: str) -> ConfigDocument:
    """Replace the value of a key, see ConfigDocument.find_and_replace."""
    return doc.find_and_replace(key, new_value)


def comment_out(doc: ConfigDocument, key: str) -> ConfigDocument:
    """Comment out a key, see ConfigDocument.comment_out."""
    return doc.comment_out(key)


# -----------------------------------------------------------------------------
# Persistence
# -----------------------------------------------------------------------------


def lock_path_for(path: Path) -> Path:
    """Get the sidecar lock file of a configuration file."""
    return path.with_name(f"{path.name}.lock")


@contextmanager
def exclusive_access(path: Path) -> Iterator[Path]:
    """
    Hold an exclusive advisory lock on a configuration file.

    The lock lives on a sidecar '<name>.lock' file so it survives the
    original being replaced by rename. It is released on every exit path.
    The lock file is never removed, so every writer locks the same inode.
    """
    lock_path = lock_path_for(path)
    lock_fd = open(lock_path, "a")
    try:
        fcntl.flock(lock_fd, fcntl.LOCK_EX)
        lock_fd.seek(0)
        lock_fd.truncate()
        lock_fd.write(str(os.getpid()))
        lock_fd.flush()
        yield path
    finally:
        fcntl.flock(lock_fd, fcntl.LOCK_UN)
        lock_fd.close()


def atomic_write(path: Path, content: str) -> None:
    """
    Replace a file with new content in one rename.

    The content is written to a temporary file in the same directory, synced,
    given the mode of the original and renamed over it. On failure the
    temporary file is removed and the original is untouched.
    """
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", newline="") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        if path.exists():
            os.chmod(tmp_path, path.stat().st_mode & 0o7777)
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


def backup(path: Path, backup_dir: Path) -> Path:
    """
    Create a backup of a configuration file.

    Args:
        path: File to back up
        backup_dir: Directory to store backup

    Returns:
        Path to backup file
    """
    backup_dir.mkdir(parents=True, exist_ok=True)
    backup_path = backup_dir / f"{path.name}.backup"
    shutil.copy2(path, backup_path)
    return backup_path


def apply_config_edit(
    path: Union[str, Path],
    key: str,
    op: Union[EditOperation, str],
    value: Optional[str] = None,
    backup_dir: Optional[Path] = None,
) -> bool:
    """
    Apply one edit to a configuration file.

    Args:
        path: Configuration file
        key: Key to edit
        op: EditOperation.REPLACE (requires value) or EditOperation.COMMENT_OUT
        value: New value for REPLACE, inserted verbatim
        backup_dir: Optional directory for a copy of the original

    Returns:
        True if the file changed, False if it already had the requested state

    Raises:
        KeyNotFound, AmbiguousKey: if the edit precondition fails; the file
            is left untouched
    """
    path = Path(path)
    op = EditOperation(op)
    if op == EditOperation.REPLACE and value is None:
        raise ValueError("A value is required to replace a key")

    with exclusive_access(path):
        doc = ConfigDocument.load(path)
        if op == EditOperation.REPLACE:
            edited = doc.find_and_replace(key, value)
        else:
            edited = doc.comment_out(key)

        if edited == doc:
            logger.info(f"{key} unchanged in {path.name}")
            return False

        if backup_dir:
            backup_path = backup(path, backup_dir)
            logger.debug(f"Backed up {path.name} to {backup_path}")

        atomic_write(path, edited.render())

    if op == EditOperation.REPLACE:
        logger.info(f"Updated {key}={value} in {path.name}")
    else:
        logger.info(f"Commented out {key} in {path.name}")
    return True
