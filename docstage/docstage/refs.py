"""
Named, mutable pointers to commits.

Refs only move forward: an update must name the target the caller last
observed, and the table rejects it if the ref has moved since. Tags
(``refs/tags/*``) are immutable once created.
"""

from __future__ import annotations

import logging
import os
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterator

from .errors import RefConflict, RefExists

logger = logging.getLogger(__name__)

HEADS_PREFIX = "refs/heads/"
TAGS_PREFIX = "refs/tags/"
ROOT_REF = "refs/tags/root"


def state_ref(state: str) -> str:
    """Ref name for a publishing state."""
    if not state or state.startswith("/") or state.endswith("/") or ".." in state or any(c.isspace() for c in state):
        raise ValueError(f"Invalid state name: {state!r}")
    return f"{HEADS_PREFIX}{state}"


def ref_state(name: str) -> str | None:
    """State name for a ref, or None if the ref is not a state."""
    if name.startswith(HEADS_PREFIX):
        return name[len(HEADS_PREFIX):]
    return None


def _check_name(name: str) -> None:
    if not name.startswith("refs/") or ".." in name or name.endswith("/") or any(c.isspace() for c in name):
        raise ValueError(f"Invalid ref name: {name!r}")


class RefTable(ABC):
    """Ref storage contract shared by all backends."""

    @abstractmethod
    def resolve(self, name: str) -> str | None:
        """Return the ref's target, or None if the ref does not exist."""

    @abstractmethod
    def _create(self, name: str, target: str) -> None: ...

    @abstractmethod
    def _update(self, name: str, expected: str, target: str) -> None: ...

    @abstractmethod
    def names(self) -> list[str]:
        """All ref names, sorted."""

    def create(self, name: str, target: str) -> None:
        """
        Create a new ref.

        Raises:
            RefExists: If the name is already taken
        """
        _check_name(name)
        self._create(name, target)
        logger.debug("created ref %s -> %s", name, target)

    def update(self, name: str, expected: str, target: str) -> None:
        """
        Move a ref from `expected` to `target`.

        Raises:
            RefConflict: If the ref does not currently point at `expected`
            RefExists: If the ref is a tag and the target would change
        """
        _check_name(name)
        if name.startswith(TAGS_PREFIX) and expected != target:
            raise RefExists(name)
        self._update(name, expected, target)
        logger.debug("moved ref %s %s -> %s", name, expected, target)

    def __iter__(self) -> Iterator[tuple[str, str]]:
        for name in self.names():
            target = self.resolve(name)
            if target is not None:
                yield name, target

    def enumerate(self) -> list[tuple[str, str]]:
        return list(self)

    def is_empty(self) -> bool:
        return not self.names()


class MemoryRefTable(RefTable):
    def __init__(self) -> None:
        self._refs: dict[str, str] = {}
        self._lock = threading.Lock()

    def resolve(self, name: str) -> str | None:
        return self._refs.get(name)

    def _create(self, name: str, target: str) -> None:
        with self._lock:
            if name in self._refs:
                raise RefExists(name)
            self._refs[name] = target

    def _update(self, name: str, expected: str, target: str) -> None:
        with self._lock:
            current = self._refs.get(name)
            if current != expected:
                raise RefConflict(name, expected, current)
            self._refs[name] = target

    def names(self) -> list[str]:
        return sorted(self._refs)


class FileRefTable(RefTable):
    """
    Refs stored as one file per ref under ``<root>/refs``.

    Writers take a ``<ref>.lock`` file with O_EXCL, write the new target
    into it and rename it over the ref. A writer that finds the lock taken
    fails with RefConflict rather than waiting.
    """

    def __init__(self, root: Path):
        self.root = Path(root)

    def _ref_path(self, name: str) -> Path:
        return self.root.joinpath(*name.split("/"))

    def resolve(self, name: str) -> str | None:
        path = self._ref_path(name)
        if not path.is_file():
            return None
        target = path.read_text(encoding="ascii").strip()
        return target or None

    def _locked_write(self, name: str, expected: str | None, target: str, *, creating: bool) -> None:
        path = self._ref_path(name)
        path.parent.mkdir(parents=True, exist_ok=True)
        lock_path = path.with_name(path.name + ".lock")

        try:
            fd = os.open(lock_path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o644)
        except FileExistsError:
            raise RefConflict(name, expected, self.resolve(name)) from None

        replaced = False
        try:
            current = self.resolve(name)
            if creating and current is not None:
                raise RefExists(name)
            if not creating and current != expected:
                raise RefConflict(name, expected, current)
            with os.fdopen(fd, "w", encoding="ascii") as f:
                fd = -1
                f.write(target + "\n")
            os.replace(lock_path, path)
            # The lock path now belongs to whoever takes it next
            replaced = True
        finally:
            if fd != -1:
                os.close(fd)
            if not replaced:
                lock_path.unlink(missing_ok=True)

    def _create(self, name: str, target: str) -> None:
        self._locked_write(name, None, target, creating=True)

    def _update(self, name: str, expected: str, target: str) -> None:
        self._locked_write(name, expected, target, creating=False)

    def names(self) -> list[str]:
        refs_dir = self.root / "refs"
        if not refs_dir.exists():
            return []
        names = []
        for path in refs_dir.rglob("*"):
            if path.is_file() and not path.name.endswith(".lock"):
                names.append(path.relative_to(self.root).as_posix())
        return sorted(names)
