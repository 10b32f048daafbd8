"""
A repository pairs one object store with one ref table.

Every document owns exactly one repository. Repositories never share
state, so any number of them can live in one process.
"""

from __future__ import annotations

import logging
from pathlib import Path

from .errors import RefExists
from .object_store import FileObjectStore, MemoryObjectStore, ObjectStore
from .objects import ObjectKind, RawObject, StoreObject
from .refs import ROOT_REF, FileRefTable, MemoryRefTable, RefTable

logger = logging.getLogger(__name__)


class Repository:
    """Object store + ref table for a single document."""

    def __init__(self, objects: ObjectStore, refs: RefTable, path: Path | None = None):
        self.objects = objects
        self.refs = refs
        self.path = path

    @classmethod
    def in_memory(cls) -> "Repository":
        return cls(MemoryObjectStore(), MemoryRefTable())

    @classmethod
    def on_disk(cls, path: Path) -> "Repository":
        path = Path(path)
        path.mkdir(parents=True, exist_ok=True)
        return cls(FileObjectStore(path), FileRefTable(path), path=path)

    def __repr__(self) -> str:
        where = str(self.path) if self.path else "memory"
        return f"Repository({where})"

    # Objects

    def put(self, obj: StoreObject, expected_oid: str | None = None) -> str:
        return self.objects.put(obj, expected_oid)

    def get(self, oid: str) -> StoreObject:
        return self.objects.get(oid)

    def write(self, kind: ObjectKind | str, payload: bytes, expected_oid: str | None = None) -> str:
        return self.objects.write(kind, payload, expected_oid)

    def read(self, oid: str) -> RawObject:
        return self.objects.read(oid)

    # Refs

    def resolve(self, name: str) -> str | None:
        return self.refs.resolve(name)

    def create_ref(self, name: str, target: str) -> None:
        self.refs.create(name, target)

    def update_ref(self, name: str, expected: str, target: str) -> None:
        self.refs.update(name, expected, target)

    def enumerate_refs(self) -> list[tuple[str, str]]:
        return self.refs.enumerate()

    def set_ref(self, name: str, target: str) -> None:
        """Create or overwrite a ref (replay only; ordinary writes use update_ref)."""
        current = self.resolve(name)
        if current is None:
            try:
                self.create_ref(name, target)
                return
            except RefExists:
                current = self.resolve(name)
        if current != target:
            self.update_ref(name, current, target)

    # State

    def is_empty(self) -> bool:
        return self.refs.is_empty()

    @property
    def root_oid(self) -> str | None:
        return self.resolve(ROOT_REF)
