"""
Content-addressed object storage.

The store is append-only: objects are written once, keyed by their oid,
and never deleted. Writing an object that already exists is a no-op.

Two backends are provided. MemoryObjectStore keeps objects in a dict.
FileObjectStore lays them out on disk in a two-level directory keyed by
the first two characters of the oid:

    objects/ab/ab1234...

which keeps directories small while lookups stay a single stat.
"""

from __future__ import annotations

import logging
import os
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterator

from .errors import CorruptWrite, DecodeError, NotFound
from .objects import ObjectKind, RawObject, StoreObject, compute_oid, from_raw, to_raw

logger = logging.getLogger(__name__)


class ObjectStore(ABC):
    """Storage contract shared by all backends."""

    @abstractmethod
    def _read(self, oid: str) -> RawObject | None:
        """Return the raw object or None."""

    @abstractmethod
    def _write(self, oid: str, raw: RawObject) -> None:
        """Persist a raw object known to be absent."""

    @abstractmethod
    def __contains__(self, oid: object) -> bool: ...

    @abstractmethod
    def __iter__(self) -> Iterator[str]:
        """Iterate over stored oids."""

    def __len__(self) -> int:
        return sum(1 for _ in self)

    def write(self, kind: ObjectKind | str, payload: bytes, expected_oid: str | None = None) -> str:
        """
        Store a raw payload and return its oid.

        Args:
            kind: Object kind
            payload: Exact payload bytes
            expected_oid: oid the caller believes the payload has (replay)

        Raises:
            CorruptWrite: If the payload hashes to something other than expected_oid
        """
        raw = RawObject(ObjectKind(kind), bytes(payload))
        oid = compute_oid(raw.kind, raw.payload)
        if expected_oid is not None and oid != expected_oid:
            raise CorruptWrite(expected_oid, oid)

        if oid in self:
            return oid

        self._write(oid, raw)
        logger.debug("wrote %s %s (%d bytes)", raw.kind.value, oid, len(raw.payload))
        return oid

    def read(self, oid: str) -> RawObject:
        """
        Read the raw object stored under oid.

        Raises:
            NotFound: If no such object exists
        """
        raw = self._read(oid)
        if raw is None:
            raise NotFound("Object", oid)
        return raw

    def put(self, obj: StoreObject, expected_oid: str | None = None) -> str:
        raw = to_raw(obj)
        return self.write(raw.kind, raw.payload, expected_oid)

    def get(self, oid: str) -> StoreObject:
        return from_raw(self.read(oid), oid)

    def get_typed(self, oid: str, kind: ObjectKind) -> StoreObject:
        """Read an object and check that it has the expected kind."""
        raw = self.read(oid)
        if raw.kind != kind:
            raise DecodeError(oid, f"expected {kind.value}, found {raw.kind.value}")
        return from_raw(raw, oid)


class MemoryObjectStore(ObjectStore):
    def __init__(self) -> None:
        self._objects: dict[str, RawObject] = {}
        self._lock = threading.Lock()

    def _read(self, oid: str) -> RawObject | None:
        return self._objects.get(oid)

    def _write(self, oid: str, raw: RawObject) -> None:
        with self._lock:
            self._objects.setdefault(oid, raw)

    def __contains__(self, oid: object) -> bool:
        return oid in self._objects

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._objects))

    def __len__(self) -> int:
        return len(self._objects)


class FileObjectStore(ObjectStore):
    """
    On-disk object storage.

    Each file holds the kind on its first line followed by the raw payload.
    Files are written to a temp name and renamed into place so readers
    never observe a partial object.
    """

    def __init__(self, root: Path):
        self.root = Path(root)
        self.objects_dir = self.root / "objects"

    def _object_path(self, oid: str) -> Path:
        return self.objects_dir / oid[:2] / oid

    def _read(self, oid: str) -> RawObject | None:
        if len(oid) < 3:
            return None
        path = self._object_path(oid)
        if not path.is_file():
            return None

        data = path.read_bytes()
        kind, sep, payload = data.partition(b"\n")
        if not sep:
            raise DecodeError(oid, "object file has no kind header")
        try:
            return RawObject(ObjectKind(kind.decode("ascii")), payload)
        except ValueError as e:
            raise DecodeError(oid, f"unknown object kind {kind!r}") from e

    def _write(self, oid: str, raw: RawObject) -> None:
        path = self._object_path(oid)
        path.parent.mkdir(parents=True, exist_ok=True)

        temp_path = path.with_name(f"{oid}.{os.getpid()}.{threading.get_ident()}.tmp")
        try:
            temp_path.write_bytes(raw.kind.value.encode("ascii") + b"\n" + raw.payload)
            os.replace(temp_path, path)
        except OSError:
            temp_path.unlink(missing_ok=True)
            raise

    def __contains__(self, oid: object) -> bool:
        return isinstance(oid, str) and len(oid) > 2 and self._object_path(oid).is_file()

    def __iter__(self) -> Iterator[str]:
        if not self.objects_dir.exists():
            return
        for prefix_dir in sorted(self.objects_dir.iterdir()):
            if prefix_dir.is_dir() and len(prefix_dir.name) == 2:
                for object_file in sorted(prefix_dir.iterdir()):
                    if object_file.is_file() and not object_file.name.endswith(".tmp"):
                        yield object_file.name
