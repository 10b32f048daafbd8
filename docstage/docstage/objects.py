"""
Immutable objects of the content-addressed store.

Three kinds exist: blobs hold serialized document content, trees hold an
ordered list of named entries, commits tie a tree to its parents and
metadata. Identity is the sha256 of the canonical encoding:

    "<kind> <payload length>\\0" + payload

so identical content always maps to the same oid.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from .errors import DecodeError


class ObjectKind(str, Enum):
    BLOB = "blob"
    TREE = "tree"
    COMMIT = "commit"


def canonical_json(value: Any) -> bytes:
    """Deterministic JSON encoding used for every structured payload."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def compute_oid(kind: ObjectKind | str, payload: bytes) -> str:
    """Hash a raw payload the way the store identifies it."""
    kind = ObjectKind(kind)
    header = f"{kind.value} {len(payload)}\0".encode("ascii")
    return hashlib.sha256(header + payload).hexdigest()


@dataclass(frozen=True)
class RawObject:
    """An object as stored: kind plus exact payload bytes."""

    kind: ObjectKind
    payload: bytes

    @property
    def oid(self) -> str:
        return compute_oid(self.kind, self.payload)

    def __len__(self) -> int:
        return len(self.payload)


@dataclass(frozen=True)
class Blob:
    data: bytes

    kind = ObjectKind.BLOB

    def encode(self) -> bytes:
        return self.data

    @classmethod
    def decode(cls, payload: bytes, oid: str = "") -> "Blob":
        return cls(payload)


@dataclass(frozen=True)
class TreeEntry:
    name: str
    oid: str


@dataclass(frozen=True)
class Tree:
    entries: tuple[TreeEntry, ...] = ()

    kind = ObjectKind.TREE

    def first(self) -> TreeEntry:
        if not self.entries:
            raise IndexError("empty tree")
        return self.entries[0]

    def encode(self) -> bytes:
        return canonical_json({"entries": [[e.name, e.oid] for e in self.entries]})

    @classmethod
    def decode(cls, payload: bytes, oid: str = "") -> "Tree":
        try:
            data = json.loads(payload.decode("utf-8"))
            entries = tuple(TreeEntry(str(name), str(entry_oid)) for name, entry_oid in data["entries"])
        except (UnicodeDecodeError, ValueError, KeyError, TypeError) as e:
            raise DecodeError(oid, f"malformed tree: {e}") from e
        return cls(entries)


@dataclass(frozen=True)
class CommitNode:
    """
    A commit ties one tree to 0, 1 or 2 parents.

    Parent order is significant: for a promotion the first parent is the
    destination state's previous tip (or the root) and the second is the
    promoted source tip.
    """

    tree: str
    parents: tuple[str, ...] = ()
    author: dict[str, str] = field(default_factory=dict)
    message: str = ""
    timestamp: str = ""  # ISO-8601 with offset

    kind = ObjectKind.COMMIT

    def __post_init__(self) -> None:
        if len(self.parents) > 2:
            raise ValueError(f"A commit has at most 2 parents, got {len(self.parents)}")

    def encode(self) -> bytes:
        return canonical_json({
            "tree": self.tree,
            "parents": list(self.parents),
            "author": dict(self.author),
            "message": self.message,
            "timestamp": self.timestamp,
        })

    @classmethod
    def decode(cls, payload: bytes, oid: str = "") -> "CommitNode":
        try:
            data = json.loads(payload.decode("utf-8"))
            return cls(
                tree=str(data["tree"]),
                parents=tuple(str(p) for p in data.get("parents", [])),
                author={str(k): str(v) for k, v in (data.get("author") or {}).items()},
                message=str(data.get("message", "")),
                timestamp=str(data.get("timestamp", "")),
            )
        except (UnicodeDecodeError, ValueError, KeyError, TypeError, AttributeError) as e:
            raise DecodeError(oid, f"malformed commit: {e}") from e


StoreObject = Union[Blob, Tree, CommitNode]

_DECODERS = {
    ObjectKind.BLOB: Blob.decode,
    ObjectKind.TREE: Tree.decode,
    ObjectKind.COMMIT: CommitNode.decode,
}


def to_raw(obj: StoreObject) -> RawObject:
    return RawObject(obj.kind, obj.encode())


def from_raw(raw: RawObject, oid: str = "") -> StoreObject:
    return _DECODERS[raw.kind](raw.payload, oid or raw.oid)
