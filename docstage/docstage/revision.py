"""
Revisions: the typed view of one commit.

A revision is written as a unit (blob -> tree -> commit) and read back
as a unit. The blob holds the document content as canonical JSON, the
tree holds a single entry pointing at that blob, and the commit carries
the metadata and parent links.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Mapping, Sequence, cast

from .errors import DecodeError
from .objects import Blob, CommitNode, ObjectKind, Tree, TreeEntry, canonical_json
from .repository import Repository

if TYPE_CHECKING:
    from .document import Document

CONTENT_ENTRY = "content.json"


class RevisionKind(str, Enum):
    ROOT = "root"
    SAVE = "save"
    PROMOTION = "promotion"

    @classmethod
    def from_parent_count(cls, count: int) -> "RevisionKind":
        return (cls.ROOT, cls.SAVE, cls.PROMOTION)[count]


@dataclass(frozen=True)
class Author:
    name: str
    email: str = ""

    @classmethod
    def coerce(cls, value: "Author | Mapping[str, Any] | str") -> "Author":
        if isinstance(value, Author):
            return value
        if isinstance(value, str):
            return cls(value)
        return cls(str(value.get("name", "")), str(value.get("email", "")))

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "email": self.email}


@dataclass(frozen=True)
class ParentsSummary:
    """
    Parent links named by role.

    `previous` is the prior revision on the same state; `source` is the
    revision a promotion brought in. The root is never reported.
    """

    previous: str | None = None
    source: str | None = None

    @classmethod
    def from_parents(cls, parents: Sequence[str], root_oid: str | None) -> "ParentsSummary":
        first = parents[0] if len(parents) > 0 else None
        second = parents[1] if len(parents) > 1 else None
        previous = first if first is not None and first != root_oid else None
        return cls(previous=previous, source=second)

    def to_dict(self) -> dict[str, str]:
        result = {}
        if self.previous is not None:
            result["previous"] = self.previous
        if self.source is not None:
            result["source"] = self.source
        return result


@dataclass(frozen=True)
class Revision:
    """Decoded view of a commit: content, metadata and parent links."""

    oid: str
    content: Any
    author: Author
    message: str
    timestamp: datetime
    parents: tuple[str, ...] = ()

    # Set when the revision is listed from a state's history
    state: str | None = None
    summary: ParentsSummary | None = None

    document: "Document | None" = field(default=None, compare=False, repr=False)

    @property
    def kind(self) -> RevisionKind:
        return RevisionKind.from_parent_count(len(self.parents))

    @property
    def previous(self) -> str | None:
        return self.parents[0] if self.parents else None

    @property
    def source(self) -> str | None:
        return self.parents[1] if len(self.parents) > 1 else None

    def with_context(self, **changes: Any) -> "Revision":
        return replace(self, **changes)

    def has_been_promoted(self, state: str) -> bool:
        """Was this revision promoted to `state`? Needs a document-bound revision."""
        if self.document is None:
            raise ValueError("Revision is not bound to a document")
        return self.document.has_been_promoted(state, self.oid)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "rev": self.oid,
            "type": self.kind.value,
            "message": self.message,
            "author": self.author.to_dict(),
            "time": self.timestamp.isoformat(),
        }
        if self.state is not None:
            result["state"] = self.state
        if self.summary is not None:
            result["parents"] = self.summary.to_dict()
        else:
            result["parents"] = list(self.parents)
        return result


def write_revision(
    repo: Repository,
    content: Any,
    author: Author | Mapping[str, Any] | str,
    message: str,
    timestamp: datetime,
    parents: Sequence[str] = (),
) -> str:
    """
    Write blob, tree and commit for one revision and return the commit oid.

    Blob and tree writes are idempotent, so saving identical content twice
    stores the content once.
    """
    blob_oid = repo.put(Blob(canonical_json(content)))
    tree_oid = repo.put(Tree((TreeEntry(CONTENT_ENTRY, blob_oid),)))
    commit = CommitNode(
        tree=tree_oid,
        parents=tuple(parents),
        author=Author.coerce(author).to_dict(),
        message=message,
        timestamp=timestamp.isoformat(),
    )
    return repo.put(commit)


def read_revision(repo: Repository, oid: str) -> Revision:
    """
    Decode the commit `oid` together with its tree and content blob.

    Raises:
        NotFound: If the commit, tree or blob is missing
        DecodeError: If any of them cannot be decoded
    """
    commit = cast(CommitNode, repo.objects.get_typed(oid, ObjectKind.COMMIT))
    tree = cast(Tree, repo.objects.get_typed(commit.tree, ObjectKind.TREE))

    try:
        blob_oid = tree.first().oid
    except IndexError:
        raise DecodeError(commit.tree, "tree has no content entry") from None

    raw = repo.read(blob_oid)
    if raw.kind != ObjectKind.BLOB:
        raise DecodeError(blob_oid, f"expected blob, found {raw.kind.value}")
    try:
        content = json.loads(raw.payload.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise DecodeError(blob_oid, f"content is not valid JSON: {e}") from e

    try:
        timestamp = datetime.fromisoformat(commit.timestamp)
    except ValueError as e:
        raise DecodeError(oid, f"bad timestamp {commit.timestamp!r}") from e

    return Revision(
        oid=oid,
        content=content,
        author=Author.coerce(commit.author),
        message=commit.message,
        timestamp=timestamp,
        parents=commit.parents,
    )
