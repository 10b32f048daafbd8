"""
Versioned documents with a publishing pipeline.

Each document lives in its own repository. Every publishing state
(``master`` for drafts, ``published``, ``retired``, ...) is a ref under
``refs/heads/``; states are just names agreed between callers.

- A save writes a one-parent commit on top of a state.
- A promotion writes a two-parent commit on the destination state:
  first parent is the destination's previous tip (or the root), second
  parent is the source state's tip. The content is copied from the
  source tip at promotion time.

All timelines start at a single zero-parent root commit tagged
``refs/tags/root``, created lazily by the first save.

Refs never move backwards. Every write checks that the ref still points
where it did when the write started; if another writer got there first
the operation fails with RefConflict and nothing is retried.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Mapping, Union

from .errors import NoSuchState, NotFound, RefConflict, RefExists
from .history import RevisionHistory, has_been_promoted as promoted_into
from .refs import ROOT_REF, ref_state, state_ref
from .repository import Repository
from .revision import Author, Revision, read_revision, write_revision

if TYPE_CHECKING:
    from .storage import DocumentStorage

logger = logging.getLogger(__name__)

ROOT_MESSAGE = "First Commit"

AuthorLike = Union[Author, Mapping[str, Any], str]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class RevisionCollection:
    """Lookup of revisions by state name or oid."""

    def __init__(self, document: "Document"):
        self.document = document

    def __getitem__(self, state: str) -> Revision | None:
        """Tip revision of `state`, or None if nothing was saved there."""
        repo = self.document.repository
        oid = repo.resolve(state_ref(state))
        if oid is None:
            return None
        return read_revision(repo, oid).with_context(state=state, document=self.document)

    def get(self, oid: str) -> Revision:
        return read_revision(self.document.repository, oid).with_context(document=self.document)

    @property
    def root_revision(self) -> Revision | None:
        oid = self.document.repository.root_oid
        if oid is None:
            return None
        return self.get(oid)

    def states(self) -> list[str]:
        """Names of all states that have at least one revision."""
        names = (ref_state(name) for name, _ in self.document.repository.enumerate_refs())
        return [name for name in names if name is not None]


class Document:
    """
    A versioned structured document.

    Content is any JSON-serializable value. Creating a Document writes
    nothing; the repository is initialized by the first save.
    """

    def __init__(
        self,
        content: Any = None,
        *,
        storage: "DocumentStorage",
        id: str | None = None,
        type: str | None = None,
        repository: Repository | None = None,
    ):
        if type is not None and (not type or any(c.isspace() for c in type)):
            raise ValueError(f"Document type cannot contain whitespace: {type!r}")

        self.storage = storage
        self.id = id or secrets.token_hex(16)
        self.content = content
        self.revision: str | None = None
        self.revisions = RevisionCollection(self)
        self._type = type
        self._repository = repository

    def __repr__(self) -> str:
        return f"Document(id={self.id!r}, type={self.type!r}, revision={self.revision!r})"

    @property
    def type(self) -> str:
        if self._type is None:
            self._type = self.storage.index.lookup(self.id) or self.storage.config.default_type
        return self._type

    @property
    def repository(self) -> Repository:
        if self._repository is None:
            self._repository = self.storage.repository(self.id)
        return self._repository

    @property
    def draft_state(self) -> str:
        return self.storage.config.draft_state

    @property
    def root_oid(self) -> str | None:
        return self.repository.root_oid

    # Storage

    def init_repository(self, author: AuthorLike, timestamp: datetime | None = None) -> str:
        """
        Create the root commit and tag if the repository is empty.

        Safe to call repeatedly: once any ref exists this only returns the
        root oid.

        Returns:
            The root commit oid
        """
        repo = self.repository
        if not repo.is_empty():
            root = repo.root_oid
            if root is None:
                raise NotFound("Ref", ROOT_REF)
            return root

        oid = write_revision(repo, None, author, ROOT_MESSAGE, timestamp or _now())
        try:
            repo.create_ref(ROOT_REF, oid)
        except RefExists:
            # Another writer initialized the repository first
            root = repo.root_oid
            if root is None:
                raise NotFound("Ref", ROOT_REF) from None
            return root

        logger.info("initialized repository for %s (root %s)", self.id, oid)
        return oid

    def save(self, author: AuthorLike, message: str = "", timestamp: datetime | None = None) -> str:
        """
        Save the current content as a new revision of the draft state.

        Returns:
            oid of the new revision
        """
        return self.save_in(self.draft_state, author, message, timestamp)

    def save_in(
        self,
        state: str,
        author: AuthorLike,
        message: str = "",
        timestamp: datetime | None = None,
    ) -> str:
        """
        Save the current content as a new revision on top of `state`.

        The new commit has a single parent: the state's previous tip, or
        the root if the state was never used.

        Args:
            state: Name of the state to save into
            author: Author or {name, email}
            message: Commit message
            timestamp: Time of the save (defaults to now, UTC)

        Returns:
            oid of the new revision

        Raises:
            RefConflict: If the state moved while saving
        """
        timestamp = timestamp or _now()
        ref = state_ref(state)
        repo = self.repository

        root = self.init_repository(author, timestamp)
        previous = repo.resolve(ref)

        oid = write_revision(repo, self.content, author, message, timestamp, [previous or root])
        self._advance(ref, previous, oid)

        self.revision = oid
        self.storage.index.register(self.id, self.type)
        logger.info("saved %s in %s: %s", self.id, state, oid)
        return oid

    def load(self, rev: str | None = None) -> str:
        """
        Load a revision, replacing the document's content.

        Args:
            rev: A commit oid or a state name (defaults to the draft state)

        Returns:
            oid of the loaded revision

        Raises:
            NoSuchState: If no revision was given and the draft state is empty
            NotFound: If `rev` is neither a stored commit nor a used state
        """
        repo = self.repository
        if rev is None:
            oid = repo.resolve(state_ref(self.draft_state))
            if oid is None:
                raise NoSuchState(self.draft_state)
        elif rev in repo.objects:
            oid = rev
        else:
            try:
                oid = repo.resolve(state_ref(rev))
            except ValueError:
                oid = None
            if oid is None:
                raise NotFound("Revision", rev)

        revision = read_revision(repo, oid)
        self.content = revision.content
        self.revision = oid
        return oid

    def history(self, state: str | None = None) -> RevisionHistory:
        """
        Revisions of a state, newest first, following first parents.

        Without a state, starts from the currently loaded revision. The
        listing ends with the first revision built directly on the root.
        The returned iterator is one-shot.
        """
        repo = self.repository
        start = repo.resolve(state_ref(state)) if state is not None else self.revision
        return RevisionHistory(repo, start, repo.root_oid, state=state, document=self)

    # Publishing pipeline

    def promote(
        self,
        from_state: str,
        to_state: str,
        author: AuthorLike,
        message: str = "",
        timestamp: datetime | None = None,
    ) -> str:
        """
        Promote the latest revision of `from_state` into `to_state`.

        Writes a merge commit on `to_state` with parents
        [previous tip of to_state or root, tip of from_state] carrying the
        content of the from_state tip.

        Returns:
            oid of the new revision

        Raises:
            NoSuchState: If `from_state` has no revisions
            RefConflict: If `to_state` moved while promoting
        """
        if from_state == to_state:
            raise ValueError(f"Cannot promote {from_state!r} into itself")

        timestamp = timestamp or _now()
        from_ref = state_ref(from_state)
        to_ref = state_ref(to_state)
        repo = self.repository

        source = repo.resolve(from_ref)
        if source is None:
            raise NoSuchState(from_state)
        root = repo.root_oid
        if root is None:
            raise NotFound("Ref", ROOT_REF)
        previous = repo.resolve(to_ref)

        source_revision = read_revision(repo, source)
        oid = write_revision(
            repo,
            source_revision.content,
            author,
            message,
            timestamp,
            [previous or root, source],
        )
        self._advance(to_ref, previous, oid)

        self.storage.index.register(self.id, self.type)
        logger.info("promoted %s %s -> %s: %s", self.id, from_state, to_state, oid)
        return oid

    def has_been_promoted(self, to_state: str, rev: str | None = None) -> bool:
        """
        Was `rev` (default: the loaded revision) ever promoted to `to_state`?

        Returns False if `to_state` was never used.
        """
        rev = rev or self.revision
        if rev is None:
            return False
        return promoted_into(self.repository, state_ref(to_state), rev)

    def index_record(self, states: list[str] | tuple[str, ...] = ()) -> dict[str, Any]:
        """Read surface for search indexing: identity, content and promotion facts."""
        return {
            "id": self.id,
            "type": self.type,
            "revision": self.revision,
            "content": self.content,
            "states": {state: self.has_been_promoted(state) for state in states},
        }

    def _advance(self, ref: str, previous: str | None, oid: str) -> None:
        repo = self.repository
        if previous is None:
            try:
                repo.create_ref(ref, oid)
            except RefExists:
                raise RefConflict(ref, None, repo.resolve(ref)) from None
        else:
            repo.update_ref(ref, previous, oid)
