"""
Read-only traversals over the commit graph.

Two walks live here:

- RevisionHistory lists a state's own timeline, newest first, following
  first parents only and stopping at the first commit built directly on
  the root.
- has_been_promoted answers whether a revision was ever merged into a
  state. It walks the state's first-parent chain and, at each commit,
  follows second ("source") parents until the source side rejoins a
  linear save chain.

Both walks are plain loops so history depth never touches the stack.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterator, cast

from .objects import CommitNode, ObjectKind
from .repository import Repository
from .revision import ParentsSummary, Revision, read_revision

if TYPE_CHECKING:
    from .document import Document

logger = logging.getLogger(__name__)


def _parents(repo: Repository, oid: str) -> tuple[str, ...]:
    commit = cast(CommitNode, repo.objects.get_typed(oid, ObjectKind.COMMIT))
    return commit.parents


class RevisionHistory(Iterator[Revision]):
    """
    One-shot iterator over a first-parent chain.

    The starting commit is fixed when the iterator is created; writes made
    afterwards are not observed. Each step decodes exactly one revision.
    """

    def __init__(
        self,
        repo: Repository,
        start: str | None,
        root_oid: str | None,
        *,
        state: str | None = None,
        document: "Document | None" = None,
    ):
        self.repo = repo
        self.root_oid = root_oid
        self.state = state
        self.document = document
        self._next = start

    def __iter__(self) -> "RevisionHistory":
        return self

    def __next__(self) -> Revision:
        if self._next is None:
            raise StopIteration

        revision = read_revision(self.repo, self._next)
        parents = revision.parents
        if not parents or self.root_oid is None or self.root_oid in parents:
            self._next = None
        else:
            self._next = parents[0]

        return revision.with_context(
            state=self.state,
            summary=ParentsSummary.from_parents(parents, self.root_oid),
            document=self.document,
        )


def has_been_promoted(repo: Repository, ref_name: str, oid: str) -> bool:
    """
    Check whether commit `oid` was merged into the state at `ref_name`.

    Returns False when the ref does not exist.
    """
    outer = repo.resolve(ref_name)
    if outer is None:
        return False

    while outer is not None:
        outer_parents = _parents(repo, outer)

        # Diagonal walk along source parents; a commit with fewer than two
        # parents is on a linear save chain and ends the walk after it is tested.
        inner = outer_parents[-1] if outer_parents else None
        while inner is not None:
            if inner == oid:
                logger.debug("%s reached %s via %s", ref_name, oid, outer)
                return True
            inner_parents = _parents(repo, inner)
            if len(inner_parents) < 2:
                break
            inner = inner_parents[-1]

        outer = outer_parents[0] if outer_parents else None

    return False
