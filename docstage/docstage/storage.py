"""
DocumentStorage: the entry point that binds a configuration to
repositories, the document index and documents.

File-backed storage keeps one repository directory per document id under
the storage root, next to the index file:

    storage/
      index.jsonl
      <id>/objects/..
      <id>/refs/heads/master
      <id>/refs/tags/root
"""

from __future__ import annotations

import logging
import re
from typing import Any, Iterator

from .config import StorageConfig
from .document import Document
from .index import DocumentIndex
from .refs import state_ref
from .repository import Repository

logger = logging.getLogger(__name__)

_ID_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


def validate_id(doc_id: str) -> str:
    if not _ID_RE.match(doc_id) or ".." in doc_id:
        raise ValueError(f"Invalid document id: {doc_id!r}")
    return doc_id


class DocumentStorage:
    """Repositories, index and documents for one configuration."""

    def __init__(self, config: StorageConfig | None = None, index: DocumentIndex | None = None):
        self.config = config or StorageConfig()
        if index is None:
            index = DocumentIndex(self.config.index_path if self.config.backend == "file" else None)
        self.index = index
        self._memory_repos: dict[str, Repository] = {}

    def __repr__(self) -> str:
        return f"DocumentStorage(backend={self.config.backend!r}, path={str(self.config.storage_path)!r})"

    def repository(self, doc_id: str) -> Repository:
        """Repository for a document, created empty if it does not exist."""
        validate_id(doc_id)
        if self.config.backend == "memory":
            return self._memory_repos.setdefault(doc_id, Repository.in_memory())
        return Repository.on_disk(self.config.storage_path / doc_id)

    def exists(self, doc_id: str) -> bool:
        """Whether a document has a repository with at least one ref."""
        try:
            validate_id(doc_id)
        except ValueError:
            return False
        if self.config.backend == "memory":
            repo = self._memory_repos.get(doc_id)
            return repo is not None and not repo.is_empty()
        path = self.config.storage_path / doc_id
        return path.is_dir() and not self.repository(doc_id).is_empty()

    def create(self, content: Any = None, *, type: str | None = None, id: str | None = None) -> Document:
        """New in-memory document; nothing is written until it is saved."""
        if id is not None:
            validate_id(id)
        return Document(content, storage=self, id=id, type=type or self.config.default_type)

    def open(self, doc_id: str, rev: str | None = None) -> Document | None:
        """
        Open a stored document at `rev` (default: the draft state's tip).

        A document with nothing saved in its draft state is returned
        unloaded when no `rev` is given: `revision` and `content` are None.

        Returns:
            The Document, or None if no such document exists
        """
        if not self.exists(doc_id):
            return None
        document = Document(storage=self, id=doc_id, type=self.index.lookup(doc_id))
        if rev is not None or document.repository.resolve(state_ref(document.draft_state)) is not None:
            document.load(rev)
        return document

    def document_ids(self) -> list[str]:
        return [entry["id"] for entry in self.index.documents()]

    def documents(self) -> Iterator[Document]:
        """Open every indexed document at its draft tip."""
        for doc_id in self.document_ids():
            document = self.open(doc_id)
            if document is not None:
                yield document
