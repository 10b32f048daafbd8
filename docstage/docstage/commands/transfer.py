"""Backup CLI commands: dump documents to a stream and restore them."""

from __future__ import annotations

from typing import IO, Sequence

from rich.console import Console

from ..config import StorageConfig
from ..errors import DocstageError
from ..serializer import dump, load
from ..storage import DocumentStorage


def run_dump(config: StorageConfig, doc_ids: Sequence[str], out: IO[str]) -> int:
    """Dump the given documents (default: every indexed document)."""
    err = Console(stderr=True)
    storage = DocumentStorage(config)

    ids = list(doc_ids) or storage.document_ids()
    documents = []
    try:
        for doc_id in ids:
            document = storage.open(doc_id)
            if document is None:
                err.print(f"Document not found: {doc_id}", style="bold red")
                return 1
            documents.append(document)

        dump(documents, out)
    except DocstageError as e:
        err.print(str(e), style="bold red")
        return 1

    err.print(f"Dumped {len(documents)} document(s)", style="dim")
    return 0


def run_load(config: StorageConfig, stream: IO[str]) -> int:
    console = Console()
    err = Console(stderr=True)
    storage = DocumentStorage(config)

    count = 0
    try:
        for document in load(stream, storage):
            count += 1
            console.print(f"{document.id} {document.type} {document.revision}")
    except DocstageError as e:
        err.print(str(e), style="bold red")
        err.print(f"Restored {count} document(s) before the failure", style="dim")
        return 1

    err.print(f"Restored {count} document(s)", style="dim")
    return 0
