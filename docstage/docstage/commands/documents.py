"""Document CLI commands: create, save, promote and inspect."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..config import StorageConfig
from ..document import Document
from ..errors import DocstageError
from ..revision import Author
from ..storage import DocumentStorage


def _parse_content(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError as e:
        raise ValueError(f"Content is not valid JSON: {e}") from e


def _open(storage: DocumentStorage, doc_id: str, rev: str | None = None) -> Document:
    document = storage.open(doc_id, rev)
    if document is None:
        raise LookupError(f"Document not found: {doc_id}")
    return document


def _fail(err: Console, e: Exception) -> int:
    err.print(str(e), style="bold red")
    return 1


def run_new(
    config: StorageConfig,
    content_text: str,
    author: Author,
    *,
    doc_type: str | None = None,
    doc_id: str | None = None,
    message: str = "",
) -> int:
    console = Console()
    err = Console(stderr=True)
    storage = DocumentStorage(config)
    try:
        if doc_id is not None and storage.exists(doc_id):
            raise ValueError(f"Document already exists: {doc_id}")
        document = storage.create(_parse_content(content_text), type=doc_type, id=doc_id)
        rev = document.save(author, message)
    except (DocstageError, ValueError) as e:
        return _fail(err, e)

    console.print(f"{document.id} {rev}")
    return 0


def run_save(
    config: StorageConfig,
    doc_id: str,
    content_text: str,
    author: Author,
    *,
    state: str | None = None,
    message: str = "",
) -> int:
    console = Console()
    err = Console(stderr=True)
    storage = DocumentStorage(config)
    try:
        document = _open(storage, doc_id)
        document.content = _parse_content(content_text)
        rev = document.save_in(state or config.draft_state, author, message)
    except (DocstageError, LookupError, ValueError) as e:
        return _fail(err, e)

    console.print(rev)
    return 0


def run_promote(
    config: StorageConfig,
    doc_id: str,
    from_state: str,
    to_state: str,
    author: Author,
    *,
    message: str = "",
) -> int:
    console = Console()
    err = Console(stderr=True)
    storage = DocumentStorage(config)
    try:
        document = _open(storage, doc_id)
        rev = document.promote(from_state, to_state, author, message)
    except (DocstageError, LookupError, ValueError) as e:
        return _fail(err, e)

    console.print(rev)
    return 0


def run_history(
    config: StorageConfig,
    doc_id: str,
    *,
    state: str | None = None,
    output_json: bool = False,
) -> int:
    console = Console()
    err = Console(stderr=True)
    storage = DocumentStorage(config)
    try:
        document = _open(storage, doc_id)
        revisions = list(document.history(state or config.draft_state))
    except (DocstageError, LookupError, ValueError) as e:
        return _fail(err, e)

    if output_json:
        print(json.dumps([r.to_dict() for r in revisions], indent=2, sort_keys=True))
        return 0

    table = Table(title=f"{doc_id} ({state or config.draft_state})")
    table.add_column("rev", style="cyan", no_wrap=True)
    table.add_column("type", style="magenta")
    table.add_column("time")
    table.add_column("author")
    table.add_column("message")
    table.add_column("parents", style="dim")

    for r in revisions:
        parents = r.summary.to_dict() if r.summary else {}
        table.add_row(
            r.oid[:12] + "…",
            r.kind.value,
            r.timestamp.isoformat(timespec="seconds") if isinstance(r.timestamp, datetime) else str(r.timestamp),
            escape(r.author.name),
            escape(r.message),
            ", ".join(f"{k}: {v[:12]}" for k, v in parents.items()),
        )

    console.print(table)
    return 0


def run_show(config: StorageConfig, doc_id: str, *, rev: str | None = None) -> int:
    err = Console(stderr=True)
    storage = DocumentStorage(config)
    try:
        document = _open(storage, doc_id, rev)
    except (DocstageError, LookupError, ValueError) as e:
        return _fail(err, e)

    print(json.dumps(document.content, indent=2, sort_keys=True))
    return 0


def run_promoted(config: StorageConfig, doc_id: str, state: str, *, rev: str | None = None) -> int:
    """Exit 0 if the revision reached `state`, 1 if not, 2 on error."""
    console = Console()
    err = Console(stderr=True)
    storage = DocumentStorage(config)
    try:
        document = _open(storage, doc_id, rev)
        promoted = document.has_been_promoted(state)
    except (DocstageError, LookupError, ValueError) as e:
        _fail(err, e)
        return 2

    console.print(f"{document.revision}: {'promoted' if promoted else 'not promoted'} to {state}")
    return 0 if promoted else 1


def run_list(config: StorageConfig, *, output_json: bool = False) -> int:
    console = Console()
    storage = DocumentStorage(config)
    entries = storage.index.documents()

    if output_json:
        print(json.dumps(entries, indent=2))
        return 0

    table = Table(title="Documents")
    table.add_column("id", style="cyan", no_wrap=True)
    table.add_column("type", style="magenta")
    for entry in entries:
        table.add_row(entry["id"], entry["type"])
    console.print(table)
    return 0
