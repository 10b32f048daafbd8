"""
Dump and restore documents with their full history.

The dump format is line oriented text. A stream holds one or more
document sections:

    document: <id> <type>
    objects:
    {"oid": "...", "type": "commit", "data": "<base64 payload>", "len": 123}
    ...
    references:
    {"name": "HEAD", "type": "symbolic", "target": "refs/heads/master"}
    {"name": "refs/heads/master", "type": "oid", "target": "..."}
    ...

Objects are written as raw payloads, never re-encoded, so a restore is
byte exact. Every object is re-hashed on load and rejected if its hash
or length disagrees with the dump.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import re
from typing import IO, Any, Iterable, Iterator, cast

from .document import Document
from .errors import IntegrityError, MalformedStream, NotFound
from .objects import CommitNode, ObjectKind, Tree, from_raw
from .refs import ROOT_REF, ref_state, state_ref
from .repository import Repository
from .storage import DocumentStorage, validate_id

logger = logging.getLogger(__name__)

HEADER_RE = re.compile(r"^document:(.*)$")
OBJECTS_MARKER = "objects:"
REFERENCES_MARKER = "references:"

REF_SYMBOLIC = "symbolic"
REF_DIRECT = "oid"

# Section states of the loader
_NONE = "none"
_HEADER = "header"
_OBJECTS = "objects"
_REFERENCES = "references"


def _serialize(record: dict[str, Any]) -> str:
    return json.dumps(record, separators=(",", ":"))


# -----------------------------------------------------------------------------
# Dump
# -----------------------------------------------------------------------------


def _write_object(stream: IO[str], repo: Repository, oid: str, seen: set[str]) -> None:
    if oid in seen:
        return
    raw = repo.read(oid)
    stream.write(_serialize({
        "oid": oid,
        "type": raw.kind.value,
        "data": base64.b64encode(raw.payload).decode("ascii"),
        "len": len(raw.payload),
    }))
    stream.write("\n")
    seen.add(oid)


def _write_commit(stream: IO[str], repo: Repository, oid: str, seen: set[str]) -> CommitNode:
    """Write a commit, its tree and its content blob. Returns the decoded commit."""
    commit = from_raw(repo.read(oid), oid)
    if not isinstance(commit, CommitNode):
        raise IntegrityError(f"Ref chain points at a non-commit object: {oid}")
    _write_object(stream, repo, oid, seen)

    tree = cast(Tree, repo.objects.get_typed(commit.tree, ObjectKind.TREE))
    _write_object(stream, repo, commit.tree, seen)
    for entry in tree.entries:
        _write_object(stream, repo, entry.oid, seen)

    return commit


def dump_document(document: Document, stream: IO[str]) -> int:
    """
    Write one document section.

    Walks the root commit, then every ref down its first parents until the
    root. Second parents are covered by the walk of the ref they came from.

    Returns:
        Number of objects written
    """
    repo = document.repository
    root = repo.root_oid
    if root is None:
        raise NotFound("Ref", ROOT_REF)

    refs = repo.enumerate_refs()
    seen: set[str] = set()

    stream.write(f"document: {document.id} {document.type}\n")
    stream.write(f"{OBJECTS_MARKER}\n")

    _write_commit(stream, repo, root, seen)
    for _name, target in refs:
        oid: str | None = target
        while oid is not None and oid != root and oid not in seen:
            commit = _write_commit(stream, repo, oid, seen)
            oid = commit.parents[0] if commit.parents else None

    stream.write(f"{REFERENCES_MARKER}\n")
    stream.write(_serialize({"name": "HEAD", "type": REF_SYMBOLIC, "target": state_ref(document.draft_state)}))
    stream.write("\n")
    for name, target in refs:
        stream.write(_serialize({"name": name, "type": REF_DIRECT, "target": target}))
        stream.write("\n")

    logger.info("dumped %s: %d objects, %d refs", document.id, len(seen), len(refs))
    return len(seen)


def dump(documents: Document | Iterable[Document], stream: IO[str]) -> None:
    """Write one section per document to `stream`."""
    if isinstance(documents, Document):
        documents = [documents]
    for document in documents:
        dump_document(document, stream)


# -----------------------------------------------------------------------------
# Load
# -----------------------------------------------------------------------------


def _parse_record(line: str, what: str, line_number: int) -> dict[str, Any]:
    try:
        record = json.loads(line)
    except ValueError:
        raise MalformedStream(f"expected {what}, found: {line[:80]!r}", line_number) from None
    if not isinstance(record, dict):
        raise MalformedStream(f"expected {what}, found: {line[:80]!r}", line_number)
    return record


def _read_object(repo: Repository, line: str, line_number: int) -> str:
    record = _parse_record(line, "object", line_number)
    try:
        oid = str(record["oid"])
        kind = ObjectKind(record["type"])
        encoded = str(record["data"])
        length = int(record["len"])
    except (KeyError, ValueError, TypeError) as e:
        raise MalformedStream(f"bad object record: {e}", line_number) from None

    try:
        data = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as e:
        raise IntegrityError(f"line {line_number}: payload of {oid} is not valid base64: {e}") from None

    if len(data) != length:
        raise IntegrityError(
            f"line {line_number}: Data length mismatch! dump: {length}, actual: {len(data)}"
        )

    return repo.write(kind, data, expected_oid=oid)


def _read_reference(repo: Repository, line: str, line_number: int) -> str | None:
    """Apply one reference record. Returns the HEAD target for symbolic records."""
    record = _parse_record(line, "reference", line_number)
    try:
        name = str(record["name"])
        ref_type = str(record["type"])
        target = str(record["target"])
    except KeyError as e:
        raise MalformedStream(f"bad reference record: missing {e}", line_number) from None

    if ref_type == REF_SYMBOLIC:
        if name != "HEAD":
            raise MalformedStream(f"unsupported symbolic ref {name}", line_number)
        return target
    if ref_type != REF_DIRECT:
        raise MalformedStream(f"unknown reference type {ref_type!r}", line_number)

    if target not in repo.objects:
        raise IntegrityError(f"line {line_number}: ref {name} points at missing object {target}")
    try:
        repo.set_ref(name, target)
    except ValueError as e:
        raise MalformedStream(str(e), line_number) from None
    return None


def _finalize(storage: DocumentStorage, document: Document, head: str | None) -> Document:
    state = (ref_state(head) if head else None) or document.draft_state
    try:
        head_ref = state_ref(state)
    except ValueError as e:
        raise MalformedStream(f"bad HEAD target for {document.id}: {e}") from None
    # A document that was never saved to its HEAD state stays unloaded
    if document.repository.resolve(head_ref) is not None:
        document.load(state)
    storage.index.register(document.id, document.type)
    logger.info("loaded %s at %s", document.id, document.revision)
    return document


def load(stream: Iterable[str], storage: DocumentStorage) -> Iterator[Document]:
    """
    Restore documents from a dump, yielding each one as soon as its
    section is complete.

    Sections must appear in order: header, objects, references. Reloading
    the same stream is safe; object writes are idempotent and refs are
    moved to the recorded targets.

    Raises:
        MalformedStream: On a structural violation of the format
        IntegrityError: On a hash, length or reference mismatch
    """
    document: Document | None = None
    reading = _NONE
    head: str | None = None
    line_number = 0

    for line_number, raw_line in enumerate(stream, 1):
        line = raw_line.rstrip("\r\n")
        if not line.strip():
            continue

        header = HEADER_RE.match(line)
        if header:
            if document is not None:
                if reading != _REFERENCES:
                    raise MalformedStream(f"document {document.id} ended before its references section", line_number)
                yield _finalize(storage, document, head)

            parts = header.group(1).split()
            if not parts or len(parts) > 2:
                raise MalformedStream("Malformed document header", line_number)
            try:
                doc_id = validate_id(parts[0])
            except ValueError as e:
                raise MalformedStream(str(e), line_number) from None

            document = Document(storage=storage, id=doc_id, type=parts[1] if len(parts) > 1 else None)
            reading = _HEADER
            head = None
        elif line == OBJECTS_MARKER:
            if reading != _HEADER:
                raise MalformedStream("Malformed document, unexpected objects section", line_number)
            reading = _OBJECTS
        elif line == REFERENCES_MARKER:
            if reading != _OBJECTS:
                raise MalformedStream("Malformed document, unexpected references section", line_number)
            reading = _REFERENCES
        elif reading == _OBJECTS and document is not None:
            _read_object(document.repository, line, line_number)
        elif reading == _REFERENCES and document is not None:
            head = _read_reference(document.repository, line, line_number) or head
        else:
            raise MalformedStream(f"Malformed input, expected document header, got {line[:80]!r}", line_number)

    if document is not None:
        if reading != _REFERENCES:
            raise MalformedStream(f"stream ended before the references section of {document.id}", line_number)
        yield _finalize(storage, document, head)


def load_all(stream: Iterable[str], storage: DocumentStorage) -> list[Document]:
    return list(load(stream, storage))
