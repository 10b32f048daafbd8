"""
Tests for dumping and restoring documents.

Validates:
- Byte-exact restore of objects and refs
- Identical history after restore
- Strict section ordering
- Integrity checks on hash, length and references
"""

from __future__ import annotations

import io
import json
from pathlib import Path

import pytest

from docstage.config import StorageConfig
from docstage.document import Document
from docstage.errors import IntegrityError, MalformedStream
from docstage.revision import Author
from docstage.serializer import dump, load, load_all
from docstage.storage import DocumentStorage


def _reachable(document: Document) -> set[str]:
    return set(document.repository.objects)


def _history(document: Document, state: str) -> list[tuple]:
    return [
        (r.oid, r.kind, r.message, r.author, r.timestamp, r.content)
        for r in document.history(state)
    ]


@pytest.fixture
def source(memory_storage: DocumentStorage, author: Author, clock) -> Document:
    document = memory_storage.create({"title": "Dump me", "body": "v1"}, type="article")
    document.save(author, "v1", clock())
    document.content = {"title": "Dump me", "body": "v2"}
    document.save(author, "v2", clock())
    document.promote("master", "published", author, "Published!", clock())
    document.content = {"title": "Dump me", "body": "v3"}
    document.save(author, "v3", clock())
    document.promote("master", "published", author, "Published again", clock())
    document.promote("published", "archived", author, "Archived!", clock())
    document.content = {"title": "Dump me", "body": "archived edit"}
    document.save_in("archived", author, "edit archive", clock())
    document.load()
    return document


def _dump_text(documents) -> str:
    out = io.StringIO()
    dump(documents, out)
    return out.getvalue()


def test_dump_layout(source: Document) -> None:
    lines = _dump_text(source).splitlines()

    assert lines[0] == f"document: {source.id} article"
    assert lines[1] == "objects:"
    refs_at = lines.index("references:")
    objects = [json.loads(line) for line in lines[2:refs_at]]
    references = [json.loads(line) for line in lines[refs_at + 1:]]

    assert {o["oid"] for o in objects} == _reachable(source)
    assert len(objects) == len(_reachable(source))
    assert all(set(o) == {"oid", "type", "data", "len"} for o in objects)
    assert references[0] == {"name": "HEAD", "type": "symbolic", "target": "refs/heads/master"}
    assert {r["name"]: r["target"] for r in references[1:]} == dict(source.repository.enumerate_refs())
    assert all(r["type"] == "oid" for r in references[1:])


def test_roundtrip_restores_everything(source: Document, tmp_path: Path) -> None:
    target = DocumentStorage(StorageConfig(storage_path=tmp_path / "restored"))

    restored = load_all(io.StringIO(_dump_text(source)), target)

    assert len(restored) == 1
    document = restored[0]
    assert document.id == source.id
    assert document.type == "article"
    assert document.revision == source.revision
    assert document.content == source.content
    assert _reachable(document) == _reachable(source)
    assert document.repository.enumerate_refs() == source.repository.enumerate_refs()
    for state in ("master", "published", "archived"):
        assert _history(document, state) == _history(source, state)
    assert target.index.lookup(source.id) == "article"

    reopened = target.open(source.id)
    assert reopened is not None
    assert reopened.has_been_promoted("published") is True


def test_restore_preserves_promotion_facts(source: Document, memory_storage: DocumentStorage) -> None:
    target = DocumentStorage(StorageConfig.memory())
    (document,) = load_all(io.StringIO(_dump_text(source)), target)

    for rev in [r.oid for r in source.history("master")]:
        for state in ("published", "archived"):
            assert document.has_been_promoted(state, rev) == source.has_been_promoted(state, rev)


def test_multiple_documents(memory_storage: DocumentStorage, author: Author, clock) -> None:
    docs = []
    for i in range(3):
        document = memory_storage.create({"n": i})
        document.save(author, f"doc {i}", clock())
        if i % 2 == 0:
            document.promote("master", "published", author, "", clock())
        docs.append(document)

    target = DocumentStorage(StorageConfig.memory())
    seen = [d.id for d in load(io.StringIO(_dump_text(docs)), target)]

    assert seen == [d.id for d in docs]
    assert sorted(target.document_ids()) == sorted(seen)
    assert target.open(docs[1].id).content == {"n": 1}
    assert target.open(docs[2].id).has_been_promoted("published") is True
    assert target.open(docs[1].id).has_been_promoted("published") is False


def test_load_yields_lazily(memory_storage: DocumentStorage, author: Author, clock) -> None:
    first = memory_storage.create({"n": 1})
    first.save(author, "", clock())
    second = memory_storage.create({"n": 2})
    second.save(author, "", clock())

    text = _dump_text([first, second])
    text = text + "garbage\n"

    target = DocumentStorage(StorageConfig.memory())
    documents = load(io.StringIO(text), target)
    assert next(documents).id == first.id
    with pytest.raises(MalformedStream):
        list(documents)


def test_roundtrip_without_draft_state(memory_storage: DocumentStorage, author: Author, clock) -> None:
    document = memory_storage.create({"title": "Published only"}, type="article")
    document.save_in("published", author, "direct", clock())

    target = DocumentStorage(StorageConfig.memory())
    (restored,) = load_all(io.StringIO(_dump_text(document)), target)

    assert restored.revision is None
    assert restored.content is None
    assert restored.repository.enumerate_refs() == document.repository.enumerate_refs()
    assert _history(restored, "published") == _history(document, "published")
    assert target.index.lookup(document.id) == "article"


def test_bad_head_target_is_rejected(source: Document) -> None:
    text = _dump_text(source).replace(
        '{"name":"HEAD","type":"symbolic","target":"refs/heads/master"}',
        '{"name":"HEAD","type":"symbolic","target":"refs/heads/a b"}',
    )

    with pytest.raises(MalformedStream, match="bad HEAD target"):
        load_all(io.StringIO(text), DocumentStorage(StorageConfig.memory()))


def test_reloading_is_safe(source: Document) -> None:
    text = _dump_text(source)
    target = DocumentStorage(StorageConfig.memory())

    load_all(io.StringIO(text), target)
    (again,) = load_all(io.StringIO(text), target)

    assert again.repository.enumerate_refs() == source.repository.enumerate_refs()


def _corrupt_first_payload(text: str, kind: str) -> str:
    lines = text.splitlines(keepends=True)
    for i, line in enumerate(lines):
        if line.startswith("{") and f'"type":"{kind}"' in line:
            record = json.loads(line)
            data = record["data"]
            record["data"] = ("B" if data[0] != "B" else "C") + data[1:]
            lines[i] = json.dumps(record, separators=(",", ":")) + "\n"
            return "".join(lines)
    raise AssertionError(f"no {kind} object in dump")


@pytest.mark.parametrize("kind", ["blob", "tree", "commit"])
def test_corrupted_payload_is_rejected(source: Document, kind: str) -> None:
    text = _corrupt_first_payload(_dump_text(source), kind)

    with pytest.raises(IntegrityError):
        load_all(io.StringIO(text), DocumentStorage(StorageConfig.memory()))


def test_length_mismatch_is_rejected(source: Document) -> None:
    lines = _dump_text(source).splitlines(keepends=True)
    record = json.loads(lines[2])
    record["len"] += 1
    lines[2] = json.dumps(record) + "\n"

    with pytest.raises(IntegrityError, match="length mismatch"):
        load_all(io.StringIO("".join(lines)), DocumentStorage(StorageConfig.memory()))


def test_reference_to_missing_object_is_rejected(source: Document) -> None:
    text = _dump_text(source)
    text += json.dumps({"name": "refs/heads/ghost", "type": "oid", "target": "f" * 64}) + "\n"

    with pytest.raises(IntegrityError, match="missing object"):
        load_all(io.StringIO(text), DocumentStorage(StorageConfig.memory()))


@pytest.mark.parametrize(
    "text, message",
    [
        ("document: \nobjects:\nreferences:\n", "header"),
        ("objects:\n", "unexpected objects"),
        ("document: abc\nreferences:\n", "unexpected references"),
        ("document: abc\nobjects:\nobjects:\n", "unexpected objects"),
        ('{"oid": "x"}\n', "expected document header"),
        ("document: abc\nobjects:\nnot json\n", "expected object"),
        ("document: a b c\n", "header"),
        ("document: ../escape\n", "Invalid document id"),
    ],
)
def test_malformed_streams(text: str, message: str) -> None:
    with pytest.raises(MalformedStream, match=message):
        load_all(io.StringIO(text), DocumentStorage(StorageConfig.memory()))


def test_truncated_stream_is_rejected(source: Document) -> None:
    text = _dump_text(source)
    truncated = text[: text.index("references:")]

    with pytest.raises(MalformedStream, match="ended before"):
        load_all(io.StringIO(truncated), DocumentStorage(StorageConfig.memory()))


def test_empty_stream_yields_nothing() -> None:
    assert load_all(io.StringIO(""), DocumentStorage(StorageConfig.memory())) == []
