from __future__ import annotations

from typing import Any, Sequence

from docstage.indexer import build_index_records, index_documents
from docstage.revision import Author
from docstage.storage import DocumentStorage


class RecordingProvider:
    def __init__(self) -> None:
        self.batches: list[list[dict[str, Any]]] = []

    def index(self, records: Sequence[dict[str, Any]]) -> None:
        self.batches.append(list(records))


def test_records_carry_promotion_facts(memory_storage: DocumentStorage, author: Author, clock) -> None:
    published = memory_storage.create({"title": "Out"}, type="article")
    published.save(author, "", clock())
    published.promote("master", "published", author, "", clock())

    draft = memory_storage.create({"title": "Draft"})
    draft.save(author, "", clock())

    records = build_index_records(memory_storage.documents(), ["published"])

    by_id = {r["id"]: r for r in records}
    assert by_id[published.id] == {
        "id": published.id,
        "type": "article",
        "revision": published.revision,
        "content": {"title": "Out"},
        "states": {"published": True},
    }
    assert by_id[draft.id]["type"] == "document"
    assert by_id[draft.id]["states"] == {"published": False}


def test_index_documents_hands_one_batch(memory_storage: DocumentStorage, author: Author, clock) -> None:
    for i in range(2):
        document = memory_storage.create({"n": i})
        document.save(author, "", clock())

    provider = RecordingProvider()
    count = index_documents(provider, memory_storage.documents(), ["published", "retired"])

    assert count == 2
    assert len(provider.batches) == 1
    assert sorted(r["content"]["n"] for r in provider.batches[0]) == [0, 1]
    assert all(r["states"] == {"published": False, "retired": False} for r in provider.batches[0])
