"""
Read surface for an external search backend.

The store does not implement search. A backend receives one record per
document:

    {"id", "type", "revision", "content", "states": {state: promoted?}}

where `states` says whether the document's loaded revision has been
promoted into each requested state.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Protocol, Sequence

from .document import Document

logger = logging.getLogger(__name__)


class SearchProvider(Protocol):
    """What a search backend implements to receive documents."""

    def index(self, records: Sequence[dict[str, Any]]) -> None: ...


def build_index_records(documents: Iterable[Document], states: Sequence[str]) -> list[dict[str, Any]]:
    return [document.index_record(tuple(states)) for document in documents]


def index_documents(provider: SearchProvider, documents: Iterable[Document], states: Sequence[str]) -> int:
    """Hand index records for `documents` to `provider`. Returns the record count."""
    records = build_index_records(documents, states)
    provider.index(records)
    logger.info("indexed %d documents", len(records))
    return len(records)
