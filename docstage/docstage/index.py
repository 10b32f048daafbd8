"""
Flat document index: document id -> type.

The index only exists so a document can be opened without knowing its
type in advance, and so stored documents can be listed. It is written
after every successful save or promotion.

On disk it is an append-only JSON Lines file; the latest line for an id
wins. Without a path the index lives in memory.
"""

from __future__ import annotations

import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)


class DocumentIndex:
    """
    Append-only id -> type table.

    Entries are loaded lazily on first query and kept in insertion order.
    """

    def __init__(self, path: Path | None = None):
        self.path = Path(path) if path is not None else None
        self._types: dict[str, str] = {}
        self._loaded = self.path is None
        self._lock = threading.Lock()

    def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        if self.path is not None and self.path.exists():
            with self.path.open("r", encoding="utf-8") as f:
                for line in f:
                    line = line.strip()
                    if not line:
                        continue
                    entry = json.loads(line)
                    self._types[entry["id"]] = entry["type"]
        self._loaded = True

    def register(self, doc_id: str, doc_type: str) -> None:
        """Record the type of a document. Re-registering unchanged is a no-op."""
        with self._lock:
            self._ensure_loaded()
            if self._types.get(doc_id) == doc_type:
                return

            if self.path is not None:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                entry = {
                    "id": doc_id,
                    "type": doc_type,
                    "registered_at": datetime.now(timezone.utc).isoformat(),
                }
                with self.path.open("a", encoding="utf-8") as f:
                    f.write(json.dumps(entry) + "\n")

            self._types[doc_id] = doc_type
            logger.debug("registered %s as %s", doc_id, doc_type)

    def lookup(self, doc_id: str) -> str | None:
        """Type of a document, or None if it was never registered."""
        with self._lock:
            self._ensure_loaded()
            return self._types.get(doc_id)

    def documents(self) -> list[dict[str, str]]:
        """All registered documents as {id, type}, in registration order."""
        with self._lock:
            self._ensure_loaded()
            return [{"id": doc_id, "type": doc_type} for doc_id, doc_type in self._types.items()]

    def __contains__(self, doc_id: object) -> bool:
        return isinstance(doc_id, str) and self.lookup(doc_id) is not None

    def __len__(self) -> int:
        return len(self.documents())
