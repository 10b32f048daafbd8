"""
docstage - versioned document storage with a publishing pipeline.

Documents are stored in a content-addressed commit graph:

- Immutable blobs, trees and commits keyed by sha256
- Forward-only refs, one per publishing state
- Saves as linear commits, promotions as two-parent commits
- A line-oriented dump format with integrity checking on restore
"""

__version__ = "0.1.0"

from .config import StorageConfig, load_config
from .document import Document, RevisionCollection
from .errors import (
    CorruptWrite,
    DecodeError,
    DocstageError,
    IntegrityError,
    MalformedStream,
    NoSuchState,
    NotFound,
    RefConflict,
    RefExists,
)
from .history import RevisionHistory, has_been_promoted
from .index import DocumentIndex
from .repository import Repository
from .revision import Author, ParentsSummary, Revision, RevisionKind
from .storage import DocumentStorage

__all__ = [
    "__version__",
    # Configuration
    "StorageConfig",
    "load_config",
    # Documents
    "Document",
    "DocumentStorage",
    "DocumentIndex",
    "RevisionCollection",
    "Repository",
    # Revisions
    "Author",
    "ParentsSummary",
    "Revision",
    "RevisionKind",
    "RevisionHistory",
    "has_been_promoted",
    # Errors
    "DocstageError",
    "NotFound",
    "RefExists",
    "RefConflict",
    "IntegrityError",
    "CorruptWrite",
    "MalformedStream",
    "DecodeError",
    "NoSuchState",
]
