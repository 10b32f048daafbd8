"""
Storage configuration.

Configuration is a plain value passed to DocumentStorage; nothing here is
process-wide. A TOML file can supply it:

    [storage]
    path = "storage"
    backend = "file"        # or "memory"
    draft_state = "master"
    default_type = "document"
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # type: ignore

BACKENDS = ("file", "memory")
DEFAULT_CONFIG_NAME = "docstage.toml"


@dataclass(frozen=True)
class StorageConfig:
    storage_path: Path = field(default_factory=lambda: Path("storage"))
    backend: str = "file"
    draft_state: str = "master"
    default_type: str = "document"

    def __post_init__(self) -> None:
        if self.backend not in BACKENDS:
            raise ValueError(f"Unknown storage backend: {self.backend!r} (expected one of {', '.join(BACKENDS)})")
        if not self.draft_state.strip():
            raise ValueError("draft_state must not be empty")
        if not self.default_type.strip() or any(c.isspace() for c in self.default_type):
            raise ValueError("default_type must be a non-empty word")
        object.__setattr__(self, "storage_path", Path(self.storage_path))

    @classmethod
    def memory(cls, **overrides: Any) -> "StorageConfig":
        return cls(backend="memory", **overrides)

    def with_storage_path(self, path: Path) -> "StorageConfig":
        return replace(self, storage_path=Path(path))

    @property
    def index_path(self) -> Path:
        return self.storage_path / "index.jsonl"


def load_config(path: str | Path) -> StorageConfig:
    """
    Load storage configuration from TOML.

    Args:
        path: Path to the config file

    Returns:
        StorageConfig; relative storage paths resolve against the file's directory

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the TOML is malformed or a value is invalid
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config not found: {path}")

    with open(path, "rb") as f:
        try:
            data = tomllib.load(f)
        except Exception as e:
            raise ValueError(f"Failed to parse config TOML: {e}") from e

    section = data.get("storage", {})
    if not isinstance(section, dict):
        raise ValueError("[storage] must be a table")

    kwargs: dict[str, Any] = {}
    if "path" in section:
        storage_path = Path(str(section["path"]))
        if not storage_path.is_absolute():
            storage_path = path.parent / storage_path
        kwargs["storage_path"] = storage_path
    for key in ("backend", "draft_state", "default_type"):
        if key in section:
            kwargs[key] = str(section[key]).strip()

    return StorageConfig(**kwargs)


def discover_config(start: Path) -> StorageConfig:
    """Config from `docstage.toml` in `start`, or defaults rooted at `start`."""
    candidate = start / DEFAULT_CONFIG_NAME
    if candidate.is_file():
        return load_config(candidate)
    return StorageConfig(storage_path=start / "storage")
