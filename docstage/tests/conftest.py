"""Pytest configuration and fixtures."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from docstage.config import StorageConfig
from docstage.repository import Repository
from docstage.revision import Author
from docstage.storage import DocumentStorage


@pytest.fixture
def author() -> Author:
    return Author(name="Test", email="test@example.com")


@pytest.fixture
def base_time() -> datetime:
    return datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(base_time: datetime):
    """Returns successive timestamps one minute apart."""
    state = {"n": 0}

    def tick() -> datetime:
        state["n"] += 1
        return base_time + timedelta(minutes=state["n"])

    return tick


@pytest.fixture
def memory_storage() -> DocumentStorage:
    return DocumentStorage(StorageConfig.memory())


@pytest.fixture
def file_storage(tmp_path: Path) -> DocumentStorage:
    return DocumentStorage(StorageConfig(storage_path=tmp_path / "storage"))


@pytest.fixture(params=["memory", "file"])
def storage(request: pytest.FixtureRequest, tmp_path: Path) -> DocumentStorage:
    """Storage for each backend."""
    if request.param == "memory":
        return DocumentStorage(StorageConfig.memory())
    return DocumentStorage(StorageConfig(storage_path=tmp_path / "storage"))


@pytest.fixture(params=["memory", "file"])
def repo(request: pytest.FixtureRequest, tmp_path: Path) -> Repository:
    """Empty repository for each backend."""
    if request.param == "memory":
        return Repository.in_memory()
    return Repository.on_disk(tmp_path / "repo")
