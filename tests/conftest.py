"""Shared test fixtures for skprogress."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import pytest

from skprogress.cloud import CloudStore, CloudStoreError
from skprogress.models import (
    AuthSource,
    CloudProfile,
    CloudRecord,
    Identity,
    ProgressSnapshot,
)
from skprogress.stores import LocalStores


class FakeCloudStore(CloudStore):
    """In-memory cloud store that counts calls and can be made to fail."""

    def __init__(self) -> None:
        self.records: dict[str, CloudRecord] = {}
        self.reads: list[str] = []
        self.writes: list[tuple[str, dict[str, Any]]] = []
        self.fail_reads = False
        self.fail_writes = False

    @property
    def name(self) -> str:
        return "fake"

    def available(self) -> bool:
        return True

    def seed(self, user_key: str, progress: ProgressSnapshot) -> None:
        self.records[user_key] = CloudRecord(
            profile=CloudProfile(id=f"profile-{user_key}", user_key=user_key),
            progress=progress,
        )

    def read(self, user_key: str) -> Optional[CloudRecord]:
        self.reads.append(user_key)
        if self.fail_reads:
            raise CloudStoreError("network down")
        return self.records.get(user_key)

    def write(self, user_key: str, fields: dict[str, Any]) -> bool:
        self.writes.append((user_key, dict(fields)))
        if self.fail_writes:
            raise CloudStoreError("write rejected")
        return True


@pytest.fixture
def progress_home(tmp_path: Path) -> Path:
    """Provide a temporary progress home directory."""
    home = tmp_path / ".skprogress"
    home.mkdir()
    return home


@pytest.fixture
def cloud() -> FakeCloudStore:
    return FakeCloudStore()


@pytest.fixture
def stores() -> LocalStores:
    return LocalStores.in_memory()


@pytest.fixture
def alice() -> Identity:
    return Identity(id="user_alice", source=AuthSource.PRIMARY, username="alice")


@pytest.fixture
def bob() -> Identity:
    return Identity(id="user_bob", source=AuthSource.FALLBACK, username="bob")
