"""Shared fixtures for LouveAI tests."""

import json
from typing import Optional

import pytest

from louveai.app.store import BlobStore, RepertoryStore
from louveai.core.config import DEFAULT_CATEGORIES, CategoryCatalog
from louveai.errors import ExternalCallFailure
from louveai.models import MinistrationNote, SongEntry

DAY_MS = 24 * 60 * 60 * 1000
NOW_MS = 1_790_000_000_000


class FakeGenerationClient:
    """Stands in for GenerationClient: returns queued answers, records requests."""

    def __init__(self, responses: Optional[list] = None):
        self.responses = list(responses or [])
        self.requests = []

    def queue(self, response) -> None:
        self.responses.append(response)

    async def complete(self, request) -> str:
        self.requests.append(request)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        if isinstance(response, str):
            return response
        return json.dumps(response, ensure_ascii=False)


@pytest.fixture
def catalog():
    """Default six-slot category catalog."""
    return CategoryCatalog(DEFAULT_CATEGORIES)


@pytest.fixture
def make_entry(catalog):
    """Factory for SongEntry instances with fresh ids."""

    def _make(title="Alvo", category="caminho", recent=False, artist="Ministério Zoe"):
        return SongEntry(
            id=SongEntry.generate_id(),
            title=title,
            artist=artist,
            category=catalog.get(category),
            ministration=MinistrationNote(text="Vamos celebrar.", direction="Celebração"),
            is_recent_repeat=recent,
        )

    return _make


@pytest.fixture
def raw_song():
    """Factory for raw candidate dicts as returned by the model."""

    def _raw(title="Alvo", category="Harpa Cristã", **overrides):
        data = {
            "title": title,
            "artist": "Aline Barros",
            "category": category,
            "key": "G",
            "ministration": {
                "text": "Entremos pelas portas com ações de graças.",
                "verse": "Salmos 100:4",
                "direction": "Celebração",
            },
        }
        data.update(overrides)
        return data

    return _raw


@pytest.fixture
def blob_store(tmp_path):
    """BlobStore on a temporary SQLite file."""
    store = BlobStore(tmp_path / "louveai.db")
    yield store
    store.close()


@pytest.fixture
def store(blob_store, catalog):
    """RepertoryStore with a fixed clock."""
    return RepertoryStore(blob_store, catalog=catalog, clock=lambda: NOW_MS)


@pytest.fixture
def fake_client():
    return FakeGenerationClient()


@pytest.fixture
def external_failure():
    return ExternalCallFailure("connection reset")
