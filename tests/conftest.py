from __future__ import annotations

import pytest

from clip_todo.storage.store import InMemoryCaptureStore


@pytest.fixture
def store() -> InMemoryCaptureStore:
    return InMemoryCaptureStore()
