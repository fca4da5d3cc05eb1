"""
Pytest configuration and fixtures for TODO Collector tests
"""
import pytest
import tempfile
import shutil
from pathlib import Path

from todo_collector.document_store import VaultStore
from todo_collector.notifier import Notifier
from todo_collector.settings_store import SettingsStore
from todo_collector.todo_manager import TodoManager

# 2024-01-01T00:00:00Z
FIXED_NOW = 1704067200000
HOUR_MS = 3600 * 1000


class FakeClock:
    """Epoch-millis clock the tests can move forward"""

    def __init__(self, now: int = FIXED_NOW):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, hours: float) -> None:
        self.now += int(hours * HOUR_MS)


class FakeClassifier:
    """Stands in for ClassificationClient; returns a canned answer"""

    def __init__(self, answer=None, error=None):
        self.answer = answer
        self.error = error
        self.calls = []

    async def classify(self, new_lines, existing_groups=None):
        self.calls.append((list(new_lines), dict(existing_groups or {})))
        if self.error is not None:
            raise self.error
        return self.answer


@pytest.fixture
def temp_vault():
    """Create a temporary vault directory for testing"""
    temp_dir = tempfile.mkdtemp(prefix="test_vault_")
    vault_path = Path(temp_dir)

    (vault_path / "LINE").mkdir()
    (vault_path / "LINE" / "2024-01-01.md").write_text("""---
title: Daily
---

# Daily

#TODO buy milk
some other line
#t call mom
""", encoding='utf-8')

    (vault_path / "LINE" / "2024-01-02.md").write_text("""#TODO buy milk
#TODO fix bike
""", encoding='utf-8')

    (vault_path / "Notes").mkdir()
    (vault_path / "Notes" / "ideas.md").write_text("#TODO not a target\n", encoding='utf-8')

    yield vault_path

    # Cleanup
    shutil.rmtree(temp_dir)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings_store(temp_vault):
    store = SettingsStore.for_vault(temp_vault)
    store.update(target_directories=["LINE"])
    return store


@pytest.fixture
def manager(temp_vault, settings_store, clock):
    """TodoManager on the temp vault with a fake clock and no classifier"""
    return TodoManager(VaultStore(temp_vault), settings_store, notifier=Notifier(), clock=clock)


@pytest.fixture
def fake_classifier():
    """FakeClassifier class, so tests can build one with their own answer"""
    return FakeClassifier


@pytest.fixture
def make_manager(temp_vault, settings_store, clock):
    """Build a TodoManager on the temp vault with a given classifier"""
    def _make(classifier=None, config=None):
        return TodoManager(
            VaultStore(temp_vault), settings_store,
            notifier=Notifier(), classifier=classifier, config=config, clock=clock,
        )
    return _make
