"""Tests for the importer_status tool."""

import pytest

from log_importer.state import StateError, StateStore, UserRecord
from tools.importer_status import build_summary, load_state


@pytest.fixture
def populated_state(state_path):
    store = StateStore(state_path, "123")
    store.add_user("alice#1", UserRecord(name="Alice", avatar="data:image/png;base64,AAAA"))
    store.add_user("bob#2", UserRecord(name="Bob"))
    store.set_webhook_id("222", "alice#1", "9001")
    store.set_webhook_id("222", "bob#2", "9002")
    store.set_webhook_id("333", "bob#2", "9003")
    return state_path


class TestLoadState:
    """Tests for load_state function."""

    def test_without_guild_reads_any_guild(self, populated_state):
        assert load_state(populated_state, None).guild_id == "123"

    def test_with_matching_guild(self, populated_state):
        assert len(load_state(populated_state, "123").users) == 2

    def test_with_other_guild(self, populated_state):
        with pytest.raises(StateError):
            load_state(populated_state, "456")

    def test_missing_file_without_guild(self, temp_dir):
        with pytest.raises(StateError):
            load_state(temp_dir / "missing.yaml", None)


class TestBuildSummary:
    """Tests for build_summary function."""

    def test_summary(self, populated_state):
        state = load_state(populated_state, None)
        summary = build_summary(state, populated_state, messages=200, pause_ms=3000)

        assert summary["guild_id"] == "123"
        assert summary["users"]["alice#1"] == {"name": "Alice", "has_avatar": True}
        assert summary["users"]["bob#2"]["has_avatar"] is False
        assert summary["channels"] == {"222": ["alice#1", "bob#2"], "333": ["bob#2"]}
        assert summary["webhook_count"] == 3
        assert summary["estimated_seconds"] == 600.0
