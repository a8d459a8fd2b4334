"""
Tests for per-story consumption tracking.
"""

import json
import logging
import threading

import pytest

from storymode.observability.run_log import get_run_log
from storymode.tables.consumption_store import (
    ConsumedEntry,
    InMemoryConsumptionStore,
    JsonFileConsumptionStore,
    consumption_key,
)


def _entries(table):
    return [row.description.render() for row in table.rows]


class TestConsumptionKey:
    def test_key_lowercases_table_name(self, relic_table):
        assert consumption_key("Relics", "story-1") == "relics_story-1"
        assert consumption_key(relic_table, "s") == "relics_s"


class TestInMemoryStore:
    """Filtering, exhaustion and resets."""

    def test_fresh_table_is_returned_unchanged(self, memory_store, relic_table):
        assert memory_store.available(relic_table, "story-1") is relic_table

    def test_consumed_entries_filtered(self, memory_store, relic_table):
        memory_store.mark_consumed(relic_table, "story-1", "orb")
        available = memory_store.available(relic_table, "story-1")
        assert _entries(available) == ["crown", "sceptre"]
        assert len(relic_table.rows) == 3

    def test_stories_are_independent(self, memory_store, relic_table):
        memory_store.mark_consumed(relic_table, "story-1", "orb")
        assert memory_store.available(relic_table, "story-2") is relic_table

    def test_exhaustion_returns_full_table_and_clears(self, memory_store, relic_table):
        for entry in ("crown", "orb", "sceptre"):
            memory_store.mark_consumed(relic_table, "story-1", entry)

        available = memory_store.available(relic_table, "story-1")
        assert _entries(available) == ["crown", "orb", "sceptre"]
        assert memory_store.consumed_items(relic_table, "story-1") == []

    def test_mark_consumed_ignores_duplicates(self, memory_store, relic_table):
        memory_store.mark_consumed(relic_table, "story-1", "orb")
        memory_store.mark_consumed(relic_table, "story-1", "orb")
        assert memory_store.consumed_items(relic_table, "story-1") == ["orb"]

    def test_name_lookup_is_case_insensitive(self, memory_store, relic_table):
        memory_store.mark_consumed("RELICS", "story-1", "orb")
        assert memory_store.consumed_items(relic_table, "story-1") == ["orb"]

    def test_reset_one_story(self, memory_store, relic_table):
        memory_store.mark_consumed(relic_table, "story-1", "orb")
        memory_store.mark_consumed(relic_table, "story-2", "orb")
        memory_store.reset(relic_table, "story-1")
        assert memory_store.consumed_items(relic_table, "story-1") == []
        assert memory_store.consumed_items(relic_table, "story-2") == ["orb"]

    def test_reset_every_story(self, memory_store, relic_table):
        memory_store.mark_consumed(relic_table, "story-1", "orb")
        memory_store.mark_consumed(relic_table, "story-2", "crown")
        memory_store.reset("relics")
        assert memory_store.to_dict() == {}

    def test_reset_story_leaves_other_stories(self, memory_store, relic_table):
        memory_store.mark_consumed(relic_table, "story-1", "orb")
        memory_store.mark_consumed("secrets", "story-1", "a forged letter")
        memory_store.mark_consumed(relic_table, "story-2", "crown")
        memory_store.reset_story("story-1")
        assert list(memory_store.to_dict()) == ["relics_story-2"]

    def test_events_logged(self, memory_store, relic_table):
        memory_store.mark_consumed(relic_table, "story-1", "orb")
        memory_store.reset(relic_table, "story-1")
        actions = [e.action for e in get_run_log().get_consumption_events()]
        assert actions == ["consumed", "reset"]

    def test_exhaustion_logged(self, memory_store, relic_table):
        for entry in ("crown", "orb", "sceptre"):
            memory_store.mark_consumed(relic_table, "story-1", entry)
        memory_store.available(relic_table, "story-1")
        assert get_run_log().get_consumption_events()[-1].action == "exhausted"

    def test_story_lock_is_reentrant(self, memory_store, relic_table):
        with memory_store.story_lock("story-1"):
            with memory_store.story_lock("story-1"):
                memory_store.mark_consumed(relic_table, "story-1", "orb")
        assert memory_store.consumed_items(relic_table, "story-1") == ["orb"]

    def test_concurrent_marks_are_all_kept(self, memory_store):
        entries = [f"entry-{i}" for i in range(50)]

        def worker(chunk):
            for entry in chunk:
                memory_store.mark_consumed("pool", "story-1", entry)

        threads = [threading.Thread(target=worker, args=(entries[i::5],)) for i in range(5)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sorted(memory_store.consumed_items("pool", "story-1")) == sorted(entries)

    def test_resets_while_other_stories_draw(self, memory_store):
        """Whole-store resets interleaved with marks on other stories."""
        errors = []
        stories = [f"writer-{n}" for n in range(4)]

        def writer(story_id):
            try:
                for i in range(300):
                    memory_store.mark_consumed(f"ledger-{i % 7}", story_id, f"entry-{i}")
            except RuntimeError as e:
                errors.append(e)

        def resetter():
            try:
                for i in range(300):
                    memory_store.mark_consumed("pool", "victim", f"entry-{i}")
                    memory_store.reset_story("victim")
                    memory_store.reset("pool")
                    memory_store.to_dict()
            except RuntimeError as e:
                errors.append(e)

        threads = [threading.Thread(target=writer, args=(s,)) for s in stories]
        threads += [threading.Thread(target=resetter) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        for story_id in stories:
            kept = [
                item
                for n in range(7)
                for item in memory_store.consumed_items(f"ledger-{n}", story_id)
            ]
            assert sorted(kept) == sorted(f"entry-{i}" for i in range(300))
        assert memory_store.consumed_items("pool", "victim") == []


class TestConsumedEntry:
    def test_external_shape(self):
        entry = ConsumedEntry(table_id="relics", story_id="s", consumed_items=["orb"])
        assert entry.to_dict() == {"tableId": "relics", "storyId": "s", "consumedItems": ["orb"]}
        assert ConsumedEntry.from_dict(entry.to_dict()) == entry

    def test_items_must_be_a_list(self):
        with pytest.raises(ValueError):
            ConsumedEntry.from_dict({"tableId": "t", "storyId": "s", "consumedItems": "orb"})


class TestJsonFileStore:
    """Persistence of consumption state to a JSON file."""

    def test_state_survives_reload(self, tmp_path, relic_table):
        path = tmp_path / "consumed-tables.json"
        store = JsonFileConsumptionStore(path)
        store.mark_consumed(relic_table, "story-1", "orb")

        reloaded = JsonFileConsumptionStore(path)
        assert reloaded.consumed_items(relic_table, "story-1") == ["orb"]
        assert _entries(reloaded.available(relic_table, "story-1")) == ["crown", "sceptre"]

    def test_file_shape(self, tmp_path, relic_table):
        path = tmp_path / "consumed-tables.json"
        JsonFileConsumptionStore(path).mark_consumed(relic_table, "story-1", "orb")
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data == {
            "relics_story-1": {"tableId": "relics", "storyId": "story-1", "consumedItems": ["orb"]}
        }

    def test_missing_file_is_empty(self, tmp_path):
        store = JsonFileConsumptionStore(tmp_path / "nested" / "state.json")
        assert store.to_dict() == {}
        assert not store.recovered_from_corruption

    @pytest.mark.parametrize("content", [
        "{not json",
        "[1, 2, 3]",
        '{"relics_s": {"tableId": "relics"}}',
    ])
    def test_corrupted_file_treated_as_empty(self, tmp_path, relic_table, caplog, content):
        path = tmp_path / "state.json"
        path.write_text(content, encoding="utf-8")

        with caplog.at_level(logging.ERROR):
            store = JsonFileConsumptionStore(path)

        assert store.recovered_from_corruption
        assert store.to_dict() == {}
        assert "Corrupted consumption state" in caplog.text
        assert store.available(relic_table, "s") is relic_table

    def test_corrupted_file_overwritten_on_next_change(self, tmp_path, relic_table):
        path = tmp_path / "state.json"
        path.write_text("{not json", encoding="utf-8")
        store = JsonFileConsumptionStore(path)
        store.mark_consumed(relic_table, "s", "orb")
        assert json.loads(path.read_text(encoding="utf-8"))["relics_s"]["consumedItems"] == ["orb"]
