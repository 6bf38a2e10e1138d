"""Tests for search history persistence."""

import json

from utils.history_store import InMemoryHistoryStore, JsonFileHistoryStore, parse_history


class TestParseHistory:
    def test_valid_payload(self):
        assert parse_history('["a", "b"]') == ["a", "b"]

    def test_corrupt_payload(self):
        assert parse_history("{not json") == []

    def test_non_list_payload(self):
        assert parse_history('{"a": 1}') == []

    def test_non_string_items_dropped(self):
        assert parse_history('["a", 1, null, "b"]') == ["a", "b"]

    def test_missing(self):
        assert parse_history(None) == []
        assert parse_history("") == []


class TestJsonFileHistoryStore:
    def test_missing_file_is_empty(self, tmp_path):
        store = JsonFileHistoryStore(tmp_path / "history.json")
        assert store.load() == []

    def test_save_then_load(self, tmp_path):
        path = tmp_path / "nested" / "history.json"
        store = JsonFileHistoryStore(path)

        store.save(["CRM trends", "Landlord tools"])

        assert json.loads(path.read_text()) == ["CRM trends", "Landlord tools"]
        assert JsonFileHistoryStore(path).load() == ["CRM trends", "Landlord tools"]

    def test_corrupt_file_is_empty(self, tmp_path):
        path = tmp_path / "history.json"
        path.write_text("garbage")
        assert JsonFileHistoryStore(path).load() == []


class TestInMemoryHistoryStore:
    def test_save_serializes(self):
        store = InMemoryHistoryStore()
        store.save(["q"])
        assert store.raw == '["q"]'
        assert store.load() == ["q"]
