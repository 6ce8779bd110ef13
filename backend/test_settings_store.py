import json

from pymongo.errors import ServerSelectionTimeoutError

import settings_store
from settings_store import (
    InMemorySettingsStore,
    JsonFileSettingsStore,
    MongoSettingsStore,
    connect_mongo_settings,
)


class TestInMemorySettingsStore:
    def test_defaults_when_missing(self):
        store = InMemorySettingsStore()
        assert store.get_int("a", 7) == 7
        assert store.get_str("b", "x") == "x"
        assert store.get_bool("c", True) is True

    def test_wrong_types_fall_back_to_default(self):
        store = InMemorySettingsStore({"a": "seven", "b": 3, "c": "yes"})
        assert store.get_int("a", 7) == 7
        assert store.get_str("b", "x") == "x"
        assert store.get_bool("c", False) is False

    def test_put(self):
        store = InMemorySettingsStore()
        store.put("custom_weight_surface", 12)
        assert store.get_int("custom_weight_surface", 0) == 12


class TestJsonFileSettingsStore:
    def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "settings" / "grvl.json"
        JsonFileSettingsStore(path).put("selected_bike_type", "RACE_ROAD")
        assert json.loads(path.read_text())["selected_bike_type"] == "RACE_ROAD"
        assert JsonFileSettingsStore(path).get_str("selected_bike_type", "") == "RACE_ROAD"

    def test_unreadable_file_ignored(self, tmp_path):
        path = tmp_path / "grvl.json"
        path.write_text("{not json")
        store = JsonFileSettingsStore(path)
        assert store.data == {}
        store.put("elevation_data_enabled", True)
        assert json.loads(path.read_text()) == {"elevation_data_enabled": True}

    def test_non_object_json_ignored(self, tmp_path):
        path = tmp_path / "grvl.json"
        path.write_text("[1, 2]")
        assert JsonFileSettingsStore(path).data == {}


class FakeCollection:
    def __init__(self, documents=None):
        self.documents = {d["_id"]: dict(d) for d in documents or []}

    def find_one(self, query):
        return self.documents.get(query["_id"])

    def update_one(self, query, update, upsert=False):
        document = self.documents.setdefault(query["_id"], {"_id": query["_id"]})
        document.update(update["$set"])


class TestMongoSettingsStore:
    def test_loads_existing_document(self):
        collection = FakeCollection([{"_id": "gravelfinder_settings", "selected_bike_type": "RACE_ROAD"}])
        store = MongoSettingsStore(collection)
        assert store.get_str("selected_bike_type", "") == "RACE_ROAD"
        assert "_id" not in store.data

    def test_put_writes_through(self):
        collection = FakeCollection()
        MongoSettingsStore(collection).put("custom_weight_slope", 4)
        assert collection.documents["gravelfinder_settings"]["custom_weight_slope"] == 4
        assert MongoSettingsStore(collection).get_int("custom_weight_slope", 0) == 4

    def test_unreachable_server_returns_none(self, monkeypatch):
        class DownAdmin:
            def command(self, name):
                raise ServerSelectionTimeoutError("no servers available")

        class DownClient:
            def __init__(self, url, **kwargs):
                self.admin = DownAdmin()

        monkeypatch.setattr(settings_store, "MongoClient", DownClient)
        assert connect_mongo_settings("mongodb://localhost:27017", "gravelfinder") is None
