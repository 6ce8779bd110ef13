"""
Persistent key-value settings used by the bike profile manager.

Stores custom weights, the selected bike type and the elevation toggle.
Backed by memory, a JSON file or a MongoDB document.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Protocol

from pymongo import MongoClient
from pymongo.errors import PyMongoError

logger = logging.getLogger(__name__)


class SettingsStore(Protocol):
    def get_int(self, key: str, default: int) -> int:
        ...

    def get_str(self, key: str, default: str) -> str:
        ...

    def get_bool(self, key: str, default: bool) -> bool:
        ...

    def put(self, key: str, value: Any) -> None:
        ...


class InMemorySettingsStore(SettingsStore):
    def __init__(self, initial: Optional[Dict[str, Any]] = None) -> None:
        self.data: Dict[str, Any] = dict(initial or {})

    def get_int(self, key: str, default: int) -> int:
        value = self.data.get(key, default)
        try:
            return int(value)
        except (TypeError, ValueError):
            return default

    def get_str(self, key: str, default: str) -> str:
        value = self.data.get(key, default)
        return value if isinstance(value, str) else default

    def get_bool(self, key: str, default: bool) -> bool:
        value = self.data.get(key, default)
        return value if isinstance(value, bool) else default

    def put(self, key: str, value: Any) -> None:
        self.data[key] = value


class JsonFileSettingsStore(InMemorySettingsStore):
    """Settings persisted to a JSON file, rewritten on every ``put``."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        initial: Dict[str, Any] = {}
        if self.path.exists():
            try:
                with self.path.open("r", encoding="utf-8") as f:
                    initial = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                logger.warning(f"Ignoring unreadable settings file {self.path}: {e}")
                initial = {}
        super().__init__(initial if isinstance(initial, dict) else {})

    def put(self, key: str, value: Any) -> None:
        super().put(key, value)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("w", encoding="utf-8") as f:
            json.dump(self.data, f, indent=2, sort_keys=True)


SETTINGS_DOCUMENT_ID = "gravelfinder_settings"


class MongoSettingsStore(InMemorySettingsStore):
    """Settings kept in one MongoDB document, written through on every ``put``."""

    def __init__(self, collection: Any, document_id: str = SETTINGS_DOCUMENT_ID) -> None:
        self.collection = collection
        self.document_id = document_id
        document = collection.find_one({"_id": document_id}) or {}
        super().__init__({k: v for k, v in document.items() if k != "_id"})

    def put(self, key: str, value: Any) -> None:
        super().put(key, value)
        self.collection.update_one(
            {"_id": self.document_id},
            {"$set": {key: value}},
            upsert=True,
        )


def connect_mongo_settings(mongo_url: str, db_name: str) -> Optional[MongoSettingsStore]:
    """Mongo-backed store, or None when the server cannot be reached."""
    try:
        client = MongoClient(mongo_url, serverSelectionTimeoutMS=5000)
        client.admin.command("ping")
        store = MongoSettingsStore(client[db_name].settings)
    except PyMongoError as e:
        logger.warning(f"MongoDB connection failed: {e}. Using local settings.")
        return None
    logger.info("MongoDB settings store connected")
    return store
