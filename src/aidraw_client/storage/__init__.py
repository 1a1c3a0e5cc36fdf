"""Durable key-value storage backends."""

from aidraw_client.storage.base import KeyValueStore, dump_json, load_int, load_json
from aidraw_client.storage.memory import InMemoryKeyValueStore
from aidraw_client.storage.sqlite import SQLiteKeyValueStore

__all__ = [
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "SQLiteKeyValueStore",
    "dump_json",
    "load_int",
    "load_json",
]
