# dealscout/storage/__init__.py
from .kv import FileStore, InMemoryStore, KeyValueStore

__all__ = ["KeyValueStore", "InMemoryStore", "FileStore"]
