from persistence.file_store import FileContextStore
from persistence.memory_store import InMemoryContextStore
from persistence.records import SessionRecord, context_from_payload, context_to_payload
from persistence.sql_store import SqlContextStore, create_store_engine

__all__ = [
    "FileContextStore",
    "InMemoryContextStore",
    "SessionRecord",
    "SqlContextStore",
    "context_from_payload",
    "context_to_payload",
    "create_store_engine",
]
