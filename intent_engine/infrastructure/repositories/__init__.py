"""
Storage implementations: in-memory, MongoDB, and a joblib file model store.
"""

from intent_engine.infrastructure.repositories.file_model_store import FileModelStore
from intent_engine.infrastructure.repositories.memory import (
    InMemoryEventLog,
    InMemoryModelStore,
    InMemoryTrainingDataRepository,
)
from intent_engine.infrastructure.repositories.mongo import (
    MongoEventLog,
    MongoModelStore,
    MongoTrainingDataRepository,
)

__all__ = [
    "FileModelStore",
    "InMemoryEventLog",
    "InMemoryModelStore",
    "InMemoryTrainingDataRepository",
    "MongoEventLog",
    "MongoModelStore",
    "MongoTrainingDataRepository",
]
