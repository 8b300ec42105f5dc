"""
Storage interfaces the engine depends on.

Implementations live in intent_engine.infrastructure.repositories.
"""

from intent_engine.domain.interfaces.repository_interface import (
    EventLogInterface,
    ModelStoreInterface,
    TrainingDataRepositoryInterface,
)

__all__ = [
    "EventLogInterface",
    "ModelStoreInterface",
    "TrainingDataRepositoryInterface",
]
