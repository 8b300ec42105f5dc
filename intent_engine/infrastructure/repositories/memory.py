"""
In-process implementations of the engine's storage interfaces.

Used by tests and by hosts that keep their intents in memory; every
operation is guarded by a lock so a training thread and request threads can
share one instance.
"""

from copy import deepcopy
from datetime import datetime
import threading
from typing import Any, Dict, Iterable, List, Optional

from intent_engine.domain.interfaces.repository_interface import (
    EventLogInterface,
    ModelStoreInterface,
    TrainingDataRepositoryInterface,
)
from intent_engine.domain.models.intent import Intent, TrainingExample
from intent_engine.domain.models.training import AnalyticsEvent
from intent_engine.domain.schemas.model_record import ModelRecord
from intent_engine.utils.exceptions import NotFoundException
from intent_engine.utils.logger import get_logger

logger = get_logger(__name__)


class InMemoryTrainingDataRepository(TrainingDataRepositoryInterface):
    """Intents and examples held in insertion order."""

    def __init__(self, intents: Optional[Iterable[Intent]] = None):
        self._lock = threading.RLock()
        self._intents: Dict[str, Intent] = {}
        for intent in intents or []:
            self.add_intent(intent)

    @classmethod
    def from_dict(cls, data: Dict[str, List[str]]) -> "InMemoryTrainingDataRepository":
        """Build a repository from {intent name: [example texts]}; names double as IDs."""
        return cls(
            Intent(
                id=name,
                name=name,
                examples=[TrainingExample(intent_id=name, text=text) for text in texts],
            )
            for name, texts in data.items()
        )

    def add_intent(self, intent: Intent) -> Intent:
        with self._lock:
            self._intents[intent.id] = intent
        return intent

    def get_active_intents(self) -> List[Intent]:
        with self._lock:
            return [
                Intent(
                    id=intent.id,
                    name=intent.name,
                    description=intent.description,
                    category=intent.category,
                    priority=intent.priority,
                    is_active=intent.is_active,
                    examples=intent.active_examples,
                    responses=list(intent.responses),
                )
                for intent in self._intents.values() if intent.is_active
            ]

    def get_intent(self, intent_id: str) -> Optional[Intent]:
        with self._lock:
            return self._intents.get(intent_id)

    def add_example(self, example: TrainingExample) -> TrainingExample:
        with self._lock:
            intent = self._intents.get(example.intent_id)
            if intent is None:
                raise NotFoundException("Intent", example.intent_id)
            intent.examples.append(example)
        logger.debug(f"Added training example for intent {example.intent_id}")
        return example

    def count_active_examples(self, created_after: Optional[datetime] = None) -> int:
        with self._lock:
            return sum(
                1
                for intent in self._intents.values() if intent.is_active
                for example in intent.active_examples
                if created_after is None or example.created_at > created_after
            )

    def count_active_intents(self) -> int:
        with self._lock:
            return sum(1 for intent in self._intents.values() if intent.is_active)


class InMemoryModelStore(ModelStoreInterface):
    """Keeps every saved record; `load_latest` returns the last one."""

    def __init__(self):
        self._lock = threading.Lock()
        self._records: List[ModelRecord] = []

    def save(self, record: ModelRecord) -> None:
        with self._lock:
            self._records.append(record.model_copy(deep=True))

    def load_latest(self) -> Optional[ModelRecord]:
        with self._lock:
            if not self._records:
                return None
            return self._records[-1].model_copy(deep=True)

    def __len__(self) -> int:
        return len(self._records)


class InMemoryEventLog(EventLogInterface):
    """Append-only list of analytics events."""

    def __init__(self):
        self._lock = threading.Lock()
        self._events: List[AnalyticsEvent] = []

    def log_event(self, event_type: str, metadata: Dict[str, Any]) -> AnalyticsEvent:
        event = AnalyticsEvent(event_type=event_type, metadata=deepcopy(metadata))
        with self._lock:
            self._events.append(event)
        return event

    def get_latest(self, event_type: str) -> Optional[AnalyticsEvent]:
        with self._lock:
            for event in reversed(self._events):
                if event.event_type == event_type:
                    return event
        return None

    def list_events(self, event_type: str, limit: int = 1000) -> List[AnalyticsEvent]:
        with self._lock:
            matching = [event for event in reversed(self._events) if event.event_type == event_type]
        return matching[:limit]
