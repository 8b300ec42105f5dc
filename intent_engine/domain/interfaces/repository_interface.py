from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

from ..models.intent import Intent, TrainingExample
from ..models.training import AnalyticsEvent
from ..schemas.model_record import ModelRecord


class TrainingDataRepositoryInterface(ABC):
    """
    Source of labeled training data.
    Following the Repository pattern to abstract data access.
    """

    @abstractmethod
    def get_active_intents(self) -> List[Intent]:
        """
        Retrieves all active intents with their active examples.

        Returns:
            Active intents in a stable order; the order defines output indices

        Raises:
            RepositoryError: If data access fails
        """
        pass

    @abstractmethod
    def get_intent(self, intent_id: str) -> Optional[Intent]:
        """
        Retrieves an intent by its ID.

        Args:
            intent_id: The ID of the intent to retrieve

        Returns:
            The intent if found, None otherwise

        Raises:
            RepositoryError: If data access fails
        """
        pass

    @abstractmethod
    def add_example(self, example: TrainingExample) -> TrainingExample:
        """
        Appends a training example.

        Args:
            example: The example to store

        Returns:
            The stored example

        Raises:
            NotFoundException: If the example's intent does not exist
            RepositoryError: If the write fails
        """
        pass

    @abstractmethod
    def count_active_examples(self, created_after: Optional[datetime] = None) -> int:
        """
        Counts active examples belonging to active intents.

        Args:
            created_after: Only count examples created strictly after this time

        Returns:
            Number of matching examples

        Raises:
            RepositoryError: If counting fails
        """
        pass

    @abstractmethod
    def count_active_intents(self) -> int:
        """
        Counts active intents.

        Raises:
            RepositoryError: If counting fails
        """
        pass


class ModelStoreInterface(ABC):
    """Persistence for trained model records."""

    @abstractmethod
    def save(self, record: ModelRecord) -> None:
        """
        Writes one model record.

        Raises:
            ModelPersistenceError: If the write fails
        """
        pass

    @abstractmethod
    def load_latest(self) -> Optional[ModelRecord]:
        """
        Reads the most recently written model record.

        Returns:
            The record, or None if nothing has been saved yet

        Raises:
            ModelPersistenceError: If the store cannot be read
        """
        pass


class EventLogInterface(ABC):
    """Sink for training and prediction analytics events."""

    @abstractmethod
    def log_event(self, event_type: str, metadata: Dict[str, Any]) -> AnalyticsEvent:
        """
        Records an event.

        Raises:
            RepositoryError: If the write fails
        """
        pass

    @abstractmethod
    def get_latest(self, event_type: str) -> Optional[AnalyticsEvent]:
        """
        Returns the most recent event of a type, or None.

        Raises:
            RepositoryError: If data access fails
        """
        pass

    @abstractmethod
    def list_events(self, event_type: str, limit: int = 1000) -> List[AnalyticsEvent]:
        """
        Lists events of a type, newest first.

        Raises:
            RepositoryError: If data access fails
        """
        pass
