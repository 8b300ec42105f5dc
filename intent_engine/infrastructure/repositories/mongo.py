from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pymongo import ASCENDING, DESCENDING
from pymongo.errors import PyMongoError

from intent_engine.domain.interfaces.repository_interface import (
    EventLogInterface,
    ModelStoreInterface,
    TrainingDataRepositoryInterface,
)
from intent_engine.domain.models.intent import Intent, TrainingExample
from intent_engine.domain.models.training import AnalyticsEvent
from intent_engine.domain.schemas.model_record import ModelRecord
from intent_engine.infrastructure.database.mongodb.client import MongoDBClient
from intent_engine.utils.exceptions import (
    ModelPersistenceError,
    NotFoundException,
    RepositoryError,
)
from intent_engine.utils.logger import get_logger

logger = get_logger(__name__)


class MongoTrainingDataRepository(TrainingDataRepositoryInterface):
    """
    Training intents and examples stored in MongoDB.

    Intents live in `training_intents` and examples in `training_examples`,
    linked by `intent_id`.
    """

    def __init__(
        self,
        db_client: MongoDBClient,
        intents_collection: str = "training_intents",
        examples_collection: str = "training_examples",
        ensure_indexes: bool = True
    ):
        self.db_client = db_client
        self.intents_collection = intents_collection
        self.examples_collection = examples_collection
        if ensure_indexes:
            self._ensure_indexes()
        logger.info("Initialized MongoTrainingDataRepository")

    def _ensure_indexes(self) -> None:
        try:
            self.db_client.create_indexes(self.intents_collection, [
                {"key": {"intent_id": 1}, "name": "intent_id_unique", "unique": True},
                {"key": {"is_active": 1, "created_at": 1}, "name": "active_intents"},
            ])
            self.db_client.create_indexes(self.examples_collection, [
                {"key": {"example_id": 1}, "name": "example_id_unique", "unique": True},
                {"key": {"intent_id": 1, "is_active": 1, "created_at": 1}, "name": "intent_examples"},
            ])
        except RepositoryError as e:
            logger.warning(f"Failed to create indexes for training data: {str(e)}")

    @staticmethod
    def _map_example(document: Dict[str, Any]) -> TrainingExample:
        return TrainingExample(
            id=document["example_id"],
            intent_id=document["intent_id"],
            text=document["text"],
            keywords=list(document.get("keywords", [])),
            confidence=float(document.get("confidence", 1.0)),
            is_active=bool(document.get("is_active", True)),
            created_at=document.get("created_at") or datetime.now(timezone.utc),
        )

    @staticmethod
    def _map_intent(document: Dict[str, Any], examples: Optional[List[TrainingExample]] = None) -> Intent:
        return Intent(
            id=document["intent_id"],
            name=document["name"],
            description=document.get("description"),
            category=document.get("category"),
            priority=int(document.get("priority", 0)),
            is_active=bool(document.get("is_active", True)),
            examples=examples or [],
            responses=list(document.get("responses", [])),
        )

    def _active_intent_ids(self) -> List[str]:
        collection = self.db_client.get_collection(self.intents_collection)
        cursor = collection.find({"is_active": True}, {"intent_id": 1}).sort(
            [("created_at", ASCENDING), ("intent_id", ASCENDING)]
        )
        return [document["intent_id"] for document in cursor]

    def get_active_intents(self) -> List[Intent]:
        try:
            intents_collection = self.db_client.get_collection(self.intents_collection)
            intent_documents = list(
                intents_collection.find({"is_active": True}).sort(
                    [("created_at", ASCENDING), ("intent_id", ASCENDING)]
                )
            )
            intent_ids = [document["intent_id"] for document in intent_documents]

            grouped: Dict[str, List[TrainingExample]] = {intent_id: [] for intent_id in intent_ids}
            examples_collection = self.db_client.get_collection(self.examples_collection)
            cursor = examples_collection.find(
                {"intent_id": {"$in": intent_ids}, "is_active": True}
            ).sort([("created_at", ASCENDING), ("example_id", ASCENDING)])
            for document in cursor:
                grouped[document["intent_id"]].append(self._map_example(document))

            logger.debug(f"Loaded {len(intent_ids)} active intents")
            return [self._map_intent(document, grouped[document["intent_id"]]) for document in intent_documents]
        except PyMongoError as e:
            logger.error(f"Failed to load active intents: {str(e)}")
            raise RepositoryError(f"Failed to load active intents: {str(e)}")

    def get_intent(self, intent_id: str) -> Optional[Intent]:
        try:
            collection = self.db_client.get_collection(self.intents_collection)
            document = collection.find_one({"intent_id": intent_id})
        except PyMongoError as e:
            logger.error(f"Failed to retrieve intent {intent_id}: {str(e)}")
            raise RepositoryError(f"Failed to retrieve intent: {str(e)}")
        return self._map_intent(document) if document else None

    def add_intent(self, intent: Intent) -> Intent:
        try:
            collection = self.db_client.get_collection(self.intents_collection)
            collection.insert_one({
                "intent_id": intent.id,
                "name": intent.name,
                "description": intent.description,
                "category": intent.category,
                "priority": intent.priority,
                "is_active": intent.is_active,
                "responses": list(intent.responses),
                "created_at": datetime.now(timezone.utc),
            })
        except PyMongoError as e:
            logger.error(f"Failed to create intent {intent.id}: {str(e)}")
            raise RepositoryError(f"Failed to create intent: {str(e)}")
        for example in intent.examples:
            self.add_example(example)
        return intent

    def add_example(self, example: TrainingExample) -> TrainingExample:
        if self.get_intent(example.intent_id) is None:
            raise NotFoundException("Intent", example.intent_id)
        try:
            collection = self.db_client.get_collection(self.examples_collection)
            result = collection.insert_one({
                "example_id": example.id,
                "intent_id": example.intent_id,
                "text": example.text,
                "keywords": list(example.keywords),
                "confidence": example.confidence,
                "is_active": example.is_active,
                "created_at": example.created_at,
            })
            if not result.acknowledged:
                raise RepositoryError("Failed to create example: operation not acknowledged")
        except PyMongoError as e:
            logger.error(f"Failed to create training example: {str(e)}")
            raise RepositoryError(f"Failed to create training example: {str(e)}")

        logger.info(f"Added training example for intent {example.intent_id}", extra={"example_id": example.id})
        return example

    def count_active_examples(self, created_after: Optional[datetime] = None) -> int:
        try:
            query: Dict[str, Any] = {"intent_id": {"$in": self._active_intent_ids()}, "is_active": True}
            if created_after is not None:
                query["created_at"] = {"$gt": created_after}
            return self.db_client.get_collection(self.examples_collection).count_documents(query)
        except PyMongoError as e:
            logger.error(f"Failed to count training examples: {str(e)}")
            raise RepositoryError(f"Failed to count training examples: {str(e)}")

    def count_active_intents(self) -> int:
        try:
            return self.db_client.get_collection(self.intents_collection).count_documents({"is_active": True})
        except PyMongoError as e:
            logger.error(f"Failed to count intents: {str(e)}")
            raise RepositoryError(f"Failed to count intents: {str(e)}")


class MongoEventLog(EventLogInterface):
    """Analytics events in the `neural_network_logs` collection."""

    def __init__(self, db_client: MongoDBClient, collection_name: str = "neural_network_logs"):
        self.db_client = db_client
        self.collection_name = collection_name

    @staticmethod
    def _map_event(document: Dict[str, Any]) -> AnalyticsEvent:
        return AnalyticsEvent(
            event_type=document["event_type"],
            metadata=dict(document.get("metadata") or {}),
            created_at=document["created_at"],
        )

    def log_event(self, event_type: str, metadata: Dict[str, Any]) -> AnalyticsEvent:
        event = AnalyticsEvent(event_type=event_type, metadata=dict(metadata))
        try:
            self.db_client.get_collection(self.collection_name).insert_one({
                "event_type": event.event_type,
                "metadata": event.metadata,
                "created_at": event.created_at,
            })
        except PyMongoError as e:
            raise RepositoryError(f"Failed to log {event_type} event: {str(e)}")
        return event

    def get_latest(self, event_type: str) -> Optional[AnalyticsEvent]:
        try:
            document = self.db_client.get_collection(self.collection_name).find_one(
                {"event_type": event_type}, sort=[("created_at", DESCENDING)]
            )
        except PyMongoError as e:
            raise RepositoryError(f"Failed to read {event_type} events: {str(e)}")
        return self._map_event(document) if document else None

    def list_events(self, event_type: str, limit: int = 1000) -> List[AnalyticsEvent]:
        try:
            cursor = self.db_client.get_collection(self.collection_name).find(
                {"event_type": event_type}
            ).sort("created_at", DESCENDING).limit(limit)
            return [self._map_event(document) for document in cursor]
        except PyMongoError as e:
            raise RepositoryError(f"Failed to list {event_type} events: {str(e)}")


class MongoModelStore(ModelStoreInterface):
    """
    Model records in the `model_records` collection.

    Each save inserts one complete document, so a reader never observes a
    partially written model.
    """

    def __init__(self, db_client: MongoDBClient, collection_name: str = "model_records"):
        self.db_client = db_client
        self.collection_name = collection_name

    def save(self, record: ModelRecord) -> None:
        try:
            document = record.model_dump(mode="json")
            document["created_at"] = record.created_at
            self.db_client.get_collection(self.collection_name).insert_one(document)
        except PyMongoError as e:
            logger.error(f"Failed to save model record: {str(e)}")
            raise ModelPersistenceError(f"Failed to save model record: {str(e)}")
        logger.info("Saved model record", extra={"vocabulary_version": record.vocabulary_version})

    def load_latest(self) -> Optional[ModelRecord]:
        try:
            document = self.db_client.get_collection(self.collection_name).find_one(
                {}, sort=[("created_at", DESCENDING)]
            )
        except PyMongoError as e:
            logger.error(f"Failed to load model record: {str(e)}")
            raise ModelPersistenceError(f"Failed to load model record: {str(e)}")
        if not document:
            return None
        document.pop("_id", None)
        return ModelRecord.model_validate(document)
