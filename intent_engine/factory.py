from typing import Optional, Tuple

from intent_engine.config import Settings, get_settings
from intent_engine.domain.interfaces.repository_interface import (
    EventLogInterface,
    ModelStoreInterface,
    TrainingDataRepositoryInterface,
)
from intent_engine.domain.services.classifier_service import ClassifierService
from intent_engine.infrastructure.ai.intent.intent_classifier import LinearIntentClassifier
from intent_engine.infrastructure.ai.intent.text_processor import TextProcessor
from intent_engine.infrastructure.database.mongodb.client import MongoDBClient
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
from intent_engine.utils.exceptions import ValidationException
from intent_engine.utils.logger import get_logger

logger = get_logger(__name__)


def create_mongo_client(settings: Settings) -> MongoDBClient:
    if not settings.MONGODB_URI:
        raise ValidationException("MONGODB_URI is required for the mongodb backend", field="MONGODB_URI")
    return MongoDBClient(connection_uri=settings.MONGODB_URI, database_name=settings.MONGODB_DATABASE)


def create_storage(
    settings: Settings,
    db_client: Optional[MongoDBClient] = None
) -> Tuple[TrainingDataRepositoryInterface, EventLogInterface, ModelStoreInterface]:
    """
    Build the training-data repository, event log and model store named by
    the settings.

    Args:
        settings: Engine settings
        db_client: MongoDB client to reuse; created from settings when needed

    Raises:
        ValidationException: If a MongoDB backend is selected without a URI
    """
    uses_mongo = settings.STORAGE_BACKEND == "mongodb" or settings.MODEL_STORE_BACKEND == "mongodb"
    if uses_mongo and db_client is None:
        db_client = create_mongo_client(settings)

    repository: TrainingDataRepositoryInterface
    event_log: EventLogInterface
    if settings.STORAGE_BACKEND == "mongodb":
        repository = MongoTrainingDataRepository(db_client)
        event_log = MongoEventLog(db_client)
    else:
        repository = InMemoryTrainingDataRepository()
        event_log = InMemoryEventLog()

    model_store: ModelStoreInterface
    if settings.MODEL_STORE_BACKEND == "file":
        model_store = FileModelStore(settings.MODEL_STORE_PATH)
    elif settings.MODEL_STORE_BACKEND == "mongodb":
        model_store = MongoModelStore(db_client)
    else:
        model_store = InMemoryModelStore()

    logger.info(
        "Created intent engine storage",
        extra={"storage_backend": settings.STORAGE_BACKEND, "model_store_backend": settings.MODEL_STORE_BACKEND}
    )
    return repository, event_log, model_store


def create_classifier_service(
    settings: Optional[Settings] = None,
    repository: Optional[TrainingDataRepositoryInterface] = None,
    event_log: Optional[EventLogInterface] = None,
    model_store: Optional[ModelStoreInterface] = None,
) -> ClassifierService:
    """
    Assemble a ClassifierService. Explicit collaborators override the ones
    the settings would select.
    """
    settings = settings or get_settings()
    if repository is None or event_log is None or model_store is None:
        default_repository, default_event_log, default_model_store = create_storage(settings)
        repository = default_repository if repository is None else repository
        event_log = default_event_log if event_log is None else event_log
        model_store = default_model_store if model_store is None else model_store

    classifier = LinearIntentClassifier(
        repository=repository,
        model_store=model_store,
        text_processor=TextProcessor(
            max_vocab_size=settings.MAX_VOCAB_SIZE,
            min_word_freq=settings.MIN_WORD_FREQ,
        ),
        learning_rate=settings.LEARNING_RATE,
        weight_init_range=settings.WEIGHT_INIT_RANGE,
        loss_epsilon=settings.LOSS_EPSILON,
        random_seed=settings.RANDOM_SEED,
        log_every=settings.EPOCH_LOG_INTERVAL,
    )
    return ClassifierService(classifier, repository, event_log, settings)
