import threading
from typing import Optional

import pytest

from intent_engine.config import Settings
from intent_engine.domain.interfaces.repository_interface import ModelStoreInterface
from intent_engine.domain.schemas.model_record import ModelRecord
from intent_engine.domain.services.classifier_service import ClassifierService
from intent_engine.infrastructure.ai.intent.intent_classifier import LinearIntentClassifier
from intent_engine.infrastructure.ai.intent.text_processor import TextProcessor
from intent_engine.infrastructure.repositories.memory import (
    InMemoryEventLog,
    InMemoryModelStore,
    InMemoryTrainingDataRepository,
)

NUTRITION_INTENTS = {
    "protein_question": [
        "how much protein do I need",
        "best protein sources",
        "protein for muscle growth",
        "daily protein intake",
        "is protein powder safe",
        "protein rich breakfast",
        "protein after workout",
        "vegan protein options",
        "protein in eggs",
        "high protein snacks",
    ],
    "bmi_calculation": [
        "calculate my bmi",
        "what is bmi",
        "bmi for my height",
        "is my bmi normal",
        "bmi chart please",
        "bmi calculator",
        "explain bmi score",
        "bmi and weight",
        "check bmi now",
        "bmi range table",
    ],
    "recipe_request": [
        "give me a recipe",
        "healthy recipe ideas",
        "recipe for dinner",
        "quick recipe please",
        "easy recipe today",
        "recipe with chicken",
        "vegetarian recipe",
        "recipe for lunch",
        "simple recipe",
        "low carb recipe",
    ],
}

GREETING_INTENTS = {
    "greeting": ["hi", "hello there"],
    "protein_question": ["how much protein do I need", "best protein sources"],
}


class BlockingRepository(InMemoryTrainingDataRepository):
    """Blocks the first `get_active_intents` call until released."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.entered = threading.Event()
        self.release = threading.Event()

    def get_active_intents(self):
        self.entered.set()
        self.release.wait(timeout=10)
        return super().get_active_intents()


class FailingModelStore(ModelStoreInterface):
    def save(self, record: ModelRecord) -> None:
        raise OSError("disk full")

    def load_latest(self) -> Optional[ModelRecord]:
        return None


def make_classifier(repository, model_store=None, seed=7) -> LinearIntentClassifier:
    return LinearIntentClassifier(
        repository=repository,
        model_store=model_store,
        text_processor=TextProcessor(max_vocab_size=10000, min_word_freq=2),
        learning_rate=0.01,
        weight_init_range=0.1,
        random_seed=seed,
    )


@pytest.fixture
def settings():
    return Settings(
        MIN_TRAINING_EXAMPLES=5,
        DEFAULT_EPOCHS=200,
        RETRAIN_EPOCHS=50,
        RETRAIN_THRESHOLD=2,
        RANDOM_SEED=7,
        STORAGE_BACKEND="memory",
        MODEL_STORE_BACKEND="memory",
    )


@pytest.fixture
def repository():
    return InMemoryTrainingDataRepository.from_dict(NUTRITION_INTENTS)


@pytest.fixture
def model_store():
    return InMemoryModelStore()


@pytest.fixture
def event_log():
    return InMemoryEventLog()


@pytest.fixture
def classifier(repository, model_store):
    return make_classifier(repository, model_store)


@pytest.fixture
def trained_classifier(classifier):
    classifier.train_model(epochs=200)
    return classifier


@pytest.fixture
def service(classifier, repository, event_log, settings):
    return ClassifierService(classifier, repository, event_log, settings)
