"""
Intent classification engine for the nutrition support chatbot.

Turns a user utterance into ranked intent predictions using a single-layer
softmax network trained from first principles, and manages the model's
training, persistence and retraining lifecycle.
"""

from intent_engine.config import Settings, get_settings, load_env_file
from intent_engine.domain.services.classifier_service import ClassifierService
from intent_engine.factory import create_classifier_service
from intent_engine.infrastructure.ai.intent.intent_classifier import LinearIntentClassifier
from intent_engine.infrastructure.ai.intent.text_processor import TextProcessor
from intent_engine.utils.logger import configure_logging

__all__ = [
    # Configuration
    "Settings",
    "get_settings",
    "load_env_file",
    "configure_logging",

    # Engine
    "ClassifierService",
    "LinearIntentClassifier",
    "TextProcessor",
    "create_classifier_service",
]
