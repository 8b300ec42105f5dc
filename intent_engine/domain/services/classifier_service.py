"""
Service that owns the classifier's lifecycle.

This is the layer the chatbot and admin tooling talk to. It checks that
there is enough data before training, tracks the training status, persists
models, decides when retraining is due, and records predictions and training
runs for analytics. Failures are reported through return values and the
training status so the host keeps running with the fallback path.
"""

from dataclasses import replace
from datetime import datetime, timezone
import threading
from typing import Any, Dict, List, Optional
import uuid

from intent_engine.config import Settings, get_settings
from intent_engine.domain.interfaces.repository_interface import (
    EventLogInterface,
    TrainingDataRepositoryInterface,
)
from intent_engine.domain.models.intent import EnhancedPrediction, IntentPrediction, TrainingExample
from intent_engine.domain.models.training import (
    EventType,
    IntentUsage,
    ModelMetrics,
    PredictionStats,
    TrainingStage,
    TrainingStatus,
)
from intent_engine.infrastructure.ai.intent.intent_classifier import LinearIntentClassifier
from intent_engine.utils.exceptions import (
    InsufficientTrainingDataError,
    IntentEngineError,
    ValidationException,
)
from intent_engine.utils.logger import get_logger, get_run_logger

# Progress checkpoints of a training run
PROGRESS_TRAINING_START = 10.0
PROGRESS_TRAINING_END = 80.0
PROGRESS_EVALUATED = 90.0
PROGRESS_DONE = 100.0


def format_model_size(parameter_count: int) -> str:
    """Human-readable parameter count."""
    if parameter_count > 1_000_000:
        return f"{parameter_count / 1_000_000:.1f}M params"
    if parameter_count > 1000:
        return f"{parameter_count / 1000:.1f}K params"
    return f"{parameter_count} params"


class ClassifierService:
    """
    Coordinates training, persistence, inference and analytics around one
    `LinearIntentClassifier`.
    """

    def __init__(
        self,
        classifier: LinearIntentClassifier,
        repository: TrainingDataRepositoryInterface,
        event_log: EventLogInterface,
        settings: Optional[Settings] = None
    ):
        """
        Initialize the classifier service with dependencies.

        Args:
            classifier: The network to train and query
            repository: Source of intents and training examples
            event_log: Sink for training and prediction events
            settings: Thresholds and defaults; the cached settings when omitted
        """
        self.classifier = classifier
        self.repository = repository
        self.event_log = event_log
        self.settings = settings or get_settings()
        self.logger = get_logger(__name__)
        self._training_lock = threading.Lock()
        self._status_lock = threading.Lock()
        self._status = TrainingStatus()

    # Status -----------------------------------------------------------------

    def get_training_status(self) -> TrainingStatus:
        with self._status_lock:
            return replace(self._status)

    def _set_status(self, **changes: Any) -> None:
        with self._status_lock:
            self._status = replace(self._status, **changes)

    def _reset_status(self, status: TrainingStatus) -> None:
        with self._status_lock:
            self._status = status

    # Lifecycle --------------------------------------------------------------

    def initialize(self) -> bool:
        """Load a previously saved model if there is one. Never trains."""
        self.logger.info("Initializing classifier service")
        loaded = self.classifier.load_model()
        if loaded:
            self.logger.info("Existing intent model loaded successfully")
        else:
            self.logger.info("No existing model found, will need to train")
        return loaded

    def _get_training_data_count(self) -> Dict[str, int]:
        return {
            "examples": self.repository.count_active_examples(),
            "intents": self.repository.count_active_intents(),
        }

    def train_model(self, epochs: Optional[int] = None, auto_save: bool = True) -> bool:
        """
        Run one full training cycle.

        A call made while another run is in progress is rejected and leaves
        the running job and its status untouched.

        Args:
            epochs: Number of epochs; `DEFAULT_EPOCHS` when omitted
            auto_save: Persist the model after evaluation

        Returns:
            True if the run completed, False if it was rejected or failed;
            failures are described by the training status
        """
        if not self._training_lock.acquire(blocking=False):
            self.logger.warning("Training already in progress, rejecting request")
            return False

        if epochs is None:
            epochs = self.settings.DEFAULT_EPOCHS
        run_id = uuid.uuid4().hex[:12]
        run_logger = get_run_logger(__name__, run_id, epochs=epochs)

        try:
            self._reset_status(TrainingStatus(
                is_training=True,
                progress=0.0,
                stage=TrainingStage.PREPARING_DATA,
                run_id=run_id,
            ))
            run_logger.info("Starting intent model training")

            data_count = self._get_training_data_count()
            required = self.settings.MIN_TRAINING_EXAMPLES
            if data_count["examples"] < required:
                raise InsufficientTrainingDataError(available=data_count["examples"], required=required)

            self._set_status(stage=TrainingStage.TRAINING_MODEL, progress=PROGRESS_TRAINING_START)

            def on_epoch(epoch: int, total: int, loss: float, accuracy: float) -> None:
                span = PROGRESS_TRAINING_END - PROGRESS_TRAINING_START
                self._set_status(progress=PROGRESS_TRAINING_START + span * epoch / total)

            self.classifier.train_model(epochs, progress_callback=on_epoch)

            self._set_status(stage=TrainingStage.EVALUATING_MODEL, progress=PROGRESS_TRAINING_END)
            evaluation = self.classifier.evaluate_model()
            self._set_status(accuracy=evaluation.accuracy, loss=evaluation.loss, progress=PROGRESS_EVALUATED)

            if auto_save:
                self._set_status(stage=TrainingStage.SAVING_MODEL)
                self.classifier.save_model()

            self._log_event(EventType.TRAINING_COMPLETED, {
                "accuracy": evaluation.accuracy,
                "loss": evaluation.loss,
                "epochs": epochs,
                "training_examples": data_count["examples"],
                "intents": data_count["intents"],
                "run_id": run_id,
            })

            self._reset_status(TrainingStatus(
                is_training=False,
                progress=PROGRESS_DONE,
                stage=TrainingStage.COMPLETED,
                accuracy=evaluation.accuracy,
                loss=evaluation.loss,
                last_training_date=datetime.now(timezone.utc),
                run_id=run_id,
            ))
            run_logger.info(
                f"Intent model training completed. Accuracy: {evaluation.accuracy:.4f}, Loss: {evaluation.loss:.4f}"
            )
            return True

        except Exception as e:
            self._reset_status(TrainingStatus(
                is_training=False,
                progress=0.0,
                stage=TrainingStage.ERROR,
                error=str(e) or e.__class__.__name__,
                run_id=run_id,
            ))
            run_logger.error(f"Training intent model failed: {str(e)}", exc_info=not isinstance(e, IntentEngineError))
            return False
        finally:
            self._training_lock.release()

    def retrain_model(self) -> bool:
        """Shorter training pass for periodic refreshes."""
        self.logger.info("Starting model retraining")
        return self.train_model(self.settings.RETRAIN_EPOCHS, auto_save=True)

    # Inference --------------------------------------------------------------

    def get_enhanced_prediction(self, text: str, use_neural_network: bool = True) -> EnhancedPrediction:
        """
        Best intent plus the top predictions, or a fallback signal.

        Args:
            text: User utterance
            use_neural_network: Set False to force the caller's fallback path

        Returns:
            EnhancedPrediction; `fallback_used` is True when the network was
            disabled, not ready, or failed
        """
        if not use_neural_network or not self.classifier.is_ready():
            self.logger.debug("Intent model not ready, using fallback method")
            return EnhancedPrediction(neural_prediction=None, top_predictions=[], fallback_used=True)

        try:
            prediction = self.classifier.predict_intent(text)
            top_predictions = self.classifier.predict_top_intents(text, self.settings.TOP_K_PREDICTIONS)
        except Exception as e:
            self.logger.error(f"Failed to get intent prediction: {str(e)}", exc_info=True)
            return EnhancedPrediction(neural_prediction=None, top_predictions=[], fallback_used=True)

        if prediction:
            self._log_prediction(text, prediction)

        return EnhancedPrediction(
            neural_prediction=prediction,
            top_predictions=top_predictions,
            fallback_used=False,
        )

    # Training data ----------------------------------------------------------

    def add_training_data(self, intent_id: str, text: str, auto_retrain: bool = False) -> bool:
        """
        Store one labeled example, optionally retraining afterwards.

        Returns:
            False if the example could not be stored or the retrain failed
        """
        try:
            if not text or not text.strip():
                raise ValidationException("Training text cannot be empty", field="text")

            keywords = self.classifier.text_processor.process_text(text).stems
            self.repository.add_example(TrainingExample(
                intent_id=intent_id,
                text=text,
                keywords=keywords,
                confidence=1.0,
                is_active=True,
            ))
            self.logger.info(f"Added training example for intent {intent_id}")
        except IntentEngineError as e:
            self.logger.error(f"Failed to add training data: {str(e)}")
            return False

        if auto_retrain:
            return self.retrain_model()
        return True

    def should_retrain(self) -> bool:
        """
        True if no training has completed yet, or if more than
        `RETRAIN_THRESHOLD` active examples were added since the last one.
        """
        try:
            last_training = self.event_log.get_latest(EventType.TRAINING_COMPLETED.value)
            if last_training is None:
                return True
            new_examples = self.repository.count_active_examples(created_after=last_training.created_at)
        except IntentEngineError as e:
            self.logger.error(f"Failed to check if model needs retraining: {str(e)}")
            return False
        return new_examples > self.settings.RETRAIN_THRESHOLD

    # Analytics --------------------------------------------------------------

    def _log_event(self, event_type: EventType, metadata: Dict[str, Any]) -> None:
        try:
            self.event_log.log_event(event_type.value, metadata)
        except Exception as e:
            self.logger.warning(f"Failed to log {event_type.value} event: {str(e)}")

    def _log_prediction(self, text: str, prediction: IntentPrediction) -> None:
        self._log_event(EventType.PREDICTION, {
            "text": text[:self.settings.PREDICTION_TEXT_MAX_LENGTH],
            "intent_id": prediction.intent_id,
            "intent_name": prediction.intent_name,
            "confidence": prediction.confidence,
        })

    def get_metrics(self) -> Optional[ModelMetrics]:
        """Evaluation and dataset metrics; None when no model is ready."""
        if not self.classifier.is_ready():
            return None
        try:
            evaluation = self.classifier.evaluate_model()
            data_count = self._get_training_data_count()
            last_training = self.event_log.get_latest(EventType.TRAINING_COMPLETED.value)
        except IntentEngineError as e:
            self.logger.error(f"Failed to get model metrics: {str(e)}")
            return None

        return ModelMetrics(
            accuracy=evaluation.accuracy,
            loss=evaluation.loss,
            total_training_examples=data_count["examples"],
            total_intents=data_count["intents"],
            vocabulary_size=self.classifier.vocabulary_size,
            model_size=format_model_size(self.classifier.parameter_count),
            last_training_date=last_training.created_at if last_training else None,
            is_model_loaded=self.classifier.is_ready(),
            per_intent=evaluation.report,
        )

    def get_prediction_stats(self) -> PredictionStats:
        """Summary of the most recent logged predictions."""
        try:
            predictions = self.event_log.list_events(
                EventType.PREDICTION.value, limit=self.settings.PREDICTION_STATS_WINDOW
            )
        except IntentEngineError as e:
            self.logger.error(f"Failed to get prediction statistics: {str(e)}")
            return PredictionStats()

        if not predictions:
            return PredictionStats()

        total_confidence = 0.0
        by_intent: Dict[str, List[float]] = {}
        for event in predictions:
            confidence = float(event.metadata.get("confidence") or 0.0)
            intent_name = event.metadata.get("intent_name") or "Unknown"
            total_confidence += confidence
            by_intent.setdefault(intent_name, []).append(confidence)

        distribution = sorted(
            (
                IntentUsage(intent_name=name, count=len(values), avg_confidence=sum(values) / len(values))
                for name, values in by_intent.items()
            ),
            key=lambda usage: usage.count,
            reverse=True,
        )
        return PredictionStats(
            total_predictions=len(predictions),
            average_confidence=total_confidence / len(predictions),
            intent_distribution=distribution,
        )
