from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union
import threading

import numpy as np
from sklearn.metrics import classification_report

from intent_engine.domain.interfaces.repository_interface import (
    ModelStoreInterface,
    TrainingDataRepositoryInterface,
)
from intent_engine.domain.models.intent import IntentPrediction
from intent_engine.domain.models.training import EvaluationResult
from intent_engine.domain.schemas.model_record import ModelRecord
from intent_engine.infrastructure.ai.intent.text_processor import FeatureVector, TextProcessor
from intent_engine.utils.exceptions import (
    InsufficientTrainingDataError,
    IntentEngineError,
    ModelNotTrainedError,
    ModelPersistenceError,
    RepositoryError,
    TrainingInProgressError,
    ValidationException,
    VocabularyMismatchError,
)
from intent_engine.utils.logger import get_logger

ProgressCallback = Callable[[int, int, float, float], None]


@dataclass
class TrainingData:
    """Texts and intent labels in training order, plus the intent-to-output mapping."""
    texts: List[str]
    labels: List[str]
    intent_index: Dict[str, int]


@dataclass(frozen=True)
class ModelState:
    """
    Weights, biases and intent mappings of one trained network.

    Bound to the vocabulary it was trained on through `vocabulary_version`.
    """
    weights: np.ndarray
    biases: np.ndarray
    intent_index: Dict[str, int]
    index_intent: Dict[int, str]
    vocabulary_version: str
    is_trained: bool = True

    @property
    def input_size(self) -> int:
        return int(self.weights.shape[1]) if self.weights.ndim == 2 else 0

    @property
    def output_size(self) -> int:
        return int(self.weights.shape[0])

    @property
    def parameter_count(self) -> int:
        return int(self.weights.size + self.biases.size)


class LinearIntentClassifier:
    """
    Single-layer softmax network mapping feature vectors to intent probabilities.

    Trained by per-example gradient descent on cross-entropy loss. A training
    run builds a fresh vocabulary and weight set privately and swaps them in
    when it finishes, so inference keeps using the previous model until then.
    """

    def __init__(
        self,
        repository: TrainingDataRepositoryInterface,
        model_store: Optional[ModelStoreInterface] = None,
        text_processor: Optional[TextProcessor] = None,
        learning_rate: float = 0.01,
        weight_init_range: float = 0.1,
        loss_epsilon: float = 1e-15,
        random_seed: Optional[int] = None,
        log_every: int = 100,
    ):
        """
        Initialize the classifier.

        Args:
            repository: Source of intents and training examples
            model_store: Where trained models are saved and loaded
            text_processor: Processor whose settings new vocabularies use
            learning_rate: Gradient descent step size
            weight_init_range: Width of the uniform interval used for initial weights
            loss_epsilon: Lower clamp on probabilities before taking a log
            random_seed: Seed for weight initialization
            log_every: Number of epochs between progress log lines
        """
        self.logger = get_logger(__name__)
        self.repository = repository
        self.model_store = model_store
        self.text_processor = text_processor or TextProcessor()
        self.learning_rate = learning_rate
        self.weight_init_range = weight_init_range
        self.loss_epsilon = loss_epsilon
        self.log_every = max(1, log_every)
        self._rng = np.random.default_rng(random_seed)
        self._state: Optional[ModelState] = None
        self._state_lock = threading.RLock()
        self._training_lock = threading.Lock()

    # State access -----------------------------------------------------------

    def _snapshot(self) -> Tuple[Optional[ModelState], TextProcessor]:
        with self._state_lock:
            return self._state, self.text_processor

    def _install(self, state: ModelState, processor: TextProcessor) -> None:
        with self._state_lock:
            self._state = state
            self.text_processor = processor

    def is_ready(self) -> bool:
        state, _ = self._snapshot()
        return state is not None and state.is_trained and state.output_size > 0

    # Network ----------------------------------------------------------------

    def initialize_weights(self, input_size: int, output_size: int) -> Tuple[np.ndarray, np.ndarray]:
        """Small symmetric random weights and biases to break symmetry."""
        weights = (self._rng.random((output_size, input_size)) - 0.5) * self.weight_init_range
        biases = (self._rng.random(output_size) - 0.5) * self.weight_init_range
        return weights, biases

    @staticmethod
    def softmax(scores: np.ndarray) -> np.ndarray:
        if scores.size == 0:
            return scores
        exps = np.exp(scores - np.max(scores))
        total = exps.sum()
        if not np.isfinite(total) or total <= 0:
            return np.full(scores.shape, 1.0 / scores.size)
        return exps / total

    @classmethod
    def _forward(cls, weights: np.ndarray, biases: np.ndarray, x: np.ndarray) -> np.ndarray:
        return cls.softmax(biases + weights @ x)

    def forward(self, input_vector: Union[FeatureVector, Sequence[float], np.ndarray]) -> np.ndarray:
        """
        Probability distribution over intents for one feature vector.

        Raises:
            ModelNotTrainedError: If there are no weights yet
            VocabularyMismatchError: If the vector came from another vocabulary
            ValidationException: If a raw vector has the wrong length
        """
        state, _ = self._snapshot()
        if state is None:
            raise ModelNotTrainedError()
        return self._forward_state(state, input_vector)

    def _forward_state(
        self,
        state: ModelState,
        input_vector: Union[FeatureVector, Sequence[float], np.ndarray],
    ) -> np.ndarray:
        if isinstance(input_vector, FeatureVector):
            if input_vector.vocabulary_version != state.vocabulary_version:
                raise VocabularyMismatchError(state.vocabulary_version, input_vector.vocabulary_version)
            x = input_vector.values
        else:
            x = np.asarray(input_vector, dtype=float)
        if x.shape != (state.input_size,):
            raise ValidationException(
                f"Expected a vector of length {state.input_size}, got {x.shape}",
                field="input_vector",
            )
        return self._forward(state.weights, state.biases, x)

    def _run_pass(
        self,
        weights: np.ndarray,
        biases: np.ndarray,
        matrix: np.ndarray,
        targets: np.ndarray,
        update: bool,
    ) -> Tuple[float, float, List[int]]:
        """
        One pass over every example in order.

        Targets of -1 mark examples whose intent has no output; they count as
        wrong and add no loss. With `update`, weights and biases are adjusted
        in place right after each example.

        Returns:
            Accuracy, mean loss and the predicted index of every example
        """
        num_outputs = biases.shape[0]
        total_loss = 0.0
        correct = 0
        predicted: List[int] = []

        for x, target in zip(matrix, targets):
            output = self._forward(weights, biases, x)

            if target >= 0:
                total_loss -= np.log(max(self.loss_epsilon, output[target]))

            predicted_index = int(np.argmax(output))
            predicted.append(predicted_index)
            if predicted_index == target:
                correct += 1

            if update:
                one_hot = np.zeros(num_outputs)
                if target >= 0:
                    one_hot[target] = 1.0
                errors = output - one_hot
                biases -= self.learning_rate * errors
                weights -= self.learning_rate * np.outer(errors, x)

        count = len(targets)
        if count == 0:
            return 0.0, 0.0, predicted
        return correct / count, float(total_loss) / count, predicted

    # Training ---------------------------------------------------------------

    def load_training_data(self) -> TrainingData:
        """
        Collect active examples of active intents, grouped by intent.

        Output indices follow the repository's intent order.
        """
        intents = self.repository.get_active_intents()
        intent_index = {intent.id: index for index, intent in enumerate(intents)}
        texts: List[str] = []
        labels: List[str] = []
        for intent in intents:
            for example in intent.active_examples:
                texts.append(example.text)
                labels.append(intent.id)

        self.logger.debug(f"Loaded {len(texts)} training examples for {len(intents)} intents")
        return TrainingData(texts=texts, labels=labels, intent_index=intent_index)

    def train_model(self, epochs: int = 1000, progress_callback: Optional[ProgressCallback] = None) -> EvaluationResult:
        """
        Train a new model on the full example set.

        Args:
            epochs: Number of passes over the examples
            progress_callback: Called after each epoch with
                (epoch, epochs, loss, accuracy)

        Returns:
            Accuracy and mean loss of the final epoch

        Raises:
            TrainingInProgressError: If another run is using this classifier
            InsufficientTrainingDataError: If there are no examples
            ValidationException: If epochs is not positive
        """
        if epochs < 1:
            raise ValidationException("Epochs must be at least 1", field="epochs")
        if not self._training_lock.acquire(blocking=False):
            raise TrainingInProgressError()

        try:
            data = self.load_training_data()
            if not data.texts:
                raise InsufficientTrainingDataError(available=0, required=1)

            processor = self.text_processor.spawn()
            vocabulary = processor.build_vocabulary(data.texts)
            matrix = processor.texts_to_matrix(data.texts)
            targets = np.array([data.intent_index[label] for label in data.labels], dtype=int)

            weights, biases = self.initialize_weights(len(vocabulary), len(data.intent_index))

            accuracy, loss = 0.0, 0.0
            for epoch in range(epochs):
                accuracy, loss, _ = self._run_pass(weights, biases, matrix, targets, update=True)
                if epoch % self.log_every == 0:
                    self.logger.debug(
                        f"Epoch {epoch}: Loss={loss:.4f}, Accuracy={accuracy * 100:.2f}%"
                    )
                if progress_callback:
                    progress_callback(epoch + 1, epochs, loss, accuracy)

            state = ModelState(
                weights=weights,
                biases=biases,
                intent_index=dict(data.intent_index),
                index_intent={index: intent_id for intent_id, index in data.intent_index.items()},
                vocabulary_version=vocabulary.version,
            )
            self._install(state, processor)

            self.logger.info(
                f"Training completed. Final accuracy: {accuracy * 100:.2f}%",
                extra={"loss": loss, "epochs": epochs, "examples": len(data.texts)}
            )
            return EvaluationResult(accuracy=accuracy, loss=loss, num_examples=len(data.texts))
        finally:
            self._training_lock.release()

    def evaluate_model(self) -> EvaluationResult:
        """
        Score the current model on the stored examples without updating it.

        Raises:
            ModelNotTrainedError: If no model is trained or loaded
        """
        state, processor = self._snapshot()
        if state is None or not state.is_trained:
            raise ModelNotTrainedError()

        data = self.load_training_data()
        if not data.texts:
            return EvaluationResult(accuracy=0.0, loss=0.0, num_examples=0)

        matrix = processor.texts_to_matrix(data.texts)
        targets = np.array([state.intent_index.get(label, -1) for label in data.labels], dtype=int)
        accuracy, loss, predicted = self._run_pass(state.weights, state.biases, matrix, targets, update=False)

        return EvaluationResult(
            accuracy=accuracy,
            loss=loss,
            num_examples=len(data.texts),
            report=self._per_intent_report(state, data.labels, predicted),
        )

    @staticmethod
    def _per_intent_report(state: ModelState, labels: List[str], predicted: List[int]) -> Dict[str, Dict[str, float]]:
        known = [state.index_intent[i] for i in range(state.output_size)]
        y_pred = [state.index_intent.get(i, "") for i in predicted]
        report = classification_report(labels, y_pred, labels=known, output_dict=True, zero_division=0)
        return {
            intent_id: {metric: float(value) for metric, value in report[intent_id].items()}
            for intent_id in known if intent_id in report
        }

    # Inference --------------------------------------------------------------

    def _resolve(self, intent_id: Optional[str]) -> Optional[str]:
        if intent_id is None:
            return None
        try:
            intent = self.repository.get_intent(intent_id)
        except RepositoryError as e:
            self.logger.error(f"Failed to resolve intent {intent_id}: {str(e)}")
            return None
        return intent.name if intent else None

    def _score(self, state: ModelState, processor: TextProcessor, text: str) -> Optional[Tuple[np.ndarray, List[float]]]:
        try:
            processed = processor.process_text(text)
            return self._forward_state(state, processed.features), processed.features.tolist()
        except IntentEngineError as e:
            self.logger.error(f"Error predicting intent: {str(e)}")
            return None

    def predict_intent(self, text: str) -> Optional[IntentPrediction]:
        """
        Most probable intent for a text, or None when no model is ready or
        the winning output cannot be resolved to a known intent.
        """
        state, processor = self._snapshot()
        if state is None or not state.is_trained or state.output_size == 0:
            return None

        scored = self._score(state, processor, text)
        if scored is None:
            return None
        output, features = scored

        best = int(np.argmax(output))
        intent_id = state.index_intent.get(best)
        intent_name = self._resolve(intent_id)
        if intent_name is None:
            return None

        return IntentPrediction(
            intent_id=intent_id,
            intent_name=intent_name,
            confidence=float(output[best]),
            features=features,
        )

    def predict_top_intents(self, text: str, top_k: int = 3) -> List[IntentPrediction]:
        """Up to `top_k` resolvable intents, most probable first."""
        state, processor = self._snapshot()
        if state is None or not state.is_trained or state.output_size == 0:
            return []

        scored = self._score(state, processor, text)
        if scored is None:
            return []
        output, features = scored

        # Stable sort keeps lower indices first among equal probabilities
        ranked = sorted(range(len(output)), key=lambda i: output[i], reverse=True)[:top_k]

        results: List[IntentPrediction] = []
        for index in ranked:
            intent_id = state.index_intent.get(index)
            intent_name = self._resolve(intent_id)
            if intent_name is None:
                continue
            results.append(IntentPrediction(
                intent_id=intent_id,
                intent_name=intent_name,
                confidence=float(output[index]),
                features=features,
            ))
        return results

    # Persistence ------------------------------------------------------------

    def export_state(self) -> ModelRecord:
        state, processor = self._snapshot()
        if state is None or not state.is_trained:
            raise ModelNotTrainedError("No trained model to save")
        return ModelRecord(
            weights=state.weights.tolist(),
            biases=state.biases.tolist(),
            vocabulary=processor.export_vocabulary(),
            vocabulary_version=state.vocabulary_version,
            intent_index=dict(state.intent_index),
            index_intent=dict(state.index_intent),
            is_trained=state.is_trained,
        )

    def restore_state(self, record: ModelRecord) -> None:
        """
        Replace the live model with a persisted one.

        Raises:
            ValidationException: If the vocabulary indices are not dense
            VocabularyMismatchError: If the vocabulary does not hash to the recorded version
        """
        processor = self.text_processor.spawn()
        processor.import_vocabulary(record.vocabulary)
        if processor.vocabulary_version != record.vocabulary_version:
            raise VocabularyMismatchError(record.vocabulary_version, processor.vocabulary_version)

        num_outputs = len(record.biases)
        state = ModelState(
            weights=np.array(record.weights, dtype=float).reshape(num_outputs, len(record.vocabulary)),
            biases=np.array(record.biases, dtype=float),
            intent_index=dict(record.intent_index),
            index_intent={int(k): v for k, v in record.index_intent.items()},
            vocabulary_version=record.vocabulary_version,
            is_trained=record.is_trained,
        )
        self._install(state, processor)

    def save_model(self) -> None:
        """
        Persist the current model.

        Raises:
            ModelNotTrainedError: If there is nothing to save
            ModelPersistenceError: If the store is missing or the write fails
        """
        if self.model_store is None:
            raise ModelPersistenceError("No model store configured")
        record = self.export_state()
        try:
            self.model_store.save(record)
        except ModelPersistenceError:
            raise
        except Exception as e:
            raise ModelPersistenceError(f"Failed to save model: {str(e)}")
        self.logger.info("Model saved successfully", extra={"vocabulary_version": record.vocabulary_version})

    def load_model(self) -> bool:
        """Load the latest persisted model; False if none is usable."""
        if self.model_store is None:
            return False
        try:
            record = self.model_store.load_latest()
            if record is None:
                self.logger.info("No saved model found")
                return False
            self.restore_state(record)
        except (IntentEngineError, ValueError) as e:
            self.logger.warning(f"Failed to load model: {str(e)}")
            return False

        self.logger.info("Model loaded successfully", extra={"vocabulary_version": record.vocabulary_version})
        return True

    # Introspection ----------------------------------------------------------

    @property
    def parameter_count(self) -> int:
        state, _ = self._snapshot()
        return state.parameter_count if state else 0

    @property
    def intent_count(self) -> int:
        state, _ = self._snapshot()
        return len(state.intent_index) if state else 0

    @property
    def vocabulary_size(self) -> int:
        _, processor = self._snapshot()
        return processor.vocabulary_size

    def get_model_summary(self) -> str:
        if not self.is_ready():
            return "Model not trained"

        state, processor = self._snapshot()
        return (
            "Simple Neural Network:\n"
            f"Input Size: {state.input_size}\n"
            f"Output Size: {state.output_size}\n"
            f"Total Parameters: {state.parameter_count}\n"
            f"Vocabulary Size: {processor.vocabulary_size}\n"
            f"Intents: {len(state.intent_index)}"
        )
