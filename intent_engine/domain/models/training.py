from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class TrainingStage(str, Enum):
    """Stages a training run moves through"""
    IDLE = "idle"
    PREPARING_DATA = "preparing_data"
    TRAINING_MODEL = "training_model"
    EVALUATING_MODEL = "evaluating_model"
    SAVING_MODEL = "saving_model"
    COMPLETED = "completed"
    ERROR = "error"


class EventType(str, Enum):
    """Analytics event types written to the event log"""
    TRAINING_COMPLETED = "training_completed"
    PREDICTION = "prediction"


@dataclass
class TrainingStatus:
    """
    Transient record describing the current or last training run.

    Mutated only by the classifier service; callers receive copies.
    """
    is_training: bool = False
    progress: float = 0.0
    stage: TrainingStage = TrainingStage.IDLE
    error: Optional[str] = None
    accuracy: Optional[float] = None
    loss: Optional[float] = None
    last_training_date: Optional[datetime] = None
    run_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["stage"] = self.stage.value
        return data


@dataclass(frozen=True)
class EvaluationResult:
    """Accuracy and mean cross-entropy loss over one pass of the example set."""
    accuracy: float
    loss: float
    num_examples: int = 0
    report: Dict[str, Dict[str, float]] = field(default_factory=dict)


@dataclass(frozen=True)
class AnalyticsEvent:
    event_type: str
    metadata: Dict[str, Any]
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class IntentUsage:
    intent_name: str
    count: int
    avg_confidence: float


@dataclass(frozen=True)
class PredictionStats:
    total_predictions: int = 0
    average_confidence: float = 0.0
    intent_distribution: List[IntentUsage] = field(default_factory=list)


@dataclass(frozen=True)
class ModelMetrics:
    """Read-only snapshot reported by the classifier service."""
    accuracy: float
    loss: float
    total_training_examples: int
    total_intents: int
    vocabulary_size: int
    model_size: str
    last_training_date: Optional[datetime]
    is_model_loaded: bool
    per_intent: Dict[str, Dict[str, float]] = field(default_factory=dict)
