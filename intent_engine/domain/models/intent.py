from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import uuid4


@dataclass(frozen=True)
class TrainingExample:
    """
    Immutable labeled utterance used to train the classifier.

    `keywords` holds the stems derived when the example was captured; they are
    kept for analytics and never fed back into training.
    """
    intent_id: str
    text: str
    keywords: List[str] = field(default_factory=list)
    confidence: float = 1.0
    is_active: bool = True
    id: str = field(default_factory=lambda: uuid4().hex)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class Intent:
    """
    Externally managed intent category.

    The engine reads the identifier, the name and the active examples only;
    priority, category and responses belong to the conversation layer.
    """
    id: str
    name: str
    description: Optional[str] = None
    category: Optional[str] = None
    priority: int = 0
    is_active: bool = True
    examples: List[TrainingExample] = field(default_factory=list)
    responses: List[str] = field(default_factory=list)

    @property
    def active_examples(self) -> List[TrainingExample]:
        return [example for example in self.examples if example.is_active]


@dataclass(frozen=True)
class IntentPrediction:
    """A single intent resolved from the network output."""
    intent_id: str
    intent_name: str
    confidence: float
    features: List[float] = field(default_factory=list, repr=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "intent_id": self.intent_id,
            "intent_name": self.intent_name,
            "confidence": self.confidence,
        }


@dataclass(frozen=True)
class EnhancedPrediction:
    """
    Result handed to the conversation layer.

    `fallback_used` tells the caller to take its non-ML path; low-confidence
    handling is the caller's policy.
    """
    neural_prediction: Optional[IntentPrediction]
    top_predictions: List[IntentPrediction]
    fallback_used: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "neural_prediction": self.neural_prediction.to_dict() if self.neural_prediction else None,
            "top_predictions": [p.to_dict() for p in self.top_predictions],
            "fallback_used": self.fallback_used,
        }
