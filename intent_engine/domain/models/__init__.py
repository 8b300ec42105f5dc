from intent_engine.domain.models.intent import EnhancedPrediction, Intent, IntentPrediction, TrainingExample
from intent_engine.domain.models.training import (
    AnalyticsEvent,
    EvaluationResult,
    EventType,
    IntentUsage,
    ModelMetrics,
    PredictionStats,
    TrainingStage,
    TrainingStatus,
)

__all__ = [
    "AnalyticsEvent",
    "EnhancedPrediction",
    "EvaluationResult",
    "EventType",
    "Intent",
    "IntentPrediction",
    "IntentUsage",
    "ModelMetrics",
    "PredictionStats",
    "TrainingExample",
    "TrainingStage",
    "TrainingStatus",
]
