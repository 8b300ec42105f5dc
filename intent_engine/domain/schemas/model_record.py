from datetime import datetime, timezone
from typing import Dict, List
from pydantic import BaseModel, Field, field_validator, model_validator

CURRENT_FORMAT_VERSION = 1
SUPPORTED_FORMAT_VERSIONS = (1,)


class ModelRecord(BaseModel):
    """Versioned persistence schema for a trained classifier"""
    format_version: int = Field(CURRENT_FORMAT_VERSION, description="Schema version of this record")
    weights: List[List[float]] = Field(..., description="Weight matrix, one row per intent")
    biases: List[float] = Field(..., description="One bias per intent")
    vocabulary: Dict[str, int] = Field(..., description="Stem to feature index mapping")
    vocabulary_version: str = Field(..., description="Fingerprint of the vocabulary")
    intent_index: Dict[str, int] = Field(..., description="Intent ID to output index")
    index_intent: Dict[int, str] = Field(..., description="Output index to intent ID")
    is_trained: bool = Field(True, description="Whether the weights come from a completed run")
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("format_version")
    @classmethod
    def supported_version(cls, v: int) -> int:
        if v not in SUPPORTED_FORMAT_VERSIONS:
            raise ValueError(f"Unsupported model record format version: {v}")
        return v

    @model_validator(mode="after")
    def check_shapes(self) -> "ModelRecord":
        num_intents = len(self.biases)
        if len(self.weights) != num_intents:
            raise ValueError(
                f"Weight rows ({len(self.weights)}) do not match bias count ({num_intents})"
            )
        vocab_size = len(self.vocabulary)
        for row in self.weights:
            if len(row) != vocab_size:
                raise ValueError(
                    f"Weight row length {len(row)} does not match vocabulary size {vocab_size}"
                )
        if len(self.intent_index) != num_intents or len(self.index_intent) != num_intents:
            raise ValueError("Intent mappings do not match the number of outputs")
        if sorted(self.intent_index.values()) != list(range(num_intents)):
            raise ValueError(f"Intent indices must be a permutation of 0..{num_intents - 1}")
        for intent_id, index in self.intent_index.items():
            if self.index_intent.get(index) != intent_id:
                raise ValueError(f"Intent mappings disagree for {intent_id}")
        return self

    @property
    def parameter_count(self) -> int:
        return sum(len(row) for row in self.weights) + len(self.biases)
