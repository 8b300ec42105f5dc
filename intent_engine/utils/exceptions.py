from typing import Any, Dict, Optional


class IntentEngineError(Exception):
    """Base exception for the intent engine."""

    def __init__(
        self,
        message: str,
        code: str = "internal_error",
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize the exception.

        Args:
            message: Human-readable error message
            code: Machine-readable error code
            details: Additional error details
        """
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to a dictionary for status and log payloads."""
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details
            }
        }


class ValidationException(IntentEngineError):
    """Exception for invalid input data."""

    def __init__(
        self,
        message: str = "Validation error",
        field: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        merged = {"field": field} if field else {}
        if details:
            merged.update(details)
        super().__init__(message=message, code="validation_error", details=merged)


class NotFoundException(IntentEngineError):
    """Exception for resource not found errors."""

    def __init__(
        self,
        resource_type: str,
        resource_id: str,
        message: Optional[str] = None
    ):
        super().__init__(
            message=message or f"{resource_type} with ID {resource_id} not found",
            code="not_found",
            details={"resource_type": resource_type, "resource_id": resource_id}
        )


class InsufficientTrainingDataError(IntentEngineError):
    """Raised before training when the example set is too small."""

    def __init__(self, available: int, required: int):
        if required <= 1:
            message = "No training data available"
        else:
            message = (
                f"Insufficient training data. Need at least {required} examples, "
                f"have {available}"
            )
        super().__init__(
            message=message,
            code="insufficient_data",
            details={"available": available, "required": required}
        )


class TrainingInProgressError(IntentEngineError):
    """Raised when a training run is requested while another is active."""

    def __init__(self, message: str = "Training already in progress"):
        super().__init__(message=message, code="training_in_progress")


class ModelNotTrainedError(IntentEngineError):
    """Raised by operations that need a trained model."""

    def __init__(self, message: str = "Model not trained"):
        super().__init__(message=message, code="not_ready")


class VocabularyMismatchError(IntentEngineError):
    """Raised when a feature vector was built against another vocabulary."""

    def __init__(self, expected: Optional[str], actual: Optional[str]):
        super().__init__(
            message=f"Feature vector vocabulary {actual} does not match model vocabulary {expected}",
            code="vocabulary_mismatch",
            details={"expected": expected, "actual": actual}
        )


class ModelPersistenceError(IntentEngineError):
    """Raised when a model record cannot be written or read."""

    def __init__(self, message: str = "Model persistence error", details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, code="persistence_error", details=details)


class RepositoryError(IntentEngineError):
    """Raised when a data store operation fails."""

    def __init__(self, message: str = "Repository error", details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, code="repository_error", details=details)


class DatabaseConnectionError(RepositoryError):
    """Raised when the database cannot be reached."""


class DatabaseOperationError(RepositoryError):
    """Raised when a database command fails."""
