from typing import Optional
import os
import tempfile

import joblib

from intent_engine.domain.interfaces.repository_interface import ModelStoreInterface
from intent_engine.domain.schemas.model_record import ModelRecord
from intent_engine.utils.exceptions import ModelPersistenceError
from intent_engine.utils.logger import get_logger

logger = get_logger(__name__)


class FileModelStore(ModelStoreInterface):
    """
    Stores the latest model record as a joblib file.

    Writes go to a temporary file in the same directory and are moved into
    place with `os.replace`, so readers see either the old or the new record.
    """

    def __init__(self, model_path: str):
        """
        Initialize the store.

        Args:
            model_path: Path of the model file
        """
        self.model_path = model_path

    def save(self, record: ModelRecord) -> None:
        directory = os.path.dirname(os.path.abspath(self.model_path))
        tmp_path = None
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
            with os.fdopen(fd, "wb") as handle:
                joblib.dump(record.model_dump(mode="json"), handle)
            os.replace(tmp_path, self.model_path)
            tmp_path = None
            logger.info(f"Saved intent classifier model to {self.model_path}")
        except OSError as e:
            logger.error(f"Error saving model: {str(e)}")
            raise ModelPersistenceError(f"Failed to write model file: {str(e)}", details={"path": self.model_path})
        finally:
            if tmp_path and os.path.exists(tmp_path):
                os.remove(tmp_path)

    def load_latest(self) -> Optional[ModelRecord]:
        if not os.path.exists(self.model_path):
            logger.warning(f"Model path {self.model_path} does not exist")
            return None
        try:
            data = joblib.load(self.model_path)
        except Exception as e:
            logger.error(f"Error loading model: {str(e)}")
            raise ModelPersistenceError(f"Failed to read model file: {str(e)}", details={"path": self.model_path})
        logger.info(f"Loaded intent classifier model from {self.model_path}")
        return ModelRecord.model_validate(data)
