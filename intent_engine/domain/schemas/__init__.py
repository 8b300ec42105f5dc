from intent_engine.domain.schemas.model_record import CURRENT_FORMAT_VERSION, ModelRecord

__all__ = ["CURRENT_FORMAT_VERSION", "ModelRecord"]
