from intent_engine.infrastructure.database.mongodb.client import MongoDBClient

__all__ = ["MongoDBClient"]
