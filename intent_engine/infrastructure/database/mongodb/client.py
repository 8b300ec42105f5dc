from typing import Any, Dict, List, Optional
import time

from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import ConfigurationError, ConnectionFailure, PyMongoError, ServerSelectionTimeoutError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from intent_engine.utils.exceptions import DatabaseConnectionError, DatabaseOperationError
from intent_engine.utils.logger import get_logger

logger = get_logger(__name__)


class MongoDBClient:
    """
    Thin wrapper around a pymongo client.

    Connects lazily on first use and converts driver errors into the
    engine's repository exceptions.
    """

    def __init__(
        self,
        connection_uri: str = "mongodb://localhost:27017",
        database_name: str = "nutrition_chatbot",
        pool_size: int = 10,
        connect_timeout: int = 30000,
        server_selection_timeout: int = 30000,
        client: Optional[MongoClient] = None,
        **kwargs
    ):
        """
        Initialize MongoDB client.

        Args:
            connection_uri: MongoDB connection URI
            database_name: Name of the database to use
            pool_size: Size of the connection pool
            connect_timeout: Connection timeout (ms)
            server_selection_timeout: Server selection timeout (ms)
            client: Pre-built client to use instead of connecting
            **kwargs: Additional connection options
        """
        self.connection_uri = connection_uri
        self.database_name = database_name
        self.connection_options = {
            "maxPoolSize": pool_size,
            "connectTimeoutMS": connect_timeout,
            "serverSelectionTimeoutMS": server_selection_timeout,
            "retryWrites": True,
            "tz_aware": True,
            **kwargs
        }
        self._client = client
        self.stats: Dict[str, Any] = {
            "last_connection_error": None,
            "last_successful_connection": None
        }

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type((ConnectionFailure, ServerSelectionTimeoutError)),
        reraise=True
    )
    def _open_client(self) -> MongoClient:
        client = MongoClient(self.connection_uri, **self.connection_options)
        client.admin.command("ping")
        return client

    def _connect(self) -> MongoClient:
        try:
            client = self._open_client()
            self.stats["last_successful_connection"] = time.time()
            logger.info("Successfully connected to MongoDB", extra={"database_name": self.database_name})
            return client
        except (ConnectionFailure, ServerSelectionTimeoutError, ConfigurationError) as e:
            logger.error(f"Failed to connect to MongoDB: {str(e)}")
            self.stats["last_connection_error"] = {"timestamp": time.time(), "error": str(e)}
            raise DatabaseConnectionError(f"MongoDB connection failed: {str(e)}")

    def get_connection(self) -> MongoClient:
        """
        Get the MongoDB client, connecting if needed.

        Raises:
            DatabaseConnectionError: If the connection cannot be established
        """
        if self._client is None:
            self._client = self._connect()
        return self._client

    def get_database(self) -> Database:
        return self.get_connection()[self.database_name]

    def get_collection(self, collection_name: str) -> Collection:
        return self.get_database()[collection_name]

    def create_indexes(self, collection_name: str, indexes: List[Dict[str, Any]]) -> List[str]:
        """
        Create indexes for a collection.

        Args:
            collection_name: Name of the collection
            indexes: Index specifications with `key` and optional `name`/`unique`

        Raises:
            DatabaseOperationError: If index creation fails
        """
        try:
            collection = self.get_collection(collection_name)
            names = []
            for spec in indexes:
                options = {k: v for k, v in spec.items() if k != "key"}
                names.append(collection.create_index(list(spec["key"].items()), **options))
            logger.info(
                f"Created indexes for collection {collection_name}",
                extra={"index_count": len(indexes)}
            )
            return names
        except PyMongoError as e:
            logger.error(f"Failed to create indexes for collection {collection_name}: {str(e)}")
            raise DatabaseOperationError(f"Failed to create indexes: {str(e)}")

    def ping(self) -> bool:
        try:
            self.get_connection().admin.command("ping")
            return True
        except PyMongoError as e:
            logger.error(f"MongoDB ping failed: {str(e)}")
            raise DatabaseConnectionError(f"MongoDB ping failed: {str(e)}")

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
            logger.debug("Closed MongoDB client connection")
