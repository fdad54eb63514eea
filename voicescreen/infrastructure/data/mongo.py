"""
MongoDB connection handle shared by the session store.
"""
import logging
import threading
from typing import Callable, Optional

from pymongo import MongoClient
from pymongo.errors import PyMongoError

from ...config import MONGO_SERVER_SELECTION_TIMEOUT_MS
from ...errors import PersistenceError

logger = logging.getLogger("mongo")


class MongoConnection:
    """
    Lazily-created, reference-counted MongoClient.

    The client is opened on the first acquire() and closed when the last
    holder releases it, or on close() at process teardown.
    """

    def __init__(self, uri: str, database: str,
                 client_factory: Callable[..., MongoClient] = MongoClient,
                 server_selection_timeout_ms: int = MONGO_SERVER_SELECTION_TIMEOUT_MS):
        if not uri:
            raise PersistenceError("MONGODB_URI is not set")
        self.uri = uri
        self.database = database
        self._client_factory = client_factory
        self._timeout_ms = server_selection_timeout_ms
        self._client: Optional[MongoClient] = None
        self._refs = 0
        self._lock = threading.Lock()

    @property
    def ref_count(self) -> int:
        return self._refs

    @property
    def is_open(self) -> bool:
        return self._client is not None

    def acquire(self):
        """Take a reference and return the database handle."""
        with self._lock:
            if self._client is None:
                try:
                    self._client = self._client_factory(self.uri, serverSelectionTimeoutMS=self._timeout_ms)
                except PyMongoError as e:
                    raise PersistenceError(f"MongoDB connection error: {e}") from e
                logger.info(f"MongoDB client opened for database '{self.database}'")
            self._refs += 1
            return self._client[self.database]

    def release(self):
        with self._lock:
            if self._refs == 0:
                return
            self._refs -= 1
            if self._refs == 0:
                self._close_client()

    def collection(self, name: str):
        """Collection on the open client; the caller must hold a reference."""
        if self._client is None:
            raise PersistenceError("MongoDB connection is not open")
        return self._client[self.database][name]

    def close(self):
        with self._lock:
            self._refs = 0
            self._close_client()

    def _close_client(self):
        if self._client is not None:
            self._client.close()
            self._client = None
            logger.info("MongoDB client closed")

    def __enter__(self):
        return self.acquire()

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False
