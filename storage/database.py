"""
Database Manager
================

ArangoDB connection for the persistent storage areas.

Collections (one per storage area, mirroring chrome.storage):
- storage_sync: items of the "sync" area
- storage_local: items of the "local" area

Each document holds one storage item:
- _key: stable hash of the item key (ArangoDB keys are character-restricted)
- key: the item key as the extension addresses it
- value: the JSON value
- bytes: quota cost of the item (key bytes + serialized value bytes)
"""

import logging
from typing import Any, Dict, List, Optional

from arango import ArangoClient
from arango.collection import StandardCollection
from arango.database import StandardDatabase

from core.config import LOCAL_AREA, SYNC_AREA
from core.secrets import get_secrets

logger = logging.getLogger(__name__)

AREA_COLLECTIONS: Dict[str, str] = {
    SYNC_AREA: "storage_sync",
    LOCAL_AREA: "storage_local",
}


class Database:
    """
    ArangoDB connection manager.

    Creates the database and the per-area collections on first connect.
    """

    def __init__(
        self,
        host: str = "http://localhost:8529",
        username: str = "root",
        password: str = "",
        db_name: str = "sftabs"
    ):
        """
        Initialize ArangoDB connection.

        Args:
            host: ArangoDB server URL
            username: Database username
            password: Database password
            db_name: Database name
        """
        self.host = host
        self.username = username
        self.password = password
        self.db_name = db_name

        self._client: Optional[ArangoClient] = None
        self._db: Optional[StandardDatabase] = None

        logger.info(f"Database initialized: {host}/{db_name}")

    def connect(self) -> StandardDatabase:
        """
        Connect to ArangoDB and initialize collections.

        Returns:
            ArangoDB database instance
        """
        if self._db is not None:
            return self._db

        try:
            self._client = ArangoClient(hosts=self.host)

            # Connect to system database to create our database
            sys_db = self._client.db("_system", username=self.username, password=self.password)

            if not sys_db.has_database(self.db_name):
                sys_db.create_database(self.db_name)
                logger.info(f"Created database: {self.db_name}")

            self._db = self._client.db(self.db_name, username=self.username, password=self.password)
            self._create_collections()

            logger.info("ArangoDB connected successfully")
            return self._db

        except Exception as e:
            logger.error(f"Failed to connect to ArangoDB: {e}")
            raise

    def _create_collections(self) -> None:
        """Create one collection per storage area if missing"""
        for area_name, collection_name in AREA_COLLECTIONS.items():
            if not self._db.has_collection(collection_name):
                collection = self._db.create_collection(collection_name)
                collection.add_persistent_index(fields=["key"], unique=True)
                logger.info(f"Created collection: {collection_name} ({area_name} area)")

    def get_database(self) -> StandardDatabase:
        """Get ArangoDB database instance, connecting if needed"""
        if self._db is None:
            return self.connect()
        return self._db

    def get_collection(self, name: str) -> StandardCollection:
        """
        Get ArangoDB collection by name.

        Args:
            name: Collection name (storage_sync, storage_local)

        Returns:
            ArangoDB collection
        """
        db = self.get_database()
        return db.collection(name)

    def get_area_collection(self, area_name: str) -> StandardCollection:
        """Get the collection backing a storage area"""
        return self.get_collection(AREA_COLLECTIONS[area_name])

    def execute(self, aql: str, bind_vars: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """
        Execute AQL query.

        Args:
            aql: AQL query string
            bind_vars: Query bind variables

        Returns:
            Query results as list of dicts
        """
        db = self.get_database()
        cursor = db.aql.execute(aql, bind_vars=bind_vars or {})
        return list(cursor)

    def close(self) -> None:
        """Close database connection"""
        if self._client:
            self._client.close()
            self._client = None
            self._db = None
            logger.info("ArangoDB connection closed")


# Global singleton
_database: Optional[Database] = None


def get_database() -> Database:
    """
    Get global database instance, configured from the secrets manager.

    Returns:
        Database singleton
    """
    global _database
    if _database is None:
        secrets = get_secrets()
        _database = Database(
            host=secrets.arango_host,
            username=secrets.arango_username,
            password=secrets.arango_password,
            db_name=secrets.arango_db,
        )
        try:
            _database.connect()
        except Exception as e:
            logger.error(f"Failed to connect to ArangoDB: {e}")
            logger.info("You can install ArangoDB from: https://www.arangodb.com/download")
            _database = None
            raise
    return _database
