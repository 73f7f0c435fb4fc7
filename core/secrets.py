"""
Secure connection settings for the SF Tabs storage host

⚠️ SECURITY:
- Credentials are loaded from environment variables or .env file
- NEVER hardcode credentials in code
- .env file is gitignored
- Passwords are NEVER logged or exposed in error messages
"""

import os
from pathlib import Path
from typing import Optional
import logging

logger = logging.getLogger(__name__)


class SecretsManager:
    """Manages database credentials and deployment overrides"""

    _instance = None
    _initialized = False

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if not self._initialized:
            self._load_secrets()
            SecretsManager._initialized = True

    def _load_secrets(self, env_file: Optional[Path] = None):
        """Load secrets from environment variables and .env file"""
        # Try to load from .env file if it exists
        env_file = env_file or Path(__file__).parent.parent / '.env'
        if env_file.exists():
            try:
                with open(env_file, 'r') as f:
                    for line in f:
                        line = line.strip()
                        if line and not line.startswith('#') and '=' in line:
                            key, value = line.split('=', 1)
                            # Only set if not already in environment
                            if key not in os.environ:
                                os.environ[key] = value.strip()
                logger.info("Loaded secrets from .env file")
            except OSError as e:
                logger.warning(f"Could not load .env file: {e}")

        # Cache connection settings
        self._arango_host = os.getenv('ARANGO_HOST', 'http://localhost:8529')
        self._arango_username = os.getenv('ARANGO_USERNAME', 'root')
        self._arango_password = os.getenv('ARANGO_PASSWORD', '')
        self._arango_db = os.getenv('ARANGO_DB', 'sftabs')
        self._storage_backend = os.getenv('SFTABS_STORAGE_BACKEND')

        # Log availability (NOT the actual password!)
        logger.info(f"ArangoDB host: {self._arango_host}")
        logger.info(f"ArangoDB password set: {bool(self._arango_password)}")

    def reload(self, env_file: Optional[Path] = None) -> None:
        """Re-read environment (used after the environment changed)"""
        self._load_secrets(env_file)

    @property
    def arango_host(self) -> str:
        """Get ArangoDB server URL"""
        return self._arango_host

    @property
    def arango_username(self) -> str:
        """Get ArangoDB username"""
        return self._arango_username

    @property
    def arango_password(self) -> str:
        """Get ArangoDB password"""
        return self._arango_password

    @property
    def arango_db(self) -> str:
        """Get ArangoDB database name"""
        return self._arango_db

    @property
    def storage_backend(self) -> Optional[str]:
        """Get storage backend override ("memory" or "arango")"""
        return self._storage_backend


# Global singleton instance
_secrets = SecretsManager()


def get_secrets() -> SecretsManager:
    """Get the global secrets manager instance"""
    return _secrets
