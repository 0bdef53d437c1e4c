"""
Base datastore interface for content database connections.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Any

from ..config.deploy_config import DatabaseConfig


class BaseDatastore(ABC):
    """
    Abstract base class for datastore implementations.

    Provides:
    - Lazy loading of database drivers
    - Idempotent connect/disconnect operations
    - Raw query execution
    """

    def __init__(self, name: str, connection_config: DatabaseConfig):
        self.name = name
        self.connection_config = connection_config
        self._connection_pool = None
        self._connection_lock = asyncio.Lock()
        self._is_connected = False
        self._logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @property
    def is_connected(self) -> bool:
        """Check if the datastore is currently connected"""
        return self._is_connected

    @abstractmethod
    async def _create_connection(self) -> None:
        """Create the actual database connection - implemented by subclasses"""
        pass

    @abstractmethod
    async def _cleanup_connections(self) -> None:
        """Clean up database connections - implemented by subclasses"""
        pass

    @abstractmethod
    async def execute_query(self, query: str, params: Optional[List[Any]] = None) -> List[Dict[str, Any]]:
        """
        Execute a read query against the datastore.

        Args:
            query: SQL query string
            params: Optional query parameters

        Returns:
            List of dictionaries representing rows
        """
        pass

    async def connect(self) -> None:
        """Connect to the datastore - idempotent operation."""
        async with self._connection_lock:
            if self._is_connected:
                return

            self._logger.debug(f"Connecting to {self.__class__.__name__}: {self.name}")
            try:
                await self._create_connection()
                self._is_connected = True
            except Exception as e:
                self._logger.error(f"Failed to connect to {self.__class__.__name__} {self.name}: {e}")
                await self._cleanup_connections()
                raise

    async def disconnect(self) -> None:
        """Disconnect from the datastore - idempotent operation."""
        async with self._connection_lock:
            if not self._is_connected:
                return
            try:
                await self._cleanup_connections()
            finally:
                # Still mark as disconnected even if cleanup failed
                self._is_connected = False

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()
        return False
