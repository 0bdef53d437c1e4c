"""
MySQL datastore implementation.
"""
from typing import Dict, List, Optional, Any

from .base_datastore import BaseDatastore
from ..config.deploy_config import DatabaseConfig


class MySQLDatastore(BaseDatastore):
    """
    MySQL datastore implementation using aiomysql.

    Features:
    - Connection pooling with aiomysql
    - Lazy loading of aiomysql driver
    - Parameter-bound read queries
    """

    def __init__(self, name: str, connection_config: DatabaseConfig):
        super().__init__(name, connection_config)

    async def _create_connection(self) -> None:
        """Create MySQL connection pool using aiomysql"""
        import aiomysql

        self._connection_pool = await aiomysql.create_pool(
            host=self.connection_config.host,
            port=self.connection_config.port or 3306,
            user=self.connection_config.user,
            password=self.connection_config.password,
            db=self.connection_config.database,
            autocommit=True,
            charset='utf8mb4',
            minsize=self.connection_config.min_connections,
            maxsize=self.connection_config.max_connections
        )

    async def _cleanup_connections(self) -> None:
        """Clean up MySQL connection pool"""
        if self._connection_pool:
            self._connection_pool.close()
            await self._connection_pool.wait_closed()
            self._connection_pool = None

    async def execute_query(self, query: str, params: Optional[List[Any]] = None) -> List[Dict[str, Any]]:
        """Execute a SELECT and return rows as dictionaries"""
        if not self._is_connected or not self._connection_pool:
            raise RuntimeError(f"MySQL datastore {self.name} is not connected")

        self._logger.debug(f"Executing MySQL query: {' '.join(query.split())}")
        if params:
            self._logger.debug(f"Query parameters: {params}")

        async with self._connection_pool.acquire() as conn:
            async with conn.cursor() as cur:
                await cur.execute(query, params or [])
                columns = [desc[0] for desc in cur.description] if cur.description else []
                rows = await cur.fetchall()
                return [dict(zip(columns, row)) for row in rows]
