"""
Valkey client with connection pooling and reconnection for fact publishing.
"""

import logging
import time
from typing import Optional

import valkey
from valkey.connection import ConnectionPool
from valkey.exceptions import ConnectionError, TimeoutError

from .config import ValkeyConfig, ValkeyConnectionError

logger = logging.getLogger(__name__)


class ValkeyClient:
    """
    Valkey client with connection pooling and automatic reconnection.

    Features:
    - Connection pooling with configurable pool size
    - Ping-based connection test
    - Exponential backoff between connection attempts
    """

    def __init__(self, config: Optional[ValkeyConfig] = None):
        """
        Initialize Valkey client with configuration.

        Args:
            config: ValkeyConfig instance, defaults to environment-based config
        """
        self.config = config or ValkeyConfig.from_env()
        self._client: Optional[valkey.Valkey] = None
        self._connection_pool: Optional[ConnectionPool] = None
        self._is_connected = False
        self._connection_attempts = 0
        self._reconnect_delay = 0.5
        self._max_reconnect_delay = 10.0

        logger.info(f"Initializing Valkey client: {self.config}")

    def connect(self) -> None:
        """
        Establish connection to Valkey server with retry logic.

        Raises:
            ValkeyConnectionError: If connection cannot be established after max attempts
        """
        if self._is_connected and self._client:
            return

        self._connection_attempts = 0
        max_attempts = self.config.max_connection_attempts

        while self._connection_attempts < max_attempts:
            try:
                self._connection_attempts += 1
                logger.info(f"Attempting Valkey connection (attempt {self._connection_attempts})")

                self._connection_pool = ConnectionPool(**self.config.to_connection_pool_kwargs())
                self._client = valkey.Valkey(connection_pool=self._connection_pool)
                self._test_connection()

                self._is_connected = True
                self._connection_attempts = 0
                logger.info("Successfully connected to Valkey server")
                return

            except (ConnectionError, TimeoutError, OSError, ValkeyConnectionError) as e:
                logger.warning(
                    f"Valkey connection attempt {self._connection_attempts} failed: {e}"
                )

                if self._connection_attempts >= max_attempts:
                    error_msg = (
                        f"Failed to connect to Valkey after {max_attempts} attempts. "
                        f"Last error: {e}"
                    )
                    logger.error(error_msg)
                    raise ValkeyConnectionError(error_msg) from e

                delay = min(self._reconnect_delay * (2 ** (self._connection_attempts - 1)),
                            self._max_reconnect_delay)
                logger.info(f"Retrying connection in {delay:.1f} seconds...")
                time.sleep(delay)

    def disconnect(self) -> None:
        """Gracefully disconnect from Valkey server."""
        if self._connection_pool:
            try:
                self._connection_pool.disconnect()
                logger.info("Disconnected from Valkey server")
            finally:
                self._connection_pool = None
                self._client = None
                self._is_connected = False

    def _test_connection(self) -> None:
        if not self._client:
            raise ValkeyConnectionError("Client not initialized")

        try:
            result = self._client.ping()
        except (ConnectionError, TimeoutError) as e:
            raise ValkeyConnectionError(f"Connection test failed: {e}") from e
        if not result:
            raise ValkeyConnectionError("Ping returned False")

    def ensure_connection(self) -> None:
        """Connect if no connection is open."""
        if not self.is_connected:
            self.connect()

    @property
    def is_connected(self) -> bool:
        return self._is_connected and self._client is not None

    @property
    def client(self) -> valkey.Valkey:
        """
        Get the underlying Valkey client.

        Raises:
            ValkeyConnectionError: If client is not connected
        """
        if not self._client or not self._is_connected:
            raise ValkeyConnectionError("Client not connected. Call connect() first.")
        return self._client

    def publish(self, channel: str, message: str) -> int:
        """
        Publish a message on a channel.

        Returns:
            int: Number of subscribers that received the message
        """
        self.ensure_connection()
        try:
            return int(self.client.publish(channel, message))
        except (ConnectionError, TimeoutError):
            # Reconnect on the next publish
            self._is_connected = False
            raise

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.disconnect()
