"""Redis connection handle shared by a process."""

from typing import Optional

from redis.asyncio import Redis


class RedisConnection:
    """Lazily created Redis client, one per process.

    The handle is built once at startup and passed to every component that
    needs Redis, instead of living in a module-level global.
    """

    def __init__(self, url: str) -> None:
        """Initialize the handle without connecting.

        Args:
            url: Redis connection URL.
        """
        self.url = url
        self._client: Optional[Redis] = None

    @property
    def client(self) -> Redis:
        """Get or create the Redis client instance.

        Returns:
            Redis: The async Redis client.
        """
        if self._client is None:
            self._client = Redis.from_url(self.url, decode_responses=True)
        return self._client

    async def close(self) -> None:
        """Close the Redis client connection.

        Should be called during process shutdown.
        """
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def check_health(self) -> bool:
        """Check if Redis is available and responding.

        Returns:
            bool: True if Redis is healthy, False otherwise.
        """
        try:
            await self.client.ping()
            return True
        except Exception:
            return False
