"""Client storage for the auth token and user record."""
import json
import logging

import redis.asyncio as redis
from pydantic import BaseModel, ValidationError

from slotclient.config import settings


logger = logging.getLogger(__name__)


class User(BaseModel):
    """Logged-in user record kept alongside the token."""

    login: str
    name: str | None = None


class ClientStorage:
    """Redis-backed key/value storage scoped to one client installation."""

    # Key prefixes
    TOKEN_PREFIX = "client:auth_token:"
    USER_PREFIX = "client:user:"

    TTL = settings.storage_ttl_seconds

    def __init__(self, redis_url: str | None = None, namespace: str = "default"):
        self._url = redis_url or settings.redis_url
        self._namespace = namespace
        self._client: redis.Redis | None = None

    async def connect(self) -> None:
        """Connect to Redis."""
        if self._client is None:
            self._client = redis.from_url(self._url, decode_responses=True)

    async def close(self) -> None:
        """Close Redis connection."""
        if self._client:
            await self._client.close()
            self._client = None

    @property
    def client(self) -> redis.Redis:
        """Get Redis client, raise if not connected."""
        if self._client is None:
            raise RuntimeError("Redis not connected")
        return self._client

    def _key(self, prefix: str) -> str:
        return f"{prefix}{self._namespace}"

    async def get_token(self) -> str | None:
        return await self.client.get(self._key(self.TOKEN_PREFIX))

    async def save_token(self, token: str) -> None:
        await self.client.setex(self._key(self.TOKEN_PREFIX), self.TTL, token)

    async def clear_token(self) -> None:
        await self.client.delete(self._key(self.TOKEN_PREFIX))

    async def get_user(self) -> User | None:
        """
        Load the stored user record.

        A corrupt record is treated as absent, matching a fresh install.
        """
        cached = await self.client.get(self._key(self.USER_PREFIX))
        if cached is None:
            return None
        try:
            return User.model_validate(json.loads(cached))
        except (ValueError, ValidationError) as e:
            logger.warning("Discarding unreadable user record: %s", e)
            return None

    async def save_user(self, user: User | None) -> None:
        """Save the user record, or clear it when None."""
        key = self._key(self.USER_PREFIX)
        if user is None:
            await self.client.delete(key)
            return
        await self.client.setex(key, self.TTL, json.dumps(user.model_dump()))
