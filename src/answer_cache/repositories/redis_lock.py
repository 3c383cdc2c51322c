"""Redis implementation of LockStore."""

import redis

from answer_cache.config import get_redis_client

# Only the owner may delete; a lock that expired and was re-acquired by
# another worker must survive the late release of the first one.
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


class RedisLockStore:
    """SET NX EX lock with owner-checked release."""

    def __init__(self, redis_client: redis.Redis | None = None) -> None:
        self._client = redis_client or get_redis_client()
        self._release = self._client.register_script(_RELEASE_SCRIPT)

    @classmethod
    def create(cls) -> "RedisLockStore":
        return cls()

    def acquire(self, key: str, owner: str, ttl: int) -> bool:
        return bool(self._client.set(key, owner, nx=True, ex=ttl))

    def release(self, key: str, owner: str) -> bool:
        return int(self._release(keys=[key], args=[owner])) > 0
