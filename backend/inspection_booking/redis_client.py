from redis import Redis

from .config import settings

# connects lazily on first command
redis_client = Redis.from_url(
    settings.redis_url,
    decode_responses=True,
    socket_timeout=2.0,
    socket_connect_timeout=2.0,
)


# Dependency for FastAPI
def get_redis() -> Redis:
    return redis_client
