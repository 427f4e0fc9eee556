# backend/staffbook/redis_client.py

from redis import Redis

from .config import get_settings

_url = get_settings().redis_url

# None when REDIS_URL is not configured; event emission is then disabled.
redis_client: Redis | None = (
    Redis.from_url(_url, decode_responses=True, socket_timeout=2) if _url else None
)
