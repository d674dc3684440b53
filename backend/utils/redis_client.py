"""
Redis connection helper (asyncio).
"""
from functools import lru_cache
from typing import Optional

import redis.asyncio as redis

from config import get_settings
from utils.logger import get_logger

log = get_logger(__name__)


@lru_cache
def get_redis() -> redis.Redis:
    cfg = get_settings()
    return redis.Redis(
        host=cfg.redis_host,
        port=cfg.redis_port,
        db=cfg.redis_db,
        password=cfg.redis_password or None,
        decode_responses=True,   # store strings not bytes
        health_check_interval=30,
    )


async def test_connection(client: Optional[redis.Redis] = None) -> bool:
    client = client if client is not None else get_redis()
    try:
        pong = await client.ping()
        if pong:
            log.info("✅ Redis connection successful!")
            return True
    except Exception as e:
        log.error(f"❌ Redis connection failed: {e}", exc_info=True)
    return False
