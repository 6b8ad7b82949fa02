"""Redis connection settings for the arq job queue."""

from arq import create_pool
from arq.connections import ArqRedis, RedisSettings

from app.config import Settings, settings


def get_redis_settings(config: Settings = settings) -> RedisSettings:
    """
    Build arq Redis settings from application settings.

    Returns:
        RedisSettings for pools and workers
    """
    return RedisSettings(
        host=config.redis_host,
        port=config.redis_port,
        username=config.redis_username,
        password=config.redis_password,
        ssl=config.redis_ssl,
        conn_timeout=5,
        conn_retries=5,
        conn_retry_delay=1,
    )


async def create_redis_pool(config: Settings = settings) -> ArqRedis:
    """Open an arq Redis pool used to enqueue and cancel jobs."""
    return await create_pool(
        get_redis_settings(config),
        default_queue_name=config.arq_queue_name,
    )

