"""Durable delayed-job scheduling backed by arq."""

from datetime import datetime
from typing import Any, Protocol
from uuid import uuid4

import structlog
from arq.connections import ArqRedis
from arq.constants import default_queue_name, job_key_prefix
from arq.jobs import Job, JobStatus
from redis.exceptions import RedisError

from app.core.exceptions import SchedulingFailure

logger = structlog.get_logger(__name__)


class JobScheduler(Protocol):
    """Runs a named task at or after a given time, at least once."""

    async def schedule_at(self, function_name: str, run_at: datetime, **kwargs: Any) -> str:
        """Register ``function_name(**kwargs)`` to run at ``run_at``; return a job handle."""
        ...

    async def cancel(self, job_id: str) -> bool:
        """Remove a pending job; False if it already ran, is running or never existed."""
        ...


class ArqJobScheduler:
    """JobScheduler that enqueues deferred arq jobs in Redis."""

    def __init__(self, pool: ArqRedis, queue_name: str = default_queue_name):
        """Initialize with an arq pool and the queue the worker consumes."""
        self.pool = pool
        self.queue_name = queue_name

    async def schedule_at(self, function_name: str, run_at: datetime, **kwargs: Any) -> str:
        """
        Enqueue a deferred job.

        Args:
            function_name: Worker function to invoke
            run_at: Earliest execution time
            **kwargs: Keyword arguments passed to the function

        Returns:
            The arq job id

        Raises:
            SchedulingFailure: If Redis rejects the job
        """
        job_id = uuid4().hex
        try:
            job = await self.pool.enqueue_job(
                function_name,
                _job_id=job_id,
                _queue_name=self.queue_name,
                _defer_until=run_at,
                **kwargs,
            )
        except (RedisError, OSError) as e:
            logger.error("job_enqueue_failed", function=function_name, error=str(e))
            raise SchedulingFailure(f"Could not enqueue {function_name}: {e}") from e

        if job is None:
            raise SchedulingFailure(f"Job {job_id} already exists")

        logger.info(
            "job_scheduled",
            job_id=job.job_id,
            function=function_name,
            run_at=run_at.isoformat(),
        )
        return job.job_id

    async def cancel(self, job_id: str) -> bool:
        """
        Remove a deferred job from the queue.

        Args:
            job_id: Handle returned by ``schedule_at``

        Returns:
            True if a pending job was removed

        Raises:
            SchedulingFailure: If Redis cannot be reached
        """
        job = Job(job_id, self.pool, _queue_name=self.queue_name)
        try:
            status = await job.status()
            if status not in (JobStatus.deferred, JobStatus.queued):
                logger.info("job_not_pending", job_id=job_id, status=status.value)
                return False

            removed = await self.pool.zrem(self.queue_name, job_id)
            if removed:
                await self.pool.delete(job_key_prefix + job_id)
        except (RedisError, OSError) as e:
            logger.error("job_cancel_failed", job_id=job_id, error=str(e))
            raise SchedulingFailure(f"Could not cancel job {job_id}: {e}") from e

        return bool(removed)
