"""Celery tasks for the approved-task expiry sweep."""

import asyncio
import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Import all models to ensure they're registered before creating session
import models  # noqa: F401

from app.celery_app import celery_app
from app.core.config import settings
from app.domains.task.service import TaskService
from app.services.attachment_service import AttachmentLifecycleManager
from app.services.realtime import RealtimeBus
from app.services.storage_service import StorageService

logger = logging.getLogger(__name__)


@celery_app.task(name="app.tasks.expiry_tasks.sweep_expired_tasks", bind=True)
def sweep_expired_tasks(self) -> dict[str, Any]:
    """Delete tasks whose approval is older than ``task_expiry_days``.

    This is the scheduled entry point run daily via Celery Beat. Individual
    task failures are recorded in the result, never raised.

    Returns:
        Dictionary with the sweep cutoff and the deleted/failed task ids
    """
    logger.info(f"🚀 Starting expiry sweep (Task ID: {self.request.id})")

    try:
        result = asyncio.run(_sweep_expired_async())
        logger.info(
            f"✅ Expiry sweep completed: {len(result['deleted'])} deleted, "
            f"{len(result['failed'])} failed"
        )
        return result

    except Exception as e:
        logger.error(f"❌ Expiry sweep failed: {str(e)}")
        raise self.retry(exc=e, countdown=60 * 5, max_retries=3)


async def _sweep_expired_async() -> dict[str, Any]:
    # A worker has no sockets attached; the bus only keeps the service contract
    engine = create_async_engine(settings.database_url, pool_pre_ping=True)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    try:
        async with session_factory() as session:
            service = TaskService(
                session,
                RealtimeBus(),
                AttachmentLifecycleManager(StorageService()),
            )
            report = await service.sweep_expired()
            return {
                "cutoff": report.cutoff.isoformat(),
                "deleted": [str(task_id) for task_id in report.deleted],
                "failed": [str(task_id) for task_id in report.failed],
            }
    finally:
        await engine.dispose()
