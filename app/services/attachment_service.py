"""Attachment lifecycle: finds files that no longer have an owner and deletes them."""

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from models.activity import Activity, ActivityType
from models.task import Task

from app.services.storage_service import StorageService

logger = logging.getLogger(__name__)


@dataclass
class BlobDeletionReport:
    """Outcome of a best-effort batch delete."""

    deleted: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)


def _unique(urls: Iterable[str | None]) -> list[str]:
    seen: dict[str, None] = {}
    for url in urls:
        if url:
            seen.setdefault(url, None)
    return list(seen)


def attachment_urls(attachments: Iterable[dict] | None) -> list[str]:
    return _unique(att.get("url") for att in attachments or [])


def removed_attachment_urls(before: Iterable[dict] | None, after: Iterable[dict] | None) -> list[str]:
    """URLs present in ``before`` and absent from ``after``."""
    remaining = set(attachment_urls(after))
    return [url for url in attachment_urls(before) if url not in remaining]


def task_file_urls(tasks: Iterable[Task]) -> list[str]:
    urls: list[str] = []
    for task in tasks:
        urls.extend(attachment_urls(task.attachments))
    return _unique(urls)


def activity_file_urls(activities: Iterable[Activity]) -> list[str]:
    return _unique(
        (activity.metadata_ or {}).get("file_url")
        for activity in activities
        if activity.type == ActivityType.UPLOAD.value
    )


class AttachmentLifecycleManager:
    """Deletes blobs in parallel; individual failures are collected and logged."""

    def __init__(self, storage: StorageService):
        self.storage = storage

    async def purge(self, urls: Iterable[str]) -> BlobDeletionReport:
        report = BlobDeletionReport()
        targets = _unique(urls)
        if not targets:
            return report

        results = await asyncio.gather(
            *(self.storage.delete_file(url) for url in targets), return_exceptions=True
        )
        for url, result in zip(targets, results):
            if isinstance(result, BaseException):
                report.failed[url] = str(result)
                logger.error(f"❌ Failed to delete blob {url}: {result}")
            elif result:
                report.deleted.append(url)
            else:
                report.skipped.append(url)

        logger.info(
            f"Blob purge finished: {len(report.deleted)} deleted, "
            f"{len(report.skipped)} skipped, {len(report.failed)} failed"
        )
        return report

    async def purge_replaced(self, before, after) -> BlobDeletionReport:
        return await self.purge(removed_attachment_urls(before, after))

    async def purge_for_tasks(
        self, tasks: Iterable[Task], activities: Iterable[Activity]
    ) -> BlobDeletionReport:
        tasks = list(tasks)
        activities = list(activities)
        return await self.purge(task_file_urls(tasks) + activity_file_urls(activities))
