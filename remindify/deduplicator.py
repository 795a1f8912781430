"""Duplicate detection for reminders and images backed by the local cache."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from remindify.cache_manager import CacheManager, image_hash, task_hash
from remindify.models import ParsedReminder

logger = logging.getLogger(__name__)

_TIME_FORMAT = "%Y-%m-%d %H:%M"


@dataclass
class DeduplicationConfig:
    """Which duplicate checks are switched on."""

    enabled: bool = True
    enable_local_cache: bool = True
    enable_remote_query: bool = False


@dataclass
class DeduplicationResult:
    """Outcome of a duplicate check."""

    is_duplicate: bool = False
    duplicate_type: str = "none"
    cache_hit: bool = False
    skip_reason: str = ""
    suggested_action: str = "create"
    image_hash: str = ""
    previous_result: Any = None


class Deduplicator:
    """Checks reminders and images against the local cache."""

    def __init__(
        self,
        config: DeduplicationConfig | None = None,
        cache_manager: CacheManager | None = None,
    ) -> None:
        self.config = config if config is not None else DeduplicationConfig()
        self.cache_manager = cache_manager

    def _local_cache(self) -> CacheManager | None:
        if self.config.enable_local_cache:
            return self.cache_manager
        return None

    def check_image_duplicate(self, image_data: bytes) -> DeduplicationResult:
        """Return whether the image has been processed before and what to do."""
        if not self.config.enabled:
            return DeduplicationResult()

        short_hash = image_hash(image_data)[:8]
        logger.debug("checking image for duplicates, hash %s", short_hash)

        cache = self._local_cache()
        if cache is not None:
            entry = cache.get_image_cache(image_data)
            if entry is not None:
                processed = entry.processed_at.strftime(_TIME_FORMAT) if entry.processed_at else ""
                result = DeduplicationResult(
                    is_duplicate=True,
                    duplicate_type="image",
                    cache_hit=True,
                    suggested_action="skip",
                    image_hash=short_hash,
                )
                if entry.success and entry.title:
                    result.skip_reason = (
                        f"图片已成功处理过，标题: {entry.title} (处理时间: {processed})"
                    )
                elif not entry.success:
                    result.skip_reason = f"图片之前处理失败 (失败时间: {processed}), 建议重新处理"
                    result.suggested_action = "create"
                else:
                    result.skip_reason = "本地缓存中存在相同图片"
                return result
            logger.debug("image %s not found in local cache", short_hash)

        return DeduplicationResult(image_hash=short_hash)

    def record_processed_image(
        self,
        image_data: bytes,
        task_hash: str,
        title: str,
        success: bool,
        process_time: str,
        file_path: str,
    ) -> None:
        """Record a processed image when the local cache is in use."""
        cache = self._local_cache()
        if cache is not None:
            cache.add_processed_image(
                image_data, task_hash, title, success, process_time, file_path
            )

    def check_duplicate(self, reminder: ParsedReminder) -> DeduplicationResult:
        """Return whether the reminder has been submitted before and what to do."""
        if not self.config.enabled:
            return DeduplicationResult()

        original = reminder.original
        logger.debug(
            "checking for duplicates: %s (list: %s, date: %s, time: %s)",
            original.title,
            reminder.list,
            original.date,
            original.time,
        )

        cache = self._local_cache()
        if cache is not None:
            short_hash = task_hash(reminder)[:8]
            if cache.get_duplicate(reminder) is not None:
                logger.info("duplicate task in local cache: %s (%s)", original.title, short_hash)
                return DeduplicationResult(
                    is_duplicate=True,
                    duplicate_type="cache",
                    cache_hit=True,
                    skip_reason="本地缓存中存在相同任务",
                    suggested_action="skip",
                )
            logger.debug("task %s not found in local cache", short_hash)

        return DeduplicationResult()

    def record_submitted_task(self, reminder: ParsedReminder, microsoft_id: str = "") -> None:
        """Record a submitted reminder when the local cache is in use."""
        cache = self._local_cache()
        if cache is not None:
            cache.add_submitted_task(reminder, microsoft_id)

    def get_stats(self) -> dict[str, Any]:
        """Return which checks are on and, with a cache, how many tasks it holds."""
        stats: dict[str, Any] = {
            "deduplication_enabled": self.config.enabled,
            "local_cache_enabled": self.config.enable_local_cache,
        }
        if self.cache_manager is not None:
            cache_stats = self.cache_manager.get_cache_stats()
            stats["cached_tasks"] = cache_stats["total_tasks"]
            stats["recent_tasks_24h"] = cache_stats["recent_tasks_24h"]
        return stats

    def cleanup(self) -> int:
        """Drop expired cache entries; return how many tasks were removed."""
        if self.cache_manager is None:
            return 0
        return self.cache_manager.cleanup_expired_tasks()