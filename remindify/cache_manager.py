"""Local caches of submitted tasks and processed images, kept as JSON files."""

from __future__ import annotations

import hashlib
import json
import logging
import os
import re
import threading
from collections import Counter
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, TypeVar

from remindify.models import ParsedReminder

TASK_CACHE_FILE = "submitted_tasks.json"
IMAGE_CACHE_FILE = "image_hashes.json"
DEFAULT_CLEANUP_TTL = timedelta(days=30)
RECENT_WINDOW = timedelta(hours=24)

_TIME_PATTERN = re.compile(r"^(.*T\d{2}:\d{2}:\d{2})(?:\.(\d+))?(.*)$")

_Entry = TypeVar("_Entry")


def _now() -> datetime:
    return datetime.now().astimezone()


def _parse_time(value: Any, key: str) -> datetime:
    """Parse an RFC 3339 timestamp, accepting a trailing Z and any fraction length."""
    if not isinstance(value, str):
        raise ValueError(f"field {key!r} must be a timestamp string")
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    match = _TIME_PATTERN.match(text)
    if match is not None and match.group(2) is not None:
        fraction = match.group(2)[:6].ljust(6, "0")
        text = f"{match.group(1)}.{fraction}{match.group(3)}"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as err:
        raise ValueError(f"field {key!r} is not a valid timestamp: {value!r}") from err
    if parsed.tzinfo is None:
        parsed = parsed.astimezone()
    return parsed


def _take_str(data: Mapping[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValueError(f"field {key!r} must be a string")
    return value


def _format_duration(duration: timedelta) -> str:
    """Format a duration as hours, minutes and seconds, e.g. ``720h0m0s``."""
    total = duration.total_seconds()
    if total == 0:
        return "0s"
    sign = "-" if total < 0 else ""
    total = abs(total)
    hours, rest = divmod(int(total), 3600)
    minutes, whole_seconds = divmod(rest, 60)
    seconds = whole_seconds + (total - int(total))
    seconds_text = f"{seconds:.9f}".rstrip("0").rstrip(".")
    if hours:
        return f"{sign}{hours}h{minutes}m{seconds_text}s"
    if minutes:
        return f"{sign}{minutes}m{seconds_text}s"
    return f"{sign}{seconds_text}s"


def task_hash(reminder: ParsedReminder) -> str:
    """Return the SHA-256 hex digest identifying a reminder."""
    original = reminder.original
    data = f"{original.title}|{original.date}|{original.time}|{reminder.list}"
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


def image_hash(image_data: bytes) -> str:
    """Return the SHA-256 hex digest of image bytes."""
    return hashlib.sha256(image_data).hexdigest()


@dataclass
class TaskCache:
    """A task that has been submitted."""

    task_hash: str
    title: str = ""
    date: str = ""
    time: str = ""
    list: str = ""
    created_at: datetime | None = None
    microsoft_id: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> TaskCache:
        """Build from a decoded JSON object; raises ValueError on bad fields."""
        if not isinstance(data, Mapping):
            raise ValueError("task cache entry must be a JSON object")
        return cls(
            task_hash=_take_str(data, "task_hash"),
            title=_take_str(data, "title"),
            date=_take_str(data, "date"),
            time=_take_str(data, "time"),
            list=_take_str(data, "list"),
            created_at=_parse_time(data.get("created_at"), "created_at"),
            microsoft_id=_take_str(data, "microsoft_id"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the entry under its JSON names."""
        result: dict[str, Any] = {
            "task_hash": self.task_hash,
            "title": self.title,
            "date": self.date,
            "time": self.time,
            "list": self.list,
            "created_at": (self.created_at or _now()).isoformat(),
        }
        if self.microsoft_id:
            result["microsoft_id"] = self.microsoft_id
        return result


@dataclass
class ImageHashCache:
    """An image that has been processed."""

    image_hash: str
    task_hash: str = ""
    title: str = ""
    created_at: datetime | None = None
    processed_at: datetime | None = None
    success: bool = False
    file_path: str = ""
    size: int = 0
    process_time: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ImageHashCache:
        """Build from a decoded JSON object; raises ValueError on bad fields."""
        if not isinstance(data, Mapping):
            raise ValueError("image cache entry must be a JSON object")
        success = data.get("success", False)
        if not isinstance(success, bool):
            raise ValueError("field 'success' must be a boolean")
        size = data.get("size", 0)
        if isinstance(size, bool) or not isinstance(size, int):
            raise ValueError("field 'size' must be an integer")
        created_at = _parse_time(data.get("created_at"), "created_at")
        processed_raw = data.get("processed_at")
        processed_at = (
            created_at if processed_raw is None else _parse_time(processed_raw, "processed_at")
        )
        return cls(
            image_hash=_take_str(data, "image_hash"),
            task_hash=_take_str(data, "task_hash"),
            title=_take_str(data, "title"),
            created_at=created_at,
            processed_at=processed_at,
            success=success,
            file_path=_take_str(data, "file_path"),
            size=size,
            process_time=_take_str(data, "process_time"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the entry under its JSON names, leaving out empty optional fields."""
        created = self.created_at or _now()
        result: dict[str, Any] = {"image_hash": self.image_hash}
        if self.task_hash:
            result["task_hash"] = self.task_hash
        if self.title:
            result["title"] = self.title
        result["created_at"] = created.isoformat()
        result["processed_at"] = (self.processed_at or created).isoformat()
        result["success"] = self.success
        if self.file_path:
            result["file_path"] = self.file_path
        result["size"] = self.size
        if self.process_time:
            result["process_time"] = self.process_time
        return result


class CacheManager:
    """Keeps the submitted-task and processed-image caches in a directory."""

    def __init__(
        self,
        cache_dir: str | os.PathLike[str],
        logger: logging.Logger | None = None,
        *,
        cleanup_ttl: timedelta = DEFAULT_CLEANUP_TTL,
    ) -> None:
        self._cache_dir = os.fspath(cache_dir)
        self.cache_file = os.path.join(self._cache_dir, TASK_CACHE_FILE)
        self.image_cache_file = os.path.join(self._cache_dir, IMAGE_CACHE_FILE)
        self.logger = logger or logging.getLogger(__name__)
        self.cleanup_ttl = cleanup_ttl
        self._lock = threading.RLock()
        self._tasks: dict[str, TaskCache] = {}
        self._images: dict[str, ImageHashCache] = {}

        try:
            os.makedirs(self._cache_dir, exist_ok=True)
        except OSError as err:
            self.logger.warning("failed to create cache directory: %s", err)

        try:
            self._tasks = self._load(self.cache_file, TaskCache.from_dict, "task_hash")
            self.logger.info("loaded %d cached tasks", len(self._tasks))
        except (OSError, ValueError) as err:
            self.logger.warning("failed to load task cache: %s", err)

        try:
            self._images = self._load(
                self.image_cache_file, ImageHashCache.from_dict, "image_hash"
            )
            self.logger.info("loaded %d cached images", len(self._images))
        except (OSError, ValueError) as err:
            self.logger.warning("failed to load image cache: %s", err)

    @property
    def cache_dir(self) -> str:
        """Directory holding the cache files."""
        return self._cache_dir

    def _load(
        self,
        path: str,
        build: Callable[[Mapping[str, Any]], _Entry],
        key: str,
    ) -> dict[str, _Entry]:
        if not os.path.exists(path):
            return {}
        with open(path, encoding="utf-8") as handle:
            try:
                raw = json.load(handle)
            except ValueError as err:
                raise ValueError(f"failed to parse cache file {path}: {err}") from err
        if raw is None:
            return {}
        if not isinstance(raw, list):
            raise ValueError(f"cache file {path} must hold a JSON array")
        now = _now()
        entries: dict[str, _Entry] = {}
        for item in raw:
            entry = build(item)
            if now - entry.created_at <= self.cleanup_ttl:  # type: ignore[attr-defined]
                entries[getattr(entry, key)] = entry
        return entries

    @staticmethod
    def _write_atomic(path: str, records: list[dict[str, Any]]) -> None:
        temp_path = path + ".tmp"
        data = json.dumps(records, indent=2, ensure_ascii=False)
        try:
            with open(temp_path, "w", encoding="utf-8") as handle:
                handle.write(data)
            os.replace(temp_path, path)
        except OSError:
            try:
                os.remove(temp_path)
            except OSError:
                pass
            raise

    def _save_tasks(self) -> None:
        with self._lock:
            records = [task.to_dict() for task in self._tasks.values()]
        try:
            self._write_atomic(self.cache_file, records)
        except OSError as err:
            self.logger.warning("failed to save task cache: %s", err)

    def _save_images(self) -> None:
        with self._lock:
            records = [image.to_dict() for image in self._images.values()]
        try:
            self._write_atomic(self.image_cache_file, records)
        except OSError as err:
            self.logger.warning("failed to save image cache: %s", err)

    def generate_task_hash(self, reminder: ParsedReminder) -> str:
        """Return the hash of a reminder's title, date, time and list."""
        return task_hash(reminder)

    def generate_image_hash(self, image_data: bytes) -> str:
        """Return the SHA-256 hex digest of the image bytes."""
        return image_hash(image_data)

    def is_duplicate(self, reminder: ParsedReminder) -> bool:
        """Return whether the reminder has been submitted already."""
        key = task_hash(reminder)
        with self._lock:
            return key in self._tasks

    def get_duplicate(self, reminder: ParsedReminder) -> TaskCache | None:
        """Return the cached submission of the reminder, if any."""
        key = task_hash(reminder)
        with self._lock:
            return self._tasks.get(key)

    def is_image_processed(self, image_data: bytes) -> bool:
        """Return whether the image has been processed already."""
        key = image_hash(image_data)
        with self._lock:
            return key in self._images

    def get_image_cache(self, image_data: bytes) -> ImageHashCache | None:
        """Return the cached processing record of the image, if any."""
        key = image_hash(image_data)
        with self._lock:
            return self._images.get(key)

    def add_processed_image(
        self,
        image_data: bytes,
        task_hash: str,
        title: str,
        success: bool,
        process_time: str,
        file_path: str,
    ) -> ImageHashCache:
        """Record a processed image and save the image cache."""
        key = image_hash(image_data)
        now = _now()
        entry = ImageHashCache(
            image_hash=key,
            task_hash=task_hash,
            title=title,
            created_at=now,
            processed_at=now,
            success=success,
            file_path=file_path,
            size=len(image_data),
            process_time=process_time,
        )
        with self._lock:
            self._images[key] = entry
        self._save_images()
        self.logger.info(
            "image added to cache: %s (hash: %s, size: %d bytes)", title, key[:8], len(image_data)
        )
        return entry

    def add_submitted_task(self, reminder: ParsedReminder, microsoft_id: str = "") -> TaskCache:
        """Record a submitted reminder and save the task cache."""
        key = task_hash(reminder)
        original = reminder.original
        entry = TaskCache(
            task_hash=key,
            title=original.title,
            date=original.date,
            time=original.time,
            list=reminder.list,
            created_at=_now(),
            microsoft_id=microsoft_id,
        )
        with self._lock:
            self._tasks[key] = entry
        self._save_tasks()
        self.logger.info("task added to cache: %s (hash: %s)", original.title, key[:8])
        return entry

    def cleanup_expired_tasks(self) -> int:
        """Drop tasks and images older than the TTL; return how many tasks went."""
        now = _now()
        with self._lock:
            expired = [
                key
                for key, task in self._tasks.items()
                if now - task.created_at > self.cleanup_ttl  # type: ignore[operator]
            ]
            for key in expired:
                del self._tasks[key]
        if expired:
            self.logger.info("removed %d expired cached tasks", len(expired))
            self._save_tasks()
        self.cleanup_expired_images()
        return len(expired)

    def cleanup_expired_images(self) -> int:
        """Drop images older than the TTL; return how many went."""
        now = _now()
        with self._lock:
            expired = [
                key
                for key, image in self._images.items()
                if now - image.created_at > self.cleanup_ttl  # type: ignore[operator]
            ]
            for key in expired:
                del self._images[key]
        if expired:
            self.logger.info("removed %d expired cached images", len(expired))
            self._save_images()
        return len(expired)

    def get_cache_stats(self) -> dict[str, Any]:
        """Return counts of cached tasks, by list and recent, plus image statistics."""
        now = _now()
        with self._lock:
            tasks = list(self._tasks.values())
        stats: dict[str, Any] = {
            "total_tasks": len(tasks),
            "cache_file": self.cache_file,
            "cleanup_ttl": _format_duration(self.cleanup_ttl),
            "tasks_by_list": dict(Counter(task.list for task in tasks)),
            "recent_tasks_24h": sum(
                1 for task in tasks if now - task.created_at <= RECENT_WINDOW  # type: ignore[operator]
            ),
        }
        stats.update(self.get_image_cache_stats())
        return stats

    def get_image_cache_stats(self) -> dict[str, Any]:
        """Return counts of cached images by outcome and recency, and their total size."""
        now = _now()
        with self._lock:
            images = list(self._images.values())
        successful = sum(1 for image in images if image.success)
        total_size = sum(image.size for image in images)
        return {
            "total_images": len(images),
            "image_cache_file": self.image_cache_file,
            "cleanup_ttl": _format_duration(self.cleanup_ttl),
            "successful_processed": successful,
            "failed_processed": len(images) - successful,
            "recent_images_24h": sum(
                1 for image in images if now - image.created_at <= RECENT_WINDOW  # type: ignore[operator]
            ),
            "total_size_mb": total_size / (1024 * 1024),
        }

    def clear_cache(self) -> None:
        """Empty both caches and delete their files."""
        with self._lock:
            self._tasks = {}
        try:
            os.remove(self.cache_file)
        except FileNotFoundError:
            pass
        self.clear_image_cache()
        self.logger.info("all caches cleared")

    def clear_image_cache(self) -> None:
        """Empty the image cache and delete its file."""
        with self._lock:
            self._images = {}
            try:
                os.remove(self.image_cache_file)
            except FileNotFoundError:
                pass
        self.logger.info("image cache cleared")