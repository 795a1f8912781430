"""Turning screenshots into reminders through a Dify workflow."""

from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass, field
from typing import Protocol

from remindify.client import DifyAPIError, DifyClient
from remindify.models import DifyConfig, DifyResponse, ParsedTaskInfo, Priority, Reminder
from remindify.response_parser import ResponseParser

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 10 * 1024 * 1024
SUPPORTED_FORMATS = ("png", "jpg", "jpeg", "bmp", "gif")

_IMAGE_HEADERS = (
    b"\x89PNG",
    b"\xff\xd8\xff",
    b"BM",
    b"GIF8",
)

_HIGH_PRIORITY = frozenset({"high", "高", "紧急"})
_LOW_PRIORITY = frozenset({"low", "低", "一般"})


class ScreenshotError(Exception):
    """Raised when a screenshot cannot be turned into a reminder."""


class ImageClient(Protocol):
    def process_image(self, image_data: bytes, file_name: str, user_id: str) -> DifyResponse:
        ...


class ReminderParser(Protocol):
    def parse_reminder_response(self, response: str) -> ParsedTaskInfo:
        ...


@dataclass
class ScreenshotInput:
    """An image to process, with its file name and format."""

    data: bytes = b""
    file_name: str = ""
    format: str = ""


@dataclass
class ProcessorInfo:
    """Description of a screenshot processor."""

    name: str
    version: str
    supported_formats: list[str] = field(default_factory=list)
    max_file_size: int = 0


def generate_request_id() -> str:
    """Return a new identifier for one processing request."""
    return f"scr_{time.time_ns()}"


def extract_image_format(file_name: str) -> str:
    """Return the lower-case extension without its dot, or ``"unknown"``."""
    base = file_name.replace(os.sep, "/").rsplit("/", 1)[-1]
    dot = base.rfind(".")
    if dot < 0:
        return "unknown"
    return base[dot + 1 :].lower()


def _priority_from(value: str) -> Priority:
    if value in _HIGH_PRIORITY:
        return Priority.HIGH
    if value in _LOW_PRIORITY:
        return Priority.LOW
    return Priority.MEDIUM


class ScreenshotProcessor:
    """Sends screenshots to Dify and parses the reply into a Reminder."""

    def __init__(
        self,
        client: ImageClient,
        parser: ReminderParser | None = None,
        config: DifyConfig | None = None,
    ) -> None:
        self.client = client
        self.parser = parser if parser is not None else ResponseParser()
        self.config = config

    @classmethod
    def from_config(cls, config: DifyConfig) -> ScreenshotProcessor:
        """Build a processor with a Dify client for the given settings."""
        try:
            config.validate()
        except ValueError as err:
            raise ScreenshotError(f"invalid dify config: {err}") from err
        return cls(DifyClient(config), ResponseParser(), config)

    def process_screenshot(self, screenshot: ScreenshotInput | None) -> Reminder:
        """Validate the screenshot, run it through Dify and return the reminder."""
        started = time.monotonic()
        request_id = generate_request_id()

        try:
            self.validate_input(screenshot)
        except ScreenshotError as err:
            raise ScreenshotError(f"input validation failed: {err}") from err
        assert screenshot is not None

        logger.debug(
            "[%s] processing screenshot %s (%d bytes)",
            request_id,
            screenshot.file_name,
            len(screenshot.data),
        )

        try:
            reply = self.client.process_image(screenshot.data, screenshot.file_name, request_id)
        except (DifyAPIError, ValueError) as err:
            raise ScreenshotError(f"dify processing failed: {err}") from err

        response_text = reply.text()
        if not response_text:
            raise ScreenshotError("empty response from Dify")
        logger.debug("[%s] Dify reply: %.500s", request_id, response_text)

        try:
            parsed = self.parser.parse_reminder_response(response_text)
        except ValueError as err:
            raise ScreenshotError(f"response parsing failed: {err}") from err

        reminder = self._to_reminder(parsed)
        logger.debug("[%s] done in %.3fs", request_id, time.monotonic() - started)
        return reminder

    def validate_input(self, screenshot: ScreenshotInput | None) -> None:
        """Raise ScreenshotError unless the screenshot is a supported, sane image."""
        if screenshot is None:
            raise ScreenshotError("screenshot input is None")
        if not screenshot.data:
            raise ScreenshotError("screenshot data is empty")
        if len(screenshot.data) > MAX_FILE_SIZE:
            raise ScreenshotError(
                f"file size {len(screenshot.data)} exceeds maximum allowed size {MAX_FILE_SIZE}"
            )
        if not self.is_supported_format(screenshot.format):
            raise ScreenshotError(f"unsupported image format: {screenshot.format}")
        try:
            self.validate_image_content(screenshot.data)
        except ScreenshotError as err:
            raise ScreenshotError(f"image content validation failed: {err}") from err

    def validate_image_content(self, data: bytes) -> None:
        """Raise ScreenshotError unless the data starts with a known image header."""
        if len(data) < 8:
            raise ScreenshotError("image data too short to be valid")
        if not any(data.startswith(header) for header in _IMAGE_HEADERS):
            raise ScreenshotError("invalid image format")

    def is_supported_format(self, image_format: str) -> bool:
        """Return whether the format name is one this processor accepts."""
        return image_format.lower() in SUPPORTED_FORMATS

    def get_processor_info(self) -> ProcessorInfo:
        """Return the processor's name, version and limits."""
        return ProcessorInfo(
            name="DifyScreenshotProcessor",
            version="1.0.0",
            supported_formats=list(SUPPORTED_FORMATS),
            max_file_size=MAX_FILE_SIZE,
        )

    @staticmethod
    def _to_reminder(info: ParsedTaskInfo) -> Reminder:
        return Reminder(
            title=info.title,
            description=info.description,
            date=info.date,
            time=info.time,
            remind_before=info.remind_before or "15m",
            priority=_priority_from(info.priority),
            list=info.list or "Default",
        )