"""Turning text and images into reminders through the Dify API."""

from __future__ import annotations

import json
import logging
import re
import time
from datetime import datetime
from typing import Protocol

from remindify.client import DifyAPIError
from remindify.models import (
    DifyResponse,
    ParsedTaskInfo,
    Priority,
    ProcessingOptions,
    ProcessingResponse,
    Reminder,
    ValidationResult,
)

logger = logging.getLogger(__name__)

WORKFLOW_CONFIDENCE = 0.9
NO_TASK_MARKER = "未识别到任务信息"

_DIGITS = frozenset("0123456789")
_DATE_CHARS = _DIGITS | {"-"}

_WS = "[ \t\n\f\r]"
_RANGE_PATTERN = re.compile(
    rf"^([0-9]{{1,2}}:[0-9]{{2}}){_WS}*[-~到至]{_WS}*([0-9]{{1,2}}:[0-9]{{2}}){_WS}*\Z"
)
_CLOCK_PATTERN = re.compile(r"([0-9]{1,2}):([0-9]{2})\Z")

_ESCAPES = (
    ('\\"', '"'),
    ("\\\\", "\\"),
    ("\\n", "\n"),
    ("\\t", "\t"),
    ("\\r", "\r"),
    ("\\f", "\f"),
    ("\\b", "\b"),
)

_HIGH_PRIORITY = frozenset({"high", "高", "紧急"})
_LOW_PRIORITY = frozenset({"low", "低", "一般"})


class ProcessingError(Exception):
    """Raised when content cannot be processed; carries the failed response."""

    def __init__(self, message: str, response: ProcessingResponse | None = None) -> None:
        super().__init__(message)
        self.response = response


class ContentClient(Protocol):
    def process_text(self, text: str, user_id: str) -> DifyResponse:
        ...

    def process_image(self, image_data: bytes, file_name: str, user_id: str) -> DifyResponse:
        ...


def is_valid_date(date_str: str) -> bool:
    """Return whether the text has the YYYY-MM-DD shape."""
    if len(date_str) != 10 or date_str[4] != "-" or date_str[7] != "-":
        return False
    return all(char in _DATE_CHARS for char in date_str)


def is_valid_time_format(time_str: str) -> bool:
    """Return whether the text is a clock time H:MM or HH:MM within a day."""
    match = _CLOCK_PATTERN.match(time_str)
    if match is None:
        return False
    hour, minute = int(match.group(1)), int(match.group(2))
    return 0 <= hour <= 23 and 0 <= minute <= 59


def parse_time_from_range(time_str: str) -> str:
    """Return the start of a time range such as ``14:30 - 16:30``, else the text itself."""
    match = _RANGE_PATTERN.match(time_str)
    if match is not None:
        start, end = match.group(1), match.group(2)
        if is_valid_time_format(start) and is_valid_time_format(end):
            return start
    return time_str


def is_valid_time(time_str: str) -> bool:
    """Return whether the text is H:MM, HH:MM or a range starting with one."""
    time_str = parse_time_from_range(time_str)
    if not time_str.isascii() or len(time_str) not in (4, 5):
        return False
    if len(time_str) == 5 and time_str[2] == ":":
        colon = 2
    elif len(time_str) == 4 and time_str[1] == ":":
        colon = 1
    else:
        return False
    if time_str.count(":") != 1:
        return False
    hours, minutes = time_str[:colon], time_str[colon + 1 :]
    if not hours or not all(char in _DIGITS for char in hours):
        return False
    if len(minutes) != 2 or not all(char in _DIGITS for char in minutes):
        return False
    return 0 <= int(hours) <= 23 and 0 <= int(minutes) <= 59


def _unquote(json_str: str) -> str:
    if len(json_str) >= 2 and json_str[0] == '"' and json_str[-1] == '"':
        json_str = json_str[1:-1]
        for escaped, plain in _ESCAPES:
            json_str = json_str.replace(escaped, plain)
    return json_str


def _priority_from(value: str) -> Priority:
    if value in _HIGH_PRIORITY:
        return Priority.HIGH
    if value in _LOW_PRIORITY:
        return Priority.LOW
    return Priority.MEDIUM


def _error_message(validation: ValidationResult) -> str:
    if validation.is_valid:
        return ""
    if validation.error_type == "no_task_detected":
        return "内容中未识别到任务信息"
    return validation.message


class Processor:
    """Sends content to Dify, checks the parsed task and builds a reminder."""

    def __init__(
        self,
        client: ContentClient,
        user_id: str,
        options: ProcessingOptions | None = None,
    ) -> None:
        self.client = client
        self.user_id = user_id
        self.options = options if options is not None else ProcessingOptions()

    def process_image(self, image_data: bytes, file_name: str = "") -> ProcessingResponse:
        """Process an image; raises ProcessingError carrying the failed response."""
        started = time.monotonic()
        logger.debug("processing image %s (%d bytes)", file_name, len(image_data))
        if not image_data:
            raise ProcessingError(
                "image data is empty",
                ProcessingResponse(
                    success=False,
                    error_message="图片数据为空",
                    processing_time=time.monotonic() - started,
                ),
            )
        if not file_name:
            file_name = f"clipboard_{datetime.now():%Y%m%d_%H%M%S}.png"

        try:
            reply = self.client.process_image(image_data, file_name, self.user_id)
        except (DifyAPIError, ValueError) as err:
            raise self._call_failed(err, started) from err
        return self._finish(reply, started, "img")

    def process_text(self, text: str) -> ProcessingResponse:
        """Process text; raises ProcessingError carrying the failed response."""
        started = time.monotonic()
        logger.debug("processing text (%d characters)", len(text))
        if not text.strip():
            raise ProcessingError(
                "text content is empty",
                ProcessingResponse(
                    success=False,
                    error_message="文字内容为空",
                    processing_time=time.monotonic() - started,
                ),
            )

        try:
            reply = self.client.process_text(text, self.user_id)
        except (DifyAPIError, ValueError) as err:
            raise self._call_failed(err, started) from err
        return self._finish(reply, started, "txt")

    @staticmethod
    def _call_failed(err: Exception, started: float) -> ProcessingError:
        logger.warning("Dify API call failed: %s", err)
        return ProcessingError(
            str(err),
            ProcessingResponse(
                success=False,
                error_message=f"Dify API调用失败: {err}",
                processing_time=time.monotonic() - started,
            ),
        )

    def _finish(self, reply: DifyResponse, started: float, prefix: str) -> ProcessingResponse:
        try:
            parsed = self.parse_response(reply)
        except ProcessingError as err:
            logger.warning("failed to parse Dify response: %s", err)
            raise ProcessingError(
                str(err),
                ProcessingResponse(
                    success=False,
                    error_message=f"解析响应失败: {err}",
                    processing_time=time.monotonic() - started,
                ),
            ) from err

        validation = self.validate_parsed_info(parsed)
        reminder = None
        if validation.is_valid and parsed.confidence >= self.options.confidence_threshold:
            reminder = self.create_reminder(parsed)

        return ProcessingResponse(
            success=validation.is_valid,
            reminder=reminder,
            parsed_info=parsed,
            validation=validation,
            processing_time=time.monotonic() - started,
            request_id=f"{prefix}_{int(time.time())}",
            timestamp=datetime.now(),
            error_message=_error_message(validation),
        )

    def parse_response(self, response: DifyResponse) -> ParsedTaskInfo:
        """Parse the answer of a chat reply or the output text of a workflow run."""
        if response.answer:
            return self._parse_answer(response.answer)
        if response.outputs_text:
            return self.parse_task_json(response.outputs_text)
        raise ProcessingError("no valid content found in Dify response")

    @staticmethod
    def _parse_answer(answer: str) -> ParsedTaskInfo:
        try:
            return ParsedTaskInfo.from_dict(json.loads(answer))
        except ValueError:
            pass
        start = answer.find("{")
        end = answer.rfind("}")
        if start >= 0 and end > start:
            try:
                return ParsedTaskInfo.from_dict(json.loads(answer[start : end + 1]))
            except ValueError:
                pass
        raise ProcessingError("failed to parse Dify response as JSON")

    def parse_task_json(self, json_str: str) -> ParsedTaskInfo:
        """Parse task JSON, possibly quoted and escaped, with high confidence."""
        json_str = json_str.strip()
        if not json_str:
            raise ProcessingError("empty JSON string")
        json_str = _unquote(json_str)
        try:
            info = ParsedTaskInfo.from_dict(json.loads(json_str))
        except ValueError as err:
            raise ProcessingError(f"failed to parse task JSON: {err}") from err
        info.confidence = WORKFLOW_CONFIDENCE
        return info

    def validate_parsed_info(self, info: ParsedTaskInfo | None) -> ValidationResult:
        """Check that the task has a title and well-formed date and time."""
        if info is None:
            return ValidationResult(False, "null_response", "解析结果为空", 0.0)
        if info.description and NO_TASK_MARKER in info.description.lower():
            return ValidationResult(False, "no_task_detected", NO_TASK_MARKER, info.confidence)
        if not info.title:
            return ValidationResult(False, "missing_title", "缺少任务标题", info.confidence * 0.5)
        if not info.date or not info.time:
            return ValidationResult(
                False, "missing_datetime", "缺少日期或时间信息", info.confidence * 0.7
            )
        if not is_valid_date(info.date):
            return ValidationResult(
                False,
                "invalid_date_format",
                f"无效的日期格式: {info.date}",
                info.confidence * 0.8,
            )
        if not is_valid_time(info.time):
            return ValidationResult(
                False,
                "invalid_time_format",
                f"无效的时间格式: {info.time}",
                info.confidence * 0.8,
            )
        return ValidationResult(True, "", "验证通过", info.confidence)

    def create_reminder(self, info: ParsedTaskInfo) -> Reminder:
        """Build a reminder, taking the configured lead time over the parsed one."""
        remind_before = self.options.default_remind_before or info.remind_before or "15m"
        return Reminder(
            title=info.title,
            description=info.description,
            date=info.date,
            time=info.time,
            remind_before=remind_before,
            priority=_priority_from(info.priority),
            list=info.list or self.options.default_list,
        )