"""Extraction of task information from the text a Dify workflow returns."""

from __future__ import annotations

import json
import logging
from typing import Any

from remindify.models import DifyResponse, ParsedTaskInfo

logger = logging.getLogger(__name__)

UNKNOWN_TASK_TITLE = "未知任务"
TEXT_CONFIDENCE = 0.6
MAX_TITLE_BYTES = 100

_EXCLUDED_TITLE_WORDS = (
    "日期",
    "时间",
    "提醒",
    "priority",
    "date:",
    "time:",
    "上午",
    "下午",
    "明天",
    "今天",
    "紧急",
    "重要",
)

_ESCAPES = (
    ('\\"', '"'),
    ("\\\\", "\\"),
    ("\\n", "\n"),
    ("\\t", "\t"),
    ("\\r", "\r"),
    ("\\f", "\f"),
    ("\\b", "\b"),
)

_DIGITS = frozenset("0123456789")
_UNDECODABLE = object()


class ResponseParseError(ValueError):
    """Raised when a reply holds no usable task information."""


def _byte_len(text: str) -> int:
    return len(text.encode("utf-8"))


def _all_digits(text: str) -> bool:
    return bool(text) and all(char in _DIGITS for char in text)


def _task_from_json_value(value: Any) -> ParsedTaskInfo | None:
    try:
        return ParsedTaskInfo.from_dict(value)
    except ValueError:
        return None


def _unquote(json_str: str) -> str:
    """Remove surrounding quotes and undo the escapes of a quoted JSON text."""
    if len(json_str) >= 2 and json_str[0] == '"' and json_str[-1] == '"':
        json_str = json_str[1:-1]
        for escaped, plain in _ESCAPES:
            json_str = json_str.replace(escaped, plain)
    return json_str


class ResponseParser:
    """Turns a Dify reply into a ParsedTaskInfo."""

    def parse_reminder_response(self, response: str) -> ParsedTaskInfo:
        """Return the task information found in a reply.

        The reply is tried as task JSON, as a Dify response wrapping task JSON,
        as text containing a JSON object and finally as plain text.
        Raises ResponseParseError when no complete task can be found.
        """
        logger.debug("parsing Dify response (%d characters)", len(response))
        cleaned = response.strip()
        if not cleaned:
            raise ResponseParseError("empty response from Dify")

        try:
            decoded: Any = json.loads(cleaned)
        except ValueError:
            decoded = _UNDECODABLE

        if decoded is not _UNDECODABLE:
            direct = _task_from_json_value(decoded)
            if direct is not None and self.validate_task_info(direct):
                return direct

            try:
                reply = DifyResponse.from_dict(decoded)
            except ValueError:
                reply = None
            if reply is not None:
                for candidate in (reply.answer, reply.outputs_text):
                    if not candidate:
                        continue
                    try:
                        return self._parse_task_json(candidate)
                    except ResponseParseError as err:
                        logger.debug("embedded task JSON rejected: %s", err)

        try:
            extracted = self._extract_json(cleaned)
        except ResponseParseError as err:
            logger.debug("no JSON object found, falling back to text: %s", err)
            return self._parse_task_from_text(cleaned)

        if not self.validate_task_info(extracted):
            raise ResponseParseError("parsed task info is incomplete or invalid")
        return extracted

    def _parse_task_json(self, json_str: str) -> ParsedTaskInfo:
        json_str = json_str.strip()
        if not json_str:
            raise ResponseParseError("empty JSON string")
        json_str = _unquote(json_str)
        try:
            info = ParsedTaskInfo.from_dict(json.loads(json_str))
        except ValueError as err:
            raise ResponseParseError(f"failed to parse task JSON: {err}") from err
        if not self.validate_task_info(info):
            raise ResponseParseError("parsed task info is incomplete or invalid")
        return info

    @staticmethod
    def _extract_json(response: str) -> ParsedTaskInfo:
        start = response.find("{")
        end = response.rfind("}")
        if start < 0 or end <= start:
            raise ResponseParseError("no valid JSON found in response")
        try:
            return ParsedTaskInfo.from_dict(json.loads(response[start : end + 1]))
        except ValueError as err:
            raise ResponseParseError(f"failed to parse extracted JSON: {err}") from err

    def _parse_task_from_text(self, text: str) -> ParsedTaskInfo:
        info = ParsedTaskInfo(original_text=text, confidence=TEXT_CONFIDENCE)

        for raw_line in text.split("\n"):
            line = raw_line.strip()
            if not line:
                continue
            if not info.title and self.looks_like_title(line):
                info.title = line
                continue
            date, time_of_day = self.extract_date_time(line)
            if date and time_of_day:
                info.date = date
                info.time = time_of_day
                continue
            if not info.description and line != info.title:
                info.description = line

        if not info.title:
            info.title = self.get_first_meaningful_line(text)

        info.priority = "medium"
        info.remind_before = "15m"

        if not self.validate_task_info(info):
            raise ResponseParseError("could not extract valid task information from text")
        return info

    def validate_task_info(self, task_info: ParsedTaskInfo | None) -> bool:
        """Return whether the task has a title, a YYYY-MM-DD date and an HH:MM time."""
        if task_info is None:
            return False
        if not task_info.title.strip():
            return False
        if not task_info.date.strip() or not task_info.time.strip():
            return False
        return self.is_valid_date_format(task_info.date) and self.is_valid_time_format(
            task_info.time
        )

    def looks_like_title(self, line: str) -> bool:
        """Return whether a line reads like a task title rather than a detail."""
        lowered = line.lower()
        if any(word in lowered for word in _EXCLUDED_TITLE_WORDS):
            return False
        return 5 < _byte_len(line) < 100 and not self.contains_numbers(line)

    def extract_date_time(self, line: str) -> tuple[str, str]:
        """Return the first date word followed by a time word, or two empty strings."""
        words = line.split()
        for word, following in zip(words, words[1:]):
            if self.is_valid_date_format(word) and self.is_valid_time_format(following):
                return word, following
        return "", ""

    def is_valid_date_format(self, date_str: str) -> bool:
        """Return whether the text has the YYYY-MM-DD shape."""
        if len(date_str) != 10 or date_str[4] != "-" or date_str[7] != "-":
            return False
        return _all_digits(date_str[:4] + date_str[5:7] + date_str[8:])

    def is_valid_time_format(self, time_str: str) -> bool:
        """Return whether the text is HH:MM or a range HH:MM - HH:MM."""
        time_str = time_str.strip()
        if " - " in time_str:
            parts = time_str.split(" - ")
            if len(parts) != 2:
                return False
            return all(self.is_valid_single_time_format(part.strip()) for part in parts)
        return self.is_valid_single_time_format(time_str)

    def is_valid_single_time_format(self, time_str: str) -> bool:
        """Return whether the text has the HH:MM shape."""
        if len(time_str) != 5 or time_str[2] != ":":
            return False
        return _all_digits(time_str[:2]) and _all_digits(time_str[3:])

    def contains_numbers(self, s: str) -> bool:
        """Return whether the text holds an ASCII digit."""
        return any(char in _DIGITS for char in s)

    def get_first_meaningful_line(self, text: str) -> str:
        """Return the first non-blank line, cut to 100 bytes, or a placeholder title."""
        for raw_line in text.split("\n"):
            line = raw_line.strip()
            if not line:
                continue
            encoded = line.encode("utf-8")
            if len(encoded) > MAX_TITLE_BYTES:
                line = encoded[:MAX_TITLE_BYTES].decode("utf-8", errors="ignore") + "..."
            return line
        return UNKNOWN_TASK_TITLE