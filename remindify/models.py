"""Data types shared by the parsing, processing and caching modules."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any


class Priority(str, Enum):
    """Priority of a reminder."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ContentType(str, Enum):
    """Kind of content handed in for processing."""

    TEXT = "text"
    IMAGE = "image"
    MIXED = "mixed"
    UNKNOWN = "unknown"


def _require_mapping(data: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise ValueError(f"{what} must be a JSON object")
    return data


def _take_str(data: Mapping[str, Any], key: str, default: str = "") -> str:
    value = data.get(key)
    if value is None:
        return default
    if not isinstance(value, str):
        raise ValueError(f"field {key!r} must be a string")
    return value


def _take_float(data: Mapping[str, Any], key: str, default: float = 0.0) -> float:
    value = data.get(key)
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"field {key!r} must be a number")
    return float(value)


@dataclass
class ParsedTaskInfo:
    """Task fields extracted from a model's answer."""

    title: str = ""
    description: str = ""
    date: str = ""
    time: str = ""
    remind_before: str = ""
    priority: str = ""
    list: str = ""
    confidence: float = 0.0
    original_text: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ParsedTaskInfo:
        """Build from a decoded JSON object; unknown keys are ignored.

        Raises ValueError when the object or one of its fields has the wrong type.
        """
        data = _require_mapping(data, "task info")
        return cls(
            title=_take_str(data, "title"),
            description=_take_str(data, "description"),
            date=_take_str(data, "date"),
            time=_take_str(data, "time"),
            remind_before=_take_str(data, "remind_before"),
            priority=_take_str(data, "priority"),
            list=_take_str(data, "list"),
            confidence=_take_float(data, "confidence"),
            original_text=_take_str(data, "original_text"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the fields under their JSON names."""
        return {
            "title": self.title,
            "description": self.description,
            "date": self.date,
            "time": self.time,
            "remind_before": self.remind_before,
            "priority": self.priority,
            "list": self.list,
            "confidence": self.confidence,
            "original_text": self.original_text,
        }


@dataclass
class Reminder:
    """A reminder ready to be submitted to a task list."""

    title: str = ""
    description: str = ""
    date: str = ""
    time: str = ""
    remind_before: str = ""
    priority: Priority = Priority.MEDIUM
    list: str = ""


@dataclass
class ParsedReminder:
    """A reminder together with its resolved list and computed times."""

    original: Reminder
    list: str = ""
    due_time: datetime | None = None
    alarm_time: datetime | None = None


@dataclass
class DifyConfig:
    """Connection settings for the Dify API."""

    api_endpoint: str = ""
    api_key: str = ""
    timeout: int = 0

    def validate(self) -> None:
        """Raise ValueError when a required setting is missing or invalid."""
        if not self.api_endpoint.strip():
            raise ValueError("dify api endpoint is required")
        if not self.api_key.strip():
            raise ValueError("dify api key is required")
        if self.timeout < 0:
            raise ValueError("dify timeout must not be negative")


@dataclass
class DifyResponse:
    """Reply of a chat message or a workflow run."""

    answer: str = ""
    message_id: str = ""
    conversation_id: str = ""
    task_id: str = ""
    workflow_run_id: str = ""
    workflow_status: str = ""
    outputs_text: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> DifyResponse:
        """Build from a decoded JSON reply; raises ValueError on wrong types."""
        data = _require_mapping(data, "dify response")
        workflow_status = ""
        outputs_text = ""
        workflow = data.get("data")
        if workflow is not None:
            workflow = _require_mapping(workflow, "field 'data'")
            workflow_status = _take_str(workflow, "status")
            outputs = workflow.get("outputs")
            if outputs is not None:
                outputs = _require_mapping(outputs, "field 'outputs'")
                outputs_text = _take_str(outputs, "text")
        return cls(
            answer=_take_str(data, "answer"),
            message_id=_take_str(data, "message_id"),
            conversation_id=_take_str(data, "conversation_id"),
            task_id=_take_str(data, "task_id"),
            workflow_run_id=_take_str(data, "workflow_run_id"),
            workflow_status=workflow_status,
            outputs_text=outputs_text,
        )

    def text(self) -> str:
        """Return the answer, or the workflow output text when there is none."""
        return self.answer or self.outputs_text


@dataclass
class ProcessingOptions:
    """Options for turning content into reminders."""

    max_retries: int = 3
    retry_delay: float = 2.0
    timeout: float = 30.0
    enable_ocr: bool = True
    confidence_threshold: float = 0.7
    default_list: str = "Default"
    default_priority: str = "medium"
    default_remind_before: str = "15m"


@dataclass
class ValidationResult:
    """Outcome of checking parsed task information."""

    is_valid: bool = False
    error_type: str = ""
    message: str = ""
    score: float = 0.0


@dataclass
class ProcessingResponse:
    """Result of processing one piece of content."""

    success: bool = False
    reminder: Reminder | None = None
    parsed_info: ParsedTaskInfo | None = None
    validation: ValidationResult | None = None
    processing_time: float = 0.0
    request_id: str = ""
    timestamp: datetime | None = None
    error_message: str = ""