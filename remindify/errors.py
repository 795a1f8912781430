"""Structured application errors with a type, a code and retry information."""

from __future__ import annotations

import time
from enum import Enum
from http import HTTPStatus
from typing import Any


class ErrorType(str, Enum):
    """Broad category of an application error."""

    VALIDATION = "validation"
    API = "api"
    CLIPBOARD = "clipboard"
    FILE_OPERATION = "file_operation"
    PROCESSING = "processing"
    CONFIGURATION = "configuration"
    TIMEOUT = "timeout"
    NETWORK = "network"
    MEMORY = "memory"


# Validation errors
ERR_CODE_EMPTY_CONTENT = "empty_content"
ERR_CODE_INVALID_FORMAT = "invalid_format"
ERR_CODE_CONTENT_TOO_LARGE = "content_too_large"
ERR_CODE_INVALID_CHARACTERS = "invalid_characters"

# Clipboard errors
ERR_CODE_CLIPBOARD_EMPTY = "clipboard_empty"
ERR_CODE_CLIPBOARD_ACCESS = "clipboard_access_denied"
ERR_CODE_UNSUPPORTED_FORMAT = "unsupported_format"

# API errors
ERR_CODE_API_CONNECTION = "api_connection_failed"
ERR_CODE_API_TIMEOUT = "api_timeout"
ERR_CODE_API_RESPONSE = "api_response_error"
ERR_CODE_API_RATE_LIMIT = "api_rate_limit"

# File operation errors
ERR_CODE_FILE_NOT_FOUND = "file_not_found"
ERR_CODE_FILE_PERMISSION = "file_permission_denied"
ERR_CODE_FILE_CORRUPTED = "file_corrupted"

# Processing errors
ERR_CODE_PROCESSING_FAILED = "processing_failed"
ERR_CODE_PARSING_FAILED = "parsing_failed"
ERR_CODE_QUALITY_LOW = "quality_too_low"

# Configuration errors
ERR_CODE_CONFIG_MISSING = "config_missing"
ERR_CODE_CONFIG_INVALID = "config_invalid"
ERR_CODE_CREDENTIAL_MISSING = "credential_missing"


class AppError(Exception):
    """An application error carrying its type, code and HTTP status."""

    def __init__(
        self,
        error_type: ErrorType,
        code: str,
        message: str,
        *,
        details: str = "",
        http_status: int = 0,
        retryable: bool = False,
        cause: BaseException | None = None,
        timestamp: int | None = None,
    ) -> None:
        self.error_type = ErrorType(error_type)
        self.code = code
        self.message = message
        self.details = details
        self.http_status = int(http_status)
        self.retryable = retryable
        self.cause = cause
        self.timestamp = int(time.time()) if timestamp is None else timestamp
        super().__init__(str(self))
        self.__cause__ = cause

    def __str__(self) -> str:
        prefix = f"[{self.error_type.value}:{self.code}] {self.message}"
        if self.details:
            return f"{prefix}: {self.details}"
        return prefix

    def __repr__(self) -> str:
        return (
            f"AppError(error_type={self.error_type.value!r}, code={self.code!r}, "
            f"message={self.message!r})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the error as a JSON-ready mapping; the cause is left out."""
        result: dict[str, Any] = {
            "type": self.error_type.value,
            "code": self.code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        if self.http_status:
            result["http_status"] = self.http_status
        result["retryable"] = self.retryable
        result["timestamp"] = self.timestamp
        return result


def new_validation_error(code: str, message: str, details: str = "") -> AppError:
    """Create a non-retryable validation error (HTTP 400)."""
    return AppError(
        ErrorType.VALIDATION,
        code,
        message,
        details=details,
        http_status=HTTPStatus.BAD_REQUEST,
        retryable=False,
    )


def new_api_error(
    code: str,
    message: str,
    http_status: int,
    retryable: bool,
    cause: BaseException | None = None,
) -> AppError:
    """Create an API error with the given status and retry flag."""
    return AppError(
        ErrorType.API,
        code,
        message,
        http_status=http_status,
        retryable=retryable,
        cause=cause,
    )


def new_clipboard_error(
    code: str, message: str, cause: BaseException | None = None
) -> AppError:
    """Create a non-retryable clipboard error (HTTP 500)."""
    return AppError(
        ErrorType.CLIPBOARD,
        code,
        message,
        http_status=HTTPStatus.INTERNAL_SERVER_ERROR,
        retryable=False,
        cause=cause,
    )


def new_file_operation_error(
    code: str, message: str, file_path: str, cause: BaseException | None = None
) -> AppError:
    """Create a file operation error naming the file in its details."""
    return AppError(
        ErrorType.FILE_OPERATION,
        code,
        message,
        details=f"file: {file_path}",
        http_status=HTTPStatus.INTERNAL_SERVER_ERROR,
        retryable=False,
        cause=cause,
    )


def new_processing_error(
    code: str, message: str, retryable: bool, cause: BaseException | None = None
) -> AppError:
    """Create a processing error (HTTP 500)."""
    return AppError(
        ErrorType.PROCESSING,
        code,
        message,
        http_status=HTTPStatus.INTERNAL_SERVER_ERROR,
        retryable=retryable,
        cause=cause,
    )


def new_configuration_error(code: str, message: str, details: str = "") -> AppError:
    """Create a non-retryable configuration error (HTTP 500)."""
    return AppError(
        ErrorType.CONFIGURATION,
        code,
        message,
        details=details,
        http_status=HTTPStatus.INTERNAL_SERVER_ERROR,
        retryable=False,
    )


def new_timeout_error(operation: str, timeout: int) -> AppError:
    """Create a retryable timeout error (HTTP 408)."""
    return AppError(
        ErrorType.TIMEOUT,
        "timeout",
        f"Operation '{operation}' timed out after {int(timeout)} seconds",
        http_status=HTTPStatus.REQUEST_TIMEOUT,
        retryable=True,
    )


def new_network_error(
    code: str, message: str, retryable: bool, cause: BaseException | None = None
) -> AppError:
    """Create a network error (HTTP 502)."""
    return AppError(
        ErrorType.NETWORK,
        code,
        message,
        http_status=HTTPStatus.BAD_GATEWAY,
        retryable=retryable,
        cause=cause,
    )


def new_memory_error(
    code: str, message: str, cause: BaseException | None = None
) -> AppError:
    """Create a non-retryable memory error (HTTP 500)."""
    return AppError(
        ErrorType.MEMORY,
        code,
        message,
        http_status=HTTPStatus.INTERNAL_SERVER_ERROR,
        retryable=False,
        cause=cause,
    )


def wrap_error(
    err: BaseException | None, error_type: ErrorType, code: str, message: str
) -> AppError | None:
    """Wrap an error with extra context; ``None`` stays ``None``.

    An existing AppError keeps its message, status and retry flag, and the new
    message is put in front of its details. Any other error becomes a
    non-retryable HTTP 500 error whose details are the error's text.
    """
    if err is None:
        return None

    if isinstance(err, AppError):
        details = f"{message} | {err.details}" if err.details else message
        return AppError(
            error_type,
            code,
            err.message,
            details=details,
            http_status=err.http_status,
            retryable=err.retryable,
            cause=err,
        )

    return AppError(
        error_type,
        code,
        message,
        details=str(err),
        http_status=HTTPStatus.INTERNAL_SERVER_ERROR,
        retryable=False,
        cause=err,
    )


def is_retryable(err: BaseException | None) -> bool:
    """Return whether the error is an AppError marked retryable."""
    return isinstance(err, AppError) and err.retryable


def get_error_type(err: BaseException | None) -> ErrorType:
    """Return the error's type, or PROCESSING for errors of other kinds."""
    if isinstance(err, AppError):
        return err.error_type
    return ErrorType.PROCESSING


def get_error_code(err: BaseException | None) -> str:
    """Return the error's code, or ``"unknown"`` for errors of other kinds."""
    if isinstance(err, AppError):
        return err.code
    return "unknown"