from http import HTTPStatus

import pytest

from remindify.errors import (
    ERR_CODE_CONFIG_MISSING,
    ERR_CODE_EMPTY_CONTENT,
    AppError,
    ErrorType,
    get_error_code,
    get_error_type,
    is_retryable,
    new_api_error,
    new_clipboard_error,
    new_configuration_error,
    new_file_operation_error,
    new_memory_error,
    new_network_error,
    new_processing_error,
    new_timeout_error,
    new_validation_error,
    wrap_error,
)


def test_validation_error_without_details_formats_type_and_code():
    err = new_validation_error(ERR_CODE_EMPTY_CONTENT, "content is empty")
    assert str(err) == "[validation:empty_content] content is empty"
    assert err.http_status == HTTPStatus.BAD_REQUEST
    assert err.retryable is False
    assert err.details == ""


def test_validation_error_with_details_appends_them():
    err = new_validation_error("bad", "oops", "more info")
    assert str(err) == "[validation:bad] oops: more info"
    assert err.details == "more info"


def test_api_error_keeps_status_retry_and_cause():
    cause = ConnectionError("down")
    err = new_api_error("api_timeout", "timed out", 503, True, cause)
    assert err.error_type is ErrorType.API
    assert err.http_status == 503
    assert err.retryable is True
    assert err.cause is cause
    assert err.__cause__ is cause


def test_file_operation_error_names_file_in_details():
    err = new_file_operation_error("file_not_found", "missing", "/tmp/a.json", None)
    assert err.details == "file: /tmp/a.json"
    assert err.error_type is ErrorType.FILE_OPERATION
    assert err.http_status == HTTPStatus.INTERNAL_SERVER_ERROR


def test_timeout_error_message_and_flags():
    err = new_timeout_error("upload", 30)
    assert err.message == "Operation 'upload' timed out after 30 seconds"
    assert err.code == "timeout"
    assert err.http_status == HTTPStatus.REQUEST_TIMEOUT
    assert is_retryable(err) is True


@pytest.mark.parametrize(
    "factory, expected_type, expected_status",
    [
        (lambda: new_clipboard_error("c", "m"), ErrorType.CLIPBOARD, HTTPStatus.INTERNAL_SERVER_ERROR),
        (lambda: new_processing_error("c", "m", True), ErrorType.PROCESSING, HTTPStatus.INTERNAL_SERVER_ERROR),
        (lambda: new_configuration_error("c", "m"), ErrorType.CONFIGURATION, HTTPStatus.INTERNAL_SERVER_ERROR),
        (lambda: new_network_error("c", "m", True), ErrorType.NETWORK, HTTPStatus.BAD_GATEWAY),
        (lambda: new_memory_error("c", "m"), ErrorType.MEMORY, HTTPStatus.INTERNAL_SERVER_ERROR),
    ],
)
def test_factories_set_type_and_status(factory, expected_type, expected_status):
    err = factory()
    assert err.error_type is expected_type
    assert err.http_status == expected_status


def test_errors_can_be_raised_and_caught():
    with pytest.raises(AppError) as info:
        raise new_configuration_error(ERR_CODE_CONFIG_MISSING, "no config", "path")
    assert get_error_code(info.value) == ERR_CODE_CONFIG_MISSING


def test_wrap_none_returns_none():
    assert wrap_error(None, ErrorType.API, "x", "y") is None


def test_wrap_plain_error_uses_its_text_as_details():
    original = ValueError("boom")
    wrapped = wrap_error(original, ErrorType.NETWORK, "net", "request failed")
    assert wrapped.message == "request failed"
    assert wrapped.details == "boom"
    assert wrapped.retryable is False
    assert wrapped.http_status == HTTPStatus.INTERNAL_SERVER_ERROR
    assert wrapped.cause is original


def test_wrap_app_error_keeps_message_and_chains_details():
    inner = new_network_error("net", "unreachable", True)
    inner.details = "dns"
    wrapped = wrap_error(inner, ErrorType.API, "outer", "while syncing")
    assert wrapped.message == "unreachable"
    assert wrapped.details == "while syncing | dns"
    assert wrapped.retryable is True
    assert wrapped.http_status == HTTPStatus.BAD_GATEWAY
    assert wrapped.error_type is ErrorType.API
    assert wrapped.cause is inner


def test_wrap_app_error_without_details_uses_message():
    inner = new_memory_error("mem", "out of memory")
    wrapped = wrap_error(inner, ErrorType.PROCESSING, "p", "context")
    assert wrapped.details == "context"


def test_helpers_on_foreign_errors_use_defaults():
    plain = RuntimeError("x")
    assert is_retryable(plain) is False
    assert get_error_type(plain) is ErrorType.PROCESSING
    assert get_error_code(plain) == "unknown"


def test_to_dict_leaves_out_empty_details():
    err = new_processing_error("proc", "failed", False)
    data = err.to_dict()
    assert data["type"] == "processing"
    assert data["code"] == "proc"
    assert "details" not in data
    assert data["timestamp"] == err.timestamp