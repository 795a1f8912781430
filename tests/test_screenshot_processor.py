import time

import pytest

from remindify.client import DifyAPIError, DifyClient
from remindify.models import DifyConfig, DifyResponse, ParsedTaskInfo, Priority
from remindify.response_parser import ResponseParser
from remindify.screenshot_processor import (
    MAX_FILE_SIZE,
    ScreenshotError,
    ScreenshotInput,
    ScreenshotProcessor,
    extract_image_format,
    generate_request_id,
)

PNG_DATA = b"\x89PNG\r\n\x1a\nfake-image-data"
TASK_ANSWER = '{"title":"测试任务","date":"2025-11-15","time":"14:00","priority":"medium"}'


def make_config():
    return DifyConfig(api_endpoint="https://dify.example.com/v1", api_key="placeholder", timeout=30)


class FakeClient:
    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    def process_image(self, image_data, file_name, user_id):
        self.calls.append((image_data, file_name, user_id))
        if self.error is not None:
            raise self.error
        return self.reply


class RecordingParser:
    def __init__(self, info):
        self.info = info
        self.seen = []

    def parse_reminder_response(self, response):
        self.seen.append(response)
        return self.info


def test_process_screenshot_success():
    reply = DifyResponse(answer=TASK_ANSWER, message_id="msg-123")
    parsed = ParsedTaskInfo(
        title="测试任务", date="2025-11-15", time="14:00", priority="medium", confidence=0.9
    )
    client = FakeClient(reply)
    parser = RecordingParser(parsed)
    processor = ScreenshotProcessor(client, parser, make_config())

    result = processor.process_screenshot(
        ScreenshotInput(data=PNG_DATA, file_name="test.png", format="png")
    )

    assert result.title == "测试任务"
    assert result.date == "2025-11-15"
    assert result.time == "14:00"
    assert result.priority == Priority.MEDIUM
    assert result.remind_before == "15m"
    assert result.list == "Default"
    assert parser.seen == [TASK_ANSWER]
    data, file_name, user_id = client.calls[0]
    assert (data, file_name) == (PNG_DATA, "test.png")
    assert user_id.startswith("scr_")


def test_process_screenshot_uses_workflow_output():
    reply = DifyResponse(outputs_text=TASK_ANSWER)
    processor = ScreenshotProcessor(FakeClient(reply), ResponseParser())
    result = processor.process_screenshot(
        ScreenshotInput(data=PNG_DATA, file_name="shot.png", format="png")
    )
    assert (result.title, result.date, result.time) == ("测试任务", "2025-11-15", "14:00")


@pytest.mark.parametrize(
    "header, image_format",
    [
        (b"\x89PNG\r\n\x1a\n", "png"),
        (b"\xff\xd8\xff\xe0\x00\x10JF", "jpg"),
        (b"BM\x00\x00\x00\x00\x00\x00", "bmp"),
        (b"GIF89a\x00\x00", "gif"),
    ],
)
def test_process_screenshot_accepts_known_headers(header, image_format):
    processor = ScreenshotProcessor(FakeClient(DifyResponse(answer=TASK_ANSWER)))
    result = processor.process_screenshot(
        ScreenshotInput(data=header, file_name=f"x.{image_format}", format=image_format)
    )
    assert result.title == "测试任务"


def test_process_screenshot_empty_reply():
    processor = ScreenshotProcessor(FakeClient(DifyResponse()))
    with pytest.raises(ScreenshotError, match="empty response from Dify"):
        processor.process_screenshot(ScreenshotInput(data=PNG_DATA, format="png"))


def test_process_screenshot_client_error():
    processor = ScreenshotProcessor(FakeClient(error=DifyAPIError("boom", 500)))
    with pytest.raises(ScreenshotError, match="dify processing failed: boom"):
        processor.process_screenshot(ScreenshotInput(data=PNG_DATA, format="png"))


def test_process_screenshot_parse_error():
    processor = ScreenshotProcessor(FakeClient(DifyResponse(answer='{"title": "x"}')))
    with pytest.raises(ScreenshotError, match="response parsing failed"):
        processor.process_screenshot(ScreenshotInput(data=PNG_DATA, format="png"))


def test_process_screenshot_invalid_input():
    client = FakeClient(DifyResponse(answer=TASK_ANSWER))
    processor = ScreenshotProcessor(client)
    with pytest.raises(ScreenshotError, match="input validation failed"):
        processor.process_screenshot(ScreenshotInput(data=b"", format="png"))
    assert client.calls == []


@pytest.mark.parametrize(
    "priority, expected",
    [
        ("high", Priority.HIGH),
        ("高", Priority.HIGH),
        ("紧急", Priority.HIGH),
        ("low", Priority.LOW),
        ("低", Priority.LOW),
        ("一般", Priority.LOW),
        ("", Priority.MEDIUM),
        ("whatever", Priority.MEDIUM),
    ],
)
def test_priority_mapping(priority, expected):
    info = ParsedTaskInfo(
        title="Task", date="2025-11-15", time="14:00", priority=priority,
        list="Work", remind_before="30m",
    )
    processor = ScreenshotProcessor(FakeClient(DifyResponse(answer="x")), RecordingParser(info))
    result = processor.process_screenshot(ScreenshotInput(data=PNG_DATA, format="png"))
    assert result.priority == expected
    assert result.list == "Work"
    assert result.remind_before == "30m"


def test_validate_input_empty_data():
    processor = ScreenshotProcessor(FakeClient())
    with pytest.raises(ScreenshotError, match="screenshot data is empty"):
        processor.validate_input(ScreenshotInput(data=b"", file_name="empty.png", format="png"))


def test_validate_input_none():
    processor = ScreenshotProcessor(FakeClient())
    with pytest.raises(ScreenshotError, match="screenshot input is None"):
        processor.validate_input(None)


def test_validate_input_unsupported_format():
    processor = ScreenshotProcessor(FakeClient())
    with pytest.raises(ScreenshotError, match="unsupported image format: xyz"):
        processor.validate_input(
            ScreenshotInput(data=b"fake-data", file_name="test.xyz", format="xyz")
        )


def test_validate_input_file_too_large():
    processor = ScreenshotProcessor(FakeClient())
    large = bytes(11 * 1024 * 1024)
    with pytest.raises(ScreenshotError) as info:
        processor.validate_input(ScreenshotInput(data=large, file_name="large.png", format="png"))
    assert "file size" in str(info.value)
    assert "exceeds maximum allowed size" in str(info.value)
    assert str(MAX_FILE_SIZE) in str(info.value)


def test_validate_input_bad_content():
    processor = ScreenshotProcessor(FakeClient())
    with pytest.raises(ScreenshotError, match="image content validation failed"):
        processor.validate_input(ScreenshotInput(data=b"not an image at all", format="png"))


def test_validate_image_content_invalid():
    processor = ScreenshotProcessor(FakeClient())
    with pytest.raises(ScreenshotError, match="invalid image format"):
        processor.validate_image_content(b"this is not an image")


def test_validate_image_content_too_short():
    processor = ScreenshotProcessor(FakeClient())
    with pytest.raises(ScreenshotError, match="too short"):
        processor.validate_image_content(b"\xff\xd8\xff\xe0")


@pytest.mark.parametrize(
    "image_format, expected",
    [("png", True), ("PNG", True), ("jpeg", True), ("gif", True), ("bmp", True),
     ("webp", False), ("", False)],
)
def test_is_supported_format(image_format, expected):
    assert ScreenshotProcessor(FakeClient()).is_supported_format(image_format) is expected


def test_get_processor_info():
    info = ScreenshotProcessor(FakeClient()).get_processor_info()
    assert info.name == "DifyScreenshotProcessor"
    assert info.version == "1.0.0"
    assert "png" in info.supported_formats
    assert "jpg" in info.supported_formats
    assert info.max_file_size == 10 * 1024 * 1024


@pytest.mark.parametrize(
    "file_name, expected",
    [
        ("test.png", "png"),
        ("image.JPG", "jpg"),
        ("photo.jpeg", "jpeg"),
        ("picture.bmp", "bmp"),
        ("animation.gif", "gif"),
        ("unknown.xyz", "xyz"),
        ("noextension", "unknown"),
    ],
)
def test_extract_image_format(file_name, expected):
    assert extract_image_format(file_name) == expected


def test_from_config_invalid():
    with pytest.raises(ScreenshotError, match="invalid dify config"):
        ScreenshotProcessor.from_config(DifyConfig())


def test_from_config_valid():
    config = make_config()
    processor = ScreenshotProcessor.from_config(config)
    assert isinstance(processor.client, DifyClient)
    assert processor.client.api_endpoint == "https://dify.example.com/v1"
    assert isinstance(processor.parser, ResponseParser)
    assert processor.config is config


def test_generate_request_id():
    first = generate_request_id()
    time.sleep(0.002)
    second = generate_request_id()
    assert first.startswith("scr_")
    assert second.startswith("scr_")
    assert first != second