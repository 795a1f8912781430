"""HTTP client for the Dify chat, file upload and workflow APIs."""

from __future__ import annotations

import json
import logging
import os
import time
from typing import Any

import requests

from remindify.models import DifyConfig, DifyResponse

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30
TEXT_QUERY = (
    "请分析以下文本内容，提取任务信息（标题、描述、时间、优先级等），"
    "并按照JSON格式返回结构化的任务数据。如果无法识别为任务，请返回分析结果。"
)

_FILE_TYPES = {
    ".txt": "TXT",
    ".pdf": "PDF",
    ".doc": "WORD",
    ".docx": "WORD",
}


class DifyAPIError(Exception):
    """Raised when a Dify request fails or its reply cannot be used."""

    def __init__(self, message: str, status_code: int | None = None, code: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code


def _format_duration(seconds: int) -> str:
    hours, rest = divmod(int(seconds), 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}h{minutes}m{secs}s"
    if minutes:
        return f"{minutes}m{secs}s"
    return f"{secs}s"


def _error_detail(body: bytes) -> tuple[str, str] | None:
    """Return (message, code) when the body is a JSON object, else None."""
    try:
        data = json.loads(body)
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    message = data.get("message", "")
    code = data.get("code", "")
    return (str(message) if message is not None else "", str(code) if code is not None else "")


def _file_type(file_name: str) -> str:
    return _FILE_TYPES.get(os.path.splitext(file_name)[1].lower(), "IMAGE")


class DifyClient:
    """Client for one Dify application."""

    def __init__(
        self,
        config: DifyConfig,
        *,
        session: requests.Session | None = None,
        retry_count: int = 3,
        retry_wait: float = 2.0,
        retry_max_wait: float = 10.0,
    ) -> None:
        self.api_endpoint = config.api_endpoint
        self.api_key = config.api_key
        self.timeout = config.timeout or DEFAULT_TIMEOUT
        self._session = session or requests.Session()
        self._retry_count = retry_count
        self._retry_wait = retry_wait
        self._retry_max_wait = retry_max_wait

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"}

    def _post(self, path: str, *, retry: bool, **kwargs: Any) -> requests.Response:
        url = self.api_endpoint + path
        attempts = self._retry_count + 1 if retry else 1
        wait = self._retry_wait
        for attempt in range(attempts):
            try:
                return self._session.post(
                    url, headers=self._headers(), timeout=self.timeout, **kwargs
                )
            except requests.RequestException as err:
                if attempt == attempts - 1:
                    raise DifyAPIError(f"failed to make request to {path}: {err}") from err
                logger.debug("request to %s failed (%s), retrying", path, err)
                time.sleep(wait)
                wait = min(wait * 2, self._retry_max_wait)
        raise DifyAPIError(f"failed to make request to {path}")

    @staticmethod
    def _parse_response(response: requests.Response, what: str) -> DifyResponse:
        try:
            return DifyResponse.from_dict(response.json())
        except ValueError as err:
            raise DifyAPIError(f"failed to parse {what} response: {err}") from err

    def process_text(self, text: str, user_id: str) -> DifyResponse:
        """Send text to the chat endpoint and return the reply."""
        if not text:
            raise ValueError("text content cannot be empty")

        payload = {
            "inputs": {"text": text},
            "query": TEXT_QUERY,
            "response_mode": "blocking",
            "user": user_id,
            "auto_generate_name": False,
        }
        response = self._post("/chat-messages", retry=True, json=payload)
        if response.status_code != 200:
            detail = _error_detail(response.content)
            if detail is not None:
                message, code = detail
                raise DifyAPIError(
                    f"Dify API error: {message} (code: {code})", response.status_code, code
                )
            raise DifyAPIError(
                f"Dify API returned status {response.status_code}: {response.text}",
                response.status_code,
            )
        return self._parse_response(response, "Dify")

    def process_image(self, image_data: bytes, file_name: str, user_id: str) -> DifyResponse:
        """Upload an image and run the workflow on it."""
        if not image_data:
            raise ValueError("image data cannot be empty")
        logger.debug("processing image %s (%d bytes)", file_name, len(image_data))
        file_id = self._upload_for_workflow(image_data, file_name, user_id)
        return self._run_workflow_with_file(file_id, user_id)

    def _upload_for_workflow(self, file_data: bytes, file_name: str, user_id: str) -> str:
        files = {"file": (file_name, file_data, "application/octet-stream")}
        fields = {"user": user_id, "type": _file_type(file_name)}
        try:
            response = self._post("/files/upload", retry=False, files=files, data=fields)
        except DifyAPIError as err:
            raise DifyAPIError(f"文件上传失败: {err}") from err

        if response.status_code != 201:
            detail = _error_detail(response.content)
            if detail is not None:
                message, code = detail
                raise DifyAPIError(
                    f"文件上传失败: {message} (code: {code})", response.status_code, code
                )
            raise DifyAPIError(
                f"文件上传失败，状态码: {response.status_code}, 响应: {response.text}",
                response.status_code,
            )

        file_id = self._extract_id(response)
        if not file_id:
            raise DifyAPIError("上传响应中未找到文件ID")
        return file_id

    @staticmethod
    def _extract_id(response: requests.Response) -> str:
        try:
            data = response.json()
        except ValueError as err:
            raise DifyAPIError(f"failed to parse upload response: {err}") from err
        if not isinstance(data, dict):
            raise DifyAPIError("failed to parse upload response: not a JSON object")
        file_id = data.get("id") or ""
        if not isinstance(file_id, str):
            raise DifyAPIError("failed to parse upload response: id is not a string")
        return file_id

    def _run_workflow_with_file(self, file_id: str, user_id: str) -> DifyResponse:
        payload = {
            "inputs": {
                "screenshot": {
                    "transfer_method": "local_file",
                    "upload_file_id": file_id,
                    "type": "image",
                }
            },
            "response_mode": "blocking",
            "user": user_id,
            "auto_generate_name": False,
        }
        try:
            response = self._post("/workflows/run", retry=True, json=payload)
        except DifyAPIError as err:
            raise DifyAPIError(f"工作流运行失败: {err}") from err

        if response.status_code != 200:
            detail = _error_detail(response.content)
            if detail is not None:
                message, code = detail
                raise DifyAPIError(
                    f"工作流执行失败: {message} (code: {code})", response.status_code, code
                )
            raise DifyAPIError(
                f"工作流执行失败，状态码: {response.status_code}, 响应: {response.text}",
                response.status_code,
            )
        return self._parse_response(response, "workflow")

    def upload_file(self, file_data: bytes, file_name: str, user_id: str) -> str:
        """Upload a file and return the identifier Dify gives it."""
        files = {"file": (file_name, file_data, "application/octet-stream")}
        response = self._post("/files/upload", retry=False, files=files, data={"user": user_id})
        if response.status_code != 200:
            raise DifyAPIError(
                f"file upload failed with status {response.status_code}: {response.text}",
                response.status_code,
            )
        return self._extract_id(response)

    def validate_config(self) -> None:
        """Raise ValueError when the endpoint or key is missing."""
        if not self.api_endpoint:
            raise ValueError("Dify API endpoint is required")
        if not self.api_key:
            raise ValueError("Dify API key is required")

    def get_config(self) -> dict[str, str]:
        """Return the endpoint and timeout, leaving out the key."""
        return {"api_endpoint": self.api_endpoint, "timeout": _format_duration(self.timeout)}