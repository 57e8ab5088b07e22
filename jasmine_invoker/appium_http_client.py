from __future__ import annotations

import base64
from enum import IntEnum
from typing import Any, Optional

import requests

from .errors import AutomationError


class AppiumHTTPError(AutomationError):
    def __init__(
        self,
        *,
        message: str,
        method: str,
        url: str,
        status_code: Optional[int] = None,
        response_json: Optional[dict[str, Any]] = None,
        response_text: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.method = method
        self.url = url
        self.status_code = status_code
        self.response_json = response_json
        self.response_text = response_text


class ApplicationState(IntEnum):
    NOT_INSTALLED = 0
    NOT_RUNNING = 1
    RUNNING_IN_BACKGROUND_SUSPENDED = 2
    RUNNING_IN_BACKGROUND = 3
    RUNNING_IN_FOREGROUND = 4


def _extract_webdriver_value(payload: dict[str, Any]) -> Any:
    # W3C WebDriver typically wraps in {"value": ...}
    if "value" in payload:
        return payload["value"]
    return payload


class AppiumHTTPClient:
    """
    Minimal Appium client speaking the WebDriver HTTP protocol.

    Only the endpoints the jasmine invoker needs are implemented: session
    lifecycle, file pull and app state queries.
    """

    def __init__(self, server_url: str, *, timeout_s: float = 60.0) -> None:
        if not server_url:
            raise ValueError("server_url is required")
        self.server_url = server_url.rstrip("/")
        self.timeout_s = timeout_s
        self.session_id: Optional[str] = None
        self.capabilities: dict[str, Any] = {}
        self._session = requests.Session()

    def _request(self, method: str, path: str, *, json: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        url = f"{self.server_url}{path}"
        try:
            response = self._session.request(method, url, json=json, timeout=self.timeout_s)
        except requests.RequestException as e:
            raise AppiumHTTPError(
                message=f"Failed to call Appium server: {e}",
                method=method,
                url=url,
            ) from e

        response_text = None
        response_json: Optional[dict[str, Any]] = None
        try:
            response_json = response.json()
        except ValueError:
            response_text = response.text

        if response.status_code >= 400:
            details = None
            if response_json is not None:
                value = _extract_webdriver_value(response_json)
                if isinstance(value, dict):
                    details = value.get("message") or value.get("error")
            raise AppiumHTTPError(
                message=f"Appium HTTP {response.status_code} for {method} {path}"
                + (f": {details}" if details else ""),
                method=method,
                url=url,
                status_code=response.status_code,
                response_json=response_json,
                response_text=response_text,
            )

        if not isinstance(response_json, dict):
            raise AppiumHTTPError(
                message=f"Appium returned non-JSON response for {method} {path}",
                method=method,
                url=url,
                status_code=response.status_code,
                response_text=response_text,
            )

        return response_json

    def create_session(self, session_payload: dict[str, Any]) -> str:
        """
        Create a session from a WebDriver new-session payload, most commonly
          {"capabilities": {"alwaysMatch": {...}, "firstMatch": [{}]}}

        The capabilities echoed back by the server are kept on `self.capabilities`.
        """
        if not isinstance(session_payload, dict) or not session_payload:
            raise ValueError("session_payload must be a non-empty dict")

        response = self._request("POST", "/session", json=session_payload)

        # Common shapes:
        # - {"value": {"sessionId": "...", "capabilities": {...}}}
        # - {"sessionId": "...", "value": {...}}
        value = _extract_webdriver_value(response)
        session_id = None
        capabilities: Any = None
        if isinstance(value, dict):
            session_id = value.get("sessionId")
            capabilities = value.get("capabilities", value)
        session_id = session_id or response.get("sessionId")

        if not session_id:
            raise AppiumHTTPError(
                message="Appium did not return a sessionId in the create_session response",
                method="POST",
                url=f"{self.server_url}/session",
                response_json=response,
            )

        self.session_id = str(session_id)
        self.capabilities = dict(capabilities) if isinstance(capabilities, dict) else {}
        return self.session_id

    def delete_session(self) -> None:
        if not self.session_id:
            return
        session_id = self.session_id
        try:
            self._request("DELETE", f"/session/{session_id}")
        finally:
            self.session_id = None

    def get_session_details(self) -> dict[str, Any]:
        self._require_session()
        response = self._request("GET", f"/session/{self.session_id}")
        value = _extract_webdriver_value(response)
        if not isinstance(value, dict):
            raise AppiumHTTPError(
                message="Unexpected session details response shape (expected object)",
                method="GET",
                url=f"{self.server_url}/session/{self.session_id}",
                response_json=response,
            )
        return value

    def pull_file(self, remote_path: str) -> bytes:
        self._require_session()
        url_path = f"/session/{self.session_id}/appium/device/pull_file"
        response = self._request("POST", url_path, json={"path": remote_path})
        value = _extract_webdriver_value(response)
        if not isinstance(value, str):
            raise AppiumHTTPError(
                message="Unexpected pull_file response shape (expected base64 string)",
                method="POST",
                url=f"{self.server_url}{url_path}",
                response_json=response,
            )
        try:
            return base64.b64decode(value)
        except ValueError as e:
            raise AppiumHTTPError(
                message=f"Failed to decode pulled file {remote_path!r}: {e}",
                method="POST",
                url=f"{self.server_url}{url_path}",
                response_json=response,
            ) from e

    def get_current_package(self) -> str:
        self._require_session()
        url_path = f"/session/{self.session_id}/appium/device/current_package"
        response = self._request("GET", url_path)
        value = _extract_webdriver_value(response)
        if not isinstance(value, str):
            raise AppiumHTTPError(
                message="Unexpected current_package response shape (expected string)",
                method="GET",
                url=f"{self.server_url}{url_path}",
                response_json=response,
            )
        return value

    def query_app_state(self, app_id: str) -> ApplicationState:
        self._require_session()
        url_path = f"/session/{self.session_id}/appium/device/app_state"
        # UiAutomator2 reads appId, XCUITest reads bundleId.
        response = self._request("POST", url_path, json={"appId": app_id, "bundleId": app_id})
        value = _extract_webdriver_value(response)
        try:
            return ApplicationState(int(value))
        except (TypeError, ValueError) as e:
            raise AppiumHTTPError(
                message=f"Unexpected app_state response: {value!r}",
                method="POST",
                url=f"{self.server_url}{url_path}",
                response_json=response,
            ) from e

    def _require_session(self) -> None:
        if not self.session_id:
            raise RuntimeError("No active Appium session. Call create_session() first.")
