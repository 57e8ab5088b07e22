from __future__ import annotations

import json
from typing import Any, Optional, Protocol

from .appium_http_client import AppiumHTTPClient
from .errors import AutomationError, EventSourceError
from .platforms import NativeTarget

JASMINE_EVENTS_EXPRESSION = "JSON.stringify(jasmineEvents)"


class ScriptSession(Protocol):
    def execute_script(self, script: str) -> Any: ...


class EventSource(Protocol):
    description: str

    def fetch(self) -> Optional[str]: ...


def _guarded_expression(expression: str) -> str:
    # `jasmineEvents` only exists once the reporter has been installed by the app.
    return (
        "return (typeof jasmineEvents === 'undefined' || jasmineEvents === null) "
        f"? null : {expression};"
    )


class ScriptEventSource:
    """Reads the in-memory `jasmineEvents` array by executing a script in a live session."""

    def __init__(self, session: ScriptSession, *, expression: str = JASMINE_EVENTS_EXPRESSION) -> None:
        self.session = session
        self.expression = expression
        self.description = f"script {expression!r}"

    def fetch(self) -> Optional[str]:
        try:
            value = self.session.execute_script(_guarded_expression(self.expression))
        except AutomationError as e:
            raise EventSourceError(f"Failed to read jasmine events via script: {e}") from e
        if value is None:
            return None
        if isinstance(value, str):
            return value or None
        # Some drivers hand back the deserialized array instead of the JSON string.
        return json.dumps(value)


class DeviceFileEventSource:
    """Pulls the jasmine JSON report written by the app from the device filesystem."""

    def __init__(self, client: AppiumHTTPClient, target: NativeTarget, *, path: Optional[str] = None) -> None:
        self.client = client
        self.target = target
        self.path = path or target.json_report_path
        self.description = f"device file {self.path!r}"

    def fetch(self) -> Optional[str]:
        device_path = self.target.device_path(self.path)
        try:
            content = self.client.pull_file(device_path)
        except AutomationError as e:
            raise EventSourceError(f"Failed to read the file from the path {device_path!r}: {e}") from e
        if not content:
            print(f"  jasmine results file {device_path} is either empty or does not exist yet")
            return None
        return content.decode("utf-8", errors="replace")
