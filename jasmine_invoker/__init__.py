"""
Jasmine test-run invoker: drives a jasmine suite inside a browser (Playwright)
or a native app (Appium), polls for completion and aggregates the results.
"""

from __future__ import annotations

from typing import Any

from .aggregator import AggregationPass, ResultAggregator, ResultStatus, RunTotals
from .appium_http_client import AppiumHTTPClient, AppiumHTTPError
from .errors import (
    AutomationError,
    ConfigError,
    EventFeedError,
    EventSourceError,
    JasmineInvokerError,
)
from .event_source import DeviceFileEventSource, ScriptEventSource
from .platforms import DevicePlatform, NativeTarget
from .poller import CompletionPoller, PollOutcome, PollState, PollTimer

__all__ = [
    "AggregationPass",
    "AppiumHTTPClient",
    "AppiumHTTPError",
    "AutomationError",
    "BrowserSession",
    "CompletionPoller",
    "ConfigError",
    "DeviceFileEventSource",
    "DevicePlatform",
    "EventFeedError",
    "EventSourceError",
    "JasmineInvokerError",
    "NativeTarget",
    "PollOutcome",
    "PollState",
    "PollTimer",
    "ResultAggregator",
    "ResultStatus",
    "RunTotals",
    "ScriptEventSource",
]


def __getattr__(name: str) -> Any:
    """
    Lazy export of the Playwright-backed session so that importing the package
    does not require Playwright.
    """
    if name == "BrowserSession":
        from . import browser

        return browser.BrowserSession
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
