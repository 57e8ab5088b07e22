from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from .errors import AutomationError, ConfigError

APPLICATION_ID_TOKEN = "[APPLICATIONID]"
IOS_SPRINGBOARD_BUNDLE_ID = "com.apple.springboard"

JASMINE_JSON_REPORT_FILE = "jasmineReport.json"
JASMINE_HTML_REPORT_FILE = "TestResult.html"


class DevicePlatform(Enum):
    ANDROID = "android"
    IOS = "ios"

    @classmethod
    def from_name(cls, name: str) -> "DevicePlatform":
        """
        Map a device-farm / Appium platform name onto a platform.

        Appium reports Android sessions with platform "LINUX" on some servers.
        """
        lowered = (name or "").strip().lower()
        if lowered in {"android", "linux"}:
            return cls.ANDROID
        if lowered in {"ios", "mac", "iphone", "ipad"}:
            return cls.IOS
        raise ConfigError(f"Unsupported device platform: {name!r} (expected Android or iOS)")

    @property
    def report_dir(self) -> str:
        if self is DevicePlatform.ANDROID:
            return "/sdcard/JasmineTestResults/"
        return f"@{APPLICATION_ID_TOKEN}/Library/JasmineTestResults/"

    @property
    def bundle_id_key(self) -> str:
        if self is DevicePlatform.ANDROID:
            return "appPackage"
        return "CFBundleIdentifier"

    def session_capabilities(self) -> dict[str, Any]:
        capabilities: dict[str, Any] = {
            "platformName": "Android" if self is DevicePlatform.ANDROID else "iOS",
            "appium:noReset": False,
            "appium:autoGrantPermissions": True,
            "appium:newCommandTimeout": 300,
        }
        if self is DevicePlatform.ANDROID:
            capabilities["appium:automationName"] = "UiAutomator2"
        else:
            capabilities["appium:automationName"] = "XCUITest"
            # The app is installed during device setup; don't reinstall it.
            capabilities["appium:noReset"] = True
            capabilities["appium:autoAcceptAlerts"] = True
            capabilities["appium:wdaLaunchTimeout"] = 120000
            capabilities["appium:wdaStartupRetries"] = 4
        return capabilities


def build_session_payload(platform: DevicePlatform) -> dict[str, Any]:
    return {"capabilities": {"alwaysMatch": platform.session_capabilities(), "firstMatch": [{}]}}


@dataclass
class NativeTarget:
    """
    The app under test. Shared by the event source, the foreground check and the
    artifact copy so a re-resolved bundle id is seen everywhere.
    """

    platform: DevicePlatform
    bundle_id: str

    def device_path(self, path: str) -> str:
        if self.platform is DevicePlatform.ANDROID:
            return path
        return path.replace(APPLICATION_ID_TOKEN, self.bundle_id)

    @property
    def json_report_path(self) -> str:
        return self.platform.report_dir + JASMINE_JSON_REPORT_FILE

    @property
    def html_report_path(self) -> str:
        return self.platform.report_dir + JASMINE_HTML_REPORT_FILE


def lookup_capability(capabilities: dict[str, Any], key: str) -> Optional[Any]:
    for candidate in (key, f"appium:{key}"):
        value = capabilities.get(candidate)
        if value:
            return value
    return None


def resolve_bundle_id(client: Any, platform: DevicePlatform) -> Optional[str]:
    """
    Bundle id of the app under test, from the session details.

    Falls back to the capabilities echoed at session creation when the server
    does not serve session details.
    """
    try:
        details = client.get_session_details()
    except AutomationError as e:
        print(f"  could not read session details ({e}); using session capabilities")
        details = {}
    value = lookup_capability(details, platform.bundle_id_key) or lookup_capability(
        client.capabilities, platform.bundle_id_key
    )
    return str(value) if value else None
