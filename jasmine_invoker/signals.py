from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Protocol

from .appium_http_client import AppiumHTTPClient, ApplicationState
from .platforms import IOS_SPRINGBOARD_BUNDLE_ID, DevicePlatform, NativeTarget, resolve_bundle_id


@dataclass(frozen=True)
class TerminalSignal:
    """A reason to stop polling that does not come from the event counts."""

    completed: bool
    reason: str


class TerminalCheck(Protocol):
    def check(self) -> Optional[TerminalSignal]: ...


def find_html_reports(download_dir: Path) -> list[Path]:
    if not download_dir.is_dir():
        return []
    return sorted(
        p
        for p in download_dir.rglob("*.html")
        if p.is_file() and ("TestResult_" in p.name or p.name == "report.html")
    )


class HtmlReportCheck:
    """Web: the jasmine HTML report lands in the download directory when the run is over."""

    def __init__(self, download_dir: Path) -> None:
        self.download_dir = download_dir

    def check(self) -> Optional[TerminalSignal]:
        reports = find_html_reports(self.download_dir)
        if not reports:
            return None
        print(f"Jasmine test execution report found: {reports[0]}")
        return TerminalSignal(completed=True, reason="html_report_found")


class AppForegroundCheck:
    """
    Native: stop once the app under test is no longer in the foreground.

    That happens when the app crashed or was closed (or never launched). The run
    is treated as over and whatever results exist are still collected.
    """

    def __init__(
        self,
        client: AppiumHTTPClient,
        target: NativeTarget,
        *,
        springboard_wait_s: float = 60.0,
        wait: Optional[Callable[[float], object]] = None,
    ) -> None:
        self.client = client
        self.target = target
        self.springboard_wait_s = springboard_wait_s
        self._wait = wait

    def check(self) -> Optional[TerminalSignal]:
        if self.target.platform is DevicePlatform.ANDROID:
            return self._check_android()
        return self._check_ios()

    def _check_android(self) -> Optional[TerminalSignal]:
        current_package = self.client.get_current_package()
        if current_package.lower() != self.target.bundle_id.lower():
            print(
                f"Application seems crashed or closed (foreground package {current_package!r}). "
                "Will try to fetch the jasmine test results if available."
            )
            return TerminalSignal(completed=False, reason="app_not_in_foreground")
        return None

    def _check_ios(self) -> Optional[TerminalSignal]:
        if self.target.bundle_id.lower() == IOS_SPRINGBOARD_BUNDLE_ID:
            print(
                f"Application not started yet ({IOS_SPRINGBOARD_BUNDLE_ID} is the active app). "
                f"Waiting {self.springboard_wait_s:.0f}s for it to start."
            )
            if self._wait is not None:
                self._wait(self.springboard_wait_s)
            refreshed = resolve_bundle_id(self.client, self.target.platform)
            if refreshed and refreshed.lower() != IOS_SPRINGBOARD_BUNDLE_ID:
                self.target.bundle_id = refreshed
            print(f"  bundle id after the wait: {self.target.bundle_id}")

        if self.target.bundle_id.lower() == IOS_SPRINGBOARD_BUNDLE_ID:
            return None

        state = self.client.query_app_state(self.target.bundle_id)
        print(f"  application state: {state.name}")
        if state is not ApplicationState.RUNNING_IN_FOREGROUND:
            print(
                "Application is not running in the foreground (not launched, crashed or closed). "
                "Will try to fetch the jasmine test results if available."
            )
            return TerminalSignal(completed=False, reason="app_not_in_foreground")
        return None
