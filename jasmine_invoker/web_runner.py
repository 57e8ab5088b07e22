from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Any, Callable, Optional, Protocol

from .aggregator import ResultAggregator
from .config import WebRunSettings
from .errors import AppConfigError, AutomationError, EventSourceError, ResultsFetchError
from .event_source import ScriptEventSource
from .poller import CompletionPoller, PollTimer
from .reporter import (
    CONSOLE_LOG_FILE,
    ConsoleEntry,
    StatusReporter,
    write_console_log,
    write_report_json,
    write_summary,
)
from .result import JasmineRunResult, cancelled_before_polling
from .signals import HtmlReportCheck


class WebSession(Protocol):
    console_entries: list[ConsoleEntry]

    def start(self) -> None: ...

    def open(self, url: str) -> None: ...

    def execute_script(self, script: str) -> Any: ...

    def close(self) -> None: ...


def _default_session_factory(settings: WebRunSettings) -> WebSession:
    # Imported here so the rest of the package works without Playwright installed.
    from .browser import BrowserSession

    return BrowserSession(
        browser_path=settings.browser_path,
        download_dir=settings.download_dir,
        window_size=settings.window_size,
        headless=settings.headless,
    )


def check_app_config(session: WebSession, *, jasmine_test_app_url: str) -> None:
    """
    The app must run in debug mode and load its test scripts from the expected URL.
    """
    debug_mode: Optional[str] = None
    scripts_url: Optional[str] = None
    try:
        raw_debug = session.execute_script("return appConfig.isDebug;")
        raw_url = session.execute_script("return appConfig.testAutomation.scriptsURL;")
        debug_mode = None if raw_debug is None else str(raw_debug)
        scripts_url = None if raw_url is None else str(raw_url)
    except AutomationError as e:
        print(f"Unable to fetch the app details: {e}")

    if debug_mode is not None and debug_mode.lower() != "true":
        raise AppConfigError("Web application is not running in debug mode; jasmine tests can't run.")
    if scripts_url is None or scripts_url.lower() != jasmine_test_app_url.lower():
        raise AppConfigError(
            "Web application doesn't have the appropriate jasmine configuration: "
            f"scripts URL {scripts_url!r}, expected {jasmine_test_app_url!r}"
        )


def _final_fetch(source: ScriptEventSource) -> Optional[str]:
    try:
        return source.fetch()
    except EventSourceError as e:
        print(f"Exception occurred while fetching the jasmine results: {e}")
        return None


def run_web_jasmine_tests(
    settings: WebRunSettings,
    *,
    session_factory: Optional[Callable[[WebRunSettings], WebSession]] = None,
    timer: Optional[PollTimer] = None,
) -> JasmineRunResult:
    """
    Open the web app in Chrome, wait for its jasmine suite to finish and collect the results.

    Artifacts written to the download directory:
      report.json            raw jasmineEvents feed
      report_summary.json    outcome, totals and per-spec status
      browserConsoleLog.txt  browser console output (written even when the run fails)
    """
    timer = timer or PollTimer(settings.poll_interval_s)
    session = (session_factory or _default_session_factory)(settings)
    aggregator = ResultAggregator()
    status = StatusReporter()
    download_dir = Path(settings.download_dir)
    artifacts: list[Path] = []

    try:
        session.start()
        print("\n=== Jasmine Web Test Run ===")
        print(f"App URL: {settings.app_url}")
        print(f"Download dir: {download_dir}")
        session.open(settings.app_url)

        source = ScriptEventSource(session)
        print(f"Waiting {settings.app_load_wait_s:.0f}s for the application to load...")
        if timer.wait(settings.app_load_wait_s):
            check_app_config(session, jasmine_test_app_url=settings.jasmine_test_app_url)
            poller = CompletionPoller(
                source=source,
                aggregator=aggregator,
                timer=timer,
                max_iterations=settings.max_polls,
                terminal_check=HtmlReportCheck(download_dir),
                start_timeout_cycles=settings.start_timeout_polls,
                on_pass=status.on_pass,
            )
            outcome = poller.run()
        else:
            outcome = cancelled_before_polling()

        raw_events = _final_fetch(source)
        report_json_path = None
        if raw_events is not None:
            status.on_pass(aggregator.aggregate(raw_events))
            report_json_path = write_report_json(download_dir, raw_events)
            artifacts.append(report_json_path)
            # The final read is the most recent view of the run.
            outcome = replace(outcome, totals=aggregator.totals, raw_events=raw_events)

        summary_path = write_summary(download_dir, outcome=outcome, aggregator=aggregator)
        artifacts.append(summary_path)
        status.print_final(aggregator, outcome)

        if raw_events is None:
            raise ResultsFetchError("Jasmine results could not be fetched from the browser session.")

        return JasmineRunResult(
            variant="web",
            outcome=outcome,
            results=aggregator.results(),
            report_json_path=report_json_path,
            summary_path=summary_path,
            artifacts=artifacts,
        )
    finally:
        try:
            log_path = write_console_log(download_dir / CONSOLE_LOG_FILE, session.console_entries)
            print(f"Browser console log: {log_path}")
        except OSError as e:
            print(f"Unable to write the browser console log: {e}")
        session.close()
