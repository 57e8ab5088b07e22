from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

from .aggregator import ResultAggregator
from .appium_http_client import AppiumHTTPClient
from .config import NativeRunSettings, load_json_file, require_key
from .errors import AutomationError, ConfigError
from .event_source import DeviceFileEventSource
from .platforms import DevicePlatform, NativeTarget, build_session_payload, resolve_bundle_id
from .poller import CompletionPoller, PollTimer
from .reporter import StatusReporter, copy_device_file, write_report_json, write_summary
from .result import JasmineRunResult, cancelled_before_polling
from .signals import AppForegroundCheck

LOCAL_HTML_REPORT_FILE = "JasmineTestResult.html"
LOCAL_JSON_REPORT_FILE = "JasmineTestResult.json"


def session_payload(settings: NativeRunSettings) -> dict[str, Any]:
    """
    New-session payload: an explicit capabilities JSON file when configured,
    otherwise the defaults for the configured device platform.
    """
    if settings.capabilities_json_path:
        payload = load_json_file(settings.capabilities_json_path)
        require_key(payload, "capabilities", context=settings.capabilities_json_path)
        return payload
    if not settings.platform_name:
        raise ConfigError("Device platform name is not set properly (DEVICEFARM_DEVICE_PLATFORM_NAME).")
    return build_session_payload(DevicePlatform.from_name(settings.platform_name))


def resolve_platform(settings: NativeRunSettings, client: AppiumHTTPClient) -> DevicePlatform:
    if settings.platform_name:
        return DevicePlatform.from_name(settings.platform_name)
    reported = client.capabilities.get("platformName") or client.capabilities.get("platform")
    if not reported:
        raise ConfigError("Could not determine the device platform from the session capabilities.")
    return DevicePlatform.from_name(str(reported))


def _release(client: AppiumHTTPClient) -> None:
    try:
        client.delete_session()
    except AutomationError as e:
        print(f"Error while ending the Appium session: {e}")


def run_native_jasmine_tests(
    settings: NativeRunSettings,
    *,
    client: Optional[AppiumHTTPClient] = None,
    timer: Optional[PollTimer] = None,
) -> JasmineRunResult:
    """
    Start an Appium session for the installed app, wait for its jasmine suite to
    finish (or for the app to leave the foreground) and collect the reports.

    The app writes `jasmineReport.json` and `TestResult.html` under its
    JasmineTestResults directory; both are copied into `settings.results_dir`
    as JasmineTestResult.json / JasmineTestResult.html, whatever the outcome.
    """
    payload = session_payload(settings)
    client = client or AppiumHTTPClient(settings.appium_server_url)
    timer = timer or PollTimer(settings.poll_interval_s)
    aggregator = ResultAggregator()
    status = StatusReporter()
    results_dir = Path(settings.results_dir)
    artifacts: list[Path] = []

    session_id = client.create_session(payload)
    try:
        platform = resolve_platform(settings, client)
        bundle_id = resolve_bundle_id(client, platform)
        if not bundle_id:
            raise AutomationError(f"Could not resolve the {platform.bundle_id_key} of the app under test.")
        target = NativeTarget(platform=platform, bundle_id=bundle_id)

        print("\n=== Jasmine Native Test Run ===")
        print(f"Session started: {session_id}")
        print(f"Platform: {platform.value}")
        print(f"Bundle id: {bundle_id}")
        print(f"Test run environment: {settings.test_run_environment}")

        source = DeviceFileEventSource(client, target)
        print(f"Waiting {settings.start_wait_s:.0f}s for the jasmine tests to initialize...")
        if timer.wait(settings.start_wait_s):
            print("Looking for the results file...")
            poller = CompletionPoller(
                source=source,
                aggregator=aggregator,
                timer=timer,
                max_iterations=settings.max_polls,
                terminal_check=AppForegroundCheck(
                    client,
                    target,
                    springboard_wait_s=settings.springboard_wait_s,
                    wait=timer.wait,
                ),
                start_timeout_cycles=settings.start_timeout_polls,
                on_pass=status.on_pass,
            )
            outcome = poller.run()
        else:
            outcome = cancelled_before_polling()

        for remote, local in (
            (target.html_report_path, LOCAL_HTML_REPORT_FILE),
            (target.json_report_path, LOCAL_JSON_REPORT_FILE),
        ):
            saved = copy_device_file(client, target.device_path(remote), results_dir / local)
            if saved is not None:
                artifacts.append(saved)

        report_json_path = None
        if outcome.raw_events is not None:
            report_json_path = write_report_json(results_dir, outcome.raw_events)
            artifacts.append(report_json_path)
        summary_path = write_summary(results_dir, outcome=outcome, aggregator=aggregator)
        artifacts.append(summary_path)
        status.print_final(aggregator, outcome)

        return JasmineRunResult(
            variant="native",
            outcome=outcome,
            results=aggregator.results(),
            report_json_path=report_json_path,
            summary_path=summary_path,
            artifacts=artifacts,
        )
    finally:
        _release(client)
