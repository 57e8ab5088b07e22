"""Tests for the web variant with an in-memory browser session."""
import json
import sys
from datetime import datetime
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))
from jasmine_invoker.config import WebRunSettings
from jasmine_invoker.errors import AppConfigError, AutomationError, ResultsFetchError
from jasmine_invoker.poller import PollState, PollTimer
from jasmine_invoker.reporter import ConsoleEntry
from jasmine_invoker.web_runner import check_app_config, run_web_jasmine_tests
from jasmine_feeds import feed, spec_done, spec_started, started

TESTS_URL = "https://tests.example.com/jasmine/"

PARTIAL = feed(started(3), spec_started("A"), spec_done("A", "passed"), spec_started("B"))
COMPLETE = feed(
    started(3),
    spec_done("A", "passed"),
    spec_done("B", "failed"),
    spec_done("C", "passed"),
)


class FakeWebSession:
    def __init__(self, feeds, *, debug=True, scripts_url=TESTS_URL):
        self.feeds = list(feeds)
        self.debug = debug
        self.scripts_url = scripts_url
        self.console_entries = []
        self.opened = []
        self.started = False
        self.closed = False

    def start(self):
        self.started = True
        self.console_entries.append(ConsoleEntry(datetime(2024, 1, 2, 3, 4, 5), "log", "app booted"))

    def open(self, url):
        self.opened.append(url)

    def execute_script(self, script):
        if "jasmineEvents" in script:
            return self.feeds[0] if len(self.feeds) == 1 else self.feeds.pop(0)
        if "isDebug" in script:
            if isinstance(self.debug, Exception):
                raise self.debug
            return self.debug
        if "scriptsURL" in script:
            return self.scripts_url
        raise AssertionError(f"unexpected script: {script}")

    def close(self):
        self.closed = True


def _settings(tmp_path, **overrides):
    values = dict(
        browser_path="/usr/bin/chromium",
        app_url="https://app.example.com/?debug=true",
        download_dir=tmp_path,
        jasmine_test_app_url=TESTS_URL,
        app_load_wait_s=0,
        poll_interval_s=0,
        max_polls=5,
    )
    values.update(overrides)
    return WebRunSettings(**values)


def _run(tmp_path, session, **overrides):
    return run_web_jasmine_tests(
        _settings(tmp_path, **overrides),
        session_factory=lambda settings: session,
        timer=PollTimer(0),
    )


def test_completed_run_writes_artifacts(tmp_path):
    session = FakeWebSession([PARTIAL, COMPLETE])
    result = _run(tmp_path, session)

    assert result.variant == "web"
    assert result.outcome.state is PollState.COMPLETED
    assert result.outcome.reason == "all_specs_reported"
    assert (result.totals.total_tests, result.totals.total_passed, result.totals.total_failed) == (3, 2, 1)
    assert not result.all_passed
    assert session.opened == ["https://app.example.com/?debug=true"]
    assert session.closed

    assert (tmp_path / "report.json").read_text() == COMPLETE
    summary = json.loads((tmp_path / "report_summary.json").read_text())
    assert summary["state"] == "completed"
    assert summary["totalFailed"] == 1
    assert (tmp_path / "browserConsoleLog.txt").read_text() == "Tue Jan 02 03:04:05 2024 LOG app booted\n"


def test_html_report_ends_run(tmp_path):
    (tmp_path / "TestResult_run.html").write_text("<html></html>")
    result = _run(tmp_path, FakeWebSession([PARTIAL]))

    assert result.outcome.state is PollState.COMPLETED
    assert result.outcome.reason == "html_report_found"
    assert result.outcome.iterations == 1
    assert result.totals.total_passed == 1


def test_final_fetch_refreshes_totals(tmp_path):
    """Results that land after the last poll are still counted."""
    (tmp_path / "report.html").write_text("<html></html>")
    result = _run(tmp_path, FakeWebSession([PARTIAL, COMPLETE]))

    assert result.outcome.reason == "html_report_found"
    assert result.totals.total_finished == 3
    assert result.outcome.raw_events == COMPLETE


def test_not_debug_mode(tmp_path):
    session = FakeWebSession([COMPLETE], debug=False)

    with pytest.raises(AppConfigError, match="debug mode"):
        _run(tmp_path, session)
    assert session.closed
    assert (tmp_path / "browserConsoleLog.txt").exists()


def test_wrong_scripts_url(tmp_path):
    with pytest.raises(AppConfigError, match="jasmine configuration"):
        _run(tmp_path, FakeWebSession([COMPLETE], scripts_url="https://elsewhere/"))


def test_scripts_url_is_case_insensitive():
    check_app_config(FakeWebSession([], scripts_url=TESTS_URL.upper()), jasmine_test_app_url=TESTS_URL)
    check_app_config(FakeWebSession([], debug="TRUE"), jasmine_test_app_url=TESTS_URL)


def test_unreadable_app_config(tmp_path):
    session = FakeWebSession([COMPLETE], debug=AutomationError("appConfig is not defined"))

    with pytest.raises(AppConfigError):
        _run(tmp_path, session)


def test_tests_never_started(tmp_path):
    session = FakeWebSession([None])

    with pytest.raises(ResultsFetchError):
        _run(tmp_path, session)

    summary = json.loads((tmp_path / "report_summary.json").read_text())
    assert summary["state"] == "aborted"
    assert summary["reason"] == "not_started"
    assert not (tmp_path / "report.json").exists()
    assert session.closed
