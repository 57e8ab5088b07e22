from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, Optional

from .aggregator import AggregationPass, ResultAggregator, ResultStatus
from .appium_http_client import AppiumHTTPClient
from .errors import AutomationError
from .poller import PollOutcome

NAME_WIDTH = 80
STATUS_WIDTH = 11

REPORT_JSON_FILE = "report.json"
SUMMARY_JSON_FILE = "report_summary.json"
CONSOLE_LOG_FILE = "browserConsoleLog.txt"

_RULE = "-" * (NAME_WIDTH + STATUS_WIDTH + 11)


@dataclass(frozen=True)
class ConsoleEntry:
    timestamp: datetime
    level: str
    message: str

    def format(self) -> str:
        return f"{self.timestamp.strftime('%a %b %d %H:%M:%S %Y')} {self.level.upper()} {self.message}"


def format_status_row(name: str, status: ResultStatus) -> str:
    return f"|  {name:<{NAME_WIDTH}}   | {status.value:>{STATUS_WIDTH}}  |"


def table_header() -> list[str]:
    return [
        _RULE,
        f"|  {'TEST SPEC NAME':<{NAME_WIDTH}}   | {'Status':>{STATUS_WIDTH}}  |",
        _RULE,
    ]


def render_status_table(results: dict[str, ResultStatus]) -> str:
    lines = table_header()
    for name, status in results.items():
        lines.append(format_status_row(name, status))
    lines.append(_RULE)
    return "\n".join(lines)


class StatusReporter:
    """
    Prints the status table while polling: a header once per run (and again
    after a re-instantiation), one row per newly final spec and a row whenever
    a different spec becomes the one in progress.
    """

    def __init__(self, *, emit: Callable[[str], None] = print) -> None:
        self._emit = emit
        self._header_printed = False

    def on_pass(self, aggregation: AggregationPass) -> None:
        if aggregation.reinstantiated:
            self._emit("Tests are re-instantiated")
            self._header_printed = False
        if not self._header_printed and (aggregation.reported or aggregation.in_progress):
            self._emit("")
            self._emit("Test Results Status is as follows :")
            for line in table_header():
                self._emit(line)
            self._header_printed = True
        for name, status in aggregation.reported:
            self._emit(format_status_row(name, status))
        if aggregation.in_progress is not None and aggregation.in_progress_is_new:
            self._emit(format_status_row(aggregation.in_progress, ResultStatus.IN_PROGRESS))

    def print_final(self, aggregator: ResultAggregator, outcome: PollOutcome) -> None:
        totals = outcome.totals
        self._emit("")
        self._emit(f"=== Jasmine run {outcome.state.value} ({outcome.reason}) after {outcome.iterations} poll(s) ===")
        self._emit(render_status_table(aggregator.results()))
        self._emit(
            f"Total: {totals.total_tests}  Passed: {totals.total_passed}  Failed: {totals.total_failed}"
        )


def write_report_json(directory: Path, raw_events: str) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / REPORT_JSON_FILE
    path.write_text(raw_events, encoding="utf-8")
    return path


def write_summary(directory: Path, *, outcome: PollOutcome, aggregator: ResultAggregator) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / SUMMARY_JSON_FILE
    payload = {
        "state": outcome.state.value,
        "reason": outcome.reason,
        "iterations": outcome.iterations,
        **outcome.totals.as_dict(),
        "results": {name: status.value for name, status in aggregator.results().items()},
        "written_at": datetime.now().isoformat(),
    }
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    return path


def write_console_log(path: Path, entries: Iterable[ConsoleEntry]) -> Path:
    # Replaces the log of any previous run.
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as fh:
        for entry in entries:
            fh.write(entry.format() + "\n")
    return path


def copy_device_file(client: AppiumHTTPClient, remote_path: str, dest: Path) -> Optional[Path]:
    """
    Best-effort copy of a device file to `dest`. Failures are reported, never raised.
    """
    try:
        content = client.pull_file(remote_path)
    except AutomationError as e:
        print(f"Error while saving the file {dest}: {e}")
        return None
    if not content:
        print(f"Device file {remote_path} is either empty or does not exist; not saving {dest}")
        return None
    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(content)
    except OSError as e:
        print(f"Error while saving the file {dest}: {e}")
        return None
    print(f"  saved: {dest}")
    return dest
