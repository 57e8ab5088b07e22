#!/usr/bin/env python3
"""
CLI entry point for the jasmine invoker.

  jasmine-invoker web                 run the web app's suite in Chrome
  jasmine-invoker native              run the installed app's suite through Appium
  jasmine-invoker aggregate FILE      summarize a saved jasmineEvents feed

Settings come from the environment (and a repo-root .env, if present).

Exit codes: 0 all specs passed, 1 failures or no complete results,
2 configuration error, 3 malformed feed or automation failure.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional

from .aggregator import ResultAggregator
from .env import ensure_dotenv_loaded
from .errors import AutomationError, ConfigError, EventFeedError, JasmineInvokerError
from .reporter import render_status_table
from .result import JasmineRunResult

EXIT_OK = 0
EXIT_TESTS_FAILED = 1
EXIT_CONFIG_ERROR = 2
EXIT_RUN_ERROR = 3


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="jasmine-invoker",
        description="Drive a jasmine suite in a browser or native app and report pass/fail counts.",
    )
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("web", help="Run the web app's jasmine suite in headless Chrome.")
    sub.add_parser("native", help="Run the installed app's jasmine suite through Appium.")
    aggregate = sub.add_parser("aggregate", help="Print the status table for a saved jasmineEvents JSON file.")
    aggregate.add_argument("report", help="Path to a report.json / jasmineReport.json file.")
    return parser


def _exit_code_for(result: JasmineRunResult) -> int:
    return EXIT_OK if result.all_passed else EXIT_TESTS_FAILED


def _aggregate_file(path: str) -> int:
    report_path = Path(path)
    if not report_path.is_file():
        print(f"Report file not found: {report_path}")
        return EXIT_CONFIG_ERROR
    aggregator = ResultAggregator()
    totals = aggregator.update(report_path.read_bytes())
    print(render_status_table(aggregator.results()))
    print(f"Total: {totals.total_tests}  Passed: {totals.total_passed}  Failed: {totals.total_failed}")
    if not totals.is_complete:
        print("Run is not complete: not every declared spec has a result.")
    return EXIT_OK if totals.is_complete and totals.total_failed == 0 else EXIT_TESTS_FAILED


def main(argv: Optional[list[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    ensure_dotenv_loaded()

    try:
        if args.command == "aggregate":
            return _aggregate_file(args.report)

        if args.command == "web":
            from .config import WebRunSettings
            from .web_runner import run_web_jasmine_tests

            result = run_web_jasmine_tests(WebRunSettings.from_env())
        else:
            from .config import NativeRunSettings
            from .native_runner import run_native_jasmine_tests

            result = run_native_jasmine_tests(NativeRunSettings.from_env())
    except ConfigError as e:
        print(f"Configuration error: {e}")
        return EXIT_CONFIG_ERROR
    except (EventFeedError, AutomationError) as e:
        print(f"Jasmine run failed: {e}")
        return EXIT_RUN_ERROR
    except JasmineInvokerError as e:
        print(f"Jasmine run failed: {e}")
        return EXIT_TESTS_FAILED

    print(f"\n✓ Jasmine {result.variant} run {result.outcome.state.value}")
    for artifact in result.artifacts:
        print(f"  artifact: {artifact}")
    return _exit_code_for(result)


if __name__ == "__main__":
    sys.exit(main())
