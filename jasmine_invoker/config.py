from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from .env import env_bool, env_float, env_int, optional_env, require_env
from .errors import ConfigError
from .platforms import DevicePlatform

CUSTOM_TEST_ENVIRONMENT = "RUN_IN_CUSTOM_TEST_ENVIRONMENT"
DEFAULT_APPIUM_SERVER_URL = "http://127.0.0.1:4723/wd/hub"
DEFAULT_SCREEN_RESOLUTION = "1024x768"


def load_json_file(path: str) -> dict[str, Any]:
    file_path = Path(path)
    if not file_path.exists():
        raise ConfigError(f"JSON file not found: {file_path}")
    if file_path.is_dir():
        raise ConfigError(f"Expected a JSON file but found a directory: {file_path}")

    raw = file_path.read_text(encoding="utf-8")
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {file_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Expected top-level JSON object in {file_path}")
    return data


def require_key(obj: dict[str, Any], key: str, *, context: str) -> Any:
    if key not in obj:
        raise ConfigError(f"Missing required key '{key}' in {context}")
    return obj[key]


def parse_window_size(raw: str) -> tuple[int, int]:
    width, sep, height = raw.lower().partition("x")
    try:
        parsed = (int(width), int(height))
    except ValueError as e:
        raise ConfigError(f"SCREEN_RESOLUTION must look like 1024x768, got {raw!r}") from e
    if not sep or parsed[0] <= 0 or parsed[1] <= 0:
        raise ConfigError(f"SCREEN_RESOLUTION must look like 1024x768, got {raw!r}")
    return parsed


@dataclass(frozen=True)
class WebRunSettings:
    browser_path: str
    app_url: str
    download_dir: Path
    jasmine_test_app_url: str
    window_size: tuple[int, int] = (1024, 768)
    headless: bool = True
    app_load_wait_s: float = 300.0
    poll_interval_s: float = 30.0
    max_polls: int = 1000
    start_timeout_polls: int = 1

    @classmethod
    def from_env(cls) -> "WebRunSettings":
        return cls(
            browser_path=require_env("BROWSER_PATH", description="Browser path"),
            app_url=require_env("WEB_APP_URL", description="Web application URL"),
            download_dir=Path(require_env("FILE_DOWNLOAD_PATH", description="Download file path")).resolve(),
            jasmine_test_app_url=require_env("JASMINE_TEST_APP_URL", description="Jasmine test app URL"),
            window_size=parse_window_size(optional_env("SCREEN_RESOLUTION", DEFAULT_SCREEN_RESOLUTION)),
            headless=env_bool("JASMINE_HEADLESS", True),
            app_load_wait_s=env_float("JASMINE_APP_LOAD_WAIT_S", 300.0),
            poll_interval_s=env_float("JASMINE_POLL_INTERVAL_S", 30.0),
            max_polls=env_int("JASMINE_MAX_POLLS", 1000),
            start_timeout_polls=env_int("JASMINE_START_TIMEOUT_POLLS", 1),
        )


@dataclass(frozen=True)
class NativeRunSettings:
    results_dir: Path
    platform_name: Optional[str] = None
    test_run_environment: str = CUSTOM_TEST_ENVIRONMENT
    appium_server_url: str = DEFAULT_APPIUM_SERVER_URL
    capabilities_json_path: Optional[str] = None
    start_wait_s: float = 30.0
    poll_interval_s: float = 50.0
    max_polls: int = 100
    start_timeout_polls: int = 11
    springboard_wait_s: float = 60.0

    @classmethod
    def from_env(cls) -> "NativeRunSettings":
        test_run_environment = optional_env("TEST_RUN_ENVIRONMENT", CUSTOM_TEST_ENVIRONMENT)
        custom = test_run_environment.upper() == CUSTOM_TEST_ENVIRONMENT
        if custom:
            platform_name: Optional[str] = require_env(
                "DEVICEFARM_DEVICE_PLATFORM_NAME", description="Device platform name"
            )
            # Validate early so a typo fails before a session is requested.
            DevicePlatform.from_name(platform_name)
            capabilities_json_path = optional_env("CAPABILITIES_JSON_PATH")
        else:
            platform_name = optional_env("DEVICEFARM_DEVICE_PLATFORM_NAME")
            capabilities_json_path = require_env("CAPABILITIES_JSON_PATH", description="Capabilities JSON path")
        return cls(
            results_dir=Path(require_env("DEVICEFARM_LOG_DIR", description="Device farm log directory")).resolve(),
            platform_name=platform_name,
            test_run_environment=test_run_environment,
            appium_server_url=optional_env("APPIUM_SERVER_URL", DEFAULT_APPIUM_SERVER_URL),
            capabilities_json_path=capabilities_json_path,
            start_wait_s=env_float("JASMINE_START_WAIT_S", 30.0),
            poll_interval_s=env_float("JASMINE_POLL_INTERVAL_S", 50.0),
            max_polls=env_int("JASMINE_MAX_POLLS", 100),
            start_timeout_polls=env_int("JASMINE_START_TIMEOUT_POLLS", 11),
            springboard_wait_s=env_float("JASMINE_SPRINGBOARD_WAIT_S", 60.0),
        )
