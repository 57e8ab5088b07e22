from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright

from .errors import AutomationError
from .reporter import ConsoleEntry


class BrowserSessionError(AutomationError):
    pass


class BrowserSession:
    """
    One headless Chrome page driven through Playwright.

    Scripts are WebDriver-style function bodies (`return ...;`), wrapped into a
    function for `page.evaluate`. Console messages are collected for the whole
    session and downloads are saved into `download_dir`.

    The sync API dispatches page events only while a Playwright call is in
    flight, so console entries are stamped when they are received. A message
    logged during the load wait or a poll wait carries the time of the next
    call into the page (the next poll), not the time it was logged.
    """

    def __init__(
        self,
        *,
        browser_path: str,
        download_dir: Path,
        window_size: tuple[int, int] = (1024, 768),
        headless: bool = True,
    ) -> None:
        self.browser_path = browser_path
        self.download_dir = download_dir
        self.window_size = window_size
        self.headless = headless
        self.console_entries: list[ConsoleEntry] = []
        self._playwright: Any = None
        self._browser: Any = None
        self._context: Any = None
        self._page: Any = None

    def start(self) -> None:
        width, height = self.window_size
        self.download_dir.mkdir(parents=True, exist_ok=True)
        try:
            self._playwright = sync_playwright().start()
            self._browser = self._playwright.chromium.launch(
                executable_path=self.browser_path,
                headless=self.headless,
                args=[
                    f"--window-size={width},{height}",
                    "--no-sandbox",
                    "--disable-web-security",
                ],
            )
            self._context = self._browser.new_context(
                viewport={"width": width, "height": height},
                accept_downloads=True,
                ignore_https_errors=True,
            )
            self._context.clear_cookies()
            self._page = self._context.new_page()
        except PlaywrightError as e:
            self.close()
            raise BrowserSessionError(f"Failed to start the browser at {self.browser_path!r}: {e}") from e
        self._page.on("console", self._on_console)
        self._page.on("download", self._on_download)

    def _on_console(self, message: Any) -> None:
        # Receive time, not log time; see the class docstring.
        self.console_entries.append(
            ConsoleEntry(timestamp=datetime.now(), level=str(message.type), message=str(message.text))
        )

    def _on_download(self, download: Any) -> None:
        dest = self.download_dir / download.suggested_filename
        try:
            download.save_as(str(dest))
        except PlaywrightError as e:
            print(f"  failed to save download {download.suggested_filename!r}: {e}")
            return
        print(f"  downloaded: {dest}")

    def _require_page(self) -> Any:
        if self._page is None:
            raise RuntimeError("No active browser page. Call start() first.")
        return self._page

    def open(self, url: str) -> None:
        page = self._require_page()
        try:
            page.goto(url, wait_until="domcontentloaded")
        except PlaywrightError as e:
            raise BrowserSessionError(f"Failed to open {url!r}: {e}") from e

    def execute_script(self, script: str) -> Any:
        page = self._require_page()
        try:
            return page.evaluate(f"() => {{ {script} }}")
        except PlaywrightError as e:
            raise BrowserSessionError(f"Script execution failed: {e}") from e

    def close(self) -> None:
        for closer in (self._context, self._browser):
            if closer is None:
                continue
            try:
                closer.close()
            except PlaywrightError as e:
                print(f"  error while closing the browser: {e}")
        if self._playwright is not None:
            self._playwright.stop()
        self._page = None
        self._context = None
        self._browser = None
        self._playwright = None
