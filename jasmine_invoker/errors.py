from __future__ import annotations


class JasmineInvokerError(RuntimeError):
    pass


class ConfigError(JasmineInvokerError):
    """A required setting is missing or invalid. Raised before any session starts."""


class AutomationError(JasmineInvokerError):
    """Communication with the browser/Appium endpoint failed. Usually recoverable."""


class EventSourceError(AutomationError):
    pass


class EventFeedError(JasmineInvokerError):
    """The jasmine event feed is not valid JSON or does not have the expected shape."""


class AppConfigError(JasmineInvokerError):
    pass


class ResultsFetchError(JasmineInvokerError):
    pass
