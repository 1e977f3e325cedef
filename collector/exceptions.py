"""
Custom exceptions for the site collector
"""
from typing import Optional


class CollectionError(Exception):
    """Base class for collector failures"""


class BrowserLaunchFailed(CollectionError):
    def __init__(self, detail: str):
        super().__init__(f"Browser launch failed: {detail}")


class NavigationTimeout(CollectionError):
    def __init__(self, url: str, timeout_ms: int):
        self.url = url
        self.timeout_ms = timeout_ms
        super().__init__(f"Navigation to {url} timed out after {timeout_ms}ms")


class BlockedByTarget(CollectionError):
    def __init__(self, url: str, reason: str = "block page detected"):
        self.url = url
        self.reason = reason
        super().__init__(f"Website blocked the collector: {url} ({reason})")


class UnhandledCollectionError(CollectionError):
    def __init__(self, url: str, cause: Optional[BaseException] = None):
        self.url = url
        self.cause = cause
        detail = f"{type(cause).__name__}: {cause}" if cause else "unknown error"
        super().__init__(f"Collection failed for {url}: {detail}")
