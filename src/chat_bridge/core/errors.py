from __future__ import annotations
from typing import Optional


class BridgeError(Exception):
    """
    Base class for every failure the bridge reports to its caller.
    'agent' is filled in by the orchestrator with the side that failed ("Agent A" / "Agent B").
    """

    def __init__(self, message: str = "", *, agent: Optional[str] = None):
        super().__init__(message)
        self.agent = agent

    def describe(self) -> str:
        msg = str(self) or self.__class__.__name__
        return f"{self.agent}: {msg}" if self.agent else msg


class ProviderError(BridgeError):
    """Base class for provider-level failures."""


class ProviderNotImplemented(ProviderError):
    """The provider key is known (or not) but has no registered factory."""

    def __init__(self, key: str, *, agent: Optional[str] = None):
        super().__init__(f"provider '{key}' not yet implemented", agent=agent)
        self.key = key


class InvalidCredentials(ProviderError):
    """
    Authentication was rejected (HTTP 401). Kept apart from connectivity
    failures so the caller can tell the user which key to fix.
    """


class APIError(ProviderError):
    def __init__(self, status_code: int, body: str, *, agent: Optional[str] = None):
        super().__init__(f"API error (status {status_code}): {body}", agent=agent)
        self.status_code = status_code
        self.body = body


class ProviderConnectionError(ProviderError):
    """Network-level failure before any HTTP status was received."""


class StreamingFailed(ProviderError):
    """The stream broke after it started (read error, unexpected worker failure)."""


class ContextCancelled(BridgeError):
    def __init__(self, message: str = "context cancelled", *, agent: Optional[str] = None):
        super().__init__(message, agent=agent)


class StreamTimeout(BridgeError):
    def __init__(self, idle_timeout: float, *, agent: Optional[str] = None):
        super().__init__(f"stream timeout: no event for {idle_timeout:g}s", agent=agent)
        self.idle_timeout = idle_timeout
