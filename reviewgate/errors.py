"""Exception hierarchy shared by the gateway and the review orchestrator."""

from __future__ import annotations


class ReviewGateError(Exception):
    """Base class for every error raised by reviewgate."""


class GatewayError(ReviewGateError):
    """Webhook gateway lifecycle failure."""


class BindError(GatewayError):
    """The listener could not be bound for an OS-level reason."""

    def __init__(self, port: int, reason: str) -> None:
        super().__init__(f"Unable to bind webhook listener on port {port}: {reason}")
        self.port = port
        self.reason = reason


class PortInUse(BindError):
    """The configured port is already bound by another listener."""

    def __init__(self, port: int) -> None:
        super().__init__(port, "address already in use")


class RemoteCallError(ReviewGateError):
    """A call to the completion service did not produce a usable payload."""


class RemoteTimeout(RemoteCallError):
    """The completion call exceeded its per-call timeout."""

    def __init__(self, timeout: float) -> None:
        super().__init__(f"Completion service timeout ({timeout:g}s)")
        self.timeout = timeout


class RateLimited(RemoteCallError):
    """The completion service answered with HTTP 429."""

    def __init__(self, message: str = "rate limited") -> None:
        super().__init__(f"Completion service 429: {message}")
        self.message = message


class RemoteError(RemoteCallError):
    """Non-success response other than a rate limit."""

    def __init__(self, code: int | None, message: str) -> None:
        prefix = f"Completion service {code}" if code is not None else "Completion service error"
        super().__init__(f"{prefix}: {message}")
        self.code = code
        self.message = message


class ExhaustedRetries(RemoteCallError):
    """Rate limiting persisted through every allowed retry."""

    def __init__(self, attempts: int) -> None:
        super().__init__(f"Completion service: max retries exhausted after {attempts} attempts")
        self.attempts = attempts


class InvalidArgument(ReviewGateError, ValueError):
    """Caller supplied a malformed change-set or configuration."""
