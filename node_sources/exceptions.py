"""
Node Source Exceptions - Failure taxonomy for pRPC access.

Every failure a single node can produce is one of:
- ConnectFailureError  (refused, unreachable, DNS)
- RequestTimeoutError  (per-call deadline expired, connection aborted)
- ProtocolError        (node answered with a JSON-RPC error object)
- ParseError           (non-success status or malformed body)

Only AllBootstrapsFailedError is meant to reach the caller of a poll cycle.
"""

from datetime import datetime
from typing import Any, Optional


# Upper bound on how much of a raw reply body is kept on an exception.
MAX_BODY_SNIPPET = 100


def truncate_body(body: Optional[str], limit: int = MAX_BODY_SNIPPET) -> Optional[str]:
    """Return a bounded snippet of a raw reply body."""
    if body is None:
        return None
    return body[:limit]


class NodeSourceError(Exception):
    """Base exception for all node source errors."""

    def __init__(
        self,
        message: str,
        host: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.host = host
        self.original_error = original_error
        self.context = context or {}
        self.timestamp = datetime.utcnow()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "host": self.host,
            "original_error": str(self.original_error) if self.original_error else None,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }

    def __str__(self) -> str:
        parts = [f"{self.__class__.__name__}: {self.message}"]
        if self.host:
            parts.append(f"[host={self.host}]")
        if self.original_error:
            parts.append(f"(caused by: {self.original_error})")
        return " ".join(parts)


class TransportError(NodeSourceError):
    """The request never produced a reply (connect failure or timeout)."""

    def __init__(
        self,
        message: str,
        host: Optional[str] = None,
        port: Optional[int] = None,
        method: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, host, original_error, context)
        self.port = port
        self.method = method

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        data = super().to_dict()
        data.update({
            "port": self.port,
            "method": self.method,
        })
        return data


class ConnectFailureError(TransportError):
    """Connection refused, host unreachable or name resolution failed."""
    pass


class RequestTimeoutError(TransportError):
    """Per-call deadline expired; the in-flight connection was aborted."""

    def __init__(
        self,
        message: str,
        host: Optional[str] = None,
        port: Optional[int] = None,
        method: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, host, port, method, original_error, context)
        self.timeout_seconds = timeout_seconds

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        data = super().to_dict()
        data["timeout_seconds"] = self.timeout_seconds
        return data


class ProtocolError(NodeSourceError):
    """Node replied with a JSON-RPC error object."""

    def __init__(
        self,
        message: str,
        host: Optional[str] = None,
        code: Optional[int] = None,
        rpc_message: Optional[str] = None,
        method: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, host, original_error, context)
        self.code = code
        self.rpc_message = rpc_message
        self.method = method

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        data = super().to_dict()
        data.update({
            "code": self.code,
            "rpc_message": self.rpc_message,
            "method": self.method,
        })
        return data


class ParseError(NodeSourceError):
    """Non-success HTTP status or a reply body that is not a valid RPC envelope."""

    def __init__(
        self,
        message: str,
        host: Optional[str] = None,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        field_name: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, host, original_error, context)
        self.status_code = status_code
        self.response_body = truncate_body(response_body)
        self.field_name = field_name

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        data = super().to_dict()
        data.update({
            "status_code": self.status_code,
            "response_body": self.response_body,
            "field_name": self.field_name,
        })
        return data


class AllBootstrapsFailedError(NodeSourceError):
    """No bootstrap candidate returned a non-empty roster."""

    def __init__(
        self,
        message: str,
        attempts: Optional[list[str]] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, None, original_error, context)
        # Ordered "host:port: reason" entries, one per candidate tried
        self.attempts = attempts or []

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        data = super().to_dict()
        data["attempts"] = self.attempts
        return data


class ConfigurationError(NodeSourceError):
    """Invalid monitor configuration."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        original_error: Optional[Exception] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, None, original_error, context)
        self.config_key = config_key

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        data = super().to_dict()
        data["config_key"] = self.config_key
        return data
