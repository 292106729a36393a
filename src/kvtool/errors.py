"""Exceptions raised by kvtool operations.

Every error a command can surface derives from KvToolError, so the CLI
catches a single type and prints its message.
"""

from typing import List, Optional, Sequence


class KvToolError(Exception):
    """Base class for kvtool errors."""

    pass


class ConfigError(KvToolError):
    """Configuration file missing or incomplete."""

    pass


class ApiError(KvToolError):
    """Error returned by (or while talking to) the Cloudflare API.

    Attributes:
        errors: (code, message) pairs reported by the API
        status_code: HTTP status code, when one was received
    """

    def __init__(
        self,
        message: str,
        errors: Optional[Sequence[tuple[int, str]]] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.errors: List[tuple[int, str]] = list(errors or [])
        self.status_code = status_code

    @classmethod
    def from_errors(
        cls, errors: Sequence[tuple[int, str]], status_code: Optional[int] = None
    ) -> "ApiError":
        """Build an error whose message joins every ``code: message`` pair."""
        message = "\n".join(f"{code}: {text}" for code, text in errors)
        if not message:
            message = f"Cloudflare API request failed (HTTP {status_code})"
        return cls(message, errors=errors, status_code=status_code)


class NamespaceNotFoundError(KvToolError):
    """No namespace has the requested title."""

    def __init__(self, title: str):
        super().__init__(f"Namespace {title} not found")
        self.title = title


class DuplicateNamespaceError(KvToolError):
    """More than one namespace has the requested title."""

    def __init__(self, title: str, ids: Sequence[str]):
        super().__init__(
            f"Namespace title {title} is ambiguous: matches {len(ids)} namespaces "
            f"({', '.join(ids)})"
        )
        self.title = title
        self.ids = list(ids)


class MissingValueError(KvToolError):
    """A listed key returned no value."""

    def __init__(self, key: str):
        super().__init__(f"Value for key {key} is missing")
        self.key = key


class KeyNameTooLongError(KvToolError):
    """A key's escaped dump file name exceeds the filesystem limit."""

    def __init__(self, key: str, length: int, limit: int):
        super().__init__(
            f"Key {key} cannot be dumped: its file name would be {length} bytes "
            f"(limit {limit})"
        )
        self.key = key
        self.length = length
