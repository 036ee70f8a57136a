"""
Error taxonomy for profile resolution and stream establishment.

Every error carries an ErrorContext so callers can log structured data
without parsing messages.

Error hierarchy:
- ProfileError (base)
  - HostNotFound (reserved for callers; the parser never raises it)
  - NoHome (home directory needed but unavailable)
  - NotResolvable (address resolution produced no candidates)
  - ConfigIOError (file read, path conversion or stream I/O failure)
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from typing import Any


@dataclass
class ErrorContext:
    """
    Structured context for profile errors.

    Only populated fields are emitted by to_dict().
    """
    alias: str | None = None
    host: str | None = None
    port: int | None = None
    path: str | None = None
    original_error: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Invariant: port is an unsigned 16-bit value if given
        if self.port is not None:
            assert isinstance(self.port, int) and 0 <= self.port <= 65535, (
                f"Port must be between 0 and 65535, got {self.port}"
            )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary, excluding None values."""
        result = {}
        for key, value in asdict(self).items():
            if value is None:
                continue
            if key == "extra":
                field_names = {f.name for f in fields(self)} - {"extra"}
                collisions = field_names & value.keys()
                assert not collisions, (
                    f"Extra keys collision with dataclass field names: "
                    f"{collisions}. Use distinct key names in extra."
                )
                result.update(value)
            else:
                result[key] = value
        return result


class ProfileError(Exception):
    """
    Base exception for all profile errors.

    Subclasses provide a default message so they can be raised bare.
    """

    default_message = "Profile error"

    def __init__(
        self,
        message: str | None = None,
        context: ErrorContext | None = None,
    ) -> None:
        message = message or self.default_message
        assert isinstance(message, str) and message.strip(), (
            f"ProfileError message must be a non-empty string, got {message!r}"
        )
        super().__init__(message)
        self.context = context or ErrorContext()

    @property
    def error_type(self) -> str:
        """Return the error type name for logging."""
        return self.__class__.__name__

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for structured logging."""
        return {
            "error_type": self.error_type,
            "message": str(self),
            **self.context.to_dict(),
        }


class HostNotFound(ProfileError):
    """No profile exists for the requested alias."""

    default_message = "Host not found"


class NoHome(ProfileError):
    """
    Home directory is required but could not be determined.

    Raised when looking up ~/.ssh/config or expanding a ~/ path.
    """

    default_message = "No home directory"


class NotResolvable(ProfileError):
    """Address resolution for the target host and port yielded nothing."""

    default_message = "Cannot resolve the address"


class ConfigIOError(ProfileError):
    """
    Underlying I/O failure.

    This is raised when:
    - The config file cannot be opened or read
    - A resolved path cannot be represented as a string
    - The direct connection or proxy command fails to start
    """

    def __init__(
        self,
        message: str,
        path: str | None = None,
        context: ErrorContext | None = None,
    ) -> None:
        if context is None:
            context = ErrorContext()
        if path is not None:
            context.path = path
        if context.original_error is None:
            context.original_error = message
        super().__init__(message, context)

    @classmethod
    def from_os_error(
        cls,
        exc: OSError,
        path: str | None = None,
        context: ErrorContext | None = None,
    ) -> "ConfigIOError":
        """Wrap an OSError, keeping its message."""
        message = exc.strerror or str(exc) or exc.__class__.__name__
        if path is None and exc.filename is not None:
            path = str(exc.filename)
        return cls(message, path=path, context=context)
