"""Exception hierarchy for signet-loop.

All exceptions carry a human-readable message plus a structured ``context``
dict, so they can be passed straight to structlog.

Usage:
    from signetloop.exceptions import CommandExecutionError

    try:
        compose.up()
    except CommandExecutionError as e:
        logger.error("compose_up_failed", error=str(e), context=e.context)
"""

from __future__ import annotations

from typing import Any

from signetloop.utils.logging import redact_argv


class SignetLoopError(Exception):
    """Base exception for all signet-loop errors.

    Attributes:
        message: Human-readable error message
        context: Additional context for debugging (dict)
        original_error: Original exception if wrapped
    """

    def __init__(
        self,
        message: str,
        *,
        context: dict[str, Any] | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}
        self.original_error = original_error

    def __str__(self) -> str:
        """Format exception with context for logging."""
        base = self.message
        if self.context:
            ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base = f"{base} ({ctx_str})"
        if self.original_error:
            base = f"{base} [caused by: {type(self.original_error).__name__}]"
        return base

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message={self.message!r}, context={self.context!r})"


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(SignetLoopError):
    """Raised when settings are invalid or a rendered config fails validation."""

    def __init__(
        self,
        message: str,
        *,
        setting: str | None = None,
        expected: str | None = None,
        **kwargs: Any,
    ) -> None:
        context = kwargs.get("context", {})
        if setting:
            context["setting"] = setting
        if expected:
            context["expected"] = expected
        kwargs["context"] = context
        super().__init__(message, **kwargs)


# =============================================================================
# External Command Errors
# =============================================================================


class CommandExecutionError(SignetLoopError):
    """Raised when an external command fails and the failure is fatal.

    Best-effort steps never raise this; they inspect the ``CommandResult``
    and print a warning instead.
    """

    def __init__(
        self,
        message: str,
        *,
        command: list[str] | None = None,
        exit_code: int | None = None,
        **kwargs: Any,
    ) -> None:
        context = kwargs.get("context", {})
        if command:
            context["command"] = " ".join(redact_argv(command))[:200]
        if exit_code is not None:
            context["exit_code"] = exit_code
        kwargs["context"] = context
        super().__init__(message, **kwargs)


# =============================================================================
# Operator Interaction
# =============================================================================


class OperationAbortedError(SignetLoopError):
    """Raised when the operator declines to continue an operation."""


# =============================================================================
# Utility Functions
# =============================================================================


def wrap_exception(
    error: Exception,
    message: str,
    *,
    exception_class: type[SignetLoopError] = SignetLoopError,
    **context: Any,
) -> SignetLoopError:
    """Wrap an external exception in the signet-loop exception hierarchy.

    Example:
        try:
            path.write_text(rendered)
        except OSError as e:
            raise wrap_exception(
                e,
                "Could not write aperture config",
                exception_class=ConfigurationError,
                path=str(path),
            )
    """
    return exception_class(
        message,
        context=context,
        original_error=error,
    )


__all__ = [
    "SignetLoopError",
    "ConfigurationError",
    "CommandExecutionError",
    "OperationAbortedError",
    "wrap_exception",
]
