"""MFA tracing helpers for OpenTelemetry.

Spans are named ``mfa.<operation>``. Without a configured SDK the
OpenTelemetry API hands out non-recording spans, so this is free to leave on.

Usage:
    ```python
    from accounts_mfa.observability import MfaTracing

    with MfaTracing.span("challenge") as span:
        payload = await mfa.challenge(token, authenticator_id, info)
        MfaTracing.set_attribute(span, "mfa.factor", "totp")
    ```
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

if TYPE_CHECKING:
    from collections.abc import Generator

_tracer = trace.get_tracer("accounts-mfa")


class MfaTracing:
    """Span helpers around MFA operations."""

    @staticmethod
    @contextmanager
    def span(
        operation: str,
        *,
        attributes: dict[str, Any] | None = None,
    ) -> Generator[Any, None, None]:
        """Context manager for a traced MFA operation.

        Args:
            operation: Operation name.
            attributes: Additional span attributes.

        Yields:
            The current span.
        """
        with _tracer.start_as_current_span(
            f"mfa.{operation}", record_exception=False, set_status_on_exception=False
        ) as span:
            span.set_attribute("mfa.operation", operation)
            for key, value in (attributes or {}).items():
                span.set_attribute(key, str(value))

            try:
                yield span
            except Exception as e:
                MfaTracing.set_error(span, e)
                raise

    @staticmethod
    def set_attribute(span: Any, key: str, value: Any) -> None:
        """Set a string attribute on ``span``, ignoring ``None`` values."""
        if value is not None:
            span.set_attribute(key, str(value))

    @staticmethod
    def set_error(span: Any, error: Exception) -> None:
        """Mark span as failed with error."""
        span.set_status(Status(StatusCode.ERROR, str(error)))
        span.record_exception(error)


__all__: list[str] = ["MfaTracing"]
