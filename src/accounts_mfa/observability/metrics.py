"""MFA metrics helpers for Prometheus integration.

Usage:
    ```python
    from accounts_mfa.observability import MfaMetrics

    with MfaMetrics.operation("authenticate", factor="totp"):
        user = await mfa.authenticate(params, info)
    ```
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from prometheus_client import Counter, Histogram

from ..exceptions import MfaError

if TYPE_CHECKING:
    from collections.abc import Generator

    from ..audit.events import MfaAuditEvent


class _MfaMetricsRegistry:
    """Registry for MFA Prometheus metrics.

    Metrics are created on first use and registered once per process.
    """

    def __init__(self) -> None:
        self._histogram: Any = None
        self._counter: Any = None
        self._event_counter: Any = None
        self._initialized = False

    def _ensure_initialized(self) -> None:
        if self._initialized:
            return

        self._histogram = Histogram(
            "mfa_operation_duration_seconds",
            "MFA operation duration",
            ["operation", "factor"],
        )
        self._counter = Counter(
            "mfa_operations_total",
            "MFA operation count",
            ["operation", "factor", "result"],
        )
        self._event_counter = Counter(
            "mfa_audit_events_total",
            "MFA audit event count",
            ["event_type", "factor", "result"],
        )
        self._initialized = True

    @property
    def histogram(self) -> Any:
        self._ensure_initialized()
        return self._histogram

    @property
    def counter(self) -> Any:
        self._ensure_initialized()
        return self._counter

    @property
    def event_counter(self) -> Any:
        self._ensure_initialized()
        return self._event_counter


_registry = _MfaMetricsRegistry()


@dataclass
class MfaOperationLabels:
    """Labels of an operation being timed."""

    factor: str = "unknown"


class MfaMetrics:
    """Helpers for recording MFA operations.

    Results are labelled ``success``, the error code of an ``MfaError``
    (e.g. ``AuthenticationFailed``), or ``error`` for anything else.
    """

    @staticmethod
    @contextmanager
    def operation(
        operation: str,
        *,
        factor: str = "unknown",
    ) -> Generator[MfaOperationLabels, None, None]:
        """Context manager for timing an MFA operation.

        Args:
            operation: Operation name (challenge, authenticate, associate, ...).
            factor: Factor name, when known up front.

        Yields:
            Labels the caller may refine once the factor is resolved.
        """
        labels = MfaOperationLabels(factor=factor)
        result = "success"
        start = time.monotonic()

        try:
            yield labels
        except MfaError as e:
            result = e.code.value
            raise
        except Exception:
            result = "error"
            raise
        finally:
            duration = time.monotonic() - start
            _registry.histogram.labels(
                operation=operation, factor=labels.factor
            ).observe(duration)
            _registry.counter.labels(
                operation=operation, factor=labels.factor, result=result
            ).inc()

    @staticmethod
    def record_event(event: MfaAuditEvent) -> None:
        """Count an audit event, apart from the operation counters."""
        _registry.event_counter.labels(
            event_type=event.event_type.value,
            factor=event.factor,
            result="success" if event.success else (event.error_code or "failure"),
        ).inc()


__all__: list[str] = [
    "MfaMetrics",
    "MfaOperationLabels",
]
