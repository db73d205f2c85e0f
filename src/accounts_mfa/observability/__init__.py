"""MFA observability helpers for metrics and tracing.

Usage:
    ```python
    from accounts_mfa.observability import MfaMetrics, MfaTracing

    with MfaTracing.span("authenticate"), MfaMetrics.operation("authenticate"):
        user = await mfa.authenticate(params, info)
    ```
"""

from __future__ import annotations

from .metrics import MfaMetrics, MfaOperationLabels
from .tracing import MfaTracing

__all__: list[str] = [
    "MfaMetrics",
    "MfaOperationLabels",
    "MfaTracing",
]
