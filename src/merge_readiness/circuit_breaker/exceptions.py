"""Circuit breaker exceptions.

Callers can distinguish between:
  - A call being rejected because the circuit is open. This means "try later",
    not a hard failure of the protected dependency.
"""

from merge_readiness.errors import MergeReadinessError


class CircuitBreakerError(MergeReadinessError):
    """Base exception for the circuit breaker package."""


class CircuitOpenError(CircuitBreakerError):
    """Raised when a call is rejected because the circuit is open.

    Attributes:
        breaker_name: Name of the breaker rejecting the call.
        failures: Failure count recorded when the call was rejected.
        retry_after: Seconds until a half-open probe may be attempted.
    """

    def __init__(self, breaker_name: str, *, failures: int, retry_after: float) -> None:
        """Initialize a circuit-open exception payload.

        Args:
            breaker_name: Breaker rejecting the call.
            failures: Failures counted by the breaker.
            retry_after: Seconds until the next probe window opens.
        """
        self.breaker_name = breaker_name
        self.failures = failures
        self.retry_after = retry_after
        super().__init__(
            f"circuit_open: {breaker_name} failures={failures} "
            f"retry_after={retry_after:g}s"
        )
