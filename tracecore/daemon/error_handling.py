"""Error types and per-provider failure isolation.

Every provider call goes through a circuit breaker:
- failures are recorded and logged, never propagated to the dispatcher caller
- after repeated consecutive failures the circuit opens and the provider is
  skipped, contributing no candidates
- after the recovery timeout one trial call is let through; other calls
  are refused while it runs
"""

import asyncio
import time
import traceback
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Optional

from loguru import logger


class TraceError(Exception):
    """Base class for tracecore errors."""


class ConfigError(TraceError):
    """Configuration file could not be read or validated."""


class ProviderError(TraceError):
    """A result provider failed during a round."""

    def __init__(self, provider: str, cause: BaseException):
        super().__init__(f"Provider {provider} failed: {cause}")
        self.provider = provider
        self.cause = cause


class CircuitOpenError(TraceError):
    """Raised when a call is refused because the circuit is open."""


class CalculationError(TraceError):
    """An arithmetic expression could not be evaluated."""


class NetworkLookupError(TraceError):
    """No network address could be determined."""


class ProviderState(Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    CIRCUIT_OPEN = "circuit_open"
    HALF_OPEN = "half_open"


@dataclass
class Failure:
    """The most recent thing a provider did wrong."""
    at: datetime
    error_type: str
    message: str
    traceback: Optional[str] = None

    @classmethod
    def from_exception(cls, error: BaseException) -> "Failure":
        return cls(
            at=datetime.now(),
            error_type=type(error).__name__,
            message=str(error),
            traceback=''.join(traceback.format_exception(type(error), error, error.__traceback__)),
        )


@dataclass
class ProviderHealth:
    """Call counters for one provider, reported by /status."""
    name: str
    state: ProviderState = ProviderState.HEALTHY
    calls: int = 0
    error_count: int = 0
    consecutive_failures: int = 0
    last_failure: Optional[Failure] = None
    opened_at: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'state': self.state.value,
            'calls': self.calls,
            'error_count': self.error_count,
            'consecutive_failures': self.consecutive_failures,
            'last_error': f"{self.last_failure.error_type}: {self.last_failure.message}"
            if self.last_failure else None,
        }


class CircuitBreaker:
    """
    Stops calling a provider that keeps failing.

    ``failure_threshold`` consecutive failures open the circuit; while open,
    ``allow()`` is False until ``recovery_timeout`` seconds have passed, then a
    single trial call decides whether it closes again. The circuit is half
    open while that call runs and refuses everything else.
    """

    def __init__(self, name: str, failure_threshold: int = 5, recovery_timeout: float = 30.0):
        self.name = name
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.health = ProviderHealth(name=name)

    @property
    def is_open(self) -> bool:
        return self.health.state in (ProviderState.CIRCUIT_OPEN, ProviderState.HALF_OPEN)

    def allow(self) -> bool:
        if self.health.state is ProviderState.HALF_OPEN:
            return False
        if not self.is_open:
            return True
        waited = time.monotonic() - (self.health.opened_at or 0.0)
        return waited >= self.recovery_timeout

    async def call(self, func: Callable, *args, **kwargs) -> Any:
        """Run ``func`` and record the outcome; exceptions are re-raised."""
        if not self.allow():
            raise CircuitOpenError(f"{self.name} is disabled after repeated failures")

        trial = self.is_open
        if trial:
            self.health.state = ProviderState.HALF_OPEN
            logger.debug(f"Trial call for provider {self.name}")

        self.health.calls += 1
        try:
            result = func(*args, **kwargs)
            if asyncio.iscoroutine(result):
                result = await result
        except asyncio.CancelledError:
            # A cancelled trial leaves the circuit open for the next round
            if trial and self.health.state is ProviderState.HALF_OPEN:
                self.health.state = ProviderState.CIRCUIT_OPEN
            raise
        except Exception as e:
            self.record_failure(e)
            raise

        self.record_success()
        return result

    def record_success(self) -> None:
        if self.is_open:
            logger.info(f"Provider {self.name} recovered, closing circuit")
        self.health.consecutive_failures = 0
        self.health.opened_at = None
        self.health.state = ProviderState.HEALTHY

    def record_failure(self, error: BaseException) -> None:
        health = self.health
        health.error_count += 1
        health.consecutive_failures += 1
        health.last_failure = Failure.from_exception(error)

        if health.consecutive_failures < self.failure_threshold:
            if not self.is_open:
                health.state = ProviderState.DEGRADED
            return

        if not self.is_open:
            logger.warning(f"Disabling provider {self.name} after "
                           f"{health.consecutive_failures} consecutive failures")
        # A failed trial call restarts the wait
        health.state = ProviderState.CIRCUIT_OPEN
        health.opened_at = time.monotonic()
