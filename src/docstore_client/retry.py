"""
Retry coordination for store calls.

``RetryCoordinator`` wraps any async operation with bounded retries, backoff,
jitter, a cumulative cost budget and caller hooks. Configuration is a partial
``RetryConfig`` mapping resolved once against defaults by ``apply_defaults``.
"""

from __future__ import annotations

import asyncio
import inspect
import random
import time
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, TypedDict, TypeVar, Union

from loguru import logger

from .errors import (
    ConfigurationError,
    DocStoreError,
    RequestTimeoutError,
    RetryBudgetExhaustedError,
    classify_error,
)
from .metrics import metrics_registry

T = TypeVar("T")

ShouldRetry = Callable[[DocStoreError, int], Optional[bool]]
OnRetry = Callable[[DocStoreError, int, float], Any]
SleepFunc = Callable[[float], Awaitable[None]]


class RetryStrategy(str, Enum):
    EXPONENTIAL = "exponential"
    LINEAR = "linear"
    FIXED = "fixed"


class RetryConfig(TypedDict, total=False):
    enabled: bool
    max_attempts: int  # retries after the first attempt; 0 = single attempt
    strategy: str  # "exponential" | "linear" | "fixed"
    base_delay_ms: float
    max_delay_ms: float
    jitter_factor: float  # 0..1
    max_cost_budget: float
    respect_retry_after: bool
    should_retry: ShouldRetry  # None return defers to the classifier
    on_retry: OnRetry
    timeout_ms: float  # deadline for the whole coordinated call


@dataclass(frozen=True)
class ResolvedRetryConfig:
    """Retry configuration with every option set."""

    enabled: bool = True
    max_attempts: int = 3
    strategy: RetryStrategy = RetryStrategy.EXPONENTIAL
    base_delay_ms: float = 100.0
    max_delay_ms: float = 5000.0
    jitter_factor: float = 0.1
    max_cost_budget: float = 1000.0
    respect_retry_after: bool = True
    should_retry: Optional[ShouldRetry] = None
    on_retry: Optional[OnRetry] = None
    timeout_ms: Optional[float] = None


DEFAULT_RETRY_CONFIG = ResolvedRetryConfig()

_OPTION_NAMES = frozenset(f.name for f in fields(ResolvedRetryConfig))


def _config_error(message: str, option: str, value: Any) -> ConfigurationError:
    return ConfigurationError(
        message, component="retry", details={"option": option, "provided_value": repr(value)}
    )


def _non_negative(name: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
        raise _config_error(f"{name} must be a non-negative number", name, value)
    return float(value)


def apply_defaults(
    config: Union[RetryConfig, ResolvedRetryConfig, None] = None,
    defaults: ResolvedRetryConfig = DEFAULT_RETRY_CONFIG,
) -> ResolvedRetryConfig:
    """Resolve a partial retry configuration against ``defaults``.

    Options set to None keep their default. Unknown options and out-of-range
    values raise ``ConfigurationError``.
    """
    if isinstance(config, ResolvedRetryConfig):
        return config

    given = dict(config or {})
    unknown = set(given) - _OPTION_NAMES
    if unknown:
        raise _config_error(f"Unknown retry options: {sorted(unknown)}", "unknown", sorted(unknown))

    merged = {f.name: getattr(defaults, f.name) for f in fields(defaults)}
    merged.update({k: v for k, v in given.items() if v is not None})

    try:
        merged["strategy"] = RetryStrategy(merged["strategy"])
    except ValueError:
        raise _config_error(
            f"Unknown retry strategy: {merged['strategy']}", "strategy", merged["strategy"]
        ) from None

    attempts = merged["max_attempts"]
    if isinstance(attempts, bool) or not isinstance(attempts, int) or attempts < 0:
        raise _config_error("max_attempts must be a non-negative integer", "max_attempts", attempts)

    for name in ("base_delay_ms", "max_delay_ms", "max_cost_budget"):
        merged[name] = _non_negative(name, merged[name])

    jitter = _non_negative("jitter_factor", merged["jitter_factor"])
    if jitter > 1:
        raise _config_error("jitter_factor must be within [0, 1]", "jitter_factor", jitter)
    merged["jitter_factor"] = jitter

    if merged["timeout_ms"] is not None and _non_negative("timeout_ms", merged["timeout_ms"]) == 0:
        raise _config_error("timeout_ms must be positive", "timeout_ms", merged["timeout_ms"])

    for name in ("should_retry", "on_retry"):
        if merged[name] is not None and not callable(merged[name]):
            raise _config_error(f"{name} must be callable", name, merged[name])

    return ResolvedRetryConfig(**merged)


@dataclass
class RetryContext:
    """Bookkeeping for a single coordinated call.

    ``total_cost_consumed`` sums the cost reported by failed attempts and only
    ever grows.
    """

    attempt: int = 0
    total_cost_consumed: float = 0.0
    current_attempt_cost: float = 0.0
    timestamps: List[float] = field(default_factory=list)
    delays_ms: List[float] = field(default_factory=list)

    def start_attempt(self, attempt: int) -> None:
        self.attempt = attempt
        self.current_attempt_cost = 0.0
        self.timestamps.append(time.time())

    def record_cost(self, cost: float) -> None:
        if cost > 0:
            self.current_attempt_cost = cost
            self.total_cost_consumed += cost


def compute_delay(
    attempt: int,
    config: ResolvedRetryConfig,
    retry_after_ms: Optional[float] = None,
    rng: Optional[random.Random] = None,
) -> float:
    """Backoff delay in milliseconds before retrying after ``attempt`` (0-based)."""
    if config.strategy is RetryStrategy.EXPONENTIAL:
        delay = config.base_delay_ms * (2**attempt)
    elif config.strategy is RetryStrategy.LINEAR:
        delay = config.base_delay_ms * (attempt + 1)
    else:
        delay = config.base_delay_ms
    delay = min(delay, config.max_delay_ms)

    if config.respect_retry_after and retry_after_ms is not None and retry_after_ms > 0:
        delay = min(retry_after_ms, config.max_delay_ms)

    if config.jitter_factor > 0 and delay > 0:
        low = delay * (1 - config.jitter_factor)
        high = delay * (1 + config.jitter_factor)
        delay = low + (rng or random).random() * (high - low)

    return delay


def _reraise(error: DocStoreError, cause: BaseException):
    if error is cause:
        raise error
    raise error from cause


class RetryCoordinator:
    """Runs an async operation under a resolved retry policy.

    Attempts run strictly one after another. ``asyncio.CancelledError`` is
    never classified or retried and interrupts a pending backoff sleep.

    Example:
        coordinator = RetryCoordinator({"max_attempts": 5, "strategy": "linear"})
        doc = await coordinator.run(lambda: store.read(doc_id, pk))
    """

    def __init__(
        self,
        config: Union[RetryConfig, ResolvedRetryConfig, None] = None,
        *,
        component: str = "docstore",
        sleep: Optional[SleepFunc] = None,
        rng: Optional[random.Random] = None,
        log=None,
    ):
        self.config = apply_defaults(config)
        self.component = component
        self._sleep = sleep or asyncio.sleep
        self._rng = rng or random.Random()
        self.log = log or logger.bind(component=component)

    def with_should_retry(self, should_retry: Optional[ShouldRetry]) -> "RetryCoordinator":
        """Copy of this coordinator with a different retry predicate."""
        return RetryCoordinator(
            replace(self.config, should_retry=should_retry),
            component=self.component,
            sleep=self._sleep,
            rng=self._rng,
            log=self.log,
        )

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        context: Optional[RetryContext] = None,
    ) -> T:
        """Execute ``operation`` until it succeeds or a terminal error is raised.

        Raises:
            DocStoreError: the classified terminal error, with
                ``total_request_charge`` set to the cost of every failed attempt
            RetryBudgetExhaustedError: cumulative cost reached the budget
            RequestTimeoutError: ``timeout_ms`` elapsed
        """
        ctx = context if context is not None else RetryContext()
        call = self._run_direct(operation) if not self.config.enabled else self._run_loop(operation, ctx)
        if self.config.timeout_ms is None:
            return await call
        try:
            return await asyncio.wait_for(call, timeout=self.config.timeout_ms / 1000.0)
        except asyncio.TimeoutError:
            err = RequestTimeoutError(
                f"Operation exceeded timeout of {self.config.timeout_ms}ms",
                component=self.component,
                details={"timeout_ms": self.config.timeout_ms, "attempts": ctx.attempt + 1},
            )
            err.total_request_charge = ctx.total_cost_consumed
            raise err from None

    async def _run_direct(self, operation: Callable[[], Awaitable[T]]) -> T:
        try:
            return await operation()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            _reraise(classify_error(exc, self.component), exc)

    async def _run_loop(self, operation: Callable[[], Awaitable[T]], ctx: RetryContext) -> T:
        cfg = self.config
        for attempt in range(cfg.max_attempts + 1):
            ctx.start_attempt(attempt)
            try:
                return await operation()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                error = classify_error(exc, self.component)
                ctx.record_cost(error.request_charge)
                error.total_request_charge = ctx.total_cost_consumed

                if attempt == cfg.max_attempts:
                    self.log.debug(
                        f"Giving up after {attempt + 1} attempt(s): {error.code} {error.message}"
                    )
                    _reraise(error, exc)

                decision = cfg.should_retry(error, attempt) if cfg.should_retry else None
                if decision is None:
                    decision = error.retryable
                if not decision:
                    self.log.debug(f"Not retrying {error.code} on attempt {attempt}")
                    _reraise(error, exc)

                if ctx.total_cost_consumed >= cfg.max_cost_budget:
                    metrics_registry.retry_budget_exhausted_total.labels(component=self.component).inc()
                    self.log.warning(
                        f"Retry budget exhausted: {ctx.total_cost_consumed}/{cfg.max_cost_budget}"
                    )
                    budget_error = RetryBudgetExhaustedError(
                        error, ctx.total_cost_consumed, cfg.max_cost_budget
                    )
                    budget_error.total_request_charge = ctx.total_cost_consumed
                    raise budget_error from exc

                delay_ms = compute_delay(attempt, cfg, error.retry_after_ms, self._rng)
                ctx.delays_ms.append(delay_ms)
                metrics_registry.retry_attempts_total.labels(
                    component=self.component, error_kind=error.kind.value
                ).inc()
                self.log.warning(
                    f"Attempt {attempt + 1} failed with {error.code}; retrying in {delay_ms:.0f}ms"
                )

                if cfg.on_retry is not None:
                    outcome = cfg.on_retry(error, attempt, delay_ms)
                    if inspect.isawaitable(outcome):
                        await outcome

                await self._sleep(delay_ms / 1000.0)

        # unreachable: the last attempt always returns or raises
        raise AssertionError("retry loop exited without a result")


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    config: Union[RetryConfig, ResolvedRetryConfig, None] = None,
    *,
    component: str = "docstore",
    context: Optional[RetryContext] = None,
    sleep: Optional[SleepFunc] = None,
    rng: Optional[random.Random] = None,
) -> T:
    """Run ``operation`` under a one-off ``RetryCoordinator``."""
    coordinator = RetryCoordinator(config, component=component, sleep=sleep, rng=rng)
    return await coordinator.run(operation, context=context)
