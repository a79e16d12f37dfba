"""Common decorators for agent linking components."""

from __future__ import annotations

import functools
from collections.abc import Awaitable, Callable
from typing import ParamSpec, TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from agent_linking.common.exceptions import (
    LinkingError,
    RetryExhaustedError,
    SubstrateUnavailableError,
)

logger = structlog.get_logger()

P = ParamSpec("P")
T = TypeVar("T")


def _log_retry(func_name: str, max_attempts: int) -> Callable[[RetryCallState], None]:
    def before_sleep(state: RetryCallState) -> None:
        error = state.outcome.exception() if state.outcome else None
        logger.warning(
            "retry_attempt",
            func=func_name,
            attempt=state.attempt_number,
            max_attempts=max_attempts,
            delay=state.next_action.sleep if state.next_action else 0.0,
            error=str(error),
        )

    return before_sleep


def retry_with_backoff(
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exceptions: tuple[type[Exception], ...] = (SubstrateUnavailableError,),
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """
    Retry decorator with exponential backoff for async functions.

    Only the listed exception types are retried; anything else propagates
    on the first failure.

    Args:
        max_attempts: Maximum number of attempts
        base_delay: Initial delay between retries (seconds)
        max_delay: Maximum delay between retries (seconds)
        exceptions: Tuple of exception types to retry on
    """

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            retrying = AsyncRetrying(
                stop=stop_after_attempt(max_attempts),
                wait=wait_exponential(multiplier=base_delay, max=max_delay),
                retry=retry_if_exception_type(exceptions),
                before_sleep=_log_retry(func.__name__, max_attempts),
            )
            try:
                return await retrying(func, *args, **kwargs)
            except RetryError as e:
                last = e.last_attempt.exception()
                raise RetryExhaustedError(
                    f"All {max_attempts} retry attempts exhausted for {func.__name__}",
                    details={"last_error": str(last)},
                    cause=last if isinstance(last, Exception) else None,
                ) from last

        return wrapper

    return decorator


def trace_span(
    operation_name: str | None = None,
    tags: dict[str, str] | None = None,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """
    Decorator to create an OpenTelemetry trace span.

    Args:
        operation_name: Name of the operation (defaults to function name)
        tags: Additional tags to add to the span
    """

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            import opentelemetry.trace

            tracer = opentelemetry.trace.get_tracer(__name__)
            span_name = operation_name or func.__name__

            with tracer.start_as_current_span(span_name) as span:
                span.set_attribute("function.name", func.__name__)
                span.set_attribute("function.module", func.__module__)

                if tags:
                    for key, value in tags.items():
                        span.set_attribute(key, value)

                try:
                    result = await func(*args, **kwargs)
                    span.set_attribute("success", True)
                    return result
                except Exception as e:
                    span.set_attribute("success", False)
                    span.set_attribute("error.type", type(e).__name__)
                    if isinstance(e, LinkingError):
                        span.set_attribute("error.code", e.code)
                    span.record_exception(e)
                    raise

        return wrapper

    return decorator
