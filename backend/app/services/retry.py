from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger("prospect_ai")

T = TypeVar("T")

NON_RETRYABLE_STATUS_CODES = frozenset({400, 401})


@dataclass(frozen=True)
class FailureInfo:
    classification: str
    status_code: Optional[int] = None


def describe_failure(exc: Exception) -> FailureInfo:
    status_code = getattr(exc, "status_code", None)
    if not isinstance(status_code, int):
        status_code = getattr(exc, "status", None)
    if isinstance(status_code, bool) or not isinstance(status_code, int):
        status_code = None
    return FailureInfo(classification=type(exc).__name__, status_code=status_code)


def is_auth_or_invalid_request(info: FailureInfo) -> bool:
    return info.status_code in NON_RETRYABLE_STATUS_CODES


@dataclass(frozen=True)
class InvocationPolicy:
    max_attempts: int = 3
    base_delay: float = 1.0
    non_retryable: Callable[[FailureInfo], bool] = is_auth_or_invalid_request
    describe: Callable[[Exception], FailureInfo] = describe_failure

    def __post_init__(self) -> None:
        if isinstance(self.max_attempts, bool) or not isinstance(self.max_attempts, int):
            raise ValueError("max_attempts must be an integer")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must be >= 0")

    def delay_after(self, attempt: int) -> float:
        # Linear: 1x, 2x, 3x base_delay.
        return self.base_delay * attempt


DEFAULT_POLICY = InvocationPolicy()


class InvocationError(Exception):
    def __init__(
        self,
        message: str,
        *,
        last_error: Optional[Exception],
        attempts: int,
        failure: Optional[FailureInfo],
    ) -> None:
        super().__init__(message)
        self.last_error = last_error
        self.attempts = attempts
        self.failure = failure


class NonRetryableError(InvocationError):
    pass


class RetriesExhaustedError(InvocationError):
    pass


RetryHook = Callable[[int, FailureInfo, float], None]


async def invoke(
    operation: Callable[[], Awaitable[T]],
    policy: InvocationPolicy = DEFAULT_POLICY,
    *,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    on_retry: Optional[RetryHook] = None,
) -> T:
    """Run ``operation`` until it succeeds or the policy gives up.

    Attempts run one after another, never concurrently. A failure the policy
    classifies as non-retryable raises :class:`NonRetryableError` at once;
    otherwise the caller is suspended for ``base_delay * attempt`` seconds
    before the next attempt, and :class:`RetriesExhaustedError` is raised
    after the final one. Both carry the original exception as ``last_error``
    and as ``__cause__``.

    Only ``Exception`` subclasses are treated as failures, so a cancellation
    delivered while waiting between attempts propagates unchanged and no
    further attempt starts.
    """
    last_error: Optional[Exception] = None
    last_failure: Optional[FailureInfo] = None

    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await operation()
        except Exception as exc:
            last_error = exc
            last_failure = policy.describe(exc)

            if policy.non_retryable(last_failure):
                logger.warning(
                    "invoke_aborted attempt=%s classification=%s status=%s",
                    attempt,
                    last_failure.classification,
                    last_failure.status_code,
                )
                raise NonRetryableError(
                    f"non-retryable failure on attempt {attempt}: {exc}",
                    last_error=exc,
                    attempts=attempt,
                    failure=last_failure,
                ) from exc

            if attempt == policy.max_attempts:
                break

            delay = policy.delay_after(attempt)
            logger.info(
                "invoke_retry attempt=%s max_attempts=%s classification=%s status=%s delay_s=%.3f",
                attempt,
                policy.max_attempts,
                last_failure.classification,
                last_failure.status_code,
                delay,
            )
            if on_retry is not None:
                on_retry(attempt, last_failure, delay)
            await sleep(delay)

    if last_error is None:
        raise RetriesExhaustedError(
            "retries exhausted",
            last_error=None,
            attempts=policy.max_attempts,
            failure=None,
        )

    logger.warning(
        "invoke_exhausted attempts=%s classification=%s status=%s",
        policy.max_attempts,
        last_failure.classification if last_failure else None,
        last_failure.status_code if last_failure else None,
    )
    raise RetriesExhaustedError(
        f"max attempts ({policy.max_attempts}) exceeded. last error: {last_error}",
        last_error=last_error,
        attempts=policy.max_attempts,
        failure=last_failure,
    ) from last_error
