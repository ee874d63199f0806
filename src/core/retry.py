"""Retry policies for calls against the hosted Supabase backend.

Reads are retried on transient transport failures with exponential backoff
(1s, 2s, 4s ... capped at 30s). Writes are retried once after a fixed delay;
the lifecycle RPCs re-check their preconditions, so a replayed write that
already committed fails with a conflict instead of applying twice.
"""

import logging
from typing import Any

import httpx
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_fixed,
)

logger = logging.getLogger(__name__)

# Retry configuration
READ_MAX_RETRIES = 3
READ_MAX_WAIT_SECONDS = 30
WRITE_MAX_RETRIES = 1
WRITE_WAIT_SECONDS = 1

TRANSIENT_ERRORS = (httpx.TransportError,)


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "Transient backend error on %s (attempt %d): %s",
        retry_state.fn.__name__ if retry_state.fn else "call",
        retry_state.attempt_number,
        exc,
    )


read_retry = retry(
    retry=retry_if_exception_type(TRANSIENT_ERRORS),
    stop=stop_after_attempt(READ_MAX_RETRIES + 1),
    wait=wait_exponential(multiplier=1, min=1, max=READ_MAX_WAIT_SECONDS),
    before_sleep=_log_retry,
    reraise=True,
)

write_retry = retry(
    retry=retry_if_exception_type(TRANSIENT_ERRORS),
    stop=stop_after_attempt(WRITE_MAX_RETRIES + 1),
    wait=wait_fixed(WRITE_WAIT_SECONDS),
    before_sleep=_log_retry,
    reraise=True,
)


@read_retry
def execute_read(query: Any) -> Any:
    """Execute a PostgREST select builder with the read retry policy."""
    return query.execute()


@write_retry
def execute_write(query: Any) -> Any:
    """Execute a PostgREST insert/update/rpc builder with the write retry policy."""
    return query.execute()
