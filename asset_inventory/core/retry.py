"""
Bounded retry for transient source failures.

Only TransientSourceError is retried. Anything else propagates immediately.
When the retry limit is exhausted the last transient error is escalated to
FatalScanError, which aborts the scan.
"""

import asyncio
import logging
from typing import Any, Callable, Optional

from ..exceptions import FatalScanError, TransientSourceError

logger = logging.getLogger("asset_inventory.retry")


async def retry_on_transient_error(
    func: Callable,
    *args,
    description: str = "source read",
    max_retries: int = 3,
    retry_delay_seconds: float = 1.0,
    on_retry: Optional[Callable[[int, str], None]] = None,
    **kwargs,
) -> Any:
    """
    Execute an async function, retrying on TransientSourceError.

    Args:
        func: Async function to execute
        description: What is being attempted (used in logs and errors)
        max_retries: Maximum number of retry attempts
        retry_delay_seconds: Seconds to wait between retries
        on_retry: Optional callback(attempt, error_message) called before each retry
        *args, **kwargs: Arguments to pass to func

    Returns:
        Result from func

    Raises:
        FatalScanError: If every attempt failed with a transient error
    """
    last_error: Optional[TransientSourceError] = None

    for attempt in range(max_retries + 1):
        try:
            return await func(*args, **kwargs)
        except TransientSourceError as e:
            last_error = e
            error_msg = str(e)

        if attempt < max_retries:
            if on_retry:
                on_retry(attempt + 1, error_msg)
            logger.warning(
                f"Transient error during {description} (attempt {attempt + 1}/{max_retries + 1}): "
                f"{error_msg}. Waiting {retry_delay_seconds}s before retry..."
            )
            if retry_delay_seconds:
                await asyncio.sleep(retry_delay_seconds)

    logger.error(f"Giving up on {description} after {max_retries + 1} attempts: {last_error}")
    raise FatalScanError(
        f"{description} failed after {max_retries + 1} attempts: {last_error}"
    ) from last_error
