"""Reusable retry with exponential backoff around a single HTTP call."""
import logging
import time
from typing import Callable, Optional

import requests

logger = logging.getLogger(__name__)


def is_rate_limited(response: requests.Response) -> bool:
    return response.status_code == 429


class RetriesExhaustedError(Exception):
    """The response was still retryable after the last attempt."""

    def __init__(self, response: requests.Response, attempts: int):
        super().__init__(
            f"Still retryable after {attempts} attempts "
            f"(status {response.status_code})"
        )
        self.response = response
        self.attempts = attempts


class RetryPolicy:
    """Re-issue a call while its response satisfies a retryable predicate."""

    def __init__(
        self,
        max_retries: int = 3,
        base_delay: float = 2.0,
        retryable: Callable[[requests.Response], bool] = is_rate_limited,
        sleep: Optional[Callable[[float], None]] = None
    ):
        """
        Initialize the retry policy.

        Args:
            max_retries: Retries after the first attempt (default: 3)
            base_delay: Delay before the first retry in seconds (default: 2)
            retryable: Predicate deciding whether a response is retried
            sleep: Sleep function, replaceable in tests
        """
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.retryable = retryable
        self.sleep = sleep or time.sleep

    def delay_for(self, attempt: int) -> float:
        """Delay before retry number attempt + 1 (2s, 4s, 8s by default)."""
        return self.base_delay * (2 ** attempt)

    def execute(self, call: Callable[[], requests.Response]) -> requests.Response:
        """
        Invoke call, retrying with exponential backoff.

        Args:
            call: Zero-argument function performing one HTTP request

        Returns:
            The first response that is not retryable

        Raises:
            RetriesExhaustedError: If the last allowed attempt is still retryable
        """
        for attempt in range(self.max_retries + 1):
            response = call()
            if not self.retryable(response):
                return response

            if attempt < self.max_retries:
                delay = self.delay_for(attempt)
                logger.warning(
                    f"Retryable response {response.status_code} "
                    f"(retry {attempt + 1}/{self.max_retries}). "
                    f"Retrying in {delay:g} seconds..."
                )
                self.sleep(delay)

        logger.error(f"All {self.max_retries} retries exhausted")
        raise RetriesExhaustedError(response, self.max_retries + 1)
