from __future__ import annotations

import logging
import time
from typing import Callable, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")

logger = logging.getLogger("retry")


class RetryPolicy(BaseModel):
    """Exponential backoff shared by collaborators that opt into retries.

    The reconciliation and mutation path never uses it: a failed batch aborts
    the run and the caller decides whether to start a new one.
    """

    max_attempts: int = Field(default=3, ge=1, le=20)
    base_delay_sec: float = Field(default=1.0, ge=0)
    multiplier: float = Field(default=2.0, ge=1)
    max_delay_sec: float = Field(default=60.0, ge=0)

    def delay_for(self, attempt: int) -> float:
        # attempt is 1-based: the wait after the first failure is base_delay_sec.
        delay = self.base_delay_sec * (self.multiplier ** max(attempt - 1, 0))
        return min(delay, self.max_delay_sec)

    def call(
        self,
        fn: Callable[[], T],
        *,
        retry_on: tuple[type[BaseException], ...] = (Exception,),
        sleep: Callable[[float], None] = time.sleep,
        label: str = "call",
    ) -> T:
        attempt = 0
        while True:
            attempt += 1
            try:
                return fn()
            except retry_on as e:
                if attempt >= self.max_attempts:
                    raise
                wait_sec = self.delay_for(attempt)
                logger.warning(
                    "retry_scheduled %s attempt=%d/%d wait=%.2fs error=%s",
                    label,
                    attempt,
                    self.max_attempts,
                    wait_sec,
                    e,
                )
                sleep(wait_sec)
