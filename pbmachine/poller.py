"""Blocking wait for asynchronous provider jobs."""

from __future__ import annotations

import time
from typing import Callable

from loguru import logger

from .errors import JobFailedError, PollTimeoutError
from .models import JobState, JobStatus
from .provider import ProviderAPI

log = logger

DEFAULT_POLL_ATTEMPTS = 500
DEFAULT_POLL_INTERVAL_S = 10.0


class OperationPoller:
    """Poll a job handle until the provider reports DONE or FAILED.

    The calling thread sleeps between polls. Only one job is awaited at a
    time; the orchestrator never polls the same handle concurrently.
    """

    def __init__(
        self,
        provider: ProviderAPI,
        *,
        attempts: int = DEFAULT_POLL_ATTEMPTS,
        interval_s: float = DEFAULT_POLL_INTERVAL_S,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if attempts < 1:
            raise ValueError(f'attempts must be positive, got {attempts}')
        self.provider = provider
        self.attempts = attempts
        self.interval_s = interval_s
        self.sleep = sleep

    def await_completion(self, job: str) -> JobStatus:
        if not job:
            raise ValueError('await_completion requires a non-empty job handle')
        for attempt in range(1, self.attempts + 1):
            status = self.provider.get_job_status(job)
            log.debug(
                'Job {} poll {}/{}: {}',
                job,
                attempt,
                self.attempts,
                status.state.value,
            )
            if status.state is JobState.DONE:
                return status
            if status.state is JobState.FAILED:
                raise JobFailedError(job, status.message)
            if attempt < self.attempts:
                self.sleep(self.interval_s)
        raise PollTimeoutError(job, self.attempts)
