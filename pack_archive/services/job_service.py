"""
Job runtime adapter for the archival pipeline.

Registers the two archival jobs, runs them with bounded-attempt retry and
exponential backoff, and records structured log events and Prometheus
metrics per run. A retry re-runs the whole job from scratch, which is safe
because archival is an idempotent upsert per date.

The recurring job is triggered by cron (see ``flask packaging crontab``);
timeouts and cancellation are left to whatever runs the command.
"""
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from tenacity import (
    Retrying,
    before_sleep_log,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from pack_archive.blueprints.metrics import (
    archived_dates_total,
    job_attempts_total,
    job_duration_seconds,
    job_runs_total,
)
from pack_archive.exceptions import ConfigurationError, InvalidPayloadError, NotFoundError
from pack_archive.services.archival_service import (
    ArchivalPipeline,
    run_cache_warmup,
    run_scheduled_archival,
)

logger = logging.getLogger(__name__)

ARCHIVAL_JOB_ID = 'packaging-archival'
WARMUP_JOB_ID = 'packaging-cache-warmup'

# Retrying these cannot change the outcome
NON_RETRYABLE_ERRORS = (InvalidPayloadError, ConfigurationError)


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    min_timeout_ms: int = 1000
    max_timeout_ms: int = 10000
    factor: float = 2

    @classmethod
    def from_config(cls, config) -> "RetryPolicy":
        return cls(
            max_attempts=config.get('JOB_MAX_ATTEMPTS', 3),
            min_timeout_ms=config.get('JOB_MIN_TIMEOUT_MS', 1000),
            max_timeout_ms=config.get('JOB_MAX_TIMEOUT_MS', 10000),
            factor=config.get('JOB_BACKOFF_FACTOR', 2),
        )

    def retrying(self, sleep: Callable[[float], None] = time.sleep) -> Retrying:
        initial = self.min_timeout_ms / 1000.0
        return Retrying(
            stop=stop_after_attempt(max(1, self.max_attempts)),
            wait=wait_exponential_jitter(
                initial=initial,
                max=self.max_timeout_ms / 1000.0,
                exp_base=self.factor,
                jitter=initial,
            ),
            retry=retry_if_not_exception_type(NON_RETRYABLE_ERRORS),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            sleep=sleep,
            reraise=True,
        )


@dataclass(frozen=True)
class JobDefinition:
    id: str
    handler: Callable[[ArchivalPipeline, Optional[Dict[str, Any]]], Dict[str, Any]]
    cron: Optional[str] = None
    description: str = ''


def _archival_handler(pipeline, payload):
    try:
        result = run_scheduled_archival(pipeline)
    except Exception:
        archived_dates_total.labels(outcome='failed').inc()
        raise
    archived_dates_total.labels(outcome='cached' if result['cached'] else 'skipped').inc()
    return result


def _warmup_handler(pipeline, payload):
    summary = run_cache_warmup(pipeline, payload)
    for result in summary.results:
        if not result.success:
            outcome = 'failed'
        else:
            outcome = 'cached' if result.cached else 'skipped'
        archived_dates_total.labels(outcome=outcome).inc()
    return summary.to_dict()


def default_jobs(archival_cron: str = '0 0 * * *') -> List[JobDefinition]:
    return [
        JobDefinition(
            id=ARCHIVAL_JOB_ID,
            handler=_archival_handler,
            cron=archival_cron,
            description="Archive yesterday's packaging data to the cache",
        ),
        JobDefinition(
            id=WARMUP_JOB_ID,
            handler=_warmup_handler,
            description='Archive a date or an inclusive date range on demand',
        ),
    ]


class JobRunner:
    """Executes registered jobs against one pipeline."""

    def __init__(
        self,
        pipeline: ArchivalPipeline,
        retry_policy: Optional[RetryPolicy] = None,
        jobs: Optional[List[JobDefinition]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.pipeline = pipeline
        self.retry_policy = retry_policy or RetryPolicy()
        self.jobs = {job.id: job for job in (jobs or default_jobs())}
        self._sleep = sleep

    def scheduled_jobs(self) -> List[JobDefinition]:
        return [job for job in self.jobs.values() if job.cron]

    def run(self, job_id: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Run a job to completion, retrying transient failures."""
        job = self.jobs.get(job_id)
        if job is None:
            raise NotFoundError(f"Unknown job: {job_id}")

        attempts = 0

        def attempt():
            nonlocal attempts
            attempts += 1
            job_attempts_total.labels(job=job_id).inc()
            logger.info(f"[JOB] {job_id} attempt {attempts}/{self.retry_policy.max_attempts}")
            return job.handler(self.pipeline, payload)

        started = time.monotonic()
        try:
            output = self.retry_policy.retrying(sleep=self._sleep)(attempt)
        except Exception as e:
            job_runs_total.labels(job=job_id, status='failed').inc()
            logger.error(f"[JOB] {job_id} failed after {attempts} attempt(s): {e}")
            raise
        finally:
            job_duration_seconds.labels(job=job_id).observe(time.monotonic() - started)

        job_runs_total.labels(job=job_id, status='succeeded').inc()
        logger.info(f"[JOB] {job_id} succeeded after {attempts} attempt(s)")
        return output


def build_job_runner(app, clock=None) -> JobRunner:
    """JobRunner wired from the Flask app's config, store and cache."""
    kwargs = {'clock': clock} if clock else {}
    pipeline = ArchivalPipeline.from_config(
        app.config, app.extensions['document_store'], cache=app.extensions.get('cache'), **kwargs
    )
    return JobRunner(
        pipeline,
        retry_policy=RetryPolicy.from_config(app.config),
        jobs=default_jobs(app.config.get('ARCHIVAL_CRON', '0 0 * * *')),
    )
