"""
Prometheus metrics blueprint for observability.

Exposes /metrics with the archival job counters. This endpoint should be
restricted to internal network or monitoring systems only.
"""
from flask import Blueprint, Response
from prometheus_client import Counter, Histogram, generate_latest, CollectorRegistry, CONTENT_TYPE_LATEST
from prometheus_client import multiprocess, REGISTRY
import os

metrics_bp = Blueprint('metrics', __name__)

# Check if running in multi-process mode (Gunicorn)
MULTIPROCESS_MODE = os.environ.get('PROMETHEUS_MULTIPROC_DIR') is not None

if MULTIPROCESS_MODE:
    registry = CollectorRegistry()
    multiprocess.MultiProcessCollector(registry)
else:
    registry = REGISTRY

job_runs_total = Counter(
    'packaging_job_runs_total',
    'Archival job runs by final status',
    ['job', 'status'],
    registry=registry if not MULTIPROCESS_MODE else None
)

job_attempts_total = Counter(
    'packaging_job_attempts_total',
    'Archival job attempts, including retries',
    ['job'],
    registry=registry if not MULTIPROCESS_MODE else None
)

job_duration_seconds = Histogram(
    'packaging_job_duration_seconds',
    'Archival job wall time in seconds',
    ['job'],
    registry=registry if not MULTIPROCESS_MODE else None,
    buckets=(0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0)
)

archived_dates_total = Counter(
    'packaging_archived_dates_total',
    'Dates processed by the archival pipeline, by outcome',
    ['outcome'],
    registry=registry if not MULTIPROCESS_MODE else None
)


@metrics_bp.route('/metrics')
def metrics():
    """Expose Prometheus metrics in text format."""
    return Response(generate_latest(registry), mimetype=CONTENT_TYPE_LATEST)
