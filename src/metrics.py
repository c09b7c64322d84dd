"""Metrics definitions for the menu CMS."""

from prometheus_client import Counter, Histogram


# Application Metrics
REQUEST_COUNT = Counter(
    'http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status']
)

REQUEST_DURATION = Histogram(
    'http_request_duration_seconds',
    'HTTP request duration',
    ['method', 'endpoint']
)

APPLICATION_ERRORS = Counter(
    'application_errors_total',
    'Total application errors',
    ['type', 'endpoint']
)


# Import Metrics
IMPORT_RUNS_TOTAL = Counter(
    'menu_import_runs_total',
    'Total menu import runs',
    ['outcome']
)

IMPORT_BATCHES_TOTAL = Counter(
    'menu_import_batches_total',
    'Total committed import batches',
    ['kind']
)

IMPORT_BATCH_FAILURES_TOTAL = Counter(
    'menu_import_batch_failures_total',
    'Total failed import batch commits',
    ['kind']
)

IMPORT_DURATION_SECONDS = Histogram(
    'menu_import_duration_seconds',
    'Menu import duration in seconds'
)


# Cascade Delete Metrics
CASCADE_DELETES_TOTAL = Counter(
    'cascade_deletes_total',
    'Total entity deletions',
    ['entity', 'outcome']
)

BLOB_CLEANUP_FAILURES_TOTAL = Counter(
    'blob_cleanup_failures_total',
    'Blob deletions that failed or found nothing',
    ['reason']
)


# Image Metrics
IMAGE_UPLOADS_TOTAL = Counter(
    'image_uploads_total',
    'Total image uploads',
    ['asset', 'outcome']
)

IMAGE_UPLOAD_BYTES = Histogram(
    'image_upload_bytes',
    'Size of processed images in bytes',
    ['asset'],
    buckets=[50_000, 100_000, 250_000, 500_000, 1_000_000, 2_500_000, 5_000_000]
)


# Cache Metrics
CACHE_HITS_TOTAL = Counter(
    'cache_hits_total',
    'Total cache hits',
    ['cache_type']
)

CACHE_MISSES_TOTAL = Counter(
    'cache_misses_total',
    'Total cache misses',
    ['cache_type']
)


def record_import_run(outcome: str, duration_seconds: float) -> None:
    """Record a finished import run."""
    IMPORT_RUNS_TOTAL.labels(outcome=outcome).inc()
    IMPORT_DURATION_SECONDS.observe(duration_seconds)


def record_cascade_delete(entity: str, ok: bool) -> None:
    """Record the outcome of deleting one entity document."""
    CASCADE_DELETES_TOTAL.labels(entity=entity, outcome="ok" if ok else "failed").inc()


def record_cache_access(cache_type: str, hit: bool) -> None:
    """Record a cache hit or miss."""
    if hit:
        CACHE_HITS_TOTAL.labels(cache_type=cache_type).inc()
    else:
        CACHE_MISSES_TOTAL.labels(cache_type=cache_type).inc()
