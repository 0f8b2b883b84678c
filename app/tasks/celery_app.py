import logging
from urllib.parse import urlparse, urlunparse, parse_qs, urlencode

from celery import Celery
from celery.signals import worker_ready
from app.core.config import settings

logger = logging.getLogger(__name__)


def _redis_url_for_celery(url: str) -> str:
    """Celery requires ssl_cert_reqs for rediss:// (e.g. managed TLS Redis)."""
    if not url or not url.strip().lower().startswith("rediss://"):
        return url
    parsed = urlparse(url)
    qs = parse_qs(parsed.query)
    if "ssl_cert_reqs" not in qs:
        qs["ssl_cert_reqs"] = ["CERT_NONE"]
        new_query = urlencode(qs, doseq=True)
        return urlunparse(parsed._replace(query=new_query))
    return url


_redis_url = _redis_url_for_celery(settings.REDIS_URL)

celery = Celery(
    "marquee",
    broker=_redis_url,
    backend=_redis_url,
    include=["app.tasks.jobs"],
)

celery.conf.timezone = settings.SHOW_TIMEZONE

# Clear locks left over from downtime as soon as a worker comes up
@worker_ready.connect
def on_worker_ready(sender, **kwargs):
    if settings.CACHE_BACKEND.lower() != "redis":
        # Invalidations from a process-local cache never reach the API processes.
        logger.warning("CACHE_BACKEND=%s: sweeper cache invalidation will not reach the API; use redis", settings.CACHE_BACKEND)
    from app.tasks.jobs import sweep_seat_locks
    sweep_seat_locks.delay()

celery.conf.beat_schedule = {
    "expire-bookings": {
        "task": "app.tasks.jobs.expire_bookings",
        "schedule": settings.BOOKING_EXPIRY_INTERVAL_SECONDS,
    },
    "expire-pending-bookings": {
        "task": "app.tasks.jobs.expire_pending_bookings",
        "schedule": settings.LOCK_SWEEP_INTERVAL_SECONDS,
    },
    "sweep-seat-locks": {
        "task": "app.tasks.jobs.sweep_seat_locks",
        "schedule": settings.LOCK_SWEEP_INTERVAL_SECONDS,
    },
}
