from app.tasks.celery_app import celery
from app.tasks import worker_jobs

@celery.task(name="app.tasks.jobs.expire_bookings")
def expire_bookings():
    return worker_jobs.expire_bookings()

@celery.task(name="app.tasks.jobs.expire_pending_bookings")
def expire_pending_bookings():
    return worker_jobs.expire_pending_bookings()

@celery.task(name="app.tasks.jobs.sweep_seat_locks")
def sweep_seat_locks():
    return worker_jobs.sweep_seat_locks()
