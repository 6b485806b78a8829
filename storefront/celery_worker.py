# storefront/celery_worker.py
from celery import Celery

from storefront.utils.settings import CELERY_BROKER_URL, CELERY_RESULT_BACKEND, SWEEP_INTERVAL_SECONDS

celery_app = Celery(
    "storefront",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
)

#import task modules explicitly so the worker registers them
celery_app.conf.imports = (
    "storefront.tasks.sweep",
    "storefront.services.delivery_service",
)

celery_app.conf.beat_schedule = {
    "sweep-orders": {
        "task": "storefront.tasks.sweep.sweep_orders_task",
        "schedule": SWEEP_INTERVAL_SECONDS,
    },
}
celery_app.conf.timezone = "UTC"
