from celery import Celery
from .config import settings

def _route_task(name, args, kwargs, options, task=None):
    """
    Route tasks to dedicated queues.

    Processing runs go to `pipeline` (long provider calls, one at a time per
    worker); e-mails and sweeps go to `notifications` so they are never stuck
    behind a transcription.
    """
    if name == "pitchpipe.tasks.process_video_task":
        return {"queue": "pipeline"}

    if name in ("pitchpipe.tasks.send_completion_email_task", "pitchpipe.tasks.sweep_uploaded_jobs_task"):
        return {"queue": "notifications"}

    return None

celery_app = Celery(
    "pitchpipe",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["pitchpipe.tasks"]
)

celery_app.conf.update(
    task_track_started=True,
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    broker_transport_options={"visibility_timeout": 3600},
    task_routes=(_route_task,),
    beat_schedule={
        "sweep-uploaded-jobs": {
            "task": "pitchpipe.tasks.sweep_uploaded_jobs_task",
            "schedule": float(settings.SWEEP_INTERVAL_SECONDS),
        },
    },
)
