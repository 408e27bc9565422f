# celery_app.py  ─────────────────────────────────────────────────────────
from celery import Celery
import logging
import logging.config
from curve_scanner.config.settings import CELERY_BROKER_URL, CELERY_RESULT_BACKEND, WebhookConfig

# ── 1.  Broker / backend  ────────────────────────────────────
celery_app = Celery(
    "curve_scanner_tasks",
    broker=CELERY_BROKER_URL,
    backend=CELERY_RESULT_BACKEND,
)

# ── 2.  Core config Beat & routing tweaks ─────────────────────
celery_app.conf.update(
    task_serializer       ='json',
    result_serializer     ='json',
    accept_content        =['json'],
    timezone              ='UTC',
    enable_utc            =True,

    # --- use RedBeat for persistent schedules
    beat_scheduler        ="redbeat.RedBeatScheduler",

    # --- recycle workers to avoid long‑lived memory creep
    worker_max_tasks_per_child = 20,
)

# ── 3.  Beat schedule – webhook dispatch every poll interval ───────
celery_app.conf.beat_schedule = {
    "webhook-dispatch": {
        "task": "dispatch_webhooks",
        "schedule": WebhookConfig.from_env().poll_interval_ms / 1000,
        "options": {"queue": "dispatch"},
    }
}

# ── 4.  Logging ────────────────────────────────────────────
LOGGING_CONFIG = {
    "version": 1,
    "formatters": {
        "custom": {
            "format": "[%(asctime)s] [%(levelname)s] %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        }
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "custom"},
    },
    "root": {"level": "INFO", "handlers": ["console"]},
}
celery_app.conf.worker_hijack_root_logger = False
logging.config.dictConfig(LOGGING_CONFIG)

# ── 5.  *Keep* the task modules so Celery registers them ───────────────
import curve_scanner.scheduler.dispatcher  # noqa: E402,F401
